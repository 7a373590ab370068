"""Engine and session factory.

SQLite needs a few adjustments: connections are shared with the TestClient
thread, and pysqlite's implicit transaction handling has to be switched off so
SAVEPOINTs (used by the invoice orchestrator and the scheduler) behave.
Transactions open with ``BEGIN IMMEDIATE`` so writers take the database lock
up front and wait for each other (up to the busy timeout) instead of failing
when a read lock has to be upgraded.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from freelance_crm.app.core.settings import get_settings

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def build_engine(database_url: str):
    if not database_url.startswith("sqlite"):
        return create_engine(database_url)

    sqlite_engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SECONDS},
    )

    @event.listens_for(sqlite_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(sqlite_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return sqlite_engine


settings = get_settings()

engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
