import threading
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from freelance_crm.app.core.time import utc_now
from freelance_crm.app.db.base import Base
from freelance_crm.app.db.session import SessionLocal, build_engine, engine
from freelance_crm.app.models.client import Client
from freelance_crm.app.models.enums import ClientType, InvoiceStatus
from freelance_crm.app.models.invoice import Invoice
from freelance_crm.app.models.invoice_sequence import InvoiceSequence
from freelance_crm.app.models.user import User
from freelance_crm.app.services.invoices import create_invoice
from freelance_crm.app.services.numbering import (
    generate_next_number,
    number_prefix,
    parse_sequence,
)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client_row(db):
    user = User(email="numbers@example.com", hashed_password="x")
    db.add(user)
    db.flush()
    client = Client(user_id=user.id, type=ClientType.COMPANY, company_name="ACME", contact_name="Jo", email="jo@acme.de")
    db.add(client)
    db.commit()
    return client


def add_invoice(db, client, number, deleted=False):
    invoice = Invoice(
        user_id=client.user_id,
        client_id=client.id,
        number=number,
        status=InvoiceStatus.DRAFT,
        issued_at=date(2026, 1, 10),
        due_at=date(2026, 1, 24),
        subtotal=Decimal("0"),
        vat_rate=Decimal("19"),
        vat_amount=Decimal("0"),
        total=Decimal("0"),
        deleted_at=utc_now() if deleted else None,
    )
    db.add(invoice)
    db.commit()
    return invoice


def test_first_number_of_year(db):
    assert generate_next_number(db, date(2026, 5, 1)) == "2026-001"


def test_numbers_increase_within_year(db, client_row):
    add_invoice(db, client_row, "2026-001")
    add_invoice(db, client_row, "2026-002")
    assert generate_next_number(db, date(2026, 5, 1)) == "2026-003"


def test_sequence_resets_per_year(db, client_row):
    add_invoice(db, client_row, "2025-014")
    assert generate_next_number(db, date(2026, 1, 2)) == "2026-001"
    assert generate_next_number(db, date(2025, 12, 31)) == "2025-015"


def test_soft_deleted_numbers_are_not_reused(db, client_row):
    add_invoice(db, client_row, "2026-001")
    add_invoice(db, client_row, "2026-002", deleted=True)
    assert generate_next_number(db, date(2026, 3, 1)) == "2026-003"


def test_sequence_continues_past_three_digits(db, client_row):
    add_invoice(db, client_row, "2026-999")
    assert generate_next_number(db, date(2026, 3, 1)) == "2026-1000"


def test_parse_sequence_ignores_foreign_suffixes():
    prefix = number_prefix(2026)
    assert parse_sequence("2026-042", prefix) == 42
    assert parse_sequence("2026-draft", prefix) is None



def test_each_call_reserves_a_new_number(db):
    assert generate_next_number(db, date(2026, 5, 1)) == "2026-001"
    assert generate_next_number(db, date(2026, 5, 1)) == "2026-002"
    assert db.get(InvoiceSequence, 2026).last_value == 2


def test_rolled_back_number_is_handed_out_again(db):
    assert generate_next_number(db, date(2026, 5, 1)) == "2026-001"
    db.rollback()
    assert generate_next_number(db, date(2026, 5, 1)) == "2026-001"


def test_default_year_follows_utc_today(db):
    assert generate_next_number(db) == f"{utc_now().year}-001"


def test_concurrent_creators_get_distinct_numbers(tmp_path):
    file_engine = build_engine(f"sqlite:///{tmp_path / 'numbers.db'}")
    Base.metadata.create_all(bind=file_engine)
    factory = sessionmaker(bind=file_engine, expire_on_commit=False)

    with factory() as session:
        user = User(email="race@example.com", hashed_password="x")
        session.add(user)
        session.flush()
        client = Client(user_id=user.id, type=ClientType.COMPANY, company_name="ACME", contact_name="Jo", email="jo@acme.de")
        session.add(client)
        session.commit()
        user_id, client_id = user.id, client.id

    workers = 4
    barrier = threading.Barrier(workers)
    numbers = []
    errors = []

    def create():
        session = factory()
        try:
            barrier.wait()
            invoice = create_invoice(
                session,
                user_id,
                {
                    "client_id": client_id,
                    "items": [{"description": "Beratung", "quantity": Decimal("1"), "unit_price": Decimal("100.00")}],
                },
            )
            session.commit()
            numbers.append(invoice.number)
        except Exception as exc:
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=create) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    file_engine.dispose()

    year = utc_now().year
    assert errors == []
    assert sorted(numbers) == [f"{year}-{seq:03d}" for seq in range(1, workers + 1)]
