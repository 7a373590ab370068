"""Scheduler entry point, run from cron.

    python -m freelance_crm.app.cli process-recurring
    python -m freelance_crm.app.cli upcoming-reminders
    python -m freelance_crm.app.cli check-overdue
    python -m freelance_crm.app.cli daily
"""

import argparse
import logging
import sys

from freelance_crm.app.core.logging_config import configure_logging
from freelance_crm.app.core.time import utc_now
from freelance_crm.app.db.base import Base
from freelance_crm.app.db.scope import ALL_USERS
from freelance_crm.app.db.session import SessionLocal, engine
from freelance_crm.app.services.invoices import mark_overdue_invoices
from freelance_crm.app.services.recurring_tasks import create_upcoming_reminders, process_due_tasks

logger = logging.getLogger(__name__)


def run_process_recurring(db, now=None) -> dict:
    return {"processed": process_due_tasks(db, scope=ALL_USERS, now=now)}


def run_upcoming_reminders(db, now=None) -> dict:
    return {"upcoming_reminders": create_upcoming_reminders(db, scope=ALL_USERS, now=now)}


def run_check_overdue(db, now=None) -> dict:
    today = (now or utc_now()).date()
    result = mark_overdue_invoices(db, today=today, scope=ALL_USERS)
    return {"marked_overdue": result.marked, "reminders_created": result.reminders_created}


def run_daily(db, now=None) -> dict:
    counts = {}
    counts.update(run_check_overdue(db, now))
    counts.update(run_process_recurring(db, now))
    counts.update(run_upcoming_reminders(db, now))
    return counts


COMMANDS = {
    "process-recurring": run_process_recurring,
    "upcoming-reminders": run_upcoming_reminders,
    "check-overdue": run_check_overdue,
    "daily": run_daily,
}


def run_command(name: str, session_factory=SessionLocal, now=None) -> dict:
    db = session_factory()
    try:
        counts = COMMANDS[name](db, now)
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
    logger.info("%s finished: %s", name, counts)
    return counts


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="freelance-crm", description="Freelance CRM scheduler tasks")
    parser.add_argument("command", choices=sorted(COMMANDS))
    parser.add_argument("--log-level", default=None)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    Base.metadata.create_all(bind=engine)
    counts = run_command(args.command)
    for key, value in counts.items():
        print(f"{key}: {value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
