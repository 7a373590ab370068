from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest

from freelance_crm.app import cli
from freelance_crm.app.db.base import Base
from freelance_crm.app.db.session import SessionLocal, engine
from freelance_crm.app.models.client import Client
from freelance_crm.app.models.enums import ClientType, InvoiceStatus, RemindableType, ReminderPriority, TaskFrequency
from freelance_crm.app.models.invoice import Invoice
from freelance_crm.app.models.recurring_task import RecurringTask
from freelance_crm.app.models.reminder import Reminder
from freelance_crm.app.models.user import User

NOW = datetime(2026, 4, 1, 6, 0, tzinfo=UTC)


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
    user = User(email="cron@example.com", hashed_password="x")
    db.add(user)
    db.flush()
    client = Client(user_id=user.id, type=ClientType.COMPANY, company_name="ACME", contact_name="Jo", email="jo@acme.de")
    db.add(client)
    db.commit()
    return client


def add_invoice(db, client, number, status, due_at):
    invoice = Invoice(
        user_id=client.user_id,
        client_id=client.id,
        number=number,
        status=status,
        issued_at=due_at - timedelta(days=14),
        due_at=due_at,
        subtotal=Decimal("100.00"),
        vat_rate=Decimal("19.00"),
        vat_amount=Decimal("19.00"),
        total=Decimal("119.00"),
    )
    db.add(invoice)
    db.commit()
    return invoice


def test_check_overdue_marks_sent_invoices_and_creates_one_reminder(db, client_row):
    overdue = add_invoice(db, client_row, "2026-001", InvoiceStatus.SENT, date(2026, 3, 20))
    due_today = add_invoice(db, client_row, "2026-002", InvoiceStatus.SENT, date(2026, 4, 1))
    draft = add_invoice(db, client_row, "2026-003", InvoiceStatus.DRAFT, date(2026, 3, 1))

    counts = cli.run_command("check-overdue", now=NOW)
    assert counts == {"marked_overdue": 1, "reminders_created": 1}
    assert cli.run_command("check-overdue", now=NOW) == {"marked_overdue": 0, "reminders_created": 0}

    db.expire_all()
    assert db.get(Invoice, overdue.id).status == InvoiceStatus.OVERDUE
    assert db.get(Invoice, due_today.id).status == InvoiceStatus.SENT
    assert db.get(Invoice, draft.id).status == InvoiceStatus.DRAFT
    reminder = db.query(Reminder).one()
    assert reminder.remindable_type == RemindableType.INVOICE
    assert reminder.remindable_id == overdue.id
    assert reminder.priority == ReminderPriority.HIGH
    assert reminder.title == "Überfällige Rechnung: 2026-001"
    assert "119,00 €" in reminder.description


def test_invoice_due_today_stays_sent_until_the_day_is_over(db, client_row):
    invoice = add_invoice(db, client_row, "2026-001", InvoiceStatus.SENT, date(2026, 4, 1))

    late_evening = datetime(2026, 4, 1, 23, 59, tzinfo=UTC)
    assert cli.run_command("check-overdue", now=late_evening) == {"marked_overdue": 0, "reminders_created": 0}

    next_morning = datetime(2026, 4, 2, 0, 1, tzinfo=UTC)
    assert cli.run_command("check-overdue", now=next_morning) == {"marked_overdue": 1, "reminders_created": 1}
    db.expire_all()
    assert db.get(Invoice, invoice.id).status == InvoiceStatus.OVERDUE


def test_daily_runs_every_pass(db, client_row):
    add_invoice(db, client_row, "2026-001", InvoiceStatus.SENT, date(2026, 3, 20))
    db.add_all(
        [
            RecurringTask(
                user_id=client_row.user_id,
                title="Backup prüfen",
                frequency=TaskFrequency.WEEKLY,
                next_due_at=date(2026, 4, 1),
                active=True,
            ),
            RecurringTask(
                user_id=client_row.user_id,
                client_id=client_row.id,
                title="Hosting verlängern",
                frequency=TaskFrequency.MONTHLY,
                next_due_at=date(2026, 4, 6),
                active=True,
            ),
        ]
    )
    db.commit()

    counts = cli.run_command("daily", now=NOW)
    assert counts == {"marked_overdue": 1, "reminders_created": 1, "processed": 1, "upcoming_reminders": 1}
    assert db.query(Reminder).count() == 3


def test_main_prints_counts(capsys):
    assert cli.main(["process-recurring"]) == 0
    assert capsys.readouterr().out.strip() == "processed: 0"


def test_unknown_command_exits():
    with pytest.raises(SystemExit):
        cli.main(["reticulate-splines"])
