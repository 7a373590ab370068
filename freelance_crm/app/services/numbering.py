"""Year-scoped invoice numbers (``2026-001``, ``2026-002``, ...).

Allocation locks the year's ``invoice_sequences`` row first, so concurrent
creators queue behind each other instead of reading the same maximum. The lock
is held until the surrounding transaction commits or rolls back; a rollback
returns the number.
"""

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from freelance_crm.app.core.time import utc_now
from freelance_crm.app.models.invoice import Invoice
from freelance_crm.app.models.invoice_sequence import InvoiceSequence

logger = logging.getLogger(__name__)


def number_prefix(year: int) -> str:
    return f"{year}-"


def counter_statement(year: int):
    return select(InvoiceSequence).where(InvoiceSequence.year == year).with_for_update()


def numbers_statement(prefix: str):
    # Soft-deleted invoices are included so their numbers are never reused
    return select(Invoice.number).where(Invoice.number.like(f"{prefix}%"))


def parse_sequence(number: str, prefix: str) -> int | None:
    suffix = number[len(prefix):]
    if not suffix.isdigit():
        return None
    return int(suffix)


def lock_counter(db: Session, year: int) -> InvoiceSequence:
    counter = db.execute(counter_statement(year)).scalar_one_or_none()
    if counter is not None:
        return counter
    try:
        with db.begin_nested():
            counter = InvoiceSequence(year=year, last_value=0)
            db.add(counter)
    except IntegrityError:
        # Another transaction opened the year first; wait for its row
        counter = db.execute(counter_statement(year)).scalar_one()
    return counter


def generate_next_number(db: Session, today: date | None = None) -> str:
    """Reserve the next number of ``today``'s year for the current transaction."""
    year = (today or utc_now().date()).year
    prefix = number_prefix(year)
    counter = lock_counter(db, year)
    numbers = db.execute(numbers_statement(prefix)).scalars().all()
    sequences = [seq for seq in (parse_sequence(n, prefix) for n in numbers) if seq is not None]
    next_seq = max([counter.last_value, *sequences]) + 1
    counter.last_value = next_seq
    db.flush()
    number = f"{prefix}{next_seq:03d}"
    logger.debug("Allocated invoice number %s", number)
    return number
