"""Materialise a draft invoice from a project.

Everything happens inside one SAVEPOINT: if copying an item or attributing a
time entry fails, neither the invoice nor any ``invoice_id`` stamp survives.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.orm import Session

from freelance_crm.app.core.errors import ApiError
from freelance_crm.app.core.time import ensure_aware, utc_now
from freelance_crm.app.models.enums import InvoiceStatus, ProjectStatus, ProjectType
from freelance_crm.app.models.invoice import Invoice
from freelance_crm.app.models.invoice_item import InvoiceItem
from freelance_crm.app.models.project import Project
from freelance_crm.app.models.time_entry import TimeEntry
from freelance_crm.app.services import settings_store
from freelance_crm.app.services.money import recalculate_invoice
from freelance_crm.app.services.numbering import generate_next_number
from freelance_crm.app.services.projects import can_be_invoiced

logger = logging.getLogger(__name__)

TIME_UNIT = "Stunden"


def unbilled_time_entries(db: Session, project: Project) -> list[TimeEntry]:
    return (
        db.query(TimeEntry)
        .filter(
            TimeEntry.project_id == project.id,
            TimeEntry.billable.is_(True),
            TimeEntry.invoice_id.is_(None),
        )
        .order_by(TimeEntry.started_at, TimeEntry.id)
        .all()
    )


def time_line_description(entries: list[TimeEntry]) -> str:
    first = ensure_aware(min(e.started_at for e in entries)).date()
    last = ensure_aware(max(e.started_at for e in entries)).date()
    period = first.strftime("%d.%m.%Y")
    if first != last:
        period += " - " + last.strftime("%d.%m.%Y")
    return f"Arbeitszeit ({period})"


def _add_time_line(db: Session, invoice: Invoice, project: Project, vat_rate: Decimal, position: int) -> None:
    if project.hourly_rate is None:
        return
    entries = unbilled_time_entries(db, project)
    if not entries:
        return

    minutes = sum(e.duration_minutes or 0 for e in entries)
    hours = (Decimal(minutes) / Decimal(60)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    invoice.items.append(
        InvoiceItem(
            description=time_line_description(entries),
            quantity=hours,
            unit=TIME_UNIT,
            unit_price=project.hourly_rate,
            vat_rate=vat_rate,
            position=position,
        )
    )
    db.flush()
    for entry in entries:
        entry.invoice_id = invoice.id
    logger.info("Attributed %s time entr(ies) to invoice %s", len(entries), invoice.number)


def create_from_project(db: Session, project: Project, now: datetime | None = None) -> Invoice:
    if not can_be_invoiced(project):
        status = ProjectStatus(project.status)
        raise ApiError(
            "PROJECT_CANNOT_BE_INVOICED",
            f"Project in status '{status.label}' cannot be invoiced.",
            suggestions=[
                "Project must be accepted, in progress, or completed.",
                f"Current status: {status.value}",
            ],
        )

    now = now or utc_now()
    today = now.date()
    with db.begin_nested():
        terms = settings_store.payment_terms_days(db, project.user_id)
        vat_rate = settings_store.default_vat_rate(db, project.user_id)

        invoice = Invoice(
            user_id=project.user_id,
            client_id=project.client_id,
            project_id=project.id,
            number=generate_next_number(db, today),
            status=InvoiceStatus.DRAFT,
            issued_at=today,
            due_at=today + timedelta(days=terms),
            vat_rate=vat_rate,
            service_period_start=project.start_date,
            service_period_end=project.end_date or today,
            footer_text=settings_store.get_setting(db, project.user_id, "invoice_footer"),
        )
        db.add(invoice)

        position = 1
        for item in project.items:
            invoice.items.append(
                InvoiceItem(
                    description=item.description,
                    quantity=item.quantity,
                    unit=item.unit,
                    unit_price=item.unit_price,
                    vat_rate=vat_rate,
                    position=position,
                )
            )
            position += 1
        db.flush()

        if project.type == ProjectType.HOURLY:
            _add_time_line(db, invoice, project, vat_rate, position)

        recalculate_invoice(invoice)
        db.flush()

    logger.info("Created invoice %s from project %s", invoice.number, project.id)
    return invoice
