"""Invoice lifecycle, manual creation and draft editing."""

import logging
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy.orm import Session

from freelance_crm.app.core.errors import ApiError, InvalidTransitionError
from freelance_crm.app.core.time import utc_now
from freelance_crm.app.db.scope import ALL_USERS, Scope, apply_scope, get_owned
from freelance_crm.app.models.client import Client
from freelance_crm.app.models.enums import InvoiceStatus, RemindableType
from freelance_crm.app.models.invoice import Invoice
from freelance_crm.app.models.invoice_item import InvoiceItem
from freelance_crm.app.models.project import Project
from freelance_crm.app.models.reminder import RemindableRef
from freelance_crm.app.services import notifications, settings_store
from freelance_crm.app.services.money import recalculate_invoice
from freelance_crm.app.services.numbering import generate_next_number
from freelance_crm.app.services.reminders import create_overdue_invoice_reminder, pending_reminders

logger = logging.getLogger(__name__)

HEADER_FIELDS = (
    "issued_at",
    "due_at",
    "vat_rate",
    "service_period_start",
    "service_period_end",
    "notes",
    "footer_text",
)
ITEM_FIELDS = ("description", "quantity", "unit", "unit_price", "vat_rate")


def _status(invoice: Invoice) -> InvoiceStatus:
    return InvoiceStatus(invoice.status)


def transition_to(invoice: Invoice, target: InvoiceStatus) -> None:
    current = _status(invoice)
    target = InvoiceStatus(target)
    if not current.can_transition_to(target):
        raise InvalidTransitionError(
            current.value, target.value, [s.value for s in current.allowed_transitions()]
        )
    invoice.status = target
    logger.info("Invoice %s: %s -> %s", invoice.number, current.value, target.value)


def mark_as_sent(invoice: Invoice) -> None:
    transition_to(invoice, InvoiceStatus.SENT)
    notifications.queue_email(notifications.INVOICE_EMAIL, invoice.id, invoice.user_id)


def mark_as_paid(invoice: Invoice, paid_at: date | None = None, payment_method: str | None = None) -> None:
    status = _status(invoice)
    if status == InvoiceStatus.PAID:
        raise ApiError("ALREADY_PAID", "Invoice is already marked as paid.")
    if status == InvoiceStatus.DRAFT:
        raise ApiError(
            "INVOICE_NOT_SENT",
            "Cannot mark draft invoice as paid.",
            suggestions=["Invoice must be sent before marking as paid."],
        )
    if status == InvoiceStatus.CANCELLED:
        raise ApiError("INVOICE_CANCELLED", "Cannot mark cancelled invoice as paid.")
    transition_to(invoice, InvoiceStatus.PAID)
    invoice.paid_at = paid_at or utc_now().date()
    invoice.payment_method = payment_method


def cancel_invoice(invoice: Invoice) -> None:
    transition_to(invoice, InvoiceStatus.CANCELLED)


def ensure_draft(invoice: Invoice, deleting: bool = False) -> None:
    if _status(invoice) == InvoiceStatus.DRAFT:
        return
    if deleting:
        raise ApiError(
            "CANNOT_DELETE_INVOICE",
            "Only draft invoices can be deleted.",
            suggestions=[
                f"Current status: {_status(invoice).value}",
                "Use POST /invoices/{id}/cancel to cancel sent invoices.",
            ],
        )
    raise ApiError(
        "INVOICE_NOT_DRAFT",
        "Only draft invoices can be updated.",
        suggestions=[
            f"Current status: {_status(invoice).value}",
            "Create a new invoice or cancel this one first.",
        ],
    )


def create_invoice(db: Session, user_id: int, data: dict) -> Invoice:
    """Create a draft invoice from explicit line items."""
    get_owned(db, Client, data.get("client_id"), user_id, label="Client")
    if data.get("project_id") is not None:
        get_owned(db, Project, data["project_id"], user_id, label="Project")

    default_vat = settings_store.default_vat_rate(db, user_id)
    today = utc_now().date()
    vat_rate = data.get("vat_rate")
    invoice = Invoice(
        user_id=user_id,
        client_id=int(data["client_id"]),
        project_id=data.get("project_id"),
        number=generate_next_number(db, today),
        status=InvoiceStatus.DRAFT,
        issued_at=data.get("issued_at") or today,
        due_at=data.get("due_at") or today + timedelta(days=settings_store.payment_terms_days(db, user_id)),
        vat_rate=default_vat if vat_rate is None else vat_rate,
        service_period_start=data.get("service_period_start"),
        service_period_end=data.get("service_period_end"),
        notes=data.get("notes"),
        footer_text=data.get("footer_text") or settings_store.get_setting(db, user_id, "invoice_footer"),
    )
    for index, item in enumerate(data.get("items") or []):
        invoice.items.append(
            InvoiceItem(
                description=item["description"],
                quantity=item["quantity"],
                unit=item.get("unit"),
                unit_price=item["unit_price"],
                vat_rate=default_vat if item.get("vat_rate") is None else item["vat_rate"],
                position=index + 1,
            )
        )
    recalculate_invoice(invoice)
    db.add(invoice)
    db.flush()
    logger.info("Created invoice %s for user %s", invoice.number, user_id)
    return invoice


def update_draft_invoice(db: Session, invoice: Invoice, data: dict) -> Invoice:
    ensure_draft(invoice)
    for field in HEADER_FIELDS:
        if field in data and data[field] is not None:
            setattr(invoice, field, data[field])

    if data.get("items") is not None:
        existing = {item.id: item for item in invoice.items}
        kept = []
        for index, item_data in enumerate(data["items"]):
            item = existing.get(item_data.get("id")) if item_data.get("id") is not None else None
            if item_data.get("id") is not None and item is None:
                # Ids from another invoice are ignored
                continue
            if item is None:
                item = InvoiceItem(vat_rate=invoice.vat_rate)
            for field in ITEM_FIELDS:
                if item_data.get(field) is not None:
                    setattr(item, field, item_data[field])
            item.position = index + 1
            kept.append(item)
        invoice.items = kept

    recalculate_invoice(invoice)
    db.flush()
    return invoice


def delete_invoice(db: Session, invoice: Invoice) -> None:
    ensure_draft(invoice, deleting=True)
    invoice.deleted_at = utc_now()
    db.flush()


@dataclass
class OverdueSweepResult:
    marked: int
    reminders_created: int


def mark_overdue_invoices(db: Session, today: date | None = None, scope: Scope = ALL_USERS) -> OverdueSweepResult:
    """Move sent invoices whose due date has passed to Overdue."""
    today = today or utc_now().date()
    invoices = (
        apply_scope(db.query(Invoice), Invoice, scope)
        .filter(Invoice.status == InvoiceStatus.SENT, Invoice.due_at < today)
        .all()
    )
    created = 0
    for invoice in invoices:
        transition_to(invoice, InvoiceStatus.OVERDUE)
        ref = RemindableRef(RemindableType.INVOICE, invoice.id)
        if pending_reminders(db, ref, system_type="overdue_invoice").first() is None:
            created += 1
        create_overdue_invoice_reminder(db, invoice)
    db.flush()
    logger.info("Overdue sweep: %s invoice(s) marked, %s reminder(s) created", len(invoices), created)
    return OverdueSweepResult(marked=len(invoices), reminders_created=created)
