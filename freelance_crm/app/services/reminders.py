"""Reminder lifecycle and system reminder factories."""

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from freelance_crm.app.core.errors import ApiError
from freelance_crm.app.core.settings import get_settings
from freelance_crm.app.core.time import ensure_aware, utc_now
from freelance_crm.app.db.scope import ALL_USERS, Scope, UserScope, apply_scope
from freelance_crm.app.models.client import Client
from freelance_crm.app.models.enums import RemindableType, ReminderPriority, ReminderRecurrence
from freelance_crm.app.models.invoice import Invoice
from freelance_crm.app.models.project import Project
from freelance_crm.app.models.recurring_task import RecurringTask
from freelance_crm.app.models.reminder import RemindableRef, Reminder
from freelance_crm.app.services.money import format_eur

logger = logging.getLogger(__name__)

MIN_SNOOZE_HOURS = 1
MAX_SNOOZE_HOURS = 720

REMINDABLE_MODELS = {
    RemindableType.CLIENT: Client,
    RemindableType.PROJECT: Project,
    RemindableType.INVOICE: Invoice,
    RemindableType.RECURRING_TASK: RecurringTask,
}

EDITABLE_FIELDS = ("title", "description", "due_at", "recurrence", "priority")


def resolve_remindable(db: Session, remindable_type, remindable_id, user_id: int) -> RemindableRef | None:
    """Turn an untrusted type/id pair into a reference to a record the user owns."""
    if remindable_type is None and remindable_id is None:
        return None
    try:
        kind = RemindableType(str(remindable_type).lower())
        model = REMINDABLE_MODELS[kind]
        obj_id = int(remindable_id)
    except (TypeError, ValueError, KeyError):
        raise ApiError("REMINDABLE_NOT_FOUND", "The referenced entity was not found.", status_code=404)
    query = apply_scope(db.query(model), model, UserScope(user_id)).filter(model.id == obj_id)
    if query.first() is None:
        raise ApiError("REMINDABLE_NOT_FOUND", "The referenced entity was not found.", status_code=404)
    return RemindableRef(kind, obj_id)


def pending_reminders(db: Session, ref: RemindableRef, scope: Scope = ALL_USERS, system_type: str | None = None):
    query = apply_scope(db.query(Reminder), Reminder, scope).filter(
        Reminder.remindable_type == ref.type,
        Reminder.remindable_id == ref.id,
        Reminder.completed_at.is_(None),
    )
    if system_type is not None:
        query = query.filter(Reminder.system_type == system_type)
    return query


def create_reminder(db: Session, user_id: int, data: dict) -> Reminder:
    ref = resolve_remindable(db, data.get("remindable_type"), data.get("remindable_id"), user_id)
    reminder = Reminder(
        user_id=user_id,
        title=data["title"],
        description=data.get("description"),
        due_at=data["due_at"],
        recurrence=data.get("recurrence"),
        priority=data.get("priority") or ReminderPriority.NORMAL,
        is_system=False,
    )
    reminder.remindable = ref
    db.add(reminder)
    db.flush()
    return reminder


def update_reminder(db: Session, reminder: Reminder, data: dict) -> Reminder:
    if reminder.is_system:
        raise ApiError(
            "SYSTEM_REMINDER",
            "System reminders cannot be edited.",
            suggestions=["Complete or snooze the reminder instead."],
        )
    for field in EDITABLE_FIELDS:
        if field in data and (data[field] is not None or field in ("description", "recurrence")):
            setattr(reminder, field, data[field])
    db.flush()
    return reminder


def delete_reminder(db: Session, reminder: Reminder) -> None:
    db.delete(reminder)
    db.flush()


def _ensure_pending(reminder: Reminder) -> None:
    if reminder.is_completed:
        raise ApiError("ALREADY_COMPLETED", "Reminder is already completed.")


def complete_reminder(db: Session, reminder: Reminder, now: datetime | None = None) -> Reminder | None:
    """Mark ``reminder`` done; returns the next occurrence for recurring reminders."""
    _ensure_pending(reminder)
    reminder.completed_at = now or utc_now()
    if reminder.recurrence is None:
        db.flush()
        return None

    recurrence = ReminderRecurrence(reminder.recurrence)
    successor = Reminder(
        user_id=reminder.user_id,
        remindable_type=reminder.remindable_type,
        remindable_id=reminder.remindable_id,
        title=reminder.title,
        description=reminder.description,
        due_at=recurrence.next_due_date(ensure_aware(reminder.due_at)),
        recurrence=reminder.recurrence,
        priority=reminder.priority,
        is_system=reminder.is_system,
        system_type=reminder.system_type,
    )
    db.add(successor)
    db.flush()
    return successor


def snooze_reminder(reminder: Reminder, hours: int = 24, now: datetime | None = None) -> Reminder:
    _ensure_pending(reminder)
    if not MIN_SNOOZE_HOURS <= hours <= MAX_SNOOZE_HOURS:
        raise ApiError(
            "VALIDATION_ERROR",
            f"Snooze duration must be between {MIN_SNOOZE_HOURS} and {MAX_SNOOZE_HOURS} hours.",
        )
    reminder.snoozed_until = (now or utc_now()) + timedelta(hours=hours)
    return reminder


def reopen_reminder(reminder: Reminder) -> Reminder:
    reminder.completed_at = None
    reminder.snoozed_until = None
    return reminder


def create_overdue_invoice_reminder(db: Session, invoice: Invoice, now: datetime | None = None) -> Reminder:
    ref = RemindableRef(RemindableType.INVOICE, invoice.id)
    existing = pending_reminders(db, ref, system_type="overdue_invoice").filter(
        Reminder.user_id == invoice.user_id
    ).first()
    if existing is not None:
        return existing

    due_text = invoice.due_at.strftime("%d.%m.%Y") if invoice.due_at else "-"
    reminder = Reminder(
        user_id=invoice.user_id,
        title=f"Überfällige Rechnung: {invoice.number}",
        description=f"Rechnung {invoice.number} ist seit dem {due_text} überfällig. Betrag: {format_eur(invoice.total)}",
        due_at=now or utc_now(),
        priority=ReminderPriority.HIGH,
        is_system=True,
        system_type="overdue_invoice",
    )
    reminder.remindable = ref
    db.add(reminder)
    db.flush()
    return reminder


def create_offer_followup_reminder(db: Session, project: Project, days_after_send: int | None = None) -> Reminder:
    ref = RemindableRef(RemindableType.PROJECT, project.id)
    existing = pending_reminders(db, ref, system_type="offer_followup").filter(
        Reminder.user_id == project.user_id
    ).first()
    if existing is not None:
        return existing

    if days_after_send is None:
        days_after_send = get_settings().offer_followup_days
    sent_at = ensure_aware(project.offer_sent_at) or utc_now()
    client_name = project.client.display_name if project.client else "-"
    reminder = Reminder(
        user_id=project.user_id,
        title=f"Angebot nachfassen: {project.title}",
        description=(
            f"Das Angebot für {client_name} wurde am {sent_at.strftime('%d.%m.%Y')} versendet. "
            "Zeit für ein Follow-up."
        ),
        due_at=sent_at + timedelta(days=days_after_send),
        priority=ReminderPriority.NORMAL,
        is_system=True,
        system_type="offer_followup",
    )
    reminder.remindable = ref
    db.add(reminder)
    db.flush()
    logger.info("Created offer follow-up reminder for project %s", project.id)
    return reminder
