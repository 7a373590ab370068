"""Recurring task scheduling.

Due dates are anchored to the task's own ``next_due_at`` so late processing
does not shift the schedule. The scheduler entry points take an explicit scope
and default to ``ALL_USERS`` since they run outside any request.
"""

import logging
from datetime import date, datetime, timedelta

from sqlalchemy import and_, exists, or_
from sqlalchemy.orm import Session

from freelance_crm.app.core.errors import ApiError
from freelance_crm.app.core.settings import get_settings
from freelance_crm.app.core.time import at_hour, start_of_day, utc_now
from freelance_crm.app.db.scope import ALL_USERS, Scope, apply_scope, get_owned
from freelance_crm.app.models.client import Client
from freelance_crm.app.models.enums import RemindableType, ReminderPriority, TaskFrequency
from freelance_crm.app.models.recurring_task import RecurringTask, RecurringTaskLog
from freelance_crm.app.models.reminder import RemindableRef, Reminder
from freelance_crm.app.services.money import format_eur

logger = logging.getLogger(__name__)

ACTION_REMINDER_CREATED = "reminder_created"
ACTION_SKIPPED = "skipped"
ACTION_MANUALLY_COMPLETED = "manually_completed"

TASK_FIELDS = (
    "client_id",
    "title",
    "description",
    "frequency",
    "next_due_at",
    "started_at",
    "ends_at",
    "amount",
    "billing_notes",
    "active",
)


def next_due_date(frequency, from_date: date) -> date:
    return TaskFrequency(frequency).next_due_date(from_date)


def days_before(frequency) -> int:
    return TaskFrequency(frequency).days_before()


def is_overdue(task: RecurringTask, today: date | None = None) -> bool:
    today = today or utc_now().date()
    return bool(task.active) and task.next_due_at < today


def is_due_soon(task: RecurringTask, today: date | None = None) -> bool:
    today = today or utc_now().date()
    threshold = today + timedelta(days=days_before(task.frequency))
    return bool(task.active) and task.next_due_at <= threshold


def has_ended(task: RecurringTask, now: datetime | None = None) -> bool:
    if task.ends_at is None:
        return False
    return start_of_day(task.ends_at) < (now or utc_now())


def advance(task: RecurringTask, now: datetime | None = None) -> None:
    previous = task.next_due_at
    task.last_run_at = previous
    task.next_due_at = next_due_date(task.frequency, previous)
    if has_ended(task, now) or (task.ends_at is not None and task.next_due_at > task.ends_at):
        task.active = False
        logger.info("Recurring task %s reached its end date and was deactivated", task.id)


def pause(task: RecurringTask) -> None:
    if not task.active:
        raise ApiError("TASK_ALREADY_PAUSED", "Task is already paused.")
    task.active = False


def resume(task: RecurringTask, now: datetime | None = None) -> None:
    if task.active:
        raise ApiError("TASK_ALREADY_ACTIVE", "Task is already active.")
    now = now or utc_now()
    next_due = task.next_due_at
    while start_of_day(next_due) < now:
        next_due = next_due_date(task.frequency, next_due)
    task.next_due_at = next_due
    task.active = True


def _ensure_active(task: RecurringTask, verb: str) -> None:
    if not task.active:
        raise ApiError(
            "TASK_NOT_ACTIVE",
            f"Cannot {verb} an inactive task.",
            suggestions=[f"Resume the task first, then {verb} it."],
        )


def _log(db: Session, task: RecurringTask, action: str, reminder_id: int | None = None,
         notes: str | None = None) -> RecurringTaskLog:
    entry = RecurringTaskLog(
        recurring_task=task,
        due_date=task.next_due_at,
        action=action,
        reminder_id=reminder_id,
        notes=notes,
    )
    db.add(entry)
    return entry


def build_reminder_description(task: RecurringTask) -> str:
    parts = []
    if task.client is not None:
        parts.append(f"Kunde: {task.client.display_name}")
    parts.append(f"Frequenz: {TaskFrequency(task.frequency).label}")
    parts.append(f"Fällig: {task.next_due_at.strftime('%d.%m.%Y')}")
    if task.amount:
        parts.append(f"Betrag: {format_eur(task.amount)}")
    if task.description:
        parts.append("")
        parts.append(task.description)
    return "\n".join(parts)


def _system_reminder(task: RecurringTask, title: str, due_day: date, system_type: str) -> Reminder:
    reminder = Reminder(
        user_id=task.user_id,
        title=title,
        description=build_reminder_description(task),
        due_at=at_hour(due_day, get_settings().recurring_reminder_hour),
        priority=ReminderPriority.NORMAL,
        is_system=True,
        system_type=system_type,
    )
    reminder.remindable = RemindableRef(RemindableType.RECURRING_TASK, task.id)
    return reminder


def process_task(db: Session, task: RecurringTask, now: datetime | None = None) -> Reminder:
    reminder = _system_reminder(task, task.title, task.next_due_at, "recurring_task")
    db.add(reminder)
    db.flush()
    _log(db, task, ACTION_REMINDER_CREATED, reminder_id=reminder.id)
    advance(task, now)
    db.flush()
    logger.info("Processed recurring task %s: %s", task.id, task.title)
    return reminder


def earliest_open_end(now: datetime) -> date:
    """Smallest ``ends_at`` for which ``has_ended(task, now)`` is still False."""
    today = now.date()
    return today if start_of_day(today) >= now else today + timedelta(days=1)


def due_tasks_query(db: Session, now: datetime, scope: Scope = ALL_USERS):
    return (
        apply_scope(db.query(RecurringTask), RecurringTask, scope)
        .filter(
            RecurringTask.active.is_(True),
            RecurringTask.next_due_at <= now.date(),
            or_(RecurringTask.ends_at.is_(None), RecurringTask.ends_at >= earliest_open_end(now)),
        )
        .order_by(RecurringTask.next_due_at, RecurringTask.id)
    )


def process_due_tasks(db: Session, scope: Scope = ALL_USERS, now: datetime | None = None) -> int:
    """Create reminders for every due task; one failing task does not stop the run."""
    now = now or utc_now()
    processed = 0
    for task in due_tasks_query(db, now, scope).all():
        try:
            with db.begin_nested():
                process_task(db, task, now)
        except Exception:
            logger.exception("Failed to process recurring task %s", task.id)
            continue
        processed += 1
    logger.info("Processed %s due recurring task(s)", processed)
    return processed


def create_upcoming_reminders(db: Session, scope: Scope = ALL_USERS, now: datetime | None = None) -> int:
    """Create advance notices for tasks coming due soon that have no open reminder."""
    today = (now or utc_now()).date()
    has_pending = exists().where(
        and_(
            Reminder.remindable_type == RemindableType.RECURRING_TASK,
            Reminder.remindable_id == RecurringTask.id,
            Reminder.completed_at.is_(None),
        )
    )
    tasks = (
        apply_scope(db.query(RecurringTask), RecurringTask, scope)
        .filter(RecurringTask.active.is_(True), ~has_pending)
        .all()
    )
    created = 0
    for task in tasks:
        if not is_due_soon(task, today):
            continue
        due_day = task.next_due_at - timedelta(days=days_before(task.frequency))
        db.add(_system_reminder(task, f"Anstehend: {task.title}", due_day, "recurring_task_upcoming"))
        created += 1
    db.flush()
    logger.info("Created %s upcoming recurring task reminder(s)", created)
    return created


def skip_occurrence(db: Session, task: RecurringTask, reason: str | None = None,
                    now: datetime | None = None) -> None:
    _ensure_active(task, "skip")
    _log(db, task, ACTION_SKIPPED, notes=reason)
    advance(task, now)
    db.flush()
    logger.info("Skipped recurring task %s: %s", task.id, task.title)


def advance_task(db: Session, task: RecurringTask, now: datetime | None = None) -> None:
    _ensure_active(task, "advance")
    advance(task, now)
    db.flush()


def complete_manually(db: Session, task: RecurringTask, notes: str | None = None,
                      now: datetime | None = None) -> None:
    _ensure_active(task, "complete")
    _log(db, task, ACTION_MANUALLY_COMPLETED, notes=notes)
    advance(task, now)
    db.flush()


def create_task(db: Session, user_id: int, data: dict) -> RecurringTask:
    if data.get("client_id") is not None:
        get_owned(db, Client, data["client_id"], user_id, label="Client")
    task = RecurringTask(user_id=user_id, **{f: data[f] for f in TASK_FIELDS if data.get(f) is not None})
    if task.active is None:
        task.active = True
    db.add(task)
    db.flush()
    return task


def update_task(db: Session, task: RecurringTask, data: dict) -> RecurringTask:
    if data.get("client_id") is not None:
        get_owned(db, Client, data["client_id"], task.user_id, label="Client")
    for field in TASK_FIELDS:
        if field in data and data[field] is not None:
            setattr(task, field, data[field])
    db.flush()
    return task


def delete_task(db: Session, task: RecurringTask) -> None:
    db.delete(task)
    db.flush()
