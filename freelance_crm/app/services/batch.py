"""All-or-nothing batch execution with ``$ref`` placeholders.

An operation whose ``data`` carries ``"$ref": "name"`` publishes the id of the
record it creates; later operations may use ``"$ref:name"`` anywhere in their
``data`` (nested lists and dicts included) or as their ``id``. The whole list
runs in one transaction and any failure rolls every operation back.
"""

import logging
import uuid
from typing import Any, Callable, Dict, List

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from freelance_crm.app.core.errors import ApiError, BatchReferenceError
from freelance_crm.app.core.settings import get_settings
from freelance_crm.app.db.scope import get_owned
from freelance_crm.app.models.client import Client
from freelance_crm.app.models.enums import ClientType, ProjectType, TaskFrequency
from freelance_crm.app.models.invoice import Invoice
from freelance_crm.app.models.project import Project
from freelance_crm.app.models.recurring_task import RecurringTask
from freelance_crm.app.models.reminder import Reminder
from freelance_crm.app.models.time_entry import TimeEntry
from freelance_crm.app.models.user import User
from freelance_crm.app.schemas.batch import BatchOperation
from freelance_crm.app.schemas.client import ClientCreate, ClientUpdate
from freelance_crm.app.schemas.invoice import InvoiceCreate, InvoiceFromProject, InvoiceMarkPaid
from freelance_crm.app.schemas.project import ProjectCreate, ProjectTransition, ProjectUpdate
from freelance_crm.app.schemas.recurring_task import (
    RecurringTaskCreate,
    RecurringTaskSkip,
    RecurringTaskUpdate,
)
from freelance_crm.app.schemas.reminder import ReminderCreate, ReminderSnooze, ReminderUpdate
from freelance_crm.app.schemas.time_entry import TimeEntryCreate, TimeEntryUpdate, TimerStart
from freelance_crm.app.services import (
    clients,
    invoice_creation,
    invoices,
    projects,
    recurring_tasks,
    reminders,
    time_entries,
)

logger = logging.getLogger(__name__)

REF_KEY = "$ref"
REF_PREFIX = "$ref:"

RESOURCE_ALIASES = {
    "client": "client",
    "clients": "client",
    "project": "project",
    "projects": "project",
    "invoice": "invoice",
    "invoices": "invoice",
    "reminder": "reminder",
    "reminders": "reminder",
    "time_entry": "time_entry",
    "time_entries": "time_entry",
    "recurring_task": "recurring_task",
    "recurring_tasks": "recurring_task",
}

RESOURCE_ACTIONS = {
    "client": ("create", "update", "delete"),
    "project": ("create", "update", "delete", "transition"),
    "invoice": ("create", "from_project", "delete", "mark_paid"),
    "reminder": ("create", "update", "delete", "complete", "snooze"),
    "time_entry": ("create", "update", "delete", "start", "stop"),
    "recurring_task": ("create", "update", "delete", "pause", "resume", "skip", "advance"),
}

VALID_ACTIONS = (
    "create",
    "update",
    "delete",
    "transition",
    "from_project",
    "mark_paid",
    "complete",
    "snooze",
    "start",
    "stop",
    "pause",
    "resume",
    "skip",
    "advance",
)

ID_REQUIRED_ACTIONS = frozenset(
    {"update", "delete", "transition", "mark_paid", "complete", "snooze", "stop", "pause", "resume", "skip", "advance"}
)

# Reference resolution


def _lookup(value: str, references: Dict[str, int]) -> int:
    name = value[len(REF_PREFIX):]
    if name not in references:
        raise BatchReferenceError(value)
    return references[name]


def resolve_reference(value, references: Dict[str, int]):
    if isinstance(value, str) and value.startswith(REF_PREFIX):
        return _lookup(value, references)
    return value


def resolve_references(data, references: Dict[str, int]):
    """Replace every ``$ref:name`` string, depth first, with the produced id."""
    if isinstance(data, dict):
        return {key: resolve_references(value, references) for key, value in data.items()}
    if isinstance(data, list):
        return [resolve_references(value, references) for value in data]
    return resolve_reference(data, references)


def _referenced_names(data) -> List[str]:
    if isinstance(data, dict):
        return [name for value in data.values() for name in _referenced_names(value)]
    if isinstance(data, list):
        return [name for value in data for name in _referenced_names(value)]
    if isinstance(data, str) and data.startswith(REF_PREFIX):
        return [data[len(REF_PREFIX):]]
    return []


# Execution


class _Context:
    def __init__(self, db: Session, user: User):
        self.db = db
        self.user = user

    def owned(self, model, obj_id, label: str):
        return get_owned(self.db, model, obj_id, self.user.id, label=label)


def _payload(schema: type[BaseModel], data: dict) -> dict:
    body = {key: value for key, value in data.items() if key != REF_KEY}
    return schema.model_validate(body).model_dump(exclude_unset=True)


def _created(obj, kind: str, **extra) -> dict:
    return {"id": obj.id, "type": kind, **extra}


def _client_create(ctx, data, obj_id):
    return _created(clients.create_client(ctx.db, ctx.user.id, _payload(ClientCreate, data)), "client")


def _client_update(ctx, data, obj_id):
    client = ctx.owned(Client, obj_id, "Client")
    clients.update_client(ctx.db, client, _payload(ClientUpdate, data))
    return {"id": client.id, "type": "client"}


def _client_delete(ctx, data, obj_id):
    client = ctx.owned(Client, obj_id, "Client")
    clients.delete_client(ctx.db, client)
    return {"id": client.id, "deleted": True}


def _project_create(ctx, data, obj_id):
    return _created(projects.create_project(ctx.db, ctx.user.id, _payload(ProjectCreate, data)), "project")


def _project_update(ctx, data, obj_id):
    project = ctx.owned(Project, obj_id, "Project")
    projects.update_project(ctx.db, project, _payload(ProjectUpdate, data))
    return {"id": project.id, "type": "project"}


def _project_delete(ctx, data, obj_id):
    project = ctx.owned(Project, obj_id, "Project")
    projects.delete_project(ctx.db, project)
    return {"id": project.id, "deleted": True}


def _project_transition(ctx, data, obj_id):
    project = ctx.owned(Project, obj_id, "Project")
    body = ProjectTransition.model_validate(data)
    projects.apply_transition(ctx.db, project, body.status, body.start_date, body.end_date)
    return {"id": project.id, "status": projects.parse_status(body.status).value}


def _invoice_create(ctx, data, obj_id):
    invoice = invoices.create_invoice(ctx.db, ctx.user.id, _payload(InvoiceCreate, data))
    return _created(invoice, "invoice", number=invoice.number)


def _invoice_from_project(ctx, data, obj_id):
    body = InvoiceFromProject.model_validate(data)
    project = ctx.owned(Project, body.project_id, "Project")
    invoice = invoice_creation.create_from_project(ctx.db, project)
    return _created(invoice, "invoice", number=invoice.number)


def _invoice_mark_paid(ctx, data, obj_id):
    invoice = ctx.owned(Invoice, obj_id, "Invoice")
    body = InvoiceMarkPaid.model_validate(data)
    invoices.mark_as_paid(invoice, body.paid_at, body.payment_method)
    ctx.db.flush()
    return {"id": invoice.id, "status": "paid"}


def _invoice_delete(ctx, data, obj_id):
    invoice = ctx.owned(Invoice, obj_id, "Invoice")
    invoices.delete_invoice(ctx.db, invoice)
    return {"id": invoice.id, "deleted": True}


def _reminder_create(ctx, data, obj_id):
    return _created(reminders.create_reminder(ctx.db, ctx.user.id, _payload(ReminderCreate, data)), "reminder")


def _reminder_update(ctx, data, obj_id):
    reminder = ctx.owned(Reminder, obj_id, "Reminder")
    reminders.update_reminder(ctx.db, reminder, _payload(ReminderUpdate, data))
    return {"id": reminder.id, "type": "reminder"}


def _reminder_delete(ctx, data, obj_id):
    reminder = ctx.owned(Reminder, obj_id, "Reminder")
    reminders.delete_reminder(ctx.db, reminder)
    return {"id": reminder.id, "deleted": True}


def _reminder_complete(ctx, data, obj_id):
    reminder = ctx.owned(Reminder, obj_id, "Reminder")
    reminders.complete_reminder(ctx.db, reminder)
    return {"id": reminder.id, "completed": True}


def _reminder_snooze(ctx, data, obj_id):
    reminder = ctx.owned(Reminder, obj_id, "Reminder")
    reminders.snooze_reminder(reminder, ReminderSnooze.model_validate(data).hours)
    ctx.db.flush()
    return {"id": reminder.id, "snoozed": True}


def _time_entry_create(ctx, data, obj_id):
    entry = time_entries.create_time_entry(ctx.db, ctx.user.id, _payload(TimeEntryCreate, data))
    return _created(entry, "time_entry")


def _time_entry_update(ctx, data, obj_id):
    entry = ctx.owned(TimeEntry, obj_id, "Time entry")
    time_entries.update_time_entry(ctx.db, entry, _payload(TimeEntryUpdate, data))
    return {"id": entry.id, "type": "time_entry"}


def _time_entry_delete(ctx, data, obj_id):
    entry = ctx.owned(TimeEntry, obj_id, "Time entry")
    time_entries.delete_time_entry(ctx.db, entry)
    return {"id": entry.id, "deleted": True}


def _time_entry_start(ctx, data, obj_id):
    body = TimerStart.model_validate(data)
    entry = time_entries.start_timer(ctx.db, ctx.user.id, body.project_id, body.description)
    return _created(entry, "time_entry")


def _time_entry_stop(ctx, data, obj_id):
    entry = ctx.owned(TimeEntry, obj_id, "Time entry")
    time_entries.stop_timer(ctx.db, entry)
    return {"id": entry.id, "type": "time_entry"}


def _task_create(ctx, data, obj_id):
    task = recurring_tasks.create_task(ctx.db, ctx.user.id, _payload(RecurringTaskCreate, data))
    return _created(task, "recurring_task")


def _task_update(ctx, data, obj_id):
    task = ctx.owned(RecurringTask, obj_id, "Recurring task")
    recurring_tasks.update_task(ctx.db, task, _payload(RecurringTaskUpdate, data))
    return {"id": task.id, "type": "recurring_task"}


def _task_delete(ctx, data, obj_id):
    task = ctx.owned(RecurringTask, obj_id, "Recurring task")
    recurring_tasks.delete_task(ctx.db, task)
    return {"id": task.id, "deleted": True}


def _task_pause(ctx, data, obj_id):
    task = ctx.owned(RecurringTask, obj_id, "Recurring task")
    recurring_tasks.pause(task)
    ctx.db.flush()
    return {"id": task.id, "paused": True}


def _task_resume(ctx, data, obj_id):
    task = ctx.owned(RecurringTask, obj_id, "Recurring task")
    recurring_tasks.resume(task)
    ctx.db.flush()
    return {"id": task.id, "resumed": True}


def _task_skip(ctx, data, obj_id):
    task = ctx.owned(RecurringTask, obj_id, "Recurring task")
    recurring_tasks.skip_occurrence(ctx.db, task, RecurringTaskSkip.model_validate(data).reason)
    return {"id": task.id, "skipped": True}


def _task_advance(ctx, data, obj_id):
    task = ctx.owned(RecurringTask, obj_id, "Recurring task")
    recurring_tasks.advance_task(ctx.db, task)
    return {"id": task.id, "advanced": True}


Handler = Callable[[_Context, dict, Any], dict]

HANDLERS: Dict[tuple, Handler] = {
    ("client", "create"): _client_create,
    ("client", "update"): _client_update,
    ("client", "delete"): _client_delete,
    ("project", "create"): _project_create,
    ("project", "update"): _project_update,
    ("project", "delete"): _project_delete,
    ("project", "transition"): _project_transition,
    ("invoice", "create"): _invoice_create,
    ("invoice", "from_project"): _invoice_from_project,
    ("invoice", "mark_paid"): _invoice_mark_paid,
    ("invoice", "delete"): _invoice_delete,
    ("reminder", "create"): _reminder_create,
    ("reminder", "update"): _reminder_update,
    ("reminder", "delete"): _reminder_delete,
    ("reminder", "complete"): _reminder_complete,
    ("reminder", "snooze"): _reminder_snooze,
    ("time_entry", "create"): _time_entry_create,
    ("time_entry", "update"): _time_entry_update,
    ("time_entry", "delete"): _time_entry_delete,
    ("time_entry", "start"): _time_entry_start,
    ("time_entry", "stop"): _time_entry_stop,
    ("recurring_task", "create"): _task_create,
    ("recurring_task", "update"): _task_update,
    ("recurring_task", "delete"): _task_delete,
    ("recurring_task", "pause"): _task_pause,
    ("recurring_task", "resume"): _task_resume,
    ("recurring_task", "skip"): _task_skip,
    ("recurring_task", "advance"): _task_advance,
}


def _as_operation(operation) -> BatchOperation:
    if isinstance(operation, BatchOperation):
        return operation
    return BatchOperation.model_validate(operation)


def _validation_message(exc: ValidationError) -> str:
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "data"
        details.append(f"{location}: {error['msg']}")
    return "Validation failed: " + "; ".join(details)


def execute_operation(ctx: _Context, operation: BatchOperation, references: Dict[str, int]) -> dict:
    resource = RESOURCE_ALIASES.get(operation.resource)
    if resource is None:
        raise ApiError("UNKNOWN_RESOURCE", f"Unknown resource: {operation.resource}")
    handler = HANDLERS.get((resource, operation.action))
    if handler is None:
        raise ApiError("INVALID_ACTION", f"Invalid action for {resource}: {operation.action}")

    data = resolve_references(operation.data or {}, references)
    obj_id = resolve_reference(operation.id, references)
    result = handler(ctx, data, obj_id)
    ref = (operation.data or {}).get(REF_KEY) if operation.action in ("create", "from_project", "start") else None
    return {"data": result, "ref": ref}


def _check_size(operations: list) -> None:
    limit = get_settings().batch_max_operations
    if not 1 <= len(operations) <= limit:
        raise ApiError("VALIDATION_ERROR", f"A batch must contain between 1 and {limit} operations.")


def execute_batch(db: Session, user: User, operations: list) -> dict:
    """Run ``operations`` in order inside one transaction and commit, or roll back all of them."""
    _check_size(operations)
    ctx = _Context(db, user)
    references: Dict[str, int] = {}
    results = []
    index = 0
    try:
        for index, raw in enumerate(operations):
            operation = _as_operation(raw)
            outcome = execute_operation(ctx, operation, references)
            results.append({"index": index, "success": True, "data": outcome["data"], "ref": outcome["ref"]})
            if outcome["ref"]:
                references[outcome["ref"]] = outcome["data"]["id"]
        db.commit()
    except (ApiError, ValidationError, SQLAlchemyError, ValueError, KeyError, TypeError) as exc:
        db.rollback()
        if isinstance(exc, ApiError):
            message = exc.message
        elif isinstance(exc, ValidationError):
            message = _validation_message(exc)
        else:
            message = str(exc) or exc.__class__.__name__
        logger.warning("Batch for user %s failed at operation %s: %s", user.id, index, message)
        raise ApiError(
            "BATCH_FAILED",
            message,
            suggestions=[
                f"Operation {index} failed.",
                "All operations have been rolled back.",
                "Fix the error and retry the entire batch.",
            ],
        ) from exc

    logger.info("Batch for user %s committed %s operation(s)", user.id, len(results))
    return {
        "batch_id": f"batch_{uuid.uuid4().hex[:13]}",
        "total": len(operations),
        "succeeded": len(results),
        "failed": 0,
        "results": results,
    }


# Dry-run validation


def _required(data: dict, key: str, message: str, errors: List[str]) -> None:
    if data.get(key) in (None, "", [], {}):
        errors.append(message)


def _check_client(action: str, data: dict, errors: List[str], warnings: List[str]) -> None:
    if action != "create":
        return
    if data.get("type") in (None, ""):
        errors.append("Client type is required.")
    elif data["type"] not in [t.value for t in ClientType]:
        errors.append('Invalid client type. Use "company" or "individual".')
    _required(data, "contact_name", "Contact name is required.", errors)
    _required(data, "email", "Email is required.", errors)


def _check_project(action: str, data: dict, errors: List[str], warnings: List[str]) -> None:
    if action == "create":
        _required(data, "client_id", "Client ID is required.", errors)
        _required(data, "title", "Project title is required.", errors)
        if data.get("type") in (None, ""):
            errors.append("Project type is required.")
        elif data["type"] not in [t.value for t in ProjectType]:
            errors.append('Invalid project type. Use "fixed" or "hourly".')
        if data.get("type") == ProjectType.HOURLY.value and data.get("hourly_rate") is None:
            warnings.append("Hourly project without hourly_rate cannot bill time entries.")
    if action == "transition":
        _required(data, "status", "Status is required for transition.", errors)


def _check_invoice(action: str, data: dict, errors: List[str], warnings: List[str]) -> None:
    if action == "create":
        _required(data, "client_id", "Client ID is required.", errors)
        if not isinstance(data.get("items"), list) or not data["items"]:
            errors.append("At least one item is required.")
    if action == "from_project":
        _required(data, "project_id", "Project ID is required.", errors)


def _check_reminder(action: str, data: dict, errors: List[str], warnings: List[str]) -> None:
    if action == "create":
        _required(data, "title", "Reminder title is required.", errors)
        _required(data, "due_at", "Due date is required.", errors)
    if action == "snooze" and data.get("hours") is not None:
        hours = data["hours"]
        if not isinstance(hours, int) or not 1 <= hours <= 720:
            errors.append("Snooze hours must be an integer between 1 and 720.")


def _check_time_entry(action: str, data: dict, errors: List[str], warnings: List[str]) -> None:
    if action in ("create", "start"):
        _required(data, "project_id", "Project ID is required.", errors)
    if action == "create":
        _required(data, "started_at", "Start time is required.", errors)


def _check_recurring_task(action: str, data: dict, errors: List[str], warnings: List[str]) -> None:
    if action != "create":
        return
    _required(data, "title", "Task title is required.", errors)
    if data.get("frequency") in (None, ""):
        errors.append("Frequency is required.")
    elif data["frequency"] not in [f.value for f in TaskFrequency]:
        errors.append('Invalid frequency. Use "weekly", "monthly", "quarterly", or "yearly".')
    _required(data, "next_due_at", "Next due date is required.", errors)


RESOURCE_CHECKS = {
    "client": _check_client,
    "project": _check_project,
    "invoice": _check_invoice,
    "reminder": _check_reminder,
    "time_entry": _check_time_entry,
    "recurring_task": _check_recurring_task,
}


def validate_operation(operation: BatchOperation, known_refs: set) -> dict:
    errors: List[str] = []
    warnings: List[str] = []
    resource = RESOURCE_ALIASES.get(operation.resource)
    if resource is None:
        return {"valid": False, "errors": [f"Unknown resource: {operation.resource}"], "warnings": None}
    if operation.action not in VALID_ACTIONS:
        message = f"Unknown action: {operation.action}. Valid actions: " + ", ".join(VALID_ACTIONS)
        return {"valid": False, "errors": [message], "warnings": None}
    if operation.action not in RESOURCE_ACTIONS[resource]:
        errors.append(
            f"Invalid action for {resource}: {operation.action}. "
            "Valid actions: " + ", ".join(RESOURCE_ACTIONS[resource])
        )

    if operation.action in ID_REQUIRED_ACTIONS and operation.id in (None, "", 0):
        errors.append(f"ID is required for {operation.action} action.")

    data = operation.data or {}
    RESOURCE_CHECKS[resource](operation.action, data, errors, warnings)

    for name in _referenced_names(data) + _referenced_names(operation.id):
        if name not in known_refs:
            warnings.append(f"Reference '{REF_PREFIX}{name}' is not defined by an earlier operation.")

    return {
        "valid": not errors,
        "errors": errors or None,
        "warnings": warnings or None,
    }


def validate_batch(operations: list) -> dict:
    """Check every operation's shape without touching the database."""
    _check_size(operations)
    validations = []
    known_refs: set = set()
    for index, raw in enumerate(operations):
        operation = _as_operation(raw)
        report = validate_operation(operation, known_refs)
        validations.append({"index": index, **report})
        ref = (operation.data or {}).get(REF_KEY)
        if isinstance(ref, str) and ref:
            known_refs.add(ref)
    return {
        "valid": all(v["valid"] for v in validations),
        "total": len(operations),
        "validations": validations,
    }
