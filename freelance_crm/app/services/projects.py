"""Project/offer lifecycle.

Each transition is a named operation with its own side effects. All of them go
through ``transition_to`` so an illegal move is rejected before any field is
touched.
"""

import logging
from datetime import date, datetime

from sqlalchemy.orm import Session

from freelance_crm.app.core.errors import ApiError, InvalidTransitionError
from freelance_crm.app.core.time import utc_now
from freelance_crm.app.db.scope import get_owned
from freelance_crm.app.models.client import Client
from freelance_crm.app.models.enums import INVOICEABLE_PROJECT_STATUSES, ProjectStatus
from freelance_crm.app.models.project import Project, ProjectItem
from freelance_crm.app.services import notifications
from freelance_crm.app.services.reminders import create_offer_followup_reminder

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "client_id",
    "title",
    "description",
    "reference",
    "type",
    "hourly_rate",
    "fixed_price",
    "offer_date",
    "offer_valid_until",
    "start_date",
    "end_date",
    "notes",
)


def _status(project: Project) -> ProjectStatus:
    return ProjectStatus(project.status)


def _reject(project: Project, target: ProjectStatus):
    current = _status(project)
    raise InvalidTransitionError(current.value, target.value, [s.value for s in current.allowed_transitions()])


def transition_to(project: Project, target: ProjectStatus) -> None:
    current = _status(project)
    target = ProjectStatus(target)
    if not current.can_transition_to(target):
        _reject(project, target)
    project.status = target
    logger.info("Project %s: %s -> %s", project.id, current.value, target.value)


def send_offer(project: Project, now: datetime | None = None) -> None:
    transition_to(project, ProjectStatus.SENT)
    project.offer_sent_at = now or utc_now()


def accept_offer(project: Project, now: datetime | None = None) -> None:
    transition_to(project, ProjectStatus.ACCEPTED)
    project.offer_accepted_at = now or utc_now()


def decline_offer(project: Project) -> None:
    transition_to(project, ProjectStatus.DECLINED)


def start_project(project: Project, start_date: date | None = None) -> None:
    if _status(project) == ProjectStatus.COMPLETED:
        # Completed projects go back to work through reopen_project only
        _reject(project, ProjectStatus.IN_PROGRESS)
    transition_to(project, ProjectStatus.IN_PROGRESS)
    project.start_date = start_date or utc_now().date()


def complete_project(project: Project, end_date: date | None = None) -> None:
    transition_to(project, ProjectStatus.COMPLETED)
    project.end_date = end_date or utc_now().date()


def reopen_project(project: Project) -> None:
    if _status(project) != ProjectStatus.COMPLETED:
        _reject(project, ProjectStatus.IN_PROGRESS)
    transition_to(project, ProjectStatus.IN_PROGRESS)
    project.end_date = None


def cancel_project(project: Project) -> None:
    transition_to(project, ProjectStatus.CANCELLED)


def can_be_invoiced(project: Project) -> bool:
    return _status(project) in INVOICEABLE_PROJECT_STATUSES


def parse_status(value) -> ProjectStatus:
    try:
        return ProjectStatus(value)
    except ValueError:
        raise ApiError(
            "INVALID_STATUS",
            f"Invalid status: {value}",
            suggestions=["Valid statuses: " + ", ".join(s.value for s in ProjectStatus)],
        )


def apply_transition(
    db: Session,
    project: Project,
    target,
    start_date: date | None = None,
    end_date: date | None = None,
) -> Project:
    """Dispatch a requested status to the matching named operation."""
    target = parse_status(target)
    current = _status(project)

    if target == ProjectStatus.SENT:
        send_offer(project)
    elif target == ProjectStatus.ACCEPTED:
        accept_offer(project)
    elif target == ProjectStatus.DECLINED:
        decline_offer(project)
    elif target == ProjectStatus.IN_PROGRESS and current == ProjectStatus.COMPLETED:
        reopen_project(project)
    elif target == ProjectStatus.IN_PROGRESS:
        start_project(project, start_date)
    elif target == ProjectStatus.COMPLETED:
        complete_project(project, end_date)
    elif target == ProjectStatus.CANCELLED:
        cancel_project(project)
    else:
        transition_to(project, target)
    db.flush()

    if target == ProjectStatus.SENT:
        create_offer_followup_reminder(db, project)
        notifications.queue_email(notifications.OFFER_EMAIL, project.id, project.user_id)
    return project


def _build_items(items: list[dict]) -> list[ProjectItem]:
    return [
        ProjectItem(
            description=item["description"],
            quantity=item.get("quantity", 1),
            unit=item.get("unit"),
            unit_price=item.get("unit_price", 0),
            position=index + 1,
        )
        for index, item in enumerate(items)
    ]


def create_project(db: Session, user_id: int, data: dict) -> Project:
    get_owned(db, Client, data.get("client_id"), user_id, label="Client")
    project = Project(
        user_id=user_id,
        client_id=int(data["client_id"]),
        title=data["title"],
        description=data.get("description"),
        reference=data.get("reference"),
        type=data["type"],
        hourly_rate=data.get("hourly_rate"),
        fixed_price=data.get("fixed_price"),
        status=ProjectStatus.DRAFT,
        offer_date=data.get("offer_date"),
        offer_valid_until=data.get("offer_valid_until"),
        start_date=data.get("start_date"),
        end_date=data.get("end_date"),
        notes=data.get("notes"),
    )
    project.items = _build_items(data.get("items") or [])
    db.add(project)
    db.flush()
    logger.info("Created project %s for user %s", project.id, user_id)
    return project


def update_project(db: Session, project: Project, data: dict) -> Project:
    if data.get("client_id") is not None:
        get_owned(db, Client, data["client_id"], project.user_id, label="Client")
    for field in UPDATABLE_FIELDS:
        if field in data and data[field] is not None:
            setattr(project, field, data[field])
    if data.get("items") is not None:
        project.items = _build_items(data["items"])
    db.flush()
    return project


def delete_project(db: Session, project: Project) -> None:
    invoice_count = sum(1 for inv in project.invoices if inv.deleted_at is None)
    if invoice_count:
        raise ApiError(
            "PROJECT_HAS_INVOICES",
            "Cannot delete project with existing invoices.",
            suggestions=[
                f"Project has {invoice_count} invoice(s).",
                "Delete related invoices first or cancel them.",
            ],
        )
    project.deleted_at = utc_now()
    db.flush()
