"""Time tracking on hourly projects, including the start/stop timer."""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from freelance_crm.app.core.errors import ApiError
from freelance_crm.app.core.time import utc_now
from freelance_crm.app.db.scope import get_owned
from freelance_crm.app.models.project import Project
from freelance_crm.app.models.time_entry import TimeEntry

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("description", "started_at", "ended_at", "duration_minutes", "billable")


def _hourly_project(db: Session, project_id, user_id: int) -> Project:
    project = get_owned(db, Project, project_id, user_id, label="Project")
    if not project.is_hourly:
        raise ApiError(
            "PROJECT_NOT_HOURLY",
            "Time entries can only be added to hourly projects.",
            suggestions=['Change the project type to "hourly" or select a different project.'],
        )
    return project


def ensure_not_invoiced(entry: TimeEntry, verb: str = "update") -> None:
    if entry.is_invoiced:
        raise ApiError(
            "TIME_ENTRY_INVOICED",
            f"Cannot {verb} an invoiced time entry.",
            suggestions=["Remove the time entry from the invoice first."],
        )


def running_timer(db: Session, user_id: int) -> TimeEntry | None:
    return (
        db.query(TimeEntry)
        .filter(
            TimeEntry.user_id == user_id,
            TimeEntry.started_at.isnot(None),
            TimeEntry.ended_at.is_(None),
            TimeEntry.duration_minutes.is_(None),
        )
        .first()
    )


def create_time_entry(db: Session, user_id: int, data: dict) -> TimeEntry:
    project = _hourly_project(db, data.get("project_id"), user_id)
    entry = TimeEntry(
        user_id=user_id,
        project_id=project.id,
        description=data.get("description"),
        started_at=data["started_at"],
        ended_at=data.get("ended_at"),
        duration_minutes=data.get("duration_minutes"),
        billable=True if data.get("billable") is None else data["billable"],
    )
    db.add(entry)
    db.flush()
    return entry


def update_time_entry(db: Session, entry: TimeEntry, data: dict) -> TimeEntry:
    ensure_not_invoiced(entry)
    for field in UPDATABLE_FIELDS:
        if field in data and data[field] is not None:
            setattr(entry, field, data[field])
    db.flush()
    return entry


def delete_time_entry(db: Session, entry: TimeEntry) -> None:
    ensure_not_invoiced(entry, verb="delete")
    db.delete(entry)
    db.flush()


def start_timer(db: Session, user_id: int, project_id, description: str | None = None,
                now: datetime | None = None) -> TimeEntry:
    project = _hourly_project(db, project_id, user_id)
    if running_timer(db, user_id) is not None:
        raise ApiError(
            "TIMER_ALREADY_RUNNING",
            "You already have a running timer. Stop it before starting a new one.",
            suggestions=["Use POST /time-entries/{id}/stop to stop the running timer."],
        )
    entry = TimeEntry(
        user_id=user_id,
        project_id=project.id,
        description=description,
        started_at=now or utc_now(),
        billable=True,
    )
    db.add(entry)
    db.flush()
    logger.info("Started timer %s on project %s", entry.id, project.id)
    return entry


def stop_timer(db: Session, entry: TimeEntry, now: datetime | None = None) -> TimeEntry:
    if not entry.is_running:
        raise ApiError("TIMER_NOT_RUNNING", "This time entry is not currently running.")
    entry.ended_at = now or utc_now()
    db.flush()
    logger.info("Stopped timer %s after %s minute(s)", entry.id, entry.duration_minutes)
    return entry
