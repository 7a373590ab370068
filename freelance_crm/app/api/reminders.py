"""Reminder endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from freelance_crm.app.api.responses import listing, serialize, success
from freelance_crm.app.db.scope import UserScope, get_owned, scoped_query
from freelance_crm.app.db.session import get_db
from freelance_crm.app.dependencies.auth import get_current_user
from freelance_crm.app.models.enums import ReminderPriority
from freelance_crm.app.models.reminder import Reminder
from freelance_crm.app.models.user import User
from freelance_crm.app.schemas.reminder import ReminderCreate, ReminderRead, ReminderSnooze, ReminderUpdate
from freelance_crm.app.services import reminders as reminder_service

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.get("")
async def list_reminders(
    pending: Optional[bool] = None,
    priority: Optional[ReminderPriority] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = scoped_query(db, Reminder, UserScope(current_user.id))
    if pending is True:
        query = query.filter(Reminder.completed_at.is_(None))
    elif pending is False:
        query = query.filter(Reminder.completed_at.isnot(None))
    if priority:
        query = query.filter(Reminder.priority == priority)
    return listing(ReminderRead, query.order_by(Reminder.due_at.asc(), Reminder.id.asc()).all())


@router.post("", status_code=201)
async def create_reminder(
    reminder_in: ReminderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reminder = reminder_service.create_reminder(db, current_user.id, reminder_in.model_dump())
    db.commit()
    return success(serialize(ReminderRead, reminder))


@router.get("/{reminder_id}")
async def get_reminder(reminder_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return success(serialize(ReminderRead, get_owned(db, Reminder, reminder_id, current_user.id)))


@router.put("/{reminder_id}")
async def update_reminder(
    reminder_id: int,
    reminder_in: ReminderUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reminder = get_owned(db, Reminder, reminder_id, current_user.id)
    reminder_service.update_reminder(db, reminder, reminder_in.model_dump(exclude_unset=True))
    db.commit()
    return success(serialize(ReminderRead, reminder))


@router.delete("/{reminder_id}")
async def delete_reminder(reminder_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    reminder = get_owned(db, Reminder, reminder_id, current_user.id)
    reminder_service.delete_reminder(db, reminder)
    db.commit()
    return success({"id": reminder_id, "deleted": True})


@router.post("/{reminder_id}/complete")
async def complete_reminder(
    reminder_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reminder = get_owned(db, Reminder, reminder_id, current_user.id)
    successor = reminder_service.complete_reminder(db, reminder)
    db.commit()
    data = serialize(ReminderRead, reminder)
    data["next_occurrence"] = serialize(ReminderRead, successor) if successor else None
    return success(data)


@router.post("/{reminder_id}/snooze")
async def snooze_reminder(
    reminder_id: int,
    body: Optional[ReminderSnooze] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reminder = get_owned(db, Reminder, reminder_id, current_user.id)
    reminder_service.snooze_reminder(reminder, (body or ReminderSnooze()).hours)
    db.commit()
    return success(serialize(ReminderRead, reminder))


@router.post("/{reminder_id}/reopen")
async def reopen_reminder(
    reminder_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reminder = get_owned(db, Reminder, reminder_id, current_user.id)
    reminder_service.reopen_reminder(reminder)
    db.commit()
    return success(serialize(ReminderRead, reminder))
