"""Time entry endpoints and the start/stop timer."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from freelance_crm.app.api.responses import listing, serialize, success
from freelance_crm.app.db.scope import UserScope, get_owned, scoped_query
from freelance_crm.app.db.session import get_db
from freelance_crm.app.dependencies.auth import get_current_user
from freelance_crm.app.models.time_entry import TimeEntry
from freelance_crm.app.models.user import User
from freelance_crm.app.schemas.time_entry import TimeEntryCreate, TimeEntryRead, TimeEntryUpdate, TimerStart
from freelance_crm.app.services import time_entries as time_entry_service

router = APIRouter(prefix="/time-entries", tags=["time-entries"])


@router.get("")
async def list_time_entries(
    project_id: Optional[int] = None,
    billable: Optional[bool] = None,
    invoiced: Optional[bool] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = scoped_query(db, TimeEntry, UserScope(current_user.id))
    if project_id is not None:
        query = query.filter(TimeEntry.project_id == project_id)
    if billable is not None:
        query = query.filter(TimeEntry.billable.is_(billable))
    if invoiced is True:
        query = query.filter(TimeEntry.invoice_id.isnot(None))
    elif invoiced is False:
        query = query.filter(TimeEntry.invoice_id.is_(None))
    if date_from is not None:
        query = query.filter(TimeEntry.started_at >= date_from)
    if date_to is not None:
        query = query.filter(TimeEntry.started_at <= date_to)
    return listing(TimeEntryRead, query.order_by(TimeEntry.started_at.desc()).all())


@router.post("", status_code=201)
async def create_time_entry(
    entry_in: TimeEntryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    entry = time_entry_service.create_time_entry(db, current_user.id, entry_in.model_dump(exclude_unset=True))
    db.commit()
    return success(serialize(TimeEntryRead, entry))


@router.post("/start", status_code=201)
async def start_timer(
    body: TimerStart,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    entry = time_entry_service.start_timer(db, current_user.id, body.project_id, body.description)
    db.commit()
    return success(serialize(TimeEntryRead, entry))


@router.get("/{entry_id}")
async def get_time_entry(entry_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return success(serialize(TimeEntryRead, get_owned(db, TimeEntry, entry_id, current_user.id, label="Time entry")))


@router.put("/{entry_id}")
async def update_time_entry(
    entry_id: int,
    entry_in: TimeEntryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    entry = get_owned(db, TimeEntry, entry_id, current_user.id, label="Time entry")
    time_entry_service.update_time_entry(db, entry, entry_in.model_dump(exclude_unset=True))
    db.commit()
    return success(serialize(TimeEntryRead, entry))


@router.delete("/{entry_id}")
async def delete_time_entry(entry_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    entry = get_owned(db, TimeEntry, entry_id, current_user.id, label="Time entry")
    time_entry_service.delete_time_entry(db, entry)
    db.commit()
    return success({"id": entry_id, "deleted": True})


@router.post("/{entry_id}/stop")
async def stop_timer(entry_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    entry = get_owned(db, TimeEntry, entry_id, current_user.id, label="Time entry")
    time_entry_service.stop_timer(db, entry)
    db.commit()
    return success(serialize(TimeEntryRead, entry))
