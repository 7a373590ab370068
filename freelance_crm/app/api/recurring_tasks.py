"""Recurring task endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from freelance_crm.app.api.responses import serialize, success
from freelance_crm.app.db.scope import UserScope, get_owned, scoped_query
from freelance_crm.app.db.session import get_db
from freelance_crm.app.dependencies.auth import get_current_user
from freelance_crm.app.models.recurring_task import RecurringTask
from freelance_crm.app.models.user import User
from freelance_crm.app.schemas.recurring_task import (
    RecurringTaskComplete,
    RecurringTaskCreate,
    RecurringTaskRead,
    RecurringTaskSkip,
    RecurringTaskUpdate,
)
from freelance_crm.app.services import recurring_tasks as task_service

router = APIRouter(prefix="/recurring-tasks", tags=["recurring-tasks"])

LABEL = "Recurring task"


def _read(task: RecurringTask) -> dict:
    data = serialize(RecurringTaskRead, task)
    data["is_overdue"] = task_service.is_overdue(task)
    data["is_due_soon"] = task_service.is_due_soon(task)
    data["has_ended"] = task_service.has_ended(task)
    return data


@router.get("")
async def list_recurring_tasks(
    active: Optional[bool] = None,
    client_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = scoped_query(db, RecurringTask, UserScope(current_user.id))
    if active is not None:
        query = query.filter(RecurringTask.active.is_(active))
    if client_id is not None:
        query = query.filter(RecurringTask.client_id == client_id)
    tasks = query.order_by(RecurringTask.next_due_at.asc()).all()
    return success([_read(task) for task in tasks], meta={"total": len(tasks)})


@router.post("", status_code=201)
async def create_recurring_task(
    task_in: RecurringTaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = task_service.create_task(db, current_user.id, task_in.model_dump())
    db.commit()
    return success(_read(task))


@router.get("/{task_id}")
async def get_recurring_task(task_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return success(_read(get_owned(db, RecurringTask, task_id, current_user.id, label=LABEL)))


@router.put("/{task_id}")
async def update_recurring_task(
    task_id: int,
    task_in: RecurringTaskUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = get_owned(db, RecurringTask, task_id, current_user.id, label=LABEL)
    task_service.update_task(db, task, task_in.model_dump(exclude_unset=True))
    db.commit()
    return success(_read(task))


@router.delete("/{task_id}")
async def delete_recurring_task(task_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    task = get_owned(db, RecurringTask, task_id, current_user.id, label=LABEL)
    task_service.delete_task(db, task)
    db.commit()
    return success({"id": task_id, "deleted": True})


@router.post("/{task_id}/pause")
async def pause_recurring_task(task_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    task = get_owned(db, RecurringTask, task_id, current_user.id, label=LABEL)
    task_service.pause(task)
    db.commit()
    return success(_read(task))


@router.post("/{task_id}/resume")
async def resume_recurring_task(task_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    task = get_owned(db, RecurringTask, task_id, current_user.id, label=LABEL)
    task_service.resume(task)
    db.commit()
    return success(_read(task))


@router.post("/{task_id}/skip")
async def skip_recurring_task(
    task_id: int,
    body: Optional[RecurringTaskSkip] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = get_owned(db, RecurringTask, task_id, current_user.id, label=LABEL)
    task_service.skip_occurrence(db, task, (body or RecurringTaskSkip()).reason)
    db.commit()
    return success(_read(task))


@router.post("/{task_id}/advance")
async def advance_recurring_task(task_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    task = get_owned(db, RecurringTask, task_id, current_user.id, label=LABEL)
    task_service.advance_task(db, task)
    db.commit()
    return success(_read(task))


@router.post("/{task_id}/complete")
async def complete_recurring_task(
    task_id: int,
    body: Optional[RecurringTaskComplete] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = get_owned(db, RecurringTask, task_id, current_user.id, label=LABEL)
    task_service.complete_manually(db, task, (body or RecurringTaskComplete()).notes)
    db.commit()
    return success(_read(task))
