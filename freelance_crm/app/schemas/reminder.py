"""Reminder schemas."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from freelance_crm.app.models.enums import RemindableType, ReminderPriority, ReminderRecurrence
from freelance_crm.app.schemas.common import UtcDatetime


class ReminderCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    due_at: UtcDatetime
    recurrence: Optional[ReminderRecurrence] = None
    priority: ReminderPriority = ReminderPriority.NORMAL
    remindable_type: Optional[str] = None
    remindable_id: Optional[int] = None


class ReminderUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_at: Optional[UtcDatetime] = None
    recurrence: Optional[ReminderRecurrence] = None
    priority: Optional[ReminderPriority] = None


class ReminderSnooze(BaseModel):
    hours: int = Field(default=24, ge=1, le=720)


class ReminderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    remindable_type: Optional[RemindableType] = None
    remindable_id: Optional[int] = None
    due_at: UtcDatetime
    snoozed_until: Optional[UtcDatetime] = None
    effective_due_at: UtcDatetime
    completed_at: Optional[UtcDatetime] = None
    recurrence: Optional[ReminderRecurrence] = None
    priority: ReminderPriority
    is_system: bool
    system_type: Optional[str] = None
    created_at: UtcDatetime
