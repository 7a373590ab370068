"""Recurring task schemas."""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from freelance_crm.app.models.enums import TaskFrequency
from freelance_crm.app.schemas.common import Money, UtcDatetime


class RecurringTaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    frequency: TaskFrequency
    next_due_at: date
    client_id: Optional[int] = None
    description: Optional[str] = None
    started_at: Optional[date] = None
    ends_at: Optional[date] = None
    amount: Optional[Money] = None
    billing_notes: Optional[str] = None
    active: bool = True

    @model_validator(mode="after")
    def check_end(self):
        if self.ends_at is not None and self.ends_at < self.next_due_at:
            raise ValueError("ends_at must not be before next_due_at")
        return self


class RecurringTaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    frequency: Optional[TaskFrequency] = None
    next_due_at: Optional[date] = None
    client_id: Optional[int] = None
    description: Optional[str] = None
    started_at: Optional[date] = None
    ends_at: Optional[date] = None
    amount: Optional[Money] = None
    billing_notes: Optional[str] = None


class RecurringTaskSkip(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class RecurringTaskLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    due_date: date
    action: str
    reminder_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: UtcDatetime


class RecurringTaskRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    frequency: TaskFrequency
    next_due_at: date
    last_run_at: Optional[date] = None
    started_at: Optional[date] = None
    ends_at: Optional[date] = None
    amount: Optional[Decimal] = None
    billing_notes: Optional[str] = None
    active: bool
    logs: List[RecurringTaskLogRead] = []


class RecurringTaskComplete(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=1000)
