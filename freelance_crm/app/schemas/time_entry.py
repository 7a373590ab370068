"""Time entry schemas."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from freelance_crm.app.schemas.common import UtcDatetime


class TimeEntryCreate(BaseModel):
    project_id: int
    description: Optional[str] = Field(default=None, max_length=500)
    started_at: UtcDatetime
    ended_at: Optional[UtcDatetime] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    billable: bool = True

    @model_validator(mode="after")
    def check_interval(self):
        if self.ended_at is not None and self.ended_at <= self.started_at:
            raise ValueError("ended_at must be after started_at")
        return self


class TimeEntryUpdate(BaseModel):
    description: Optional[str] = Field(default=None, max_length=500)
    started_at: Optional[UtcDatetime] = None
    ended_at: Optional[UtcDatetime] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    billable: Optional[bool] = None


class TimerStart(BaseModel):
    project_id: int
    description: Optional[str] = Field(default=None, max_length=500)


class TimeEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    invoice_id: Optional[int] = None
    description: Optional[str] = None
    started_at: UtcDatetime
    ended_at: Optional[UtcDatetime] = None
    duration_minutes: Optional[int] = None
    billable: bool
    is_running: bool
    is_invoiced: bool
