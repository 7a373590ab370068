"""Project and project item schemas."""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from freelance_crm.app.models.enums import ProjectStatus, ProjectType
from freelance_crm.app.schemas.common import Money, Quantity, UtcDatetime


class ProjectItemIn(BaseModel):
    description: str = Field(min_length=1, max_length=500)
    quantity: Quantity = Decimal("1")
    unit: Optional[str] = Field(default=None, max_length=50)
    unit_price: Money = Decimal("0")


class ProjectItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    quantity: Decimal
    unit: Optional[str] = None
    unit_price: Decimal
    position: int


class ProjectCreate(BaseModel):
    client_id: int
    title: str = Field(min_length=1, max_length=255)
    type: ProjectType
    description: Optional[str] = None
    reference: Optional[str] = Field(default=None, max_length=100)
    hourly_rate: Optional[Money] = None
    fixed_price: Optional[Money] = None
    offer_date: Optional[date] = None
    offer_valid_until: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None
    items: List[ProjectItemIn] = []

    @model_validator(mode="after")
    def check_pricing(self):
        if self.hourly_rate is not None and self.fixed_price is not None:
            raise ValueError("Set either hourly_rate or fixed_price, not both.")
        return self


class ProjectUpdate(BaseModel):
    client_id: Optional[int] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[ProjectType] = None
    description: Optional[str] = None
    reference: Optional[str] = Field(default=None, max_length=100)
    hourly_rate: Optional[Money] = None
    fixed_price: Optional[Money] = None
    offer_date: Optional[date] = None
    offer_valid_until: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None
    items: Optional[List[ProjectItemIn]] = None


class ProjectTransition(BaseModel):
    # Plain string so unknown values surface as INVALID_STATUS, not a schema error
    status: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ProjectRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: int
    title: str
    description: Optional[str] = None
    reference: Optional[str] = None
    type: ProjectType
    status: ProjectStatus
    hourly_rate: Optional[Decimal] = None
    fixed_price: Optional[Decimal] = None
    offer_date: Optional[date] = None
    offer_valid_until: Optional[date] = None
    offer_sent_at: Optional[UtcDatetime] = None
    offer_accepted_at: Optional[UtcDatetime] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None
    total_value: Decimal
    total_hours: Decimal
    unbilled_hours: Decimal
    unbilled_amount: Decimal
    items: List[ProjectItemRead] = []
    created_at: UtcDatetime
    updated_at: UtcDatetime
