"""Invoice schemas."""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from freelance_crm.app.models.enums import InvoiceStatus
from freelance_crm.app.schemas.common import Money, Percentage, Quantity, UtcDatetime


class InvoiceItemIn(BaseModel):
    id: Optional[int] = None
    description: str = Field(min_length=1, max_length=500)
    quantity: Quantity
    unit: Optional[str] = Field(default=None, max_length=50)
    unit_price: Money
    vat_rate: Optional[Percentage] = None


class InvoiceItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    quantity: Decimal
    unit: Optional[str] = None
    unit_price: Decimal
    vat_rate: Decimal
    position: int
    total: Decimal
    vat_amount: Decimal
    gross_total: Decimal


class _InvoiceDates(BaseModel):
    issued_at: Optional[date] = None
    due_at: Optional[date] = None
    service_period_start: Optional[date] = None
    service_period_end: Optional[date] = None

    @model_validator(mode="after")
    def check_date_order(self):
        if self.issued_at and self.due_at and self.due_at < self.issued_at:
            raise ValueError("due_at must not be before issued_at")
        if self.service_period_start and self.service_period_end and \
                self.service_period_end < self.service_period_start:
            raise ValueError("service_period_end must not be before service_period_start")
        return self


class InvoiceCreate(_InvoiceDates):
    client_id: int
    project_id: Optional[int] = None
    vat_rate: Optional[Percentage] = None
    notes: Optional[str] = None
    footer_text: Optional[str] = None
    items: List[InvoiceItemIn] = Field(min_length=1)


class InvoiceUpdate(_InvoiceDates):
    vat_rate: Optional[Percentage] = None
    notes: Optional[str] = None
    footer_text: Optional[str] = None
    items: Optional[List[InvoiceItemIn]] = None


class InvoiceFromProject(BaseModel):
    project_id: int


class InvoiceMarkPaid(BaseModel):
    paid_at: Optional[date] = None
    payment_method: Optional[str] = Field(default=None, max_length=100)


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    number: str
    client_id: int
    project_id: Optional[int] = None
    status: InvoiceStatus
    issued_at: Optional[date] = None
    due_at: Optional[date] = None
    paid_at: Optional[date] = None
    payment_method: Optional[str] = None
    subtotal: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    total: Decimal
    service_period_start: Optional[date] = None
    service_period_end: Optional[date] = None
    notes: Optional[str] = None
    footer_text: Optional[str] = None
    items: List[InvoiceItemRead] = []
    created_at: UtcDatetime
    updated_at: UtcDatetime
