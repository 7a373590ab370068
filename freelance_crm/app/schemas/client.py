"""Client schemas."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from freelance_crm.app.models.enums import ClientType
from freelance_crm.app.schemas.common import UtcDatetime


class ClientCreate(BaseModel):
    type: ClientType
    company_name: Optional[str] = Field(default=None, max_length=255)
    contact_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=50)
    vat_id: Optional[str] = Field(default=None, max_length=50)
    street: Optional[str] = Field(default=None, max_length=255)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    city: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, min_length=2, max_length=2)
    notes: Optional[str] = None


class ClientUpdate(BaseModel):
    type: Optional[ClientType] = None
    company_name: Optional[str] = Field(default=None, max_length=255)
    contact_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    vat_id: Optional[str] = Field(default=None, max_length=50)
    street: Optional[str] = Field(default=None, max_length=255)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    city: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, min_length=2, max_length=2)
    notes: Optional[str] = None


class ClientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: ClientType
    display_name: str
    company_name: Optional[str] = None
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    vat_id: Optional[str] = None
    street: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    notes: Optional[str] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime
