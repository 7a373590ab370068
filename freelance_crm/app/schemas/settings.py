from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class UserSettingsUpdate(BaseModel):
    default_vat_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    default_payment_terms: Optional[int] = Field(default=None, ge=0, le=365)
    payment_terms_days: Optional[int] = Field(default=None, ge=0, le=365)
    invoice_footer: Optional[str] = None
