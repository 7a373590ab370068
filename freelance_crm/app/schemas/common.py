"""Shared field types."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated

from pydantic import BeforeValidator, Field


def _as_utc(v):
    if isinstance(v, str) and v.endswith("Z"):
        return v[:-1] + "+00:00"
    if isinstance(v, datetime) and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


UtcDatetime = Annotated[datetime, BeforeValidator(_as_utc)]

Money = Annotated[Decimal, Field(ge=0, max_digits=10, decimal_places=2)]
Quantity = Annotated[Decimal, Field(ge=0, max_digits=10, decimal_places=2)]
Percentage = Annotated[Decimal, Field(ge=0, le=100, max_digits=5, decimal_places=2)]
