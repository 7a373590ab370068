"""Batch request schemas."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class BatchOperation(BaseModel):
    action: str
    resource: str
    data: Optional[Dict[str, Any]] = None
    id: Optional[Union[int, str]] = None


class BatchRequest(BaseModel):
    operations: List[BatchOperation] = Field(min_length=1, max_length=50)
