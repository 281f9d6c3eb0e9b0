"""Overtime Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OvertimeRequestCreate(BaseModel):
    request_date: date
    estimated_hours: Decimal = Field(..., gt=0, le=24, max_digits=4, decimal_places=2)
    reason: Optional[str] = Field(None, max_length=2000)


class OvertimeRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    request_date: date
    estimated_hours: Decimal
    reason: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
