"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create → request bodies (write)
  - *Out    → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """Balance for one leave type and year."""

    model_config = ConfigDict(from_attributes=True)

    leave_type_id: uuid.UUID
    leave_type_code: str
    leave_type_name: str
    year: int
    total_days: Decimal
    used_days: Decimal
    available_days: Decimal


# ═════════════════════════════════════════════════════════════════════
# Leave Request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for applying for leave.

    ``days_requested`` defaults to the number of calendar days in the range.
    """

    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    days_requested: Optional[Decimal] = Field(None, gt=0, max_digits=5, decimal_places=1)
    reason: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _check_dates(self) -> "LeaveRequestCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date.")
        return self


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    days_requested: Decimal
    reason: Optional[str] = None
    status: str
    balance_deducted: bool = False
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
