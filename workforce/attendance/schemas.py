"""Attendance Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Response           → response bodies (read)
"""


import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from workforce.common.constants import DayStatus


# ═════════════════════════════════════════════════════════════════════
# Day status
# ═════════════════════════════════════════════════════════════════════


class DayStatusResponse(BaseModel):
    """Computed status and minute breakdown for one employee-day."""

    model_config = ConfigDict(from_attributes=True)

    work_date: date
    status: DayStatus
    is_working_day: bool
    scheduled_start: Optional[time] = None
    scheduled_end: Optional[time] = None
    scheduled_break_minutes: int = 0
    gross_worked_minutes: Optional[int] = None
    net_worked_minutes: Optional[int] = None
    late_minutes: int = 0
    early_leave_minutes: int = 0
    early_arrival_minutes: int = 0
    break_deducted: bool = False
    overtime_minutes: int = 0
    overtime_rate_type: Optional[str] = None
    hours_to_recover: Optional[int] = None
    is_anomaly: bool = False
    notes: Optional[str] = None
    special_day: Optional[dict[str, Any]] = None


class DailyRecordResponse(BaseModel):
    """Stored attendance row."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    work_date: date
    clock_in_at: Optional[datetime] = None
    clock_out_at: Optional[datetime] = None
    day_status: DayStatus
    scheduled_start: Optional[time] = None
    scheduled_end: Optional[time] = None
    gross_worked_minutes: Optional[int] = None
    net_worked_minutes: Optional[int] = None
    late_minutes: int = 0
    early_leave_minutes: int = 0
    overtime_minutes: int = 0
    overtime_rate_type: Optional[str] = None
    hours_to_recover: Optional[int] = None
    is_anomaly: bool = False
    source: str
    notes: Optional[str] = None


class RecalculateRequest(BaseModel):
    employee_id: uuid.UUID
    work_date: date


# ═════════════════════════════════════════════════════════════════════
# Day info
# ═════════════════════════════════════════════════════════════════════


class ScheduleInfo(BaseModel):
    name: str
    scheduled_start: Optional[time] = None
    scheduled_end: Optional[time] = None
    break_duration_minutes: int = 0
    is_working_day: bool
    tolerance_late_minutes: Optional[int] = None
    tolerance_early_leave_minutes: Optional[int] = None


class LeaveInfo(BaseModel):
    code: str
    name: str


class RecoveryInfo(BaseModel):
    name: str
    is_day_off: bool


class OvertimePeriodInfo(BaseModel):
    name: str
    start_time: time
    end_time: time
    rate_type: str


class DayInfoResponse(BaseModel):
    """Everything that shapes a day's status, for display."""

    work_date: date
    schedule: Optional[ScheduleInfo] = None
    holiday: Optional[str] = None
    leave: Optional[LeaveInfo] = None
    recovery: Optional[RecoveryInfo] = None
    overtime_approved_hours: Optional[Decimal] = None
    overtime_periods: list[OvertimePeriodInfo] = []


# ═════════════════════════════════════════════════════════════════════
# Corrections
# ═════════════════════════════════════════════════════════════════════


class CorrectionCreate(BaseModel):
    """Payload for requesting a retroactive clock correction."""

    request_date: date
    requested_check_in: Optional[str] = Field(None, max_length=15, examples=["08:30"])
    requested_check_out: Optional[str] = Field(None, max_length=15, examples=["17:00"])
    reason: str = Field(..., max_length=2000)


class CorrectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    request_date: date
    requested_check_in: Optional[str] = None
    requested_check_out: Optional[str] = None
    original_check_in: Optional[str] = None
    original_check_out: Optional[str] = None
    reason: str
    status: str
    created_at: Optional[datetime] = None
