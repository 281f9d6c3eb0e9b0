"""Enums and constants — the fixed string sets persisted in status columns."""

from __future__ import annotations

import enum

from workforce.config import settings


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    hr_admin = "hr_admin"
    system_admin = "system_admin"


# ── Attendance ──────────────────────────────────────────────────────

class DayStatus(str, enum.Enum):
    present = "present"
    late = "late"
    early_leave = "early_leave"
    partial = "partial"
    absent = "absent"
    weekend = "weekend"
    holiday = "holiday"
    leave = "leave"
    sick = "sick"
    mission = "mission"
    training = "training"
    recovery = "recovery"
    recovery_off = "recovery_off"
    overtime = "overtime"
    pending = "pending"


class AttendanceSource(str, enum.Enum):
    clock = "clock"
    correction = "correction"
    recalculation = "recalculation"


class SpecialDay(str, enum.Enum):
    holiday = "holiday"
    holiday_overtime = "holiday_overtime"
    leave = "leave"
    recovery = "recovery"
    recovery_off = "recovery_off"


# ── Overtime ────────────────────────────────────────────────────────

class OvertimeRateType(str, enum.Enum):
    normal = "normal"
    extended = "extended"
    special = "special"


# Higher wins when several periods overlap the worked interval
OVERTIME_RATE_PRIORITY: dict[str, int] = {
    OvertimeRateType.normal.value: 1,
    OvertimeRateType.extended.value: 2,
    OvertimeRateType.special.value: 3,
}


# ── Leave ───────────────────────────────────────────────────────────

class LeaveCategory(str, enum.Enum):
    paid = "paid"
    unpaid = "unpaid"
    sick = "sick"
    other = "other"


# Leave type code (lower-cased) → day status; anything else is plain leave
LEAVE_CODE_STATUS: dict[str, DayStatus] = {
    "sick": DayStatus.sick,
    "maladie": DayStatus.sick,
    "mission": DayStatus.mission,
    "training": DayStatus.training,
    "formation": DayStatus.training,
}


# ── Requests / approvals ────────────────────────────────────────────

class RequestType(str, enum.Enum):
    leave = "leave"
    overtime = "overtime"
    correction = "correction"


class RecordStatus(str, enum.Enum):
    """Status of admin-declared records (recovery, overtime periods)."""

    active = "active"
    inactive = "inactive"


PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
CANCELLED = "cancelled"
AT_RANK_PREFIX = "approved_n"

# Every status string a multi-level request may carry
MULTI_LEVEL_STATUSES: tuple[str, ...] = (
    PENDING,
    *(f"{AT_RANK_PREFIX}{k}" for k in range(1, settings.MAX_APPROVAL_DEPTH + 1)),
    APPROVED,
    REJECTED,
    CANCELLED,
)

SINGLE_LEVEL_STATUSES: tuple[str, ...] = (PENDING, APPROVED, REJECTED, CANCELLED)

# ── Misc constants ──────────────────────────────────────────────────

ISO_SATURDAY = 6
ISO_SUNDAY = 7
WEEKDAY_COLUMNS = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)


def status_check(column: str, values: tuple[str, ...] | list[str]) -> str:
    """SQL text for a CHECK constraint restricting ``column`` to ``values``."""
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"
