"""Common module — shared utilities for the workforce service."""

from workforce.common.audit import AuditTrail, create_audit_entry
from workforce.common.clock import (
    TimeProvider,
    VirtualClock,
    load_time_provider,
    system_now,
    to_local,
)
from workforce.common.constants import (
    AttendanceSource,
    DayStatus,
    LeaveCategory,
    OvertimeRateType,
    RequestType,
    UserRole,
)
from workforce.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Clock
    "TimeProvider",
    "VirtualClock",
    "load_time_provider",
    "system_now",
    "to_local",
    # Constants / Enums
    "AttendanceSource",
    "DayStatus",
    "LeaveCategory",
    "OvertimeRateType",
    "RequestType",
    "UserRole",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "InvalidStateException",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
]
