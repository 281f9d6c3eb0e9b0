"""Attendance service layer — clock events, day recalculation, correction requests.

Business logic:
  - Clock in/out: one instant per call from the time provider, stored as
    local time, day status recomputed and upserted on (employee, date)
  - Recalculation of a stored day after facts changed (leave, holidays …)
  - Correction submission (approved later through the approval chain)
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.attendance.calculator import (
    DayStatusResult,
    load_day_facts,
    resolve_day_status,
)
from workforce.attendance.corrections import normalize_time
from workforce.attendance.daily import get_daily_record, upsert_daily_record
from workforce.attendance.models import AttendanceDailyRecord, CorrectionRequest
from workforce.attendance.schemas import (
    CorrectionCreate,
    DayInfoResponse,
    LeaveInfo,
    OvertimePeriodInfo,
    RecoveryInfo,
    ScheduleInfo,
)
from workforce.approvals.state import is_open, parse_status
from workforce.common.audit import create_audit_entry
from workforce.common.clock import to_local
from workforce.common.constants import PENDING, AttendanceSource
from workforce.common.exceptions import (
    ConflictError,
    InvalidStateException,
    ValidationException,
)
from workforce.employees.service import EmployeeDirectory

logger = logging.getLogger(__name__)

# Columns rewritten from a fresh calculation on every clock event / recalculation
_COMPUTED_COLUMNS = (
    "day_status",
    "scheduled_start",
    "scheduled_end",
    "scheduled_break_minutes",
    "gross_worked_minutes",
    "net_worked_minutes",
    "late_minutes",
    "early_leave_minutes",
    "overtime_minutes",
    "overtime_rate_type",
    "hours_to_recover",
    "special_day",
    "is_anomaly",
)


def _computed_values(result: DayStatusResult) -> dict:
    return {
        "day_status": result.status.value,
        "scheduled_start": result.scheduled_start,
        "scheduled_end": result.scheduled_end,
        "scheduled_break_minutes": result.scheduled_break_minutes,
        "gross_worked_minutes": result.gross_worked_minutes,
        "net_worked_minutes": result.net_worked_minutes,
        "late_minutes": result.late_minutes,
        "early_leave_minutes": result.early_leave_minutes,
        "overtime_minutes": result.overtime_minutes,
        "overtime_rate_type": result.overtime_rate_type,
        "hours_to_recover": result.hours_to_recover,
        "special_day": result.special_day,
        "is_anomaly": result.is_anomaly,
    }


def _merge_computed(excluded, current) -> dict:
    merged = {col: getattr(excluded, col) for col in _COMPUTED_COLUMNS}
    merged["clock_in_at"] = func.coalesce(current.clock_in_at, excluded.clock_in_at)
    merged["clock_out_at"] = func.coalesce(excluded.clock_out_at, current.clock_out_at)
    merged["notes"] = func.coalesce(excluded.notes, current.notes)
    merged["updated_at"] = excluded.updated_at
    return merged


def _local_hhmmss(moment: Optional[datetime]) -> Optional[str]:
    if moment is None:
        return None
    return to_local(moment).strftime("%H:%M:%S")


# ═════════════════════════════════════════════════════════════════════
# AttendanceService
# ═════════════════════════════════════════════════════════════════════


class AttendanceService:
    """Async attendance operations: clock, recalculate, correct."""

    @staticmethod
    async def _store(
        db: AsyncSession,
        employee_id: uuid.UUID,
        work_date: date,
        result: DayStatusResult,
        *,
        clock_in_at: Optional[datetime],
        clock_out_at: Optional[datetime],
        source: AttendanceSource,
        now: datetime,
    ) -> AttendanceDailyRecord:
        values = {
            "employee_id": employee_id,
            "work_date": work_date,
            "clock_in_at": clock_in_at,
            "clock_out_at": clock_out_at,
            "source": source.value,
            "notes": result.notes,
            "updated_at": now,
            **_computed_values(result),
        }
        return await upsert_daily_record(db, values, _merge_computed)

    # ─────────────────────────────────────────────────────────────────
    # Clock In / Clock Out
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def clock_in(
        db: AsyncSession,
        employee_id: uuid.UUID,
        now: datetime,
    ) -> AttendanceDailyRecord:
        """Record the first clock-in of the local day."""

        await EmployeeDirectory.get_or_404(db, employee_id)
        local_now = to_local(now)
        work_date = local_now.date()

        existing = await get_daily_record(db, employee_id, work_date)
        if existing is not None and existing.clock_in_at is not None:
            raise ConflictError("clock_in", work_date.isoformat())

        result = await resolve_day_status(db, employee_id, work_date, local_now, None)
        record = await AttendanceService._store(
            db, employee_id, work_date, result,
            clock_in_at=local_now,
            clock_out_at=None,
            source=AttendanceSource.clock,
            now=local_now,
        )

        await create_audit_entry(
            db,
            action="clock_in",
            entity_type="attendance_daily",
            entity_id=record.id,
            actor_id=employee_id,
            new_values={"clock_in_at": local_now.isoformat(), "day_status": record.day_status},
        )
        logger.info("Clock-in %s at %s → %s", employee_id, local_now, record.day_status)
        return record

    @staticmethod
    async def clock_out(
        db: AsyncSession,
        employee_id: uuid.UUID,
        now: datetime,
    ) -> AttendanceDailyRecord:
        """Close the local day opened by ``clock_in`` and compute its minutes."""

        await EmployeeDirectory.get_or_404(db, employee_id)
        local_now = to_local(now)
        work_date = local_now.date()

        existing = await get_daily_record(db, employee_id, work_date)
        if existing is None or existing.clock_in_at is None:
            raise ValidationException(
                {"clock_out": ["No clock-in recorded for today."]}
            )
        if existing.clock_out_at is not None:
            raise ConflictError("clock_out", work_date.isoformat())

        result = await resolve_day_status(
            db, employee_id, work_date, existing.clock_in_at, local_now,
        )
        record = await AttendanceService._store(
            db, employee_id, work_date, result,
            clock_in_at=existing.clock_in_at,
            clock_out_at=local_now,
            source=AttendanceSource(existing.source),
            now=local_now,
        )

        await create_audit_entry(
            db,
            action="clock_out",
            entity_type="attendance_daily",
            entity_id=record.id,
            actor_id=employee_id,
            new_values={
                "clock_out_at": local_now.isoformat(),
                "day_status": record.day_status,
                "net_worked_minutes": record.net_worked_minutes,
            },
        )
        logger.info("Clock-out %s at %s → %s", employee_id, local_now, record.day_status)
        return record

    # ─────────────────────────────────────────────────────────────────
    # Recalculate
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def recalculate_day(
        db: AsyncSession,
        employee_id: uuid.UUID,
        work_date: date,
        now: datetime,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> AttendanceDailyRecord:
        """Re-run the calculator on the stored punches for one day."""

        await EmployeeDirectory.get_or_404(db, employee_id)
        existing = await get_daily_record(db, employee_id, work_date)
        clock_in_at = existing.clock_in_at if existing else None
        clock_out_at = existing.clock_out_at if existing else None
        old_status = existing.day_status if existing else None

        result = await resolve_day_status(db, employee_id, work_date, clock_in_at, clock_out_at)
        record = await AttendanceService._store(
            db, employee_id, work_date, result,
            clock_in_at=clock_in_at,
            clock_out_at=clock_out_at,
            source=(
                AttendanceSource(existing.source) if existing
                else AttendanceSource.recalculation
            ),
            now=now,
        )

        await create_audit_entry(
            db,
            action="recalculate",
            entity_type="attendance_daily",
            entity_id=record.id,
            actor_id=actor_id,
            old_values={"day_status": old_status} if old_status else None,
            new_values={"day_status": record.day_status},
        )
        return record

    # ─────────────────────────────────────────────────────────────────
    # Day info / status preview
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_day_status(
        db: AsyncSession,
        employee_id: uuid.UUID,
        work_date: date,
    ) -> DayStatusResult:
        """Evaluate a day from its stored punches without writing anything."""

        existing = await get_daily_record(db, employee_id, work_date)
        return await resolve_day_status(
            db,
            employee_id,
            work_date,
            existing.clock_in_at if existing else None,
            existing.clock_out_at if existing else None,
        )

    @staticmethod
    async def get_day_info(
        db: AsyncSession,
        employee_id: uuid.UUID,
        work_date: date,
    ) -> DayInfoResponse:
        employee = await EmployeeDirectory.get_or_404(db, employee_id)
        facts = await load_day_facts(db, employee, work_date)

        schedule = None
        if facts.has_schedule:
            schedule = ScheduleInfo(
                name=facts.schedule_name,
                scheduled_start=facts.times.scheduled_start,
                scheduled_end=facts.times.scheduled_end,
                break_duration_minutes=facts.break_minutes,
                is_working_day=facts.times.is_working_day,
                tolerance_late_minutes=facts.tolerance_late,
                tolerance_early_leave_minutes=facts.tolerance_early_leave,
            )
        return DayInfoResponse(
            work_date=work_date,
            schedule=schedule,
            holiday=facts.holiday_name,
            leave=LeaveInfo(code=facts.leave.code, name=facts.leave.name) if facts.leave else None,
            recovery=(
                RecoveryInfo(name=facts.recovery.period_name, is_day_off=facts.recovery.is_day_off)
                if facts.recovery else None
            ),
            overtime_approved_hours=facts.approved_overtime_hours,
            overtime_periods=[
                OvertimePeriodInfo(
                    name=p.name, start_time=p.start_time, end_time=p.end_time, rate_type=p.rate_type,
                )
                for p in facts.overtime_periods
            ],
        )

    # ─────────────────────────────────────────────────────────────────
    # Correction requests
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit_correction(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: CorrectionCreate,
    ) -> CorrectionRequest:
        """Create a pending correction; originals are copied from the day record."""

        await EmployeeDirectory.get_or_404(db, employee_id)

        errors: dict[str, list[str]] = {}
        if not data.reason or not data.reason.strip():
            errors["reason"] = ["A reason is required."]
        check_in = check_out = None
        try:
            check_in = normalize_time(data.requested_check_in)
        except ValueError as exc:
            errors["requested_check_in"] = [str(exc)]
        try:
            check_out = normalize_time(data.requested_check_out)
        except ValueError as exc:
            errors["requested_check_out"] = [str(exc)]
        if (
            "requested_check_in" not in errors
            and "requested_check_out" not in errors
            and check_in is None
            and check_out is None
        ):
            errors["requested_check_in"] = ["At least one corrected time is required."]
        if check_in and check_out and check_out <= check_in:
            errors["requested_check_out"] = ["Check-out must be after check-in."]
        if errors:
            raise ValidationException(errors)

        open_requests = await db.execute(
            select(CorrectionRequest.status).where(
                CorrectionRequest.employee_id == employee_id,
                CorrectionRequest.request_date == data.request_date,
            )
        )
        if any(is_open(parse_status(s)) for s in open_requests.scalars().all()):
            raise InvalidStateException(
                f"A correction for {data.request_date.isoformat()} is already awaiting approval."
            )

        existing = await get_daily_record(db, employee_id, data.request_date)
        correction = CorrectionRequest(
            employee_id=employee_id,
            request_date=data.request_date,
            requested_check_in=check_in,
            requested_check_out=check_out,
            original_check_in=_local_hhmmss(existing.clock_in_at) if existing else None,
            original_check_out=_local_hhmmss(existing.clock_out_at) if existing else None,
            reason=data.reason.strip(),
            status=PENDING,
        )
        db.add(correction)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="correction_request",
            entity_id=correction.id,
            actor_id=employee_id,
            new_values={
                "request_date": data.request_date.isoformat(),
                "requested_check_in": check_in,
                "requested_check_out": check_out,
            },
        )
        return correction
