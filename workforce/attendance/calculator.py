"""Day-status calculator — one authoritative status and minute breakdown per employee-day.

Facts for the day (schedule, holiday, recovery declaration, approved leave,
approved overtime, declared overtime periods) are loaded once into a
``DayFacts`` value, then ``evaluate_day`` runs an ordered list of rules:

  1. recovery day to work     → continue, force ``recovery`` at the end
  2. recovery day off         → ``recovery_off``
  3. public holiday           → ``holiday`` (continue to minutes if an overtime period
                                 is declared; rules 4 and 5 are then skipped)
  4. approved leave           → ``sick`` / ``mission`` / ``training`` / ``leave``
  5. non-working day          → ``weekend``
  6. no clock-in              → ``absent`` (anomaly)
  7. no clock-out yet         → ``late`` / ``pending``

A rule yields ``Terminal`` (stop, this is the answer) or
``ContinueAndOverride`` (keep going; an optional status is forced onto the
final result). Days that pass every rule get the full minute computation.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional, Sequence, Union

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.common.clock import to_local
from workforce.common.constants import (
    APPROVED,
    ISO_SATURDAY,
    ISO_SUNDAY,
    LEAVE_CODE_STATUS,
    OVERTIME_RATE_PRIORITY,
    DayStatus,
    RecordStatus,
    SpecialDay,
)
from workforce.config import settings
from workforce.employees.models import Employee
from workforce.employees.service import EmployeeDirectory
from workforce.holidays.models import PublicHoliday, RecoveryDeclaration, RecoveryPeriod
from workforce.leave.models import LeaveRequest, LeaveType
from workforce.overtime.models import OvertimePeriod, OvertimePeriodEmployee, OvertimeRequest
from workforce.schedules.service import NOT_SCHEDULED, ScheduledTimes, ScheduleResolver

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# Facts and result
# ═════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class RecoveryFact:
    period_name: str
    is_day_off: bool


@dataclass(frozen=True)
class LeaveFact:
    code: str
    name: str


@dataclass(frozen=True)
class OvertimePeriodFact:
    start_time: time
    end_time: time
    rate_type: str
    name: str = ""


@dataclass(frozen=True)
class DayFacts:
    """Everything the rules may consult for one employee-day."""

    work_date: date
    times: ScheduledTimes = NOT_SCHEDULED
    has_schedule: bool = False
    schedule_name: Optional[str] = None
    break_minutes: int = 0
    tolerance_late: Optional[int] = None
    tolerance_early_leave: Optional[int] = None
    holiday_name: Optional[str] = None
    recovery: Optional[RecoveryFact] = None
    leave: Optional[LeaveFact] = None
    approved_overtime_hours: Optional[Decimal] = None
    overtime_periods: tuple[OvertimePeriodFact, ...] = ()

    @property
    def must_work_recovery(self) -> bool:
        return self.recovery is not None and not self.recovery.is_day_off

    @property
    def is_iso_weekend(self) -> bool:
        return self.work_date.isoweekday() in (ISO_SATURDAY, ISO_SUNDAY)


@dataclass
class DayStatusResult:
    work_date: date
    status: DayStatus = DayStatus.pending
    is_working_day: bool = False
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
    special_day: Optional[dict] = None


@dataclass(frozen=True)
class Punches:
    """Clock events as minutes since local midnight."""

    clock_in: Optional[int] = None
    clock_out: Optional[int] = None


@dataclass(frozen=True)
class Terminal:
    result: DayStatusResult


@dataclass(frozen=True)
class ContinueAndOverride:
    status: Optional[DayStatus] = None
    notes: Optional[str] = None
    special_day: Optional[dict] = field(default=None, hash=False)


Outcome = Union[Terminal, ContinueAndOverride]
Rule = Callable[[DayFacts, Punches, DayStatusResult], Optional[Outcome]]


# ── Minute helpers ──────────────────────────────────────────────────

def time_to_minutes(value: Optional[time]) -> Optional[int]:
    if value is None:
        return None
    return value.hour * 60 + value.minute


def timestamp_to_minutes(value: Optional[datetime]) -> Optional[int]:
    """Minutes since midnight in the configured local timezone."""
    if value is None:
        return None
    local = to_local(value)
    return local.hour * 60 + local.minute


def overlap_minutes(start_a: int, end_a: int, start_b: int, end_b: int) -> int:
    return max(0, min(end_a, end_b) - max(start_a, start_b))


def _late_tolerance(facts: DayFacts) -> int:
    if facts.tolerance_late is None:
        return settings.DEFAULT_TOLERANCE_MINUTES
    return facts.tolerance_late


def _early_tolerance(facts: DayFacts) -> int:
    if facts.tolerance_early_leave is None:
        return settings.DEFAULT_TOLERANCE_MINUTES
    return facts.tolerance_early_leave


def _late_minutes(facts: DayFacts, punches: Punches) -> int:
    start = time_to_minutes(facts.times.scheduled_start)
    if start is None or punches.clock_in is None:
        return 0
    diff = punches.clock_in - start
    return diff if diff > _late_tolerance(facts) else 0


def _scheduled_net_minutes(facts: DayFacts) -> Optional[int]:
    start = time_to_minutes(facts.times.scheduled_start)
    end = time_to_minutes(facts.times.scheduled_end)
    if start is None or end is None:
        return None
    return end - start - facts.break_minutes


# ═════════════════════════════════════════════════════════════════════
# Rules, in priority order
# ═════════════════════════════════════════════════════════════════════


def recovery_workday(facts: DayFacts, punches: Punches, result: DayStatusResult) -> Optional[Outcome]:
    if not facts.must_work_recovery:
        return None
    name = facts.recovery.period_name
    if facts.holiday_name:
        return ContinueAndOverride(
            status=DayStatus.recovery,
            notes=f"Recovery (public holiday {facts.holiday_name}): {name}",
            special_day={
                "type": SpecialDay.recovery.value,
                "name": name,
                "is_holiday": True,
                "holiday_name": facts.holiday_name,
            },
        )
    return ContinueAndOverride(
        status=DayStatus.recovery,
        notes=f"Recovery: {name}",
        special_day={"type": SpecialDay.recovery.value, "name": name, "is_holiday": False},
    )


def recovery_day_off(facts: DayFacts, punches: Punches, result: DayStatusResult) -> Optional[Outcome]:
    if facts.recovery is None or not facts.recovery.is_day_off:
        return None
    hours = settings.DEFAULT_RECOVERY_HOURS
    scheduled = _scheduled_net_minutes(facts)
    if scheduled is not None:
        hours = int((Decimal(scheduled) / 60).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    name = facts.recovery.period_name
    return Terminal(dataclasses.replace(
        result,
        status=DayStatus.recovery_off,
        hours_to_recover=hours,
        notes=f"Day off granted: {name} - {hours}h to recover",
        special_day={
            "type": SpecialDay.recovery_off.value,
            "name": name,
            "is_day_off": True,
            "hours_to_recover": hours,
        },
    ))


def _holiday_overtime(facts: DayFacts) -> bool:
    """Public holiday with a declared overtime period: minutes are computed from punches."""
    return bool(facts.holiday_name and facts.overtime_periods and facts.recovery is None)


def public_holiday(facts: DayFacts, punches: Punches, result: DayStatusResult) -> Optional[Outcome]:
    if facts.holiday_name is None or facts.recovery is not None:
        return None
    if _holiday_overtime(facts):
        return ContinueAndOverride(
            notes=f"Public holiday (overtime): {facts.holiday_name}",
            special_day={"type": SpecialDay.holiday_overtime.value, "name": facts.holiday_name},
        )
    return Terminal(dataclasses.replace(
        result,
        status=DayStatus.holiday,
        notes=f"Public holiday: {facts.holiday_name}",
        special_day={"type": SpecialDay.holiday.value, "name": facts.holiday_name},
    ))


def approved_leave(facts: DayFacts, punches: Punches, result: DayStatusResult) -> Optional[Outcome]:
    if facts.leave is None or _holiday_overtime(facts):
        return None
    status = LEAVE_CODE_STATUS.get((facts.leave.code or "").lower(), DayStatus.leave)
    return Terminal(dataclasses.replace(
        result,
        status=status,
        notes=f"Leave: {facts.leave.name}",
        special_day={"type": SpecialDay.leave.value, "name": facts.leave.name},
    ))


def non_working_day(facts: DayFacts, punches: Punches, result: DayStatusResult) -> Optional[Outcome]:
    if _holiday_overtime(facts):
        return None
    if facts.has_schedule and not facts.times.is_working_day:
        return Terminal(dataclasses.replace(result, status=DayStatus.weekend))
    if not facts.has_schedule and facts.is_iso_weekend:
        return Terminal(dataclasses.replace(
            result, status=DayStatus.weekend, notes="Weekend (default schedule)",
        ))
    return None


def missing_clock_in(facts: DayFacts, punches: Punches, result: DayStatusResult) -> Optional[Outcome]:
    if punches.clock_in is not None:
        return None
    return Terminal(dataclasses.replace(result, status=DayStatus.absent, is_anomaly=True))


def open_day(facts: DayFacts, punches: Punches, result: DayStatusResult) -> Optional[Outcome]:
    if punches.clock_out is not None:
        return None
    late = _late_minutes(facts, punches)
    return Terminal(dataclasses.replace(
        result,
        late_minutes=late,
        status=DayStatus.late if late > 0 else DayStatus.pending,
    ))


DAY_RULES: tuple[Rule, ...] = (
    recovery_workday,
    recovery_day_off,
    public_holiday,
    approved_leave,
    non_working_day,
    missing_clock_in,
    open_day,
)


# ═════════════════════════════════════════════════════════════════════
# Minute computation (both punches present)
# ═════════════════════════════════════════════════════════════════════


def _compute_worked_day(facts: DayFacts, punches: Punches, result: DayStatusResult) -> DayStatusResult:
    clock_in, clock_out = punches.clock_in, punches.clock_out
    start = time_to_minutes(facts.times.scheduled_start)
    end = time_to_minutes(facts.times.scheduled_end)

    result.late_minutes = _late_minutes(facts, punches)

    # Time outside the scheduled window only counts through overtime
    effective_start = max(clock_in, start) if start is not None else clock_in
    effective_end = min(clock_out, end) if end is not None else clock_out
    gross = max(0, effective_end - effective_start)
    deduction = (
        facts.break_minutes
        if gross >= settings.BREAK_DEDUCTION_THRESHOLD_MINUTES
        else 0
    )
    result.gross_worked_minutes = gross
    result.net_worked_minutes = max(0, gross - deduction)
    result.break_deducted = deduction > 0
    result.early_arrival_minutes = max(0, start - clock_in) if start is not None else 0

    if end is not None:
        diff = end - clock_out
        if diff > _early_tolerance(facts):
            result.early_leave_minutes = diff

    if facts.approved_overtime_hours is not None and end is not None and clock_out > end:
        cap = int(Decimal(facts.approved_overtime_hours) * 60)
        result.overtime_minutes = min(clock_out - end, cap)

    period_minutes = 0
    best_rate: Optional[str] = None
    for period in facts.overtime_periods:
        overlap = overlap_minutes(
            clock_in, clock_out,
            time_to_minutes(period.start_time), time_to_minutes(period.end_time),
        )
        if overlap <= 0:
            continue
        period_minutes += overlap
        if best_rate is None or (
            OVERTIME_RATE_PRIORITY.get(period.rate_type, 0)
            > OVERTIME_RATE_PRIORITY.get(best_rate, 0)
        ):
            best_rate = period.rate_type
    if period_minutes > 0:
        result.overtime_minutes = max(result.overtime_minutes, period_minutes)
        result.overtime_rate_type = best_rate

    if period_minutes > 0:
        result.status = DayStatus.overtime
    elif result.late_minutes > 0 and result.early_leave_minutes > 0:
        result.status = DayStatus.partial
    elif result.late_minutes > 0:
        result.status = DayStatus.late
    elif result.early_leave_minutes > 0:
        result.status = DayStatus.early_leave
    else:
        expected = _scheduled_net_minutes(facts)
        if expected is None or result.net_worked_minutes >= expected * settings.PRESENT_RATIO:
            result.status = DayStatus.present
        else:
            result.status = DayStatus.partial
    return result


# ═════════════════════════════════════════════════════════════════════
# Rule runner
# ═════════════════════════════════════════════════════════════════════


def _base_result(facts: DayFacts) -> DayStatusResult:
    return DayStatusResult(
        work_date=facts.work_date,
        is_working_day=facts.times.is_working_day,
        scheduled_start=facts.times.scheduled_start if facts.has_schedule else None,
        scheduled_end=facts.times.scheduled_end if facts.has_schedule else None,
        scheduled_break_minutes=facts.break_minutes if facts.has_schedule else 0,
    )


def evaluate_day(
    facts: DayFacts,
    clock_in: Optional[datetime] = None,
    clock_out: Optional[datetime] = None,
    *,
    rules: Sequence[Rule] = DAY_RULES,
) -> DayStatusResult:
    """Pure evaluation of one day; no I/O."""
    punches = Punches(timestamp_to_minutes(clock_in), timestamp_to_minutes(clock_out))
    result = _base_result(facts)
    overrides: list[ContinueAndOverride] = []

    for rule in rules:
        outcome = rule(facts, punches, result)
        if outcome is None:
            continue
        if isinstance(outcome, Terminal):
            return outcome.result
        if outcome.status is None:
            result.notes = outcome.notes
            result.special_day = outcome.special_day
        else:
            overrides.append(outcome)

    result = _compute_worked_day(facts, punches, result)
    for override in overrides:
        result.status = override.status
        result.notes = override.notes
        result.special_day = override.special_day
    return result


# ═════════════════════════════════════════════════════════════════════
# Fact loading
# ═════════════════════════════════════════════════════════════════════


async def _holiday_name(db: AsyncSession, work_date: date) -> Optional[str]:
    result = await db.execute(
        select(PublicHoliday.name).where(PublicHoliday.holiday_date == work_date)
    )
    return result.scalars().first()


async def _recovery(db: AsyncSession, employee: Employee, work_date: date) -> Optional[RecoveryFact]:
    in_scope = and_(
        or_(RecoveryDeclaration.department_id.is_(None),
            RecoveryDeclaration.department_id == employee.department_id),
        or_(RecoveryDeclaration.segment_id.is_(None),
            RecoveryDeclaration.segment_id == employee.segment_id),
        or_(RecoveryDeclaration.centre_id.is_(None),
            RecoveryDeclaration.centre_id == employee.centre_id),
    )
    result = await db.execute(
        select(RecoveryDeclaration.is_day_off, RecoveryPeriod.name)
        .join(RecoveryPeriod, RecoveryPeriod.id == RecoveryDeclaration.period_id)
        .where(
            RecoveryDeclaration.recovery_date == work_date,
            RecoveryDeclaration.status == RecordStatus.active.value,
            RecoveryPeriod.status == RecordStatus.active.value,
            or_(RecoveryPeriod.applies_to_all.is_(True), in_scope),
        )
        .order_by(RecoveryDeclaration.created_at.desc())
        .limit(1)
    )
    row = result.first()
    if row is None:
        return None
    return RecoveryFact(period_name=row.name, is_day_off=bool(row.is_day_off))


async def _approved_leave(db: AsyncSession, employee_id: uuid.UUID, work_date: date) -> Optional[LeaveFact]:
    result = await db.execute(
        select(LeaveType.code, LeaveType.name)
        .join(LeaveRequest, LeaveRequest.leave_type_id == LeaveType.id)
        .where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status == APPROVED,
            LeaveRequest.start_date <= work_date,
            LeaveRequest.end_date >= work_date,
        )
        .order_by(LeaveRequest.created_at.desc())
        .limit(1)
    )
    row = result.first()
    return LeaveFact(code=row.code, name=row.name) if row else None


async def _approved_overtime_hours(
    db: AsyncSession, employee_id: uuid.UUID, work_date: date,
) -> Optional[Decimal]:
    result = await db.execute(
        select(OvertimeRequest.estimated_hours)
        .where(
            OvertimeRequest.employee_id == employee_id,
            OvertimeRequest.request_date == work_date,
            OvertimeRequest.status == APPROVED,
        )
        .order_by(OvertimeRequest.created_at.desc())
        .limit(1)
    )
    return result.scalars().first()


async def _overtime_periods(
    db: AsyncSession, employee_id: uuid.UUID, work_date: date,
) -> tuple[OvertimePeriodFact, ...]:
    result = await db.execute(
        select(OvertimePeriod)
        .join(OvertimePeriodEmployee, OvertimePeriodEmployee.period_id == OvertimePeriod.id)
        .where(
            OvertimePeriodEmployee.employee_id == employee_id,
            OvertimePeriod.period_date == work_date,
            OvertimePeriod.status == RecordStatus.active.value,
        )
        .order_by(OvertimePeriod.start_time)
    )
    return tuple(
        OvertimePeriodFact(p.start_time, p.end_time, p.rate_type, p.name)
        for p in result.scalars().all()
    )


async def load_day_facts(db: AsyncSession, employee: Employee, work_date: date) -> DayFacts:
    schedule = await ScheduleResolver.get_schedule_for_date(db, employee.id, work_date)
    times = ScheduleResolver.scheduled_times_for_date(schedule, work_date)
    facts = DayFacts(
        work_date=work_date,
        times=times,
        has_schedule=schedule is not None,
        schedule_name=schedule.name if schedule else None,
        break_minutes=(schedule.break_duration_minutes or 0) if schedule else 0,
        tolerance_late=schedule.tolerance_late_minutes if schedule else None,
        tolerance_early_leave=schedule.tolerance_early_leave_minutes if schedule else None,
        holiday_name=await _holiday_name(db, work_date),
        recovery=await _recovery(db, employee, work_date),
        leave=await _approved_leave(db, employee.id, work_date),
        approved_overtime_hours=await _approved_overtime_hours(db, employee.id, work_date),
        overtime_periods=await _overtime_periods(db, employee.id, work_date),
    )
    logger.debug("Day facts for %s on %s: %s", employee.id, work_date, facts)
    return facts


async def resolve_day_status(
    db: AsyncSession,
    employee_id: uuid.UUID,
    work_date: date,
    clock_in: Optional[datetime] = None,
    clock_out: Optional[datetime] = None,
) -> DayStatusResult:
    """Load the day's facts and evaluate them against the given punches."""
    employee = await EmployeeDirectory.get_or_404(db, employee_id)
    facts = await load_day_facts(db, employee, work_date)
    return evaluate_day(facts, clock_in, clock_out)
