"""Attendance router — clock in/out, day status, recalculation, corrections.

All endpoints require authentication. Looking at or recalculating another
employee's day requires the manager role or above.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.attendance.schemas import (
    CorrectionCreate,
    CorrectionResponse,
    DailyRecordResponse,
    DayInfoResponse,
    DayStatusResponse,
    RecalculateRequest,
)
from workforce.attendance.service import AttendanceService
from workforce.auth.dependencies import (
    CurrentActor,
    get_current_actor,
    get_current_employee,
    require_role,
)
from workforce.common.clock import TimeProvider, to_local
from workforce.common.constants import UserRole
from workforce.common.exceptions import ForbiddenException
from workforce.common.rate_limit import WRITE_LIMIT, limiter
from workforce.database import get_db
from workforce.dependencies import get_time_provider
from workforce.employees.models import Employee

router = APIRouter(prefix="", tags=["attendance"])


def _ensure_can_view(actor: CurrentActor, employee_id: uuid.UUID) -> None:
    if actor.employee is not None and actor.employee.id == employee_id:
        return
    if not actor.has_role(UserRole.manager):
        raise ForbiddenException(detail="You can only view your own attendance.")


# ── POST /clock-in ──────────────────────────────────────────────────

@router.post("/clock-in", response_model=DailyRecordResponse)
@limiter.limit(WRITE_LIMIT)
async def clock_in(
    request: Request,
    employee: Employee = Depends(get_current_employee),
    clock: TimeProvider = Depends(get_time_provider),
    db: AsyncSession = Depends(get_db),
):
    """Record the first clock-in of today for the current user."""
    return await AttendanceService.clock_in(db, employee.id, clock())


# ── POST /clock-out ─────────────────────────────────────────────────

@router.post("/clock-out", response_model=DailyRecordResponse)
@limiter.limit(WRITE_LIMIT)
async def clock_out(
    request: Request,
    employee: Employee = Depends(get_current_employee),
    clock: TimeProvider = Depends(get_time_provider),
    db: AsyncSession = Depends(get_db),
):
    """Close today's attendance for the current user."""
    return await AttendanceService.clock_out(db, employee.id, clock())


# ── GET /day-status/{employee_id} ───────────────────────────────────

@router.get("/day-status/{employee_id}", response_model=DayStatusResponse)
async def day_status(
    employee_id: uuid.UUID,
    work_date: Optional[date] = Query(None),
    actor: CurrentActor = Depends(get_current_actor),
    clock: TimeProvider = Depends(get_time_provider),
    db: AsyncSession = Depends(get_db),
):
    """Preview the computed status of a day (defaults to today); nothing is stored."""
    _ensure_can_view(actor, employee_id)
    work_date = work_date or to_local(clock()).date()
    return await AttendanceService.get_day_status(db, employee_id, work_date)


# ── GET /day-info/{employee_id} ─────────────────────────────────────

@router.get("/day-info/{employee_id}", response_model=DayInfoResponse)
async def day_info(
    employee_id: uuid.UUID,
    work_date: Optional[date] = Query(None),
    actor: CurrentActor = Depends(get_current_actor),
    clock: TimeProvider = Depends(get_time_provider),
    db: AsyncSession = Depends(get_db),
):
    """Schedule, holiday, leave, recovery and overtime context for a day."""
    _ensure_can_view(actor, employee_id)
    work_date = work_date or to_local(clock()).date()
    return await AttendanceService.get_day_info(db, employee_id, work_date)


# ── POST /recalculate ───────────────────────────────────────────────

@router.post("/recalculate", response_model=DailyRecordResponse)
async def recalculate(
    body: RecalculateRequest,
    actor: CurrentActor = Depends(require_role(UserRole.manager)),
    clock: TimeProvider = Depends(get_time_provider),
    db: AsyncSession = Depends(get_db),
):
    """Re-run the day-status calculation on the stored punches."""
    return await AttendanceService.recalculate_day(
        db,
        body.employee_id,
        body.work_date,
        clock(),
        actor_id=actor.employee.id if actor.employee else None,
    )


# ── POST /corrections ───────────────────────────────────────────────

@router.post("/corrections", response_model=CorrectionResponse, status_code=201)
async def submit_correction(
    body: CorrectionCreate,
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    """Request a retroactive correction of the current user's clock times."""
    return await AttendanceService.submit_correction(db, employee.id, body)
