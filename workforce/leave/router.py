"""Leave router — apply for leave, read balances.

Decisions on leave requests are made through the approvals router.
"""


from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.auth.dependencies import get_current_employee
from workforce.database import get_db
from workforce.employees.models import Employee
from workforce.leave.schemas import LeaveBalanceOut, LeaveRequestCreate, LeaveRequestOut
from workforce.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


# ── POST /apply ─────────────────────────────────────────────────────

@router.post("/apply", response_model=LeaveRequestOut, status_code=201)
async def apply_leave(
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave. Validates overlap and available balance."""
    return await LeaveService.apply_leave(db, employee.id, body)


# ── GET /balances ───────────────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def my_balances(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    """Leave balances of the current user."""
    return await LeaveService.get_balances(db, employee.id, year)
