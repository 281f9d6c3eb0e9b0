"""Overtime router — submit overtime requests."""


from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.auth.dependencies import get_current_employee
from workforce.database import get_db
from workforce.employees.models import Employee
from workforce.overtime.schemas import OvertimeRequestCreate, OvertimeRequestOut
from workforce.overtime.service import OvertimeService

router = APIRouter(prefix="", tags=["overtime"])


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=OvertimeRequestOut, status_code=201)
async def request_overtime(
    body: OvertimeRequestCreate,
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    """Ask for overtime on a given day; approved by the direct manager."""
    return await OvertimeService.request_overtime(db, employee.id, body)
