"""System settings router — virtual system clock (HR admin only)."""


from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.auth.dependencies import CurrentActor, require_role
from workforce.common.clock import (
    get_clock_config,
    load_time_provider,
    reset_clock,
    set_virtual_time,
)
from workforce.common.constants import UserRole
from workforce.database import get_db

router = APIRouter(prefix="", tags=["settings"])


class SystemClockUpdate(BaseModel):
    desired_time: datetime


class SystemClockOut(BaseModel):
    enabled: bool
    current_time: datetime
    desired_time: Optional[str] = None
    reference_server_time: Optional[str] = None
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None


async def _clock_out(db: AsyncSession, config: dict[str, Any]) -> SystemClockOut:
    clock = await load_time_provider(db)
    return SystemClockOut(
        enabled=bool(config.get("enabled")),
        current_time=clock(),
        desired_time=config.get("desired_time"),
        reference_server_time=config.get("reference_server_time"),
        updated_at=config.get("updated_at"),
        updated_by=config.get("updated_by"),
    )


# ── GET /system-clock ───────────────────────────────────────────────

@router.get("/system-clock", response_model=SystemClockOut)
async def get_system_clock(
    actor: CurrentActor = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    """Current clock configuration and the time it yields right now."""
    return await _clock_out(db, await get_clock_config(db))


# ── PUT /system-clock ───────────────────────────────────────────────

@router.put("/system-clock", response_model=SystemClockOut)
async def put_system_clock(
    body: SystemClockUpdate,
    actor: CurrentActor = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    """Anchor the virtual clock at ``desired_time``; it keeps ticking from there."""
    config = await set_virtual_time(
        db, body.desired_time, actor_id=actor.employee.id if actor.employee else None,
    )
    return await _clock_out(db, config)


# ── DELETE /system-clock ────────────────────────────────────────────

@router.delete("/system-clock", response_model=SystemClockOut)
async def delete_system_clock(
    actor: CurrentActor = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    """Back to real server time."""
    config = await reset_clock(db, actor_id=actor.employee.id if actor.employee else None)
    return await _clock_out(db, config)
