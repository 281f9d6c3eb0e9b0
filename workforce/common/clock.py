"""Time source for clock events — wall clock or an admin-anchored virtual clock.

Every operation asks its provider for "now" exactly once and uses that
instant throughout. The virtual clock keeps ticking from the anchor:
``desired_time + (real_now - reference_real_time)``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.common.models import AppSetting
from workforce.config import settings

logger = logging.getLogger(__name__)

SYSTEM_CLOCK_KEY = "system_clock"

TimeProvider = Callable[[], datetime]


def system_now() -> datetime:
    """Real wall-clock time (UTC, tz-aware)."""
    return datetime.now(timezone.utc)


def local_zone() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def to_local(moment: datetime) -> datetime:
    """Express ``moment`` in the configured local timezone.

    Naive values are taken to already be local wall-clock time (SQLite
    hands timestamps back without an offset).
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=local_zone())
    return moment.astimezone(local_zone())


@dataclass(frozen=True)
class VirtualClock:
    """A clock anchored at ``desired_time`` when real time was ``reference_real_time``."""

    desired_time: datetime
    reference_real_time: datetime
    real_clock: TimeProvider = system_now

    def __call__(self) -> datetime:
        return self.desired_time + (self.real_clock() - self.reference_real_time)


# ── Persistence (app_settings row) ──────────────────────────────────

def _parse_instant(raw: str) -> datetime:
    value = datetime.fromisoformat(raw)
    if value.tzinfo is None:
        value = value.replace(tzinfo=local_zone())
    return value


async def _get_setting(db: AsyncSession) -> Optional[AppSetting]:
    result = await db.execute(
        select(AppSetting).where(AppSetting.key == SYSTEM_CLOCK_KEY)
    )
    return result.scalars().first()


async def get_clock_config(db: AsyncSession) -> dict[str, Any]:
    row = await _get_setting(db)
    if row is None or not row.value:
        return {"enabled": False}
    return dict(row.value)


async def load_time_provider(
    db: AsyncSession,
    real_clock: TimeProvider = system_now,
) -> TimeProvider:
    """Return the virtual clock when enabled, otherwise the wall clock."""
    config = await get_clock_config(db)
    if not config.get("enabled"):
        return real_clock
    try:
        desired = _parse_instant(config["desired_time"])
        reference = _parse_instant(config["reference_server_time"])
    except (KeyError, TypeError, ValueError):
        logger.error("Ignoring malformed %s setting: %r", SYSTEM_CLOCK_KEY, config)
        return real_clock
    return VirtualClock(desired, reference, real_clock)


async def set_virtual_time(
    db: AsyncSession,
    desired_time: datetime,
    *,
    actor_id: Optional[uuid.UUID] = None,
    real_clock: TimeProvider = system_now,
) -> dict[str, Any]:
    """Anchor the virtual clock at ``desired_time`` as of the current real instant."""
    reference = real_clock()
    if desired_time.tzinfo is None:
        desired_time = desired_time.replace(tzinfo=local_zone())
    value = {
        "enabled": True,
        "desired_time": desired_time.isoformat(),
        "reference_server_time": reference.isoformat(),
        "updated_at": reference.isoformat(),
        "updated_by": str(actor_id) if actor_id else None,
    }
    row = await _get_setting(db)
    if row is None:
        row = AppSetting(
            key=SYSTEM_CLOCK_KEY,
            value=value,
            description="Virtual system clock",
            updated_by=actor_id,
        )
        db.add(row)
    else:
        row.value = value
        row.updated_by = actor_id
    await db.flush()
    logger.info("Virtual clock set to %s (reference %s)", desired_time, reference)
    return value


async def reset_clock(
    db: AsyncSession,
    *,
    actor_id: Optional[uuid.UUID] = None,
    real_clock: TimeProvider = system_now,
) -> dict[str, Any]:
    """Disable the virtual clock; the wall clock applies again."""
    now = real_clock()
    value = {
        "enabled": False,
        "updated_at": now.isoformat(),
        "updated_by": str(actor_id) if actor_id else None,
    }
    row = await _get_setting(db)
    if row is not None:
        row.value = value
        row.updated_by = actor_id
        await db.flush()
    logger.info("Virtual clock reset to real time")
    return value
