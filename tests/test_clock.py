"""Time source — wall clock, virtual clock, persisted configuration."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from workforce.common.clock import (
    SYSTEM_CLOCK_KEY,
    VirtualClock,
    load_time_provider,
    reset_clock,
    set_virtual_time,
    system_now,
    to_local,
)
from workforce.common.constants import UserRole
from workforce.common.models import AppSetting
from tests.conftest import auth_headers_for, seed_employee

REAL = datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc)


class _FakeRealClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class TestVirtualClock:

    def test_keeps_ticking_from_anchor(self):
        real = _FakeRealClock(REAL)
        desired = datetime(2025, 1, 15, 8, 0, tzinfo=timezone.utc)
        clock = VirtualClock(desired, REAL, real)

        assert clock() == desired
        real.now = REAL + timedelta(minutes=90)
        assert clock() == desired + timedelta(minutes=90)

    def test_to_local_treats_naive_as_local(self):
        naive = datetime(2025, 1, 15, 8, 0)
        assert to_local(naive).hour == 8
        assert to_local(naive).tzinfo is not None


async def test_default_provider_is_wall_clock(db):
    assert await load_time_provider(db) is system_now


async def test_set_and_reset_virtual_time(db):
    real = _FakeRealClock(REAL)
    desired = datetime(2025, 1, 15, 8, 0, tzinfo=timezone.utc)

    config = await set_virtual_time(db, desired, real_clock=real)
    assert config["enabled"] is True

    real.now = REAL + timedelta(hours=2)
    provider = await load_time_provider(db, real_clock=real)
    assert provider() == desired + timedelta(hours=2)

    await reset_clock(db, real_clock=real)
    assert await load_time_provider(db, real_clock=real) is real


async def test_malformed_setting_falls_back_to_real_clock(db):
    db.add(AppSetting(key=SYSTEM_CLOCK_KEY, value={"enabled": True, "desired_time": "soon"}))
    await db.flush()

    assert await load_time_provider(db) is system_now


async def test_system_clock_api_requires_hr(client, db):
    employee = await seed_employee(db)
    hr = await seed_employee(db, first_name="Nadia")
    await db.commit()

    denied = await client.get("/api/v1/settings/system-clock", headers=auth_headers_for(employee))
    assert denied.status_code == 403

    headers = auth_headers_for(hr, UserRole.hr_admin)
    resp = await client.put(
        "/api/v1/settings/system-clock",
        json={"desired_time": "2025-01-15T08:00:00+01:00"},
        headers=headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["enabled"] is True
    assert body["current_time"].startswith("2025-01-15")

    off = await client.delete("/api/v1/settings/system-clock", headers=headers)
    assert off.status_code == 200
    assert off.json()["enabled"] is False

    row = (await db.execute(
        select(AppSetting).where(AppSetting.key == SYSTEM_CLOCK_KEY)
        .execution_options(populate_existing=True)
    )).scalars().one()
    assert row.value["enabled"] is False
