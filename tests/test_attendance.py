"""Attendance service and API — clock events, recalculation, corrections.

Tests run against SQLite via the shared conftest.py fixtures.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time

import pytest
from sqlalchemy import select

from workforce.attendance.corrections import CorrectionApplier, normalize_time
from workforce.attendance.models import AttendanceDailyRecord, CorrectionRequest
from workforce.attendance.schemas import CorrectionCreate
from workforce.attendance.service import AttendanceService
from workforce.common.clock import local_zone
from workforce.common.constants import UserRole
from workforce.common.exceptions import (
    ConflictError,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from workforce.dependencies import get_time_provider
from workforce.holidays.models import PublicHoliday
from tests.conftest import auth_headers_for, seed_chain, seed_employee, seed_schedule

MONDAY = date(2025, 3, 3)


def _at(hour: int, minute: int = 0, day: date = MONDAY) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=local_zone())


# ═════════════════════════════════════════════════════════════════════
# Clock in / out
# ═════════════════════════════════════════════════════════════════════


async def test_clock_in_creates_day_record(db):
    employee = await seed_employee(db)
    await seed_schedule(db, employee)

    record = await AttendanceService.clock_in(db, employee.id, _at(9, 40))
    assert record.work_date == MONDAY
    assert record.day_status == "late"
    assert record.late_minutes == 40
    assert record.source == "clock"
    assert record.clock_out_at is None


async def test_clock_in_twice_conflicts(db):
    employee = await seed_employee(db)
    await seed_schedule(db, employee)
    await AttendanceService.clock_in(db, employee.id, _at(9, 0))

    with pytest.raises(ConflictError):
        await AttendanceService.clock_in(db, employee.id, _at(9, 5))


async def test_clock_out_computes_minutes(db):
    employee = await seed_employee(db)
    await seed_schedule(db, employee)
    await AttendanceService.clock_in(db, employee.id, _at(9, 0))

    record = await AttendanceService.clock_out(db, employee.id, _at(18, 0))
    assert record.day_status == "present"
    assert record.gross_worked_minutes == 540
    assert record.net_worked_minutes == 480
    assert record.clock_in_at.time() == time(9, 0)
    assert record.clock_out_at.time() == time(18, 0)

    rows = (await db.execute(select(AttendanceDailyRecord))).scalars().all()
    assert len(rows) == 1


async def test_clock_out_rules(db):
    employee = await seed_employee(db)
    await seed_schedule(db, employee)

    with pytest.raises(ValidationException):
        await AttendanceService.clock_out(db, employee.id, _at(18, 0))

    await AttendanceService.clock_in(db, employee.id, _at(9, 0))
    await AttendanceService.clock_out(db, employee.id, _at(18, 0))
    with pytest.raises(ConflictError):
        await AttendanceService.clock_out(db, employee.id, _at(18, 5))


async def test_clock_in_unknown_employee(db):
    with pytest.raises(NotFoundException):
        await AttendanceService.clock_in(db, uuid.uuid4(), _at(9, 0))


# ═════════════════════════════════════════════════════════════════════
# Recalculation
# ═════════════════════════════════════════════════════════════════════


async def test_recalculate_after_holiday_declared(db):
    employee = await seed_employee(db)
    await seed_schedule(db, employee)
    await AttendanceService.clock_in(db, employee.id, _at(9, 0))

    db.add(PublicHoliday(id=uuid.uuid4(), holiday_date=MONDAY, name="Aïd"))
    await db.flush()

    record = await AttendanceService.recalculate_day(db, employee.id, MONDAY, _at(20, 0))
    assert record.day_status == "holiday"
    assert record.special_day == {"type": "holiday", "name": "Aïd"}
    # Punches survive a recalculation
    assert record.clock_in_at is not None
    assert record.source == "clock"


async def test_recalculate_creates_missing_day(db):
    employee = await seed_employee(db)
    await seed_schedule(db, employee)

    record = await AttendanceService.recalculate_day(db, employee.id, MONDAY, _at(20, 0))
    assert record.day_status == "absent"
    assert record.is_anomaly is True
    assert record.source == "recalculation"


# ═════════════════════════════════════════════════════════════════════
# Corrections
# ═════════════════════════════════════════════════════════════════════


class TestNormalizeTime:

    def test_accepted_forms(self):
        assert normalize_time("8:30") == "08:30:00"
        assert normalize_time("08:30:15") == "08:30:15"
        assert normalize_time("08:30:15.250") == "08:30:15"
        assert normalize_time("2025-03-03T17:05:00") == "17:05:00"
        assert normalize_time(time(7, 5)) == "07:05:00"
        assert normalize_time("  ") is None
        assert normalize_time(None) is None

    @pytest.mark.parametrize("raw", ["25:00", "08:61", "8h30", "soon"])
    def test_rejected_forms(self, raw):
        with pytest.raises(ValueError):
            normalize_time(raw)


async def test_submit_correction_copies_originals(db):
    employee = await seed_employee(db)
    await seed_schedule(db, employee)
    await AttendanceService.clock_in(db, employee.id, _at(9, 45))

    correction = await AttendanceService.submit_correction(
        db,
        employee.id,
        CorrectionCreate(request_date=MONDAY, requested_check_in="09:00", reason="Badge oublié"),
    )
    assert correction.status == "pending"
    assert correction.requested_check_in == "09:00:00"
    assert correction.requested_check_out is None
    assert correction.original_check_in == "09:45:00"


async def test_submit_correction_validation(db):
    employee = await seed_employee(db)

    with pytest.raises(ValidationException) as exc_info:
        await AttendanceService.submit_correction(
            db, employee.id, CorrectionCreate(request_date=MONDAY, reason=" "),
        )
    assert set(exc_info.value.errors) == {"reason", "requested_check_in"}

    with pytest.raises(ValidationException) as exc_info:
        await AttendanceService.submit_correction(
            db,
            employee.id,
            CorrectionCreate(
                request_date=MONDAY,
                requested_check_in="17:00",
                requested_check_out="09:00",
                reason="Inversé",
            ),
        )
    assert "requested_check_out" in exc_info.value.errors


async def test_one_open_correction_per_day(db):
    employee = await seed_employee(db)
    payload = CorrectionCreate(request_date=MONDAY, requested_check_out="17:00", reason="Oubli")
    await AttendanceService.submit_correction(db, employee.id, payload)

    with pytest.raises(InvalidStateException):
        await AttendanceService.submit_correction(db, employee.id, payload)

    count = len((await db.execute(select(CorrectionRequest))).scalars().all())
    assert count == 1


async def test_applied_correction_merges_into_clocked_day(db):
    employee = await seed_employee(db)
    await seed_schedule(db, employee)
    await AttendanceService.clock_in(db, employee.id, _at(9, 40))
    await AttendanceService.clock_out(db, employee.id, _at(18, 0))

    correction = CorrectionRequest(
        id=uuid.uuid4(),
        employee_id=employee.id,
        request_date=MONDAY,
        requested_check_in="08:30",
        reason="Badge en panne",
        status="approved",
    )
    db.add(correction)
    await db.flush()
    await CorrectionApplier.apply(db, correction, now=_at(20, 0))

    rows = (await db.execute(
        select(AttendanceDailyRecord)
        .where(AttendanceDailyRecord.employee_id == employee.id)
        .execution_options(populate_existing=True)
    )).scalars().all()
    assert len(rows) == 1
    assert rows[0].clock_in_at.time() == time(8, 30)
    assert rows[0].clock_out_at.time() == time(18, 0)
    assert rows[0].day_status == "present"
    assert rows[0].source == "correction"
    assert rows[0].notes.endswith("Correction approved")


# ═════════════════════════════════════════════════════════════════════
# API
# ═════════════════════════════════════════════════════════════════════


@pytest.fixture
def frozen_clock(app):
    """Pin the request clock to Monday 09:20 local time."""
    app.dependency_overrides[get_time_provider] = lambda: (lambda: _at(9, 20))
    return _at(9, 20)


async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


async def test_api_requires_token(client):
    resp = await client.post("/api/v1/attendance/clock-in")
    assert resp.status_code == 401


async def test_api_clock_in_and_out(client, db, frozen_clock):
    employee = await seed_employee(db)
    await seed_schedule(db, employee)
    await db.commit()
    headers = auth_headers_for(employee)

    resp = await client.post("/api/v1/attendance/clock-in", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["day_status"] == "late"
    assert body["late_minutes"] == 20

    again = await client.post("/api/v1/attendance/clock-in", headers=headers)
    assert again.status_code == 409
    assert again.headers["content-type"].startswith("application/problem+json")


async def test_api_profile_without_employee_is_forbidden(client, frozen_clock):
    headers = {"Authorization": f"Bearer {_token(uuid.uuid4())}"}
    resp = await client.post("/api/v1/attendance/clock-in", headers=headers)
    assert resp.status_code == 403
    assert resp.json()["detail"] == "User is not an employee"


async def test_api_day_status_of_colleague_requires_manager(client, db, frozen_clock):
    employee = await seed_employee(db)
    colleague = await seed_employee(db)
    await seed_schedule(db, employee)
    await db.commit()

    denied = await client.get(
        f"/api/v1/attendance/day-status/{colleague.id}", headers=auth_headers_for(employee),
    )
    assert denied.status_code == 403

    own = await client.get(
        f"/api/v1/attendance/day-status/{employee.id}",
        params={"work_date": MONDAY.isoformat()},
        headers=auth_headers_for(employee),
    )
    assert own.status_code == 200
    assert own.json()["status"] == "absent"

    manager_view = await client.get(
        f"/api/v1/attendance/day-info/{employee.id}",
        headers=auth_headers_for(colleague, UserRole.manager),
    )
    assert manager_view.status_code == 200
    assert manager_view.json()["schedule"]["name"] == "Standard"


async def test_api_correction_then_approval(client, db, frozen_clock):
    employee = await seed_employee(db)
    manager = await seed_employee(db, first_name="Karim")
    await seed_chain(db, employee, [manager])
    await db.commit()

    created = await client.post(
        "/api/v1/attendance/corrections",
        json={"request_date": MONDAY.isoformat(), "requested_check_in": "08:55",
              "requested_check_out": "17:30", "reason": "Pointeuse en panne"},
        headers=auth_headers_for(employee),
    )
    assert created.status_code == 201
    correction_id = created.json()["id"]

    blocked = await client.post(
        f"/api/v1/approvals/correction/{correction_id}/approve",
        json={}, headers=auth_headers_for(employee),
    )
    assert blocked.status_code == 403
    assert blocked.json()["detail"] == "User is not the current approver"

    approved = await client.post(
        f"/api/v1/approvals/correction/{correction_id}/approve",
        json={"comment": "Vu"}, headers=auth_headers_for(manager, UserRole.manager),
    )
    assert approved.status_code == 200
    assert approved.json()["new_status"] == "approved"

    twice = await client.post(
        f"/api/v1/approvals/correction/{correction_id}/approve",
        json={}, headers=auth_headers_for(manager, UserRole.manager),
    )
    assert twice.status_code == 409


def _token(profile_id: uuid.UUID) -> str:
    from tests.conftest import create_access_token

    return create_access_token(profile_id)


def test_run_serves_app_with_uvicorn(monkeypatch):
    import uvicorn

    from workforce import main
    from workforce.config import settings

    calls = {}
    monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: calls.update(target=target, **kwargs))
    main.run()
    assert calls["target"] == "workforce.main:app"
    assert calls["host"] == settings.HOST
    assert calls["port"] == settings.PORT
