"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from workforce.common.constants import LeaveCategory, UserRole
from workforce.config import settings
from workforce.database import Base, get_db
from workforce.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import workforce.approvals.models  # noqa: F401
import workforce.attendance.models  # noqa: F401
import workforce.common.audit  # noqa: F401
import workforce.common.models  # noqa: F401
import workforce.employees.models  # noqa: F401
import workforce.holidays.models  # noqa: F401
import workforce.leave.models  # noqa: F401
import workforce.overtime.models  # noqa: F401
import workforce.schedules.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and uuid_generate_v4() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "uuid_generate_v4", 0, lambda: str(uuid.uuid4()),
    )

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from workforce.common.rate_limit import limiter
    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_employee(
    *,
    first_name: str = "Test",
    last_name: str = "User",
    profile_id: Optional[uuid.UUID] = None,
    department_id: Optional[uuid.UUID] = None,
    segment_id: Optional[uuid.UUID] = None,
    centre_id: Optional[uuid.UUID] = None,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        profile_id=profile_id or uuid.uuid4(),
        employee_code=f"EMP-{uuid.uuid4().hex[:6].upper()}",
        first_name=first_name,
        last_name=last_name,
        department_id=department_id,
        segment_id=segment_id,
        centre_id=centre_id,
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_schedule(
    *,
    name: str = "Standard",
    start: time = time(9, 0),
    end: time = time(18, 0),
    break_minutes: int = 60,
    working_days: Optional[list[int]] = None,
    is_default: bool = False,
    **weekday_times,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        start_time=start,
        end_time=end,
        break_duration_minutes=break_minutes,
        tolerance_late_minutes=15,
        tolerance_early_leave_minutes=15,
        working_days=working_days if working_days is not None else [1, 2, 3, 4, 5],
        is_default=is_default,
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
        **weekday_times,
    )


async def seed_employee(db: AsyncSession, **kwargs):
    from workforce.employees.models import Employee

    employee = Employee(**_make_employee(**kwargs))
    db.add(employee)
    await db.flush()
    return employee


async def seed_chain(db: AsyncSession, employee, managers) -> None:
    """Link ``managers`` to ``employee`` at ranks 0, 1, 2 …"""
    from workforce.employees.models import EmployeeManager

    for rank, manager in enumerate(managers):
        db.add(EmployeeManager(
            id=uuid.uuid4(),
            employee_id=employee.id,
            manager_id=manager.id,
            rank=rank,
            is_active=True,
        ))
    await db.flush()


async def seed_schedule(db: AsyncSession, employee=None, *, start_date: date = date(2020, 1, 1), **kwargs):
    """Insert a schedule; assign it to ``employee`` when given."""
    from workforce.schedules.models import EmployeeScheduleAssignment, WorkSchedule

    schedule = WorkSchedule(**_make_schedule(**kwargs))
    db.add(schedule)
    await db.flush()
    if employee is not None:
        db.add(EmployeeScheduleAssignment(
            id=uuid.uuid4(),
            employee_id=employee.id,
            schedule_id=schedule.id,
            start_date=start_date,
        ))
        await db.flush()
    return schedule


async def seed_leave_type(
    db: AsyncSession,
    *,
    code: str = "CP",
    name: str = "Congé payé",
    category: LeaveCategory = LeaveCategory.paid,
):
    from workforce.leave.models import LeaveType

    leave_type = LeaveType(id=uuid.uuid4(), code=code, name=name, category=category.value)
    db.add(leave_type)
    await db.flush()
    return leave_type


async def seed_balance(db: AsyncSession, employee, leave_type, *, year: int, total: str, used: str = "0"):
    from workforce.leave.models import LeaveBalance

    balance = LeaveBalance(
        id=uuid.uuid4(),
        employee_id=employee.id,
        leave_type_id=leave_type.id,
        year=year,
        total_days=Decimal(total),
        used_days=Decimal(used),
    )
    db.add(balance)
    await db.flush()
    return balance


async def seed_leave_request(
    db: AsyncSession,
    employee,
    leave_type,
    *,
    start: date,
    end: date,
    days: str = "1",
    status: str = "pending",
):
    from workforce.leave.models import LeaveRequest

    request = LeaveRequest(
        id=uuid.uuid4(),
        employee_id=employee.id,
        leave_type_id=leave_type.id,
        start_date=start,
        end_date=end,
        days_requested=Decimal(days),
        status=status,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    db.add(request)
    await db.flush()
    return request


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    profile_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(profile_id),
        "role": role.value,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers_for(employee, role: UserRole = UserRole.employee) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee.profile_id, role)}"}
