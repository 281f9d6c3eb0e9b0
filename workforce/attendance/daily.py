"""Conflict-resolving writes to ``attendance_daily`` (one row per employee-day)."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any, Callable

import sqlalchemy as sa
from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.attendance.models import AttendanceDailyRecord

_CONFLICT_KEY = ["employee_id", "work_date"]

MergeFn = Callable[[Any, Any], dict[str, Any]]


def _dialect_insert(db: AsyncSession):
    name = db.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert
    if name == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"No upsert support for dialect '{name}'")


def append_note(existing, incoming):
    """SQL expression appending ``incoming`` to ``existing`` notes with a separator."""
    return sa.case(
        (incoming.is_(None), existing),
        (sa.or_(existing.is_(None), existing == ""), incoming),
        else_=existing + " | " + incoming,
    )


async def get_daily_record(
    db: AsyncSession,
    employee_id: uuid.UUID,
    work_date: date,
) -> AttendanceDailyRecord | None:
    result = await db.execute(
        select(AttendanceDailyRecord)
        .where(
            AttendanceDailyRecord.employee_id == employee_id,
            AttendanceDailyRecord.work_date == work_date,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def upsert_daily_record(
    db: AsyncSession,
    values: dict[str, Any],
    merge: MergeFn,
) -> AttendanceDailyRecord:
    """Insert the day row, or update it in place when (employee, date) exists.

    ``merge(excluded, current)`` returns the SET clause for the conflict case;
    ``excluded`` holds the incoming values and ``current`` the stored columns.
    """
    insert = _dialect_insert(db)
    stmt = insert(AttendanceDailyRecord).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=_CONFLICT_KEY,
        set_=merge(stmt.excluded, AttendanceDailyRecord.__table__.c),
    )
    await db.execute(stmt)
    result = await db.execute(
        select(AttendanceDailyRecord)
        .where(
            AttendanceDailyRecord.employee_id == values["employee_id"],
            AttendanceDailyRecord.work_date == values["work_date"],
        )
        .execution_options(populate_existing=True)
    )
    return result.scalars().one()
