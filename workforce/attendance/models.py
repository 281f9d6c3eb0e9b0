"""Attendance ORM models: AttendanceDailyRecord (one row per employee-day)
and CorrectionRequest (multi-level approved clock corrections)."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from workforce.common.constants import (
    MULTI_LEVEL_STATUSES,
    PENDING,
    AttendanceSource,
    DayStatus,
    status_check,
)
from workforce.database import Base


class AttendanceDailyRecord(Base):
    __tablename__ = "attendance_daily"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "work_date", name="uq_attendance_daily_emp_date"),
        sa.CheckConstraint(
            status_check("day_status", tuple(s.value for s in DayStatus)),
            name="ck_attendance_daily_status",
        ),
        sa.CheckConstraint(
            status_check("source", tuple(s.value for s in AttendanceSource)),
            name="ck_attendance_daily_source",
        ),
        sa.Index("ix_attendance_daily_work_date", "work_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    clock_in_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    clock_out_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    day_status: Mapped[str] = mapped_column(
        sa.String(20), default=DayStatus.pending.value, nullable=False
    )
    scheduled_start: Mapped[Optional[time]] = mapped_column(sa.Time)
    scheduled_end: Mapped[Optional[time]] = mapped_column(sa.Time)
    scheduled_break_minutes: Mapped[int] = mapped_column(sa.Integer, default=0)
    gross_worked_minutes: Mapped[Optional[int]] = mapped_column(sa.Integer)
    net_worked_minutes: Mapped[Optional[int]] = mapped_column(sa.Integer)
    late_minutes: Mapped[int] = mapped_column(sa.Integer, default=0)
    early_leave_minutes: Mapped[int] = mapped_column(sa.Integer, default=0)
    overtime_minutes: Mapped[int] = mapped_column(sa.Integer, default=0)
    overtime_rate_type: Mapped[Optional[str]] = mapped_column(sa.String(20))
    hours_to_recover: Mapped[Optional[int]] = mapped_column(sa.Integer)
    special_day: Mapped[Optional[dict]] = mapped_column(JSONB)
    is_anomaly: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    source: Mapped[str] = mapped_column(
        sa.String(20), default=AttendanceSource.clock.value, nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<AttendanceDailyRecord {self.employee_id} {self.work_date} {self.day_status}>"


class CorrectionRequest(Base):
    __tablename__ = "attendance_correction_requests"
    __table_args__ = (
        sa.CheckConstraint(
            status_check("status", MULTI_LEVEL_STATUSES),
            name="ck_correction_request_status",
        ),
        sa.Index("ix_correction_requests_employee_date", "employee_id", "request_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    request_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    # "HH:MM" or "HH:MM:SS", normalized when the correction is applied
    requested_check_in: Mapped[Optional[str]] = mapped_column(sa.String(15))
    requested_check_out: Mapped[Optional[str]] = mapped_column(sa.String(15))
    original_check_in: Mapped[Optional[str]] = mapped_column(sa.String(15))
    original_check_out: Mapped[Optional[str]] = mapped_column(sa.String(15))
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False)
    status: Mapped[str] = mapped_column(sa.String(20), default=PENDING, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
