"""Work schedule ORM models: WorkSchedule, EmployeeScheduleAssignment."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workforce.database import Base


class WorkSchedule(Base):
    """A named weekly timetable with per-weekday windows and a generic fallback."""

    __tablename__ = "work_schedules"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)

    monday_start: Mapped[Optional[time]] = mapped_column(sa.Time)
    monday_end: Mapped[Optional[time]] = mapped_column(sa.Time)
    tuesday_start: Mapped[Optional[time]] = mapped_column(sa.Time)
    tuesday_end: Mapped[Optional[time]] = mapped_column(sa.Time)
    wednesday_start: Mapped[Optional[time]] = mapped_column(sa.Time)
    wednesday_end: Mapped[Optional[time]] = mapped_column(sa.Time)
    thursday_start: Mapped[Optional[time]] = mapped_column(sa.Time)
    thursday_end: Mapped[Optional[time]] = mapped_column(sa.Time)
    friday_start: Mapped[Optional[time]] = mapped_column(sa.Time)
    friday_end: Mapped[Optional[time]] = mapped_column(sa.Time)
    saturday_start: Mapped[Optional[time]] = mapped_column(sa.Time)
    saturday_end: Mapped[Optional[time]] = mapped_column(sa.Time)
    sunday_start: Mapped[Optional[time]] = mapped_column(sa.Time)
    sunday_end: Mapped[Optional[time]] = mapped_column(sa.Time)

    # Generic window used when a weekday has no specific times
    start_time: Mapped[Optional[time]] = mapped_column(sa.Time)
    end_time: Mapped[Optional[time]] = mapped_column(sa.Time)

    break_duration_minutes: Mapped[int] = mapped_column(sa.Integer, default=0)
    tolerance_late_minutes: Mapped[Optional[int]] = mapped_column(sa.Integer, default=15)
    tolerance_early_leave_minutes: Mapped[Optional[int]] = mapped_column(
        sa.Integer, default=15
    )
    # ISO weekdays, 1 = Monday … 7 = Sunday
    working_days: Mapped[list] = mapped_column(JSONB, default=lambda: [1, 2, 3, 4, 5])
    is_default: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    assignments: Mapped[list[EmployeeScheduleAssignment]] = relationship(
        back_populates="schedule"
    )

    def __repr__(self) -> str:
        return f"<WorkSchedule {self.name}>"


class EmployeeScheduleAssignment(Base):
    __tablename__ = "employee_schedules"
    __table_args__ = (
        sa.Index("ix_employee_schedules_lookup", "employee_id", "start_date"),
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
    schedule_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("work_schedules.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    schedule: Mapped[WorkSchedule] = relationship(back_populates="assignments")
