"""Overtime ORM models: OvertimeRequest (single-level approval),
OvertimePeriod and its assigned employees (admin-declared windows)."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workforce.common.constants import (
    PENDING,
    SINGLE_LEVEL_STATUSES,
    OvertimeRateType,
    RecordStatus,
    status_check,
)
from workforce.database import Base


class OvertimeRequest(Base):
    __tablename__ = "overtime_requests"
    __table_args__ = (
        sa.CheckConstraint(status_check("status", SINGLE_LEVEL_STATUSES), name="ck_overtime_request_status"),
        sa.CheckConstraint("estimated_hours > 0", name="ck_overtime_request_hours"),
        sa.Index("ix_overtime_requests_employee_date", "employee_id", "request_date"),
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
    estimated_hours: Mapped[Decimal] = mapped_column(sa.Numeric(4, 2), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[str] = mapped_column(sa.String(20), default=PENDING, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class OvertimePeriod(Base):
    __tablename__ = "overtime_periods"
    __table_args__ = (
        sa.CheckConstraint(
            status_check("rate_type", tuple(r.value for r in OvertimeRateType)),
            name="ck_overtime_period_rate_type",
        ),
        sa.CheckConstraint(
            status_check("status", tuple(s.value for s in RecordStatus)),
            name="ck_overtime_period_status",
        ),
        sa.Index("ix_overtime_periods_date", "period_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    period_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    start_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    end_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    rate_type: Mapped[str] = mapped_column(
        sa.String(20), default=OvertimeRateType.normal.value, nullable=False
    )
    status: Mapped[str] = mapped_column(sa.String(20), default=RecordStatus.active.value)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    assignments: Mapped[list[OvertimePeriodEmployee]] = relationship(
        back_populates="period"
    )


class OvertimePeriodEmployee(Base):
    __tablename__ = "overtime_period_employees"
    __table_args__ = (
        sa.UniqueConstraint("period_id", "employee_id", name="uq_overtime_period_employee"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    period_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("overtime_periods.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Relationships
    period: Mapped[OvertimePeriod] = relationship(back_populates="assignments")
