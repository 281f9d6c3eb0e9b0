"""Calendar exception models: PublicHoliday, RecoveryPeriod, RecoveryDeclaration."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workforce.common.constants import RecordStatus, status_check
from workforce.database import Base

_RECORD_STATUSES = tuple(s.value for s in RecordStatus)


class PublicHoliday(Base):
    __tablename__ = "public_holidays"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    holiday_date: Mapped[date] = mapped_column(sa.Date, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class RecoveryPeriod(Base):
    """A named campaign of recovery days (e.g. bridging a holiday weekend)."""

    __tablename__ = "recovery_periods"
    __table_args__ = (
        sa.CheckConstraint(status_check("status", _RECORD_STATUSES), name="ck_recovery_period_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    applies_to_all: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    status: Mapped[str] = mapped_column(sa.String(20), default=RecordStatus.active.value)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    declarations: Mapped[list[RecoveryDeclaration]] = relationship(
        back_populates="period"
    )


class RecoveryDeclaration(Base):
    """One recovery date: either owed off (``is_day_off``) or a day to work back.

    A null scope column matches everyone; set columns must all match the
    employee unless the period applies to all.
    """

    __tablename__ = "recovery_declarations"
    __table_args__ = (
        sa.CheckConstraint(status_check("status", _RECORD_STATUSES), name="ck_recovery_declaration_status"),
        sa.Index("ix_recovery_declarations_date", "recovery_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    period_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("recovery_periods.id", ondelete="CASCADE"),
        nullable=False,
    )
    recovery_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    is_day_off: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    segment_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    centre_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    status: Mapped[str] = mapped_column(sa.String(20), default=RecordStatus.active.value)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    period: Mapped[RecoveryPeriod] = relationship(back_populates="declarations")
