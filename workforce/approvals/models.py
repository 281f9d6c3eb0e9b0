"""Approval history: one ApprovalStep per decision taken on a request."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workforce.common.constants import RequestType, status_check
from workforce.database import Base
from workforce.employees.models import Employee


class ApprovalStep(Base):
    """Decision recorded at ``rank`` of the chain for a leave, overtime or correction request."""

    __tablename__ = "approval_steps"
    __table_args__ = (
        sa.UniqueConstraint(
            "request_type", "request_id", "rank", "decision",
            name="uq_approval_step_rank_decision",
        ),
        sa.CheckConstraint(
            status_check("request_type", tuple(t.value for t in RequestType)),
            name="ck_approval_step_request_type",
        ),
        sa.CheckConstraint(
            status_check("decision", ("approved", "rejected", "cancelled")),
            name="ck_approval_step_decision",
        ),
        sa.Index("ix_approval_steps_request", "request_type", "request_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    request_type: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    request_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    # Cancellations by HR carry no chain rank
    rank: Mapped[Optional[int]] = mapped_column(sa.Integer)
    approver_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    decision: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(sa.Text)
    decided_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    approver: Mapped[Employee] = relationship()
