"""Leave service — apply for leave, read balances.

Approval, rejection and cancellation of leave requests go through the
approval chain engine, which also owns balance deduction and restoration.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.common.audit import create_audit_entry
from workforce.common.constants import (
    APPROVED,
    AT_RANK_PREFIX,
    MULTI_LEVEL_STATUSES,
    PENDING,
)
from workforce.common.exceptions import NotFoundException, ValidationException
from workforce.employees.service import EmployeeDirectory
from workforce.leave.models import LeaveBalance, LeaveRequest, LeaveType
from workforce.leave.schemas import LeaveBalanceOut, LeaveRequestCreate

logger = logging.getLogger(__name__)

# Requests that still hold (or will hold) their days
_ACTIVE_STATUSES = tuple(
    s for s in MULTI_LEVEL_STATUSES
    if s in (PENDING, APPROVED) or s.startswith(AT_RANK_PREFIX)
)


class LeaveService:
    """Async leave operations."""

    @staticmethod
    async def _pending_days(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> Decimal:
        """Days requested by open requests that have not been deducted yet."""
        result = await db.execute(
            select(func.coalesce(func.sum(LeaveRequest.days_requested), 0)).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.leave_type_id == leave_type_id,
                LeaveRequest.status.in_(_ACTIVE_STATUSES),
                LeaveRequest.balance_deducted.is_(False),
                func.extract("year", LeaveRequest.start_date) == year,
            )
        )
        return Decimal(str(result.scalar_one()))

    # ─────────────────────────────────────────────────────────────────
    # Apply
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def apply_leave(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: LeaveRequestCreate,
    ) -> LeaveRequest:
        """Create a pending leave request after overlap and balance checks."""

        await EmployeeDirectory.get_or_404(db, employee_id)

        # ── Load leave type ─────────────────────────────────────────
        lt_result = await db.execute(
            select(LeaveType).where(
                LeaveType.id == data.leave_type_id,
                LeaveType.is_active.is_(True),
            )
        )
        leave_type = lt_result.scalars().first()
        if leave_type is None:
            raise NotFoundException("LeaveType", str(data.leave_type_id))

        days = data.days_requested
        if days is None:
            days = Decimal((data.end_date - data.start_date).days + 1)

        # ── Check overlapping leaves ────────────────────────────────
        overlap_result = await db.execute(
            select(func.count()).select_from(LeaveRequest).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status.in_(_ACTIVE_STATUSES),
                LeaveRequest.start_date <= data.end_date,
                LeaveRequest.end_date >= data.start_date,
            )
        )
        if overlap_result.scalar_one() > 0:
            raise ValidationException(
                {"dates": [
                    "You already have a pending or approved leave request "
                    "overlapping with these dates."
                ]}
            )

        # ── Check sufficient balance ────────────────────────────────
        if leave_type.deducts_balance:
            year = data.start_date.year
            bal_result = await db.execute(
                select(LeaveBalance).where(
                    LeaveBalance.employee_id == employee_id,
                    LeaveBalance.leave_type_id == data.leave_type_id,
                    LeaveBalance.year == year,
                )
            )
            balance = bal_result.scalars().first()
            held = await LeaveService._pending_days(db, employee_id, data.leave_type_id, year)
            available = (balance.available_days if balance else Decimal("0")) - held
            if days > available:
                raise ValidationException(
                    {"balance": [
                        f"Insufficient {leave_type.name} balance. "
                        f"Available: {available}, Requested: {days}."
                    ]}
                )

        leave_request = LeaveRequest(
            employee_id=employee_id,
            leave_type_id=data.leave_type_id,
            start_date=data.start_date,
            end_date=data.end_date,
            days_requested=days,
            reason=data.reason,
            status=PENDING,
        )
        db.add(leave_request)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_request",
            entity_id=leave_request.id,
            actor_id=employee_id,
            new_values={
                "leave_type": leave_type.code,
                "start_date": data.start_date.isoformat(),
                "end_date": data.end_date.isoformat(),
                "days_requested": str(days),
                "status": PENDING,
            },
        )
        logger.info(
            "Leave request %s created for %s (%s, %s days)",
            leave_request.id, employee_id, leave_type.code, days,
        )
        return leave_request

    # ─────────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_balances(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> list[LeaveBalanceOut]:
        query = (
            select(LeaveBalance, LeaveType)
            .join(LeaveType, LeaveType.id == LeaveBalance.leave_type_id)
            .where(LeaveBalance.employee_id == employee_id)
            .order_by(LeaveBalance.year, LeaveType.code)
        )
        if year is not None:
            query = query.where(LeaveBalance.year == year)
        result = await db.execute(query)
        return [
            LeaveBalanceOut(
                leave_type_id=leave_type.id,
                leave_type_code=leave_type.code,
                leave_type_name=leave_type.name,
                year=balance.year,
                total_days=balance.total_days,
                used_days=balance.used_days,
                available_days=balance.available_days,
            )
            for balance, leave_type in result.all()
        ]
