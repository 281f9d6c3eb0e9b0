"""Overtime service — employee overtime requests (single-level approval)."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.common.audit import create_audit_entry
from workforce.common.constants import APPROVED, PENDING
from workforce.common.exceptions import ValidationException
from workforce.employees.service import EmployeeDirectory
from workforce.overtime.models import OvertimeRequest
from workforce.overtime.schemas import OvertimeRequestCreate

logger = logging.getLogger(__name__)


class OvertimeService:

    @staticmethod
    async def request_overtime(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: OvertimeRequestCreate,
    ) -> OvertimeRequest:
        """Create a pending overtime request; one open or approved request per day."""

        await EmployeeDirectory.get_or_404(db, employee_id)
        if data.estimated_hours <= 0:
            raise ValidationException({"estimated_hours": ["Hours must be positive."]})

        existing = await db.execute(
            select(func.count()).select_from(OvertimeRequest).where(
                OvertimeRequest.employee_id == employee_id,
                OvertimeRequest.request_date == data.request_date,
                OvertimeRequest.status.in_((PENDING, APPROVED)),
            )
        )
        if existing.scalar_one() > 0:
            raise ValidationException(
                {"request_date": [
                    f"An overtime request for {data.request_date.isoformat()} already exists."
                ]}
            )

        overtime = OvertimeRequest(
            employee_id=employee_id,
            request_date=data.request_date,
            estimated_hours=data.estimated_hours,
            reason=data.reason,
            status=PENDING,
        )
        db.add(overtime)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="overtime_request",
            entity_id=overtime.id,
            actor_id=employee_id,
            new_values={
                "request_date": data.request_date.isoformat(),
                "estimated_hours": str(data.estimated_hours),
            },
        )
        logger.info("Overtime request %s created for %s", overtime.id, employee_id)
        return overtime
