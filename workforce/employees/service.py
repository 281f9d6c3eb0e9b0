"""Employee directory lookups used by the attendance and approval engines."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.common.exceptions import NotFoundException
from workforce.employees.models import Employee


class EmployeeDirectory:
    """Resolve employees by id or by the auth profile acting for them."""

    @staticmethod
    async def get(db: AsyncSession, employee_id: uuid.UUID) -> Optional[Employee]:
        result = await db.execute(select(Employee).where(Employee.id == employee_id))
        return result.scalars().first()

    @staticmethod
    async def get_or_404(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        employee = await EmployeeDirectory.get(db, employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def get_by_profile_id(
        db: AsyncSession,
        profile_id: uuid.UUID,
    ) -> Optional[Employee]:
        """Map an auth profile to its employee record (active employees only)."""
        result = await db.execute(
            select(Employee).where(
                Employee.profile_id == profile_id,
                Employee.is_active.is_(True),
            )
        )
        return result.scalars().first()
