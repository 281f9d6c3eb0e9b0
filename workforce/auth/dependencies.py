"""Auth dependencies — JWT validation, RBAC enforcement.

Authentication itself is handled upstream; this API trusts a bearer JWT whose
``sub`` is the acting profile id and whose ``role`` claim names the role.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.common.constants import UserRole
from workforce.common.exceptions import ForbiddenException
from workforce.config import settings
from workforce.database import get_db
from workforce.employees.models import Employee
from workforce.employees.service import EmployeeDirectory

# Role hierarchy: each role implicitly includes lower roles
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.system_admin: {UserRole.system_admin, UserRole.hr_admin, UserRole.manager, UserRole.employee},
    UserRole.hr_admin: {UserRole.hr_admin, UserRole.manager, UserRole.employee},
    UserRole.manager: {UserRole.manager, UserRole.employee},
    UserRole.employee: {UserRole.employee},
}


@dataclass
class CurrentActor:
    """The authenticated profile and, when it has one, its employee record."""

    profile_id: uuid.UUID
    role: UserRole
    employee: Optional[Employee]

    def has_role(self, *roles: UserRole) -> bool:
        return bool(_ROLE_HIERARCHY.get(self.role, {self.role}).intersection(roles))


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_actor(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> CurrentActor:
    """Validate the JWT and resolve the acting profile."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    try:
        profile_id = uuid.UUID(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    role_str = payload.get("role", UserRole.employee.value)
    try:
        role = UserRole(role_str)
    except ValueError:
        role = UserRole.employee

    employee = await EmployeeDirectory.get_by_profile_id(db, profile_id)
    return CurrentActor(profile_id=profile_id, role=role, employee=employee)


async def get_current_employee(
    actor: CurrentActor = Depends(get_current_actor),
) -> Employee:
    """The acting employee; profiles without an employee record are refused."""
    if actor.employee is None:
        raise ForbiddenException(detail="User is not an employee")
    return actor.employee


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy — e.g. system_admin can access hr_admin endpoints.
    """

    async def _check(actor: CurrentActor = Depends(get_current_actor)) -> CurrentActor:
        if not actor.has_role(*allowed_roles):
            raise ForbiddenException(
                detail=f"Role '{actor.role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return actor

    return _check
