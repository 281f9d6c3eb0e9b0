"""Approvals router — chain lookup, approver inbox, approve / reject / cancel.

Structured failures from ``ApprovalService`` become RFC 7807 problems here.
"""


import uuid

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.approvals.schemas import (
    ApprovalChainEntry,
    ApprovalResult,
    ApproveRequest,
    CancelRequest,
    PendingRequestItem,
    RejectRequest,
)
from workforce.approvals.service import ApprovalService
from workforce.auth.dependencies import CurrentActor, get_current_actor, require_role
from workforce.common.clock import TimeProvider
from workforce.common.constants import RequestType, UserRole
from workforce.common.exceptions import ForbiddenException, exception_for_failure
from workforce.common.rate_limit import WRITE_LIMIT, limiter
from workforce.database import get_db
from workforce.dependencies import get_time_provider
from workforce.employees.service import EmployeeDirectory

router = APIRouter(prefix="", tags=["approvals"])


def _raise_on_failure(result: ApprovalResult) -> ApprovalResult:
    if not result.success:
        raise exception_for_failure(result.error_code, result.error or "Request failed.")
    return result


# ── GET /chain/{employee_id} ────────────────────────────────────────

@router.get("/chain/{employee_id}", response_model=list[ApprovalChainEntry])
async def approval_chain(
    employee_id: uuid.UUID,
    actor: CurrentActor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Ordered approvers of an employee (rank 0 = direct manager)."""
    is_self = actor.employee is not None and actor.employee.id == employee_id
    if not is_self and not actor.has_role(UserRole.manager):
        raise ForbiddenException(detail="You can only view your own approval chain.")
    await EmployeeDirectory.get_or_404(db, employee_id)
    return await ApprovalService.get_approval_chain(db, employee_id)


# ── GET /pending ────────────────────────────────────────────────────

@router.get("/pending", response_model=list[PendingRequestItem])
async def pending_requests(
    include_all: bool = Query(False),
    actor: CurrentActor = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Open requests awaiting the caller; HR admins may list every open request."""
    if include_all and not actor.has_role(UserRole.hr_admin):
        raise ForbiddenException(detail="Only HR administrators can list all pending requests.")
    return await ApprovalService.get_pending_for_approver(
        db, actor.profile_id, include_all=include_all,
    )


# ── POST /{request_type}/{request_id}/approve ───────────────────────

@router.post("/{request_type}/{request_id}/approve", response_model=ApprovalResult)
@limiter.limit(WRITE_LIMIT)
async def approve_request(
    request: Request,
    request_type: RequestType,
    request_id: uuid.UUID,
    body: ApproveRequest,
    actor: CurrentActor = Depends(get_current_actor),
    clock: TimeProvider = Depends(get_time_provider),
    db: AsyncSession = Depends(get_db),
):
    """Approve at the caller's level; the last level makes the request final."""
    result = await ApprovalService.approve(
        db, request_type, request_id, actor.profile_id, body.comment, now=clock(),
    )
    return _raise_on_failure(result)


# ── POST /{request_type}/{request_id}/reject ────────────────────────

@router.post("/{request_type}/{request_id}/reject", response_model=ApprovalResult)
@limiter.limit(WRITE_LIMIT)
async def reject_request(
    request: Request,
    request_type: RequestType,
    request_id: uuid.UUID,
    body: RejectRequest,
    actor: CurrentActor = Depends(get_current_actor),
    clock: TimeProvider = Depends(get_time_provider),
    db: AsyncSession = Depends(get_db),
):
    """Reject at the caller's level. A comment is mandatory."""
    result = await ApprovalService.reject(
        db, request_type, request_id, actor.profile_id, body.comment, now=clock(),
    )
    return _raise_on_failure(result)


# ── POST /{request_type}/{request_id}/cancel ────────────────────────

@router.post("/{request_type}/{request_id}/cancel", response_model=ApprovalResult)
@limiter.limit(WRITE_LIMIT)
async def cancel_request(
    request: Request,
    request_type: RequestType,
    request_id: uuid.UUID,
    body: CancelRequest,
    actor: CurrentActor = Depends(require_role(UserRole.hr_admin)),
    clock: TimeProvider = Depends(get_time_provider),
    db: AsyncSession = Depends(get_db),
):
    """HR cancellation of an approved request; restores any deducted leave balance."""
    result = await ApprovalService.cancel_approved(
        db, request_type, request_id, actor.profile_id, body.reason, now=clock(),
    )
    return _raise_on_failure(result)
