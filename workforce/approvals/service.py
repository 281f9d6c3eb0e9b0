"""Approval chain engine — who approves what, and the guarded state transitions.

A chain is the ordered list of an employee's managers (rank 0 = direct
manager). Leave and correction requests climb the chain one rank per
approval; overtime requests have a single level (rank 0).

Every transition is a single ``UPDATE … WHERE id = :id AND status = :expected``
issued in the caller's transaction after the request row is locked, so two
approvers racing on the same rank cannot both advance it and a retried call
cannot apply a side effect (balance deduction, attendance rewrite) twice.

Not-found, authorization, validation and state failures come back as
``ApprovalResult(success=False, …)``; database errors propagate.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Sequence, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.approvals.models import ApprovalStep
from workforce.approvals.schemas import (
    ApprovalChainEntry,
    ApprovalCheck,
    ApprovalResult,
    PendingRequestItem,
)
from workforce.approvals.state import (
    Approved,
    ApprovalState,
    AtRank,
    Cancelled,
    Rejected,
    advance,
    current_level,
    is_open,
    parse_status,
    to_status,
)
from workforce.attendance.corrections import CorrectionApplier, validate_correction_times
from workforce.attendance.models import CorrectionRequest
from workforce.common.audit import create_audit_entry
from workforce.common.clock import system_now
from workforce.common.constants import (
    AT_RANK_PREFIX,
    MULTI_LEVEL_STATUSES,
    PENDING,
    RequestType,
)
from workforce.config import settings
from workforce.employees.models import Employee, EmployeeManager
from workforce.employees.service import EmployeeDirectory
from workforce.leave.models import LeaveBalance, LeaveRequest, LeaveType
from workforce.overtime.models import OvertimeRequest

logger = logging.getLogger(__name__)

RequestModel = Union[LeaveRequest, OvertimeRequest, CorrectionRequest]


class BlockReason(str, enum.Enum):
    """Why ``can_approve`` refused; surfaced verbatim to the caller."""

    not_an_employee = "User is not an employee"
    no_approver_at_level = "No approver at this level"
    not_current_approver = "User is not the current approver"


@dataclass(frozen=True)
class _RequestKind:
    model: type
    entity_type: str
    single_level: bool

    @property
    def max_level(self) -> int:
        return 0 if self.single_level else settings.MAX_APPROVAL_DEPTH


_KINDS: dict[RequestType, _RequestKind] = {
    RequestType.leave: _RequestKind(LeaveRequest, "leave_request", single_level=False),
    RequestType.overtime: _RequestKind(OvertimeRequest, "overtime_request", single_level=True),
    RequestType.correction: _RequestKind(CorrectionRequest, "correction_request", single_level=False),
}

_OPEN_STATUSES = tuple(
    s for s in MULTI_LEVEL_STATUSES if s == PENDING or s.startswith(AT_RANK_PREFIX)
)


def _kind_for(request_type: Union[RequestType, str]) -> Optional[_RequestKind]:
    try:
        return _KINDS[RequestType(request_type)]
    except ValueError:
        return None


def _blank(text: Optional[str]) -> bool:
    return text is None or not text.strip()


# ═════════════════════════════════════════════════════════════════════
# ApprovalService
# ═════════════════════════════════════════════════════════════════════


class ApprovalService:
    """Chain lookup, authorization and guarded transitions for all request types."""

    # ── Chain ───────────────────────────────────────────────────────

    @staticmethod
    async def get_approval_chain(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> list[ApprovalChainEntry]:
        """Active approvers of ``employee_id`` ordered by rank."""

        result = await db.execute(
            select(EmployeeManager.rank, Employee)
            .join(Employee, Employee.id == EmployeeManager.manager_id)
            .where(
                EmployeeManager.employee_id == employee_id,
                EmployeeManager.is_active.is_(True),
            )
            .order_by(EmployeeManager.rank)
        )
        return [
            ApprovalChainEntry(
                rank=rank,
                manager_id=manager.id,
                manager_name=manager.full_name,
                manager_profile_id=manager.profile_id,
            )
            for rank, manager in result.all()
        ]

    @staticmethod
    async def can_approve(
        db: AsyncSession,
        profile_id: uuid.UUID,
        employee_id: uuid.UUID,
        level: int,
        *,
        chain: Optional[Sequence[ApprovalChainEntry]] = None,
    ) -> ApprovalCheck:
        """True only when ``profile_id`` is the chain entry at exactly ``level``."""

        actor = await EmployeeDirectory.get_by_profile_id(db, profile_id)
        if actor is None:
            return ApprovalCheck(can_approve=False, reason=BlockReason.not_an_employee.value)

        if chain is None:
            chain = await ApprovalService.get_approval_chain(db, employee_id)
        expected = next((entry for entry in chain if entry.rank == level), None)
        if expected is None:
            return ApprovalCheck(
                can_approve=False,
                reason=BlockReason.no_approver_at_level.value,
                approver_id=actor.id,
            )
        if expected.manager_id != actor.id:
            return ApprovalCheck(
                can_approve=False,
                reason=BlockReason.not_current_approver.value,
                approver_id=actor.id,
                approver_name=expected.manager_name,
            )
        return ApprovalCheck(can_approve=True, approver_id=actor.id, approver_name=actor.full_name)

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _lock_request(
        db: AsyncSession,
        kind: _RequestKind,
        request_id: uuid.UUID,
    ) -> Optional[RequestModel]:
        result = await db.execute(
            select(kind.model)
            .where(kind.model.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def _transition(
        db: AsyncSession,
        kind: _RequestKind,
        request_id: uuid.UUID,
        expected: str,
        new: str,
        now: datetime,
        **extra: Any,
    ) -> bool:
        """Compare-and-set on ``status``; False when someone else moved it first."""
        result = await db.execute(
            update(kind.model)
            .where(kind.model.id == request_id, kind.model.status == expected)
            .values(status=new, updated_at=now, **extra)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def _record_step(
        db: AsyncSession,
        request_type: RequestType,
        request_id: uuid.UUID,
        *,
        rank: Optional[int],
        approver_id: uuid.UUID,
        decision: str,
        comment: Optional[str],
        now: datetime,
    ) -> None:
        db.add(ApprovalStep(
            request_type=request_type.value,
            request_id=request_id,
            rank=rank,
            approver_id=approver_id,
            decision=decision,
            comment=comment,
            decided_at=now,
        ))
        await db.flush()

    @staticmethod
    async def _balance_for(db: AsyncSession, leave: LeaveRequest) -> Optional[LeaveBalance]:
        result = await db.execute(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == leave.employee_id,
                LeaveBalance.leave_type_id == leave.leave_type_id,
                LeaveBalance.year == leave.start_date.year,
            )
        )
        return result.scalars().first()

    @staticmethod
    async def _deduct_leave_balance(db: AsyncSession, leave: LeaveRequest) -> bool:
        """Deduct ``days_requested`` once; the ``balance_deducted`` flag guards re-entry."""

        leave_type = await db.get(LeaveType, leave.leave_type_id)
        if leave_type is not None and not leave_type.deducts_balance:
            return False

        flagged = await db.execute(
            update(LeaveRequest)
            .where(LeaveRequest.id == leave.id, LeaveRequest.balance_deducted.is_(False))
            .values(balance_deducted=True)
            .execution_options(synchronize_session=False)
        )
        if flagged.rowcount != 1:
            return False

        balance = await ApprovalService._balance_for(db, leave)
        if balance is None:
            logger.warning(
                "No %s leave balance for employee %s (type %s); nothing deducted",
                leave.start_date.year, leave.employee_id, leave.leave_type_id,
            )
            return True
        await db.execute(
            update(LeaveBalance)
            .where(LeaveBalance.id == balance.id)
            .values(used_days=LeaveBalance.used_days + leave.days_requested)
            .execution_options(synchronize_session=False)
        )
        return True

    @staticmethod
    async def _restore_leave_balance(db: AsyncSession, leave: LeaveRequest) -> None:
        balance = await ApprovalService._balance_for(db, leave)
        if balance is None:
            return
        await db.execute(
            update(LeaveBalance)
            .where(LeaveBalance.id == balance.id)
            .values(used_days=LeaveBalance.used_days - leave.days_requested)
            .execution_options(synchronize_session=False)
        )

    # ─────────────────────────────────────────────────────────────────
    # Approve
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve(
        db: AsyncSession,
        request_type: Union[RequestType, str],
        request_id: uuid.UUID,
        approver_profile_id: uuid.UUID,
        comment: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> ApprovalResult:
        """Advance the request one rank, or to ``approved`` when the chain is exhausted."""

        kind = _kind_for(request_type)
        if kind is None:
            return ApprovalResult.failure("invalid_type", f"Invalid request type '{request_type}'.")
        request_type = RequestType(request_type)
        now = now or system_now()

        request = await ApprovalService._lock_request(db, kind, request_id)
        if request is None:
            return ApprovalResult.failure("not_found", "Request not found.")

        state = parse_status(request.status)
        if not is_open(state):
            return ApprovalResult.failure(
                "invalid_state", f"Request is already {request.status}."
            )
        level = current_level(state)

        chain = await ApprovalService.get_approval_chain(db, request.employee_id)
        check = await ApprovalService.can_approve(
            db, approver_profile_id, request.employee_id, level, chain=chain,
        )
        if not check.can_approve:
            logger.warning(
                "Approval of %s %s blocked at level %s for profile %s: %s",
                request_type.value, request_id, level, approver_profile_id, check.reason,
            )
            return ApprovalResult.failure("forbidden", check.reason)

        ranks = {entry.rank for entry in chain}
        new_state = advance(state, ranks.__contains__, max_level=kind.max_level)
        is_final = isinstance(new_state, Approved)

        if is_final and request_type is RequestType.correction:
            try:
                validate_correction_times(request)
            except ValueError as exc:
                return ApprovalResult.failure("validation", str(exc))

        old_status = request.status
        new_status = to_status(new_state)
        if not await ApprovalService._transition(db, kind, request_id, old_status, new_status, now):
            return ApprovalResult.failure(
                "conflict", "Request was modified concurrently; reload and retry."
            )

        await ApprovalService._record_step(
            db, request_type, request_id,
            rank=level, approver_id=check.approver_id,
            decision="approved", comment=comment, now=now,
        )

        if is_final and request_type is RequestType.leave:
            await ApprovalService._deduct_leave_balance(db, request)
        elif is_final and request_type is RequestType.correction:
            await CorrectionApplier.apply(db, request, now=now, actor_id=check.approver_id)

        await create_audit_entry(
            db,
            action="approve",
            entity_type=kind.entity_type,
            entity_id=request_id,
            actor_id=check.approver_id,
            old_values={"status": old_status},
            new_values={"status": new_status, "comment": comment, "level": level},
        )
        logger.info(
            "%s %s approved at level %s: %s → %s",
            request_type.value, request_id, level, old_status, new_status,
        )

        next_level = new_state.level if isinstance(new_state, AtRank) else None
        return ApprovalResult(
            success=True,
            request_id=request_id,
            previous_status=old_status,
            new_status=new_status,
            is_final=is_final,
            next_level=next_level,
            message=(
                "Request fully approved."
                if is_final
                else f"Approved at level {level}; awaiting level {next_level}."
            ),
        )

    # ─────────────────────────────────────────────────────────────────
    # Reject
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def reject(
        db: AsyncSession,
        request_type: Union[RequestType, str],
        request_id: uuid.UUID,
        approver_profile_id: uuid.UUID,
        comment: Optional[str],
        *,
        now: Optional[datetime] = None,
    ) -> ApprovalResult:
        """Terminal rejection by the approver of the current level; comment required."""

        kind = _kind_for(request_type)
        if kind is None:
            return ApprovalResult.failure("invalid_type", f"Invalid request type '{request_type}'.")
        if _blank(comment):
            return ApprovalResult.failure("validation", "A comment is required to reject a request.")
        request_type = RequestType(request_type)
        now = now or system_now()

        request = await ApprovalService._lock_request(db, kind, request_id)
        if request is None:
            return ApprovalResult.failure("not_found", "Request not found.")

        state = parse_status(request.status)
        if not is_open(state):
            return ApprovalResult.failure(
                "invalid_state", f"Request is already {request.status}."
            )
        level = current_level(state)

        check = await ApprovalService.can_approve(
            db, approver_profile_id, request.employee_id, level,
        )
        if not check.can_approve:
            logger.warning(
                "Rejection of %s %s blocked at level %s for profile %s: %s",
                request_type.value, request_id, level, approver_profile_id, check.reason,
            )
            return ApprovalResult.failure("forbidden", check.reason)

        old_status = request.status
        new_status = to_status(Rejected())
        if not await ApprovalService._transition(db, kind, request_id, old_status, new_status, now):
            return ApprovalResult.failure(
                "conflict", "Request was modified concurrently; reload and retry."
            )

        await ApprovalService._record_step(
            db, request_type, request_id,
            rank=level, approver_id=check.approver_id,
            decision="rejected", comment=comment.strip(), now=now,
        )
        await create_audit_entry(
            db,
            action="reject",
            entity_type=kind.entity_type,
            entity_id=request_id,
            actor_id=check.approver_id,
            old_values={"status": old_status},
            new_values={"status": new_status, "comment": comment.strip(), "level": level},
        )
        logger.info("%s %s rejected at level %s", request_type.value, request_id, level)

        return ApprovalResult(
            success=True,
            request_id=request_id,
            previous_status=old_status,
            new_status=new_status,
            is_final=True,
            message="Request rejected.",
        )

    # ─────────────────────────────────────────────────────────────────
    # Cancel an approved request
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_approved(
        db: AsyncSession,
        request_type: Union[RequestType, str],
        request_id: uuid.UUID,
        acting_profile_id: uuid.UUID,
        reason: Optional[str],
        *,
        now: Optional[datetime] = None,
    ) -> ApprovalResult:
        """Cancel a request that reached an approved state, undoing its balance deduction.

        Leave may be cancelled once fully approved or part-way up the chain;
        overtime and corrections only once fully approved. Role checks for the
        acting profile happen at the API boundary.
        """

        kind = _kind_for(request_type)
        if kind is None:
            return ApprovalResult.failure("invalid_type", f"Invalid request type '{request_type}'.")
        if _blank(reason):
            return ApprovalResult.failure("validation", "A reason is required to cancel a request.")
        request_type = RequestType(request_type)
        now = now or system_now()

        actor = await EmployeeDirectory.get_by_profile_id(db, acting_profile_id)
        if actor is None:
            return ApprovalResult.failure("forbidden", BlockReason.not_an_employee.value)

        request = await ApprovalService._lock_request(db, kind, request_id)
        if request is None:
            return ApprovalResult.failure("not_found", "Request not found.")

        state: ApprovalState = parse_status(request.status)
        cancellable = isinstance(state, Approved) or (
            request_type is RequestType.leave and isinstance(state, AtRank)
        )
        if not cancellable:
            return ApprovalResult.failure(
                "invalid_state", "Only approved requests can be cancelled."
            )

        old_status = request.status
        new_status = to_status(Cancelled())
        reason = reason.strip()
        extra: dict[str, Any] = {}
        restore = False
        if request_type is RequestType.leave:
            restore = bool(request.balance_deducted)
            extra = {
                "cancelled_at": now,
                "cancelled_by": actor.id,
                "cancellation_reason": reason,
                "balance_deducted": False,
            }
        if not await ApprovalService._transition(
            db, kind, request_id, old_status, new_status, now, **extra,
        ):
            return ApprovalResult.failure(
                "conflict", "Request was modified concurrently; reload and retry."
            )
        if restore:
            await ApprovalService._restore_leave_balance(db, request)

        await ApprovalService._record_step(
            db, request_type, request_id,
            rank=None, approver_id=actor.id,
            decision="cancelled", comment=reason, now=now,
        )
        await create_audit_entry(
            db,
            action="cancel",
            entity_type=kind.entity_type,
            entity_id=request_id,
            actor_id=actor.id,
            old_values={"status": old_status},
            new_values={
                "status": new_status,
                "reason": reason,
                "balance_restored": restore,
            },
        )
        logger.info("%s %s cancelled (was %s)", request_type.value, request_id, old_status)

        return ApprovalResult(
            success=True,
            request_id=request_id,
            previous_status=old_status,
            new_status=new_status,
            is_final=True,
            message="Request cancelled.",
        )

    # ─────────────────────────────────────────────────────────────────
    # Approver inbox
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_pending_for_approver(
        db: AsyncSession,
        profile_id: uuid.UUID,
        *,
        include_all: bool = False,
    ) -> list[PendingRequestItem]:
        """Open requests whose current approver is ``profile_id``.

        ``include_all`` (HR view) lists every open request, flagging the ones
        the caller can act on.
        """

        actor = await EmployeeDirectory.get_by_profile_id(db, profile_id)
        if actor is None and not include_all:
            return []

        chains: dict[uuid.UUID, list[ApprovalChainEntry]] = {}
        names: dict[uuid.UUID, str] = {}
        items: list[PendingRequestItem] = []

        for request_type, kind in _KINDS.items():
            result = await db.execute(
                select(kind.model, Employee)
                .join(Employee, Employee.id == kind.model.employee_id)
                .where(kind.model.status.in_(_OPEN_STATUSES))
                .order_by(kind.model.created_at)
            )
            for request, employee in result.all():
                names[employee.id] = employee.full_name
                if employee.id not in chains:
                    chains[employee.id] = await ApprovalService.get_approval_chain(db, employee.id)
                chain = chains[employee.id]

                level = current_level(parse_status(request.status))
                expected = next((e for e in chain if e.rank == level), None)
                is_next = (
                    actor is not None
                    and expected is not None
                    and expected.manager_id == actor.id
                )
                if not (is_next or include_all):
                    continue

                if kind.single_level:
                    total_steps = 1
                else:
                    total_steps = max(1, min(len(chain), settings.MAX_APPROVAL_DEPTH + 1))
                start, end = _request_dates(request)
                items.append(PendingRequestItem(
                    request_type=request_type,
                    request_id=request.id,
                    employee_id=employee.id,
                    employee_name=employee.full_name,
                    status=request.status,
                    start_date=start,
                    end_date=end,
                    current_step=level + 1,
                    total_steps=total_steps,
                    next_approver_name=expected.manager_name if expected else None,
                    is_next_approver=is_next,
                    created_at=request.created_at,
                ))
        return items


def _request_dates(request: RequestModel) -> tuple[date, date]:
    if isinstance(request, LeaveRequest):
        return request.start_date, request.end_date
    return request.request_date, request.request_date
