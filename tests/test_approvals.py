"""Approval chain engine — chains, authorization, transitions, side effects.

Tests run against SQLite via the shared conftest.py fixtures.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.approvals.models import ApprovalStep
from workforce.approvals.service import ApprovalService, BlockReason
from workforce.attendance.models import AttendanceDailyRecord, CorrectionRequest
from workforce.common.audit import AuditTrail
from workforce.common.constants import LeaveCategory, RequestType
from workforce.leave.models import LeaveBalance, LeaveRequest
from workforce.overtime.models import OvertimeRequest
from tests.conftest import (
    seed_balance,
    seed_chain,
    seed_employee,
    seed_leave_request,
    seed_leave_type,
)

LEAVE_START = date(2025, 4, 14)
LEAVE_END = date(2025, 4, 15)


# ═════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════


async def _seed_org(db: AsyncSession, levels: int = 2):
    """An employee with ``levels`` managers in the chain."""
    employee = await seed_employee(db, first_name="Salma", last_name="Idrissi")
    managers = [
        await seed_employee(db, first_name=f"Manager{rank}", last_name="Chain")
        for rank in range(levels)
    ]
    await seed_chain(db, employee, managers)
    return employee, managers


async def _seed_leave(db: AsyncSession, employee, *, category=LeaveCategory.paid, status="pending"):
    leave_type = await seed_leave_type(db, category=category)
    balance = await seed_balance(db, employee, leave_type, year=LEAVE_START.year, total="18")
    request = await seed_leave_request(
        db, employee, leave_type, start=LEAVE_START, end=LEAVE_END, days="2", status=status,
    )
    return request, balance


async def _status(db: AsyncSession, model, request_id) -> str:
    result = await db.execute(select(model.status).where(model.id == request_id))
    return result.scalar_one()


async def _used_days(db: AsyncSession, balance_id) -> Decimal:
    result = await db.execute(select(LeaveBalance.used_days).where(LeaveBalance.id == balance_id))
    return Decimal(str(result.scalar_one()))


# ═════════════════════════════════════════════════════════════════════
# Chain and authorization
# ═════════════════════════════════════════════════════════════════════


async def test_chain_is_ordered_by_rank(db):
    employee, managers = await _seed_org(db, levels=3)

    chain = await ApprovalService.get_approval_chain(db, employee.id)
    assert [entry.rank for entry in chain] == [0, 1, 2]
    assert [entry.manager_id for entry in chain] == [m.id for m in managers]
    assert chain[0].manager_name == "Manager0 Chain"


async def test_inactive_links_are_skipped(db):
    from workforce.employees.models import EmployeeManager

    employee, managers = await _seed_org(db, levels=2)
    link = (await db.execute(
        select(EmployeeManager).where(EmployeeManager.manager_id == managers[1].id)
    )).scalars().one()
    link.is_active = False
    await db.flush()

    chain = await ApprovalService.get_approval_chain(db, employee.id)
    assert [entry.rank for entry in chain] == [0]


async def test_can_approve_reasons(db):
    employee, managers = await _seed_org(db, levels=2)

    ok = await ApprovalService.can_approve(db, managers[0].profile_id, employee.id, 0)
    assert ok.can_approve is True

    stranger = await ApprovalService.can_approve(db, uuid.uuid4(), employee.id, 0)
    assert stranger.reason == BlockReason.not_an_employee.value

    wrong = await ApprovalService.can_approve(db, managers[0].profile_id, employee.id, 1)
    assert wrong.can_approve is False
    assert wrong.reason == BlockReason.not_current_approver.value

    beyond = await ApprovalService.can_approve(db, managers[1].profile_id, employee.id, 2)
    assert beyond.reason == BlockReason.no_approver_at_level.value


# ═════════════════════════════════════════════════════════════════════
# Leave approvals
# ═════════════════════════════════════════════════════════════════════


async def test_leave_climbs_chain_and_deducts_once(db):
    employee, managers = await _seed_org(db, levels=2)
    leave, balance = await _seed_leave(db, employee)

    first = await ApprovalService.approve(db, "leave", leave.id, managers[0].profile_id, "ok")
    assert first.success is True
    assert first.new_status == "approved_n1"
    assert first.is_final is False
    assert first.next_level == 1
    assert await _used_days(db, balance.id) == Decimal("0")

    final = await ApprovalService.approve(db, "leave", leave.id, managers[1].profile_id)
    assert final.success is True
    assert final.previous_status == "approved_n1"
    assert final.new_status == "approved"
    assert final.is_final is True
    assert await _used_days(db, balance.id) == Decimal("2")

    again = await ApprovalService.approve(db, "leave", leave.id, managers[1].profile_id)
    assert again.success is False
    assert again.error_code == "invalid_state"
    assert await _used_days(db, balance.id) == Decimal("2")

    await db.refresh(leave)
    assert leave.balance_deducted is True

    steps = (await db.execute(
        select(ApprovalStep.rank).where(ApprovalStep.request_id == leave.id).order_by(ApprovalStep.rank)
    )).scalars().all()
    assert steps == [0, 1]


async def test_wrong_level_approver_is_blocked(db):
    employee, managers = await _seed_org(db, levels=3)
    leave, _ = await _seed_leave(db, employee, status="approved_n1")

    result = await ApprovalService.approve(db, "leave", leave.id, managers[0].profile_id)
    assert result.success is False
    assert result.error_code == "forbidden"
    assert result.error == BlockReason.not_current_approver.value
    assert await _status(db, LeaveRequest, leave.id) == "approved_n1"


async def test_other_category_leave_keeps_balance(db):
    employee, managers = await _seed_org(db, levels=1)
    leave, balance = await _seed_leave(db, employee, category=LeaveCategory.other)

    result = await ApprovalService.approve(db, "leave", leave.id, managers[0].profile_id)
    assert result.is_final is True
    assert await _used_days(db, balance.id) == Decimal("0")
    await db.refresh(leave)
    assert leave.balance_deducted is False


async def test_final_approval_without_balance_row_still_flags(db):
    employee, managers = await _seed_org(db, levels=1)
    leave_type = await seed_leave_type(db)
    leave = await seed_leave_request(db, employee, leave_type, start=LEAVE_START, end=LEAVE_START)

    result = await ApprovalService.approve(db, RequestType.leave, leave.id, managers[0].profile_id)
    assert result.success is True
    await db.refresh(leave)
    assert leave.balance_deducted is True


async def test_stale_status_transition_is_refused(db):
    """Two approvers reading the same status: the second write matches no row."""
    employee, managers = await _seed_org(db, levels=1)
    leave, _ = await _seed_leave(db, employee)
    from workforce.approvals.service import _KINDS

    now = datetime.now(timezone.utc)
    kind = _KINDS[RequestType.leave]
    assert await ApprovalService._transition(db, kind, leave.id, "pending", "approved", now) is True
    assert await ApprovalService._transition(db, kind, leave.id, "pending", "approved", now) is False


# ═════════════════════════════════════════════════════════════════════
# Reject / cancel
# ═════════════════════════════════════════════════════════════════════


async def test_reject_requires_comment(db):
    employee, managers = await _seed_org(db, levels=1)
    leave, _ = await _seed_leave(db, employee)

    result = await ApprovalService.reject(db, "leave", leave.id, managers[0].profile_id, "   ")
    assert result.error_code == "validation"
    assert await _status(db, LeaveRequest, leave.id) == "pending"


async def test_reject_at_current_level_is_terminal(db):
    employee, managers = await _seed_org(db, levels=2)
    leave, balance = await _seed_leave(db, employee, status="approved_n1")

    result = await ApprovalService.reject(
        db, "leave", leave.id, managers[1].profile_id, "Période de clôture",
    )
    assert result.success is True
    assert result.new_status == "rejected"
    assert await _status(db, LeaveRequest, leave.id) == "rejected"
    assert await _used_days(db, balance.id) == Decimal("0")


async def test_cancel_approved_leave_restores_balance(db):
    employee, managers = await _seed_org(db, levels=1)
    hr = await seed_employee(db, first_name="Nadia", last_name="RH")
    leave, balance = await _seed_leave(db, employee)

    await ApprovalService.approve(db, "leave", leave.id, managers[0].profile_id)
    assert await _used_days(db, balance.id) == Decimal("2")

    result = await ApprovalService.cancel_approved(
        db, "leave", leave.id, hr.profile_id, "Voyage annulé",
    )
    assert result.success is True
    assert result.new_status == "cancelled"
    assert await _used_days(db, balance.id) == Decimal("0")

    await db.refresh(leave)
    assert leave.balance_deducted is False
    assert leave.cancelled_by == hr.id
    assert leave.cancellation_reason == "Voyage annulé"


async def test_cancel_partially_approved_leave(db):
    employee, _ = await _seed_org(db, levels=2)
    hr = await seed_employee(db)
    leave, balance = await _seed_leave(db, employee, status="approved_n1")

    result = await ApprovalService.cancel_approved(db, "leave", leave.id, hr.profile_id, "Erreur")
    assert result.success is True
    assert await _used_days(db, balance.id) == Decimal("0")


async def test_cancel_rules(db):
    employee, _ = await _seed_org(db, levels=1)
    hr = await seed_employee(db)
    leave, _ = await _seed_leave(db, employee)

    no_reason = await ApprovalService.cancel_approved(db, "leave", leave.id, hr.profile_id, "")
    assert no_reason.error_code == "validation"

    pending = await ApprovalService.cancel_approved(db, "leave", leave.id, hr.profile_id, "x")
    assert pending.error_code == "invalid_state"

    not_employee = await ApprovalService.cancel_approved(db, "leave", leave.id, uuid.uuid4(), "x")
    assert not_employee.error_code == "forbidden"


async def test_unknown_type_and_missing_request(db):
    employee, managers = await _seed_org(db, levels=1)

    bad_type = await ApprovalService.approve(db, "expense", uuid.uuid4(), managers[0].profile_id)
    assert bad_type.error_code == "invalid_type"

    missing = await ApprovalService.approve(db, "leave", uuid.uuid4(), managers[0].profile_id)
    assert missing.error_code == "not_found"


# ═════════════════════════════════════════════════════════════════════
# Overtime and corrections
# ═════════════════════════════════════════════════════════════════════


async def test_overtime_has_single_level(db):
    employee, managers = await _seed_org(db, levels=2)
    overtime = OvertimeRequest(
        id=uuid.uuid4(),
        employee_id=employee.id,
        request_date=date(2025, 4, 16),
        estimated_hours=Decimal("2"),
        status="pending",
    )
    db.add(overtime)
    await db.flush()

    result = await ApprovalService.approve(db, "overtime", overtime.id, managers[0].profile_id)
    assert result.new_status == "approved"
    assert result.is_final is True


async def _seed_correction(db, employee, *, check_in="08:30", check_out="17:00"):
    correction = CorrectionRequest(
        id=uuid.uuid4(),
        employee_id=employee.id,
        request_date=date(2025, 4, 16),
        requested_check_in=check_in,
        requested_check_out=check_out,
        reason="Badge oublié",
        status="pending",
    )
    db.add(correction)
    await db.flush()
    return correction


async def test_final_correction_approval_rewrites_day(db):
    employee, managers = await _seed_org(db, levels=1)
    correction = await _seed_correction(db, employee)

    result = await ApprovalService.approve(db, "correction", correction.id, managers[0].profile_id)
    assert result.is_final is True

    record = (await db.execute(
        select(AttendanceDailyRecord).where(AttendanceDailyRecord.employee_id == employee.id)
    )).scalars().one()
    assert record.day_status == "present"
    assert record.source == "correction"
    assert record.clock_in_at.time() == time(8, 30)
    assert record.clock_out_at.time() == time(17, 0)
    assert record.notes == "Correction approved"

    actions = (await db.execute(
        select(func.count()).select_from(AuditTrail).where(AuditTrail.action == "correction_applied")
    )).scalar_one()
    assert actions == 1


async def test_applied_correction_uses_operation_clock(db):
    employee, managers = await _seed_org(db, levels=1)
    correction = await _seed_correction(db, employee)
    now = datetime(2020, 1, 1, 12, 0, tzinfo=timezone.utc)

    result = await ApprovalService.approve(
        db, "correction", correction.id, managers[0].profile_id, now=now,
    )
    assert result.is_final is True

    stamped = (await db.execute(
        select(AttendanceDailyRecord.updated_at)
        .where(AttendanceDailyRecord.employee_id == employee.id)
    )).scalar_one()
    assert stamped.replace(tzinfo=None) == now.replace(tzinfo=None)


async def test_malformed_correction_time_blocks_final_approval(db):
    employee, managers = await _seed_org(db, levels=1)
    correction = await _seed_correction(db, employee, check_in="8h30")

    result = await ApprovalService.approve(db, "correction", correction.id, managers[0].profile_id)
    assert result.success is False
    assert result.error_code == "validation"
    assert await _status(db, CorrectionRequest, correction.id) == "pending"


# ═════════════════════════════════════════════════════════════════════
# Approver inbox
# ═════════════════════════════════════════════════════════════════════


async def test_pending_for_approver_follows_current_level(db):
    employee, managers = await _seed_org(db, levels=2)
    leave, _ = await _seed_leave(db, employee, status="approved_n1")

    first = await ApprovalService.get_pending_for_approver(db, managers[0].profile_id)
    assert first == []

    second = await ApprovalService.get_pending_for_approver(db, managers[1].profile_id)
    assert len(second) == 1
    item = second[0]
    assert item.request_id == leave.id
    assert item.current_step == 2
    assert item.total_steps == 2
    assert item.is_next_approver is True
    assert item.employee_name == "Salma Idrissi"

    everything = await ApprovalService.get_pending_for_approver(
        db, managers[0].profile_id, include_all=True,
    )
    assert len(everything) == 1
    assert everything[0].is_next_approver is False
