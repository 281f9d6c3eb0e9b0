"""Approval Pydantic v2 schemas — chain entries, checks, transition results."""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from workforce.common.constants import RequestType


# ═════════════════════════════════════════════════════════════════════
# Chain
# ═════════════════════════════════════════════════════════════════════


class ApprovalChainEntry(BaseModel):
    """One approver of an employee's chain, ordered by rank."""

    rank: int
    manager_id: uuid.UUID
    manager_name: str
    manager_profile_id: Optional[uuid.UUID] = None


class ApprovalCheck(BaseModel):
    """Outcome of an authorization check for a given level."""

    can_approve: bool
    reason: Optional[str] = None
    approver_id: Optional[uuid.UUID] = None
    approver_name: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Transitions
# ═════════════════════════════════════════════════════════════════════


class ApprovalResult(BaseModel):
    """Structured outcome of approve / reject / cancel.

    Failures carry ``error`` and a machine-readable ``error_code``:
    not_found, forbidden, validation, invalid_state, conflict, invalid_type.
    """

    success: bool
    request_id: Optional[uuid.UUID] = None
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    is_final: bool = False
    next_level: Optional[int] = None
    message: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def failure(cls, error_code: str, error: str) -> "ApprovalResult":
        return cls(success=False, error=error, error_code=error_code)


class ApproveRequest(BaseModel):
    comment: Optional[str] = Field(None, max_length=2000)


class RejectRequest(BaseModel):
    comment: str = Field(..., max_length=2000)


class CancelRequest(BaseModel):
    reason: str = Field(..., max_length=2000)


# ═════════════════════════════════════════════════════════════════════
# Approver inbox
# ═════════════════════════════════════════════════════════════════════


class PendingRequestItem(BaseModel):
    """An open request awaiting a decision, with its position in the chain."""

    model_config = ConfigDict(from_attributes=True)

    request_type: RequestType
    request_id: uuid.UUID
    employee_id: uuid.UUID
    employee_name: str
    status: str
    start_date: date
    end_date: date
    current_step: int
    total_steps: int
    next_approver_name: Optional[str] = None
    is_next_approver: bool
    created_at: Optional[datetime] = None
