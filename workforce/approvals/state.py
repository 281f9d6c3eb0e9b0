"""Approval state of a request as an explicit tagged union.

Status strings (``pending``, ``approved_n2``, ``approved`` …) exist only at the
persistence boundary; ``parse_status`` and ``to_status`` convert between the
two and are inverse of each other for every valid state.

    Pending          → waiting for rank 0 (direct manager)
    AtRank(level=k)  → rank k-1 approved, waiting for rank k
    Approved / Rejected / Cancelled → terminal
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Union

from workforce.common.constants import (
    APPROVED,
    AT_RANK_PREFIX,
    CANCELLED,
    PENDING,
    REJECTED,
)


@dataclass(frozen=True)
class Pending:
    pass


@dataclass(frozen=True)
class AtRank:
    level: int

    def __post_init__(self) -> None:
        if self.level < 1:
            raise ValueError(f"AtRank level must be >= 1, got {self.level}")


@dataclass(frozen=True)
class Approved:
    pass


@dataclass(frozen=True)
class Rejected:
    pass


@dataclass(frozen=True)
class Cancelled:
    pass


ApprovalState = Union[Pending, AtRank, Approved, Rejected, Cancelled]

_FIXED: dict[str, ApprovalState] = {
    PENDING: Pending(),
    APPROVED: Approved(),
    REJECTED: Rejected(),
    CANCELLED: Cancelled(),
}


def parse_status(status: str) -> ApprovalState:
    """Persisted status string → state. Unknown strings raise ``ValueError``."""
    if status in _FIXED:
        return _FIXED[status]
    if status.startswith(AT_RANK_PREFIX):
        suffix = status[len(AT_RANK_PREFIX):]
        if suffix.isdigit():
            return AtRank(int(suffix))
    raise ValueError(f"Unknown approval status: {status!r}")


def to_status(state: ApprovalState) -> str:
    if isinstance(state, AtRank):
        return f"{AT_RANK_PREFIX}{state.level}"
    for status, fixed in _FIXED.items():
        if fixed == state:
            return status
    raise TypeError(f"Not an approval state: {state!r}")


def is_terminal(state: ApprovalState) -> bool:
    return isinstance(state, (Approved, Rejected, Cancelled))


def is_open(state: ApprovalState) -> bool:
    return isinstance(state, (Pending, AtRank))


def current_level(state: ApprovalState) -> Optional[int]:
    """Chain rank whose approval is awaited; ``None`` once terminal."""
    if isinstance(state, Pending):
        return 0
    if isinstance(state, AtRank):
        return state.level
    return None


def state_for_level(level: int) -> ApprovalState:
    """Inverse of ``current_level`` for open states."""
    return Pending() if level == 0 else AtRank(level)


def advance(
    state: ApprovalState,
    has_rank: Callable[[int], bool],
    *,
    max_level: Optional[int] = None,
) -> ApprovalState:
    """State after the current-level approver approves.

    Moves to ``AtRank(level + 1)`` when the chain has that rank, otherwise
    the chain is exhausted and the request is ``Approved``. ``max_level``
    caps single-level flows (overtime uses ``max_level=0``).
    """
    level = current_level(state)
    if level is None:
        raise ValueError(f"Cannot advance terminal state {state!r}")
    next_level = level + 1
    if max_level is not None and next_level > max_level:
        return Approved()
    if has_rank(next_level):
        return AtRank(next_level)
    return Approved()
