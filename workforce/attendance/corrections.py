"""Correction applier — writes an approved clock correction onto the day record.

Runs only when a correction request reaches its terminal ``approved`` state,
inside the same transaction as the approval.
"""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, time
from typing import Optional, Union

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.attendance.daily import append_note, upsert_daily_record
from workforce.attendance.models import AttendanceDailyRecord, CorrectionRequest
from workforce.common.audit import create_audit_entry
from workforce.common.clock import local_zone
from workforce.common.constants import AttendanceSource, DayStatus

logger = logging.getLogger(__name__)

CORRECTION_NOTE = "Correction approved"

_TIME_RE = re.compile(r"(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?")


def normalize_time(value: Union[str, time, None]) -> Optional[str]:
    """Return ``HH:MM:SS`` for ``HH:MM``, ``HH:MM:SS[.ffffff]``, a full ISO
    timestamp or a ``time``. ``None``/blank stays ``None``; anything else
    raises ``ValueError``."""
    if value is None:
        return None
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")

    text = value.strip()
    if not text:
        return None
    match = _TIME_RE.fullmatch(text)
    if match is None:
        try:
            return datetime.fromisoformat(text).strftime("%H:%M:%S")
        except ValueError:
            raise ValueError(f"Malformed time value: {value!r}") from None

    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise ValueError(f"Time out of range: {value!r}")
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def validate_correction_times(correction: CorrectionRequest) -> tuple[Optional[str], Optional[str]]:
    """Normalized (check_in, check_out); raises ``ValueError`` before anything is written."""
    return (
        normalize_time(correction.requested_check_in),
        normalize_time(correction.requested_check_out),
    )


def _local_timestamp(work_date, hhmmss: Optional[str]) -> Optional[datetime]:
    if hhmmss is None:
        return None
    return datetime.combine(work_date, time.fromisoformat(hhmmss), tzinfo=local_zone())


def _merge_correction(excluded, current) -> dict:
    return {
        "clock_in_at": func.coalesce(excluded.clock_in_at, current.clock_in_at),
        "clock_out_at": func.coalesce(excluded.clock_out_at, current.clock_out_at),
        "day_status": excluded.day_status,
        "source": excluded.source,
        "is_anomaly": excluded.is_anomaly,
        "notes": append_note(current.notes, excluded.notes),
        "updated_at": excluded.updated_at,
    }


class CorrectionApplier:

    @staticmethod
    async def apply(
        db: AsyncSession,
        correction: CorrectionRequest,
        *,
        now: datetime,
        actor_id: Optional[uuid.UUID] = None,
    ) -> AttendanceDailyRecord:
        """Upsert the corrected punches into the day record, stamped with ``now``."""
        check_in, check_out = validate_correction_times(correction)

        values = {
            "employee_id": correction.employee_id,
            "work_date": correction.request_date,
            "clock_in_at": _local_timestamp(correction.request_date, check_in),
            "clock_out_at": _local_timestamp(correction.request_date, check_out),
            "day_status": DayStatus.present.value,
            "source": AttendanceSource.correction.value,
            "is_anomaly": False,
            "notes": CORRECTION_NOTE,
            "updated_at": now,
        }
        record = await upsert_daily_record(db, values, _merge_correction)

        await create_audit_entry(
            db,
            action="correction_applied",
            entity_type="attendance_daily",
            entity_id=record.id,
            actor_id=actor_id,
            new_values={
                "correction_id": str(correction.id),
                "clock_in": check_in,
                "clock_out": check_out,
            },
        )
        logger.info(
            "Applied correction %s to %s on %s (in=%s out=%s)",
            correction.id, correction.employee_id, correction.request_date,
            check_in, check_out,
        )
        return record
