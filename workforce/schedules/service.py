"""Schedule resolver — which timetable applies to an employee on a date,
and what window it prescribes for that weekday."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from workforce.common.constants import WEEKDAY_COLUMNS
from workforce.schedules.models import EmployeeScheduleAssignment, WorkSchedule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledTimes:
    is_working_day: bool
    scheduled_start: Optional[time] = None
    scheduled_end: Optional[time] = None

    @property
    def has_window(self) -> bool:
        return self.scheduled_start is not None and self.scheduled_end is not None


NOT_SCHEDULED = ScheduledTimes(is_working_day=False)


class ScheduleResolver:

    @staticmethod
    async def get_schedule_for_date(
        db: AsyncSession,
        employee_id: uuid.UUID,
        target_date: date,
    ) -> Optional[WorkSchedule]:
        """Assignment covering the date (latest start wins), else the default schedule."""

        result = await db.execute(
            select(EmployeeScheduleAssignment)
            .join(EmployeeScheduleAssignment.schedule)
            .where(
                EmployeeScheduleAssignment.employee_id == employee_id,
                EmployeeScheduleAssignment.start_date <= target_date,
                (
                    EmployeeScheduleAssignment.end_date.is_(None)
                    | (EmployeeScheduleAssignment.end_date >= target_date)
                ),
                WorkSchedule.is_active.is_(True),
            )
            .options(selectinload(EmployeeScheduleAssignment.schedule))
            .order_by(EmployeeScheduleAssignment.start_date.desc())
            .limit(1)
        )
        assignment = result.scalars().first()
        if assignment is not None:
            return assignment.schedule

        default = await db.execute(
            select(WorkSchedule)
            .where(WorkSchedule.is_default.is_(True), WorkSchedule.is_active.is_(True))
            .order_by(WorkSchedule.created_at)
            .limit(1)
        )
        schedule = default.scalars().first()
        if schedule is None:
            logger.debug("No schedule for employee %s on %s", employee_id, target_date)
        return schedule

    @staticmethod
    def scheduled_times_for_date(
        schedule: Optional[WorkSchedule],
        target_date: date,
    ) -> ScheduledTimes:
        """Expected window for ``target_date``.

        Weekday-specific times win; if either bound is missing the generic
        ``start_time``/``end_time`` pair is used. A weekday with no window at
        all is not a working day, whatever ``working_days`` says.
        """
        if schedule is None:
            return NOT_SCHEDULED

        iso_day = target_date.isoweekday()
        day_name = WEEKDAY_COLUMNS[iso_day - 1]
        start = getattr(schedule, f"{day_name}_start")
        end = getattr(schedule, f"{day_name}_end")
        if start is None or end is None:
            start, end = schedule.start_time, schedule.end_time
        if start is None or end is None:
            return NOT_SCHEDULED

        working_days = {int(d) for d in (schedule.working_days or [])}
        return ScheduledTimes(
            is_working_day=iso_day in working_days,
            scheduled_start=start,
            scheduled_end=end,
        )
