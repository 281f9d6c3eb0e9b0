"""Schedule resolution — assignment vs. default, weekday windows."""

from __future__ import annotations

from datetime import date, time

from workforce.schedules.models import WorkSchedule
from workforce.schedules.service import NOT_SCHEDULED, ScheduleResolver
from tests.conftest import _make_schedule, seed_employee, seed_schedule

MONDAY = date(2025, 3, 3)
SATURDAY = date(2025, 3, 8)


class TestScheduledTimes:

    def test_generic_window_on_working_day(self):
        schedule = WorkSchedule(**_make_schedule())
        times = ScheduleResolver.scheduled_times_for_date(schedule, MONDAY)
        assert times.is_working_day is True
        assert times.scheduled_start == time(9, 0)
        assert times.scheduled_end == time(18, 0)

    def test_weekday_columns_win(self):
        schedule = WorkSchedule(**_make_schedule(
            monday_start=time(8, 0), monday_end=time(12, 0),
        ))
        times = ScheduleResolver.scheduled_times_for_date(schedule, MONDAY)
        assert (times.scheduled_start, times.scheduled_end) == (time(8, 0), time(12, 0))

    def test_half_weekday_window_falls_back_to_generic(self):
        schedule = WorkSchedule(**_make_schedule(monday_start=time(8, 0)))
        times = ScheduleResolver.scheduled_times_for_date(schedule, MONDAY)
        assert times.scheduled_start == time(9, 0)

    def test_weekend_has_window_but_is_not_working(self):
        schedule = WorkSchedule(**_make_schedule())
        times = ScheduleResolver.scheduled_times_for_date(schedule, SATURDAY)
        assert times.is_working_day is False
        assert times.has_window is True

    def test_no_window_means_not_scheduled(self):
        schedule = WorkSchedule(**_make_schedule(start=None, end=None))
        assert ScheduleResolver.scheduled_times_for_date(schedule, MONDAY) == NOT_SCHEDULED
        assert ScheduleResolver.scheduled_times_for_date(None, MONDAY) == NOT_SCHEDULED


async def test_assignment_beats_default(db):
    employee = await seed_employee(db)
    await seed_schedule(db, name="Default", is_default=True)
    assigned = await seed_schedule(db, employee, name="Night", start=time(22, 0), end=time(6, 0))

    schedule = await ScheduleResolver.get_schedule_for_date(db, employee.id, MONDAY)
    assert schedule.id == assigned.id


async def test_latest_assignment_wins(db):
    employee = await seed_employee(db)
    await seed_schedule(db, employee, name="Old", start_date=date(2024, 1, 1))
    newer = await seed_schedule(db, employee, name="New", start_date=date(2025, 1, 1))

    schedule = await ScheduleResolver.get_schedule_for_date(db, employee.id, MONDAY)
    assert schedule.id == newer.id

    before = await ScheduleResolver.get_schedule_for_date(db, employee.id, date(2024, 6, 3))
    assert before.name == "Old"


async def test_falls_back_to_default(db):
    employee = await seed_employee(db)
    default = await seed_schedule(db, name="Default", is_default=True)

    schedule = await ScheduleResolver.get_schedule_for_date(db, employee.id, MONDAY)
    assert schedule.id == default.id


async def test_no_schedule_at_all(db):
    employee = await seed_employee(db)
    assert await ScheduleResolver.get_schedule_for_date(db, employee.id, MONDAY) is None
