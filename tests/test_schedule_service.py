from __future__ import annotations

import logging
from datetime import UTC, date, datetime, timedelta

import pytest
from dateutil.relativedelta import relativedelta

from chorecoins.models.task import Task, TaskFrequency, TaskStatus
from chorecoins.services import schedule_service
from chorecoins.services.schedule_service import (
    initial_due_date,
    is_visible,
    next_due,
    tasks_due_on,
    update_next_due_date,
    visible_tasks,
)

from .conftest import NOW

MONDAY = NOW
THURSDAY = NOW + timedelta(days=3)


def _task(frequency: TaskFrequency, **kwargs) -> Task:
    kwargs.setdefault("status", TaskStatus.ACTIVE)
    kwargs.setdefault("created_at", NOW)
    return Task(title=f"{frequency} chore", frequency=frequency, **kwargs)


@pytest.mark.parametrize(
    "frequency,step",
    [
        (TaskFrequency.DAILY, timedelta(days=1)),
        (TaskFrequency.WEEKLY, timedelta(days=7)),
        (TaskFrequency.MONTHLY, relativedelta(months=1)),
    ],
)
def test_fixed_frequencies_step_exactly_one_period(frequency, step) -> None:
    anchor = datetime(2026, 1, 15, 18, 45, tzinfo=UTC)
    due = next_due(_task(frequency), anchor, now=NOW)
    assert due == anchor + step
    assert due > anchor


def test_monthly_uses_calendar_months() -> None:
    anchor = datetime(2026, 1, 31, 8, 0, tzinfo=UTC)
    assert next_due(_task(TaskFrequency.MONTHLY), anchor, now=NOW) == datetime(2026, 2, 28, 8, 0, tzinfo=UTC)


def test_once_returns_anchor_unchanged() -> None:
    assert next_due(_task(TaskFrequency.ONCE), THURSDAY, now=NOW) == THURSDAY


def test_custom_weekdays_cycle_monday_thursday() -> None:
    task = _task(TaskFrequency.CUSTOM, custom_days=["monday", "thursday"])
    first = next_due(task, MONDAY, now=NOW)
    assert first == MONDAY + timedelta(days=3)
    assert next_due(task, first, now=NOW) == first + timedelta(days=4)


def test_custom_first_pass_may_return_today() -> None:
    task = _task(TaskFrequency.CUSTOM, custom_days=["monday"], custom_time="18:00")
    assert next_due(task, now=NOW) == datetime(2026, 3, 2, 18, 0, tzinfo=UTC)


def test_custom_with_anchor_is_strictly_after_it() -> None:
    task = _task(TaskFrequency.CUSTOM, custom_days=["monday"])
    assert next_due(task, MONDAY, now=NOW) == MONDAY + timedelta(days=7)


def test_custom_after_completion_does_not_return_today() -> None:
    task = _task(TaskFrequency.CUSTOM, custom_days=["monday"], last_completed_at=MONDAY)
    assert next_due(task, now=NOW) == MONDAY + timedelta(days=7)


def test_custom_without_weekdays_falls_back_to_weekly(caplog) -> None:
    task = _task(TaskFrequency.CUSTOM, custom_days=[])
    with caplog.at_level(logging.WARNING):
        assert next_due(task, MONDAY, now=NOW) == MONDAY + timedelta(days=7)
    assert "defaulting to weekly" in caplog.text


def test_malformed_custom_configuration_does_not_raise() -> None:
    task = _task(TaskFrequency.CUSTOM, custom_days=["funday", "friday"], custom_time="noon")
    assert next_due(task, MONDAY, now=NOW) == MONDAY + timedelta(days=4)


def test_anchor_defaults_to_last_completion_then_creation() -> None:
    completed = NOW + timedelta(days=2)
    assert next_due(_task(TaskFrequency.DAILY, last_completed_at=completed), now=NOW) == completed + timedelta(days=1)
    assert next_due(_task(TaskFrequency.DAILY), now=NOW) == NOW + timedelta(days=1)


def test_initial_due_dates() -> None:
    assert initial_due_date(_task(TaskFrequency.ONCE), now=NOW) is None
    assert initial_due_date(_task(TaskFrequency.DAILY), now=NOW) == datetime(2026, 3, 2, tzinfo=UTC)
    assert initial_due_date(_task(TaskFrequency.WEEKLY), now=NOW) == NOW + timedelta(days=7)
    assert initial_due_date(_task(TaskFrequency.CUSTOM, custom_days=["thursday"]), now=NOW) == THURSDAY


def test_update_next_due_date_skips_one_off_tasks() -> None:
    task = _task(TaskFrequency.ONCE)
    update_next_due_date(task, MONDAY, now=NOW)
    assert task.next_due_date is None


def test_visibility_filter() -> None:
    one_off = _task(TaskFrequency.ONCE, status=TaskStatus.COMPLETED)
    paused = _task(TaskFrequency.WEEKLY, status=TaskStatus.PAUSED, next_due_date=NOW + timedelta(days=5))
    future = _task(TaskFrequency.WEEKLY, next_due_date=NOW + timedelta(days=5))
    due = _task(TaskFrequency.DAILY, next_due_date=NOW)
    overdue = _task(TaskFrequency.DAILY, next_due_date=NOW - timedelta(days=2))
    unscheduled = _task(TaskFrequency.MONTHLY)

    assert not is_visible(future, NOW)
    assert visible_tasks([one_off, paused, future, due, overdue, unscheduled], NOW) == [
        one_off, paused, due, overdue, unscheduled,
    ]


def test_tasks_due_on_calendar_rules() -> None:
    daily = _task(TaskFrequency.DAILY, next_due_date=NOW + timedelta(days=30))
    custom = _task(TaskFrequency.CUSTOM, custom_days=["monday"])
    weekly = _task(TaskFrequency.WEEKLY, next_due_date=NOW + timedelta(days=7))
    paused = _task(TaskFrequency.DAILY, status=TaskStatus.PAUSED)
    tasks = [daily, custom, weekly, paused]

    assert tasks_due_on(tasks, date(2026, 3, 9)) == [daily, custom, weekly]
    assert tasks_due_on(tasks, date(2026, 3, 10)) == [daily]
    # before creation
    assert tasks_due_on(tasks, date(2026, 2, 23)) == []


def test_tasks_for_date_range_maps_every_day() -> None:
    custom = _task(TaskFrequency.CUSTOM, custom_days=["wednesday"])
    schedule = schedule_service.tasks_for_date_range([custom], date(2026, 3, 2), date(2026, 3, 8))
    assert len(schedule) == 7
    assert [day for day, tasks in schedule.items() if tasks] == [date(2026, 3, 4)]


def test_overdue_tasks_before_today_only() -> None:
    yesterday = _task(TaskFrequency.DAILY, next_due_date=NOW - timedelta(days=1))
    this_morning = _task(TaskFrequency.DAILY, next_due_date=NOW - timedelta(hours=2))
    assert schedule_service.overdue_tasks([yesterday, this_morning], NOW) == [yesterday]


def test_initialize_and_repair_due_dates(db, household) -> None:
    weekly = Task(household_id=household.id, title="Bins", frequency=TaskFrequency.WEEKLY, created_at=NOW)
    custom_far = Task(household_id=household.id, title="Piano", frequency=TaskFrequency.CUSTOM,
                      custom_days=["thursday"], created_at=NOW, next_due_date=NOW + timedelta(days=90))
    custom_ok = Task(household_id=household.id, title="Laundry", frequency=TaskFrequency.CUSTOM,
                     custom_days=["friday"], created_at=NOW, next_due_date=NOW + timedelta(days=11))
    one_off = Task(household_id=household.id, title="Garage", frequency=TaskFrequency.ONCE, created_at=NOW)
    db.add_all([weekly, custom_far, custom_ok, one_off])
    db.commit()

    assert schedule_service.initialize_next_due_dates(db, household_id=household.id, now=NOW) == 1
    assert weekly.next_due_date == NOW + timedelta(days=7)
    assert one_off.next_due_date is None

    assert schedule_service.fix_custom_frequency_tasks(db, household_id=household.id, now=NOW) == 1
    assert custom_far.next_due_date == THURSDAY
    assert custom_ok.next_due_date == NOW + timedelta(days=11)
