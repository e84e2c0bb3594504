"""Recurrence calculation and task visibility.

The pure functions here never raise on malformed task configuration: a bad
recurrence rule is logged and degraded to a safe (weekly) schedule so one
broken record cannot take down a whole task listing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models.task import Task, TaskFrequency, TaskStatus
from ..utils.dt_utils import (
    WEEKDAYS,
    as_local,
    as_utc,
    at_local_time,
    local_date,
    parse_clock,
    start_of_local_day,
    to_datetime,
    utcnow,
)

logger = logging.getLogger(__name__)

_WEEKDAY_INDEX = {name: index for index, name in enumerate(WEEKDAYS)}

# stored custom due dates further than this from the recomputed one get repaired
CUSTOM_REPAIR_THRESHOLD = timedelta(days=30)


def target_weekdays(task: Task) -> set[int]:
    """Weekday indexes (Monday == 0) of a custom task, ignoring unknown names."""
    result: set[int] = set()
    for day in task.custom_days or []:
        index = _WEEKDAY_INDEX.get(str(day).strip().lower())
        if index is None:
            logger.warning(f"Task {task.id} has unknown custom weekday {day!r}; ignoring it")
            continue
        result.add(index)
    return result


def _custom_clock(task: Task) -> time | None:
    if not task.custom_time:
        return None
    clock = parse_clock(task.custom_time)
    if clock is None:
        logger.warning(f"Task {task.id} has malformed custom time {task.custom_time!r}; ignoring it")
    return clock


def _frequency(task: Task) -> TaskFrequency | None:
    try:
        return TaskFrequency(task.frequency)
    except ValueError:
        logger.warning(f"Task {task.id} has unknown frequency {task.frequency!r}")
        return None


def _anchor(task: Task, anchor, now: datetime) -> datetime:
    for candidate in (anchor, task.last_completed_at, task.created_at):
        if candidate is None:
            continue
        try:
            return to_datetime(candidate)
        except ValueError:
            logger.warning(f"Task {task.id} has unparseable anchor {candidate!r}; trying next")
    return now


def _add_days(base: datetime, days: int) -> datetime:
    # wall-clock arithmetic in the local zone keeps "same time tomorrow" across DST
    return as_utc(as_local(base) + timedelta(days=days))


def _next_custom(task: Task, base: datetime, *, first_pass: bool, now: datetime) -> datetime:
    days = target_weekdays(task)
    if not days:
        logger.warning(
            f"Task {task.id} ({task.title!r}) has custom frequency without weekdays; defaulting to weekly"
        )
        return _add_days(base, 7)

    clock = _custom_clock(task)
    if first_pass:
        today = as_local(now)
        if today.weekday() in days:
            return at_local_time(today.date(), clock) if clock else now

    local_base = as_local(base)
    for offset in range(1, 8):
        candidate = local_base + timedelta(days=offset)
        if candidate.weekday() in days:
            if clock:
                return at_local_time(candidate.date(), clock)
            return as_utc(candidate)
    return _add_days(base, 7)


def next_due(task: Task, anchor: datetime | None = None, *, now: datetime | None = None) -> datetime:
    """Compute when ``task`` is next due after ``anchor``.

    Without an explicit anchor the task's last completion is used, then its
    creation time. ``once`` tasks return the anchor unchanged. For ``custom``
    tasks that have never been completed and get no explicit anchor, today
    counts when it is one of the target weekdays.
    """
    now = as_utc(now) if now else utcnow()
    base = _anchor(task, anchor, now)
    frequency = _frequency(task)

    if frequency == TaskFrequency.DAILY:
        return _add_days(base, 1)
    if frequency == TaskFrequency.WEEKLY:
        return _add_days(base, 7)
    if frequency == TaskFrequency.MONTHLY:
        return as_utc(as_local(base) + relativedelta(months=1))
    if frequency == TaskFrequency.CUSTOM:
        first_pass = anchor is None and task.last_completed_at is None
        return _next_custom(task, base, first_pass=first_pass, now=now)
    return base


def initial_due_date(task: Task, *, now: datetime | None = None) -> datetime | None:
    """First due date for a freshly created (or never scheduled) recurring task."""
    now = now or utcnow()
    frequency = _frequency(task)
    if frequency is None or frequency == TaskFrequency.ONCE:
        return None
    if frequency == TaskFrequency.DAILY:
        return start_of_local_day(now)
    if frequency == TaskFrequency.CUSTOM:
        return next_due(task, now=now)
    return next_due(task, task.created_at or now, now=now)


def update_next_due_date(task: Task, anchor: datetime | None = None, *, now: datetime | None = None) -> None:
    """Persistable schedule step: advance ``task.next_due_date`` (recurring only)."""
    if not task.is_recurring:
        return
    now = now or utcnow()
    if anchor is not None:
        task.next_due_date = next_due(task, anchor, now=now)
    elif task.next_due_date is None:
        task.next_due_date = initial_due_date(task, now=now)
    else:
        task.next_due_date = next_due(task, task.next_due_date, now=now)
    logger.info(f"Next due date for {task.title!r} set to {task.next_due_date.isoformat()}")


def is_visible(task: Task, now: datetime) -> bool:
    if task.frequency == TaskFrequency.ONCE or task.status != TaskStatus.ACTIVE:
        return True
    # unset due date means "needs initialization" and is surfaced to the caller
    return task.next_due_date is None or task.next_due_date <= as_utc(now)


def visible_tasks(tasks: Iterable[Task], now: datetime | None = None) -> list[Task]:
    """Actionable tasks, with future recurring instances suppressed."""
    now = now or utcnow()
    return [task for task in tasks if is_visible(task, now)]


def is_due_on(task: Task, day: date, *, now: datetime | None = None) -> bool:
    frequency = _frequency(task)
    if frequency == TaskFrequency.ONCE:
        return True
    created = local_date(task.created_at) if task.created_at else day
    if frequency == TaskFrequency.CUSTOM:
        return day.weekday() in target_weekdays(task) and day >= created
    if frequency == TaskFrequency.DAILY and day >= created:
        return True
    due = task.next_due_date or next_due(task, now=now)
    return local_date(due) == day


def tasks_due_on(tasks: Iterable[Task], day: date, *, now: datetime | None = None) -> list[Task]:
    """Calendar lookup: active tasks that fall on ``day``."""
    return [
        task for task in tasks
        if task.status == TaskStatus.ACTIVE and is_due_on(task, day, now=now)
    ]


def tasks_for_date_range(
    tasks: Iterable[Task], start: date, end: date, *, now: datetime | None = None
) -> dict[date, list[Task]]:
    tasks = list(tasks)
    schedule: dict[date, list[Task]] = {}
    day = start
    while day <= end:
        schedule[day] = tasks_due_on(tasks, day, now=now)
        day += timedelta(days=1)
    return schedule


def overdue_tasks(tasks: Iterable[Task], now: datetime | None = None) -> list[Task]:
    """Recurring active tasks whose due day is before today."""
    today = local_date(now or utcnow())
    return [
        task for task in tasks
        if task.status == TaskStatus.ACTIVE
        and task.is_recurring
        and task.next_due_date is not None
        and local_date(task.next_due_date) < today
    ]


def _active_household_tasks(db: Session, household_id: str) -> list[Task]:
    stmt = select(Task).where(Task.household_id == household_id, Task.status == TaskStatus.ACTIVE)
    return list(db.execute(stmt).scalars())


def initialize_next_due_dates(db: Session, *, household_id: str, now: datetime | None = None) -> int:
    """Seed ``next_due_date`` on recurring tasks that never got one."""
    now = now or utcnow()
    count = 0
    for task in _active_household_tasks(db, household_id):
        if task.is_recurring and task.next_due_date is None:
            task.next_due_date = initial_due_date(task, now=now)
            count += 1
    db.commit()
    logger.info(f"Initialized next due dates for {count} tasks in household {household_id}")
    return count


def fix_custom_frequency_tasks(db: Session, *, household_id: str, now: datetime | None = None) -> int:
    """Repair custom tasks whose stored due date is missing or far off."""
    now = now or utcnow()
    fixed = 0
    for task in _active_household_tasks(db, household_id):
        if task.frequency != TaskFrequency.CUSTOM or not task.custom_days:
            continue
        correct = next_due(task, now=now)
        if task.next_due_date is None or abs(correct - task.next_due_date) > CUSTOM_REPAIR_THRESHOLD:
            logger.info(f"Repairing due date of {task.title!r} to {correct.isoformat()}")
            task.next_due_date = correct
            fixed += 1
    if fixed:
        db.commit()
    return fixed
