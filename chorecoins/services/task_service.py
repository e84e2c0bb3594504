import logging
from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import NotFoundError, PreconditionError, ValidationError
from ..models.activity import ActivityType
from ..models.task import Completion, CompletionStatus, Task, TaskAssignment, TaskFrequency, TaskStatus
from ..models.user import User
from ..utils.dt_utils import WEEKDAYS, local_date, local_day_window, parse_clock, utcnow
from . import schedule_service
from .activity_service import record_activity
from .coin_service import credit, get_user
from .concurrency import retry_on_conflict
from .household_service import ensure_admin, ensure_member
from .notification_service import notify
from .transitions import can_transition, transition

logger = logging.getLogger(__name__)


def get_task(db: Session, task_id: str) -> Task:
    task = db.get(Task, task_id)
    if not task:
        raise NotFoundError(f"Task {task_id} not found")
    return task


def get_completion(db: Session, completion_id: str) -> Completion:
    completion = db.get(Completion, completion_id)
    if not completion:
        raise NotFoundError(f"Completion {completion_id} not found")
    return completion


def _validate_rule(frequency, custom_days, custom_time) -> tuple[TaskFrequency, list[str] | None, str | None]:
    try:
        frequency = TaskFrequency(frequency)
    except ValueError:
        raise ValidationError(f"Unknown frequency {frequency!r}")

    if frequency != TaskFrequency.CUSTOM:
        return frequency, None, None

    days = [str(d).strip().lower() for d in custom_days or []]
    if not days:
        raise ValidationError("Custom frequency needs at least one weekday")
    unknown = [d for d in days if d not in WEEKDAYS]
    if unknown:
        raise ValidationError(f"Unknown weekday(s): {', '.join(unknown)}")
    # keep calendar order, drop duplicates
    days = [d for d in WEEKDAYS if d in days]

    if custom_time is not None and custom_time.strip():
        if parse_clock(custom_time) is None:
            raise ValidationError(f"Time of day must be HH:MM, got {custom_time!r}")
        custom_time = custom_time.strip()
    else:
        custom_time = None
    return frequency, days, custom_time


def _validate_assignees(db: Session, household_id: str, user_ids: list[str]) -> list[str]:
    unique = list(dict.fromkeys(user_ids))
    if not unique:
        return []
    found = db.execute(
        select(User.id).where(User.id.in_(unique), User.household_id == household_id)
    ).scalars().all()
    missing = set(unique) - set(found)
    if missing:
        raise ValidationError(f"Assignees are not household members: {', '.join(sorted(missing))}")
    return unique


def _check_photos(task: Task, before_photo: str | None, after_photo: str | None) -> None:
    needs_before = task.requires_photo or task.before_photo_required
    needs_after = task.requires_photo or task.after_photo_required
    if needs_before and not before_photo:
        raise ValidationError("A before photo is required for this task")
    if needs_after and not after_photo:
        raise ValidationError("An after photo is required for this task")


def create_task(
    db: Session, *,
    household_id: str,
    created_by: str,
    title: str,
    description: str | None = None,
    coin_reward: int | None = None,
    frequency: str = TaskFrequency.ONCE,
    custom_days: list[str] | None = None,
    custom_time: str | None = None,
    assigned_to: list[str] | None = None,
    anyone_can_do: bool | None = None,
    requires_photo: bool = False,
    before_photo_required: bool = False,
    after_photo_required: bool = False,
    now: datetime | None = None,
) -> Task:
    now = now or utcnow()
    creator = ensure_admin(db, user_id=created_by, household_id=household_id)
    if not title or not title.strip():
        raise ValidationError("Task title is required")
    if coin_reward is None:
        coin_reward = settings.DEFAULT_COIN_REWARD
    if coin_reward < 0:
        raise ValidationError("Coin reward must not be negative")
    frequency, custom_days, custom_time = _validate_rule(frequency, custom_days, custom_time)
    assignees = _validate_assignees(db, household_id, assigned_to or [])
    if anyone_can_do is None:
        anyone_can_do = not assignees
    if not anyone_can_do and not assignees:
        raise ValidationError("Assigned tasks need at least one assignee")

    task = Task(
        household_id=household_id,
        created_by=created_by,
        title=title.strip(),
        description=description,
        coin_reward=coin_reward,
        frequency=frequency,
        custom_days=custom_days,
        custom_time=custom_time,
        anyone_can_do=anyone_can_do,
        requires_photo=requires_photo,
        before_photo_required=before_photo_required,
        after_photo_required=after_photo_required,
        status=TaskStatus.ACTIVE,
        created_at=now,
        assignments=[TaskAssignment(user_id=uid) for uid in assignees],
    )
    task.next_due_date = schedule_service.initial_due_date(task, now=now)
    db.add(task)
    db.flush()
    record_activity(
        db, household_id=household_id, type=ActivityType.TASK_CREATED,
        user_id=creator.id, display_name=creator.name,
        task_id=task.id, task_title=task.title,
    )
    db.commit()
    db.refresh(task)
    logger.info(f"Task created: id={task.id}, title={task.title!r}, frequency={task.frequency}")
    return task


@retry_on_conflict
def update_task(
    db: Session, *,
    task_id: str,
    editor_id: str,
    title: str | None = None,
    description: str | None = None,
    coin_reward: int | None = None,
    frequency: str | None = None,
    custom_days: list[str] | None = None,
    custom_time: str | None = None,
    assigned_to: list[str] | None = None,
    anyone_can_do: bool | None = None,
    requires_photo: bool | None = None,
    before_photo_required: bool | None = None,
    after_photo_required: bool | None = None,
    now: datetime | None = None,
) -> Task:
    now = now or utcnow()
    task = get_task(db, task_id)
    ensure_admin(db, user_id=editor_id, household_id=task.household_id)

    if title is not None and not title.strip():
        raise ValidationError("Task title is required")
    if coin_reward is not None and coin_reward < 0:
        raise ValidationError("Coin reward must not be negative")
    rule_changed = any(v is not None for v in (frequency, custom_days, custom_time))
    if rule_changed:
        rule = _validate_rule(
            frequency if frequency is not None else task.frequency,
            custom_days if custom_days is not None else task.custom_days,
            custom_time if custom_time is not None else task.custom_time,
        )
    assignees = task.assigned_to
    if assigned_to is not None:
        assignees = _validate_assignees(db, task.household_id, assigned_to)
    open_to_all = task.anyone_can_do if anyone_can_do is None else anyone_can_do
    if not open_to_all and not assignees:
        raise ValidationError("Assigned tasks need at least one assignee")

    if title is not None:
        task.title = title.strip()
    if description is not None:
        task.description = description
    if coin_reward is not None:
        # pending completions keep the reward they were submitted with
        task.coin_reward = coin_reward
    if rule_changed:
        task.frequency, task.custom_days, task.custom_time = rule
        task.next_due_date = schedule_service.initial_due_date(task, now=now)
    if assigned_to is not None:
        task.assignments = [a for a in task.assignments if a.user_id in assignees]
        current = set(task.assigned_to)
        task.assignments.extend(TaskAssignment(user_id=uid) for uid in assignees if uid not in current)
    task.anyone_can_do = open_to_all
    for name, value in (
        ("requires_photo", requires_photo),
        ("before_photo_required", before_photo_required),
        ("after_photo_required", after_photo_required),
    ):
        if value is not None:
            setattr(task, name, value)

    db.commit()
    db.refresh(task)
    return task


def delete_task(db: Session, *, task_id: str, admin_id: str) -> None:
    task = get_task(db, task_id)
    ensure_admin(db, user_id=admin_id, household_id=task.household_id)
    count = len(task.completions)
    db.delete(task)
    db.commit()
    logger.info(f"Task {task_id} deleted with {count} completions")


@retry_on_conflict
def set_task_status(
    db: Session, *, task_id: str, admin_id: str, status: str, now: datetime | None = None
) -> Task:
    try:
        status = TaskStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown task status {status!r}")
    task = get_task(db, task_id)
    ensure_admin(db, user_id=admin_id, household_id=task.household_id)
    task.status = status
    if status == TaskStatus.ACTIVE and task.is_recurring and task.next_due_date is None:
        task.next_due_date = schedule_service.initial_due_date(task, now=now)
    db.commit()
    db.refresh(task)
    return task


def _household_tasks(db: Session, household_id: str, status: TaskStatus | None = None) -> list[Task]:
    stmt = select(Task).where(Task.household_id == household_id)
    if status is not None:
        stmt = stmt.where(Task.status == status)
    return list(db.execute(stmt.order_by(Task.created_at.desc())).scalars())


def list_household_tasks(
    db: Session, *, household_id: str, status_filter: str = "all", now: datetime | None = None
) -> list[Task]:
    """``all`` returns what is actionable now; a status name returns every match."""
    if status_filter == "all":
        return schedule_service.visible_tasks(_household_tasks(db, household_id), now)
    try:
        status = TaskStatus(status_filter)
    except ValueError:
        raise ValidationError(f"Unknown task status filter {status_filter!r}")
    return _household_tasks(db, household_id, status)


def tasks_on_date(db: Session, *, household_id: str, day: date, now: datetime | None = None) -> list[Task]:
    return schedule_service.tasks_due_on(_household_tasks(db, household_id, TaskStatus.ACTIVE), day, now=now)


def task_calendar(
    db: Session, *, household_id: str, start: date, end: date, now: datetime | None = None
) -> dict[date, list[Task]]:
    if end < start:
        raise ValidationError("Range end must not be before its start")
    if (end - start).days > 92:
        raise ValidationError("Calendar range is limited to 93 days")
    tasks = _household_tasks(db, household_id, TaskStatus.ACTIVE)
    return schedule_service.tasks_for_date_range(tasks, start, end, now=now)


def list_overdue_tasks(db: Session, *, household_id: str, now: datetime | None = None) -> list[Task]:
    return schedule_service.overdue_tasks(_household_tasks(db, household_id, TaskStatus.ACTIVE), now)


def _pending_in_window(db: Session, task_id: str, start: datetime, end: datetime) -> Completion | None:
    stmt = select(Completion).where(
        Completion.task_id == task_id,
        Completion.status == CompletionStatus.PENDING,
        Completion.submitted_at >= start,
        Completion.submitted_at < end,
    )
    return db.execute(stmt.limit(1)).scalar_one_or_none()


def submit_completion(
    db: Session, *,
    task_id: str,
    user_id: str,
    notes: str | None = None,
    before_photo: str | None = None,
    after_photo: str | None = None,
    now: datetime | None = None,
) -> Completion:
    now = now or utcnow()
    task = get_task(db, task_id)
    user = ensure_member(db, user_id=user_id, household_id=task.household_id)

    if task.status != TaskStatus.ACTIVE:
        raise PreconditionError(f"Task is {task.status.value} and cannot be completed", code="TASK_NOT_ACTIVE")
    if task.is_assigned and user.id not in task.assigned_to:
        raise PreconditionError("This task is assigned to someone else", code="NOT_ASSIGNED")
    _check_photos(task, before_photo, after_photo)

    if task.is_recurring:
        start, end = local_day_window(now)
        if _pending_in_window(db, task.id, start, end):
            raise PreconditionError("A completion for this task is already awaiting approval today",
                                    code="COMPLETION_PENDING")

    completion = Completion(
        task_id=task.id,
        household_id=task.household_id,
        task_title=task.title,
        completed_by=user.id,
        completed_by_name=user.name,
        submitted_at=now,
        status=CompletionStatus.PENDING,
        coins_pending=task.coin_reward,
        coins_awarded=0,
        notes=notes,
        before_photo=before_photo,
        after_photo=after_photo,
    )
    db.add(completion)

    task.completion_count += 1
    task.last_completed_at = now
    if not task.is_recurring:
        task.status = TaskStatus.COMPLETED
    user.last_active = now

    db.commit()
    db.refresh(completion)
    logger.info(f"Completion {completion.id} submitted for task {task.id} by {user.id}")
    notify("completion.submitted", completion_id=completion.id, task_id=task.id,
           household_id=task.household_id, user_id=user.id)
    return completion


def record_streak(user: User, day: date) -> None:
    last = user.last_streak_day
    if last == day:
        return
    if last is not None and last == day - timedelta(days=1):
        user.current_streak += 1
    else:
        user.current_streak = 1
    user.longest_streak = max(user.longest_streak, user.current_streak)
    user.last_streak_day = day


def _resolvable(completion: Completion, target: CompletionStatus) -> None:
    if not can_transition(completion.status, target):
        raise PreconditionError(
            f"Completion {completion.id} was already {CompletionStatus(completion.status).value}",
            code="ALREADY_RESOLVED",
        )


def _reschedule(task: Task, completion: Completion, now: datetime) -> None:
    if task.is_recurring:
        schedule_service.update_next_due_date(task, completion.submitted_at, now=now)


@retry_on_conflict
def approve_completion(
    db: Session, *, completion_id: str, approver_id: str, now: datetime | None = None
) -> Completion:
    """Award the snapshotted coins. The status flip is the last change before commit."""
    now = now or utcnow()
    completion = get_completion(db, completion_id)
    approver = ensure_admin(db, user_id=approver_id, household_id=completion.household_id)
    _resolvable(completion, CompletionStatus.APPROVED)

    task = completion.task
    user = get_user(db, completion.completed_by)

    credit(db, user, completion.coins_pending,
           reason=f"Completed '{completion.task_title}'",
           completion_id=completion.id, created_by=approver.id)
    user.chores_completed += 1
    record_streak(user, local_date(completion.submitted_at))
    _reschedule(task, completion, now)

    completion.coins_awarded = completion.coins_pending
    completion.approved_by = approver.id
    completion.approved_at = now
    record_activity(
        db, household_id=completion.household_id, type=ActivityType.TASK_COMPLETED,
        user_id=user.id, display_name=user.name,
        task_id=task.id, task_title=completion.task_title, coins=completion.coins_awarded,
    )
    transition(completion, CompletionStatus.APPROVED)
    db.commit()
    db.refresh(completion)

    logger.info(f"Completion {completion.id} approved: {completion.coins_awarded} coins to {user.id}")
    notify("completion.resolved", completion_id=completion.id, status=CompletionStatus.APPROVED.value,
           user_id=user.id, coins=completion.coins_awarded)
    return completion


@retry_on_conflict
def reject_completion(
    db: Session, *,
    completion_id: str,
    approver_id: str,
    reason: str | None = None,
    now: datetime | None = None,
) -> Completion:
    now = now or utcnow()
    completion = get_completion(db, completion_id)
    approver = ensure_admin(db, user_id=approver_id, household_id=completion.household_id)
    _resolvable(completion, CompletionStatus.REJECTED)

    _reschedule(completion.task, completion, now)
    completion.coins_awarded = 0
    completion.rejection_reason = reason
    completion.approved_by = approver.id
    completion.approved_at = now
    transition(completion, CompletionStatus.REJECTED)
    db.commit()
    db.refresh(completion)

    notify("completion.resolved", completion_id=completion.id, status=CompletionStatus.REJECTED.value,
           user_id=completion.completed_by, reason=reason)
    return completion


def pending_completions(db: Session, *, household_id: str) -> list[Completion]:
    stmt = (
        select(Completion)
        .where(Completion.household_id == household_id, Completion.status == CompletionStatus.PENDING)
        .order_by(Completion.submitted_at.desc())
    )
    return list(db.execute(stmt).scalars())


def completion_status_today(db: Session, *, task_id: str, now: datetime | None = None) -> str:
    """``approved``, ``pending`` or ``none`` for the task within today's local day."""
    start, end = local_day_window(now or utcnow())
    stmt = select(Completion.status).where(
        Completion.task_id == task_id,
        Completion.submitted_at >= start,
        Completion.submitted_at < end,
    )
    statuses = set(db.execute(stmt).scalars())
    if CompletionStatus.APPROVED in statuses:
        return "approved"
    if CompletionStatus.PENDING in statuses:
        return "pending"
    return "none"
