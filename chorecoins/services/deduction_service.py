"""Missed-chore deductions.

A sweep claims each overdue occurrence by stamping
``Task.last_deduction_processed`` and committing before any coins move.
The stamp is version-checked, so a second sweep racing on the same task
loses the claim instead of deducting twice. Users are then debited one
commit at a time and failures are collected rather than raised.
``processed_count`` in the report counts successful per-user deductions.

The household row is read ``FOR UPDATE``, but the first claim commits and
releases that lock. Past the first task, sweeps in separate processes are
kept apart only by the task version check.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.errors import ChoreCoinsError, NotFoundError, PreconditionError
from ..models.activity import ActivityType
from ..models.household import Household
from ..models.points import TransactionType
from ..models.task import Completion, CompletionStatus, Task, TaskStatus
from ..models.user import User
from ..utils.dt_utils import as_utc, utcnow
from .activity_service import record_activity
from .coin_service import debit, get_user
from .concurrency import retry_on_conflict
from .notification_service import notify

logger = logging.getLogger(__name__)

_sweep_locks: dict[str, threading.Lock] = {}
_sweep_locks_guard = threading.Lock()


@dataclass
class DeductionReport:
    processed_count: int = 0
    errors: list[str] = field(default_factory=list)
    coins_deducted: int = 0


@dataclass
class MissedTask:
    task: Task
    assignees: list[User]
    due_date: datetime
    days_missed: int
    deduction: int


def _household_lock(household_id: str) -> threading.Lock:
    with _sweep_locks_guard:
        return _sweep_locks.setdefault(household_id, threading.Lock())


def _assigned_active_tasks(db: Session, household_id: str) -> list[Task]:
    stmt = select(Task).where(
        Task.household_id == household_id,
        Task.status == TaskStatus.ACTIVE,
        Task.anyone_can_do.is_(False),
        Task.next_due_date.is_not(None),
    )
    return [t for t in db.execute(stmt).scalars() if t.is_recurring and t.is_assigned]


def overdue_assigned_tasks(db: Session, *, household: Household, now: datetime) -> list[Task]:
    """Assigned tasks past due by more than the grace period and not yet charged for this occurrence."""
    cutoff = as_utc(now) - timedelta(hours=household.grace_period_hours)
    return [
        task for task in _assigned_active_tasks(db, household.id)
        if task.next_due_date < cutoff
        and (task.last_deduction_processed is None or task.last_deduction_processed < task.next_due_date)
    ]


def _claim(db: Session, task: Task, now: datetime) -> bool:
    task.last_deduction_processed = now
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.info(f"Task {task.id} was changed by another writer; skipping this occurrence")
        return False
    return True


@retry_on_conflict
def _deduct_user(
    db: Session, *, user_id: str, task_id: str, task_title: str, household_id: str, amount: int
) -> int:
    user = get_user(db, user_id)
    txn = debit(db, user, amount, reason=f"Missed '{task_title}'",
                type=TransactionType.DEDUCT, task_id=task_id)
    applied = -txn.amount
    record_activity(
        db, household_id=household_id, type=ActivityType.COINS_DEDUCTED,
        user_id=user.id, display_name=user.name,
        task_id=task_id, task_title=task_title, coin_amount=applied,
    )
    db.commit()
    return applied


def process_missed(db: Session, *, household_id: str, now: datetime | None = None) -> DeductionReport:
    now = as_utc(now) if now else utcnow()
    lock = _household_lock(household_id)
    if not lock.acquire(blocking=False):
        raise PreconditionError(f"A deduction sweep is already running for {household_id}",
                                code="SWEEP_RUNNING")
    try:
        household = db.execute(
            select(Household).where(Household.id == household_id).with_for_update()
        ).scalar_one_or_none()
        if not household:
            raise NotFoundError(f"Household {household_id} not found")

        report = DeductionReport()
        policy = household.deduction_policy
        if not policy.enabled:
            logger.info(f"Deductions disabled for household {household_id}; skipping sweep")
            db.commit()
            return report

        overdue = [
            (task.id, task.title, task.assigned_to, task)
            for task in overdue_assigned_tasks(db, household=household, now=now)
        ]
        for task_id, title, assignees, task in overdue:
            if not _claim(db, task, now):
                continue
            for user_id in assignees:
                try:
                    applied = _deduct_user(db, user_id=user_id, task_id=task_id, task_title=title,
                                           household_id=household_id, amount=policy.deduction)
                except (ChoreCoinsError, SQLAlchemyError) as e:
                    db.rollback()
                    logger.error(f"Deduction for {user_id} on task {task_id} failed: {e}", exc_info=True)
                    report.errors.append(f"Failed to deduct coins from {user_id} for '{title}': {e}")
                    continue
                report.processed_count += 1
                report.coins_deducted += applied
                notify("coins.deducted", household_id=household_id, user_id=user_id,
                       task_id=task_id, coins=applied)

        logger.info(
            f"Deduction sweep for {household_id}: {report.processed_count} deductions, "
            f"{report.coins_deducted} coins, {len(report.errors)} errors"
        )
        return report
    finally:
        lock.release()


def missed_tasks(
    db: Session, *, household_id: str, days: int = 7, now: datetime | None = None
) -> list[MissedTask]:
    """Assigned tasks that fell due in the last ``days`` days with no approved completion since."""
    now = as_utc(now) if now else utcnow()
    household = db.get(Household, household_id)
    if not household:
        raise NotFoundError(f"Household {household_id} not found")
    since = now - timedelta(days=days)

    result = []
    for task in _assigned_active_tasks(db, household_id):
        due = task.next_due_date
        if not (since <= due < now):
            continue
        approved_since = db.execute(
            select(Completion.id).where(
                Completion.task_id == task.id,
                Completion.status == CompletionStatus.APPROVED,
                Completion.submitted_at >= due,
            ).limit(1)
        ).first()
        if approved_since:
            continue
        assignees = list(db.execute(select(User).where(User.id.in_(task.assigned_to))).scalars())
        result.append(MissedTask(
            task=task,
            assignees=assignees,
            due_date=due,
            days_missed=max(1, (now - due).days),
            deduction=household.missed_chore_deduction if household.coin_deduction_enabled else 0,
        ))
    result.sort(key=lambda m: m.due_date)
    return result
