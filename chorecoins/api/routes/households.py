from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...models.user import User
from ...schemas.activity import ActivityOut
from ...schemas.household import (
    HouseholdCreate,
    HouseholdJoin,
    HouseholdOut,
    DeductionPolicyUpdate,
    DeductionReportOut,
    MissedTaskOut,
)
from ...schemas.reward import RewardCreate, RewardOut, RewardRequestOut
from ...schemas.task import CalendarDayOut, CompletionOut, TaskCreate, TaskOut
from ...schemas.user import UserOut
from ...services import household_service, reward_service, schedule_service, task_service
from ...services.activity_service import recent_activities
from ...services.deduction_service import missed_tasks, process_missed
from ..deps import get_db, get_current_user, require_admin, require_member

router = APIRouter()


@router.post("", response_model=HouseholdOut, status_code=201)
def create_household(
    payload: HouseholdCreate,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return household_service.create_household(db, creator_id=current.id, name=payload.name)


@router.post("/join", response_model=HouseholdOut)
def join_household(
    payload: HouseholdJoin,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return household_service.join_household(db, user_id=current.id, invite_code=payload.invite_code)


@router.get("/{household_id}", response_model=HouseholdOut)
def get_household(household_id: str, db: Session = Depends(get_db), member: User = Depends(require_member)):
    return household_service.get_household(db, household_id)


@router.get("/{household_id}/members", response_model=list[UserOut])
def list_members(household_id: str, db: Session = Depends(get_db), member: User = Depends(require_member)):
    return household_service.list_members(db, household_id=household_id)


@router.patch("/{household_id}/deduction-policy", response_model=HouseholdOut)
def update_deduction_policy(
    household_id: str,
    payload: DeductionPolicyUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return household_service.update_deduction_policy(
        db, household_id=household_id, **payload.model_dump(exclude_unset=True)
    )


@router.post("/{household_id}/deductions/run", response_model=DeductionReportOut)
def run_deductions(household_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    report = process_missed(db, household_id=household_id)
    return DeductionReportOut(
        processed_count=report.processed_count,
        coins_deducted=report.coins_deducted,
        errors=report.errors,
    )


@router.get("/{household_id}/missed-tasks", response_model=list[MissedTaskOut])
def list_missed_tasks(
    household_id: str,
    days: int = Query(7, ge=1, le=90),
    db: Session = Depends(get_db),
    member: User = Depends(require_member),
):
    return [
        MissedTaskOut(
            task_id=m.task.id,
            title=m.task.title,
            due_date=m.due_date,
            days_missed=m.days_missed,
            deduction=m.deduction,
            assignees=[u.name for u in m.assignees],
        )
        for m in missed_tasks(db, household_id=household_id, days=days)
    ]


@router.get("/{household_id}/activities", response_model=list[ActivityOut])
def list_activities(
    household_id: str,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    member: User = Depends(require_member),
):
    return recent_activities(db, household_id=household_id, limit=limit)


# tasks

@router.get("/{household_id}/tasks", response_model=list[TaskOut])
def list_tasks(
    household_id: str,
    status: str = Query("all"),
    db: Session = Depends(get_db),
    member: User = Depends(require_member),
):
    return task_service.list_household_tasks(db, household_id=household_id, status_filter=status)


@router.post("/{household_id}/tasks", response_model=TaskOut, status_code=201)
def create_task(
    household_id: str,
    payload: TaskCreate,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return task_service.create_task(db, household_id=household_id, created_by=current.id, **payload.model_dump())


@router.get("/{household_id}/tasks/calendar", response_model=list[CalendarDayOut])
def task_calendar(
    household_id: str,
    start: date,
    end: date,
    db: Session = Depends(get_db),
    member: User = Depends(require_member),
):
    schedule = task_service.task_calendar(db, household_id=household_id, start=start, end=end)
    return [
        CalendarDayOut(day=day, tasks=[TaskOut.model_validate(t) for t in tasks])
        for day, tasks in schedule.items()
    ]


@router.get("/{household_id}/tasks/overdue", response_model=list[TaskOut])
def overdue_tasks(household_id: str, db: Session = Depends(get_db), member: User = Depends(require_member)):
    return task_service.list_overdue_tasks(db, household_id=household_id)


@router.post("/{household_id}/tasks/initialize-due-dates")
def initialize_due_dates(household_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return {"initialized": schedule_service.initialize_next_due_dates(db, household_id=household_id)}


@router.post("/{household_id}/tasks/repair-custom-schedules")
def repair_custom_schedules(household_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return {"fixed": schedule_service.fix_custom_frequency_tasks(db, household_id=household_id)}


@router.get("/{household_id}/completions/pending", response_model=list[CompletionOut])
def pending_completions(household_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return task_service.pending_completions(db, household_id=household_id)


# rewards

@router.get("/{household_id}/rewards", response_model=list[RewardOut])
def list_rewards(
    household_id: str,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    member: User = Depends(require_member),
):
    return reward_service.household_rewards(db, household_id=household_id, include_inactive=include_inactive)


@router.post("/{household_id}/rewards", response_model=RewardOut)
def create_reward(
    household_id: str,
    payload: RewardCreate,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    reward, _created = reward_service.create_reward(
        db, household_id=household_id, created_by=current.id, **payload.model_dump()
    )
    return reward


@router.get("/{household_id}/requests/open", response_model=list[RewardRequestOut])
def open_requests(household_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return reward_service.open_requests(db, household_id=household_id)
