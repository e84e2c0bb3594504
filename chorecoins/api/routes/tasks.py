from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ...models.user import User
from ...schemas.task import (
    CompletionCreate,
    CompletionOut,
    CompletionReject,
    CompletionStatusOut,
    TaskOut,
    TaskStatusUpdate,
    TaskUpdate,
)
from ...services import task_service
from ...services.household_service import ensure_member
from ..deps import get_db, get_current_user

router = APIRouter()


@router.patch("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: str,
    payload: TaskUpdate,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return task_service.update_task(
        db, task_id=task_id, editor_id=current.id, **payload.model_dump(exclude_unset=True)
    )


@router.delete("/{task_id}", status_code=204)
def delete_task(task_id: str, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    task_service.delete_task(db, task_id=task_id, admin_id=current.id)
    return Response(status_code=204)


@router.post("/{task_id}/status", response_model=TaskOut)
def set_status(
    task_id: str,
    payload: TaskStatusUpdate,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return task_service.set_task_status(db, task_id=task_id, admin_id=current.id, status=payload.status)


@router.post("/{task_id}/completions", response_model=CompletionOut, status_code=201)
def submit_completion(
    task_id: str,
    payload: CompletionCreate,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return task_service.submit_completion(db, task_id=task_id, user_id=current.id, **payload.model_dump())


@router.get("/{task_id}/completion-status", response_model=CompletionStatusOut)
def completion_status(task_id: str, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    task = task_service.get_task(db, task_id)
    ensure_member(db, user_id=current.id, household_id=task.household_id)
    return CompletionStatusOut(task_id=task_id, status=task_service.completion_status_today(db, task_id=task_id))


@router.post("/completions/{completion_id}/approve", response_model=CompletionOut)
def approve_completion(
    completion_id: str,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return task_service.approve_completion(db, completion_id=completion_id, approver_id=current.id)


@router.post("/completions/{completion_id}/reject", response_model=CompletionOut)
def reject_completion(
    completion_id: str,
    payload: CompletionReject,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return task_service.reject_completion(
        db, completion_id=completion_id, approver_id=current.id, reason=payload.reason
    )
