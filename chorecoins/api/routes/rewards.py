from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ...models.user import User
from ...schemas.reward import (
    RequestDecision,
    RewardOut,
    RewardRequestCreate,
    RewardRequestOut,
    RewardUpdate,
)
from ...services import reward_service
from ..deps import get_db, get_current_user

router = APIRouter()


@router.patch("/{reward_id}", response_model=RewardOut)
def update_reward(
    reward_id: str,
    payload: RewardUpdate,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return reward_service.update_reward(
        db, reward_id=reward_id, editor_id=current.id, **payload.model_dump(exclude_unset=True)
    )


@router.post("/{reward_id}/deactivate", response_model=RewardOut)
def deactivate_reward(reward_id: str, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    return reward_service.deactivate_reward(db, reward_id=reward_id, admin_id=current.id)


@router.delete("/{reward_id}", status_code=204)
def delete_reward(reward_id: str, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    reward_service.delete_reward(db, reward_id=reward_id, admin_id=current.id)
    return Response(status_code=204)


@router.post("/{reward_id}/requests", response_model=RewardRequestOut, status_code=201)
def request_reward(
    reward_id: str,
    payload: RewardRequestCreate,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return reward_service.request_reward(db, reward_id=reward_id, user_id=current.id, notes=payload.notes)


@router.post("/requests/{request_id}/approve", response_model=RewardRequestOut)
def approve_request(request_id: str, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    return reward_service.approve_request(db, request_id=request_id, admin_id=current.id)


@router.post("/requests/{request_id}/deny", response_model=RewardRequestOut)
def deny_request(
    request_id: str,
    payload: RequestDecision,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return reward_service.deny_request(db, request_id=request_id, admin_id=current.id, notes=payload.notes)


@router.post("/requests/{request_id}/fulfill", response_model=RewardRequestOut)
def fulfill_request(request_id: str, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    return reward_service.fulfill_request(db, request_id=request_id, admin_id=current.id)
