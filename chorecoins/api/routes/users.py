from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...schemas.reward import RewardRequestOut
from ...schemas.user import UserCreate, UserOut, TokenOut, TransactionOut
from ...models.user import User
from ...services.user_service import create_user
from ...services.coin_service import list_transactions
from ...services.reward_service import user_requests
from ...services.security import create_access_token
from ..deps import get_db, get_current_user

router = APIRouter()


@router.post("", response_model=TokenOut, status_code=201)
def register(payload: UserCreate, db: Session = Depends(get_db)):
    user = create_user(db, email=payload.email, display_name=payload.display_name)
    return TokenOut(access_token=create_access_token(user.id), user=UserOut.model_validate(user))


@router.get("/me", response_model=UserOut)
def me(current: User = Depends(get_current_user)):
    return current


@router.get("/me/transactions", response_model=list[TransactionOut])
def my_transactions(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return list_transactions(db, user_id=current.id, limit=limit)


@router.get("/me/requests", response_model=list[RewardRequestOut])
def my_requests(
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return user_requests(db, user_id=current.id)
