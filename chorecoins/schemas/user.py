from pydantic import BaseModel, EmailStr
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from .common import ORMModel


class UserCreate(BaseModel):
    email: EmailStr
    display_name: Optional[str] = None


class UserOut(ORMModel):
    id: str
    email: EmailStr
    display_name: Optional[str] = None
    household_id: Optional[str] = None
    role: str
    coins: int
    total_coins_earned: int
    total_cash_rewards: Decimal
    chores_completed: int
    rewards_claimed: int
    current_streak: int
    longest_streak: int
    last_streak_day: Optional[date] = None
    last_active: Optional[datetime] = None


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class TransactionOut(ORMModel):
    id: str
    amount: int
    balance_after: int
    type: str
    reason: str | None
    completion_id: str | None = None
    request_id: str | None = None
    task_id: str | None = None
    created_at: datetime
