from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from .common import ORMModel


class RewardCreate(BaseModel):
    title: str
    description: str | None = None
    coin_cost: int
    category: str = "items"
    cash_value: Decimal | None = None
    max_redemptions: int | None = None
    cooldown_hours: int | None = None
    requires_approval: bool = True


class RewardUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    coin_cost: int | None = None
    category: str | None = None
    cash_value: Decimal | None = None
    max_redemptions: int | None = None
    cooldown_hours: int | None = None
    requires_approval: bool | None = None
    is_active: bool | None = None


class RewardOut(ORMModel):
    id: str
    household_id: str
    title: str
    description: str | None = None
    coin_cost: int
    category: str
    is_active: bool
    cash_value: Decimal | None = None
    request_count: int
    last_requested: datetime | None = None
    max_redemptions: int | None = None
    current_redemptions: int
    cooldown_hours: int | None = None
    requires_approval: bool


class RewardRequestCreate(BaseModel):
    notes: str | None = None


class RequestDecision(BaseModel):
    notes: str | None = None


class RewardRequestOut(ORMModel):
    id: str
    reward_id: str | None
    user_id: str
    user_display_name: str | None = None
    household_id: str
    coin_cost: int
    status: str
    requested_at: datetime
    processed_at: datetime | None = None
    processed_by: str | None = None
    notes: str | None = None
    reward_title: str
    reward_description: str | None = None
    reward_category: str
