from pydantic import BaseModel, Field
from datetime import datetime
from .common import ORMModel


class HouseholdCreate(BaseModel):
    name: str


class HouseholdJoin(BaseModel):
    invite_code: str


class DeductionPolicyUpdate(BaseModel):
    enabled: bool | None = None
    deduction: int | None = Field(default=None, ge=0)
    grace_period_hours: int | None = Field(default=None, ge=0)


class HouseholdOut(ORMModel):
    id: str
    name: str
    invite_code: str
    created_by: str | None = None
    created_at: datetime
    coin_deduction_enabled: bool
    missed_chore_deduction: int
    grace_period_hours: int


class DeductionReportOut(BaseModel):
    processed_count: int
    coins_deducted: int
    errors: list[str] = []


class MissedTaskOut(BaseModel):
    task_id: str
    title: str
    due_date: datetime
    days_missed: int
    deduction: int
    assignees: list[str]
