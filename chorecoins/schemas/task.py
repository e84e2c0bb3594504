from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional
from .common import ORMModel


class TaskCreate(BaseModel):
    title: str
    description: str | None = None
    coin_reward: int | None = None
    frequency: str = "once"
    custom_days: list[str] | None = None
    custom_time: str | None = None
    assigned_to: list[str] | None = None
    anyone_can_do: bool | None = None
    requires_photo: bool = False
    before_photo_required: bool = False
    after_photo_required: bool = False


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    coin_reward: Optional[int] = None
    frequency: Optional[str] = None
    custom_days: Optional[list[str]] = None
    custom_time: Optional[str] = None
    assigned_to: Optional[list[str]] = None
    anyone_can_do: Optional[bool] = None
    requires_photo: Optional[bool] = None
    before_photo_required: Optional[bool] = None
    after_photo_required: Optional[bool] = None


class TaskStatusUpdate(BaseModel):
    status: str


class TaskOut(ORMModel):
    id: str
    household_id: str
    title: str
    description: str | None = None
    coin_reward: int
    frequency: str
    custom_days: list[str] | None = None
    custom_time: str | None = None
    anyone_can_do: bool
    assigned_to: list[str] = []
    requires_photo: bool
    before_photo_required: bool
    after_photo_required: bool
    status: str
    completion_count: int
    last_completed_at: datetime | None = None
    next_due_date: datetime | None = None
    created_at: datetime


class CalendarDayOut(BaseModel):
    day: date
    tasks: list[TaskOut]


class CompletionCreate(BaseModel):
    notes: str | None = None
    before_photo: str | None = None
    after_photo: str | None = None


class CompletionReject(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class CompletionOut(ORMModel):
    id: str
    task_id: str
    household_id: str
    task_title: str
    completed_by: str
    completed_by_name: str | None = None
    submitted_at: datetime
    status: str
    coins_pending: int
    coins_awarded: int
    notes: str | None = None
    before_photo: str | None = None
    after_photo: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None


class CompletionStatusOut(BaseModel):
    task_id: str
    status: str
