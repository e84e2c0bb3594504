from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING
from sqlalchemy import String, ForeignKey, Integer, Text, Boolean, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from uuid import uuid4

from ..db.base_class import Base
from ..db.types import UTCDateTime
from . import utcnow

if TYPE_CHECKING:
    from .household import Household


class TaskFrequency(StrEnum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class TaskStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class CompletionStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Task(Base):
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    household_id: Mapped[str] = mapped_column(String(36), ForeignKey("household.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id", ondelete="SET NULL"))
    coin_reward: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    frequency: Mapped[TaskFrequency] = mapped_column(default=TaskFrequency.ONCE)
    custom_days: Mapped[list[str] | None] = mapped_column(JSON)
    custom_time: Mapped[str | None] = mapped_column(String(5))

    anyone_can_do: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    requires_photo: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    before_photo_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    after_photo_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    status: Mapped[TaskStatus] = mapped_column(default=TaskStatus.ACTIVE, index=True)
    completion_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    # only meaningful for recurring tasks
    next_due_date: Mapped[datetime | None] = mapped_column(UTCDateTime, index=True)
    last_deduction_processed: Mapped[datetime | None] = mapped_column(UTCDateTime)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    household: Mapped["Household"] = relationship(back_populates="tasks")
    assignments: Mapped[list["TaskAssignment"]] = relationship(
        back_populates="task", cascade="all,delete-orphan", lazy="selectin"
    )
    completions: Mapped[list["Completion"]] = relationship(back_populates="task", cascade="all,delete-orphan")

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_recurring(self) -> bool:
        return self.frequency != TaskFrequency.ONCE

    @property
    def assigned_to(self) -> list[str]:
        return [a.user_id for a in self.assignments]

    @property
    def is_assigned(self) -> bool:
        """True when only an explicit member list may (and must) do the task."""
        return not self.anyone_can_do and bool(self.assignments)


class TaskAssignment(Base):
    __table_args__ = (UniqueConstraint("task_id", "user_id", name="uq_assignment_task_user"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    task_id: Mapped[str] = mapped_column(String(36), ForeignKey("task.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.id", ondelete="CASCADE"), index=True)
    task: Mapped["Task"] = relationship(back_populates="assignments")


class Completion(Base):
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    task_id: Mapped[str] = mapped_column(String(36), ForeignKey("task.id", ondelete="CASCADE"), index=True)
    household_id: Mapped[str] = mapped_column(String(36), index=True)
    task_title: Mapped[str] = mapped_column(String(200), nullable=False)
    completed_by: Mapped[str] = mapped_column(String(36), ForeignKey("user.id", ondelete="CASCADE"), index=True)
    completed_by_name: Mapped[str | None] = mapped_column(String(255))
    submitted_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False, index=True)
    status: Mapped[CompletionStatus] = mapped_column(default=CompletionStatus.PENDING, index=True)

    # snapshot of the task reward at submission time
    coins_pending: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    coins_awarded: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    notes: Mapped[str | None] = mapped_column(Text)
    before_photo: Mapped[str | None] = mapped_column(String(512))
    after_photo: Mapped[str | None] = mapped_column(String(512))
    approved_by: Mapped[str | None] = mapped_column(String(36))
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    task: Mapped["Task"] = relationship(back_populates="completions")

    __mapper_args__ = {"version_id_col": version_id}
