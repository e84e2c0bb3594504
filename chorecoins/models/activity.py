from datetime import datetime
from enum import StrEnum
from typing import Any
from sqlalchemy import String, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column
from uuid import uuid4

from ..db.base_class import Base
from ..db.types import UTCDateTime
from . import utcnow


class ActivityType(StrEnum):
    TASK_CREATED = "task_created"
    TASK_COMPLETED = "task_completed"
    REWARD_REQUESTED = "reward_requested"
    REWARD_APPROVED = "reward_approved"
    REWARD_DENIED = "reward_denied"
    COINS_DEDUCTED = "coins_deducted"
    MEMBER_JOINED = "member_joined"


class Activity(Base):
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    household_id: Mapped[str] = mapped_column(String(36), index=True)
    user_id: Mapped[str | None] = mapped_column(String(36))
    user_display_name: Mapped[str | None] = mapped_column(String(255))
    type: Mapped[ActivityType] = mapped_column(index=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False, index=True)
