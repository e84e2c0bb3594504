from datetime import datetime
from enum import StrEnum
from sqlalchemy import String, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column
from uuid import uuid4

from ..db.base_class import Base
from ..db.types import UTCDateTime
from . import utcnow


class TransactionType(StrEnum):
    EARN = "EARN"
    SPEND = "SPEND"
    DEDUCT = "DEDUCT"


class CoinTransaction(Base):
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.id", ondelete="CASCADE"), index=True)
    household_id: Mapped[str | None] = mapped_column(String(36), index=True)
    # signed: positive credits, negative debits; the clamped amount actually applied
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[TransactionType] = mapped_column()
    reason: Mapped[str | None] = mapped_column(Text)
    completion_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("completion.id", ondelete="SET NULL"))
    request_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("rewardrequest.id", ondelete="SET NULL"))
    task_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("task.id", ondelete="SET NULL"))
    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
