from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from sqlalchemy import String, ForeignKey, Integer, Text, Boolean, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.base_class import Base
from ..db.types import UTCDateTime
from . import utcnow

if TYPE_CHECKING:
    from .household import Household


class RewardCategory(StrEnum):
    ENTERTAINMENT = "entertainment"
    TREATS = "treats"
    PRIVILEGES = "privileges"
    MONEY = "money"
    EXPERIENCES = "experiences"
    ITEMS = "items"


MONETARY_CATEGORIES = frozenset({RewardCategory.MONEY})


class Reward(Base):
    __tablename__ = "reward"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    household_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("household.id", ondelete="CASCADE"),
        index=True,
    )
    created_by: Mapped[str | None] = mapped_column(String(36))

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    coin_cost: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[RewardCategory] = mapped_column(default=RewardCategory.ITEMS, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    cash_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    # popularity
    request_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_requested: Mapped[datetime | None] = mapped_column(UTCDateTime)

    # scarcity; None means unlimited / no cooldown
    max_redemptions: Mapped[int | None] = mapped_column(Integer)
    current_redemptions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cooldown_hours: Mapped[int | None] = mapped_column(Integer)

    requires_approval: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    household: Mapped["Household"] = relationship(back_populates="rewards")
    requests: Mapped[list["RewardRequest"]] = relationship(
        back_populates="reward",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_exhausted(self) -> bool:
        return self.max_redemptions is not None and self.current_redemptions >= self.max_redemptions


class RequestStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    FULFILLED = "fulfilled"


class RewardRequest(Base):
    __tablename__ = "rewardrequest"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )

    # kept after the reward is deleted; the snapshot below carries its identity
    reward_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("reward.id", ondelete="SET NULL"),
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        index=True,
    )
    user_display_name: Mapped[str | None] = mapped_column(String(255))
    household_id: Mapped[str] = mapped_column(String(36), index=True)
    coin_cost: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[RequestStatus] = mapped_column(
        default=RequestStatus.PENDING,
        index=True,
    )

    requested_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        nullable=False,
    )
    processed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    processed_by: Mapped[str | None] = mapped_column(String(36))
    notes: Mapped[str | None] = mapped_column(Text)

    reward_title: Mapped[str] = mapped_column(String(200), nullable=False)
    reward_description: Mapped[str | None] = mapped_column(Text)
    reward_category: Mapped[RewardCategory] = mapped_column()
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    reward: Mapped[Optional["Reward"]] = relationship(back_populates="requests")

    __mapper_args__ = {"version_id_col": version_id}
