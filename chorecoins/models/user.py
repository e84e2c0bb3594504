from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import TYPE_CHECKING, Optional
from sqlalchemy import String, ForeignKey, Integer, Numeric, Date
from sqlalchemy.orm import Mapped, mapped_column, relationship
from uuid import uuid4
from ..db.base_class import Base
from ..db.types import UTCDateTime
from . import utcnow

if TYPE_CHECKING:
    from .household import Household


class MemberRole(StrEnum):
    ADMIN = "admin"
    MEMBER = "member"


class User(Base):
    __tablename__ = "user"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(128))
    household_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("household.id", ondelete="SET NULL"), index=True
    )
    role: Mapped[MemberRole] = mapped_column(default=MemberRole.MEMBER)

    # balance is never negative; every change is journaled as a CoinTransaction
    coins: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_coins_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_cash_rewards: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)

    chores_completed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rewards_claimed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_streak_day: Mapped[Optional[date]] = mapped_column(Date)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
    last_active: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    household: Mapped[Optional["Household"]] = relationship(back_populates="members", foreign_keys=[household_id])

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def name(self) -> str:
        return self.display_name or self.email

    @property
    def is_admin(self) -> bool:
        return self.role == MemberRole.ADMIN
