from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from sqlalchemy import String, Integer, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship
from uuid import uuid4
from ..core.config import settings
from ..db.base_class import Base
from ..db.types import UTCDateTime
from . import utcnow

if TYPE_CHECKING:
    from .user import User
    from .task import Task
    from .reward import Reward


@dataclass(frozen=True)
class DeductionPolicy:
    enabled: bool
    deduction: int
    grace_period_hours: int


class Household(Base):
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    invite_code: Mapped[str] = mapped_column(String(12), unique=True, index=True, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    coin_deduction_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    missed_chore_deduction: Mapped[int] = mapped_column(
        Integer, default=lambda: settings.DEFAULT_MISSED_CHORE_DEDUCTION, nullable=False
    )
    grace_period_hours: Mapped[int] = mapped_column(
        Integer, default=lambda: settings.DEFAULT_GRACE_PERIOD_HOURS, nullable=False
    )

    members: Mapped[list["User"]] = relationship(back_populates="household", foreign_keys="User.household_id")
    tasks: Mapped[list["Task"]] = relationship(back_populates="household", cascade="all,delete-orphan")
    rewards: Mapped[list["Reward"]] = relationship(back_populates="household", cascade="all,delete-orphan")

    @property
    def deduction_policy(self) -> DeductionPolicy:
        return DeductionPolicy(
            enabled=self.coin_deduction_enabled,
            deduction=self.missed_chore_deduction,
            grace_period_hours=self.grace_period_hours,
        )
