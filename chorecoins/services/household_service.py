import logging
import secrets
from sqlalchemy.orm import Session
from sqlalchemy import select
from ..core.errors import ForbiddenError, NotFoundError, PreconditionError, ValidationError
from ..models.household import Household
from ..models.user import User, MemberRole
from ..models.activity import ActivityType
from .activity_service import record_activity
from .notification_service import notify

logger = logging.getLogger(__name__)


def _code(n=8) -> str:
    alphabet = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
    return "".join(secrets.choice(alphabet) for _ in range(n))


def get_household(db: Session, household_id: str) -> Household:
    household = db.get(Household, household_id)
    if not household:
        raise NotFoundError(f"Household {household_id} not found")
    return household


def create_household(db: Session, *, creator_id: str, name: str) -> Household:
    if not name or not name.strip():
        raise ValidationError("Household name is required")
    creator = db.get(User, creator_id)
    if not creator:
        raise NotFoundError(f"User {creator_id} not found")
    household = Household(name=name.strip(), invite_code=_code(), created_by=creator_id)
    db.add(household)
    db.flush()
    creator.household_id = household.id
    creator.role = MemberRole.ADMIN
    db.commit()
    db.refresh(household)
    logger.info(f"Household created: id={household.id}, admin={creator_id}")
    return household


def join_household(db: Session, *, user_id: str, invite_code: str) -> Household:
    household = db.execute(
        select(Household).where(Household.invite_code == invite_code.strip().upper())
    ).scalar_one_or_none()
    if not household:
        raise NotFoundError("Invite code not recognised")
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    if user.household_id == household.id:
        raise PreconditionError("Already a member of this household", code="ALREADY_MEMBER")
    user.household_id = household.id
    user.role = MemberRole.MEMBER
    record_activity(
        db, household_id=household.id, type=ActivityType.MEMBER_JOINED,
        user_id=user.id, display_name=user.name,
    )
    db.commit()
    notify("household.member_joined", household_id=household.id, user_id=user.id)
    return household


def list_members(db: Session, *, household_id: str) -> list[User]:
    stmt = select(User).where(User.household_id == household_id).order_by(User.created_at)
    return list(db.execute(stmt).scalars())


def update_deduction_policy(
    db: Session,
    *,
    household_id: str,
    enabled: bool | None = None,
    deduction: int | None = None,
    grace_period_hours: int | None = None,
) -> Household:
    if deduction is not None and deduction < 0:
        raise ValidationError("Deduction must not be negative")
    if grace_period_hours is not None and grace_period_hours < 0:
        raise ValidationError("Grace period must not be negative")
    household = get_household(db, household_id)
    if enabled is not None:
        household.coin_deduction_enabled = enabled
    if deduction is not None:
        household.missed_chore_deduction = deduction
    if grace_period_hours is not None:
        household.grace_period_hours = grace_period_hours
    db.commit()
    db.refresh(household)
    return household


def ensure_member(db: Session, *, user_id: str, household_id: str) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    if user.household_id != household_id:
        raise ForbiddenError("Not a member of this household")
    return user


def ensure_admin(db: Session, *, user_id: str, household_id: str) -> User:
    user = ensure_member(db, user_id=user_id, household_id=household_id)
    if not user.is_admin:
        raise ForbiddenError("Only household admins can do this")
    return user
