"""Reward catalog and the request ledger.

A request moves ``pending -> approved | denied`` and an approved request may
later be marked ``fulfilled``. Admin approval and auto-approval (rewards
with ``requires_approval`` off) share ``_apply_approval`` so both have the
same coin, cash and scarcity effects.
"""

import logging
import math
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import NotFoundError, PreconditionError, ValidationError
from ..models.activity import ActivityType
from ..models.reward import MONETARY_CATEGORIES, RequestStatus, Reward, RewardCategory, RewardRequest
from ..models.user import User
from ..utils.dt_utils import hours_between, utcnow
from .activity_service import record_activity
from .coin_service import add_cash_reward, debit, get_user
from .concurrency import retry_on_conflict
from .household_service import ensure_admin, ensure_member
from .notification_service import notify
from .transitions import can_transition, transition

logger = logging.getLogger(__name__)

_CASH_IN_TITLE = re.compile(r"[£$€]\s?(\d+(?:\.\d{1,2})?)")
_CENTS = Decimal("0.01")

OPEN_REQUEST_STATUSES = (RequestStatus.PENDING, RequestStatus.APPROVED)
USER_REQUEST_LIMIT = 20


def get_reward(db: Session, reward_id: str) -> Reward:
    reward = db.get(Reward, reward_id)
    if not reward:
        raise NotFoundError(f"Reward {reward_id} not found")
    return reward


def get_request(db: Session, request_id: str) -> RewardRequest:
    request = db.get(RewardRequest, request_id)
    if not request:
        raise NotFoundError(f"Reward request {request_id} not found")
    return request


def _category(value) -> RewardCategory:
    try:
        return RewardCategory(value)
    except ValueError:
        raise ValidationError(f"Unknown reward category {value!r}")


def _cash(value) -> Decimal | None:
    if value is None:
        return None
    try:
        amount = Decimal(str(value)).quantize(_CENTS)
    except InvalidOperation:
        raise ValidationError(f"Cash value must be a number, got {value!r}")
    if amount <= 0:
        raise ValidationError("Cash value must be positive")
    return amount


def _validate_limits(coin_cost, max_redemptions, cooldown_hours) -> None:
    if coin_cost is not None and coin_cost <= 0:
        raise ValidationError("Coin cost must be positive")
    if max_redemptions is not None and max_redemptions < 1:
        raise ValidationError("Max redemptions must be at least 1")
    if cooldown_hours is not None and cooldown_hours < 0:
        raise ValidationError("Cooldown must not be negative")


def _find_active_duplicate(db: Session, household_id: str, title: str, category: RewardCategory) -> Reward | None:
    stmt = select(Reward).where(
        Reward.household_id == household_id,
        Reward.is_active.is_(True),
        Reward.category == category,
        func.lower(func.trim(Reward.title)) == title.strip().lower(),
    )
    return db.execute(stmt.limit(1)).scalar_one_or_none()


def create_reward(
    db: Session, *,
    household_id: str,
    created_by: str,
    title: str,
    coin_cost: int,
    category: str = RewardCategory.ITEMS,
    description: str | None = None,
    cash_value=None,
    max_redemptions: int | None = None,
    cooldown_hours: int | None = None,
    requires_approval: bool = True,
) -> tuple[Reward, bool]:
    """Create a reward, or bump the popularity of the active one with the same title and category.

    Returns ``(reward, created)``.
    """
    ensure_admin(db, user_id=created_by, household_id=household_id)
    if not title or not title.strip():
        raise ValidationError("Reward title is required")
    if coin_cost is None:
        raise ValidationError("Coin cost is required")
    _validate_limits(coin_cost, max_redemptions, cooldown_hours)
    category = _category(category)
    cash_value = _cash(cash_value)
    if category in MONETARY_CATEGORIES and cash_value is None:
        raise ValidationError("Money rewards need a cash value")

    existing = _find_active_duplicate(db, household_id, title, category)
    if existing:
        existing.request_count += 1
        db.commit()
        db.refresh(existing)
        logger.info(f"Reward {existing.id} ({existing.title!r}) already exists; popularity now {existing.request_count}")
        return existing, False

    reward = Reward(
        household_id=household_id,
        created_by=created_by,
        title=title.strip(),
        description=description,
        coin_cost=coin_cost,
        category=category,
        cash_value=cash_value,
        max_redemptions=max_redemptions,
        cooldown_hours=cooldown_hours,
        requires_approval=requires_approval,
    )
    db.add(reward)
    db.commit()
    db.refresh(reward)
    return reward, True


def household_rewards(db: Session, *, household_id: str, include_inactive: bool = False) -> list[Reward]:
    stmt = select(Reward).where(Reward.household_id == household_id)
    if not include_inactive:
        stmt = stmt.where(Reward.is_active.is_(True))
    stmt = stmt.order_by(Reward.request_count.desc(), Reward.created_at.desc())
    return list(db.execute(stmt).scalars())


@retry_on_conflict
def update_reward(
    db: Session, *,
    reward_id: str,
    editor_id: str,
    title: str | None = None,
    description: str | None = None,
    coin_cost: int | None = None,
    category: str | None = None,
    cash_value=None,
    max_redemptions: int | None = None,
    cooldown_hours: int | None = None,
    requires_approval: bool | None = None,
    is_active: bool | None = None,
) -> Reward:
    reward = get_reward(db, reward_id)
    ensure_admin(db, user_id=editor_id, household_id=reward.household_id)

    if title is not None and not title.strip():
        raise ValidationError("Reward title is required")
    _validate_limits(coin_cost, max_redemptions, cooldown_hours)
    new_category = _category(category) if category is not None else reward.category
    new_cash = _cash(cash_value) if cash_value is not None else reward.cash_value
    if new_category in MONETARY_CATEGORIES and not new_cash:
        raise ValidationError("Money rewards need a cash value")
    new_max = max_redemptions if max_redemptions is not None else reward.max_redemptions
    exhausted = new_max is not None and reward.current_redemptions >= new_max
    if is_active and exhausted:
        raise PreconditionError("Reward has no redemptions left", code="REWARD_EXHAUSTED")

    if title is not None:
        reward.title = title.strip()
    if description is not None:
        reward.description = description
    if coin_cost is not None:
        reward.coin_cost = coin_cost
    reward.category = new_category
    reward.cash_value = new_cash
    reward.max_redemptions = new_max
    if cooldown_hours is not None:
        reward.cooldown_hours = cooldown_hours
    if requires_approval is not None:
        reward.requires_approval = requires_approval
    if is_active is not None:
        reward.is_active = is_active
    if exhausted:
        reward.is_active = False

    db.commit()
    db.refresh(reward)
    return reward


def deactivate_reward(db: Session, *, reward_id: str, admin_id: str) -> Reward:
    return update_reward(db, reward_id=reward_id, editor_id=admin_id, is_active=False)


def delete_reward(db: Session, *, reward_id: str, admin_id: str) -> None:
    reward = get_reward(db, reward_id)
    ensure_admin(db, user_id=admin_id, household_id=reward.household_id)
    open_count = db.execute(
        select(func.count(RewardRequest.id)).where(
            RewardRequest.reward_id == reward.id,
            RewardRequest.status.in_(OPEN_REQUEST_STATUSES),
        )
    ).scalar_one()
    if open_count:
        raise PreconditionError(
            f"Reward has {open_count} pending or approved requests; deactivate it instead",
            code="REWARD_IN_USE",
        )
    db.delete(reward)
    db.commit()
    logger.info(f"Reward {reward_id} deleted")


def resolve_cash_value(reward: Reward | None, request: RewardRequest) -> Decimal:
    """Cash credited for a monetary reward.

    Order: the reward's explicit value, an amount written in the title,
    then ``coin_cost * COIN_CASH_RATE``. New money rewards always carry an
    explicit value; the other two only serve older rows.
    """
    if reward is not None and reward.cash_value and reward.cash_value > 0:
        return Decimal(reward.cash_value)
    match = _CASH_IN_TITLE.search(request.reward_title or "")
    if match:
        amount = Decimal(match.group(1)).quantize(_CENTS)
        logger.warning(f"Request {request.id}: cash value {amount} taken from reward title {request.reward_title!r}")
        return amount
    amount = (Decimal(request.coin_cost) * settings.COIN_CASH_RATE).quantize(_CENTS)
    logger.warning(f"Request {request.id}: no cash value on reward, converted {request.coin_cost} coins to {amount}")
    return amount


def _apply_approval(
    db: Session,
    request: RewardRequest,
    reward: Reward | None,
    user: User,
    *,
    processed_by: str | None,
    now: datetime,
) -> None:
    debit(db, user, request.coin_cost,
          reason=f"Redeemed '{request.reward_title}'",
          request_id=request.id, created_by=processed_by)
    if request.reward_category in MONETARY_CATEGORIES:
        add_cash_reward(user, resolve_cash_value(reward, request))
    user.rewards_claimed += 1

    if reward is not None:
        reward.current_redemptions += 1
        if reward.is_exhausted:
            reward.is_active = False
            logger.info(f"Reward {reward.id} reached {reward.max_redemptions} redemptions and was deactivated")
        reward.last_requested = now

    request.processed_at = now
    request.processed_by = processed_by
    record_activity(
        db, household_id=request.household_id, type=ActivityType.REWARD_APPROVED,
        user_id=user.id, display_name=user.name,
        request_id=request.id, reward_title=request.reward_title,
    )
    transition(request, RequestStatus.APPROVED)


def _has_pending_request(db: Session, user_id: str, reward_id: str) -> bool:
    stmt = select(RewardRequest.id).where(
        RewardRequest.user_id == user_id,
        RewardRequest.reward_id == reward_id,
        RewardRequest.status == RequestStatus.PENDING,
    )
    return db.execute(stmt.limit(1)).first() is not None


@retry_on_conflict
def request_reward(
    db: Session, *, reward_id: str, user_id: str, notes: str | None = None, now: datetime | None = None
) -> RewardRequest:
    now = now or utcnow()
    reward = get_reward(db, reward_id)
    user = ensure_member(db, user_id=user_id, household_id=reward.household_id)

    if user.coins < reward.coin_cost:
        raise PreconditionError(
            f"Not enough coins: {reward.coin_cost} needed, {user.coins} available",
            code="INSUFFICIENT_COINS",
        )
    if _has_pending_request(db, user.id, reward.id):
        raise PreconditionError("You already have a pending request for this reward",
                                code="DUPLICATE_PENDING_REQUEST")
    if reward.is_exhausted:
        raise PreconditionError("Reward no longer available", code="REWARD_EXHAUSTED")
    if reward.cooldown_hours and reward.last_requested:
        elapsed = hours_between(reward.last_requested, now)
        if elapsed < reward.cooldown_hours:
            remaining = math.ceil(reward.cooldown_hours - elapsed)
            raise PreconditionError(f"Reward available in {remaining} hours", code="COOLDOWN_ACTIVE")
    if not reward.is_active:
        raise PreconditionError("Reward is not active", code="REWARD_INACTIVE")

    request = RewardRequest(
        reward_id=reward.id,
        user_id=user.id,
        user_display_name=user.name,
        household_id=reward.household_id,
        coin_cost=reward.coin_cost,
        status=RequestStatus.PENDING,
        requested_at=now,
        notes=notes,
        reward_title=reward.title,
        reward_description=reward.description,
        reward_category=reward.category,
    )
    db.add(request)
    db.flush()
    reward.request_count += 1
    user.last_active = now
    record_activity(
        db, household_id=reward.household_id, type=ActivityType.REWARD_REQUESTED,
        user_id=user.id, display_name=user.name,
        request_id=request.id, reward_title=reward.title,
    )
    auto_approved = not reward.requires_approval
    if auto_approved:
        _apply_approval(db, request, reward, user, processed_by=None, now=now)
    db.commit()
    db.refresh(request)

    logger.info(f"Reward request {request.id} created by {user.id} for {reward.id} (status={request.status})")
    notify("reward_request.created", request_id=request.id, reward_id=reward.id,
           household_id=request.household_id, user_id=user.id)
    if auto_approved:
        notify("reward_request.approved", request_id=request.id, user_id=user.id, auto=True)
    return request


def _ensure_pending(request: RewardRequest, target: RequestStatus) -> None:
    if not can_transition(request.status, target):
        raise PreconditionError(
            f"Request {request.id} was already {RequestStatus(request.status).value}",
            code="ALREADY_RESOLVED",
        )


@retry_on_conflict
def approve_request(
    db: Session, *, request_id: str, admin_id: str, now: datetime | None = None
) -> RewardRequest:
    now = now or utcnow()
    request = get_request(db, request_id)
    ensure_admin(db, user_id=admin_id, household_id=request.household_id)
    _ensure_pending(request, RequestStatus.APPROVED)
    # other requests may have used up the reward since this one was made
    if request.reward is not None and request.reward.is_exhausted:
        raise PreconditionError("Reward no longer available", code="REWARD_EXHAUSTED")
    user = get_user(db, request.user_id)

    _apply_approval(db, request, request.reward, user, processed_by=admin_id, now=now)
    db.commit()
    db.refresh(request)

    notify("reward_request.approved", request_id=request.id, user_id=user.id, auto=False)
    return request


@retry_on_conflict
def deny_request(
    db: Session, *, request_id: str, admin_id: str, notes: str | None = None, now: datetime | None = None
) -> RewardRequest:
    request = get_request(db, request_id)
    ensure_admin(db, user_id=admin_id, household_id=request.household_id)
    _ensure_pending(request, RequestStatus.DENIED)

    request.processed_at = now or utcnow()
    request.processed_by = admin_id
    if notes is not None:
        request.notes = notes
    record_activity(
        db, household_id=request.household_id, type=ActivityType.REWARD_DENIED,
        user_id=request.user_id, display_name=request.user_display_name,
        request_id=request.id, reward_title=request.reward_title,
    )
    transition(request, RequestStatus.DENIED)
    db.commit()
    db.refresh(request)

    notify("reward_request.denied", request_id=request.id, user_id=request.user_id)
    return request


@retry_on_conflict
def fulfill_request(db: Session, *, request_id: str, admin_id: str) -> RewardRequest:
    """Record that an approved reward was handed over. No ledger effect."""
    request = get_request(db, request_id)
    ensure_admin(db, user_id=admin_id, household_id=request.household_id)
    if not can_transition(request.status, RequestStatus.FULFILLED):
        raise PreconditionError("Only approved requests can be fulfilled", code="NOT_APPROVED")
    transition(request, RequestStatus.FULFILLED)
    db.commit()
    db.refresh(request)
    return request


def user_requests(db: Session, *, user_id: str, limit: int = USER_REQUEST_LIMIT) -> list[RewardRequest]:
    stmt = (
        select(RewardRequest)
        .where(RewardRequest.user_id == user_id)
        .order_by(RewardRequest.requested_at.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars())


def open_requests(db: Session, *, household_id: str) -> list[RewardRequest]:
    stmt = (
        select(RewardRequest)
        .where(
            RewardRequest.household_id == household_id,
            RewardRequest.status.in_(OPEN_REQUEST_STATUSES),
        )
        .order_by(RewardRequest.requested_at.desc())
    )
    return list(db.execute(stmt).scalars())
