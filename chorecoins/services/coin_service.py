"""The coin ledger.

A user's balance only moves through ``credit`` and ``debit``; each call
journals exactly one CoinTransaction tied to the ledger event that caused
it. Callers own the surrounding transaction (no commits here).
"""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError, ValidationError
from ..models.points import CoinTransaction, TransactionType
from ..models.user import User

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


def credit(
    db: Session,
    user: User,
    amount: int,
    *,
    reason: str,
    completion_id: str | None = None,
    created_by: str | None = None,
) -> CoinTransaction:
    if amount < 0:
        raise ValidationError("Credit amount must not be negative")
    user.coins += amount
    user.total_coins_earned += amount
    txn = CoinTransaction(
        user_id=user.id,
        household_id=user.household_id,
        amount=amount,
        balance_after=user.coins,
        type=TransactionType.EARN,
        reason=reason,
        completion_id=completion_id,
        created_by=created_by,
    )
    db.add(txn)
    logger.info(f"Credited {amount} coins to {user.id}: balance {user.coins}")
    return txn


def debit(
    db: Session,
    user: User,
    amount: int,
    *,
    reason: str,
    type: TransactionType = TransactionType.SPEND,
    request_id: str | None = None,
    task_id: str | None = None,
    created_by: str | None = None,
) -> CoinTransaction:
    """Take up to ``amount`` coins; the balance floors at zero."""
    if amount < 0:
        raise ValidationError("Debit amount must not be negative")
    applied = min(amount, user.coins)
    user.coins -= applied
    txn = CoinTransaction(
        user_id=user.id,
        household_id=user.household_id,
        amount=-applied,
        balance_after=user.coins,
        type=type,
        reason=reason,
        request_id=request_id,
        task_id=task_id,
        created_by=created_by,
    )
    db.add(txn)
    if applied < amount:
        logger.info(f"Debit of {amount} coins from {user.id} clamped to {applied}")
    logger.info(f"Debited {applied} coins from {user.id}: balance {user.coins}")
    return txn


def add_cash_reward(user: User, amount: Decimal) -> None:
    user.total_cash_rewards = (user.total_cash_rewards or Decimal("0")) + amount


def list_transactions(db: Session, *, user_id: str, limit: int = 50) -> list[CoinTransaction]:
    stmt = (
        select(CoinTransaction)
        .where(CoinTransaction.user_id == user_id)
        .order_by(CoinTransaction.created_at.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars())
