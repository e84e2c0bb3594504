from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from chorecoins.core.errors import PreconditionError, ValidationError
from chorecoins.models.points import CoinTransaction, TransactionType
from chorecoins.models.reward import RequestStatus, Reward, RewardCategory, RewardRequest
from chorecoins.services import reward_service
from chorecoins.services.reward_service import (
    approve_request,
    create_reward,
    deny_request,
    fulfill_request,
    request_reward,
    resolve_cash_value,
)

from .conftest import NOW, make_user


@pytest.fixture
def saver(db, household):
    return make_user(db, "saver@example.com", household=household, coins=100)


def _reward(db, household, admin, **kwargs):
    kwargs.setdefault("title", "Movie night")
    kwargs.setdefault("coin_cost", 30)
    kwargs.setdefault("category", "entertainment")
    reward, _ = create_reward(db, household_id=household.id, created_by=admin.id, **kwargs)
    return reward


def _code(fn) -> str:
    with pytest.raises(PreconditionError) as exc:
        fn()
    return exc.value.code


def test_request_then_approve(db, household, admin, saver, notifier) -> None:
    reward = _reward(db, household, admin)
    request = request_reward(db, reward_id=reward.id, user_id=saver.id, now=NOW)
    db.refresh(saver)
    assert request.status == RequestStatus.PENDING
    assert saver.coins == 100
    assert (request.reward_title, request.coin_cost) == ("Movie night", 30)

    approve_request(db, request_id=request.id, admin_id=admin.id, now=NOW)
    db.refresh(saver)
    db.refresh(reward)
    assert request.status == RequestStatus.APPROVED
    assert saver.coins == 70
    assert saver.rewards_claimed == 1
    assert reward.current_redemptions == 1
    assert reward.request_count == 1
    assert reward.last_requested == NOW
    assert notifier.names() == ["reward_request.created", "reward_request.approved"]

    txn = db.execute(select(CoinTransaction)).scalar_one()
    assert (txn.type, txn.amount, txn.request_id) == (TransactionType.SPEND, -30, request.id)


def test_request_checks_run_in_order(db, household, admin, saver) -> None:
    broke = make_user(db, "broke@example.com", household=household, coins=5)
    reward = _reward(db, household, admin, max_redemptions=2, cooldown_hours=24)

    assert _code(lambda: request_reward(db, reward_id=reward.id, user_id=broke.id, now=NOW)) == "INSUFFICIENT_COINS"

    request_reward(db, reward_id=reward.id, user_id=saver.id, now=NOW)
    assert _code(lambda: request_reward(db, reward_id=reward.id, user_id=saver.id, now=NOW)) == \
        "DUPLICATE_PENDING_REQUEST"


def test_scarcity_deactivates_reward(db, household, admin, saver) -> None:
    reward = _reward(db, household, admin, max_redemptions=1)
    request = request_reward(db, reward_id=reward.id, user_id=saver.id, now=NOW)
    approve_request(db, request_id=request.id, admin_id=admin.id, now=NOW)
    db.refresh(reward)
    assert reward.current_redemptions == 1
    assert reward.is_active is False

    code = _code(lambda: request_reward(db, reward_id=reward.id, user_id=saver.id, now=NOW + timedelta(days=1)))
    assert code == "REWARD_EXHAUSTED"


def test_approval_rechecks_scarcity_across_pending_requests(db, household, admin, saver) -> None:
    sibling = make_user(db, "sibling@example.com", household=household, coins=100)
    reward = _reward(db, household, admin, max_redemptions=1)
    first = request_reward(db, reward_id=reward.id, user_id=saver.id, now=NOW)
    second = request_reward(db, reward_id=reward.id, user_id=sibling.id, now=NOW)

    approve_request(db, request_id=first.id, admin_id=admin.id, now=NOW)
    code = _code(lambda: approve_request(db, request_id=second.id, admin_id=admin.id, now=NOW))
    assert code == "REWARD_EXHAUSTED"

    db.refresh(reward)
    db.refresh(second)
    db.refresh(sibling)
    assert reward.current_redemptions == 1
    assert reward.current_redemptions <= reward.max_redemptions
    assert second.status == RequestStatus.PENDING
    assert sibling.coins == 100
    assert sibling.rewards_claimed == 0

    denied = deny_request(db, request_id=second.id, admin_id=admin.id, notes="All gone")
    assert denied.status == RequestStatus.DENIED


@pytest.mark.parametrize("hours_ago,allowed", [(1, False), (25, True)])
def test_cooldown(db, household, admin, saver, hours_ago, allowed) -> None:
    reward = _reward(db, household, admin, cooldown_hours=24)
    reward.last_requested = NOW - timedelta(hours=hours_ago)
    db.commit()

    if allowed:
        assert request_reward(db, reward_id=reward.id, user_id=saver.id, now=NOW).status == RequestStatus.PENDING
    else:
        with pytest.raises(PreconditionError) as exc:
            request_reward(db, reward_id=reward.id, user_id=saver.id, now=NOW)
        assert exc.value.code == "COOLDOWN_ACTIVE"
        assert exc.value.message == "Reward available in 23 hours"


def test_money_reward_credits_cash_value(db, household, admin, saver) -> None:
    reward = _reward(db, household, admin, title="Pocket money", category="money",
                     coin_cost=25, cash_value=Decimal("2.50"))
    request = request_reward(db, reward_id=reward.id, user_id=saver.id, now=NOW)
    approve_request(db, request_id=request.id, admin_id=admin.id, now=NOW)
    db.refresh(saver)
    assert saver.coins == 75
    assert saver.total_cash_rewards == Decimal("2.50")


def test_money_reward_requires_cash_value(db, household, admin) -> None:
    with pytest.raises(ValidationError):
        _reward(db, household, admin, title="£5 pocket money", category="money")


def test_cash_fallback_chain_for_legacy_rows(caplog) -> None:
    legacy = RewardRequest(id="r1", reward_title="£3.50 top-up", coin_cost=40,
                           reward_category=RewardCategory.MONEY)
    assert resolve_cash_value(None, legacy) == Decimal("3.50")

    untitled = RewardRequest(id="r2", reward_title="Top-up", coin_cost=40, reward_category=RewardCategory.MONEY)
    assert resolve_cash_value(Reward(cash_value=None), untitled) == Decimal("0.40")
    assert "converted 40 coins" in caplog.text

    assert resolve_cash_value(Reward(cash_value=Decimal("1.25")), legacy) == Decimal("1.25")


def test_auto_approval_has_same_effects(db, household, admin, saver, notifier) -> None:
    reward = _reward(db, household, admin, requires_approval=False, max_redemptions=1)
    request = request_reward(db, reward_id=reward.id, user_id=saver.id, now=NOW)
    db.refresh(saver)
    db.refresh(reward)
    assert request.status == RequestStatus.APPROVED
    assert request.processed_by is None
    assert saver.coins == 70
    assert reward.is_active is False
    assert notifier.names() == ["reward_request.created", "reward_request.approved"]


def test_deny_and_fulfill(db, household, admin, saver) -> None:
    reward = _reward(db, household, admin)
    denied = deny_request(db, request_id=request_reward(db, reward_id=reward.id, user_id=saver.id, now=NOW).id,
                          admin_id=admin.id, notes="Not this week")
    db.refresh(saver)
    assert denied.status == RequestStatus.DENIED
    assert saver.coins == 100
    assert _code(lambda: approve_request(db, request_id=denied.id, admin_id=admin.id)) == "ALREADY_RESOLVED"
    assert _code(lambda: fulfill_request(db, request_id=denied.id, admin_id=admin.id)) == "NOT_APPROVED"

    request = request_reward(db, reward_id=reward.id, user_id=saver.id, now=NOW)
    approve_request(db, request_id=request.id, admin_id=admin.id, now=NOW)
    fulfilled = fulfill_request(db, request_id=request.id, admin_id=admin.id)
    db.refresh(saver)
    assert fulfilled.status == RequestStatus.FULFILLED
    assert saver.coins == 70


def test_duplicate_creation_bumps_popularity(db, household, admin) -> None:
    first, created = create_reward(db, household_id=household.id, created_by=admin.id,
                                   title="Ice cream", coin_cost=15, category="treats")
    again, created_again = create_reward(db, household_id=household.id, created_by=admin.id,
                                         title="  ice CREAM ", coin_cost=20, category="treats")
    assert created and not created_again
    assert again.id == first.id
    assert again.request_count == 1
    assert db.execute(select(Reward)).scalars().all() == [first]

    _, other_category = create_reward(db, household_id=household.id, created_by=admin.id,
                                      title="Ice cream", coin_cost=15, category="experiences")
    assert other_category


def test_reward_validation(db, household, admin) -> None:
    for kwargs in ({"coin_cost": 0}, {"title": " "}, {"category": "crypto"}, {"max_redemptions": 0}):
        with pytest.raises(ValidationError):
            _reward(db, household, admin, **kwargs)


def test_delete_refused_with_open_requests(db, household, admin, saver) -> None:
    reward = _reward(db, household, admin)
    request = request_reward(db, reward_id=reward.id, user_id=saver.id, now=NOW)
    assert _code(lambda: reward_service.delete_reward(db, reward_id=reward.id, admin_id=admin.id)) == \
        "REWARD_IN_USE"

    deny_request(db, request_id=request.id, admin_id=admin.id)
    reward_service.delete_reward(db, reward_id=reward.id, admin_id=admin.id)
    db.expire_all()
    kept = db.get(RewardRequest, request.id)
    assert kept.reward_id is None
    assert kept.reward_title == "Movie night"


def test_deactivate_and_listing(db, household, admin, saver) -> None:
    popular = _reward(db, household, admin, title="Popcorn", category="treats")
    quiet = _reward(db, household, admin, title="Late bedtime", category="privileges")
    request_reward(db, reward_id=popular.id, user_id=saver.id, now=NOW)

    assert [r.id for r in reward_service.household_rewards(db, household_id=household.id)] == [popular.id, quiet.id]
    reward_service.deactivate_reward(db, reward_id=quiet.id, admin_id=admin.id)
    assert [r.id for r in reward_service.household_rewards(db, household_id=household.id)] == [popular.id]
    assert _code(lambda: request_reward(db, reward_id=quiet.id, user_id=saver.id, now=NOW)) == "REWARD_INACTIVE"


def test_open_and_user_requests(db, household, admin, saver) -> None:
    rewards = [_reward(db, household, admin, title=f"Sticker {i}", coin_cost=1, category="items") for i in range(3)]
    requests = [
        request_reward(db, reward_id=r.id, user_id=saver.id, now=NOW + timedelta(minutes=i))
        for i, r in enumerate(rewards)
    ]
    approve_request(db, request_id=requests[0].id, admin_id=admin.id, now=NOW)
    deny_request(db, request_id=requests[1].id, admin_id=admin.id)

    open_ids = {r.id for r in reward_service.open_requests(db, household_id=household.id)}
    assert open_ids == {requests[0].id, requests[2].id}
    mine = reward_service.user_requests(db, user_id=saver.id)
    assert [r.id for r in mine] == [requests[2].id, requests[1].id, requests[0].id]
