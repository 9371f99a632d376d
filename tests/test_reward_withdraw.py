from __future__ import annotations

from typing import Tuple

import pytest

from miningreward.runtime.errors import ADMIN_REQUIRED, INVALID_PAYLOAD, NO_REWARD_LEFT, TRANSFER_FAILED, RewardError
from miningreward.runtime.service import MiningRewardService
from miningreward.runtime.value_store import InMemoryValueStore, ValueStoreRegistry

SERVICE = "MINING_REWARD"
POOL = 10**30
PART = 10**29


def _setup(pool: int = POOL) -> Tuple[MiningRewardService, InMemoryValueStore]:
    token = InMemoryValueStore("TOKEN")
    svc = MiningRewardService(service_id=SERVICE, stores=ValueStoreRegistry([token]))
    svc.initialize("owner", "other", "TOKEN", caller="owner")
    if pool:
        token.mint("owner", pool)
        token.transfer("owner", SERVICE, pool)
    return svc, token


def test_withdraw_with_amount_then_withdraw_all_pays_admin() -> None:
    svc, token = _setup()
    assert svc.check_reward_balance() == POOL

    with pytest.raises(RewardError) as e:
        svc.withdraw_reward_with_amount("owner", 1)
    assert e.value.code == ADMIN_REQUIRED

    r1 = svc.withdraw_reward_with_amount("other", PART)
    assert r1["events"][0]["name"] == "WITHDRAW_REWARD_WITH_AMOUNT"
    assert r1["events"][0]["fields"] == {"amount": PART}
    assert svc.check_reward_balance() == POOL - PART
    assert token.balance_of("owner") == PART
    assert token.balance_of("other") == 0

    with pytest.raises(RewardError) as e2:
        svc.withdraw_reward("owner")
    assert e2.value.code == ADMIN_REQUIRED

    r2 = svc.withdraw_reward("other")
    assert r2["events"][0]["name"] == "WITHDRAW_REWARD"
    assert r2["events"][0]["fields"] == {"amount": POOL - PART}
    assert svc.check_reward_balance() == 0
    assert token.balance_of("owner") == POOL
    assert token.balance_of("other") == 0


def test_withdraw_to_address_variants() -> None:
    svc, token = _setup()

    with pytest.raises(RewardError) as e:
        svc.withdraw_reward_to_address_with_amount("owner", "treasury", PART)
    assert e.value.code == ADMIN_REQUIRED

    r1 = svc.withdraw_reward_to_address_with_amount("other", "treasury", PART)
    assert r1["events"][0]["name"] == "WITHDRAW_REWARD_TO_ADDRESS_WITH_AMOUNT"
    assert r1["events"][0]["fields"] == {"addr": "treasury", "amount": PART}
    assert token.balance_of("treasury") == PART

    with pytest.raises(RewardError) as e2:
        svc.withdraw_reward_to_address("owner", "treasury")
    assert e2.value.code == ADMIN_REQUIRED

    r2 = svc.withdraw_reward_to_address("other", "treasury")
    assert r2["events"][0]["fields"] == {"addr": "treasury", "amount": POOL - PART}
    assert svc.check_reward_balance() == 0
    assert token.balance_of("treasury") == POOL
    assert token.balance_of("other") == 0


def test_every_withdrawal_fails_once_pool_is_exhausted() -> None:
    svc, _token = _setup()
    svc.withdraw_reward("other")
    assert svc.check_reward_balance() == 0

    calls = [
        lambda: svc.withdraw_reward_with_amount("other", 1),
        lambda: svc.withdraw_reward("other"),
        lambda: svc.withdraw_reward_to_address_with_amount("other", "treasury", 1),
        lambda: svc.withdraw_reward_to_address("other", "treasury"),
    ]
    for call in calls:
        with pytest.raises(RewardError) as e:
            call()
        assert e.value.code == NO_REWARD_LEFT
        assert e.value.reason == "No reward left"


def test_role_check_precedes_empty_pool_check() -> None:
    svc, _token = _setup(pool=0)
    with pytest.raises(RewardError) as e:
        svc.withdraw_reward("owner")
    assert e.value.code == ADMIN_REQUIRED


def test_overdraw_fails_through_token_and_changes_nothing() -> None:
    svc, token = _setup(pool=100)
    with pytest.raises(RewardError) as e:
        svc.withdraw_reward_with_amount("other", 101)
    assert e.value.code == TRANSFER_FAILED
    assert svc.check_reward_balance() == 100
    assert token.balance_of("owner") == 0
    assert token.balance_of("other") == 0


def test_withdraw_to_empty_address_is_rejected() -> None:
    svc, _token = _setup(pool=100)
    with pytest.raises(RewardError) as e:
        svc.withdraw_reward_to_address("other", "")
    assert e.value.code == INVALID_PAYLOAD
    assert svc.check_reward_balance() == 100


def test_withdraw_does_not_touch_entitlements() -> None:
    svc, _token = _setup(pool=100)
    svc.set_balance("owner", "alice", 60)
    svc.withdraw_reward("other")

    assert svc.check_balance("alice") == 60
    with pytest.raises(RewardError):
        svc.claim_reward("alice")


def test_plain_withdrawals_follow_admin_not_caller() -> None:
    token = InMemoryValueStore("TOKEN", balances={SERVICE: 100})
    svc = MiningRewardService(service_id=SERVICE, stores=ValueStoreRegistry([token]))
    svc.initialize("admin", "coin-admin", "TOKEN", caller="admin")

    r = svc.withdraw_reward_with_amount("coin-admin", 30)
    assert r["to"] == "admin"
    assert r["transfer"] == {"store": "TOKEN", "to": "admin", "amount": 30}

    svc.withdraw_reward("coin-admin")
    assert token.balance_of("admin") == 100
    assert token.balance_of("coin-admin") == 0
    assert token.balance_of(SERVICE) == 0
