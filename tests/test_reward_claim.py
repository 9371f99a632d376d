from __future__ import annotations

from typing import Tuple

import pytest

from miningreward.runtime.errors import (
    INSUFFICIENT_REWARD_TOKEN,
    NO_REWARD,
    TRANSFER_FAILED,
    RewardError,
    TransferError,
)
from miningreward.runtime.service import MiningRewardService
from miningreward.runtime.value_store import InMemoryValueStore, ValueStoreRegistry

SERVICE = "MINING_REWARD"


def _setup(pool: int = 0) -> Tuple[MiningRewardService, InMemoryValueStore]:
    token = InMemoryValueStore("TOKEN")
    svc = MiningRewardService(service_id=SERVICE, stores=ValueStoreRegistry([token]))
    svc.initialize("owner", "other", "TOKEN", caller="owner")
    if pool:
        token.mint("funder", pool)
        token.transfer("funder", SERVICE, pool)
    return svc, token


class _RejectingStore(InMemoryValueStore):
    """Token whose transfers always fail after the ledger has staged its change."""

    def transfer(self, sender: str, to: str, amount: int) -> None:
        raise TransferError("paused", "token transfers are paused", {})


def test_check_reward_balance_tracks_deposits() -> None:
    svc, token = _setup()
    assert svc.check_reward_balance() == 0

    token.mint("other", 10**30)
    token.transfer("other", SERVICE, 10**28)
    assert svc.check_reward_balance() == 10**28


def test_claim_pays_out_and_zeroes_entitlement() -> None:
    svc, token = _setup(pool=1_000)
    svc.set_balance("owner", "alice", 300)

    receipt = svc.claim_reward("alice")

    assert receipt["applied"] == "REWARD_CLAIM"
    assert receipt["amount"] == 300
    assert svc.check_balance("alice") == 0
    assert token.balance_of("alice") == 300
    assert svc.check_reward_balance() == 700


def test_claim_with_exact_pool_balance_succeeds() -> None:
    svc, token = _setup(pool=300)
    svc.set_balance("owner", "alice", 300)
    svc.claim_reward("alice")
    assert svc.check_reward_balance() == 0
    assert token.balance_of("alice") == 300


def test_claim_with_zero_entitlement_fails_no_reward() -> None:
    svc, token = _setup(pool=1_000)

    with pytest.raises(RewardError) as e:
        svc.claim_reward("alice")
    assert e.value.code == NO_REWARD
    assert e.value.reason == "No reward"

    svc.set_balance("owner", "alice", 0)
    with pytest.raises(RewardError) as e2:
        svc.claim_reward("alice")
    assert e2.value.code == NO_REWARD

    assert svc.check_reward_balance() == 1_000
    assert token.balance_of("alice") == 0


def test_claim_exceeding_pool_fails_and_changes_nothing() -> None:
    svc, token = _setup(pool=299)
    svc.set_balance("owner", "alice", 300)

    with pytest.raises(RewardError) as e:
        svc.claim_reward("alice")
    assert e.value.code == INSUFFICIENT_REWARD_TOKEN
    assert e.value.reason == "Insufficient rewardToken"

    assert svc.check_balance("alice") == 300
    assert svc.check_reward_balance() == 299
    assert token.balance_of("alice") == 0


def test_claim_twice_second_fails_no_reward() -> None:
    svc, _token = _setup(pool=1_000)
    svc.set_balance("owner", "alice", 10)
    svc.claim_reward("alice")

    with pytest.raises(RewardError) as e:
        svc.claim_reward("alice")
    assert e.value.code == NO_REWARD


def test_failed_transfer_rolls_back_entitlement() -> None:
    token = _RejectingStore("TOKEN")
    token.mint(SERVICE, 1_000)
    svc = MiningRewardService(service_id=SERVICE, stores=ValueStoreRegistry([token]))
    svc.initialize("owner", "other", "TOKEN")
    svc.set_balance("owner", "alice", 300)
    before = svc.snapshot()
    seq_before = svc.events.last_seq()

    with pytest.raises(RewardError) as e:
        svc.claim_reward("alice")
    assert e.value.code == TRANSFER_FAILED
    assert isinstance(e.value.__cause__, TransferError)

    assert svc.snapshot() == before
    assert svc.check_balance("alice") == 300
    assert svc.check_reward_balance() == 1_000
    assert svc.events.last_seq() == seq_before


def test_claim_acts_only_on_caller() -> None:
    svc, token = _setup(pool=1_000)
    svc.batch_set("owner", ["alice", "bob"], [100, 200], 1)

    svc.claim_reward("bob")
    assert svc.check_balance("alice") == 100
    assert svc.check_balance("bob") == 0
    assert token.balance_of("bob") == 200
    assert token.balance_of("alice") == 0


def test_entitlements_may_exceed_pool() -> None:
    svc, _token = _setup(pool=100)
    svc.batch_set("owner", ["alice", "bob"], [80, 80], 1)

    svc.claim_reward("alice")
    with pytest.raises(RewardError) as e:
        svc.claim_reward("bob")
    assert e.value.code == INSUFFICIENT_REWARD_TOKEN
    assert svc.view().balances == {"alice": 0, "bob": 80}
    assert svc.check_reward_balance() == 20
