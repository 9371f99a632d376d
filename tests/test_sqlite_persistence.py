from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from miningreward.config import default_reward_config, with_overrides
from miningreward.runtime.errors import INVALID_TIME, TRANSFER_FAILED, RewardError, TransferError
from miningreward.runtime.service import MiningRewardService
from miningreward.runtime.service_boot import build_service
from miningreward.runtime.single_writer import SingleWriterLock, SingleWriterLockHeld
from miningreward.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from miningreward.runtime.value_store import InMemoryValueStore, ValueStoreRegistry


def _store(tmp_path: Path) -> SqliteLedgerStore:
    return SqliteLedgerStore(db=SqliteDB(path=str(tmp_path / "data" / "reward.db")))


def _svc(store: SqliteLedgerStore) -> MiningRewardService:
    return MiningRewardService(
        service_id="MINING_REWARD",
        stores=ValueStoreRegistry([InMemoryValueStore("TOKEN")]),
        ledger_store=store,
    )


def test_fresh_store_writes_initial_snapshot(tmp_path: Path) -> None:
    store = _store(tmp_path)
    assert store.exists() is False

    svc = _svc(store)
    assert store.exists() is True
    assert store.read() == svc.snapshot()
    assert store.revision() == 0


def test_committed_state_survives_reload(tmp_path: Path) -> None:
    store = _store(tmp_path)
    svc = _svc(store)
    svc.initialize("owner", "other", "TOKEN", caller="owner")
    svc.batch_set("owner", ["alice", "bob"], [10**18, 2 * 10**18], 1_598_889_600)

    again = _svc(_store(tmp_path))
    assert again.admin() == "owner"
    assert again.coin_admin() == "other"
    assert again.datetime() == 1_598_889_600
    assert again.check_balance("bob") == 2 * 10**18

    with pytest.raises(RewardError) as e:
        again.batch_set("owner", ["alice"], [1], 1_598_889_600)
    assert e.value.code == INVALID_TIME


def test_rejected_operation_is_not_persisted(tmp_path: Path) -> None:
    store = _store(tmp_path)
    svc = _svc(store)
    svc.initialize("owner", "other", "TOKEN")
    before = store.read()
    revision = store.revision()

    with pytest.raises(RewardError):
        svc.set_balance("mallory", "mallory", 10)
    assert store.read() == before
    assert store.revision() == revision


def test_schema_version_mismatch_refuses_to_open(tmp_path: Path) -> None:
    store = _store(tmp_path)
    with store.db.write_tx() as con:
        con.execute("UPDATE meta SET value='99' WHERE key='schema_version';")

    with pytest.raises(RuntimeError):
        _store(tmp_path)


def test_single_writer_lock_rejects_second_holder(tmp_path: Path) -> None:
    path = str(tmp_path / "reward.db.lock")
    with SingleWriterLock(path) as first:
        assert first.held is True
        with pytest.raises(SingleWriterLockHeld):
            SingleWriterLock(path).acquire()
    assert first.held is False

    second = SingleWriterLock(path)
    second.acquire()
    second.release()


def test_build_service_holds_lock_until_closed(tmp_path: Path) -> None:
    cfg = with_overrides(
        default_reward_config(),
        mode="dev",
        db_path=str(tmp_path / "reward.db"),
        bootstrap_admin="owner",
        bootstrap_coin_admin="other",
    )
    svc = build_service(cfg)
    assert svc.view().initialized is True
    assert svc.admin() == "owner"

    with pytest.raises(SingleWriterLockHeld):
        build_service(cfg)

    svc.set_balance("owner", "alice", 7)
    svc.close()

    # Reopening keeps the persisted ledger and skips bootstrap initialization.
    reopened = build_service(cfg)
    try:
        assert reopened.check_balance("alice") == 7
        assert reopened.admin() == "owner"
    finally:
        reopened.close()


class _FailingWriteStore(SqliteLedgerStore):
    """Ledger store whose writes fail while `broken` is set."""

    broken = False

    def write(self, st: dict) -> int:
        if self.broken:
            raise sqlite3.OperationalError("disk I/O error")
        return super().write(st)


class _PausedToken(InMemoryValueStore):
    def transfer(self, sender: str, to: str, amount: int) -> None:
        raise TransferError("paused", "token transfers are paused", {})


def test_failed_persist_pays_nothing_and_keeps_state(tmp_path: Path) -> None:
    token = InMemoryValueStore("TOKEN", balances={"MINING_REWARD": 1_000})
    store = _FailingWriteStore(db=SqliteDB(path=str(tmp_path / "reward.db")))
    svc = MiningRewardService(
        service_id="MINING_REWARD",
        stores=ValueStoreRegistry([token]),
        ledger_store=store,
    )
    svc.initialize("owner", "other", "TOKEN")
    svc.set_balance("owner", "alice", 300)
    before = svc.snapshot()
    seq_before = svc.events.last_seq()

    store.broken = True
    with pytest.raises(sqlite3.OperationalError):
        svc.claim_reward("alice")
    with pytest.raises(sqlite3.OperationalError):
        svc.withdraw_reward_to_address("other", "treasury")

    assert token.balance_of("alice") == 0
    assert token.balance_of("treasury") == 0
    assert token.balance_of("MINING_REWARD") == 1_000
    assert svc.snapshot() == before
    assert svc.check_balance("alice") == 300
    assert svc.events.last_seq() == seq_before
    assert store.read() == before

    # The service keeps working once the store recovers.
    store.broken = False
    svc.claim_reward("alice")
    assert token.balance_of("alice") == 300
    assert store.read()["balances"]["alice"] == 0


def test_failed_payout_restores_persisted_row(tmp_path: Path) -> None:
    token = _PausedToken("TOKEN", balances={"MINING_REWARD": 1_000})
    store = _store(tmp_path)
    svc = MiningRewardService(
        service_id="MINING_REWARD",
        stores=ValueStoreRegistry([token]),
        ledger_store=store,
    )
    svc.initialize("owner", "other", "TOKEN")
    svc.set_balance("owner", "alice", 300)
    before = store.read()

    with pytest.raises(RewardError) as e:
        svc.claim_reward("alice")
    assert e.value.code == TRANSFER_FAILED

    assert store.read() == before
    assert store.read()["balances"]["alice"] == 300
    assert svc.snapshot() == before

    # A restart sees the entitlement that was never paid.
    again = _svc(_store(tmp_path))
    assert again.check_balance("alice") == 300


def test_build_service_releases_lock_when_ledger_fails_to_load(tmp_path: Path) -> None:
    db_path = str(tmp_path / "reward.db")
    cfg = with_overrides(default_reward_config(), mode="dev", db_path=db_path)
    build_service(cfg).close()

    with SqliteLedgerStore(db=SqliteDB(path=db_path)).db.write_tx() as con:
        con.execute("""UPDATE ledger_state SET state_json='{"balances": {"a": -1}}' WHERE id=1;""")

    with pytest.raises(TypeError):
        build_service(cfg)

    lock = SingleWriterLock(db_path + ".lock")
    lock.acquire()
    assert lock.held is True
    lock.release()
