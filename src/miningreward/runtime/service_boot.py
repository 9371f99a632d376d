# src/miningreward/runtime/service_boot.py

from __future__ import annotations

from typing import Optional

from miningreward.config import RewardConfig, load_reward_config
from miningreward.runtime.errors import ALREADY_INITIALIZED, RewardError
from miningreward.runtime.events import EventLog
from miningreward.runtime.jsonl_logging import get_logger, log_event
from miningreward.runtime.service import MiningRewardService
from miningreward.runtime.single_writer import SingleWriterLock
from miningreward.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from miningreward.runtime.value_store import InMemoryValueStore, ValueStoreRegistry

_log = get_logger("boot")


def build_service(cfg: Optional[RewardConfig] = None) -> MiningRewardService:
    """
    Build a MiningRewardService from an explicit config or, if omitted, from
    MININGREWARD_* environment variables.

    - registers the in-process reward token under cfg.reward_token_address
    - with a db_path: takes the single-writer lock and loads/persists the
      ledger snapshot in SQLite
    - with bootstrap_admin/bootstrap_coin_admin: initializes a fresh ledger
    """
    c = cfg or load_reward_config()

    stores = ValueStoreRegistry([InMemoryValueStore(c.reward_token_address, name="reward token")])

    writer_lock = None
    if c.db_path:
        writer_lock = SingleWriterLock(c.db_path + ".lock")
        writer_lock.acquire()

    try:
        svc = MiningRewardService(
            service_id=c.service_id,
            stores=stores,
            batch_mode=c.batch_mode,
            ledger_store=SqliteLedgerStore(db=SqliteDB(path=c.db_path)) if c.db_path else None,
            event_log=EventLog(max_events=c.event_buffer_size),
            writer_lock=writer_lock,
        )
        if c.bootstrap_admin and not svc.view().initialized:
            try:
                svc.initialize(
                    c.bootstrap_admin, c.bootstrap_coin_admin, c.reward_token_address, caller=c.bootstrap_admin
                )
            except RewardError as e:
                if e.code != ALREADY_INITIALIZED:
                    raise
    except BaseException:
        # Any failed boot step must not leave the DB lock held.
        if writer_lock is not None:
            writer_lock.release()
        raise

    log_event(
        _log,
        "service_booted",
        mode=c.mode,
        service_id=c.service_id,
        persistent=bool(c.db_path),
        batch_mode=c.batch_mode,
        initialized=svc.view().initialized,
    )
    return svc


__all__ = ["build_service"]
