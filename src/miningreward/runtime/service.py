from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Dict, List, Optional, Sequence

from miningreward.ledger.constants import BATCH_MODE_REPLACE, BATCH_MODES, DEFAULT_SERVICE_ACCOUNT_ID
from miningreward.ledger.state import RewardLedgerView, ensure_reward_state, initial_reward_state
from miningreward.runtime import metrics
from miningreward.runtime.apply.rewards import ApplyContext, apply_reward_tx, pooled_balance, receipt_events
from miningreward.runtime.errors import TRANSFER_FAILED, RewardError, TransferError
from miningreward.runtime.events import EventLog, RewardEvent
from miningreward.runtime.jsonl_logging import get_logger, log_event
from miningreward.runtime.single_writer import SingleWriterLock
from miningreward.runtime.sqlite_db import SqliteLedgerStore
from miningreward.runtime.tx_types import (
    TX_BATCH_SET,
    TX_CLAIM,
    TX_INITIALIZE,
    TX_SET,
    TX_WITHDRAW,
    TX_WITHDRAW_TO_ADDRESS,
    TX_WITHDRAW_TO_ADDRESS_WITH_AMOUNT,
    TX_WITHDRAW_WITH_AMOUNT,
    TxEnvelope,
)
from miningreward.runtime.value_store import ValueStoreRegistry

Json = Dict[str, Any]

_log = get_logger("service")


class MiningRewardService:
    """Reward ledger and payout custodian.

    Every operation runs under one process-wide lock, so operations are fully
    serialized and never observe each other's partial effects.

    A mutating operation is applied to a deep copy of the state. The copy is
    persisted first (when a ledger store is attached), then any payout is
    issued against the reward token; the copy replaces the live state only
    after both succeeded. A failed payout restores the persisted row, so any
    failure leaves the ledger exactly as it was.
    """

    def __init__(
        self,
        *,
        service_id: str = DEFAULT_SERVICE_ACCOUNT_ID,
        stores: Optional[ValueStoreRegistry] = None,
        batch_mode: str = BATCH_MODE_REPLACE,
        ledger_store: Optional[SqliteLedgerStore] = None,
        event_log: Optional[EventLog] = None,
        writer_lock: Optional[SingleWriterLock] = None,
    ) -> None:
        sid = str(service_id or "").strip()
        if not sid:
            raise ValueError("service_id must be a non-empty string")
        if batch_mode not in BATCH_MODES:
            raise ValueError(f"batch_mode must be one of {BATCH_MODES}; got: {batch_mode!r}")

        self.service_id = sid
        self.stores = stores if stores is not None else ValueStoreRegistry()
        self.batch_mode = batch_mode
        self.events = event_log if event_log is not None else EventLog()

        self._lock = threading.RLock()
        self._ledger_store = ledger_store
        self._writer_lock = writer_lock

        if ledger_store is not None and ledger_store.exists():
            self.state: Json = ensure_reward_state(ledger_store.read())
        else:
            self.state = initial_reward_state()
            if ledger_store is not None:
                ledger_store.write(self.state)

        metrics.set_gauge("reward_datetime", int(self.state["datetime"]))

    def close(self) -> None:
        """Release the single-writer lock (if any). The service stays readable."""
        if self._writer_lock is not None:
            self._writer_lock.release()
            self._writer_lock = None

    @property
    def context(self) -> ApplyContext:
        return ApplyContext(service_id=self.service_id, stores=self.stores, batch_mode=self.batch_mode)

    # ----------------------------
    # Execution
    # ----------------------------

    def execute(self, env: Any) -> Json:
        """Apply one tx envelope atomically and return its receipt (events included)."""
        e = TxEnvelope.from_json(env)
        t = str(e.tx_type or "").strip().upper()

        with self._lock:
            working = copy.deepcopy(self.state)
            try:
                receipt = apply_reward_tx(working, e, self.context)
                self._stage_and_transfer(working, receipt.get("transfer"))
            except RewardError as err:
                metrics.record_operation(t, ok=False, code=err.code)
                log_event(
                    _log,
                    "reward_tx_rejected",
                    tx_type=t,
                    signer=e.signer,
                    code=err.code,
                    reason=err.reason,
                )
                raise
            except Exception as err:
                metrics.record_operation(t, ok=False, code="internal_error")
                log_event(
                    _log,
                    "reward_tx_failed",
                    level=logging.ERROR,
                    tx_type=t,
                    signer=e.signer,
                    error=repr(err),
                )
                raise

            self.state = working
            emitted: List[RewardEvent] = [self.events.emit(name, **fields) for name, fields in receipt_events(receipt)]

        metrics.record_operation(t, ok=True)
        metrics.set_gauge("reward_datetime", int(working["datetime"]))
        log_event(_log, "reward_tx_applied", tx_type=t, signer=e.signer)

        out = {k: v for k, v in receipt.items() if k != "events"}
        out["events"] = [ev.to_json() for ev in emitted]
        return out

    def _issue_transfer(self, transfer: Optional[Json]) -> None:
        if not transfer:
            return
        store = self.stores.get(str(transfer.get("store") or ""))
        if store is None:
            raise RewardError(TRANSFER_FAILED, "reward_token_unavailable", {"store": transfer.get("store")})
        try:
            store.transfer(self.service_id, str(transfer["to"]), int(transfer["amount"]))
        except TransferError as err:
            raise RewardError(
                TRANSFER_FAILED,
                err.reason,
                {"code": err.code, "to": transfer.get("to"), "amount": transfer.get("amount")},
            ) from err

    def _stage_and_transfer(self, working: Json, transfer: Optional[Json]) -> None:
        """Persist the staged state, then pay out; undo the write if the payout fails.

        Nothing is paid out unless the new state is durable, and a failed
        payout leaves the persisted row as it was.
        """
        if self._ledger_store is not None:
            self._ledger_store.write(working)
        try:
            self._issue_transfer(transfer)
        except BaseException:
            if self._ledger_store is not None:
                try:
                    self._ledger_store.write(self.state)
                except Exception as restore_err:
                    log_event(_log, "ledger_restore_failed", level=logging.ERROR, error=repr(restore_err))
                    raise
            raise

    # ----------------------------
    # Mutating operations
    # ----------------------------

    def initialize(self, admin: str, coin_admin: str, reward_token: str, *, caller: str = "") -> Json:
        return self.execute(
            TxEnvelope(
                TX_INITIALIZE,
                caller,
                {"admin": admin, "coin_admin": coin_admin, "reward_token": reward_token},
            )
        )

    def batch_set(self, caller: str, accounts: Sequence[str], amounts: Sequence[int], datetime: int) -> Json:
        return self.execute(
            TxEnvelope(
                TX_BATCH_SET,
                caller,
                {"accounts": list(accounts), "amounts": list(amounts), "datetime": datetime},
            )
        )

    def set_balance(self, caller: str, account: str, amount: int) -> Json:
        return self.execute(TxEnvelope(TX_SET, caller, {"account": account, "amount": amount}))

    def claim_reward(self, caller: str) -> Json:
        return self.execute(TxEnvelope(TX_CLAIM, caller, {}))

    def withdraw_reward_with_amount(self, caller: str, amount: int) -> Json:
        return self.execute(TxEnvelope(TX_WITHDRAW_WITH_AMOUNT, caller, {"amount": amount}))

    def withdraw_reward(self, caller: str) -> Json:
        return self.execute(TxEnvelope(TX_WITHDRAW, caller, {}))

    def withdraw_reward_to_address_with_amount(self, caller: str, to: str, amount: int) -> Json:
        return self.execute(TxEnvelope(TX_WITHDRAW_TO_ADDRESS_WITH_AMOUNT, caller, {"to": to, "amount": amount}))

    def withdraw_reward_to_address(self, caller: str, to: str) -> Json:
        return self.execute(TxEnvelope(TX_WITHDRAW_TO_ADDRESS, caller, {"to": to}))

    # ----------------------------
    # Reads
    # ----------------------------

    def view(self) -> RewardLedgerView:
        with self._lock:
            return RewardLedgerView.from_ledger(self.state)

    def snapshot(self) -> Json:
        with self._lock:
            return copy.deepcopy(self.state)

    def admin(self) -> str:
        return self.view().admin

    def coin_admin(self) -> str:
        return self.view().coin_admin

    def datetime(self) -> int:
        return self.view().datetime

    def check_balance(self, account: str) -> int:
        return self.view().balance_of(account)

    def check_reward_balance(self) -> int:
        with self._lock:
            return pooled_balance(self.state, self.context)


__all__ = ["MiningRewardService"]
