# src/miningreward/runtime/apply/rewards.py
from __future__ import annotations

"""
Reward ledger apply semantics.

This module implements deterministic state transitions for:
- one-time initialization (admin, coin admin, reward token)
- admin entitlement updates (timestamped batches and single sets)
- beneficiary claims against the pooled reward balance
- coin admin withdrawals of the pooled balance

Appliers mutate the state dict they are given and never touch the value store.
A payout is returned as a pending "transfer" in the receipt; the caller issues
it and commits the state only if the transfer succeeds. Invalid payloads and
missing preconditions fail closed with RewardError.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from miningreward.ledger.constants import (
    BATCH_MODE_ACCUMULATE,
    BATCH_MODE_REPLACE,
    BATCH_MODES,
    EVENT_BATCH_SET,
    EVENT_CLAIM_REWARD,
    EVENT_SET,
    EVENT_WITHDRAW_REWARD,
    EVENT_WITHDRAW_REWARD_TO_ADDRESS,
    EVENT_WITHDRAW_REWARD_TO_ADDRESS_WITH_AMOUNT,
    EVENT_WITHDRAW_REWARD_WITH_AMOUNT,
)
from miningreward.ledger.state import ensure_reward_state
from miningreward.runtime.errors import INVALID_PAYLOAD, TX_UNIMPLEMENTED, RewardError
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


@dataclass(frozen=True)
class ApplyContext:
    """What an applier may read besides the state: who we are and where the pool lives."""

    service_id: str
    stores: ValueStoreRegistry
    batch_mode: str = BATCH_MODE_REPLACE


def _as_dict(x: Any) -> Json:
    return x if isinstance(x, dict) else {}


def _as_str(x: Any) -> str:
    return x.strip() if isinstance(x, str) else ""


def _as_amount(x: Any, field_name: str) -> int:
    """Parse a non-negative integer amount.

    Accepts ints and decimal digit strings (large token amounts often travel
    as strings). Rejects bools, floats and anything negative.
    """
    if isinstance(x, bool):
        raise RewardError(INVALID_PAYLOAD, f"{field_name}_not_int", {field_name: x})
    if isinstance(x, int):
        v = x
    elif isinstance(x, str):
        s = x.strip()
        digits = s[1:] if s.startswith("-") else s
        if not digits.isascii() or not digits.isdigit():
            raise RewardError(INVALID_PAYLOAD, f"{field_name}_not_int", {field_name: repr(x)})
        v = int(s)
    else:
        raise RewardError(INVALID_PAYLOAD, f"{field_name}_not_int", {field_name: repr(x)})
    if v < 0:
        raise RewardError(INVALID_PAYLOAD, f"{field_name}_negative", {field_name: v})
    return v


def _require_account(x: Any, field_name: str) -> str:
    s = _as_str(x)
    if not s:
        raise RewardError(INVALID_PAYLOAD, f"missing_{field_name}", {})
    return s


def _require_admin(state: Json, env: TxEnvelope) -> None:
    signer = _as_str(env.signer)
    if not signer or signer != _as_str(state.get("admin")):
        raise RewardError.admin_required({"tx_type": env.tx_type, "signer": signer})


def _require_coin_admin(state: Json, env: TxEnvelope) -> None:
    signer = _as_str(env.signer)
    if not signer or signer != _as_str(state.get("coin_admin")):
        raise RewardError.admin_required({"tx_type": env.tx_type, "signer": signer})


def pooled_balance(state: Json, ctx: ApplyContext) -> int:
    """Balance the service holds in its reward token; 0 before initialization."""
    store = ctx.stores.get(_as_str(state.get("reward_token")))
    if store is None:
        return 0
    return int(store.balance_of(ctx.service_id))


def _transfer(state: Json, to: str, amount: int) -> Json:
    return {"store": _as_str(state.get("reward_token")), "to": to, "amount": int(amount)}


def _apply_initialize(state: Json, env: TxEnvelope, ctx: ApplyContext) -> Json:
    if bool(state.get("initialized", False)):
        raise RewardError.already_initialized()

    payload = _as_dict(env.payload)
    admin = _require_account(payload.get("admin"), "admin")
    coin_admin = _require_account(payload.get("coin_admin"), "coin_admin")
    token = _require_account(payload.get("reward_token"), "reward_token")
    if token not in ctx.stores:
        raise RewardError(INVALID_PAYLOAD, "unknown_reward_token", {"reward_token": token})

    state["admin"] = admin
    state["coin_admin"] = coin_admin
    state["reward_token"] = token
    state["initialized"] = True

    return {
        "applied": TX_INITIALIZE,
        "admin": admin,
        "coin_admin": coin_admin,
        "reward_token": token,
        "events": [],
        "transfer": None,
    }


def _apply_batch_set(state: Json, env: TxEnvelope, ctx: ApplyContext) -> Json:
    _require_admin(state, env)
    payload = _as_dict(env.payload)

    dt = _as_amount(payload.get("datetime"), "datetime")
    last = int(state.get("datetime", 0) or 0)
    if dt <= last:
        raise RewardError.invalid_time({"datetime": dt, "last_datetime": last})

    accounts_raw = payload.get("accounts")
    amounts_raw = payload.get("amounts")
    if not isinstance(accounts_raw, list) or not isinstance(amounts_raw, list):
        raise RewardError(INVALID_PAYLOAD, "accounts_and_amounts_must_be_lists", {})
    if len(accounts_raw) != len(amounts_raw):
        raise RewardError(
            INVALID_PAYLOAD,
            "length_mismatch",
            {"accounts": len(accounts_raw), "amounts": len(amounts_raw)},
        )

    accounts = [_require_account(a, "account") for a in accounts_raw]
    amounts = [_as_amount(a, "amount") for a in amounts_raw]

    balances = state["balances"]
    for account, amount in zip(accounts, amounts):
        if ctx.batch_mode == BATCH_MODE_ACCUMULATE:
            balances[account] = int(balances.get(account, 0)) + amount
        else:
            balances[account] = amount
    state["datetime"] = dt

    fields = {"accounts": accounts, "amounts": amounts, "datetime": dt}
    return {
        "applied": TX_BATCH_SET,
        "count": len(accounts),
        "datetime": dt,
        "events": [(EVENT_BATCH_SET, fields)],
        "transfer": None,
    }


def _apply_set(state: Json, env: TxEnvelope, ctx: ApplyContext) -> Json:
    _require_admin(state, env)
    payload = _as_dict(env.payload)
    account = _require_account(payload.get("account"), "account")
    amount = _as_amount(payload.get("amount"), "amount")

    state["balances"][account] = amount

    return {
        "applied": TX_SET,
        "account": account,
        "amount": amount,
        "events": [(EVENT_SET, {"account": account, "amount": amount})],
        "transfer": None,
    }


def _apply_claim(state: Json, env: TxEnvelope, ctx: ApplyContext) -> Json:
    signer = _as_str(env.signer)
    balances = state["balances"]
    amount = int(balances.get(signer, 0)) if signer else 0
    if amount == 0:
        raise RewardError.no_reward({"account": signer})

    pooled = pooled_balance(state, ctx)
    if pooled < amount:
        raise RewardError.insufficient_reward_token({"account": signer, "amount": amount, "pooled": pooled})

    balances[signer] = 0

    return {
        "applied": TX_CLAIM,
        "account": signer,
        "amount": amount,
        "events": [(EVENT_CLAIM_REWARD, {"addr": signer, "amount": amount})],
        "transfer": _transfer(state, signer, amount),
    }


def _require_pool_not_empty(state: Json, ctx: ApplyContext) -> int:
    pooled = pooled_balance(state, ctx)
    if pooled == 0:
        raise RewardError.no_reward_left({"pooled": 0})
    return pooled


def _apply_withdraw_with_amount(state: Json, env: TxEnvelope, ctx: ApplyContext) -> Json:
    _require_coin_admin(state, env)
    amount = _as_amount(_as_dict(env.payload).get("amount"), "amount")
    _require_pool_not_empty(state, ctx)
    # Plain withdrawals pay out to the admin account.
    to = _as_str(state.get("admin"))
    return {
        "applied": TX_WITHDRAW_WITH_AMOUNT,
        "to": to,
        "amount": amount,
        "events": [(EVENT_WITHDRAW_REWARD_WITH_AMOUNT, {"amount": amount})],
        "transfer": _transfer(state, to, amount),
    }


def _apply_withdraw(state: Json, env: TxEnvelope, ctx: ApplyContext) -> Json:
    _require_coin_admin(state, env)
    pooled = _require_pool_not_empty(state, ctx)
    to = _as_str(state.get("admin"))
    return {
        "applied": TX_WITHDRAW,
        "to": to,
        "amount": pooled,
        "events": [(EVENT_WITHDRAW_REWARD, {"amount": pooled})],
        "transfer": _transfer(state, to, pooled),
    }


def _apply_withdraw_to_address_with_amount(state: Json, env: TxEnvelope, ctx: ApplyContext) -> Json:
    _require_coin_admin(state, env)
    payload = _as_dict(env.payload)
    to = _require_account(payload.get("to"), "to")
    amount = _as_amount(payload.get("amount"), "amount")
    _require_pool_not_empty(state, ctx)
    return {
        "applied": TX_WITHDRAW_TO_ADDRESS_WITH_AMOUNT,
        "to": to,
        "amount": amount,
        "events": [(EVENT_WITHDRAW_REWARD_TO_ADDRESS_WITH_AMOUNT, {"addr": to, "amount": amount})],
        "transfer": _transfer(state, to, amount),
    }


def _apply_withdraw_to_address(state: Json, env: TxEnvelope, ctx: ApplyContext) -> Json:
    _require_coin_admin(state, env)
    to = _require_account(_as_dict(env.payload).get("to"), "to")
    pooled = _require_pool_not_empty(state, ctx)
    return {
        "applied": TX_WITHDRAW_TO_ADDRESS,
        "to": to,
        "amount": pooled,
        "events": [(EVENT_WITHDRAW_REWARD_TO_ADDRESS, {"addr": to, "amount": pooled})],
        "transfer": _transfer(state, to, pooled),
    }


_APPLIERS: Dict[str, Callable[[Json, TxEnvelope, ApplyContext], Json]] = {
    TX_INITIALIZE: _apply_initialize,
    TX_BATCH_SET: _apply_batch_set,
    TX_SET: _apply_set,
    TX_CLAIM: _apply_claim,
    TX_WITHDRAW_WITH_AMOUNT: _apply_withdraw_with_amount,
    TX_WITHDRAW: _apply_withdraw,
    TX_WITHDRAW_TO_ADDRESS_WITH_AMOUNT: _apply_withdraw_to_address_with_amount,
    TX_WITHDRAW_TO_ADDRESS: _apply_withdraw_to_address,
}

REWARD_TX_TYPES: Set[str] = set(_APPLIERS.keys())


def apply_reward_tx(state: Json, env: Any, ctx: ApplyContext) -> Json:
    """Apply one reward tx to `state` in place and return its receipt.

    Receipt keys always present: applied, events, transfer. `transfer` is None
    or {"store", "to", "amount"} and must be issued before the state is kept.
    """
    if ctx.batch_mode not in BATCH_MODES:
        raise ValueError(f"batch_mode must be one of {BATCH_MODES}; got: {ctx.batch_mode!r}")

    e = TxEnvelope.from_json(env)
    t = _as_str(e.tx_type).upper()
    fn = _APPLIERS.get(t)
    if fn is None:
        raise RewardError(TX_UNIMPLEMENTED, "tx_type_not_implemented", {"tx_type": e.tx_type})

    ensure_reward_state(state)
    return fn(state, e, ctx)


def receipt_events(receipt: Optional[Json]) -> List[tuple]:
    evs = _as_dict(receipt).get("events")
    return list(evs) if isinstance(evs, list) else []


__all__ = ["ApplyContext", "REWARD_TX_TYPES", "apply_reward_tx", "pooled_balance", "receipt_events"]
