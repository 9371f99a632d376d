from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Query, Request

from miningreward.api.routes.common import _service
from miningreward.api.schemas import (
    BatchSetRequest,
    CallerRequest,
    InitializeRequest,
    SetRequest,
    WithdrawAmountRequest,
    WithdrawToAmountRequest,
    WithdrawToRequest,
)

router = APIRouter()

Json = Dict[str, Any]


# ---- reads ----


@router.get("/reward/admin")
def reward_admin(request: Request) -> Json:
    return {"ok": True, "admin": _service(request).admin()}


@router.get("/reward/coin_admin")
def reward_coin_admin(request: Request) -> Json:
    return {"ok": True, "coin_admin": _service(request).coin_admin()}


@router.get("/reward/datetime")
def reward_datetime(request: Request) -> Json:
    return {"ok": True, "datetime": _service(request).datetime()}


@router.get("/reward/balance/{account}")
def reward_balance(request: Request, account: str) -> Json:
    return {"ok": True, "account": account, "balance": _service(request).check_balance(account)}


@router.get("/reward/reward_balance")
def reward_pool_balance(request: Request) -> Json:
    return {"ok": True, "reward_balance": _service(request).check_reward_balance()}


@router.get("/reward/state")
def reward_state(request: Request) -> Json:
    """Full ledger snapshot (roles, watermark, every entitlement)."""
    return {"ok": True, "state": _service(request).snapshot()}


@router.get("/reward/events")
def reward_events(
    request: Request,
    since: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
) -> Json:
    svc = _service(request)
    evs = svc.events.since(since, limit=limit)
    return {"ok": True, "last_seq": svc.events.last_seq(), "events": [e.to_json() for e in evs]}


# ---- mutations ----


@router.post("/reward/initialize")
def reward_initialize(request: Request, body: InitializeRequest) -> Json:
    receipt = _service(request).initialize(body.admin, body.coin_admin, body.reward_token, caller=body.caller)
    return {"ok": True, "receipt": receipt}


@router.post("/reward/batch_set")
def reward_batch_set(request: Request, body: BatchSetRequest) -> Json:
    receipt = _service(request).batch_set(body.caller, body.accounts, body.amounts, body.datetime)
    return {"ok": True, "receipt": receipt}


@router.post("/reward/set")
def reward_set(request: Request, body: SetRequest) -> Json:
    receipt = _service(request).set_balance(body.caller, body.account, body.amount)
    return {"ok": True, "receipt": receipt}


@router.post("/reward/claim")
def reward_claim(request: Request, body: CallerRequest) -> Json:
    return {"ok": True, "receipt": _service(request).claim_reward(body.caller)}


@router.post("/reward/withdraw")
def reward_withdraw(request: Request, body: CallerRequest) -> Json:
    return {"ok": True, "receipt": _service(request).withdraw_reward(body.caller)}


@router.post("/reward/withdraw_amount")
def reward_withdraw_amount(request: Request, body: WithdrawAmountRequest) -> Json:
    return {"ok": True, "receipt": _service(request).withdraw_reward_with_amount(body.caller, body.amount)}


@router.post("/reward/withdraw_to")
def reward_withdraw_to(request: Request, body: WithdrawToRequest) -> Json:
    return {"ok": True, "receipt": _service(request).withdraw_reward_to_address(body.caller, body.to)}


@router.post("/reward/withdraw_to_amount")
def reward_withdraw_to_amount(request: Request, body: WithdrawToAmountRequest) -> Json:
    receipt = _service(request).withdraw_reward_to_address_with_amount(body.caller, body.to, body.amount)
    return {"ok": True, "receipt": receipt}
