from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from miningreward.api.errors import ApiError
from miningreward.api.routes.common import _dev_token
from miningreward.api.schemas import MintRequest, TokenTransferRequest
from miningreward.runtime.errors import TransferError

router = APIRouter()

Json = Dict[str, Any]


def _transfer_error(e: TransferError) -> ApiError:
    return ApiError.bad_request(e.code, e.reason, e.details if isinstance(e.details, dict) else {})


@router.get("/token/balance/{account}")
def token_balance(request: Request, account: str) -> Json:
    return {"ok": True, "account": account, "balance": _dev_token(request).balance_of(account)}


@router.post("/token/mint")
def token_mint(request: Request, body: MintRequest) -> Json:
    token = _dev_token(request)
    try:
        token.mint(body.to, body.amount)  # type: ignore[attr-defined]
    except TransferError as e:
        raise _transfer_error(e) from e
    return {"ok": True, "to": body.to, "balance": token.balance_of(body.to)}


@router.post("/token/transfer")
def token_transfer(request: Request, body: TokenTransferRequest) -> Json:
    """Move dev tokens; transferring to the service id funds the reward pool."""
    token = _dev_token(request)
    try:
        token.transfer(body.sender, body.to, body.amount)
    except TransferError as e:
        raise _transfer_error(e) from e
    return {"ok": True, "sender": body.sender, "to": body.to, "amount": body.amount}
