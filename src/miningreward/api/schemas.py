from __future__ import annotations

"""Pydantic request schemas for the public API.

Every mutating request names its caller explicitly; the ledger checks the
caller against the admin / coin admin role on each call.
"""

from typing import List

from pydantic import BaseModel, Field


class CallerRequest(BaseModel):
    caller: str = Field(..., description="Principal invoking the operation")


class InitializeRequest(BaseModel):
    caller: str = Field(default="", description="Principal invoking initialize (any)")
    admin: str = Field(..., description="Account allowed to set entitlements")
    coin_admin: str = Field(..., description="Account allowed to withdraw the pooled balance")
    reward_token: str = Field(..., description="Reward token handle (address)")


class BatchSetRequest(CallerRequest):
    accounts: List[str] = Field(..., description="Beneficiaries, paired by position with amounts")
    amounts: List[int] = Field(..., description="Entitlements in token base units")
    datetime: int = Field(..., description="Batch timestamp; must exceed the stored one")


class SetRequest(CallerRequest):
    account: str
    amount: int


class WithdrawAmountRequest(CallerRequest):
    amount: int


class WithdrawToRequest(CallerRequest):
    to: str


class WithdrawToAmountRequest(CallerRequest):
    to: str
    amount: int


class MintRequest(BaseModel):
    to: str
    amount: int


class TokenTransferRequest(BaseModel):
    sender: str
    to: str
    amount: int
