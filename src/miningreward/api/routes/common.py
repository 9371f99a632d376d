from __future__ import annotations

from fastapi import Request

from miningreward.api.errors import ApiError
from miningreward.config import RewardConfig
from miningreward.runtime.service import MiningRewardService
from miningreward.runtime.value_store import ValueStore


def _service(request: Request) -> MiningRewardService:
    svc = getattr(request.app.state, "service", None)
    if svc is None:
        raise ApiError.unavailable("not_ready", "reward service not attached to app.state", {})
    return svc


def _cfg(request: Request) -> RewardConfig:
    return request.app.state.cfg


def _dev_token(request: Request) -> ValueStore:
    """The in-process reward token; dev/testnet only."""
    cfg = _cfg(request)
    if cfg.mode == "prod":
        raise ApiError.forbidden("dev_only", "token helpers are disabled in prod mode", {})
    store = _service(request).stores.get(cfg.reward_token_address)
    if store is None:
        raise ApiError.not_found("unknown_token", "reward token is not registered", {"token": cfg.reward_token_address})
    return store
