# src/miningreward/config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from miningreward.ledger.constants import (
    BATCH_MODE_REPLACE,
    BATCH_MODES,
    DEFAULT_REWARD_TOKEN_ADDRESS,
    DEFAULT_SERVICE_ACCOUNT_ID,
)

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


@dataclass(frozen=True)
class RewardConfig:
    mode: str  # "dev" | "testnet" | "prod"
    service_id: str

    # Empty db_path keeps the ledger in memory only.
    db_path: str
    batch_mode: str  # "replace" | "accumulate"
    event_buffer_size: int

    # Address of the in-process reward token registered at boot.
    reward_token_address: str

    # Optional one-shot initialization at boot (both or neither).
    bootstrap_admin: str
    bootstrap_coin_admin: str

    api_host: str
    api_port: int
    log_level: str


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_reward_config(cfg: RewardConfig) -> None:
    """Fail-fast validation for operator config."""

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if not isinstance(cfg.service_id, str) or not cfg.service_id.strip():
        raise ValueError("service_id must be a non-empty string")

    if cfg.batch_mode not in BATCH_MODES:
        raise ValueError(f"batch_mode must be one of {BATCH_MODES}; got: {cfg.batch_mode!r}")

    if int(cfg.event_buffer_size) <= 0:
        raise ValueError(f"event_buffer_size must be > 0; got: {cfg.event_buffer_size}")

    if not isinstance(cfg.reward_token_address, str) or not cfg.reward_token_address.strip():
        raise ValueError("reward_token_address must be a non-empty string")

    if bool(cfg.bootstrap_admin.strip()) != bool(cfg.bootstrap_coin_admin.strip()):
        raise ValueError("bootstrap_admin and bootstrap_coin_admin must be set together")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")


def default_reward_config() -> RewardConfig:
    return RewardConfig(
        # Production-safe default: dev-only token routes stay off unless asked for.
        mode="prod",
        service_id=DEFAULT_SERVICE_ACCOUNT_ID,
        db_path="",
        batch_mode=BATCH_MODE_REPLACE,
        event_buffer_size=10_000,
        reward_token_address=DEFAULT_REWARD_TOKEN_ADDRESS,
        bootstrap_admin="",
        bootstrap_coin_admin="",
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def _merge(base: RewardConfig, raw: Json) -> RewardConfig:
    return RewardConfig(
        mode=_as_str(raw.get("mode"), base.mode).strip().lower(),
        service_id=_as_str(raw.get("service_id"), base.service_id).strip(),
        db_path=str(raw.get("db_path") if raw.get("db_path") is not None else base.db_path).strip(),
        batch_mode=_as_str(raw.get("batch_mode"), base.batch_mode).strip().lower(),
        event_buffer_size=_as_int(raw.get("event_buffer_size"), base.event_buffer_size),
        reward_token_address=_as_str(raw.get("reward_token_address"), base.reward_token_address).strip(),
        bootstrap_admin=_as_str(raw.get("bootstrap_admin"), base.bootstrap_admin).strip(),
        bootstrap_coin_admin=_as_str(raw.get("bootstrap_coin_admin"), base.bootstrap_coin_admin).strip(),
        api_host=_as_str(raw.get("api_host"), base.api_host),
        api_port=_as_int(raw.get("api_port"), base.api_port),
        log_level=_as_str(raw.get("log_level"), base.log_level).strip().upper(),
    )


def read_reward_config_file(path: str) -> RewardConfig:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("reward config must be a JSON object")
    cfg = _merge(default_reward_config(), raw)
    validate_reward_config(cfg)
    return cfg


_ENV_KEYS = {
    "mode": "MININGREWARD_MODE",
    "service_id": "MININGREWARD_SERVICE_ID",
    "db_path": "MININGREWARD_DB_PATH",
    "batch_mode": "MININGREWARD_BATCH_MODE",
    "event_buffer_size": "MININGREWARD_EVENT_BUFFER_SIZE",
    "reward_token_address": "MININGREWARD_REWARD_TOKEN",
    "bootstrap_admin": "MININGREWARD_BOOTSTRAP_ADMIN",
    "bootstrap_coin_admin": "MININGREWARD_BOOTSTRAP_COIN_ADMIN",
    "api_host": "MININGREWARD_API_HOST",
    "api_port": "MININGREWARD_API_PORT",
    "log_level": "MININGREWARD_LOG_LEVEL",
}


def load_reward_config(*, config_path: Optional[str] = None) -> RewardConfig:
    """Load config: defaults, then the JSON file (if any), then MININGREWARD_* env vars."""
    p = config_path or os.environ.get("MININGREWARD_CONFIG_PATH")
    cfg = read_reward_config_file(p) if p else default_reward_config()

    overrides = {k: os.environ[v] for k, v in _ENV_KEYS.items() if v in os.environ}
    if overrides:
        cfg = _merge(cfg, overrides)

    validate_reward_config(cfg)
    return cfg


def with_overrides(cfg: RewardConfig, **changes: Any) -> RewardConfig:
    out = replace(cfg, **changes)
    validate_reward_config(out)
    return out


__all__ = [
    "RewardConfig",
    "default_reward_config",
    "load_reward_config",
    "read_reward_config_file",
    "validate_reward_config",
    "with_overrides",
]
