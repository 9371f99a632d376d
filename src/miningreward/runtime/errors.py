from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Rejection codes. Each failure aborts the whole operation.
ALREADY_INITIALIZED = "already_initialized"
ADMIN_REQUIRED = "admin_required"
INVALID_TIME = "invalid_time"
NO_REWARD = "no_reward"
INSUFFICIENT_REWARD_TOKEN = "insufficient_reward_token"
NO_REWARD_LEFT = "no_reward_left"
TRANSFER_FAILED = "transfer_failed"
INVALID_PAYLOAD = "invalid_payload"
TX_UNIMPLEMENTED = "tx_unimplemented"


@dataclass
class RewardError(Exception):
    """Canonical error type for reward ledger operations."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"

    @staticmethod
    def already_initialized() -> "RewardError":
        return RewardError(ALREADY_INITIALIZED, "Contract instance has already been initialized")

    @staticmethod
    def admin_required(details: Any | None = None) -> "RewardError":
        return RewardError(ADMIN_REQUIRED, "Admin required", details)

    @staticmethod
    def invalid_time(details: Any | None = None) -> "RewardError":
        return RewardError(INVALID_TIME, "Invalid time", details)

    @staticmethod
    def no_reward(details: Any | None = None) -> "RewardError":
        return RewardError(NO_REWARD, "No reward", details)

    @staticmethod
    def insufficient_reward_token(details: Any | None = None) -> "RewardError":
        return RewardError(INSUFFICIENT_REWARD_TOKEN, "Insufficient rewardToken", details)

    @staticmethod
    def no_reward_left(details: Any | None = None) -> "RewardError":
        return RewardError(NO_REWARD_LEFT, "No reward left", details)


@dataclass
class TransferError(Exception):
    """Raised by a value store when a transfer cannot be applied."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}:{self.reason}"


__all__ = [
    "ADMIN_REQUIRED",
    "ALREADY_INITIALIZED",
    "INSUFFICIENT_REWARD_TOKEN",
    "INVALID_PAYLOAD",
    "INVALID_TIME",
    "NO_REWARD",
    "NO_REWARD_LEFT",
    "RewardError",
    "TRANSFER_FAILED",
    "TX_UNIMPLEMENTED",
    "TransferError",
]
