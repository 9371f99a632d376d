from __future__ import annotations

from miningreward.runtime.apply.rewards import REWARD_TX_TYPES, apply_reward_tx

__all__ = ["REWARD_TX_TYPES", "apply_reward_tx"]
