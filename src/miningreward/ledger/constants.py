# src/miningreward/ledger/constants.py
from __future__ import annotations

"""Reward ledger constants.

Amounts are plain integers in the reward token's smallest unit (18 decimals,
like the ERC20-style tokens the pool is usually funded with).
"""

TOKEN_DECIMALS: int = 18
TOKEN_UNIT: int = 10**TOKEN_DECIMALS

# Account id of the custodian inside the value store (its "contract address").
DEFAULT_SERVICE_ACCOUNT_ID: str = "MINING_REWARD"

# Address of the dev/test reward token registered at boot.
DEFAULT_REWARD_TOKEN_ADDRESS: str = "REWARD_TOKEN"

# How batch_set combines a new amount with the stored entitlement.
BATCH_MODE_REPLACE: str = "replace"
BATCH_MODE_ACCUMULATE: str = "accumulate"
BATCH_MODES = (BATCH_MODE_REPLACE, BATCH_MODE_ACCUMULATE)

# Auditable events
EVENT_BATCH_SET: str = "BATCH_SET"
EVENT_SET: str = "SET"
EVENT_CLAIM_REWARD: str = "CLAIM_REWARD"
EVENT_WITHDRAW_REWARD_WITH_AMOUNT: str = "WITHDRAW_REWARD_WITH_AMOUNT"
EVENT_WITHDRAW_REWARD: str = "WITHDRAW_REWARD"
EVENT_WITHDRAW_REWARD_TO_ADDRESS_WITH_AMOUNT: str = "WITHDRAW_REWARD_TO_ADDRESS_WITH_AMOUNT"
EVENT_WITHDRAW_REWARD_TO_ADDRESS: str = "WITHDRAW_REWARD_TO_ADDRESS"

EVENT_NAMES = (
    EVENT_BATCH_SET,
    EVENT_SET,
    EVENT_CLAIM_REWARD,
    EVENT_WITHDRAW_REWARD_WITH_AMOUNT,
    EVENT_WITHDRAW_REWARD,
    EVENT_WITHDRAW_REWARD_TO_ADDRESS_WITH_AMOUNT,
    EVENT_WITHDRAW_REWARD_TO_ADDRESS,
)
