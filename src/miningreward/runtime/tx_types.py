from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

# Tx types accepted by the reward apply router.
TX_INITIALIZE = "REWARD_INITIALIZE"
TX_BATCH_SET = "REWARD_BATCH_SET"
TX_SET = "REWARD_SET"
TX_CLAIM = "REWARD_CLAIM"
TX_WITHDRAW_WITH_AMOUNT = "REWARD_WITHDRAW_WITH_AMOUNT"
TX_WITHDRAW = "REWARD_WITHDRAW"
TX_WITHDRAW_TO_ADDRESS_WITH_AMOUNT = "REWARD_WITHDRAW_TO_ADDRESS_WITH_AMOUNT"
TX_WITHDRAW_TO_ADDRESS = "REWARD_WITHDRAW_TO_ADDRESS"


@dataclass(frozen=True)
class TxEnvelope:
    """One requested state transition: who asks for what."""

    tx_type: str
    signer: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_json(j: Any) -> "TxEnvelope":
        if isinstance(j, TxEnvelope):
            return j
        if not isinstance(j, dict):
            j = dict(j)  # type: ignore[arg-type]
        return TxEnvelope(
            tx_type=str(j.get("tx_type", "")),
            signer=str(j.get("signer", "") or ""),
            payload=dict(j.get("payload", {}) or {}),
        )
