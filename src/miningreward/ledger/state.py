from __future__ import annotations

import copy
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from typing import Any, Dict

Json = Dict[str, Any]


def initial_reward_state() -> Json:
    return {
        "initialized": False,
        "admin": "",
        "coin_admin": "",
        "reward_token": "",
        "balances": {},
        "datetime": 0,
    }


def ensure_reward_state(st: Any) -> Json:
    """Ensure `st` is a dict carrying every reward ledger root.

    Missing roots are backfilled with their initial values. Roots that exist
    with the wrong type are rejected instead of coerced.

    Raises:
        TypeError: if st (or one of its roots) has the wrong shape
    """
    if not isinstance(st, MutableMapping):
        raise TypeError(f"state must be MutableMapping, got {type(st)}")

    for key, default in initial_reward_state().items():
        if key not in st or st[key] is None:
            st[key] = default

    if not isinstance(st["initialized"], bool):
        raise TypeError(f"state['initialized'] must be bool, got {type(st['initialized'])}")

    for key in ("admin", "coin_admin", "reward_token"):
        if not isinstance(st[key], str):
            raise TypeError(f"state[{key!r}] must be str, got {type(st[key])}")

    balances = st["balances"]
    if not isinstance(balances, dict):
        raise TypeError(f"state['balances'] must be dict, got {type(balances)}")
    for account, amount in balances.items():
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise TypeError(f"state['balances'][{account!r}] must be a non-negative int")

    dt = st["datetime"]
    if isinstance(dt, bool) or not isinstance(dt, int) or dt < 0:
        raise TypeError("state['datetime'] must be a non-negative int")

    return st  # type: ignore[return-value]


@dataclass(frozen=True, slots=True)
class RewardLedgerView:
    """
    Immutable read-only view of the reward ledger used by API and tests.
    """

    initialized: bool = False
    admin: str = ""
    coin_admin: str = ""
    reward_token: str = ""
    balances: Dict[str, int] = field(default_factory=dict)
    datetime: int = 0

    @classmethod
    def from_ledger(cls, state: Dict[str, Any]) -> "RewardLedgerView":
        return cls(
            initialized=bool(state.get("initialized", False)),
            admin=str(state.get("admin") or ""),
            coin_admin=str(state.get("coin_admin") or ""),
            reward_token=str(state.get("reward_token") or ""),
            balances=copy.deepcopy(state.get("balances", {})) if isinstance(state.get("balances"), dict) else {},
            datetime=int(state.get("datetime", 0) or 0),
        )

    def balance_of(self, account: str) -> int:
        try:
            return int(self.balances.get(str(account), 0))
        except Exception:
            return 0


__all__ = ["RewardLedgerView", "ensure_reward_state", "initial_reward_state"]
