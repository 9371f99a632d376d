from __future__ import annotations

"""External value store (reward token) contract and a reference implementation.

The reward ledger only needs two things from the token it pays out in:

  - balance_of(owner): how much an owner currently holds
  - transfer(sender, to, amount): move units, all-or-nothing

InMemoryValueStore is the dev/test token (mint + transfer, nothing else). A
deployment backed by a real token plugs in any object with the same methods.
"""

import threading
from typing import Dict, Iterable, Optional, Protocol, runtime_checkable

from miningreward.runtime.errors import TransferError


@runtime_checkable
class ValueStore(Protocol):
    address: str

    def balance_of(self, owner: str) -> int: ...

    def transfer(self, sender: str, to: str, amount: int) -> None: ...


def _check_amount(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TransferError("invalid_amount", "amount_must_be_int", {"amount": repr(amount)})
    if amount < 0:
        raise TransferError("invalid_amount", "amount_negative", {"amount": int(amount)})
    return int(amount)


class InMemoryValueStore:
    """Thread-safe in-process fungible token."""

    def __init__(self, address: str, *, name: str = "", balances: Optional[Dict[str, int]] = None) -> None:
        a = str(address or "").strip()
        if not a:
            raise ValueError("value store address must be a non-empty string")
        self.address = a
        self.name = str(name or a)
        self._lock = threading.Lock()
        self._balances: Dict[str, int] = {}
        self._supply = 0
        for owner, amt in (balances or {}).items():
            self.mint(owner, amt)

    def balance_of(self, owner: str) -> int:
        with self._lock:
            return int(self._balances.get(str(owner), 0))

    def total_supply(self) -> int:
        with self._lock:
            return int(self._supply)

    def mint(self, to: str, amount: int) -> None:
        t = str(to or "").strip()
        if not t:
            raise TransferError("invalid_recipient", "mint_to_empty_address", {})
        amt = _check_amount(amount)
        with self._lock:
            self._balances[t] = int(self._balances.get(t, 0)) + amt
            self._supply += amt

    def transfer(self, sender: str, to: str, amount: int) -> None:
        s = str(sender or "").strip()
        t = str(to or "").strip()
        if not s:
            raise TransferError("invalid_sender", "transfer_from_empty_address", {})
        if not t:
            raise TransferError("invalid_recipient", "transfer_to_empty_address", {})
        amt = _check_amount(amount)
        with self._lock:
            held = int(self._balances.get(s, 0))
            if amt > held:
                raise TransferError(
                    "insufficient_balance",
                    "transfer amount exceeds balance",
                    {"sender": s, "balance": held, "amount": amt},
                )
            self._balances[s] = held - amt
            self._balances[t] = int(self._balances.get(t, 0)) + amt


class ValueStoreRegistry:
    """Resolves a value-store handle (its address) to the store object."""

    def __init__(self, stores: Iterable[ValueStore] = ()) -> None:
        self._lock = threading.Lock()
        self._stores: Dict[str, ValueStore] = {}
        for s in stores:
            self.register(s)

    def register(self, store: ValueStore) -> ValueStore:
        addr = str(getattr(store, "address", "") or "").strip()
        if not addr:
            raise ValueError("value store must expose a non-empty address")
        with self._lock:
            self._stores[addr] = store
        return store

    def get(self, handle: str) -> Optional[ValueStore]:
        with self._lock:
            return self._stores.get(str(handle or "").strip())

    def __contains__(self, handle: object) -> bool:
        return self.get(str(handle or "")) is not None


__all__ = ["InMemoryValueStore", "ValueStore", "ValueStoreRegistry"]
