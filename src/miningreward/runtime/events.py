from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List

from miningreward.ledger.constants import EVENT_NAMES
from miningreward.runtime.jsonl_logging import get_logger, log_event

Json = Dict[str, Any]
Subscriber = Callable[["RewardEvent"], None]

_log = get_logger("events")


@dataclass(frozen=True)
class RewardEvent:
    seq: int
    name: str
    fields: Json = field(default_factory=dict)
    ts_ms: int = 0

    def to_json(self) -> Json:
        return {"seq": int(self.seq), "name": self.name, "fields": dict(self.fields), "ts_ms": int(self.ts_ms)}


class EventLog:
    """Bounded in-process buffer of committed reward events.

    Events are observable by external auditors through since() or by
    subscribing. Only the newest `max_events` are kept; seq keeps counting.
    """

    def __init__(self, *, max_events: int = 10_000) -> None:
        if int(max_events) <= 0:
            raise ValueError("max_events must be > 0")
        self._lock = threading.Lock()
        self._events: Deque[RewardEvent] = deque(maxlen=int(max_events))
        self._next_seq = 1
        self._subscribers: List[Subscriber] = []

    def emit(self, name: str, **fields: Any) -> RewardEvent:
        n = str(name or "").strip().upper()
        if n not in EVENT_NAMES:
            raise ValueError(f"unknown reward event: {name!r}")

        with self._lock:
            ev = RewardEvent(seq=self._next_seq, name=n, fields=dict(fields), ts_ms=int(time.time() * 1000))
            self._next_seq += 1
            self._events.append(ev)
            subs = list(self._subscribers)

        log_event(_log, "reward_event", seq=ev.seq, name=ev.name, **ev.fields)

        for sub in subs:
            try:
                sub(ev)
            except Exception:
                # A broken observer must not undo a committed operation.
                _log.exception("reward event subscriber failed")
        return ev

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(fn)

        def _unsubscribe() -> None:
            with self._lock:
                if fn in self._subscribers:
                    self._subscribers.remove(fn)

        return _unsubscribe

    def since(self, seq: int = 0, *, limit: int = 1000) -> List[RewardEvent]:
        s = int(seq)
        lim = max(1, int(limit))
        with self._lock:
            out = [ev for ev in self._events if ev.seq > s]
        return out[:lim]

    def last_seq(self) -> int:
        with self._lock:
            return int(self._next_seq - 1)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


__all__ = ["EventLog", "RewardEvent"]
