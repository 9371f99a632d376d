from __future__ import annotations

import os
import threading
import time
from typing import Dict


_lock = threading.Lock()
_counters: Dict[str, int] = {}
_gauges: Dict[str, int] = {}
_started_ms = int(time.time() * 1000)


def metrics_enabled() -> bool:
    v = (os.environ.get("MININGREWARD_METRICS_ENABLED") or "").strip().lower()
    if not v:
        return False
    return v in {"1", "true", "yes", "y", "on"}


def _metric_name(name: str) -> str:
    return "".join(c if (c.isalnum() or c == "_") else "_" for c in str(name or "").strip().lower())


def inc_counter(name: str, value: int = 1) -> None:
    n = _metric_name(name)
    if not n:
        return
    with _lock:
        _counters[n] = int(_counters.get(n, 0)) + int(value)


def set_gauge(name: str, value: int) -> None:
    n = _metric_name(name)
    if not n:
        return
    with _lock:
        _gauges[n] = int(value)


def record_operation(tx_type: str, *, ok: bool, code: str = "") -> None:
    """Count one reward operation outcome, e.g. reward_claim_ok / reward_claim_rejected_no_reward."""
    base = _metric_name(tx_type)
    if ok:
        inc_counter(f"{base}_ok")
    else:
        inc_counter(f"{base}_rejected_{_metric_name(code) or 'error'}")


def reset() -> None:
    with _lock:
        _counters.clear()
        _gauges.clear()


def snapshot() -> dict:
    with _lock:
        return {
            "ts_ms": int(time.time() * 1000),
            "started_ms": int(_started_ms),
            "uptime_ms": int(time.time() * 1000) - int(_started_ms),
            "counters": dict(_counters),
            "gauges": dict(_gauges),
        }


def format_prometheus(prefix: str = "miningreward_") -> str:
    """Prometheus exposition text; integer counters and gauges only."""
    pre = str(prefix or "").strip() or "miningreward_"
    snap = snapshot()
    lines: list[str] = [f"{pre}uptime_ms {int(snap['uptime_ms'])}"]

    for k, v in sorted(snap["counters"].items()):
        lines.append(f"# TYPE {pre}{k} counter")
        lines.append(f"{pre}{k} {int(v)}")

    for k, v in sorted(snap["gauges"].items()):
        lines.append(f"# TYPE {pre}{k} gauge")
        lines.append(f"{pre}{k} {int(v)}")

    return "\n".join(lines) + "\n"
