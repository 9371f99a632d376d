from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict


Json = Dict[str, Any]

LOGGER_PREFIX = "miningreward"


def _now_ms() -> int:
    return int(time.time() * 1000)


def get_logger(name: str) -> logging.Logger:
    n = str(name or "").strip()
    return logging.getLogger(f"{LOGGER_PREFIX}.{n}" if n else LOGGER_PREFIX)


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit a single JSONL log line: {"ts_ms", "event", **fields}.

    Amounts are plain ints and may exceed 2**53; they are written as JSON
    integers, never floats.
    """
    if not logger.isEnabledFor(level):
        return
    payload: Json = {"ts_ms": _now_ms(), "event": str(event)}
    payload.update(fields)
    try:
        line = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        line = " ".join([f"event={event}"] + [f"{k}={fields.get(k)!r}" for k in sorted(fields.keys())])
    logger.log(level, line)
