# src/miningreward/api/structured_logging.py
from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from miningreward.runtime.jsonl_logging import get_logger, log_event

Json = Dict[str, Any]

_HEADER_SUBSET = ("user-agent", "content-type", "content-length", "x-forwarded-for")


def _flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def configure_structured_logging(level_name: Optional[str] = None) -> None:
    """Route every logger to stdout, one JSON object per line.

    Level comes from `level_name`, else MININGREWARD_LOG_LEVEL, else INFO.
    Calling again only adjusts the level.
    """
    name = (level_name or os.environ.get("MININGREWARD_LOG_LEVEL") or "INFO").strip().upper()
    level = getattr(logging, name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    if getattr(root, "_miningreward_configured", False):  # type: ignore[attr-defined]
        for h in root.handlers:
            h.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.handlers = [handler]
    setattr(root, "_miningreward_configured", True)  # type: ignore[attr-defined]


def _request_kind(method: str, path: str) -> str:
    """Coarse label for dashboards: reward_mutation, reward_read, token or ops."""
    if path.startswith("/v1/reward/"):
        return "reward_mutation" if method == "POST" else "reward_read"
    if path.startswith("/v1/token/"):
        return "token"
    return "ops"


def _log_level_for(status: int, duration_ms: int, slow_ms: int) -> int:
    if status >= 500:
        return logging.ERROR
    if slow_ms > 0 and duration_ms >= slow_ms:
        return logging.WARNING
    return logging.INFO


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` event per request, tagged with a request id.

    Env:
      MININGREWARD_LOG_REQUESTS=0          disable (default on)
      MININGREWARD_LOG_REQUEST_HEADERS=1   include a small header subset
      MININGREWARD_SLOW_REQUEST_MS=N       log at WARNING when slower (default 1000, 0 off)
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        self._enabled = _flag("MININGREWARD_LOG_REQUESTS", True)
        self._log_headers = _flag("MININGREWARD_LOG_REQUEST_HEADERS", False)
        try:
            self._slow_ms = int(os.environ.get("MININGREWARD_SLOW_REQUEST_MS") or 1000)
        except ValueError:
            self._slow_ms = 1000
        self._logger = get_logger("http")

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id

        if not self._enabled:
            response = await call_next(request)
            response.headers.setdefault("x-request-id", request_id)
            return response

        started = time.monotonic()
        fields: Json = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "kind": _request_kind(request.method, request.url.path),
            "client": request.client.host if request.client else "",
        }
        if self._log_headers:
            fields["headers"] = {k: request.headers[k] for k in _HEADER_SUBSET if request.headers.get(k)}

        status = 500
        try:
            response = await call_next(request)
            status = int(response.status_code)
            response.headers.setdefault("x-request-id", request_id)
            return response
        except Exception as e:
            fields["error"] = str(e)
            raise
        finally:
            duration_ms = int((time.monotonic() - started) * 1000)
            log_event(
                self._logger,
                "http_request",
                level=_log_level_for(status, duration_ms, self._slow_ms),
                status=status,
                duration_ms=duration_ms,
                **fields,
            )
