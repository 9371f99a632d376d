from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from miningreward.runtime.errors import (
    ADMIN_REQUIRED,
    ALREADY_INITIALIZED,
    INVALID_TIME,
    TX_UNIMPLEMENTED,
    RewardError,
)


@dataclass
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def unavailable(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(503, code, message, details or {})


_REWARD_STATUS = {
    ADMIN_REQUIRED: 403,
    ALREADY_INITIALIZED: 409,
    INVALID_TIME: 409,
    TX_UNIMPLEMENTED: 404,
}


def reward_error_status(code: str) -> int:
    return int(_REWARD_STATUS.get(code, 400))


def _error_body(code: str, message: str, details: Any) -> Dict[str, Any]:
    return {"ok": False, "error": {"code": code, "message": message, "details": details if details is not None else {}}}


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code, exc.message, exc.details))

    @app.exception_handler(RewardError)
    async def _reward_error(_request: Request, exc: RewardError) -> JSONResponse:
        return JSONResponse(
            status_code=reward_error_status(exc.code),
            content=_error_body(exc.code, exc.reason, exc.details),
        )
