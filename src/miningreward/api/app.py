from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import List

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from miningreward.api.errors import install_error_handlers
from miningreward.api.routes.ops import router as ops_router
from miningreward.api.routes.reward import router as reward_router
from miningreward.api.routes.tokens import router as token_router
from miningreward.api.structured_logging import RequestLogMiddleware
from miningreward.config import RewardConfig, load_reward_config
from miningreward.runtime.service import MiningRewardService
from miningreward.runtime.service_boot import build_service as _build_service


def build_service(cfg: RewardConfig) -> MiningRewardService:
    """Build the reward service for the API runtime.

    This wrapper exists so tests can monkeypatch `miningreward.api.app.build_service`
    without reaching into runtime modules.
    """
    return _build_service(cfg)


def _parse_cors_origins(mode: str) -> List[str]:
    """Parse MININGREWARD_CORS_ORIGINS.

    Policy:
      - unset/empty -> CORS disabled
      - wildcard "*" is rejected in prod mode
    """
    raw = os.environ.get("MININGREWARD_CORS_ORIGINS", "").strip()
    if not raw:
        return []

    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in MININGREWARD_CORS_ORIGINS."
            )
        return ["*"]
    return origins


def create_app(*, boot_runtime: bool = True, cfg: RewardConfig | None = None) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): build the reward service and attach it as app.state.service
      - False: keep lightweight for unit tests / import-time validation
    """
    c = cfg or load_reward_config()

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        yield
        close = getattr(getattr(app.state, "service", None), "close", None)
        if callable(close):
            close()

    # Disable docs in production.
    if c.mode == "prod":
        app = FastAPI(
            title="Mining Reward API",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=_lifespan,
        )
    else:
        app = FastAPI(title="Mining Reward API", lifespan=_lifespan)

    app.state.cfg = c
    app.state.service = build_service(c) if boot_runtime else None

    install_error_handlers(app)

    app.add_middleware(RequestLogMiddleware)

    cors_origins = _parse_cors_origins(c.mode)
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=cors_origins != ["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
        )

    v1 = APIRouter(prefix="/v1")
    v1.include_router(ops_router, tags=["ops"])
    v1.include_router(reward_router, tags=["reward"])
    v1.include_router(token_router, tags=["token"])
    app.include_router(v1)

    return app
