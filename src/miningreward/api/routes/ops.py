from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request, Response

from miningreward.runtime.metrics import format_prometheus, metrics_enabled

router = APIRouter()

Json = Dict[str, Any]


@router.get("/health")
def health(request: Request) -> Json:
    svc = getattr(request.app.state, "service", None)
    if svc is None:
        return {"ok": True, "ready": False}
    view = svc.view()
    return {
        "ok": True,
        "ready": True,
        "service_id": svc.service_id,
        "initialized": view.initialized,
        "datetime": view.datetime,
    }


@router.get("/metrics")
def metrics() -> Response:
    """Prometheus-style metrics.

    Disabled by default. Enable with:
      MININGREWARD_METRICS_ENABLED=1
    """
    if not metrics_enabled():
        return Response(status_code=404, content="not_found\n", media_type="text/plain")
    return Response(content=format_prometheus(), media_type="text/plain")
