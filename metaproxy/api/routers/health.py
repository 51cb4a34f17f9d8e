from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response

from metaproxy.api.caching.backend import BackendError
from metaproxy.api.deps import get_context
from metaproxy.api.services import metrics
from metaproxy.api.services.context import ProxyContext

router = APIRouter()


@router.get("/v1/health")
def health() -> dict[str, Any]:
    return {"ok": True, "ts": datetime.now(timezone.utc).isoformat()}


@router.get("/v1/ready")
async def ready(ctx: ProxyContext = Depends(get_context)) -> dict[str, Any]:
    """
    Readiness: el backend responde a PING. Sin TMDB_API_KEY el servicio arranca,
    pero se informa (todas las rutas que llaman a TMDB devolverían 500).
    """
    try:
        await ctx.backend.ping()
    except BackendError as exc:
        raise HTTPException(status_code=503, detail={"ready": False, "issues": {"backend": str(exc)}})

    return {
        "ready": True,
        "tmdb_configured": bool(ctx.settings.tmdb_api_key),
        "ts": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/metrics")
def metrics_endpoint() -> Response:
    body = metrics.render_prometheus()
    return Response(content=body, media_type="text/plain; version=0.0.4")
