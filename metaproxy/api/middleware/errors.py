# exception handlers (error_id, upstream -> 502)
from __future__ import annotations

import uuid
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from metaproxy.api.logging_config import configure_logging
from metaproxy.api.services import metrics
from metaproxy.api.services.tmdb import TmdbConfigError, UpstreamError
from metaproxy.api.settings import Settings


def _with_request_id(request: Request, payload: dict[str, Any]) -> dict[str, Any]:
    req_id = getattr(request.state, "request_id", None)
    if isinstance(req_id, str) and req_id:
        payload["request_id"] = req_id
    return payload


def build_upstream_handler(settings: Settings):
    logger = configure_logging(settings)

    async def handler(request: Request, exc: Exception) -> JSONResponse:
        status = exc.status if isinstance(exc, UpstreamError) else None
        logger.warning(
            "upstream_failed",
            extra={"path": request.url.path, "upstream_status": status, "error": str(exc)[:300]},
        )
        metrics.inc("http_errors_5xx_total", 1)
        payload = {"detail": "Upstream request failed", "upstream_status": status}
        return JSONResponse(status_code=502, content=_with_request_id(request, payload))

    return handler


def build_tmdb_config_handler(settings: Settings):
    logger = configure_logging(settings)

    async def handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("tmdb_not_configured", extra={"path": request.url.path})
        metrics.inc("http_errors_5xx_total", 1)
        detail = str(exc) if isinstance(exc, TmdbConfigError) else "TMDB_API_KEY is missing"
        return JSONResponse(status_code=500, content=_with_request_id(request, {"detail": detail}))

    return handler


def build_exception_handler(settings: Settings):
    logger = configure_logging(settings)

    async def handler(request: Request, exc: Exception) -> JSONResponse:
        error_id = uuid.uuid4().hex
        req_id = getattr(request.state, "request_id", None)

        logger.exception(
            "unhandled_exception",
            extra={"error_id": error_id, "request_id": req_id, "path": request.url.path},
        )
        metrics.inc("http_errors_5xx_total", 1)

        payload: dict[str, Any] = {"detail": "Internal Server Error", "error_id": error_id}
        return JSONResponse(status_code=500, content=_with_request_id(request, payload))

    return handler
