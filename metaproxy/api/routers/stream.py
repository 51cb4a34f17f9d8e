from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from metaproxy.api.deps import get_context
from metaproxy.api.services.context import ProxyContext
from metaproxy.api.services.stream import StreamUrlError, issue_stream_url

router = APIRouter(prefix="/v1")


@router.get("/stream-url")
async def stream_url(
    request: Request,
    url: str | None = Query(None, description="URL http del stream de origen"),
    ttl: str | None = Query(None, description="Validez en segundos"),
    ctx: ProxyContext = Depends(get_context),
) -> dict[str, Any]:
    try:
        signed = await issue_stream_url(
            ctx.settings,
            ctx.http,
            target=url,
            ttl_raw=ttl,
            request_headers=request.headers,
        )
    except StreamUrlError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)

    return {"url": signed.url, "exp": signed.exp, "ttl": signed.ttl}
