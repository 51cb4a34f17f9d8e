from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from metaproxy.api.caching.keys import derive_key
from metaproxy.api.deps import get_context
from metaproxy.api.services.context import ProxyContext
from metaproxy.api.services.tmdb_proxy import proxy_tmdb

router = APIRouter()


@router.get("/3/{path:path}", include_in_schema=False)
async def tmdb_passthrough(
    path: str,
    request: Request,
    ctx: ProxyContext = Depends(get_context),
) -> Response:
    resp = await proxy_tmdb(
        ctx,
        path=request.url.path,
        params=request.query_params.multi_items(),
        accept_language=request.headers.get("accept-language", ""),
        cache_key=derive_key(request.url),
    )
    return Response(content=resp.body, status_code=resp.status, media_type=resp.content_type)
