# /3/* -> TMDB, con caché de respuestas 2xx por clave derivada
from __future__ import annotations

from collections.abc import Iterable, Mapping

from metaproxy.api.logging_config import get_logger
from metaproxy.api.services.context import ProxyContext
from metaproxy.api.services.tmdb import PassthroughResponse

logger = get_logger("tmdb_proxy")

DEFAULT_CONTENT_TYPE = "application/json; charset=utf-8"


def _from_cache(entry: object) -> PassthroughResponse | None:
    if not isinstance(entry, Mapping) or not isinstance(entry.get("body"), str):
        return None
    status = entry.get("status")
    return PassthroughResponse(
        status=status if isinstance(status, int) and not isinstance(status, bool) else 200,
        body=entry["body"],
        content_type=str(entry.get("content_type") or DEFAULT_CONTENT_TYPE),
    )


async def proxy_tmdb(
    ctx: ProxyContext,
    *,
    path: str,
    params: Iterable[tuple[str, str]],
    accept_language: str,
    cache_key: str,
) -> PassthroughResponse:
    hit = _from_cache((await ctx.responses.get(cache_key)).value_or_none())
    if hit is not None:
        logger.info("tmdb_proxy_cache_hit", extra={"key": cache_key})
        return hit

    resp = await ctx.tmdb.passthrough(path, params, accept_language=accept_language)
    content_type = resp.content_type or DEFAULT_CONTENT_TYPE

    # errores de TMDB (404, 401, 429...) no se cachean
    if 200 <= resp.status < 300:
        await ctx.responses.set(
            cache_key,
            {"body": resp.body, "status": resp.status, "content_type": content_type},
        )

    return PassthroughResponse(status=resp.status, body=resp.body, content_type=content_type)
