from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from metaproxy.api.caching.keys import derive_key
from metaproxy.api.deps import get_context
from metaproxy.api.services.context import ProxyContext
from metaproxy.api.services.movies import (
    lookup_movie,
    movie_by_id,
    normalize_language,
    safe_decode,
    search_movies,
)

router = APIRouter(prefix="/v1")


@router.get("/search")
async def movie_search(
    request: Request,
    query: str | None = Query(None),
    language: str | None = Query(None),
    ctx: ProxyContext = Depends(get_context),
) -> Any:
    q = safe_decode(query)
    if not q:
        raise HTTPException(status_code=400, detail="query is required")

    return await search_movies(
        ctx,
        query=q,
        language=normalize_language(language),
        cache_key=derive_key(request.url),
    )


@router.get("/movie/lookup")
@router.get("/movie")
async def movie_lookup(
    channel_id: str | None = Query(None, alias="channelId"),
    title: str | None = Query(None),
    language: str | None = Query(None),
    ctx: ProxyContext = Depends(get_context),
) -> dict[str, Any]:
    """
    Película para un canal a partir del título que emite (p.ej. "Heat (1995)").
    """
    channel = safe_decode(channel_id)
    clean_title = safe_decode(title)
    if not channel or not clean_title:
        raise HTTPException(status_code=400, detail="channelId and title are required")

    movie = await lookup_movie(
        ctx,
        channel_id=channel,
        title=clean_title,
        language=normalize_language(language),
    )
    if movie is None:
        raise HTTPException(status_code=404, detail="TMDB movie not found")
    return movie


@router.get("/movie/{movie_id}")
async def movie_detail(
    movie_id: int,
    language: str | None = Query(None),
    ctx: ProxyContext = Depends(get_context),
) -> dict[str, Any]:
    return await movie_by_id(ctx, movie_id=movie_id, language=normalize_language(language))
