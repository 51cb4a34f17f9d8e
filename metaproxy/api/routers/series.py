from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from metaproxy.api.deps import get_context
from metaproxy.api.services.context import ProxyContext
from metaproxy.api.services.movies import normalize_language, safe_decode
from metaproxy.api.services.series import (
    episode_detail,
    search_series,
    season_episodes,
    series_by_id,
)

router = APIRouter(prefix="/v1/series")


def _parse_top(raw: str | None) -> int:
    try:
        value = int(float(raw)) if raw else 1
    except (ValueError, OverflowError):
        return 1
    return value if value > 0 else 1


@router.get("/search")
@router.get("")
@router.get("/", include_in_schema=False)
async def series_search(
    query: str | None = Query(None),
    language: str | None = Query(None),
    top: str | None = Query(None, description="Número de resultados (por defecto 1)"),
    ctx: ProxyContext = Depends(get_context),
) -> list[dict[str, Any]]:
    q = safe_decode(query)
    if not q:
        raise HTTPException(status_code=400, detail="query is required")

    items = await search_series(ctx, query=q, language=normalize_language(language), top=_parse_top(top))
    if not items:
        raise HTTPException(status_code=404, detail="TMDB series not found")
    return items


@router.get("/{series_id}")
async def series_detail(
    series_id: int,
    language: str | None = Query(None),
    ctx: ProxyContext = Depends(get_context),
) -> dict[str, Any]:
    return await series_by_id(ctx, series_id=series_id, language=normalize_language(language))


@router.get("/{series_id}/season/{season_number}")
async def series_season(
    series_id: int,
    season_number: int,
    language: str | None = Query(None),
    ctx: ProxyContext = Depends(get_context),
) -> list[dict[str, Any]]:
    return await season_episodes(
        ctx,
        series_id=series_id,
        season_number=season_number,
        language=normalize_language(language),
    )


@router.get("/{series_id}/season/{season_number}/episode/{episode_number}")
async def series_episode(
    series_id: int,
    season_number: int,
    episode_number: int,
    language: str | None = Query(None),
    ctx: ProxyContext = Depends(get_context),
) -> dict[str, Any]:
    return await episode_detail(
        ctx,
        series_id=series_id,
        season_number=season_number,
        episode_number=episode_number,
        language=normalize_language(language),
    )
