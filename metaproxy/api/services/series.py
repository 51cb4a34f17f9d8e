from __future__ import annotations

"""
metaproxy/api/services/series.py

Casos de uso de series: búsqueda, detalle (+ temporadas), temporada (episodios)
y episodio (con guest stars).

Cada vista se sirve desde el store solo si la política de frescura la da por
utilizable; si no, se pide a TMDB, se hace merge en el store y se responde con
lo recién escrito. Un fallo de TMDB se propaga (UpstreamError) sin sustituirlo
por datos viejos.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from metaproxy.api.caching.keys import build_url, derive_key
from metaproxy.api.caching.merge import coerce_id
from metaproxy.api.caching.tables import SeasonKey, Table, TmdbKey
from metaproxy.api.logging_config import get_logger
from metaproxy.api.services import metrics
from metaproxy.api.services.context import ProxyContext

logger = get_logger("series")

SEARCH_PATH = "/series/search"


def _record_outcome(row: Mapping[str, Any] | None) -> None:
    metrics.inc("record_miss_total" if row is None else "record_stale_total", 1)


def _genre_ids(details: Mapping[str, Any]) -> list[int]:
    genres = details.get("genres")
    if not isinstance(genres, list):
        return []
    return [
        g["id"]
        for g in genres
        if isinstance(g, Mapping) and isinstance(g.get("id"), int) and not isinstance(g.get("id"), bool)
    ]


# ============================================================
# Mapeos TMDB <-> registro <-> payload
# ============================================================

def series_record_from_details(details: Mapping[str, Any]) -> dict[str, Any]:
    seasons = details.get("seasons") if isinstance(details.get("seasons"), list) else []
    return {
        "tmdb_id": details.get("id"),
        "genre_ids": _genre_ids(details),
        "original_language": details.get("original_language"),
        "overview": details.get("overview"),
        "original_name": details.get("original_name"),
        "poster_path": details.get("poster_path"),
        "first_air_date": details.get("first_air_date"),
        "name": details.get("name"),
        "vote_average": details.get("vote_average"),
        "vote_count": details.get("vote_count"),
        "created_by": details.get("created_by") if isinstance(details.get("created_by"), list) else [],
        "number_of_episodes": details.get("number_of_episodes"),
        "number_of_seasons": details.get("number_of_seasons"),
        "seasons": [s.get("id") for s in seasons if isinstance(s, Mapping) and coerce_id(s.get("id")) is not None],
    }


def series_record_from_search(item: Mapping[str, Any]) -> dict[str, Any]:
    """Sin campos extendidos: el registro queda 'incompleto' hasta pedir el detalle."""
    return {
        "tmdb_id": item.get("id"),
        "genre_ids": item.get("genre_ids") if isinstance(item.get("genre_ids"), list) else [],
        "original_language": item.get("original_language"),
        "overview": item.get("overview"),
        "original_name": item.get("original_name"),
        "poster_path": item.get("poster_path"),
        "first_air_date": item.get("first_air_date"),
        "name": item.get("name"),
        "vote_average": item.get("vote_average"),
        "vote_count": item.get("vote_count"),
    }


def search_item_payload(item: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": item.get("id"),
        "genre_ids": item.get("genre_ids") if isinstance(item.get("genre_ids"), list) else [],
        "original_language": item.get("original_language"),
        "overview": item.get("overview"),
        "original_name": item.get("original_name"),
        "posterPath": item.get("poster_path"),
        "first_air_date": item.get("first_air_date"),
        "name": item.get("name"),
        "vote_average": item.get("vote_average"),
        "vote_count": item.get("vote_count"),
    }


def _season_payload(season: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in season.items() if k != "updated_at"}


def row_to_series(row: Mapping[str, Any], seasons: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    created_by = row.get("created_by")
    return {
        "id": row.get("tmdb_id"),
        "genre_ids": row.get("genre_ids") or [],
        "original_language": row.get("original_language"),
        "overview": row.get("overview"),
        "original_name": row.get("original_name"),
        "created_by": created_by if isinstance(created_by, list) else [],
        "number_of_episodes": row.get("number_of_episodes") or 0,
        "number_of_seasons": row.get("number_of_seasons") or 0,
        "posterPath": row.get("poster_path"),
        "first_air_date": row.get("first_air_date"),
        "name": row.get("name"),
        "vote_average": row.get("vote_average") or 0,
        "vote_count": row.get("vote_count") or 0,
        "seasons": [_season_payload(s) for s in seasons],
    }


def episode_payload(series_id: int, episode: Mapping[str, Any]) -> dict[str, Any]:
    guests = episode.get("guest_stars")
    episode_id = episode.get("id", episode.get("episode_id"))
    return {
        "series_id": series_id,
        "id": episode_id,
        "episode_id": episode_id,
        "episode_number": episode.get("episode_number"),
        "name": episode.get("name"),
        "overview": episode.get("overview"),
        "still_path": episode.get("still_path"),
        "air_date": episode.get("air_date"),
        "vote_average": episode.get("vote_average") or 0,
        "vote_count": episode.get("vote_count") or 0,
        "guest_stars": [
            {
                "series_id": series_id,
                "id": g.get("id"),
                "name": g.get("name"),
                "original_name": g.get("original_name"),
                "character": g.get("character"),
                "profile_path": g.get("profile_path"),
                "order": g.get("order"),
            }
            for g in (guests if isinstance(guests, list) else [])
            if isinstance(g, Mapping)
        ],
    }


def _episode_sort_key(episode: Mapping[str, Any]) -> int:
    number = coerce_id(episode.get("episode_number"))
    return number if number is not None else 1_000_000


# ============================================================
# Casos de uso
# ============================================================

def search_cache_key(query: str, language: str) -> str:
    return derive_key(build_url(SEARCH_PATH, {"query": query, "language": language}))


async def search_series(ctx: ProxyContext, *, query: str, language: str, top: int = 1) -> list[dict[str, Any]]:
    """
    Top-N resultados de búsqueda. Lista vacía si TMDB no devuelve nada.

    La respuesta cruda se guarda como {body, updated_at} y se reutiliza mientras
    no esté stale. Cada resultado siembra SERIES_BY_ID si no hay registro
    fresco (sin pisar un detalle completo todavía vigente).
    """
    key = search_cache_key(query, language)
    cached = (await ctx.responses.get(key)).value_or_none()

    if ctx.policy.response_usable(cached):
        logger.info("series_search_cache_hit", extra={"query": query, "language": language})
        data = cached["body"]  # type: ignore[index]
    else:
        data = await ctx.tmdb.search_series(query, language)
        await ctx.responses.set(key, {"body": data, "updated_at": ctx.store.now()})
        logger.info("series_search_fetched", extra={"query": query, "language": language})

    results = data.get("results") if isinstance(data, Mapping) else None
    if not isinstance(results, list) or not results:
        return []

    limited = [
        item
        for item in results[: max(1, int(top))]
        if isinstance(item, Mapping) and coerce_id(item.get("id")) is not None
    ]

    for item in limited:
        natural = TmdbKey(tmdb_id=int(coerce_id(item["id"])), language=language)  # type: ignore[arg-type]
        current = (await ctx.store.get_one(Table.SERIES_BY_ID, natural)).value_or_none()
        if current is None or ctx.policy.is_stale(current, Table.SERIES_BY_ID):
            await ctx.store.upsert_one(Table.SERIES_BY_ID, natural, series_record_from_search(item))

    return [search_item_payload(item) for item in limited]


async def series_by_id(ctx: ProxyContext, *, series_id: int, language: str) -> dict[str, Any]:
    key = TmdbKey(tmdb_id=series_id, language=language)
    row = (await ctx.store.get_one(Table.SERIES_BY_ID, key)).value_or_none()
    seasons = (await ctx.store.list_by_parent(Table.SERIES_SEASONS, key)).value_or_none() or []

    if ctx.policy.series_usable(row, seasons):
        metrics.inc("record_hit_total", 1)
        logger.info("record_hit", extra={"table": Table.SERIES_BY_ID.value, "series_id": series_id})
        return row_to_series(row, seasons)  # type: ignore[arg-type]
    _record_outcome(row)

    details = await ctx.tmdb.fetch_series(series_id, language)
    stored = await ctx.store.upsert_one(Table.SERIES_BY_ID, key, series_record_from_details(details))

    incoming = details.get("seasons") if isinstance(details.get("seasons"), list) else []
    write = await ctx.store.merge_into_list(Table.SERIES_SEASONS, key, incoming)
    logger.info(
        "record_upserted",
        extra={"table": Table.SERIES_BY_ID.value, "series_id": series_id, "seasons": len(write.written)},
    )
    return row_to_series(stored, write.written)


async def season_episodes(
    ctx: ProxyContext,
    *,
    series_id: int,
    season_number: int,
    language: str,
) -> list[dict[str, Any]]:
    key = SeasonKey(series_id=series_id, season_number=season_number, language=language)
    episodes = (await ctx.store.list_by_parent(Table.SERIES_EPISODES, key)).value_or_none() or []

    if ctx.policy.season_usable(episodes):
        metrics.inc("record_hit_total", 1)
        logger.info("record_hit", extra={"table": Table.SERIES_EPISODES.value, "series_id": series_id})
        return [episode_payload(series_id, ep) for ep in sorted(episodes, key=_episode_sort_key)]
    _record_outcome(episodes or None)

    data = await ctx.tmdb.fetch_season_detail(series_id, season_number, language)
    incoming = data.get("episodes") if isinstance(data.get("episodes"), list) else []
    batch = [{**ep, "series_id": series_id} if isinstance(ep, Mapping) else ep for ep in incoming]

    write = await ctx.store.merge_into_list(Table.SERIES_EPISODES, key, batch)
    return [episode_payload(series_id, ep) for ep in sorted(write.written, key=_episode_sort_key)]


async def episode_detail(
    ctx: ProxyContext,
    *,
    series_id: int,
    season_number: int,
    episode_number: int,
    language: str,
) -> dict[str, Any]:
    key = SeasonKey(series_id=series_id, season_number=season_number, language=language)
    episode = (await ctx.store.get_episode(key, episode_number)).value_or_none()

    if ctx.policy.episode_usable(episode):
        metrics.inc("record_hit_total", 1)
        logger.info(
            "record_hit",
            extra={"table": Table.SERIES_EPISODES.value, "series_id": series_id, "episode": episode_number},
        )
        return episode_payload(series_id, episode)  # type: ignore[arg-type]
    _record_outcome(episode)

    data = await ctx.tmdb.fetch_episode_detail(series_id, season_number, episode_number, language)
    write = await ctx.store.merge_into_list(Table.SERIES_EPISODES, key, [{**data, "series_id": series_id}])
    if write.written:
        return episode_payload(series_id, write.written[0])
    return episode_payload(series_id, data)
