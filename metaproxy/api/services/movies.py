# búsqueda / lookup por título / lookup por id de películas
from __future__ import annotations

import re
import unicodedata
from typing import Any, Final
from urllib.parse import unquote

from metaproxy.api.caching.tables import ChannelKey, Table, TmdbKey
from metaproxy.api.logging_config import get_logger
from metaproxy.api.services import metrics
from metaproxy.api.services.context import ProxyContext

logger = get_logger("movies")

_YEAR_RE: Final[re.Pattern[str]] = re.compile(r"(?<!\d)(?:19|20)\d{2}(?!\d)")
_PERCENT_RE: Final[re.Pattern[str]] = re.compile(r"%[0-9A-Fa-f]{2}")
_EMPTY_BRACKETS_RE: Final[re.Pattern[str]] = re.compile(r"\(\)|\[\]|\{\}")
_MULTISPACE_RE: Final[re.Pattern[str]] = re.compile(r"\s{2,}")


def normalize_language(raw: str | None) -> str:
    return raw.strip() if raw else ""


def safe_decode(value: str | None) -> str | None:
    """Decodifica una vez si el valor aún trae secuencias %XX (doble encoding)."""
    if not value or not _PERCENT_RE.search(value):
        return value
    return unquote(value)


def extract_year(title: str) -> int | None:
    m = _YEAR_RE.search(title)
    return int(m.group(0)) if m else None


def _is_edge_noise(ch: str) -> bool:
    return ch.isspace() or unicodedata.category(ch).startswith("P")


def remove_year(title: str) -> str:
    s = _YEAR_RE.sub("", title)
    s = _EMPTY_BRACKETS_RE.sub("", s)
    s = _MULTISPACE_RE.sub(" ", s).strip()

    start, end = 0, len(s)
    while start < end and _is_edge_noise(s[start]):
        start += 1
    while end > start and _is_edge_noise(s[end - 1]):
        end -= 1
    return s[start:end]


def map_tmdb_to_movie(details: dict[str, Any], *, max_cast: int) -> dict[str, Any]:
    credits = details.get("credits") or {}
    crew = credits.get("crew") or []
    director = next(
        (m for m in crew if isinstance(m, dict) and str(m.get("job") or "").lower() == "director"),
        None,
    )

    cast_members = [m for m in (credits.get("cast") or []) if isinstance(m, dict)]
    cast_sorted = sorted(
        cast_members,
        key=lambda m: m.get("order") if isinstance(m.get("order"), (int, float)) else 9999,
    )[:max_cast]

    return {
        "movieId": details.get("id"),
        "title": details.get("title"),
        "overview": details.get("overview"),
        "releaseDate": details.get("release_date"),
        "posterPath": details.get("poster_path"),
        "genres": [g.get("name") for g in details.get("genres") or [] if isinstance(g, dict)],
        "rating": details.get("vote_average"),
        "ratingCount": details.get("vote_count"),
        "directorName": director.get("name") if director else None,
        "cast": [m.get("name") for m in cast_sorted],
        "castProfilePaths": [m.get("profile_path") for m in cast_sorted],
    }


def payload_to_record(payload: dict[str, Any], *, channel_id: str | None = None) -> dict[str, Any]:
    record: dict[str, Any] = {
        "tmdb_id": payload.get("movieId"),
        "title": payload.get("title"),
        "overview": payload.get("overview"),
        "release_date": payload.get("releaseDate"),
        "poster_path": payload.get("posterPath"),
        "genres": payload.get("genres"),
        "rating": payload.get("rating"),
        "rating_count": payload.get("ratingCount"),
        "director_name": payload.get("directorName"),
        "cast_names": payload.get("cast"),
        "cast_profile_paths": payload.get("castProfilePaths"),
    }
    if channel_id is not None:
        record["channel_id"] = channel_id
    return record


def row_to_movie(row: dict[str, Any], channel_id: str | None) -> dict[str, Any]:
    return {
        "channelId": channel_id,
        "movieId": row.get("tmdb_id"),
        "title": row.get("title"),
        "overview": row.get("overview"),
        "releaseDate": row.get("release_date"),
        "posterPath": row.get("poster_path"),
        "genres": row.get("genres") or [],
        "rating": row.get("rating") or 0,
        "ratingCount": row.get("rating_count") or 0,
        "directorName": row.get("director_name"),
        "cast": row.get("cast_names") or [],
        "castProfilePaths": row.get("cast_profile_paths") or [],
        "updatedAt": row.get("updated_at"),
    }


# ============================================================
# Casos de uso
# ============================================================

async def search_movies(ctx: ProxyContext, *, query: str, language: str, cache_key: str) -> object:
    cached = (await ctx.responses.get(cache_key)).value_or_none()
    if cached is not None:
        logger.info("response_cache_hit", extra={"key": cache_key})
        return cached

    data = await ctx.tmdb.search_movies(query, language)
    await ctx.responses.set(cache_key, data)
    return data


async def lookup_movie(
    ctx: ProxyContext,
    *,
    channel_id: str,
    title: str,
    language: str,
) -> dict[str, Any] | None:
    """
    Película asociada a un canal. None si TMDB no encuentra nada.
    """
    key = ChannelKey(channel_id=channel_id, language=language)
    row = (await ctx.store.get_one(Table.MOVIE_BY_CHANNEL, key)).value_or_none()
    if row is not None and not ctx.policy.is_stale(row, Table.MOVIE_BY_CHANNEL):
        metrics.inc("record_hit_total", 1)
        logger.info("record_hit", extra={"table": Table.MOVIE_BY_CHANNEL.value, "channel_id": channel_id})
        return row_to_movie(row, channel_id)
    metrics.inc("record_miss_total" if row is None else "record_stale_total", 1)

    clean_title = title.strip()
    release_year = extract_year(clean_title)
    stripped_title = remove_year(clean_title)

    search = await ctx.tmdb.search_movies(stripped_title, language, year=release_year)
    results = search.get("results") or []
    first = results[0] if results and isinstance(results[0], dict) else None
    if first is None or first.get("id") is None:
        return None

    details = await ctx.tmdb.fetch_movie(first["id"], language)
    payload = map_tmdb_to_movie(details, max_cast=ctx.settings.max_cast)
    if not payload["title"]:
        payload["title"] = first.get("title") or stripped_title

    await ctx.store.upsert_one(Table.MOVIE_BY_CHANNEL, key, payload_to_record(payload, channel_id=channel_id))
    if payload["movieId"] is not None:
        await ctx.store.upsert_one(
            Table.MOVIE_BY_ID,
            TmdbKey(tmdb_id=int(payload["movieId"]), language=language),
            payload_to_record(payload),
        )
    logger.info("record_upserted", extra={"table": Table.MOVIE_BY_CHANNEL.value, "movie_id": payload["movieId"]})

    return {**payload, "channelId": channel_id}


async def movie_by_id(ctx: ProxyContext, *, movie_id: int, language: str) -> dict[str, Any]:
    key = TmdbKey(tmdb_id=movie_id, language=language)
    row = (await ctx.store.get_one(Table.MOVIE_BY_ID, key)).value_or_none()
    if row is not None and not ctx.policy.is_stale(row, Table.MOVIE_BY_ID):
        metrics.inc("record_hit_total", 1)
        logger.info("record_hit", extra={"table": Table.MOVIE_BY_ID.value, "movie_id": movie_id})
        return row_to_movie(row, None)
    metrics.inc("record_miss_total" if row is None else "record_stale_total", 1)

    details = await ctx.tmdb.fetch_movie(movie_id, language)
    payload = map_tmdb_to_movie(details, max_cast=ctx.settings.max_cast)
    await ctx.store.upsert_one(Table.MOVIE_BY_ID, key, payload_to_record(payload))
    return payload
