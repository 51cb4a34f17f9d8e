# tablas lógicas -> (clave, serializador, estrategia de merge)
from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import quote

from metaproxy.api.caching.merge import MergeFn, merge_episode, replace_element


class Table(str, Enum):
    MOVIE_BY_CHANNEL = "movie-by-channel"
    MOVIE_BY_ID = "movie-by-id"
    SERIES_BY_ID = "series-by-id"
    SERIES_SEASONS = "series-seasons"
    SERIES_EPISODES = "series-episodes"


class TableKind(str, Enum):
    SCALAR = "scalar"
    LIST = "list"


@dataclass(frozen=True)
class ChannelKey:
    channel_id: str
    language: str = ""


@dataclass(frozen=True)
class TmdbKey:
    """(tmdb_id, language): movie-by-id, series-by-id y series-seasons."""

    tmdb_id: int
    language: str = ""


@dataclass(frozen=True)
class SeasonKey:
    series_id: int
    season_number: int
    language: str = ""


def _lang(language: str) -> str:
    return quote(language or "", safe="-_.")


def _movie_channel_key(key: ChannelKey) -> str:
    return f"/movies/channel/{quote(str(key.channel_id), safe='-_.')}?lang={_lang(key.language)}"


def _movie_id_key(key: TmdbKey) -> str:
    return f"/movies/id/{key.tmdb_id}?lang={_lang(key.language)}"


def _series_id_key(key: TmdbKey) -> str:
    return f"/series/id/{key.tmdb_id}?lang={_lang(key.language)}"


def _seasons_key(key: TmdbKey) -> str:
    return f"/series/{key.tmdb_id}/seasons?lang={_lang(key.language)}"


def _episodes_key(key: SeasonKey) -> str:
    return f"/series/{key.series_id}/season/{key.season_number}/episodes?lang={_lang(key.language)}"


# ============================================================
# Serializadores: registro completo que se escribe para cada tabla
# ============================================================

def _list_or_empty(value: object) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _num_or_zero(value: object) -> int | float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def serialize_movie(record: Mapping[str, Any]) -> dict[str, Any]:
    row: dict[str, Any] = {
        "tmdb_id": record.get("tmdb_id"),
        "title": record.get("title"),
        "overview": record.get("overview"),
        "release_date": record.get("release_date"),
        "poster_path": record.get("poster_path"),
        "genres": _list_or_empty(record.get("genres")),
        "rating": _num_or_zero(record.get("rating")),
        "rating_count": _num_or_zero(record.get("rating_count")),
        "director_name": record.get("director_name"),
        "cast_names": _list_or_empty(record.get("cast_names")),
        "cast_profile_paths": _list_or_empty(record.get("cast_profile_paths")),
    }
    if "channel_id" in record:
        row["channel_id"] = record.get("channel_id")
    return row


# Campos "extendidos": solo los trae el detalle; un registro nacido de una
# búsqueda no los tiene (FreshnessPolicy.is_incomplete).
SERIES_EXTENDED_FIELDS = ("created_by", "number_of_episodes", "number_of_seasons", "seasons")


def serialize_series(record: Mapping[str, Any]) -> dict[str, Any]:
    row: dict[str, Any] = {
        "tmdb_id": record.get("tmdb_id"),
        "genre_ids": _list_or_empty(record.get("genre_ids")),
        "original_language": record.get("original_language"),
        "overview": record.get("overview"),
        "original_name": record.get("original_name"),
        "poster_path": record.get("poster_path"),
        "first_air_date": record.get("first_air_date"),
        "name": record.get("name"),
        "vote_average": record.get("vote_average"),
        "vote_count": record.get("vote_count"),
    }
    for field in SERIES_EXTENDED_FIELDS:
        if field in record:
            row[field] = record[field]
    return row


def serialize_season(record: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": record.get("id"),
        "season_number": record.get("season_number"),
        "name": record.get("name"),
        "overview": record.get("overview"),
        "poster_path": record.get("poster_path"),
        "air_date": record.get("air_date"),
        "episode_count": record.get("episode_count"),
        "vote_average": record.get("vote_average"),
    }


def serialize_guest_star(record: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": record.get("id"),
        "name": record.get("name"),
        "original_name": record.get("original_name"),
        "character": record.get("character"),
        "profile_path": record.get("profile_path"),
        "order": record.get("order"),
    }


def serialize_episode(record: Mapping[str, Any]) -> dict[str, Any]:
    episode_id = record.get("id", record.get("episode_id"))
    row: dict[str, Any] = {
        "series_id": record.get("series_id"),
        "id": episode_id,
        "episode_id": episode_id,
        "episode_number": record.get("episode_number"),
        "name": record.get("name"),
        "overview": record.get("overview"),
        "still_path": record.get("still_path"),
        "air_date": record.get("air_date"),
        "vote_average": _num_or_zero(record.get("vote_average")),
        "vote_count": _num_or_zero(record.get("vote_count")),
    }
    # sin clave => el merge arrastra los guest stars ya guardados
    guests = record.get("guest_stars")
    if isinstance(guests, list):
        row["guest_stars"] = [serialize_guest_star(g) if isinstance(g, Mapping) else g for g in guests]
    return row


@dataclass(frozen=True)
class TableSpec:
    table: Table
    kind: TableKind
    key_builder: Callable[[Any], str]
    serializer: Callable[[Mapping[str, Any]], dict[str, Any]]
    id_field: str | None = None
    merge: MergeFn | None = None


REGISTRY: dict[Table, TableSpec] = {
    Table.MOVIE_BY_CHANNEL: TableSpec(Table.MOVIE_BY_CHANNEL, TableKind.SCALAR, _movie_channel_key, serialize_movie),
    Table.MOVIE_BY_ID: TableSpec(Table.MOVIE_BY_ID, TableKind.SCALAR, _movie_id_key, serialize_movie),
    Table.SERIES_BY_ID: TableSpec(Table.SERIES_BY_ID, TableKind.SCALAR, _series_id_key, serialize_series),
    Table.SERIES_SEASONS: TableSpec(
        Table.SERIES_SEASONS,
        TableKind.LIST,
        _seasons_key,
        serialize_season,
        id_field="id",
        merge=replace_element,
    ),
    Table.SERIES_EPISODES: TableSpec(
        Table.SERIES_EPISODES,
        TableKind.LIST,
        _episodes_key,
        serialize_episode,
        id_field="id",
        merge=merge_episode,
    ),
}


def spec_for(table: Table) -> TableSpec:
    return REGISTRY[table]


def store_key(table: Table, key: object) -> str:
    return REGISTRY[table].key_builder(key)
