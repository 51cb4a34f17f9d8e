"""
metaproxy/api/caching/freshness.py

Política de frescura: decide si un registro cacheado se puede servir sin
volver a TMDB.

- `updated_at` (epoch s) es la única señal de edad. Sin él => stale.
- Películas: rating == 0 y rating_count == 0 => nunca se enriqueció => stale.
- Series: un registro escrito desde una búsqueda no trae los campos extendidos
  => `is_incomplete`.
- Vistas de colección: la lista asociada no puede estar vacía.
- Episodio: además necesita guest stars (un episodio sin ese enriquecimiento
  cuenta como incompleto).
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from metaproxy.api.caching.tables import SERIES_EXTENDED_FIELDS, Table
from metaproxy.api.settings import THIRTY_DAYS_SECONDS

_MOVIE_TABLES = frozenset({Table.MOVIE_BY_CHANNEL, Table.MOVIE_BY_ID})


def _is_zero_or_null(value: object) -> bool:
    return value is None or (not isinstance(value, bool) and isinstance(value, (int, float)) and value == 0)


class FreshnessPolicy:
    def __init__(
        self,
        *,
        stale_after_seconds: int = THIRTY_DAYS_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._stale_after = int(stale_after_seconds)
        self._clock = clock

    @property
    def stale_after_seconds(self) -> int:
        return self._stale_after

    def age_seconds(self, record: Mapping[str, Any] | None) -> int | None:
        if record is None:
            return None
        updated_at = record.get("updated_at")
        if isinstance(updated_at, bool) or not isinstance(updated_at, (int, float)):
            return None
        return int(self._clock()) - int(updated_at)

    def is_stale(self, record: Mapping[str, Any] | None, table: Table | None = None) -> bool:
        if record is None:
            return True

        if table in _MOVIE_TABLES:
            if _is_zero_or_null(record.get("rating")) and _is_zero_or_null(record.get("rating_count")):
                return True

        age = self.age_seconds(record)
        if age is None:
            return True
        return age > self._stale_after

    def is_incomplete(self, record: Mapping[str, Any] | None, table: Table | None = Table.SERIES_BY_ID) -> bool:
        if table is not Table.SERIES_BY_ID:
            return False
        if record is None:
            return True

        for field in SERIES_EXTENDED_FIELDS:
            if record.get(field) is None:
                return True

        created_by = record.get("created_by")
        created_by_empty = not isinstance(created_by, list) or len(created_by) == 0
        looks_like_search_only = (
            created_by_empty
            and _is_zero_or_null(record.get("number_of_episodes"))
            and _is_zero_or_null(record.get("number_of_seasons"))
        )
        return looks_like_search_only

    def is_usable(self, record: Mapping[str, Any] | None, table: Table) -> bool:
        return not self.is_stale(record, table) and not self.is_incomplete(record, table)

    def series_usable(self, record: Mapping[str, Any] | None, seasons: Sequence[Mapping[str, Any]]) -> bool:
        return self.is_usable(record, Table.SERIES_BY_ID) and len(seasons) > 0

    def season_usable(self, episodes: Sequence[Mapping[str, Any]]) -> bool:
        if not episodes:
            return False
        return not any(self.is_stale(ep, Table.SERIES_EPISODES) for ep in episodes)

    def episode_usable(self, episode: Mapping[str, Any] | None) -> bool:
        if episode is None or self.is_stale(episode, Table.SERIES_EPISODES):
            return False
        guests = episode.get("guest_stars")
        return isinstance(guests, list) and len(guests) > 0

    def response_usable(self, entry: object) -> bool:
        """Entradas de la caché de respuestas con sello `updated_at` (búsqueda de series)."""
        if not isinstance(entry, Mapping) or entry.get("body") is None:
            return False
        return not self.is_stale(entry)
