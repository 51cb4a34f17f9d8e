"""
metaproxy/api/caching/record_store.py

Operaciones "de registro" sobre tablas lógicas encima de un backend clave/valor.

Cada tabla lógica (ver tables.REGISTRY) mapea su clave natural a UNA clave del
backend:
- tablas escalares: un objeto JSON por clave natural.
- tablas lista: un array JSON por clave padre (temporadas, episodios).

Lecturas -> StoreRead(value, error):
- clave ausente o JSON corrupto: value=None (o [] en listas), error=None.
- fallo del backend: error=BackendError. El caller decide; `value_or_none()`
  lo registra y lo trata como miss.

Escrituras:
- siempre el registro completo calculado + `updated_at` = ahora.
- TTL fijo renovado en cada escritura.
- un fallo de escritura se registra y se ignora (devuelven False/el valor calculado).
- en tablas lista, si falla la lectura previa no se escribe (stored=False).
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from metaproxy.api.caching.backend import BackendError, KeyValueBackend
from metaproxy.api.caching.codec import decode_json, encode_json
from metaproxy.api.caching.merge import (
    ensure_placeholder,
    merge_batch,
    merge_guest_stars,
)
from metaproxy.api.caching.tables import (
    SeasonKey,
    Table,
    TableKind,
    TableSpec,
    serialize_guest_star,
    spec_for,
)
from metaproxy.api.logging_config import get_logger
from metaproxy.api.services import metrics

T = TypeVar("T")

Record = dict[str, Any]

logger = get_logger("store")


@dataclass(frozen=True)
class StoreRead(Generic[T]):
    value: T | None = None
    error: BackendError | None = None
    key: str = ""

    @property
    def failed(self) -> bool:
        return self.error is not None

    def value_or_none(self) -> T | None:
        """Trata un fallo del backend como miss (registrándolo)."""
        if self.error is not None:
            logger.warning("store_read_failed", extra={"key": self.key, "error": str(self.error)})
            return None
        return self.value


@dataclass(frozen=True)
class ListWrite:
    """Resultado de escribir una lista: la lista completa y los elementos tocados."""

    items: list[Record]
    written: list[Record]
    stored: bool


class RecordStore:
    def __init__(
        self,
        backend: KeyValueBackend,
        *,
        ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self._ttl_seconds = int(ttl_seconds)
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    # ------------------------------------------------------------------
    # I/O de bajo nivel
    # ------------------------------------------------------------------

    async def read_json(self, key: str) -> StoreRead[object]:
        try:
            raw = await self._backend.get(key)
        except BackendError as exc:
            metrics.inc("store_read_errors_total", 1)
            return StoreRead(error=exc, key=key)

        if raw is None:
            return StoreRead(key=key)
        try:
            return StoreRead(value=decode_json(raw), key=key)
        except ValueError:
            metrics.inc("store_decode_errors_total", 1)
            logger.warning("store_value_malformed", extra={"key": key})
            return StoreRead(key=key)

    async def write_json(self, key: str, value: object) -> bool:
        try:
            await self._backend.set(key, encode_json(value), self._ttl_seconds)
        except BackendError as exc:
            metrics.inc("store_write_errors_total", 1)
            logger.warning("store_write_failed", extra={"key": key, "error": str(exc)})
            return False
        return True

    @staticmethod
    def _require(table: Table, kind: TableKind) -> TableSpec:
        spec = spec_for(table)
        if spec.kind is not kind:
            raise ValueError(f"{table.value} is not a {kind.value} table")
        return spec

    # ------------------------------------------------------------------
    # Tablas escalares
    # ------------------------------------------------------------------

    async def get_one(self, table: Table, natural_key: object) -> StoreRead[Record]:
        spec = self._require(table, TableKind.SCALAR)
        key = spec.key_builder(natural_key)
        read = await self.read_json(key)
        if read.failed:
            return StoreRead(error=read.error, key=key)
        if read.value is not None and not isinstance(read.value, dict):
            logger.warning("store_value_wrong_shape", extra={"key": key, "expected": "object"})
            return StoreRead(key=key)
        return StoreRead(value=read.value, key=key)  # type: ignore[arg-type]

    async def upsert_one(self, table: Table, natural_key: object, record: Mapping[str, Any]) -> Record:
        """Escribe el registro completo; devuelve lo escrito (aunque el backend falle)."""
        spec = self._require(table, TableKind.SCALAR)
        key = spec.key_builder(natural_key)
        row = spec.serializer(record)
        row["updated_at"] = self.now()
        await self.write_json(key, row)
        return row

    # ------------------------------------------------------------------
    # Tablas lista
    # ------------------------------------------------------------------

    async def list_by_parent(self, table: Table, parent_key: object) -> StoreRead[list[Record]]:
        spec = self._require(table, TableKind.LIST)
        key = spec.key_builder(parent_key)
        read = await self.read_json(key)
        if read.failed:
            return StoreRead(value=[], error=read.error, key=key)
        if read.value is None:
            return StoreRead(value=[], key=key)
        if not isinstance(read.value, list):
            logger.warning("store_value_wrong_shape", extra={"key": key, "expected": "array"})
            return StoreRead(value=[], key=key)
        items = [item for item in read.value if isinstance(item, dict)]
        return StoreRead(value=items, key=key)

    def _stamp(self, spec: TableSpec, now: int) -> Callable[[Record], Record]:
        def stamp(element: Record) -> Record:
            row = spec.serializer(element)
            row["updated_at"] = now
            return row

        return stamp

    async def merge_into_list(
        self,
        table: Table,
        parent_key: object,
        records: Iterable[Mapping[str, Any]],
    ) -> ListWrite:
        """Upsert de un lote en la lista padre con UNA sola escritura."""
        spec = self._require(table, TableKind.LIST)
        if spec.merge is None or spec.id_field is None:
            raise ValueError(f"{table.value} has no merge strategy")

        read = await self.list_by_parent(table, parent_key)
        items, written = merge_batch(
            [] if read.failed else read.value or [],
            records,
            merge=spec.merge,
            id_field=spec.id_field,
            stamp=self._stamp(spec, self.now()),
        )
        if read.failed:
            # sin la lista actual, reescribirla perdería los hermanos
            metrics.inc("store_write_skipped_total", 1)
            logger.warning("store_write_skipped", extra={"key": read.key, "error": str(read.error)})
            return ListWrite(items=items, written=written, stored=False)

        stored = await self.write_json(read.key, items)
        return ListWrite(items=items, written=written, stored=stored)

    async def upsert_into_list(
        self,
        table: Table,
        parent_key: object,
        child_id: object,
        record: Mapping[str, Any],
    ) -> ListWrite:
        spec = self._require(table, TableKind.LIST)
        element = dict(record)
        element[spec.id_field or "id"] = child_id
        return await self.merge_into_list(table, parent_key, [element])

    async def get_episode(self, key: SeasonKey, episode_number: int) -> StoreRead[Record]:
        read = await self.list_by_parent(Table.SERIES_EPISODES, key)
        if read.failed:
            return StoreRead(error=read.error, key=read.key)
        for episode in read.value or []:
            try:
                if int(episode.get("episode_number")) == int(episode_number):  # type: ignore[arg-type]
                    return StoreRead(value=episode, key=read.key)
            except (TypeError, ValueError):
                continue
        return StoreRead(key=read.key)

    async def upsert_guest_star(
        self,
        key: SeasonKey,
        *,
        episode_id: int,
        episode_number: int | None,
        guest: Mapping[str, Any],
    ) -> ListWrite:
        """
        Upsert anidado: episodio (placeholder si no existe) -> guest_stars[id].

        El placeholder solo lleva campos identificativos; lo completa un upsert
        posterior del episodio (que arrastra estos guest stars).
        """
        read = await self.list_by_parent(Table.SERIES_EPISODES, key)
        episodes = [] if read.failed else list(read.value or [])

        placeholder: Record = {
            "series_id": key.series_id,
            "id": episode_id,
            "episode_id": episode_id,
            "episode_number": episode_number,
            "guest_stars": [],
        }
        episodes, idx = ensure_placeholder(episodes, placeholder)

        episode = dict(episodes[idx])
        current = episode.get("guest_stars")
        episode["guest_stars"] = merge_guest_stars(
            current if isinstance(current, list) else [],
            [serialize_guest_star(guest)],
        )
        episodes[idx] = episode

        if read.failed:
            metrics.inc("store_write_skipped_total", 1)
            logger.warning("store_write_skipped", extra={"key": read.key, "error": str(read.error)})
            return ListWrite(items=[episode], written=[episode], stored=False)

        stored = await self.write_json(read.key, episodes)
        return ListWrite(items=episodes, written=[episode], stored=stored)
