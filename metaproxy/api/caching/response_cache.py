# caché de respuestas completas (búsquedas, proxy /3/*) indexada por derive_key
from __future__ import annotations

from metaproxy.api.caching.backend import BackendError, KeyValueBackend
from metaproxy.api.caching.codec import decode_json, encode_json
from metaproxy.api.caching.record_store import StoreRead
from metaproxy.api.logging_config import get_logger
from metaproxy.api.services import metrics

logger = get_logger("response_cache")


class ResponseCache:
    """
    Valores JSON arbitrarios bajo claves derivadas de la URL.

    Mismo contrato de errores que RecordStore: lecturas -> StoreRead,
    escrituras best-effort.
    """

    def __init__(self, backend: KeyValueBackend, *, ttl_seconds: int) -> None:
        self._backend = backend
        self._ttl_seconds = int(ttl_seconds)

    async def get(self, key: str) -> StoreRead[object]:
        try:
            raw = await self._backend.get(key)
        except BackendError as exc:
            metrics.inc("store_read_errors_total", 1)
            return StoreRead(error=exc, key=key)
        if raw is None:
            metrics.inc("response_cache_miss_total", 1)
            return StoreRead(key=key)
        try:
            value = decode_json(raw)
        except ValueError:
            metrics.inc("store_decode_errors_total", 1)
            logger.warning("response_cache_malformed", extra={"key": key})
            return StoreRead(key=key)
        metrics.inc("response_cache_hit_total", 1)
        return StoreRead(value=value, key=key)

    async def set(self, key: str, value: object, *, ttl_seconds: int | None = None) -> bool:
        ttl = self._ttl_seconds if ttl_seconds is None else int(ttl_seconds)
        try:
            await self._backend.set(key, encode_json(value), ttl)
        except BackendError as exc:
            metrics.inc("store_write_errors_total", 1)
            logger.warning("response_cache_write_failed", extra={"key": key, "error": str(exc)})
            return False
        logger.info("response_cached", extra={"key": key, "ttl": ttl})
        return True
