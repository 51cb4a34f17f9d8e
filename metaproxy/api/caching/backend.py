"""
metaproxy/api/caching/backend.py

Backend clave/valor (Redis) usado por RecordStore y ResponseCache.

Contrato:
- get(key)               -> bytes | None
- set(key, value, ttl)   -> None   (ttl <= 0: sin expiración)
- ping()                 -> True si el backend responde
- close()

Cualquier fallo del cliente se traduce a BackendError: los callers deciden
si es un miss (lecturas) o un fallo ignorable (escrituras).
"""

from __future__ import annotations

import asyncio
import time
from typing import Protocol

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from metaproxy.api.logging_config import get_logger
from metaproxy.api.settings import Settings

logger = get_logger("backend")


class BackendError(Exception):
    """El backend clave/valor no pudo completar la operación."""

    def __init__(self, op: str, key: str | None, cause: BaseException | None = None) -> None:
        self.op = op
        self.key = key
        self.cause = cause
        detail = f"{op} failed"
        if key is not None:
            detail += f" for {key!r}"
        if cause is not None:
            detail += f": {cause!r}"
        super().__init__(detail)


class KeyValueBackend(Protocol):
    async def get(self, key: str) -> bytes | None: ...

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class RedisBackend:
    """
    Conexión Redis de proceso (pool interno de redis-py).

    Se crea una vez en el lifespan de la app y se cierra al apagar.
    """

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisBackend":
        return cls(aioredis.from_url(url, decode_responses=False))

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisBackend":
        return cls.from_url(settings.redis_url)

    async def get(self, key: str) -> bytes | None:
        try:
            raw = await self._client.get(key)
        except (RedisError, OSError) as exc:
            raise BackendError("get", key, exc) from exc
        if raw is None:
            return None
        return raw if isinstance(raw, bytes) else str(raw).encode("utf-8")

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        try:
            if ttl_seconds > 0:
                await self._client.set(key, value, ex=int(ttl_seconds))
            else:
                await self._client.set(key, value)
        except (RedisError, OSError) as exc:
            raise BackendError("set", key, exc) from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as exc:
            raise BackendError("ping", None, exc) from exc

    async def close(self) -> None:
        await self._client.aclose()


async def wait_until_ready(
    backend: KeyValueBackend,
    *,
    wait_seconds: float,
    interval_ms: int,
) -> None:
    """
    Espera activa en el arranque hasta que el backend responde a PING.

    Lanza BackendError si no responde dentro de `wait_seconds`.
    """
    deadline = time.monotonic() + max(0.0, wait_seconds)
    logger.info("backend_wait", extra={"timeout_s": wait_seconds})
    last_exc: BackendError | None = None
    while True:
        try:
            if await backend.ping():
                logger.info("backend_ready")
                return
        except BackendError as exc:
            last_exc = exc
        if time.monotonic() >= deadline:
            break
        await asyncio.sleep(max(0.01, interval_ms / 1000.0))

    raise BackendError("wait_until_ready", None, last_exc)
