# estado de proceso inyectado en los handlers (store, políticas, clientes)
from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from metaproxy.api.caching.backend import KeyValueBackend
from metaproxy.api.caching.freshness import FreshnessPolicy
from metaproxy.api.caching.record_store import RecordStore
from metaproxy.api.caching.response_cache import ResponseCache
from metaproxy.api.services.tmdb import TmdbClient
from metaproxy.api.settings import Settings


@dataclass(frozen=True)
class ProxyContext:
    settings: Settings
    backend: KeyValueBackend
    store: RecordStore
    responses: ResponseCache
    policy: FreshnessPolicy
    tmdb: TmdbClient
    http: httpx.AsyncClient

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        backend: KeyValueBackend,
        tmdb: TmdbClient,
        http: httpx.AsyncClient,
        clock: Callable[[], float] = time.time,
    ) -> "ProxyContext":
        return cls(
            settings=settings,
            backend=backend,
            store=RecordStore(backend, ttl_seconds=settings.cache_ttl_seconds, clock=clock),
            responses=ResponseCache(backend, ttl_seconds=settings.response_cache_ttl_seconds),
            policy=FreshnessPolicy(stale_after_seconds=settings.stale_after_seconds, clock=clock),
            tmdb=tmdb,
            http=http,
        )
