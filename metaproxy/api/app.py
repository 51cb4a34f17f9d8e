from __future__ import annotations

import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from metaproxy.api.caching.backend import KeyValueBackend, RedisBackend, wait_until_ready
from metaproxy.api.deps import get_settings
from metaproxy.api.logging_config import configure_logging
from metaproxy.api.middleware import (
    build_exception_handler,
    build_request_id_middleware,
    build_tmdb_config_handler,
    build_upstream_handler,
)
from metaproxy.api.routers.health import router as health_router
from metaproxy.api.routers.movies import router as movies_router
from metaproxy.api.routers.series import router as series_router
from metaproxy.api.routers.stream import router as stream_router
from metaproxy.api.routers.tmdb_proxy import router as tmdb_proxy_router
from metaproxy.api.services.context import ProxyContext
from metaproxy.api.services.tmdb import TmdbClient, TmdbConfigError, UpstreamError
from metaproxy.api.settings import Settings


def create_app(
    settings: Settings | None = None,
    *,
    backend: KeyValueBackend | None = None,
    tmdb: TmdbClient | None = None,
    http: httpx.AsyncClient | None = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """
    App FastAPI. Los recursos no inyectados (Redis, clientes HTTP) se crean en
    el lifespan y se cierran al apagar; los inyectados (tests) los cierra quien
    los creó.
    """
    settings = settings or get_settings()
    logger = configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        closers: list[Callable[[], Awaitable[None]]] = []

        kv = backend
        if kv is None:
            redis_backend = RedisBackend.from_settings(settings)
            closers.append(redis_backend.close)
            kv = redis_backend

        tmdb_client = tmdb
        if tmdb_client is None:
            tmdb_client = TmdbClient.from_settings(settings)
            closers.append(tmdb_client.close)

        http_client = http
        if http_client is None:
            http_client = httpx.AsyncClient()
            closers.append(http_client.aclose)

        try:
            if settings.redis_wait_seconds > 0:
                await wait_until_ready(
                    kv,
                    wait_seconds=settings.redis_wait_seconds,
                    interval_ms=settings.redis_wait_interval_ms,
                )
            if not settings.tmdb_api_key:
                logger.warning("tmdb_api_key_missing")

            app.state.context = ProxyContext.build(
                settings, backend=kv, tmdb=tmdb_client, http=http_client, clock=clock
            )
            logger.info("startup_complete")
            yield
        finally:
            app.state.context = None
            for close in reversed(closers):
                await close()

    app = FastAPI(title="metaproxy", version="1.0.0", lifespan=lifespan)

    app.add_middleware(GZipMiddleware, minimum_size=max(0, settings.gzip_min_size))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins(),
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    app.middleware("http")(build_request_id_middleware(settings))
    app.add_exception_handler(UpstreamError, build_upstream_handler(settings))
    app.add_exception_handler(TmdbConfigError, build_tmdb_config_handler(settings))
    app.add_exception_handler(Exception, build_exception_handler(settings))

    app.include_router(health_router)
    app.include_router(movies_router)
    app.include_router(series_router)
    app.include_router(stream_router)
    app.include_router(tmdb_proxy_router)

    return app


app = create_app()
