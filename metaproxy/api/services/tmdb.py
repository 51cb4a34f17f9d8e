from __future__ import annotations

"""
metaproxy/api/services/tmdb.py

Cliente TMDB (v3) asíncrono sobre httpx.

- Timeout explícito en todas las llamadas (TMDB_HTTP_TIMEOUT_SECONDS).
- Sin reintentos: cualquier respuesta no-2xx, timeout o error de transporte se
  propaga como UpstreamError; decidir qué hacer es cosa del caller.
- `api_key` se añade siempre como query param y nunca aparece en logs.
"""

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from metaproxy.api.caching.keys import CREDENTIAL_PARAM
from metaproxy.api.logging_config import get_logger
from metaproxy.api.services import metrics
from metaproxy.api.settings import Settings

logger = get_logger("tmdb")

API_PREFIX = "/3"


class TmdbConfigError(RuntimeError):
    """Falta configuración imprescindible (TMDB_API_KEY)."""


class UpstreamError(Exception):
    def __init__(self, path: str, status: int | None, body: str = "") -> None:
        self.path = path
        self.status = status
        self.body = body
        if status is None:
            msg = f"TMDB request failed for {path}: {body}"
        else:
            msg = f"TMDB error {status}: {body[:500]}"
        super().__init__(msg)


@dataclass(frozen=True)
class PassthroughResponse:
    status: int
    body: str
    content_type: str


def _clean_params(params: Mapping[str, object]) -> dict[str, str]:
    return {k: str(v) for k, v in params.items() if v is not None and v != ""}


class TmdbClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> "TmdbClient":
        return cls(
            api_key=settings.tmdb_api_key,
            base_url=settings.tmdb_base_url,
            timeout_seconds=settings.tmdb_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self._http.aclose()

    def _require_key(self) -> str:
        if not self._api_key:
            raise TmdbConfigError("TMDB_API_KEY is missing")
        return self._api_key

    async def _get_json(self, path: str, params: Mapping[str, object] | None = None) -> dict[str, Any]:
        query = _clean_params(params or {})
        query[CREDENTIAL_PARAM] = self._require_key()
        full_path = f"{API_PREFIX}/{path.lstrip('/')}"

        metrics.inc("upstream_requests_total", 1)
        try:
            response = await self._http.get(full_path, params=query)
        except httpx.HTTPError as exc:
            metrics.inc("upstream_errors_total", 1)
            logger.warning("tmdb_transport_error", extra={"path": full_path, "error": repr(exc)})
            raise UpstreamError(full_path, None, repr(exc)) from exc

        if not response.is_success:
            metrics.inc("upstream_errors_total", 1)
            logger.warning("tmdb_error", extra={"path": full_path, "status": response.status_code})
            raise UpstreamError(full_path, response.status_code, response.text)

        logger.info("tmdb_fetched", extra={"path": full_path})
        try:
            data = response.json()
        except ValueError as exc:
            metrics.inc("upstream_errors_total", 1)
            raise UpstreamError(full_path, response.status_code, "invalid JSON body") from exc
        return data if isinstance(data, dict) else {}

    # ------------------------------------------------------------------

    async def fetch_movie(self, movie_id: int, language: str) -> dict[str, Any]:
        """Detalle + créditos (en paralelo). Devuelve el detalle con `credits` embebido."""
        details, credits = await asyncio.gather(
            self._get_json(f"movie/{movie_id}", {"language": language}),
            self._get_json(f"movie/{movie_id}/credits"),
        )
        return {**details, "credits": credits}

    async def fetch_series(self, series_id: int, language: str) -> dict[str, Any]:
        return await self._get_json(f"tv/{series_id}", {"language": language})

    async def fetch_season_detail(self, series_id: int, season_number: int, language: str) -> dict[str, Any]:
        return await self._get_json(f"tv/{series_id}/season/{season_number}", {"language": language})

    async def fetch_episode_detail(
        self, series_id: int, season_number: int, episode_number: int, language: str
    ) -> dict[str, Any]:
        return await self._get_json(
            f"tv/{series_id}/season/{season_number}/episode/{episode_number}",
            {"language": language},
        )

    async def search_movies(self, query: str, language: str, *, year: int | None = None) -> dict[str, Any]:
        return await self._get_json(
            "search/movie",
            {"query": query, "include_adult": "false", "language": language, "year": year},
        )

    async def search_series(self, query: str, language: str) -> dict[str, Any]:
        return await self._get_json(
            "search/tv",
            {"query": query, "include_adult": "false", "language": language},
        )

    async def passthrough(
        self,
        path: str,
        params: Iterable[tuple[str, str]],
        *,
        accept_language: str = "",
    ) -> PassthroughResponse:
        """
        Reenvío tal cual para /3/*: no lanza por status (el proxy devuelve el
        status de TMDB), solo por errores de transporte.
        """
        query = [(k, v) for k, v in params if k.lower() != CREDENTIAL_PARAM]
        query.append((CREDENTIAL_PARAM, self._require_key()))

        metrics.inc("upstream_requests_total", 1)
        try:
            response = await self._http.get(
                path,
                params=query,
                headers={"accept-language": accept_language},
            )
        except httpx.HTTPError as exc:
            metrics.inc("upstream_errors_total", 1)
            logger.warning("tmdb_transport_error", extra={"path": path, "error": repr(exc)})
            raise UpstreamError(path, None, repr(exc)) from exc

        logger.info("tmdb_proxied", extra={"path": path, "status": response.status_code})
        return PassthroughResponse(
            status=response.status_code,
            body=response.text,
            content_type=response.headers.get("content-type", ""),
        )
