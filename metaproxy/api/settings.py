# lectura de env vars + defaults
from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# En producción suele ser deseable NO sobre-escribir env vars ya definidas.
load_dotenv(override=False)

THIRTY_DAYS_SECONDS = 30 * 24 * 60 * 60

_TRUE_SET = {"1", "true", "t", "yes", "y", "on"}
_FALSE_SET = {"0", "false", "f", "no", "n", "off"}


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    val = raw.strip()
    return val if val else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    s = raw.strip().lower()
    if s in _TRUE_SET:
        return True
    if s in _FALSE_SET:
        return False
    return default


@dataclass(frozen=True)
class Settings:
    """
    Settings centralizados (env vars). Esto evita `os.getenv(...)` disperso.

    Notas importantes:
    - CORS: si CORS_ORIGINS="*" -> allow_credentials=False para compatibilidad browser.
    - REDIS_WAIT_SECONDS=0 desactiva la espera de Redis en el arranque.
    - TMDB_CACHE_SECONDS aplica a la caché de respuestas (búsquedas y proxy /3/*);
      CACHE_TTL_SECONDS aplica a los registros normalizados.
    """

    log_level: str

    cors_origins_raw: str
    cors_allow_credentials: bool

    gzip_min_size: int

    redis_url: str = "redis://127.0.0.1:6379"
    redis_wait_seconds: float = 60.0
    redis_wait_interval_ms: int = 500

    cache_ttl_seconds: int = THIRTY_DAYS_SECONDS
    stale_after_seconds: int = THIRTY_DAYS_SECONDS
    response_cache_ttl_seconds: int = THIRTY_DAYS_SECONDS

    tmdb_api_key: str = ""
    tmdb_base_url: str = "https://api.themoviedb.org"
    tmdb_timeout_seconds: float = 5.0
    max_cast: int = 10

    stream_signing_secret: str = ""
    stream_proxy_base: str = ""
    stream_forward_headers_raw: str = ""
    stream_default_ttl_seconds: int = 300
    stream_resolve_timeout_seconds: float = 8.0

    def cors_allow_origins(self) -> list[str]:
        raw = self.cors_origins_raw.strip()
        if raw == "*":
            return ["*"]
        parts = [p.strip() for p in raw.split(",")]
        return [p for p in parts if p]

    def stream_forward_headers(self) -> list[str]:
        parts = [p.strip().lower() for p in self.stream_forward_headers_raw.split(",")]
        return [p for p in parts if p]

    @staticmethod
    def from_env() -> "Settings":
        cors_raw = _env_str("CORS_ORIGINS", "*")
        allow_origins = ["*"] if cors_raw.strip() == "*" else [p.strip() for p in cors_raw.split(",") if p.strip()]

        # Regla browser: "*" + credentials=True no es válido
        cors_allow_credentials = True
        if allow_origins == ["*"]:
            cors_allow_credentials = False

        # TMDB_CACHE_SECONDS manda; REDIS_CACHE_TTL queda como alias histórico.
        response_ttl = _env_int("TMDB_CACHE_SECONDS", _env_int("REDIS_CACHE_TTL", THIRTY_DAYS_SECONDS))

        return Settings(
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
            cors_origins_raw=cors_raw,
            cors_allow_credentials=cors_allow_credentials,
            gzip_min_size=_env_int("GZIP_MIN_SIZE", 800),
            redis_url=_env_str("REDIS_URL", "redis://127.0.0.1:6379"),
            redis_wait_seconds=max(0.0, _env_float("REDIS_WAIT_SECONDS", 60.0)),
            redis_wait_interval_ms=max(10, _env_int("REDIS_WAIT_INTERVAL_MS", 500)),
            cache_ttl_seconds=max(1, _env_int("CACHE_TTL_SECONDS", THIRTY_DAYS_SECONDS)),
            stale_after_seconds=max(0, _env_int("STALE_AFTER_SECONDS", THIRTY_DAYS_SECONDS)),
            response_cache_ttl_seconds=max(1, response_ttl),
            tmdb_api_key=_env_str("TMDB_API_KEY", ""),
            tmdb_base_url=_env_str("TMDB_BASE_URL", "https://api.themoviedb.org").rstrip("/"),
            tmdb_timeout_seconds=max(0.5, _env_float("TMDB_HTTP_TIMEOUT_SECONDS", 5.0)),
            max_cast=max(0, _env_int("MAX_CAST", 10)),
            stream_signing_secret=_env_str("STREAM_SIGNING_SECRET", ""),
            stream_proxy_base=_env_str("STREAM_PROXY_BASE", ""),
            stream_forward_headers_raw=_env_str("STREAM_FORWARD_HEADERS", _env_str("FORWARD_HEADERS", "")),
            stream_default_ttl_seconds=max(1, _env_int("STREAM_DEFAULT_TTL_SECONDS", 300)),
            stream_resolve_timeout_seconds=max(0.5, _env_float("STREAM_RESOLVE_TIMEOUT_SECONDS", 8.0)),
        )
