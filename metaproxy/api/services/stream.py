from __future__ import annotations

"""
metaproxy/api/services/stream.py

URLs firmadas y con caducidad para el proxy de streams.

Flujo:
1) Validar el destino (solo http).
2) Resolver la URL final siguiendo redirecciones (HEAD; si el origen lo
   bloquea con 405/403, GET con Range bytes=0-0).
3) Firmar `url|exp` (o `url|exp|fh` si hay cabeceras reenviadas) con
   HMAC-SHA256 y montar la URL `<STREAM_PROXY_BASE>/proxy?url&exp&sig[&fh]`.
"""

import hashlib
import hmac
import json
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Final
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from metaproxy.api.logging_config import get_logger
from metaproxy.api.services import metrics
from metaproxy.api.settings import Settings

logger = get_logger("stream")

PROXY_PATH: Final[str] = "/proxy"

DEFAULT_FORWARD_HEADERS: Final[tuple[str, ...]] = (
    "user-agent",
    "accept",
    "accept-language",
    "origin",
    "referer",
    "x-channel-id",
    "x-resume-key",
)

DISALLOWED_FORWARD_HEADERS: Final[frozenset[str]] = frozenset(
    {"host", "content-length", "content-encoding", "transfer-encoding", "connection"}
)

REDACTED_HEADERS: Final[frozenset[str]] = frozenset({"authorization", "cookie", "set-cookie", "x-api-key"})
REDACTED: Final[str] = "[REDACTED]"


class StreamUrlError(Exception):
    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


@dataclass(frozen=True)
class SignedStreamUrl:
    url: str
    exp: int
    ttl: int


# ============================================================
# Cabeceras
# ============================================================

def build_forwarded_headers(headers: Mapping[str, str], names: list[str] | None) -> dict[str, str]:
    """Cabeceras de la request que viajan firmadas (en orden de `names`)."""
    wanted = names if names else list(DEFAULT_FORWARD_HEADERS)
    lowered = {k.lower(): v for k, v in headers.items()}

    out: dict[str, str] = {}
    for name in wanted:
        if name in DISALLOWED_FORWARD_HEADERS:
            continue
        value = lowered.get(name)
        if value:
            out[name] = value
    return out


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {k.lower(): (REDACTED if k.lower() in REDACTED_HEADERS else v) for k, v in headers.items()}


# ============================================================
# Firma
# ============================================================

def encode_forwarded(forwarded: Mapping[str, str]) -> str:
    if not forwarded:
        return ""
    return json.dumps(dict(forwarded), separators=(",", ":"), ensure_ascii=False)


def signing_payload(url: str, exp: int, fh: str = "") -> str:
    return f"{url}|{exp}|{fh}" if fh else f"{url}|{exp}"


def sign(secret: str, payload: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def build_proxy_url(proxy_base: str, *, url: str, exp: int, sig: str, fh: str = "") -> str:
    parts = urlsplit(proxy_base)
    ours = {"url": url, "exp": str(exp), "sig": sig}
    if fh:
        ours["fh"] = fh
    kept = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in ours]
    query = urlencode(kept + list(ours.items()))
    return urlunsplit((parts.scheme, parts.netloc, PROXY_PATH, query, ""))


def parse_ttl(raw: str | None, default: int) -> int:
    if not raw:
        return default
    try:
        value = int(float(raw))
    except (TypeError, ValueError, OverflowError):
        return default
    return value if value > 0 else default


# ============================================================
# Resolución de la URL final
# ============================================================

async def resolve_final_url(
    http: httpx.AsyncClient,
    target: str,
    forwarded: Mapping[str, str],
    *,
    timeout_seconds: float,
) -> str | None:
    """
    URL final tras seguir redirecciones, o None si el origen no responde.

    No descarga el cuerpo: HEAD, o GET en streaming de un solo byte.
    """
    headers = dict(forwarded)
    timeout = httpx.Timeout(timeout_seconds)
    try:
        resp = await http.head(target, headers=headers, follow_redirects=True, timeout=timeout)
        if resp.status_code in (403, 405):
            headers["range"] = "bytes=0-0"
            async with http.stream(
                "GET", target, headers=headers, follow_redirects=True, timeout=timeout
            ) as ranged:
                return str(ranged.url)
        return str(resp.url)
    except httpx.HTTPError as exc:
        logger.warning("upstream_resolve_failed", extra={"target": target, "error": repr(exc)})
        return None


def _is_http(url: str) -> bool:
    parts = urlsplit(url)
    return parts.scheme == "http" and bool(parts.netloc)


async def issue_stream_url(
    settings: Settings,
    http: httpx.AsyncClient,
    *,
    target: str | None,
    ttl_raw: str | None,
    request_headers: Mapping[str, str],
    clock: Callable[[], float] = time.time,
) -> SignedStreamUrl:
    logger.info("stream_url_request", extra={"headers": redact_headers(request_headers)})

    if not target:
        raise StreamUrlError(400, "url is required")
    if not settings.stream_signing_secret:
        raise StreamUrlError(500, "STREAM_SIGNING_SECRET is missing")
    if not settings.stream_proxy_base:
        raise StreamUrlError(500, "STREAM_PROXY_BASE is missing")

    try:
        parts = urlsplit(target)
    except ValueError as exc:
        raise StreamUrlError(400, "invalid url") from exc
    if not parts.scheme or not parts.netloc:
        raise StreamUrlError(400, "invalid url")
    if parts.scheme != "http":
        raise StreamUrlError(403, "only http sources allowed")

    ttl = parse_ttl(ttl_raw, settings.stream_default_ttl_seconds)
    exp = int(clock()) + ttl
    forwarded = build_forwarded_headers(request_headers, settings.stream_forward_headers())

    resolved = await resolve_final_url(
        http, target, forwarded, timeout_seconds=settings.stream_resolve_timeout_seconds
    )
    if resolved is None:
        raise StreamUrlError(502, "failed to resolve upstream")
    if not _is_http(resolved):
        raise StreamUrlError(403, "only http sources allowed")

    fh = encode_forwarded(forwarded)
    sig = sign(settings.stream_signing_secret, signing_payload(resolved, exp, fh))
    metrics.inc("stream_urls_signed_total", 1)

    return SignedStreamUrl(
        url=build_proxy_url(settings.stream_proxy_base, url=resolved, exp=exp, sig=sig, fh=fh),
        exp=exp,
        ttl=ttl,
    )
