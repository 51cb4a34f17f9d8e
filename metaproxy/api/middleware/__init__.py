from __future__ import annotations

from metaproxy.api.middleware.errors import (
    build_exception_handler,
    build_tmdb_config_handler,
    build_upstream_handler,
)
from metaproxy.api.middleware.request_id import build_request_id_middleware

__all__ = [
    "build_exception_handler",
    "build_request_id_middleware",
    "build_tmdb_config_handler",
    "build_upstream_handler",
]
