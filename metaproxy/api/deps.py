from __future__ import annotations

from fastapi import Request

from metaproxy.api.services.context import ProxyContext
from metaproxy.api.settings import Settings

_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS


def get_context(request: Request) -> ProxyContext:
    """Contexto creado en el lifespan de la app (backend + clientes)."""
    ctx = getattr(request.app.state, "context", None)
    if ctx is None:
        raise RuntimeError("ProxyContext not initialised (app lifespan not started)")
    return ctx
