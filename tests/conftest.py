from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field

import httpx
import pytest

from metaproxy.api.caching.backend import BackendError
from metaproxy.api.services.context import ProxyContext
from metaproxy.api.services.tmdb import TmdbClient
from metaproxy.api.settings import Settings

NOW = 1_700_000_000


def make_settings(**overrides) -> Settings:
    base = Settings(
        log_level="INFO",
        cors_origins_raw="*",
        cors_allow_credentials=False,
        gzip_min_size=0,
        redis_wait_seconds=0.0,
        tmdb_api_key="test-key",
        tmdb_base_url="https://tmdb.test",
        stream_signing_secret="s3cret",
        stream_proxy_base="http://proxy.test",
    )
    return dataclasses.replace(base, **overrides)


class FakeBackend:
    """
    Backend clave/valor en memoria con fallos programables.
    """

    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}
        self.ttls: dict[str, int] = {}
        self.set_calls: list[str] = []
        self.fail_get = False
        # número de próximos get que fallan (luego vuelve a responder)
        self.fail_next_gets = 0
        self.fail_set = False
        self.fail_ping = False
        self.closed = False

    async def get(self, key: str) -> bytes | None:
        if self.fail_next_gets > 0:
            self.fail_next_gets -= 1
            raise BackendError("get", key, ConnectionError("backend down"))
        if self.fail_get:
            raise BackendError("get", key, ConnectionError("backend down"))
        return self.data.get(key)

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        if self.fail_set:
            raise BackendError("set", key, ConnectionError("backend down"))
        self.set_calls.append(key)
        self.data[key] = value
        self.ttls[key] = ttl_seconds

    async def ping(self) -> bool:
        if self.fail_ping:
            raise BackendError("ping", None, ConnectionError("backend down"))
        return True

    async def close(self) -> None:
        self.closed = True

    # helpers de test
    def put_json(self, key: str, value: object) -> None:
        self.data[key] = json.dumps(value).encode("utf-8")

    def load_json(self, key: str) -> object:
        return json.loads(self.data[key].decode("utf-8"))


@dataclass
class FrozenClock:
    now: float = NOW

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class TmdbStub:
    """
    Rutas TMDB programables para httpx.MockTransport.

    Las rutas no registradas devuelven 404 como TMDB.
    """

    routes: dict[str, tuple[int, object]] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def add(self, path: str, payload: object, status: int = 200) -> None:
        self.routes[path] = (status, payload)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, payload = self.routes.get(request.url.path, (404, {"status_message": "not found"}))
        return httpx.Response(status, json=payload)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


def make_tmdb(stub: TmdbStub, settings: Settings | None = None) -> TmdbClient:
    return TmdbClient.from_settings(settings or make_settings(), transport=stub.transport())


def make_context(
    backend: FakeBackend,
    stub: TmdbStub,
    clock: FrozenClock,
    *,
    settings: Settings | None = None,
    http: httpx.AsyncClient | None = None,
) -> ProxyContext:
    settings = settings or make_settings()
    return ProxyContext.build(
        settings,
        backend=backend,
        tmdb=make_tmdb(stub, settings),
        http=http or httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))),
        clock=clock,
    )


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def tmdb_stub() -> TmdbStub:
    return TmdbStub()


@pytest.fixture()
def ctx(backend: FakeBackend, tmdb_stub: TmdbStub, clock: FrozenClock) -> ProxyContext:
    return make_context(backend, tmdb_stub, clock)
