import asyncio

import httpx
import pytest

from metaproxy.api.services.tmdb import TmdbClient, TmdbConfigError, UpstreamError

from conftest import TmdbStub, make_settings, make_tmdb


def test_get_json_appends_api_key_and_drops_empty_params(tmdb_stub: TmdbStub):
    tmdb_stub.add("/3/search/movie", {"results": []})
    client = make_tmdb(tmdb_stub)

    asyncio.run(client.search_movies("Heat", "", year=None))

    (request,) = tmdb_stub.requests
    params = dict(request.url.params)
    assert params == {"query": "Heat", "include_adult": "false", "api_key": "test-key"}


def test_fetch_movie_embeds_credits(tmdb_stub: TmdbStub):
    tmdb_stub.add("/3/movie/550", {"id": 550, "title": "Fight Club"})
    tmdb_stub.add("/3/movie/550/credits", {"cast": [{"name": "Edward Norton"}], "crew": []})

    data = asyncio.run(make_tmdb(tmdb_stub).fetch_movie(550, "en-US"))

    assert data["title"] == "Fight Club"
    assert data["credits"]["cast"][0]["name"] == "Edward Norton"
    assert dict(tmdb_stub.calls("/3/movie/550")[0].url.params)["language"] == "en-US"
    assert "language" not in dict(tmdb_stub.calls("/3/movie/550/credits")[0].url.params)


def test_non_success_status_raises_upstream_error(tmdb_stub: TmdbStub):
    tmdb_stub.add("/3/tv/1", {"status_message": "Invalid API key"}, status=401)

    with pytest.raises(UpstreamError) as exc:
        asyncio.run(make_tmdb(tmdb_stub).fetch_series(1, "en"))

    assert exc.value.status == 401
    assert "Invalid API key" in exc.value.body


def test_transport_error_raises_upstream_error_without_status():
    def boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    client = TmdbClient.from_settings(make_settings(), transport=httpx.MockTransport(boom))

    with pytest.raises(UpstreamError) as exc:
        asyncio.run(client.fetch_season_detail(1, 1, "en"))

    assert exc.value.status is None


def test_missing_api_key_raises_config_error(tmdb_stub: TmdbStub):
    client = make_tmdb(tmdb_stub, make_settings(tmdb_api_key=""))

    with pytest.raises(TmdbConfigError):
        asyncio.run(client.fetch_episode_detail(1, 1, 1, "en"))
    assert tmdb_stub.requests == []


def test_passthrough_returns_status_and_replaces_client_api_key(tmdb_stub: TmdbStub):
    tmdb_stub.add("/3/configuration", {"oops": True}, status=404)
    client = make_tmdb(tmdb_stub)

    resp = asyncio.run(
        client.passthrough(
            "/3/configuration",
            [("api_key", "client-key"), ("page", "2")],
            accept_language="es-ES",
        )
    )

    assert resp.status == 404
    assert "oops" in resp.body
    (request,) = tmdb_stub.requests
    assert request.url.params.get_list("api_key") == ["test-key"]
    assert request.url.params["page"] == "2"
    assert request.headers["accept-language"] == "es-ES"
