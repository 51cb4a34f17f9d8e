from metaproxy.api.settings import THIRTY_DAYS_SECONDS, Settings


def test_settings_from_env_cors_star(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "*")
    settings = Settings.from_env()

    assert settings.cors_allow_origins() == ["*"]
    assert settings.cors_allow_credentials is False


def test_settings_from_env_custom_origins(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "https://a.com, https://b.com")
    settings = Settings.from_env()

    assert settings.cors_allow_origins() == ["https://a.com", "https://b.com"]
    assert settings.cors_allow_credentials is True


def test_settings_defaults(monkeypatch):
    for name in (
        "REDIS_URL",
        "TMDB_CACHE_SECONDS",
        "REDIS_CACHE_TTL",
        "STALE_AFTER_SECONDS",
        "MAX_CAST",
        "STREAM_DEFAULT_TTL_SECONDS",
        "REDIS_WAIT_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.redis_url == "redis://127.0.0.1:6379"
    assert settings.stale_after_seconds == THIRTY_DAYS_SECONDS
    assert settings.response_cache_ttl_seconds == THIRTY_DAYS_SECONDS
    assert settings.max_cast == 10
    assert settings.stream_default_ttl_seconds == 300
    assert settings.redis_wait_seconds == 60.0


def test_response_ttl_falls_back_to_legacy_name(monkeypatch):
    monkeypatch.delenv("TMDB_CACHE_SECONDS", raising=False)
    monkeypatch.setenv("REDIS_CACHE_TTL", "600")
    assert Settings.from_env().response_cache_ttl_seconds == 600

    monkeypatch.setenv("TMDB_CACHE_SECONDS", "120")
    assert Settings.from_env().response_cache_ttl_seconds == 120


def test_bad_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("MAX_CAST", "ten")
    monkeypatch.setenv("TMDB_HTTP_TIMEOUT_SECONDS", "fast")
    settings = Settings.from_env()

    assert settings.max_cast == 10
    assert settings.tmdb_timeout_seconds == 5.0


def test_stream_forward_headers(monkeypatch):
    monkeypatch.delenv("STREAM_FORWARD_HEADERS", raising=False)
    monkeypatch.setenv("FORWARD_HEADERS", "User-Agent, ,Referer")
    assert Settings.from_env().stream_forward_headers() == ["user-agent", "referer"]

    monkeypatch.setenv("STREAM_FORWARD_HEADERS", "X-Channel-Id")
    assert Settings.from_env().stream_forward_headers() == ["x-channel-id"]
