from metaproxy.api.caching.freshness import FreshnessPolicy
from metaproxy.api.caching.tables import Table

from conftest import NOW, FrozenClock

STALE_AFTER = 1000


def _policy() -> FreshnessPolicy:
    return FreshnessPolicy(stale_after_seconds=STALE_AFTER, clock=FrozenClock())


def _movie(**kw):
    return {"tmdb_id": 27205, "rating": 8.4, "rating_count": 35000, "updated_at": NOW, **kw}


def test_absent_or_unstamped_records_are_stale():
    policy = _policy()
    assert policy.is_stale(None) is True
    assert policy.is_stale({"tmdb_id": 1}) is True
    assert policy.is_stale({"updated_at": "yesterday"}) is True


def test_stale_boundary_is_exclusive():
    policy = _policy()
    assert policy.is_stale({"updated_at": NOW - STALE_AFTER + 1}) is False
    assert policy.is_stale({"updated_at": NOW - STALE_AFTER}) is False
    assert policy.is_stale({"updated_at": NOW - STALE_AFTER - 1}) is True


def test_movie_without_rating_is_stale_even_if_recent():
    policy = _policy()
    empty = _movie(rating=0, rating_count=0)

    assert policy.is_stale(empty, Table.MOVIE_BY_ID) is True
    assert policy.is_stale(empty, Table.MOVIE_BY_CHANNEL) is True
    assert policy.is_stale(_movie(rating=None, rating_count=None), Table.MOVIE_BY_ID) is True
    # solo una de las dos a cero: se considera enriquecida
    assert policy.is_stale(_movie(rating=0, rating_count=3), Table.MOVIE_BY_ID) is False
    assert policy.is_stale(_movie(), Table.MOVIE_BY_ID) is False
    # la regla no aplica a otras tablas
    assert policy.is_stale({"rating": 0, "rating_count": 0, "updated_at": NOW}, Table.SERIES_BY_ID) is False


def test_series_from_search_is_incomplete_until_detail_arrives():
    policy = _policy()
    from_search = {"tmdb_id": 1399, "name": "Game of Thrones", "updated_at": NOW}
    search_like = {
        **from_search,
        "created_by": [],
        "number_of_episodes": 0,
        "number_of_seasons": None,
        "seasons": [],
    }
    from_detail = {
        **from_search,
        "created_by": [{"id": 9813, "name": "David Benioff"}],
        "number_of_episodes": 73,
        "number_of_seasons": 8,
        "seasons": [3624],
    }

    assert policy.is_incomplete(from_search) is True
    assert policy.is_incomplete(search_like) is True
    assert policy.is_incomplete(from_detail) is False
    assert policy.is_incomplete(from_search, Table.MOVIE_BY_ID) is False

    seasons = [{"id": 3624, "season_number": 1, "updated_at": NOW}]
    assert policy.series_usable(from_search, seasons) is False
    assert policy.series_usable(from_detail, []) is False
    assert policy.series_usable(from_detail, seasons) is True


def test_season_usable_requires_fresh_non_empty_list():
    policy = _policy()
    fresh = {"id": 1, "updated_at": NOW}
    old = {"id": 2, "updated_at": NOW - STALE_AFTER - 5}
    placeholder = {"id": 3, "guest_stars": [{"id": 4}]}

    assert policy.season_usable([]) is False
    assert policy.season_usable([fresh]) is True
    assert policy.season_usable([fresh, old]) is False
    assert policy.season_usable([fresh, placeholder]) is False


def test_episode_usable_needs_guest_stars():
    policy = _policy()
    assert policy.episode_usable(None) is False
    assert policy.episode_usable({"updated_at": NOW, "guest_stars": []}) is False
    assert policy.episode_usable({"updated_at": NOW}) is False
    assert policy.episode_usable({"updated_at": NOW, "guest_stars": [{"id": 1}]}) is True
    assert policy.episode_usable({"updated_at": NOW - STALE_AFTER - 1, "guest_stars": [{"id": 1}]}) is False


def test_response_usable_checks_body_and_age():
    policy = _policy()
    assert policy.response_usable(None) is False
    assert policy.response_usable({"updated_at": NOW}) is False
    assert policy.response_usable({"body": {"results": []}, "updated_at": NOW}) is True
    assert policy.response_usable({"body": {}, "updated_at": NOW - STALE_AFTER - 1}) is False
