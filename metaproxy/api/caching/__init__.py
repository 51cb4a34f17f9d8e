from __future__ import annotations

from metaproxy.api.caching.backend import BackendError, KeyValueBackend, RedisBackend
from metaproxy.api.caching.freshness import FreshnessPolicy
from metaproxy.api.caching.keys import derive_key
from metaproxy.api.caching.record_store import RecordStore, StoreRead
from metaproxy.api.caching.response_cache import ResponseCache
from metaproxy.api.caching.tables import ChannelKey, SeasonKey, Table, TmdbKey

__all__ = [
    "BackendError",
    "ChannelKey",
    "FreshnessPolicy",
    "KeyValueBackend",
    "RecordStore",
    "RedisBackend",
    "ResponseCache",
    "SeasonKey",
    "StoreRead",
    "Table",
    "TmdbKey",
    "derive_key",
]
