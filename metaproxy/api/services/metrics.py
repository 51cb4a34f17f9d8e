from __future__ import annotations

from threading import RLock

_LOCK = RLock()
_METRICS: dict[str, int] = {
    "http_requests_total": 0,
    "http_errors_5xx_total": 0,
    "record_hit_total": 0,
    "record_miss_total": 0,
    "record_stale_total": 0,
    "response_cache_hit_total": 0,
    "response_cache_miss_total": 0,
    "store_read_errors_total": 0,
    "store_write_errors_total": 0,
    "store_decode_errors_total": 0,
    "store_write_skipped_total": 0,
    "merge_skipped_total": 0,
    "upstream_requests_total": 0,
    "upstream_errors_total": 0,
    "stream_urls_signed_total": 0,
}


def inc(name: str, value: int = 1) -> None:
    with _LOCK:
        _METRICS[name] = _METRICS.get(name, 0) + value


def snapshot() -> dict[str, int]:
    with _LOCK:
        return dict(_METRICS)


def render_prometheus() -> str:
    with _LOCK:
        lines: list[str] = []
        for k, v in sorted(_METRICS.items()):
            lines.append(f"# TYPE {k} counter")
            lines.append(f"{k} {v}")
        return "\n".join(lines) + "\n"
