from metaproxy.api.caching.merge import (
    coerce_id,
    ensure_placeholder,
    merge_batch,
    merge_episode,
    merge_guest_stars,
    replace_element,
    upsert_by_id,
)
from metaproxy.api.services import metrics


def test_coerce_id_accepts_ints_and_digit_strings_only():
    assert coerce_id(5) == 5
    assert coerce_id("12") == 12
    assert coerce_id(3.0) == 3
    assert coerce_id(True) is None
    assert coerce_id("abc") is None
    assert coerce_id(None) is None


def test_upsert_by_id_replaces_in_place_and_appends_new():
    items = [{"id": 1, "v": "a"}, {"id": 2, "v": "b"}]

    replaced = upsert_by_id(items, {"id": 1, "v": "A"})
    assert replaced == [{"id": 1, "v": "A"}, {"id": 2, "v": "b"}]

    appended = upsert_by_id(items, {"id": 3, "v": "c"})
    assert [i["id"] for i in appended] == [1, 2, 3]

    # no muta la lista original
    assert items[0]["v"] == "a"


def test_merge_episode_carries_guest_stars_when_incoming_has_none():
    existing = {"id": 10, "name": "old", "guest_stars": [{"id": 7, "name": "Guest"}]}
    incoming = {"id": 10, "name": "new"}

    merged = merge_episode(existing, incoming)

    assert merged["name"] == "new"
    assert merged["guest_stars"] == [{"id": 7, "name": "Guest"}]


def test_merge_episode_upserts_explicit_guest_stars_by_id():
    existing = {"id": 10, "guest_stars": [{"id": 7, "name": "Old"}, {"id": 8, "name": "Kept"}]}
    incoming = {"id": 10, "guest_stars": [{"id": 7, "name": "Renamed"}, {"id": 9, "name": "New"}]}

    merged = merge_episode(existing, incoming)

    assert [g["id"] for g in merged["guest_stars"]] == [7, 8, 9]
    assert merged["guest_stars"][0]["name"] == "Renamed"


def test_merge_episode_without_existing_starts_empty():
    assert merge_episode(None, {"id": 1})["guest_stars"] == []


def test_merge_guest_stars_skips_malformed():
    before = metrics.snapshot()["merge_skipped_total"]

    out = merge_guest_stars([], [{"id": 1}, "junk", {"name": "no id"}])

    assert out == [{"id": 1}]
    assert metrics.snapshot()["merge_skipped_total"] == before + 2


def test_ensure_placeholder_inserts_once():
    items, idx = ensure_placeholder([], {"id": 5, "guest_stars": []})
    assert idx == 0 and items == [{"id": 5, "guest_stars": []}]

    again, idx2 = ensure_placeholder(items, {"id": 5, "guest_stars": []})
    assert idx2 == 0 and len(again) == 1


def test_merge_batch_applies_valid_elements_and_skips_bad_ones():
    current = [{"id": 1, "name": "one"}, {"id": 2, "name": "two"}]
    incoming = [{"id": 2, "name": "TWO"}, None, {"name": "missing id"}, {"id": 3, "name": "three"}]

    items, written = merge_batch(
        current,
        incoming,
        merge=replace_element,
        stamp=lambda e: {**e, "updated_at": 100},
    )

    assert [i["id"] for i in items] == [1, 2, 3]
    assert items[0] == {"id": 1, "name": "one"}
    assert items[1] == {"id": 2, "name": "TWO", "updated_at": 100}
    assert [w["id"] for w in written] == [2, 3]
