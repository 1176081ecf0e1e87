from __future__ import annotations

from savings_planner.services.storage import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    read_json,
    write_json,
)


def test_file_store_round_trip_and_overwrite(tmp_path) -> None:
    store = JsonFileKeyValueStore(tmp_path / "kv")

    assert store.get("savings-goals") is None

    store.set("savings-goals", "[1]")
    store.set("savings-goals", "[1, 2]")

    assert store.get("savings-goals") == "[1, 2]"
    # Only the final file remains; temp files are swapped in, not left behind.
    assert sorted(p.name for p in (tmp_path / "kv").iterdir()) == ["savings-goals.json"]


def test_file_store_delete_is_idempotent(tmp_path) -> None:
    store = JsonFileKeyValueStore(tmp_path)
    store.set("exchangeRateCache", "{}")

    store.delete("exchangeRateCache")
    store.delete("exchangeRateCache")

    assert store.get("exchangeRateCache") is None


def test_read_json_treats_missing_and_malformed_as_absent() -> None:
    store = InMemoryKeyValueStore({"bad": "{oops", "good": '{"a": 1}'})

    assert read_json(store, "missing") is None
    assert read_json(store, "bad") is None
    assert read_json(store, "good") == {"a": 1}


def test_write_json_overwrites_value() -> None:
    store = InMemoryKeyValueStore()

    write_json(store, "k", {"rate": 1})
    write_json(store, "k", {"rate": 2})

    assert read_json(store, "k") == {"rate": 2}
