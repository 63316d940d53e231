from __future__ import annotations

from order_realtime.infrastructure.storage.watermark_store import (
    InMemoryWatermarkStore,
    JsonFileWatermarkStore,
)


def test_in_memory_store():
    store = InMemoryWatermarkStore({"a": "1"})

    store.set("b", "2")

    assert store.get("a") == "1"
    assert store.get("b") == "2"
    assert store.get("c") is None


def test_file_store_survives_reopen(tmp_path):
    path = tmp_path / "state" / "watermarks.json"
    JsonFileWatermarkStore(path).set("chat_last_seen_42", "2024-05-01T12:00:00+00:00")
    JsonFileWatermarkStore(path).set("chat_last_seen_7", "2024-05-02T12:00:00+00:00")

    reopened = JsonFileWatermarkStore(path)
    assert reopened.get("chat_last_seen_42") == "2024-05-01T12:00:00+00:00"
    assert reopened.get("chat_last_seen_7") == "2024-05-02T12:00:00+00:00"
    assert not path.with_suffix(".json.tmp").exists()


def test_file_store_missing_file(tmp_path):
    assert JsonFileWatermarkStore(tmp_path / "absent.json").get("k") is None


def test_file_store_corrupt_file_starts_empty(tmp_path, caplog):
    path = tmp_path / "watermarks.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonFileWatermarkStore(path)

    assert store.get("k") is None
    assert "corrupt" in caplog.text

    store.set("k", "v")
    assert store.get("k") == "v"


def test_file_store_ignores_non_string_values(tmp_path):
    path = tmp_path / "watermarks.json"
    path.write_text('{"k": 5}', encoding="utf-8")

    assert JsonFileWatermarkStore(path).get("k") is None
