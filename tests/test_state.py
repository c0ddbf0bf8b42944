import pytest

from tracker.common.exceptions import StorageError
from tracker.common.state import KeyValueStore


def test_write_then_read(store):
    store.write("heartbeat", {"count": 3})

    data = store.read_fresh("heartbeat")
    assert data["count"] == 3
    assert "_updated_at" in data


def test_missing_key_reads_empty(store):
    assert store.read("nothing") == {}
    assert store.get_value("nothing", "fallback") == "fallback"
    assert store.get_bool("nothing") is False


def test_corrupt_file_reads_empty(store):
    store.write("broken", {"a": 1})
    (store.state_dir / "broken.json").write_text("{not json")

    assert store.read_fresh("broken") == {}


def test_typed_values(store):
    store.set_bool("tracking_enabled", True)
    store.set_string("device", "phone-1")
    store.set_value("pending", [1, 2, 3])

    assert store.get_bool("tracking_enabled") is True
    assert store.get_string("device") == "phone-1"
    assert store.get_value("pending") == [1, 2, 3]
    # Wrong type falls back to the default
    assert store.get_bool("device", default=False) is False


def test_update_merges(store):
    store.write("health", {"status": "starting", "is_healthy": False})
    merged = store.update("health", {"status": "running"})

    assert merged["status"] == "running"
    assert merged["is_healthy"] is False


def test_delete_and_list_keys(store):
    store.set_value("a", 1)
    store.set_value("b", 2)
    assert sorted(store.list_keys()) == ["a", "b"]

    assert store.delete("a") is True
    assert store.delete("a") is False
    assert store.list_keys() == ["b"]
    assert store.get_age("b") is not None
    assert store.get_age("a") is None


def test_unserializable_value_raises_storage_error(store):
    with pytest.raises(StorageError):
        store.set_value("bad", object())


def test_instances_are_independent(tmp_path):
    first = KeyValueStore(tmp_path / "one")
    second = KeyValueStore(tmp_path / "two")

    first.set_bool("flag", True)

    assert second.get_bool("flag") is False
