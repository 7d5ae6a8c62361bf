"""
Unit tests for infrastructure/storage.py - key-value stores
"""
import pytest

from infrastructure.storage import (
    KeyValueStore,
    MemoryKeyValueStore,
    SqliteKeyValueStore,
    StorageError,
)


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemoryKeyValueStore()
    return SqliteKeyValueStore(tmp_path / "data" / "workflow.db")


def test_get_set_delete(any_store):
    assert isinstance(any_store, KeyValueStore)
    assert any_store.get("nodes") is None

    any_store.set("nodes", "[]")
    assert any_store.get("nodes") == "[]"

    any_store.set("nodes", '[{"id": "a"}]')
    assert any_store.get("nodes") == '[{"id": "a"}]'

    any_store.delete("nodes")
    assert any_store.get("nodes") is None


def test_delete_missing_key_is_noop(any_store):
    any_store.delete("never-set")


def test_sqlite_persists_across_instances(tmp_path):
    path = tmp_path / "workflow.db"
    SqliteKeyValueStore(path).set("edges", "[]")

    assert SqliteKeyValueStore(path).get("edges") == "[]"


def test_sqlite_unreadable_database_raises_storage_error(tmp_path):
    store = SqliteKeyValueStore(tmp_path / "workflow.db")
    store.db_path.write_bytes(b"this is not a database" * 100)

    with pytest.raises(StorageError):
        store.get("nodes")
    with pytest.raises(StorageError):
        store.set("nodes", "[]")
