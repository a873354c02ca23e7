"""Tests for upgradelens-store implementations."""

from __future__ import annotations

import pytest

from upgradelens_store.base import StoreError
from upgradelens_store.memory import MemoryStore
from upgradelens_store.sqlite import SQLiteStore


def _checkpoint(processed=1):
    return {
        "batch_id": "b1",
        "current_module": "web/modules/custom/example",
        "files_processed": processed,
        "total_files": 3,
        "errors": {},
        "results": {"a.php": {"issues": [], "warnings": []}},
    }


# ---------------------------------------------------------------------------
# MemoryStore
# ---------------------------------------------------------------------------


class TestMemoryStore:
    def test_get_missing_returns_default(self):
        store = MemoryStore()
        assert store.get("nope") is None
        assert store.get("nope", {}) == {}

    def test_set_and_get(self):
        store = MemoryStore()
        store.set("upgradelens.batch.b1", _checkpoint())
        assert store.get("upgradelens.batch.b1")["files_processed"] == 1

    def test_values_are_copies(self):
        """Mutating a returned value must not change what is stored."""
        store = MemoryStore()
        store.set("k", {"n": 1})
        value = store.get("k")
        value["n"] = 99
        assert store.get("k") == {"n": 1}

    def test_tuples_come_back_as_lists(self):
        store = MemoryStore()
        store.set("k", (1, 2))
        assert store.get("k") == [1, 2]

    def test_delete_missing_key_does_not_raise(self):
        MemoryStore().delete("missing")

    def test_unserialisable_value_raises_store_error(self):
        with pytest.raises(StoreError):
            MemoryStore().set("k", object())

    def test_keys_filtered_by_prefix(self):
        store = MemoryStore()
        store.set("upgradelens.batch.b2", 1)
        store.set("upgradelens.batch.b1", 1)
        store.set("other", 1)
        assert store.keys("upgradelens.batch.") == ["upgradelens.batch.b1", "upgradelens.batch.b2"]


# ---------------------------------------------------------------------------
# SQLiteStore
# ---------------------------------------------------------------------------


class TestSQLiteStore:
    def test_set_and_get(self, tmp_path):
        store = SQLiteStore(db_path=str(tmp_path / "test.db"))
        store.set("upgradelens.batch.b1", _checkpoint())

        value = store.get("upgradelens.batch.b1")
        assert value["batch_id"] == "b1"
        assert value["results"]["a.php"]["issues"] == []
        store.close()

    def test_set_overwrites(self, tmp_path):
        store = SQLiteStore(db_path=str(tmp_path / "test.db"))
        store.set("k", _checkpoint(processed=1))
        store.set("k", _checkpoint(processed=2))
        assert store.get("k")["files_processed"] == 2
        store.close()

    def test_missing_key_returns_default(self, tmp_path):
        store = SQLiteStore(db_path=str(tmp_path / "test.db"))
        assert store.get("nope", "fallback") == "fallback"
        store.close()

    def test_delete(self, tmp_path):
        store = SQLiteStore(db_path=str(tmp_path / "test.db"))
        store.set("k", 1)
        store.delete("k")
        assert store.get("k") is None
        store.delete("k")  # second delete is a no-op
        store.close()

    def test_keys_prefix_is_literal(self, tmp_path):
        """Underscores in the prefix must not act as SQL wildcards."""
        store = SQLiteStore(db_path=str(tmp_path / "test.db"))
        store.set("a_b.x", 1)
        store.set("aXb.y", 1)
        assert store.keys("a_b.") == ["a_b.x"]
        store.close()

    def test_unserialisable_value_raises_store_error(self, tmp_path):
        store = SQLiteStore(db_path=str(tmp_path / "test.db"))
        with pytest.raises(StoreError):
            store.set("k", {1, 2})
        store.close()

    def test_persists_across_connections(self, tmp_path):
        """Data written by one SQLiteStore instance must be readable by another."""
        db = str(tmp_path / "shared.db")
        store1 = SQLiteStore(db_path=db)
        store1.set("upgradelens.current_batch", "b1")
        store1.close()

        store2 = SQLiteStore(db_path=db)
        assert store2.get("upgradelens.current_batch") == "b1"
        store2.close()

    def test_unopenable_path_raises_store_error(self, tmp_path):
        with pytest.raises(StoreError):
            SQLiteStore(db_path=str(tmp_path / "missing-dir" / "x.db"))
