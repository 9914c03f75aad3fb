# =============================================================================
# tests/unit/test_local_store.py
# Unit Tests for LocalStore
# =============================================================================

import threading

import pandas as pd
import pytest

from lms_core.offline import LocalStore


class TestLocalStoreKeyValue:
    """Whole-value reads and writes"""

    def test_get_missing_key_returns_default(self, store):
        """Absent keys yield the default"""
        assert store.get("lms:courses") is None
        assert store.get("lms:courses", default=[]) == []

    def test_set_replaces_whole_value(self, store):
        """A second write replaces the first entirely"""
        store.set("lms:courses", [{"id": 1}, {"id": 2}])
        store.set("lms:courses", [{"id": 3}])

        assert store.get("lms:courses") == [{"id": 3}]

    def test_unserializable_value_leaves_previous_value(self, store):
        """A value that cannot be serialized never reaches the table"""
        store.set("lms:courses", [{"id": 1}])

        with pytest.raises(TypeError):
            store.set("lms:courses", [{"id": object()}])

        assert store.get("lms:courses") == [{"id": 1}]

    def test_delete_reports_existence(self, store):
        store.set("session:token", {"token": "abc"})

        assert store.delete("session:token") is True
        assert store.delete("session:token") is False
        assert not store.has("session:token")

    def test_last_updated_tracks_writes(self, store):
        """Each key records when it was last written"""
        assert store.last_updated("lms:grades") is None

        store.set("lms:grades", [])

        assert store.last_updated("lms:grades") is not None
        assert store.has("lms:grades")


class TestLocalStorePrefixes:
    """Prefix listing, clearing and the DataFrame summary"""

    def test_keys_filters_by_prefix(self, store):
        store.set("lms:assignments", [])
        store.set("lms:assignments:3", [])
        store.set("session:token", {"token": "t"})

        assert store.keys("lms:") == ["lms:assignments", "lms:assignments:3"]
        assert store.keys("lms:assignments:") == ["lms:assignments:3"]

    def test_prefix_is_literal(self, store):
        """Underscores and percent signs are not wildcards"""
        store.set("lms:sync_queue", [])
        store.set("lms:syncXqueue", [])

        assert store.keys("lms:sync_") == ["lms:sync_queue"]

    def test_clear_prefix(self, store):
        store.set("lms:courses", [])
        store.set("lms:grades", [])
        store.set("session:token", {"token": "t"})

        removed = store.clear("lms:")

        assert removed == 2
        assert store.keys() == ["session:token"]

    def test_to_dataframe(self, store):
        """Summary frame has key, size and timestamp columns"""
        store.set("lms:courses", [{"id": 1}])
        store.set("lms:grades", [])

        df = store.to_dataframe("lms:")

        assert list(df.columns) == ["key", "size", "updated_at"]
        assert df["key"].tolist() == ["lms:courses", "lms:grades"]
        assert pd.api.types.is_datetime64_any_dtype(df["updated_at"])

    def test_to_dataframe_empty(self, store):
        df = store.to_dataframe("lms:")

        assert df.empty
        assert list(df.columns) == ["key", "size", "updated_at"]


class TestLocalStorePersistence:
    """File-backed stores survive reopening"""

    def test_values_survive_reopen(self, tmp_path):
        path = tmp_path / "cache" / "lms.db"

        first = LocalStore(path)
        first.set("lms:courses", [{"id": 1, "title": "Biology"}])
        first.close()

        second = LocalStore(path)
        assert second.get("lms:courses") == [{"id": 1, "title": "Biology"}]
        second.close()

    def test_concurrent_writers_never_interleave(self, store):
        """Parallel whole-value writes leave one complete value"""
        values = [[{"id": n, "writer": n}] * 20 for n in range(8)]

        threads = [threading.Thread(target=store.set, args=("lms:courses", v)) for v in values]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.get("lms:courses") in values
