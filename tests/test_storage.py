"""Tests for record stores and atomic file writes."""

import json

import pytest

from route_recall.errors import StorageError
from route_recall.models import AddressRecord
from route_recall.storage import (
    InMemoryRecordStore,
    JsonRecordStore,
    RecordStore,
    atomic_write,
    atomic_write_json,
    read_json,
)


def make_record(record_id, street="文三路", area="西湖 1 区"):
    return AddressRecord(id=record_id, street_name=street, route_area=area)


class TestAtomicWrite:
    """Tests for atomic_write and friends."""

    def test_write_and_read(self, tmp_path):
        """Test JSON round trip keeps Chinese text readable."""
        path = tmp_path / "nested" / "data.json"
        atomic_write_json(path, {"street": "文三路"})

        assert read_json(path) == {"street": "文三路"}
        assert "文三路" in path.read_text(encoding="utf-8")

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        """Test replacing a file leaves only the target behind."""
        path = tmp_path / "data.txt"
        atomic_write(path, "one")
        atomic_write(path, "two")

        assert path.read_text() == "two"
        assert [p.name for p in tmp_path.iterdir()] == ["data.txt"]

    def test_read_missing(self, tmp_path):
        """Test reading a missing file raises StorageError."""
        with pytest.raises(StorageError):
            read_json(tmp_path / "missing.json")

    def test_read_invalid(self, tmp_path):
        """Test reading malformed JSON raises StorageError."""
        path = tmp_path / "bad.json"
        path.write_text("{not json")

        with pytest.raises(StorageError):
            read_json(path)


class TestInMemoryRecordStore:
    """Tests for InMemoryRecordStore."""

    def test_protocol(self):
        """Test the store satisfies the RecordStore protocol."""
        assert isinstance(InMemoryRecordStore(), RecordStore)

    def test_crud(self):
        """Test put, get, get_all and delete."""
        store = InMemoryRecordStore()
        store.put(make_record("a"))
        store.put_many([make_record("b"), make_record("c")])

        assert store.get("a").id == "a"
        assert [r.id for r in store.get_all()] == ["a", "b", "c"]
        assert store.delete("b") is True
        assert store.delete("b") is False
        assert len(store) == 2

    def test_returns_copies(self):
        """Test callers cannot mutate stored records."""
        store = InMemoryRecordStore([make_record("a")])

        record = store.get("a")
        record.failure_count = 9

        assert store.get("a").failure_count == 0

    def test_get_missing(self):
        """Test a missing id returns None."""
        assert InMemoryRecordStore().get("nope") is None

    def test_update_many(self):
        """Test changes apply to the stored records and unknown ids are skipped."""
        store = InMemoryRecordStore([make_record("a"), make_record("b")])

        updated = store.update_many(
            {
                "b": lambda r: r.model_copy(update={"failure_count": r.failure_count + 1}),
                "gone": lambda r: r,
            }
        )

        assert [r.id for r in updated] == ["b"]
        assert store.get("b").failure_count == 1
        assert store.get("a").failure_count == 0


class TestJsonRecordStore:
    """Tests for JsonRecordStore."""

    def test_protocol(self, tmp_path):
        """Test the store satisfies the RecordStore protocol."""
        assert isinstance(JsonRecordStore(tmp_path / "r.json"), RecordStore)

    def test_missing_file_is_empty(self, tmp_path):
        """Test a store without a file has no records."""
        store = JsonRecordStore(tmp_path / "records.json")

        assert store.get_all() == []
        assert store.exists() is False

    def test_persists_across_instances(self, tmp_path):
        """Test records survive reopening the store."""
        path = tmp_path / "records.json"
        JsonRecordStore(path).put_many([make_record("a"), make_record("b", "文一西路")])

        reopened = JsonRecordStore(path)

        assert [r.id for r in reopened.get_all()] == ["a", "b"]
        assert reopened.get("b").street_name == "文一西路"

    def test_file_layout(self, tmp_path):
        """Test the file holds a version and a record list."""
        path = tmp_path / "records.json"
        JsonRecordStore(path).put(make_record("a"))

        data = json.loads(path.read_text(encoding="utf-8"))

        assert data["version"] == 1
        assert data["records"][0]["street_name"] == "文三路"

    def test_update_many(self, tmp_path):
        """Test changes are written back in one pass."""
        store = JsonRecordStore(tmp_path / "records.json")
        store.put_many([make_record("a"), make_record("b")])

        updated = store.update_many({"a": lambda r: r.model_copy(update={"route_area": "余杭 5 区"})})

        assert [r.route_area for r in updated] == ["余杭 5 区"]
        assert JsonRecordStore(store.path).get("a").route_area == "余杭 5 区"

    def test_update_many_unknown_id(self, tmp_path):
        """Test an update for a missing id writes nothing."""
        store = JsonRecordStore(tmp_path / "records.json")

        assert store.update_many({"nope": lambda r: r}) == []
        assert store.exists() is False

    def test_update_in_place(self, tmp_path):
        """Test putting an existing id replaces it."""
        store = JsonRecordStore(tmp_path / "records.json")
        store.put(make_record("a"))
        store.put(make_record("a", area="余杭 5 区"))

        assert len(store) == 1
        assert store.get("a").route_area == "余杭 5 区"

    def test_delete(self, tmp_path):
        """Test deleting records."""
        store = JsonRecordStore(tmp_path / "records.json")
        store.put(make_record("a"))

        assert store.delete("a") is True
        assert store.delete("a") is False
        assert store.get_all() == []

    def test_corrupt_layout(self, tmp_path):
        """Test an unexpected layout raises StorageError."""
        path = tmp_path / "records.json"
        path.write_text("[]")

        with pytest.raises(StorageError):
            JsonRecordStore(path).get_all()

    def test_invalid_record(self, tmp_path):
        """Test a record failing validation raises StorageError."""
        path = tmp_path / "records.json"
        path.write_text(json.dumps({"version": 1, "records": [{"id": "x", "failure_count": -1}]}))

        with pytest.raises(StorageError):
            JsonRecordStore(path).get_all()
