"""Tests for street library management."""

import pytest

from route_recall.errors import RecordNotFoundError, ValidationError
from route_recall.library import DEFAULT_SEED_RECORDS, ImportEntry, RecordLibrary
from route_recall.models import AddressRecord
from route_recall.review.scheduler import ReviewScheduler
from route_recall.storage import InMemoryRecordStore


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def library(store):
    return RecordLibrary(store)


class TestAdd:
    """Tests for RecordLibrary.add."""

    def test_add(self, library, store):
        """Test a new street gets fresh review state and a phonetic key."""
        record = library.add(" 文三路 ", "西湖 1 区", company_name="华星科技")

        assert record.street_name == "文三路"
        assert record.canonical_pinyin == "wensanlu"
        assert record.review_stage == 0
        assert record.failure_count == 0
        assert record.is_in_mistake_pool is False
        assert len(record.id) == 9
        assert store.get(record.id) == record

    def test_add_pinyin_override(self, library):
        """Test a given phonetic key is kept."""
        assert library.add("文三路", "西湖 1 区", pinyin="wensan").canonical_pinyin == "wensan"

    def test_add_location(self, library):
        """Test coordinates are stored and used for the map link."""
        record = library.add("文三路", "西湖 1 区", lat=30.27, lng=120.13)

        assert record.has_location
        assert "marker" in record.map_url

    def test_add_blank_rejected(self, library):
        """Test blank street or zone is rejected."""
        with pytest.raises(ValidationError):
            library.add("  ", "西湖 1 区")
        with pytest.raises(ValidationError):
            library.add("文三路", "")


class TestEdit:
    """Tests for RecordLibrary.edit."""

    def test_edit_keeps_review_state(self, library, store):
        """Test editing the zone keeps review progress."""
        record = library.add("文三路", "西湖 1 区")
        store.put(record.model_copy(update={"review_stage": 3, "failure_count": 2}))

        updated = library.edit(record.id, route_area="西湖 2 区")

        assert updated.route_area == "西湖 2 区"
        assert updated.review_stage == 3
        assert updated.failure_count == 2

    def test_rename_recomputes_key(self, library):
        """Test renaming the street updates its phonetic key."""
        record = library.add("文三路", "西湖 1 区")
        updated = library.edit(record.id, street_name="延安路")

        assert updated.canonical_pinyin == "yananlu"

    def test_edit_missing(self, library):
        """Test editing a missing record raises."""
        with pytest.raises(RecordNotFoundError):
            library.edit("nope", route_area="A")

    def test_edit_blank_rejected(self, library):
        """Test a blank street name is rejected."""
        record = library.add("文三路", "西湖 1 区")
        with pytest.raises(ValidationError):
            library.edit(record.id, street_name=" ")


class TestMerge:
    """Tests for RecordLibrary.merge."""

    def test_adds_and_updates(self, library, store):
        """Test existing streets are updated and new ones added."""
        existing = library.add("文三路", "西湖 1 区")
        store.put(existing.model_copy(update={"failure_count": 4}))

        summary = library.merge(
            [
                ImportEntry("文三路", "西湖 9 区", company_name="华星科技"),
                ImportEntry("延安路", "上城 1 区"),
            ]
        )

        assert (summary.added, summary.updated, summary.skipped) == (1, 1, 0)
        assert summary.total == 2

        updated = store.get(existing.id)
        assert updated.route_area == "西湖 9 区"
        assert updated.company_name == "华星科技"
        assert updated.failure_count == 4
        assert len(store) == 2

    def test_keeps_review_recorded_during_import(self, library, store):
        """Test an answer recorded while rows are still being read survives the merge."""
        record = library.add("文三路", "西湖 1 区")
        scheduler = ReviewScheduler(store, clock=lambda: 1_000)

        def rows():
            yield ImportEntry("文三路", "西湖 9 区")
            scheduler.process_result(record.id, False)

        library.merge(rows())

        merged = store.get(record.id)
        assert merged.route_area == "西湖 9 区"
        assert merged.failure_count == 1
        assert merged.is_in_mistake_pool

    def test_keeps_company_when_blank(self, library, store):
        """Test a row without a company leaves the old one."""
        record = library.add("文三路", "西湖 1 区", company_name="华星科技")
        library.merge([ImportEntry("文三路", "西湖 2 区")])

        assert store.get(record.id).company_name == "华星科技"

    def test_skips_incomplete_rows(self, library, store):
        """Test rows missing street or zone are skipped and counted."""
        summary = library.merge([ImportEntry("", "西湖 1 区"), ImportEntry("文三路", " ")])

        assert summary.skipped == 2
        assert summary.total == 0
        assert len(store) == 0

    def test_duplicates_in_batch(self, library, store):
        """Test a street repeated in one import ends up once, last zone wins."""
        summary = library.merge([ImportEntry("文三路", "A"), ImportEntry("文三路", "B")])

        assert summary.added == 1
        assert summary.updated == 1
        records = store.get_all()
        assert len(records) == 1
        assert records[0].route_area == "B"


class TestSeed:
    """Tests for RecordLibrary.seed."""

    def test_seed_empty(self, library, store):
        """Test the sample streets are installed into an empty library."""
        assert library.seed() == len(DEFAULT_SEED_RECORDS)
        assert {r.street_name for r in store.get_all()} >= {"文三路", "文一西路"}

    def test_seed_non_empty(self, library):
        """Test seeding does nothing once the library has data."""
        library.add("文三路", "西湖 1 区")
        assert library.seed() == 0


class TestQueries:
    """Tests for listing, zones and stats."""

    @pytest.fixture
    def filled(self, store):
        store.put_many(
            [
                AddressRecord(id="a", street_name="文三路", route_area="西湖 1 区", created_at=1),
                AddressRecord(id="b", street_name="延安路", route_area="上城 1 区", created_at=3),
                AddressRecord(id="c", street_name="古墩路", route_area="西湖 3 区", created_at=2),
            ]
        )
        return RecordLibrary(store)

    def test_list_newest_first(self, filled):
        """Test records are listed by creation time, newest first."""
        assert [r.id for r in filled.list_records()] == ["b", "c", "a"]

    def test_filter_text(self, filled):
        """Test filtering by street or zone substring."""
        assert [r.id for r in filled.list_records("西湖")] == ["c", "a"]
        assert [r.id for r in filled.list_records("延安")] == ["b"]

    def test_filter_area(self, filled):
        """Test filtering by exact zone."""
        assert [r.id for r in filled.list_records(area="西湖 1 区")] == ["a"]

    def test_areas(self, filled):
        """Test the distinct zone list is sorted."""
        assert filled.areas() == sorted(["西湖 1 区", "上城 1 区", "西湖 3 区"])

    def test_stats(self, filled, store):
        """Test totals, due count and mistake pool size."""
        scheduler = ReviewScheduler(store, clock=lambda: 10)
        scheduler.process_result("a", False)

        stats = filled.stats(scheduler)

        assert stats.total == 3
        assert stats.areas == 3
        assert stats.due == 1
        assert stats.mistakes == 1
