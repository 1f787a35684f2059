"""Tests for transcript events and routing."""

import pytest

from route_recall.matching.phonetic import HomophoneTable, PhoneticNormalizer
from route_recall.matching.search import RecordMatcher
from route_recall.matching.segmenter import TranscriptSegmenter
from route_recall.models import AddressRecord
from route_recall.transcription import (
    LookupMode,
    TranscriptEvent,
    TranscriptRouter,
    read_event_lines,
)


@pytest.fixture
def records():
    return [
        AddressRecord(street_name="文三路", route_area="西湖 1 区"),
        AddressRecord(street_name="文一西路", route_area="余杭 5 区"),
    ]


@pytest.fixture
def router(records):
    return TranscriptRouter(lambda: records, RecordMatcher(), TranscriptSegmenter())


class TestTranscriptEvent:
    """Tests for TranscriptEvent."""

    def test_from_dict(self):
        """Test parsing an event dictionary."""
        event = TranscriptEvent.from_dict({"text": "文三路", "final": False})

        assert event.text == "文三路"
        assert event.is_final is False

    def test_final_by_default(self):
        """Test events without a flag are final."""
        assert TranscriptEvent.from_dict({"text": "x"}).is_final is True

    def test_to_dict(self):
        """Test serializing an event."""
        assert TranscriptEvent("a", False).to_dict() == {"text": "a", "final": False}


class TestReadEventLines:
    """Tests for read_event_lines."""

    def test_parses_lines(self):
        """Test JSON lines become events and blank lines are skipped."""
        lines = ['{"text": "文三", "final": false}', "", '{"text": "文三路"}']
        events = list(read_event_lines(lines))

        assert events == [TranscriptEvent("文三", False), TranscriptEvent("文三路", True)]

    def test_rejects_non_object(self):
        """Test a line that is not an object is an error."""
        with pytest.raises(ValueError):
            list(read_event_lines(["[1, 2]"]))

    def test_rejects_bad_json(self):
        """Test malformed JSON is an error."""
        with pytest.raises(ValueError):
            list(read_event_lines(["{oops"]))


class TestTranscriptRouter:
    """Tests for TranscriptRouter."""

    def test_interim_is_display_only(self, router):
        """Test interim text never triggers a lookup."""
        state = router.handle(TranscriptEvent("文三路", is_final=False))

        assert state.interim_text == "文三路"
        assert state.matches == []
        assert state.segments == []

    def test_final_single_lookup(self, router):
        """Test final text runs the matcher in single mode."""
        router.handle(TranscriptEvent("文三", is_final=False))
        state = router.handle(TranscriptEvent("文三陆。"))

        assert state.interim_text == ""
        assert state.query == "文三陆"
        assert state.matches[0].record.street_name == "文三路"

    def test_single_replaces_matches(self, router):
        """Test each final utterance replaces the previous results."""
        router.handle(TranscriptEvent("文三路"))
        state = router.handle(TranscriptEvent("文一西路"))

        assert state.matches[0].record.street_name == "文一西路"

    def test_batch_appends_segments(self, records):
        """Test batch mode accumulates segments across utterances."""
        router = TranscriptRouter(
            lambda: records, RecordMatcher(), TranscriptSegmenter(), LookupMode.BATCH
        )

        router.handle(TranscriptEvent("文三路"))
        state = router.handle(TranscriptEvent("文一西路"))

        assert [s.record.street_name for s in state.segments] == ["文三路", "文一西路"]
        assert state.matches == []

    def test_sees_new_records(self, records):
        """Test records added between utterances are found."""
        live = list(records)
        router = TranscriptRouter(lambda: live, RecordMatcher(), TranscriptSegmenter())

        assert router.handle(TranscriptEvent("延安路")).matches == []

        live.append(AddressRecord(street_name="延安路", route_area="上城 1 区"))

        assert router.handle(TranscriptEvent("延安路")).matches[0].route_area == "上城 1 区"

    def test_clear_and_set_mode(self, router):
        """Test clearing and switching mode reset the display state."""
        router.handle(TranscriptEvent("文三路"))
        router.clear()
        assert router.state.matches == []

        router.handle(TranscriptEvent("文三路"))
        router.set_mode(LookupMode.BATCH)

        assert router.mode == LookupMode.BATCH
        assert router.state.query == ""

    def test_batch_uses_segmenter_table(self):
        """Test batch lookups normalize records with the segmenter's homophone table."""
        records = [AddressRecord(street_name="莫干山路", route_area="拱墅 1 区")]
        segmenter = TranscriptSegmenter(PhoneticNormalizer(HomophoneTable.from_mapping({"路": ["炉"]})))
        router = TranscriptRouter(lambda: records, RecordMatcher(), segmenter, LookupMode.BATCH)

        state = router.handle(TranscriptEvent("莫干山炉"))

        assert len(state.segments) == 1
        assert state.segments[0].is_exact
        assert state.segments[0].score == 100.0
