"""Transcript events and routing to the lookup engine.

A speech recognizer streams two kinds of text: interim hypotheses that
change as the speaker talks, and final segments that will not change.
Only final text reaches the matcher or segmenter; interim text is kept
for display and nothing else.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Iterator

from route_recall.logging import get_logger
from route_recall.matching.phonetic import strip_separators
from route_recall.matching.scoring import RecordSnapshot
from route_recall.matching.search import RecordMatcher
from route_recall.matching.segmenter import TranscriptSegmenter
from route_recall.models.record import AddressRecord
from route_recall.models.results import MatchResult, Segment

logger = get_logger(__name__)


@dataclass(frozen=True)
class TranscriptEvent:
    """One text event from the recognizer.

    Attributes:
        text: Recognized text
        is_final: True for a settled segment, False for a live hypothesis
    """

    text: str
    is_final: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "final": self.is_final}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TranscriptEvent":
        """Create from dictionary."""
        return cls(text=str(data.get("text", "")), is_final=bool(data.get("final", True)))


def read_event_lines(lines: Iterable[str]) -> Iterator[TranscriptEvent]:
    """Parse JSON-lines transcript events, skipping blank lines.

    Raises:
        ValueError: If a line is not a JSON object
    """
    for number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        data = json.loads(line)
        if not isinstance(data, dict):
            raise ValueError(f"Line {number}: expected a JSON object")
        yield TranscriptEvent.from_dict(data)


class LookupMode(str, Enum):
    """What final text is used for."""

    SINGLE = "single"  # One street per utterance: ranked lookup
    BATCH = "batch"  # Continuous reading: segment into many streets


@dataclass
class RouterState:
    """What the caller should currently display."""

    interim_text: str = ""
    query: str = ""
    matches: list[MatchResult] = field(default_factory=list)
    segments: list[Segment] = field(default_factory=list)


class TranscriptRouter:
    """Feeds final recognizer text to the matcher or segmenter.

    A fresh record snapshot is taken for every final event, so edits made
    between utterances are picked up while a single lookup always sees a
    consistent record set.
    """

    def __init__(
        self,
        records: Callable[[], Iterable[AddressRecord]],
        matcher: RecordMatcher,
        segmenter: TranscriptSegmenter,
        mode: LookupMode = LookupMode.SINGLE,
    ):
        """Initialize the router.

        Args:
            records: Returns the current record set
            matcher: Single-query matcher
            segmenter: Continuous-transcript segmenter
            mode: Lookup mode
        """
        self.records = records
        self.matcher = matcher
        self.segmenter = segmenter
        self.mode = mode
        self.state = RouterState()

    def handle(self, event: TranscriptEvent) -> RouterState:
        """Process one recognizer event.

        Returns:
            The updated display state
        """
        if not event.is_final:
            self.state.interim_text = event.text
            return self.state

        self.state.interim_text = ""
        records = self.records()

        # Each component normalizes records with its own homophone table
        if self.mode == LookupMode.SINGLE:
            self.state.query = strip_separators(event.text)
            self.state.matches = self.matcher.search(self.state.query, self.matcher.snapshot(records))
        else:
            snapshot = RecordSnapshot.build(records, self.segmenter.normalizer)
            new_segments = self.segmenter.segment(event.text, snapshot)
            self.state.segments.extend(new_segments)
            logger.debug(
                "Batch segments appended",
                extra={"new": len(new_segments), "total": len(self.state.segments)},
            )
        return self.state

    def clear(self) -> None:
        """Reset the display state, e.g. when the user clears the list."""
        self.state = RouterState()

    def set_mode(self, mode: LookupMode) -> None:
        """Switch lookup mode; the display state starts over."""
        self.mode = mode
        self.clear()
