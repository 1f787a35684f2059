"""Transient result types.

None of these are persisted: they are produced per call by the matcher,
the segmenter and the quiz builder, and rendered by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from route_recall.models.record import AddressRecord


@dataclass
class MatchResult:
    """An address record with the confidence it matched a query.

    Attributes:
        record: The matched record
        score: Confidence in [0, 100]
        matched_field: Which record field produced the score ("street" or "company")
    """

    record: AddressRecord
    score: float
    matched_field: str = "street"

    @property
    def route_area(self) -> str:
        return self.record.route_area

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.record.id,
            "street_name": self.record.street_name,
            "route_area": self.record.route_area,
            "company_name": self.record.company_name,
            "score": round(self.score, 2),
            "matched_field": self.matched_field,
        }


@dataclass
class Segment:
    """A contiguous span of a transcript, matched to one record or none.

    Attributes:
        text: The span text, taken from the normalized transcript
        record: The matched record, or None for unmatched text
        score: Match confidence (100 for exact, 0 when unmatched)
    """

    text: str
    record: AddressRecord | None = None
    score: float = 0.0

    @property
    def is_match(self) -> bool:
        return self.record is not None

    @property
    def is_exact(self) -> bool:
        """Whether the span matched a record without fuzzy correction."""
        return self.record is not None and self.score >= 100

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "text": self.text,
            "record_id": self.record.id if self.record else None,
            "street_name": self.record.street_name if self.record else None,
            "route_area": self.record.route_area if self.record else None,
            "score": round(self.score, 2),
        }


@dataclass(frozen=True)
class QuizQuestion:
    """A multiple-choice question about one record's zone.

    Attributes:
        record: The record being asked about
        options: Exactly four zone labels in display order, one of them correct
    """

    record: AddressRecord
    options: tuple[str, ...]

    @property
    def correct_answer(self) -> str:
        return self.record.route_area

    def is_correct(self, option: str) -> bool:
        """Check an answer against the record's zone."""
        return option == self.record.route_area


@dataclass
class QuizResult:
    """Outcome of a finished quiz session.

    Attributes:
        total: Number of questions answered
        correct: Number answered correctly
        wrong_records: Records answered incorrectly, in answer order
    """

    total: int = 0
    correct: int = 0
    wrong_records: list[AddressRecord] = field(default_factory=list)

    @property
    def percentage(self) -> int:
        """Correct answers as a rounded percentage (0 for an empty session)."""
        if self.total == 0:
            return 0
        return round(self.correct / self.total * 100)
