"""Single-query lookup of address records.

Ranks every record against one spoken or typed query and returns the
best matches. Side-effect free, so it is safe to call on every keystroke.
"""

from __future__ import annotations

from typing import Iterable

from route_recall.logging import get_logger
from route_recall.matching.phonetic import PhoneticNormalizer
from route_recall.matching.scoring import RecordSnapshot, SimilarityScorer
from route_recall.models.record import AddressRecord
from route_recall.models.results import MatchResult

logger = get_logger(__name__)

DEFAULT_SCORE_FLOOR = 60.0
DEFAULT_RESULT_LIMIT = 5


class RecordMatcher:
    """Finds the records that best match a single query.

    Attributes:
        scorer: Similarity scorer (owns the normalizer)
        score_floor: Scores at or below this are not matches
        limit: Maximum number of results
    """

    def __init__(
        self,
        normalizer: PhoneticNormalizer | None = None,
        score_floor: float = DEFAULT_SCORE_FLOOR,
        limit: int = DEFAULT_RESULT_LIMIT,
    ):
        self.scorer = SimilarityScorer(normalizer)
        self.score_floor = score_floor
        self.limit = limit

    @property
    def normalizer(self) -> PhoneticNormalizer:
        return self.scorer.normalizer

    def snapshot(self, records: Iterable[AddressRecord]) -> RecordSnapshot:
        """Normalize a record set for repeated searches."""
        return RecordSnapshot.build(records, self.normalizer)

    def search(
        self,
        query: str | None,
        records: Iterable[AddressRecord] | RecordSnapshot,
    ) -> list[MatchResult]:
        """Rank records against a query.

        Args:
            query: Raw query text
            records: Records to search, or a prebuilt snapshot of them

        Returns:
            Matches scoring above the floor, best first, ties in record
            order, at most `limit` of them. Empty for a blank query.
        """
        normalized = self.normalizer.normalize(query)
        if not normalized.compact:
            return []

        snapshot = records if isinstance(records, RecordSnapshot) else self.snapshot(records)

        scored = []
        for entry in snapshot:
            score, matched_field = self.scorer.score_entry(normalized, entry)
            if score > self.score_floor:
                scored.append(MatchResult(entry.record, score, matched_field))

        # sorted() is stable, so equal scores keep record order
        scored = sorted(scored, key=lambda m: m.score, reverse=True)

        logger.debug(
            "Search complete",
            extra={"query": normalized.canonical, "candidates": len(snapshot), "matches": len(scored)},
        )
        return scored[: self.limit]
