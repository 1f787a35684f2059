"""Similarity scoring between a query and address records.

Scores are bounded to [0, 100]. Rules are checked in priority order and
the first one that applies decides the score:

1. Canonical text equal                     -> 100
2. One canonical text contains the other    -> 80..90 by overlap ratio
3. Phonetic keys equal                      -> 95
4. Phonetic key similarity above 0.8        -> 70 + similarity * 20
5. Anything else                            -> 0

Canonical text is compared with separators removed, so "文三 路" and
"文三路" are the same text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

from route_recall.matching.phonetic import (
    NormalizedText,
    PhoneticNormalizer,
    key_similarity,
    strip_separators,
)
from route_recall.models.record import AddressRecord

EXACT_SCORE = 100.0
PHONETIC_EXACT_SCORE = 95.0
SUBSTRING_BASE_SCORE = 80.0
SUBSTRING_SPAN = 10.0
FUZZY_BASE_SCORE = 70.0
FUZZY_SPAN = 20.0
FUZZY_MIN_SIMILARITY = 0.8


def fuzzy_score(similarity: float) -> float:
    """Score for a phonetic key similarity that passed the fuzzy threshold."""
    return FUZZY_BASE_SCORE + similarity * FUZZY_SPAN


def score_forms(
    query_compact: str,
    query_key: str,
    candidate_compact: str,
    candidate_key: str,
) -> float:
    """Score already-normalized query and candidate forms.

    Args:
        query_compact: Query canonical text without separators
        query_key: Query phonetic key
        candidate_compact: Candidate canonical text without separators
        candidate_key: Candidate phonetic key

    Returns:
        Confidence in [0, 100]
    """
    if not query_compact or not candidate_compact:
        return 0.0

    if query_compact == candidate_compact:
        return EXACT_SCORE

    if query_compact in candidate_compact or candidate_compact in query_compact:
        shorter, longer = sorted((len(query_compact), len(candidate_compact)))
        return SUBSTRING_BASE_SCORE + SUBSTRING_SPAN * (shorter / longer)

    if query_key and query_key == candidate_key:
        return PHONETIC_EXACT_SCORE

    similarity = key_similarity(query_key, candidate_key)
    if similarity > FUZZY_MIN_SIMILARITY:
        return fuzzy_score(similarity)

    return 0.0


@dataclass(frozen=True)
class IndexedRecord:
    """A record with its normalized forms precomputed.

    Attributes:
        record: The address record
        position: Index of the record in the snapshot it was built from
        compact: Canonical street name without separators
        key: Phonetic key of the street name
        company_compact: Canonical company name without separators ("" if none)
        company_key: Phonetic key of the company name
    """

    record: AddressRecord
    position: int
    compact: str
    key: str
    company_compact: str = ""
    company_key: str = ""

    @property
    def name_length(self) -> int:
        return len(self.compact)


class RecordSnapshot:
    """Read-only view of a record set, normalized once for matching.

    The matcher and the segmenter only ever read a snapshot, so a snapshot
    taken from the store can be shared by concurrent lookups while review
    writes go to the store.
    """

    def __init__(self, entries: Iterable[IndexedRecord]):
        self.entries: tuple[IndexedRecord, ...] = tuple(entries)
        self._by_compact: dict[str, list[IndexedRecord]] = {}
        for entry in self.entries:
            if entry.compact:
                self._by_compact.setdefault(entry.compact, []).append(entry)

    @classmethod
    def build(
        cls,
        records: Iterable[AddressRecord],
        normalizer: PhoneticNormalizer,
    ) -> "RecordSnapshot":
        """Normalize every record once.

        A record's stored phonetic key is used when present; otherwise the
        key is derived from its street name.
        """
        entries = []
        for position, record in enumerate(records):
            street = normalizer.normalize(record.street_name)
            key = strip_separators(record.canonical_pinyin).lower() or street.phonetic_key
            company = normalizer.normalize(record.company_name)
            entries.append(
                IndexedRecord(
                    record=record,
                    position=position,
                    compact=street.compact,
                    key=key,
                    company_compact=company.compact,
                    company_key=company.phonetic_key,
                )
            )
        return cls(entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[IndexedRecord]:
        return iter(self.entries)

    def exact(self, compact: str) -> list[IndexedRecord]:
        """Records whose canonical street name equals the given text."""
        return self._by_compact.get(compact, [])

    @property
    def min_name_length(self) -> int:
        return min((e.name_length for e in self.entries if e.name_length), default=0)

    @property
    def max_name_length(self) -> int:
        return max((e.name_length for e in self.entries), default=0)


class SimilarityScorer:
    """Scores queries against address records."""

    def __init__(self, normalizer: PhoneticNormalizer | None = None):
        self.normalizer = normalizer or PhoneticNormalizer()

    def score(self, query: str, record: AddressRecord) -> float:
        """Score a raw query against one record's street name.

        Args:
            query: Raw spoken or typed text
            record: Candidate record

        Returns:
            Confidence in [0, 100]; 0 for an empty query
        """
        normalized = self.normalizer.normalize(query)
        entry = RecordSnapshot.build([record], self.normalizer).entries[0]
        return score_forms(normalized.compact, normalized.phonetic_key, entry.compact, entry.key)

    def score_entry(self, query: NormalizedText, entry: IndexedRecord) -> tuple[float, str]:
        """Score a normalized query against a street and its company.

        Returns:
            Tuple of (best score, field that produced it)
        """
        compact = query.compact
        street_score = score_forms(compact, query.phonetic_key, entry.compact, entry.key)
        if street_score >= EXACT_SCORE or not entry.company_compact:
            return street_score, "street"

        company_score = score_forms(
            compact, query.phonetic_key, entry.company_compact, entry.company_key
        )
        if company_score > street_score:
            return company_score, "company"
        return street_score, "street"
