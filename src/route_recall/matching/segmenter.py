"""Continuous-transcript segmentation.

A courier reading out a stack of parcels produces one long run of text
("文三路文一西路延安路..."). The segmenter carves it into consecutive
spans, each matched to at most one record.

Greedy longest match, left to right over the normalized transcript:
at each position try windows from the longest record name down to the
shortest. The longest window that matches wins, so a shorter street never
cuts off a longer one that contains it. Fuzzy matching compares phonetic
keys under a tight edit budget that grows with name length. Text that
matches nothing is collected into unmatched spans.
"""

from __future__ import annotations

from typing import Iterable

from route_recall.logging import get_logger
from route_recall.matching.phonetic import (
    PhoneticNormalizer,
    is_separator,
    levenshtein_distance,
)
from route_recall.matching.scoring import (
    EXACT_SCORE,
    FUZZY_MIN_SIMILARITY,
    IndexedRecord,
    RecordSnapshot,
    fuzzy_score,
)
from route_recall.models.record import AddressRecord
from route_recall.models.results import Segment

logger = get_logger(__name__)

MIN_WINDOW = 2
MAX_LENGTH_DIFFERENCE = 2


def allowed_distance(name_length: int) -> int:
    """Phonetic edit budget for fuzzy-matching a name of this many characters.

    Two-character names have too little headroom and must match exactly.
    """
    if name_length >= 5:
        return 2
    if name_length >= 3:
        return 1
    return -1


class TranscriptSegmenter:
    """Splits a continuous transcript into record matches."""

    def __init__(self, normalizer: PhoneticNormalizer | None = None):
        self.normalizer = normalizer or PhoneticNormalizer()

    def segment(
        self,
        transcript: str | None,
        records: Iterable[AddressRecord] | RecordSnapshot,
    ) -> list[Segment]:
        """Segment a transcript against a record set.

        Args:
            transcript: Raw transcript text
            records: Records to match, or a prebuilt snapshot of them

        Returns:
            Ordered segments whose texts concatenate to the canonical
            transcript. Empty for an empty transcript.
        """
        text = self.normalizer.canonicalize(transcript)
        if not text:
            return []

        snapshot = (
            records
            if isinstance(records, RecordSnapshot)
            else RecordSnapshot.build(records, self.normalizer)
        )
        max_window = snapshot.max_name_length
        min_window = max(MIN_WINDOW, snapshot.min_name_length)
        if max_window < min_window:
            return [Segment(text)]

        by_length: dict[int, list[IndexedRecord]] = {}
        for entry in snapshot:
            by_length.setdefault(entry.name_length, []).append(entry)

        key_cache: dict[str, str] = {}
        segments: list[Segment] = []
        pending: list[str] = []

        def flush() -> None:
            if pending:
                segments.append(Segment("".join(pending)))
                pending.clear()

        i = 0
        length = len(text)
        while i < length:
            if is_separator(text[i]):
                pending.append(text[i])
                i += 1
                continue

            # Windows never cross a separator
            run_end = i
            while run_end < length and not is_separator(text[run_end]):
                run_end += 1

            found = self._match_at(
                text, i, min(max_window, run_end - i), min_window, snapshot, by_length, key_cache
            )
            if found is None:
                pending.append(text[i])
                i += 1
                continue

            chunk, entry, score = found
            flush()
            segments.append(Segment(chunk, entry.record, score))
            i += len(chunk)

        flush()

        logger.debug(
            "Segmented transcript",
            extra={
                "characters": length,
                "segments": len(segments),
                "matched": sum(1 for s in segments if s.is_match),
            },
        )
        return segments

    def _match_at(
        self,
        text: str,
        start: int,
        max_window: int,
        min_window: int,
        snapshot: RecordSnapshot,
        by_length: dict[int, list[IndexedRecord]],
        key_cache: dict[str, str],
    ) -> tuple[str, IndexedRecord, float] | None:
        """Find the match starting at `start`, if any.

        The longest window with a qualifying candidate wins. Once a window
        has a fuzzy candidate, shorter windows are only checked for exact
        matches, and an exact match there replaces the fuzzy one only when
        its name is at least as long.

        Returns:
            Tuple of (chunk, entry, score), or None
        """
        fuzzy: tuple[str, IndexedRecord, float] | None = None

        for size in range(max_window, min_window - 1, -1):
            chunk = text[start:start + size]

            exact = snapshot.exact(chunk)
            if exact:
                entry = exact[0]
                if fuzzy is not None and fuzzy[1].name_length > entry.name_length:
                    return fuzzy
                return chunk, entry, EXACT_SCORE

            if fuzzy is None:
                fuzzy = self._best_fuzzy(chunk, by_length, key_cache)

        return fuzzy

    def _best_fuzzy(
        self,
        chunk: str,
        by_length: dict[int, list[IndexedRecord]],
        key_cache: dict[str, str],
    ) -> tuple[str, IndexedRecord, float] | None:
        chunk_key = key_cache.get(chunk)
        if chunk_key is None:
            chunk_key = self.normalizer.phonetic_key(chunk)
            key_cache[chunk] = chunk_key
        if not chunk_key:
            return None

        size = len(chunk)
        best: tuple[float, int, int] | None = None
        best_match: tuple[str, IndexedRecord, float] | None = None

        for name_length in range(size - MAX_LENGTH_DIFFERENCE, size + MAX_LENGTH_DIFFERENCE + 1):
            budget = allowed_distance(name_length)
            if budget < 0:
                continue
            for entry in by_length.get(name_length, ()):
                if not entry.key or abs(len(entry.key) - len(chunk_key)) > budget:
                    continue
                distance = levenshtein_distance(chunk_key, entry.key, max_distance=budget)
                if distance > budget:
                    continue
                similarity = 1.0 - distance / max(len(chunk_key), len(entry.key))
                if similarity <= FUZZY_MIN_SIMILARITY:
                    continue

                score = fuzzy_score(similarity)
                # Higher score, then longer name, then record order
                rank = (score, entry.name_length, -entry.position)
                if best is None or rank > best:
                    best = rank
                    best_match = (chunk, entry, score)

        return best_match
