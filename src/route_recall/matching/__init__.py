"""Fuzzy matching of spoken text to address records.

Provides phonetic normalization, similarity scoring, single-query lookup
and continuous-transcript segmentation.
"""

from route_recall.matching.phonetic import (
    DEFAULT_HOMOPHONES,
    HomophoneTable,
    NormalizedText,
    PhoneticNormalizer,
    levenshtein_distance,
)
from route_recall.matching.scoring import IndexedRecord, RecordSnapshot, SimilarityScorer
from route_recall.matching.search import RecordMatcher
from route_recall.matching.segmenter import TranscriptSegmenter

__all__ = [
    "DEFAULT_HOMOPHONES",
    "HomophoneTable",
    "NormalizedText",
    "PhoneticNormalizer",
    "levenshtein_distance",
    "IndexedRecord",
    "RecordSnapshot",
    "SimilarityScorer",
    "RecordMatcher",
    "TranscriptSegmenter",
]
