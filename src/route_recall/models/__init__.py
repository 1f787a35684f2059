"""Data models for route-recall.

This module provides the address record model and the transient result
types produced by lookup, segmentation and quizzes.
"""

from __future__ import annotations

from route_recall.models.record import AddressRecord, generate_record_id, now_ms
from route_recall.models.results import MatchResult, QuizQuestion, QuizResult, Segment

__all__ = [
    # Record model
    "AddressRecord",
    "generate_record_id",
    "now_ms",
    # Transient results
    "MatchResult",
    "Segment",
    "QuizQuestion",
    "QuizResult",
]
