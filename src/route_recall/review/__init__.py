"""Spaced review and quizzes.

Schedules records for review along the forgetting curve, tracks the
mistake pool, and builds multiple-choice quiz sessions.
"""

from route_recall.review.quiz import (
    QuizBuilder,
    QuizSession,
    SessionMode,
    SessionPlan,
    plan_session,
)
from route_recall.review.scheduler import (
    IntervalTable,
    ReviewScheduler,
    apply_review,
    is_due,
)

__all__ = [
    "IntervalTable",
    "ReviewScheduler",
    "apply_review",
    "is_due",
    "QuizBuilder",
    "QuizSession",
    "SessionMode",
    "SessionPlan",
    "plan_session",
]
