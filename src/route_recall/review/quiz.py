"""Quiz sessions: multiple-choice questions about delivery zones.

Every question offers four zone labels. Wrong options are drawn from the
other zones in the library; when there are not enough real zones the gap
is filled with clearly fake placeholder labels.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from route_recall.logging import get_logger
from route_recall.models.record import AddressRecord
from route_recall.models.results import QuizQuestion, QuizResult
from route_recall.review.scheduler import ReviewScheduler

logger = get_logger(__name__)

OPTION_COUNT = 4
PLACEHOLDER_LABEL = "未知区域"
MIN_RANDOM_POOL = 4


class SessionMode(str, Enum):
    """How records are picked for a quiz session."""

    RANDOM = "random"  # Sample from the whole library
    REVIEW = "review"  # Records due for spaced review
    MISTAKE = "mistake"  # Records in the mistake pool


class QuizBuilder:
    """Turns records into multiple-choice questions.

    Attributes:
        rng: Random source for distractor sampling and option order
        placeholder_label: Prefix for fake options when real zones run out
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        placeholder_label: str = PLACEHOLDER_LABEL,
    ):
        self.rng = rng or random.Random()
        self.placeholder_label = placeholder_label

    def build_questions(
        self,
        records: Iterable[AddressRecord],
        all_records: Iterable[AddressRecord],
        count: int | None = None,
    ) -> list[QuizQuestion]:
        """Build one question per record.

        Args:
            records: Records to ask about, in order
            all_records: Library the wrong options are drawn from
            count: Maximum number of questions (default: one per record)

        Returns:
            Questions with exactly four distinct options each. Empty if
            there are no records.
        """
        selected = list(records)
        if count is not None:
            selected = selected[: max(count, 0)]
        if not selected:
            return []

        # First-seen order keeps sampling reproducible under a seeded rng
        areas = list(dict.fromkeys(r.route_area for r in all_records))

        return [QuizQuestion(record, self._options_for(record, areas)) for record in selected]

    def _options_for(self, record: AddressRecord, areas: list[str]) -> tuple[str, ...]:
        correct = record.route_area
        alternatives = [a for a in areas if a != correct]
        wanted = OPTION_COUNT - 1

        options = [correct] + self.rng.sample(alternatives, min(wanted, len(alternatives)))

        taken = set(options).union(areas)
        counter = 1
        while len(options) < OPTION_COUNT:
            label = f"{self.placeholder_label} {counter}"
            counter += 1
            if label not in taken:
                options.append(label)
                taken.add(label)

        self.rng.shuffle(options)
        return tuple(options)


@dataclass
class SessionPlan:
    """Records chosen for a session, or why none could be chosen.

    Attributes:
        mode: Selection mode used
        records: Records to quiz, in question order
        unavailable_reason: Explanation when `records` is empty
    """

    mode: SessionMode
    records: list[AddressRecord] = field(default_factory=list)
    unavailable_reason: str = ""

    @property
    def available(self) -> bool:
        return bool(self.records)


def plan_session(
    mode: SessionMode,
    scheduler: ReviewScheduler,
    count: int,
    rng: random.Random | None = None,
    records: list[AddressRecord] | None = None,
) -> SessionPlan:
    """Pick the records for a quiz session.

    Args:
        mode: Selection mode
        scheduler: Scheduler used for the due set and mistake pool
        count: Number of questions for a random session
        rng: Random source for random sessions
        records: Library snapshot; defaults to the scheduler's store

    Returns:
        SessionPlan; empty with a reason when there is nothing to ask
    """
    all_records = records if records is not None else scheduler.store.get_all()

    if mode == SessionMode.REVIEW:
        due = scheduler.due_for_review(all_records)
        if not due:
            return SessionPlan(mode, unavailable_reason="Nothing is due for review")
        return SessionPlan(mode, due)

    if mode == SessionMode.MISTAKE:
        pool = scheduler.mistake_pool(all_records)
        if not pool:
            return SessionPlan(mode, unavailable_reason="The mistake pool is empty")
        return SessionPlan(mode, pool)

    if len(all_records) < MIN_RANDOM_POOL:
        return SessionPlan(
            mode,
            unavailable_reason=f"At least {MIN_RANDOM_POOL} streets are needed for a random quiz",
        )
    if count <= 0:
        return SessionPlan(mode, unavailable_reason="Question count must be positive")

    rng = rng or random.Random()
    return SessionPlan(mode, rng.sample(all_records, min(count, len(all_records))))


class QuizSession:
    """Walks through a list of questions and records every answer.

    Each answer goes straight to the scheduler, so progress survives an
    abandoned session.
    """

    def __init__(self, questions: list[QuizQuestion], scheduler: ReviewScheduler | None = None):
        self.questions = questions
        self.scheduler = scheduler
        self.index = 0
        self._result = QuizResult()

    @property
    def current(self) -> QuizQuestion | None:
        if self.finished:
            return None
        return self.questions[self.index]

    @property
    def finished(self) -> bool:
        return self.index >= len(self.questions)

    @property
    def remaining(self) -> int:
        return max(len(self.questions) - self.index, 0)

    def answer(self, option: str) -> bool:
        """Answer the current question and move to the next one.

        Args:
            option: The chosen zone label

        Returns:
            True if the answer was correct

        Raises:
            IndexError: If the session is already finished
        """
        question = self.current
        if question is None:
            raise IndexError("Quiz session is finished")

        correct = question.is_correct(option)
        self._result.total += 1
        if correct:
            self._result.correct += 1
        else:
            self._result.wrong_records.append(question.record)

        if self.scheduler is not None:
            self.scheduler.process_result(question.record.id, correct)

        self.index += 1
        return correct

    def result(self) -> QuizResult:
        """Summary of the answers given so far."""
        return QuizResult(
            total=self._result.total,
            correct=self._result.correct,
            wrong_records=list(self._result.wrong_records),
        )
