"""Spaced-review scheduling with a mistake pool.

Each record moves along two independent tracks:

- Review stage: every correct answer moves the record one stage up and
  schedules the next review further out (12 hours, then 1, 3, 7, 15 and
  30 days). A wrong answer drops it back to stage 0, due immediately.
- Mistake pool: a wrong answer puts the record in the pool; it leaves
  only after five correct answers in a row. Any wrong answer in between
  restarts the streak.

Neither track has an end state; a mastered record still comes back
after a wrong answer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from route_recall.errors import ConfigurationError
from route_recall.logging import get_logger
from route_recall.models.record import AddressRecord, now_ms
from route_recall.storage import RecordStore

logger = get_logger(__name__)

MS_PER_DAY = 24 * 60 * 60 * 1000
DEFAULT_INTERVALS_DAYS: tuple[float, ...] = (0.5, 1, 3, 7, 15, 30)
DEFAULT_GRADUATION_STREAK = 5


@dataclass(frozen=True)
class IntervalTable:
    """Review intervals in days, indexed by the stage before promotion.

    The number of entries is also the top review stage. Stages past the
    end of the table reuse the last interval.
    """

    days: tuple[float, ...] = DEFAULT_INTERVALS_DAYS

    def __post_init__(self) -> None:
        if not self.days:
            raise ConfigurationError("Review interval table is empty")
        if any(d <= 0 for d in self.days):
            raise ConfigurationError(
                "Review intervals must be positive", {"intervals": list(self.days)}
            )

    @property
    def max_stage(self) -> int:
        return len(self.days)

    def clamp(self, stage: int) -> int:
        return min(max(stage, 0), self.max_stage)

    def interval_ms(self, stage: int) -> int:
        """Milliseconds until the next review for a record at `stage`."""
        index = min(max(stage, 0), len(self.days) - 1)
        return round(self.days[index] * MS_PER_DAY)


def apply_review(
    record: AddressRecord,
    is_correct: bool,
    now: int,
    intervals: IntervalTable,
    graduation_streak: int = DEFAULT_GRADUATION_STREAK,
) -> AddressRecord:
    """Compute a record's review state after one answer.

    Args:
        record: Record as it was before the answer
        is_correct: Whether the answer was right
        now: Answer time in epoch milliseconds
        intervals: Interval table
        graduation_streak: Correct answers in a row needed to leave the pool

    Returns:
        Updated copy of the record; the input is not modified
    """
    previous_stage = intervals.clamp(record.review_stage)
    updates: dict = {"last_review_time": now}

    if is_correct:
        updates["review_stage"] = min(previous_stage + 1, intervals.max_stage)
        updates["next_review_time"] = now + intervals.interval_ms(previous_stage)

        if record.is_in_mistake_pool:
            streak = record.mistake_streak + 1
            if streak >= graduation_streak:
                updates["is_in_mistake_pool"] = False
                updates["mistake_streak"] = 0
            else:
                updates["mistake_streak"] = streak
    else:
        updates["failure_count"] = record.failure_count + 1
        updates["review_stage"] = 0
        updates["next_review_time"] = now
        updates["is_in_mistake_pool"] = True
        updates["mistake_streak"] = 0

    return record.model_copy(update=updates)


def is_due(record: AddressRecord, now: int, bootstrap_unscheduled_failures: bool = True) -> bool:
    """Whether a record should come up in a review session.

    A scheduled record is due once its review time has passed. Records
    that failed before scheduling existed (failures but no review time)
    are also due while `bootstrap_unscheduled_failures` is on.
    """
    if record.next_review_time > 0:
        return record.next_review_time <= now
    return bootstrap_unscheduled_failures and record.failure_count > 0


class ReviewScheduler:
    """Applies quiz answers to stored records and answers due queries.

    Each answer is applied inside one store update, so concurrent answers
    cannot lose a streak or stage update and the scheduler keeps no
    per-record state of its own.
    """

    def __init__(
        self,
        store: RecordStore,
        intervals: IntervalTable | None = None,
        graduation_streak: int = DEFAULT_GRADUATION_STREAK,
        bootstrap_unscheduled_failures: bool = True,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the scheduler.

        Args:
            store: Record store to read and update
            intervals: Review interval table (defaults to 0.5/1/3/7/15/30 days)
            graduation_streak: Correct answers in a row to leave the mistake pool
            bootstrap_unscheduled_failures: Treat failed, never-scheduled records as due
            clock: Returns the current time in epoch milliseconds
        """
        self.store = store
        self.intervals = intervals or IntervalTable()
        self.graduation_streak = graduation_streak
        self.bootstrap_unscheduled_failures = bootstrap_unscheduled_failures
        self.clock = clock

    def process_result(self, record: AddressRecord | str, is_correct: bool) -> AddressRecord | None:
        """Record a quiz answer.

        Args:
            record: The record answered, or its id
            is_correct: Whether the answer was right

        Returns:
            The updated record, or None if the record no longer exists
        """
        record_id = record if isinstance(record, str) else record.id
        answered_at = self.clock()

        def review(current: AddressRecord) -> AddressRecord:
            return apply_review(
                current, is_correct, answered_at, self.intervals, self.graduation_streak
            )

        # Read and write happen under the store lock so concurrent answers all count
        changed = self.store.update_many({record_id: review})
        if not changed:
            logger.warning("Answer for unknown record ignored", extra={"record_id": record_id})
            return None
        updated = changed[0]

        logger.debug(
            "Review recorded",
            extra={
                "record_id": record_id,
                "correct": is_correct,
                "stage": updated.review_stage,
                "in_pool": updated.is_in_mistake_pool,
            },
        )
        return updated

    def _records(self, records: Iterable[AddressRecord] | None) -> Iterable[AddressRecord]:
        return self.store.get_all() if records is None else records

    def due_for_review(self, records: Iterable[AddressRecord] | None = None) -> list[AddressRecord]:
        """Records due for review now, in store order.

        Args:
            records: Snapshot to filter; defaults to the whole store
        """
        now = self.clock()
        return [
            r
            for r in self._records(records)
            if is_due(r, now, self.bootstrap_unscheduled_failures)
        ]

    def mistake_pool(self, records: Iterable[AddressRecord] | None = None) -> list[AddressRecord]:
        """Records currently in the mistake pool, in store order."""
        return [r for r in self._records(records) if r.is_in_mistake_pool]
