"""Configuration loading and management for route-recall.

Settings live in `settings.json` inside the data directory. The data
directory is `~/.route-recall` unless ROUTE_RECALL_HOME says otherwise.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from route_recall.errors import ConfigurationError, StorageError
from route_recall.matching.phonetic import DEFAULT_HOMOPHONES, HomophoneTable, PhoneticNormalizer
from route_recall.matching.search import DEFAULT_RESULT_LIMIT, DEFAULT_SCORE_FLOOR, RecordMatcher
from route_recall.matching.segmenter import TranscriptSegmenter
from route_recall.review.quiz import PLACEHOLDER_LABEL
from route_recall.review.scheduler import (
    DEFAULT_GRADUATION_STREAK,
    DEFAULT_INTERVALS_DAYS,
    IntervalTable,
    ReviewScheduler,
)
from route_recall.storage import JsonRecordStore, RecordStore, atomic_write_json, read_json

HOME_ENV_VAR = "ROUTE_RECALL_HOME"
SETTINGS_FILENAME = "settings.json"
RECORDS_FILENAME = "records.json"


class MatchingSettings(BaseModel):
    """Lookup settings."""

    # Real character -> variants speech recognition writes instead
    homophones: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_HOMOPHONES.items()}
    )
    # Single-query results must score above this
    search_score_floor: float = Field(default=DEFAULT_SCORE_FLOOR, ge=0, le=100)
    search_limit: int = Field(default=DEFAULT_RESULT_LIMIT, ge=1)


class ReviewSettings(BaseModel):
    """Spaced review settings."""

    intervals_days: list[float] = Field(default_factory=lambda: list(DEFAULT_INTERVALS_DAYS))
    graduation_streak: int = Field(default=DEFAULT_GRADUATION_STREAK, ge=1)
    # Records with failures but no review time count as due
    bootstrap_unscheduled_failures: bool = True


class QuizSettings(BaseModel):
    """Quiz settings."""

    placeholder_label: str = PLACEHOLDER_LABEL
    default_count: int = Field(default=50, ge=1)


class Settings(BaseModel):
    """All route-recall settings."""

    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    review: ReviewSettings = Field(default_factory=ReviewSettings)
    quiz: QuizSettings = Field(default_factory=QuizSettings)

    def homophone_table(self) -> HomophoneTable:
        """Validated homophone table.

        Raises:
            ConfigurationError: If the table is ambiguous
        """
        return HomophoneTable.from_mapping(self.matching.homophones)

    def interval_table(self) -> IntervalTable:
        """Validated review interval table.

        Raises:
            ConfigurationError: If the table is empty or has non-positive entries
        """
        return IntervalTable(tuple(self.review.intervals_days))

    def build_normalizer(self) -> PhoneticNormalizer:
        return PhoneticNormalizer(self.homophone_table())

    def build_matcher(self, normalizer: PhoneticNormalizer | None = None) -> RecordMatcher:
        return RecordMatcher(
            normalizer or self.build_normalizer(),
            score_floor=self.matching.search_score_floor,
            limit=self.matching.search_limit,
        )

    def build_segmenter(self, normalizer: PhoneticNormalizer | None = None) -> TranscriptSegmenter:
        return TranscriptSegmenter(normalizer or self.build_normalizer())

    def build_scheduler(self, store: RecordStore) -> ReviewScheduler:
        return ReviewScheduler(
            store,
            intervals=self.interval_table(),
            graduation_streak=self.review.graduation_streak,
            bootstrap_unscheduled_failures=self.review.bootstrap_unscheduled_failures,
        )


def get_data_dir() -> Path:
    """Get the data directory.

    Returns ROUTE_RECALL_HOME if set, else ~/.route-recall.
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".route-recall"


def get_records_path(data_dir: Path) -> Path:
    return data_dir / RECORDS_FILENAME


def open_record_store(data_dir: Path) -> JsonRecordStore:
    """Open the record store in a data directory."""
    return JsonRecordStore(get_records_path(data_dir))


def load_settings(data_dir: Path) -> Settings:
    """Load settings from a data directory.

    Args:
        data_dir: Data directory

    Returns:
        Settings from settings.json, or defaults if the file doesn't exist

    Raises:
        ConfigurationError: If the file is not valid JSON or fails validation
    """
    path = data_dir / SETTINGS_FILENAME
    if not path.exists():
        return Settings()

    try:
        data = read_json(path)
        settings = Settings.model_validate(data)
    except (StorageError, PydanticValidationError) as e:
        raise ConfigurationError(f"Invalid settings file: {e}", {"path": str(path)}) from e

    # Surface bad tables now rather than at first lookup
    settings.homophone_table()
    settings.interval_table()
    return settings


def save_settings(data_dir: Path, settings: Settings) -> Path:
    """Save settings to a data directory with an atomic write.

    Returns:
        Path to the saved settings file
    """
    path = data_dir / SETTINGS_FILENAME
    atomic_write_json(path, settings.model_dump(mode="json"))
    return path
