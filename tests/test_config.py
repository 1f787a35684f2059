"""Tests for settings loading and wiring."""

import json

import pytest

from route_recall.config import (
    HOME_ENV_VAR,
    SETTINGS_FILENAME,
    Settings,
    get_data_dir,
    load_settings,
    open_record_store,
    save_settings,
)
from route_recall.errors import ConfigurationError
from route_recall.storage import InMemoryRecordStore


class TestDataDir:
    """Tests for data directory resolution."""

    def test_env_override(self, tmp_path, monkeypatch):
        """Test ROUTE_RECALL_HOME overrides the default."""
        monkeypatch.setenv(HOME_ENV_VAR, str(tmp_path))
        assert get_data_dir() == tmp_path

    def test_default(self, monkeypatch):
        """Test the default lives in the home directory."""
        monkeypatch.delenv(HOME_ENV_VAR, raising=False)
        assert get_data_dir().name == ".route-recall"


class TestLoadSettings:
    """Tests for load_settings and save_settings."""

    def test_missing_file_gives_defaults(self, tmp_path):
        """Test defaults when no settings file exists."""
        settings = load_settings(tmp_path)

        assert settings.matching.search_score_floor == 60
        assert settings.matching.search_limit == 5
        assert settings.review.intervals_days == [0.5, 1, 3, 7, 15, 30]
        assert settings.review.graduation_streak == 5
        assert settings.review.bootstrap_unscheduled_failures is True
        assert settings.quiz.placeholder_label == "未知区域"

    def test_round_trip(self, tmp_path):
        """Test saved settings load back unchanged."""
        settings = Settings()
        settings.matching.search_limit = 3
        settings.review.intervals_days = [1, 2]

        path = save_settings(tmp_path, settings)
        loaded = load_settings(tmp_path)

        assert path.name == SETTINGS_FILENAME
        assert loaded.matching.search_limit == 3
        assert loaded.interval_table().max_stage == 2

    def test_invalid_json(self, tmp_path):
        """Test malformed JSON is a configuration error."""
        (tmp_path / SETTINGS_FILENAME).write_text("{oops")

        with pytest.raises(ConfigurationError):
            load_settings(tmp_path)

    def test_invalid_values(self, tmp_path):
        """Test out-of-range values are a configuration error."""
        (tmp_path / SETTINGS_FILENAME).write_text(json.dumps({"matching": {"search_limit": 0}}))

        with pytest.raises(ConfigurationError):
            load_settings(tmp_path)

    def test_ambiguous_homophones(self, tmp_path):
        """Test a variant mapped to two characters is rejected at load."""
        data = {"matching": {"homophones": {"路": ["陆"], "六": ["陆"]}}}
        (tmp_path / SETTINGS_FILENAME).write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_settings(tmp_path)

    def test_empty_intervals(self, tmp_path):
        """Test an empty interval table is rejected at load."""
        (tmp_path / SETTINGS_FILENAME).write_text(json.dumps({"review": {"intervals_days": []}}))

        with pytest.raises(ConfigurationError):
            load_settings(tmp_path)


class TestBuilders:
    """Tests for components built from settings."""

    def test_custom_homophones_injected(self):
        """Test the normalizer uses the configured table."""
        settings = Settings()
        settings.matching.homophones = {"路": ["陆"]}

        normalizer = settings.build_normalizer()

        assert normalizer.canonicalize("文山陆") == "文山路"

    def test_matcher_settings(self):
        """Test floor and limit reach the matcher."""
        settings = Settings()
        settings.matching.search_limit = 2

        assert settings.build_matcher().limit == 2

    def test_scheduler_settings(self):
        """Test review settings reach the scheduler."""
        settings = Settings()
        settings.review.graduation_streak = 3
        settings.review.bootstrap_unscheduled_failures = False

        scheduler = settings.build_scheduler(InMemoryRecordStore())

        assert scheduler.graduation_streak == 3
        assert scheduler.bootstrap_unscheduled_failures is False

    def test_open_record_store(self, tmp_path):
        """Test the record store lives in the data directory."""
        store = open_record_store(tmp_path)
        assert store.path == tmp_path / "records.json"
