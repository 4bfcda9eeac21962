"""Tests for tracker config loading and validation."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from fittrack.tracker import config_loader
from fittrack.tracker.config_loader import (
    ConfigValidationError,
    TrackerConfig,
    get_tracker_config,
    load_tracker_config,
    reload_tracker_config,
)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "tracker_config.yaml"
    path.write_text(text)
    return path


class TestBundledConfig:
    def test_defaults(self, tracker_config: TrackerConfig) -> None:
        assert tracker_config.sync.step_threshold == 50
        assert tracker_config.sync.interval == timedelta(minutes=5)
        assert tracker_config.sync.start_grace == timedelta(seconds=60)
        assert tracker_config.dashboard.poll_interval == timedelta(seconds=1)
        assert tracker_config.dashboard.auto_sync_delay == timedelta(seconds=2)
        assert tracker_config.dashboard.history_limit == 5
        assert tracker_config.dashboard.history_range == "week"


class TestValidation:
    def test_missing_sections_use_defaults(self, tmp_path: Path) -> None:
        config = load_tracker_config(_write(tmp_path, "version: '2.0'\n"))
        assert config.version == "2.0"
        assert config.sync.step_threshold == 50
        assert config.dashboard.history_limit == 5

    def test_overrides(self, tmp_path: Path) -> None:
        config = load_tracker_config(
            _write(tmp_path, "sync:\n  step_threshold: 100\n  interval_seconds: 60\n")
        )
        assert config.sync.step_threshold == 100
        assert config.sync.interval == timedelta(minutes=1)

    def test_all_errors_reported_together(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            "sync:\n  step_threshold: 0\n"
            "dashboard:\n  history_range: decade\n  history_limit: many\n",
        )
        with pytest.raises(ConfigValidationError) as excinfo:
            load_tracker_config(path)
        message = str(excinfo.value)
        assert "3 validation error(s)" in message
        assert "step_threshold" in message
        assert "history_range" in message
        assert "history_limit" in message

    def test_section_must_be_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigValidationError, match="'sync' must be a mapping"):
            load_tracker_config(_write(tmp_path, "sync: 5\n"))

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigValidationError, match="YAML parse error"):
            load_tracker_config(_write(tmp_path, "sync: [unclosed\n"))

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_tracker_config(tmp_path / "absent.yaml")


class TestSingleton:
    def test_reload_replaces_cached_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(config_loader, "_config", None)
        first = get_tracker_config()
        assert get_tracker_config() is first

        reloaded = reload_tracker_config(_write(tmp_path, "sync:\n  step_threshold: 25\n"))
        assert get_tracker_config() is reloaded
        assert reloaded.sync.step_threshold == 25

    def test_failed_reload_keeps_old_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(config_loader, "_config", None)
        current = get_tracker_config()
        with pytest.raises(ConfigValidationError):
            reload_tracker_config(_write(tmp_path, "sync:\n  step_threshold: -1\n"))
        assert get_tracker_config() is current
