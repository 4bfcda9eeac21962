"""Load, validate, and hot-reload the tracker tuning configuration.

The config lives in ``tracker_config.yaml`` alongside this module.  It is
loaded once and cached; ``reload_tracker_config()`` re-reads it from disk
without a restart.

Usage::

    from fittrack.tracker.config_loader import get_tracker_config

    config = get_tracker_config()
    config.sync.step_threshold          # 50
    config.dashboard.poll_interval      # timedelta(seconds=1)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

import yaml

logger = logging.getLogger("fittrack.tracker.config")

_CONFIG_PATH = Path(__file__).parent / "tracker_config.yaml"

HISTORY_RANGES = ("week", "month", "year")


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class SyncConfig:
    """When the service pushes steps to the backend."""

    step_threshold: int = 50
    interval_seconds: int = 300
    start_grace_seconds: int = 60

    @property
    def interval(self) -> timedelta:
        return timedelta(seconds=self.interval_seconds)

    @property
    def start_grace(self) -> timedelta:
        return timedelta(seconds=self.start_grace_seconds)


@dataclass
class DashboardConfig:
    """Polling and auto-sync behaviour of the reconciliation layer."""

    poll_interval_seconds: float = 1.0
    auto_sync_delay_seconds: float = 2.0
    history_limit: int = 5
    history_range: str = "week"

    @property
    def poll_interval(self) -> timedelta:
        return timedelta(seconds=self.poll_interval_seconds)

    @property
    def auto_sync_delay(self) -> timedelta:
        return timedelta(seconds=self.auto_sync_delay_seconds)


@dataclass
class TrackerConfig:
    """Complete, validated tracker configuration."""

    version: str = "1.0"
    sync: SyncConfig = field(default_factory=SyncConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when tracker_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Tracker config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> TrackerConfig:
    """Validate the raw YAML dict and construct a TrackerConfig.

    Every problem is collected before raising so a bad file reports all of
    its errors at once.

    Raises:
        ConfigValidationError: If any value is missing a sane type or range.
    """
    errors: list[str] = []

    def _number(section: dict, key: str, name: str, default: float, cast: type, minimum: float) -> float:
        value = section.get(key, default)
        try:
            number = cast(value)
        except (TypeError, ValueError):
            errors.append(f"{name}.{key} must be a number, got {value!r}")
            return default
        if number < minimum:
            errors.append(f"{name}.{key} = {number} must be >= {minimum}")
        return number

    version = str(raw.get("version", "1.0"))

    # ── Sync ──
    sync_raw = raw.get("sync") or {}
    if not isinstance(sync_raw, dict):
        errors.append("'sync' must be a mapping")
        sync_raw = {}
    sync = SyncConfig(
        step_threshold=_number(sync_raw, "step_threshold", "sync", 50, int, 1),
        interval_seconds=_number(sync_raw, "interval_seconds", "sync", 300, int, 1),
        start_grace_seconds=_number(sync_raw, "start_grace_seconds", "sync", 60, int, 0),
    )

    # ── Dashboard ──
    dash_raw = raw.get("dashboard") or {}
    if not isinstance(dash_raw, dict):
        errors.append("'dashboard' must be a mapping")
        dash_raw = {}
    history_range = dash_raw.get("history_range", "week")
    if history_range not in HISTORY_RANGES:
        errors.append(
            f"dashboard.history_range must be one of {HISTORY_RANGES}, got {history_range!r}"
        )
    dashboard = DashboardConfig(
        poll_interval_seconds=_number(dash_raw, "poll_interval_seconds", "dashboard", 1.0, float, 0.01),
        auto_sync_delay_seconds=_number(dash_raw, "auto_sync_delay_seconds", "dashboard", 2.0, float, 0.0),
        history_limit=_number(dash_raw, "history_limit", "dashboard", 5, int, 1),
        history_range=history_range,
    )

    if errors:
        raise ConfigValidationError(
            f"tracker_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return TrackerConfig(version=version, sync=sync, dashboard=dashboard, _raw=raw)


def load_tracker_config(path: Path | None = None) -> TrackerConfig:
    """Load and validate the tracker config from disk.

    Args:
        path: Override path to YAML. Uses the bundled tracker_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    config = _validate_and_build(_load_yaml(target))
    logger.info("Loaded tracker config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: TrackerConfig | None = None
_config_lock = threading.Lock()


def get_tracker_config() -> TrackerConfig:
    """Return the global TrackerConfig, loading it on first call."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_tracker_config()
    return _config


def reload_tracker_config(path: Path | None = None) -> TrackerConfig:
    """Reload the config from disk and replace the global singleton.

    If validation fails the old config is retained and the error re-raised.
    """
    global _config
    new_config = load_tracker_config(path)
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded tracker config: %s → %s", old_version, new_config.version)
    return new_config
