"""Local persistence for per-user ``DailyStepState``.

Each user gets a separate namespaced record, so one user's counts can never
be read or overwritten under another user's session.  Writes are atomic:
a reader sees either the previous record or the new one, never a torn file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from urllib.parse import quote

from fittrack.tracker.base import DailyStepState

logger = logging.getLogger("fittrack.tracker.store")

KEY_PREFIX = "step_counter"


class StoreError(RuntimeError):
    """Raised when persisted state cannot be read or written."""


def state_key(user_id: str) -> str:
    """Namespaced storage key for a user's step state.

    The user id is percent-encoded so distinct ids always map to distinct,
    filesystem-safe keys.
    """
    if not user_id:
        raise ValueError("user_id is required to scope step state")
    return f"{KEY_PREFIX}_{quote(user_id, safe='')}"


class StateStore(ABC):
    """Durable key-value store for accumulator state."""

    @abstractmethod
    def load(self, user_id: str) -> DailyStepState | None:
        """Return the stored state for ``user_id`` or None if there is none.

        Raises:
            StoreError: If the record exists but cannot be read.
        """

    @abstractmethod
    def save(self, user_id: str, state: DailyStepState) -> None:
        """Persist the full state for ``user_id``.

        Raises:
            StoreError: If the write fails.
        """


class InMemoryStateStore(StateStore):
    """Process-local store, used in tests and for anonymous sessions."""

    def __init__(self) -> None:
        self._records: dict[str, dict] = {}
        self._lock = threading.Lock()

    def load(self, user_id: str) -> DailyStepState | None:
        with self._lock:
            record = self._records.get(state_key(user_id))
        return DailyStepState.from_json(record) if record is not None else None

    def save(self, user_id: str, state: DailyStepState) -> None:
        with self._lock:
            self._records[state_key(user_id)] = state.to_json()

    def __len__(self) -> int:
        return len(self._records)


class JsonFileStateStore(StateStore):
    """One JSON file per user under ``root``.

    Writes go to a temporary file in the same directory followed by
    ``os.replace``, which is atomic on POSIX and Windows.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def path_for(self, user_id: str) -> Path:
        return self._root / f"{state_key(user_id)}.json"

    def load(self, user_id: str) -> DailyStepState | None:
        path = self.path_for(user_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StoreError(f"Could not read {path}: {exc}") from exc

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreError(f"Corrupt step state in {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreError(f"Corrupt step state in {path}: expected an object")
        try:
            return DailyStepState.from_json(data)
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Corrupt step state in {path}: {exc}") from exc

    def save(self, user_id: str, state: DailyStepState) -> None:
        path = self.path_for(user_id)
        tmp_name: str | None = None
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.stem}.", suffix=".tmp", dir=self._root
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state.to_json(), fh)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            raise StoreError(f"Could not write {path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.debug("Could not remove temp file %s", tmp_name)
