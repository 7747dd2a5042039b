"""Roster persistence.

The roster survives restarts through a single JSON document, by default
``$PROJECT/.codemap-state.json``:

    {
      "savedAt": 1730000000000,
      "sessions": [...],
      "activeSkills": [...],
      "activeMcpServers": [...]
    }

Writes go to a temp file that is renamed over the target while holding a
file lock, so readers never observe a half-written document.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout

from codemap.logging import get_logger

log = get_logger("storage")


class SessionStateFile:
    """Atomic JSON storage for the session roster."""

    def __init__(self, path: str | Path, lock_timeout: float = 5.0) -> None:
        self.path = Path(path)
        self._lock_path = self.path.with_name(self.path.name + ".lock")
        self._lock_timeout = lock_timeout

    def save(self, state: dict[str, Any]) -> bool:
        """Write ``state`` atomically.

        Returns:
            True on success. Failures are logged and reported as False so the
            next persistence tick can retry.
        """
        temp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with FileLock(self._lock_path, timeout=self._lock_timeout):
                with open(temp_path, "w", encoding="utf-8") as f:
                    json.dump(state, f, indent=2)
                os.replace(temp_path, self.path)
        except (OSError, Timeout, TypeError, ValueError) as e:
            log.error("Failed to save agent state to %s: %s", self.path, e)
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)
            return False

        log.debug("Saved %d agents to %s", len(state.get("sessions", [])), self.path)
        return True

    def load(self) -> dict[str, Any] | None:
        """Read the saved document, or None if missing or unreadable."""
        if not self.path.exists():
            return None
        try:
            with FileLock(self._lock_path, timeout=self._lock_timeout):
                with open(self.path, encoding="utf-8") as f:
                    data = json.load(f)
        except (OSError, Timeout, json.JSONDecodeError) as e:
            log.warning("Failed to load agent state from %s: %s", self.path, e)
            return None

        if not isinstance(data, dict):
            log.warning("Ignoring malformed agent state in %s", self.path)
            return None
        return data
