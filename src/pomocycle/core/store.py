"""File-backed collaborators: runtime state, session log, and autosave."""

from __future__ import annotations

import fcntl
import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any

from pomocycle.core.events import Subscription
from pomocycle.core.models import Mode, PersistedRuntimeState, SessionLogEntry, Snapshot
from pomocycle.core.recovery import decode_record, encode_record
from pomocycle.core.timer import PomodoroTimer

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "pomocycle"
STATE_FILE = "state.json"
SESSIONS_FILE = "sessions.jsonl"

_logger = logging.getLogger("pomocycle.store")


class RuntimeStateStore:
    """Reads and writes the crash-recovery record as a JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> PersistedRuntimeState | None:
        """Return the persisted record, or ``None`` when there is none usable."""
        if not self.path.exists():
            return None

        try:
            with open(self.path) as f:
                fcntl.flock(f, fcntl.LOCK_SH)
                data = json.load(f)
        except (OSError, ValueError) as error:
            _logger.warning("Ignoring unreadable state file %s: %s", self.path, error)
            return None

        return decode_record(data)

    def save(self, record: PersistedRuntimeState) -> None:
        """Write *record* with an exclusive lock.  Raises ``OSError``."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a+") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            f.seek(0)
            f.truncate()
            json.dump(encode_record(record), f, indent=2)

    def clear(self) -> bool:
        """Delete the state file.  Returns whether one existed."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        return True


class SessionLog:
    """Append-only JSON-lines log of finished sessions."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def append(self, entry: SessionLogEntry) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(_entry_to_dict(entry), ensure_ascii=False)
        with open(self.path, "a", encoding="utf-8") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            f.write(line + "\n")

    def read_all(self) -> list[SessionLogEntry]:
        """Entries in file order.  Blank or invalid lines are skipped."""
        if not self.path.exists():
            return []

        entries: list[SessionLogEntry] = []
        with open(self.path, encoding="utf-8") as f:
            for number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    entries.append(_entry_from_dict(json.loads(line)))
                except (KeyError, TypeError, ValueError) as error:
                    _logger.warning("Skipping invalid log line %s: %s", number, error)
        return entries


class StatePersister:
    """Saves the timer's runtime state on every change and every N ticks.

    Saving happens synchronously inside the timer's event dispatch and holds
    an exclusive file lock for the duration of a small JSON write.  That is
    the one subscriber allowed to block briefly; a contended lock delays
    the next tick by the same amount.
    """

    def __init__(self, timer: PomodoroTimer, store: RuntimeStateStore, *, every_ticks: int = 5) -> None:
        self._timer = timer
        self._store = store
        self._every_ticks = max(1, every_ticks)
        self._ticks = 0
        self._subscriptions: list[Subscription] = []

    def attach(self) -> None:
        self._subscriptions = [
            self._timer.events.on_state_changed(self._on_state_changed),
            self._timer.events.on_tick(self._on_tick),
        ]

    def detach(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

    def save_now(self) -> None:
        try:
            self._store.save(self._timer.to_runtime_state())
        except OSError as error:
            _logger.error("Failed to save runtime state to %s: %s", self._store.path, error)

    def _on_state_changed(self, snapshot: Snapshot) -> None:
        self._ticks = 0
        self.save_now()

    def _on_tick(self, snapshot: Snapshot) -> None:
        self._ticks += 1
        if self._ticks >= self._every_ticks:
            self._ticks = 0
            self.save_now()


def _entry_to_dict(entry: SessionLogEntry) -> dict[str, Any]:
    data = asdict(entry)
    data["start_at"] = entry.start_at.isoformat()
    data["end_at"] = entry.end_at.isoformat()
    data["mode"] = entry.mode.value
    data["tag_ids"] = list(entry.tag_ids)
    return data


def _entry_from_dict(data: dict[str, Any]) -> SessionLogEntry:
    completed = data["completed"]
    if not isinstance(completed, bool):
        raise ValueError(f"completed must be a boolean, got {completed!r}")
    return SessionLogEntry(
        start_at=datetime.fromisoformat(data["start_at"]),
        end_at=datetime.fromisoformat(data["end_at"]),
        mode=Mode(data["mode"]),
        completed=completed,
        note=str(data.get("note") or ""),
        tag_ids=tuple(str(tag) for tag in data.get("tag_ids") or ()),
    )
