"""Value types shared by the timer, the recovery codec and the stores."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Mode(Enum):
    """Discrete phase of the work/break cycle."""

    IDLE = "idle"
    WORK = "work"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"

    @property
    def is_break(self) -> bool:
        return self in (Mode.SHORT_BREAK, Mode.LONG_BREAK)


@dataclass(frozen=True)
class Snapshot:
    """Immutable view of the timer handed to subscribers and the CLI."""

    mode: Mode
    is_running: bool
    is_paused: bool
    cycle_count: int
    remaining_seconds: int
    duration_seconds: int


@dataclass
class SessionState:
    """Mutable timer state, owned by a single :class:`PomodoroTimer`.

    ``is_paused`` implies ``is_running`` and ``0 <= remaining <= duration``.
    Both counters are zero while idle.
    """

    mode: Mode = Mode.IDLE
    previous_mode: Mode = Mode.WORK
    is_running: bool = False
    is_paused: bool = False
    cycle_count: int = 0
    remaining_seconds: int = 0
    duration_seconds: int = 0
    session_start_at: datetime | None = None
    pre_alert_raised: bool = False

    def snapshot(self) -> Snapshot:
        return Snapshot(
            mode=self.mode,
            is_running=self.is_running,
            is_paused=self.is_paused,
            cycle_count=self.cycle_count,
            remaining_seconds=self.remaining_seconds,
            duration_seconds=self.duration_seconds,
        )


@dataclass(frozen=True)
class PersistedRuntimeState:
    """Flat at-rest form of :class:`SessionState` used for crash recovery."""

    mode: Mode
    previous_mode: Mode
    is_running: bool
    is_paused: bool
    cycle_count: int
    remaining_seconds: int
    duration_seconds: int
    saved_at: datetime


@dataclass(frozen=True)
class SessionLogEntry:
    """One finished or abandoned session.

    ``completed`` is true only when the countdown reached zero on its own.
    """

    start_at: datetime
    end_at: datetime
    mode: Mode
    completed: bool
    note: str = ""
    tag_ids: tuple[str, ...] = field(default_factory=tuple)
