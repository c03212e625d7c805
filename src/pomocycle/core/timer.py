"""Timer core: the work/break session state machine."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from pomocycle.core.events import EventEmitter, EventKind
from pomocycle.core.models import (
    Mode,
    PersistedRuntimeState,
    SessionLogEntry,
    SessionState,
    Snapshot,
)
from pomocycle.core.recovery import from_persisted, to_persisted
from pomocycle.core.settings import (
    TimerSettings,
    clamp_alert_seconds,
    clamp_interval,
    minutes_to_seconds,
)


def local_now() -> datetime:
    """Current local time as an aware datetime."""
    return datetime.now().astimezone()


class PomodoroTimer:
    """Cycles Work -> ShortBreak/LongBreak -> Work in one-second steps.

    Commands whose preconditions do not hold are silent no-ops.  The timer
    is not thread-safe: every command and :meth:`tick` must come from one
    serialized context (see :class:`pomocycle.core.runner.TimerRunner`).
    Subscribers on :attr:`events` run synchronously inside the call that
    triggered them.
    """

    def __init__(
        self,
        settings: TimerSettings | None = None,
        *,
        now_fn: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings if settings is not None else TimerSettings()
        self._now = now_fn or local_now
        self._logger = logger or logging.getLogger("pomocycle.timer")
        self._state = SessionState()
        self.events = EventEmitter()

    # -- queries -------------------------------------------------------------

    @property
    def settings(self) -> TimerSettings:
        return self._settings

    @property
    def session_start_at(self) -> datetime | None:
        return self._state.session_start_at

    @property
    def previous_mode(self) -> Mode:
        return self._state.previous_mode

    def snapshot(self) -> Snapshot:
        return self._state.snapshot()

    # -- commands ------------------------------------------------------------

    def update_configuration(self, settings: TimerSettings) -> None:
        """Swap settings in place.  The current session keeps its duration."""
        self._settings = settings

    def start(self) -> None:
        """Start the countdown, entering Work first when idle."""
        state = self._state
        if state.is_running:
            self._logger.debug("start() ignored: already running")
            return

        if state.is_paused:
            state.is_paused = False

        if state.mode is Mode.IDLE:
            self._switch_to(Mode.WORK, increment_cycle=False)

        state.is_running = True
        state.is_paused = False
        self._logger.info("Timer started: mode=%s", state.mode.value)
        self._emit_state()

    def pause(self) -> None:
        """Freeze the countdown without touching the remaining time."""
        state = self._state
        if not state.is_running or state.is_paused or state.mode is Mode.IDLE:
            self._logger.debug("pause() ignored: not running")
            return

        state.is_paused = True
        state.previous_mode = state.mode
        self._logger.info(
            "Timer paused: mode=%s remaining=%ss",
            state.mode.value,
            state.remaining_seconds,
        )
        self._emit_state()

    def resume(self) -> None:
        state = self._state
        if not state.is_running or not state.is_paused:
            self._logger.debug("resume() ignored: not paused")
            return

        state.is_paused = False
        self._logger.info("Timer resumed: remaining=%ss", state.remaining_seconds)
        self._emit_state()

    def skip(self) -> None:
        """Abandon the current session and move on to the next one."""
        state = self._state
        if state.mode is Mode.IDLE and not state.is_running:
            self._logger.debug("skip() ignored: idle")
            return

        self._finish_session(completed=False)
        self._advance()
        self._emit_state()

    def reset(self) -> None:
        """Return to Idle.  The in-progress session is dropped, not logged."""
        state = self._state
        state.is_running = False
        state.is_paused = False
        state.mode = Mode.IDLE
        state.previous_mode = Mode.WORK
        state.remaining_seconds = 0
        state.duration_seconds = 0
        state.session_start_at = None
        state.pre_alert_raised = False
        self._logger.info("Timer reset: cycles=%s", state.cycle_count)
        self._emit_state()

    def tick(self) -> None:
        """Advance the countdown by one second."""
        state = self._state
        if not state.is_running or state.is_paused or state.mode is Mode.IDLE:
            return

        state.remaining_seconds = max(0, state.remaining_seconds - 1)

        alert_seconds = clamp_alert_seconds(self._settings.pre_break_alert_seconds)
        if (
            not state.pre_alert_raised
            and alert_seconds > 0
            and state.mode.is_break
            and state.remaining_seconds <= alert_seconds
        ):
            state.pre_alert_raised = True
            self._logger.info("Break ends in %ss", state.remaining_seconds)
            self.events.emit(EventKind.PRE_BREAK_ALERT)

        self.events.emit(EventKind.TICK, state.snapshot())

        if state.remaining_seconds == 0:
            self._finish_session(completed=True)
            self._advance()
            self._emit_state()

    # -- recovery ------------------------------------------------------------

    def restore(self, record: PersistedRuntimeState, *, catch_up: bool = False) -> None:
        """Replace the current state with one rebuilt from *record*."""
        self._state = from_persisted(record, self._now(), catch_up=catch_up)
        self._logger.info(
            "Timer restored: mode=%s running=%s paused=%s remaining=%ss",
            self._state.mode.value,
            self._state.is_running,
            self._state.is_paused,
            self._state.remaining_seconds,
        )
        self._emit_state()

    def to_runtime_state(self) -> PersistedRuntimeState:
        return to_persisted(self._state, self._now())

    # -- private helpers -----------------------------------------------------

    def _advance(self) -> None:
        """Switch to the session that follows the current one."""
        state = self._state
        if state.mode is Mode.WORK:
            interval = clamp_interval(self._settings.long_break_interval)
            if (state.cycle_count + 1) % interval == 0:
                self._switch_to(Mode.LONG_BREAK, increment_cycle=True)
            else:
                self._switch_to(Mode.SHORT_BREAK, increment_cycle=True)
            if not self._settings.auto_start_break:
                state.is_running = False
            return

        if state.mode.is_break:
            self._switch_to(Mode.WORK, increment_cycle=False)
            if not self._settings.auto_start_work:
                state.is_running = False

    def _switch_to(self, mode: Mode, *, increment_cycle: bool) -> None:
        state = self._state
        if increment_cycle and state.mode is Mode.WORK:
            state.cycle_count += 1

        state.mode = mode
        state.previous_mode = mode
        state.duration_seconds = self._duration_for(mode)
        state.remaining_seconds = state.duration_seconds
        state.session_start_at = self._now()
        state.pre_alert_raised = False
        # A fresh session never inherits the pause of the one before it.
        state.is_paused = False
        self._logger.info(
            "Switched to %s: duration=%ss cycles=%s",
            mode.value,
            state.duration_seconds,
            state.cycle_count,
        )
        self.events.emit(EventKind.SESSION_SWITCHED, mode)

    def _finish_session(self, *, completed: bool) -> None:
        state = self._state
        if state.session_start_at is None or state.duration_seconds == 0:
            return

        entry = SessionLogEntry(
            start_at=state.session_start_at,
            end_at=self._now(),
            mode=state.mode,
            completed=completed,
        )
        self._logger.info(
            "Session finished: mode=%s completed=%s",
            state.mode.value,
            completed,
        )
        self.events.emit(EventKind.SESSION_COMPLETED, entry)

    def _duration_for(self, mode: Mode) -> int:
        settings = self._settings
        if mode is Mode.WORK:
            return minutes_to_seconds(settings.work_minutes)
        if mode is Mode.SHORT_BREAK:
            return minutes_to_seconds(settings.short_break_minutes)
        if mode is Mode.LONG_BREAK:
            return minutes_to_seconds(settings.long_break_minutes)
        return 0

    def _emit_state(self) -> None:
        self.events.emit(EventKind.STATE_CHANGED, self._state.snapshot())
