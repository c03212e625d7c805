"""Shared fixtures: a controllable clock and an event recorder."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from pomocycle.core.events import EventKind
from pomocycle.core.settings import TimerSettings
from pomocycle.core.timer import PomodoroTimer

T0 = datetime(2024, 2, 1, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class Recorder:
    """Collects every event a timer emits, in order."""

    def __init__(self, timer: PomodoroTimer) -> None:
        self.events: list[tuple[EventKind, tuple[Any, ...]]] = []
        for kind in EventKind:
            timer.events.subscribe(kind, self._make_handler(kind))

    def _make_handler(self, kind: EventKind):
        def handler(*args: Any) -> None:
            self.events.append((kind, args))

        return handler

    def of(self, kind: EventKind) -> list[tuple[Any, ...]]:
        return [args for event_kind, args in self.events if event_kind is kind]

    def kinds(self) -> list[EventKind]:
        return [kind for kind, _ in self.events]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_timer(clock: FakeClock):
    """Build a timer on the fake clock with an attached recorder."""

    def factory(**overrides: Any) -> tuple[PomodoroTimer, Recorder]:
        timer = PomodoroTimer(TimerSettings(**overrides), now_fn=clock)
        return timer, Recorder(timer)

    return factory
