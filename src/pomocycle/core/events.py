"""Synchronous publish/subscribe for timer events.

Handlers run on the caller's thread, in registration order, before
:meth:`EventEmitter.emit` returns. Handlers must not raise: an exception
escapes into whichever command or tick triggered it. They should return
quickly, since the next tick waits for them; short local file writes such
as :class:`pomocycle.core.store.StatePersister` are the upper bound.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable

from pomocycle.core.models import Mode, SessionLogEntry, Snapshot


class EventKind(Enum):
    TICK = "tick"
    STATE_CHANGED = "state_changed"
    SESSION_SWITCHED = "session_switched"
    SESSION_COMPLETED = "session_completed"
    PRE_BREAK_ALERT = "pre_break_alert"


class Subscription:
    """Handle returned by :meth:`EventEmitter.subscribe`."""

    def __init__(self, emitter: EventEmitter, kind: EventKind, callback: Callable[..., Any]) -> None:
        self._emitter = emitter
        self.kind = kind
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        """Stop delivering events to the callback.  Safe to call twice."""
        if self.active:
            self.active = False
            self._emitter._remove(self)


class EventEmitter:
    """Independent subscriber list per :class:`EventKind`."""

    def __init__(self) -> None:
        self._subscribers: dict[EventKind, list[Subscription]] = {kind: [] for kind in EventKind}

    def subscribe(self, kind: EventKind, callback: Callable[..., Any]) -> Subscription:
        subscription = Subscription(self, kind, callback)
        self._subscribers[kind].append(subscription)
        return subscription

    def emit(self, kind: EventKind, *args: Any) -> None:
        # Copy so a handler can cancel itself mid-dispatch.
        for subscription in list(self._subscribers[kind]):
            if subscription.active:
                subscription.callback(*args)

    def subscriber_count(self, kind: EventKind) -> int:
        return len(self._subscribers[kind])

    # -- typed helpers -------------------------------------------------------

    def on_tick(self, callback: Callable[[Snapshot], Any]) -> Subscription:
        return self.subscribe(EventKind.TICK, callback)

    def on_state_changed(self, callback: Callable[[Snapshot], Any]) -> Subscription:
        return self.subscribe(EventKind.STATE_CHANGED, callback)

    def on_session_switched(self, callback: Callable[[Mode], Any]) -> Subscription:
        return self.subscribe(EventKind.SESSION_SWITCHED, callback)

    def on_session_completed(self, callback: Callable[[SessionLogEntry], Any]) -> Subscription:
        return self.subscribe(EventKind.SESSION_COMPLETED, callback)

    def on_pre_break_alert(self, callback: Callable[[], Any]) -> Subscription:
        return self.subscribe(EventKind.PRE_BREAK_ALERT, callback)

    def _remove(self, subscription: Subscription) -> None:
        handlers = self._subscribers[subscription.kind]
        if subscription in handlers:
            handlers.remove(subscription)
