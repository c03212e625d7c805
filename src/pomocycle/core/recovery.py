"""Conversion between live :class:`SessionState` and its persisted record.

The record is flat and carries a ``schema_version`` tag. Anything that does
not decode cleanly is treated as "no prior state" rather than an error.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Mapping

from pomocycle.core.models import Mode, PersistedRuntimeState, SessionState

SCHEMA_VERSION = 1

_logger = logging.getLogger("pomocycle.recovery")

_INT_FIELDS = ("cycle_count", "remaining_seconds", "duration_seconds")
_BOOL_FIELDS = ("is_running", "is_paused")


def to_persisted(state: SessionState, now: datetime) -> PersistedRuntimeState:
    """Project *state* onto its at-rest form, in whole non-negative seconds."""
    return PersistedRuntimeState(
        mode=state.mode,
        previous_mode=state.previous_mode,
        is_running=state.is_running,
        is_paused=state.is_paused,
        cycle_count=max(0, int(state.cycle_count)),
        remaining_seconds=max(0, int(state.remaining_seconds)),
        duration_seconds=max(0, int(state.duration_seconds)),
        saved_at=now,
    )


def from_persisted(
    record: PersistedRuntimeState,
    now: datetime,
    *,
    catch_up: bool = False,
) -> SessionState:
    """Rebuild a :class:`SessionState` from *record* and normalize it.

    The countdown resumes from the persisted ``remaining_seconds``; only the
    session start anchor is recomputed from *now*. With *catch_up* the
    downtime since ``saved_at`` is also charged against the countdown, so a
    window that ran out while the process was down completes on the next tick.
    """
    duration = max(0, record.duration_seconds)
    state = SessionState(
        mode=record.mode,
        previous_mode=record.previous_mode,
        is_running=record.is_running,
        is_paused=record.is_paused,
        cycle_count=max(0, record.cycle_count),
        remaining_seconds=min(duration, max(0, record.remaining_seconds)),
        duration_seconds=duration,
        pre_alert_raised=False,
    )

    if not state.is_running and state.is_paused:
        _logger.warning("Persisted state was paused but not running; clearing pause")
        state.is_paused = False

    if state.mode is Mode.IDLE:
        state.is_running = False
        state.is_paused = False
        state.remaining_seconds = 0
        state.duration_seconds = 0
        return state

    if catch_up and state.is_running and not state.is_paused:
        downtime = int((now - record.saved_at).total_seconds())
        if downtime > 0:
            state.remaining_seconds = max(0, state.remaining_seconds - downtime)

    # Paused and waiting sessions get an anchor too, so finishing them later
    # still produces a log entry.
    elapsed = state.duration_seconds - state.remaining_seconds
    state.session_start_at = now - timedelta(seconds=elapsed)

    return state


def encode_record(record: PersistedRuntimeState) -> dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "mode": record.mode.value,
        "previous_mode": record.previous_mode.value,
        "is_running": record.is_running,
        "is_paused": record.is_paused,
        "cycle_count": record.cycle_count,
        "remaining_seconds": record.remaining_seconds,
        "duration_seconds": record.duration_seconds,
        "saved_at": record.saved_at.isoformat(),
    }


def decode_record(data: Any) -> PersistedRuntimeState | None:
    """Parse a mapping written by :func:`encode_record`.

    Returns ``None`` for anything malformed. A missing ``schema_version`` is
    read as version 1; unknown keys are ignored.
    """
    if not isinstance(data, Mapping):
        _logger.warning("Discarding persisted state: expected an object")
        return None

    version = data.get("schema_version", SCHEMA_VERSION)
    if version != SCHEMA_VERSION:
        _logger.warning("Discarding persisted state: unsupported schema %r", version)
        return None

    try:
        mode = Mode(data["mode"])
        previous_mode = Mode(data.get("previous_mode", Mode.WORK.value))
        saved_at = datetime.fromisoformat(data["saved_at"])
    except (KeyError, TypeError, ValueError) as error:
        _logger.warning("Discarding persisted state: %s", error)
        return None

    values: dict[str, Any] = {}
    for name in _INT_FIELDS:
        value = data.get(name, 0)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            _logger.warning("Discarding persisted state: bad %s=%r", name, value)
            return None
        values[name] = value
    for name in _BOOL_FIELDS:
        value = data.get(name, False)
        if not isinstance(value, bool):
            _logger.warning("Discarding persisted state: bad %s=%r", name, value)
            return None
        values[name] = value

    if saved_at.tzinfo is None:
        saved_at = saved_at.astimezone()

    return PersistedRuntimeState(
        mode=mode,
        previous_mode=previous_mode,
        saved_at=saved_at,
        remaining_seconds=min(values["remaining_seconds"], values["duration_seconds"]),
        duration_seconds=values["duration_seconds"],
        cycle_count=values["cycle_count"],
        is_running=values["is_running"],
        is_paused=values["is_paused"],
    )
