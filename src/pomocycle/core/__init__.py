from .events import EventEmitter, EventKind, Subscription
from .models import Mode, PersistedRuntimeState, SessionLogEntry, SessionState, Snapshot
from .recovery import decode_record, encode_record, from_persisted, to_persisted
from .runner import TimerRunner
from .settings import SettingsError, TimerSettings, load_settings
from .timer import PomodoroTimer

__all__ = [
    "EventEmitter",
    "EventKind",
    "Mode",
    "PersistedRuntimeState",
    "PomodoroTimer",
    "SessionLogEntry",
    "SessionState",
    "SettingsError",
    "Snapshot",
    "Subscription",
    "TimerRunner",
    "TimerSettings",
    "decode_record",
    "encode_record",
    "from_persisted",
    "load_settings",
    "to_persisted",
]
