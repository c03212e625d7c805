"""Timer configuration and its TOML loader.

The timer never trusts these values: every numeric field is clamped where
it is used, so a hand-edited config can slow the cycle down but never break it.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

CONFIG_ENV_VAR = "POMOCYCLE_CONFIG"
DEFAULT_CONFIG_FILE = "config.toml"

_logger = logging.getLogger("pomocycle.settings")


class SettingsError(Exception):
    """Raised when the settings file cannot be decoded."""


@dataclass(frozen=True)
class TimerSettings:
    work_minutes: int = 25
    short_break_minutes: int = 5
    long_break_minutes: int = 15
    long_break_interval: int = 4
    auto_start_break: bool = True
    auto_start_work: bool = False
    pre_break_alert_seconds: int = 10


def minutes_to_seconds(minutes: int) -> int:
    """Session length in seconds, never shorter than one minute."""
    return max(1, int(minutes)) * 60


def clamp_interval(interval: int) -> int:
    return max(1, int(interval))


def clamp_alert_seconds(seconds: int) -> int:
    return max(0, int(seconds))


def resolve_config_path(config_path: Path | None, config_dir: Path) -> Path:
    env_path = os.getenv(CONFIG_ENV_VAR)
    if config_path is not None:
        return config_path
    if env_path:
        return Path(env_path).expanduser()
    return config_dir / DEFAULT_CONFIG_FILE


def load_settings(path: Path) -> TimerSettings:
    """Read the ``[timer]`` table of *path*.

    A missing file yields the defaults. Undecodable TOML raises
    :class:`SettingsError`.
    """
    if not path.exists():
        _logger.debug("No settings file at %s, using defaults", path)
        return TimerSettings()

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as error:
        raise SettingsError(f"Cannot read settings from {path}: {error}") from error

    table = data.get("timer", {})
    if not isinstance(table, Mapping):
        raise SettingsError(f"[timer] in {path} must be a table")
    return settings_from_mapping(table)


def settings_from_mapping(table: Mapping[str, Any]) -> TimerSettings:
    """Build settings from raw values, keeping the default for bad entries."""
    defaults = TimerSettings()
    known = {f.name for f in fields(TimerSettings)}
    overrides: dict[str, Any] = {}

    for key, value in table.items():
        if key not in known:
            _logger.warning("Ignoring unknown timer setting %r", key)
            continue
        expected = type(getattr(defaults, key))
        # bool is an int subclass; reject it for numeric fields
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            _logger.warning(
                "Timer setting %r must be %s, got %r; using default",
                key,
                expected.__name__,
                value,
            )
            continue
        overrides[key] = value

    return replace(defaults, **overrides)
