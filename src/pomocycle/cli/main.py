"""CLI entry point for pomocycle.

Uses Click to expose the ``pomocycle`` command group.  ``run`` drives a
live timer from one-letter commands on stdin; the other subcommands
inspect or clear what a previous run left on disk.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Callable, TypeVar

import click

import pomocycle
from pomocycle.core.models import Mode, SessionLogEntry, Snapshot
from pomocycle.core.runner import DEFAULT_TICK_INTERVAL_SECONDS, TimerRunner
from pomocycle.core.settings import SettingsError, load_settings, resolve_config_path
from pomocycle.core.store import (
    DEFAULT_CONFIG_DIR,
    SESSIONS_FILE,
    STATE_FILE,
    RuntimeStateStore,
    SessionLog,
    StatePersister,
)
from pomocycle.core.timer import PomodoroTimer

T = TypeVar("T")

_MODE_LABELS = {
    Mode.IDLE: "Idle",
    Mode.WORK: "Work",
    Mode.SHORT_BREAK: "Short break",
    Mode.LONG_BREAK: "Long break",
}

_KEY_ACTIONS = {
    "s": TimerRunner.start_timer,
    "p": TimerRunner.pause,
    "r": TimerRunner.resume,
    "n": TimerRunner.skip,
    "x": TimerRunner.reset,
}

_logger = logging.getLogger("pomocycle.cli")


def setup_logging(level: int = logging.WARNING) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _format_remaining(seconds: int) -> str:
    """Format *seconds* as ``M:SS``."""
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"


def _describe(snapshot: Snapshot) -> str:
    if snapshot.mode is Mode.IDLE:
        status = "not started"
    elif snapshot.is_paused:
        status = "paused"
    elif snapshot.is_running:
        status = "running"
    else:
        status = "waiting for start"
    return (
        f"{_MODE_LABELS[snapshot.mode]} {_format_remaining(snapshot.remaining_seconds)} "
        f"({status}) | cycles: {snapshot.cycle_count}"
    )


def _describe_entry(entry: SessionLogEntry) -> str:
    minutes = int((entry.end_at - entry.start_at).total_seconds()) // 60
    outcome = "completed" if entry.completed else "skipped"
    line = f"{entry.start_at:%Y-%m-%d %H:%M} {_MODE_LABELS[entry.mode]} {minutes}m {outcome}"
    if entry.tag_ids:
        line += f" [{', '.join(entry.tag_ids)}]"
    if entry.note:
        line += f" - {entry.note}"
    return line


def _run(action: Callable[[], T]) -> T:
    """Execute *action*, converting ``SettingsError`` to a CLI error.

    On ``SettingsError`` the message is printed to stderr and the
    process exits with code 1.
    """
    try:
        return action()
    except SettingsError as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)


def _wire_output(
    timer: PomodoroTimer,
    session_log: SessionLog,
    *,
    note: str,
    tags: tuple[str, ...],
    show_ticks: bool,
) -> None:
    """Subscribe console output and the session log to *timer*."""
    tag_ids = tuple(sorted(set(tags), key=str.lower))

    def on_completed(entry: SessionLogEntry) -> None:
        if entry.mode is Mode.WORK:
            entry = replace(entry, note=note.strip(), tag_ids=tag_ids)
        try:
            session_log.append(entry)
        except OSError as error:
            _logger.error("Failed to log session to %s: %s", session_log.path, error)
        click.echo(f"Finished: {_describe_entry(entry)}")

    timer.events.on_state_changed(lambda snapshot: click.echo(_describe(snapshot)))
    timer.events.on_session_switched(lambda mode: click.echo(f"Now: {_MODE_LABELS[mode]}"))
    timer.events.on_session_completed(on_completed)
    timer.events.on_pre_break_alert(lambda: click.echo("Break is almost over"))
    if show_ticks:
        timer.events.on_tick(
            lambda snapshot: click.echo(_format_remaining(snapshot.remaining_seconds))
        )


@click.group()
@click.version_option(version=pomocycle.__version__, prog_name="pomocycle")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding config.toml, state.json and sessions.jsonl.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(ctx: click.Context, config_dir: Path | None, verbose: bool) -> None:
    """pomocycle: a work/break focus timer that survives restarts."""
    setup_logging(logging.DEBUG if verbose else logging.WARNING)
    ctx.obj = config_dir if config_dir is not None else DEFAULT_CONFIG_DIR


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Settings file (default: $POMOCYCLE_CONFIG or <config-dir>/config.toml).",
)
@click.option("--catch-up", is_flag=True, help="Charge downtime since the last save to the countdown.")
@click.option("--note", default="", help="Note attached to logged work sessions.")
@click.option("--tag", "tags", multiple=True, help="Tag id attached to logged work sessions.")
@click.option("--ticks", "show_ticks", is_flag=True, help="Print the countdown every second.")
@click.option("--interval", type=float, default=DEFAULT_TICK_INTERVAL_SECONDS, hidden=True)
@click.pass_obj
def run(
    config_dir: Path,
    config_path: Path | None,
    catch_up: bool,
    note: str,
    tags: tuple[str, ...],
    show_ticks: bool,
    interval: float,
) -> None:
    """Run the timer.

    Reads commands from stdin, one per line: s=start, p=pause, r=resume,
    n=next (skip), x=reset, q=quit.
    """
    settings = _run(lambda: load_settings(resolve_config_path(config_path, config_dir)))
    timer = PomodoroTimer(settings)
    store = RuntimeStateStore(config_dir / STATE_FILE)
    session_log = SessionLog(config_dir / SESSIONS_FILE)
    _wire_output(timer, session_log, note=note, tags=tags, show_ticks=show_ticks)

    record = store.load()
    if record is not None:
        timer.restore(record, catch_up=catch_up)
    else:
        click.echo(_describe(timer.snapshot()))

    persister = StatePersister(timer, store)
    persister.attach()
    runner = TimerRunner(timer, interval=interval)
    runner.start()
    try:
        for line in sys.stdin:
            key = line.strip().lower()
            if not key:
                continue
            if key == "q":
                break
            action = _KEY_ACTIONS.get(key)
            if action is None:
                click.echo(f"Unknown command: {key}", err=True)
                continue
            action(runner).result()
    finally:
        runner.stop()
        persister.save_now()


@cli.command()
@click.pass_obj
def status(config_dir: Path) -> None:
    """Show the session saved by the last run."""
    record = RuntimeStateStore(config_dir / STATE_FILE).load()
    if record is None:
        click.echo("No saved session")
        sys.exit(1)

    snapshot = Snapshot(
        mode=record.mode,
        is_running=record.is_running,
        is_paused=record.is_paused,
        cycle_count=record.cycle_count,
        remaining_seconds=record.remaining_seconds,
        duration_seconds=record.duration_seconds,
    )
    click.echo(_describe(snapshot))
    click.echo(f"Saved at {record.saved_at:%Y-%m-%d %H:%M:%S}")


@cli.command()
@click.option("--limit", type=click.IntRange(min=1), default=20, show_default=True)
@click.pass_obj
def history(config_dir: Path, limit: int) -> None:
    """List the most recent logged sessions."""
    entries = SessionLog(config_dir / SESSIONS_FILE).read_all()
    if not entries:
        click.echo("No sessions logged")
        return
    for entry in entries[-limit:]:
        click.echo(_describe_entry(entry))


@cli.command()
@click.pass_obj
def reset(config_dir: Path) -> None:
    """Forget the saved session so the next run starts idle."""
    if RuntimeStateStore(config_dir / STATE_FILE).clear():
        click.echo("Saved session cleared")
    else:
        click.echo("No saved session")
