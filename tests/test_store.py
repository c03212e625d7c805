"""Tests for the runtime state store, session log and StatePersister."""

import json
from datetime import timedelta
from pathlib import Path

from pomocycle.core.models import Mode, PersistedRuntimeState, SessionLogEntry
from pomocycle.core.runner import TimerRunner
from pomocycle.core.store import RuntimeStateStore, SessionLog, StatePersister

from conftest import T0

# ---------------------------------------------------------------------------
# Helper: read the persisted JSON state file
# ---------------------------------------------------------------------------


def _read_state(path: Path) -> dict:
    """Read and return the state.json content as a dict."""
    return json.loads(path.read_text())


def _record(**overrides) -> PersistedRuntimeState:
    values = dict(
        mode=Mode.SHORT_BREAK,
        previous_mode=Mode.SHORT_BREAK,
        is_running=True,
        is_paused=False,
        cycle_count=1,
        remaining_seconds=240,
        duration_seconds=300,
        saved_at=T0,
    )
    values.update(overrides)
    return PersistedRuntimeState(**values)


# ---------------------------------------------------------------------------
# RuntimeStateStore
# ---------------------------------------------------------------------------


class TestRuntimeStateStore:
    """The state file round-trips and bad files read as absent."""

    def test_save_then_load(self, tmp_path: Path) -> None:
        store = RuntimeStateStore(tmp_path / "state.json")
        store.save(_record())
        assert store.load() == _record()

    def test_saved_file_is_flat_json(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        RuntimeStateStore(path).save(_record())
        state = _read_state(path)
        assert state["mode"] == "short_break"
        assert state["remaining_seconds"] == 240
        assert state["schema_version"] == 1

    def test_save_overwrites_previous_record(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        store = RuntimeStateStore(path)
        store.save(_record(remaining_seconds=240))
        store.save(_record(remaining_seconds=3))
        assert _read_state(path)["remaining_seconds"] == 3

    def test_creates_missing_directory(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "config" / "state.json"
        RuntimeStateStore(path).save(_record())
        assert path.exists()

    def test_missing_file_loads_none(self, tmp_path: Path) -> None:
        assert RuntimeStateStore(tmp_path / "state.json").load() is None

    def test_corrupt_file_loads_none(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("{not json")
        assert RuntimeStateStore(path).load() is None

    def test_malformed_record_loads_none(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"mode": "nap", "saved_at": T0.isoformat()}))
        assert RuntimeStateStore(path).load() is None

    def test_clear_removes_file(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        store = RuntimeStateStore(path)
        store.save(_record())
        assert store.clear() is True
        assert not path.exists()
        assert store.clear() is False


# ---------------------------------------------------------------------------
# SessionLog
# ---------------------------------------------------------------------------


class TestSessionLog:
    """Finished sessions are appended as JSON lines."""

    def _entry(self, **overrides) -> SessionLogEntry:
        values = dict(
            start_at=T0,
            end_at=T0 + timedelta(minutes=25),
            mode=Mode.WORK,
            completed=True,
        )
        values.update(overrides)
        return SessionLogEntry(**values)

    def test_append_then_read(self, tmp_path: Path) -> None:
        log = SessionLog(tmp_path / "sessions.jsonl")
        first = self._entry(note="draft report", tag_ids=("client-a", "writing"))
        second = self._entry(mode=Mode.SHORT_BREAK, completed=False)
        log.append(first)
        log.append(second)
        assert log.read_all() == [first, second]

    def test_one_object_per_line(self, tmp_path: Path) -> None:
        path = tmp_path / "sessions.jsonl"
        log = SessionLog(path)
        log.append(self._entry())
        log.append(self._entry())
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["mode"] == "work"
        assert json.loads(lines[0])["tag_ids"] == []

    def test_non_ascii_note_survives(self, tmp_path: Path) -> None:
        log = SessionLog(tmp_path / "sessions.jsonl")
        log.append(self._entry(note="設計レビュー"))
        assert log.read_all()[0].note == "設計レビュー"

    def test_missing_file_reads_empty(self, tmp_path: Path) -> None:
        assert SessionLog(tmp_path / "sessions.jsonl").read_all() == []

    def test_invalid_lines_are_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "sessions.jsonl"
        log = SessionLog(path)
        log.append(self._entry())
        with open(path, "a", encoding="utf-8") as f:
            f.write("\n")
            f.write("garbage\n")
            f.write('{"mode": "work"}\n')
            f.write("[1, 2]\n")
        log.append(self._entry(completed=False))
        entries = log.read_all()
        assert [entry.completed for entry in entries] == [True, False]


# ---------------------------------------------------------------------------
# StatePersister
# ---------------------------------------------------------------------------


class TestStatePersister:
    """The persister saves on state changes and every N ticks."""

    def test_saves_on_state_change(self, tmp_path: Path, make_timer) -> None:
        timer, _ = make_timer()
        store = RuntimeStateStore(tmp_path / "state.json")
        StatePersister(timer, store).attach()
        timer.start()
        record = store.load()
        assert record is not None
        assert record.mode is Mode.WORK
        assert record.is_running

    def test_saves_every_n_ticks(self, tmp_path: Path, make_timer) -> None:
        timer, _ = make_timer()
        path = tmp_path / "state.json"
        store = RuntimeStateStore(path)
        StatePersister(timer, store, every_ticks=5).attach()
        timer.start()

        for _ in range(4):
            timer.tick()
        assert _read_state(path)["remaining_seconds"] == 25 * 60

        timer.tick()
        assert _read_state(path)["remaining_seconds"] == 25 * 60 - 5

    def test_detach_stops_saving(self, tmp_path: Path, make_timer) -> None:
        timer, _ = make_timer()
        store = RuntimeStateStore(tmp_path / "state.json")
        persister = StatePersister(timer, store)
        persister.attach()
        persister.detach()
        timer.start()
        assert store.load() is None

    def test_save_failure_is_logged_not_raised(self, tmp_path: Path, make_timer, caplog) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        timer, _ = make_timer()
        StatePersister(timer, RuntimeStateStore(blocker / "state.json")).attach()

        timer.start()

        assert timer.snapshot().is_running
        assert "Failed to save runtime state" in caplog.text

    def test_save_lands_before_runner_command_returns(self, tmp_path: Path, make_timer) -> None:
        timer, _ = make_timer()
        path = tmp_path / "state.json"
        StatePersister(timer, RuntimeStateStore(path)).attach()
        runner = TimerRunner(timer, interval=3600.0)
        runner.start()
        try:
            runner.start_timer().result(timeout=5.0)
            assert _read_state(path)["is_running"] is True
        finally:
            runner.stop(timeout=5.0)
