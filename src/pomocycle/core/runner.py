"""Serialized execution context for a :class:`PomodoroTimer`.

A single worker thread owns the timer.  Commands from any thread and the
periodic tick are queued and applied one at a time, so no tick ever
overlaps a command.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from dataclasses import dataclass
from queue import Queue
from typing import Any, Callable

from pomocycle.core.models import Snapshot
from pomocycle.core.settings import TimerSettings
from pomocycle.core.timer import PomodoroTimer

DEFAULT_TICK_INTERVAL_SECONDS = 1.0


@dataclass
class _Job:
    fn: Callable[..., Any]
    args: tuple[Any, ...]
    future: concurrent.futures.Future[Any] | None = None


class TimerRunner:
    """Runs a timer on one worker thread fed by a job queue and a ticker."""

    def __init__(
        self,
        timer: PomodoroTimer,
        *,
        interval: float = DEFAULT_TICK_INTERVAL_SECONDS,
        logger: logging.Logger | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be greater than zero")

        self._timer = timer
        self._interval = interval
        self._logger = logger or logging.getLogger("pomocycle.runner")
        self._jobs: Queue[_Job | None] = Queue()
        self._stopping = threading.Event()
        self._submit_lock = threading.Lock()
        self._closed = False
        self._worker = threading.Thread(target=self._drain, name="pomocycle-worker", daemon=True)
        self._ticker = threading.Thread(target=self._tick_loop, name="pomocycle-ticker", daemon=True)

    @property
    def timer(self) -> PomodoroTimer:
        return self._timer

    def start(self) -> None:
        self._worker.start()
        self._ticker.start()
        self._logger.debug("Runner started: interval=%ss", self._interval)

    def stop(self, timeout: float | None = None) -> None:
        """Stop ticking, finish queued jobs, and join both threads."""
        with self._submit_lock:
            if self._closed:
                return
            self._closed = True
            self._stopping.set()
            self._jobs.put(None)

        if self._ticker.is_alive():
            self._ticker.join(timeout)
        if self._worker.is_alive():
            self._worker.join(timeout)
        self._logger.debug("Runner stopped")

    def submit(self, fn: Callable[..., Any], *args: Any) -> concurrent.futures.Future[Any]:
        """Run ``fn(*args)`` on the worker thread."""
        future: concurrent.futures.Future[Any] = concurrent.futures.Future()
        with self._submit_lock:
            if self._closed:
                raise RuntimeError("runner is stopped")
            self._jobs.put(_Job(fn=fn, args=args, future=future))
        return future

    # -- command wrappers ----------------------------------------------------

    def start_timer(self) -> concurrent.futures.Future[None]:
        return self.submit(self._timer.start)

    def pause(self) -> concurrent.futures.Future[None]:
        return self.submit(self._timer.pause)

    def resume(self) -> concurrent.futures.Future[None]:
        return self.submit(self._timer.resume)

    def skip(self) -> concurrent.futures.Future[None]:
        return self.submit(self._timer.skip)

    def reset(self) -> concurrent.futures.Future[None]:
        return self.submit(self._timer.reset)

    def update_configuration(self, settings: TimerSettings) -> concurrent.futures.Future[None]:
        return self.submit(self._timer.update_configuration, settings)

    def snapshot(self) -> concurrent.futures.Future[Snapshot]:
        return self.submit(self._timer.snapshot)

    # -- threads -------------------------------------------------------------

    def _tick_loop(self) -> None:
        while not self._stopping.wait(self._interval):
            with self._submit_lock:
                if self._closed:
                    return
                self._jobs.put(_Job(fn=self._timer.tick, args=()))

    def _drain(self) -> None:
        while True:
            job = self._jobs.get()
            if job is None:
                return
            self._run(job)

    def _run(self, job: _Job) -> None:
        future = job.future
        if future is not None and not future.set_running_or_notify_cancel():
            return

        try:
            result = job.fn(*job.args)
        except Exception as error:
            if future is not None:
                future.set_exception(error)
            else:
                self._logger.error("Tick handler failed: %s", error, exc_info=True)
            return

        if future is not None:
            future.set_result(result)
