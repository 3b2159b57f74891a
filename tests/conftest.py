"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from taskforce.supervisor.backend.base import WorkerCallbacks, WorkerLaunchRequest
from taskforce.supervisor.engine import SupervisionEngine
from taskforce.supervisor.store import TaskStore


@dataclass
class FakeHandle:
    """Worker handle that records signals instead of sending them."""

    pid: int | None = 4242
    running: bool = True
    signals: list[str] = field(default_factory=list)

    def is_running(self) -> bool:
        return self.running

    def terminate(self) -> None:
        if self.running:
            self.signals.append("SIGTERM")

    def kill(self) -> None:
        if self.running:
            self.signals.append("SIGKILL")


@dataclass
class FakeWorker:
    """One launched fake worker; tests drive its callbacks by hand."""

    request: WorkerLaunchRequest
    callbacks: WorkerCallbacks
    handle: FakeHandle

    def stdout(self, chunk: bytes | str) -> None:
        self.callbacks.on_stdout(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)

    def records(self, *records: dict[str, object]) -> None:
        self.stdout("".join(json.dumps(record) + "\n" for record in records))

    def stderr(self, text: str) -> None:
        self.callbacks.on_stderr(text.encode("utf-8"))

    def exit(self, code: int) -> None:
        self.handle.running = False
        self.callbacks.on_exit(code)


class FakeLauncher:
    """Launcher that never spawns processes."""

    binary = "claude"

    def __init__(self) -> None:
        self.workers: list[FakeWorker] = []
        self.launch_error: OSError | None = None

    def launch(self, request: WorkerLaunchRequest, callbacks: WorkerCallbacks) -> FakeHandle:
        if self.launch_error is not None:
            raise self.launch_error
        handle = FakeHandle()
        self.workers.append(FakeWorker(request=request, callbacks=callbacks, handle=handle))
        return handle

    @property
    def last(self) -> FakeWorker:
        return self.workers[-1]


class FakeTimer:
    """Scheduled action fired manually by the test."""

    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.function()


class TimerRecorder:
    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, interval: float, function: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer


@pytest.fixture()
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture()
def timers() -> TimerRecorder:
    return TimerRecorder()


@pytest.fixture()
def engine(launcher: FakeLauncher, timers: TimerRecorder) -> SupervisionEngine:
    return SupervisionEngine(
        store=TaskStore(),
        launcher=launcher,
        max_concurrent_tasks=5,
        kill_grace_seconds=5.0,
        timer_factory=timers,
    )


@pytest.fixture()
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path
