"""Supervision engine: admission, launch, cancellation, and reaping of tasks."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Protocol

from taskforce.supervisor.backend.base import (
    WorkerCallbacks,
    WorkerHandle,
    WorkerLauncher,
    WorkerLaunchRequest,
)
from taskforce.supervisor.errors import AlreadyTerminal, CapacityExceeded, InvalidTarget
from taskforce.supervisor.failure_classifier import build_worker_failure, classify_launch_error
from taskforce.supervisor.models import (
    TaskOptions,
    TaskOutput,
    TaskStatus,
    TaskView,
)
from taskforce.supervisor.record import TaskRecord, utc_now
from taskforce.supervisor.store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_TASKS = 5
DEFAULT_KILL_GRACE_SECONDS = 5.0

STATUS_FILTER_ALL = "all"


class ScheduledAction(Protocol):
    """Cancellable delayed call, satisfied by ``threading.Timer``."""

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], ScheduledAction]


def daemon_timer(interval: float, function: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


@dataclass(frozen=True, slots=True)
class DispatchReceipt:
    """Confirmation returned by a successful dispatch."""

    task_id: str
    task: TaskView


@dataclass(frozen=True, slots=True)
class PurgeResult:
    """Outcome of a registry purge."""

    purged: int
    remaining: int


class SupervisionEngine:
    """Owns the task registry and the worker processes behind it.

    Dispatch never waits for a worker: output and exit notifications arrive
    on launcher threads and are folded into the task's record under the
    record's lock. Callers observe progress by polling with the task id.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        store: TaskStore,
        launcher: WorkerLauncher,
        max_concurrent_tasks: int = DEFAULT_MAX_CONCURRENT_TASKS,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
        timer_factory: TimerFactory = daemon_timer,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if max_concurrent_tasks <= 0:
            raise ValueError("max_concurrent_tasks must be > 0.")
        if kill_grace_seconds < 0:
            raise ValueError("kill_grace_seconds must be >= 0.")
        self._store = store
        self._launcher = launcher
        self._max_concurrent_tasks = max_concurrent_tasks
        self._kill_grace_seconds = kill_grace_seconds
        self._timer_factory = timer_factory
        self._clock = clock
        self._admission_lock = threading.Lock()

    @property
    def max_concurrent_tasks(self) -> int:
        return self._max_concurrent_tasks

    @property
    def store(self) -> TaskStore:
        return self._store

    # -- operations -----------------------------------------------------------

    def dispatch(
        self,
        description: str,
        working_dir: Path | str,
        options: TaskOptions | None = None,
    ) -> DispatchReceipt:
        """Admit a task and start its worker without waiting for it."""

        options = options or TaskOptions()
        target = Path(working_dir)
        with self._admission_lock:
            running = self._store.with_status(TaskStatus.RUNNING)
            if len(running) >= self._max_concurrent_tasks:
                raise CapacityExceeded(
                    self._max_concurrent_tasks,
                    [record.snapshot() for record in running],
                )
            if not target.is_dir():
                raise InvalidTarget(target)

            record = TaskRecord(
                task_id=self._store.new_task_id(),
                description=description,
                working_dir=target,
                options=options,
                clock=self._clock,
            )
            self._store.add(record)
            self._launch(record)

        logger.info(
            "Task %s dispatched: dir=%s model=%s permission_mode=%s status=%s",
            record.task_id,
            target,
            options.model or "default",
            options.permission_mode.value,
            record.status.value,
        )
        return DispatchReceipt(task_id=record.task_id, task=record.snapshot())

    def list_tasks(self, status_filter: TaskStatus | str | None = None) -> list[TaskView]:
        """Snapshot all tasks, optionally restricted to one status."""

        status = parse_status_filter(status_filter)
        records = self._store.values()
        if status is not None:
            records = [record for record in records if record.status is status]
        return [record.snapshot() for record in records]

    def fetch_output(self, task_id: str, tail_lines: int | None = None) -> TaskOutput:
        """Collected output, stderr, and progress timeline of one task."""

        record = self._store.require(task_id)
        with record.lock:
            return TaskOutput(
                task=record.snapshot(),
                output=record.output_text(tail_lines),
                error_output=record.error_output,
                timeline=record.timeline(),
                failure_message=str(record.failure) if record.failure is not None else None,
            )

    def cancel(self, task_id: str) -> TaskView:
        """Terminate a live task: graceful signal now, forced signal after grace."""

        record = self._store.require(task_id)
        with record.lock:
            if not record.status.is_active:
                raise AlreadyTerminal(task_id, record.status)
            handle = record.process
            if handle is not None:
                handle.terminate()
                record.kill_timer = self._schedule_kill(record, handle)
            record.transition(TaskStatus.CANCELLED)
            record.add_progress("system", "Task cancelled")
            view = record.snapshot()

        logger.info("Task %s cancelled", task_id)
        return view

    def purge(self, include_running: bool = False) -> PurgeResult:
        """Drop terminal tasks, and live ones too when ``include_running``."""

        purged = 0
        for record in self._store.values():
            with record.lock:
                if record.status.is_active:
                    if not include_running:
                        continue
                    if record.process is not None:
                        record.process.terminate()
                self._store.remove(record.task_id)
            purged += 1

        remaining = len(self._store)
        logger.info("Purged %d task(s), %d remaining", purged, remaining)
        return PurgeResult(purged=purged, remaining=remaining)

    def wait(self, task_id: str, timeout: float | None = None) -> bool:
        """Block until the task's worker has exited and been fully processed."""

        return self._store.require(task_id).wait_exited(timeout)

    def shutdown(self) -> int:
        """Cancel every live task; return how many were signalled."""

        cancelled = 0
        for record in self._store.with_status(TaskStatus.STARTING, TaskStatus.RUNNING):
            try:
                self.cancel(record.task_id)
            except AlreadyTerminal:
                continue
            cancelled += 1
        return cancelled

    # -- worker lifecycle -----------------------------------------------------

    def _launch(self, record: TaskRecord) -> None:
        request = WorkerLaunchRequest(
            task_id=record.task_id,
            description=record.description,
            working_dir=record.working_dir,
            options=record.options,
        )
        callbacks = WorkerCallbacks(
            on_stdout=record.feed_output,
            on_stderr=record.append_error,
            on_exit=partial(self._on_exit, record),
        )
        with record.lock:
            record.transition(TaskStatus.RUNNING)
            try:
                handle = self._launcher.launch(request, callbacks)
            except OSError as error:
                self._on_launch_error(record, error)
                return
            record.process = handle
            record.add_progress("system", "Agent started")

    def _on_launch_error(self, record: TaskRecord, error: OSError) -> None:
        failure = classify_launch_error(error, binary=self._launcher.binary)
        with record.lock:
            record.failure = failure
            separator = "\n" if record.error_output else ""
            record.append_error(f"{separator}{failure.guidance}")
            record.transition(TaskStatus.FAILED)
            record.add_progress("system", f"Launch failed: {failure.guidance}")
        record.mark_exited()
        logger.warning(
            "Task %s: worker launch failed (%s): %s",
            record.task_id,
            failure.cause.value,
            error,
        )

    def _on_exit(self, record: TaskRecord, returncode: int) -> None:
        try:
            with record.lock:
                record.flush_output()
                record.exit_code = returncode
                record.process = None
                timer, record.kill_timer = record.kill_timer, None
                if timer is not None:
                    timer.cancel()
                if record.status is TaskStatus.RUNNING:
                    self._finalize(record, returncode)
        finally:
            record.mark_exited()

    def _finalize(self, record: TaskRecord, returncode: int) -> None:
        if returncode == 0:
            record.transition(TaskStatus.COMPLETED)
            record.add_progress("system", "Task completed")
            logger.info("Task %s completed", record.task_id)
            return

        failure = build_worker_failure(
            exit_code=returncode,
            progress=record.progress,
            stderr=record.error_output,
        )
        record.failure = failure
        record.transition(TaskStatus.FAILED)
        record.add_progress("system", failure.render())
        logger.warning("Task %s failed with exit code %s", record.task_id, returncode)

    def _schedule_kill(self, record: TaskRecord, handle: WorkerHandle) -> ScheduledAction:
        def force_kill() -> None:
            with record.lock:
                live = record.process is handle
                record.kill_timer = None
            if not live or not handle.is_running():
                logger.debug("Task %s: worker already exited, skip forced kill", record.task_id)
                return
            logger.info(
                "Task %s: worker still alive after %.1fs, sending forced kill",
                record.task_id,
                self._kill_grace_seconds,
            )
            handle.kill()

        timer = self._timer_factory(self._kill_grace_seconds, force_kill)
        timer.start()
        return timer


def parse_status_filter(value: TaskStatus | str | None) -> TaskStatus | None:
    """Normalize a status filter; ``None`` and ``"all"`` mean no filter."""

    if value is None or isinstance(value, TaskStatus):
        return value
    normalized = value.strip().lower()
    if not normalized or normalized == STATUS_FILTER_ALL:
        return None
    try:
        return TaskStatus(normalized)
    except ValueError as error:
        allowed = ", ".join([STATUS_FILTER_ALL, *(status.value for status in TaskStatus)])
        raise ValueError(f"Unsupported status filter: {value!r}. Use one of: {allowed}") from error
