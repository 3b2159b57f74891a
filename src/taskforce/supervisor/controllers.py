"""Controllers for supervisor CLI commands."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from taskforce.config import Settings
from taskforce.supervisor.backend import ProcessLauncher
from taskforce.supervisor.engine import SupervisionEngine
from taskforce.supervisor.errors import AlreadyTerminal, CapacityExceeded
from taskforce.supervisor.models import (
    OutputFormat,
    PermissionMode,
    TaskOptions,
    TaskStatus,
    TimelineEntry,
)
from taskforce.supervisor.presentation import (
    render_cancel,
    render_capacity_exceeded,
    render_dispatch,
    render_progress,
    render_task_list,
    render_task_output,
)
from taskforce.supervisor.record import TaskRecord
from taskforce.supervisor.store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 0.5


@dataclass(slots=True)
class RunTaskCommand:
    """CLI input for a single supervised run."""

    description: str
    working_dir: Path
    model: str | None
    permission_mode: str
    output_format: str
    tail_lines: int | None
    timeout_seconds: float | None
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS


@dataclass(slots=True)
class ReplayCommand:
    """CLI input for offline replay of recorded worker output."""

    path: Path
    tail_lines: int | None


@dataclass(slots=True)
class RunTaskResult:
    """Final report of a supervised run."""

    lines: list[str]
    success: bool


class SupervisorCliController:
    """Coordinates engine construction and rendering for CLI commands."""

    def __init__(self, settings_loader: Callable[[], Settings] = Settings.from_env) -> None:
        self._settings_loader = settings_loader

    def build_engine(self) -> SupervisionEngine:
        settings = self._settings_loader()
        settings.validate()
        return SupervisionEngine(
            store=TaskStore(),
            launcher=ProcessLauncher(settings.supervisor.worker_command),
            max_concurrent_tasks=settings.supervisor.max_concurrent_tasks,
            kill_grace_seconds=settings.supervisor.kill_grace_seconds,
        )

    def run_task(self, command: RunTaskCommand, emit: Callable[[str], None]) -> RunTaskResult:
        """Dispatch one task, stream its progress, and report its output."""

        engine = self.build_engine()
        options = TaskOptions(
            model=command.model,
            permission_mode=PermissionMode(command.permission_mode),
            output_format=OutputFormat(command.output_format),
        )
        try:
            receipt = engine.dispatch(command.description, command.working_dir, options)
        except CapacityExceeded as error:
            return RunTaskResult(lines=render_capacity_exceeded(error), success=False)

        for line in render_dispatch(receipt):
            emit(line)

        task_id = receipt.task_id
        deadline = (
            time.monotonic() + command.timeout_seconds if command.timeout_seconds else None
        )
        last_seen: TimelineEntry | None = None
        try:
            while True:
                exited = engine.wait(task_id, timeout=command.poll_interval_seconds)
                timeline = engine.fetch_output(task_id).timeline
                fresh = _entries_after(timeline, last_seen)
                for line in render_progress(fresh):
                    emit(line)
                if fresh:
                    last_seen = fresh[-1]
                if exited:
                    break
                if deadline is not None and time.monotonic() >= deadline:
                    logger.warning(
                        "Task %s exceeded %ss, cancelling",
                        task_id,
                        command.timeout_seconds,
                    )
                    emit(f"Timeout after {command.timeout_seconds}s, cancelling task {task_id}.")
                    try:
                        for line in render_cancel(engine.cancel(task_id)):
                            emit(line)
                    except AlreadyTerminal:
                        logger.debug("Task %s exited before timeout cancel", task_id)
                    deadline = None
        except KeyboardInterrupt:
            engine.shutdown()
            raise

        output = engine.fetch_output(task_id, tail_lines=command.tail_lines)
        return RunTaskResult(
            lines=[*render_task_list(engine.list_tasks()), "", *render_task_output(output)],
            success=output.task.status is TaskStatus.COMPLETED,
        )

    def replay(self, command: ReplayCommand) -> list[str]:
        """Feed a recorded ``stream-json`` capture through the parser pipeline."""

        record = TaskRecord(
            task_id="replay",
            description=f"replay of {command.path.name}",
            working_dir=command.path.parent,
            options=TaskOptions(),
        )
        with command.path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(64 * 1024), b""):
                record.feed_output(chunk)
        record.flush_output()

        lines = [f"Replayed {command.path} ({len(record.progress)} progress entries)"]
        lines.append("--- Progress Timeline ---")
        lines.extend(f"  [{entry.category}] {entry.summary}" for entry in record.progress)
        lines.append("--- Assembled Output ---")
        lines.append(record.output_text(command.tail_lines) or "(no output)")
        return lines


def _entries_after(
    timeline: Sequence[TimelineEntry],
    last_seen: TimelineEntry | None,
) -> list[TimelineEntry]:
    if last_seen is None:
        return list(timeline)
    for index in range(len(timeline) - 1, -1, -1):
        if timeline[index] == last_seen:
            return list(timeline[index + 1 :])
    return list(timeline)
