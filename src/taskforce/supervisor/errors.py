"""Error taxonomy for task supervision."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from taskforce.supervisor.models import (
    LaunchFailureCause,
    ProgressEntry,
    TaskStatus,
    TaskView,
)


class SupervisorError(RuntimeError):
    """Base class for failures surfaced by the supervision engine."""


class CapacityExceeded(SupervisorError):
    """Admission refused because the running-task ceiling is reached."""

    def __init__(self, limit: int, running: Sequence[TaskView] = ()) -> None:
        super().__init__(
            f"Maximum concurrent tasks ({limit}) reached. "
            "Cancel or wait for existing tasks to complete.",
        )
        self.limit = limit
        self.running = tuple(running)


class InvalidTarget(SupervisorError):
    """Working directory does not exist."""

    def __init__(self, path: Path) -> None:
        super().__init__(
            f"Directory not found: {path}. Check the path for typos; the working "
            "directory must be an existing directory (e.g. /home/user/my-project).",
        )
        self.path = path


class NotFound(SupervisorError):
    """Task id is not registered."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class AlreadyTerminal(SupervisorError):
    """Task has already reached a terminal status."""

    def __init__(self, task_id: str, status: TaskStatus) -> None:
        super().__init__(f"Task {task_id} is already {status.value}, cannot cancel.")
        self.task_id = task_id
        self.status = status


class InvalidTransition(SupervisorError):
    """Internal guard for lifecycle transitions outside the state machine."""

    def __init__(self, task_id: str, current: TaskStatus, target: TaskStatus) -> None:
        super().__init__(
            f"Task {task_id}: illegal transition {current.value} -> {target.value}",
        )
        self.current = current
        self.target = target


class LaunchFailure(SupervisorError):
    """Worker process could not be started."""

    def __init__(self, cause: LaunchFailureCause, binary: str, guidance: str) -> None:
        super().__init__(guidance)
        self.cause = cause
        self.binary = binary
        self.guidance = guidance


class WorkerFailure(SupervisorError):
    """Worker exited with a non-zero status."""

    def __init__(
        self,
        exit_code: int | None,
        recent_progress: Sequence[ProgressEntry] = (),
        stderr_tail: Sequence[str] = (),
    ) -> None:
        self.exit_code = exit_code
        self.recent_progress = tuple(recent_progress)
        self.stderr_tail = tuple(stderr_tail)
        super().__init__(self.render())

    def render(self) -> str:
        """Multi-line diagnostic combining exit code, activity, and stderr."""

        lines = [f"Task failed (exit code: {self.exit_code})"]
        if self.recent_progress:
            lines.append("Last activity before failure:")
            lines.extend(f"  -> {entry.summary}" for entry in self.recent_progress)
        if self.stderr_tail:
            lines.append(f"Stderr (last {len(self.stderr_tail)} lines):")
            lines.extend(self.stderr_tail)
        return "\n".join(lines)
