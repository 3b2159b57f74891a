"""Domain models for supervised agent tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import NamedTuple


class TaskStatus(str, Enum):
    """Task lifecycle states."""

    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED})
ACTIVE_STATUSES = frozenset({TaskStatus.STARTING, TaskStatus.RUNNING})

ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.STARTING: frozenset({TaskStatus.RUNNING, TaskStatus.CANCELLED}),
    TaskStatus.RUNNING: frozenset(
        {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED},
    ),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


class PermissionMode(str, Enum):
    """Permission modes understood by the worker binary."""

    DEFAULT = "default"
    ACCEPT_EDITS = "acceptEdits"
    PLAN = "plan"
    BYPASS_PERMISSIONS = "bypassPermissions"


class OutputFormat(str, Enum):
    """Worker output format selector."""

    STREAM_JSON = "stream-json"
    TEXT = "text"


class LaunchFailureCause(str, Enum):
    """Normalized reasons a worker process could not be started."""

    BINARY_NOT_FOUND = "binary_not_found"
    PERMISSION_DENIED = "permission_denied"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    OTHER = "other"


class ProgressCandidate(NamedTuple):
    """Unstamped progress entry produced by the event parser."""

    category: str
    summary: str


@dataclass(frozen=True, slots=True)
class ProgressEntry:
    """One timestamped line of a task's progress history."""

    timestamp: datetime
    category: str
    summary: str


@dataclass(frozen=True, slots=True)
class TaskOptions:
    """Optional launch parameters for one task."""

    model: str | None = None
    permission_mode: PermissionMode = PermissionMode.DEFAULT
    output_format: OutputFormat = OutputFormat.STREAM_JSON


@dataclass(frozen=True, slots=True)
class TaskView:
    """Read-only snapshot of a task for listings and reports."""

    task_id: str
    description: str
    working_dir: Path
    status: TaskStatus
    started_at: datetime
    completed_at: datetime | None
    exit_code: int | None
    model: str | None
    permission_mode: PermissionMode
    last_activity_at: datetime | None
    output_length: int
    has_errors: bool
    progress_entries: int
    recent_progress: tuple[ProgressEntry, ...] = ()

    @property
    def project(self) -> str:
        return self.working_dir.name or str(self.working_dir)


@dataclass(frozen=True, slots=True)
class TimelineEntry:
    """Progress entry positioned relative to task start."""

    elapsed_seconds: float
    timestamp: datetime
    category: str
    summary: str


@dataclass(frozen=True, slots=True)
class TaskOutput:
    """Collected output of one task."""

    task: TaskView
    output: str
    error_output: str
    timeline: list[TimelineEntry] = field(default_factory=list)
    failure_message: str | None = None
