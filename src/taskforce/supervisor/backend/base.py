"""Launcher interface between the supervision engine and worker processes."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from taskforce.supervisor.models import TaskOptions


@dataclass(frozen=True, slots=True)
class WorkerLaunchRequest:
    """Inputs required to start one worker process."""

    task_id: str
    description: str
    working_dir: Path
    options: TaskOptions


@dataclass(frozen=True, slots=True)
class WorkerCallbacks:
    """Hooks invoked from the launcher's I/O threads.

    ``on_exit`` fires once, after every ``on_stdout``/``on_stderr`` call for
    the same process has returned.
    """

    on_stdout: Callable[[bytes], None]
    on_stderr: Callable[[bytes], None]
    on_exit: Callable[[int], None]


class WorkerHandle(Protocol):
    """Signalling handle to a live worker process."""

    @property
    def pid(self) -> int | None:
        """OS process id, when known."""

    def is_running(self) -> bool:
        """Return whether the process has not been reaped yet."""

    def terminate(self) -> None:
        """Send the graceful termination signal; no-op once exited."""

    def kill(self) -> None:
        """Send the forced termination signal; no-op once exited."""


class WorkerLauncher(Protocol):
    """Protocol implemented by worker launchers."""

    @property
    def binary(self) -> str:
        """Executable name used in operator-facing messages."""

    def launch(self, request: WorkerLaunchRequest, callbacks: WorkerCallbacks) -> WorkerHandle:
        """Start the worker; raise ``OSError`` when it cannot be started."""
