"""Worker launcher implementations."""

from taskforce.supervisor.backend.base import (
    WorkerCallbacks,
    WorkerHandle,
    WorkerLauncher,
    WorkerLaunchRequest,
)
from taskforce.supervisor.backend.cli_backend import (
    ProcessHandle,
    ProcessLauncher,
    build_worker_args,
)

__all__ = [
    "ProcessHandle",
    "ProcessLauncher",
    "WorkerCallbacks",
    "WorkerHandle",
    "WorkerLaunchRequest",
    "WorkerLauncher",
    "build_worker_args",
]
