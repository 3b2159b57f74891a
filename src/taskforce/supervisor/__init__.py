"""Task supervision engine for CLI agent workers.

The engine keeps an in-memory registry of tasks, launches one worker process
per task, and turns the worker's ``stream-json`` output into a bounded
progress timeline that callers poll by task id.
"""

from taskforce.supervisor.engine import DispatchReceipt, PurgeResult, SupervisionEngine
from taskforce.supervisor.errors import (
    AlreadyTerminal,
    CapacityExceeded,
    InvalidTarget,
    LaunchFailure,
    NotFound,
    SupervisorError,
    WorkerFailure,
)
from taskforce.supervisor.models import (
    OutputFormat,
    PermissionMode,
    TaskOptions,
    TaskOutput,
    TaskStatus,
    TaskView,
)
from taskforce.supervisor.store import TaskStore

__all__ = [
    "AlreadyTerminal",
    "CapacityExceeded",
    "DispatchReceipt",
    "InvalidTarget",
    "LaunchFailure",
    "NotFound",
    "OutputFormat",
    "PermissionMode",
    "PurgeResult",
    "SupervisionEngine",
    "SupervisorError",
    "TaskOptions",
    "TaskOutput",
    "TaskStatus",
    "TaskStore",
    "TaskView",
    "WorkerFailure",
]
