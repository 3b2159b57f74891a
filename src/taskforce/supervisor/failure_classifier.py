"""Deterministic classification of worker launch and exit failures."""

from __future__ import annotations

import errno
import os
from collections.abc import Sequence

from taskforce.supervisor.errors import LaunchFailure, WorkerFailure
from taskforce.supervisor.models import LaunchFailureCause, ProgressEntry

FAILURE_PROGRESS_CONTEXT = 5
FAILURE_STDERR_LINES = 10

INSTALL_HINT = "npm install -g @anthropic-ai/claude-code"

_NOT_FOUND_ERRNOS: tuple[int, ...] = (errno.ENOENT,)
_PERMISSION_ERRNOS: tuple[int, ...] = (errno.EACCES, errno.EPERM)
_RESOURCE_ERRNOS: tuple[int, ...] = (errno.EMFILE, errno.ENFILE, errno.EAGAIN, errno.ENOMEM)


def classify_launch_error(error: OSError, *, binary: str) -> LaunchFailure:
    """Map a process start error to a cause with operator guidance."""

    cause = _launch_cause(error, binary)
    if cause is LaunchFailureCause.BINARY_NOT_FOUND:
        guidance = (
            f"Worker CLI not found. Make sure '{binary}' is installed and on your PATH. "
            f"Install it with: {INSTALL_HINT}"
        )
    elif cause is LaunchFailureCause.PERMISSION_DENIED:
        guidance = (
            f"Permission denied when running '{binary}'. "
            f"Check file permissions with: ls -la $(which {binary})"
        )
    elif cause is LaunchFailureCause.RESOURCE_EXHAUSTED:
        guidance = (
            "Too many open files or processes. Try closing other programs or raising "
            "your system's file descriptor limit (ulimit -n)."
        )
    else:
        code = errno.errorcode.get(error.errno, "unknown") if error.errno else "unknown"
        subject = f": {error.filename}" if error.filename is not None else ""
        guidance = f"Process error: {error.strerror or error}{subject} (code: {code})"
    return LaunchFailure(cause=cause, binary=binary, guidance=guidance)


def build_worker_failure(
    *,
    exit_code: int | None,
    progress: Sequence[ProgressEntry],
    stderr: str,
) -> WorkerFailure:
    """Summarize a non-zero exit with recent activity and the stderr tail."""

    recent = list(progress)[-FAILURE_PROGRESS_CONTEXT:]
    stderr_lines = stderr.strip().split("\n") if stderr.strip() else []
    return WorkerFailure(
        exit_code=exit_code,
        recent_progress=recent,
        stderr_tail=stderr_lines[-FAILURE_STDERR_LINES:],
    )


def _launch_cause(error: OSError, binary: str) -> LaunchFailureCause:
    if isinstance(error, FileNotFoundError) or error.errno in _NOT_FOUND_ERRNOS:
        # Popen also reports a vanished working directory as ENOENT, naming the directory.
        if error.filename is not None and os.fspath(error.filename) != binary:
            return LaunchFailureCause.OTHER
        return LaunchFailureCause.BINARY_NOT_FOUND
    if isinstance(error, PermissionError) or error.errno in _PERMISSION_ERRNOS:
        return LaunchFailureCause.PERMISSION_DENIED
    if error.errno in _RESOURCE_ERRNOS:
        return LaunchFailureCause.RESOURCE_EXHAUSTED
    return LaunchFailureCause.OTHER
