"""Subprocess-based launcher for CLI agent workers."""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections.abc import Callable, Sequence
from typing import IO

from taskforce.supervisor.backend.base import WorkerCallbacks, WorkerLaunchRequest
from taskforce.supervisor.models import OutputFormat, PermissionMode

logger = logging.getLogger(__name__)

_READ_CHUNK_BYTES = 64 * 1024


def build_worker_args(command: Sequence[str], request: WorkerLaunchRequest) -> list[str]:
    """Render the worker argument convention for one task."""

    if not command:
        raise ValueError("Worker command is empty.")
    options = request.options
    args = [
        *command,
        "-p",
        request.description,
        "--output-format",
        options.output_format.value,
    ]
    if options.output_format is OutputFormat.STREAM_JSON:
        args.append("--verbose")
    if options.model:
        args.extend(["--model", options.model])
    if options.permission_mode is not PermissionMode.DEFAULT:
        args.extend(["--permission-mode", options.permission_mode.value])
    return args


class ProcessHandle:
    """Signals a worker started with ``subprocess.Popen``."""

    def __init__(self, process: subprocess.Popen[bytes]) -> None:
        self._process = process

    @property
    def pid(self) -> int | None:
        return self._process.pid

    def is_running(self) -> bool:
        return self._process.poll() is None

    def terminate(self) -> None:
        self._signal(self._process.terminate, "terminate")

    def kill(self) -> None:
        self._signal(self._process.kill, "kill")

    def _signal(self, send: Callable[[], None], action: str) -> None:
        if not self.is_running():
            logger.debug("Skip %s for pid %s: already exited", action, self._process.pid)
            return
        try:
            send()
        except OSError as error:
            logger.debug("Could not %s pid %s: %s", action, self._process.pid, error)


class ProcessLauncher:
    """Start one worker subprocess per task and pump its output streams."""

    def __init__(self, command: Sequence[str]) -> None:
        if not command:
            raise ValueError("Worker command is empty.")
        self._command = tuple(command)

    @property
    def binary(self) -> str:
        return self._command[0]

    @property
    def command(self) -> tuple[str, ...]:
        return self._command

    def launch(self, request: WorkerLaunchRequest, callbacks: WorkerCallbacks) -> ProcessHandle:
        args = build_worker_args(self._command, request)
        process = subprocess.Popen(  # noqa: S603
            args,
            cwd=request.working_dir,
            env=os.environ.copy(),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        logger.info("Task %s: worker started pid=%s", request.task_id, process.pid)

        readers = [
            _start_thread(
                _pump,
                process.stdout,
                callbacks.on_stdout,
                name=f"taskforce-{request.task_id}-stdout",
            ),
            _start_thread(
                _pump,
                process.stderr,
                callbacks.on_stderr,
                name=f"taskforce-{request.task_id}-stderr",
            ),
        ]
        _start_thread(
            _wait_and_report,
            process,
            readers,
            callbacks.on_exit,
            name=f"taskforce-{request.task_id}-wait",
        )
        return ProcessHandle(process)


def _start_thread(target: Callable[..., None], *args: object, name: str) -> threading.Thread:
    thread = threading.Thread(target=target, args=args, daemon=True, name=name)
    thread.start()
    return thread


def _pump(stream: IO[bytes] | None, deliver: Callable[[bytes], None]) -> None:
    if stream is None:
        return
    read = getattr(stream, "read1", stream.read)
    try:
        while True:
            chunk = read(_READ_CHUNK_BYTES)
            if not chunk:
                return
            try:
                deliver(chunk)
            except Exception:
                # Keep draining so the worker never writes into a closed pipe.
                logger.exception("Worker output handler failed; continuing to read")
    finally:
        stream.close()


def _wait_and_report(
    process: subprocess.Popen[bytes],
    readers: list[threading.Thread],
    on_exit: Callable[[int], None],
) -> None:
    returncode = process.wait()
    for reader in readers:
        reader.join()
    on_exit(returncode)
