"""Mutable state container for one supervised task."""

from __future__ import annotations

import codecs
import logging
import threading
from collections import deque
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from taskforce.supervisor.backend.base import WorkerHandle
from taskforce.supervisor.errors import InvalidTransition, SupervisorError
from taskforce.supervisor.events import (
    extract_result_text,
    iter_message_text,
    parse_progress_event,
)
from taskforce.supervisor.models import (
    ALLOWED_TRANSITIONS,
    ProgressEntry,
    TaskOptions,
    TaskStatus,
    TaskView,
    TimelineEntry,
)
from taskforce.supervisor.stream import StreamLine, StreamReassembler

if TYPE_CHECKING:
    from taskforce.supervisor.engine import ScheduledAction

logger = logging.getLogger(__name__)

PROGRESS_HISTORY_LIMIT = 50
RECENT_PROGRESS_COUNT = 3


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class TaskRecord:
    """Lifecycle, accumulated output, and bounded progress of one task.

    Every mutation goes through the record's own lock: the engine and the
    worker's output callbacks run on different threads, but each record has a
    single writer at a time.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        task_id: str,
        description: str,
        working_dir: Path,
        options: TaskOptions,
        clock: Callable[[], datetime] = utc_now,
        history_limit: int = PROGRESS_HISTORY_LIMIT,
    ) -> None:
        self.task_id = task_id
        self.description = description
        self.working_dir = working_dir
        self.options = options
        self._clock = clock
        self._lock = threading.RLock()
        self._exited = threading.Event()

        self.status = TaskStatus.STARTING
        self.exit_code: int | None = None
        self.started_at = clock()
        self.completed_at: datetime | None = None
        self.last_activity_at: datetime | None = None

        self.raw_output = ""
        self.result_text = ""
        self.error_output = ""
        self.failure: SupervisorError | None = None

        self.process: WorkerHandle | None = None
        self.kill_timer: ScheduledAction | None = None

        self._progress: deque[ProgressEntry] = deque(maxlen=history_limit)
        self._reassembler = StreamReassembler()
        self._stderr_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def progress(self) -> tuple[ProgressEntry, ...]:
        with self._lock:
            return tuple(self._progress)

    @property
    def pending_fragment(self) -> str:
        with self._lock:
            return self._reassembler.pending

    # -- lifecycle ------------------------------------------------------------

    def transition(self, target: TaskStatus) -> None:
        """Move to ``target``; terminal states stamp the completion time."""

        with self._lock:
            if target not in ALLOWED_TRANSITIONS[self.status]:
                raise InvalidTransition(self.task_id, self.status, target)
            self.status = target
            if target.is_terminal:
                self.completed_at = self._clock()

    def mark_exited(self) -> None:
        self._exited.set()

    def wait_exited(self, timeout: float | None = None) -> bool:
        return self._exited.wait(timeout)

    # -- progress -------------------------------------------------------------

    def add_progress(self, category: str, summary: str) -> ProgressEntry:
        entry = ProgressEntry(timestamp=self._clock(), category=category, summary=summary)
        with self._lock:
            self._progress.append(entry)
            self.last_activity_at = entry.timestamp
        return entry

    def latest_progress(self, count: int = RECENT_PROGRESS_COUNT) -> list[ProgressEntry]:
        if count <= 0:
            return []
        with self._lock:
            return list(self._progress)[-count:]

    # -- output accumulation --------------------------------------------------

    def feed_output(self, chunk: bytes | str) -> None:
        """Consume a chunk of the worker's primary output stream."""

        with self._lock:
            self._apply_lines(self._reassembler.feed(chunk))

    def flush_output(self) -> None:
        """Process whatever fragment remains once the stream has ended."""

        with self._lock:
            self._apply_lines(self._reassembler.flush())
            tail = self._stderr_decoder.decode(b"", final=True)
            if tail:
                self.error_output += tail

    def append_error(self, chunk: bytes | str) -> None:
        text = chunk if isinstance(chunk, str) else self._stderr_decoder.decode(chunk)
        if text:
            with self._lock:
                self.error_output += text

    def apply_record(self, event: dict[str, Any]) -> None:
        """Fold one decoded record into result text and progress history."""

        with self._lock:
            for text in iter_message_text(event):
                self.result_text += text
            if not self.result_text:
                seed = extract_result_text(event)
                if seed is not None:
                    self.result_text = seed
            try:
                candidates = parse_progress_event(event)
            except Exception:
                logger.exception(
                    "Task %s: progress classification failed for record type %r",
                    self.task_id,
                    event.get("type"),
                )
                return
            for candidate in candidates:
                self.add_progress(candidate.category, candidate.summary)

    def _apply_lines(self, lines: Iterable[StreamLine]) -> None:
        for line in lines:
            if line.record is None:
                self.raw_output += line.fallback_text
            else:
                self.apply_record(line.record)

    # -- views ----------------------------------------------------------------

    def output_text(self, tail_lines: int | None = None) -> str:
        with self._lock:
            output = self.result_text or self.raw_output
        if tail_lines is not None and tail_lines > 0:
            output = "\n".join(output.split("\n")[-tail_lines:])
        return output

    def timeline(self) -> list[TimelineEntry]:
        with self._lock:
            entries = list(self._progress)
        return [
            TimelineEntry(
                elapsed_seconds=max(0.0, (entry.timestamp - self.started_at).total_seconds()),
                timestamp=entry.timestamp,
                category=entry.category,
                summary=entry.summary,
            )
            for entry in entries
        ]

    def snapshot(self) -> TaskView:
        with self._lock:
            return TaskView(
                task_id=self.task_id,
                description=self.description,
                working_dir=self.working_dir,
                status=self.status,
                started_at=self.started_at,
                completed_at=self.completed_at,
                exit_code=self.exit_code,
                model=self.options.model,
                permission_mode=self.options.permission_mode,
                last_activity_at=self.last_activity_at,
                output_length=len(self.result_text) or len(self.raw_output),
                has_errors=bool(self.error_output),
                progress_entries=len(self._progress),
                recent_progress=tuple(self.latest_progress()),
            )
