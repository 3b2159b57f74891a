"""In-memory task registry owned by one supervision engine."""

from __future__ import annotations

import threading
from collections.abc import Callable
from uuid import uuid4

from taskforce.supervisor.errors import NotFound
from taskforce.supervisor.models import TaskStatus
from taskforce.supervisor.record import TaskRecord


def short_task_id() -> str:
    return uuid4().hex[:8]


class TaskStore:
    """Insertion-ordered registry guarded by a single lock.

    Records live here until an explicit purge; nothing is evicted
    automatically.
    """

    def __init__(self, id_factory: Callable[[], str] = short_task_id) -> None:
        self._tasks: dict[str, TaskRecord] = {}
        self._lock = threading.Lock()
        self._id_factory = id_factory
        self._issued: set[str] = set()

    def new_task_id(self) -> str:
        """Allocate an id never handed out by this store before."""

        with self._lock:
            while True:
                task_id = self._id_factory()
                if task_id not in self._issued:
                    self._issued.add(task_id)
                    return task_id

    def add(self, record: TaskRecord) -> None:
        with self._lock:
            if record.task_id in self._tasks:
                raise ValueError(f"Task id already registered: {record.task_id}")
            self._tasks[record.task_id] = record
            self._issued.add(record.task_id)

    def get(self, task_id: str) -> TaskRecord | None:
        with self._lock:
            return self._tasks.get(task_id)

    def require(self, task_id: str) -> TaskRecord:
        record = self.get(task_id)
        if record is None:
            raise NotFound(task_id)
        return record

    def remove(self, task_id: str) -> TaskRecord | None:
        with self._lock:
            return self._tasks.pop(task_id, None)

    def values(self) -> list[TaskRecord]:
        with self._lock:
            return list(self._tasks.values())

    def with_status(self, *statuses: TaskStatus) -> list[TaskRecord]:
        return [record for record in self.values() if record.status in statuses]

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._tasks
