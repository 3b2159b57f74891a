"""Runtime configuration for the task supervisor."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field

DEFAULT_WORKER_COMMAND: tuple[str, ...] = ("claude",)


@dataclass(frozen=True, slots=True)
class SupervisorSettings:
    """Process-wide supervisor settings, fixed at startup."""

    worker_command: tuple[str, ...] = DEFAULT_WORKER_COMMAND
    max_concurrent_tasks: int = 5
    kill_grace_seconds: float = 5.0


@dataclass(frozen=True, slots=True)
class Settings:
    """Application settings grouped by concern."""

    supervisor: SupervisorSettings = field(default_factory=SupervisorSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults suitable for local use."""

        return cls(
            supervisor=SupervisorSettings(
                worker_command=_env_command(
                    "TASKFORCE_WORKER_COMMAND",
                    default=DEFAULT_WORKER_COMMAND,
                ),
                max_concurrent_tasks=_env_int("TASKFORCE_MAX_CONCURRENT_TASKS", default=5),
                kill_grace_seconds=_env_float("TASKFORCE_KILL_GRACE_SECONDS", default=5.0),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values the engine cannot run with."""

        if not self.supervisor.worker_command:
            raise ValueError("TASKFORCE_WORKER_COMMAND must name the worker binary.")
        if self.supervisor.max_concurrent_tasks <= 0:
            raise ValueError("TASKFORCE_MAX_CONCURRENT_TASKS must be > 0.")
        if self.supervisor.kill_grace_seconds < 0:
            raise ValueError("TASKFORCE_KILL_GRACE_SECONDS must be >= 0.")


def _env_command(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return tuple(shlex.split(value))
    except ValueError as error:
        raise ValueError(f"Invalid command for {name}: {value!r} ({error})") from error


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid number for {name}: {value!r}") from error
