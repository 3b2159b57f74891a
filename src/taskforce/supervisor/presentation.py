"""Text rendering of task snapshots, timelines, and operation results."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from taskforce.supervisor.engine import DispatchReceipt
from taskforce.supervisor.errors import CapacityExceeded
from taskforce.supervisor.models import TaskOutput, TaskStatus, TaskView, TimelineEntry
from taskforce.supervisor.record import utc_now

NO_OUTPUT_PLACEHOLDER = "(no output yet)"

STATUS_MARKERS: dict[TaskStatus, str] = {
    TaskStatus.STARTING: "[..]",
    TaskStatus.RUNNING: "[>>]",
    TaskStatus.COMPLETED: "[ok]",
    TaskStatus.FAILED: "[!!]",
    TaskStatus.CANCELLED: "[--]",
}


def format_duration(seconds: float) -> str:
    """Render a duration as ``15s``, ``3m 12s`` or ``1h 1m 1s``."""

    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def render_dispatch(receipt: DispatchReceipt) -> list[str]:
    task = receipt.task
    lines = [
        "Agent deployed.",
        f"  Task ID: {receipt.task_id}",
        f"  Project: {task.project} ({task.working_dir})",
        f"  Mission: {task.description}",
        f"  Model: {task.model or 'default'}",
        f"  Permissions: {task.permission_mode.value}",
        f"  Status: {task.status.value}",
    ]
    if task.status is TaskStatus.FAILED and task.recent_progress:
        lines.append(f"  {task.recent_progress[-1].summary}")
    return lines


def render_capacity_exceeded(error: CapacityExceeded) -> list[str]:
    lines = [str(error)]
    if error.running:
        lines.append("Running tasks:")
        lines.extend(f"  - {task.task_id}: {task.description}" for task in error.running)
    return lines


def render_task_list(
    tasks: Sequence[TaskView],
    *,
    now: datetime | None = None,
) -> list[str]:
    """Status report with per-task runtime and recent activity."""

    if not tasks:
        return ["No tasks deployed yet."]

    now = now or utc_now()
    counts = {status: sum(1 for task in tasks if task.status is status) for status in TaskStatus}
    lines = [
        "Task Status Report",
        (
            f"Running: {counts[TaskStatus.RUNNING]} | "
            f"Completed: {counts[TaskStatus.COMPLETED]} | "
            f"Failed: {counts[TaskStatus.FAILED]} | "
            f"Cancelled: {counts[TaskStatus.CANCELLED]}"
        ),
    ]
    for task in tasks:
        lines.append("")
        lines.extend(_render_task_entry(task, now=now))
    return lines


def render_task_output(output: TaskOutput) -> list[str]:
    task = output.task
    lines = [
        f"Output for task {task.task_id} [{task.status.value}]",
        f"Project: {task.project}",
        f"Task: {task.description}",
    ]
    if output.timeline:
        lines.append("--- Progress Timeline ---")
        lines.extend(_render_timeline_entry(entry) for entry in output.timeline)
    lines.append("--- Agent Output ---")
    lines.append(output.output or NO_OUTPUT_PLACEHOLDER)
    if output.error_output:
        lines.append("--- Stderr ---")
        lines.append(output.error_output.rstrip("\n"))
    if output.failure_message:
        lines.append("--- Failure ---")
        lines.append(output.failure_message)
    return lines


def render_progress(entries: Sequence[TimelineEntry]) -> list[str]:
    return [_render_timeline_entry(entry) for entry in entries]


def render_cancel(task: TaskView) -> list[str]:
    return [
        f"Task {task.task_id} cancelled.",
        f"Project: {task.project}",
        f"Task: {task.description}",
    ]


def _render_task_entry(task: TaskView, *, now: datetime) -> list[str]:
    marker = STATUS_MARKERS.get(task.status, "[??]")
    if task.completed_at is not None:
        runtime = format_duration((task.completed_at - task.started_at).total_seconds())
    else:
        runtime = f"{format_duration((now - task.started_at).total_seconds())} (running)"

    lines = [
        f"{marker} [{task.task_id}] {task.status.value.upper()}",
        f"   Project: {task.project}",
        f"   Task: {task.description}",
        f"   Runtime: {runtime}",
    ]
    if task.status is TaskStatus.RUNNING:
        if task.last_activity_at is not None:
            idle = format_duration((now - task.last_activity_at).total_seconds())
            lines.append(f"   Last activity: {idle} ago")
        else:
            lines.append("   Last activity: waiting for first activity...")
        if task.recent_progress:
            lines.append("   Recent activity:")
            lines.extend(f"     -> {entry.summary}" for entry in task.recent_progress)
    elif task.exit_code is not None:
        lines.append(f"   Exit code: {task.exit_code}")
    return lines


def _render_timeline_entry(entry: TimelineEntry) -> str:
    # Multi-line failure diagnostics are printed in full in their own section.
    headline = entry.summary.split("\n", 1)[0]
    return f"  [{entry.elapsed_seconds:.0f}s] {headline}"
