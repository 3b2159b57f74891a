from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import allure
import pytest
from helpers import assistant_message, jsonl, result_record, text_segment, tool_segment

from taskforce.supervisor.errors import InvalidTransition
from taskforce.supervisor.models import TaskOptions, TaskStatus
from taskforce.supervisor.record import PROGRESS_HISTORY_LIMIT, TaskRecord

pytestmark = [
    allure.epic("Task Supervision"),
    allure.feature("Task Record"),
]


class StepClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self) -> None:
        self.current = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        return value


def _record(clock=None) -> TaskRecord:
    kwargs = {"clock": clock} if clock is not None else {}
    return TaskRecord(
        task_id="abc12345",
        description="Refactor the parser",
        working_dir=Path("/tmp/project"),
        options=TaskOptions(),
        **kwargs,
    )


def _stream() -> bytes:
    return jsonl(
        {"type": "system", "subtype": "init"},
        assistant_message(
            text_segment("Reading the module first.\n"),
            tool_segment("Read", file_path="src/parser.py"),
        ),
        assistant_message(
            tool_segment("Edit", file_path="src/parser.py"),
            text_segment("Done: café ✓"),
        ),
        result_record("Final summary"),
    ) + b"not json at all\n" + b'{"type": "assistant", "message": {"content": []}}'


def test_new_record_starts_in_starting_status() -> None:
    record = _record()

    assert record.status is TaskStatus.STARTING
    assert record.completed_at is None
    assert record.exit_code is None


def test_terminal_transition_stamps_completion_time() -> None:
    record = _record()
    record.transition(TaskStatus.RUNNING)
    assert record.completed_at is None

    record.transition(TaskStatus.COMPLETED)

    assert record.completed_at is not None


@pytest.mark.parametrize(
    "terminal", [TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED]
)
def test_no_transition_out_of_terminal_status(terminal: TaskStatus) -> None:
    record = _record()
    record.transition(TaskStatus.RUNNING)
    record.transition(terminal)
    stamped = record.completed_at

    for target in TaskStatus:
        with pytest.raises(InvalidTransition):
            record.transition(target)
    assert record.status is terminal
    assert record.completed_at == stamped


def test_starting_cannot_jump_to_completed() -> None:
    with pytest.raises(InvalidTransition, match="starting -> completed"):
        _record().transition(TaskStatus.COMPLETED)


def test_progress_history_keeps_only_newest_entries() -> None:
    record = _record()

    for index in range(PROGRESS_HISTORY_LIMIT + 7):
        record.add_progress("system", f"entry {index}")

    summaries = [entry.summary for entry in record.progress]
    assert len(summaries) == PROGRESS_HISTORY_LIMIT
    assert summaries[0] == "entry 7"
    assert summaries[-1] == f"entry {PROGRESS_HISTORY_LIMIT + 6}"
    assert record.last_activity_at == record.progress[-1].timestamp


def test_message_text_wins_over_result_payload() -> None:
    record = _record()

    record.feed_output(jsonl(assistant_message(text_segment("Hello ")), result_record("World")))

    assert record.result_text == "Hello "


def test_result_payload_seeds_empty_result_text() -> None:
    record = _record()

    record.feed_output(jsonl(result_record("Done")))

    assert record.result_text == "Done"


def test_unparseable_lines_go_to_raw_output() -> None:
    record = _record()

    record.feed_output(b"warming up\n[1, 2, 3]\n")

    assert record.raw_output == "warming up\n[1, 2, 3]\n"
    assert record.result_text == ""
    assert record.output_text() == "warming up\n[1, 2, 3]\n"


def test_chunk_boundaries_do_not_change_results() -> None:
    payload = _stream()
    whole = _record(StepClock())
    bytewise = _record(StepClock())

    whole.feed_output(payload)
    whole.flush_output()
    for byte in payload:
        bytewise.feed_output(bytes([byte]))
    bytewise.flush_output()

    assert bytewise.result_text == whole.result_text == "Reading the module first.\nDone: café ✓"
    assert bytewise.raw_output == whole.raw_output == "not json at all\n"
    assert [(e.category, e.summary) for e in bytewise.progress] == [
        (e.category, e.summary) for e in whole.progress
    ]
    assert [(e.category, e.summary) for e in whole.progress] == [
        ("narration", "Reading the module first."),
        ("read", "Reading: src/parser.py"),
        ("edit", "Editing: src/parser.py"),
        ("narration", "Done: café ✓"),
        ("result", "Agent finished processing"),
    ]


def test_flush_processes_trailing_record_without_newline() -> None:
    record = _record()
    record.feed_output(b'{"type": "result", "result": "tail"}')
    assert record.progress == ()

    record.flush_output()

    assert record.result_text == "tail"
    assert [entry.category for entry in record.progress] == ["result"]
    assert record.pending_fragment == ""


def test_classification_bug_does_not_stop_processing(monkeypatch, caplog) -> None:
    record = _record()
    calls = {"count": 0}

    def flaky(event: object):
        calls["count"] += 1
        if calls["count"] == 1:
            raise KeyError("boom")
        return []

    monkeypatch.setattr("taskforce.supervisor.record.parse_progress_event", flaky)

    record.feed_output(jsonl(result_record("first"), {"type": "system"}))

    assert calls["count"] == 2
    assert record.result_text == "first"
    assert "progress classification failed" in caplog.text


def test_stderr_is_accumulated_verbatim() -> None:
    record = _record()

    record.append_error(b"warning: one\n")
    record.append_error(b"error: \xe2\x9c")
    record.append_error(b"\x93 two\n")

    assert record.error_output == "warning: one\nerror: ✓ two\n"


def test_tail_lines_keeps_last_lines() -> None:
    record = _record()
    record.result_text = "one\ntwo\nthree\nfour\nfive"

    assert record.output_text(tail_lines=2) == "four\nfive"
    assert record.output_text() == "one\ntwo\nthree\nfour\nfive"


def test_timeline_reports_elapsed_seconds_since_start() -> None:
    record = _record(StepClock())
    record.add_progress("system", "first")
    record.add_progress("system", "second")

    assert [entry.elapsed_seconds for entry in record.timeline()] == [1.0, 2.0]


def test_snapshot_exposes_summary_fields() -> None:
    record = _record()
    record.feed_output(b"fallback\n")
    record.append_error("oops")
    for index in range(5):
        record.add_progress("system", f"step {index}")

    view = record.snapshot()

    assert view.output_length == len("fallback\n")
    assert view.has_errors is True
    assert view.progress_entries == 5
    assert [entry.summary for entry in view.recent_progress] == ["step 2", "step 3", "step 4"]
    assert view.project == "project"


def test_deeply_nested_line_is_kept_as_raw_output() -> None:
    record = _record()
    nested = b"[" * 100_000

    record.feed_output(nested + b"\n" + jsonl(assistant_message(text_segment("after"))))

    assert record.raw_output == nested.decode() + "\n"
    assert record.output_text() == "after"
    assert [entry.summary for entry in record.progress] == ["after"]
