"""Map decoded ``stream-json`` records to human-readable progress entries."""

from __future__ import annotations

from collections.abc import Mapping

from taskforce.supervisor.models import ProgressCandidate

NARRATION_MAX_CHARS = 120
COMMAND_MAX_CHARS = 80
SUBTASK_MAX_CHARS = 60

AGENT_FINISHED_SUMMARY = "Agent finished processing"

_READ_TOOLS = frozenset({"Read", "View", "read_file"})
_WRITE_TOOLS = frozenset({"Write", "write_file", "create_file"})
_EDIT_TOOLS = frozenset({"Edit", "MultiEdit", "str_replace", "edit_file"})
_SHELL_TOOLS = frozenset({"Bash", "bash", "execute_command"})
_LIST_TOOLS = frozenset({"List", "LS", "list_directory"})
_SEARCH_TOOLS = frozenset({"Search", "search", "Grep", "grep", "Glob", "glob"})
_SUBTASK_TOOLS = frozenset({"Task", "dispatch_task"})


def parse_progress_event(event: object) -> list[ProgressCandidate]:
    """Return progress entries for one decoded record; unknown shapes yield none."""

    if not isinstance(event, Mapping):
        return []

    event_type = event.get("type")
    if event_type == "assistant":
        return _parse_assistant_message(event.get("message"))
    if event_type == "tool_use":
        return [
            classify_tool_use(
                event.get("tool_name") or event.get("name"),
                event.get("input") or event.get("tool_input"),
            ),
        ]
    if event_type == "result":
        return [ProgressCandidate("result", AGENT_FINISHED_SUMMARY)]
    return []


def iter_message_text(event: object) -> list[str]:
    """Return raw text segments of an assistant message record, in order."""

    content = _message_content(event.get("message")) if isinstance(event, Mapping) else None
    if content is None or event.get("type") != "assistant":
        return []
    return [
        segment["text"]
        for segment in content
        if isinstance(segment, Mapping)
        and segment.get("type") == "text"
        and isinstance(segment.get("text"), str)
        and segment["text"]
    ]


def extract_result_text(event: object) -> str | None:
    """Return the final summary payload carried by a ``result`` record."""

    if not isinstance(event, Mapping) or event.get("type") != "result":
        return None
    payload = event.get("result")
    if isinstance(payload, str):
        return payload or None
    if isinstance(payload, Mapping):
        text = payload.get("text")
        if isinstance(text, str) and text:
            return text
    return None


def classify_tool_use(name: object, tool_input: object) -> ProgressCandidate:
    """Categorize a tool invocation and render its primary argument."""

    tool_name = name if isinstance(name, str) and name else "unknown_tool"
    args = tool_input if isinstance(tool_input, Mapping) else {}

    if tool_name in _READ_TOOLS:
        return ProgressCandidate("read", f"Reading: {_file_arg(args)}")
    if tool_name in _WRITE_TOOLS:
        return ProgressCandidate("write", f"Writing: {_file_arg(args)}")
    if tool_name in _EDIT_TOOLS:
        return ProgressCandidate("edit", f"Editing: {_file_arg(args)}")
    if tool_name in _SHELL_TOOLS:
        command = _first_arg(args, "command", "cmd")[:COMMAND_MAX_CHARS]
        return ProgressCandidate("bash", f"Running: {command}")
    if tool_name in _LIST_TOOLS:
        target = _first_arg(args, "path", "dir") or "directory"
        return ProgressCandidate("list", f"Listing: {target[:COMMAND_MAX_CHARS]}")
    if tool_name in _SEARCH_TOOLS:
        pattern = _first_arg(args, "pattern", "query") or "..."
        return ProgressCandidate("search", f"Searching: {pattern[:COMMAND_MAX_CHARS]}")
    if tool_name in _SUBTASK_TOOLS:
        subtask = _first_arg(args, "task", "description", "prompt")[:SUBTASK_MAX_CHARS]
        return ProgressCandidate("subtask", f"Spawning sub-agent: {subtask}")
    return ProgressCandidate("tool", f"Using tool: {tool_name}")


def _parse_assistant_message(message: object) -> list[ProgressCandidate]:
    content = _message_content(message)
    if content is None:
        return []

    entries: list[ProgressCandidate] = []
    for segment in content:
        if not isinstance(segment, Mapping):
            continue
        segment_type = segment.get("type")
        if segment_type == "text":
            text = segment.get("text")
            if not isinstance(text, str):
                continue
            stripped = text.strip()
            if stripped:
                first_line = stripped.split("\n", 1)[0]
                entries.append(ProgressCandidate("narration", first_line[:NARRATION_MAX_CHARS]))
        elif segment_type == "tool_use":
            entries.append(classify_tool_use(segment.get("name"), segment.get("input")))
    return entries


def _message_content(message: object) -> list[object] | None:
    if not isinstance(message, Mapping) or message.get("type") != "message":
        return None
    content = message.get("content")
    if not isinstance(content, list):
        return None
    return content


def _first_arg(args: Mapping[str, object], *keys: str) -> str:
    for key in keys:
        value = args.get(key)
        if value is None or value == "":
            continue
        return value if isinstance(value, str) else str(value)
    return ""


def _file_arg(args: Mapping[str, object]) -> str:
    return _first_arg(args, "file_path", "path") or "file"
