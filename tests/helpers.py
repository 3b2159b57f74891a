"""Builders for worker stream-json records used across tests."""

from __future__ import annotations

import json
import sys


def assistant_message(*segments: dict[str, object]) -> dict[str, object]:
    return {"type": "assistant", "message": {"type": "message", "content": list(segments)}}


def text_segment(text: str) -> dict[str, object]:
    return {"type": "text", "text": text}


def tool_segment(name: str, **tool_input: object) -> dict[str, object]:
    return {"type": "tool_use", "name": name, "input": tool_input}


def result_record(result: object = "Done") -> dict[str, object]:
    return {"type": "result", "subtype": "success", "result": result}


def jsonl(*records: dict[str, object]) -> bytes:
    return "".join(json.dumps(record) + "\n" for record in records).encode("utf-8")


ECHO_AGENT_COMMAND: tuple[str, ...] = (
    sys.executable,
    "-m",
    "taskforce.supervisor.backend.echo_agent",
)
