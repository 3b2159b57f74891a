"""Local scripted worker for launcher integration tests and smoke runs.

Accepts the same argument convention as the real agent CLI. Without
``--script`` it answers with a short ``stream-json`` conversation echoing the
prompt; with ``--script`` it replays the given file line by line.
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path


def main(argv: list[str] | None = None) -> int:
    """Emit scripted worker output and exit with the requested status."""

    parser = argparse.ArgumentParser()
    parser.add_argument("-p", "--print", dest="prompt", required=True)
    parser.add_argument("--output-format", default="text")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--model", default=None)
    parser.add_argument("--permission-mode", default="default")
    parser.add_argument("--script", type=Path, default=None)
    parser.add_argument("--line-delay", type=float, default=0.0)
    parser.add_argument("--stderr", default="")
    parser.add_argument("--exit-code", type=int, default=0)
    parser.add_argument("--hang", type=float, default=0.0)
    args = parser.parse_args(argv)

    if args.script is not None:
        lines = args.script.read_text("utf-8").splitlines()
    elif args.output_format == "stream-json":
        lines = [json.dumps(record) for record in _echo_conversation(args.prompt, args.model)]
    else:
        lines = [f"Echo: {args.prompt}"]

    for line in lines:
        sys.stdout.write(f"{line}\n")
        sys.stdout.flush()
        if args.line_delay:
            time.sleep(args.line_delay)

    if args.stderr:
        sys.stderr.write(f"{args.stderr}\n")
        sys.stderr.flush()
    if args.hang:
        time.sleep(args.hang)
    return args.exit_code


def _echo_conversation(prompt: str, model: str | None) -> list[dict[str, object]]:
    return [
        {"type": "system", "subtype": "init", "model": model or "echo"},
        {
            "type": "assistant",
            "message": {
                "type": "message",
                "content": [
                    {"type": "text", "text": f"Echo: {prompt}"},
                    {"type": "tool_use", "name": "Read", "input": {"file_path": "README.md"}},
                ],
            },
        },
        {"type": "result", "subtype": "success", "result": f"Echo: {prompt}"},
    ]


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
