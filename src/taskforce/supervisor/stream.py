"""Line reassembly for worker output arriving in arbitrary chunks."""

from __future__ import annotations

import codecs
import json
from dataclasses import dataclass
from typing import Any

RECORD_SEPARATOR = "\n"


@dataclass(frozen=True, slots=True)
class StreamLine:
    """One complete output line, decoded as a record when possible."""

    text: str
    record: dict[str, Any] | None

    @property
    def fallback_text(self) -> str:
        """Text to append to raw output when the line is not a record."""

        return f"{self.text}{RECORD_SEPARATOR}"


class StreamReassembler:
    """Buffer partial output and emit complete newline-delimited lines.

    Bytes are decoded incrementally, so a multi-byte character split across
    two chunks is reassembled before line splitting. Only the trailing
    unterminated fragment is kept between calls.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._flushed = False

    @property
    def pending(self) -> str:
        """Unterminated tail waiting for its separator."""

        return self._buffer

    def feed(self, chunk: bytes | str) -> list[StreamLine]:
        """Append a chunk and return every line it completed."""

        if self._flushed:
            raise RuntimeError("Cannot feed a stream that has already been flushed.")
        text = chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        if not text:
            return []
        self._buffer += text
        if RECORD_SEPARATOR not in text:
            return []
        *complete, self._buffer = self._buffer.split(RECORD_SEPARATOR)
        return _decode_lines(complete)

    def flush(self) -> list[StreamLine]:
        """Process the residual fragment once, at end of stream."""

        if self._flushed:
            return []
        self._flushed = True
        residual = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        return _decode_lines(residual.split(RECORD_SEPARATOR))


def decode_line(line: str) -> StreamLine | None:
    """Decode one line; blank lines yield ``None``."""

    stripped = line.strip()
    if not stripped:
        return None
    try:
        parsed = json.loads(stripped)
    except (ValueError, RecursionError):
        return StreamLine(text=stripped, record=None)
    if not isinstance(parsed, dict):
        return StreamLine(text=stripped, record=None)
    return StreamLine(text=stripped, record=parsed)


def _decode_lines(lines: list[str]) -> list[StreamLine]:
    decoded: list[StreamLine] = []
    for line in lines:
        item = decode_line(line)
        if item is not None:
            decoded.append(item)
    return decoded
