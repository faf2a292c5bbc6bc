"""Streaming schemas and wire framing for incremental story delivery.

Defines the StreamEvent unit exchanged between the stream relay and the
stream consumer, plus the text framing it travels in:

    data: {"chunk": "<delta>"}\n\n      fragment
    data: {"error": "<message>"}\n\n    failure
    data: [DONE]\n\n                    terminal marker
"""

from __future__ import annotations

import json
from enum import StrEnum

from pydantic import BaseModel, Field

from storyswap.errors import FramingError

DONE_MARKER = "[DONE]"
RECORD_SEPARATOR = "\n\n"
_DATA_FIELD = "data:"


class EventKind(StrEnum):
    """Tag of a StreamEvent."""

    FRAGMENT = "fragment"
    DONE = "done"
    FAILURE = "failure"


class StreamEvent(BaseModel):
    """A single event on the wire: Fragment(text) | Done | Failure(message)."""

    kind: EventKind = Field(description="Event tag")
    text: str = Field(default="", description="Text delta (fragments only)")
    message: str = Field(default="", description="Error message (failures only)")

    @classmethod
    def fragment(cls, text: str) -> StreamEvent:
        return cls(kind=EventKind.FRAGMENT, text=text)

    @classmethod
    def done(cls) -> StreamEvent:
        return cls(kind=EventKind.DONE)

    @classmethod
    def failure(cls, message: str) -> StreamEvent:
        return cls(kind=EventKind.FAILURE, message=message)

    @property
    def is_terminal(self) -> bool:
        """Done and Failure end an attempt."""
        return self.kind != EventKind.FRAGMENT

    def to_record(self) -> str:
        """Encode as one framed wire record, separator included."""
        if self.kind == EventKind.FRAGMENT:
            payload = json.dumps({"chunk": self.text}, ensure_ascii=False)
        elif self.kind == EventKind.FAILURE:
            payload = json.dumps({"error": self.message}, ensure_ascii=False)
        else:
            payload = DONE_MARKER
        return f"{_DATA_FIELD} {payload}{RECORD_SEPARATOR}"


def parse_record(record: str) -> StreamEvent | None:
    """Parse one wire record (without its separator).

    Comment lines (starting with ``:``) are ignored, and a record made only
    of comments yields None. Multiple ``data:`` lines are joined with a
    newline before decoding.

    Raises:
        FramingError: If a line is not a data field, the payload is neither
            the terminal marker nor a JSON object with a string ``chunk`` or
            ``error`` field.
    """
    data_lines: list[str] = []
    for line in record.split("\n"):
        if not line or line.startswith(":"):
            continue
        if not line.startswith(_DATA_FIELD):
            raise FramingError(f"Unexpected line in stream record: {line[:80]!r}")
        value = line[len(_DATA_FIELD):]
        data_lines.append(value[1:] if value.startswith(" ") else value)

    if not data_lines:
        return None

    payload = "\n".join(data_lines)
    if payload == DONE_MARKER:
        return StreamEvent.done()

    try:
        obj = json.loads(payload)
    except json.JSONDecodeError as e:
        raise FramingError(f"Stream record is not valid JSON: {e.msg}") from e

    if not isinstance(obj, dict):
        raise FramingError("Stream record payload must be a JSON object")
    if isinstance(obj.get("chunk"), str):
        return StreamEvent.fragment(obj["chunk"])
    if isinstance(obj.get("error"), str):
        return StreamEvent.failure(obj["error"])
    raise FramingError("Stream record has neither 'chunk' nor 'error'")


class RecordSplitter:
    """Reassembles wire records from arbitrarily split text.

    Network reads do not respect record boundaries; feed() keeps the
    incomplete tail buffered until its separator arrives.
    """

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, text: str) -> list[str]:
        """Add decoded text and return every record completed by it."""
        self._buffer = (self._buffer + text).replace("\r\n", "\n")
        *records, self._buffer = self._buffer.split(RECORD_SEPARATOR)
        return [r for r in records if r.strip()]

    def flush(self) -> str | None:
        """Return the unterminated tail, if any, and clear the buffer."""
        tail, self._buffer = self._buffer, ""
        return tail if tail.strip() else None
