"""Streamed narrative events and their Server-Sent Events wire form.

A stream is a run of ``chunk`` events (raw text deltas) terminated by exactly
one ``done`` event carrying the full text, or by an ``error`` event. On the
wire each event is ``event: <kind>\\ndata: <json>\\n\\n``.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

from stocklens.exceptions import ErrorKind

EventKind = Literal["chunk", "done", "error"]


@dataclass(frozen=True)
class StreamEvent:
    kind: EventKind
    data: str
    error_kind: ErrorKind | None = None     # Set on ``error`` events; not sent on the wire


def format_sse(event: StreamEvent) -> str:
    return f"event: {event.kind}\ndata: {json.dumps(event.data)}\n\n"


def parse_sse(text: str) -> tuple[list[StreamEvent], str]:
    """
    Split buffered SSE text into complete events.

    Returns the parsed events and the trailing incomplete remainder, which the
    caller prepends to the next read. Blocks without an ``event:`` line or
    with undecodable data are skipped.
    """
    *blocks, remainder = text.split("\n\n")
    events: list[StreamEvent] = []
    for block in blocks:
        kind = None
        data = ""
        for line in block.split("\n"):
            if line.startswith("event:"):
                kind = line[len("event:"):].strip()
            elif line.startswith("data:"):
                data = line[len("data:"):].strip()
        if kind not in ("chunk", "done", "error"):
            continue
        try:
            decoded = json.loads(data) if data else ""
        except json.JSONDecodeError:
            continue
        events.append(StreamEvent(kind=kind, data=decoded if isinstance(decoded, str) else json.dumps(decoded)))
    return events, remainder


@dataclass
class StreamAccumulator:
    """
    Buffers chunk tokens and reconstructs the complete text of a stream.

    Used on both sides of the wire: by the generator over its own events and
    by HTTP clients over events decoded with ``parse_sse``.
    """

    on_delta: Callable[[str], None] | None = None
    chunks: list[str] = field(default_factory=list)
    final_text: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    def feed(self, event: StreamEvent) -> None:
        if self.finished:
            return
        if event.kind == "chunk":
            self.chunks.append(event.data)
            if self.on_delta is not None:
                self.on_delta(event.data)
        elif event.kind == "done":
            self.final_text = event.data
        elif event.kind == "error":
            self.error = event.data
            self.error_kind = event.error_kind

    @property
    def text(self) -> str:
        """Full text: the ``done`` payload when seen, otherwise the joined chunks."""
        if self.final_text is not None:
            return self.final_text
        return "".join(self.chunks)

    @property
    def finished(self) -> bool:
        """True once a ``done`` or ``error`` event was fed; later events are ignored."""
        return self.final_text is not None or self.error is not None
