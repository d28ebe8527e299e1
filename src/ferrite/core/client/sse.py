"""
Server-sent events decoding for streaming endpoints.

Chunks arrive as arbitrary slices of the body. ``SSEDecoder`` buffers them,
splits on blank lines and returns the JSON payload of each complete event.
"""

from dataclasses import dataclass
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


@dataclass
class SSEEvent:
    """A complete event: its payload text, or the raw block when it had no ``data:`` lines."""
    data: str
    raw: bool = False
    done: bool = False


def parse_event(block: str) -> Optional[SSEEvent]:
    """Turn one blank-line separated block into an event, or None if it is empty."""
    payload_lines = []
    for line in block.split("\n"):
        if line.startswith("data:"):
            data = line[len("data:"):].strip()
            if data == DONE_SENTINEL:
                return SSEEvent(data="", done=True)
            if data:
                payload_lines.append(data)

    if payload_lines:
        return SSEEvent(data="\n".join(payload_lines))

    trimmed = block.strip()
    if not trimmed or all(line.startswith(":") or line.startswith("event:") for line in trimmed.split("\n")):
        return None
    return SSEEvent(data=trimmed, raw=True)


class SSEDecoder:
    """Incremental decoder for a ``text/event-stream`` body."""

    def __init__(self) -> None:
        self._carry = ""
        self.finished = False

    def feed(self, chunk: str) -> List[SSEEvent]:
        """Add a chunk of text and return the events it completed."""
        events: List[SSEEvent] = []
        if self.finished:
            return events

        self._carry += chunk.replace("\r\n", "\n")
        while "\n\n" in self._carry:
            block, self._carry = self._carry.split("\n\n", 1)
            event = parse_event(block)
            if event is None:
                continue
            events.append(event)
            if event.done:
                self.finished = True
                self._carry = ""
                break
        return events

    def flush(self) -> List[SSEEvent]:
        """Return whatever event is left in the buffer when the body ends."""
        if self.finished or not self._carry.strip():
            self._carry = ""
            return []
        event = parse_event(self._carry)
        self._carry = ""
        if event is None:
            return []
        if event.done:
            self.finished = True
        return [event]
