"""
Fire-and-forget UI telemetry.

Tools, actors and the correctness loop push ``UIEvent``s into a
``UIEventSink``; the HTTP layer drains it as a server-sent event stream.
Sending never blocks and never raises: a closed or full sink just drops
the event.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator

logger = logging.getLogger(__name__)


class UIEventKind(str, Enum):
    TOOL_EVENT = "tool_event"
    SYMBOL_EVENT = "symbol_event"
    EDIT_EVENT = "edit_event"
    CORRECTNESS_EVENT = "correctness_event"
    LLM_DELTA = "llm_delta"


@dataclass
class UIEvent:
    kind: UIEventKind
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def tool_event(cls, tool_type: str, tool_input: dict[str, Any]) -> "UIEvent":
        return cls(UIEventKind.TOOL_EVENT, {"tool_type": tool_type, "input": tool_input})

    @classmethod
    def symbol_event(cls, symbol_name: str, fs_file_path: str | None, event: str) -> "UIEvent":
        return cls(
            UIEventKind.SYMBOL_EVENT,
            {"symbol_name": symbol_name, "fs_file_path": fs_file_path, "event": event},
        )

    @classmethod
    def edit_event(cls, symbol_name: str, fs_file_path: str, edited_code: str) -> "UIEvent":
        return cls(
            UIEventKind.EDIT_EVENT,
            {"symbol_name": symbol_name, "fs_file_path": fs_file_path, "edited_code": edited_code},
        )

    @classmethod
    def correctness_event(cls, symbol_name: str, attempt: int, diagnostics: int, action: str) -> "UIEvent":
        return cls(
            UIEventKind.CORRECTNESS_EVENT,
            {"symbol_name": symbol_name, "attempt": attempt, "diagnostics": diagnostics, "action": action},
        )

    @classmethod
    def llm_delta(cls, source: str, delta: str) -> "UIEvent":
        return cls(UIEventKind.LLM_DELTA, {"source": source, "delta": delta})

    def to_sse(self) -> str:
        data = dict(self.payload, timestamp=round(self.timestamp, 3))
        return f"event: {self.kind.value}\ndata: {json.dumps(data, default=str)}\n\n"


class UIEventSink:
    """Bounded, non-blocking event channel with a single reader."""

    def __init__(self, maxsize: int = 1000):
        self._queue: asyncio.Queue[UIEvent | None] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: UIEvent) -> bool:
        if self._closed:
            self.dropped += 1
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.debug("[ui_events] sink full, dropping %s", event.kind.value)
            return False
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            pass  # reader sees _closed once it drains

    async def stream(self) -> AsyncIterator[UIEvent]:
        while True:
            if self._closed and self._queue.empty():
                return
            event = await self._queue.get()
            if event is None:
                return
            yield event
