# src/streamsynth/connectors/memory.py
"""Conectores em memória, para testes e uso programático."""

from __future__ import annotations

import asyncio
from typing import Any, List, Mapping, Optional

from .base import Sink, Source


class MemorySource(Source):
    """Emite `events` em ordem, com `interval_ms` entre eles, e depois `end`."""

    def __init__(self, events: Optional[List[Any]] = None, interval_ms: float = 0) -> None:
        super().__init__()
        self.events = list(events or [])
        self.interval_ms = interval_ms
        self.index = 0

    async def _run(self) -> None:
        while self.running and self.index < len(self.events):
            event = self.events[self.index]
            self.index += 1
            self.emit_data(event)
            await asyncio.sleep(self.interval_ms / 1000.0)
        if self.running:
            self.emit_end()


class MemorySink(Sink):
    """Guarda os eventos recebidos; com `max_events`, descarta os mais antigos."""

    def __init__(self, max_events: Optional[int] = None) -> None:
        self._events: List[Any] = []
        self.max_events = max_events
        self.closed = False

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    async def write(self, event: Any) -> None:
        self._events.append(event)
        if self.max_events is not None and len(self._events) > self.max_events:
            self._events.pop(0)

    async def close(self) -> None:
        self.closed = True


def memory_source(config: Mapping[str, Any]) -> MemorySource:
    events = config.get("events", [])
    if not isinstance(events, list):
        raise TypeError("memory source requires 'events' to be a list")
    return MemorySource(events=events, interval_ms=config.get("interval_ms", 0))


def memory_sink(config: Mapping[str, Any]) -> MemorySink:
    max_events = config.get("max_events")
    if max_events is not None and (not isinstance(max_events, int) or max_events <= 0):
        raise ValueError("memory sink 'max_events' must be a positive integer")
    return MemorySink(max_events=max_events)
