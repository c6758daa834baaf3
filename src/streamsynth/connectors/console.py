# src/streamsynth/connectors/console.py
"""Sink de console: JSON indentado (`format: json`, padrão) ou repr do valor."""

from __future__ import annotations

import json
from typing import Any, Mapping

from .base import Sink

FORMATS = ("json", "raw")


class ConsoleSink(Sink):
    def __init__(self, format: str = "json") -> None:
        if format not in FORMATS:
            raise ValueError(f"console sink format must be one of {FORMATS}, got {format!r}")
        self.format = format

    async def write(self, event: Any) -> None:
        if self.format == "json":
            print(json.dumps(event, indent=2, ensure_ascii=False, default=str))
        else:
            print(repr(event))


def console_sink(config: Mapping[str, Any]) -> ConsoleSink:
    return ConsoleSink(format=config.get("format", "json"))
