# src/streamsynth/connectors/__init__.py
"""
Conectores plugáveis (Sources e Sinks) do StreamSynth.

O Engine só conhece os contratos de `base` e o `ConnectorRegistry`;
implementações concretas embutidas: memory (source/sink), file
(source/sink), console (sink), http/https (source, polling) e kafka
(source/sink).
"""

from .base import Sink, SinkLike, Source, SourceLike
from .console import ConsoleSink
from .file import FileSink, FileSource
from .http import HttpSource
from .kafka import KafkaSink, KafkaSource
from .memory import MemorySink, MemorySource
from .registry import ConnectorRegistry, default_registry

__all__ = [
    "Sink",
    "SinkLike",
    "Source",
    "SourceLike",
    "ConsoleSink",
    "FileSink",
    "FileSource",
    "HttpSource",
    "KafkaSink",
    "KafkaSource",
    "MemorySink",
    "MemorySource",
    "ConnectorRegistry",
    "default_registry",
]
