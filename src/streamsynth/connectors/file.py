# src/streamsynth/connectors/file.py
"""
Conectores de arquivo.

FileSource (config `path`):
    - `.csv`     → csv.DictReader (valores como string, sem coerções)
    - `.parquet` → pandas.read_parquet (requer um engine parquet, ex.: pyarrow)
    - demais     → JSON lines, um objeto por linha; linhas vazias são
                   ignoradas e linhas inválidas viram sinal `error`
    Emite `end` após o último registro. Arquivo ausente emite apenas `error`.

FileSink (config `path`):
    - acrescenta uma linha JSON por evento; diretório pai criado na
      primeira escrita; `close()` idempotente
"""

from __future__ import annotations

import asyncio
import csv
import json
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, TextIO

import pandas as pd

from .base import Sink, Source


def _resolve_path(config: Mapping[str, Any], role: str) -> Path:
    path_value = config.get("path")
    if not isinstance(path_value, str) or not path_value.strip():
        raise ValueError(f"File {role} requires a path")
    return Path(path_value).expanduser().absolute()


def _load_parquet(path: Path) -> List[Dict[str, Any]]:
    # o engine parquet (pyarrow) vem do extra `parquet`
    df = pd.read_parquet(path)
    return df.to_dict(orient="records")


class FileSource(Source):
    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = path

    def _json_lines(self, f: TextIO) -> Iterator[Any]:
        for number, raw in enumerate(f, start=1):
            line = raw.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as e:
                self.emit_error(ValueError(f"Failed to parse line {number}: {line} ({e.msg})"))

    async def _run(self) -> None:
        if not self.path.is_file():
            self.emit_error(FileNotFoundError(f"File not found: {self.path}"))
            return

        suffix = self.path.suffix.lower()
        if suffix == ".parquet":
            for record in _load_parquet(self.path):
                if not self.running:
                    return
                self.emit_data(record)
                await asyncio.sleep(0)
        else:
            with self.path.open("r", encoding="utf-8", newline="") as f:
                records = csv.DictReader(f) if suffix == ".csv" else self._json_lines(f)
                for record in records:
                    if not self.running:
                        return
                    self.emit_data(dict(record) if suffix == ".csv" else record)
                    await asyncio.sleep(0)

        self.emit_end()


class FileSink(Sink):
    def __init__(self, path: Path) -> None:
        self.path = path
        self._handle: Optional[TextIO] = None

    def _open(self) -> TextIO:
        if self._handle is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = self.path.open("a", encoding="utf-8")
        return self._handle

    async def write(self, event: Any) -> None:
        handle = self._open()
        handle.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")
        handle.flush()

    async def close(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()


def file_source(config: Mapping[str, Any]) -> FileSource:
    return FileSource(_resolve_path(config, "source"))


def file_sink(config: Mapping[str, Any]) -> FileSink:
    return FileSink(_resolve_path(config, "sink"))
