# src/streamsynth/core/engine/spillover.py
"""
Spillover: proteção de memória do buffer compartilhado.

Quando o ProcessingBuffer ultrapassa a capacidade configurada, os
`len(buffer) - capacidade` eventos MAIS ANTIGOS são gravados de forma
síncrona, como um array JSON, em um arquivo `spillover-<uuid>.json`
dentro do diretório de spillover (criado na primeira necessidade), e só
então removidos do buffer.

Ciclo de vida de um SpilloverRecord:
    - criado no despejo; escrito uma única vez
    - mantido em uma lista ordenada de registros pendentes
    - removido por `reload()` (eventos voltam para a frente do buffer)
    - ou descartado por `discard_all()` no stop do Engine

Limitação conhecida (comportamento contratual):
    `discard_all()` apaga os arquivos pendentes SEM reenviá-los ao Sink.
    Parar a pipeline com overflow pendente perde esses eventos; apenas um
    `reload()` explícito recupera dados despejados.

Invariantes:
    - Após `spill_if_needed(c)` bem-sucedido, `len(buffer) == c`
    - Se a escrita falhar, nada sai do buffer
    - `reload()` sempre consome o registro pendente mais antigo
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from streamsynth.core.exceptions import SpilloverError

from .buffer import ProcessingBuffer

SPILLOVER_FILE_PREFIX = "spillover-"


@dataclass(frozen=True)
class SpilloverRecord:
    """Referência a um lote despejado em disco.

    O lote em si vive apenas no arquivo (`read_batch()`); manter uma cópia
    em memória anularia o propósito do spillover.
    """
    file_path: Path
    sequence_id: int
    count: int

    def read_batch(self) -> List[Any]:
        with self.file_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"Spillover file does not hold a JSON array: {self.file_path}")
        return data


class SpilloverBuffer:
    def __init__(self, buffer: ProcessingBuffer, directory: Path) -> None:
        self.buffer = buffer
        self.directory = Path(directory)
        self.pending: List[SpilloverRecord] = []
        self._next_sequence = 0

    @property
    def pending_events(self) -> int:
        return sum(r.count for r in self.pending)

    def _write(self, batch: List[Any]) -> Path:
        path = self.directory / f"{SPILLOVER_FILE_PREFIX}{uuid.uuid4()}.json"
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(batch, ensure_ascii=False, default=str)
            path.write_text(payload, encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            raise SpilloverError(
                f"Spillover write failed: {e}",
                details={"path": str(path), "count": len(batch)},
                path=str(path),
            ) from e
        return path

    def spill_if_needed(self, capacity: int) -> Optional[SpilloverRecord]:
        """Despeja o excedente da frente do buffer; retorna o registro criado."""
        overflow = len(self.buffer) - capacity
        if overflow <= 0:
            return None

        batch = self.buffer.peek_front(overflow)
        path = self._write(batch)
        self.buffer.evict_front(overflow)

        record = SpilloverRecord(
            file_path=path,
            sequence_id=self._next_sequence,
            count=len(batch),
        )
        self._next_sequence += 1
        self.pending.append(record)
        return record

    def reload(self) -> Optional[SpilloverRecord]:
        """Recoloca o registro pendente mais antigo na frente do buffer.

        Retorna None quando não há registros pendentes. Se a leitura falhar,
        o registro continua pendente (e será removido no stop).
        """
        if not self.pending:
            return None

        record = self.pending[0]
        try:
            batch = record.read_batch()
        except (OSError, ValueError) as e:
            raise SpilloverError(
                f"Spillover read failed: {e}",
                details={"path": str(record.file_path)},
                path=str(record.file_path),
            ) from e

        self.pending.pop(0)
        self.buffer.prepend(batch)

        try:
            record.file_path.unlink(missing_ok=True)
        except OSError as e:
            raise SpilloverError(
                f"Spillover file removal failed: {e}",
                details={"path": str(record.file_path)},
                path=str(record.file_path),
            ) from e
        return record

    def discard_all(self) -> List[SpilloverError]:
        """Remove todos os arquivos pendentes e o diretório, se vazio.

        Falhas não interrompem a limpeza; são devolvidas para o chamador
        reportar.
        """
        failures: List[SpilloverError] = []
        records, self.pending = self.pending, []

        for record in records:
            try:
                record.file_path.unlink(missing_ok=True)
            except OSError as e:
                err = SpilloverError(
                    f"Spillover file removal failed: {e}",
                    details={"path": str(record.file_path)},
                    path=str(record.file_path),
                )
                err.__cause__ = e
                failures.append(err)

        try:
            if self.directory.is_dir() and not any(self.directory.iterdir()):
                self.directory.rmdir()
        except OSError as e:
            err = SpilloverError(
                f"Spillover directory removal failed: {e}",
                details={"path": str(self.directory)},
                path=str(self.directory),
            )
            err.__cause__ = e
            failures.append(err)

        return failures
