# src/streamsynth/core/pipeline/context.py
"""
Contexto de execução de uma run do Engine.

Este módulo define o `RunContext`, o registro estruturado de uma run:
identidade, configuração efetiva, log de eventos, warnings e contadores.

O RunContext é o único destino de logging do core:
    - o Engine registra transições de ciclo de vida, falhas por evento,
      escritas/recargas/descartes de spillover e o flush de fim de stream
    - cada entrada inclui `run_id`, `stage_id`, `level`, `message` e
      `timestamp` UTC em ISO-8601

Princípios fundamentais:
    - Isolamento por execução (cada Engine possui seu próprio contexto)
    - Logs são dados (dicts), não texto formatado
    - Nenhum handler global de logging é instalado

Invariantes:
    - Logs sempre incluem `run_id` e `stage_id`
    - Warnings são agrupados por `stage_id`
    - Contadores só crescem durante a run

Limites explícitos:
    - Não processa eventos
    - Não persiste o log automaticamente
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from streamsynth.core.config.hashing import compute_config_hash

# stage_id usado para entradas que não pertencem a um Stage da chain
ENGINE_STAGE_ID = "engine"

METRIC_KEYS = (
    "received",
    "processed",
    "filtered",
    "errors",
    "spilled_events",
    "spill_files",
    "reloaded_events",
)


@dataclass
class RunContext:
    """
    Contexto de execução compartilhado de uma run do Engine.

    Campos canônicos:
    - run_id: identificador único da execução
    - created_at: timestamp UTC de criação do contexto
    - config: configuração efetiva da run
    - config_hash: hash canônico de `config`
    - events: log estruturado
    - warnings: warnings por stage_id
    - metrics: contadores da run (ver METRIC_KEYS)
    """

    run_id: str
    created_at: datetime
    config: Dict[str, Any]
    config_hash: str = ""

    events: List[Dict[str, Any]] = field(default_factory=list)
    warnings: Dict[str, List[str]] = field(default_factory=dict)
    metrics: Dict[str, int] = field(default_factory=lambda: {k: 0 for k in METRIC_KEYS})

    @classmethod
    def create(cls, config: Optional[Dict[str, Any]] = None) -> "RunContext":
        cfg = dict(config or {})
        return cls(
            run_id=uuid.uuid4().hex,
            created_at=datetime.now(timezone.utc),
            config=cfg,
            config_hash=compute_config_hash(cfg),
        )

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, stage_id: str, level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "stage_id": stage_id,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        self.events.append(event)

    def add_warning(self, *, stage_id: str, message: str) -> None:
        if stage_id not in self.warnings:
            self.warnings[stage_id] = []
        self.warnings[stage_id].append(message)

    def entries(self, *, level: Optional[str] = None) -> List[Dict[str, Any]]:
        if level is None:
            return list(self.events)
        return [e for e in self.events if e["level"] == level]

    # -----------------------------
    # Counters
    # -----------------------------
    def incr(self, key: str, amount: int = 1) -> None:
        self.metrics[key] = self.metrics.get(key, 0) + amount
