"""
Settings efetivos do Engine.

Resolve a seção `engine` da configuração (já carregada pelo loader) sobre
os defaults embutidos e valida os valores que o Engine consome.

Chaves suportadas (v1):
    - spillover_dir: diretório de spillover (relativo ao cwd no momento do uso)
    - timestamp_field: campo numérico do evento usado por janelas de tempo
    - default_buffer_capacity: capacidade padrão usada pelo builder
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from streamsynth.core.exceptions import ConfigurationError

from .merge import deep_merge

DEFAULT_SPILLOVER_DIR = ".streamsynth-spillover"
DEFAULT_TIMESTAMP_FIELD = "timestamp"
DEFAULT_BUFFER_CAPACITY = 1000

DEFAULT_ENGINE_CONFIG: Dict[str, Any] = {
    "engine": {
        "spillover_dir": DEFAULT_SPILLOVER_DIR,
        "timestamp_field": DEFAULT_TIMESTAMP_FIELD,
        "default_buffer_capacity": DEFAULT_BUFFER_CAPACITY,
    }
}


@dataclass(frozen=True)
class EngineSettings:
    """Valores imutáveis consumidos pelo Engine e pelo builder."""

    spillover_dir: str = DEFAULT_SPILLOVER_DIR
    timestamp_field: str = DEFAULT_TIMESTAMP_FIELD
    default_buffer_capacity: int = DEFAULT_BUFFER_CAPACITY


def resolve_engine_settings(config: Optional[Dict[str, Any]] = None) -> EngineSettings:
    """
    Aplica `config` sobre os defaults embutidos e valida a seção `engine`.

    Raises:
        ConfigurationError: Se algum valor for inválido.
        ConfigTypeConflictError: Se o tipo de uma chave conflitar com o default.
    """
    effective = deep_merge(DEFAULT_ENGINE_CONFIG, config or {})
    engine_cfg = effective.get("engine") or {}

    spillover_dir = engine_cfg.get("spillover_dir")
    if not isinstance(spillover_dir, str) or not spillover_dir.strip():
        raise ConfigurationError(
            "engine.spillover_dir must be a non-empty string",
            details={"spillover_dir": spillover_dir},
        )

    timestamp_field = engine_cfg.get("timestamp_field")
    if not isinstance(timestamp_field, str) or not timestamp_field.strip():
        raise ConfigurationError(
            "engine.timestamp_field must be a non-empty string",
            details={"timestamp_field": timestamp_field},
        )

    capacity = engine_cfg.get("default_buffer_capacity")
    if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 0:
        raise ConfigurationError(
            "engine.default_buffer_capacity must be an integer >= 0",
            details={"default_buffer_capacity": capacity},
        )

    return EngineSettings(
        spillover_dir=spillover_dir,
        timestamp_field=timestamp_field,
        default_buffer_capacity=capacity,
    )
