# src/streamsynth/core/pipeline/types.py
"""
Tipos canônicos da chain de processamento do StreamSynth.

Este módulo define as estruturas que descrevem uma pipeline de forma
declarativa, sem qualquer lógica de execução:

    - Event        → registro semi-estruturado (mapping str → valor)
    - ABSENT       → marcador de "nenhum valor" ao longo da chain
    - StageKind    → enum da variante de Stage (filter, transform, aggregate)
    - WindowSpec   → condição de fechamento de janela (count e/ou tempo)
    - FilterStage / TransformStage / AggregateStage → variantes de Stage

Princípios fundamentais:
    - Stages são imutáveis (frozen) e a ordem da chain nunca muda em runtime
    - Eventos são tratados como imutáveis; stages produzem novos valores
    - Tipos não dependem de Engine, conectores ou DSL

Invariantes:
    - WindowSpec só aceita inteiros positivos (ou ausência) em cada campo
    - Cada Stage possui exatamente um `kind`

Limites explícitos:
    - Não avalia predicados, mappers ou reducers
    - Não decide quando uma janela fecha (ver WindowedAggregator)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from streamsynth.core.exceptions import ConfigurationError

# Evento como visto pelo Engine. Após transform/aggregate o valor
# corrente da chain pode ser qualquer valor JSON-like (ex.: uma soma).
Event = Mapping[str, Any]

Predicate = Callable[[Any], Any]
Mapper = Callable[[Any], Any]
Reducer = Callable[[Sequence[Any]], Any]


class _Absent:
    _instance: Optional["_Absent"] = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


def is_absent(value: Any) -> bool:
    """`ABSENT` e `None` representam ausência de valor na chain."""
    return value is ABSENT or value is None


class StageKind(str, Enum):
    """
    Variante semântica de um Stage.

    Os valores são strings para facilitar serialização em logs e payloads
    de erro (`ProcessorError.stage_kind`).
    """
    FILTER = "filter"
    TRANSFORM = "transform"
    AGGREGATE = "aggregate"


def _positive_or_none(name: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(
            f"WindowSpec.{name} must be a positive integer",
            details={name: value},
        )
    return value


@dataclass(frozen=True)
class WindowSpec:
    """
    Condição de fechamento de uma janela de agregação.

    Campos:
        - count: fecha quando o buffer atinge `count` eventos (>=)
        - time_window_ms: fecha quando `agora - evento_mais_antigo[timestamp]`
          atinge `time_window_ms`

    Com ambos configurados, qualquer um fecha a janela (OR). Sem nenhum,
    a janela só é reduzida no flush de fim de stream.
    """
    count: Optional[int] = None
    time_window_ms: Optional[int] = None

    def __post_init__(self) -> None:
        _positive_or_none("count", self.count)
        _positive_or_none("time_window_ms", self.time_window_ms)

    @property
    def can_close(self) -> bool:
        return self.count is not None or self.time_window_ms is not None


@dataclass(frozen=True)
class FilterStage:
    """Descarta o evento quando `predicate(valor)` é falso."""
    predicate: Predicate
    source: Optional[str] = None

    @property
    def kind(self) -> StageKind:
        return StageKind.FILTER


@dataclass(frozen=True)
class TransformStage:
    """Substitui o valor corrente por `mapper(valor)`."""
    mapper: Mapper
    source: Optional[str] = None

    @property
    def kind(self) -> StageKind:
        return StageKind.TRANSFORM


@dataclass(frozen=True)
class AggregateStage:
    """Acumula no buffer compartilhado e reduz quando a janela fecha."""
    window: WindowSpec
    reducer: Reducer
    source: Optional[str] = None

    @property
    def kind(self) -> StageKind:
        return StageKind.AGGREGATE


Stage = Union[FilterStage, TransformStage, AggregateStage]


@dataclass(frozen=True)
class ConnectorDescriptor:
    """
    Descrição de um Source ou Sink: nome do tipo registrado + configuração.

    O Engine resolve o tipo no ConnectorRegistry apenas no `start()`;
    até lá o descriptor é apenas dado.
    """
    type: str
    config: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.type, str) or not self.type.strip():
            raise ConfigurationError(
                "connector type must be a non-empty string",
                details={"type": self.type},
            )
