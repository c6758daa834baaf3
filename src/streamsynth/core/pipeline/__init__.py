# src/streamsynth/core/pipeline/__init__.py
"""
# Pipeline Core — StreamSynth

Este pacote define as estruturas declarativas de uma pipeline de streaming
e a regra de encadeamento de stages.

## Componentes

- **types**
  - `StageKind`, `WindowSpec`, `FilterStage`, `TransformStage`, `AggregateStage`
  - `ConnectorDescriptor`: tipo + config de um Source/Sink
  - `ABSENT`: marcador de "nenhum valor" na chain

- **chain**
  - `StageChain`: execução stage a stage com política "continue degradado"

- **context**
  - `RunContext`: log estruturado, warnings e contadores de um run

- **definition** (importado diretamente de `streamsynth.core.pipeline.definition`)
  - `PipelineDefinition`: builder fluente e ciclo de vida

## Limites Explícitos

- Não resolve conectores nem mantém buffer (responsabilidade do Engine)
- Não interpreta DSL
"""

from .chain import ChainOutcome, StageChain
from .context import RunContext
from .types import (
    ABSENT,
    AggregateStage,
    ConnectorDescriptor,
    FilterStage,
    Stage,
    StageKind,
    TransformStage,
    WindowSpec,
    is_absent,
)

__all__ = [
    "ABSENT",
    "AggregateStage",
    "ChainOutcome",
    "ConnectorDescriptor",
    "FilterStage",
    "RunContext",
    "Stage",
    "StageChain",
    "StageKind",
    "TransformStage",
    "WindowSpec",
    "is_absent",
]
