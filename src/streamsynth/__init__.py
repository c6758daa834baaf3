# src/streamsynth/__init__.py
"""
StreamSynth — engine de processamento contínuo de eventos.

Eventos fluem de um Source plugável, por uma chain ordenada de stages
declarativos (filter, transform, aggregate com janela), até um Sink
plugável. Pipelines são montadas pelo builder fluente ou compiladas a
partir de uma DSL textual.

Arquitetura em alto nível:
    - core.pipeline → definição declarativa e chain de stages
    - core.engine   → runtime, janelas, buffer e spillover
    - connectors    → Sources/Sinks embutidos e registry
    - dsl           → expressões escopadas e compilador de DSL
    - cli           → `streamsynth run|create`

Limites explícitos:
    - Processo único, uma pipeline por Engine
    - Sem entrega exactly-once ou coordenação distribuída
"""

from streamsynth.core.pipeline.definition import PipelineDefinition, create_pipeline
from streamsynth.core.engine.engine import Engine, EngineState
from streamsynth.core.pipeline.types import ABSENT, WindowSpec
from streamsynth.connectors.registry import ConnectorRegistry, default_registry
from streamsynth.dsl.compiler import DSL_TEMPLATE, compile_file, compile_pipeline

__version__ = "0.1.0"

__all__ = [
    "ABSENT",
    "ConnectorRegistry",
    "DSL_TEMPLATE",
    "Engine",
    "EngineState",
    "PipelineDefinition",
    "WindowSpec",
    "compile_file",
    "compile_pipeline",
    "create_pipeline",
    "default_registry",
]
