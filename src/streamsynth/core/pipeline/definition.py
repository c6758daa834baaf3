# src/streamsynth/core/pipeline/definition.py
"""
PipelineDefinition — builder fluente e ponto de entrada do ciclo de vida.

Uma PipelineDefinition descreve uma pipeline completa:

    - source_descriptor → ConnectorDescriptor do Source
    - sink_descriptor   → ConnectorDescriptor do Sink
    - stages            → sequência ordenada de Filter/Transform/Aggregate
    - buffer_capacity   → limite do buffer em memória antes do spillover

Princípios fundamentais:
    - Configuração só é aceita antes do primeiro `start()`
    - A ordem dos stages é a ordem das chamadas ao builder
    - A execução é delegada integralmente ao Engine

Invariantes:
    - `start()` exige exatamente um source e um sink
    - `start()` em uma definição já iniciada é no-op
    - Após iniciada, qualquer chamada ao builder levanta ConfigurationError

Sinais:
    starting, started, stopping, stopped e, repassados do Engine,
    error, processed, filtered, spillover, end.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from streamsynth.core.config.settings import DEFAULT_BUFFER_CAPACITY, EngineSettings
from streamsynth.core.engine.engine import Engine, EngineState
from streamsynth.core.engine.signals import SignalEmitter
from streamsynth.core.exceptions import ConfigurationError

from .types import (
    AggregateStage,
    ConnectorDescriptor,
    FilterStage,
    Mapper,
    Predicate,
    Reducer,
    Stage,
    TransformStage,
    WindowSpec,
)

_FORWARDED_SIGNALS = ("error", "processed", "filtered", "spillover", "end")


def _validate_capacity(capacity: Any) -> int:
    if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 0:
        raise ConfigurationError(
            "buffer capacity must be an integer >= 0",
            details={"buffer_capacity": capacity},
        )
    return capacity


class PipelineDefinition(SignalEmitter):
    SIGNALS = frozenset(
        {
            "starting",
            "started",
            "stopping",
            "stopped",
            *_FORWARDED_SIGNALS,
        }
    )

    def __init__(self, *, buffer_capacity: int = DEFAULT_BUFFER_CAPACITY) -> None:
        super().__init__()
        self.source_descriptor: Optional[ConnectorDescriptor] = None
        self.sink_descriptor: Optional[ConnectorDescriptor] = None
        self.buffer_capacity = _validate_capacity(buffer_capacity)
        self._stages: List[Stage] = []
        self._locked = False
        self.engine: Optional[Engine] = None

    # ------------------------------------------------------------------
    # Builder
    # ------------------------------------------------------------------

    @property
    def stages(self) -> Tuple[Stage, ...]:
        return tuple(self._stages)

    @property
    def running(self) -> bool:
        return self.engine is not None and self.engine.state is EngineState.RUNNING

    def _ensure_mutable(self) -> None:
        if self._locked:
            raise ConfigurationError(
                "Pipeline definition cannot be modified after start()",
                hint="Build a new pipeline instead",
            )

    def source(self, type: str, config: Optional[Mapping[str, Any]] = None) -> "PipelineDefinition":
        self._ensure_mutable()
        self.source_descriptor = ConnectorDescriptor(type=type, config=dict(config or {}))
        return self

    def sink(self, type: str, config: Optional[Mapping[str, Any]] = None) -> "PipelineDefinition":
        self._ensure_mutable()
        self.sink_descriptor = ConnectorDescriptor(type=type, config=dict(config or {}))
        return self

    def add_stage(self, stage: Stage) -> "PipelineDefinition":
        self._ensure_mutable()
        if not isinstance(stage, (FilterStage, TransformStage, AggregateStage)):
            raise ConfigurationError(
                "Unsupported stage type",
                details={"stage_class": type(stage).__name__},
            )
        self._stages.append(stage)
        return self

    def filter(self, predicate: Predicate, *, source: Optional[str] = None) -> "PipelineDefinition":
        return self.add_stage(FilterStage(predicate=predicate, source=source))

    def transform(self, mapper: Mapper, *, source: Optional[str] = None) -> "PipelineDefinition":
        return self.add_stage(TransformStage(mapper=mapper, source=source))

    def aggregate(
        self,
        reducer: Reducer,
        *,
        window: Optional[WindowSpec] = None,
        count: Optional[int] = None,
        time_window_ms: Optional[int] = None,
        source: Optional[str] = None,
    ) -> "PipelineDefinition":
        """Acrescenta um AggregateStage.

        A janela pode vir pronta (`window=`) ou por `count`/`time_window_ms`,
        nunca pelos dois caminhos ao mesmo tempo.
        """
        if window is not None and (count is not None or time_window_ms is not None):
            raise ConfigurationError("Pass either window= or count/time_window_ms, not both")
        spec = window or WindowSpec(count=count, time_window_ms=time_window_ms)
        return self.add_stage(AggregateStage(window=spec, reducer=reducer, source=source))

    def buffer_size(self, capacity: int) -> "PipelineDefinition":
        self._ensure_mutable()
        self.buffer_capacity = _validate_capacity(capacity)
        return self

    def validate(self) -> None:
        if self.source_descriptor is None:
            raise ConfigurationError("Pipeline has no source", hint="Call .source(type, config)")
        if self.sink_descriptor is None:
            raise ConfigurationError("Pipeline has no sink", hint="Call .sink(type, config)")

    def describe(self) -> Dict[str, Any]:
        """Forma serializável da definição (sem os callables)."""
        def _descriptor(d: Optional[ConnectorDescriptor]) -> Optional[Dict[str, Any]]:
            return None if d is None else {"type": d.type, "config": dict(d.config)}

        stages = []
        for stage in self._stages:
            item: Dict[str, Any] = {"kind": stage.kind.value, "source": stage.source}
            if isinstance(stage, AggregateStage):
                item["window"] = {
                    "count": stage.window.count,
                    "time_window_ms": stage.window.time_window_ms,
                }
            stages.append(item)

        return {
            "source": _descriptor(self.source_descriptor),
            "sink": _descriptor(self.sink_descriptor),
            "stages": stages,
            "buffer_capacity": self.buffer_capacity,
        }

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    def _forward(self, engine: Engine) -> None:
        for signal in _FORWARDED_SIGNALS:
            engine.on(signal, lambda *args, _signal=signal: self.emit(_signal, *args))

    async def start(self, **engine_kwargs: Any) -> Engine:
        """Valida, cria o Engine e o inicia.

        `engine_kwargs` são repassados ao Engine (registry, config,
        settings, clock). Chamado de novo após sucesso, devolve o mesmo
        Engine sem reiniciá-lo.
        """
        if self.engine is not None:
            return self.engine

        self.validate()
        self._locked = True
        self.emit("starting")

        try:
            engine = Engine(self, **engine_kwargs)
            self._forward(engine)
            await engine.start()
        except Exception:
            self._locked = False
            raise

        self.engine = engine
        self.emit("started")
        return engine

    async def stop(self) -> None:
        if self.engine is None or self.engine.state is EngineState.STOPPED:
            return
        self.emit("stopping")
        await self.engine.stop()
        self.emit("stopped")


def create_pipeline(settings: Optional[EngineSettings] = None) -> PipelineDefinition:
    """Nova definição vazia; a capacidade padrão vem dos settings, se dados."""
    if settings is None:
        return PipelineDefinition()
    return PipelineDefinition(buffer_capacity=settings.default_buffer_capacity)
