# src/streamsynth/core/engine/engine.py
"""
Engine de execução contínua do StreamSynth.

O Engine liga um Source, um Sink e a StageChain de uma PipelineDefinition,
é dono do ProcessingBuffer compartilhado e conduz o ciclo de vida:

    idle → initializing → running → stopping → stopped

Falhas de configuração / resolução de conector durante `initializing`
abortam o start (sinal `error` + exceção propagada, estado volta a idle).
Todas as demais falhas são por evento: reportadas via sinal `error`,
registradas no RunContext, e o Engine segue processando
(`last_error` guarda a condição transitória "errored").

Concorrência:
    Sinais `data`/`end` do Source apenas enfileiram em uma `asyncio.Queue`
    sem limite; uma única task consumidora processa os eventos em ordem
    de chegada. O buffer compartilhado nunca é mutado concorrentemente.
    Não há backpressure do Engine para o Source. `end` entra na fila como
    marcador, então o flush de fim de stream ocorre depois de todos os
    eventos já admitidos.

Sinais emitidos (nesta ordem por evento):
    error*  → processed | filtered  → error (sink)?  → spillover?
    ciclo de vida: started, end, stopped

Limites explícitos:
    - Não reenvia spillover pendente ao Sink no stop (ver spillover.py)
    - Não chama `reload()` por conta própria
    - Não para sozinho ao receber `end`; quem chama deve chamar `stop()`
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from streamsynth.connectors.registry import ConnectorRegistry, default_registry
from streamsynth.core.config.settings import EngineSettings, resolve_engine_settings
from streamsynth.core.errors import exception_to_error
from streamsynth.core.exceptions import (
    ConfigurationError,
    ConnectorInitError,
    ProcessorError,
    SinkError,
    SourceError,
    SpilloverError,
    StreamSynthException,
)
from streamsynth.core.pipeline.chain import StageChain, stage_error
from streamsynth.core.pipeline.context import ENGINE_STAGE_ID, RunContext
from streamsynth.core.pipeline.types import is_absent

from .aggregator import Clock, WindowedAggregator
from .buffer import ProcessingBuffer
from .signals import SignalEmitter
from .spillover import SpilloverBuffer

if TYPE_CHECKING:
    from streamsynth.core.pipeline.definition import PipelineDefinition


class EngineState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


# Marcadores internos da fila de eventos
_END = object()
_STOP = object()


def _stage_id_for(err: BaseException) -> str:
    if isinstance(err, ProcessorError) and err.stage_index is not None:
        return f"stage.{err.stage_index}.{err.stage_kind}"
    if isinstance(err, SinkError):
        return "sink"
    if isinstance(err, SourceError):
        return "source"
    if isinstance(err, SpilloverError):
        return "spillover"
    return ENGINE_STAGE_ID


class Engine(SignalEmitter):
    """Engine canônico do StreamSynth (um Source, um Sink, uma chain)."""

    SIGNALS = frozenset(
        {"started", "processed", "filtered", "error", "spillover", "end", "stopped"}
    )

    def __init__(
        self,
        pipeline: "PipelineDefinition",
        *,
        registry: Optional[ConnectorRegistry] = None,
        config: Optional[Dict[str, Any]] = None,
        settings: Optional[EngineSettings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__()
        self.pipeline = pipeline
        self.config: Dict[str, Any] = dict(config or {})
        self.settings = settings or resolve_engine_settings(self.config)
        self.registry = registry or default_registry()
        self.ctx = RunContext.create(self.config)

        self.chain = StageChain(pipeline.stages)
        self.buffer = ProcessingBuffer()
        self.aggregator = WindowedAggregator(
            self.buffer,
            timestamp_field=self.settings.timestamp_field,
            clock=clock,
        )
        spill_dir = Path(self.settings.spillover_dir)
        if not spill_dir.is_absolute():
            spill_dir = Path.cwd() / spill_dir
        self.spillover = SpilloverBuffer(self.buffer, spill_dir)

        self.state = EngineState.IDLE
        self.source: Any = None
        self.sink: Any = None
        self.last_error: Optional[BaseException] = None

        self._queue: Optional["asyncio.Queue[Any]"] = None
        self._consumer: Optional["asyncio.Task[None]"] = None
        self._ended: Optional[asyncio.Event] = None

    # ------------------------------------------------------------------
    # Estado, log e reporte de erros
    # ------------------------------------------------------------------

    @property
    def buffer_capacity(self) -> int:
        return self.pipeline.buffer_capacity

    @property
    def stats(self) -> Dict[str, int]:
        return dict(self.ctx.metrics)

    def _set_state(self, state: EngineState) -> None:
        previous, self.state = self.state, state
        self.ctx.log(
            stage_id=ENGINE_STAGE_ID,
            level="info",
            message="state changed",
            previous=previous.value,
            state=state.value,
        )

    def _report(self, err: BaseException) -> None:
        self.last_error = err
        self.ctx.incr("errors")
        self.ctx.log(
            stage_id=_stage_id_for(err),
            level="error",
            message=str(err) or err.__class__.__name__,
            error=exception_to_error(err).to_dict(),
        )
        self.emit("error", err)

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    def _resolve_connectors(self) -> None:
        if self.pipeline.source_descriptor is None:
            raise ConfigurationError("No source configured", hint="Call .source(type, config) first")
        if self.pipeline.sink_descriptor is None:
            raise ConfigurationError("No sink configured", hint="Call .sink(type, config) first")

        self.source = self.registry.create_source(self.pipeline.source_descriptor)
        self.sink = self.registry.create_sink(self.pipeline.sink_descriptor)
        self.ctx.log(
            stage_id=ENGINE_STAGE_ID,
            level="info",
            message="connectors resolved",
            source=self.pipeline.source_descriptor.type,
            sink=self.pipeline.sink_descriptor.type,
        )

    async def _abort_start(self, err: StreamSynthException) -> None:
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
        if self.sink is not None:
            await self._close_sink()
        self._consumer = None
        self._queue = None
        self.source = None
        self.sink = None
        self._report(err)
        self._set_state(EngineState.IDLE)

    async def start(self) -> None:
        """Resolve conectores, assina os sinais do Source e o inicia.

        Idempotente: chamadas fora do estado idle não fazem nada.

        Raises:
            ConfigurationError: source/sink ausente ou tipo não registrado.
            ConnectorInitError: construção ou `start()` do conector falhou.
        """
        if self.state is not EngineState.IDLE:
            return

        self._set_state(EngineState.INITIALIZING)
        try:
            self._resolve_connectors()
        except StreamSynthException as e:
            await self._abort_start(e)
            raise

        self._queue = asyncio.Queue()
        self._ended = asyncio.Event()
        self.source.on("data", self._enqueue_event)
        self.source.on("end", self._enqueue_end)
        self.source.on("error", self._on_source_error)
        self._consumer = asyncio.get_running_loop().create_task(self._consume())

        try:
            await self.source.start()
        except Exception as e:
            err = ConnectorInitError(
                f"Source failed to start: {e}",
                details={"type": self.pipeline.source_descriptor.type},
                connector_type=self.pipeline.source_descriptor.type,
                role="source",
            )
            err.__cause__ = e
            await self._abort_start(err)
            raise err from e

        self._set_state(EngineState.RUNNING)
        self.emit("started")

    async def stop(self) -> None:
        """Para o Source, termina a fila, fecha o Sink e descarta spillover pendente.

        Eventos já enfileirados são processados antes do fechamento do Sink.
        Arquivos de spillover pendentes são apagados SEM replay.
        """
        if self.state not in (EngineState.RUNNING, EngineState.INITIALIZING):
            return

        self._set_state(EngineState.STOPPING)

        if self.source is not None:
            try:
                await self.source.stop()
            except Exception as e:
                self._report(e)

        if self._consumer is not None and self._queue is not None:
            self._queue.put_nowait(_STOP)
            await self._consumer
            self._consumer = None

        if self.sink is not None:
            await self._close_sink()

        discarded_events = self.spillover.pending_events
        discarded_files = len(self.spillover.pending)
        for failure in self.spillover.discard_all():
            self._report(failure)
        if discarded_files:
            message = (
                f"discarded {discarded_events} spilled events "
                f"({discarded_files} files) without replay"
            )
            self.ctx.add_warning(stage_id="spillover", message=message)
            self.ctx.log(
                stage_id="spillover",
                level="warning",
                message=message,
                events=discarded_events,
                files=discarded_files,
            )

        self._set_state(EngineState.STOPPED)
        self.emit("stopped")

    async def _close_sink(self) -> None:
        try:
            await self.sink.close()
        except Exception as e:
            err = SinkError(
                f"Sink close error: {e}",
                details={"exception_class": e.__class__.__name__},
            )
            err.__cause__ = e
            self._report(err)

    async def wait_until_ended(self) -> None:
        """Aguarda o processamento do `end` do Source (flush incluído)."""
        if self._ended is None:
            raise ConfigurationError("Engine has not been started")
        await self._ended.wait()

    async def drain(self) -> None:
        """Aguarda até que todos os itens já enfileirados sejam processados."""
        if self._queue is None:
            return
        await self._queue.join()

    # ------------------------------------------------------------------
    # Sinais do Source
    # ------------------------------------------------------------------

    def _enqueue_event(self, event: Any) -> None:
        if self._queue is None:
            return
        self.ctx.incr("received")
        self._queue.put_nowait(event)

    def _enqueue_end(self) -> None:
        if self._queue is None:
            return
        self._queue.put_nowait(_END)

    def _on_source_error(self, exc: BaseException) -> None:
        self._report(exc)

    async def _consume(self) -> None:
        assert self._queue is not None
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    return
                if item is _END:
                    await self._on_source_end()
                else:
                    await self.process_event(item)
            except Exception as e:
                self._report(e)
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Processamento por evento
    # ------------------------------------------------------------------

    async def process_event(self, event: Any) -> None:
        """Passa um evento pela chain, escreve no Sink e verifica spillover."""
        outcome = self.chain.run(event, self.aggregator)

        for err in outcome.errors:
            self._report(err)

        if outcome.has_value:
            await self._send_to_sink(outcome.value)
        elif outcome.filtered:
            self.ctx.incr("filtered")
            self.emit("filtered", event)

        self._check_spillover()

    async def _send_to_sink(self, value: Any) -> None:
        try:
            await self.sink.write(value)
        except Exception as e:
            err = SinkError(
                f"Sink error: {e}",
                details={"exception_class": e.__class__.__name__},
            )
            err.__cause__ = e
            self._report(err)
            return
        self.ctx.incr("processed")
        self.emit("processed", value)

    def _check_spillover(self) -> None:
        try:
            record = self.spillover.spill_if_needed(self.buffer_capacity)
        except SpilloverError as e:
            self._report(e)
            return
        if record is None:
            return

        self.ctx.incr("spilled_events", record.count)
        self.ctx.incr("spill_files")
        self.ctx.log(
            stage_id="spillover",
            level="info",
            message="buffer overflow spilled to disk",
            path=str(record.file_path),
            count=record.count,
            sequence_id=record.sequence_id,
        )
        self.emit("spillover", record.file_path, record.count)

    async def _on_source_end(self) -> None:
        for index, stage in self.chain.aggregate_stages():
            if not self.buffer:
                continue
            remaining = len(self.buffer)
            try:
                result = self.aggregator.flush(stage)
            except Exception as e:
                self._report(stage_error(index, stage, e))
                continue

            self.ctx.log(
                stage_id=f"stage.{index}.{stage.kind.value}",
                level="info",
                message="end-of-stream flush",
                events=remaining,
            )
            if not is_absent(result):
                await self._send_to_sink(result)

        assert self._ended is not None
        self._ended.set()
        self.emit("end")

    # ------------------------------------------------------------------
    # Administração
    # ------------------------------------------------------------------

    def reload(self) -> bool:
        """Recoloca o registro de spillover mais antigo na frente do buffer.

        Nunca é chamado pelo loop normal. Retorna False quando não há nada
        pendente ou a leitura falhou (erro reportado via sinal).
        """
        try:
            record = self.spillover.reload()
        except SpilloverError as e:
            self._report(e)
            return False
        if record is None:
            return False

        self.ctx.incr("reloaded_events", record.count)
        self.ctx.log(
            stage_id="spillover",
            level="info",
            message="spillover reloaded into buffer",
            path=str(record.file_path),
            count=record.count,
            sequence_id=record.sequence_id,
        )
        return True
