# tests/core/engine/test_engine.py
"""
Testes do Engine (ciclo de vida, processamento por evento, spillover).

Este módulo valida o comportamento observável do Engine através dos
sinais emitidos, do Sink `memory` e do RunContext:

- ciclo de vida idle → initializing → running → stopping → stopped
- falhas de resolução de conector abortam o start (erro + estado idle)
- falhas por evento (stage, sink, source) são reportadas e não derrubam o run
- flush de fim de stream para janelas incompletas
- spillover durante o run e descarte sem replay no stop
- `reload()` administrativo

Decisões arquiteturais:
    - Código assíncrono dirigido com `asyncio.run`
    - Spillover isolado em `tmp_path` via `engine_config`
    - Falhas de Sink simuladas com um registry customizado
"""

import asyncio

import pytest

try:
    from streamsynth.connectors.memory import MemorySink, memory_source
    from streamsynth.connectors.registry import ConnectorRegistry, default_registry
    from streamsynth.core.engine.engine import Engine, EngineState
    from streamsynth.core.exceptions import (
        ConnectorInitError,
        ProcessorError,
        SinkError,
        UnknownConnectorError,
    )
    from streamsynth.core.pipeline.definition import create_pipeline
except Exception as e:  # noqa: BLE001
    Engine = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    """
    Garante que o Engine e seus colaboradores estejam disponíveis.

    Falha imediata e explícita, listando os módulos esperados.
    """
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing engine modules. Implement:\n"
            "- src/streamsynth/core/engine/engine.py (Engine, EngineState)\n"
            "- src/streamsynth/connectors/registry.py (ConnectorRegistry)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def _sum_v(events):
    return sum(e["v"] for e in events)


class PickySink(MemorySink):
    """Sink que recusa valores marcados com `reject`."""

    async def write(self, event):
        if isinstance(event, dict) and event.get("reject"):
            raise IOError("sink refused event")
        await super().write(event)


def _registry_with_picky_sink():
    registry = default_registry()
    registry.register_sink("picky", lambda config: PickySink())
    return registry


# =====================================================
# Ciclo de vida
# =====================================================

def test_engine_starts_idle_and_stop_is_noop(engine_config):
    _require_imports()
    p = create_pipeline().source("memory").sink("memory")
    engine = Engine(p, config=engine_config)
    assert engine.state is EngineState.IDLE
    asyncio.run(engine.stop())
    assert engine.state is EngineState.IDLE


def test_state_transitions_are_logged(engine_config, run_to_end):
    _require_imports()
    p = create_pipeline().source("memory", {"events": [{"v": 1}]}).sink("memory")
    engine, written = run_to_end(p)

    assert written == [{"v": 1}]
    assert engine.state is EngineState.STOPPED
    states = [e["state"] for e in engine.ctx.events if e["message"] == "state changed"]
    assert states == ["initializing", "running", "stopping", "stopped"]
    assert engine.sink.closed is True


def test_unknown_connector_aborts_start(engine_config, recorder):
    """
    Verifica que um tipo não registrado aborta o start.

    Invariantes:
        - UnknownConnectorError propaga para quem chamou
        - um sinal `error` é emitido antes
        - o estado volta para idle
    """
    _require_imports()
    p = create_pipeline().source("mqtt", {"topic": "in"}).sink("memory")
    engine = Engine(p, config=engine_config)
    recorder.attach(engine)

    with pytest.raises(UnknownConnectorError) as exc:
        asyncio.run(engine.start())

    assert exc.value.role == "source"
    assert "memory" in exc.value.details["available"]
    assert recorder.names() == ["error"]
    assert engine.state is EngineState.IDLE
    assert engine.last_error is exc.value


def test_connector_constructor_failure_is_wrapped(engine_config):
    _require_imports()
    p = create_pipeline().source("memory", {"events": "not-a-list"}).sink("memory")
    engine = Engine(p, config=engine_config)

    with pytest.raises(ConnectorInitError) as exc:
        asyncio.run(engine.start())
    assert isinstance(exc.value.__cause__, TypeError)
    assert engine.state is EngineState.IDLE


def test_wait_until_ended_requires_start(engine_config):
    _require_imports()
    from streamsynth.core.exceptions import ConfigurationError

    engine = Engine(create_pipeline().source("memory").sink("memory"), config=engine_config)
    with pytest.raises(ConfigurationError):
        asyncio.run(engine.wait_until_ended())


# =====================================================
# Processamento por evento
# =====================================================

def test_events_reach_sink_in_source_order(run_to_end):
    _require_imports()
    events = [{"n": i} for i in range(20)]
    p = (
        create_pipeline()
        .source("memory", {"events": events})
        .transform(lambda e: {"n": e["n"], "double": e["n"] * 2})
        .sink("memory")
    )
    engine, written = run_to_end(p)
    assert [w["n"] for w in written] == list(range(20))
    assert engine.stats["received"] == 20
    assert engine.stats["processed"] == 20


def test_filtered_events_never_reach_sink(recorder, run_to_end, http_log_events):
    _require_imports()
    p = (
        create_pipeline()
        .source("memory", {"events": http_log_events})
        .filter(lambda e: e["statusCode"] >= 400)
        .sink("memory")
    )
    recorder.attach(p)

    engine, written = run_to_end(p)
    assert [w["url"] for w in written] == ["/missing", "/boom"]
    filtered = recorder.args_of("filtered")
    assert [args[0]["url"] for args in filtered] == ["/", "/moved"]
    assert engine.stats["filtered"] == 2


def test_sink_error_is_reported_and_run_continues(recorder, run_to_end):
    _require_imports()
    events = [{"v": 1}, {"v": 2, "reject": True}, {"v": 3}]
    p = create_pipeline().source("memory", {"events": events}).sink("picky")
    recorder.attach(p)

    engine, written = run_to_end(p, registry=_registry_with_picky_sink())
    assert written == [{"v": 1}, {"v": 3}]

    errors = [args[0] for args in recorder.args_of("error")]
    assert len(errors) == 1
    assert isinstance(errors[0], SinkError)
    assert isinstance(errors[0].__cause__, IOError)
    assert recorder.count("processed") == 2


def test_source_error_is_forwarded_without_stopping(engine_config, recorder, tmp_path):
    _require_imports()
    p = create_pipeline().source("file", {"path": str(tmp_path / "missing.json")}).sink("memory")
    recorder.attach(p)

    async def _main():
        engine = await p.start(config=engine_config)
        for _ in range(10):
            await asyncio.sleep(0)
        state = engine.state
        await p.stop()
        return state

    state = asyncio.run(_main())
    assert state is EngineState.RUNNING
    errors = [args[0] for args in recorder.args_of("error")]
    assert len(errors) == 1
    assert isinstance(errors[0], FileNotFoundError)
    assert recorder.count("end") == 0


def test_processor_error_payload_is_logged(run_to_end):
    _require_imports()

    def explode(_event):
        raise ValueError("bad event")

    p = create_pipeline().source("memory", {"events": [{"v": 1}]}).transform(explode).sink("memory")
    engine, written = run_to_end(p)

    assert written == [{"v": 1}]
    assert isinstance(engine.last_error, ProcessorError)
    entries = engine.ctx.entries(level="error")
    assert len(entries) == 1
    assert entries[0]["stage_id"] == "stage.0.transform"
    payload = entries[0]["error"]
    assert payload["type"] == "PROCESSOR_ERROR"
    assert payload["details"]["cause_class"] == "ValueError"
    assert engine.stats["errors"] == 1


def test_stop_drains_queued_events(engine_config):
    """
    Verifica que `stop()` processa o que já estava enfileirado antes de
    fechar o Sink: tudo que foi recebido chega ao Sink.
    """
    _require_imports()
    events = [{"n": i} for i in range(200)]
    p = create_pipeline().source("memory", {"events": events}).sink("memory")

    async def _main():
        engine = await p.start(config=engine_config)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        sink = engine.sink
        await p.stop()
        return engine, sink

    engine, sink = asyncio.run(_main())
    assert engine.stats["received"] == engine.stats["processed"] == len(sink.events)
    assert [e["n"] for e in sink.events] == list(range(len(sink.events)))


# =====================================================
# Janelas e flush de fim de stream
# =====================================================

def test_end_flush_reduces_incomplete_window(recorder, run_to_end):
    _require_imports()
    p = (
        create_pipeline()
        .source("memory", {"events": [{"v": 1}, {"v": 2}, {"v": 3}]})
        .aggregate(_sum_v, count=10)
        .sink("memory")
    )
    recorder.attach(p)

    engine, written = run_to_end(p)
    assert written == [6]
    assert recorder.names() == ["starting", "started", "processed", "end", "stopping", "stopped"]
    flush_logs = [e for e in engine.ctx.events if e["message"] == "end-of-stream flush"]
    assert flush_logs[0]["events"] == 3


def test_end_flush_failure_is_processor_error(recorder, run_to_end):
    _require_imports()

    def reducer(events):
        if len(events) < 2:
            raise RuntimeError("need two")
        return len(events)

    p = (
        create_pipeline()
        .source("memory", {"events": [{"v": 1}, {"v": 2}, {"v": 3}]})
        .aggregate(reducer, count=2)
        .sink("memory")
    )
    recorder.attach(p)

    _, written = run_to_end(p)
    assert written == [2]
    errors = [args[0] for args in recorder.args_of("error")]
    assert len(errors) == 1
    assert isinstance(errors[0], ProcessorError)
    assert errors[0].stage_kind == "aggregate"
    assert recorder.count("end") == 1


def test_time_window_with_injected_clock(engine_config, run_to_end):
    """
    Verifica a janela de tempo dentro do Engine com `timestamp_field`
    configurado e relógio injetado.

    Sequência do relógio: 500, 1500, 2500. A janela fecha no segundo
    evento (1500 - 0 >= 1000); o terceiro fica retido e sai no flush.
    """
    _require_imports()
    events = [{"v": 1, "ts": 0}, {"v": 2, "ts": 10}, {"v": 3, "ts": 2000}]
    p = (
        create_pipeline()
        .source("memory", {"events": events})
        .aggregate(_sum_v, time_window_ms=1000)
        .sink("memory")
    )
    config = {"engine": {**engine_config["engine"], "timestamp_field": "ts"}}
    ticks = [500, 1500, 2500]

    def clock():
        return ticks.pop(0) if len(ticks) > 1 else ticks[0]

    _, written = run_to_end(p, config=config, clock=clock)
    assert written == [3, 3]


# =====================================================
# Spillover
# =====================================================

def test_spillover_during_run_and_discard_on_stop(recorder, run_to_end, spill_dir):
    """
    Verifica o spillover com capacidade 2 e uma janela que nunca fecha.

    Cada evento a partir do terceiro empurra o mais antigo para disco.
    No fim, o flush reduz apenas o que ficou em memória; no stop, os
    arquivos pendentes são apagados SEM replay e um warning é registrado.
    """
    _require_imports()
    events = [{"v": v} for v in (1, 2, 3, 4, 5)]
    p = (
        create_pipeline()
        .source("memory", {"events": events})
        .aggregate(_sum_v)
        .sink("memory")
        .buffer_size(2)
    )
    recorder.attach(p)

    engine, written = run_to_end(p)

    spills = recorder.args_of("spillover")
    assert [count for _, count in spills] == [1, 1, 1]
    assert all(path.parent == spill_dir for path, _ in spills)
    assert written == [9]

    assert not spill_dir.exists()
    assert all(not path.exists() for path, _ in spills)
    assert engine.stats["spilled_events"] == 3
    assert engine.stats["spill_files"] == 3
    assert len(engine.ctx.warnings["spillover"]) == 1
    assert "3 spilled events" in engine.ctx.warnings["spillover"][0]


def test_reload_prepends_spilled_events(engine_config):
    _require_imports()
    p = create_pipeline().source("memory").aggregate(_sum_v).sink("memory").buffer_size(1)
    engine = Engine(p, config=engine_config)

    async def _feed():
        for v in (1, 2, 3):
            await engine.process_event({"v": v})

    asyncio.run(_feed())
    assert engine.buffer.snapshot() == [{"v": 3}]
    assert len(engine.spillover.pending) == 2

    assert engine.reload() is True
    assert engine.buffer.snapshot() == [{"v": 1}, {"v": 3}]
    assert engine.stats["reloaded_events"] == 1
    assert engine.reload() is True
    assert engine.reload() is False
    assert engine.buffer.snapshot() == [{"v": 2}, {"v": 1}, {"v": 3}]
