# tests/core/engine/test_aggregator.py
"""
Testes da regra de fechamento de janelas (WindowedAggregator).

Este módulo valida:
- count: fecha exatamente na fronteira (>=, não >)
- tempo: medido contra o campo de timestamp do evento MAIS ANTIGO,
  não contra o horário de chegada
- campo ausente ou não numérico: a condição de tempo nunca dispara
- count e tempo juntos: qualquer um fecha (OR)
- reducer que falha mantém o buffer intacto
- flush força a redução do que restou

Decisões arquiteturais:
    - O relógio é injetado (`clock`) para testes determinísticos
"""

import pytest

try:
    from streamsynth.core.engine.aggregator import WindowedAggregator
    from streamsynth.core.engine.buffer import ProcessingBuffer
    from streamsynth.core.pipeline.types import ABSENT, AggregateStage, WindowSpec
except Exception as e:  # noqa: BLE001
    WindowedAggregator = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing WindowedAggregator. Implement:\n"
            "- src/streamsynth/core/engine/aggregator.py\n"
            f"Import error: {_IMPORT_ERR}"
        )


class FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _stage(**window):
    return AggregateStage(window=WindowSpec(**window), reducer=lambda evs: [e["v"] for e in evs])


def test_count_window_closes_exactly_at_boundary():
    _require_imports()
    agg = WindowedAggregator(ProcessingBuffer())
    stage = _stage(count=3)

    assert agg.accumulate(stage, {"v": 1}) is ABSENT
    assert agg.accumulate(stage, {"v": 2}) is ABSENT
    assert agg.accumulate(stage, {"v": 3}) == [1, 2, 3]
    assert len(agg.buffer) == 0


def test_time_window_uses_oldest_event_timestamp():
    """
    Verifica que o tempo é medido contra o evento mais antigo do buffer.

    O clock fica em 1500; a janela é de 500ms. O primeiro evento
    (timestamp 1000) fecha a janela no momento em que o segundo chega.
    """
    _require_imports()
    clock = FakeClock(1400)
    agg = WindowedAggregator(ProcessingBuffer(), clock=clock)
    stage = _stage(time_window_ms=500)

    assert agg.accumulate(stage, {"v": 1, "timestamp": 1000}) is ABSENT
    clock.now = 1500
    assert agg.accumulate(stage, {"v": 2, "timestamp": 1499}) == [1, 2]


def test_custom_timestamp_field():
    _require_imports()
    agg = WindowedAggregator(ProcessingBuffer(), timestamp_field="ts", clock=FakeClock(10_000))
    stage = _stage(time_window_ms=100)
    assert agg.accumulate(stage, {"v": 1, "ts": 0}) == [1]


@pytest.mark.parametrize("event", [{"v": 1}, {"v": 1, "timestamp": "1000"}, {"v": 1, "timestamp": True}])
def test_time_window_never_fires_without_numeric_field(event):
    _require_imports()
    agg = WindowedAggregator(ProcessingBuffer(), clock=FakeClock(10**12))
    stage = _stage(time_window_ms=1)
    assert agg.accumulate(stage, event) is ABSENT
    assert len(agg.buffer) == 1


def test_count_or_time_either_closes():
    _require_imports()
    agg = WindowedAggregator(ProcessingBuffer(), clock=FakeClock(0))
    stage = _stage(count=2, time_window_ms=1000)
    assert agg.accumulate(stage, {"v": 1, "timestamp": 0}) is ABSENT
    assert agg.accumulate(stage, {"v": 2, "timestamp": 0}) == [1, 2]

    agg.clock = FakeClock(5000)
    assert agg.accumulate(stage, {"v": 3, "timestamp": 0}) == [3]


def test_window_without_conditions_only_flushes():
    _require_imports()
    agg = WindowedAggregator(ProcessingBuffer())
    stage = _stage()
    for i in range(5):
        assert agg.accumulate(stage, {"v": i}) is ABSENT
    assert agg.flush(stage) == [0, 1, 2, 3, 4]
    assert agg.flush(stage) is ABSENT


def test_failing_reducer_keeps_buffer():
    _require_imports()
    agg = WindowedAggregator(ProcessingBuffer())

    def reducer(_events):
        raise ZeroDivisionError("bad reducer")

    stage = AggregateStage(window=WindowSpec(count=1), reducer=reducer)
    with pytest.raises(ZeroDivisionError):
        agg.accumulate(stage, {"v": 1})
    assert agg.buffer.snapshot() == [{"v": 1}]
