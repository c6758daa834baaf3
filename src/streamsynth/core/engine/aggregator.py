# src/streamsynth/core/engine/aggregator.py
"""
Regra de fechamento de janelas de agregação.

O WindowedAggregator opera sobre o ProcessingBuffer compartilhado do
Engine e decide, para um AggregateStage, se a janela está completa:

    - count: fecha quando `len(buffer) >= window.count` (exatamente na fronteira)
    - tempo: fecha quando `agora - buffer.front[timestamp_field] >= window.time_window_ms`

O tempo é medido contra um campo numérico (epoch ms) carregado pelo
PRÓPRIO evento mais antigo, não contra o horário de chegada. Se o campo
estiver ausente ou não for numérico, a condição de tempo nunca dispara.
Com ambos configurados, qualquer condição fecha a janela (OR).

A redução acontece sobre um snapshot do buffer inteiro; o buffer só é
esvaziado depois que o reducer retorna. Se o reducer falhar, o buffer
permanece intacto e a exceção propaga para a chain.
"""

from __future__ import annotations

import time
from numbers import Real
from typing import Any, Callable, Mapping, Optional

from streamsynth.core.pipeline.types import ABSENT, AggregateStage, WindowSpec

from .buffer import ProcessingBuffer

Clock = Callable[[], float]


def wall_clock_ms() -> float:
    return time.time() * 1000.0


class WindowedAggregator:
    def __init__(
        self,
        buffer: ProcessingBuffer,
        *,
        timestamp_field: str = "timestamp",
        clock: Optional[Clock] = None,
    ) -> None:
        self.buffer = buffer
        self.timestamp_field = timestamp_field
        self.clock: Clock = clock or wall_clock_ms

    def _oldest_timestamp(self) -> Optional[float]:
        if not self.buffer:
            return None
        oldest = self.buffer.front()
        if not isinstance(oldest, Mapping):
            return None
        value = oldest.get(self.timestamp_field)
        if isinstance(value, bool) or not isinstance(value, Real):
            return None
        return float(value)

    def should_close(self, window: WindowSpec) -> bool:
        if window.count is not None and len(self.buffer) >= window.count:
            return True
        if window.time_window_ms is not None:
            oldest = self._oldest_timestamp()
            if oldest is not None and self.clock() - oldest >= window.time_window_ms:
                return True
        return False

    def accumulate(self, stage: AggregateStage, value: Any) -> Any:
        """Empilha `value`; retorna a redução se a janela fechou, senão ABSENT."""
        self.buffer.push(value)
        if not self.should_close(stage.window):
            return ABSENT
        result = stage.reducer(self.buffer.snapshot())
        self.buffer.clear()
        return result

    def flush(self, stage: AggregateStage) -> Any:
        """Redução forçada do que restou no buffer (fim de stream)."""
        if not self.buffer:
            return ABSENT
        result = stage.reducer(self.buffer.snapshot())
        self.buffer.clear()
        return result
