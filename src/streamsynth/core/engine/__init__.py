# src/streamsynth/core/engine/__init__.py
"""
Engine do StreamSynth.

Este pacote contém o runtime contínuo: o Engine que liga Source, chain e
Sink, e os colaboradores que operam sobre o buffer compartilhado.

Componentes principais:
    - signals    → fan-out de sinais (observer)
    - buffer     → ProcessingBuffer, FIFO único compartilhado
    - aggregator → regra de fechamento de janelas (count / tempo)
    - spillover  → overflow do buffer persistido em disco
    - engine     → ciclo de vida e loop de processamento por evento

Invariantes:
    - Existe um único buffer por Engine, nunca duplicado
    - Eventos são processados um por vez, na ordem de chegada
    - Falhas por evento nunca derrubam o Engine

Limites explícitos:
    - Não interpreta DSL
    - Não reenvia spillover ao Sink automaticamente
"""

from .aggregator import WindowedAggregator
from .buffer import ProcessingBuffer
from .engine import Engine, EngineState
from .signals import SignalEmitter
from .spillover import SpilloverBuffer, SpilloverRecord

__all__ = [
    "Engine",
    "EngineState",
    "ProcessingBuffer",
    "SignalEmitter",
    "SpilloverBuffer",
    "SpilloverRecord",
    "WindowedAggregator",
]
