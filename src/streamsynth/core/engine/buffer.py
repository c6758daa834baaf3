# src/streamsynth/core/engine/buffer.py
"""
Buffer de processamento compartilhado.

Uma única fila FIFO, de posse exclusiva do Engine, com dois papéis
simultâneos:
    (a) acumulador de TODAS as janelas de Stages aggregate
    (b) quantidade medida contra `buffer_capacity` para decidir spillover

O WindowedAggregator e o SpilloverBuffer recebem a mesma instância por
referência; nenhum deles faz cópia própria.

Invariantes:
    - A ordem do buffer é a ordem de inserção
    - Elementos só saem por fechamento de janela (`clear`, depois que o
      reducer retornou com sucesso sobre `snapshot`) ou por despejo da
      frente para spillover (`evict_front`)
    - `prepend` (recarga de spillover) recoloca eventos antes dos atuais
"""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Iterable, Iterator, List


class ProcessingBuffer:
    def __init__(self) -> None:
        self._items: Deque[Any] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._items))

    def __bool__(self) -> bool:
        return bool(self._items)

    def push(self, value: Any) -> None:
        self._items.append(value)

    def front(self) -> Any:
        if not self._items:
            raise IndexError("front() on empty ProcessingBuffer")
        return self._items[0]

    def snapshot(self) -> List[Any]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def peek_front(self, count: int) -> List[Any]:
        count = max(0, min(count, len(self._items)))
        return [self._items[i] for i in range(count)]

    def evict_front(self, count: int) -> List[Any]:
        count = max(0, min(count, len(self._items)))
        return [self._items.popleft() for _ in range(count)]

    def prepend(self, values: Iterable[Any]) -> None:
        self._items.extendleft(reversed(list(values)))
