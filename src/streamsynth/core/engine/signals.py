# src/streamsynth/core/engine/signals.py
"""
Fan-out de sinais (observer) usado por Sources, Engine e Pipeline.

Um emissor declara o conjunto fechado de sinais que emite (`SIGNALS`);
assinaturas em nomes desconhecidos são rejeitadas no momento do `on`,
não silenciosamente ignoradas.

Handlers são chamados de forma síncrona, na ordem de assinatura. Exceções
levantadas por um handler propagam para quem emitiu o sinal.
"""

from __future__ import annotations

from typing import Any, Callable, ClassVar, Dict, FrozenSet, List

Handler = Callable[..., Any]


class SignalEmitter:
    SIGNALS: ClassVar[FrozenSet[str]] = frozenset()

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = {}

    def _check(self, signal: str) -> None:
        if signal not in self.SIGNALS:
            raise ValueError(
                f"Unknown signal {signal!r} for {type(self).__name__}; "
                f"expected one of {sorted(self.SIGNALS)}"
            )

    def on(self, signal: str, handler: Handler) -> Handler:
        self._check(signal)
        self._handlers.setdefault(signal, []).append(handler)
        return handler

    def off(self, signal: str, handler: Handler) -> None:
        self._check(signal)
        handlers = self._handlers.get(signal, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, signal: str) -> int:
        return len(self._handlers.get(signal, []))

    def emit(self, signal: str, *args: Any) -> None:
        self._check(signal)
        for handler in list(self._handlers.get(signal, [])):
            handler(*args)
