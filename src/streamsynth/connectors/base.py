# src/streamsynth/connectors/base.py
"""
Contratos de conectores consumidos pelo Engine.

Source:
    - `await start()` começa a emitir; `await stop()` para (idempotente)
    - sinais: `data(event)` (zero ou mais), `end()` (no máximo uma vez,
      depois dele nenhum `data`), `error(exc)` (a qualquer momento,
      não terminal salvo decisão do conector)

Sink:
    - `await write(event)`; falha = exceção
    - `await close()` (idempotente)

Conectores concretos derivam de `Source`/`Sink` ou apenas satisfazem os
protocolos por duck typing (`SourceLike`/`SinkLike`).
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Protocol, runtime_checkable

from streamsynth.core.engine.signals import Handler, SignalEmitter


@runtime_checkable
class SourceLike(Protocol):
    def on(self, signal: str, handler: Handler) -> Handler:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...


@runtime_checkable
class SinkLike(Protocol):
    async def write(self, event: Any) -> None:
        ...

    async def close(self) -> None:
        ...


class Source(SignalEmitter):
    """Base para Sources que emitem a partir de uma task de background.

    Subclasses implementam `_run()`; `start()` agenda a task e `stop()`
    a cancela. `end` é emitido no máximo uma vez.
    """

    SIGNALS = frozenset({"data", "end", "error"})

    def __init__(self) -> None:
        super().__init__()
        self.running = False
        self._ended = False
        self._task: Optional["asyncio.Task[None]"] = None

    async def _run(self) -> None:
        raise NotImplementedError

    async def _guarded_run(self) -> None:
        try:
            await self._run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.emit_error(e)
        finally:
            self.running = False

    async def start(self) -> None:
        if self.running:
            return
        self.running = True
        self._task = asyncio.get_running_loop().create_task(self._guarded_run())

    async def stop(self) -> None:
        self.running = False
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def emit_data(self, event: Any) -> None:
        if self._ended:
            return
        self.emit("data", event)

    def emit_end(self) -> None:
        if self._ended:
            return
        self._ended = True
        self.emit("end")

    def emit_error(self, exc: BaseException) -> None:
        self.emit("error", exc)


class Sink:
    async def write(self, event: Any) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None
