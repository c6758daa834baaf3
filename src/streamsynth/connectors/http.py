# src/streamsynth/connectors/http.py
"""
Source HTTP por polling.

Config:
    - url (obrigatório)
    - interval_ms: pausa entre requisições (default 1000; `interval` aceito
      como sinônimo)
    - method (default GET), headers, timeout_ms (default 30000)

Cada resposta 2xx vira UM evento `data` com o corpo JSON decodificado
(um array continua sendo um único evento). Status fora de 2xx, corpo que
não é JSON ou falha de rede viram `error` (SourceError) e o polling
continua. Este Source nunca emite `end`; a pipeline roda até `stop()`.

A sessão HTTP é do aiohttp (extra `http`) e é criada no `start()`;
`session_factory` permite injetar outra implementação com a mesma
interface (`request(...)` como async context manager e `close()`).
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Mapping, Optional

from streamsynth.core.exceptions import SourceError

from .base import Source

DEFAULT_INTERVAL_MS = 1000
DEFAULT_TIMEOUT_MS = 30000

SessionFactory = Callable[["HttpSource"], Any]


def aiohttp_session(source: "HttpSource") -> Any:
    try:
        import aiohttp
    except ImportError as e:
        raise RuntimeError(
            "HTTP source requires aiohttp (pip install 'streamsynth[http]')"
        ) from e
    return aiohttp.ClientSession(
        headers=source.headers,
        timeout=aiohttp.ClientTimeout(total=source.timeout_ms / 1000.0),
    )


class HttpSource(Source):
    def __init__(
        self,
        url: str,
        *,
        interval_ms: float = DEFAULT_INTERVAL_MS,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: float = DEFAULT_TIMEOUT_MS,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        super().__init__()
        self.url = url
        self.interval_ms = interval_ms
        self.method = method.upper()
        self.headers = dict(headers or {})
        self.timeout_ms = timeout_ms
        self.session_factory: SessionFactory = session_factory or aiohttp_session
        self.session: Any = None

    async def start(self) -> None:
        if self.running:
            return
        if self.session is None:
            self.session = self.session_factory(self)
        await super().start()

    async def stop(self) -> None:
        await super().stop()
        session, self.session = self.session, None
        if session is not None:
            await session.close()

    async def poll_once(self) -> Any:
        """Uma requisição; devolve o corpo JSON ou levanta SourceError."""
        try:
            async with self.session.request(self.method, self.url) as response:
                if not 200 <= response.status < 300:
                    raise SourceError(
                        f"HTTP error: {response.status}",
                        details={"url": self.url, "status": response.status},
                        connector_type="http",
                    )
                return await response.json()
        except SourceError:
            raise
        except Exception as e:
            raise SourceError(
                f"HTTP request failed: {e}",
                details={"url": self.url, "exception_class": e.__class__.__name__},
                connector_type="http",
            ) from e

    async def _run(self) -> None:
        while self.running:
            try:
                body = await self.poll_once()
            except SourceError as e:
                self.emit_error(e)
            else:
                self.emit_data(body)
            await asyncio.sleep(self.interval_ms / 1000.0)


def http_source(config: Mapping[str, Any]) -> HttpSource:
    url = config.get("url")
    if not isinstance(url, str) or not url.strip():
        raise ValueError("HTTP source requires a url")

    interval_ms = config.get("interval_ms", config.get("interval", DEFAULT_INTERVAL_MS))
    if isinstance(interval_ms, bool) or not isinstance(interval_ms, (int, float)) or interval_ms < 0:
        raise ValueError("HTTP source 'interval_ms' must be a number >= 0")

    headers = config.get("headers") or {}
    if not isinstance(headers, Mapping):
        raise ValueError("HTTP source 'headers' must be an object")

    return HttpSource(
        url,
        interval_ms=interval_ms,
        method=str(config.get("method", "GET")),
        headers={str(k): str(v) for k, v in headers.items()},
        timeout_ms=config.get("timeout_ms", DEFAULT_TIMEOUT_MS),
    )
