"""
StreamSynth — Canonical Exceptions (v1)

Este módulo define as exceções tipadas do StreamSynth.

Objetivo:
- Permitir que Engine, DSL e conectores levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para ErrorPayload
- Separar falhas fatais (configuração, compilação, init de conector)
  de falhas por evento (processor, sink, spillover)

Regras:
- Exceções carregam dados estruturados (serializáveis) em `details`.
- Falhas fatais abortam `start()`/compilação; falhas por evento são
  reportadas via sinal `error` e nunca derrubam o Engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(eq=False)
class StreamSynthException(Exception):
    """Base class para exceções internas do StreamSynth.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Mensagem deve ser curta e humana
    - Não é frozen: o runtime (asyncio, contextlib) precisa anexar traceback
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Fatais (abortam start/compilação)
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class ConfigurationError(StreamSynthException):
    """Pipeline ou Engine configurado de forma inválida ou incompleta."""


@dataclass(eq=False)
class DuplicateConnectorError(ConfigurationError):
    """Nome de conector já registrado para o mesmo papel (source/sink)."""

    connector_type: Optional[str] = None
    role: Optional[str] = None


@dataclass(eq=False)
class UnknownConnectorError(ConfigurationError):
    """Tipo de conector (source/sink) não registrado."""

    connector_type: Optional[str] = None
    role: Optional[str] = None


@dataclass(eq=False)
class ConnectorInitError(StreamSynthException):
    """Construção de um conector falhou (causa encadeada em __cause__)."""

    connector_type: Optional[str] = None
    role: Optional[str] = None


@dataclass(eq=False)
class DslSyntaxError(StreamSynthException):
    """Linha inválida no documento DSL; nenhuma pipeline parcial é produzida."""

    line_number: Optional[int] = None
    line: Optional[str] = None

    def __str__(self) -> str:
        if self.line_number is None:
            return self.message
        return f"{self.message} (line {self.line_number}: {self.line!r})"


# ---------------------------------------------------------------------------
# Por evento (não fatais, reportadas via sinal `error`)
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class SourceError(StreamSynthException):
    """Um Source não conseguiu produzir um evento (HTTP não-2xx, leitura falhou)."""

    connector_type: Optional[str] = None


@dataclass(eq=False)
class ProcessorError(StreamSynthException):
    """Um filter/transform/aggregate levantou exceção durante um evento."""

    stage_index: Optional[int] = None
    stage_kind: Optional[str] = None


@dataclass(eq=False)
class SinkError(StreamSynthException):
    """Escrita ou fechamento do Sink falhou."""


@dataclass(eq=False)
class SpilloverError(StreamSynthException):
    """Falha de disco ao escrever, ler ou remover um arquivo de spillover."""

    path: Optional[str] = None


# ---------------------------------------------------------------------------
# Linguagem de expressões (DSL)
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class ExpressionSyntaxError(StreamSynthException):
    """Expressão malformada; `position` é o offset (0-based) no texto."""

    position: Optional[int] = None


@dataclass(eq=False)
class ExpressionEvaluationError(StreamSynthException):
    """Erro de tipo, divisão por zero ou acesso inválido ao avaliar uma expressão."""
