"""
StreamSynth — Canonical Error Structures (v1)

Este módulo define o padrão canônico de payload de erro do StreamSynth.
Todo erro reportado pelo Engine (fatal ou não) é convertido em um
`ErrorPayload` antes de ser registrado no log estruturado da run,
devendo ser:

- explícito
- serializável
- rastreável
- acionável

Nenhum stack trace cru é exposto no payload.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional

from .exceptions import (
    ConfigurationError,
    ConnectorInitError,
    DslSyntaxError,
    DuplicateConnectorError,
    ExpressionEvaluationError,
    ExpressionSyntaxError,
    ProcessorError,
    SinkError,
    SourceError,
    SpilloverError,
    StreamSynthException,
    UnknownConnectorError,
)


@dataclass(frozen=True)
class ErrorPayload:
    """
    Payload canônico de erro do StreamSynth.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    """

    type: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Fatais
CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
UNKNOWN_CONNECTOR = "UNKNOWN_CONNECTOR"
DUPLICATE_CONNECTOR = "DUPLICATE_CONNECTOR"
CONNECTOR_INIT_ERROR = "CONNECTOR_INIT_ERROR"
DSL_SYNTAX_ERROR = "DSL_SYNTAX_ERROR"
EXPRESSION_SYNTAX_ERROR = "EXPRESSION_SYNTAX_ERROR"

# Por evento
PROCESSOR_ERROR = "PROCESSOR_ERROR"
EXPRESSION_EVALUATION_ERROR = "EXPRESSION_EVALUATION_ERROR"
SINK_ERROR = "SINK_ERROR"
SOURCE_ERROR = "SOURCE_ERROR"
SPILLOVER_ERROR = "SPILLOVER_ERROR"

# Fallback
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"

# Subclasses primeiro: a primeira correspondência vence.
_CODES = (
    (UnknownConnectorError, UNKNOWN_CONNECTOR),
    (DuplicateConnectorError, DUPLICATE_CONNECTOR),
    (ConfigurationError, CONFIGURATION_ERROR),
    (ConnectorInitError, CONNECTOR_INIT_ERROR),
    (DslSyntaxError, DSL_SYNTAX_ERROR),
    (ExpressionSyntaxError, EXPRESSION_SYNTAX_ERROR),
    (ExpressionEvaluationError, EXPRESSION_EVALUATION_ERROR),
    (ProcessorError, PROCESSOR_ERROR),
    (SinkError, SINK_ERROR),
    (SourceError, SOURCE_ERROR),
    (SpilloverError, SPILLOVER_ERROR),
)


def error_code_for(exc: BaseException) -> str:
    for exc_type, code in _CODES:
        if isinstance(exc, exc_type):
            return code
    return ENGINE_EXECUTION_ERROR


def exception_to_error(exc: BaseException) -> ErrorPayload:
    """Converte exceções em ErrorPayload (serializável, acionável).

    Regras:
    - StreamSynthException: já vem com message/details/hint.
    - Outras exceções: encapsular como ENGINE_EXECUTION_ERROR sem expor stack trace.
    - A causa encadeada (__cause__) entra em details como classe + mensagem.
    """
    if isinstance(exc, StreamSynthException):
        details = dict(exc.details or {})
        cause = exc.__cause__
        if cause is not None:
            details.setdefault("cause_class", cause.__class__.__name__)
            details.setdefault("cause_message", str(cause))
        return ErrorPayload(
            type=error_code_for(exc),
            message=str(exc) or "Erro de execução",
            details=details,
            hint=exc.hint,
        )

    return ErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message=str(exc) or "Erro inesperado durante execução",
        details={"exception_class": exc.__class__.__name__},
        hint="Verifique o log da run e a definição da pipeline",
    )
