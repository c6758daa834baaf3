# src/streamsynth/dsl/compiler.py
"""
Compilador da DSL textual do StreamSynth.

Gramática (uma diretiva por linha; linhas vazias e iniciadas por `#`
são ignoradas; espaços nas bordas são removidos):

    source <type>("<path-or-url>")
    source <type>({ <objeto JSON> })       ex.: kafka({"topic": "in"})
    sink   <type>("<path-or-url>")
    sink   <type>({ <objeto JSON> })
    filter(<expr>)
    transform(<expr>)
    bufferSize <inteiro>

A compilação é total: todas as linhas são analisadas antes de qualquer
PipelineDefinition existir. O primeiro erro aborta com DslSyntaxError
(linha 1-based + texto da linha).

Decisões:
    - Argumento string vira `{"url": arg}` para tipos http/https e
      `{"path": arg}` para os demais
    - Um segundo `source` ou `sink` é erro
    - Ausência de source/sink não é erro de compilação; `start()` falha
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from streamsynth.core.config.settings import EngineSettings
from streamsynth.core.exceptions import DslSyntaxError, ExpressionSyntaxError
from streamsynth.core.pipeline.definition import PipelineDefinition, create_pipeline

from .expressions import Expression, compile_expression

DSL_TEMPLATE = """# StreamSynth Pipeline
source file("./input.json")
filter(event.statusCode >= 400)
transform({ code: event.statusCode, url: event.url, timestamp: event.timestamp })
sink file("./output.json")
bufferSize 1000
"""

COMMANDS = ("source", "sink", "filter", "transform", "bufferSize")
URL_TYPES = ("http", "https")

_STAGE_RE = re.compile(r"^(filter|transform)\s*\((.*)\)$")
_COMMAND_RE = re.compile(r"^(\w+)\s+(.+)$")
_CONNECTOR_RE = re.compile(r"^(\w+)\s*\(\s*(.*?)\s*\)$")
_QUOTED_RE = re.compile(r"""^(?:"([^"]+)"|'([^']+)')$""")
_INTEGER_RE = re.compile(r"^\d+$")


@dataclass(frozen=True)
class _Directive:
    command: str
    line_number: int
    line: str
    value: Any


def _error(message: str, line_number: int, line: str, **details: Any) -> DslSyntaxError:
    return DslSyntaxError(
        message,
        details={"line_number": line_number, "line": line, **details},
        line_number=line_number,
        line=line,
    )


def _parse_connector(command: str, args: str, line_number: int, line: str) -> Dict[str, Any]:
    m = _CONNECTOR_RE.match(args)
    if not m:
        raise _error(f"Invalid {command} specification: {args}", line_number, line)
    connector_type, inner = m.group(1), m.group(2)

    if inner.startswith("{"):
        try:
            config = json.loads(inner)
        except json.JSONDecodeError as e:
            raise _error(
                f"Invalid {connector_type} configuration: {e.msg}", line_number, line
            ) from e
        if not isinstance(config, dict):
            raise _error(f"Invalid {connector_type} configuration: expected an object", line_number, line)
        return {"type": connector_type, "config": config}

    quoted = _QUOTED_RE.match(inner)
    if not quoted:
        raise _error(f"Invalid {command} specification: {args}", line_number, line)
    arg = quoted.group(1) if quoted.group(1) is not None else quoted.group(2)
    key = "url" if connector_type in URL_TYPES else "path"
    return {"type": connector_type, "config": {key: arg}}


def _parse_line(line: str, line_number: int) -> _Directive:
    stage = _STAGE_RE.match(line)
    if stage:
        command, body = stage.group(1), stage.group(2)
        try:
            expression = compile_expression(body)
        except ExpressionSyntaxError as e:
            raise _error(
                f"Invalid {command} expression: {e.message}",
                line_number,
                line,
                position=e.position,
            ) from e
        return _Directive(command, line_number, line, expression)

    m = _COMMAND_RE.match(line)
    if m and m.group(1) in ("filter", "transform"):
        raise _error(f"Invalid {m.group(1)} syntax, expected {m.group(1)}(<expr>)", line_number, line)
    if not m:
        raise _error(f"Invalid DSL line: {line}", line_number, line)
    command, args = m.group(1), m.group(2).strip()

    if command in ("source", "sink"):
        return _Directive(command, line_number, line, _parse_connector(command, args, line_number, line))

    if command == "bufferSize":
        if not _INTEGER_RE.match(args):
            raise _error(f"Invalid buffer size: {args}", line_number, line)
        return _Directive(command, line_number, line, int(args))

    raise _error(f"Unknown command: {command}", line_number, line, expected=list(COMMANDS))


def parse_directives(text: str) -> List[_Directive]:
    directives: List[_Directive] = []
    seen: Dict[str, int] = {}
    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        directive = _parse_line(line, line_number)
        if directive.command in ("source", "sink"):
            if directive.command in seen:
                raise _error(
                    f"Duplicate {directive.command} (first defined on line {seen[directive.command]})",
                    line_number,
                    line,
                )
            seen[directive.command] = line_number
        directives.append(directive)
    return directives


def compile_pipeline(text: str, *, settings: Optional[EngineSettings] = None) -> PipelineDefinition:
    """Compila um documento DSL em uma PipelineDefinition nova.

    Raises:
        DslSyntaxError: na primeira linha inválida; nada é construído.
    """
    directives = parse_directives(text)

    pipeline = create_pipeline(settings)
    for d in directives:
        if d.command == "source":
            pipeline.source(d.value["type"], d.value["config"])
        elif d.command == "sink":
            pipeline.sink(d.value["type"], d.value["config"])
        elif d.command == "bufferSize":
            pipeline.buffer_size(d.value)
        elif d.command == "filter":
            expression: Expression = d.value
            pipeline.filter(expression.as_predicate(), source=expression.source)
        else:
            pipeline.transform(d.value, source=d.value.source)
    return pipeline


def compile_file(path: Union[str, Path], *, settings: Optional[EngineSettings] = None) -> PipelineDefinition:
    text = Path(path).read_text(encoding="utf-8")
    return compile_pipeline(text, settings=settings)
