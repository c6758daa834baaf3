# src/streamsynth/connectors/registry.py
"""
Registro de conectores do StreamSynth.

Este módulo define o `ConnectorRegistry`, responsável por associar nomes
de tipo (o `type` de um ConnectorDescriptor) a factories de Source e
Sink, e por instanciar conectores no `start()` do Engine.

O registry atua como a fronteira entre descriptors (dados) e conectores
(objetos vivos), garantindo que:
    - tipos desconhecidos falhem com `UnknownConnectorError`
    - qualquer falha de construção seja encapsulada em `ConnectorInitError`
      com a causa original encadeada
    - nomes não sejam registrados duas vezes

Decisões arquiteturais:
    - Factories recebem apenas o `config` do descriptor
    - Sources e Sinks vivem em tabelas separadas (o mesmo nome pode
      existir nas duas, ex.: `file`, `memory`)
    - `default_registry()` devolve um registry novo já populado com os
      conectores embutidos; não existe estado global mutável

Invariantes:
    - Cada nome aparece no máximo uma vez por tabela
    - Um conector só é criado a partir de um nome registrado

Limites explícitos:
    - Não inicia nem para conectores
    - Não valida o conteúdo do `config` (responsabilidade da factory)
    - http/https e kafka são registrados sempre; o cliente (aiohttp,
      aiokafka) só é importado quando o conector é criado ou iniciado

Este módulo existe para manter conectores plugáveis e o Engine
independente de implementações concretas de I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping

from streamsynth.core.exceptions import (
    ConfigurationError,
    ConnectorInitError,
    DuplicateConnectorError,
    UnknownConnectorError,
)
from streamsynth.core.pipeline.types import ConnectorDescriptor

from .console import console_sink
from .file import file_sink, file_source
from .http import http_source
from .kafka import kafka_sink, kafka_source
from .memory import memory_sink, memory_source

ConnectorFactory = Callable[[Mapping[str, Any]], Any]

SOURCE = "source"
SINK = "sink"


@dataclass
class ConnectorRegistry:
    _sources: Dict[str, ConnectorFactory] = field(default_factory=dict, init=False, repr=False)
    _sinks: Dict[str, ConnectorFactory] = field(default_factory=dict, init=False, repr=False)

    def _table(self, role: str) -> Dict[str, ConnectorFactory]:
        return self._sources if role == SOURCE else self._sinks

    def _register(self, role: str, name: str, factory: ConnectorFactory) -> None:
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(
                "connector name must be a non-empty string",
                details={"role": role, "name": name},
            )
        table = self._table(role)
        if name in table:
            raise DuplicateConnectorError(
                f"Duplicate {role} connector: {name}",
                details={"role": role, "type": name},
                hint="Use a different name or a fresh registry",
                connector_type=name,
                role=role,
            )
        table[name] = factory

    def register_source(self, name: str, factory: ConnectorFactory) -> None:
        self._register(SOURCE, name, factory)

    def register_sink(self, name: str, factory: ConnectorFactory) -> None:
        self._register(SINK, name, factory)

    def sources(self) -> List[str]:
        return sorted(self._sources)

    def sinks(self) -> List[str]:
        return sorted(self._sinks)

    def _create(self, role: str, descriptor: ConnectorDescriptor) -> Any:
        table = self._table(role)
        factory = table.get(descriptor.type)
        if factory is None:
            raise UnknownConnectorError(
                f"Unknown {role} type: {descriptor.type}",
                details={"type": descriptor.type, "available": sorted(table)},
                hint=f"Register a {role} factory for '{descriptor.type}' or use one of {sorted(table)}",
                connector_type=descriptor.type,
                role=role,
            )
        try:
            return factory(dict(descriptor.config))
        except Exception as e:
            raise ConnectorInitError(
                f"Failed to initialize {role}: {e}",
                details={"type": descriptor.type, "exception_class": e.__class__.__name__},
                connector_type=descriptor.type,
                role=role,
            ) from e

    def create_source(self, descriptor: ConnectorDescriptor) -> Any:
        return self._create(SOURCE, descriptor)

    def create_sink(self, descriptor: ConnectorDescriptor) -> Any:
        return self._create(SINK, descriptor)


def default_registry() -> ConnectorRegistry:
    registry = ConnectorRegistry()
    registry.register_source("memory", memory_source)
    registry.register_source("file", file_source)
    registry.register_source("http", http_source)
    registry.register_source("https", http_source)
    registry.register_source("kafka", kafka_source)
    registry.register_sink("memory", memory_sink)
    registry.register_sink("file", file_sink)
    registry.register_sink("console", console_sink)
    registry.register_sink("kafka", kafka_sink)
    return registry
