# tests/conftest.py
"""
Fixtures compartilhados para testes do StreamSynth.

Este módulo define fixtures reutilizáveis que fornecem:
- configurações mínimas e determinísticas (YAML como string)
- isolamento do diretório de spillover por teste
- eventos de exemplo
- um gravador de sinais e um executor "start → end → stop" de pipelines

Decisões arquiteturais:
    - Código assíncrono é dirigido com `asyncio.run` dentro de testes comuns
    - Imports do projeto são feitos de forma lazy dentro dos fixtures,
      para que falhas de import apareçam no `_require_imports()` de cada
      módulo de teste e não na coleta
    - O spillover sempre aponta para `tmp_path`, nunca para o cwd real

Invariantes:
    - Nenhum fixture deixa arquivos fora de `tmp_path`
    - Dados retornados são determinísticos e isolados

Limites explícitos:
    - Não substituir testes de integração
    - Não conter lógica condicional complexa
"""

import asyncio
from typing import Any, Dict, List, Tuple

import pytest


# =====================================================
# Config
# =====================================================

@pytest.fixture
def engine_defaults_yaml() -> str:
    """
    YAML de defaults semelhante a um `streamsynth.defaults.yaml` real.

    Usado por:
        - Testes do loader de config
        - Testes de settings do Engine
        - Testes da CLI com `--config`
    """
    return """\
engine:
  spillover_dir: .streamsynth-spillover
  timestamp_field: timestamp
  default_buffer_capacity: 1000
connectors:
  file:
    encoding: utf-8
"""


@pytest.fixture
def engine_local_yaml() -> str:
    """YAML de overrides locais (apenas o que muda)."""
    return """\
engine:
  timestamp_field: ts
  default_buffer_capacity: 50
"""


@pytest.fixture
def spill_dir(tmp_path):
    """Diretório de spillover isolado por teste (ainda não criado)."""
    return tmp_path / "spill"


@pytest.fixture
def engine_config(spill_dir) -> Dict[str, Any]:
    return {"engine": {"spillover_dir": str(spill_dir)}}


# =====================================================
# Eventos
# =====================================================

@pytest.fixture
def numbered_events() -> List[Dict[str, int]]:
    return [{"v": 10}, {"v": 20}, {"v": 30}, {"v": 40}, {"v": 50}]


@pytest.fixture
def http_log_events() -> List[Dict[str, Any]]:
    return [
        {"statusCode": 200, "url": "/", "timestamp": 1000},
        {"statusCode": 404, "url": "/missing", "timestamp": 1001},
        {"statusCode": 500, "url": "/boom", "timestamp": 1002},
        {"statusCode": 301, "url": "/moved", "timestamp": 1003},
    ]


# =====================================================
# Sinais
# =====================================================

class SignalRecorder:
    """Assina todos os sinais de um emissor e guarda (nome, args) em ordem."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, tuple]] = []

    def attach(self, emitter) -> "SignalRecorder":
        for name in sorted(emitter.SIGNALS):
            emitter.on(name, lambda *args, _name=name: self.calls.append((_name, args)))
        return self

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def args_of(self, name: str) -> List[tuple]:
        return [args for n, args in self.calls if n == name]

    def count(self, name: str) -> int:
        return len(self.args_of(name))


@pytest.fixture
def recorder() -> SignalRecorder:
    return SignalRecorder()


# =====================================================
# Execução
# =====================================================

@pytest.fixture
def run_to_end(engine_config):
    """
    Retorna uma função que executa uma pipeline até o `end` do Source.

    Sequência: start → wait_until_ended → stop. Devolve o Engine e os
    eventos recebidos pelo Sink (quando o Sink expõe `events`).
    """

    def _run(pipeline, *, config=None, **engine_kwargs):
        async def _main():
            engine = await pipeline.start(config=config or engine_config, **engine_kwargs)
            await asyncio.wait_for(engine.wait_until_ended(), timeout=5)
            sink = engine.sink
            await pipeline.stop()
            return engine, list(getattr(sink, "events", []))

        return asyncio.run(_main())

    return _run
