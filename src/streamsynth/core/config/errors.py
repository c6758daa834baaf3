# src/streamsynth/core/config/errors.py
"""
Erros estruturais da configuração do Engine.

Cobrem apenas a FORMA da configuração: arquivo ausente, extensão
desconhecida, conteúdo que não parseia, raiz que não é mapping e
conflito de tipos no deep-merge. Valores semanticamente inválidos da
seção `engine` (capacidade negativa, campo de timestamp vazio) são
`ConfigurationError` do core, levantados por `settings`.

Cada erro guarda o contexto que o originou (`path` do arquivo e/ou
`key` pontilhada do merge) para a CLI e para o run log.
"""

from typing import Optional


class ConfigError(Exception):
    """Raiz da família; a CLI captura apenas esta classe."""

    def __init__(self, message: str, *, path: Optional[str] = None, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.key = key


class DefaultsNotFoundError(ConfigError):
    """O arquivo de defaults informado não existe (nunca é inferido)."""


class UnsupportedConfigFormatError(ConfigError):
    """Extensão fora de `.yaml`, `.yml` e `.json`."""


class ConfigParseError(ConfigError):
    """YAML/JSON malformado; a exceção do parser fica em `__cause__`."""


class InvalidConfigRootTypeError(ConfigError):
    """A raiz do documento não é um mapping (lista ou escalar)."""


class ConfigTypeConflictError(ConfigError):
    """
    Mesma chave com tipos incompatíveis entre base e override, ex.:

        base:     {"engine": {"spillover_dir": ".spill"}}
        override: {"engine": "fast"}

    `key` traz o caminho pontilhado do conflito (`engine`).
    """
