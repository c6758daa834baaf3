# src/streamsynth/core/config/__init__.py
"""
Configuração do Engine: arquivos (YAML/JSON), deep-merge, hash e settings.

A configuração só ajusta o runtime (diretório de spillover, campo de
timestamp, capacidade padrão). A pipeline em si vem da DSL ou do builder.
"""

from .errors import (
    ConfigError,
    ConfigParseError,
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .hashing import canonical_json, compute_config_hash
from .loader import load_config, load_config_file
from .merge import deep_merge
from .settings import DEFAULT_ENGINE_CONFIG, EngineSettings, resolve_engine_settings

__all__ = [
    "ConfigError",
    "ConfigParseError",
    "ConfigTypeConflictError",
    "DefaultsNotFoundError",
    "InvalidConfigRootTypeError",
    "UnsupportedConfigFormatError",
    "canonical_json",
    "compute_config_hash",
    "load_config",
    "load_config_file",
    "deep_merge",
    "DEFAULT_ENGINE_CONFIG",
    "EngineSettings",
    "resolve_engine_settings",
]
