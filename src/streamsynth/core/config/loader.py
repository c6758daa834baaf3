# src/streamsynth/core/config/loader.py
"""
Leitura da configuração do Engine a partir de arquivos.

    streamsynth run pipeline.ssd --config engine.yaml --local-config engine.local.yaml

O arquivo de defaults é obrigatório quando informado; o arquivo local é
opcional e, se existir, é aplicado por `deep_merge` sobre os defaults.
O parser é escolhido pela extensão (YAML via PyYAML `safe_load`, JSON via
stdlib). Documento vazio vale `{}`.

Limites explícitos:
    - Não interpreta a seção `engine` (ver `settings`)
    - Não descreve pipelines; source/sink/stages vivem na DSL
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TextIO, Union

import yaml

from .errors import (
    ConfigParseError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .merge import deep_merge

PathLike = Union[str, Path]

_PARSERS: Dict[str, Callable[[TextIO], Any]] = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.load,
}


def load_config_file(path: PathLike) -> Dict[str, Any]:
    """Lê um único arquivo de configuração e devolve sua raiz (sempre dict).

    Raises:
        DefaultsNotFoundError: arquivo inexistente.
        UnsupportedConfigFormatError: extensão sem parser.
        ConfigParseError: conteúdo malformado.
        InvalidConfigRootTypeError: raiz não é mapping.
    """
    path = Path(path)
    if not path.is_file():
        raise DefaultsNotFoundError(f"Config file not found: {path}", path=str(path))

    parser = _PARSERS.get(path.suffix.lower())
    if parser is None:
        raise UnsupportedConfigFormatError(
            f"Unsupported config format '{path.suffix}' (expected one of {sorted(_PARSERS)})",
            path=str(path),
        )

    try:
        with path.open("r", encoding="utf-8") as f:
            data = parser(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigParseError(f"Malformed config file {path}: {e}", path=str(path)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigRootTypeError(
            f"Config root must be a mapping, got {type(data).__name__}: {path}",
            path=str(path),
        )
    return data


def load_config(*, defaults_path: PathLike, local_path: Optional[PathLike] = None) -> Dict[str, Any]:
    """Defaults obrigatórios + override local opcional (ignorado se ausente).

    Raises:
        ConfigError: qualquer erro de `load_config_file` ou conflito de
            tipos no merge (`ConfigTypeConflictError`).
    """
    config = load_config_file(defaults_path)
    if local_path is None or not Path(local_path).is_file():
        return config
    return deep_merge(config, load_config_file(local_path))
