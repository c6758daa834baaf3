# src/streamsynth/core/config/hashing.py
"""
Hash da configuração efetiva de um Engine.

`RunContext.create()` grava o resultado em `config_hash`, o que permite
comparar duas runs pelo log sem guardar a configuração inteira.

O hash é SHA-256 sobre o JSON canônico (chaves ordenadas, separadores
compactos, UTF-8), portanto independe da ordem das chaves.
"""

import hashlib
import json
from typing import Any, Mapping


def canonical_json(config: Mapping[str, Any]) -> str:
    """Serialização estável usada como entrada do hash."""
    return json.dumps(
        config,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def compute_config_hash(config: Mapping[str, Any]) -> str:
    """Hex SHA-256 (64 caracteres) de `config`.

    Raises:
        TypeError: `config` não é um mapping.
    """
    if not isinstance(config, Mapping):
        raise TypeError(f"config hash expects a mapping, got {type(config).__name__}")
    return hashlib.sha256(canonical_json(config).encode("utf-8")).hexdigest()
