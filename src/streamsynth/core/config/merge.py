# src/streamsynth/core/config/merge.py
"""
Deep-merge de configuração.

Usado em dois lugares: defaults + override local (`loader`) e defaults
embutidos do Engine + configuração do usuário (`settings`).

Regras, por chave do override:
    - chave nova ou valor base null → valor do override
    - mapping + mapping             → merge recursivo
    - lista no override             → substitui a lista inteira
    - null no override              → limpa a chave (fica null)
    - int e float se misturam; bool não é número
    - qualquer outra diferença de tipo → ConfigTypeConflictError

Nenhum input é mutado; o resultado é uma cópia profunda.
"""

from copy import deepcopy
from typing import Any, Dict, Mapping

from .errors import ConfigTypeConflictError


def _kind(value: Any) -> type:
    if isinstance(value, bool):
        return bool
    if isinstance(value, (int, float)):
        return float
    if isinstance(value, Mapping):
        return dict
    return type(value)


def _merge_into(result: Dict[str, Any], override: Mapping[str, Any], prefix: str) -> None:
    for key, value in override.items():
        dotted = f"{prefix}{key}"
        current = result.get(key)

        if current is None or value is None or isinstance(value, list):
            result[key] = deepcopy(value)
        elif isinstance(current, Mapping) and isinstance(value, Mapping):
            nested = dict(current)
            _merge_into(nested, value, f"{dotted}.")
            result[key] = nested
        elif _kind(current) is not _kind(value):
            raise ConfigTypeConflictError(
                f"Type conflict at '{dotted}': "
                f"{type(current).__name__} vs {type(value).__name__}",
                key=dotted,
            )
        else:
            result[key] = deepcopy(value)


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Novo dict com `override` aplicado sobre `base`.

    Raises:
        ConfigTypeConflictError: raiz não-mapping ou tipos incompatíveis
            na mesma chave (`err.key` aponta a chave).
    """
    if not isinstance(base, Mapping) or not isinstance(override, Mapping):
        raise ConfigTypeConflictError(
            f"deep_merge expects mappings, got {type(base).__name__} and {type(override).__name__}"
        )
    result = deepcopy(dict(base))
    _merge_into(result, override, "")
    return result
