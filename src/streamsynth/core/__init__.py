# src/streamsynth/core/__init__.py
"""
Core do StreamSynth.

Reúne as responsabilidades essenciais do engine de streaming:

    - config    → carregamento, merge, hashing e settings do Engine
    - pipeline  → stages, chain, contexto de run e builder
    - engine    → runtime contínuo, janelas e spillover
    - errors / exceptions → taxonomia tipada e payloads serializáveis

Limites explícitos:
    - Não contém conectores concretos (ver streamsynth.connectors)
    - Não depende de CLI
"""
