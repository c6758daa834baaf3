# src/streamsynth/cli/__init__.py
"""Linha de comando `streamsynth` (run | create)."""
