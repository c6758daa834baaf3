# src/streamsynth/dsl/__init__.py
"""
DSL textual do StreamSynth.

    - expressions → linguagem de expressões escopada (sem eval do host)
    - compiler    → documento DSL → PipelineDefinition
"""

from .compiler import DSL_TEMPLATE, compile_file, compile_pipeline
from .expressions import Expression, compile_expression

__all__ = [
    "DSL_TEMPLATE",
    "Expression",
    "compile_expression",
    "compile_file",
    "compile_pipeline",
]
