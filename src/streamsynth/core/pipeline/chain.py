# src/streamsynth/core/pipeline/chain.py
"""
Execução de um evento através da chain ordenada de Stages.

Um único valor de trabalho (`value`, inicialmente o evento recebido) é
encadeado da esquerda para a direita:

    1. Filter: predicado falso → valor ausente, evento marcado como
       filtrado e a chain para.
    2. Transform: `value = mapper(value)`.
    3. Aggregate: o valor entra no buffer compartilhado; se a janela
       fechou, `value = reducer(snapshot)`; caso contrário o valor fica
       retido e a chain para.

Política "continue degradado":
    se um Stage levanta exceção, ela é encapsulada em `ProcessorError`
    e a chain segue para o PRÓXIMO Stage com o valor anterior ao Stage
    que falhou. Não há retry nem rollback.

Limites explícitos:
    - Não escreve no Sink e não emite sinais (responsabilidade do Engine)
    - Não decide fechamento de janela (WindowedAggregator)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator, List, Sequence, Tuple

from streamsynth.core.exceptions import ConfigurationError, ProcessorError

from .types import (
    ABSENT,
    AggregateStage,
    FilterStage,
    Stage,
    TransformStage,
    is_absent,
)

if TYPE_CHECKING:
    from streamsynth.core.engine.aggregator import WindowedAggregator


@dataclass
class ChainOutcome:
    """Resultado de um evento: valor final, se foi filtrado e falhas de Stage."""
    value: Any = ABSENT
    filtered: bool = False
    errors: List[ProcessorError] = field(default_factory=list)

    @property
    def has_value(self) -> bool:
        return not is_absent(self.value)


def stage_error(index: int, stage: Stage, exc: Exception) -> ProcessorError:
    err = ProcessorError(
        f"Processor error in {stage.kind.value} stage #{index}: {exc}",
        details={
            "stage_index": index,
            "stage_kind": stage.kind.value,
            "stage_source": stage.source,
            "exception_class": exc.__class__.__name__,
        },
        stage_index=index,
        stage_kind=stage.kind.value,
    )
    err.__cause__ = exc
    return err


class StageChain:
    def __init__(self, stages: Sequence[Stage]) -> None:
        for stage in stages:
            if not isinstance(stage, (FilterStage, TransformStage, AggregateStage)):
                raise ConfigurationError(
                    f"Unsupported stage type: {type(stage).__name__}"
                )
        self._stages: Tuple[Stage, ...] = tuple(stages)

    def __len__(self) -> int:
        return len(self._stages)

    def __iter__(self) -> Iterator[Stage]:
        return iter(self._stages)

    @property
    def stages(self) -> Tuple[Stage, ...]:
        return self._stages

    def aggregate_stages(self) -> List[Tuple[int, AggregateStage]]:
        return [(i, s) for i, s in enumerate(self._stages) if isinstance(s, AggregateStage)]

    def run(self, event: Any, aggregator: "WindowedAggregator") -> ChainOutcome:
        outcome = ChainOutcome(value=event)

        for index, stage in enumerate(self._stages):
            if is_absent(outcome.value):
                break

            try:
                if isinstance(stage, FilterStage):
                    if not stage.predicate(outcome.value):
                        outcome.value = ABSENT
                        outcome.filtered = True
                        break
                elif isinstance(stage, TransformStage):
                    outcome.value = stage.mapper(outcome.value)
                else:
                    outcome.value = aggregator.accumulate(stage, outcome.value)
            except Exception as e:
                outcome.errors.append(stage_error(index, stage, e))

        return outcome
