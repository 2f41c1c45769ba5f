"""Immutable snapshot of an evolution run."""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from dataclasses import dataclass, field

from evocore.core.exceptions import ConfigurationError
from evocore.core.individual import Individual
from evocore.core.ranking import FitnessMaxRanker, Ranker


@dataclass(frozen=True)
class EvolutionState:
    """Generation number, population and ranker of one point in an evolution run.

    The population is stored as a tuple; every step of the engine produces a new
    state through :meth:`copy` instead of mutating an existing one.
    """

    generation: int = 0
    population: tuple[Individual, ...] = ()
    ranker: Ranker = field(default_factory=FitnessMaxRanker)

    def __post_init__(self) -> None:
        if self.generation < 0:
            raise ConfigurationError(f"generation ({self.generation}) must not be negative")
        object.__setattr__(self, "population", tuple(self.population))

    @classmethod
    def empty(cls, ranker: Ranker | None = None) -> EvolutionState:
        return cls(generation=0, population=(), ranker=ranker if ranker is not None else FitnessMaxRanker())

    def copy(self, **changes) -> EvolutionState:
        """Return a new state with the given fields replaced."""
        return dataclasses.replace(self, **changes)

    def with_population(self, population: Sequence[Individual]) -> EvolutionState:
        return self.copy(population=tuple(population))

    def is_empty(self) -> bool:
        return len(self.population) == 0

    @property
    def size(self) -> int:
        return len(self.population)

    def best(self) -> Individual:
        return self.ranker.best([ind for ind in self.population if ind.is_evaluated()])
