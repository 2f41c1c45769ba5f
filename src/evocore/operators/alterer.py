"""
evocore.operators.alterer
=========================

Common interface of mutation and crossover operators.

    alter(population, generation, rng=None) -> AlterationResult

The result carries the altered population (same size as the input) and the
number of genes that were touched, a diagnostic tally that never drives control
flow. Altered individuals are always new, unevaluated instances.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import NamedTuple

import numpy as np

from evocore.core.individual import Individual, Population
from evocore.operators import resolve_rng


class AlterationResult(NamedTuple):
    population: Population
    alterations: int


class Alterer(ABC):
    """Abstract base class for alterers."""

    @abstractmethod
    def alter(
        self, population: Sequence[Individual], generation: int, rng: np.random.Generator | None = None
    ) -> AlterationResult:
        """Return the altered population and the number of altered genes."""

    def __call__(self, population, generation, rng=None) -> AlterationResult:
        return self.alter(population, generation, rng)

    def then(self, other: Alterer) -> AltererChain:
        return AltererChain([self, other])


class AltererChain(Alterer):
    """Sequential composition: each alterer receives the previous one's output."""

    def __init__(self, alterers: Iterable[Alterer]):
        self.alterers: list[Alterer] = []
        for alterer in alterers:
            self.alterers.extend(alterer.alterers if isinstance(alterer, AltererChain) else [alterer])

    def alter(self, population, generation, rng=None) -> AlterationResult:
        _rng = resolve_rng(rng)
        current = Population(list(population))
        total = 0
        for alterer in self.alterers:
            current, count = alterer.alter(current, generation, _rng)
            total += count
        return AlterationResult(current, total)

    def __len__(self) -> int:
        return len(self.alterers)

    def __repr__(self) -> str:
        return f"AltererChain({self.alterers!r})"
