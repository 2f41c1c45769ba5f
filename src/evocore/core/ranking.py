"""
evocore.core.ranking
====================

Rankers define what "better" means for a population.

``compare(a, b)`` returns ``1`` when ``a`` is better than ``b``, ``-1`` when it
is worse and ``0`` on ties. Proportionate selectors assume that larger values
are better and therefore read fitness through :meth:`Ranker.fitness_transform`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from functools import cmp_to_key

import numpy as np

from evocore.core.exceptions import InvariantViolationError
from evocore.core.individual import Individual, Population


class Ranker(ABC):
    """Abstract total order over evaluated individuals."""

    @abstractmethod
    def _compare_fitness(self, first: float, second: float) -> int:
        pass

    def compare(self, first: Individual, second: Individual) -> int:
        for individual in (first, second):
            if not individual.is_evaluated():
                raise InvariantViolationError(f"Cannot rank an unevaluated individual: {individual!r}")
        return self._compare_fitness(first.fitness, second.fitness)

    def __call__(self, first: Individual, second: Individual) -> int:
        return self.compare(first, second)

    @property
    def sort_key(self):
        """Key function ordering individuals from worst to best."""
        return cmp_to_key(self.compare)

    @staticmethod
    def _check_evaluated(population: Sequence[Individual]) -> None:
        for individual in population:
            if not individual.is_evaluated():
                raise InvariantViolationError(f"Cannot rank an unevaluated individual: {individual!r}")

    def sort(self, population: Sequence[Individual]) -> Population:
        """Return a new population sorted best-first (stable on ties)."""
        self._check_evaluated(population)
        return Population(sorted(population, key=self.sort_key, reverse=True))

    def best(self, population: Sequence[Individual]) -> Individual:
        if len(population) == 0:
            raise InvariantViolationError("Cannot pick the best individual of an empty population")
        self._check_evaluated(population)
        return max(population, key=self.sort_key)

    def fitness_transform(self, fitness: Sequence[float]) -> np.ndarray:
        """Map fitness values to weights where larger means better."""
        return np.asarray(fitness, dtype=float)

    def __eq__(self, other) -> bool:
        return type(self) is type(other)

    def __hash__(self):
        return hash(type(self))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class FitnessMaxRanker(Ranker):
    """Higher fitness is better."""

    def _compare_fitness(self, first: float, second: float) -> int:
        return (first > second) - (first < second)


class FitnessMinRanker(Ranker):
    """Lower fitness is better."""

    def _compare_fitness(self, first: float, second: float) -> int:
        return (first < second) - (first > second)

    def fitness_transform(self, fitness: Sequence[float]) -> np.ndarray:
        values = np.asarray(fitness, dtype=float)
        return values.sum() - values
