"""
evocore.operators.selection
===========================

Selection strategies used for both parent and survivor selection.

All selectors implement the same interface:

    select(population, count, ranker, rng=None) -> Population

Where:
    - population: sequence of evaluated individuals
    - count: number of individuals to return (drawn with replacement)
    - ranker: defines which individuals are better
"""

from collections.abc import Sequence

import numpy as np

from evocore.core.exceptions import Constraints, SelectionError
from evocore.core.individual import Individual, Population
from evocore.core.ranking import Ranker
from evocore.operators import resolve_rng


class Selector:
    """Base class for all selection strategies."""

    def select(
        self,
        population: Sequence[Individual],
        count: int,
        ranker: Ranker,
        rng: np.random.Generator | None = None,
    ) -> Population:
        self._validate(population, count)
        if count == 0:
            return Population([])
        selected = self._select(population, count, ranker, resolve_rng(rng))
        if len(selected) != count:
            raise SelectionError(f"Expected output size ({count}) must be equal to actual output size ({len(selected)})")
        return selected

    def __call__(self, population, count, ranker, rng=None) -> Population:
        return self.select(population, count, ranker, rng)

    def _select(
        self, population: Sequence[Individual], count: int, ranker: Ranker, rng: np.random.Generator
    ) -> Population:  # pragma: no cover (interface)
        raise NotImplementedError("Selector must implement _select().")

    @staticmethod
    def _validate(population: Sequence[Individual], count: int) -> None:
        if count < 0:
            raise SelectionError(f"Selection count ({count}) must not be negative")
        if count > 0 and len(population) == 0:
            raise SelectionError(f"Cannot select {count} individuals from an empty population")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class TournamentSelector(Selector):
    """
    Tournament Selection.
    Samples ``sample_size`` individuals uniformly with replacement and keeps the best one,
    once per requested individual. Larger samples mean stronger selection pressure.
    """

    DEFAULT_SIZE = 3

    def __init__(self, sample_size: int = DEFAULT_SIZE):
        checks = Constraints()
        checks.require(sample_size >= 1, f"The tournament size ({sample_size}) must be positive")
        checks.check()
        self.sample_size = sample_size

    def _select(self, population, count, ranker, rng) -> Population:
        contender_indices = rng.integers(0, len(population), size=(count, self.sample_size))
        selected: list[Individual] = []
        for row in contender_indices:
            contenders = [population[i] for i in row]
            selected.append(ranker.best(contenders))
        return Population(selected)

    def __eq__(self, other) -> bool:
        return isinstance(other, TournamentSelector) and self.sample_size == other.sample_size

    def __hash__(self):
        return hash((TournamentSelector, self.sample_size))

    def __repr__(self) -> str:
        return f"TournamentSelector(sample_size={self.sample_size})"


class RouletteWheelSelector(Selector):
    """
    Roulette Wheel (Fitness-Proportionate) Selection.
    Each individual's probability of being selected is proportional to its
    ranker-transformed fitness. Negative weights or a zero total weight are rejected.
    """

    def _select(self, population, count, ranker, rng) -> Population:
        fitness = np.array([ind.fitness for ind in population], dtype=float)
        if np.isnan(fitness).any():
            raise SelectionError("Roulette wheel selection requires every individual to be evaluated")
        weights = ranker.fitness_transform(fitness)
        if (weights < 0).any():
            raise SelectionError(f"Roulette wheel weights must not be negative, got minimum {weights.min()}")
        cumulative = np.cumsum(weights)
        total = float(cumulative[-1])
        if total <= 0.0:
            raise SelectionError("Roulette wheel weights sum to zero; cannot form a probability distribution")
        draws = rng.random(count) * total
        indices = np.searchsorted(cumulative, draws, side="right")
        indices = np.minimum(indices, len(population) - 1)
        return Population([population[i] for i in indices])


class RandomSelector(Selector):
    """
    Random Selection.
    Baseline uniform selection (no dependence on fitness).
    """

    def _select(self, population, count, ranker, rng) -> Population:
        chosen_indices = rng.integers(0, len(population), size=count)
        return Population([population[i] for i in chosen_indices])
