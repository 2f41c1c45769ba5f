"""Core individual abstraction and population factory utilities.

The :class:`Individual` couples a representation with its fitness. Fitness is
``NaN`` until the individual is evaluated and never changes afterwards; any
"change" produces a new :class:`Individual`.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from typing import Any, NewType

import numpy as np

from evocore.core.representation import Representation

Population = NewType("Population", list["Individual"])


class Individual:
    """Represents a single candidate solution.

    Parameters
    ----------
    representation : Representation
        Underlying genetic representation.
    fitness : float, default NaN
        Fitness value; ``NaN`` marks an unevaluated individual.

    Equality and hashing only consider the representation, so duplicates can be
    detected before evaluation.
    """

    __slots__ = ("fitness", "representation")

    def __init__(self, representation: Representation, fitness: float = math.nan) -> None:
        object.__setattr__(self, "representation", representation)
        object.__setattr__(self, "fitness", float(fitness))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"Individual is immutable; use with_fitness() instead of setting '{name}'.")

    @property
    def genotype(self) -> Representation:
        return self.representation

    @property
    def size(self) -> int:
        return len(self.representation)

    def is_evaluated(self) -> bool:
        return not math.isnan(self.fitness)

    def verify(self) -> bool:
        return self.representation.verify() and self.is_evaluated()

    def flatten(self) -> list[Any]:
        return self.representation.flatten()

    def with_fitness(self, fitness: float) -> Individual:
        return Individual(self.representation, fitness)

    # ------------------------------------------------------------------
    # Core protocol helpers
    # ------------------------------------------------------------------
    def __eq__(self, other: object) -> bool:  # type: ignore[override]
        if not isinstance(other, Individual):
            return False
        return self.representation == other.representation

    def __hash__(self):
        return hash((Individual, self.representation))

    def __reduce__(self):
        return (Individual, (self.representation, self.fitness))

    def __repr__(self) -> str:
        return f"Individual(representation={self.representation!r}, fitness={self.fitness})"

    # ------------------------------------------------------------------
    # Population utilities
    # ------------------------------------------------------------------
    @staticmethod
    def create_population(
        genotype_factory: Callable[[np.random.Generator], Representation],
        size: int,
        rng: np.random.Generator | None = None,
    ) -> Population:
        """Create a new population of unevaluated individuals.

        Parameters
        ----------
        genotype_factory : Callable[[numpy.random.Generator], Representation]
            Factory returning a freshly randomized representation.
        size : int
            Number of individuals to create (must be >= 0).
        rng : numpy.random.Generator | None, default None
            Generator handed to the factory.
        """
        if size < 0:
            raise ValueError(f"size ({size}) must not be negative")
        _rng = rng if rng is not None else np.random.default_rng()
        return Population([Individual(genotype_factory(_rng)) for _ in range(size)])

    @staticmethod
    def from_representations(representations: Iterable[Representation]) -> Population:
        """Create a population directly from an iterable of representations."""
        return Population([Individual(r) for r in representations])
