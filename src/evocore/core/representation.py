"""
evocore.core.representation
===========================

Representations evolved by the engine.

The engine itself only relies on the :class:`Representation` capabilities
(``verify`` and ``flatten``). Alterers additionally work on :class:`Genotype`
instances, which are ordered collections of numpy-backed :class:`Chromosome`
objects. Every chromosome knows how to ``generate`` fresh values that satisfy
its own constraints; operators only decide *where* to use them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Sequence
from typing import Any

import numpy as np


class Representation(ABC):
    """Capability base for anything carried by an :class:`~evocore.core.individual.Individual`."""

    @abstractmethod
    def verify(self) -> bool:
        """Return ``True`` if the representation satisfies its own constraints."""

    @abstractmethod
    def flatten(self) -> list[Any]:
        """Return the underlying values as a flat list."""

    @abstractmethod
    def __len__(self) -> int:
        pass


# =============================================================================
# Chromosomes
# =============================================================================
class Chromosome(Representation):
    """Abstract numpy-backed chromosome."""

    def __init__(self, genes: np.ndarray):
        self.genes: np.ndarray = genes

    @abstractmethod
    def generate(self, size: int, rng: np.random.Generator) -> np.ndarray:
        """Return ``size`` new gene values that are valid for this chromosome."""

    def with_genes(self, genes: np.ndarray) -> Chromosome:
        """Return a chromosome with the same constraints carrying ``genes``."""
        return self.__class__(genes, *self._constraints())

    def _constraints(self) -> tuple:
        return ()

    def flatten(self) -> list[Any]:
        return self.genes.tolist()

    def copy(self) -> Chromosome:
        return self.with_genes(np.copy(self.genes))

    def __len__(self) -> int:
        return self.genes.size

    def __eq__(self, other) -> bool:
        if type(self) is not type(other):
            return False
        return self._constraints() == other._constraints() and np.array_equal(self.genes, other.genes)

    def __hash__(self):
        return hash((self.__class__.__name__, self.genes.tobytes(), self._constraints()))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.genes.tolist()})"


class BooleanChromosome(Chromosome):
    def __init__(self, genes: np.ndarray, true_rate: float = 0.5):
        if genes.dtype != np.bool_:
            raise TypeError(f"BooleanChromosome genes must be boolean (np.bool_), got dtype={genes.dtype}.")
        if not (0.0 <= true_rate <= 1.0):
            raise ValueError(f"true_rate ({true_rate}) must be in [0, 1].")
        super().__init__(genes)
        self.true_rate = true_rate

    @classmethod
    def random(cls, length: int, true_rate: float = 0.5, rng: np.random.Generator | None = None) -> BooleanChromosome:
        """Create a random boolean chromosome.

        Parameters
        ----------
        length : int
            Number of genes.
        true_rate : float, default 0.5
            Probability that a gene is True.
        rng : numpy.random.Generator | None, default None
            Optional RNG for reproducibility.
        """
        _rng = rng if rng is not None else np.random.default_rng()
        return cls(_rng.random(length) < true_rate, true_rate)

    @classmethod
    def factory(cls, length: int, true_rate: float = 0.5) -> Callable[[np.random.Generator], BooleanChromosome]:
        return lambda rng: cls.random(length, true_rate, rng=rng)

    def _constraints(self) -> tuple:
        return (self.true_rate,)

    def generate(self, size: int, rng: np.random.Generator) -> np.ndarray:
        return rng.random(size) < self.true_rate

    def verify(self) -> bool:
        return self.genes.dtype == np.bool_


class IntChromosome(Chromosome):
    """Chromosome with integer genes in the inclusive range ``bounds``."""

    def __init__(self, genes: np.ndarray, bounds: tuple[int, int] = (0, 10)):
        if not np.issubdtype(genes.dtype, np.integer):
            raise TypeError(f"IntChromosome genes must be integer dtype, got dtype={genes.dtype}.")
        if bounds[0] > bounds[1]:
            raise ValueError(f"Invalid bounds {bounds}: low must be <= high.")
        super().__init__(genes)
        self.bounds: tuple[int, int] = (int(bounds[0]), int(bounds[1]))

    @classmethod
    def random(
        cls, length: int, bounds: tuple[int, int] = (0, 10), rng: np.random.Generator | None = None
    ) -> IntChromosome:
        low, high = bounds
        _rng = rng if rng is not None else np.random.default_rng()
        return cls(_rng.integers(low, high + 1, size=length, dtype=np.int64), bounds)

    @classmethod
    def factory(cls, length: int, bounds: tuple[int, int] = (0, 10)) -> Callable[[np.random.Generator], IntChromosome]:
        return lambda rng: cls.random(length, bounds, rng=rng)

    def _constraints(self) -> tuple:
        return (self.bounds,)

    def generate(self, size: int, rng: np.random.Generator) -> np.ndarray:
        low, high = self.bounds
        return rng.integers(low, high + 1, size=size, dtype=self.genes.dtype)

    def verify(self) -> bool:
        low, high = self.bounds
        return bool(np.all((self.genes >= low) & (self.genes <= high)))


class DoubleChromosome(Chromosome):
    """Chromosome with real-valued genes in the half-open range ``[low, high)``."""

    def __init__(self, genes: np.ndarray, bounds: tuple[float, float] = (0.0, 1.0)):
        if genes.dtype not in (np.float32, np.float64):
            raise TypeError(f"DoubleChromosome genes must be float32/float64, got dtype={genes.dtype}.")
        if bounds[0] >= bounds[1]:
            raise ValueError(f"Invalid bounds {bounds}: low must be < high.")
        super().__init__(genes)
        self.bounds: tuple[float, float] = (float(bounds[0]), float(bounds[1]))

    @classmethod
    def random(
        cls, length: int, bounds: tuple[float, float] = (0.0, 1.0), rng: np.random.Generator | None = None
    ) -> DoubleChromosome:
        low, high = bounds
        _rng = rng if rng is not None else np.random.default_rng()
        return cls(_rng.uniform(low, high, size=length).astype(np.float64), bounds)

    @classmethod
    def factory(
        cls, length: int, bounds: tuple[float, float] = (0.0, 1.0)
    ) -> Callable[[np.random.Generator], DoubleChromosome]:
        return lambda rng: cls.random(length, bounds, rng=rng)

    def _constraints(self) -> tuple:
        return (self.bounds,)

    def generate(self, size: int, rng: np.random.Generator) -> np.ndarray:
        low, high = self.bounds
        return rng.uniform(low, high, size=size).astype(self.genes.dtype)

    def verify(self) -> bool:
        low, high = self.bounds
        return bool(np.all(np.isfinite(self.genes) & (self.genes >= low) & (self.genes <= high)))


class PermutationChromosome(Chromosome):
    """Chromosome holding a permutation of ``0..len-1``.

    Individual genes cannot be regenerated without breaking the permutation, so
    this chromosome only supports permutation-preserving operators.
    """

    def __init__(self, genes: np.ndarray):
        if not np.issubdtype(genes.dtype, np.integer):
            raise TypeError(f"PermutationChromosome genes must be integer dtype, got dtype={genes.dtype}.")
        super().__init__(genes)

    @classmethod
    def random(cls, length: int, rng: np.random.Generator | None = None) -> PermutationChromosome:
        _rng = rng if rng is not None else np.random.default_rng()
        return cls(_rng.permutation(length).astype(np.int64))

    @classmethod
    def factory(cls, length: int) -> Callable[[np.random.Generator], PermutationChromosome]:
        return lambda rng: cls.random(length, rng=rng)

    def generate(self, size: int, rng: np.random.Generator) -> np.ndarray:
        raise TypeError("PermutationChromosome genes cannot be generated independently.")

    def verify(self) -> bool:
        return bool(np.array_equal(np.sort(self.genes), np.arange(len(self.genes))))


# =============================================================================
# Genotype
# =============================================================================
class Genotype(Representation):
    """Ordered, immutable collection of chromosomes."""

    def __init__(self, chromosomes: Sequence[Chromosome]):
        if not all(isinstance(c, Chromosome) for c in chromosomes):
            raise TypeError("Genotype components must be Chromosome instances.")
        self.chromosomes: tuple[Chromosome, ...] = tuple(chromosomes)

    def verify(self) -> bool:
        return len(self.chromosomes) > 0 and all(c.verify() for c in self.chromosomes)

    def flatten(self) -> list[Any]:
        return [value for chromosome in self.chromosomes for value in chromosome.flatten()]

    def copy(self) -> Genotype:
        return Genotype([c.copy() for c in self.chromosomes])

    def __len__(self) -> int:
        return len(self.chromosomes)

    def __getitem__(self, index: int) -> Chromosome:
        return self.chromosomes[index]

    def __iter__(self) -> Iterator[Chromosome]:
        return iter(self.chromosomes)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Genotype):
            return False
        return self.chromosomes == other.chromosomes

    def __hash__(self):
        return hash(self.chromosomes)

    def __repr__(self) -> str:
        return f"Genotype({', '.join(repr(c) for c in self.chromosomes)})"


class GenotypeFactory:
    """Builds random genotypes from one chromosome factory per chromosome.

    Each chromosome factory is called with the engine's random generator, e.g.
    ``GenotypeFactory(BooleanChromosome.factory(20))``.
    """

    def __init__(self, *chromosome_factories: Callable[[np.random.Generator], Chromosome]):
        if not chromosome_factories:
            raise ValueError("GenotypeFactory requires at least one chromosome factory.")
        self.chromosome_factories = chromosome_factories

    def __call__(self, rng: np.random.Generator | None = None) -> Genotype:
        _rng = rng if rng is not None else np.random.default_rng()
        return Genotype([factory(_rng) for factory in self.chromosome_factories])
