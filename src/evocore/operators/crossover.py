"""
evocore.operators.crossover
===========================

Crossover (recombination) operators.

A crossover takes groups of ``num_parents`` genotypes and produces
``num_offspring`` genotypes. Each chromosome position is recombined with
probability ``chromosome_rate``; positions that are not recombined are copied
from the corresponding parent.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Callable, Sequence

import numpy as np

from evocore.core.exceptions import Constraints, CrossoverError
from evocore.core.individual import Individual, Population
from evocore.core.representation import (
    Chromosome,
    DoubleChromosome,
    Genotype,
    IntChromosome,
    PermutationChromosome,
)
from evocore.operators import check_supported, resolve_rng
from evocore.operators.alterer import AlterationResult, Alterer


def _changed_genes(parent: Genotype, child: Genotype) -> int:
    changed = 0
    for before, after in zip(parent, child, strict=True):
        if len(before) != len(after):
            changed += len(after)
        else:
            changed += int(np.count_nonzero(before.genes != after.genes))
    return changed


# =============================================================================
# Base class
# =============================================================================
class Crossover(Alterer):
    """Abstract base class for crossover operators.

    Parameters
    ----------
    num_parents : int, default 2
        Genotypes consumed per recombination (at least 2).
    num_offspring : int, default 2
        Genotypes produced per recombination (at least 1).
    chromosome_rate : float, default 1.0
        Probability that each chromosome position is recombined.
    """

    supported_chromosomes: tuple[type[Chromosome], ...] = ()

    def __init__(
        self,
        num_parents: int = 2,
        num_offspring: int = 2,
        chromosome_rate: float = 1.0,
        checks: Constraints | None = None,
    ):
        checks = checks if checks is not None else Constraints()
        checks.require(num_parents >= 2, f"The number of parents ({num_parents}) must be at least 2")
        checks.require(num_offspring >= 1, f"The number of offspring ({num_offspring}) must be positive")
        checks.require_rate("The chromosome rate", chromosome_rate)
        checks.check()
        self.num_parents = num_parents
        self.num_offspring = num_offspring
        self.chromosome_rate = chromosome_rate

    def alter(self, population, generation, rng=None) -> AlterationResult:
        """Recombine the population in sliding parent groups until it is refilled.

        Group ``k`` starts at index ``k * num_offspring`` and wraps around, so a
        group that is not recombined yields the parents unchanged.
        """
        size = len(population)
        if size == 0 or self.chromosome_rate == 0.0:
            return AlterationResult(Population(list(population)), 0)
        _rng = resolve_rng(rng)
        offspring: list[Individual] = []
        total = 0
        group = 0
        while len(offspring) < size:
            start = group * self.num_offspring
            parents = [population[(start + j) % size] for j in range(self.num_parents)]
            for child, count in self.recombine(parents, _rng):
                if len(offspring) < size:
                    offspring.append(child)
                    total += count
            group += 1
        return AlterationResult(Population(offspring), total)

    def recombine(
        self, parents: Sequence[Individual], rng: np.random.Generator | None = None
    ) -> list[tuple[Individual, int]]:
        """Recombine individuals; children identical to their parent are returned as that parent."""
        children = self.crossover([p.representation for p in parents], rng)
        result: list[tuple[Individual, int]] = []
        for j, child in enumerate(children):
            parent = parents[j % self.num_parents]
            if child == parent.representation:
                result.append((parent, 0))
            else:
                result.append((Individual(child), _changed_genes(parent.representation, child)))
        return result

    def crossover(self, parents: Sequence[Genotype], rng: np.random.Generator | None = None) -> list[Genotype]:
        """Return ``num_offspring`` genotypes recombined from ``parents``."""
        self._validate_parents(parents)
        _rng = resolve_rng(rng)
        size = len(parents[0])
        offspring = [[parents[j % self.num_parents][i] for i in range(size)] for j in range(self.num_offspring)]
        for i in range(size):
            if _rng.random() >= self.chromosome_rate:
                continue
            chromosomes = [p[i] for p in parents]
            if len({len(c) for c in chromosomes}) != 1:
                raise CrossoverError(f"Chromosomes at position {i} must all have the same length")
            children = self.crossover_chromosomes(chromosomes, _rng)
            if len(children) != self.num_offspring:
                raise CrossoverError(
                    f"Expected {self.num_offspring} offspring chromosomes, got {len(children)}"
                )
            for j, child in enumerate(children):
                offspring[j][i] = child
        return [Genotype(chromosomes) for chromosomes in offspring]

    def _validate_parents(self, parents: Sequence[Genotype]) -> None:
        if len(parents) != self.num_parents:
            raise CrossoverError(
                f"The number of inputs ({len(parents)}) must be equal to the number of parents ({self.num_parents})"
            )
        for index, genotype in enumerate(parents):
            if not isinstance(genotype, Genotype):
                raise TypeError(f"{self.__class__.__name__} requires Genotype representations.")
            if len(genotype) == 0:
                raise CrossoverError(f"The number of chromosomes in parent {index} must be greater than 0")
        if len({len(g) for g in parents}) != 1:
            raise CrossoverError("Genotypes must have the same number of chromosomes")
        for genotype in parents:
            for chromosome in genotype:
                check_supported(self, chromosome, self.supported_chromosomes)

    @abstractmethod
    def crossover_chromosomes(self, chromosomes: list[Chromosome], rng: np.random.Generator) -> list[Chromosome]:
        """Recombine same-length chromosomes into ``num_offspring`` chromosomes."""

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(num_parents={self.num_parents}, num_offspring={self.num_offspring}, "
            f"chromosome_rate={self.chromosome_rate})"
        )


# =============================================================================
# Generic crossovers
# =============================================================================
class SinglePointCrossover(Crossover):
    """
    Performs single-point crossover.

    Both offspring swap their tails at one random cut point.
    """

    def __init__(self, chromosome_rate: float = 1.0):
        super().__init__(num_parents=2, num_offspring=2, chromosome_rate=chromosome_rate)

    def crossover_chromosomes(self, chromosomes, rng):
        first, second = chromosomes
        point = int(rng.integers(0, len(first))) if len(first) > 0 else 0
        genes1, genes2 = self.crossover_at(point, first.genes, second.genes)
        return [first.with_genes(genes1), first.with_genes(genes2)]

    @staticmethod
    def crossover_at(point: int, first: np.ndarray, second: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Swap the tails of ``first`` and ``second`` starting at ``point``."""
        if len(first) != len(second):
            raise CrossoverError("Parents must have the same size")
        if not (0 <= point <= len(first)):
            raise CrossoverError(f"The crossover point ({point}) must be in the range [0, {len(first)}]")
        return (
            np.concatenate([first[:point], second[point:]]),
            np.concatenate([second[:point], first[point:]]),
        )


class UniformCrossover(Crossover):
    """
    Performs uniform crossover.

    Every gene of the first offspring comes from an independently chosen parent;
    the other offspring rotate that choice, so with as many offspring as parents
    every parent gene ends up in exactly one offspring.
    """

    def __init__(self, num_parents: int = 2, num_offspring: int = 2, chromosome_rate: float = 1.0):
        super().__init__(num_parents=num_parents, num_offspring=num_offspring, chromosome_rate=chromosome_rate)

    def crossover_chromosomes(self, chromosomes, rng):
        stacked = np.stack([c.genes for c in chromosomes])
        positions = np.arange(stacked.shape[1])
        choices = rng.integers(0, self.num_parents, size=stacked.shape[1])
        return [
            chromosomes[0].with_genes(stacked[(choices + j) % self.num_parents, positions])
            for j in range(self.num_offspring)
        ]


class CombineCrossover(Crossover):
    """
    Produces one offspring whose genes are, with probability ``gene_rate``, the
    ``combiner`` result over the parents' genes at that position, and otherwise
    the first parent's gene.
    """

    def __init__(
        self,
        combiner: Callable[[np.ndarray], object],
        gene_rate: float = 1.0,
        num_parents: int = 2,
        chromosome_rate: float = 1.0,
    ):
        checks = Constraints()
        checks.require_rate("The gene rate", gene_rate)
        super().__init__(num_parents=num_parents, num_offspring=1, chromosome_rate=chromosome_rate, checks=checks)
        self.combiner = combiner
        self.gene_rate = gene_rate

    def crossover_chromosomes(self, chromosomes, rng):
        return [chromosomes[0].with_genes(self.combine(chromosomes, rng))]

    def combine(self, chromosomes: list[Chromosome], rng: np.random.Generator) -> np.ndarray:
        stacked = np.stack([c.genes for c in chromosomes])
        genes = chromosomes[0].genes.copy()
        mask = rng.random(stacked.shape[1]) < self.gene_rate
        for i in np.flatnonzero(mask):
            genes[i] = self.combiner(stacked[:, i])
        return genes


def _mean(values: np.ndarray):
    mean = values.mean()
    return np.rint(mean) if np.issubdtype(values.dtype, np.integer) else mean


class AverageCrossover(CombineCrossover):
    """Averages numeric genes; integer means are rounded to the nearest integer."""

    supported_chromosomes = (IntChromosome, DoubleChromosome)

    def __init__(self, gene_rate: float = 1.0, num_parents: int = 2, chromosome_rate: float = 1.0):
        super().__init__(_mean, gene_rate=gene_rate, num_parents=num_parents, chromosome_rate=chromosome_rate)


# =============================================================================
# Permutation crossovers
# =============================================================================
class OrderedCrossover(Crossover):
    """
    Implements Ordered Crossover (OX).

    Each offspring copies a random segment of one parent verbatim and fills the
    remaining positions with the other parent's genes in their relative order,
    so no gene is duplicated or lost.
    """

    supported_chromosomes = (PermutationChromosome,)

    def __init__(self, chromosome_rate: float = 1.0):
        super().__init__(num_parents=2, num_offspring=2, chromosome_rate=chromosome_rate)

    def crossover_chromosomes(self, chromosomes, rng):
        first, second = chromosomes
        size = len(first)
        if size < 2:
            return [first.copy(), second.copy()]
        start, end = sorted(int(i) for i in rng.choice(size, 2, replace=False))
        return [
            first.with_genes(self.exchange_crossing_regions(first.genes, second.genes, start, end)),
            first.with_genes(self.exchange_crossing_regions(second.genes, first.genes, start, end)),
        ]

    @staticmethod
    def exchange_crossing_regions(donor: np.ndarray, receiver: np.ndarray, start: int, end: int) -> np.ndarray:
        """Insert ``donor[start:end + 1]`` into the genes of ``receiver`` that are not in it."""
        if start < 0:
            raise CrossoverError(f"The start of the crossover region ({start}) must not be negative")
        if end > len(donor) - 1 or end < start:
            raise CrossoverError(f"The crossover region [{start}, {end}] must lie within the parents")
        segment = donor[start : end + 1]
        remaining = receiver[~np.isin(receiver, segment)]
        return np.concatenate([remaining[:start], segment, remaining[start:]])


class PartiallyMappedCrossover(Crossover):
    """
    Implements Partially Mapped Crossover (PMX) for permutation chromosomes.

    Offspring exchange a segment and resolve the resulting conflicts through the
    mapping defined by that segment.
    """

    supported_chromosomes = (PermutationChromosome,)

    def __init__(self, chromosome_rate: float = 1.0):
        super().__init__(num_parents=2, num_offspring=2, chromosome_rate=chromosome_rate)

    def crossover_chromosomes(self, chromosomes, rng):
        first, second = chromosomes
        size = len(first)
        if size < 2:
            return [first.copy(), second.copy()]
        a, b = sorted(int(i) for i in rng.choice(size, 2, replace=False))
        return [
            first.with_genes(self._child(first.genes, second.genes, a, b)),
            first.with_genes(self._child(second.genes, first.genes, a, b)),
        ]

    @staticmethod
    def _child(keeper: np.ndarray, donor: np.ndarray, a: int, b: int) -> np.ndarray:
        child = keeper.copy()
        child[a:b] = donor[a:b]
        segment = set(donor[a:b].tolist())
        mapping = {donor[i].item(): keeper[i].item() for i in range(a, b)}
        for i in list(range(0, a)) + list(range(b, len(keeper))):
            gene = keeper[i].item()
            while gene in segment:
                gene = mapping[gene]
            child[i] = gene
        return child
