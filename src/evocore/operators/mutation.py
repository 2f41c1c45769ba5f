"""
evocore.operators.mutation
==========================

Mutation operators.

A mutator first decides, per individual, whether to mutate it at all
(``individual_rate``), then per chromosome (``chromosome_rate``), and finally
delegates to :meth:`Mutator.mutate_chromosome`. Gene-level operators only decide
*which* genes change; the chromosome generates valid replacement values.
"""

from __future__ import annotations

from abc import abstractmethod

import numpy as np

from evocore.core.exceptions import Constraints
from evocore.core.individual import Individual, Population
from evocore.core.representation import BooleanChromosome, Chromosome, Genotype
from evocore.operators import check_supported, resolve_rng
from evocore.operators.alterer import AlterationResult, Alterer


# =============================================================================
# Base class
# =============================================================================
class Mutator(Alterer):
    """Abstract base class for mutation operators.

    Parameters
    ----------
    individual_rate : float
        Probability that an individual is considered for mutation.
    chromosome_rate : float
        Probability that each chromosome of a considered individual is mutated.
    """

    DEFAULT_INDIVIDUAL_RATE = 0.5
    DEFAULT_CHROMOSOME_RATE = 0.5

    supported_chromosomes: tuple[type[Chromosome], ...] = ()

    def __init__(
        self,
        individual_rate: float = DEFAULT_INDIVIDUAL_RATE,
        chromosome_rate: float = DEFAULT_CHROMOSOME_RATE,
        checks: Constraints | None = None,
    ):
        checks = checks if checks is not None else Constraints()
        checks.require_rate("The individual rate", individual_rate)
        checks.require_rate("The chromosome rate", chromosome_rate)
        checks.check()
        self.individual_rate = individual_rate
        self.chromosome_rate = chromosome_rate

    def alter(self, population, generation, rng=None) -> AlterationResult:
        if self.individual_rate == 0.0 or self.chromosome_rate == 0.0:
            return AlterationResult(Population(list(population)), 0)
        _rng = resolve_rng(rng)
        mutated: list[Individual] = []
        total = 0
        for individual in population:
            if _rng.random() < self.individual_rate:
                individual, count = self.mutate_individual(individual, _rng)
                total += count
            mutated.append(individual)
        return AlterationResult(Population(mutated), total)

    def mutate_individual(
        self, individual: Individual, rng: np.random.Generator | None = None
    ) -> tuple[Individual, int]:
        """Mutate the chromosomes of one individual.

        Returns the original individual untouched when no gene changed.
        """
        genotype = individual.representation
        if not isinstance(genotype, Genotype):
            raise TypeError(f"{self.__class__.__name__} requires Genotype representations.")
        for chromosome in genotype:
            check_supported(self, chromosome, self.supported_chromosomes)
        _rng = resolve_rng(rng)
        chromosomes: list[Chromosome] = []
        total = 0
        for chromosome in genotype:
            if _rng.random() < self.chromosome_rate:
                chromosome, count = self.mutate_chromosome(chromosome, _rng)
                total += count
            chromosomes.append(chromosome)
        if total == 0:
            return individual, 0
        return Individual(Genotype(chromosomes)), total

    @abstractmethod
    def mutate_chromosome(self, chromosome: Chromosome, rng: np.random.Generator) -> tuple[Chromosome, int]:
        """Return the mutated chromosome and the number of genes it touched."""

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(individual_rate={self.individual_rate}, "
            f"chromosome_rate={self.chromosome_rate})"
        )


# =============================================================================
# Gene-level mutations
# =============================================================================
class RandomMutator(Mutator):
    """
    Replaces each gene, with probability ``gene_rate``, by a fresh value generated
    by the chromosome itself.
    """

    DEFAULT_GENE_RATE = 0.5

    def __init__(
        self,
        individual_rate: float = Mutator.DEFAULT_INDIVIDUAL_RATE,
        chromosome_rate: float = Mutator.DEFAULT_CHROMOSOME_RATE,
        gene_rate: float = DEFAULT_GENE_RATE,
    ):
        checks = Constraints()
        checks.require_rate("The gene rate", gene_rate)
        super().__init__(individual_rate, chromosome_rate, checks)
        self.gene_rate = gene_rate

    def _mask(self, chromosome: Chromosome, rng: np.random.Generator) -> np.ndarray:
        return rng.random(len(chromosome)) < self.gene_rate

    def mutate_chromosome(self, chromosome, rng):
        mask = self._mask(chromosome, rng)
        count = int(np.sum(mask))
        if count == 0:
            return chromosome, 0
        genes = chromosome.genes.copy()
        genes[mask] = chromosome.generate(count, rng)
        return chromosome.with_genes(genes), count


class BitFlipMutator(RandomMutator):
    """Flips each boolean gene with probability ``gene_rate``."""

    supported_chromosomes = (BooleanChromosome,)

    def mutate_chromosome(self, chromosome, rng):
        mask = self._mask(chromosome, rng)
        count = int(np.sum(mask))
        if count == 0:
            return chromosome, 0
        genes = chromosome.genes.copy()
        genes[mask] = ~genes[mask]
        return chromosome.with_genes(genes), count


# =============================================================================
# Order-based mutations (safe for permutations)
# =============================================================================
def _random_segment(size: int, boundary_probability: float, rng: np.random.Generator) -> tuple[int, int]:
    """Pick an inclusive ``(start, end)`` segment by scanning with ``boundary_probability``."""
    start, end = 0, size - 1
    for i in range(size):
        if rng.random() < boundary_probability:
            start = i
            break
    for i in range(start, size):
        if rng.random() > boundary_probability:
            end = i
            break
    return start, end


class InversionMutator(Mutator):
    """Reverses a randomly chosen contiguous segment of the chromosome."""

    DEFAULT_INVERSION_BOUNDARY_PROBABILITY = 0.5

    def __init__(
        self,
        individual_rate: float = Mutator.DEFAULT_INDIVIDUAL_RATE,
        chromosome_rate: float = Mutator.DEFAULT_CHROMOSOME_RATE,
        inversion_boundary_probability: float = DEFAULT_INVERSION_BOUNDARY_PROBABILITY,
    ):
        checks = Constraints()
        checks.require_rate("The inversion boundary probability", inversion_boundary_probability)
        super().__init__(individual_rate, chromosome_rate, checks)
        self.inversion_boundary_probability = inversion_boundary_probability

    def mutate_chromosome(self, chromosome, rng):
        start, end = _random_segment(len(chromosome), self.inversion_boundary_probability, rng)
        if end <= start:
            return chromosome, 0
        genes = chromosome.genes.copy()
        genes[start : end + 1] = genes[start : end + 1][::-1]
        return chromosome.with_genes(genes), end - start + 1


class SwapMutator(Mutator):
    """Swaps each gene, with probability ``swap_rate``, with a uniformly chosen position."""

    DEFAULT_SWAP_RATE = 0.5

    def __init__(
        self,
        individual_rate: float = Mutator.DEFAULT_INDIVIDUAL_RATE,
        chromosome_rate: float = Mutator.DEFAULT_CHROMOSOME_RATE,
        swap_rate: float = DEFAULT_SWAP_RATE,
    ):
        checks = Constraints()
        checks.require_rate("The swap rate", swap_rate)
        super().__init__(individual_rate, chromosome_rate, checks)
        self.swap_rate = swap_rate

    def mutate_chromosome(self, chromosome, rng):
        size = len(chromosome)
        indices = np.flatnonzero(rng.random(size) < self.swap_rate)
        if indices.size == 0:
            return chromosome, 0
        genes = chromosome.genes.copy()
        for i in indices:
            j = rng.integers(0, size)
            genes[i], genes[j] = genes[j], genes[i]
        return chromosome.with_genes(genes), int(indices.size)


class PartialShuffleMutator(Mutator):
    """Shuffles a randomly chosen contiguous segment of the chromosome."""

    DEFAULT_INDIVIDUAL_RATE = 1.0
    DEFAULT_CHROMOSOME_RATE = 1.0
    DEFAULT_SHUFFLE_BOUNDARY_PROBABILITY = 0.5

    def __init__(
        self,
        individual_rate: float = DEFAULT_INDIVIDUAL_RATE,
        chromosome_rate: float = DEFAULT_CHROMOSOME_RATE,
        shuffle_boundary_probability: float = DEFAULT_SHUFFLE_BOUNDARY_PROBABILITY,
    ):
        checks = Constraints()
        checks.require_rate("The shuffle boundary probability", shuffle_boundary_probability)
        super().__init__(individual_rate, chromosome_rate, checks)
        self.shuffle_boundary_probability = shuffle_boundary_probability

    def mutate_chromosome(self, chromosome, rng):
        if self.shuffle_boundary_probability == 0.0:
            return chromosome, 0
        start, end = _random_segment(len(chromosome), self.shuffle_boundary_probability, rng)
        if end <= start:
            return chromosome, 0
        genes = chromosome.genes.copy()
        genes[start : end + 1] = rng.permutation(genes[start : end + 1])
        return chromosome.with_genes(genes), end - start + 1
