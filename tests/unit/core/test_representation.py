"""
Unit tests for evocore.core.representation
"""

import numpy as np
import pytest

from evocore.core.representation import (
    BooleanChromosome,
    DoubleChromosome,
    Genotype,
    GenotypeFactory,
    IntChromosome,
    PermutationChromosome,
)


# -----------------------------------------------------------------------------
# Chromosomes
# -----------------------------------------------------------------------------
def test_boolean_chromosome_random_is_reproducible():
    a = BooleanChromosome.random(16, rng=np.random.default_rng(1))
    b = BooleanChromosome.random(16, rng=np.random.default_rng(1))
    assert a == b
    assert a.genes.dtype == np.bool_
    assert a.verify()


def test_boolean_chromosome_rejects_non_boolean_genes():
    with pytest.raises(TypeError):
        BooleanChromosome(np.array([0, 1, 1]))


def test_boolean_chromosome_true_rate_extremes():
    rng = np.random.default_rng(0)
    assert not BooleanChromosome.random(10, true_rate=0.0, rng=rng).genes.any()
    assert BooleanChromosome.random(10, true_rate=1.0, rng=rng).genes.all()


def test_int_chromosome_generates_within_inclusive_bounds():
    rng = np.random.default_rng(2)
    chromosome = IntChromosome.random(200, bounds=(-3, 3), rng=rng)
    assert chromosome.genes.min() >= -3
    assert chromosome.genes.max() <= 3
    generated = chromosome.generate(500, rng)
    assert set(np.unique(generated).tolist()) <= set(range(-3, 4))
    assert chromosome.verify()


def test_int_chromosome_verify_detects_out_of_bounds():
    assert not IntChromosome(np.array([0, 11]), bounds=(0, 10)).verify()


def test_int_chromosome_invalid_bounds():
    with pytest.raises(ValueError):
        IntChromosome(np.array([1, 2]), bounds=(5, 1))


def test_double_chromosome_generate_and_verify():
    rng = np.random.default_rng(3)
    chromosome = DoubleChromosome.random(50, bounds=(-1.0, 1.0), rng=rng)
    assert chromosome.verify()
    assert not chromosome.with_genes(np.array([0.0, np.nan])).verify()
    assert not chromosome.with_genes(np.array([2.0])).verify()


def test_double_chromosome_requires_float_genes():
    with pytest.raises(TypeError):
        DoubleChromosome(np.array([1, 2]))


def test_permutation_chromosome_verify():
    assert PermutationChromosome(np.array([2, 0, 1])).verify()
    assert not PermutationChromosome(np.array([0, 0, 1])).verify()
    assert PermutationChromosome.random(12, rng=np.random.default_rng(4)).verify()


def test_permutation_chromosome_cannot_generate_genes():
    chromosome = PermutationChromosome.random(5, rng=np.random.default_rng(5))
    with pytest.raises(TypeError):
        chromosome.generate(1, np.random.default_rng(0))


def test_with_genes_keeps_constraints():
    chromosome = IntChromosome(np.array([1, 2, 3]), bounds=(0, 5))
    other = chromosome.with_genes(np.array([4, 5, 0]))
    assert isinstance(other, IntChromosome)
    assert other.bounds == (0, 5)
    assert chromosome.genes.tolist() == [1, 2, 3]


def test_chromosome_equality_considers_type_and_constraints():
    genes = np.array([1, 2, 3])
    assert IntChromosome(genes, (0, 5)) == IntChromosome(genes.copy(), (0, 5))
    assert IntChromosome(genes, (0, 5)) != IntChromosome(genes, (0, 9))
    assert IntChromosome(genes, (0, 5)) != PermutationChromosome(genes)
    assert hash(IntChromosome(genes, (0, 5))) == hash(IntChromosome(genes.copy(), (0, 5)))


def test_chromosome_copy_is_independent():
    chromosome = BooleanChromosome(np.array([True, False]))
    clone = chromosome.copy()
    clone.genes[0] = False
    assert chromosome.genes[0]


# -----------------------------------------------------------------------------
# Genotype
# -----------------------------------------------------------------------------
def test_genotype_flatten_and_len():
    genotype = Genotype([IntChromosome(np.array([1, 2])), BooleanChromosome(np.array([True]))])
    assert len(genotype) == 2
    assert genotype.flatten() == [1, 2, True]
    assert genotype.verify()


def test_empty_genotype_is_invalid():
    assert not Genotype([]).verify()


def test_genotype_rejects_non_chromosomes():
    with pytest.raises(TypeError):
        Genotype([np.array([1, 2])])


def test_genotype_equality_and_hash():
    a = Genotype([IntChromosome(np.array([1, 2]))])
    b = Genotype([IntChromosome(np.array([1, 2]))])
    c = Genotype([IntChromosome(np.array([2, 1]))])
    assert a == b
    assert hash(a) == hash(b)
    assert a != c


def test_genotype_factory_uses_given_rng():
    factory = GenotypeFactory(BooleanChromosome.factory(8), IntChromosome.factory(4, (0, 3)))
    a = factory(np.random.default_rng(7))
    b = factory(np.random.default_rng(7))
    assert a == b
    assert isinstance(a[0], BooleanChromosome)
    assert isinstance(a[1], IntChromosome)
    assert [len(c) for c in a] == [8, 4]


def test_genotype_factory_requires_chromosome_factories():
    with pytest.raises(ValueError):
        GenotypeFactory()
