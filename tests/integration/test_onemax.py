import numpy as np

from evocore.core.limits import MaxGenerations, SteadyGenerations, TargetFitness
from evocore.core.ranking import FitnessMinRanker
from evocore.core.representation import BooleanChromosome, GenotypeFactory, PermutationChromosome
from evocore.engine import Engine, EngineConfig
from evocore.evaluation import ConcurrentEvaluator
from evocore.listeners import EvolutionRecorder, GenerationLogger
from evocore.operators.crossover import OrderedCrossover, SinglePointCrossover, UniformCrossover
from evocore.operators.mutation import BitFlipMutator, InversionMutator
from evocore.operators.selection import TournamentSelector

ONEMAX_SEED = 42


def count_ones(genotype) -> float:
    return float(np.sum(genotype[0].genes))


def displacement(genotype) -> float:
    genes = genotype[0].genes
    return float(np.abs(genes - np.arange(len(genes))).sum())


# Run a simple integration test on the OneMax problem
def test_onemax_integration():
    recorder = EvolutionRecorder()
    engine = Engine(
        count_ones,
        GenotypeFactory(BooleanChromosome.factory(20)),
        EngineConfig(
            population_size=50,
            alterers=[UniformCrossover(), BitFlipMutator(individual_rate=0.5, chromosome_rate=1.0, gene_rate=0.05)],
            limits=[TargetFitness(20.0), MaxGenerations(200)],
            listeners=[recorder, GenerationLogger()],
            seed=ONEMAX_SEED,
        ),
    )
    final = engine.evolve()
    best = final.best()
    assert best.fitness == 20.0
    assert final.generation < 200
    assert np.all(best.genotype[0].genes)
    assert len(recorder.evolution.generations) == final.generation


def test_onemax_with_single_point_crossover_and_threads():
    engine = Engine(
        count_ones,
        GenotypeFactory(BooleanChromosome.factory(20)),
        EngineConfig(
            population_size=40,
            alterers=[SinglePointCrossover(), BitFlipMutator(chromosome_rate=1.0, gene_rate=0.05)],
            limits=[TargetFitness(20.0), MaxGenerations(200)],
            evaluator=ConcurrentEvaluator(num_workers=4, chunk_size=8),
            seed=ONEMAX_SEED,
        ),
    )
    final = engine.evolve()
    assert final.best().fitness == 20.0
    assert final.size == 40


def test_permutation_sorting_keeps_valid_permutations():
    engine = Engine(
        displacement,
        GenotypeFactory(PermutationChromosome.factory(10)),
        EngineConfig(
            population_size=30,
            survival_rate=0.2,
            parent_selector=TournamentSelector(4),
            alterers=[OrderedCrossover(), InversionMutator()],
            ranker=FitnessMinRanker(),
            limits=[TargetFitness(0.0), SteadyGenerations(40), MaxGenerations(300)],
            seed=7,
        ),
    )
    final = engine.evolve()
    assert all(ind.representation.verify() for ind in final.population)
    assert final.generation <= 300
    assert engine.stats.best_fitness == final.best().fitness
