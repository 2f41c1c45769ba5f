import dataclasses

import numpy as np
import pytest

from evocore.core.exceptions import ConfigurationError, InvariantViolationError
from evocore.core.individual import Individual
from evocore.core.ranking import FitnessMaxRanker, FitnessMinRanker
from evocore.core.representation import Genotype, IntChromosome
from evocore.core.state import EvolutionState


def _ind(fitness: float, tag: int = 0) -> Individual:
    return Individual(Genotype([IntChromosome(np.array([tag]))]), fitness)


def test_empty_state():
    state = EvolutionState.empty()
    assert state.generation == 0
    assert state.is_empty()
    assert state.size == 0
    assert state.ranker == FitnessMaxRanker()
    assert EvolutionState.empty(FitnessMinRanker()).ranker == FitnessMinRanker()


def test_negative_generation_rejected():
    with pytest.raises(ConfigurationError):
        EvolutionState(generation=-1)


def test_population_is_stored_as_tuple():
    population = [_ind(1.0), _ind(2.0, 1)]
    state = EvolutionState(population=population)
    population.append(_ind(3.0, 2))
    assert isinstance(state.population, tuple)
    assert state.size == 2


def test_state_is_frozen():
    state = EvolutionState()
    with pytest.raises(dataclasses.FrozenInstanceError):
        state.generation = 3


def test_copy_and_with_population_produce_new_states():
    state = EvolutionState(generation=2, population=[_ind(1.0)])
    advanced = state.copy(generation=3)
    replaced = state.with_population([_ind(5.0, 1), _ind(6.0, 2)])
    assert state.generation == 2
    assert advanced.generation == 3
    assert advanced.population == state.population
    assert replaced.size == 2
    assert replaced.generation == 2


def test_best_uses_ranker_and_skips_unevaluated():
    population = [_ind(3.0, 0), _ind(float("nan"), 1), _ind(1.0, 2)]
    assert EvolutionState(population=population).best().fitness == 3.0
    assert EvolutionState(population=population, ranker=FitnessMinRanker()).best().fitness == 1.0


def test_best_of_empty_state_fails():
    with pytest.raises(InvariantViolationError):
        EvolutionState.empty().best()
