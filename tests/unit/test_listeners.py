import logging

import numpy as np
import pytest

from evocore.core.exceptions import ConfigurationError
from evocore.core.individual import Individual
from evocore.core.ranking import FitnessMaxRanker, FitnessMinRanker
from evocore.core.representation import Genotype, IntChromosome
from evocore.core.state import EvolutionState
from evocore.listeners import (
    EvolutionEvent,
    EvolutionRecord,
    EvolutionRecorder,
    GenerationLogger,
    GenerationRecord,
    IndividualRecord,
    TimedRecord,
    compute_steady_generations,
)


def _ind(fitness: float, tag: int = 0) -> Individual:
    return Individual(Genotype([IntChromosome(np.array([tag]))]), fitness)


def _record(generation: int, *best: float, steady: int = 0) -> GenerationRecord:
    record = GenerationRecord(generation, steady=steady)
    record.offspring = [IndividualRecord.of(_ind(f, i)) for i, f in enumerate(best)]
    return record


# -----------------------------------------------------------------------------
# Records
# -----------------------------------------------------------------------------
def test_timed_record_accumulates(monkeypatch):
    now = [10.0]
    monkeypatch.setattr("evocore.listeners.time.perf_counter", lambda: now[0])
    record = TimedRecord()
    record.start()
    now[0] = 10.5
    record.stop()
    record.start()
    now[0] = 11.5
    record.stop()
    assert record.duration == pytest.approx(1.5)


def test_timed_record_stop_without_start():
    record = TimedRecord()
    record.stop()
    assert record.duration == 0.0


def test_individual_record_round_trip():
    ind = _ind(3.0, 4)
    restored = IndividualRecord.of(ind).to_individual()
    assert restored == ind
    assert restored.fitness == 3.0


def test_generation_record_validation():
    with pytest.raises(ConfigurationError):
        GenerationRecord(-1)
    with pytest.raises(ConfigurationError):
        GenerationRecord(0, steady=-2)


def test_evolution_record_last():
    evolution = EvolutionRecord()
    assert evolution.last is None
    evolution.generations.append(GenerationRecord(0))
    assert evolution.last.generation == 0


# -----------------------------------------------------------------------------
# Steady generations
# -----------------------------------------------------------------------------
def test_steady_needs_two_generations():
    evolution = EvolutionRecord([_record(0, 5.0)])
    assert compute_steady_generations(FitnessMaxRanker(), evolution) == 0


def test_steady_increments_on_equal_best():
    evolution = EvolutionRecord([_record(0, 5.0, 1.0, steady=2), _record(1, 5.0, 4.0)])
    assert compute_steady_generations(FitnessMaxRanker(), evolution) == 3


def test_steady_resets_on_change():
    evolution = EvolutionRecord([_record(0, 5.0, steady=4), _record(1, 6.0)])
    assert compute_steady_generations(FitnessMaxRanker(), evolution) == 0


def test_steady_uses_ranker():
    evolution = EvolutionRecord([_record(0, 1.0, 5.0), _record(1, 1.0, 8.0)])
    assert compute_steady_generations(FitnessMinRanker(), evolution) == 1
    assert compute_steady_generations(FitnessMaxRanker(), evolution) == 0


def test_steady_without_evaluated_offspring():
    evolution = EvolutionRecord([_record(0, float("nan")), _record(1, float("nan"))])
    assert compute_steady_generations(FitnessMaxRanker(), evolution) == 0


# -----------------------------------------------------------------------------
# EvolutionRecorder
# -----------------------------------------------------------------------------
def _phases():
    return [
        EvolutionEvent.EVALUATION_STARTED,
        EvolutionEvent.EVALUATION_ENDED,
        EvolutionEvent.PARENT_SELECTION_STARTED,
        EvolutionEvent.PARENT_SELECTION_ENDED,
        EvolutionEvent.SURVIVOR_SELECTION_STARTED,
        EvolutionEvent.SURVIVOR_SELECTION_ENDED,
        EvolutionEvent.ALTERATION_STARTED,
        EvolutionEvent.ALTERATION_ENDED,
    ]


def test_recorder_builds_generation_records():
    recorder = EvolutionRecorder()
    recorder(EvolutionEvent.EVOLUTION_STARTED, EvolutionState.empty())
    parents = EvolutionState(generation=0, population=[_ind(1.0, 0), _ind(2.0, 1)])
    offspring = EvolutionState(generation=1, population=[_ind(3.0, 2), _ind(2.0, 3)])
    for generation in range(3):
        recorder(EvolutionEvent.GENERATION_STARTED, parents.copy(generation=generation))
        for event in _phases():
            recorder(event, parents)
        recorder(EvolutionEvent.GENERATION_ENDED, offspring.copy(generation=generation + 1))
    recorder(EvolutionEvent.EVOLUTION_ENDED, offspring)

    assert [r.generation for r in recorder.evolution.generations] == [0, 1, 2]
    assert [r.steady for r in recorder.evolution.generations] == [0, 1, 2]
    record = recorder.current
    assert [p.fitness for p in record.parents] == [1.0, 2.0]
    assert [o.fitness for o in record.offspring] == [3.0, 2.0]
    for phase in ("evaluation", "parent_selection", "survivor_selection", "alteration", "total"):
        assert getattr(record, phase).duration >= 0.0
    assert recorder.evolution.total.duration >= 0.0


def test_recorder_bounds_retained_generations():
    recorder = EvolutionRecorder(max_generations=3)
    recorder(EvolutionEvent.EVOLUTION_STARTED, EvolutionState.empty())
    state = EvolutionState(generation=0, population=[_ind(1.0)])
    for generation in range(10):
        recorder(EvolutionEvent.GENERATION_STARTED, state.copy(generation=generation))
        recorder(EvolutionEvent.GENERATION_ENDED, state.copy(generation=generation + 1))
    assert [r.generation for r in recorder.evolution.generations] == [7, 8, 9]
    assert recorder.current.steady == 9


def test_recorder_keeps_every_generation_by_default():
    recorder = EvolutionRecorder()
    recorder(EvolutionEvent.EVOLUTION_STARTED, EvolutionState.empty())
    state = EvolutionState(generation=0, population=[_ind(1.0)])
    for generation in range(10):
        recorder(EvolutionEvent.GENERATION_STARTED, state.copy(generation=generation))
        recorder(EvolutionEvent.GENERATION_ENDED, state.copy(generation=generation + 1))
    assert len(recorder.evolution.generations) == 10


@pytest.mark.parametrize("max_generations", [0, 1, -3])
def test_recorder_retained_generations_must_cover_two_records(max_generations):
    with pytest.raises(ConfigurationError):
        EvolutionRecorder(max_generations=max_generations)


def test_recorder_restarts_on_new_evolution():
    recorder = EvolutionRecorder()
    recorder(EvolutionEvent.EVOLUTION_STARTED, EvolutionState.empty())
    recorder(EvolutionEvent.GENERATION_STARTED, EvolutionState.empty())
    recorder(EvolutionEvent.EVOLUTION_STARTED, EvolutionState.empty())
    assert recorder.current is None


def test_recorder_ignores_phase_events_outside_generations():
    recorder = EvolutionRecorder()
    recorder(EvolutionEvent.EVALUATION_STARTED, EvolutionState.empty())
    assert recorder.current is None


def test_recorder_adopts_state_ranker_unless_given_one():
    following = EvolutionRecorder()
    fixed = EvolutionRecorder(FitnessMaxRanker())
    state = EvolutionState.empty(FitnessMinRanker())
    following(EvolutionEvent.EVOLUTION_STARTED, state)
    fixed(EvolutionEvent.EVOLUTION_STARTED, state)
    assert following.ranker == FitnessMinRanker()
    assert fixed.ranker == FitnessMaxRanker()


# -----------------------------------------------------------------------------
# GenerationLogger
# -----------------------------------------------------------------------------
def test_generation_logger(caplog):
    listener = GenerationLogger()
    state = EvolutionState(generation=4, population=[_ind(1.0, 0), _ind(3.0, 1)])
    with caplog.at_level(logging.INFO, logger="evocore.listeners"):
        listener(EvolutionEvent.EVOLUTION_STARTED, EvolutionState.empty())
        listener(EvolutionEvent.GENERATION_ENDED, state)
        listener(EvolutionEvent.EVALUATION_STARTED, state)
        listener(EvolutionEvent.EVOLUTION_ENDED, state)
    messages = [r.getMessage() for r in caplog.records]
    assert messages == [
        "Evolution started at generation 0",
        "Generation 4: best=3.0 mean=2.0 size=2",
        "Evolution ended at generation 4",
    ]


def test_generation_logger_without_evaluated_individuals(caplog):
    listener = GenerationLogger(level=logging.DEBUG)
    with caplog.at_level(logging.DEBUG, logger="evocore.listeners"):
        listener(EvolutionEvent.GENERATION_ENDED, EvolutionState(generation=1, population=[_ind(float("nan"))]))
    assert "no evaluated individuals" in caplog.text
