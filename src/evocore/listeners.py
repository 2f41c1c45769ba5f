"""
evocore.listeners
=================

Listeners observe an evolution run. The engine calls every listener as
``listener(event, state)`` at each phase boundary; listeners are synchronous and
must never modify the state they receive.

This module provides:
 - :class:`EvolutionEvent`, the set of phase boundaries.
 - Record types (:class:`IndividualRecord`, :class:`GenerationRecord`, :class:`EvolutionRecord`).
 - :class:`EvolutionRecorder`, which builds an :class:`EvolutionRecord` with phase timings
   and the steady-generations counter.
 - :class:`GenerationLogger`, which logs best/mean fitness per generation.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol

import numpy as np

from evocore.core.exceptions import ConfigurationError
from evocore.core.individual import Individual
from evocore.core.ranking import FitnessMaxRanker, Ranker
from evocore.core.representation import Representation

if TYPE_CHECKING:
    from evocore.core.state import EvolutionState


class EvolutionEvent(Enum):
    EVOLUTION_STARTED = "evolution_started"
    EVOLUTION_ENDED = "evolution_ended"
    GENERATION_STARTED = "generation_started"
    GENERATION_ENDED = "generation_ended"
    INITIALIZATION_STARTED = "initialization_started"
    INITIALIZATION_ENDED = "initialization_ended"
    EVALUATION_STARTED = "evaluation_started"
    EVALUATION_ENDED = "evaluation_ended"
    PARENT_SELECTION_STARTED = "parent_selection_started"
    PARENT_SELECTION_ENDED = "parent_selection_ended"
    SURVIVOR_SELECTION_STARTED = "survivor_selection_started"
    SURVIVOR_SELECTION_ENDED = "survivor_selection_ended"
    ALTERATION_STARTED = "alteration_started"
    ALTERATION_ENDED = "alteration_ended"


class EvolutionListener(Protocol):
    def __call__(self, event: EvolutionEvent, state: EvolutionState) -> None: ...


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class TimedRecord:
    """Accumulates wall-clock time over one or more start/stop pairs."""

    duration: float = 0.0
    _started_at: float | None = field(default=None, repr=False)

    def start(self) -> None:
        self._started_at = time.perf_counter()

    def stop(self) -> None:
        if self._started_at is not None:
            self.duration += time.perf_counter() - self._started_at
            self._started_at = None


@dataclass(frozen=True)
class IndividualRecord:
    representation: Representation
    fitness: float

    @classmethod
    def of(cls, individual: Individual) -> IndividualRecord:
        return cls(individual.representation, individual.fitness)

    def to_individual(self) -> Individual:
        return Individual(self.representation, self.fitness)


@dataclass
class GenerationRecord:
    generation: int
    initialization: TimedRecord = field(default_factory=TimedRecord)
    evaluation: TimedRecord = field(default_factory=TimedRecord)
    parent_selection: TimedRecord = field(default_factory=TimedRecord)
    survivor_selection: TimedRecord = field(default_factory=TimedRecord)
    alteration: TimedRecord = field(default_factory=TimedRecord)
    total: TimedRecord = field(default_factory=TimedRecord)
    parents: list[IndividualRecord] = field(default_factory=list)
    offspring: list[IndividualRecord] = field(default_factory=list)
    steady: int = 0

    def __post_init__(self) -> None:
        if self.generation < 0:
            raise ConfigurationError(f"The generation number ({self.generation}) must not be negative")
        if self.steady < 0:
            raise ConfigurationError(f"The steady counter ({self.steady}) must not be negative")


@dataclass
class EvolutionRecord:
    generations: list[GenerationRecord] = field(default_factory=list)
    total: TimedRecord = field(default_factory=TimedRecord)

    @property
    def last(self) -> GenerationRecord | None:
        return self.generations[-1] if self.generations else None


def _fittest(ranker: Ranker, records: list[IndividualRecord]) -> Individual | None:
    evaluated = [r.to_individual() for r in records if not np.isnan(r.fitness)]
    if not evaluated:
        return None
    return ranker.best(evaluated)


def compute_steady_generations(ranker: Ranker, evolution: EvolutionRecord) -> int:
    """Number of consecutive generations, ending at the last one, whose fittest offspring kept the same fitness.

    Needs at least two recorded generations; returns 0 otherwise.
    """
    if len(evolution.generations) < 2:
        return 0
    previous, current = evolution.generations[-2], evolution.generations[-1]
    previous_best = _fittest(ranker, previous.offspring)
    current_best = _fittest(ranker, current.offspring)
    if previous_best is None or current_best is None:
        return 0
    if previous_best.fitness == current_best.fitness:
        return previous.steady + 1
    return 0


# ---------------------------------------------------------------------------
# Listeners
# ---------------------------------------------------------------------------


class EvolutionRecorder:
    """Listener that keeps an :class:`EvolutionRecord` of the run it observes.

    ``max_generations`` bounds how many generation records are retained; older
    records are dropped first. ``None`` keeps the whole run.
    """

    def __init__(self, ranker: Ranker | None = None, max_generations: int | None = None):
        if max_generations is not None and max_generations < 2:
            raise ConfigurationError(
                f"The number of retained generations ({max_generations}) must be at least 2 to track steadiness"
            )
        self.max_generations = max_generations
        # Without an explicit ranker the one carried by the observed state is used.
        self._follow_state_ranker = ranker is None
        self.ranker = ranker if ranker is not None else FitnessMaxRanker()
        self.evolution = EvolutionRecord()
        self._handlers: dict[EvolutionEvent, Callable[[EvolutionState], None]] = {
            EvolutionEvent.EVOLUTION_STARTED: self._on_evolution_started,
            EvolutionEvent.EVOLUTION_ENDED: lambda state: self.evolution.total.stop(),
            EvolutionEvent.GENERATION_STARTED: self._on_generation_started,
            EvolutionEvent.GENERATION_ENDED: self._on_generation_ended,
        }
        self._timers: dict[EvolutionEvent, tuple[str, bool]] = {
            EvolutionEvent.INITIALIZATION_STARTED: ("initialization", True),
            EvolutionEvent.INITIALIZATION_ENDED: ("initialization", False),
            EvolutionEvent.EVALUATION_STARTED: ("evaluation", True),
            EvolutionEvent.EVALUATION_ENDED: ("evaluation", False),
            EvolutionEvent.PARENT_SELECTION_STARTED: ("parent_selection", True),
            EvolutionEvent.PARENT_SELECTION_ENDED: ("parent_selection", False),
            EvolutionEvent.SURVIVOR_SELECTION_STARTED: ("survivor_selection", True),
            EvolutionEvent.SURVIVOR_SELECTION_ENDED: ("survivor_selection", False),
            EvolutionEvent.ALTERATION_STARTED: ("alteration", True),
            EvolutionEvent.ALTERATION_ENDED: ("alteration", False),
        }

    @property
    def current(self) -> GenerationRecord | None:
        return self.evolution.last

    def __call__(self, event: EvolutionEvent, state: EvolutionState) -> None:
        handler = self._handlers.get(event)
        if handler is not None:
            handler(state)
            return
        timer = self._timers.get(event)
        if timer is not None and self.current is not None:
            name, starting = timer
            record: TimedRecord = getattr(self.current, name)
            if starting:
                record.start()
            else:
                record.stop()

    def _on_evolution_started(self, state: EvolutionState) -> None:
        self.evolution = EvolutionRecord()
        self.evolution.total.start()
        if self._follow_state_ranker:
            self.ranker = state.ranker

    def _on_generation_started(self, state: EvolutionState) -> None:
        record = GenerationRecord(state.generation)
        record.parents = [IndividualRecord.of(ind) for ind in state.population]
        record.total.start()
        self.evolution.generations.append(record)
        if self.max_generations is not None:
            del self.evolution.generations[: -self.max_generations]

    def _on_generation_ended(self, state: EvolutionState) -> None:
        record = self.current
        if record is None:
            return
        record.total.stop()
        record.offspring = [IndividualRecord.of(ind) for ind in state.population]
        record.steady = compute_steady_generations(self.ranker, self.evolution)


class GenerationLogger:
    """Listener logging the fittest and mean fitness at the end of every generation."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO):
        self.logger = logger or logging.getLogger("evocore.listeners")
        self.level = level

    def __call__(self, event: EvolutionEvent, state: EvolutionState) -> None:
        if event is EvolutionEvent.EVOLUTION_STARTED:
            self.logger.log(self.level, "Evolution started at generation %d", state.generation)
        elif event is EvolutionEvent.GENERATION_ENDED:
            scores = [ind.fitness for ind in state.population if ind.is_evaluated()]
            if not scores:
                self.logger.log(self.level, "Generation %d: no evaluated individuals", state.generation)
                return
            best = state.best().fitness
            self.logger.log(
                self.level,
                "Generation %d: best=%s mean=%s size=%d",
                state.generation,
                best,
                float(np.mean(scores)),
                len(state.population),
            )
        elif event is EvolutionEvent.EVOLUTION_ENDED:
            self.logger.log(self.level, "Evolution ended at generation %d", state.generation)
