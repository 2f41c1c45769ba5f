from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from evocore.core.exceptions import ConfigurationError, Constraints, InvariantViolationError
from evocore.core.individual import Individual
from evocore.core.limits import Limit, ListenLimit
from evocore.core.ranking import FitnessMaxRanker, Ranker
from evocore.core.representation import Representation
from evocore.core.state import EvolutionState
from evocore.evaluation import Evaluator, FitnessFunction, SequentialEvaluator
from evocore.listeners import EvolutionEvent, EvolutionListener
from evocore.operators.alterer import Alterer, AltererChain
from evocore.operators.selection import Selector, TournamentSelector

RepresentationFactory = Callable[[np.random.Generator], Representation]


def _identity(state: EvolutionState) -> EvolutionState:
    return state


# ---------------------------------------------------------------------------
# Engine config & stats
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EvolutionInterceptor:
    """Pure state transforms applied at the start (``before``) and end (``after``) of every generation."""

    before: Callable[[EvolutionState], EvolutionState] = _identity
    after: Callable[[EvolutionState], EvolutionState] = _identity


@dataclass
class EngineConfig:
    population_size: int = 50
    survival_rate: float = 0.4
    parent_selector: Selector = field(default_factory=TournamentSelector)
    survivor_selector: Selector = field(default_factory=TournamentSelector)
    alterers: list[Alterer] = field(default_factory=list)
    limits: list[Limit] = field(default_factory=list)
    ranker: Ranker = field(default_factory=FitnessMaxRanker)
    listeners: list[EvolutionListener] = field(default_factory=list)
    evaluator: Evaluator = field(default_factory=SequentialEvaluator)
    interceptor: EvolutionInterceptor = field(default_factory=EvolutionInterceptor)
    seed: int | None = None
    max_history: int | None = None

    def __post_init__(self) -> None:
        """Validate every parameter and report all violations at once.

        Rules
        -----
        - population_size > 0
        - survival_rate in [0,1]
        - selectors, alterers, limits, ranker and evaluator have the expected types
        - listeners are callables
        - seed is None or >= 0
        - max_history is None or >= 0
        """
        self.alterers = list(self.alterers)
        self.limits = list(self.limits)
        self.listeners = list(self.listeners)
        checks = Constraints()
        checks.require(self.population_size > 0, f"population size ({self.population_size}) must be positive")
        checks.require_rate("survival rate", self.survival_rate)
        for name in ("parent_selector", "survivor_selector"):
            selector = getattr(self, name)
            checks.require(isinstance(selector, Selector), f"{name} must be a Selector, got {selector!r}")
        for alterer in self.alterers:
            checks.require(isinstance(alterer, Alterer), f"alterers must be Alterer instances, got {alterer!r}")
        for limit in self.limits:
            checks.require(isinstance(limit, Limit), f"limits must be Limit instances, got {limit!r}")
        for listener in self.listeners:
            checks.require(callable(listener), f"listeners must be callable, got {listener!r}")
        checks.require(isinstance(self.ranker, Ranker), f"ranker must be a Ranker, got {self.ranker!r}")
        checks.require(isinstance(self.evaluator, Evaluator), f"evaluator must be an Evaluator, got {self.evaluator!r}")
        checks.require(self.seed is None or self.seed >= 0, f"seed ({self.seed}) must be >= 0 if provided")
        checks.require(
            self.max_history is None or self.max_history >= 0,
            f"max_history ({self.max_history}) must be >= 0 if provided",
        )
        checks.check()

    @property
    def survivor_count(self) -> int:
        return math.floor(self.population_size * self.survival_rate + 0.5)

    @property
    def offspring_count(self) -> int:
        return self.population_size - self.survivor_count


@dataclass
class EvolutionStats:
    generation: int = 0
    evaluations: int = 0
    alterations: int = 0
    best_fitness: float = math.nan
    mean_fitness: float = math.nan
    history: list[dict[str, Any]] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class Engine:
    """Generational evolution engine.

    Every generation evaluates the population, selects ``offspring_count`` parents
    and ``survivor_count`` survivors, alters the parents into offspring and merges
    survivors and offspring into the next population. The loop stops as soon as
    any configured limit fires on a completed generation.

    Parameters
    ----------
    fitness_function : Callable[[Representation], float]
        Maps a representation to its fitness. Must not return NaN.
    genotype_factory : Callable[[numpy.random.Generator], Representation]
        Produces a random representation from the engine's generator.
    config : EngineConfig | None
        Engine configuration; defaults to ``EngineConfig()``.
    rng : numpy.random.Generator | None
        Random source for every stochastic step. Built from ``config.seed`` when omitted.
    logger : logging.Logger | None
        Logger receiving progress messages.
    """

    def __init__(
        self,
        fitness_function: FitnessFunction,
        genotype_factory: RepresentationFactory,
        config: EngineConfig | None = None,
        rng: np.random.Generator | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        checks = Constraints()
        checks.require(callable(fitness_function), "fitness_function must be callable")
        checks.require(callable(genotype_factory), "genotype_factory must be callable")
        checks.check()
        self.fitness_function = fitness_function
        self.genotype_factory = genotype_factory
        self.config = config if config is not None else EngineConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.logger = logger or logging.getLogger("evocore.engine")
        self.alterer = AltererChain(self.config.alterers)

        self.listeners: list[EvolutionListener] = list(self.config.listeners)
        for limit in self.config.limits:
            if isinstance(limit, ListenLimit) and not any(limit.listener is lst for lst in self.listeners):
                self.listeners.append(limit.listener)

        self.state = EvolutionState.empty(self.config.ranker)
        self.stats = EvolutionStats()

    # -----------------------------
    # Public API
    # -----------------------------

    def evolve(self, initial_state: EvolutionState | None = None) -> EvolutionState:
        """Run generations until a limit fires and return the final state.

        Parameters
        ----------
        initial_state : EvolutionState | None
            State to resume from. An empty population is created from the genotype
            factory; a non-empty one must have exactly ``population_size`` individuals.
        """
        state = initial_state if initial_state is not None else EvolutionState.empty(self.config.ranker)
        if not state.is_empty() and state.size != self.config.population_size:
            raise ConfigurationError(
                f"initial population size ({state.size}) must be equal to the population size "
                f"({self.config.population_size})"
            )
        state = state.copy(ranker=self.config.ranker)
        if not self.config.limits:
            self.logger.warning("evolve() started without limits; evolution will not stop on its own")

        self.stats = EvolutionStats(generation=state.generation)
        try:
            self._notify(EvolutionEvent.EVOLUTION_STARTED, state)
            while True:
                self._notify(EvolutionEvent.GENERATION_STARTED, state)
                state = self.iterate_generation(state)
                self.state = state
                self._notify(EvolutionEvent.GENERATION_ENDED, state)
                self._update_stats(state)
                if any(limit(state) for limit in self.config.limits):
                    break
            self._notify(EvolutionEvent.EVOLUTION_ENDED, state)
        finally:
            self.config.evaluator.shutdown()
        return state

    def iterate_generation(self, state: EvolutionState) -> EvolutionState:
        """Produce the next generation's state from ``state``."""
        state = self.config.interceptor.before(state)
        state = self.initialize(state)
        state = self.evaluate_population(state)
        parents = self.select_parents(state)
        survivors = self.select_survivors(state)
        offspring = self.alter_offspring(parents)

        next_population = list(survivors.population) + list(offspring.population)
        if len(next_population) != self.config.population_size:
            raise InvariantViolationError(
                f"next population size ({len(next_population)}) must be equal to the population size "
                f"({self.config.population_size})"
            )
        next_state = self.evaluate_population(state.with_population(next_population))
        next_state = next_state.copy(generation=state.generation + 1)
        return self.config.interceptor.after(next_state)

    # -----------------------------
    # Generation phases
    # -----------------------------

    def initialize(self, state: EvolutionState) -> EvolutionState:
        if not state.is_empty():
            return state
        self._notify(EvolutionEvent.INITIALIZATION_STARTED, state)
        population = Individual.create_population(self.genotype_factory, self.config.population_size, self.rng)
        initialized = state.with_population(population)
        self._notify(EvolutionEvent.INITIALIZATION_ENDED, initialized)
        return initialized

    def evaluate_population(self, state: EvolutionState) -> EvolutionState:
        pending = sum(1 for ind in state.population if not ind.is_evaluated())
        if pending == 0:
            return state
        self._notify(EvolutionEvent.EVALUATION_STARTED, state)
        population = self.config.evaluator.evaluate(state.population, self.fitness_function)
        if len(population) != state.size:
            raise InvariantViolationError(
                f"evaluated population size ({len(population)}) must be equal to the input size ({state.size})"
            )
        if not all(ind.is_evaluated() for ind in population):
            raise InvariantViolationError("evaluator returned unevaluated individuals")
        self.stats.evaluations += pending
        evaluated = state.with_population(population)
        self._notify(EvolutionEvent.EVALUATION_ENDED, evaluated)
        return evaluated

    def select_parents(self, state: EvolutionState) -> EvolutionState:
        self._notify(EvolutionEvent.PARENT_SELECTION_STARTED, state)
        parents = self.config.parent_selector.select(
            state.population, self.config.offspring_count, state.ranker, self.rng
        )
        selected = state.with_population(parents)
        self._notify(EvolutionEvent.PARENT_SELECTION_ENDED, selected)
        return selected

    def select_survivors(self, state: EvolutionState) -> EvolutionState:
        self._notify(EvolutionEvent.SURVIVOR_SELECTION_STARTED, state)
        survivors = self.config.survivor_selector.select(
            state.population, self.config.survivor_count, state.ranker, self.rng
        )
        selected = state.with_population(survivors)
        self._notify(EvolutionEvent.SURVIVOR_SELECTION_ENDED, selected)
        return selected

    def alter_offspring(self, parents: EvolutionState) -> EvolutionState:
        self._notify(EvolutionEvent.ALTERATION_STARTED, parents)
        population, alterations = self.alterer.alter(parents.population, parents.generation, self.rng)
        self.stats.alterations += alterations
        self.logger.debug("Generation %d: %d genes altered", parents.generation, alterations)
        altered = parents.with_population(population)
        self._notify(EvolutionEvent.ALTERATION_ENDED, altered)
        return altered

    # -----------------------------
    # Internal helpers
    # -----------------------------

    def _notify(self, event: EvolutionEvent, state: EvolutionState) -> None:
        for listener in self.listeners:
            listener(event, state)

    def _update_stats(self, state: EvolutionState) -> None:
        evaluated: Sequence[Individual] = [ind for ind in state.population if ind.is_evaluated()]
        if evaluated:
            self.stats.best_fitness = state.ranker.best(evaluated).fitness
            self.stats.mean_fitness = float(np.mean([ind.fitness for ind in evaluated]))
        else:
            self.stats.best_fitness = math.nan
            self.stats.mean_fitness = math.nan
        self.stats.generation = state.generation

        snapshot = {
            "generation": state.generation,
            "best": self.stats.best_fitness,
            "mean": self.stats.mean_fitness,
            "evaluations": self.stats.evaluations,
            "alterations": self.stats.alterations,
            "time": time.time(),
        }
        self.stats.history.append(snapshot)
        max_history = self.config.max_history
        if max_history is not None and len(self.stats.history) > max_history:
            del self.stats.history[: len(self.stats.history) - max_history]
        self.logger.info(
            "Generation %d stats: best=%s mean=%s evals=%d",
            state.generation,
            self.stats.best_fitness,
            self.stats.mean_fitness,
            self.stats.evaluations,
        )


