"""
evocore.core.limits
===================

Termination predicates. A limit returns ``True`` when evolution must stop; the
engine stops as soon as any of its limits fires, checked once after every
completed generation.
"""

import math
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Generic, TypeVar

from evocore.core.exceptions import Constraints
from evocore.core.ranking import Ranker
from evocore.core.state import EvolutionState
from evocore.listeners import EvolutionEvent, EvolutionListener, EvolutionRecorder

L = TypeVar("L", bound=EvolutionListener)


class Limit(ABC):
    """Abstract base class for termination conditions."""

    @abstractmethod
    def __call__(self, state: EvolutionState) -> bool:
        """Return ``True`` if the evolution should stop at ``state``."""


class MaxGenerations(Limit):
    """Stop once ``state.generation`` reaches ``generations``."""

    def __init__(self, generations: int):
        checks = Constraints()
        checks.require(generations > 0, f"The maximum number of generations ({generations}) must be positive")
        checks.check()
        self.generations = generations

    def __call__(self, state: EvolutionState) -> bool:
        return state.generation >= self.generations

    def __repr__(self) -> str:
        return f"MaxGenerations(generations={self.generations})"


class TargetFitness(Limit):
    """Stop when any evaluated individual's fitness satisfies a predicate.

    ``TargetFitness(20.0)`` matches the exact value; use :meth:`at_least` or
    :meth:`at_most` for threshold comparisons.
    """

    def __init__(self, fitness: float | None = None, predicate: Callable[[float], bool] | None = None):
        checks = Constraints()
        checks.require(
            (fitness is None) != (predicate is None), "TargetFitness takes exactly one of 'fitness' or 'predicate'"
        )
        if fitness is not None:
            checks.require(math.isfinite(fitness), f"The target fitness ({fitness}) must be finite")
        checks.check()
        self.fitness = fitness
        self.predicate: Callable[[float], bool] = predicate if predicate is not None else (lambda f: f == fitness)

    @classmethod
    def at_least(cls, threshold: float) -> "TargetFitness":
        return cls(predicate=lambda f: f >= threshold)

    @classmethod
    def at_most(cls, threshold: float) -> "TargetFitness":
        return cls(predicate=lambda f: f <= threshold)

    def __call__(self, state: EvolutionState) -> bool:
        return any(self.predicate(ind.fitness) for ind in state.population if ind.is_evaluated())

    def __repr__(self) -> str:
        return f"TargetFitness(fitness={self.fitness})"


class ListenLimit(Limit, Generic[L]):
    """Limit whose decision is derived from a listener's observations.

    The engine registers :attr:`listener` alongside its own listeners, so the
    listener sees every event of the run before the limit is evaluated.
    """

    def __init__(self, listener: L, predicate: Callable[[L, EvolutionState], bool]):
        self.listener = listener
        self.predicate = predicate

    def __call__(self, state: EvolutionState) -> bool:
        return self.predicate(self.listener, state)


def _is_steady(generations: int) -> Callable[[EvolutionRecorder, EvolutionState], bool]:
    def predicate(recorder: EvolutionRecorder, state: EvolutionState) -> bool:
        current = recorder.current
        return current is not None and current.steady > generations

    return predicate


class SteadyGenerations(ListenLimit[EvolutionRecorder]):
    """Stop when the fittest fitness stayed unchanged for more than ``generations`` consecutive generations."""

    def __init__(self, generations: int, ranker: Ranker | None = None):
        checks = Constraints()
        checks.require(generations > 0, f"Number of steady generations ({generations}) must be a positive integer")
        checks.check()
        self.generations = generations
        # the steady counter only reads the last two generation records
        super().__init__(EvolutionRecorder(ranker, max_generations=2), _is_steady(generations))

    def __repr__(self) -> str:
        return f"SteadyGenerations(generations={self.generations})"


class _Stopwatch:
    def __init__(self) -> None:
        self.started_at: float | None = None

    def __call__(self, event: EvolutionEvent, state: EvolutionState) -> None:
        if event is EvolutionEvent.EVOLUTION_STARTED:
            self.started_at = time.monotonic()

    def elapsed(self) -> float:
        return 0.0 if self.started_at is None else time.monotonic() - self.started_at


class TimeLimit(ListenLimit[_Stopwatch]):
    """Stop once ``seconds`` of wall-clock time have passed since the evolution started."""

    def __init__(self, seconds: float):
        checks = Constraints()
        checks.require(seconds > 0, f"The time limit ({seconds}) must be positive")
        checks.check()
        self.seconds = seconds
        super().__init__(_Stopwatch(), lambda watch, state: watch.elapsed() >= self.seconds)

    def __repr__(self) -> str:
        return f"TimeLimit(seconds={self.seconds})"
