"""
evocore.evaluation
==================

Fitness evaluation strategies.

An evaluator returns a population of the same length and order as its input in
which every individual is evaluated. Individuals that already carry a fitness
are passed through untouched, so evaluating twice costs nothing and never
changes a fitness value.

Exceptions raised by the fitness function propagate unchanged; a fitness
function returning NaN raises :class:`~evocore.core.exceptions.EvaluationError`.
"""

from __future__ import annotations

import logging
import math
import pickle
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor

from evocore.core.exceptions import Constraints, EvaluationError
from evocore.core.individual import Individual, Population
from evocore.core.representation import Representation

FitnessFunction = Callable[[Representation], float]

logger = logging.getLogger("evocore.evaluation")


def _evaluate_chunk(fitness_function: FitnessFunction, representations: list[Representation]) -> list[float]:
    """Top-level helper for process pool pickling: evaluate one chunk of representations."""
    return [float(fitness_function(r)) for r in representations]


def _checked(fitness: float, individual: Individual) -> float:
    if math.isnan(fitness):
        raise EvaluationError(f"The fitness function returned NaN for {individual.representation!r}")
    return fitness


class Evaluator(ABC):
    """Base class for evaluation strategies."""

    def evaluate(self, population: Sequence[Individual], fitness_function: FitnessFunction) -> Population:
        pending = [i for i, ind in enumerate(population) if not ind.is_evaluated()]
        if not pending:
            return Population(list(population))
        scores = self._fitness_of([population[i] for i in pending], fitness_function)
        evaluated = list(population)
        for index, fitness in zip(pending, scores, strict=True):
            evaluated[index] = population[index].with_fitness(_checked(fitness, population[index]))
        logger.debug("Evaluated %d of %d individuals", len(pending), len(population))
        return Population(evaluated)

    def __call__(self, population, fitness_function) -> Population:
        return self.evaluate(population, fitness_function)

    @abstractmethod
    def _fitness_of(self, individuals: list[Individual], fitness_function: FitnessFunction) -> list[float]:
        """Return the fitness of each individual, in order."""

    def shutdown(self) -> None:
        """Release any resources held by the evaluator."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class SequentialEvaluator(Evaluator):
    """Evaluates individuals one after another in the calling thread."""

    def _fitness_of(self, individuals, fitness_function):
        return [float(fitness_function(ind.representation)) for ind in individuals]


class ConcurrentEvaluator(Evaluator):
    """Evaluates chunks of individuals on a thread or process pool.

    Parameters
    ----------
    num_workers : int | None
        Pool size; ``None`` lets :mod:`concurrent.futures` decide.
    executor_type : {"thread", "process"}
        Kind of pool to create. A process pool is only used when the fitness
        function can be pickled; otherwise a thread pool is used instead.
    chunk_size : int
        Number of individuals submitted per task.
    executor : concurrent.futures.Executor | None
        Externally managed executor. It is used as is and never shut down here.
    """

    DEFAULT_CHUNK_SIZE = 100

    def __init__(
        self,
        num_workers: int | None = None,
        executor_type: str = "thread",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        executor: Executor | None = None,
    ):
        checks = Constraints()
        checks.require(num_workers is None or num_workers > 0, f"num_workers ({num_workers}) must be positive")
        checks.require(
            executor_type in {"thread", "process"},
            f"executor_type ({executor_type!r}) must be one of {{'thread', 'process'}}",
        )
        checks.require(chunk_size > 0, f"chunk_size ({chunk_size}) must be positive")
        checks.check()
        self.num_workers = num_workers
        self.executor_type = executor_type
        self.chunk_size = chunk_size
        self._external_executor = executor
        self._executor: Executor | None = None

    def _prepare_executor(self, fitness_function: FitnessFunction) -> Executor:
        if self._external_executor is not None:
            return self._external_executor
        if self._executor is not None:
            return self._executor

        picklable = True
        if self.executor_type == "process":
            try:
                pickle.dumps(fitness_function)
            except (pickle.PicklingError, AttributeError, TypeError):
                picklable = False

        if self.executor_type == "process" and picklable:
            self._executor = ProcessPoolExecutor(max_workers=self.num_workers)
            logger.info("ProcessPoolExecutor prepared with %s workers", self.num_workers)
        else:
            self._executor = ThreadPoolExecutor(max_workers=self.num_workers)
            if self.executor_type == "process":
                logger.warning(
                    "Fitness function not picklable: falling back to ThreadPoolExecutor to avoid pickling errors."
                )
            else:
                logger.info("ThreadPoolExecutor prepared with %s workers", self.num_workers)
        return self._executor

    def _fitness_of(self, individuals, fitness_function):
        executor = self._prepare_executor(fitness_function)
        representations = [ind.representation for ind in individuals]
        futures = [
            executor.submit(_evaluate_chunk, fitness_function, representations[start : start + self.chunk_size])
            for start in range(0, len(representations), self.chunk_size)
        ]
        scores: list[float] = []
        try:
            for future in futures:
                scores.extend(future.result())
        except BaseException:
            for future in futures:
                future.cancel()
            raise
        return scores

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __repr__(self) -> str:
        return (
            f"ConcurrentEvaluator(num_workers={self.num_workers}, executor_type={self.executor_type!r}, "
            f"chunk_size={self.chunk_size})"
        )
