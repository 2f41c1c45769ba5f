"""
evocore.core.exceptions
=======================

Error taxonomy shared by every evocore component.

- :class:`ConfigurationError` is raised while constructing engines, operators and limits.
- :class:`InvariantViolationError` (and its subclasses) signal a broken runtime invariant.
- Exceptions raised by user-supplied fitness functions or genotype factories are never wrapped.
"""

from __future__ import annotations

from collections.abc import Iterable


class EvolutionError(RuntimeError):
    pass


class ConfigurationError(EvolutionError, ValueError):
    """Invalid construction parameters.

    All violations found during a validation pass are reported together.
    """

    def __init__(self, violations: str | Iterable[str]):
        self.violations: list[str] = [violations] if isinstance(violations, str) else list(violations)
        super().__init__("; ".join(self.violations))


class InvariantViolationError(EvolutionError):
    pass


class SelectionError(InvariantViolationError):
    pass


class CrossoverError(InvariantViolationError):
    pass


class EvaluationError(EvolutionError):
    pass


class Constraints:
    """Collects constraint violations and raises them as one :class:`ConfigurationError`.

    Usage::

        checks = Constraints()
        checks.require(size > 0, f"population size ({size}) must be positive")
        checks.check()
    """

    def __init__(self) -> None:
        self.violations: list[str] = []

    def require(self, condition: bool, message: str) -> None:
        if not condition:
            self.violations.append(message)

    def require_rate(self, name: str, value: float) -> None:
        self.require(0.0 <= value <= 1.0, f"{name} ({value}) must be in [0, 1]")

    def check(self, error: type[ConfigurationError] = ConfigurationError) -> None:
        if self.violations:
            raise error(self.violations)
