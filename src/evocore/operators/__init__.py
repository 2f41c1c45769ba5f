"""
evocore.operators
=================

Selection and alteration operators.

Operators never own a random source: every call that consumes randomness takes
an ``rng`` argument. The engine passes its single generator so that a run is
reproducible from its seed; ``None`` falls back to a fresh default generator.
"""

from __future__ import annotations

import numpy as np

from evocore.core.representation import Chromosome


def resolve_rng(rng: np.random.Generator | None) -> np.random.Generator:
    return rng if rng is not None else np.random.default_rng()


def check_supported(operator: object, chromosome: Chromosome, supported: tuple[type[Chromosome], ...]) -> None:
    """Raise ``TypeError`` unless ``chromosome`` is an instance of one of ``supported``.

    An empty ``supported`` tuple accepts every chromosome type.
    """
    if supported and not isinstance(chromosome, supported):
        names = ", ".join(st.__name__ for st in supported)
        raise TypeError(f"{operator.__class__.__name__} is only applicable to {names}.")
