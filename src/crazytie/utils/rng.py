"""Seeded randomness helpers for reproducible matches."""

import random
from typing import Sequence, Tuple, TypeVar

T = TypeVar("T")


def build_rng(*, seed: int | None = None) -> random.Random:
    """Return a deterministic random generator."""
    return random.Random(seed)


def pick_one(rng: random.Random, options: Sequence[T]) -> T:
    """Pick one option with equal probability (e.g. which player owns a target)."""
    return rng.choice(options)


def uniform_in(rng: random.Random, bounds: Tuple[float, float]) -> float:
    """Sample uniformly from an inclusive ``(low, high)`` range."""
    low, high = bounds
    return rng.uniform(low, high)


def random_point(
    rng: random.Random,
    x_range: Tuple[float, float],
    y_range: Tuple[float, float],
) -> Tuple[float, float]:
    """Return a random on-screen position.

    Args:
        rng: Random number generator
        x_range: Horizontal bounds
        y_range: Vertical bounds

    Returns:
        ``(x, y)`` tuple
    """
    return uniform_in(rng, x_range), uniform_in(rng, y_range)
