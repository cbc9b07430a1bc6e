"""Injectable random source used by the scheduler, churn and roster code.

Anything with a ``random() -> float`` method in ``[0, 1)`` qualifies, so a
``random.Random`` instance works as-is and tests can script the draws.
"""

import random as _random
from typing import Protocol, Sequence, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    """Source of uniform draws in [0, 1)."""

    def random(self) -> float: ...


def default_source() -> RandomSource:
    """A fresh, unseeded generator."""
    return _random.Random()


def pick(rng: RandomSource, items: Sequence[T]) -> T:
    """Pick one item uniformly with a single draw."""
    if not items:
        raise ValueError("Cannot pick from an empty sequence")
    index = int(rng.random() * len(items))
    # Guard against sources that return exactly 1.0
    return items[min(index, len(items) - 1)]


def shuffled(rng: RandomSource, items: Sequence[T]) -> list[T]:
    """Return a shuffled copy using one draw per item (Fisher-Yates)."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = min(int(rng.random() * (i + 1)), i)
        result[i], result[j] = result[j], result[i]
    return result
