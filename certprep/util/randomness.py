from __future__ import annotations

"""Randomness helpers for question sampling and seeding."""

import os
import random
from typing import List, MutableSequence, Optional, Sequence, TypeVar

T = TypeVar("T")


def make_rng(seed: Optional[int] = None) -> random.Random:
    """Build an RNG, seeded from ``seed`` or the SEED env var if set."""
    if seed is None:
        env = os.environ.get("SEED")
        if env is not None:
            try:
                seed = int(env)
            except ValueError:
                seed = None
    return random.Random(seed)


def shuffle_in_place(items: MutableSequence[T], rng: random.Random) -> None:
    """Uniform shuffle driven by ``rng``."""
    rng.shuffle(items)


def sample(items: Sequence[T], k: int, rng: random.Random) -> List[T]:
    """Uniform sample of up to ``k`` items without replacement."""
    k = max(0, min(int(k), len(items)))
    return rng.sample(list(items), k)
