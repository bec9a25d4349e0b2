from __future__ import annotations

import random
from typing import List, Optional, Sequence, TypeVar

T = TypeVar("T")

_rng = random.SystemRandom()


def shuffle_ids(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Fisher-Yates shuffle into a new list."""
    r = rng or _rng
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = r.randint(0, i)
        out[i], out[j] = out[j], out[i]
    return out


def select_random(items: Sequence[T], count: int, rng: Optional[random.Random] = None) -> List[T]:
    """Pick `count` items uniformly without replacement.

    Small picks from large inputs use reservoir sampling; otherwise a partial
    Fisher-Yates over a copy.
    """
    r = rng or _rng
    n = len(items)
    if count <= 0 or n == 0:
        return []
    if count >= n:
        return shuffle_ids(items, r)

    if count * 10 < n:
        reservoir = list(items[:count])
        for i in range(count, n):
            j = r.randint(0, i)
            if j < count:
                reservoir[j] = items[i]
        return shuffle_ids(reservoir, r)

    out = list(items)
    for i in range(count):
        j = r.randint(i, n - 1)
        out[i], out[j] = out[j], out[i]
    return out[:count]
