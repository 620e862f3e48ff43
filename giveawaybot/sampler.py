from __future__ import annotations

import random
from typing import List, Optional, Sequence, TypeVar

T = TypeVar("T")


def sample(pool: Sequence[T], k: int, rng: Optional[random.Random] = None) -> List[T]:
    """Pick ``k`` distinct entries of ``pool`` uniformly, without replacement.

    Shuffles a copy (Fisher-Yates) and takes the head, so asking for more
    entries than the pool holds returns the whole pool in random order. The
    caller's sequence is never modified.
    """
    if k <= 0:
        return []
    rng = rng or random.Random()
    items = list(pool)
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items[:k]
