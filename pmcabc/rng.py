from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import numpy as np


@dataclass
class RNGManager:
    """Root generator for a run.

    Rounds spawn one child stream per candidate from it (``spawn_generators``)
    so a candidate's draws do not depend on evaluation order.
    """

    seed: Optional[int] = None

    def __post_init__(self) -> None:
        self.numpy = np.random.default_rng(self.seed)


def spawn_generators(rng: np.random.Generator, n: int) -> List[np.random.Generator]:
    return rng.spawn(n)


def as_generator(rng: np.random.Generator | int | None) -> np.random.Generator:
    if isinstance(rng, np.random.Generator):
        return rng
    return RNGManager(rng).numpy
