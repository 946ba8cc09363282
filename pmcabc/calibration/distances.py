"""
Distance functions between simulated and observed summary statistics.

Any callable ``(simulated, observed) -> float`` can be used by a model;
these are the common choices.
"""

from __future__ import annotations

from typing import Callable, Dict

import numpy as np

DistanceFn = Callable[[np.ndarray, np.ndarray], float]


def _as_pair(simulated, observed):
    simulated = np.asarray(simulated, dtype=float)
    observed = np.asarray(observed, dtype=float)
    if simulated.shape != observed.shape:
        raise ValueError(
            f"Summary shapes differ: simulated {simulated.shape} vs observed {observed.shape}"
        )
    return simulated, observed


def euclidean_distance(simulated, observed) -> float:
    simulated, observed = _as_pair(simulated, observed)
    return float(np.sqrt(np.sum((simulated - observed) ** 2)))


def manhattan_distance(simulated, observed) -> float:
    simulated, observed = _as_pair(simulated, observed)
    return float(np.sum(np.abs(simulated - observed)))


def max_distance(simulated, observed) -> float:
    simulated, observed = _as_pair(simulated, observed)
    return float(np.max(np.abs(simulated - observed)))


def linear_distance(simulated, observed) -> float:
    """Mean squared difference."""
    simulated, observed = _as_pair(simulated, observed)
    return float(np.mean((simulated - observed) ** 2))


def logarithmic_distance(simulated, observed) -> float:
    """Mean squared difference of logs, for summaries spanning decades (e.g. spectra)."""
    simulated, observed = _as_pair(simulated, observed)
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.mean((np.log(simulated) - np.log(observed)) ** 2))


DISTANCES: Dict[str, DistanceFn] = {
    "euclidean": euclidean_distance,
    "manhattan": manhattan_distance,
    "max": max_distance,
    "linear": linear_distance,
    "logarithmic": logarithmic_distance,
}


def get_distance(name: str) -> DistanceFn:
    try:
        return DISTANCES[name]
    except KeyError:
        raise ValueError(
            f"Unknown distance metric: {name} (expected one of {', '.join(DISTANCES)})"
        ) from None
