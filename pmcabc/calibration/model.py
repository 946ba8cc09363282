"""
Model interface consumed by the samplers.

The samplers never look inside a simulation. A model only has to draw
parameters from its prior, evaluate the prior density, and turn a parameter
vector into a distance between simulated and observed summary statistics.
"""

from __future__ import annotations

import abc
from typing import Any, Callable, Sequence

import numpy as np

from pmcabc.calibration.distances import DistanceFn, get_distance
from pmcabc.calibration.priors import (
    ParameterPrior,
    compute_prior_density,
    sample_from_priors,
)


class ABCModel(abc.ABC):
    """
    Base class for models plugged into ``basic_abc`` / ``pmc_abc``.

    ``prior`` holds one independent marginal per parameter; the joint prior
    density is their product.
    """

    prior: Sequence[ParameterPrior]

    @property
    def n_theta(self) -> int:
        return len(self.prior)

    @property
    def param_names(self) -> list[str]:
        return [p.name for p in self.prior]

    def draw_from_prior(self, rng: np.random.Generator) -> np.ndarray:
        return sample_from_priors(self.prior, rng)

    def prior_density(self, theta: np.ndarray) -> float:
        return compute_prior_density(theta, self.prior)

    @abc.abstractmethod
    def simulate_and_reduce(self, theta: np.ndarray, rng: np.random.Generator) -> float:
        """
        Simulate data for ``theta`` and return its distance to the observation.

        Return NaN when the simulation fails. Implementations are responsible
        for bounding their own run time.
        """


class SimulationModel(ABCModel):
    """
    Model assembled from a simulator, a summary statistic and a distance.

    Args:
        prior: Marginal priors, one per parameter
        simulator: ``(theta, rng) -> data``
        summary: ``data -> summary statistics``
        observed_summary: Summary statistics of the observed data
        distance: Callable or the name of one in ``distances.DISTANCES``
    """

    def __init__(
        self,
        prior: Sequence[ParameterPrior],
        simulator: Callable[[np.ndarray, np.random.Generator], Any],
        summary: Callable[[Any], np.ndarray],
        observed_summary: np.ndarray,
        distance: DistanceFn | str = "euclidean",
    ) -> None:
        if len(prior) == 0:
            raise ValueError("At least one prior is required")
        self.prior = list(prior)
        self.simulator = simulator
        self.summary = summary
        self.observed_summary = np.asarray(observed_summary, dtype=float)
        self.distance = get_distance(distance) if isinstance(distance, str) else distance

    def generate_data(self, theta: np.ndarray, rng: np.random.Generator) -> Any:
        return self.simulator(theta, rng)

    def summary_stats(self, data: Any) -> np.ndarray:
        return np.asarray(self.summary(data), dtype=float)

    def simulate_and_reduce(self, theta: np.ndarray, rng: np.random.Generator) -> float:
        synth = self.generate_data(theta, rng)
        sum_stats = self.summary_stats(synth)
        return float(self.distance(sum_stats, self.observed_summary))
