"""
Prior Distributions for ABC
============================
Marginal prior distributions for model parameters.

Priors are declared one parameter at a time and are treated as mutually
independent: the joint prior density is the product of the marginals.
Joint priors with dependency structure are not supported.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
from scipy import stats


@dataclass
class ParameterPrior:
    """Prior distribution for a single parameter."""

    name: str
    distribution: str  # "uniform", "normal", "beta", "loguniform", "halfnormal"
    params: Tuple  # Distribution-specific parameters
    description: str = ""

    def __post_init__(self) -> None:
        # Fail at declaration rather than on the first density evaluation
        self._frozen = self._build()

    def _build(self):
        if self.distribution == "uniform":
            low, high = self.params
            return stats.uniform(loc=low, scale=high - low)
        elif self.distribution == "normal":
            mean, std = self.params
            return stats.norm(loc=mean, scale=std)
        elif self.distribution == "beta":
            alpha, beta = self.params
            return stats.beta(alpha, beta)
        elif self.distribution == "loguniform":
            low, high = self.params
            return stats.loguniform(low, high)
        elif self.distribution == "halfnormal":
            (scale,) = self.params
            return stats.halfnorm(scale=scale)
        else:
            raise ValueError(f"Unknown distribution: {self.distribution}")

    def sample(self, rng: np.random.Generator, n: int = 1) -> np.ndarray:
        """Sample n values from prior."""
        return np.atleast_1d(self._frozen.rvs(size=n, random_state=rng))

    def pdf(self, value: float) -> float:
        return float(self._frozen.pdf(value))

    def log_prob(self, value: float) -> float:
        """Compute log probability of value under prior."""
        return float(self._frozen.logpdf(value))


def uniform_prior(name: str, low: float, high: float, description: str = "") -> ParameterPrior:
    return ParameterPrior(name=name, distribution="uniform", params=(low, high), description=description)


def sample_from_priors(
    priors: Sequence[ParameterPrior],
    rng: np.random.Generator,
) -> np.ndarray:
    """Draw one parameter vector, one value per marginal."""
    return np.array([prior.sample(rng, n=1)[0] for prior in priors], dtype=float)


def compute_prior_density(
    theta: np.ndarray,
    priors: Sequence[ParameterPrior],
) -> float:
    """
    Joint prior density of a parameter vector.

    Product of the marginal densities, i.e. the priors are assumed independent.
    """
    theta = np.atleast_1d(np.asarray(theta, dtype=float))
    if theta.shape[0] != len(priors):
        raise ValueError(
            f"theta has {theta.shape[0]} entries but {len(priors)} priors were given"
        )
    density = 1.0
    for value, prior in zip(theta, priors):
        density *= prior.pdf(value)
    return density


def compute_prior_probability(
    theta: np.ndarray,
    priors: Sequence[ParameterPrior],
) -> float:
    """
    Compute joint prior log probability of a parameter vector.

    Returns log probability (sum of individual log probs).
    """
    theta = np.atleast_1d(np.asarray(theta, dtype=float))
    return float(sum(prior.log_prob(value) for value, prior in zip(theta, priors)))
