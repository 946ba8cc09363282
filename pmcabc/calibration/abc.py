"""
ABC Rejection Sampling
=======================
Draws one population of candidate parameters, simulates each and marks the
candidates whose distance to the observation is within epsilon.

Candidates come either from the prior or, in PMC mode, from a Gaussian
kernel centred on a resampled member of the previous weighted population.
Each candidate owns an independent random stream, so the population does not
depend on the order (or concurrency) in which candidates are evaluated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, Iterable, Optional, Tuple

import numpy as np

from pmcabc.calibration.errors import PerturbationError
from pmcabc.calibration.model import ABCModel
from pmcabc.calibration.weights import as_parameter_matrix, stabilize_covariance
from pmcabc.rng import as_generator, spawn_generators

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int, int], None]
MapFn = Callable[..., Iterable]


def read_only(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class Population:
    """All candidates of one sampling round."""

    samples: np.ndarray  # (n_total, n_theta)
    distances: np.ndarray
    accepted: np.ndarray  # bool mask
    epsilon: float
    n_failed: int = 0

    @property
    def n_total(self) -> int:
        return int(self.samples.shape[0])

    @property
    def n_accepted(self) -> int:
        return int(self.accepted.sum())

    @property
    def acceptance_rate(self) -> float:
        return self.n_accepted / self.n_total if self.n_total > 0 else 0.0

    @property
    def theta_accepted(self) -> np.ndarray:
        return self.samples[self.accepted]

    @property
    def distances_accepted(self) -> np.ndarray:
        return self.distances[self.accepted]

    # Placeholders for callers not yet in PMC mode
    @property
    def weights(self) -> np.ndarray:
        return np.ones(self.n_accepted)

    @property
    def kernel_covariance(self) -> np.ndarray:
        n_theta = self.samples.shape[1]
        return np.zeros((n_theta, n_theta))

    @property
    def eff_sample(self) -> float:
        return float(self.n_accepted)


@dataclass(frozen=True)
class PerturbationKernel:
    """Resample-and-perturb proposal built from a previous weighted population."""

    theta_prev: np.ndarray
    weights: np.ndarray
    covariance: np.ndarray  # stabilized
    max_attempts: int = 10000

    def draw(self, rng: np.random.Generator) -> np.ndarray:
        return draw_theta_pmc(
            self.theta_prev, self.weights, self.covariance, rng,
            jitter=0.0, max_attempts=self.max_attempts,
        )


def draw_theta_pmc(
    theta_prev: np.ndarray,
    weights: np.ndarray,
    kernel_covariance: np.ndarray,
    rng: np.random.Generator,
    jitter: float = 1e-5,
    max_attempts: int = 10000,
) -> np.ndarray:
    """
    Resample one previous member by weight and perturb it.

    Only the perturbation is redrawn while any coordinate is negative; after
    ``max_attempts`` failed draws a ``PerturbationError`` is raised.
    """
    idx = rng.choice(theta_prev.shape[0], p=weights)
    theta_star = theta_prev[idx]
    stabilized_cov = stabilize_covariance(kernel_covariance, jitter)

    for _ in range(max_attempts):
        theta = rng.multivariate_normal(theta_star, stabilized_cov)
        if np.all(theta >= 0):
            return theta

    raise PerturbationError(
        f"No non-negative perturbation after {max_attempts} attempts",
        state={"parent_index": int(idx), "parent": theta_star.tolist()},
    )


def _evaluate_candidate(
    rng: np.random.Generator,
    model: ABCModel,
    kernel: Optional[PerturbationKernel],
    failure_distance: float,
) -> Tuple[np.ndarray, float, bool]:
    if kernel is None:
        theta = np.asarray(model.draw_from_prior(rng), dtype=float)
    else:
        theta = kernel.draw(rng)

    try:
        d = float(model.simulate_and_reduce(theta, rng))
    except Exception:
        logger.debug("Simulation raised for theta=%s", theta, exc_info=True)
        d = float("nan")

    if not np.isfinite(d):
        return theta, failure_distance, True
    return theta, d, False


def basic_abc(
    model: ABCModel,
    epsilon: float,
    max_iter: int,
    pmc_mode: bool = False,
    weights: Optional[np.ndarray] = None,
    theta_prev: Optional[np.ndarray] = None,
    kernel_covariance: Optional[np.ndarray] = None,
    rng: np.random.Generator | int | None = None,
    failure_distance: float = 1e5,
    draw_jitter: float = 1e-5,
    max_perturb_attempts: int = 10000,
    map_fn: MapFn = map,
    progress: Optional[ProgressFn] = None,
) -> Population:
    """
    Run basic ABC rejection sampling for a fixed number of candidates.

    Args:
        model: Model providing the prior and simulate-and-reduce step
        epsilon: Acceptance tolerance
        max_iter: Number of candidates to draw
        pmc_mode: Draw from the perturbation kernel instead of the prior
        weights: Importance weights of ``theta_prev`` (PMC mode)
        theta_prev: Previous accepted parameters, (n_prev, n_theta) (PMC mode)
        kernel_covariance: Kernel covariance before jitter (PMC mode)
        rng: Generator or seed; one child stream is spawned per candidate
        failure_distance: Distance recorded for failed simulations
        draw_jitter: Diagonal term added to the kernel before drawing
        max_perturb_attempts: Retry cap for non-negative perturbations
        map_fn: ``map``-like callable used to evaluate candidates, e.g. an executor's map
        progress: Called with (done, total) after each candidate

    Returns:
        Population with every candidate, its distance and acceptance flag
    """
    if epsilon < 0:
        raise ValueError(f"epsilon must be non-negative, got {epsilon}")
    if max_iter < 1:
        raise ValueError(f"max_iter must be >= 1, got {max_iter}")

    kernel = None
    if pmc_mode:
        if weights is None or theta_prev is None or kernel_covariance is None:
            raise ValueError("PMC mode requires weights, theta_prev and kernel_covariance")
        theta_prev = as_parameter_matrix(theta_prev, model.n_theta)
        weights = np.asarray(weights, dtype=float)
        if weights.shape != (theta_prev.shape[0],):
            raise ValueError(
                f"Got {weights.size} weights for {theta_prev.shape[0]} previous samples"
            )
        kernel = PerturbationKernel(
            theta_prev=theta_prev,
            weights=weights / weights.sum(),
            covariance=stabilize_covariance(kernel_covariance, draw_jitter),
            max_attempts=max_perturb_attempts,
        )

    streams = spawn_generators(as_generator(rng), max_iter)
    task = partial(
        _evaluate_candidate,
        model=model,
        kernel=kernel,
        failure_distance=failure_distance,
    )

    samples = np.zeros((max_iter, model.n_theta))
    distances = np.zeros(max_iter)
    failed_mask = np.zeros(max_iter, dtype=bool)
    for trial_count, (theta, d, failed) in enumerate(map_fn(task, streams)):
        samples[trial_count] = theta
        distances[trial_count] = d
        failed_mask[trial_count] = failed
        if progress is not None:
            progress(trial_count + 1, max_iter)

    accepted = (distances <= epsilon) & ~failed_mask
    n_failed = int(failed_mask.sum())
    if n_failed:
        logger.info("%d of %d simulations failed and were rejected", n_failed, max_iter)

    return Population(
        samples=read_only(samples),
        distances=read_only(distances),
        accepted=read_only(accepted),
        epsilon=float(epsilon),
        n_failed=n_failed,
    )


run_rejection_abc = basic_abc
