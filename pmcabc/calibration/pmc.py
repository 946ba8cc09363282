"""
Population Monte Carlo ABC
===========================
Sequence of ABC posterior approximations, each round proposing from a
Gaussian kernel around the previous round's weighted accepted samples.

Per round:
1. Rejection-sample ``max_iter`` candidates (prior in round 1, kernel after)
2. Choose the next epsilon from the round's distances and acceptance rate
3. Reweight the accepted samples and build the next kernel from their
   weighted covariance
4. Record the round and check the stopping rules

A run stops early when the acceptance rate falls below ``min_acc_rate``,
fewer than ``min_samples`` candidates are accepted, or epsilon drops below
the configured floor. The records produced so far are returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Tuple

import numpy as np

from pmcabc.calibration.abc import MapFn, Population, ProgressFn, basic_abc, read_only
from pmcabc.calibration.epsilon import select_epsilon
from pmcabc.calibration.errors import KernelCovarianceError, PMCError
from pmcabc.calibration.model import ABCModel
from pmcabc.calibration.weights import (
    calc_weights,
    effective_sample_size,
    stabilize_covariance,
    weighted_covar,
)
from pmcabc.config import KernelConfig, PMCConfig
from pmcabc.rng import as_generator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AcceptedSet:
    """Accepted samples of a round with their distances and importance weights."""

    theta: np.ndarray  # (count, n_theta)
    distances: np.ndarray
    weights: np.ndarray  # empty when the round was not reweighted

    @property
    def count(self) -> int:
        return int(self.theta.shape[0])

    def _normalized_weights(self) -> np.ndarray:
        if self.weights.size == self.count and self.count > 0:
            return self.weights / self.weights.sum()
        return np.full(self.count, 1.0 / self.count) if self.count else np.zeros(0)

    def posterior_mean(self) -> np.ndarray:
        """Compute weighted posterior mean."""
        if self.count == 0:
            return np.full(self.theta.shape[1], np.nan)
        return self._normalized_weights() @ self.theta

    def posterior_std(self) -> np.ndarray:
        """Compute weighted posterior standard deviation."""
        if self.count == 0:
            return np.full(self.theta.shape[1], np.nan)
        w = self._normalized_weights()
        mean = w @ self.theta
        return np.sqrt(w @ (self.theta - mean) ** 2)

    def credible_interval(self, index: int = 0, level: float = 0.95) -> Tuple[float, float]:
        """Compute credible interval for one parameter from weighted quantiles."""
        if self.count == 0:
            return float("nan"), float("nan")
        values = self.theta[:, index]
        weights = self._normalized_weights()

        sorted_indices = np.argsort(values)
        sorted_values = values[sorted_indices]
        cumsum = np.cumsum(weights[sorted_indices])

        alpha = (1 - level) / 2
        lower_idx = np.searchsorted(cumsum, alpha)
        upper_idx = np.searchsorted(cumsum, 1 - alpha)

        lower = sorted_values[max(0, lower_idx - 1)]
        upper = sorted_values[min(len(sorted_values) - 1, upper_idx)]

        return float(lower), float(upper)


@dataclass(frozen=True)
class StepRecord:
    """Snapshot of one PMC round."""

    step: int
    accepted: AcceptedSet
    distances: np.ndarray  # every candidate of the round
    n_accepted: int
    n_total: int
    epsilon: float  # tolerance used this round
    next_epsilon: float
    kernel_covariance: np.ndarray  # empty when the round was not reweighted
    eff_sample: float

    @property
    def acceptance_rate(self) -> float:
        return self.n_accepted / self.n_total if self.n_total > 0 else 0.0

    @property
    def theta_accepted(self) -> np.ndarray:
        return self.accepted.theta

    @property
    def weights(self) -> np.ndarray:
        return self.accepted.weights


@dataclass(frozen=True)
class _Proposal:
    theta: np.ndarray
    weights: np.ndarray
    kernel_covariance: np.ndarray


def build_kernel_covariance(
    theta: np.ndarray,
    weights: np.ndarray,
    cfg: KernelConfig,
) -> np.ndarray:
    """Scaled weighted covariance of the accepted samples plus diagonal jitter."""
    covar = np.atleast_2d(weighted_covar(theta, weights))
    if not np.all(np.isfinite(covar)):
        raise KernelCovarianceError(
            "Weighted covariance has non-finite entries",
            state={"n_samples": int(theta.shape[0]), "max_weight": float(np.max(weights))},
        )
    return stabilize_covariance(cfg.bandwidth_scale * covar, cfg.covariance_jitter)


def _sample_round(
    model: ABCModel,
    epsilon: float,
    proposal: Optional[_Proposal],
    cfg: PMCConfig,
    rng: np.random.Generator,
    map_fn: MapFn,
    progress: Optional[ProgressFn],
) -> Population:
    pmc_kwargs: dict[str, Any] = {}
    if proposal is not None:
        pmc_kwargs = dict(
            pmc_mode=True,
            weights=proposal.weights,
            theta_prev=proposal.theta,
            kernel_covariance=proposal.kernel_covariance,
        )
    return basic_abc(
        model,
        epsilon=epsilon,
        max_iter=cfg.max_iter,
        rng=rng,
        failure_distance=cfg.failure_distance,
        draw_jitter=cfg.kernel.draw_jitter,
        max_perturb_attempts=cfg.kernel.max_perturb_attempts,
        map_fn=map_fn,
        progress=progress,
        **pmc_kwargs,
    )


def _reweight(
    model: ABCModel,
    population: Population,
    proposal: Optional[_Proposal],
    cfg: PMCConfig,
) -> Tuple[np.ndarray, np.ndarray]:
    """Weights and next kernel for the round, empty when not reweighting."""
    theta = population.theta_accepted
    empty = (np.zeros(0), np.zeros((0, 0)))

    if population.n_accepted < cfg.min_samples:
        return empty

    if proposal is None:
        weights = np.full(theta.shape[0], 1.0 / theta.shape[0])
    elif cfg.sample_only:
        return empty
    else:
        weights = calc_weights(
            proposal.theta,
            theta,
            stabilize_covariance(proposal.kernel_covariance, cfg.kernel.draw_jitter),
            proposal.weights,
            model.prior,
        )

    return weights, build_kernel_covariance(theta, weights, cfg.kernel)


def pmc_abc(
    model: ABCModel,
    cfg: Optional[PMCConfig] = None,
    rng: np.random.Generator | int | None = None,
    *,
    map_fn: MapFn = map,
    on_step: Optional[Callable[[StepRecord], None]] = None,
    progress: Optional[ProgressFn] = None,
    **overrides: Any,
) -> List[StepRecord]:
    """
    Perform a sequence of ABC posterior approximations with PMC-ABC.

    Besides the acceptance-rate and epsilon-floor rules, a run stops once a round
    accepts fewer than ``min_samples`` candidates: too few samples to estimate
    the next kernel covariance.

    Args:
        model: Model providing priors and the simulate-and-reduce step
        cfg: Run configuration; defaults to ``PMCConfig()``
        rng: Generator or seed; falls back to ``cfg.seed``
        map_fn: ``map``-like callable for evaluating candidates within a round
        on_step: Called with each ``StepRecord`` once it is final
        progress: Called with (done, total) per candidate
        **overrides: Top-level ``PMCConfig`` fields, e.g. ``epsilon_0=0.5, steps=20``

    Returns:
        One ``StepRecord`` per completed round

    Raises:
        DegenerateWeightsError: Importance weights collapsed
        KernelCovarianceError: The next kernel could not be built
        PerturbationError: The kernel could not produce a non-negative candidate
    """
    cfg = cfg or PMCConfig()
    if overrides:
        cfg = cfg.with_overrides(**overrides)
    rng = as_generator(rng if rng is not None else cfg.seed)

    records: List[StepRecord] = []
    epsilon = cfg.epsilon_0
    proposal: Optional[_Proposal] = None

    for i_step in range(1, cfg.steps + 1):
        logger.info("Starting step %d", i_step)
        logger.info("epsilon = %g", epsilon)
        state: dict[str, Any] = {"epsilon": epsilon}

        try:
            population = _sample_round(model, epsilon, proposal, cfg, rng, map_fn, progress)
            state.update(n_accepted=population.n_accepted, n_total=population.n_total)
            weights, kernel_covariance = _reweight(model, population, proposal, cfg)
        except PMCError as exc:
            raise exc.at_step(i_step, state)

        accept_rate = population.acceptance_rate
        next_epsilon = select_epsilon(
            population.distances,
            epsilon,
            target_acc_rate=cfg.target_acc_rate,
            current_acc_rate=None if i_step == 1 else accept_rate,
            iteration=i_step,
            total_iterations=cfg.steps,
            cfg=cfg.epsilon,
        )

        accepted = AcceptedSet(
            theta=read_only(population.theta_accepted),
            distances=read_only(population.distances_accepted),
            weights=read_only(weights),
        )
        record = StepRecord(
            step=i_step,
            accepted=accepted,
            distances=population.distances,
            n_accepted=population.n_accepted,
            n_total=population.n_total,
            epsilon=epsilon,
            next_epsilon=next_epsilon,
            kernel_covariance=read_only(kernel_covariance),
            eff_sample=effective_sample_size(weights) if weights.size else float(population.n_accepted),
        )
        records.append(record)
        if on_step is not None:
            on_step(record)

        logger.info("Acceptance Rate = %g", accept_rate)
        logger.info("Current theta = %s", accepted.posterior_mean())

        if weights.size:
            proposal = _Proposal(accepted.theta, weights, kernel_covariance)

        if accept_rate < cfg.min_acc_rate:
            logger.info("Stopping: acceptance rate %g below %g", accept_rate, cfg.min_acc_rate)
            break
        if population.n_accepted < cfg.min_samples:
            logger.info(
                "Stopping: %d accepted samples, fewer than %d", population.n_accepted, cfg.min_samples
            )
            break
        if next_epsilon < cfg.epsilon.floor:
            logger.info("Stopping: epsilon %g below floor %g", next_epsilon, cfg.epsilon.floor)
            break

        epsilon = next_epsilon

    return records


run_pmc_abc = pmc_abc


def final_posterior(records: Iterable[StepRecord]) -> AcceptedSet:
    """Accepted set of the last round."""
    records = list(records)
    if not records:
        raise ValueError("No PMC records")
    return records[-1].accepted
