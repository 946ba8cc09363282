"""
Importance Weights and Weighted Statistics
===========================================
Reweighting of a PMC population and the weighted moments used to build
the next perturbation kernel.

Parameter matrices are samples-first: shape ``(n_samples, n_theta)``.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from scipy import stats

from pmcabc.calibration.errors import DegenerateWeightsError
from pmcabc.calibration.priors import ParameterPrior, compute_prior_density


def as_parameter_matrix(theta: np.ndarray, n_theta: int | None = None) -> np.ndarray:
    """Coerce samples to ``(n_samples, n_theta)``; 1-D input is one column."""
    theta = np.asarray(theta, dtype=float)
    if theta.ndim == 1:
        if n_theta not in (None, 1):
            raise ValueError(f"1-D samples given for a model with {n_theta} parameters")
        theta = theta.reshape(-1, 1)
    if theta.ndim != 2:
        raise ValueError(f"Expected a 2-D parameter matrix, got shape {theta.shape}")
    if n_theta is not None and theta.shape[1] != n_theta:
        raise ValueError(f"Expected {n_theta} parameters per sample, got {theta.shape[1]}")
    return theta


def stabilize_covariance(covariance: np.ndarray, jitter: float) -> np.ndarray:
    """Add ``jitter`` to the diagonal so the matrix is strictly positive-definite."""
    covariance = np.atleast_2d(np.asarray(covariance, dtype=float))
    return covariance + jitter * np.eye(covariance.shape[0])


def _kernel_densities(
    theta: np.ndarray,
    theta_prev: np.ndarray,
    kernel_covariance: np.ndarray,
) -> np.ndarray:
    """Kernel density of every current sample around every previous sample, shape (n, n_prev)."""
    if theta.shape[1] == 1:
        sd = np.sqrt(kernel_covariance[0, 0])
        return stats.norm.pdf(theta[:, :1], loc=theta_prev[:, 0][np.newaxis, :], scale=sd)

    kernel = stats.multivariate_normal(mean=np.zeros(theta.shape[1]), cov=kernel_covariance)
    columns = [np.atleast_1d(kernel.pdf(theta - center)) for center in theta_prev]
    return np.stack(columns, axis=1)


def calc_weights(
    theta_prev: np.ndarray,
    theta: np.ndarray,
    kernel_covariance: np.ndarray,
    weights: np.ndarray,
    prior: Sequence[ParameterPrior],
) -> np.ndarray:
    """
    Calculate normalized importance weights for a PMC population.

    Each accepted sample gets ``prior(theta_i) / sum_j w_j K(theta_i | theta_prev_j)``
    where ``K`` is the Gaussian perturbation kernel. The prior is the product of
    the independent marginals in ``prior``.

    Args:
        theta_prev: Previous accepted parameters, (n_prev, n_theta)
        theta: Current accepted parameters, (n, n_theta)
        kernel_covariance: Covariance of the kernel that generated ``theta``
        weights: Importance weights of ``theta_prev``
        prior: Marginal priors, one per parameter

    Returns:
        Weights of ``theta``, summing to 1

    Raises:
        DegenerateWeightsError: If the weights cannot be normalized
    """
    n_theta = len(prior)
    theta_prev = as_parameter_matrix(theta_prev, n_theta)
    theta = as_parameter_matrix(theta, n_theta)
    weights = np.asarray(weights, dtype=float)
    kernel_covariance = np.atleast_2d(np.asarray(kernel_covariance, dtype=float))

    if weights.shape != (theta_prev.shape[0],):
        raise ValueError(
            f"Got {weights.shape[0] if weights.ndim else 0} weights for "
            f"{theta_prev.shape[0]} previous samples"
        )
    if kernel_covariance.shape != (n_theta, n_theta):
        raise ValueError(
            f"Kernel covariance has shape {kernel_covariance.shape}, expected {(n_theta, n_theta)}"
        )
    if theta.shape[0] == 0:
        raise DegenerateWeightsError("No accepted samples to reweight")

    prior_density = np.array([compute_prior_density(t, prior) for t in theta])
    mixture_density = _kernel_densities(theta, theta_prev, kernel_covariance) @ weights

    with np.errstate(divide="ignore", invalid="ignore"):
        weights_new = prior_density / mixture_density

    if not np.all(np.isfinite(weights_new)):
        n_bad = int(np.sum(~np.isfinite(weights_new)))
        raise DegenerateWeightsError(
            f"Proposal density vanished for {n_bad} of {theta.shape[0]} accepted samples"
        )
    total = weights_new.sum()
    if total <= 0.0:
        raise DegenerateWeightsError(
            "All importance weights are zero: the kernel has no overlap with the prior"
        )
    return weights_new / total


def weighted_covar(x: np.ndarray, w: np.ndarray) -> np.ndarray | float:
    """
    Weighted covariance of samples with reliability-weight bias correction.

    Args:
        x: 1-D values or a (n_samples, n_theta) matrix
        w: Weights summing to 1, one per sample

    Returns:
        Weighted covariance matrix of x, or weighted variance if x is 1-D.
        A single-sample population yields non-finite entries.
    """
    x = np.asarray(x, dtype=float)
    w = np.asarray(w, dtype=float)
    if w.ndim != 1:
        raise ValueError("Weights must be one-dimensional")

    sumw = w.sum()
    if not np.isclose(sumw, 1.0):
        raise ValueError(f"Weights must sum to 1, got {sumw}")
    if x.shape[0] != w.shape[0]:
        raise ValueError(f"Got {w.shape[0]} weights for {x.shape[0]} samples")

    sum2 = np.sum(w ** 2)
    with np.errstate(divide="ignore", invalid="ignore"):
        if x.ndim == 1:
            xbar = np.sum(w * x)
            var = np.sum(w * (x - xbar) ** 2)
            return float(var * sumw / (sumw * sumw - sum2))

        xbar = w @ x
        dev = x - xbar
        covar = (dev * w[:, np.newaxis]).T @ dev
        return covar * sumw / (sumw * sumw - sum2)


def effective_sample_size(w: np.ndarray) -> float:
    """Effective sample size of importance weights, ``(sum w)^2 / sum w^2``."""
    w = np.asarray(w, dtype=float)
    if w.size == 0:
        return 0.0
    sumw = w.sum()
    sum2 = np.sum(w ** 2)
    return float(sumw * sumw / sum2)
