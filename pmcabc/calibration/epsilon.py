"""
Adaptive tolerance schedule.

The next epsilon is chosen from the current round's distance distribution
and how far the realized acceptance rate is from the target.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from pmcabc.config import EpsilonConfig

logger = logging.getLogger(__name__)


def compute_adaptive_alpha(
    iteration: int,
    current_acc_rate: float,
    target_acc_rate: float,
    alpha_max: float = 0.9,
    alpha_min: float = 0.1,
    total_iterations: int = 100,
) -> float:
    """
    Adaptation step size for the tolerance update.

    Decays linearly from ``alpha_max`` to ``alpha_min`` over the run, then is
    scaled up when the acceptance rate is far from target (relative error
    above 2) and scaled down when it is close (relative error below 0.2).
    """
    if target_acc_rate <= 0:
        raise ValueError(f"target_acc_rate must be positive, got {target_acc_rate}")
    progress = min(max(iteration / total_iterations, 0.0), 1.0)
    base_alpha = alpha_max * (1 - progress) + alpha_min * progress

    acc_rate_diff = abs(current_acc_rate - target_acc_rate) / target_acc_rate

    if acc_rate_diff > 2.0:
        alpha = min(alpha_max, base_alpha * 1.5)
    elif acc_rate_diff < 0.2:
        alpha = max(alpha_min, base_alpha * 0.5)
    else:
        alpha = base_alpha

    return alpha


def valid_distances(distances: np.ndarray, cutoff: float) -> np.ndarray:
    """Finite distances below ``cutoff``."""
    distances = np.asarray(distances, dtype=float)
    return distances[np.isfinite(distances) & (distances < cutoff)]


def select_epsilon(
    distances: np.ndarray,
    current_epsilon: float,
    target_acc_rate: float = 0.01,
    current_acc_rate: Optional[float] = None,
    iteration: int = 1,
    total_iterations: int = 100,
    cfg: Optional[EpsilonConfig] = None,
) -> float:
    """
    Propose the tolerance for the next round.

    With no acceptance-rate history (``current_acc_rate is None``) this is the
    median of the valid distances. Otherwise epsilon shrinks when acceptance
    is too high, never below the 25th percentile, and grows when acceptance
    is too low, never above the 75th percentile.

    If no distance survives filtering the current epsilon is returned.
    """
    if target_acc_rate <= 0:
        raise ValueError(f"target_acc_rate must be positive, got {target_acc_rate}")
    cfg = cfg or EpsilonConfig()
    valid = valid_distances(distances, cfg.distance_cutoff)

    if valid.size == 0:
        logger.warning("No valid distances for epsilon selection; keeping epsilon = %g", current_epsilon)
        return current_epsilon

    q25, q50, q75 = np.percentile(valid, [25, 50, 75])

    if current_acc_rate is None:
        return float(q50)

    alpha = compute_adaptive_alpha(
        iteration,
        current_acc_rate,
        target_acc_rate,
        alpha_max=cfg.alpha_max,
        alpha_min=cfg.alpha_min,
        total_iterations=total_iterations,
    )

    if current_acc_rate > target_acc_rate * (1.0 + cfg.tighten_tolerance):
        new_epsilon = max(q25, current_epsilon * (1.0 - alpha))
    elif current_acc_rate < target_acc_rate * (1.0 - cfg.relax_tolerance):
        new_epsilon = min(q75, current_epsilon * (1.0 + alpha))
    else:
        new_epsilon = current_epsilon

    logger.debug(
        "epsilon %g -> %g (alpha=%.3f, acc_rate=%.4f, q25=%g, q75=%g)",
        current_epsilon, new_epsilon, alpha, current_acc_rate, q25, q75,
    )
    return float(new_epsilon)
