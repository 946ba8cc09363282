import logging

import numpy as np
import pytest

from pmcabc.calibration import compute_adaptive_alpha, select_epsilon
from pmcabc.config import EpsilonConfig


def test_first_round_uses_median():
    distances = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
    assert select_epsilon(distances, 10.0) == pytest.approx(3.0)


def test_invalid_distances_are_ignored():
    distances = np.array([1.0, 2.0, 3.0, np.nan, 1e5, 50.0])
    assert select_epsilon(distances, 10.0) == pytest.approx(2.0)


def test_tightening_never_below_q25():
    rng = np.random.default_rng(0)
    distances = rng.uniform(0.0, 8.0, size=500)
    q25 = np.percentile(distances, 25)
    new = select_epsilon(
        distances, 5.0, target_acc_rate=0.01, current_acc_rate=0.5,
        iteration=2, total_iterations=10,
    )
    assert new >= q25
    assert new < 5.0


def test_tightening_by_alpha_when_q25_is_lower():
    distances = np.linspace(0.0, 1.0, 101)
    new = select_epsilon(
        distances, 5.0, target_acc_rate=0.01, current_acc_rate=0.5,
        iteration=5, total_iterations=10,
    )
    alpha = compute_adaptive_alpha(5, 0.5, 0.01, total_iterations=10)
    assert new == pytest.approx(5.0 * (1 - alpha))


def test_relaxing_never_above_q75():
    rng = np.random.default_rng(1)
    distances = rng.uniform(0.0, 8.0, size=500)
    q75 = np.percentile(distances, 75)
    new = select_epsilon(
        distances, 4.0, target_acc_rate=0.2, current_acc_rate=0.01,
        iteration=2, total_iterations=10,
    )
    assert new <= q75
    assert new > 4.0


def test_holds_epsilon_near_target():
    distances = np.linspace(0.0, 5.0, 50)
    new = select_epsilon(distances, 2.0, target_acc_rate=0.1, current_acc_rate=0.105)
    assert new == 2.0


def test_zero_acceptance_relaxes():
    distances = np.linspace(1.0, 5.0, 50)
    new = select_epsilon(distances, 0.5, target_acc_rate=0.1, current_acc_rate=0.0, iteration=3, total_iterations=10)
    assert new > 0.5


def test_no_valid_distances_keeps_epsilon(caplog):
    distances = np.array([np.nan, np.inf, 1e5])
    with caplog.at_level(logging.WARNING):
        new = select_epsilon(distances, 0.7, current_acc_rate=0.5)
    assert new == 0.7
    assert "No valid distances" in caplog.text


def test_distance_cutoff_is_configurable():
    distances = np.array([5.0, 15.0, 25.0])
    cfg = EpsilonConfig(distance_cutoff=100.0)
    assert select_epsilon(distances, 1.0, cfg=cfg) == pytest.approx(15.0)


def test_alpha_decays_over_run():
    # acceptance near target: alpha is halved base, floored at alpha_min
    early = compute_adaptive_alpha(1, 0.011, 0.01, total_iterations=10)
    late = compute_adaptive_alpha(9, 0.011, 0.01, total_iterations=10)
    assert early > late
    assert late == pytest.approx(0.1)


def test_alpha_scaling():
    base = 0.9 * 0.5 + 0.1 * 0.5
    assert compute_adaptive_alpha(5, 0.015, 0.01, total_iterations=10) == pytest.approx(base)
    assert compute_adaptive_alpha(5, 0.5, 0.01, total_iterations=10) == pytest.approx(min(0.9, base * 1.5))
    assert compute_adaptive_alpha(5, 0.0105, 0.01, total_iterations=10) == pytest.approx(max(0.1, base * 0.5))
    for iteration in range(0, 12):
        for rate in (0.0, 0.01, 0.02, 0.5):
            alpha = compute_adaptive_alpha(iteration, rate, 0.01, total_iterations=10)
            assert 0.1 <= alpha <= 0.9


def test_non_positive_target_rate_rejected():
    with pytest.raises(ValueError):
        compute_adaptive_alpha(1, 0.1, 0.0)
    with pytest.raises(ValueError):
        select_epsilon(np.array([0.1, 0.2]), 1.0, target_acc_rate=0.0, current_acc_rate=0.1)
