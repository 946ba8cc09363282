import numpy as np
import pytest

from pmcabc.calibration import ABCModel, uniform_prior


class LinearGaussianModel(ABCModel):
    """Distance is |tau - true_tau| plus half-normal noise."""

    def __init__(self, true_tau=20.0, noise=0.5, low=1.0, high=100.0):
        self.prior = [uniform_prior("tau", low, high)]
        self.true_tau = true_tau
        self.noise = noise

    def simulate_and_reduce(self, theta, rng):
        return abs(theta[0] - self.true_tau) + abs(rng.normal(0.0, self.noise))


class TwoParameterModel(ABCModel):
    def __init__(self, truth=(3.0, 7.0)):
        self.prior = [uniform_prior("a", 0.0, 10.0), uniform_prior("b", 0.0, 10.0)]
        self.truth = np.array(truth)

    def simulate_and_reduce(self, theta, rng):
        return float(np.linalg.norm(theta - self.truth) + abs(rng.normal(0.0, 0.1)))


class FlakyModel(LinearGaussianModel):
    """Fails above tau=50: NaN between 50 and 75, raises above."""

    def simulate_and_reduce(self, theta, rng):
        if theta[0] > 75.0:
            raise RuntimeError("solver did not converge")
        if theta[0] > 50.0:
            return float("nan")
        return super().simulate_and_reduce(theta, rng)


@pytest.fixture
def linear_model():
    return LinearGaussianModel()


@pytest.fixture
def two_param_model():
    return TwoParameterModel()


@pytest.fixture
def flaky_model():
    return FlakyModel()
