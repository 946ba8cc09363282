import numpy as np
import pytest

from pmcabc.calibration import (
    ParameterPrior,
    SimulationModel,
    compute_prior_density,
    compute_prior_probability,
    get_distance,
    linear_distance,
    uniform_prior,
)


def test_prior_sampling_in_support():
    rng = np.random.default_rng(0)
    priors = [
        uniform_prior("tau", 1.0, 100.0),
        ParameterPrior("rate", "loguniform", (0.001, 0.1)),
        ParameterPrior("p", "beta", (4, 3)),
        ParameterPrior("scale", "halfnormal", (2.0,)),
    ]
    assert np.all((priors[0].sample(rng, 100) >= 1.0) & (priors[0].sample(rng, 100) <= 100.0))
    assert np.all((priors[1].sample(rng, 100) >= 0.001) & (priors[1].sample(rng, 100) <= 0.1))
    assert np.all((priors[2].sample(rng, 100) > 0) & (priors[2].sample(rng, 100) < 1))
    assert np.all(priors[3].sample(rng, 100) >= 0)


def test_unknown_distribution():
    with pytest.raises(ValueError):
        ParameterPrior("x", "cauchy", (0.0, 1.0))


def test_joint_density_is_product_of_marginals():
    priors = [uniform_prior("a", 0.0, 2.0), ParameterPrior("b", "normal", (0.0, 1.0))]
    density = compute_prior_density(np.array([1.0, 0.0]), priors)
    assert density == pytest.approx(0.5 / np.sqrt(2 * np.pi))
    assert compute_prior_probability(np.array([1.0, 0.0]), priors) == pytest.approx(np.log(density))
    assert compute_prior_density(np.array([3.0, 0.0]), priors) == 0.0


def test_joint_density_dimension_mismatch():
    with pytest.raises(ValueError):
        compute_prior_density(np.array([1.0]), [uniform_prior("a", 0, 1), uniform_prior("b", 0, 1)])


def test_simulation_model_pipeline():
    def simulator(theta, rng):
        return rng.normal(theta[0], 1.0, size=(20, 100))

    def summary(data):
        return data.mean(axis=1)

    observed = np.full(20, 5.0)
    model = SimulationModel([uniform_prior("mu", 0.0, 10.0)], simulator, summary, observed, distance="linear")
    rng = np.random.default_rng(1)
    near = model.simulate_and_reduce(np.array([5.0]), rng)
    far = model.simulate_and_reduce(np.array([9.0]), rng)
    assert near < far
    assert model.n_theta == 1
    assert model.param_names == ["mu"]
    theta = model.draw_from_prior(rng)
    assert theta.shape == (1,)
    assert model.prior_density(theta) == pytest.approx(0.1)


def test_distances():
    a = np.array([1.0, 2.0, 4.0])
    b = np.array([1.0, 1.0, 2.0])
    assert get_distance("euclidean")(a, b) == pytest.approx(np.sqrt(5.0))
    assert get_distance("manhattan")(a, b) == pytest.approx(3.0)
    assert get_distance("max")(a, b) == pytest.approx(2.0)
    assert linear_distance(a, b) == pytest.approx(5.0 / 3.0)
    assert get_distance("logarithmic")(a, a) == 0.0
    with pytest.raises(ValueError):
        get_distance("cosine")
    with pytest.raises(ValueError):
        linear_distance(a, b[:2])
