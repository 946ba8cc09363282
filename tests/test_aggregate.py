import numpy as np
import pytest

from pmcabc.analysis.aggregate import posterior_frame, records_to_frame
from pmcabc.calibration import pmc_abc


def test_records_to_frame(two_param_model):
    records = pmc_abc(two_param_model, rng=0, epsilon_0=3.0, steps=3, max_iter=300)
    frame = records_to_frame(records, param_names=["a", "b"])
    assert len(frame) == len(records)
    assert list(frame["step"]) == [r.step for r in records]
    for col in ("epsilon", "acceptance_rate", "eff_sample", "a_mean", "b_std"):
        assert col in frame.columns
    assert frame["a_mean"].iloc[-1] == pytest.approx(records[-1].accepted.posterior_mean()[0])


def test_default_param_names(linear_model):
    records = pmc_abc(linear_model, rng=1, epsilon_0=10.0, steps=2, max_iter=200)
    frame = records_to_frame(records)
    assert "theta_0_mean" in frame.columns
    with pytest.raises(ValueError):
        records_to_frame(records, param_names=["a", "b"])


def test_posterior_frame_weights(linear_model):
    records = pmc_abc(linear_model, rng=2, epsilon_0=10.0, steps=2, max_iter=200)
    frame = posterior_frame(records[-1], param_names=["tau"])
    assert len(frame) == records[-1].n_accepted
    assert frame["weight"].sum() == pytest.approx(1.0)
    assert np.all(frame["distance"] <= records[-1].epsilon)
