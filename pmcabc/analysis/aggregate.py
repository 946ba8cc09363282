from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from pmcabc.calibration.pmc import StepRecord


def _param_names(n_theta: int, param_names: Optional[Sequence[str]]) -> List[str]:
    if param_names is None:
        return [f"theta_{i}" for i in range(n_theta)]
    if len(param_names) != n_theta:
        raise ValueError(f"Got {len(param_names)} parameter names for {n_theta} parameters")
    return list(param_names)


def records_to_frame(
    records: Iterable[StepRecord],
    param_names: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """One row per PMC step with tolerance, acceptance and posterior moments."""
    rows = []
    for record in records:
        names = _param_names(record.theta_accepted.shape[1], param_names)
        row = {
            "step": record.step,
            "epsilon": record.epsilon,
            "next_epsilon": record.next_epsilon,
            "n_accepted": record.n_accepted,
            "n_total": record.n_total,
            "acceptance_rate": record.acceptance_rate,
            "eff_sample": record.eff_sample,
            "reweighted": bool(record.weights.size),
        }
        means = record.accepted.posterior_mean()
        stds = record.accepted.posterior_std()
        for name, mean, std in zip(names, means, stds):
            row[f"{name}_mean"] = float(mean)
            row[f"{name}_std"] = float(std)
        rows.append(row)
    return pd.DataFrame(rows)


def posterior_frame(
    record: StepRecord,
    param_names: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Accepted samples of one step with their distances and weights."""
    theta = record.theta_accepted
    names = _param_names(theta.shape[1], param_names)
    frame = pd.DataFrame(np.asarray(theta), columns=names)
    frame["distance"] = np.asarray(record.accepted.distances)
    if record.weights.size == record.n_accepted:
        frame["weight"] = np.asarray(record.weights)
    else:
        frame["weight"] = 1.0 / max(record.n_accepted, 1)
    frame.insert(0, "step", record.step)
    return frame
