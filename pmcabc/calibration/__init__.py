"""
Likelihood-free Bayesian Calibration
=====================================
Approximate Bayesian Computation (ABC) with Population Monte Carlo (PMC).

Key components:
1. Priors: Independent marginal priors per parameter
2. Model interface: Draw from prior, simulate and reduce to a distance
3. Rejection sampling: One population of candidates against a tolerance
4. PMC-ABC: Sequential importance sampling with adaptive tolerance

References:
- Beaumont, M. A., et al. (2009). Adaptive approximate Bayesian computation
- Sisson, S. A., et al. (2007). Sequential Monte Carlo without likelihoods
"""

from pmcabc.calibration.priors import (
    ParameterPrior,
    uniform_prior,
    sample_from_priors,
    compute_prior_density,
    compute_prior_probability,
)

from pmcabc.calibration.model import (
    ABCModel,
    SimulationModel,
)

from pmcabc.calibration.distances import (
    euclidean_distance,
    manhattan_distance,
    max_distance,
    linear_distance,
    logarithmic_distance,
    get_distance,
)

from pmcabc.calibration.errors import (
    PMCError,
    DegenerateWeightsError,
    KernelCovarianceError,
    PerturbationError,
)

from pmcabc.calibration.abc import (
    Population,
    basic_abc,
    run_rejection_abc,
    draw_theta_pmc,
)

from pmcabc.calibration.weights import (
    calc_weights,
    weighted_covar,
    effective_sample_size,
    stabilize_covariance,
)

from pmcabc.calibration.epsilon import (
    select_epsilon,
    compute_adaptive_alpha,
)

from pmcabc.calibration.pmc import (
    AcceptedSet,
    StepRecord,
    pmc_abc,
    run_pmc_abc,
    build_kernel_covariance,
    final_posterior,
)

__all__ = [
    "ParameterPrior",
    "uniform_prior",
    "sample_from_priors",
    "compute_prior_density",
    "compute_prior_probability",
    "ABCModel",
    "SimulationModel",
    "euclidean_distance",
    "manhattan_distance",
    "max_distance",
    "linear_distance",
    "logarithmic_distance",
    "get_distance",
    "PMCError",
    "DegenerateWeightsError",
    "KernelCovarianceError",
    "PerturbationError",
    "Population",
    "basic_abc",
    "run_rejection_abc",
    "draw_theta_pmc",
    "calc_weights",
    "weighted_covar",
    "effective_sample_size",
    "stabilize_covariance",
    "select_epsilon",
    "compute_adaptive_alpha",
    "AcceptedSet",
    "StepRecord",
    "pmc_abc",
    "run_pmc_abc",
    "build_kernel_covariance",
    "final_posterior",
]
