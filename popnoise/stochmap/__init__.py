"""Recursive stochastic-map module.

This module provides configuration, runtime structures and JAX kernels for
discrete-time maps driven by additive Gaussian noise, including vectorised
replicate ensembles.
"""

from .config import StochasticMapConfig, StochasticMapConfigOutput
from .runtime import StochasticMapRuntime, StochasticMapState, CLAMP_MODES
from .kernel import (
    drift,
    noise_scale,
    apply_clamp,
    out_of_domain,
    step,
    simulate,
    replicate_keys,
    iter_ensemble_batches,
    simulate_ensemble,
    first_violation,
)

__all__ = [
    'StochasticMapConfig',
    'StochasticMapConfigOutput',
    'StochasticMapRuntime',
    'StochasticMapState',
    'CLAMP_MODES',
    'drift',
    'noise_scale',
    'apply_clamp',
    'out_of_domain',
    'step',
    'simulate',
    'replicate_keys',
    'iter_ensemble_batches',
    'simulate_ensemble',
    'first_violation',
]
