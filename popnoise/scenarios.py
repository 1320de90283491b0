"""Ready-made population models.

Each factory returns a validated config whose rate or drift function is a
plain JAX-traceable callable. The formulas live here, not in the engines.
"""

from __future__ import annotations

from typing import Optional
import math
import jax.numpy as jnp

from .jumpprocess.config import JumpProcessConfig
from .stochmap.config import StochasticMapConfig


__all__ = [
    'patch_occupancy',
    'patch_occupancy_rates',
    'logistic_map',
    'logistic_drift',
    'logistic_noise_equilibrium',
    'consumer_resource_map',
    'consumer_resource_drift',
    'consumer_resource_equilibrium',
    'grazing_map',
    'grazing_drift',
]


def patch_occupancy_rates(state, params, t):
    """Colonisation c·n·(1 - n/N) and extinction e·n of occupied patches."""
    n = state['n']
    return [params['c'] * n * (1 - n / params['N']), params['e'] * n]


def patch_occupancy(
    n0: int = 50,
    c: float = 1.0,
    e: float = 0.2,
    N: int = 100,
    horizon: float = 30.0,
    seed: Optional[int] = 1234,
    max_events: int = 100_000,
) -> JumpProcessConfig:
    """Levins metapopulation as a birth-death jump process on n in [0, N]."""
    return JumpProcessConfig(
        initial_state={'n': n0},
        transitions=[{'n': 1}, {'n': -1}],
        rate_fn=patch_occupancy_rates,
        params={'c': c, 'e': e, 'N': N},
        horizon=horizon,
        seed=seed,
        max_events=max_events,
    )


def logistic_drift(state, params, t):
    x = state['x']
    return {'x': x + params['r'] * x * (1 - x / params['K'])}


def logistic_map(
    x0: float = 1.0,
    r: float = 0.35,
    K: float = 1.0,
    sigma: float = 0.15,
    n_steps: int = 500,
    seed: Optional[int] = None,
    clamp: str = 'floor',
) -> StochasticMapConfig:
    """Discrete logistic growth with additive noise, floored at zero."""
    return StochasticMapConfig(
        initial_state={'x': x0},
        n_steps=n_steps,
        drift_fn=logistic_drift,
        params={'r': r, 'K': K},
        noise=sigma,
        clamp=clamp,
        seed=seed,
    )


def logistic_noise_equilibrium(sigma: float, K: float = 1.0) -> float:
    """Stationary mean (1 + sqrt(1 - 8σ²/K²))·K/2 of the noisy logistic map.

    Raises:
        ValueError: If the noise is too strong for a stationary state
            (8σ² > K²)
    """
    disc = 1.0 - 8.0 * sigma ** 2 / K ** 2
    if disc < 0:
        raise ValueError(f"No stationary mean for sigma={sigma}, K={K}")
    return K * (1.0 + math.sqrt(disc)) / 2.0


def consumer_resource_drift(state, params, t):
    """Logistic resource R grazed by consumer C (mass-action uptake)."""
    R, C = state['R'], state['C']
    uptake = params['b'] * R * C
    return {
        'R': R + params['r'] * R * (1 - R / params['K']) - uptake,
        'C': C + params['c'] * uptake - params['d'] * C,
    }


def consumer_resource_equilibrium(r=0.2, K=10.0, b=0.1, c=0.5, d=0.1):
    """Interior fixed point (R*, C*) of the consumer-resource map."""
    R = d / (c * b)
    return R, r * (1 - R / K) / b


def consumer_resource_map(
    R0: float = 2.5,
    C0: float = 1.5,
    r: float = 0.2,
    K: float = 10.0,
    b: float = 0.1,
    c: float = 0.5,
    d: float = 0.1,
    sigma: float = 0.02,
    n_steps: int = 1000,
    seed: Optional[int] = None,
) -> StochasticMapConfig:
    """Coupled prey/predator map with a stable focus.

    With the defaults the fixed point (2, 1.6) is a stable focus, so noise
    sustains quasi-cycles around it.
    """
    return StochasticMapConfig(
        initial_state={'R': R0, 'C': C0},
        n_steps=n_steps,
        drift_fn=consumer_resource_drift,
        params={'r': r, 'K': K, 'b': b, 'c': c, 'd': d},
        noise=sigma,
        clamp='floor',
        seed=seed,
    )


def grazing_drift(state, params, t):
    """Logistic vegetation minus sigmoidal grazing a·x^q/(x^q + h^q).

    Grazing pressure ramps linearly from ``a`` to ``a_end`` over
    ``ramp_steps`` steps.
    """
    x = state['x']
    progress = jnp.clip(t / params['ramp_steps'], 0.0, 1.0)
    a = params['a'] + (params['a_end'] - params['a']) * progress
    xq = x ** params['q']
    grazing = a * xq / (xq + params['h'] ** params['q'])
    return {'x': x + params['r'] * x * (1 - x / params['K']) - grazing}


def grazing_map(
    x0: float = 8.0,
    r: float = 1.0,
    K: float = 10.0,
    a: float = 1.0,
    a_end: Optional[float] = None,
    h: float = 1.0,
    q: float = 2.0,
    sigma: float = 0.1,
    n_steps: int = 1000,
    seed: Optional[int] = None,
    clamp: str = 'floor',
) -> StochasticMapConfig:
    """Overgrazed vegetation, optionally ramped towards its tipping point.

    Without ``a_end`` the grazing pressure is constant. With q=2 and the
    default r, K, h the vegetated state disappears near a ≈ 2.6.
    """
    return StochasticMapConfig(
        initial_state={'x': x0},
        n_steps=n_steps,
        drift_fn=grazing_drift,
        params={
            'r': r,
            'K': K,
            'a': a,
            'a_end': a if a_end is None else a_end,
            'h': h,
            'q': q,
            'ramp_steps': max(n_steps - 1, 1),
        },
        noise=sigma,
        clamp=clamp,
        seed=seed,
        domain={'x': (0.0, None)},
    )
