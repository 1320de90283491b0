"""Runtime structures for recursive stochastic maps with Penzai/JAX.

This module provides JAX-compatible runtime structures for discrete-time
maps driven by additive Gaussian perturbations.
"""

from __future__ import annotations

from typing import Any, Callable, Optional
import dataclasses
import jax
import jax.numpy as jnp
from penzai.core import struct

from ..runtime import StateLayout


CLAMP_MODES = ('none', 'floor', 'reflect')


@struct.pytree_dataclass
class StochasticMapRuntime(struct.Struct):
    """Runtime parameters for a recursive stochastic map.

    Per-variable arrays are in layout order. Callables, the layout, the
    clamping mode and the trajectory length are static metadata.

    Attributes:
        params: User parameters passed to drift_fn and sigma_fn (pytree)
        sigma: Constant noise standard deviation per variable
        floor: Clamping floor per variable
        lower: Lower domain bound per variable (-inf if unbounded)
        upper: Upper domain bound per variable (inf if unbounded)
        drift_fn: (state, params, t) -> {name: pre-noise next value}
        layout: Variable names of the state vector
        clamp: Clamping policy, one of CLAMP_MODES
        n_steps: Trajectory length including the initial state
        sigma_fn: Optional (state, params, t) -> {name: std}, overrides sigma
    """
    params: Any
    sigma: jax.Array
    floor: jax.Array
    lower: jax.Array
    upper: jax.Array
    drift_fn: Callable = dataclasses.field(metadata={'pytree_node': False})
    layout: StateLayout = dataclasses.field(metadata={'pytree_node': False})
    clamp: str = dataclasses.field(default='none', metadata={'pytree_node': False})
    n_steps: int = dataclasses.field(default=1, metadata={'pytree_node': False})
    sigma_fn: Optional[Callable] = dataclasses.field(
        default=None, metadata={'pytree_node': False}
    )


@struct.pytree_dataclass
class StochasticMapState(struct.Struct):
    """Current state of a stepped map simulation.

    Attributes:
        values: Current state vector
        t: Step index of the current state
        rng_key: JAX PRNG key for the next step
    """
    values: jax.Array
    t: jax.Array
    rng_key: jax.Array

    @classmethod
    def initialize(cls, initial_values: jax.Array, seed: int = 0) -> 'StochasticMapState':
        """Create a state at step 0."""
        return cls(
            values=jnp.asarray(initial_values, dtype=jnp.result_type(float)),
            t=jnp.array(0, dtype=jnp.int32),
            rng_key=jax.random.PRNGKey(seed),
        )
