"""Runtime structures for exact jump-process simulation.

This module provides Penzai structs for the JAX Gillespie kernel.
"""

from __future__ import annotations

from typing import Any, Callable
import dataclasses
import jax
import jax.numpy as jnp
from penzai.core import struct

from ..runtime import StateLayout


# Loop status codes carried through jax.lax.while_loop
RUNNING = 0
HORIZON = 1
EXHAUSTED = 2
INVALID_RATE = 3
BUFFER_FULL = 4


@struct.pytree_dataclass
class JumpProcessRuntime(struct.Struct):
    """JAX-compatible runtime structure for a birth-death style jump process.

    Attributes:
        transitions: (n_transitions, n_variables) int32 delta vectors
        params: User parameters passed to rate_fn (pytree)
        horizon: Time horizon T
        rate_fn: (state, params, t) -> rates, static
        layout: Variable names of the state vector, static
        max_events: Event buffer size, static
    """
    transitions: jax.Array
    params: Any
    horizon: jax.Array
    rate_fn: Callable = dataclasses.field(metadata={'pytree_node': False})
    layout: StateLayout = dataclasses.field(metadata={'pytree_node': False})
    max_events: int = dataclasses.field(default=100_000, metadata={'pytree_node': False})

    @property
    def n_transitions(self) -> int:
        return int(self.transitions.shape[0])


@struct.pytree_dataclass
class JumpProcessState(struct.Struct):
    """Loop state of the direct-method kernel.

    Event buffers are preallocated with ``max_events + 1`` slots; slot 0
    holds the initial state. Unused time slots are padded with inf.

    Attributes:
        t: Current time
        counts: Current state vector (int32)
        rng_key: JAX random number generator key
        n_events: Number of events recorded so far
        times: Recorded event times
        states: Recorded post-event states
        total_rates: Total rate evaluated at each recorded state
        status: Loop status code (RUNNING, HORIZON, ...)
    """
    t: jax.Array
    counts: jax.Array
    rng_key: jax.Array
    n_events: jax.Array
    times: jax.Array
    states: jax.Array
    total_rates: jax.Array
    status: jax.Array

    @classmethod
    def initialize(
        cls,
        initial_counts: jax.Array,
        rng_key: jax.Array,
        max_events: int,
        t0: float = 0.0,
    ) -> 'JumpProcessState':
        """Create the loop state with the initial state recorded at t0."""
        dtype = jnp.result_type(float)
        counts = jnp.asarray(initial_counts, dtype=jnp.int32)
        times = jnp.full(max_events + 1, jnp.inf, dtype=dtype).at[0].set(t0)
        states = jnp.zeros((max_events + 1, counts.shape[0]), dtype=jnp.int32)
        return cls(
            t=jnp.array(t0, dtype=dtype),
            counts=counts,
            rng_key=rng_key,
            n_events=jnp.array(0, dtype=jnp.int32),
            times=times,
            states=states.at[0].set(counts),
            total_rates=jnp.zeros(max_events + 1, dtype=dtype),
            status=jnp.array(RUNNING, dtype=jnp.int32),
        )
