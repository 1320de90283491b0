"""Exact jump-process kernel functions for JAX.

Implements Gillespie's direct method with ``jax.lax.while_loop``. The rate
function must be JAX-traceable; it is evaluated once per step on the
current state.
"""

from __future__ import annotations

import dataclasses
import jax
import jax.numpy as jnp
import jax.random as jrandom
from typing import Tuple

from ..runtime import stack_rates
from .runtime import (
    JumpProcessRuntime,
    JumpProcessState,
    RUNNING,
    HORIZON,
    EXHAUSTED,
    INVALID_RATE,
    BUFFER_FULL,
)


def evaluate_rates(
    runtime: JumpProcessRuntime,
    counts: jax.Array,
    t: jax.Array,
) -> jax.Array:
    """Evaluate the per-transition rate vector at a state.

    Args:
        runtime: Jump process configuration
        counts: Current state vector
        t: Current time

    Returns:
        Rate vector in transition order
    """
    dtype = jnp.result_type(float)
    state = runtime.layout.as_mapping(counts.astype(dtype))
    return stack_rates(runtime.rate_fn(state, runtime.params, t), dtype=dtype)


def transition_index(rates: jax.Array, u: jax.Array) -> jax.Array:
    """Inverse-CDF lookup of a transition for a uniform draw ``u`` in [0, 1).

    The draw is scaled by the last cumulative rate, never by a separately
    summed total, and the result is clamped to the last positive-rate
    transition. A zero-rate transition can never be selected.
    """
    cumulative = jnp.cumsum(rates)
    index = jnp.searchsorted(cumulative, u * cumulative[-1], side='right')
    positive = jnp.where(rates > 0, jnp.arange(rates.shape[0]), 0)
    return jnp.minimum(index, jnp.max(positive))


def select_transition(rates: jax.Array, key: jax.Array) -> jax.Array:
    """Categorical draw of a transition index proportional to its rate."""
    return transition_index(rates, jrandom.uniform(key, dtype=rates.dtype))


def step(
    runtime: JumpProcessRuntime,
    state: JumpProcessState,
) -> JumpProcessState:
    """Advance the direct method by one event.

    Evaluates rates at the current state, draws the waiting time and the
    transition, and records the event unless the run terminates.

    Args:
        runtime: Jump process configuration
        state: Current loop state

    Returns:
        Updated loop state. On termination ``t`` and ``counts`` are left at
        the last recorded event, so an invalid rate reports the offending
        state and time.
    """
    rates = evaluate_rates(runtime, state.counts, state.t)
    total = jnp.sum(rates)

    key, wait_key, pick_key = jrandom.split(state.rng_key, 3)
    dt = jrandom.exponential(wait_key, dtype=rates.dtype) / total
    # a wait below half an ulp of t would otherwise repeat the event time
    t_next = jnp.maximum(state.t + dt, jnp.nextafter(state.t, jnp.inf))

    index = select_transition(rates, pick_key)
    counts_next = state.counts + runtime.transitions[index]

    invalid = jnp.logical_or(
        jnp.any(rates < 0),
        jnp.logical_not(jnp.all(jnp.isfinite(rates))),
    )
    status = jnp.where(
        invalid, INVALID_RATE,
        jnp.where(
            total <= 0, EXHAUSTED,
            jnp.where(
                t_next > runtime.horizon, HORIZON,
                jnp.where(state.n_events >= runtime.max_events, BUFFER_FULL, RUNNING)
            )
        )
    ).astype(jnp.int32)

    total_rates = state.total_rates.at[state.n_events].set(total)

    def record(_):
        slot = state.n_events + 1
        return dataclasses.replace(
            state,
            t=t_next,
            counts=counts_next,
            rng_key=key,
            n_events=slot,
            times=state.times.at[slot].set(t_next),
            states=state.states.at[slot].set(counts_next),
            total_rates=total_rates,
            status=status,
        )

    def stop(_):
        return dataclasses.replace(
            state,
            rng_key=key,
            total_rates=total_rates,
            status=status,
        )

    return jax.lax.cond(status == RUNNING, record, stop, None)


def simulate(
    runtime: JumpProcessRuntime,
    initial_counts: jax.Array,
    key: jax.Array,
) -> JumpProcessState:
    """Run the direct method from t=0 until the horizon or termination.

    The path is a pure function of (runtime, initial_counts, key).

    Args:
        runtime: Jump process configuration
        initial_counts: Initial state vector
        key: JAX PRNG key

    Returns:
        Final loop state; ``times[:n_events + 1]`` and
        ``states[:n_events + 1]`` hold the trajectory and ``status`` the
        termination code.
    """
    state = JumpProcessState.initialize(initial_counts, key, runtime.max_events)

    return jax.lax.while_loop(
        lambda s: s.status == RUNNING,
        lambda s: step(runtime, s),
        state,
    )


def trajectory_arrays(final: JumpProcessState) -> Tuple[jax.Array, jax.Array, jax.Array]:
    """Slice the recorded (times, states, total_rates) out of the buffers."""
    n = int(final.n_events) + 1
    return final.times[:n], final.states[:n], final.total_rates[:n]
