"""Recursive stochastic-map kernel functions for JAX.

Each step computes x[t+1] = clamp(drift(x[t]) + sigma * N(0, 1)). All
variables are updated synchronously from the same prior state, and the
clamped value is what the next drift evaluation sees.
"""

from __future__ import annotations

from typing import Iterator, Optional, Tuple
import jax
import jax.numpy as jnp
import jax.random as jrandom
import numpy as np

from ..runtime import stack_outputs
from .runtime import StochasticMapRuntime


def drift(
    runtime: StochasticMapRuntime,
    values: jax.Array,
    t: jax.Array,
) -> jax.Array:
    """Deterministic next state for every variable, before noise."""
    state = runtime.layout.as_mapping(values)
    outputs = runtime.drift_fn(state, runtime.params, t)
    return stack_outputs(outputs, runtime.layout, 'drift_fn', dtype=values.dtype)


def noise_scale(
    runtime: StochasticMapRuntime,
    values: jax.Array,
    t: jax.Array,
) -> jax.Array:
    """Noise standard deviation per variable at this step.

    A negative or non-finite sigma_fn output becomes NaN, so the step is
    reported as a domain violation.
    """
    if runtime.sigma_fn is None:
        return runtime.sigma.astype(values.dtype)
    state = runtime.layout.as_mapping(values)
    outputs = runtime.sigma_fn(state, runtime.params, t)
    scale = stack_outputs(outputs, runtime.layout, 'sigma_fn', dtype=values.dtype)
    valid = jnp.logical_and(jnp.isfinite(scale), scale >= 0)
    return jnp.where(valid, scale, jnp.nan)


def apply_clamp(runtime: StochasticMapRuntime, values: jax.Array) -> jax.Array:
    """Apply the configured clamping policy.

    'floor' truncates to the floor, 'reflect' mirrors values below the floor
    back above it, 'none' leaves values unchanged.
    """
    floor = runtime.floor.astype(values.dtype)
    if runtime.clamp == 'floor':
        return jnp.maximum(values, floor)
    if runtime.clamp == 'reflect':
        return floor + jnp.abs(values - floor)
    return values


def out_of_domain(runtime: StochasticMapRuntime, values: jax.Array) -> jax.Array:
    """Boolean mask of values outside their domain or non-finite."""
    return jnp.logical_or(
        jnp.logical_not(jnp.isfinite(values)),
        jnp.logical_or(values < runtime.lower, values > runtime.upper),
    )


def step(
    runtime: StochasticMapRuntime,
    values: jax.Array,
    key: jax.Array,
    t: jax.Array,
) -> Tuple[jax.Array, jax.Array]:
    """Advance the map by one step.

    Args:
        runtime: Map configuration
        values: State vector at step t
        key: PRNG key for this step's noise
        t: Step index of ``values``

    Returns:
        (next_values, violated) where ``violated`` flags variables whose
        stored value lies outside the domain
    """
    mean = drift(runtime, values, t)
    scale = noise_scale(runtime, values, t)
    perturbed = mean + scale * jrandom.normal(key, shape=values.shape, dtype=values.dtype)
    next_values = apply_clamp(runtime, perturbed)
    return next_values, out_of_domain(runtime, next_values)


def simulate(
    runtime: StochasticMapRuntime,
    initial_values: jax.Array,
    key: jax.Array,
) -> Tuple[jax.Array, jax.Array]:
    """Run the map for ``runtime.n_steps`` states.

    Step t (producing index t+1) consumes key t of
    ``jax.random.split(key, n_steps - 1)``.

    Args:
        runtime: Map configuration
        initial_values: State vector at index 0
        key: JAX PRNG key

    Returns:
        (values, violations), each shaped (n_steps, n_variables); row 0 is
        the initial state and is never flagged
    """
    initial_values = jnp.asarray(initial_values)
    no_violation = jnp.zeros((1,) + initial_values.shape, dtype=bool)
    if runtime.n_steps == 1:
        return initial_values[None, :], no_violation

    keys = jrandom.split(key, runtime.n_steps - 1)
    steps = jnp.arange(runtime.n_steps - 1, dtype=jnp.int32)

    def scan_fn(values, inputs):
        t, k = inputs
        next_values, violated = step(runtime, values, k, t)
        return next_values, (next_values, violated)

    _, (path, violations) = jax.lax.scan(scan_fn, initial_values, (steps, keys))

    return (
        jnp.concatenate([initial_values[None, :], path], axis=0),
        jnp.concatenate([no_violation, violations], axis=0),
    )


_simulate_batch = jax.jit(jax.vmap(simulate, in_axes=(None, None, 0)))


def replicate_keys(key: jax.Array, n_replicates: int) -> jax.Array:
    """Per-replicate keys; replicate r always uses row r."""
    return jrandom.split(key, n_replicates)


def iter_ensemble_batches(
    runtime: StochasticMapRuntime,
    initial_values: jax.Array,
    key: jax.Array,
    n_replicates: int,
    batch_size: Optional[int] = None,
) -> Iterator[Tuple[int, np.ndarray, np.ndarray]]:
    """Simulate independent replicates in vectorised batches.

    All replicate keys are derived up front from ``key``, so results do not
    depend on ``batch_size``.

    Yields:
        (offset, values, violations) with arrays shaped
        (batch, n_steps, n_variables); ``offset`` is the replicate index of
        the first row
    """
    keys = replicate_keys(key, n_replicates)
    batch_size = n_replicates if batch_size is None else batch_size
    initial_values = jnp.asarray(initial_values)

    for offset in range(0, n_replicates, batch_size):
        values, violations = _simulate_batch(
            runtime, initial_values, keys[offset:offset + batch_size]
        )
        yield offset, np.asarray(values), np.asarray(violations)


def simulate_ensemble(
    runtime: StochasticMapRuntime,
    initial_values: jax.Array,
    key: jax.Array,
    n_replicates: int,
    batch_size: Optional[int] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Simulate ``n_replicates`` independent replicates.

    Returns:
        (values, violations) shaped (n_replicates, n_steps, n_variables)
    """
    batches = list(iter_ensemble_batches(runtime, initial_values, key, n_replicates, batch_size))
    return (
        np.concatenate([values for _, values, _ in batches], axis=0),
        np.concatenate([violations for _, _, violations in batches], axis=0),
    )


def first_violation(violations: np.ndarray) -> Optional[Tuple[int, ...]]:
    """Index of the first flagged entry in row-major order, or None."""
    hits = np.argwhere(np.asarray(violations))
    if hits.shape[0] == 0:
        return None
    return tuple(int(i) for i in hits[0])
