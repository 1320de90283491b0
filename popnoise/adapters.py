"""High-level adapter classes for stateful simulation workflows.

This module provides adapter classes that wrap the low-level JAX runtime
structures with stateful, user-friendly APIs. Adapters build the runtime
from a validated config (failing fast on configuration errors), translate
kernel status codes into exceptions, and return host-side ``Trajectory``
objects.

For JAX power users, ``.runtime`` and ``.state`` are exposed for direct use
with the kernel functions under ``jax.jit`` / ``jax.vmap``.
"""

from __future__ import annotations
from typing import Any, Dict, Mapping, Optional

import numpy as np
import jax
import jax.numpy as jnp

from .errors import ConfigurationError, DomainViolation, EventLimitError, InvalidRateError
from .jumpprocess.config import JumpProcessConfig
from .jumpprocess.runtime import (
    JumpProcessState,
    RUNNING,
    HORIZON,
    EXHAUSTED,
    INVALID_RATE,
    BUFFER_FULL,
)
from .jumpprocess import kernel as jump_kernel
from .stochmap.config import StochasticMapConfig
from .stochmap.runtime import StochasticMapState
from .stochmap import kernel as map_kernel
from .metrics import EnsembleMoments, EnsembleResult, EnsembleSummary
from .trajectory import Trajectory


__all__ = [
    'JumpProcessAdapter',
    'StochasticMapAdapter',
]


_TERMINATION = {HORIZON: 'horizon', EXHAUSTED: 'exhausted'}

_simulate_jumps = jax.jit(jump_kernel.simulate)
_step_jumps = jax.jit(jump_kernel.step)
_simulate_map = jax.jit(map_kernel.simulate)
_step_map = jax.jit(map_kernel.step)


class JumpProcessAdapter:
    """High-level adapter for exact jump-process simulation.

    Example:
        >>> config = patch_occupancy(n0=50, c=1.0, e=0.2, N=100, horizon=30.0, seed=1234)
        >>> adapter = JumpProcessAdapter(config)
        >>> traj = adapter.simulate()
        >>> traj.termination
        'horizon'

        # Step event by event:
        >>> adapter.reset()
        >>> while adapter.step():
        ...     pass

    Args:
        config: JumpProcessConfig instance

    Attributes:
        config: The JumpProcessConfig used
        runtime: JAX-ready runtime structure
        state: Current JumpProcessState (final state after ``simulate``)
    """

    def __init__(self, config: JumpProcessConfig):
        self.config = config
        self.runtime = config.to_runtime()
        self._current_seed = config.seed if config.seed is not None else 0
        self.state = self._initial_state(self._current_seed)

    def _initial_state(self, seed: int) -> JumpProcessState:
        return JumpProcessState.initialize(
            self.config.initial_vector(),
            jax.random.PRNGKey(seed),
            self.runtime.max_events,
        )

    def _raise_for_status(self, state: JumpProcessState) -> None:
        """Translate a failed loop status into an exception."""
        status = int(state.status)
        if status == INVALID_RATE:
            rates = jump_kernel.evaluate_rates(self.runtime, state.counts, state.t)
            raise InvalidRateError(
                "rate_fn returned a negative or non-finite rate",
                time=float(state.t),
                state=self.runtime.layout.to_host(state.counts),
                rates=np.asarray(rates),
            )
        if status == BUFFER_FULL:
            raise EventLimitError(
                self.runtime.max_events, float(state.t), float(self.runtime.horizon)
            )

    def simulate(self, seed: Optional[int] = None) -> Trajectory:
        """Run one trajectory from t=0 to the horizon.

        Args:
            seed: Random seed (uses the current seed if None)

        Returns:
            Trajectory with ``termination`` 'horizon' or 'exhausted'

        Raises:
            InvalidRateError: If a rate became negative or non-finite
            EventLimitError: If max_events were recorded before the horizon
        """
        seed = self._current_seed if seed is None else seed
        final = _simulate_jumps(
            self.runtime, self.config.initial_vector(), jax.random.PRNGKey(seed)
        )
        self.state = final
        self._raise_for_status(final)

        times, states, total_rates = jump_kernel.trajectory_arrays(final)
        return Trajectory(
            times=np.asarray(times),
            values=np.asarray(states),
            variables=self.runtime.layout.variables,
            termination=_TERMINATION[int(final.status)],
            total_rates=np.asarray(total_rates),
        )

    def step(self) -> bool:
        """Advance by one event (stateful).

        Returns:
            True if an event was recorded, False once the run has stopped
        """
        if int(self.state.status) != RUNNING:
            return False
        before = int(self.state.n_events)
        self.state = _step_jumps(self.runtime, self.state)
        self._raise_for_status(self.state)
        return int(self.state.n_events) > before

    def rates(self, state: Optional[Mapping[str, Any]] = None, t: float = 0.0) -> np.ndarray:
        """Evaluate the rate vector at a state (current state if None)."""
        if state is None:
            counts = self.state.counts
        else:
            counts = self.runtime.layout.to_vector(state, dtype=jnp.int32)
        dtype = jnp.result_type(float)
        return np.asarray(
            jump_kernel.evaluate_rates(self.runtime, counts, jnp.array(t, dtype=dtype))
        )

    def reset(self, seed: Optional[int] = None):
        """Reset state to initial conditions.

        Args:
            seed: Random seed (uses config seed if None)
        """
        seed = seed if seed is not None else self.config.seed
        seed = seed if seed is not None else 0
        self._current_seed = seed
        self.state = self._initial_state(seed)

    def get_state(self) -> dict:
        """Get current state as dictionary."""
        return {
            'time': float(self.state.t),
            'state': self.runtime.layout.to_host(self.state.counts),
            'n_events': int(self.state.n_events),
            'status': int(self.state.status),
        }


class StochasticMapAdapter:
    """High-level adapter for recursive stochastic maps.

    Example:
        >>> adapter = StochasticMapAdapter(logistic_map(sigma=0.15, n_steps=500, seed=7))
        >>> traj = adapter.simulate()
        >>> result = adapter.ensemble(10_000, batch_size=2_500)
        >>> result.summary.stationary_mean('x', burn_in=400)

    ``step()`` draws from the adapter's own key stream, so a stepped path
    is not the path ``simulate()`` produces for the same seed.

    Args:
        config: StochasticMapConfig instance

    Attributes:
        config: The StochasticMapConfig used
        runtime: JAX-ready runtime structure
        state: Current StochasticMapState for stepped use
    """

    def __init__(self, config: StochasticMapConfig):
        self.config = config
        self.runtime = config.to_runtime()
        self._current_seed = config.seed if config.seed is not None else 0
        self.state = StochasticMapState.initialize(config.initial_vector(), self._current_seed)

    def _violation(self, values: np.ndarray, index, offset: Optional[int] = None) -> DomainViolation:
        """Build the error for a flagged entry; ``offset`` marks a replicate batch."""
        if offset is None:
            replicate = None
            step, column = index
        else:
            replicate, step, column = index
            replicate += offset
        value = values[index]
        return DomainViolation(
            step=step,
            variable=self.runtime.layout.variables[column],
            value=float(value),
            replicate=replicate,
        )

    def simulate(self, seed: Optional[int] = None) -> Trajectory:
        """Run one trajectory of ``n_steps`` states.

        Args:
            seed: Random seed (uses the current seed if None)

        Raises:
            DomainViolation: If a stored value left the declared domain
        """
        seed = self._current_seed if seed is None else seed
        values, violations = _simulate_map(
            self.runtime, self.config.initial_vector(), jax.random.PRNGKey(seed)
        )
        values = np.asarray(values)
        hit = map_kernel.first_violation(violations)
        if hit is not None:
            raise self._violation(values, hit)

        return Trajectory(
            times=np.arange(self.runtime.n_steps),
            values=values,
            variables=self.runtime.layout.variables,
            termination='steps',
        )

    def ensemble(
        self,
        n_replicates: int,
        seed: Optional[int] = None,
        batch_size: Optional[int] = None,
        keep_trajectories: bool = False,
    ) -> EnsembleResult:
        """Simulate independent replicates and summarise them per time index.

        Replicates are vectorised with ``jax.vmap`` in batches of
        ``batch_size``; each batch is folded into mergeable moments, so
        memory stays bounded unless ``keep_trajectories`` is set.

        Raises:
            ConfigurationError: If n_replicates or batch_size is < 1
            DomainViolation: If any replicate left the declared domain
        """
        if n_replicates < 1:
            raise ConfigurationError(f"n_replicates must be >= 1, got {n_replicates}")
        if batch_size is not None and batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {batch_size}")
        seed = self._current_seed if seed is None else seed

        moments: Optional[EnsembleMoments] = None
        kept = []
        for offset, values, violations in map_kernel.iter_ensemble_batches(
            self.runtime,
            self.config.initial_vector(),
            jax.random.PRNGKey(seed),
            n_replicates,
            batch_size,
        ):
            hit = map_kernel.first_violation(violations)
            if hit is not None:
                raise self._violation(values, hit, offset)

            batch = EnsembleMoments.from_batch(values)
            moments = batch if moments is None else moments.merge(batch)
            if keep_trajectories:
                kept.append(values)

        summary = EnsembleSummary.from_moments(moments, self.runtime.layout.variables)
        return EnsembleResult(
            summary=summary,
            values=np.concatenate(kept, axis=0) if keep_trajectories else None,
        )

    def step(self) -> Dict[str, float]:
        """Advance the stepped state by one map iteration (stateful).

        Returns:
            New state as {name: value}

        Raises:
            DomainViolation: If the new value left the declared domain
        """
        key, subkey = jax.random.split(self.state.rng_key)
        values, violated = _step_map(self.runtime, self.state.values, subkey, self.state.t)
        violated = np.asarray(violated)
        if violated.any():
            column = int(np.argmax(violated))
            raise DomainViolation(
                step=int(self.state.t) + 1,
                variable=self.runtime.layout.variables[column],
                value=float(values[column]),
            )
        self.state = StochasticMapState(values=values, t=self.state.t + 1, rng_key=key)
        return self.runtime.layout.to_host(values)

    def reset(self, seed: Optional[int] = None):
        """Reset the stepped state to the initial values.

        Args:
            seed: Random seed (uses config seed if None)
        """
        seed = seed if seed is not None else self.config.seed
        seed = seed if seed is not None else 0
        self._current_seed = seed
        self.state = StochasticMapState.initialize(self.config.initial_vector(), seed)

    def get_state(self) -> dict:
        """Get current stepped state as dictionary."""
        return {
            't': int(self.state.t),
            'state': self.runtime.layout.to_host(self.state.values),
        }
