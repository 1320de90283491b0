"""Configuration for exact jump-process simulation.

This module provides the Pydantic configuration class for continuous-time
Markov jump processes simulated with Gillespie's direct method.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple
import warnings
import numpy as np
import jax.numpy as jnp

from ..errors import ConfigurationError, InvalidRateError
from ..fields import variable_mapping_field, transition_vector
from ..runtime import StateLayout, stack_rates
from .runtime import JumpProcessRuntime


class JumpProcessConfig(BaseModel):
    """Configuration for a continuous-time Markov jump process.

    Example:
        >>> def rates(state, params, t):
        ...     n = state['n']
        ...     return [params['c'] * n * (1 - n / params['N']), params['e'] * n]
        >>> config = JumpProcessConfig(
        ...     initial_state={'n': 50},
        ...     transitions=[{'n': 1}, {'n': -1}],
        ...     rate_fn=rates,
        ...     params={'c': 1.0, 'e': 0.2, 'N': 100},
        ...     horizon=30.0,
        ...     seed=1234,
        ... )
        >>> adapter = JumpProcessAdapter(config)

    Attributes:
        initial_state: Non-negative integer counts per variable
        transitions: Delta vectors, as {name: delta} or sequences in variable order
        rate_fn: (state, params, t) -> one non-negative rate per transition
        params: Parameters passed to rate_fn
        horizon: Time horizon T
        seed: Random seed for reproducibility
        max_events: Event buffer size
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    initial_state: Dict[str, int] = Field(
        description="Initial non-negative counts per state variable"
    )

    transitions: Tuple[Tuple[int, ...], ...] = Field(
        description="Integer delta vectors, one per transition"
    )

    rate_fn: Callable[[Dict[str, Any], Dict[str, Any], Any], Sequence[Any]] = Field(
        description="Function: (state, params, t) -> rates, same order as transitions"
    )

    params: Dict[str, Any] = Field(
        default_factory=dict,
        description="Parameters passed to rate_fn"
    )

    horizon: float = Field(
        gt=0,
        description="Time horizon T"
    )

    seed: Optional[int] = Field(
        default=None,
        description="Random seed for the event stream"
    )

    max_events: int = Field(
        default=100_000,
        gt=0,
        description="Maximum number of events recorded before the horizon"
    )

    _validate_initial_state = field_validator("initial_state", mode="before")(
        variable_mapping_field(int, min_value=0, allow_scalar=False)
    )

    @field_validator("transitions", mode="before")
    @classmethod
    def validate_transitions(cls, v, info):
        """Align transitions with the variable order of initial_state."""
        initial_state = info.data.get('initial_state')
        if initial_state is None:
            # initial_state failed validation; its error is reported instead
            return v
        if isinstance(v, Mapping) or not isinstance(v, (list, tuple)):
            raise ValueError("transitions must be a sequence of delta vectors")
        if len(v) == 0:
            raise ValueError("At least one transition is required")
        variables = tuple(initial_state)
        return tuple(transition_vector(t, variables) for t in v)

    @property
    def variables(self) -> Tuple[str, ...]:
        return tuple(self.initial_state)

    def initial_rates(self) -> np.ndarray:
        """Evaluate rate_fn eagerly at the initial state and t=0.

        Raises:
            ConfigurationError: If rate_fn needs a parameter that is missing
            InvalidRateError: If the rate vector has the wrong length or a
                negative/non-finite entry
        """
        layout = StateLayout(self.variables)
        dtype = jnp.result_type(float)
        state = layout.as_mapping(
            jnp.array([self.initial_state[name] for name in self.variables], dtype=dtype)
        )
        try:
            raw = self.rate_fn(state, self.params, jnp.array(0.0, dtype=dtype))
        except KeyError as e:
            raise ConfigurationError(
                f"rate_fn requires parameter or variable {e} which is not configured"
            ) from e
        rates = np.asarray(stack_rates(raw, dtype=dtype))

        host_state = dict(self.initial_state)
        if rates.shape[0] != len(self.transitions):
            raise InvalidRateError(
                f"rate_fn returned {rates.shape[0]} rates for "
                f"{len(self.transitions)} transitions",
                time=0.0, state=host_state, rates=rates,
            )
        if np.any(rates < 0) or not np.all(np.isfinite(rates)):
            raise InvalidRateError(
                "rate_fn returned a negative or non-finite rate",
                time=0.0, state=host_state, rates=rates,
            )
        return rates

    def to_runtime(self) -> 'JumpProcessRuntime':
        """Convert config to JAX-ready runtime structure.

        Probes rate_fn at the initial state first so that malformed
        configurations fail before any simulation step.
        """
        rates = self.initial_rates()
        expected_events = float(np.sum(rates)) * self.horizon
        if expected_events > self.max_events:
            warnings.warn(
                f"Initial total rate suggests ~{expected_events:.0f} events before "
                f"T={self.horizon}, above max_events={self.max_events}; "
                f"the run may fail with EventLimitError.",
                UserWarning
            )

        return JumpProcessRuntime(
            transitions=jnp.array(self.transitions, dtype=jnp.int32),
            params=dict(self.params),
            horizon=jnp.array(self.horizon, dtype=jnp.result_type(float)),
            rate_fn=self.rate_fn,
            layout=StateLayout(self.variables),
            max_events=self.max_events,
        )

    def initial_vector(self) -> 'jnp.ndarray':
        """Initial counts as an int32 vector in variable order."""
        return jnp.array([self.initial_state[name] for name in self.variables], dtype=jnp.int32)


class JumpProcessConfigOutput(BaseModel):
    """Output wrapper for JumpProcessConfig (for introspection).

    Attributes:
        config: The JumpProcessConfig used
        runtime: The JAX-ready runtime structure
        initial_total_rate: Total event rate at the initial state
        expected_first_wait: Mean waiting time to the first event (inf if none)
    """

    config: JumpProcessConfig
    runtime: 'JumpProcessRuntime'

    initial_total_rate: float
    expected_first_wait: float

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def from_config(cls, config: JumpProcessConfig) -> 'JumpProcessConfigOutput':
        total = float(np.sum(config.initial_rates()))
        return cls(
            config=config,
            runtime=config.to_runtime(),
            initial_total_rate=total,
            expected_first_wait=1.0 / total if total > 0 else float('inf'),
        )

