"""Configuration for recursive stochastic maps.

This module provides the Pydantic configuration class for discrete-time
maps x[t+1] = clamp(drift(x[t]) + Gaussian noise), scalar or coupled.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from typing import Any, Callable, Dict, Literal, Mapping, Optional, Tuple, Union
import math
import numpy as np
import jax.numpy as jnp

from ..errors import ConfigurationError
from ..fields import variable_mapping_field, broadcast_to_variables
from ..runtime import StateLayout, stack_outputs
from .runtime import StochasticMapRuntime


class StochasticMapConfig(BaseModel):
    """Configuration for a recursive stochastic map.

    Example (scalar logistic map):
        >>> def logistic(state, params, t):
        ...     x = state['x']
        ...     return {'x': x + params['r'] * x * (1 - x / params['K'])}
        >>> config = StochasticMapConfig(
        ...     initial_state=1.0,
        ...     n_steps=500,
        ...     drift_fn=logistic,
        ...     params={'r': 0.35, 'K': 1.0},
        ...     noise=0.15,
        ...     clamp='floor',
        ...     seed=42,
        ... )
        >>> adapter = StochasticMapAdapter(config)

    Attributes:
        initial_state: Float (variable 'x') or mapping of variable -> value
        n_steps: Trajectory length including the initial state
        drift_fn: (state, params, t) -> {name: pre-noise next value}
        params: Parameters passed to drift_fn and sigma_fn
        noise: Std-dev, one float for all variables or a mapping per variable
        sigma_fn: Optional (state, params, t) -> {name: std}, overriding noise
        clamp: 'none', 'floor' or 'reflect'
        floor: Clamping floor, one float or a mapping per variable
        domain: Optional mapping of variable -> (lower, upper); None bounds
            are open
        seed: Random seed for reproducibility
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    initial_state: Dict[str, float] = Field(
        description="Initial value per state variable"
    )

    n_steps: int = Field(
        ge=1,
        description="Trajectory length N including the initial state"
    )

    drift_fn: Callable[[Dict[str, Any], Dict[str, Any], Any], Mapping[str, Any]] = Field(
        description="Function: (state, params, t) -> {name: next value before noise}"
    )

    params: Dict[str, Any] = Field(
        default_factory=dict,
        description="Parameters passed to drift_fn and sigma_fn"
    )

    noise: Optional[Union[float, Dict[str, float]]] = Field(
        default=None,
        description="Noise standard deviation (per variable or shared)"
    )

    sigma_fn: Optional[Callable[[Dict[str, Any], Dict[str, Any], Any], Mapping[str, Any]]] = Field(
        default=None,
        description="Function: (state, params, t) -> {name: std}, overrides noise"
    )

    clamp: Literal['none', 'floor', 'reflect'] = Field(
        default='none',
        description="Clamping policy applied after noise, before the next step"
    )

    floor: Union[float, Dict[str, float]] = Field(
        default=0.0,
        description="Clamping floor (per variable or shared)"
    )

    domain: Optional[Dict[str, Tuple[Optional[float], Optional[float]]]] = Field(
        default=None,
        description="Declared (lower, upper) bounds per variable"
    )

    seed: Optional[int] = Field(
        default=None,
        description="Random seed for the noise stream"
    )

    _validate_initial_state = field_validator("initial_state", mode="before")(
        variable_mapping_field(float)
    )

    @field_validator("noise", mode="after")
    @classmethod
    def validate_noise(cls, v):
        """Noise standard deviations must be finite and non-negative."""
        if v is None:
            return v
        values = v.values() if isinstance(v, dict) else [v]
        for sigma in values:
            if not math.isfinite(sigma) or sigma < 0:
                raise ValueError(f"Noise standard deviation must be >= 0, got {sigma}")
        return v

    @field_validator("domain", mode="after")
    @classmethod
    def validate_domain(cls, v):
        """Domain bounds must be ordered."""
        if v is None:
            return v
        for name, (lower, upper) in v.items():
            if lower is not None and upper is not None and lower > upper:
                raise ValueError(f"Domain of '{name}' has lower {lower} > upper {upper}")
        return v

    @model_validator(mode='after')
    def _check_initial_domain(self):
        """The initial state must lie inside the declared domain."""
        if self.domain is None:
            return self
        unknown = set(self.domain) - set(self.initial_state)
        if unknown:
            raise ValueError(f"domain names unknown variables: {sorted(unknown)}")
        for name, (lower, upper) in self.domain.items():
            value = self.initial_state[name]
            if (lower is not None and value < lower) or (upper is not None and value > upper):
                raise ValueError(
                    f"Initial value {value} of '{name}' lies outside domain ({lower}, {upper})"
                )
        return self

    @property
    def variables(self) -> Tuple[str, ...]:
        return tuple(self.initial_state)

    def initial_vector(self) -> 'jnp.ndarray':
        """Initial state as a float vector in variable order."""
        return jnp.array(
            [self.initial_state[name] for name in self.variables],
            dtype=jnp.result_type(float),
        )

    def _bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        lower = np.full(len(self.variables), -np.inf)
        upper = np.full(len(self.variables), np.inf)
        for i, name in enumerate(self.variables):
            lo, hi = (self.domain or {}).get(name, (None, None))
            if lo is not None:
                lower[i] = lo
            if hi is not None:
                upper[i] = hi
        return lower, upper

    def _probe(self, layout: StateLayout) -> None:
        """Evaluate drift_fn and sigma_fn once at the initial state."""
        state = layout.as_mapping(self.initial_vector())
        t0 = jnp.array(0, dtype=jnp.int32)
        for label, fn in (('drift_fn', self.drift_fn), ('sigma_fn', self.sigma_fn)):
            if fn is None:
                continue
            try:
                outputs = fn(state, self.params, t0)
            except KeyError as e:
                raise ConfigurationError(
                    f"{label} requires parameter or variable {e} which is not configured"
                ) from e
            try:
                stacked = np.asarray(stack_outputs(outputs, layout, label))
            except (KeyError, TypeError) as e:
                raise ConfigurationError(e.args[0] if e.args else str(e)) from e
            if label == 'sigma_fn':
                bad = ~(np.isfinite(stacked) & (stacked >= 0))
                if bad.any():
                    names = [v for v, b in zip(layout.variables, bad) if b]
                    raise ConfigurationError(
                        f"sigma_fn must return finite non-negative values; "
                        f"got {stacked.tolist()} for {names} at the initial state"
                    )

    def to_runtime(self) -> StochasticMapRuntime:
        """Convert config to JAX-ready runtime structure.

        Raises:
            ConfigurationError: If a variable has no noise specification,
                the floor mapping is incomplete, or drift_fn/sigma_fn do not
                work with the configured parameters and variables
        """
        layout = StateLayout(self.variables)
        dtype = jnp.result_type(float)

        if self.sigma_fn is None and self.noise is None:
            raise ConfigurationError(
                f"No noise specification for variables {list(self.variables)}; "
                "provide noise (use 0.0 for a deterministic map) or sigma_fn"
            )
        try:
            sigma = broadcast_to_variables(
                0.0 if self.noise is None else self.noise, self.variables, 'noise'
            )
            floor = broadcast_to_variables(self.floor, self.variables, 'floor')
        except (KeyError, ValueError) as e:
            raise ConfigurationError(e.args[0] if e.args else str(e)) from e

        self._probe(layout)
        lower, upper = self._bounds()

        return StochasticMapRuntime(
            params=dict(self.params),
            sigma=jnp.array(sigma, dtype=dtype),
            floor=jnp.array(floor, dtype=dtype),
            lower=jnp.array(lower, dtype=dtype),
            upper=jnp.array(upper, dtype=dtype),
            drift_fn=self.drift_fn,
            layout=layout,
            clamp=self.clamp,
            n_steps=self.n_steps,
            sigma_fn=self.sigma_fn,
        )


class StochasticMapConfigOutput(BaseModel):
    """Output wrapper for StochasticMapConfig (for introspection).

    Attributes:
        config: The StochasticMapConfig used
        runtime: The JAX-ready runtime structure
        n_variables: Dimension of the state vector
        coupled: Whether more than one variable is advanced per step
    """

    config: StochasticMapConfig
    runtime: StochasticMapRuntime
    n_variables: int
    coupled: bool

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def from_config(cls, config: StochasticMapConfig) -> 'StochasticMapConfigOutput':
        n = len(config.variables)
        return cls(config=config, runtime=config.to_runtime(), n_variables=n, coupled=n > 1)
