"""Error taxonomy for popnoise simulations.

All failures are local and synchronous. Nothing is retried: a failed run
produces no trajectory. A jump process whose total rate drops to zero is not
an error; it terminates normally with ``termination == 'exhausted'``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence


__all__ = [
    'PopnoiseError',
    'ConfigurationError',
    'EventLimitError',
    'InvalidRateError',
    'DomainViolation',
]


class PopnoiseError(Exception):
    """Base class for all popnoise errors."""


class ConfigurationError(PopnoiseError, ValueError):
    """Configuration rejected before any simulation step executes.

    Raised for malformed window widths, parameter sets that do not satisfy a
    rate/drift function, or missing noise specifications.
    """


class EventLimitError(PopnoiseError, RuntimeError):
    """Jump-process event buffer filled before the horizon was reached.

    Raised after the run has executed; the run yields no trajectory.
    """

    def __init__(self, max_events: int, time: float, horizon: float):
        self.max_events = max_events
        self.time = time
        self.horizon = horizon
        super().__init__(
            f"Event buffer of {max_events} events exhausted at t={time:.6g} "
            f"before horizon T={horizon:.6g}. Increase max_events."
        )


class InvalidRateError(PopnoiseError, ValueError):
    """A rate function returned a negative/non-finite rate or the wrong count.

    Attributes:
        time: Simulation time at which the rates were evaluated
        state: State mapping at that time
        rates: The offending rate vector
    """

    def __init__(
        self,
        message: str,
        *,
        time: Optional[float] = None,
        state: Optional[Dict[str, Any]] = None,
        rates: Optional[Sequence[float]] = None,
    ):
        self.time = time
        self.state = state
        self.rates = None if rates is None else [float(r) for r in rates]
        details = []
        if time is not None:
            details.append(f"t={time:.6g}")
        if state is not None:
            details.append(f"state={state}")
        if self.rates is not None:
            details.append(f"rates={self.rates}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)


class DomainViolation(PopnoiseError, ArithmeticError):
    """A map step produced a value outside the variable's declared domain.

    Attributes:
        step: Trajectory index at which the value would have been stored
        variable: Name of the offending variable
        value: The offending value (may be NaN)
        replicate: Replicate index for ensemble runs, else None
    """

    def __init__(
        self,
        step: int,
        variable: str,
        value: float,
        replicate: Optional[int] = None,
    ):
        self.step = step
        self.variable = variable
        self.value = value
        self.replicate = replicate
        where = f"step {step}"
        if replicate is not None:
            where = f"replicate {replicate}, {where}"
        super().__init__(
            f"Value {value!r} for '{variable}' at {where} is outside its domain "
            f"and no clamping policy applies"
        )
