"""Immutable simulation trajectories.

A trajectory is an ordered sequence of (time, state) pairs. Jump-process
trajectories have irregular, strictly increasing event times; stochastic-map
trajectories use the integer steps ``0..N-1``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Tuple

import numpy as np


TERMINATIONS = ('horizon', 'exhausted', 'steps')


def _frozen(array, dtype=None) -> np.ndarray:
    out = np.array(array, dtype=dtype, copy=True)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class Trajectory:
    """Time-stamped states produced by a simulator.

    Arrays are copied on construction and marked read-only.

    Attributes:
        times: Shape (n,) time stamps
        values: Shape (n, n_variables) states
        variables: Variable names in column order
        termination: Why the run stopped ('horizon', 'exhausted' or 'steps')
        total_rates: Shape (n,) total event rate at each recorded state
            (jump processes only)
    """
    times: np.ndarray
    values: np.ndarray
    variables: Tuple[str, ...]
    termination: str = 'steps'
    total_rates: Optional[np.ndarray] = field(default=None)

    def __post_init__(self):
        times = _frozen(self.times)
        values = _frozen(self.values)
        if values.ndim == 1:
            values = _frozen(values.reshape(-1, 1))
        if times.ndim != 1 or values.shape[0] != times.shape[0]:
            raise ValueError(
                f"times {times.shape} and values {values.shape} are not aligned"
            )
        if values.shape[1] != len(self.variables):
            raise ValueError(
                f"values have {values.shape[1]} columns for {len(self.variables)} variables"
            )
        if self.termination not in TERMINATIONS:
            raise ValueError(f"Unknown termination {self.termination!r}")
        object.__setattr__(self, 'times', times)
        object.__setattr__(self, 'values', values)
        object.__setattr__(self, 'variables', tuple(self.variables))
        if self.total_rates is not None:
            object.__setattr__(self, 'total_rates', _frozen(self.total_rates))

    def __len__(self) -> int:
        return int(self.times.shape[0])

    def __iter__(self) -> Iterator[Tuple[float, Dict[str, float]]]:
        for i in range(len(self)):
            yield self.times[i].item(), self.state_at(i)

    def __getitem__(self, name: str) -> np.ndarray:
        """Column of values for one variable."""
        return self.values[:, self.variables.index(name)]

    def state_at(self, index: int) -> Dict[str, float]:
        """State mapping at a trajectory index."""
        row = self.values[index]
        return {name: row[i].item() for i, name in enumerate(self.variables)}

    @property
    def exhausted(self) -> bool:
        """True if a jump process stopped because no event could occur."""
        return self.termination == 'exhausted'

    @property
    def final_state(self) -> Dict[str, float]:
        return self.state_at(len(self) - 1)
