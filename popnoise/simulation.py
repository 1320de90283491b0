"""High-level simulation facade.

This module provides a Simulation class that ties a simulator adapter to
the indicator engine and the export contracts: run a trajectory, compute
its early-warning indicators, and hand back tables for reporting.
"""

from __future__ import annotations
from typing import Dict, Optional, Union

import numpy as np
import pandas as pd

from .adapters import JumpProcessAdapter, StochasticMapAdapter
from .errors import ConfigurationError
from .export import ensemble_frame, trajectory_frame
from .indicators import IndicatorConfig, compute_indicators
from .trajectory import Trajectory


__all__ = [
    'Simulation',
]


Simulator = Union[JumpProcessAdapter, StochasticMapAdapter]


class Simulation:
    """Scenario-level facade over one simulator adapter.

    Example:
        >>> sim = Simulation(
        ...     StochasticMapAdapter(grazing_map(a_end=2.6, n_steps=1000, seed=3)),
        ...     indicators=IndicatorConfig(window=100, indicators=('variance', 'autocorrelation')),
        ... )
        >>> traj = sim.run()
        >>> frame = sim.to_frame(traj)
        >>> list(frame.columns)[:4]
        ['time', 'x', 'x_variance', 'x_autocorrelation']

    Args:
        simulator: JumpProcessAdapter or StochasticMapAdapter
        indicators: Optional indicator configuration applied to every run
        indicator_variable: Variable the indicators are computed on
            (defaults to the first state variable)
    """

    def __init__(
        self,
        simulator: Simulator,
        *,
        indicators: Optional[IndicatorConfig] = None,
        indicator_variable: Optional[str] = None
    ):
        if not isinstance(simulator, (JumpProcessAdapter, StochasticMapAdapter)):
            raise TypeError(
                "simulator must be a JumpProcessAdapter or StochasticMapAdapter, "
                f"got {type(simulator).__name__}"
            )
        if indicators is not None and not isinstance(indicators, IndicatorConfig):
            raise TypeError(
                f"indicators must be an IndicatorConfig, got {type(indicators).__name__}"
            )

        variables = simulator.runtime.layout.variables
        if indicator_variable is None:
            indicator_variable = variables[0]
        elif indicator_variable not in variables:
            raise ConfigurationError(
                f"indicator_variable '{indicator_variable}' is not one of {list(variables)}"
            )

        self.simulator = simulator
        self.indicators = indicators
        self.indicator_variable = indicator_variable

    @property
    def variables(self):
        return self.simulator.runtime.layout.variables

    def run(self, seed: Optional[int] = None) -> Trajectory:
        """Run one trajectory."""
        return self.simulator.simulate(seed=seed)

    def indicators_for(self, traj: Trajectory) -> Dict[str, Dict[str, np.ndarray]]:
        """Indicator series for a trajectory, keyed by variable then indicator.

        Jump-process trajectories are treated as event-indexed series.
        Returns an empty mapping when no indicators are configured.
        """
        if self.indicators is None:
            return {}
        series = traj[self.indicator_variable]
        return {self.indicator_variable: compute_indicators(series, self.indicators)}

    def to_frame(self, traj: Trajectory, include_params: bool = True) -> pd.DataFrame:
        """Export a trajectory with its indicators and parameter echo columns."""
        params = self.simulator.config.params if include_params else None
        return trajectory_frame(traj, self.indicators_for(traj), params)

    def ensemble_summary(
        self,
        n_replicates: int,
        seed: Optional[int] = None,
        theory: Optional[Union[float, pd.DataFrame]] = None,
        batch_size: Optional[int] = None,
    ) -> pd.DataFrame:
        """Run a replicate ensemble and export its per-time summary.

        Raises:
            TypeError: If the simulator is not a stochastic map
        """
        if not isinstance(self.simulator, StochasticMapAdapter):
            raise TypeError("Ensemble summaries require a StochasticMapAdapter")
        result = self.simulator.ensemble(n_replicates, seed=seed, batch_size=batch_size)
        return ensemble_frame(result.summary, theory)
