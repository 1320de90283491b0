"""Row and DataFrame export of trajectories and ensemble summaries.

Column order is stable for a given configuration:

- trajectories: ``time``, state variables in layout order, indicator
  columns ``<variable>_<indicator>``, then parameter echo columns sorted by
  name;
- ensembles: ``time``, then ``<variable>_mean`` and ``<variable>_std`` per
  variable, then any theory columns.

Absent indicator entries are exported as NaN. Writing files is left to the
caller (``DataFrame.to_csv`` and friends).
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union
import numpy as np
import pandas as pd

from .errors import ConfigurationError
from .metrics import EnsembleSummary
from .trajectory import Trajectory


__all__ = [
    'trajectory_columns',
    'trajectory_frame',
    'trajectory_rows',
    'ensemble_frame',
    'ensemble_rows',
]


IndicatorColumns = Mapping[str, Mapping[str, Any]]


def _scalar(value: Any) -> Any:
    return value.item() if hasattr(value, 'item') else value


def trajectory_columns(
    traj: Trajectory,
    indicators: Optional[IndicatorColumns] = None,
    params: Optional[Mapping[str, Any]] = None,
) -> Dict[str, np.ndarray]:
    """Ordered column arrays for a trajectory export.

    Args:
        traj: Trajectory to export
        indicators: Mapping variable -> {indicator name: aligned series}
        params: Parameters to echo; only scalar entries are exported

    Raises:
        ConfigurationError: If an indicator names an unknown variable or is
            not aligned with the trajectory, or if a parameter name
            collides with a data column
    """
    n = len(traj)
    columns: Dict[str, np.ndarray] = {'time': np.asarray(traj.times)}
    for name in traj.variables:
        columns[name] = np.asarray(traj[name])

    for variable, series in (indicators or {}).items():
        if variable not in traj.variables:
            raise ConfigurationError(f"Indicators given for unknown variable '{variable}'")
        for indicator, values in series.items():
            values = np.asarray(values, dtype=float)
            if values.shape != (n,):
                raise ConfigurationError(
                    f"Indicator '{indicator}' of '{variable}' has shape {values.shape}, "
                    f"expected ({n},)"
                )
            columns[f"{variable}_{indicator}"] = values

    for key in sorted(params or {}):
        value = params[key]
        if np.ndim(value) == 0:
            if key in columns:
                raise ConfigurationError(
                    f"Parameter '{key}' collides with the '{key}' data column"
                )
            columns[key] = np.full(n, _scalar(value), dtype=object)

    return columns


def trajectory_frame(
    traj: Trajectory,
    indicators: Optional[IndicatorColumns] = None,
    params: Optional[Mapping[str, Any]] = None,
) -> pd.DataFrame:
    """Trajectory as a DataFrame with one row per (time, state)."""
    columns = trajectory_columns(traj, indicators, params)
    frame = pd.DataFrame(columns, columns=list(columns))
    return frame.infer_objects()


def trajectory_rows(
    traj: Trajectory,
    indicators: Optional[IndicatorColumns] = None,
    params: Optional[Mapping[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """Trajectory as a list of ordered row mappings."""
    return trajectory_frame(traj, indicators, params).to_dict('records')


def ensemble_frame(
    summary: EnsembleSummary,
    theory: Optional[Union[float, pd.DataFrame]] = None,
) -> pd.DataFrame:
    """Ensemble summary as a DataFrame keyed by time index.

    Args:
        summary: Cross-replicate summary
        theory: Closed-form reference, either a scalar (exported as column
            ``theory``) or a DataFrame with a ``time`` column, left-joined
            on ``time``

    Raises:
        ConfigurationError: If a theory DataFrame has no ``time`` column
    """
    columns: Dict[str, np.ndarray] = {'time': np.asarray(summary.times)}
    for name in summary.variables:
        columns[f"{name}_mean"] = summary.mean_of(name)
        columns[f"{name}_std"] = summary.std_of(name)
    frame = pd.DataFrame(columns, columns=list(columns))

    if theory is None:
        return frame
    if isinstance(theory, pd.DataFrame):
        if 'time' not in theory.columns:
            raise ConfigurationError("theory DataFrame must have a 'time' column")
        return frame.merge(theory, on='time', how='left')
    frame['theory'] = float(theory)
    return frame


def ensemble_rows(
    summary: EnsembleSummary,
    theory: Optional[Union[float, pd.DataFrame]] = None,
) -> List[Dict[str, Any]]:
    """Ensemble summary as a list of ordered row mappings."""
    return ensemble_frame(summary, theory).to_dict('records')
