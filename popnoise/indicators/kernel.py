"""Sliding-window statistics for early-warning indicators.

Every indicator is a trailing-window reduction built on ``rolling``: the
entry at index i summarises the window ending at i, and the leading entries
without enough history are NaN (absent). Inputs are never modified.
"""

from __future__ import annotations

from typing import Callable, NamedTuple, Optional
import warnings
import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy import stats

from ..errors import ConfigurationError


# (n_windows, span) -> (n_windows,)
Reducer = Callable[[np.ndarray], np.ndarray]


def _as_series(values) -> np.ndarray:
    series = np.asarray(values, dtype=float)
    if series.ndim != 1:
        raise ConfigurationError(f"Expected a 1-D sequence, got shape {series.shape}")
    return series


def check_window(n: int, window: int, lag: int = 0) -> None:
    """Reject window/lag combinations the series cannot support.

    Raises:
        ConfigurationError: If window < 1, lag < 0 or window + lag > n
    """
    if window < 1:
        raise ConfigurationError(f"Window width must be >= 1, got {window}")
    if lag < 0:
        raise ConfigurationError(f"Lag must be >= 0, got {lag}")
    if window + lag > n:
        detail = f"window {window}" if lag == 0 else f"window {window} + lag {lag}"
        raise ConfigurationError(f"{detail} exceeds series length {n}")


def rolling(values, span: int, reducer: Reducer) -> np.ndarray:
    """Generic trailing-window reduction.

    Args:
        values: Sequence of N real values
        span: Number of trailing observations each reduction sees
        reducer: Maps an (n_windows, span) array of windows to one value each

    Returns:
        Length-N float array; the first span-1 entries are NaN
    """
    series = _as_series(values)
    check_window(series.shape[0], span)
    out = np.full(series.shape[0], np.nan)
    out[span - 1:] = reducer(sliding_window_view(series, span))
    return out


def _safe_divide(numerator: np.ndarray, denominator: np.ndarray) -> np.ndarray:
    with np.errstate(divide='ignore', invalid='ignore'):
        ratio = numerator / denominator
    return np.where(denominator == 0, np.nan, ratio)


def window_mean(windows: np.ndarray) -> np.ndarray:
    return windows.mean(axis=1)


def window_variance(ddof: int = 1) -> Reducer:
    """Two-pass variance reducer (mean first, then squared deviations)."""
    def reducer(windows: np.ndarray) -> np.ndarray:
        dof = windows.shape[1] - ddof
        if dof <= 0:
            return np.full(windows.shape[0], np.nan)
        centred = windows - windows.mean(axis=1, keepdims=True)
        return np.square(centred).sum(axis=1) / dof
    return reducer


def window_lag_correlation(lag: int) -> Reducer:
    """Pearson correlation of a window against itself shifted by ``lag``.

    Windows span W + lag observations. The unlagged sub-series is the last W
    of them and the lagged sub-series the first W. Each is centred on its own
    mean and scaled by its own windowed standard deviation. Windows where
    either sub-series is constant give NaN.
    """
    def reducer(windows: np.ndarray) -> np.ndarray:
        current = windows[:, lag:]
        lagged = windows[:, :windows.shape[1] - lag]
        current_c = current - current.mean(axis=1, keepdims=True)
        lagged_c = lagged - lagged.mean(axis=1, keepdims=True)
        covariance = (current_c * lagged_c).sum(axis=1)
        scale = np.sqrt(np.square(current_c).sum(axis=1) * np.square(lagged_c).sum(axis=1))
        constant = np.logical_or(np.ptp(current, axis=1) == 0, np.ptp(lagged, axis=1) == 0)
        return np.where(constant, np.nan, _safe_divide(covariance, scale))
    return reducer


def rolling_mean(values, window: int) -> np.ndarray:
    """Rolling mean over the trailing ``window`` observations."""
    return rolling(values, window, window_mean)


def rolling_variance(values, window: int, ddof: int = 1) -> np.ndarray:
    """Rolling variance with ``ddof`` delta degrees of freedom."""
    return rolling(values, window, window_variance(ddof))


def rolling_std(values, window: int, ddof: int = 1) -> np.ndarray:
    """Rolling standard deviation with ``ddof`` delta degrees of freedom."""
    return np.sqrt(rolling_variance(values, window, ddof))


def rolling_cv(values, window: int, ddof: int = 1) -> np.ndarray:
    """Rolling coefficient of variation (std / mean).

    Absent wherever the windowed mean is zero.
    """
    variance = window_variance(ddof)

    def reducer(windows: np.ndarray) -> np.ndarray:
        return _safe_divide(np.sqrt(variance(windows)), windows.mean(axis=1))

    return rolling(values, window, reducer)


def rolling_autocorrelation(values, window: int, lag: int = 1) -> np.ndarray:
    """Rolling lag-``lag`` autocorrelation over ``window`` pairs.

    The entry at i correlates values[i-W+1 .. i] with values[i-W+1-lag .. i-lag],
    so the first W-1+lag entries are NaN.
    """
    if lag < 1:
        raise ConfigurationError(f"Autocorrelation lag must be >= 1, got {lag}")
    series = _as_series(values)
    check_window(series.shape[0], window, lag)
    if window < 3:
        warnings.warn(
            f"Autocorrelation over a window of {window} pairs is degenerate "
            "(every non-constant window gives +/-1).",
            UserWarning
        )
    return rolling(series, window + lag, window_lag_correlation(lag))


class Trend(NamedTuple):
    """Kendall rank correlation of an indicator against time.

    Attributes:
        tau: Kendall's tau (NaN if fewer than two defined entries)
        p_value: Two-sided p-value
        n: Number of defined entries used
    """
    tau: float
    p_value: float
    n: int


def kendall_trend(indicator, times: Optional[np.ndarray] = None) -> Trend:
    """Kendall's tau between an indicator and time over its defined entries.

    A positive tau means the indicator rises over the series, the usual
    summary of an early-warning signal.
    """
    series = _as_series(indicator)
    times = np.arange(series.shape[0]) if times is None else np.asarray(times, dtype=float)
    defined = np.isfinite(series)
    n = int(defined.sum())
    if n < 2:
        return Trend(float('nan'), float('nan'), n)
    result = stats.kendalltau(times[defined], series[defined])
    return Trend(float(result.statistic), float(result.pvalue), n)
