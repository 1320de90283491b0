"""Early-warning indicator module.

This module provides sliding-window statistics (rolling mean, variance,
standard deviation, coefficient of variation and lag autocorrelation) built
on one generic windowed reduction, plus a Kendall trend summary.
"""

from .config import IndicatorConfig, INDICATORS, compute_indicators
from .kernel import (
    Trend,
    check_window,
    rolling,
    window_mean,
    window_variance,
    window_lag_correlation,
    rolling_mean,
    rolling_variance,
    rolling_std,
    rolling_cv,
    rolling_autocorrelation,
    kendall_trend,
)

__all__ = [
    'IndicatorConfig',
    'INDICATORS',
    'compute_indicators',
    'Trend',
    'check_window',
    'rolling',
    'window_mean',
    'window_variance',
    'window_lag_correlation',
    'rolling_mean',
    'rolling_variance',
    'rolling_std',
    'rolling_cv',
    'rolling_autocorrelation',
    'kendall_trend',
]
