"""Configuration for early-warning indicator computation."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Callable, Dict, Literal, Tuple
import numpy as np

from .kernel import (
    check_window,
    rolling_mean,
    rolling_variance,
    rolling_std,
    rolling_cv,
    rolling_autocorrelation,
)


IndicatorName = Literal['mean', 'variance', 'std', 'cv', 'autocorrelation']

# name -> (values, config) -> aligned indicator series
INDICATORS: Dict[str, Callable[[np.ndarray, 'IndicatorConfig'], np.ndarray]] = {
    'mean': lambda values, c: rolling_mean(values, c.window),
    'variance': lambda values, c: rolling_variance(values, c.window, c.ddof),
    'std': lambda values, c: rolling_std(values, c.window, c.ddof),
    'cv': lambda values, c: rolling_cv(values, c.window, c.ddof),
    'autocorrelation': lambda values, c: rolling_autocorrelation(values, c.window, c.lag),
}


class IndicatorConfig(BaseModel):
    """Which rolling indicators to compute and over what window.

    Variance and coefficient of variation are both available; which one
    better tracks an approaching transition depends on the model.

    Example:
        >>> config = IndicatorConfig(window=50, indicators=('variance', 'autocorrelation'))
        >>> series = compute_indicators(trajectory['x'], config)

    Attributes:
        window: Trailing window width W
        lag: Autocorrelation lag L
        ddof: Delta degrees of freedom for variance/std/cv
        indicators: Indicator names, computed and reported in this order
    """

    model_config = ConfigDict(frozen=True)

    window: int = Field(ge=1, description="Trailing window width W")

    lag: int = Field(default=1, ge=1, description="Autocorrelation lag L")

    ddof: int = Field(default=1, ge=0, description="Delta degrees of freedom")

    indicators: Tuple[IndicatorName, ...] = Field(
        default=('mean', 'variance', 'std', 'autocorrelation'),
        description="Indicators to compute"
    )

    @field_validator("indicators", mode="after")
    @classmethod
    def validate_indicators(cls, v):
        if not v:
            raise ValueError("At least one indicator is required")
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate indicators in {v}")
        return v

    def check(self, n: int) -> None:
        """Validate this configuration against a series of length n.

        Raises:
            ConfigurationError: If the window (plus lag, when
                autocorrelation is selected) exceeds n
        """
        lag = self.lag if 'autocorrelation' in self.indicators else 0
        check_window(n, self.window, lag)


def compute_indicators(values, config: IndicatorConfig) -> Dict[str, np.ndarray]:
    """Compute the configured indicators for one series.

    The whole configuration is validated before anything is computed.

    Returns:
        Mapping indicator name -> length-N array, in ``config.indicators`` order
    """
    series = np.asarray(values, dtype=float)
    config.check(series.shape[0])
    return {name: INDICATORS[name](series, config) for name in config.indicators}
