"""Cross-replicate statistics for stochastic-map ensembles.

Replicate batches are reduced to per-(time, variable) moments that can be
merged in any order, so batches simulated separately (or on separate
workers) fold into the same summary as one large batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import warnings
import numpy as np


@dataclass(frozen=True)
class EnsembleMoments:
    """Running count, mean and sum of squared deviations.

    Attributes:
        count: Number of replicates folded in
        mean: (n_steps, n_variables) mean across replicates
        m2: (n_steps, n_variables) sum of squared deviations from the mean
    """
    count: int
    mean: np.ndarray
    m2: np.ndarray

    @classmethod
    def from_batch(cls, values: np.ndarray) -> 'EnsembleMoments':
        """Moments of a (replicates, n_steps, n_variables) batch."""
        values = np.asarray(values, dtype=np.float64)
        if values.ndim != 3 or values.shape[0] == 0:
            raise ValueError(
                f"Expected a non-empty (replicates, steps, variables) batch, got {values.shape}"
            )
        mean = values.mean(axis=0)
        return cls(
            count=int(values.shape[0]),
            mean=mean,
            m2=np.square(values - mean).sum(axis=0),
        )

    def merge(self, other: 'EnsembleMoments') -> 'EnsembleMoments':
        """Combine two sets of moments (Chan et al. pairwise update)."""
        if self.mean.shape != other.mean.shape:
            raise ValueError(
                f"Cannot merge moments of shape {self.mean.shape} and {other.mean.shape}"
            )
        count = self.count + other.count
        delta = other.mean - self.mean
        mean = self.mean + delta * (other.count / count)
        m2 = self.m2 + other.m2 + np.square(delta) * (self.count * other.count / count)
        return EnsembleMoments(count=count, mean=mean, m2=m2)

    def variance(self, ddof: int = 1) -> np.ndarray:
        if self.count - ddof <= 0:
            return np.full_like(self.m2, np.nan)
        return self.m2 / (self.count - ddof)


@dataclass(frozen=True)
class EnsembleSummary:
    """Per-time-index mean and standard deviation across replicates.

    Attributes:
        times: (n_steps,) step indices
        variables: Variable names in column order
        mean: (n_steps, n_variables) cross-replicate mean
        std: (n_steps, n_variables) cross-replicate sample std (ddof=1)
        count: Number of replicates
    """
    times: np.ndarray
    variables: Tuple[str, ...]
    mean: np.ndarray
    std: np.ndarray
    count: int

    @classmethod
    def from_moments(
        cls,
        moments: EnsembleMoments,
        variables: Sequence[str],
        times: Optional[np.ndarray] = None,
    ) -> 'EnsembleSummary':
        if moments.count < 2:
            warnings.warn(
                "Ensemble summary from a single replicate: standard deviation is undefined (NaN).",
                UserWarning
            )
        n_steps = moments.mean.shape[0]
        return cls(
            times=np.arange(n_steps) if times is None else np.asarray(times),
            variables=tuple(variables),
            mean=moments.mean,
            std=np.sqrt(moments.variance(ddof=1)),
            count=moments.count,
        )

    def mean_of(self, name: str) -> np.ndarray:
        return self.mean[:, self.variables.index(name)]

    def std_of(self, name: str) -> np.ndarray:
        return self.std[:, self.variables.index(name)]

    def stationary_mean(self, name: str, burn_in: int) -> float:
        """Average of the cross-replicate mean after ``burn_in`` steps."""
        return float(self.mean_of(name)[burn_in:].mean())


def summarize_ensemble(values: np.ndarray, variables: Sequence[str]) -> EnsembleSummary:
    """Summary of a full (replicates, n_steps, n_variables) array."""
    return EnsembleSummary.from_moments(EnsembleMoments.from_batch(values), variables)


@dataclass(frozen=True)
class EnsembleResult:
    """Outcome of an ensemble run.

    Attributes:
        summary: Cross-replicate mean/std per time index
        values: (replicates, n_steps, n_variables) trajectories, only when
            they were requested
    """
    summary: EnsembleSummary
    values: Optional[np.ndarray] = None
