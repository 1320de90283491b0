"""popnoise: stochastic population dynamics and early-warning indicators."""

from .errors import (
    PopnoiseError,
    ConfigurationError,
    EventLimitError,
    InvalidRateError,
    DomainViolation,
)
from .fields import variable_mapping_field, broadcast_to_variables, transition_vector
from .runtime import StateLayout, tree_info
from .trajectory import Trajectory
from .jumpprocess import (
    JumpProcessConfig,
    JumpProcessConfigOutput,
    JumpProcessRuntime,
    JumpProcessState,
)
from .stochmap import (
    StochasticMapConfig,
    StochasticMapConfigOutput,
    StochasticMapRuntime,
    StochasticMapState,
)
from .indicators import (
    IndicatorConfig,
    compute_indicators,
    rolling_mean,
    rolling_variance,
    rolling_std,
    rolling_cv,
    rolling_autocorrelation,
    kendall_trend,
)
from .metrics import EnsembleMoments, EnsembleSummary, EnsembleResult
from .export import trajectory_rows, trajectory_frame, ensemble_rows, ensemble_frame
from .adapters import JumpProcessAdapter, StochasticMapAdapter
from .simulation import Simulation
from . import scenarios

__all__ = [
    # Errors
    'PopnoiseError',
    'ConfigurationError',
    'EventLimitError',
    'InvalidRateError',
    'DomainViolation',
    # Fields and runtime helpers
    'variable_mapping_field',
    'broadcast_to_variables',
    'transition_vector',
    'StateLayout',
    'tree_info',
    'Trajectory',
    # Jump process (core tier)
    'JumpProcessConfig',
    'JumpProcessConfigOutput',
    'JumpProcessRuntime',
    'JumpProcessState',
    # Stochastic map (core tier)
    'StochasticMapConfig',
    'StochasticMapConfigOutput',
    'StochasticMapRuntime',
    'StochasticMapState',
    # Indicators
    'IndicatorConfig',
    'compute_indicators',
    'rolling_mean',
    'rolling_variance',
    'rolling_std',
    'rolling_cv',
    'rolling_autocorrelation',
    'kendall_trend',
    # Ensembles and export
    'EnsembleMoments',
    'EnsembleSummary',
    'EnsembleResult',
    'trajectory_rows',
    'trajectory_frame',
    'ensemble_rows',
    'ensemble_frame',
    # Adapters (high-level tier)
    'JumpProcessAdapter',
    'StochasticMapAdapter',
    'Simulation',
    'scenarios',
]
