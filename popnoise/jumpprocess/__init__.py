"""Exact jump-process module.

This module provides configuration, runtime structures and the JAX kernel
for continuous-time Markov jump processes simulated with Gillespie's
direct method.
"""

from .config import JumpProcessConfig, JumpProcessConfigOutput
from .runtime import JumpProcessRuntime, JumpProcessState
from .kernel import (
    evaluate_rates,
    select_transition,
    transition_index,
    step,
    simulate,
    trajectory_arrays,
)

__all__ = [
    'JumpProcessConfig',
    'JumpProcessConfigOutput',
    'JumpProcessRuntime',
    'JumpProcessState',
    'evaluate_rates',
    'select_transition',
    'transition_index',
    'step',
    'simulate',
    'trajectory_arrays',
]
