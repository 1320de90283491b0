"""Pytest configuration and shared test utilities."""

import pytest
import numpy as np
import jax.numpy as jnp
from typing import Union


# Default tolerances for float comparisons
# float32 is the default simulation precision
RTOL_DEFAULT = 1e-5
ATOL_DEFAULT = 1e-6


def assert_close(
    actual: Union[float, jnp.ndarray, np.ndarray],
    expected: Union[float, jnp.ndarray, np.ndarray],
    rtol: float = RTOL_DEFAULT,
    atol: float = ATOL_DEFAULT,
    msg: str = ""
):
    """Assert that two scalars are close within tolerance.

    Handles JAX arrays, NumPy arrays, and Python floats uniformly.

    Example:
        >>> traj = adapter.simulate()
        >>> assert_close(traj.times[0], 0.0)
    """
    actual_val = float(actual) if hasattr(actual, '__float__') else actual
    expected_val = float(expected) if hasattr(expected, '__float__') else expected

    assert actual_val == pytest.approx(expected_val, rel=rtol, abs=atol), (
        f"{msg}\nExpected: {expected_val}\nActual: {actual_val}\n"
        f"Diff: {abs(actual_val - expected_val)}"
    )


def assert_array_close(
    actual: Union[jnp.ndarray, np.ndarray],
    expected: Union[jnp.ndarray, np.ndarray],
    rtol: float = RTOL_DEFAULT,
    atol: float = ATOL_DEFAULT,
    msg: str = ""
):
    """Assert that two arrays are close within tolerance.

    NaN entries (absent indicator values) must line up in both arrays.

    Example:
        >>> out = rolling_mean([1.0, 2.0, 3.0], 2)
        >>> assert_array_close(out, [np.nan, 1.5, 2.5])
    """
    np.testing.assert_allclose(
        np.asarray(actual, dtype=float), np.asarray(expected, dtype=float),
        rtol=rtol, atol=atol,
        equal_nan=True,
        err_msg=msg
    )


def leading_nan_count(values) -> int:
    """Number of NaN entries before the first defined one."""
    defined = np.flatnonzero(~np.isnan(np.asarray(values, dtype=float)))
    return int(defined[0]) if defined.size else len(values)


@pytest.fixture
def close():
    """Fixture providing assert_close function.

    Usage:
        def test_something(close):
            close(actual, expected)
    """
    return assert_close


@pytest.fixture
def array_close():
    """Fixture providing assert_array_close function.

    Usage:
        def test_something(array_close):
            array_close(actual_array, expected_array)
    """
    return assert_array_close
