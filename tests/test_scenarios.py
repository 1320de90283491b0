"""Tests for the ready-made population models."""

import pytest
import jax.numpy as jnp
import numpy as np

from popnoise import (
    DomainViolation,
    IndicatorConfig,
    JumpProcessConfig,
    StochasticMapAdapter,
    StochasticMapConfig,
    compute_indicators,
    kendall_trend,
)
from popnoise.scenarios import (
    consumer_resource_drift,
    consumer_resource_equilibrium,
    consumer_resource_map,
    grazing_drift,
    grazing_map,
    logistic_noise_equilibrium,
    patch_occupancy,
)


class TestPatchOccupancy:
    """Tests for the Levins patch-occupancy process."""

    def test_defaults(self):
        """Test the default configuration."""
        config = patch_occupancy()
        assert isinstance(config, JumpProcessConfig)
        assert config.initial_state == {'n': 50}
        assert config.transitions == ((1,), (-1,))
        assert config.params == {'c': 1.0, 'e': 0.2, 'N': 100}
        assert config.horizon == 30.0
        assert config.seed == 1234

    def test_rates_vanish_at_bounds(self, array_close):
        """Test that no extinction at n=0 and no colonisation at n=N can occur."""
        rates = np.asarray(patch_occupancy().initial_rates())
        array_close(rates, [25.0, 10.0])
        config = patch_occupancy(n0=100)
        array_close(config.initial_rates(), [0.0, 20.0])
        config = patch_occupancy(n0=0)
        array_close(config.initial_rates(), [0.0, 0.0])


class TestLogisticMap:
    """Tests for the noisy logistic map helpers."""

    def test_noise_equilibrium(self, close):
        """Test the closed-form stationary mean."""
        close(logistic_noise_equilibrium(0.15), (1 + np.sqrt(0.82)) / 2)
        close(logistic_noise_equilibrium(0.0, K=4.0), 4.0)
        close(logistic_noise_equilibrium(0.3, K=2.0), 2.0 * (1 + np.sqrt(1 - 8 * 0.09 / 4)) / 2)

    def test_noise_too_strong(self):
        """Test that no stationary mean exists when 8σ² > K²."""
        with pytest.raises(ValueError):
            logistic_noise_equilibrium(0.4)


class TestConsumerResourceMap:
    """Tests for the coupled consumer-resource map."""

    def test_equilibrium_is_fixed_point(self):
        """Test that the interior equilibrium is a fixed point of the drift."""
        R, C = consumer_resource_equilibrium()
        assert (R, C) == pytest.approx((2.0, 1.6))
        params = consumer_resource_map().params
        out = consumer_resource_drift({'R': R, 'C': C}, params, 0)
        assert (out['R'], out['C']) == pytest.approx((R, C))

    def test_damped_oscillation(self):
        """Test that without noise the map spirals into the equilibrium."""
        traj = StochasticMapAdapter(consumer_resource_map(sigma=0.0, n_steps=1000)).simulate()
        R = traj['R']
        assert R[-1] == pytest.approx(2.0, abs=1e-3)
        assert traj['C'][-1] == pytest.approx(1.6, abs=1e-3)
        # A focus, not a node: the resource overshoots repeatedly
        crossings = np.count_nonzero(np.diff(np.sign(R[:400] - 2.0)))
        assert crossings >= 4

    def test_noise_sustains_cycles(self):
        """Test that noise keeps the system away from the equilibrium."""
        traj = StochasticMapAdapter(consumer_resource_map(sigma=0.02, n_steps=2000, seed=1)).simulate()
        late = traj['R'][1000:]
        assert late.std() > 0.05
        assert abs(late.mean() - 2.0) < 0.2


class TestGrazingMap:
    """Tests for the grazing (vegetation) map."""

    def test_constant_pressure_equilibrium(self):
        """Test convergence to the vegetated equilibrium without noise."""
        config = grazing_map(sigma=0.0, n_steps=300)
        traj = StochasticMapAdapter(config).simulate()
        x = float(traj['x'][-1])
        residual = grazing_drift({'x': x}, config.params, 0)['x'] - x
        assert x > 8.0
        assert abs(float(residual)) < 1e-3

    def test_grazing_ramp(self, close):
        """Test that grazing pressure ramps linearly from a to a_end."""
        config = grazing_map(a=1.0, a_end=2.0, n_steps=101)
        params = config.params
        assert params['ramp_steps'] == 100
        x = {'x': jnp.array(5.0)}
        start = grazing_drift(x, params, jnp.array(0))['x']
        middle = grazing_drift(x, params, jnp.array(50))['x']
        end = grazing_drift(x, params, jnp.array(100))['x']
        # x^2 / (x^2 + h^2) at x=5
        close(start - end, 25.0 / 26.0, rtol=1e-5)
        close(start - middle, 0.5 * 25.0 / 26.0, rtol=1e-5)

    def test_overgrazing_without_clamp(self):
        """Test that overgrazing below zero is a domain violation without clamping."""
        config = grazing_map(x0=0.5, a=5.0, sigma=0.0, n_steps=5, clamp='none')
        with pytest.raises(DomainViolation) as excinfo:
            StochasticMapAdapter(config).simulate()
        assert excinfo.value.step == 1
        assert excinfo.value.value == pytest.approx(-0.025, abs=1e-5)

    def test_floor_clamp_default(self):
        """Test that the default floor clamp keeps vegetation non-negative."""
        config = grazing_map(x0=0.5, a=5.0, sigma=0.0, n_steps=5)
        traj = StochasticMapAdapter(config).simulate()
        assert traj['x'].min() == 0.0

    def test_variance_rises_towards_tipping_point(self):
        """Test the early-warning signal: rolling variance trends up under a ramp."""
        config = grazing_map(x0=8.87, a=1.0, a_end=2.5, sigma=0.05, n_steps=1000, seed=21)
        traj = StochasticMapAdapter(config).simulate()
        series = compute_indicators(
            traj['x'], IndicatorConfig(window=100, indicators=('variance',))
        )
        trend = kendall_trend(series['variance'])
        assert trend.n == 901
        assert trend.tau > 0.3
