"""Tests for the recursive stochastic-map simulator."""

import math
import pytest
import jax
import jax.numpy as jnp
import numpy as np
from pydantic import ValidationError

from popnoise import (
    StochasticMapAdapter,
    StochasticMapConfig,
    StochasticMapConfigOutput,
    ConfigurationError,
    DomainViolation,
)
from popnoise.stochmap import apply_clamp, replicate_keys, simulate
from popnoise.scenarios import consumer_resource_map, logistic_map


def shift_map(x0, shift=-1.0, **kwargs):
    """Deterministic x -> x + shift."""
    kwargs.setdefault('noise', 0.0)
    kwargs.setdefault('n_steps', 4)
    return StochasticMapConfig(
        initial_state={'x': x0},
        drift_fn=lambda state, params, t: {'x': state['x'] + params['shift']},
        params={'shift': shift},
        **kwargs,
    )


def random_walk(sigma=1.0, n_steps=50, **kwargs):
    return StochasticMapConfig(
        initial_state=0.0,
        n_steps=n_steps,
        drift_fn=lambda state, params, t: {'x': state['x']},
        noise=sigma,
        **kwargs,
    )


class TestStochasticMapConfig:
    """Tests for StochasticMapConfig validation."""

    def test_scalar_initial_state(self):
        """Test that a bare number names the single variable 'x'."""
        config = random_walk()
        assert config.variables == ('x',)
        assert config.initial_state == {'x': 0.0}

    def test_negative_noise_rejected(self):
        """Test that noise standard deviations must be non-negative."""
        with pytest.raises(ValidationError):
            random_walk(sigma=-0.1)

    def test_zero_steps_rejected(self):
        """Test that the trajectory must hold at least the initial state."""
        with pytest.raises(ValidationError):
            random_walk(n_steps=0)

    def test_unknown_clamp_rejected(self):
        """Test that only known clamping policies are accepted."""
        with pytest.raises(ValidationError):
            shift_map(1.0, clamp='wrap')

    def test_initial_state_outside_domain_rejected(self):
        """Test that the initial state must satisfy the declared domain."""
        with pytest.raises(ValidationError):
            shift_map(-1.0, domain={'x': (0.0, None)})

    def test_domain_for_unknown_variable_rejected(self):
        """Test that the domain may only name state variables."""
        with pytest.raises(ValidationError):
            shift_map(1.0, domain={'y': (0.0, 1.0)})

    def test_missing_noise_is_configuration_error(self):
        """Test that a map without noise specification fails before any step."""
        config = shift_map(1.0, noise=None)
        with pytest.raises(ConfigurationError, match="noise"):
            StochasticMapAdapter(config)

    def test_partial_noise_mapping_is_configuration_error(self):
        """Test that per-variable noise must cover every variable."""
        config = consumer_resource_map()
        config = config.model_copy(update={'noise': {'R': 0.1}})
        with pytest.raises(ConfigurationError, match="C"):
            config.to_runtime()

    def test_missing_parameter_is_configuration_error(self):
        """Test that drift_fn needing an absent parameter fails before any step."""
        config = StochasticMapConfig(
            initial_state=1.0,
            n_steps=10,
            drift_fn=lambda state, params, t: {'x': params['r'] * state['x']},
            noise=0.1,
        )
        with pytest.raises(ConfigurationError, match="'r'"):
            config.to_runtime()

    def test_drift_missing_variable_is_configuration_error(self):
        """Test that drift_fn must return every state variable."""
        config = StochasticMapConfig(
            initial_state={'R': 1.0, 'C': 1.0},
            n_steps=10,
            drift_fn=lambda state, params, t: {'R': state['R']},
            noise=0.1,
        )
        with pytest.raises(ConfigurationError, match="C"):
            config.to_runtime()

    @pytest.mark.parametrize("sigma", [-0.1, float('nan'), float('inf')])
    def test_invalid_initial_sigma_fn_is_configuration_error(self, sigma):
        """Test that sigma_fn must give a finite non-negative deviation at the start."""
        config = shift_map(1.0, noise=None, sigma_fn=lambda state, params, t: {'x': sigma})
        with pytest.raises(ConfigurationError, match="sigma_fn"):
            StochasticMapAdapter(config)

    def test_config_output(self):
        """Test the introspection wrapper."""
        output = StochasticMapConfigOutput.from_config(consumer_resource_map())
        assert output.n_variables == 2
        assert output.coupled
        assert output.runtime.layout.variables == ('R', 'C')


class TestClamping:
    """Tests for clamping policies."""

    def test_floor_truncates(self, array_close):
        """Test that 'floor' truncates values below the floor."""
        traj = StochasticMapAdapter(shift_map(0.5, clamp='floor')).simulate()
        array_close(traj['x'], [0.5, 0.0, 0.0, 0.0])

    def test_floor_value(self, array_close):
        """Test truncation to a non-zero floor."""
        traj = StochasticMapAdapter(shift_map(0.5, clamp='floor', floor=0.2)).simulate()
        array_close(traj['x'], [0.5, 0.2, 0.2, 0.2])

    def test_reflect_mirrors(self, array_close):
        """Test that 'reflect' mirrors values below the floor."""
        traj = StochasticMapAdapter(shift_map(0.3, clamp='reflect')).simulate()
        array_close(traj['x'], [0.3, 0.7, 0.3, 0.7])

    def test_reflect_about_floor(self, array_close):
        """Test reflection about a non-zero floor."""
        traj = StochasticMapAdapter(shift_map(0.3, clamp='reflect', floor=0.2)).simulate()
        array_close(traj['x'], [0.3, 1.1, 0.3, 1.1])

    def test_none_leaves_values(self, array_close):
        """Test that without clamping or domain values may go negative."""
        traj = StochasticMapAdapter(shift_map(0.5)).simulate()
        array_close(traj['x'], [0.5, -0.5, -1.5, -2.5])

    def test_apply_clamp_per_variable_floor(self, array_close):
        """Test per-variable floors on a coupled map."""
        config = consumer_resource_map().model_copy(
            update={'floor': {'R': 1.0, 'C': 0.5}}
        )
        runtime = config.to_runtime()
        array_close(apply_clamp(runtime, jnp.array([0.0, 0.0])), [1.0, 0.5])


class TestDomainViolation:
    """Tests for domain violation reporting."""

    def test_declared_domain(self):
        """Test that leaving the declared domain reports step and value."""
        config = shift_map(0.5, domain={'x': (0.0, None)})
        with pytest.raises(DomainViolation) as excinfo:
            StochasticMapAdapter(config).simulate()
        err = excinfo.value
        assert err.step == 1
        assert err.variable == 'x'
        assert err.value == pytest.approx(-0.5)
        assert err.replicate is None

    def test_non_finite_value(self):
        """Test that NaN from a drift outside its natural domain is reported."""
        config = StochasticMapConfig(
            initial_state=0.25,
            n_steps=5,
            drift_fn=lambda state, params, t: {'x': jnp.sqrt(state['x']) - 1.0},
            noise=0.0,
        )
        with pytest.raises(DomainViolation) as excinfo:
            StochasticMapAdapter(config).simulate()
        assert excinfo.value.step == 2
        assert math.isnan(excinfo.value.value)

    def test_clamp_prevents_violation(self):
        """Test that clamping keeps values inside a non-negative domain."""
        config = shift_map(0.5, clamp='floor', domain={'x': (0.0, None)})
        traj = StochasticMapAdapter(config).simulate()
        assert traj['x'].min() == 0.0

    def test_ensemble_reports_replicate(self):
        """Test that ensemble violations name the replicate, whatever the batching."""
        config = random_walk(sigma=1.0, n_steps=50, domain={'x': (-3.0, 3.0)}, seed=4)
        adapter = StochasticMapAdapter(config)

        errors = []
        for batch_size in (None, 7):
            with pytest.raises(DomainViolation) as excinfo:
                adapter.ensemble(64, batch_size=batch_size)
            errors.append(excinfo.value)

        first, second = errors
        assert first.replicate is not None
        assert 0 <= first.replicate < 64
        assert (first.replicate, first.step) == (second.replicate, second.step)

        # Replicate r uses row r of the split keys
        keys = replicate_keys(jax.random.PRNGKey(4), 64)
        values, _ = simulate(adapter.runtime, config.initial_vector(), keys[first.replicate])
        assert abs(float(values[first.step, 0])) > 3.0
        assert np.all(np.abs(np.asarray(values[:first.step, 0])) <= 3.0)

    def test_negative_sigma_fn_mid_run(self):
        """Test that a sigma_fn turning negative is reported at the step it is used."""
        config = shift_map(
            0.0,
            shift=0.0,
            noise=None,
            n_steps=20,
            sigma_fn=lambda state, params, t: {'x': jnp.where(t < 10, 0.1, -0.1)},
        )
        with pytest.raises(DomainViolation) as excinfo:
            StochasticMapAdapter(config).simulate(seed=2)
        assert excinfo.value.step == 11
        assert excinfo.value.variable == 'x'
        assert math.isnan(excinfo.value.value)

    def test_step_reports_violation(self):

        """Test that stepped use reports the violating step."""
        adapter = StochasticMapAdapter(shift_map(1.5, domain={'x': (0.0, None)}))
        assert adapter.step() == pytest.approx({'x': 0.5})
        with pytest.raises(DomainViolation) as excinfo:
            adapter.step()
        assert excinfo.value.step == 2


class TestStochasticMapAdapter:
    """Tests for StochasticMapAdapter simulation."""

    def test_determinism(self):
        """Test that the same seed gives bit-identical trajectories."""
        config = logistic_map(seed=3, n_steps=200)
        a = StochasticMapAdapter(config).simulate()
        b = StochasticMapAdapter(config).simulate()
        np.testing.assert_array_equal(a.values, b.values)

    def test_seed_changes_path(self):
        """Test that different seeds give different paths."""
        adapter = StochasticMapAdapter(logistic_map(n_steps=50))
        a = adapter.simulate(seed=1)
        b = adapter.simulate(seed=2)
        assert not np.array_equal(a.values, b.values)

    def test_regular_times(self):
        """Test that map trajectories are indexed 0..N-1."""
        traj = StochasticMapAdapter(logistic_map(n_steps=25, seed=0)).simulate()
        assert traj.times.tolist() == list(range(25))
        assert traj.termination == 'steps'
        assert traj['x'][0] == pytest.approx(1.0)

    def test_single_step_trajectory(self):
        """Test that n_steps=1 returns only the initial state."""
        traj = StochasticMapAdapter(logistic_map(n_steps=1, seed=0)).simulate()
        assert len(traj) == 1
        assert traj.final_state == pytest.approx({'x': 1.0})

    def test_zero_noise_reaches_carrying_capacity(self, close):
        """Test that the deterministic logistic map converges to K."""
        traj = StochasticMapAdapter(logistic_map(x0=0.1, sigma=0.0, n_steps=200)).simulate()
        close(traj['x'][-1], 1.0, rtol=1e-4)

    def test_synchronous_update(self, array_close):
        """Test that coupled variables are updated from the same prior state."""
        r, K, b, c, d = 0.2, 10.0, 0.1, 0.5, 0.1
        traj = StochasticMapAdapter(consumer_resource_map(sigma=0.0, n_steps=60)).simulate()

        reference = [(2.5, 1.5)]
        sequential = [(2.5, 1.5)]
        for _ in range(59):
            R, C = reference[-1]
            reference.append((R + r * R * (1 - R / K) - b * R * C, C + c * b * R * C - d * C))
            R, C = sequential[-1]
            R = R + r * R * (1 - R / K) - b * R * C
            sequential.append((R, C + c * b * R * C - d * C))

        array_close(traj.values, np.array(reference), rtol=1e-4, atol=1e-5)
        assert np.max(np.abs(traj.values - np.array(sequential))) > 1e-4

    def test_noise_scale(self):
        """Test that increments of a pure random walk have the configured std."""
        traj = StochasticMapAdapter(random_walk(sigma=0.5, n_steps=2001, seed=8)).simulate()
        increments = np.diff(traj['x'])
        assert abs(increments.mean()) < 0.05
        assert 0.45 < increments.std() < 0.55

    def test_sigma_fn_overrides_noise(self, array_close):
        """Test that sigma_fn replaces the constant noise specification."""
        config = shift_map(
            5.0,
            shift=1.0,
            noise=3.0,
            sigma_fn=lambda state, params, t: {'x': 0.0 * state['x']},
        )
        traj = StochasticMapAdapter(config).simulate(seed=1)
        array_close(traj['x'], [5.0, 6.0, 7.0, 8.0])

    def test_sigma_fn_without_noise(self):
        """Test that sigma_fn alone is a complete noise specification."""
        config = shift_map(
            1.0,
            noise=None,
            sigma_fn=lambda state, params, t: {'x': 0.1 + 0.0 * state['x']},
        )
        traj = StochasticMapAdapter(config).simulate(seed=1)
        assert len(traj) == 4

    def test_step_and_reset(self, array_close):
        """Test the stateful stepping API."""
        adapter = StochasticMapAdapter(shift_map(0.0, shift=2.0))
        assert adapter.get_state() == {'t': 0, 'state': {'x': 0.0}}
        adapter.step()
        state = adapter.step()
        assert state == pytest.approx({'x': 4.0})
        assert adapter.get_state()['t'] == 2

        adapter.reset()
        assert adapter.get_state() == {'t': 0, 'state': {'x': 0.0}}
