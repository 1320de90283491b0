"""Tests for the Simulation facade."""

import pytest
import numpy as np

from popnoise import (
    ConfigurationError,
    IndicatorConfig,
    JumpProcessAdapter,
    Simulation,
    StochasticMapAdapter,
)
from popnoise.scenarios import (
    consumer_resource_map,
    grazing_map,
    logistic_map,
    logistic_noise_equilibrium,
    patch_occupancy,
)


class TestSimulationInit:
    """Tests for Simulation construction."""

    def test_rejects_non_adapter(self):
        """Test that the simulator must be an adapter."""
        with pytest.raises(TypeError, match="simulator"):
            Simulation(logistic_map())

    def test_rejects_non_indicator_config(self):
        """Test that indicators must be an IndicatorConfig."""
        with pytest.raises(TypeError, match="IndicatorConfig"):
            Simulation(StochasticMapAdapter(logistic_map()), indicators={'window': 5})

    def test_rejects_unknown_indicator_variable(self):
        """Test that the indicator variable must be a state variable."""
        with pytest.raises(ConfigurationError):
            Simulation(StochasticMapAdapter(logistic_map()), indicator_variable='y')

    def test_default_indicator_variable(self):
        """Test that indicators default to the first state variable."""
        sim = Simulation(StochasticMapAdapter(consumer_resource_map()))
        assert sim.indicator_variable == 'R'
        assert sim.variables == ('R', 'C')


class TestSimulationRun:
    """Tests for running and exporting through the facade."""

    def test_map_frame_columns(self):
        """Test the exported columns of a map run with indicators."""
        sim = Simulation(
            StochasticMapAdapter(grazing_map(n_steps=200, seed=3)),
            indicators=IndicatorConfig(window=20, indicators=('variance', 'autocorrelation')),
        )
        traj = sim.run()
        frame = sim.to_frame(traj)
        assert list(frame.columns) == [
            'time', 'x', 'x_variance', 'x_autocorrelation',
            'K', 'a', 'a_end', 'h', 'q', 'r', 'ramp_steps',
        ]
        assert len(frame) == 200
        assert frame['x_variance'].isna().sum() == 19
        assert frame['x_autocorrelation'].isna().sum() == 20

    def test_frame_without_params(self):
        """Test that parameter echo columns can be left out."""
        sim = Simulation(StochasticMapAdapter(logistic_map(n_steps=30, seed=0)))
        frame = sim.to_frame(sim.run(), include_params=False)
        assert list(frame.columns) == ['time', 'x']

    def test_indicators_for_without_config(self):
        """Test that no indicators are computed without a configuration."""
        sim = Simulation(StochasticMapAdapter(logistic_map(n_steps=30, seed=0)))
        assert sim.indicators_for(sim.run()) == {}

    def test_coupled_indicator_variable(self):
        """Test indicators on a chosen variable of a coupled map."""
        sim = Simulation(
            StochasticMapAdapter(consumer_resource_map(n_steps=100, seed=2)),
            indicators=IndicatorConfig(window=10, indicators=('mean',)),
            indicator_variable='C',
        )
        traj = sim.run()
        indicators = sim.indicators_for(traj)
        assert list(indicators) == ['C']
        assert indicators['C']['mean'][9] == pytest.approx(traj['C'][:10].mean(), rel=1e-5)
        assert 'C_mean' in sim.to_frame(traj).columns

    def test_jump_process_frame(self):
        """Test event-indexed indicators on a jump-process run."""
        sim = Simulation(
            JumpProcessAdapter(patch_occupancy(horizon=5.0)),
            indicators=IndicatorConfig(window=10, indicators=('mean',)),
        )
        traj = sim.run(seed=3)
        frame = sim.to_frame(traj)
        assert list(frame.columns) == ['time', 'n', 'n_mean', 'N', 'c', 'e']
        assert len(frame) == len(traj)
        assert frame['n'].iloc[0] == 50

    def test_run_is_deterministic(self):
        """Test that runs with the same seed export identical frames."""
        sim = Simulation(StochasticMapAdapter(logistic_map(n_steps=50)))
        a = sim.to_frame(sim.run(seed=4))
        b = sim.to_frame(sim.run(seed=4))
        assert a.equals(b)


class TestEnsembleSummary:
    """Tests for Simulation.ensemble_summary."""

    def test_summary_with_theory(self):
        """Test the ensemble table joined with a closed-form value."""
        sim = Simulation(StochasticMapAdapter(logistic_map(n_steps=100, seed=1)))
        theory = logistic_noise_equilibrium(0.15)
        frame = sim.ensemble_summary(500, theory=theory, batch_size=200)
        assert list(frame.columns) == ['time', 'x_mean', 'x_std', 'theory']
        assert len(frame) == 100
        assert frame['x_mean'].iloc[0] == pytest.approx(1.0)
        assert frame['x_std'].iloc[0] == 0.0
        assert np.all(frame['theory'] == theory)

    def test_requires_map(self):
        """Test that ensemble summaries need a stochastic map."""
        sim = Simulation(JumpProcessAdapter(patch_occupancy()))
        with pytest.raises(TypeError):
            sim.ensemble_summary(10)
