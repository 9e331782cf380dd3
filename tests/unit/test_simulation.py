"""
Tests for synthetic data generation.
"""

import numpy as np
import pytest

from occupancy_jax.core.exceptions import ShapeMismatchError
from occupancy_jax.data.simulation import simulate_occupancy_data

pytestmark = pytest.mark.unit


class TestSimulation:

    def test_same_seed_same_data(self):
        first = simulate_occupancy_data(30, 4, [0.2, 0.5], [0.1, -0.3], seed=7)
        second = simulate_occupancy_data(30, 4, [0.2, 0.5], [0.1, -0.3], seed=7)

        np.testing.assert_array_equal(first.data.detection_history, second.data.detection_history)
        np.testing.assert_array_equal(first.z, second.z)

    def test_global_random_state_untouched(self):
        before = np.random.get_state()[1].copy()
        simulate_occupancy_data(30, 4, [0.2], [0.1], rng=np.random.default_rng(1))
        after = np.random.get_state()[1]

        np.testing.assert_array_equal(before, after)

    def test_unoccupied_units_never_detected(self, simulated):
        undetectable = simulated.z == 0
        assert not np.any(simulated.data.detected[undetectable])
        assert simulated.data.n_detected <= simulated.true_occupied

    def test_ragged_event_counts(self, simulated):
        np.testing.assert_array_equal(simulated.data.n_events, np.sum(~np.isnan(simulated.theta), axis=1))
        assert simulated.data.n_events.min() >= 2
        assert simulated.data.n_events.max() <= 6

    def test_covariate_layout(self):
        sim = simulate_occupancy_data(
            20, 3, [0.0, 0.4, -0.2], [0.0, 0.5, 0.3], seed=3, n_detection_unit_covariates=1
        )

        assert sim.data.unit_covariate_names == ["x1", "x2"]
        assert sim.data.event_covariate_names == ["w1"]
        assert sim.true_parameters.shape == (6,)

    def test_too_many_shared_detection_covariates(self):
        with pytest.raises(ShapeMismatchError):
            simulate_occupancy_data(10, 3, [0.0], [0.0, 0.5], seed=1, n_detection_unit_covariates=1)

    def test_event_count_sequence_length_checked(self):
        with pytest.raises(ShapeMismatchError):
            simulate_occupancy_data(10, [3, 4], [0.0], [0.0], seed=1)
