"""
Tests for posterior occupancy probabilities P(Z_i = 1 | data).
"""

import numpy as np
import pytest

import occupancy_jax as oj
from occupancy_jax.models import (
    EnumeratedOccupancyModel,
    MarginalizedOccupancyLikelihood,
    MarginalizedOccupancyModel,
)

pytestmark = pytest.mark.unit


class TestPosteriorOccupancy:

    def test_worked_scenario(self, single_unit_coefficients):
        likelihood = MarginalizedOccupancyLikelihood()
        posterior = likelihood.posterior_occupancy_probability(
            single_unit_coefficients, None, None, [[0, 0, 0, 0], [0, 1, 0, 0]]
        )

        missed = 0.5 * 0.8**4
        assert posterior[0] == pytest.approx(missed / (missed + 0.5), rel=1e-10)
        assert posterior[1] == 1.0

    def test_detected_units_are_exactly_one(self, simulated):
        model = MarginalizedOccupancyModel()
        posterior = model.posterior_occupancy_probability(simulated.true_parameters, simulated.data)

        assert np.all(posterior[simulated.data.detected] == 1.0)

    def test_undetected_units_within_unit_interval(self, simulated):
        model = MarginalizedOccupancyModel()
        undetected = ~simulated.data.detected
        posterior = model.posterior_occupancy_probability(simulated.true_parameters, simulated.data)

        assert np.all((posterior[undetected] >= 0.0) & (posterior[undetected] <= 1.0))

    def test_posterior_below_prior_when_never_detected(self, simulated):
        model = MarginalizedOccupancyModel()
        undetected = ~simulated.data.detected
        psi = model.occupancy_probability(simulated.true_parameters, simulated.data)
        posterior = model.posterior_occupancy_probability(simulated.true_parameters, simulated.data)

        assert np.all(posterior[undetected] < psi[undetected])

    def test_matches_enumeration(self, simulated):
        parameters = simulated.true_parameters
        marginal = MarginalizedOccupancyModel().posterior_occupancy_probability(parameters, simulated.data)
        enumerated = EnumeratedOccupancyModel().posterior_occupancy_probability(parameters, simulated.data)

        np.testing.assert_allclose(marginal, enumerated, rtol=1e-9)

    def test_extreme_values_stay_in_range(self):
        posterior = oj.posterior_occupancy(
            {"occupancy": [900.0], "detection": [0.0]}, None, None, [[0] * 1500, [0, 0]]
        )

        assert np.all(np.isfinite(posterior))
        assert np.all((posterior >= 0.0) & (posterior <= 1.0))
        assert posterior[1] == pytest.approx(1.0)
