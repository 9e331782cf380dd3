"""
Integration tests: simulate, fit by maximum likelihood, and inspect results.
"""

import jax.numpy as jnp
import numpy as np
import pytest

import occupancy_jax as oj
from occupancy_jax.config.settings import OccupancyJaxConfig
from occupancy_jax.core.exceptions import ModelSpecificationError, OptimizationError, ShapeMismatchError
from occupancy_jax.models.base import ModelType, OptimizationStatus
from occupancy_jax.optimization.optimizers import minimize_negative_log_likelihood

pytestmark = pytest.mark.integration


@pytest.fixture(scope="module")
def large_simulation():
    return oj.simulate_occupancy_data(
        n_units=500,
        n_events=5,
        occupancy_coefficients=[0.4, 1.0],
        detection_coefficients=[0.1, -0.7],
        seed=11,
    )


@pytest.fixture(scope="module")
def fitted(large_simulation):
    spec = oj.create_simple_spec(psi="~x1", p="~w1")
    return oj.fit_model(large_simulation.data, spec)


class TestParameterRecovery:

    def test_converges(self, fitted):
        assert fitted.success
        assert fitted.status == OptimizationStatus.SUCCESS
        assert fitted.parameter_names == ["psi_(Intercept)", "psi_x1", "p_(Intercept)", "p_w1"]
        assert fitted.gradient_norm < 0.1

    def test_estimates_near_truth(self, fitted, large_simulation):
        errors = np.abs(fitted.parameters - large_simulation.true_parameters)
        assert np.all(errors < 4 * fitted.parameter_se)

    def test_information_criteria(self, fitted):
        k = 4
        assert fitted.n_parameters == k
        assert fitted.aic == pytest.approx(-2 * fitted.log_likelihood + 2 * k)
        assert fitted.bic == pytest.approx(-2 * fitted.log_likelihood + np.log(500) * k)

    def test_posterior_and_psi(self, fitted, large_simulation):
        detected = large_simulation.data.detected

        assert fitted.posterior_occupancy.shape == (500,)
        assert np.all(fitted.posterior_occupancy[detected] == 1.0)
        assert np.all(fitted.psi > 0) and np.all(fitted.psi < 1)
        assert large_simulation.data.n_detected <= fitted.estimated_occupied <= 500

    def test_parameter_table(self, fitted):
        table = fitted.parameter_table()

        assert list(table.columns) == ["estimate", "std_error", "lower_95", "upper_95"]
        assert list(table.index) == fitted.parameter_names
        assert np.all(table["std_error"] > 0)

    def test_serializable_summary(self, fitted):
        summary = fitted.to_dict()

        assert summary["model_type"] == "marginalized"
        assert summary["formulas"] == {"psi": "~x1", "p": "~w1"}
        assert set(summary["parameters"]) == set(fitted.parameter_names)


class TestModelVariants:

    def test_enumerated_fit_matches_marginalized(self, large_simulation, fitted):
        result = oj.fit_model(
            large_simulation.data, {"psi": "~x1", "p": "~w1"}, model_type="enumerated"
        )

        assert result.model_type == ModelType.ENUMERATED
        assert result.log_likelihood == pytest.approx(fitted.log_likelihood, rel=1e-6)
        np.testing.assert_allclose(result.parameters, fitted.parameters, atol=1e-2)

    @pytest.mark.parametrize("method", ["BFGS", "SLSQP"])
    def test_other_optimizers(self, large_simulation, fitted, method):
        config = OccupancyJaxConfig(optimization={"method": method})
        result = oj.fit_model(large_simulation.data, {"psi": "~x1", "p": "~w1"}, config=config)

        assert result.optimizer_used == method
        assert result.log_likelihood == pytest.approx(fitted.log_likelihood, rel=1e-5)

    def test_shared_detection_covariate(self):
        sim = oj.simulate_occupancy_data(
            300, 4, [0.0, 0.6], [0.3, 0.5, -0.4], seed=5, n_detection_unit_covariates=1
        )
        result = oj.fit_model(sim.data, oj.create_simple_spec(psi="~x1", p="~x1 + w1"))

        assert result.parameter_names[-2:] == ["p_x1", "p_w1"]
        assert np.all(np.isfinite(result.parameters))

    def test_intercept_only_default(self, large_simulation):
        result = oj.fit_model(large_simulation.data)

        assert result.parameter_names == ["psi_(Intercept)", "p_(Intercept)"]
        assert result.success


class TestFitInputs:

    def test_fit_from_csv(self, tmp_path, long_frame):
        path = tmp_path / "detections.csv"
        long_frame.to_csv(path, index=False)

        result = oj.fit_model(path)
        assert result.metadata["n_units"] == 3
        assert np.all(np.isfinite(result.parameters))

    def test_missing_data(self):
        with pytest.raises(ModelSpecificationError):
            oj.fit_model(None)

    def test_bad_initial_parameters(self, large_simulation):
        with pytest.raises(ShapeMismatchError):
            oj.fit_model(large_simulation.data, initial_parameters=[0.0, 0.0, 0.0])

    def test_non_finite_objective_raises(self):
        with pytest.raises(OptimizationError):
            minimize_negative_log_likelihood(lambda x: jnp.log(jnp.sum(x) - 10.0), np.zeros(1))
