"""
Shared pytest configuration and fixtures for occupancy-jax tests.

This module provides common test fixtures, utilities, and configuration
used across the test suite. Random data always comes from a locally
constructed generator; global seed state is never touched.
"""

import pytest
import numpy as np
import pandas as pd

import occupancy_jax as oj
from occupancy_jax.data.adapters import OccupancyData


# psi = 0.5 and theta = 0.2 on the logit scale
PSI_HALF = 0.0
THETA_FIFTH = float(np.log(0.25))


@pytest.fixture
def rng():
    """Locally scoped random generator."""
    return np.random.default_rng(20240611)


@pytest.fixture
def single_unit_coefficients():
    """Intercept-only coefficients giving psi = 0.5 and theta = 0.2."""
    return {"occupancy": [PSI_HALF], "detection": [THETA_FIFTH]}


@pytest.fixture
def ragged_histories():
    """Three units surveyed 4, 2 and 3 times."""
    return [[0, 0, 0, 0], [1, 0], [0, 1, 1]]


@pytest.fixture
def ragged_data(rng, ragged_histories):
    """Ragged data with one unit covariate and one event covariate."""
    lengths = [len(h) for h in ragged_histories]
    return OccupancyData.from_arrays(
        unit_covariates=rng.normal(size=(3, 1)),
        event_covariates=[rng.normal(size=(n, 1)) for n in lengths],
        detection_history=ragged_histories,
        unit_covariate_names=["elev"],
        event_covariate_names=["date"],
    )


@pytest.fixture
def simulated(rng):
    """Moderately sized simulated dataset with known coefficients."""
    return oj.simulate_occupancy_data(
        n_units=60,
        n_events=rng.integers(2, 7, size=60),
        occupancy_coefficients=[0.3, 0.8],
        detection_coefficients=[-0.2, 0.6],
        rng=rng,
    )


@pytest.fixture
def long_frame():
    """Long-format detection data: one row per (unit, event)."""
    return pd.DataFrame(
        {
            "unit": ["a", "a", "a", "b", "b", "c", "c", "c"],
            "event": [1, 2, 3, 1, 2, 1, 2, 3],
            "y": [0, 1, 0, 0, 0, 1, 1, 0],
            "elev": [1.5, 1.5, 1.5, -0.3, -0.3, 0.2, 0.2, 0.2],
            "date": [0.1, 0.4, 0.9, 0.2, 0.5, 0.0, 0.3, 0.6],
        }
    )


@pytest.fixture
def wide_frame():
    """Wide-format detection data with an unsurveyed (NaN) cell."""
    return pd.DataFrame(
        {
            "site": ["s1", "s2", "s3"],
            "y1": [0, 1, 0],
            "y2": [0, np.nan, 1],
            "y3": [0, 0, 1],
            "forest": [0.4, 0.9, 0.1],
            "wind1": [1.0, 2.0, 3.0],
            "wind2": [1.5, 2.5, 3.5],
            "wind3": [0.5, 1.0, 0.0],
        }
    )


# Markers for different test types
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test (fast)")
    config.addinivalue_line("markers", "integration: mark test as an integration test (medium speed)")
    config.addinivalue_line("markers", "slow: mark test as slow (may take >10 seconds)")


# Test utilities
class TestUtils:
    """Utility functions for testing."""

    @staticmethod
    def undetected_contribution(psi, thetas):
        """log(psi * prod(1 - theta) + 1 - psi) computed directly."""
        return float(np.log(psi * np.prod(1 - np.asarray(thetas)) + 1 - psi))

    @staticmethod
    def detected_contribution(psi, thetas, history):
        """log(psi) + Bernoulli log-probability of the history."""
        thetas = np.asarray(thetas, dtype=float)
        history = np.asarray(history, dtype=float)
        return float(
            np.log(psi) + np.sum(history * np.log(thetas) + (1 - history) * np.log(1 - thetas))
        )


@pytest.fixture
def test_utils():
    """Provide test utilities."""
    return TestUtils
