"""
Synthetic single-season occupancy data.

All randomness comes from a locally scoped ``numpy.random.Generator``; the
global numpy seed is never read or modified.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Sequence, Union
from scipy.special import expit

from .adapters import OccupancyData
from ..core.exceptions import ShapeMismatchError
from ..utils.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class SimulatedOccupancy:
    """Simulated data together with the true latent quantities."""

    data: OccupancyData
    z: np.ndarray
    psi: np.ndarray
    theta: np.ndarray
    occupancy_coefficients: np.ndarray
    detection_coefficients: np.ndarray

    @property
    def true_occupied(self) -> int:
        return int(self.z.sum())

    @property
    def true_parameters(self) -> np.ndarray:
        """Occupancy then detection coefficients, in fitting order."""
        return np.concatenate([self.occupancy_coefficients, self.detection_coefficients])


def simulate_occupancy_data(
    n_units: int,
    n_events: Union[int, Sequence[int]],
    occupancy_coefficients: Sequence[float],
    detection_coefficients: Sequence[float],
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
    n_detection_unit_covariates: int = 0,
    min_events: int = 1,
) -> SimulatedOccupancy:
    """
    Simulate detection histories from a single-season occupancy model.

    Unit covariates and event covariates are standard normal draws.
    Detection covariates are ordered unit-level first (copied from the first
    ``n_detection_unit_covariates`` occupancy covariates and broadcast over
    events), then event-level, matching :func:`build_design_matrix` ordering.

    Args:
        n_units: Number of closure units (sites)
        n_events: Events per unit; a sequence gives ragged histories, an int
            gives the same number to every unit
        occupancy_coefficients: ``[a0, a1, ...]``; one covariate per slope
        detection_coefficients: ``[b0, b1, ...]``; one covariate per slope
        rng: Random generator; built from ``seed`` when omitted
        seed: Seed for a fresh local generator (ignored when ``rng`` given)
        n_detection_unit_covariates: How many detection slopes act on
            unit-level covariates
        min_events: Floor applied to ragged event counts

    Returns:
        SimulatedOccupancy with the data and the true latent states
    """
    if rng is None:
        rng = np.random.default_rng(seed)

    alpha = np.asarray(occupancy_coefficients, dtype=float)
    beta = np.asarray(detection_coefficients, dtype=float)
    if alpha.ndim != 1 or alpha.size < 1:
        raise ShapeMismatchError("occupancy_coefficients", expected="intercept + slopes", actual=alpha.shape)
    if beta.ndim != 1 or beta.size < 1:
        raise ShapeMismatchError("detection_coefficients", expected="intercept + slopes", actual=beta.shape)

    k_unit = alpha.size - 1
    k_shared = n_detection_unit_covariates
    k_event = beta.size - 1 - k_shared
    if k_shared > k_unit or k_event < 0:
        raise ShapeMismatchError(
            "n_detection_unit_covariates",
            expected=f"<= {min(k_unit, beta.size - 1)}",
            actual=k_shared,
        )

    if np.ndim(n_events) == 0:
        events = np.full(n_units, int(n_events), dtype=int)
    else:
        events = np.maximum(np.asarray(n_events, dtype=int), min_events)
        if events.shape != (n_units,):
            raise ShapeMismatchError("n_events", expected=n_units, actual=events.shape)

    unit_x = rng.standard_normal((n_units, k_unit))
    psi = expit(alpha[0] + unit_x @ alpha[1:])
    z = rng.binomial(1, psi)

    histories, event_blocks, thetas = [], [], []
    for i in range(n_units):
        shared = np.broadcast_to(unit_x[i, :k_shared], (events[i], k_shared))
        own = rng.standard_normal((events[i], k_event))
        w = np.hstack([shared, own])
        theta_i = expit(beta[0] + w @ beta[1:])
        histories.append(rng.binomial(1, z[i] * theta_i).astype(float))
        event_blocks.append(own)
        thetas.append(theta_i)

    max_events = int(events.max()) if n_units else 0
    theta = np.full((n_units, max_events), np.nan)
    for i, theta_i in enumerate(thetas):
        theta[i, : len(theta_i)] = theta_i

    data = OccupancyData.from_arrays(
        unit_covariates=unit_x,
        event_covariates=event_blocks,
        detection_history=histories,
        unit_covariate_names=[f"x{k + 1}" for k in range(k_unit)],
        event_covariate_names=[f"w{k + 1}" for k in range(k_event)],
        metadata={"simulated": True},
    )

    logger.debug(
        "Simulated occupancy data",
        n_units=n_units,
        occupied=int(z.sum()),
        detected=data.n_detected,
    )

    return SimulatedOccupancy(
        data=data,
        z=z,
        psi=psi,
        theta=theta,
        occupancy_coefficients=alpha,
        detection_coefficients=beta,
    )
