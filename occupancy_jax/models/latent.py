"""
Latent-state formulation of the occupancy model.

Here Z_i is kept explicit: the joint probability of the detection history and
a given occupancy vector z, and the marginal obtained by enumerating both
values of every Z_i. Enumeration is slower than the closed form in
:mod:`occupancy_jax.models.occupancy` but derives the same quantity by brute
force, which makes it an independent reference for that closed form.
"""

from typing import Optional

import jax
import jax.numpy as jnp
from jax.scipy.special import logsumexp

from .base import ModelType, OccupancyModel
from .functions import log1m_inv_logit, log_inv_logit
from ..config.settings import LikelihoodConfig


@jax.jit
def complete_data_log_likelihood(
    eta_psi: jnp.ndarray,
    eta_theta: jnp.ndarray,
    detection_history: jnp.ndarray,
    event_mask: jnp.ndarray,
    z: jnp.ndarray,
) -> jnp.ndarray:
    """
    Per-unit log p(y_i, Z_i = z_i).

    Given Z_i = 1 each event is Bernoulli(theta_ij); given Z_i = 0 every outcome
    is 0 with probability one, so any detection makes the unit -inf.

    Args:
        eta_psi: (n_units,) logit-scale occupancy
        eta_theta: (n_units, max_events) logit-scale detection
        detection_history: (n_units, max_events) 0/1 outcomes
        event_mask: (n_units, max_events) surveyed events
        z: (n_units,) latent occupancy, 0 or 1

    Returns:
        (n_units,) log joint probabilities
    """
    occupied = z == 1
    y = jnp.where(event_mask, detection_history, 0.0)

    log_state = jnp.where(occupied, log_inv_logit(eta_psi), log1m_inv_logit(eta_psi))

    bernoulli = jnp.where(y == 1, log_inv_logit(eta_theta), log1m_inv_logit(eta_theta))
    log_history_occupied = jnp.sum(jnp.where(event_mask, bernoulli, 0.0), axis=1)
    log_history_empty = jnp.where(jnp.sum(y, axis=1) > 0, -jnp.inf, 0.0)

    return log_state + jnp.where(occupied, log_history_occupied, log_history_empty)


@jax.jit
def enumerated_unit_log_likelihoods(
    eta_psi: jnp.ndarray,
    eta_theta: jnp.ndarray,
    detection_history: jnp.ndarray,
    event_mask: jnp.ndarray,
) -> jnp.ndarray:
    """Per-unit log sum over z_i in {0, 1} of p(y_i, Z_i = z_i)."""
    states = jnp.stack(
        [
            complete_data_log_likelihood(
                eta_psi, eta_theta, detection_history, event_mask, jnp.full(eta_psi.shape, z)
            )
            for z in (0, 1)
        ]
    )
    return logsumexp(states, axis=0)


@jax.jit
def enumerated_posterior_occupancy(
    eta_psi: jnp.ndarray,
    eta_theta: jnp.ndarray,
    detection_history: jnp.ndarray,
    event_mask: jnp.ndarray,
) -> jnp.ndarray:
    """P(Z_i = 1 | y_i) by normalizing the two enumerated joint terms."""
    occupied = complete_data_log_likelihood(
        eta_psi, eta_theta, detection_history, event_mask, jnp.ones(eta_psi.shape)
    )
    marginal = enumerated_unit_log_likelihoods(eta_psi, eta_theta, detection_history, event_mask)
    return jnp.exp(jnp.minimum(occupied - marginal, 0.0))


class EnumeratedOccupancyModel(OccupancyModel):
    """Occupancy model marginalized by explicit enumeration of Z."""

    def __init__(self, config: Optional[LikelihoodConfig] = None):
        super().__init__(ModelType.ENUMERATED, config)

    def unit_contributions(self, eta_psi, eta_theta, detection_history, event_mask):
        return enumerated_unit_log_likelihoods(eta_psi, eta_theta, detection_history, event_mask)

    def posterior_contributions(self, eta_psi, eta_theta, detection_history, event_mask):
        return enumerated_posterior_occupancy(eta_psi, eta_theta, detection_history, event_mask)

    def complete_data_log_likelihood(self, parameters, data, z, design_matrices=None):
        """Total log p(y, Z = z) for concrete parameters and latent states."""
        design_matrices = design_matrices or self.build_design_matrices(None, data)
        eta_psi, eta_theta = self.checked_linear_predictors(parameters, data, design_matrices)
        history, mask = self.data_arrays(data)
        return float(
            jnp.sum(complete_data_log_likelihood(eta_psi, eta_theta, history, mask, jnp.asarray(z)))
        )
