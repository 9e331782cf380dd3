"""
Marginalized single-season occupancy likelihood.

The latent occupancy state Z_i is summed out analytically. A unit with at
least one detection can only be occupied, so its contribution is

    log(psi_i) + sum_j [y_ij log(theta_ij) + (1 - y_ij) log(1 - theta_ij)]

A unit never detected is either occupied and missed at every event, or
unoccupied:

    log(psi_i * prod_j (1 - theta_ij) + (1 - psi_i))

evaluated in log space with a two-argument log-add-exp. Both branch arrays are
computed for every unit and the data-derived detected flag selects between
them, so the total is differentiable in every coefficient.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

import jax
import jax.numpy as jnp
import numpy as np

from .base import ModelType, OccupancyModel
from .functions import log1m_inv_logit, log_add_exp, log_inv_logit
from ..config.settings import LikelihoodConfig
from ..core.exceptions import ShapeMismatchError
from ..data.adapters import OccupancyData
from ..formulas.design_matrix import DesignMatrixInfo
from ..formulas.spec import FormulaSpec
from ..utils.logging import get_logger


logger = get_logger(__name__)


def _masked_sum(values: jnp.ndarray, event_mask: jnp.ndarray) -> jnp.ndarray:
    return jnp.sum(jnp.where(event_mask, values, 0.0), axis=1)


def _branch_terms(eta_psi, eta_theta, detection_history, event_mask):
    """Log-space pieces shared by the likelihood and the posterior."""
    log_psi = log_inv_logit(eta_psi)
    log_1m_psi = log1m_inv_logit(eta_psi)
    log_theta = log_inv_logit(eta_theta)
    log_1m_theta = log1m_inv_logit(eta_theta)

    detected = _masked_sum(detection_history, event_mask) > 0

    # Bernoulli log-probability of the observed history, conditional on Z = 1
    bernoulli = _masked_sum(
        jnp.where(detection_history == 1, log_theta, log_1m_theta), event_mask
    )
    occupied_missed = log_psi + _masked_sum(log_1m_theta, event_mask)

    return detected, log_psi + bernoulli, occupied_missed, log_1m_psi


@jax.jit
def marginalized_unit_log_likelihoods(
    eta_psi: jnp.ndarray,
    eta_theta: jnp.ndarray,
    detection_history: jnp.ndarray,
    event_mask: jnp.ndarray,
) -> jnp.ndarray:
    """
    Per-unit marginal log-likelihood from linear predictors.

    Args:
        eta_psi: (n_units,) logit-scale occupancy
        eta_theta: (n_units, max_events) logit-scale detection
        detection_history: (n_units, max_events) 0/1 outcomes
        event_mask: (n_units, max_events) surveyed events

    Returns:
        (n_units,) log-likelihood contributions
    """
    detected, with_detection, occupied_missed, unoccupied = _branch_terms(
        eta_psi, eta_theta, detection_history, event_mask
    )
    without_detection = log_add_exp(occupied_missed, unoccupied)
    return jnp.where(detected, with_detection, without_detection)


@jax.jit
def posterior_occupancy_from_predictors(
    eta_psi: jnp.ndarray,
    eta_theta: jnp.ndarray,
    detection_history: jnp.ndarray,
    event_mask: jnp.ndarray,
) -> jnp.ndarray:
    """P(Z_i = 1 | y_i): 1 for detected units, psi*prod / (psi*prod + 1 - psi) otherwise."""
    detected, _, occupied_missed, unoccupied = _branch_terms(
        eta_psi, eta_theta, detection_history, event_mask
    )
    # Clamp rounding so the ratio never exceeds 1
    posterior = jnp.exp(jnp.minimum(occupied_missed - log_add_exp(occupied_missed, unoccupied), 0.0))
    return jnp.where(detected, 1.0, posterior)


class MarginalizedOccupancyModel(OccupancyModel):
    """Occupancy model with Z summed out; the default for fitting."""

    def __init__(self, config: Optional[LikelihoodConfig] = None):
        super().__init__(ModelType.MARGINALIZED, config)

    def unit_contributions(self, eta_psi, eta_theta, detection_history, event_mask):
        return marginalized_unit_log_likelihoods(eta_psi, eta_theta, detection_history, event_mask)

    def posterior_contributions(self, eta_psi, eta_theta, detection_history, event_mask):
        return posterior_occupancy_from_predictors(eta_psi, eta_theta, detection_history, event_mask)


@dataclass(frozen=True)
class OccupancyCoefficients:
    """Logit-scale coefficients: occupancy (a0, a1, ...) and detection (b0, b1, ...)."""

    occupancy: np.ndarray
    detection: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, "occupancy", np.atleast_1d(np.asarray(self.occupancy, dtype=float)))
        object.__setattr__(self, "detection", np.atleast_1d(np.asarray(self.detection, dtype=float)))
        for name in ("occupancy", "detection"):
            if getattr(self, name).ndim != 1:
                raise ShapeMismatchError(
                    f"{name} coefficients", expected="1-D vector", actual=getattr(self, name).shape
                )

    def as_vector(self) -> np.ndarray:
        """Flat vector, occupancy coefficients first."""
        return np.concatenate([self.occupancy, self.detection])

    @classmethod
    def coerce(cls, value: Any, n_occupancy: int) -> "OccupancyCoefficients":
        """
        Accept an OccupancyCoefficients, a mapping with ``occupancy``/``detection``
        (or ``psi``/``p``) keys, a pair of vectors, or a flat vector whose first
        ``n_occupancy`` entries are occupancy coefficients.
        """
        if isinstance(value, cls):
            return value

        if isinstance(value, Mapping):
            for occ_key, det_key in (("occupancy", "detection"), ("psi", "p")):
                if occ_key in value and det_key in value:
                    return cls(value[occ_key], value[det_key])
            raise ShapeMismatchError(
                "coefficients",
                expected="keys 'occupancy' and 'detection'",
                actual=sorted(value.keys()),
            )

        if isinstance(value, (tuple, list)) and len(value) == 2 and all(np.ndim(v) == 1 for v in value):
            return cls(value[0], value[1])

        flat = np.asarray(value, dtype=float)
        if flat.ndim != 1:
            raise ShapeMismatchError("coefficients", expected="1-D vector", actual=flat.shape)
        return cls(flat[:n_occupancy], flat[n_occupancy:])


CoefficientsLike = Union[OccupancyCoefficients, Mapping, tuple, list, np.ndarray]


class MarginalizedOccupancyLikelihood:
    """
    Total log-likelihood of detection data with the latent occupancy state
    summed out.

    Without a formula specification, occupancy uses an intercept plus every
    unit covariate and detection uses an intercept plus every event covariate,
    in column order. Unit-level terms on detection are passed as event
    covariates repeated over the unit's events, or named in a ``p`` formula.

    Example:
        >>> likelihood = MarginalizedOccupancyLikelihood()
        >>> likelihood.evaluate(
        ...     {"occupancy": [0.0], "detection": [np.log(0.25)]},
        ...     unit_covariates=None,
        ...     event_covariates=None,
        ...     detection_history=[[0, 0, 0, 0]],
        ... )  # log(0.5 * 0.8**4 + 0.5)
    """

    def __init__(
        self,
        formula_spec: Optional[FormulaSpec] = None,
        config: Optional[LikelihoodConfig] = None,
    ):
        self.formula_spec = formula_spec
        self.model = MarginalizedOccupancyModel(config=config)

    @property
    def config(self) -> LikelihoodConfig:
        return self.model.config

    def prepare(self, unit_covariates: Any, event_covariates: Any, detection_history: Any) -> OccupancyData:
        """Pad, shape-check and domain-check raw arrays into an OccupancyData."""
        return OccupancyData.from_arrays(unit_covariates, event_covariates, detection_history)

    def design_matrices(self, data: OccupancyData) -> Dict[str, DesignMatrixInfo]:
        return self.model.build_design_matrices(self.formula_spec, data)

    def coefficient_vector(
        self, coefficients: CoefficientsLike, design_matrices: Dict[str, DesignMatrixInfo]
    ) -> np.ndarray:
        """Check coefficient counts against the design and flatten them."""
        n_psi = design_matrices["psi"].parameter_count
        n_p = design_matrices["p"].parameter_count
        coefs = OccupancyCoefficients.coerce(coefficients, n_psi)

        for name, values, expected, info in (
            ("occupancy coefficients", coefs.occupancy, n_psi, design_matrices["psi"]),
            ("detection coefficients", coefs.detection, n_p, design_matrices["p"]),
        ):
            if len(values) != expected:
                logger.debug(f"Rejected {name}", expected=expected, actual=len(values))
                raise ShapeMismatchError(
                    name,
                    expected=expected,
                    actual=len(values),
                    suggestions=[f"Columns in order: {info.column_names}"],
                )

        return coefs.as_vector()

    def _resolve(self, coefficients, data):
        design = self.design_matrices(data)
        return self.coefficient_vector(coefficients, design), design

    def evaluate_data(self, coefficients: CoefficientsLike, data: OccupancyData) -> float:
        """Total log-likelihood for a prepared :class:`OccupancyData`."""
        parameters, design = self._resolve(coefficients, data)
        return self.model.log_likelihood(parameters, data, design)

    def evaluate(
        self,
        coefficients: CoefficientsLike,
        unit_covariates: Any,
        event_covariates: Any,
        detection_history: Any,
    ) -> float:
        """
        Total log-likelihood of the observed detection histories.

        Raises:
            ShapeMismatchError: If unit counts, coefficient counts, or per-unit
                event counts disagree
            DomainError: If a history value is not 0 or 1, or any psi or theta
                is not finite
        """
        data = self.prepare(unit_covariates, event_covariates, detection_history)
        return self.evaluate_data(coefficients, data)

    def unit_log_likelihoods(
        self,
        coefficients: CoefficientsLike,
        unit_covariates: Any,
        event_covariates: Any,
        detection_history: Any,
    ) -> np.ndarray:
        """Per-unit contributions; they sum to :meth:`evaluate`."""
        data = self.prepare(unit_covariates, event_covariates, detection_history)
        parameters, design = self._resolve(coefficients, data)
        return self.model.unit_log_likelihoods(parameters, data, design)

    def occupancy_probability(self, coefficients: CoefficientsLike, data: OccupancyData) -> np.ndarray:
        parameters, design = self._resolve(coefficients, data)
        return self.model.occupancy_probability(parameters, data, design)

    def detection_probability(self, coefficients: CoefficientsLike, data: OccupancyData) -> np.ndarray:
        parameters, design = self._resolve(coefficients, data)
        return self.model.detection_probability(parameters, data, design)

    def posterior_occupancy_probability(
        self,
        coefficients: CoefficientsLike,
        unit_covariates: Any,
        event_covariates: Any,
        detection_history: Any,
    ) -> np.ndarray:
        """P(Z_i = 1 | data) per unit; exactly 1 for units with a detection."""
        data = self.prepare(unit_covariates, event_covariates, detection_history)
        parameters, design = self._resolve(coefficients, data)
        return self.model.posterior_occupancy_probability(parameters, data, design)

    def log_likelihood_fn(self, data: OccupancyData) -> Callable[[jnp.ndarray], jnp.ndarray]:
        """
        Pure function of the flat coefficient vector (occupancy first) for an
        external sampler or optimizer. Data are validated once here.
        """
        return self.model.log_likelihood_fn(data, self.design_matrices(data))

    def __repr__(self) -> str:
        formulas = str(self.formula_spec) if self.formula_spec else "all covariates"
        return f"{self.__class__.__name__}({formulas})"
