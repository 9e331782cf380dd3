"""
Design matrix construction for occupancy-jax.

Occupancy (psi) formulas draw on unit covariates only and produce an
(n_units, k) matrix. Detection (p) formulas may mix unit and event covariates
and produce an (n_units, max_events, k) array, unit covariates broadcast over
each unit's events.
"""

import numpy as np
from dataclasses import dataclass
from typing import List

from .spec import ParameterFormula, ParameterType
from ..data.adapters import OccupancyData
from ..core.exceptions import ModelSpecificationError
from ..utils.logging import get_logger


logger = get_logger(__name__)

INTERCEPT_NAME = "(Intercept)"


@dataclass
class DesignMatrixInfo:
    """Information about a constructed design matrix."""

    matrix: np.ndarray
    column_names: List[str]
    parameter_count: int
    has_intercept: bool
    formula_string: str


def build_design_matrix(formula: ParameterFormula, data: OccupancyData) -> DesignMatrixInfo:
    """
    Build the design matrix for a parameter formula.

    Args:
        formula: ParameterFormula for psi or p
        data: Detection data with covariates

    Returns:
        DesignMatrixInfo with constructed matrix and metadata

    Raises:
        ModelSpecificationError: If a covariate is unknown, or a psi formula
            references an event-level covariate
    """
    formula.validate_covariates(data.covariate_names)

    if formula.parameter == ParameterType.PSI:
        event_terms = [t for t in formula.terms if t not in data.unit_covariate_names]
        if event_terms:
            raise ModelSpecificationError(
                formula=formula.formula_string,
                parameter=formula.parameter.value,
                suggestions=[
                    f"Occupancy varies by unit only; event covariates {event_terms} belong in the p formula",
                ],
            )
        columns = [data.get_unit_covariate(t) for t in formula.terms]
        if formula.has_intercept:
            columns.insert(0, np.ones(data.n_units))
        matrix = np.column_stack(columns) if columns else np.zeros((data.n_units, 0))
    else:
        shape = (data.n_units, data.max_events)
        columns = []
        for term in formula.terms:
            if term in data.unit_covariate_names:
                columns.append(np.broadcast_to(data.get_unit_covariate(term)[:, None], shape))
            else:
                columns.append(data.get_event_covariate(term))
        if formula.has_intercept:
            columns.insert(0, np.ones(shape))
        matrix = np.stack(columns, axis=-1) if columns else np.zeros(shape + (0,))

    column_names = ([INTERCEPT_NAME] if formula.has_intercept else []) + list(formula.terms)

    logger.debug(
        f"Built {formula.parameter.value} design matrix",
        shape=matrix.shape,
        columns=column_names,
    )

    return DesignMatrixInfo(
        matrix=np.ascontiguousarray(matrix, dtype=float),
        column_names=column_names,
        parameter_count=len(column_names),
        has_intercept=formula.has_intercept,
        formula_string=formula.formula_string,
    )


def default_design_matrices(data: OccupancyData) -> dict:
    """
    Design matrices using every covariate as stored: psi on all unit
    covariates, p on all event covariates, each with an intercept.
    """
    unit_matrix = np.column_stack([np.ones(data.n_units), data.unit_covariates])
    event_matrix = np.concatenate(
        [np.ones((data.n_units, data.max_events, 1)), data.event_covariates], axis=-1
    )
    return {
        "psi": DesignMatrixInfo(
            matrix=unit_matrix,
            column_names=[INTERCEPT_NAME] + list(data.unit_covariate_names),
            parameter_count=unit_matrix.shape[1],
            has_intercept=True,
            formula_string="~1 + " + " + ".join(data.unit_covariate_names) if data.unit_covariate_names else "~1",
        ),
        "p": DesignMatrixInfo(
            matrix=event_matrix,
            column_names=[INTERCEPT_NAME] + list(data.event_covariate_names),
            parameter_count=event_matrix.shape[2],
            has_intercept=True,
            formula_string="~1 + " + " + ".join(data.event_covariate_names) if data.event_covariate_names else "~1",
        ),
    }
