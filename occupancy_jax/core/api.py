"""
Main API functions for occupancy-jax.

High-level user interface for likelihood evaluation and model fitting.
"""

import time
from pathlib import Path
from typing import Any, Optional, Union

import numpy as np

from ..config.settings import OccupancyJaxConfig, get_default_config
from ..data.adapters import OccupancyData, load_data
from ..formulas.spec import FormulaSpec, create_simple_spec
from ..models.base import ModelResult, ModelType, OptimizationStatus, get_model
from ..models.occupancy import CoefficientsLike, MarginalizedOccupancyLikelihood
from ..optimization.optimizers import compute_covariance, minimize_negative_log_likelihood
from ..utils.logging import get_logger
from .exceptions import ModelSpecificationError

logger = get_logger(__name__)


def evaluate_log_likelihood(
    coefficients: CoefficientsLike,
    unit_covariates: Any,
    event_covariates: Any,
    detection_history: Any,
    formula_spec: Optional[FormulaSpec] = None,
) -> float:
    """
    Marginal log-likelihood of detection histories under a single-season
    occupancy model.

    Examples:
        >>> evaluate_log_likelihood(
        ...     {"occupancy": [0.0], "detection": [np.log(0.25)]},
        ...     None,
        ...     None,
        ...     [[1, 0, 0, 0]],
        ... )  # log(0.5) + log(0.2) + 3 * log(0.8)
    """
    likelihood = MarginalizedOccupancyLikelihood(formula_spec=formula_spec)
    return likelihood.evaluate(coefficients, unit_covariates, event_covariates, detection_history)


def posterior_occupancy(
    coefficients: CoefficientsLike,
    unit_covariates: Any,
    event_covariates: Any,
    detection_history: Any,
    formula_spec: Optional[FormulaSpec] = None,
) -> np.ndarray:
    """P(Z_i = 1 | data) for every unit given fitted coefficients."""
    likelihood = MarginalizedOccupancyLikelihood(formula_spec=formula_spec)
    return likelihood.posterior_occupancy_probability(
        coefficients, unit_covariates, event_covariates, detection_history
    )


def fit_model(
    data: Union[OccupancyData, str, Path],
    formula_spec: Optional[Union[FormulaSpec, dict]] = None,
    model_type: Union[ModelType, str] = ModelType.MARGINALIZED,
    config: Optional[OccupancyJaxConfig] = None,
    initial_parameters: Optional[np.ndarray] = None,
) -> ModelResult:
    """
    Fit an occupancy model by maximum likelihood.

    Args:
        data: Detection data or a CSV path
        formula_spec: Formulas for psi and p (default: intercept-only)
        model_type: "marginalized" (default) or "enumerated"
        config: Configuration (default: global configuration)
        initial_parameters: Starting values (default: naive estimates)

    Returns:
        ModelResult with estimates, standard errors, AIC/BIC and per-unit
        posterior occupancy

    Raises:
        ModelSpecificationError: If no data is given or a formula is invalid
        OptimizationError: If the optimizer fails outright

    Examples:
        >>> spec = create_simple_spec(psi="~1 + elev", p="~1 + date")
        >>> result = fit_model(data, spec)
        >>> result.parameter_table()
    """
    config = config or get_default_config()

    if isinstance(data, (str, Path)):
        data = load_data(data)
    elif data is None:
        raise ModelSpecificationError(
            suggestions=["Provide an OccupancyData object", "Provide a CSV file path"],
        )

    if formula_spec is None:
        formula_spec = create_simple_spec()
        logger.info("Using intercept-only formulas")
    elif isinstance(formula_spec, dict):
        formula_spec = FormulaSpec.from_dict(formula_spec)

    model = get_model(model_type, config=config.likelihood)
    design_matrices = model.build_design_matrices(formula_spec, data)
    parameter_names = model.get_parameter_names(design_matrices)

    if initial_parameters is None:
        initial_parameters = model.get_initial_parameters(data, design_matrices)
    else:
        initial_parameters = np.asarray(initial_parameters, dtype=float)
        model.split_parameters(initial_parameters, design_matrices)

    logger.info(
        f"Fitting {model.model_type.value} occupancy model: {formula_spec}",
        n_units=data.n_units,
        n_detected=data.n_detected,
        n_parameters=len(parameter_names),
    )

    start_time = time.perf_counter()
    log_likelihood_fn = model.log_likelihood_fn(data, design_matrices)
    result = minimize_negative_log_likelihood(
        log_likelihood_fn,
        initial_parameters,
        bounds=model.get_parameter_bounds(design_matrices, config.optimization),
        config=config.optimization,
    )

    warnings = []
    status = OptimizationStatus.SUCCESS
    if not result.success:
        status = (
            OptimizationStatus.MAX_ITER
            if result.nit >= config.optimization.max_iterations
            else OptimizationStatus.FAILED
        )
        warnings.append(f"Optimizer did not converge: {result.message}")
        logger.warning(f"Optimizer did not converge: {result.message}")

    bound = config.optimization.coefficient_bound
    at_bound = [name for name, value in zip(parameter_names, result.x) if abs(value) >= bound - 1e-6]
    if at_bound:
        warnings.append(f"Estimates at the coefficient bound: {at_bound}")
        logger.warning("Estimates at the coefficient bound", parameters=at_bound)

    parameter_se = None
    if config.optimization.compute_standard_errors:
        covariance = compute_covariance(log_likelihood_fn, result.x)
        if covariance is not None:
            result.hess_inv = covariance
            parameter_se = result.standard_errors

    model_result = ModelResult(
        model_type=model.model_type,
        formula_spec=formula_spec,
        status=status,
        parameters=result.x,
        log_likelihood=result.log_likelihood,
        parameter_names=parameter_names,
        parameter_se=parameter_se,
        n_iterations=result.nit,
        optimizer_used=result.method,
        gradient_norm=result.gradient_norm,
        psi=model.occupancy_probability(result.x, data, design_matrices),
        posterior_occupancy=model.posterior_occupancy_probability(result.x, data, design_matrices),
        warnings=warnings,
        fit_time=time.perf_counter() - start_time,
        metadata={"n_units": data.n_units, "n_detected": data.n_detected},
    )

    logger.info(
        "Fit complete",
        log_likelihood=round(model_result.log_likelihood, 4),
        aic=round(model_result.aic, 4),
        fit_time=round(model_result.fit_time, 3),
    )
    return model_result
