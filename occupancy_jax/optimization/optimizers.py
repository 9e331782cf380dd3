"""
Maximum-likelihood optimization for occupancy-jax.

Wraps scipy.optimize.minimize around a JAX log-likelihood: the objective and
its gradient come from one jitted ``value_and_grad`` call, and standard errors
come from the inverse of the exact JAX Hessian at the optimum.
"""

import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import jax
import jax.numpy as jnp
import numpy as np
import scipy.optimize

from ..config.settings import OptimizationConfig, OptimizationMethod, get_default_config
from ..core.exceptions import OptimizationError
from ..utils.logging import get_logger, log_performance


logger = get_logger(__name__)

_BOUNDED_METHODS = {OptimizationMethod.LBFGSB.value, OptimizationMethod.SLSQP.value}


@dataclass
class OptimizationResult:
    """Optimization result following scipy.optimize conventions."""

    success: bool
    x: np.ndarray  # Final parameters
    fun: float  # Final objective value (negative log-likelihood)
    nit: int
    nfev: int
    message: str
    jac: Optional[np.ndarray] = None
    hess_inv: Optional[np.ndarray] = None
    optimization_time: float = 0.0
    method: str = ""

    @property
    def log_likelihood(self) -> float:
        return -float(self.fun)

    @property
    def gradient_norm(self) -> Optional[float]:
        if self.jac is None:
            return None
        return float(np.linalg.norm(self.jac))

    @property
    def standard_errors(self) -> Optional[np.ndarray]:
        """Square roots of the covariance diagonal; NaN where not positive."""
        if self.hess_inv is None:
            return None
        diagonal = np.diag(self.hess_inv)
        return np.where(diagonal > 0, np.sqrt(np.abs(diagonal)), np.nan)


def _method_options(config: OptimizationConfig) -> dict:
    method = OptimizationMethod(config.method).value
    options = {"maxiter": config.max_iterations}
    if method == OptimizationMethod.LBFGSB.value:
        options.update(ftol=config.tolerance, gtol=config.tolerance)
    elif method == OptimizationMethod.BFGS.value:
        options.update(gtol=config.tolerance)
    else:
        options.update(ftol=config.tolerance)
    return options


def minimize_negative_log_likelihood(
    log_likelihood_fn: Callable[[jnp.ndarray], jnp.ndarray],
    x0: np.ndarray,
    bounds: Optional[List[Tuple[float, float]]] = None,
    config: Optional[OptimizationConfig] = None,
) -> OptimizationResult:
    """
    Maximize a log-likelihood by minimizing its negative.

    Args:
        log_likelihood_fn: Pure JAX function of the flat parameter vector
        x0: Starting values
        bounds: Per-parameter (lower, upper); ignored by unbounded methods
        config: Optimization settings (method, iterations, tolerance)

    Raises:
        OptimizationError: If scipy raises, or the objective is not finite at
            the starting values or the final estimate
    """
    config = config or get_default_config().optimization
    method = OptimizationMethod(config.method).value

    objective_and_grad = jax.jit(jax.value_and_grad(lambda x: -log_likelihood_fn(x)))

    def objective(x):
        value, gradient = objective_and_grad(jnp.asarray(x, dtype=float))
        return float(value), np.asarray(gradient, dtype=float)

    x0 = np.asarray(x0, dtype=float)
    initial_value, _ = objective(x0)
    if not np.isfinite(initial_value):
        raise OptimizationError(
            optimizer=method,
            reason=f"objective is {initial_value} at the starting values",
            suggestions=["Check covariates for extreme values", "Supply different starting values"],
        )

    start_time = time.perf_counter()
    try:
        scipy_result = scipy.optimize.minimize(
            fun=objective,
            x0=x0,
            method=method,
            jac=True,
            bounds=bounds if method in _BOUNDED_METHODS else None,
            options=_method_options(config),
        )
    except (ValueError, FloatingPointError, np.linalg.LinAlgError) as e:
        raise OptimizationError(optimizer=method, reason=str(e)) from e

    result = OptimizationResult(
        success=bool(scipy_result.success),
        x=np.asarray(scipy_result.x, dtype=float),
        fun=float(scipy_result.fun),
        nit=int(getattr(scipy_result, "nit", 0)),
        nfev=int(getattr(scipy_result, "nfev", 0)),
        message=str(scipy_result.message),
        jac=np.asarray(scipy_result.jac, dtype=float) if getattr(scipy_result, "jac", None) is not None else None,
        optimization_time=time.perf_counter() - start_time,
        method=method,
    )

    if not np.isfinite(result.fun):
        raise OptimizationError(
            optimizer=method,
            reason="objective is not finite at the final estimate",
            iterations=result.nit,
        )

    logger.info(
        f"{method} finished in {result.nit} iterations, {result.nfev} function evaluations",
        success=result.success,
        log_likelihood=round(result.log_likelihood, 6),
    )
    return result


@log_performance
def compute_covariance(
    log_likelihood_fn: Callable[[jnp.ndarray], jnp.ndarray],
    x: np.ndarray,
) -> Optional[np.ndarray]:
    """
    Inverse observed information at ``x`` from the exact JAX Hessian.

    Returns None when the Hessian of the negative log-likelihood is singular.
    """
    hessian = np.asarray(jax.hessian(lambda p: -log_likelihood_fn(p))(jnp.asarray(x, dtype=float)))
    try:
        return np.linalg.inv(hessian)
    except np.linalg.LinAlgError as e:
        logger.warning(f"Hessian is singular, standard errors unavailable: {e}")
        return None
