"""
Base classes for occupancy models in occupancy-jax.

Defines the common interface and infrastructure for all model implementations:
parameter splitting, linear predictors, input checks, and the model registry.
Subclasses supply the per-unit likelihood contributions and the posterior
occupancy probability.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Any, Tuple, Type, Union
from enum import Enum

import jax
import jax.numpy as jnp
import numpy as np
import pandas as pd

from .functions import inv_logit, linear_predictor, logit
from ..config.settings import LikelihoodConfig, OptimizationConfig, get_default_config
from ..core.exceptions import ShapeMismatchError
from ..data.adapters import OccupancyData
from ..formulas.design_matrix import DesignMatrixInfo, build_design_matrix, default_design_matrices
from ..formulas.spec import FormulaSpec
from ..utils.logging import get_logger
from ..utils.validation import validate_finite, validate_probability


logger = get_logger(__name__)

PARAMETER_ORDER = ("psi", "p")


class ModelType(str, Enum):
    """Likelihood formulations of the single-season occupancy model."""

    MARGINALIZED = "marginalized"
    ENUMERATED = "enumerated"


class OptimizationStatus(str, Enum):
    """Optimization status codes."""

    SUCCESS = "success"
    FAILED = "failed"
    MAX_ITER = "max_iterations"


@dataclass
class ModelResult:
    """Result of fitting an occupancy model."""

    model_type: ModelType
    formula_spec: Optional[FormulaSpec] = None
    status: OptimizationStatus = OptimizationStatus.FAILED
    parameters: Optional[np.ndarray] = None
    log_likelihood: Optional[float] = None
    aic: Optional[float] = None
    bic: Optional[float] = None

    parameter_names: Optional[List[str]] = None
    parameter_se: Optional[np.ndarray] = None

    n_parameters: Optional[int] = None
    n_iterations: Optional[int] = None
    optimizer_used: Optional[str] = None
    gradient_norm: Optional[float] = None

    psi: Optional[np.ndarray] = None
    posterior_occupancy: Optional[np.ndarray] = None

    warnings: List[str] = field(default_factory=list)
    fit_time: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Calculate derived quantities after initialization."""
        if self.parameters is not None and self.n_parameters is None:
            self.n_parameters = len(self.parameters)

        if self.log_likelihood is not None and self.n_parameters is not None:
            if self.aic is None:
                self.aic = -2 * self.log_likelihood + 2 * self.n_parameters

            if self.bic is None and "n_units" in self.metadata:
                n = self.metadata["n_units"]
                self.bic = -2 * self.log_likelihood + np.log(n) * self.n_parameters

    @property
    def success(self) -> bool:
        return self.status == OptimizationStatus.SUCCESS

    @property
    def estimated_occupied(self) -> Optional[float]:
        """Expected number of occupied units given the data."""
        if self.posterior_occupancy is None:
            return None
        return float(np.sum(self.posterior_occupancy))

    def get_parameter_dict(self) -> Dict[str, float]:
        if self.parameters is None or self.parameter_names is None:
            return {}
        return {name: float(value) for name, value in zip(self.parameter_names, self.parameters)}

    def parameter_table(self) -> pd.DataFrame:
        """Estimates with standard errors and Wald 95% intervals."""
        table = pd.DataFrame(
            {"estimate": np.asarray(self.parameters, dtype=float)},
            index=pd.Index(self.parameter_names, name="parameter"),
        )
        if self.parameter_se is not None:
            se = np.asarray(self.parameter_se, dtype=float)
            table["std_error"] = se
            table["lower_95"] = table["estimate"] - 1.959964 * se
            table["upper_95"] = table["estimate"] + 1.959964 * se
        return table

    def get_summary_stats(self) -> Dict[str, float]:
        stats = {}
        if self.log_likelihood is not None:
            stats["log_likelihood"] = float(self.log_likelihood)
        if self.aic is not None:
            stats["aic"] = float(self.aic)
        if self.bic is not None:
            stats["bic"] = float(self.bic)
        if self.n_parameters is not None:
            stats["n_parameters"] = self.n_parameters
        if self.gradient_norm is not None:
            stats["gradient_norm"] = float(self.gradient_norm)
        if self.posterior_occupancy is not None:
            stats["estimated_occupied"] = self.estimated_occupied
        return stats

    def to_dict(self) -> Dict[str, Any]:
        result_dict = {
            "model_type": ModelType(self.model_type).value,
            "status": OptimizationStatus(self.status).value,
            "success": self.success,
        }
        if self.formula_spec is not None:
            result_dict["formulas"] = self.formula_spec.to_dict()
        if self.parameters is not None:
            result_dict["parameters"] = self.get_parameter_dict()
        result_dict.update(self.get_summary_stats())
        result_dict["metadata"] = dict(self.metadata)
        if self.warnings:
            result_dict["warnings"] = list(self.warnings)
        return result_dict


class OccupancyModel(ABC):
    """
    Abstract base class for single-season occupancy likelihoods.

    Parameters are a flat vector: occupancy coefficients (psi design columns)
    followed by detection coefficients (p design columns), on the logit scale.
    """

    def __init__(self, model_type: ModelType, config: Optional[LikelihoodConfig] = None):
        self.model_type = model_type
        self._config = config
        self.logger = get_logger(self.__class__.__name__)

    @property
    def config(self) -> LikelihoodConfig:
        return self._config or get_default_config().likelihood

    @abstractmethod
    def unit_contributions(
        self,
        eta_psi: jnp.ndarray,
        eta_theta: jnp.ndarray,
        detection_history: jnp.ndarray,
        event_mask: jnp.ndarray,
    ) -> jnp.ndarray:
        """
        Per-unit log-likelihood from linear predictors.

        Must be a pure, traceable JAX function of its arguments.

        Args:
            eta_psi: (n_units,) occupancy linear predictor
            eta_theta: (n_units, max_events) detection linear predictor
            detection_history: (n_units, max_events) 0/1 outcomes
            event_mask: (n_units, max_events) surveyed events

        Returns:
            (n_units,) log-likelihood contributions
        """
        pass

    @abstractmethod
    def posterior_contributions(
        self,
        eta_psi: jnp.ndarray,
        eta_theta: jnp.ndarray,
        detection_history: jnp.ndarray,
        event_mask: jnp.ndarray,
    ) -> jnp.ndarray:
        """Per-unit P(Z = 1 | data) from linear predictors."""
        pass

    def build_design_matrices(
        self, formula_spec: Optional[FormulaSpec], data: OccupancyData
    ) -> Dict[str, DesignMatrixInfo]:
        """
        Build design matrices for psi and p.

        Without a formula specification every stored covariate is used:
        psi on all unit covariates, p on all event covariates.
        """
        if formula_spec is None:
            return default_design_matrices(data)

        return {
            "psi": build_design_matrix(formula_spec.psi, data),
            "p": build_design_matrix(formula_spec.p, data),
        }

    def get_parameter_names(self, design_matrices: Dict[str, DesignMatrixInfo]) -> List[str]:
        names = []
        for param_name in PARAMETER_ORDER:
            names.extend(f"{param_name}_{col}" for col in design_matrices[param_name].column_names)
        return names

    def n_parameters(self, design_matrices: Dict[str, DesignMatrixInfo]) -> int:
        return sum(design_matrices[name].parameter_count for name in PARAMETER_ORDER)

    def split_parameters(
        self, parameters: jnp.ndarray, design_matrices: Dict[str, DesignMatrixInfo]
    ) -> Dict[str, jnp.ndarray]:
        """Split a flat parameter vector into psi and p coefficients."""
        expected = self.n_parameters(design_matrices)
        if parameters.shape != (expected,):
            raise ShapeMismatchError(
                "coefficients",
                expected=expected,
                actual=parameters.shape[0] if parameters.ndim == 1 else parameters.shape,
                suggestions=[f"Parameter order: {self.get_parameter_names(design_matrices)}"],
            )

        n_psi = design_matrices["psi"].parameter_count
        return {"psi": parameters[:n_psi], "p": parameters[n_psi:]}

    def linear_predictors(
        self, parameters: jnp.ndarray, design_matrices: Dict[str, DesignMatrixInfo]
    ) -> Tuple[jnp.ndarray, jnp.ndarray]:
        param_split = self.split_parameters(parameters, design_matrices)
        eta_psi = linear_predictor(jnp.asarray(design_matrices["psi"].matrix), param_split["psi"])
        eta_theta = linear_predictor(jnp.asarray(design_matrices["p"].matrix), param_split["p"])
        return eta_psi, eta_theta

    def checked_linear_predictors(
        self,
        parameters: Any,
        data: OccupancyData,
        design_matrices: Dict[str, DesignMatrixInfo],
    ) -> Tuple[jnp.ndarray, jnp.ndarray]:
        """Linear predictors from concrete inputs, rejecting non-finite values."""
        parameters = jnp.asarray(parameters, dtype=float)
        eta_psi, eta_theta = self.linear_predictors(parameters, design_matrices)

        validate_finite(np.asarray(eta_psi), "psi")
        validate_finite(np.asarray(eta_theta), "theta", mask=data.event_mask)

        return eta_psi, eta_theta

    def data_arrays(self, data: OccupancyData) -> Tuple[jnp.ndarray, jnp.ndarray]:
        return jnp.asarray(data.detection_history, dtype=float), jnp.asarray(data.event_mask)

    def unit_log_likelihoods(
        self,
        parameters: Any,
        data: OccupancyData,
        design_matrices: Optional[Dict[str, DesignMatrixInfo]] = None,
    ) -> np.ndarray:
        """Per-unit log-likelihood contributions for concrete parameters."""
        design_matrices = design_matrices or self.build_design_matrices(None, data)
        eta_psi, eta_theta = self.checked_linear_predictors(parameters, data, design_matrices)
        history, mask = self.data_arrays(data)
        return np.asarray(self.unit_contributions(eta_psi, eta_theta, history, mask))

    def log_likelihood(
        self,
        parameters: Any,
        data: OccupancyData,
        design_matrices: Optional[Dict[str, DesignMatrixInfo]] = None,
    ) -> float:
        """Total log-likelihood for concrete parameters."""
        return float(np.sum(self.unit_log_likelihoods(parameters, data, design_matrices)))

    def log_likelihood_fn(
        self,
        data: OccupancyData,
        design_matrices: Optional[Dict[str, DesignMatrixInfo]] = None,
    ) -> Callable[[jnp.ndarray], jnp.ndarray]:
        """
        Pure function of the flat parameter vector for repeated evaluation.

        Data arrays are converted once and closed over; the returned function
        performs no validation and is safe under ``jax.grad``/``jax.jit``.
        """
        design_matrices = design_matrices or self.build_design_matrices(None, data)
        x_psi = jnp.asarray(design_matrices["psi"].matrix)
        x_p = jnp.asarray(design_matrices["p"].matrix)
        history, mask = self.data_arrays(data)
        n_psi = design_matrices["psi"].parameter_count

        def log_likelihood(parameters):
            eta_psi = linear_predictor(x_psi, parameters[:n_psi])
            eta_theta = linear_predictor(x_p, parameters[n_psi:])
            return jnp.sum(self.unit_contributions(eta_psi, eta_theta, history, mask))

        return jax.jit(log_likelihood) if self.config.enable_jit else log_likelihood

    def occupancy_probability(
        self,
        parameters: Any,
        data: OccupancyData,
        design_matrices: Optional[Dict[str, DesignMatrixInfo]] = None,
    ) -> np.ndarray:
        """psi for every unit."""
        design_matrices = design_matrices or self.build_design_matrices(None, data)
        eta_psi, _ = self.checked_linear_predictors(parameters, data, design_matrices)
        return np.asarray(inv_logit(eta_psi))

    def detection_probability(
        self,
        parameters: Any,
        data: OccupancyData,
        design_matrices: Optional[Dict[str, DesignMatrixInfo]] = None,
    ) -> np.ndarray:
        """theta for every surveyed (unit, event); NaN in padded cells."""
        design_matrices = design_matrices or self.build_design_matrices(None, data)
        _, eta_theta = self.checked_linear_predictors(parameters, data, design_matrices)
        return np.where(data.event_mask, np.asarray(inv_logit(eta_theta)), np.nan)

    def posterior_occupancy_probability(
        self,
        parameters: Any,
        data: OccupancyData,
        design_matrices: Optional[Dict[str, DesignMatrixInfo]] = None,
    ) -> np.ndarray:
        """P(Z_i = 1 | data) for every unit; exactly 1 where a detection occurred."""
        design_matrices = design_matrices or self.build_design_matrices(None, data)
        eta_psi, eta_theta = self.checked_linear_predictors(parameters, data, design_matrices)
        history, mask = self.data_arrays(data)
        posterior = np.asarray(self.posterior_contributions(eta_psi, eta_theta, history, mask))
        validate_probability(posterior, "posterior occupancy")
        return posterior

    def get_initial_parameters(
        self, data: OccupancyData, design_matrices: Dict[str, DesignMatrixInfo]
    ) -> np.ndarray:
        """
        Starting values from naive estimates: the fraction of units with a
        detection for psi, the per-event detection rate at those units for p.
        Slopes start at zero.
        """
        psi_naive = float(np.clip(data.naive_occupancy, 0.05, 0.95))

        detected = data.detected
        surveyed = data.event_mask[detected]
        if surveyed.sum() > 0:
            p_naive = float(data.detection_history[detected][surveyed].mean())
        else:
            p_naive = 0.5
        p_naive = float(np.clip(p_naive, 0.05, 0.95))

        self.logger.debug(f"Naive estimates: psi={psi_naive:.3f}, p={p_naive:.3f}")

        initial_params = []
        for param_name, naive in (("psi", psi_naive), ("p", p_naive)):
            design_info = design_matrices[param_name]
            params = np.zeros(design_info.parameter_count)
            if design_info.has_intercept:
                params[0] = float(logit(naive))
            initial_params.append(params)

        return np.concatenate(initial_params)

    def get_parameter_bounds(
        self,
        design_matrices: Dict[str, DesignMatrixInfo],
        optimization_config: Optional[OptimizationConfig] = None,
    ) -> List[tuple]:
        """Symmetric logit-scale bounds for every coefficient."""
        bound = (optimization_config or get_default_config().optimization).coefficient_bound
        return [(-bound, bound)] * self.n_parameters(design_matrices)


class ModelRegistry:
    """
    Registry for managing available model implementations.

    Provides a plugin-style system for registering and creating model instances.
    """

    def __init__(self):
        self._models: Dict[ModelType, Type[OccupancyModel]] = {}
        self.logger = get_logger(self.__class__.__name__)

    def register(self, model_type: ModelType, model_class: Type[OccupancyModel]) -> None:
        if not issubclass(model_class, OccupancyModel):
            raise TypeError("Model class must inherit from OccupancyModel")

        self._models[model_type] = model_class
        self.logger.debug(f"Registered model: {model_type.value} -> {model_class.__name__}")

    def get_model(self, model_type: Union[ModelType, str], **kwargs) -> OccupancyModel:
        """
        Get a model instance by type.

        Raises:
            ValueError: If model type not registered
        """
        if isinstance(model_type, str):
            try:
                model_type = ModelType(model_type)
            except ValueError:
                raise ValueError(f"Unknown model type: {model_type}")

        if model_type not in self._models:
            raise ValueError(
                f"Model type '{model_type.value}' not registered. "
                f"Available: {[m.value for m in self._models]}"
            )

        return self._models[model_type](**kwargs)

    def list_models(self) -> List[ModelType]:
        return list(self._models.keys())


# Global model registry instance
_registry = ModelRegistry()


def register_model(model_type: ModelType, model_class: Type[OccupancyModel]) -> None:
    """Register a model with the global registry."""
    _registry.register(model_type, model_class)


def get_model(model_type: Union[ModelType, str], **kwargs) -> OccupancyModel:
    """Get a model instance from the global registry."""
    return _registry.get_model(model_type, **kwargs)


def list_available_models() -> List[ModelType]:
    """List available model types in the global registry."""
    return _registry.list_models()
