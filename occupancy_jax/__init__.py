"""
Occupancy-JAX: marginalized occupancy likelihoods using JAX

Single-season occupancy models with the discrete latent occupancy state summed
out, so the log-likelihood is differentiable in every coefficient and can be
handed to any gradient-based optimizer or sampler.
"""

__version__ = "0.1.0"

import jax

# Configuration
from .config.settings import OccupancyJaxConfig, get_default_config

# Double precision unless disabled; must run before arrays are created
if get_default_config().performance.enable_x64:
    jax.config.update("jax_enable_x64", True)

# Data
from .data.adapters import (
    OccupancyData,
    LongFormatAdapter,
    WideFormatAdapter,
    load_data,
    register_adapter,
)
from .data.simulation import SimulatedOccupancy, simulate_occupancy_data

# Formula system
from .formulas import FormulaSpec, ParameterFormula, create_simple_spec

# Models (importing registers the built-in models)
from .models import (
    MarginalizedOccupancyLikelihood,
    MarginalizedOccupancyModel,
    EnumeratedOccupancyModel,
    OccupancyCoefficients,
    OccupancyModel,
    ModelResult,
    ModelType,
    register_model,
    get_model,
    list_available_models,
    log_add_exp,
)

# Optimization
from .optimization import ParallelLikelihoodEvaluator

# High-level API
from .core.api import evaluate_log_likelihood, posterior_occupancy, fit_model

# Logging
from .utils.logging import get_logger, reconfigure_loggers

# Exceptions
from .core.exceptions import (
    OccupancyJaxError,
    ShapeMismatchError,
    DomainError,
    DataFormatError,
    ModelSpecificationError,
    OptimizationError,
    ConfigurationError,
)

__all__ = [
    "__version__",
    # Configuration
    "OccupancyJaxConfig",
    "get_config",
    "configure",
    # Data
    "OccupancyData",
    "LongFormatAdapter",
    "WideFormatAdapter",
    "load_data",
    "register_adapter",
    "SimulatedOccupancy",
    "simulate_occupancy_data",
    # Formula system
    "FormulaSpec",
    "ParameterFormula",
    "create_simple_spec",
    # Models
    "MarginalizedOccupancyLikelihood",
    "MarginalizedOccupancyModel",
    "EnumeratedOccupancyModel",
    "OccupancyCoefficients",
    "OccupancyModel",
    "ModelResult",
    "ModelType",
    "register_model",
    "get_model",
    "list_available_models",
    "log_add_exp",
    # Optimization
    "ParallelLikelihoodEvaluator",
    # API
    "evaluate_log_likelihood",
    "posterior_occupancy",
    "fit_model",
    # Logging
    "get_logger",
    # Exceptions
    "OccupancyJaxError",
    "ShapeMismatchError",
    "DomainError",
    "DataFormatError",
    "ModelSpecificationError",
    "OptimizationError",
    "ConfigurationError",
]


def get_config() -> OccupancyJaxConfig:
    """Get the global configuration instance."""
    return get_default_config()


def configure(**kwargs) -> None:
    """
    Update global configuration.

    Example:
        >>> configure(**{"parallel.chunk_size": 64, "logging.level": "DEBUG"})
    """
    get_default_config().update(**kwargs)
    reconfigure_loggers()
