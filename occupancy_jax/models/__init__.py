"""
Occupancy model implementations for occupancy-jax.
"""

from .base import (
    ModelType,
    ModelResult,
    OccupancyModel,
    OptimizationStatus,
    ModelRegistry,
    register_model,
    get_model,
    list_available_models,
)
from .functions import logit, inv_logit, log_inv_logit, log1m_inv_logit, log_add_exp
from .occupancy import (
    MarginalizedOccupancyLikelihood,
    MarginalizedOccupancyModel,
    OccupancyCoefficients,
    marginalized_unit_log_likelihoods,
    posterior_occupancy_from_predictors,
)
from .latent import (
    EnumeratedOccupancyModel,
    complete_data_log_likelihood,
    enumerated_unit_log_likelihoods,
    enumerated_posterior_occupancy,
)

# Register built-in models
register_model(ModelType.MARGINALIZED, MarginalizedOccupancyModel)
register_model(ModelType.ENUMERATED, EnumeratedOccupancyModel)

__all__ = [
    "ModelType",
    "ModelResult",
    "OccupancyModel",
    "OptimizationStatus",
    "ModelRegistry",
    "register_model",
    "get_model",
    "list_available_models",
    "logit",
    "inv_logit",
    "log_inv_logit",
    "log1m_inv_logit",
    "log_add_exp",
    "MarginalizedOccupancyLikelihood",
    "MarginalizedOccupancyModel",
    "OccupancyCoefficients",
    "marginalized_unit_log_likelihoods",
    "posterior_occupancy_from_predictors",
    "EnumeratedOccupancyModel",
    "complete_data_log_likelihood",
    "enumerated_unit_log_likelihoods",
    "enumerated_posterior_occupancy",
]
