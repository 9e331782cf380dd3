"""Core functionality for occupancy-jax."""

from .exceptions import (
    OccupancyJaxError,
    ShapeMismatchError,
    DomainError,
    DataFormatError,
    ModelSpecificationError,
    OptimizationError,
    ConfigurationError,
)

__all__ = [
    "OccupancyJaxError",
    "ShapeMismatchError",
    "DomainError",
    "DataFormatError",
    "ModelSpecificationError",
    "OptimizationError",
    "ConfigurationError",
]
