"""Utility functions and classes for occupancy-jax."""

from .logging import get_logger, reconfigure_loggers
from .validation import (
    validate_array_dimensions,
    validate_detection_history,
    validate_finite,
    validate_probability,
)

__all__ = [
    "get_logger",
    "reconfigure_loggers",
    "validate_array_dimensions",
    "validate_detection_history",
    "validate_finite",
    "validate_probability",
]
