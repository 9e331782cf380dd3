"""Configuration management for occupancy-jax."""

from .settings import (
    OccupancyJaxConfig,
    LoggingConfig,
    LikelihoodConfig,
    ParallelConfig,
    OptimizationConfig,
    PerformanceConfig,
    get_default_config,
)

__all__ = [
    "OccupancyJaxConfig",
    "LoggingConfig",
    "LikelihoodConfig",
    "ParallelConfig",
    "OptimizationConfig",
    "PerformanceConfig",
    "get_default_config",
]
