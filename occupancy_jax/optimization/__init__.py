"""
Optimization and concurrent evaluation for occupancy-jax.
"""

from .optimizers import OptimizationResult, minimize_negative_log_likelihood, compute_covariance
from .parallel import ParallelLikelihoodEvaluator, UnitChunk, make_chunks

__all__ = [
    "OptimizationResult",
    "minimize_negative_log_likelihood",
    "compute_covariance",
    "ParallelLikelihoodEvaluator",
    "UnitChunk",
    "make_chunks",
]
