"""
Formula system for occupancy-jax.

Provides additive R-style formulas and design matrix construction.
"""

from .spec import FormulaSpec, ParameterFormula, ParameterType, create_simple_spec
from .design_matrix import DesignMatrixInfo, build_design_matrix, default_design_matrices

__all__ = [
    "FormulaSpec",
    "ParameterFormula",
    "ParameterType",
    "create_simple_spec",
    "DesignMatrixInfo",
    "build_design_matrix",
    "default_design_matrices",
]
