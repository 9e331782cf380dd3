"""
Exception classes for occupancy-jax.

Provides rich error information with actionable suggestions and the offending
unit/event indices where they are known.
"""

from typing import List, Optional, Dict, Any


class OccupancyJaxError(Exception):
    """
    Base exception class for occupancy-jax with rich error information.

    Provides structured error information including suggestions for resolution
    and a machine-readable error code.
    """

    def __init__(
        self,
        message: str,
        suggestions: Optional[List[str]] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.suggestions = suggestions or []
        self.error_code = error_code
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return formatted error message with suggestions."""
        message = super().__str__()

        if self.error_code:
            message = f"[{self.error_code}] {message}"

        if self.suggestions:
            message += "\n\nSuggestions:"
            for i, suggestion in enumerate(self.suggestions, 1):
                message += f"\n  {i}. {suggestion}"

        return message


class ShapeMismatchError(OccupancyJaxError):
    """Raised when array lengths disagree between covariates, coefficients and histories."""

    def __init__(
        self,
        name: str,
        expected: Any = None,
        actual: Any = None,
        unit: Optional[int] = None,
        **kwargs,
    ):
        where = f" for unit {unit}" if unit is not None else ""
        if expected is not None or actual is not None:
            message = f"Shape mismatch in {name}{where}: expected {expected}, got {actual}"
        else:
            message = f"Shape mismatch in {name}{where}"

        suggestions = kwargs.pop("suggestions", None) or [
            "Every input must describe the same number of units",
            "Each unit needs one detection covariate row per detection outcome",
            "Coefficient vectors need an intercept plus one entry per covariate column",
        ]

        super().__init__(
            message=message,
            suggestions=suggestions,
            error_code="SHAPE",
            context={"name": name, "expected": expected, "actual": actual, "unit": unit},
            **kwargs,
        )


class DomainError(OccupancyJaxError):
    """Raised when an input or intermediate value lies outside its domain."""

    def __init__(
        self,
        quantity: str,
        value: Any = None,
        unit: Optional[int] = None,
        event: Optional[int] = None,
        reason: Optional[str] = None,
        **kwargs,
    ):
        location = []
        if unit is not None:
            location.append(f"unit {unit}")
        if event is not None:
            location.append(f"event {event}")
        where = f" at {', '.join(location)}" if location else ""

        message = f"Invalid {quantity}{where}"
        if value is not None:
            message += f": {value!r}"
        if reason:
            message += f" ({reason})"

        suggestions = kwargs.pop("suggestions", None) or [
            "Detection histories must contain only 0 and 1",
            "Check coefficients and covariates for NaN or infinite values",
        ]

        super().__init__(
            message=message,
            suggestions=suggestions,
            error_code="DOMAIN",
            context={"quantity": quantity, "value": value, "unit": unit, "event": event},
            **kwargs,
        )


class DataFormatError(OccupancyJaxError):
    """Exception raised for data format issues."""

    def __init__(
        self,
        specific_issue: Optional[str] = None,
        expected_formats: Optional[List[str]] = None,
        **kwargs,
    ):
        if specific_issue:
            message = f"Data format issue: {specific_issue}"
            default_suggestions = [
                "Check your data structure and column names",
                "Ensure detection histories contain only 0s and 1s",
                "Verify unit identifiers are present",
            ]
        else:
            message = "Data format validation failed"
            default_suggestions = [
                "Use long format (unit, event, y) or wide format (y1..yJ)",
                "Validate your input data structure",
            ]

        if expected_formats:
            default_suggestions.insert(0, f"Supported formats: {', '.join(expected_formats)}")

        suggestions = kwargs.pop("suggestions", None) or default_suggestions

        super().__init__(
            message=message,
            suggestions=suggestions,
            error_code="DATA_FORMAT",
            context={"specific_issue": specific_issue, "expected_formats": expected_formats},
            **kwargs,
        )


class ModelSpecificationError(OccupancyJaxError):
    """Exception raised for model specification issues."""

    def __init__(
        self,
        formula: Optional[str] = None,
        parameter: Optional[str] = None,
        available_covariates: Optional[List[str]] = None,
        missing_covariates: Optional[List[str]] = None,
        **kwargs,
    ):
        if missing_covariates and available_covariates is not None:
            message = f"Missing covariates in formula '{formula}': {missing_covariates}"
            default_suggestions = [
                f"Available covariates: {', '.join(sorted(available_covariates))}",
                "Check covariate spelling and case sensitivity",
            ]
        elif formula:
            message = f"Invalid formula specification: {formula}"
            default_suggestions = [
                "Only additive formulas are supported (e.g. '~1 + elev + forest')",
                "Use '~1' for intercept-only models",
            ]
        else:
            message = "Model specification error"
            default_suggestions = [
                "Check your model formula syntax",
                "Verify all covariates exist in your data",
            ]

        suggestions = kwargs.pop("suggestions", None) or default_suggestions

        super().__init__(
            message=message,
            suggestions=suggestions,
            error_code="MODEL_SPEC",
            context={
                "formula": formula,
                "parameter": parameter,
                "missing_covariates": missing_covariates,
                "available_covariates": available_covariates,
            },
            **kwargs,
        )


class OptimizationError(OccupancyJaxError):
    """Exception raised for optimization failures."""

    def __init__(
        self,
        optimizer: Optional[str] = None,
        reason: Optional[str] = None,
        iterations: Optional[int] = None,
        **kwargs,
    ):
        if optimizer and reason:
            message = f"Optimization failed with {optimizer}: {reason}"
        elif optimizer:
            message = f"Optimization failed with {optimizer}"
        else:
            message = "Optimization failed to converge"

        suggestions = kwargs.pop("suggestions", None) or [
            "Try a different optimization method",
            "Increase maximum iterations",
            "Standardize covariates before fitting",
            "Check for parameter identifiability issues",
        ]

        super().__init__(
            message=message,
            suggestions=suggestions,
            error_code="OPTIMIZATION",
            context={"optimizer": optimizer, "reason": reason, "iterations": iterations},
            **kwargs,
        )


class ConfigurationError(OccupancyJaxError):
    """Exception raised for configuration issues."""

    def __init__(self, config_key: Optional[str] = None, **kwargs):
        if config_key:
            message = f"Invalid configuration for '{config_key}'"
        else:
            message = "Configuration error"

        suggestions = kwargs.pop("suggestions", None) or [
            "Review configuration file syntax",
            "Check environment variable formatting",
            "Use occupancy_jax.get_config() to inspect current settings",
        ]

        super().__init__(
            message=message,
            suggestions=suggestions,
            error_code="CONFIG",
            context={"config_key": config_key},
            **kwargs,
        )
