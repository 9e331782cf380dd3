"""
Validation utilities for occupancy-jax.

Checks run eagerly on concrete (numpy) arrays before a likelihood is traced or
evaluated. Every failure names the offending unit and, where relevant, event.
"""

import numpy as np
from typing import Optional, Tuple, Union

from ..core.exceptions import ShapeMismatchError, DomainError


def validate_array_dimensions(
    array: np.ndarray,
    expected_shape: Optional[Tuple[Optional[int], ...]] = None,
    min_dims: Optional[int] = None,
    max_dims: Optional[int] = None,
    name: str = "array",
) -> None:
    """
    Validate array dimensions.

    Args:
        array: Array to validate
        expected_shape: Expected exact shape (None entries are ignored)
        min_dims: Minimum number of dimensions
        max_dims: Maximum number of dimensions
        name: Name for error messages

    Raises:
        ShapeMismatchError: If validation fails
    """
    if not hasattr(array, "shape"):
        raise ShapeMismatchError(
            name,
            expected="array-like with a shape attribute",
            actual=type(array).__name__,
        )

    shape = tuple(array.shape)
    ndims = len(shape)

    if min_dims is not None and ndims < min_dims:
        raise ShapeMismatchError(name, expected=f">= {min_dims} dimensions", actual=ndims)

    if max_dims is not None and ndims > max_dims:
        raise ShapeMismatchError(name, expected=f"<= {max_dims} dimensions", actual=ndims)

    if expected_shape is not None:
        if len(expected_shape) != ndims:
            raise ShapeMismatchError(name, expected=expected_shape, actual=shape)

        for actual, expected in zip(shape, expected_shape):
            if expected is not None and actual != expected:
                raise ShapeMismatchError(name, expected=expected_shape, actual=shape)


def validate_detection_history(history: np.ndarray, event_mask: np.ndarray) -> None:
    """
    Validate that every surveyed cell of a padded detection history is 0 or 1.

    Args:
        history: (n_units, max_events) detection outcomes
        event_mask: (n_units, max_events) True where an event was surveyed

    Raises:
        DomainError: On the first value outside {0, 1}, naming unit and event
    """
    history = np.asarray(history, dtype=float)
    event_mask = np.asarray(event_mask, dtype=bool)

    invalid = event_mask & ~((history == 0.0) | (history == 1.0))
    if np.any(invalid):
        unit, event = (int(i) for i in np.argwhere(invalid)[0])
        raise DomainError(
            "detection outcome",
            value=float(history[unit, event]),
            unit=unit,
            event=event,
            reason="must be exactly 0 or 1",
        )


def validate_finite(
    values: Union[np.ndarray, float],
    quantity: str,
    mask: Optional[np.ndarray] = None,
) -> None:
    """
    Validate that values are finite.

    Args:
        values: (n_units,) or (n_units, max_events) array
        quantity: Name used in the error message (e.g. 'psi', 'theta')
        mask: Optional boolean mask restricting the check to surveyed cells

    Raises:
        DomainError: On the first non-finite value
    """
    values = np.asarray(values, dtype=float)
    bad = ~np.isfinite(values)
    if mask is not None:
        bad &= np.asarray(mask, dtype=bool)

    if np.any(bad):
        index = np.argwhere(bad)[0] if values.ndim else ()
        unit = int(index[0]) if len(index) > 0 else None
        event = int(index[1]) if len(index) > 1 else None
        raise DomainError(
            quantity,
            value=float(values[tuple(index)]),
            unit=unit,
            event=event,
            reason="not finite",
        )


def validate_probability(
    values: Union[np.ndarray, float],
    quantity: str = "probability",
    mask: Optional[np.ndarray] = None,
) -> None:
    """
    Validate that value(s) are finite probabilities in [0, 1].

    Saturation to exactly 0 or 1 in floating point is accepted.

    Raises:
        DomainError: If validation fails
    """
    validate_finite(values, quantity, mask)

    values = np.asarray(values, dtype=float)
    bad = (values < 0.0) | (values > 1.0)
    if mask is not None:
        bad &= np.asarray(mask, dtype=bool)

    if np.any(bad):
        index = np.argwhere(bad)[0] if values.ndim else ()
        raise DomainError(
            quantity,
            value=float(values[tuple(index)]),
            unit=int(index[0]) if len(index) > 0 else None,
            event=int(index[1]) if len(index) > 1 else None,
            reason="outside [0, 1]",
        )
