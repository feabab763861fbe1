# rotarch/core/parameters.py

"""
Parameter containers and validation helpers.

Model parameter containers derive from :class:`ParameterBase`, which fixes the
conversion interface between a container and the flat vector handed to the
optimizer. The ``validate_*`` helpers check scalar arguments and raise
:class:`~rotarch.core.exceptions.ParameterError` with the offending name and value.
"""

import copy as _copy
from typing import Any, Dict, Type, TypeVar

import numpy as np

from rotarch.core.exceptions import ParameterError

P = TypeVar('P', bound='ParameterBase')


class ParameterBase:
    """Base class for all parameter containers."""

    def validate(self) -> None:
        """Validate parameter constraints.

        Raises:
            ParameterError: If parameter constraints are violated
        """
        pass

    def to_dict(self) -> Dict[str, float]:
        """Map parameter names to values.

        Raises:
            NotImplementedError: If not implemented by subclass
        """
        raise NotImplementedError("to_dict must be implemented by subclass")

    def to_array(self) -> np.ndarray:
        """Convert parameters to the flat vector used by the optimizer.

        Raises:
            NotImplementedError: If not implemented by subclass
        """
        raise NotImplementedError("to_array must be implemented by subclass")

    @classmethod
    def from_array(cls: Type[P], array: np.ndarray, **kwargs: Any) -> P:
        """Create parameters from a flat vector.

        Raises:
            NotImplementedError: If not implemented by subclass
        """
        raise NotImplementedError("from_array must be implemented by subclass")

    def copy(self: P) -> P:
        """Create a deep copy of the parameter object."""
        return _copy.deepcopy(self)


def validate_positive_integer(value: Any, param_name: str) -> int:
    """Validate that a value is an integer >= 1.

    Raises:
        ParameterError: If the value is not a positive integer
    """
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
        raise ParameterError(
            f"{param_name} must be a positive integer",
            param_name=param_name,
            param_value=value,
            constraint=f"{param_name} >= 1"
        )
    return int(value)


def validate_non_negative_integer(value: Any, param_name: str) -> int:
    """Validate that a value is an integer >= 0.

    Raises:
        ParameterError: If the value is not a non-negative integer
    """
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 0:
        raise ParameterError(
            f"{param_name} must be a non-negative integer",
            param_name=param_name,
            param_value=value,
            constraint=f"{param_name} >= 0"
        )
    return int(value)


def validate_vector(array: Any, param_name: str, length: int,
                    lower: float = -np.inf, upper: float = np.inf) -> np.ndarray:
    """Validate a parameter vector's length, finiteness and range.

    Args:
        array: Values to validate
        param_name: Name used in error messages
        length: Required number of elements
        lower: Inclusive lower bound
        upper: Inclusive upper bound

    Returns:
        The values as a 1D float array

    Raises:
        ParameterError: If any check fails
    """
    values = np.asarray(array, dtype=np.float64).ravel()
    if values.shape[0] != length:
        raise ParameterError(
            f"{param_name} must have {length} elements, got {values.shape[0]}",
            param_name=param_name,
            param_value=values,
            constraint=f"len({param_name}) == {length}"
        )
    if not np.all(np.isfinite(values)):
        raise ParameterError(
            f"{param_name} contains NaN or infinite values",
            param_name=param_name,
            param_value=values
        )
    if np.any(values < lower) or np.any(values > upper):
        raise ParameterError(
            f"{param_name} must lie in [{lower}, {upper}]",
            param_name=param_name,
            param_value=values,
            constraint=f"{lower} <= {param_name} <= {upper}"
        )
    return values
