'''
Exception and warning classes for rotarch.

Every error raised by the package derives from RotARCHError, which formats a
primary message together with optional details and a context dictionary so
that failures during RARCH estimation carry enough information to be traced
back to the offending argument or array. Warnings follow the same layout and
derive from RotARCHWarning.

The ``raise_*`` and ``warn_*`` helpers at the bottom of the module are the
preferred way to signal problems from numerical code.
'''

import inspect
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np


def _format_message(message: str,
                    details: Optional[str],
                    context: Optional[Dict[str, Any]],
                    frame_depth: int = 2) -> str:
    """Assemble the full text shown for an error or warning."""
    full_message = message
    if details:
        full_message += f"\n\nDetails: {details}"
    if context:
        context_str = "\n".join(f"  {k}: {v}" for k, v in context.items())
        full_message += f"\n\nContext:\n{context_str}"

    frame = inspect.currentframe()
    try:
        for _ in range(frame_depth):
            if frame is None:
                break
            frame = frame.f_back
        if frame is not None:
            caller_info = inspect.getframeinfo(frame)
            full_message += f"\n\nLocation: {Path(caller_info.filename).name}:{caller_info.lineno}"
    finally:
        del frame
    return full_message


def _summarize_values(values: Any) -> Any:
    if isinstance(values, np.ndarray) and values.size > 10:
        return f"Array with shape {values.shape}"
    return values


class RotARCHError(Exception):
    """Base exception class for all rotarch errors.

    Attributes:
        message: The error message
        details: Additional details about the error
        context: Dictionary containing contextual information about the error
    """

    def __init__(self,
                 message: str,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details
        self.context = context or {}
        super().__init__(_format_message(message, details, context))


class ParameterError(RotARCHError):
    """Raised when model orders, starting values or parameters are invalid.

    Attributes:
        param_name: The name of the offending parameter
        param_value: The invalid value
        constraint: Description of the violated constraint
    """

    def __init__(self,
                 message: str,
                 param_name: Optional[str] = None,
                 param_value: Optional[Any] = None,
                 constraint: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.param_name = param_name
        self.param_value = param_value
        self.constraint = constraint

        context_dict = context or {}
        if param_name:
            context_dict["Parameter"] = param_name
        if param_value is not None:
            context_dict["Value"] = _summarize_values(param_value)
        if constraint:
            context_dict["Constraint"] = constraint

        super().__init__(message, details, context_dict)


class DimensionError(RotARCHError):
    """Raised when an array does not have the expected shape.

    Attributes:
        array_name: The name of the array
        expected_shape: The expected shape
        actual_shape: The shape that was received
    """

    def __init__(self,
                 message: str,
                 array_name: Optional[str] = None,
                 expected_shape: Optional[Union[Tuple[int, ...], str]] = None,
                 actual_shape: Optional[Tuple[int, ...]] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.array_name = array_name
        self.expected_shape = expected_shape
        self.actual_shape = actual_shape

        context_dict = context or {}
        if array_name:
            context_dict["Array"] = array_name
        if expected_shape is not None:
            context_dict["Expected Shape"] = expected_shape
        if actual_shape is not None:
            context_dict["Actual Shape"] = actual_shape

        super().__init__(message, details, context_dict)


class DataError(RotARCHError):
    """Raised when input data is unsuitable for estimation.

    Attributes:
        data_name: The name of the data argument
        issue: Description of the problem
        index: Location where the problem was detected
    """

    def __init__(self,
                 message: str,
                 data_name: Optional[str] = None,
                 issue: Optional[str] = None,
                 index: Optional[Union[int, Tuple[int, ...], str]] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.data_name = data_name
        self.issue = issue
        self.index = index

        context_dict = context or {}
        if data_name:
            context_dict["Data"] = data_name
        if issue:
            context_dict["Issue"] = issue
        if index is not None:
            context_dict["Index"] = index

        super().__init__(message, details, context_dict)


class InsufficientDataError(DataError):
    """Raised when the number of observations does not exceed the number of assets."""

    def __init__(self,
                 message: str,
                 n_obs: Optional[int] = None,
                 n_assets: Optional[int] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.n_obs = n_obs
        self.n_assets = n_assets

        context_dict = context or {}
        if n_obs is not None:
            context_dict["Observations"] = n_obs
        if n_assets is not None:
            context_dict["Assets"] = n_assets

        super().__init__(message, data_name="data", issue="T <= K",
                         details=details, context=context_dict)


class ModelSpecificationError(RotARCHError):
    """Raised when a model type or estimation method is not recognized.

    Attributes:
        model_type: The model being specified
        parameter: The option that is incorrectly specified
        valid_options: Accepted values for the option
    """

    def __init__(self,
                 message: str,
                 model_type: Optional[str] = None,
                 parameter: Optional[str] = None,
                 valid_options: Optional[List[Any]] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.model_type = model_type
        self.parameter = parameter
        self.valid_options = valid_options

        context_dict = context or {}
        if model_type:
            context_dict["Model Type"] = model_type
        if parameter:
            context_dict["Parameter"] = parameter
        if valid_options:
            context_dict["Valid Options"] = valid_options

        super().__init__(message, details, context_dict)


class NumericError(RotARCHError):
    """Raised for numerical failures such as non positive definite matrices.

    Attributes:
        operation: The operation that failed
        values: The values involved
        error_type: Short tag describing the failure
    """

    def __init__(self,
                 message: str,
                 operation: Optional[str] = None,
                 values: Optional[Any] = None,
                 error_type: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.operation = operation
        self.values = values
        self.error_type = error_type

        context_dict = context or {}
        if operation:
            context_dict["Operation"] = operation
        if values is not None:
            context_dict["Values"] = _summarize_values(values)
        if error_type:
            context_dict["Error Type"] = error_type

        super().__init__(message, details, context_dict)


class NotFittedError(RotARCHError):
    """Raised when a method that needs estimates is called before fitting."""

    def __init__(self,
                 message: str,
                 operation: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.operation = operation

        context_dict = context or {}
        if operation:
            context_dict["Operation"] = operation

        super().__init__(message, details, context_dict)


class ConfigurationError(RotARCHError):
    """Raised for unknown configuration sections or options."""

    def __init__(self,
                 message: str,
                 section: Optional[str] = None,
                 option: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.section = section
        self.option = option

        context_dict = context or {}
        if section:
            context_dict["Section"] = section
        if option:
            context_dict["Option"] = option

        super().__init__(message, details, context_dict)


class RotARCHWarning(Warning):
    """Base warning class for rotarch.

    Attributes:
        message: The warning message
        details: Additional details about the warning
        context: Dictionary containing contextual information about the warning
    """

    def __init__(self,
                 message: str,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details
        self.context = context or {}
        super().__init__(_format_message(message, details, context))


class ConvergenceWarning(RotARCHWarning):
    """Issued when the optimizer stops without meeting its convergence criteria.

    Attributes:
        iterations: Number of iterations performed
        optimizer_message: Message reported by the optimizer
    """

    def __init__(self,
                 message: str,
                 iterations: Optional[int] = None,
                 optimizer_message: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.iterations = iterations
        self.optimizer_message = optimizer_message

        context_dict = context or {}
        if iterations is not None:
            context_dict["Iterations"] = iterations
        if optimizer_message:
            context_dict["Optimizer Message"] = optimizer_message

        super().__init__(message, details, context_dict)


class NumericWarning(RotARCHWarning):
    """Issued when a numerical problem is detected but computation continues.

    Attributes:
        operation: The operation where the issue was detected
        issue: Description of the issue
        value: The value that triggered the warning
    """

    def __init__(self,
                 message: str,
                 operation: Optional[str] = None,
                 issue: Optional[str] = None,
                 value: Optional[Any] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.operation = operation
        self.issue = issue
        self.value = value

        context_dict = context or {}
        if operation:
            context_dict["Operation"] = operation
        if issue:
            context_dict["Issue"] = issue
        if value is not None:
            context_dict["Value"] = _summarize_values(value)

        super().__init__(message, details, context_dict)


class ModelWarning(RotARCHWarning):
    """Issued for questionable but accepted model specifications."""

    def __init__(self,
                 message: str,
                 model_type: Optional[str] = None,
                 parameter: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.model_type = model_type
        self.parameter = parameter

        context_dict = context or {}
        if model_type:
            context_dict["Model Type"] = model_type
        if parameter:
            context_dict["Parameter"] = parameter

        super().__init__(message, details, context_dict)


# Helper functions for raising exceptions with consistent formatting

def raise_parameter_error(message: str,
                          param_name: Optional[str] = None,
                          param_value: Optional[Any] = None,
                          constraint: Optional[str] = None,
                          details: Optional[str] = None,
                          context: Optional[Dict[str, Any]] = None) -> None:
    """Raise a ParameterError.

    Raises:
        ParameterError: Always
    """
    raise ParameterError(message, param_name, param_value, constraint, details, context)


def raise_dimension_error(message: str,
                          array_name: Optional[str] = None,
                          expected_shape: Optional[Union[Tuple[int, ...], str]] = None,
                          actual_shape: Optional[Tuple[int, ...]] = None,
                          details: Optional[str] = None,
                          context: Optional[Dict[str, Any]] = None) -> None:
    """Raise a DimensionError.

    Raises:
        DimensionError: Always
    """
    raise DimensionError(message, array_name, expected_shape, actual_shape, details, context)


def raise_numeric_error(message: str,
                        operation: Optional[str] = None,
                        values: Optional[Any] = None,
                        error_type: Optional[str] = None,
                        details: Optional[str] = None,
                        context: Optional[Dict[str, Any]] = None) -> None:
    """Raise a NumericError.

    Raises:
        NumericError: Always
    """
    raise NumericError(message, operation, values, error_type, details, context)


# Helper functions for issuing warnings with consistent formatting

def warn_convergence(message: str,
                     iterations: Optional[int] = None,
                     optimizer_message: Optional[str] = None,
                     details: Optional[str] = None,
                     context: Optional[Dict[str, Any]] = None) -> None:
    """Issue a ConvergenceWarning."""
    warnings.warn(
        ConvergenceWarning(message, iterations, optimizer_message, details, context),
        stacklevel=2
    )


def warn_numeric(message: str,
                 operation: Optional[str] = None,
                 issue: Optional[str] = None,
                 value: Optional[Any] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
    """Issue a NumericWarning."""
    warnings.warn(
        NumericWarning(message, operation, issue, value, details, context),
        stacklevel=2
    )


def warn_model(message: str,
               model_type: Optional[str] = None,
               parameter: Optional[str] = None,
               details: Optional[str] = None,
               context: Optional[Dict[str, Any]] = None) -> None:
    """Issue a ModelWarning."""
    warnings.warn(
        ModelWarning(message, model_type, parameter, details, context),
        stacklevel=2
    )
