# rotarch/__init__.py
"""
rotarch - Rotated ARCH multivariate volatility models

Estimation, inference, forecasting and simulation for RARCH(P,Q) models in
their Scalar, CP and Diagonal parameterizations, using either 2-stage or
joint quasi maximum likelihood.

Examples:
    >>> import numpy as np
    >>> from rotarch import rarch
    >>> rng = np.random.default_rng(0)
    >>> result = rarch(rng.standard_normal((1000, 3)), 1, 1, "Diagonal")
    >>> print(result.summary())  # doctest: +SKIP
"""

import logging
from typing import Union

from rotarch.version import __version__, __author__, __license__, __title__, __description__
from rotarch.core.config import get_config, initialize_config, reset_config, set_config
from rotarch.core.exceptions import (
    ConvergenceWarning, DataError, DimensionError, InsufficientDataError,
    ModelSpecificationError, NotFittedError, NumericError, ParameterError,
    RotARCHError
)
from rotarch.core.results import RARCHResult
from rotarch.models.multivariate.rarch import (
    RARCHMethod, RARCHModel, RARCHParameters, RARCHType, rarch, rarch_likelihood,
    rarch_simulate
)

logger = logging.getLogger("rotarch")

initialize_config()


def set_log_level(level: Union[int, str]) -> None:
    """Set the level of the package logger.

    Args:
        level: A logging level name such as ``"DEBUG"`` or its integer value
    """
    if isinstance(level, str):
        set_config("logging", "log_level", level.upper())
    else:
        set_config("logging", "log_level", logging.getLevelName(level))


__all__ = [
    "__version__",
    "rarch",
    "rarch_likelihood",
    "rarch_simulate",
    "RARCHModel",
    "RARCHParameters",
    "RARCHResult",
    "RARCHType",
    "RARCHMethod",
    "RotARCHError",
    "ParameterError",
    "DimensionError",
    "DataError",
    "InsufficientDataError",
    "ModelSpecificationError",
    "NumericError",
    "NotFittedError",
    "ConvergenceWarning",
    "get_config",
    "set_config",
    "reset_config",
    "set_log_level",
]
