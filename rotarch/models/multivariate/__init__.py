"""
Multivariate Volatility Models

RARCH: Rotated ARCH with Scalar, CP and Diagonal dynamics, estimated by
2-stage or joint quasi maximum likelihood.
"""

import logging

logger = logging.getLogger("rotarch.models.multivariate")

from .rarch import (
    RARCHMethod,
    RARCHModel,
    RARCHParameters,
    RARCHType,
    covariance_sequence,
    parameter_count,
    rarch,
    rarch_backcast,
    rarch_bounds,
    rarch_constraint,
    rarch_likelihood,
    rarch_simulate,
    rarch_starting_values,
    standardize,
)

__all__ = [
    "RARCHMethod",
    "RARCHModel",
    "RARCHParameters",
    "RARCHType",
    "covariance_sequence",
    "parameter_count",
    "rarch",
    "rarch_backcast",
    "rarch_bounds",
    "rarch_constraint",
    "rarch_likelihood",
    "rarch_simulate",
    "rarch_starting_values",
    "standardize",
]
