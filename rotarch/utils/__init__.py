"""
rotarch Utilities Module

Matrix operations, long-run covariance estimation and numerical
differentiation used by the estimators.

Key components:
- Matrix operations (vech, ivech, vec2chol, chol2vec, matrix square roots)
- Covariance estimators (Newey-West, sandwich covariance)
- Numerical differentiation (gradient, Hessian)
"""

import logging

logger = logging.getLogger("rotarch.utils")

from .matrix_ops import (
    vech,
    vech_sequence,
    ivech,
    vec2chol,
    chol2vec,
    sqrtm_psd,
    inv_sqrtm,
    ensure_symmetric,
    is_positive_definite
)

from .covariance import (
    covnw,
    robust_sandwich
)

from .differentiation import (
    gradient_2sided,
    hessian_2sided,
    hessian_2sided_nrows
)

__all__ = [
    "vech",
    "vech_sequence",
    "ivech",
    "vec2chol",
    "chol2vec",
    "sqrtm_psd",
    "inv_sqrtm",
    "ensure_symmetric",
    "is_positive_definite",
    "covnw",
    "robust_sandwich",
    "gradient_2sided",
    "hessian_2sided",
    "hessian_2sided_nrows",
]
