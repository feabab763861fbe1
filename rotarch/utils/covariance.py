# rotarch/utils/covariance.py

"""
Covariance Estimation Module

Long-run covariance estimation and sandwich parameter covariances used for
inference on quasi maximum likelihood estimates.

Functions:
    covnw: Newey-West covariance estimator for time series
    robust_sandwich: Sandwich covariance A^-1 B A^-T / T
"""

import logging
from typing import Optional

import numpy as np
from numba import jit
from scipy import linalg

from rotarch.core.types import CovarianceMatrix, Matrix
from rotarch.core.exceptions import raise_dimension_error, raise_numeric_error

logger = logging.getLogger("rotarch.utils.covariance")


@jit(nopython=True, cache=True)
def _covnw_core(x: np.ndarray, lags: int, weights: np.ndarray) -> np.ndarray:
    """
    Weighted sum of autocovariances.

    Args:
        x: Data matrix (T x K), already demeaned if required
        lags: Number of autocovariances to include
        weights: Bartlett weight for lags 1..lags

    Returns:
        Newey-West covariance matrix estimate
    """
    T, K = x.shape
    cov = np.zeros((K, K))
    for t in range(T):
        for j in range(K):
            for k in range(K):
                cov[j, k] += x[t, j] * x[t, k]
    cov = cov / T

    for lag in range(1, lags + 1):
        weight = weights[lag - 1]
        acov = np.zeros((K, K))
        for t in range(lag, T):
            for j in range(K):
                for k in range(K):
                    acov[j, k] += x[t, j] * x[t - lag, k]
        acov = acov / T
        for j in range(K):
            for k in range(K):
                cov[j, k] += weight * (acov[j, k] + acov[k, j])

    return cov


def covnw(x: Matrix, lags: Optional[float] = None, demean: bool = True) -> CovarianceMatrix:
    """
    Compute the Newey-West heteroskedasticity and autocorrelation consistent
    (HAC) covariance of a multivariate time series.

    The bandwidth may be fractional. Autocovariances are included for lags
    ``1..floor(lags)`` with Bartlett weights ``1 - j / (lags + 1)``.

    Args:
        x: Data matrix (T x K)
        lags: Bandwidth. If None, ``ceil(1.2 * T ** (1/3))``
        demean: Whether to subtract the sample mean before computing

    Returns:
        K by K long-run covariance estimate

    Raises:
        DimensionError: If x is not a 2D array

    Examples:
        >>> import numpy as np
        >>> from rotarch.utils.covariance import covnw
        >>> rng = np.random.default_rng(123)
        >>> x = rng.standard_normal((100, 3))
        >>> covnw(x, lags=5).shape
        (3, 3)
    """
    x = np.asarray(x, dtype=np.float64)
    if x.ndim == 1:
        x = x[:, None]
    if x.ndim != 2:
        raise_dimension_error(
            "Input must be a 2D array",
            array_name="x",
            expected_shape="(T, K)",
            actual_shape=x.shape
        )

    T = x.shape[0]
    if lags is None:
        lags = float(np.ceil(1.2 * T ** (1.0 / 3.0)))
        logger.debug(f"Using default bandwidth: {lags}")
    lags = float(lags)

    n_lags = min(int(np.floor(lags)), T - 1)
    weights = 1.0 - np.arange(1, n_lags + 1) / (lags + 1.0)

    if demean:
        x = x - x.mean(axis=0)

    cov = _covnw_core(np.ascontiguousarray(x), n_lags, weights)
    return (cov + cov.T) / 2


def robust_sandwich(A: Matrix, B: Matrix, n_obs: int) -> CovarianceMatrix:
    """
    Sandwich covariance ``A^-1 B A^-T / n_obs``, symmetrized.

    Args:
        A: Square matrix of expected derivatives of the moment conditions
        B: Long-run covariance of the scores
        n_obs: Number of observations

    Returns:
        Parameter covariance matrix

    Raises:
        DimensionError: If A and B are not square of the same size
        NumericError: If A is singular
    """
    A = np.asarray(A, dtype=np.float64)
    B = np.asarray(B, dtype=np.float64)
    if A.ndim != 2 or A.shape[0] != A.shape[1] or B.shape != A.shape:
        raise_dimension_error(
            "A and B must be square matrices of the same size",
            array_name="A",
            expected_shape=B.shape,
            actual_shape=A.shape
        )

    try:
        A_inv = linalg.inv(A)
    except (linalg.LinAlgError, ValueError) as e:
        raise_numeric_error(
            "Failed to invert the score Jacobian",
            operation="robust_sandwich",
            error_type="singular_jacobian",
            details=str(e)
        )

    vcv = A_inv @ B @ A_inv.T / n_obs
    return (vcv + vcv.T) / 2
