"""
Numerical Differentiation Module

Two-sided finite-difference gradients and Hessians used for inference after
quasi maximum likelihood estimation.

Gradient steps follow ``h_i = eps ** (1/3) * max(|x_i|, 1e-2)`` and Hessian
steps ``h_i = eps ** (1/4) * max(|x_i|, 1e-2)``, which balance truncation and
rounding error for central first and second differences. Each step is then
re-expressed as ``(x_i + h_i) - x_i`` so that it is exactly representable.

Functions:
    gradient_2sided: Two-sided gradient, or Jacobian for vector-valued functions
    hessian_2sided: Two-sided Hessian of a scalar function
    hessian_2sided_nrows: Last ``nrows`` rows of the two-sided Hessian
"""

import logging
from typing import Any, Callable, Optional, Tuple

import numpy as np

from rotarch.core.exceptions import raise_dimension_error, raise_parameter_error, warn_numeric
from rotarch.core.types import Matrix, Vector

logger = logging.getLogger("rotarch.utils.differentiation")


def _step_sizes(x: np.ndarray, epsilon: Optional[float] = None, order: int = 1) -> np.ndarray:
    if epsilon is not None:
        h = np.full(x.shape[0], float(epsilon))
    else:
        # second differences divide by h**2
        power = 1.0 / 3.0 if order == 1 else 1.0 / 4.0
        h = np.finfo(float).eps ** power * np.maximum(np.abs(x), 1e-2)
    return (x + h) - x


def _as_vector(x: Vector) -> np.ndarray:
    x = np.asarray(x, dtype=float)
    if x.ndim != 1:
        raise_dimension_error(
            "Input must be a 1D vector",
            array_name="x",
            expected_shape="(n,)",
            actual_shape=x.shape
        )
    return x


def gradient_2sided(func: Callable[..., Any],
                    x: Vector,
                    args: Tuple = (),
                    epsilon: Optional[float] = None) -> np.ndarray:
    """
    Compute a two-sided numerical gradient.

    For a scalar function the result is the gradient vector. When ``func``
    returns a vector of length T (for example per-observation log-likelihood
    contributions), the result is the T by n matrix whose column ``i`` is the
    derivative of every output with respect to ``x[i]``.

    Args:
        func: Function to differentiate, called as ``func(x, *args)``
        x: Point at which to compute the gradient
        args: Additional arguments to pass to the function
        epsilon: Common step size. If None, steps scale with ``|x|``

    Returns:
        Gradient vector of shape (n,) or matrix of shape (T, n)

    Raises:
        DimensionError: If x is not a 1D array

    Examples:
        >>> import numpy as np
        >>> from rotarch.utils.differentiation import gradient_2sided
        >>> def f(x): return x[0]**2 + x[1]**2
        >>> np.round(gradient_2sided(f, np.array([1.0, 2.0])), 6)
        array([2., 4.])
    """
    x = _as_vector(x)
    n = x.shape[0]
    h = _step_sizes(x, epsilon)

    columns = []
    for i in range(n):
        x_plus = x.copy()
        x_minus = x.copy()
        x_plus[i] += h[i]
        x_minus[i] -= h[i]
        f_plus = np.asarray(func(x_plus, *args), dtype=float)
        f_minus = np.asarray(func(x_minus, *args), dtype=float)
        columns.append((f_plus - f_minus) / (2.0 * h[i]))

    grad = np.stack(columns, axis=-1)
    if not np.all(np.isfinite(grad)):
        warn_numeric(
            "Non-finite values in numerical gradient",
            operation="gradient_2sided",
            issue="function is not finite in a neighborhood of x",
            value=x
        )
    return grad


def hessian_2sided_nrows(func: Callable[..., float],
                         x: Vector,
                         nrows: int,
                         args: Tuple = (),
                         epsilon: Optional[float] = None) -> Matrix:
    """
    Compute the last ``nrows`` rows of the two-sided numerical Hessian.

    Only the function evaluations needed for the requested rows are made,
    which matters when ``func`` is an expensive likelihood and only the
    block belonging to a subset of parameters is needed.

    Args:
        func: Scalar function, called as ``func(x, *args)``
        x: Point at which to compute the Hessian
        nrows: Number of trailing rows to compute
        args: Additional arguments to pass to the function
        epsilon: Common step size. If None, steps scale with ``|x|``

    Returns:
        Matrix of shape (nrows, n)

    Raises:
        DimensionError: If x is not a 1D array
        ParameterError: If nrows is not between 1 and n
    """
    x = _as_vector(x)
    n = x.shape[0]
    if not 1 <= nrows <= n:
        raise_parameter_error(
            f"nrows must be between 1 and {n}",
            param_name="nrows",
            param_value=nrows,
            constraint=f"1 <= nrows <= {n}"
        )

    h = _step_sizes(x, epsilon, order=2)
    ee = np.diag(h)
    fx = float(func(x, *args))

    gp = np.array([float(func(x + ee[i], *args)) for i in range(n)])
    gm = np.array([float(func(x - ee[i], *args)) for i in range(n)])

    first = n - nrows
    hess = np.zeros((nrows, n))
    for r, i in enumerate(range(first, n)):
        for j in range(n):
            if j >= first and j < i:
                # symmetric entry already computed
                hess[r, j] = hess[j - first, i]
                continue
            f_pp = float(func(x + ee[i] + ee[j], *args))
            f_mm = float(func(x - ee[i] - ee[j], *args))
            hess[r, j] = (f_pp - gp[i] - gp[j] + 2.0 * fx - gm[i] - gm[j] + f_mm) / (2.0 * h[i] * h[j])

    if not np.all(np.isfinite(hess)):
        warn_numeric(
            "Non-finite values in numerical Hessian",
            operation="hessian_2sided",
            issue="function is not finite in a neighborhood of x",
            value=x
        )
    return hess


def hessian_2sided(func: Callable[..., float],
                   x: Vector,
                   args: Tuple = (),
                   epsilon: Optional[float] = None) -> Matrix:
    """
    Compute the two-sided numerical Hessian of a scalar function.

    Uses

        H_ij = (f(x+e_i+e_j) - f(x+e_i) - f(x+e_j) + 2f(x)
                - f(x-e_i) - f(x-e_j) + f(x-e_i-e_j)) / (2 h_i h_j)

    and returns a symmetric matrix.

    Examples:
        >>> import numpy as np
        >>> from rotarch.utils.differentiation import hessian_2sided
        >>> def f(x): return x[0]**2 + 3*x[0]*x[1]
        >>> np.round(hessian_2sided(f, np.array([1.0, 1.0])), 4)
        array([[2., 3.],
               [3., 0.]])
    """
    x = _as_vector(x)
    hess = hessian_2sided_nrows(func, x, x.shape[0], args, epsilon)
    return (hess + hess.T) / 2
