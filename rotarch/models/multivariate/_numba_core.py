# rotarch/models/multivariate/_numba_core.py

"""
Numba-accelerated recursions for the RARCH model.

All kernels work in the standardized space where the unconditional covariance
is the identity. Coefficient matrices are diagonal and are passed as arrays
of their diagonals: ``a`` is P x K (row ``i`` holds the diagonal of ``A_{i+1}``)
and ``b`` is Q x K. Because ``A S A`` with diagonal ``A`` equals
``S * outer(a, a)``, every update is elementwise.

These functions are used internally by :mod:`rotarch.models.multivariate.rarch`.
Each compiled kernel keeps its pure Python version on ``.py_func``.
"""

import logging

import numpy as np
from numba import float64, int64, jit

logger = logging.getLogger("rotarch.models.multivariate._numba_core")


@jit(float64[:, :, :](float64[:, :, :], float64[:, :], float64[:, :], float64[:, :]),
     nopython=True, cache=True)
def rarch_recursion(std_data: np.ndarray, a: np.ndarray, b: np.ndarray,
                    backcast: np.ndarray) -> np.ndarray:
    """
    Standardized-space RARCH recursion.

    G_t = (I - sum A_i^2 - sum B_j^2) + sum A_i S_{t-i} A_i + sum B_j G_{t-j} B_j

    with ``S_s = G_s = backcast`` for ``s < 0``.

    Args:
        std_data: Standardized covariance estimators (K x K x T)
        a: Innovation coefficients (P x K)
        b: Persistence coefficients (Q x K)
        backcast: Pre-sample value for both S and G (K x K)

    Returns:
        Standardized conditional covariances G (K x K x T)
    """
    k = std_data.shape[0]
    t_obs = std_data.shape[2]
    p = a.shape[0]
    q = b.shape[0]

    intercept = np.zeros(k)
    for i in range(k):
        intercept[i] = 1.0
        for lag in range(p):
            intercept[i] -= a[lag, i] * a[lag, i]
        for lag in range(q):
            intercept[i] -= b[lag, i] * b[lag, i]

    G = np.zeros((k, k, t_obs))
    for t in range(t_obs):
        for i in range(k):
            G[i, i, t] = intercept[i]
        for lag in range(p):
            s = t - lag - 1
            for i in range(k):
                for j in range(k):
                    if s >= 0:
                        value = std_data[i, j, s]
                    else:
                        value = backcast[i, j]
                    G[i, j, t] += a[lag, i] * a[lag, j] * value
        for lag in range(q):
            s = t - lag - 1
            for i in range(k):
                for j in range(k):
                    if s >= 0:
                        value = G[i, j, s]
                    else:
                        value = backcast[i, j]
                    G[i, j, t] += b[lag, i] * b[lag, j] * value

    return G


@jit(float64[:, :, :](float64[:, :, :], float64[:, :, :], float64[:, :], float64[:, :], int64),
     nopython=True, cache=True)
def rarch_forecast(std_data: np.ndarray, G: np.ndarray, a: np.ndarray, b: np.ndarray,
                   steps: int) -> np.ndarray:
    """
    Multi-step forecasts of the standardized conditional covariance.

    Observed values are used for ``S`` up to the end of the sample and
    ``E[S_s] = G_s`` afterwards.

    Args:
        std_data: Standardized covariance estimators (K x K x T)
        G: Fitted standardized conditional covariances (K x K x T)
        a: Innovation coefficients (P x K)
        b: Persistence coefficients (Q x K)
        steps: Number of periods after the sample to forecast

    Returns:
        Forecasts for periods T+1..T+steps (K x K x steps)
    """
    k = std_data.shape[0]
    t_obs = std_data.shape[2]
    p = a.shape[0]
    q = b.shape[0]

    intercept = np.zeros(k)
    for i in range(k):
        intercept[i] = 1.0
        for lag in range(p):
            intercept[i] -= a[lag, i] * a[lag, i]
        for lag in range(q):
            intercept[i] -= b[lag, i] * b[lag, i]

    total = t_obs + steps
    S_ext = np.zeros((k, k, total))
    G_ext = np.zeros((k, k, total))
    S_ext[:, :, :t_obs] = std_data
    G_ext[:, :, :t_obs] = G

    for t in range(t_obs, total):
        for i in range(k):
            G_ext[i, i, t] = intercept[i]
        for lag in range(p):
            s = t - lag - 1
            for i in range(k):
                for j in range(k):
                    G_ext[i, j, t] += a[lag, i] * a[lag, j] * S_ext[i, j, s]
        for lag in range(q):
            s = t - lag - 1
            for i in range(k):
                for j in range(k):
                    G_ext[i, j, t] += b[lag, i] * b[lag, j] * G_ext[i, j, s]
        S_ext[:, :, t] = G_ext[:, :, t]

    return G_ext[:, :, t_obs:]


@jit(nopython=True, cache=True)
def rarch_simulate_core(z: np.ndarray, a: np.ndarray, b: np.ndarray):
    """
    Simulate a standardized RARCH process.

    The process starts from ``S_s = G_s = I`` for ``s < 0``. Each draw is
    ``e_t = L_t z_t`` with ``L_t`` the Cholesky factor of ``G_t`` and
    ``S_t = e_t e_t'``.

    Args:
        z: Independent standard normal draws (T x K)
        a: Innovation coefficients (P x K)
        b: Persistence coefficients (Q x K)

    Returns:
        Tuple of standardized residuals (T x K) and conditional covariances
        G (K x K x T)
    """
    t_obs, k = z.shape
    p = a.shape[0]
    q = b.shape[0]

    intercept = np.zeros(k)
    for i in range(k):
        intercept[i] = 1.0
        for lag in range(p):
            intercept[i] -= a[lag, i] * a[lag, i]
        for lag in range(q):
            intercept[i] -= b[lag, i] * b[lag, i]

    eye = np.eye(k)
    S = np.zeros((k, k, t_obs))
    G = np.zeros((k, k, t_obs))
    eps = np.zeros((t_obs, k))

    for t in range(t_obs):
        Gt = np.zeros((k, k))
        for i in range(k):
            Gt[i, i] = intercept[i]
        for lag in range(p):
            s = t - lag - 1
            for i in range(k):
                for j in range(k):
                    if s >= 0:
                        value = S[i, j, s]
                    else:
                        value = eye[i, j]
                    Gt[i, j] += a[lag, i] * a[lag, j] * value
        for lag in range(q):
            s = t - lag - 1
            for i in range(k):
                for j in range(k):
                    if s >= 0:
                        value = G[i, j, s]
                    else:
                        value = eye[i, j]
                    Gt[i, j] += b[lag, i] * b[lag, j] * value

        G[:, :, t] = Gt
        chol = np.linalg.cholesky(Gt)
        e = chol @ np.ascontiguousarray(z[t])
        eps[t] = e
        for i in range(k):
            for j in range(k):
                S[i, j, t] = e[i] * e[j]

    return eps, G
