# rotarch/utils/matrix_ops.py
"""
Matrix Operations Module

Matrix transformations used by the RARCH estimator: half-vectorization of
symmetric matrices, packing of Cholesky factors into parameter vectors, and
symmetric matrix square roots computed from an eigendecomposition.

Functions:
    vech: Vectorize the lower triangular portion of a symmetric matrix
    vech_sequence: Apply vech to every slice of a K x K x T array
    ivech: Inverse vech operation - convert vector to symmetric matrix
    vec2chol: Convert vector to Cholesky factor
    chol2vec: Convert Cholesky factor to vector
    sqrtm_psd: Symmetric square root of a positive semi-definite matrix
    inv_sqrtm: Symmetric inverse square root of a positive definite matrix
    ensure_symmetric: Ensure a matrix is symmetric
    is_positive_definite: Check if a matrix is positive definite
"""

import logging

import numpy as np
from numba import jit
from scipy import linalg

from rotarch.core.types import (
    CovarianceMatrix, CovarianceSequence, Matrix, TriangularMatrix, Vector
)
from rotarch.core.exceptions import raise_dimension_error, raise_numeric_error

logger = logging.getLogger("rotarch.utils.matrix_ops")


def _check_square(matrix: np.ndarray, name: str) -> None:
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise_dimension_error(
            "Input must be a square matrix",
            array_name=name,
            expected_shape="(n, n)",
            actual_shape=matrix.shape
        )


def vech(matrix: Matrix) -> Vector:
    """
    Vectorize the lower triangular portion of a symmetric matrix.

    Elements are stacked row by row, so an n x n matrix produces a vector
    of length n(n+1)/2.

    Args:
        matrix: Square symmetric matrix to vectorize

    Returns:
        Vector containing the lower triangular portion of the matrix

    Raises:
        DimensionError: If the input matrix is not square

    Examples:
        >>> import numpy as np
        >>> from rotarch.utils.matrix_ops import vech
        >>> A = np.array([[1, 2, 3], [2, 4, 5], [3, 5, 6]])
        >>> vech(A)
        array([1, 2, 4, 3, 5, 6])
    """
    matrix = np.asarray(matrix)
    _check_square(matrix, "matrix")
    return matrix[np.tril_indices(matrix.shape[0])]


@jit(nopython=True, cache=True)
def _vech_sequence_numba(data: np.ndarray) -> np.ndarray:
    k = data.shape[0]
    t_obs = data.shape[2]
    out = np.empty((t_obs, k * (k + 1) // 2))
    for t in range(t_obs):
        idx = 0
        for i in range(k):
            for j in range(i + 1):
                out[t, idx] = data[i, j, t]
                idx += 1
    return out


def vech_sequence(data: CovarianceSequence) -> Matrix:
    """
    Apply :func:`vech` to each slice of a K x K x T array.

    Returns:
        T by K(K+1)/2 matrix whose rows are the half-vectorized slices
    """
    data = np.asarray(data, dtype=np.float64)
    if data.ndim != 3 or data.shape[0] != data.shape[1]:
        raise_dimension_error(
            "Input must be a K by K by T array",
            array_name="data",
            expected_shape="(K, K, T)",
            actual_shape=data.shape
        )
    return _vech_sequence_numba(np.ascontiguousarray(data))


def ivech(vector: Vector) -> Matrix:
    """
    Inverse of :func:`vech`.

    Args:
        vector: Vector of length n(n+1)/2

    Returns:
        Symmetric n x n matrix

    Raises:
        DimensionError: If the vector length is not a triangular number
    """
    vector = np.asarray(vector)
    if vector.ndim != 1:
        raise_dimension_error(
            "Input must be a 1D vector",
            array_name="vector",
            expected_shape="(n(n+1)/2,)",
            actual_shape=vector.shape
        )

    m = vector.shape[0]
    n = int(round((np.sqrt(8 * m + 1) - 1) / 2))
    if n * (n + 1) // 2 != m:
        raise_dimension_error(
            f"Vector length {m} is not of the form n(n+1)/2",
            array_name="vector",
            expected_shape="(n(n+1)/2,)",
            actual_shape=vector.shape
        )

    matrix = np.zeros((n, n), dtype=np.result_type(vector.dtype, np.float64))
    matrix[np.tril_indices(n)] = vector
    return matrix + np.tril(matrix, -1).T


def vec2chol(vector: Vector, n: int) -> TriangularMatrix:
    """
    Convert a vector to a lower triangular Cholesky factor.

    Args:
        vector: Vector of length n(n+1)/2, row-major lower triangle
        n: Dimension of the resulting matrix

    Returns:
        Lower triangular n x n matrix

    Raises:
        DimensionError: If the vector length doesn't match n(n+1)/2

    Examples:
        >>> import numpy as np
        >>> from rotarch.utils.matrix_ops import vec2chol
        >>> vec2chol(np.array([1, 2, 3]), 2)
        array([[1., 0.],
               [2., 3.]])
    """
    vector = np.asarray(vector, dtype=np.float64)
    expected_length = n * (n + 1) // 2
    if vector.ndim != 1 or vector.shape[0] != expected_length:
        raise_dimension_error(
            f"Vector length must be n(n+1)/2 = {expected_length} for n = {n}",
            array_name="vector",
            expected_shape=f"({expected_length},)",
            actual_shape=vector.shape
        )

    chol = np.zeros((n, n))
    chol[np.tril_indices(n)] = vector
    return chol


def chol2vec(chol: TriangularMatrix) -> Vector:
    """
    Convert a lower triangular Cholesky factor to a vector.

    Inverse of :func:`vec2chol`. Elements above the diagonal are ignored.
    """
    chol = np.asarray(chol)
    _check_square(chol, "chol")
    return vech(np.tril(chol))


def sqrtm_psd(matrix: CovarianceMatrix) -> Matrix:
    """
    Symmetric square root of a positive semi-definite matrix.

    Computed as ``V diag(sqrt(lambda)) V'`` from the eigendecomposition.
    Small negative eigenvalues produced by rounding are set to zero.

    Raises:
        DimensionError: If the input matrix is not square
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    _check_square(matrix, "matrix")
    eigenvalues, eigenvectors = linalg.eigh((matrix + matrix.T) / 2)
    eigenvalues = np.maximum(eigenvalues, 0.0)
    return (eigenvectors * np.sqrt(eigenvalues)) @ eigenvectors.T


def inv_sqrtm(matrix: CovarianceMatrix) -> Matrix:
    """
    Symmetric inverse square root of a positive definite matrix.

    Computed as ``V diag(lambda ** -0.5) V'``, so the result ``M`` satisfies
    ``M @ matrix @ M = I`` and is itself symmetric. For any orthogonal ``Q``,
    ``inv_sqrtm(Q @ matrix @ Q.T) = Q @ inv_sqrtm(matrix) @ Q.T``.

    Args:
        matrix: Symmetric positive definite matrix

    Returns:
        Symmetric inverse square root

    Raises:
        DimensionError: If the input matrix is not square
        NumericError: If the matrix is not positive definite
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    _check_square(matrix, "matrix")
    eigenvalues, eigenvectors = linalg.eigh((matrix + matrix.T) / 2)
    if not np.all(np.isfinite(eigenvalues)) or eigenvalues.min() <= 0:
        raise_numeric_error(
            "Matrix is not positive definite",
            operation="inv_sqrtm",
            values=eigenvalues,
            error_type="non_positive_definite",
            details="The inverse square root requires strictly positive eigenvalues."
        )
    return (eigenvectors / np.sqrt(eigenvalues)) @ eigenvectors.T


def ensure_symmetric(matrix: Matrix, tol: float = 1e-8) -> Matrix:
    """
    Ensure a matrix is symmetric by averaging with its transpose.

    A matrix that is already symmetric within ``tol`` is returned unchanged.

    Raises:
        DimensionError: If the input matrix is not square
    """
    matrix = np.asarray(matrix)
    _check_square(matrix, "matrix")
    if np.allclose(matrix, matrix.T, rtol=tol, atol=tol):
        return matrix
    return (matrix + matrix.T) / 2


def is_positive_definite(matrix: Matrix, tol: float = 1e-8) -> bool:
    """
    Check if a matrix is positive definite using a Cholesky factorization.

    Examples:
        >>> import numpy as np
        >>> from rotarch.utils.matrix_ops import is_positive_definite
        >>> is_positive_definite(np.array([[2, 1], [1, 2]]))
        True
        >>> is_positive_definite(np.array([[1, 2], [2, 1]]))
        False
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        return False
    if not np.all(np.isfinite(matrix)):
        return False
    try:
        linalg.cholesky(ensure_symmetric(matrix, tol), lower=True, check_finite=False)
        return True
    except linalg.LinAlgError:
        return False
