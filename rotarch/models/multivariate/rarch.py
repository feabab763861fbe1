'''
Rotated ARCH (RARCH) Multivariate Volatility Model

This module implements the RARCH(P,Q) model of Noureldin, Shephard and
Sheppard. The data are first rotated into a standardized space using the
symmetric inverse square root of their time average C,

    S~_t = C^(-1/2) S_t C^(-1/2)

where S_t is either the outer product of a residual vector or a covariance
estimator such as realized covariance. In that space the conditional
covariance follows

    G_t = (I - sum A_i^2 - sum B_j^2) + sum A_i S~_{t-i} A_i + sum B_j G_{t-j} B_j

with diagonal A_i and B_j, so that the unconditional mean of G_t is the
identity. Conditional covariances in the original scale are
H_t = C^(1/2) G_t C^(1/2).

Three parameterizations are supported:

    Scalar    A_i = a_i I, B_j = b_j I
    CP        A_i diagonal, common persistence theta = b^2 shared by all assets
    Diagonal  A_i and B_j diagonal

and two estimation strategies. ``2-stage`` fixes C at the sample mean and
estimates the dynamics. ``Joint`` starts from the 2-stage estimates and
re-optimizes the Cholesky factor of C together with the dynamics. Inference
uses a sandwich covariance with a Newey-West long-run variance of the scores.

Classes:
    RARCHType: Parameterization of the dynamics
    RARCHMethod: Estimation strategy
    RARCHParameters: Parameter container for the dynamics
    RARCHModel: Estimation, inference, forecasting and simulation

Functions:
    rarch: Estimate a RARCH model in one call
    rarch_simulate: Simulate residuals from a RARCH process
'''

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy import optimize
from scipy.optimize import OptimizeResult

from rotarch.core.config import get_config
from rotarch.core.exceptions import (
    DataError, DimensionError, InsufficientDataError, ModelSpecificationError,
    NotFittedError, NumericError, ParameterError, raise_numeric_error,
    warn_convergence, warn_model, warn_numeric
)
from rotarch.core.parameters import (
    ParameterBase, validate_non_negative_integer, validate_positive_integer,
    validate_vector
)
from rotarch.core.results import RARCHResult
from rotarch.core.types import (
    CovarianceMatrix, CovarianceSequence, LikelihoodOutput, Matrix,
    OptimizerOptions, ParameterVector, RandomState, RARCHData
)
from rotarch.models.multivariate._numba_core import (
    rarch_forecast, rarch_recursion, rarch_simulate_core
)
from rotarch.utils.covariance import covnw, robust_sandwich
from rotarch.utils.differentiation import (
    gradient_2sided, hessian_2sided, hessian_2sided_nrows
)
from rotarch.utils.matrix_ops import (
    chol2vec, inv_sqrtm, ivech, sqrtm_psd, vec2chol, vech, vech_sequence
)

logger = logging.getLogger("rotarch.models.multivariate.rarch")

LOG_2PI = np.log(2.0 * np.pi)


class RARCHType(Enum):
    """Parameterization of the RARCH dynamics."""
    SCALAR = "Scalar"
    CP = "CP"
    DIAGONAL = "Diagonal"

    @classmethod
    def parse(cls, value: Union[str, 'RARCHType']) -> 'RARCHType':
        """Parse a type name case-insensitively.

        Raises:
            ModelSpecificationError: If the name is not recognized
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        raise ModelSpecificationError(
            "TYPE must be 'Scalar', 'CP' or 'Diagonal'",
            model_type="RARCH",
            parameter="rarch_type",
            valid_options=[member.value for member in cls],
            context={"Value": value}
        )


class RARCHMethod(Enum):
    """Estimation strategy."""
    TWO_STAGE = "2-stage"
    JOINT = "Joint"

    @classmethod
    def parse(cls, value: Union[str, 'RARCHMethod']) -> 'RARCHMethod':
        """Parse a method name case-insensitively.

        Raises:
            ModelSpecificationError: If the name is not recognized
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        raise ModelSpecificationError(
            "METHOD must be either '2-stage' or 'Joint'",
            model_type="RARCH",
            parameter="method",
            valid_options=[member.value for member in cls],
            context={"Value": value}
        )


def parameter_count(rarch_type: Union[str, RARCHType], p: int, q: int, n_assets: int) -> int:
    """Number of dynamics parameters.

    Scalar has P+Q, CP has K*P+1 and Diagonal has K*(P+Q).
    """
    rarch_type = RARCHType.parse(rarch_type)
    if rarch_type is RARCHType.SCALAR:
        return p + q
    if rarch_type is RARCHType.CP:
        return n_assets * p + 1
    return n_assets * (p + q)


@dataclass
class RARCHParameters(ParameterBase):
    """Dynamics parameters of a RARCH model.

    ``values`` is the flat vector seen by the optimizer. The innovation block
    comes first in lag-major order (the diagonal of A_1 for every asset, then
    A_2, ...) followed by the persistence block. In the CP parameterization
    the persistence block is a single value whose square is the common
    persistence theta, and q is ignored.

    Attributes:
        values: Flat parameter vector
        rarch_type: Parameterization
        p: Number of innovation lags
        q: Number of persistence lags
        n_assets: Number of assets
        a: Diagonals of A_1..A_P (P x K)
        b: Diagonals of B_1..B_Q (Q x K, 1 x K for CP)
        theta: Common persistence (CP only)
    """

    values: np.ndarray
    rarch_type: RARCHType
    p: int
    q: int
    n_assets: int
    a: np.ndarray = field(init=False, repr=False)
    b: np.ndarray = field(init=False, repr=False)
    theta: Optional[float] = field(init=False, default=None)

    def __post_init__(self) -> None:
        self.values = np.asarray(self.values, dtype=np.float64).ravel()
        self.rarch_type = RARCHType.parse(self.rarch_type)

        expected = parameter_count(self.rarch_type, self.p, self.q, self.n_assets)
        if self.values.shape[0] != expected:
            raise ParameterError(
                f"{self.rarch_type.value} RARCH({self.p},{self.q}) with {self.n_assets} "
                f"assets requires {expected} parameters, got {self.values.shape[0]}",
                param_name="parameters",
                param_value=self.values,
                constraint=f"len(parameters) == {expected}"
            )

        k, p, q = self.n_assets, self.p, self.q
        values = self.values
        if self.rarch_type is RARCHType.SCALAR:
            self.a = np.repeat(values[:p, None], k, axis=1)
            self.b = np.repeat(values[p:p + q, None], k, axis=1)
        elif self.rarch_type is RARCHType.DIAGONAL:
            self.a = values[:k * p].reshape(p, k).copy()
            self.b = values[k * p:].reshape(q, k).copy()
        else:
            self.a = values[:k * p].reshape(p, k).copy()
            self.theta = float(values[k * p] ** 2)
            # B_1 carries whatever persistence the innovations leave to reach theta
            residual = self.theta - (self.a ** 2).sum(axis=0)
            self.b = np.sqrt(np.maximum(residual, 0.0))[None, :]

    def validate(self) -> None:
        """Check that all values are finite.

        Raises:
            ParameterError: If any value is NaN or infinite
        """
        if not np.all(np.isfinite(self.values)):
            raise ParameterError(
                "RARCH parameters contain NaN or infinite values",
                param_name="parameters",
                param_value=self.values
            )

    @property
    def names(self) -> List[str]:
        k = self.n_assets
        if self.rarch_type is RARCHType.SCALAR:
            return ([f"a_{i+1}" for i in range(self.p)]
                    + [f"b_{j+1}" for j in range(self.q)])
        innovation = [f"a_{i+1}[{n+1}]" for i in range(self.p) for n in range(k)]
        if self.rarch_type is RARCHType.CP:
            return innovation + ["b"]
        return innovation + [f"b_{j+1}[{n+1}]" for j in range(self.q) for n in range(k)]

    def to_dict(self) -> Dict[str, float]:
        return dict(zip(self.names, self.values.tolist()))

    def to_array(self) -> np.ndarray:
        return self.values.copy()

    @classmethod
    def from_array(cls, array: np.ndarray, rarch_type: Union[str, RARCHType] = RARCHType.SCALAR,
                   p: int = 1, q: int = 1, n_assets: int = 1, **kwargs: Any) -> 'RARCHParameters':
        """Create parameters from a flat vector.

        Raises:
            ParameterError: If the vector length does not match the model
        """
        return cls(np.asarray(array, dtype=np.float64), RARCHType.parse(rarch_type), p, q, n_assets)

    def persistence(self) -> np.ndarray:
        """Per-asset persistence ``sum_i a_ik^2 + sum_j b_jk^2``."""
        return (self.a ** 2).sum(axis=0) + (self.b ** 2).sum(axis=0)

    def is_stationary(self) -> bool:
        """Whether every asset has persistence below one."""
        if self.rarch_type is RARCHType.CP:
            return bool(self.theta < 1.0 and (self.a ** 2).sum(axis=0).max() <= self.theta)
        return bool(self.persistence().max() < 1.0)


def covariance_sequence(data: RARCHData) -> CovarianceSequence:
    """
    Convert observation data to a K x K x T sequence of covariance estimators.

    A T by K matrix of residuals is turned into outer products ``x_t x_t'``.
    A K x K x T array is used as is. The returned array is read-only.

    Args:
        data: T by K residuals (ndarray or DataFrame) or K x K x T array

    Returns:
        K x K x T array of covariance estimators

    Raises:
        DimensionError: If data is neither 2-D nor a K x K x T array
        InsufficientDataError: If T <= K
        DataError: If data contains NaN or infinite values
    """
    if isinstance(data, pd.DataFrame):
        data = data.to_numpy()
    data = np.asarray(data, dtype=np.float64)

    if data.ndim == 2 and data.shape[1] >= 1:
        t_obs, k = data.shape
        covariances = np.einsum('ti,tj->ijt', data, data)
    elif data.ndim == 3 and data.shape[0] == data.shape[1] and data.shape[0] >= 1:
        k, _, t_obs = data.shape
        covariances = data.copy()
    else:
        raise DimensionError(
            "DATA must be either a T by K matrix or a K by K by T array",
            array_name="data",
            expected_shape="(T, K) or (K, K, T)",
            actual_shape=data.shape
        )

    if t_obs <= k:
        raise InsufficientDataError(
            "T must be larger than K",
            n_obs=t_obs,
            n_assets=k,
            details="At least K+1 observations are needed for the time average to be positive definite."
        )

    if not np.all(np.isfinite(covariances)):
        raise DataError(
            "DATA contains NaN or infinite values",
            data_name="data",
            issue="non-finite values"
        )

    covariances = np.ascontiguousarray(covariances)
    covariances.flags.writeable = False
    return covariances


def standardize(covariances: CovarianceSequence,
                C: Optional[CovarianceMatrix] = None) -> Tuple[CovarianceSequence, Matrix, Matrix]:
    """
    Rotate covariance estimators into the standardized space.

    Args:
        covariances: K x K x T covariance estimators
        C: Matrix to standardize by. Defaults to the time average

    Returns:
        Tuple of the standardized sequence ``C^(-1/2) S_t C^(-1/2)``,
        C and the symmetric ``C^(-1/2)``

    Raises:
        NumericError: If C is not positive definite
    """
    if C is None:
        C = covariances.mean(axis=2)
    C = (np.asarray(C, dtype=np.float64) + np.asarray(C, dtype=np.float64).T) / 2
    C_inv_sqrt = inv_sqrtm(C)
    std_data = np.einsum('ij,jkt,kl->ilt', C_inv_sqrt, covariances, C_inv_sqrt, optimize=True)
    return np.ascontiguousarray(std_data), C, C_inv_sqrt


def rarch_backcast(std_data: CovarianceSequence, decay: Optional[float] = None) -> Matrix:
    """
    Exponentially weighted average of the first standardized observations.

    Weights are proportional to ``decay ** j`` for ``j = 0..ceil(sqrt(T))``,
    truncated at T and normalized to sum to one.

    Args:
        std_data: Standardized K x K x T sequence
        decay: Weight decay. Defaults to ``models.backcast_decay`` (0.94)

    Returns:
        K x K back-cast used for pre-sample values of S~ and G
    """
    if decay is None:
        decay = get_config("models", "backcast_decay", 0.94)
    t_obs = std_data.shape[2]
    n_weights = min(int(np.ceil(np.sqrt(t_obs))) + 1, t_obs)
    weights = (1.0 - decay) * decay ** np.arange(n_weights)
    weights = weights / weights.sum()
    backcast = np.einsum('t,ijt->ij', weights, std_data[:, :, :n_weights])
    return np.ascontiguousarray((backcast + backcast.T) / 2)


def rarch_starting_values(rarch_type: Union[str, RARCHType], p: int, q: int, n_assets: int) -> ParameterVector:
    """
    Default starting values.

    Innovation coefficients share a total of 0.05 and persistence coefficients
    a total of 0.93, both on the squared scale, so that the implied
    persistence is 0.98.
    """
    rarch_type = RARCHType.parse(rarch_type)
    k = n_assets
    if rarch_type is RARCHType.SCALAR:
        values = [0.05 / p] * p + [0.93 / q] * q if q > 0 else [0.05 / p] * p
    elif rarch_type is RARCHType.CP:
        values = [0.05 / p] * (k * p) + [0.93]
    else:
        values = [0.05 / p] * (k * p) + ([0.93 / q] * (k * q) if q > 0 else [])
    return np.sqrt(np.array(values))


def rarch_bounds(n_dynamics: int, n_cov: int = 0) -> List[Tuple[float, float]]:
    """Bounds of ``[-1, 1]`` for dynamics, unbounded for a leading covariance block."""
    return [(-np.inf, np.inf)] * n_cov + [(-1.0, 1.0)] * n_dynamics


def rarch_constraint(parameters: ParameterVector, p: int, q: int, n_assets: int,
                     rarch_type: Union[str, RARCHType], is_joint: bool = False) -> np.ndarray:
    """
    Stationarity constraint values, all ``<= 0`` when feasible.

    Scalar    sum a^2 + sum b^2 - 1
    Diagonal  max over assets of (sum A^2 + sum B^2) - 1
    CP        [theta - 1, max over assets of sum A^2 - theta]

    Args:
        parameters: Dynamics, preceded by a covariance block when ``is_joint``
        p: Number of innovation lags
        q: Number of persistence lags
        n_assets: Number of assets
        rarch_type: Parameterization
        is_joint: Whether ``parameters`` starts with a K(K+1)/2 covariance block
    """
    parameters = np.asarray(parameters, dtype=np.float64)
    if is_joint:
        parameters = parameters[n_assets * (n_assets + 1) // 2:]
    params = RARCHParameters(parameters, RARCHType.parse(rarch_type), p, q, n_assets)

    innovation = (params.a ** 2).sum(axis=0)
    if params.rarch_type is RARCHType.CP:
        return np.array([params.theta - 1.0, innovation.max() - params.theta])
    return np.array([(innovation + (params.b ** 2).sum(axis=0)).max() - 1.0])


def _kernel(func: Callable) -> Callable:
    if get_config("core", "enable_numba", True):
        return func
    return func.py_func


def _loglik_contributions(std_data: CovarianceSequence, G: CovarianceSequence,
                          C: CovarianceMatrix) -> np.ndarray:
    k = G.shape[0]
    G_t = np.moveaxis(G, 2, 0)
    S_t = np.moveaxis(std_data, 2, 0)

    chol = np.linalg.cholesky(G_t)
    logdet_G = 2.0 * np.log(np.diagonal(chol, axis1=1, axis2=2)).sum(axis=1)
    sign, logdet_C = np.linalg.slogdet(C)
    if sign <= 0:
        raise_numeric_error(
            "C is not positive definite",
            operation="rarch_likelihood",
            error_type="non_positive_definite"
        )
    trace = np.trace(np.linalg.solve(G_t, S_t), axis1=1, axis2=2)

    return -0.5 * (k * LOG_2PI + logdet_C + logdet_G + trace)


def rarch_likelihood(parameters: ParameterVector,
                     data: CovarianceSequence,
                     p: int,
                     q: int,
                     C: CovarianceMatrix,
                     backcast: Matrix,
                     rarch_type: Union[str, RARCHType],
                     is_joint: bool = False,
                     is_inference: bool = False,
                     individual: bool = False) -> LikelihoodOutput:
    """
    Gaussian quasi log-likelihood of a RARCH model.

    The contribution of observation t is

        l_t = -0.5 (K log 2pi + log det C + log det G_t + tr(G_t^-1 S~_t))

    which equals the Gaussian log-likelihood of the original data with
    covariance ``H_t = C^(1/2) G_t C^(1/2)``.

    Args:
        parameters: Dynamics, preceded by a K(K+1)/2 covariance block when
            ``is_joint``
        data: K x K x T covariance estimators in the original scale
        p: Number of innovation lags
        q: Number of persistence lags
        C: Standardizing matrix, ignored when ``is_joint``
        backcast: Pre-sample value of S~ and G
        rarch_type: Parameterization
        is_joint: Whether the leading covariance block is present
        is_inference: Whether that block is ``vech(C)`` instead of the
            vectorized lower Cholesky factor of C
        individual: Whether the first output is the T-vector of contributions
            instead of the negative log-likelihood

    Returns:
        Tuple of the negative log-likelihood (or the contributions when
        ``individual``), the T contributions and the K x K x T conditional
        covariances. Infeasible parameters return ``numerical.penalty_value``
        in place of the negative log-likelihood.
    """
    rarch_type = RARCHType.parse(rarch_type)
    parameters = np.asarray(parameters, dtype=np.float64)
    k = data.shape[0]
    t_obs = data.shape[2]

    if is_joint:
        k2 = k * (k + 1) // 2
        cov_block = parameters[:k2]
        dynamics = parameters[k2:]
        if is_inference:
            C = ivech(cov_block)
        else:
            chol = vec2chol(cov_block, k)
            C = chol @ chol.T
    else:
        dynamics = parameters

    params = RARCHParameters(dynamics, rarch_type, p, q, k)

    try:
        std_data, C, _ = standardize(data, C)
        G = _kernel(rarch_recursion)(std_data, params.a, params.b, backcast)
        lls = _loglik_contributions(std_data, G, C)
    except (NumericError, np.linalg.LinAlgError) as e:
        logger.debug(f"Penalty at infeasible parameters: {type(e).__name__}")
        return _penalty_output(k, t_obs, individual)

    if not np.all(np.isfinite(lls)):
        logger.debug("Penalty at parameters with non-finite log-likelihood")
        return _penalty_output(k, t_obs, individual)

    C_half = sqrtm_psd(C)
    Ht = np.einsum('ij,jkt,kl->ilt', C_half, G, C_half, optimize=True)
    neg_ll = -float(lls.sum())

    if individual:
        return lls, lls, Ht
    return neg_ll, lls, Ht


def _penalty_output(k: int, t_obs: int, individual: bool) -> LikelihoodOutput:
    penalty = get_config("numerical", "penalty_value", 1e10)
    lls = np.full(t_obs, -penalty / t_obs)
    Ht = np.full((k, k, t_obs), np.nan)
    if individual:
        return lls, lls, Ht
    return penalty, lls, Ht


def _first_output(x: np.ndarray, *args: Any) -> Any:
    return rarch_likelihood(x, *args)[0]


def _average_loglik(x: np.ndarray, *args: Any) -> float:
    # args[0] is the K x K x T data
    return -rarch_likelihood(x, *args)[0] / args[0].shape[2]


def _covariance_names(k: int) -> List[str]:
    return [f"C[{i+1},{j+1}]" for i in range(k) for j in range(i + 1)]


class RARCHModel:
    """Rotated ARCH (RARCH) multivariate volatility model.

    Estimation is split in two explicit steps. :meth:`optimize` transforms the
    data, builds starting values and the back-cast, and maximizes the
    likelihood. :meth:`inference` computes the robust parameter covariance
    and the scores. :meth:`fit` runs both.

    Attributes:
        p: Number of innovation lags
        q: Number of persistence lags
        rarch_type: Parameterization
        method: Estimation strategy
        name: Name used in result summaries
    """

    def __init__(self,
                 p: int = 1,
                 q: int = 1,
                 rarch_type: Optional[Union[str, RARCHType]] = None,
                 method: Optional[Union[str, RARCHMethod]] = None,
                 name: str = "RARCH"):
        """Initialize the model.

        Args:
            p: Positive number of innovation lags
            q: Non-negative number of persistence lags
            rarch_type: 'Scalar', 'CP' or 'Diagonal'. Defaults to
                ``models.default_rarch_type``
            method: '2-stage' or 'Joint'. Defaults to ``models.default_rarch_method``
            name: Name of the model

        Raises:
            ParameterError: If p or q is invalid
            ModelSpecificationError: If the type or method is not recognized
        """
        self.p = validate_positive_integer(p, "P")
        self.q = validate_non_negative_integer(q, "Q")
        if rarch_type is None:
            rarch_type = get_config("models", "default_rarch_type", "Scalar")
        if method is None:
            method = get_config("models", "default_rarch_method", "2-stage")
        self.rarch_type = RARCHType.parse(rarch_type)
        self.method = RARCHMethod.parse(method)
        self.name = name

        if self.rarch_type is RARCHType.CP and self.q != 1:
            warn_model(
                "The CP parameterization has a single persistence lag; Q is ignored",
                model_type="RARCH",
                parameter="q",
                context={"Q": self.q}
            )

        self._fitted = False
        self._covariances: Optional[np.ndarray] = None
        self._C: Optional[np.ndarray] = None
        self._C_hat: Optional[np.ndarray] = None
        self._backcast: Optional[np.ndarray] = None
        self._dynamics: Optional[np.ndarray] = None
        self._std_data: Optional[np.ndarray] = None
        self._G: Optional[np.ndarray] = None
        self._result: Optional[RARCHResult] = None

    def __repr__(self) -> str:
        return (f"RARCHModel(p={self.p}, q={self.q}, rarch_type='{self.rarch_type.value}', "
                f"method='{self.method.value}')")

    @property
    def fitted(self) -> bool:
        return self._fitted

    @property
    def parameters(self) -> Optional[RARCHParameters]:
        """Estimated dynamics, or None before estimation."""
        if self._dynamics is None:
            return None
        return RARCHParameters(self._dynamics, self.rarch_type, self.p, self.q, self._C_hat.shape[0])

    @property
    def result(self) -> Optional[RARCHResult]:
        return self._result

    def _check_fitted(self, operation: str) -> None:
        if not self._fitted:
            raise NotFittedError(
                "Model has not been fitted. Call optimize() or fit() first.",
                operation=operation
            )

    def _args(self, C: CovarianceMatrix, is_joint: bool, is_inference: bool,
              individual: bool) -> Tuple:
        return (self._covariances, self.p, self.q, C, self._backcast, self.rarch_type,
                is_joint, is_inference, individual)

    @staticmethod
    def _optimizer_options(options: Optional[OptimizerOptions]) -> OptimizerOptions:
        opts = {
            'maxiter': get_config("numerical", "max_iterations", 1000),
            'ftol': get_config("numerical", "optimization_tol", 1e-8),
            'disp': False
        }
        if options:
            opts.update(options)
        return opts

    def fit(self,
            data: RARCHData,
            starting_values: Optional[ParameterVector] = None,
            options: Optional[OptimizerOptions] = None,
            compute_vcv: Optional[bool] = None) -> RARCHResult:
        """Estimate the model and, optionally, the parameter covariance.

        Args:
            data: T by K residuals or K x K x T covariance estimators
            starting_values: Starting dynamics for the 2-stage optimization
            options: Optimizer options forwarded to scipy.optimize.minimize
            compute_vcv: Whether to run :meth:`inference`. Defaults to
                ``models.compute_vcv``

        Returns:
            RARCHResult: The estimation results
        """
        self.optimize(data, starting_values, options)
        if compute_vcv is None:
            compute_vcv = get_config("models", "compute_vcv", True)
        if compute_vcv:
            return self.inference()
        return self._result

    def optimize(self,
                 data: RARCHData,
                 starting_values: Optional[ParameterVector] = None,
                 options: Optional[OptimizerOptions] = None) -> RARCHResult:
        """Maximize the likelihood.

        Args:
            data: T by K residuals or K x K x T covariance estimators
            starting_values: Starting dynamics, each in [-1, 1]
            options: Optimizer options forwarded to scipy.optimize.minimize

        Returns:
            RARCHResult without parameter covariance

        Raises:
            DimensionError: If data has the wrong dimensions
            InsufficientDataError: If T <= K
            ParameterError: If starting values have the wrong length or range
        """
        covariances = covariance_sequence(data)
        k, t_obs = covariances.shape[0], covariances.shape[2]
        n_dynamics = parameter_count(self.rarch_type, self.p, self.q, k)

        if starting_values is not None:
            starting_values = validate_vector(starting_values, "starting_values", n_dynamics, -1.0, 1.0)
            if np.any(rarch_constraint(starting_values, self.p, self.q, k, self.rarch_type) > 0):
                logger.warning("Starting values violate the stationarity constraint")

        std_data, C, _ = standardize(covariances)
        self._covariances = covariances
        self._C = C
        self._backcast = rarch_backcast(std_data)

        if starting_values is None:
            starting_values = rarch_starting_values(self.rarch_type, self.p, self.q, k)

        opts = self._optimizer_options(options)
        logger.info(
            f"Estimating {self.rarch_type.value} RARCH({self.p},{self.q}) by {self.method.value} "
            f"with T={t_obs}, K={k}"
        )

        dynamics, neg_ll, Ht, opt_result = self._optimize_two_stage(starting_values, opts)
        metadata = {"two_stage_log_likelihood": -neg_ll, "two_stage_iterations": int(opt_result.nit)}
        C_hat = C

        if self.method is RARCHMethod.JOINT:
            *joint, improved = self._optimize_joint(dynamics, opts)
            metadata["joint_iterations"] = int(joint[-1].nit)
            metadata["joint_improved"] = improved
            if improved:
                C_hat, dynamics, neg_ll, Ht, opt_result = joint
            else:
                # estimates and optimizer status stay with the 2-stage run
                logger.info("Joint optimization did not improve on the 2-stage estimates")

        self._C_hat = C_hat
        self._dynamics = dynamics
        self._std_data, _, _ = standardize(covariances, C_hat)
        params = RARCHParameters(dynamics, self.rarch_type, self.p, self.q, k)
        self._G = _kernel(rarch_recursion)(self._std_data, params.a, params.b, self._backcast)

        self._result = RARCHResult(
            model_name=self.name,
            metadata=metadata,
            parameters=np.concatenate([vech(C_hat), dynamics]),
            parameter_names=_covariance_names(k) + params.names,
            convergence=bool(opt_result.success),
            iterations=int(opt_result.nit),
            log_likelihood=-neg_ll,
            n_obs=t_obs,
            optimization_message=str(opt_result.message),
            rarch_type=self.rarch_type.value,
            method=self.method.value,
            p=self.p,
            q=self.q,
            n_assets=k,
            dynamics=dynamics.copy(),
            conditional_covariances=Ht,
            unconditional_covariance=C_hat,
            persistence=float(params.persistence().max())
        )
        self._fitted = True

        logger.info(f"Estimation finished, log-likelihood {-neg_ll:.4f}")
        return self._result

    def _minimize(self, x0: np.ndarray, args: Tuple, bounds: List[Tuple[float, float]],
                  is_joint: bool, options: OptimizerOptions) -> OptimizeResult:
        k = self._covariances.shape[0]
        margin = get_config("numerical", "constraint_margin", 1e-8)
        method = get_config("numerical", "optimization_method", "SLSQP")

        def constraint(x: np.ndarray) -> np.ndarray:
            return -rarch_constraint(x, self.p, self.q, k, self.rarch_type, is_joint) - margin

        result = optimize.minimize(
            _first_output,
            x0,
            args=args,
            method=method,
            bounds=bounds,
            constraints=[{'type': 'ineq', 'fun': constraint}],
            options=options
        )

        if not result.success:
            warn_convergence(
                "Optimization did not converge",
                iterations=int(result.nit),
                optimizer_message=str(result.message),
                details="Results may not be reliable."
            )
        logger.debug(f"Optimizer finished after {result.nit} iterations: {result.message}")
        return result

    def _optimize_two_stage(self, starting_values: np.ndarray,
                            options: OptimizerOptions) -> Tuple[np.ndarray, float, np.ndarray, Any]:
        args = self._args(self._C, False, False, False)
        result = self._minimize(starting_values, args, rarch_bounds(starting_values.shape[0]), False, options)
        neg_ll, _, Ht = rarch_likelihood(result.x, *args)
        return result.x.copy(), neg_ll, Ht, result

    def _optimize_joint(self, dynamics: np.ndarray,
                        options: OptimizerOptions) -> Tuple[np.ndarray, np.ndarray, float, np.ndarray, Any, bool]:
        k = self._C.shape[0]
        k2 = k * (k + 1) // 2
        args = self._args(self._C, True, False, False)

        x0 = np.concatenate([chol2vec(np.linalg.cholesky(self._C)), dynamics])
        start_neg_ll = rarch_likelihood(x0, *args)[0]

        result = self._minimize(x0, args, rarch_bounds(dynamics.shape[0], k2), True, options)
        x = result.x
        neg_ll, _, Ht = rarch_likelihood(x, *args)
        chol = vec2chol(x[:k2], k)
        C_hat = chol @ chol.T
        return (C_hat + C_hat.T) / 2, x[k2:].copy(), neg_ll, Ht, result, bool(neg_ll <= start_neg_ll)

    def _hac_bandwidth(self, t_obs: int) -> float:
        scale = get_config("models", "hac_bandwidth_scale", 1.2)
        return scale * np.ceil(t_obs ** 0.25)

    def inference(self) -> RARCHResult:
        """Compute the robust parameter covariance and the scores.

        Returns:
            RARCHResult with ``vcv``, ``scores``, standard errors,
            t-statistics and p-values filled in

        Raises:
            NotFittedError: If called before :meth:`optimize`
            NumericError: If the score Jacobian is singular
        """
        self._check_fitted("inference")
        logger.info(f"Computing {self.method.value} parameter covariance")

        if self.method is RARCHMethod.JOINT:
            vcv, scores = self._joint_vcv()
        else:
            vcv, scores = self._two_stage_vcv()

        if np.any(np.diag(vcv) < 0):
            warn_numeric(
                "Parameter covariance has negative variances",
                operation="inference",
                issue="numerical Hessian is not negative definite",
                value=np.diag(vcv)
            )

        self._result.set_vcv(vcv)
        self._result.scores = scores
        return self._result

    def _two_stage_vcv(self) -> Tuple[np.ndarray, np.ndarray]:
        covariances = self._covariances
        C = self._C
        k, t_obs = C.shape[0], covariances.shape[2]
        k2 = k * (k + 1) // 2
        dynamics = self._dynamics
        m = dynamics.shape[0]

        scores1 = vech_sequence(covariances - C[:, :, None])
        scores2 = gradient_2sided(_first_output, dynamics, self._args(C, False, False, True))
        scores = np.hstack([scores1, scores2])
        B = covnw(scores, self._hac_bandwidth(t_obs))

        full = np.concatenate([vech(C), dynamics])
        A2 = hessian_2sided_nrows(_average_loglik, full, m, self._args(C, True, True, False))
        A = np.vstack([np.hstack([-np.eye(k2), np.zeros((k2, m))]), A2])

        return robust_sandwich(A, B, t_obs), scores

    def _joint_vcv(self) -> Tuple[np.ndarray, np.ndarray]:
        t_obs = self._covariances.shape[2]
        full = np.concatenate([vech(self._C_hat), self._dynamics])

        scores = gradient_2sided(_first_output, full, self._args(self._C_hat, True, True, True))
        B = covnw(scores, self._hac_bandwidth(t_obs))
        A = hessian_2sided(_average_loglik, full, self._args(self._C_hat, True, True, False))

        return robust_sandwich(A, B, t_obs), scores

    def forecast(self, steps: int = 1) -> np.ndarray:
        """Forecast conditional covariances after the end of the sample.

        Args:
            steps: Number of periods to forecast

        Returns:
            K x K x steps array of covariance forecasts

        Raises:
            NotFittedError: If the model has not been estimated
        """
        self._check_fitted("forecast")
        steps = validate_positive_integer(steps, "steps")
        params = self.parameters
        G_forecast = _kernel(rarch_forecast)(self._std_data, self._G, params.a, params.b, steps)
        C_half = sqrtm_psd(self._C_hat)
        return np.einsum('ij,jkt,kl->ilt', C_half, G_forecast, C_half, optimize=True)

    def simulate(self,
                 n_periods: int,
                 burn: int = 500,
                 random_state: RandomState = None,
                 parameters: Optional[ParameterVector] = None,
                 C: Optional[CovarianceMatrix] = None) -> Tuple[np.ndarray, np.ndarray]:
        """Simulate residuals from the model.

        Estimated values are used for anything not supplied.

        Args:
            n_periods: Number of observations to return
            burn: Number of initial observations to discard
            random_state: Seed or numpy Generator
            parameters: Dynamics to simulate from
            C: Unconditional covariance

        Returns:
            Tuple of T by K residuals and K x K x T conditional covariances

        Raises:
            NotFittedError: If values are missing and the model has not been estimated
        """
        if parameters is None or C is None:
            self._check_fitted("simulate")
        if parameters is None:
            parameters = self._dynamics
        if C is None:
            C = self._C_hat
        C = np.asarray(C, dtype=np.float64)
        return rarch_simulate(parameters, n_periods, self.rarch_type, self.p, self.q,
                              C=C, burn=burn, random_state=random_state)


def rarch_simulate(parameters: ParameterVector,
                   n_periods: int,
                   rarch_type: Union[str, RARCHType] = RARCHType.SCALAR,
                   p: int = 1,
                   q: int = 1,
                   C: Optional[CovarianceMatrix] = None,
                   n_assets: Optional[int] = None,
                   burn: int = 500,
                   random_state: RandomState = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Simulate residuals from a RARCH process with Gaussian innovations.

    Args:
        parameters: Dynamics parameters
        n_periods: Number of observations to return
        rarch_type: Parameterization
        p: Number of innovation lags
        q: Number of persistence lags
        C: Unconditional covariance. Defaults to the identity
        n_assets: Number of assets, required when C is not given
        burn: Number of initial observations to discard
        random_state: Seed or numpy Generator. Defaults to ``core.random_seed``

    Returns:
        Tuple of T by K residuals and K x K x T conditional covariances

    Raises:
        ParameterError: If the parameters are not stationary or dimensions are missing
        NumericError: If a simulated covariance is not positive definite
    """
    rarch_type = RARCHType.parse(rarch_type)
    n_periods = validate_positive_integer(n_periods, "n_periods")
    burn = validate_non_negative_integer(burn, "burn")

    if C is None:
        if n_assets is None:
            raise ParameterError(
                "Either C or n_assets must be provided",
                param_name="n_assets"
            )
        C = np.eye(validate_positive_integer(n_assets, "n_assets"))
    C = np.asarray(C, dtype=np.float64)
    k = C.shape[0]

    params = RARCHParameters(parameters, rarch_type, p, q, k)
    params.validate()
    if not params.is_stationary():
        raise ParameterError(
            "Parameters do not satisfy the stationarity constraint",
            param_name="parameters",
            param_value=params.values,
            constraint="persistence < 1"
        )

    if isinstance(random_state, np.random.Generator):
        rng = random_state
    else:
        if random_state is None:
            random_state = get_config("core", "random_seed", None)
        rng = np.random.default_rng(random_state)

    z = rng.standard_normal((n_periods + burn, k))
    try:
        eps, G = _kernel(rarch_simulate_core)(z, params.a, params.b)
    except np.linalg.LinAlgError as e:
        raise NumericError(
            "Simulated covariance is not positive definite",
            operation="rarch_simulate",
            error_type="non_positive_definite",
            details=str(e)
        ) from e

    C_half = sqrtm_psd(C)
    data = eps[burn:] @ C_half
    Ht = np.einsum('ij,jkt,kl->ilt', C_half, G[:, :, burn:], C_half, optimize=True)
    return data, Ht


def rarch(data: RARCHData,
          p: int = 1,
          q: int = 1,
          rarch_type: Optional[Union[str, RARCHType]] = None,
          method: Optional[Union[str, RARCHMethod]] = None,
          starting_values: Optional[ParameterVector] = None,
          options: Optional[OptimizerOptions] = None,
          compute_vcv: Optional[bool] = None) -> RARCHResult:
    """
    Estimate a RARCH(P,Q) multivariate volatility model.

    Args:
        data: T by K zero-mean residuals or K x K x T covariance estimators
        p: Positive number of innovation lags
        q: Non-negative number of persistence lags
        rarch_type: 'Scalar' (default), 'CP' or 'Diagonal'
        method: '2-stage' (default) or 'Joint'
        starting_values: Starting dynamics
        options: Optimizer options forwarded to scipy.optimize.minimize
        compute_vcv: Whether to compute the robust parameter covariance

    Returns:
        RARCHResult with ``parameters = [vech(C); dynamics]``, the
        log-likelihood, conditional covariances, and, when requested,
        ``vcv`` and ``scores``

    Examples:
        >>> import numpy as np
        >>> from rotarch import rarch
        >>> rng = np.random.default_rng(0)
        >>> res = rarch(rng.standard_normal((500, 2)), 1, 1, compute_vcv=False)
        >>> res.conditional_covariances.shape
        (2, 2, 500)
    """
    model = RARCHModel(p, q, rarch_type, method)
    return model.fit(data, starting_values, options, compute_vcv)
