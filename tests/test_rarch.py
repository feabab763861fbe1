# tests/test_rarch.py
"""
Tests for the RARCH multivariate volatility model.

Covers the data transformation and back-cast, the parameterizations and
their stationarity constraints, the likelihood, 2-stage and joint
estimation with inference, forecasting and simulation.
"""

import json
import typing

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose, assert_array_equal
from hypothesis import HealthCheck, given, settings, strategies as st
from scipy.optimize import OptimizeResult

from rotarch import rarch
from rotarch.core.config import set_config
from rotarch.core.exceptions import (
    DataError, DimensionError, InsufficientDataError, ModelSpecificationError,
    ModelWarning, NotFittedError, ParameterError
)
from rotarch.core.results import RARCHResult
from rotarch.models.multivariate._numba_core import rarch_forecast, rarch_recursion
from rotarch.models.multivariate.rarch import (
    RARCHMethod, RARCHModel, RARCHParameters, RARCHType, covariance_sequence,
    parameter_count, rarch_backcast, rarch_bounds, rarch_constraint,
    rarch_likelihood, rarch_simulate, rarch_starting_values, standardize
)
from rotarch.utils.matrix_ops import chol2vec, vech


def _rotation(angle: float) -> np.ndarray:
    return np.array([[np.cos(angle), -np.sin(angle)],
                     [np.sin(angle), np.cos(angle)]])


def _prepare(data):
    std_data, C, _ = standardize(data)
    return C, rarch_backcast(std_data)


# ---- Data Transformation Tests ----

class TestCovarianceSequence:
    """Tests for converting inputs to covariance estimator sequences."""

    def test_residuals_become_outer_products(self, rng):
        x = rng.standard_normal((20, 3))
        result = covariance_sequence(x)
        assert result.shape == (3, 3, 20)
        assert_allclose(result[:, :, 4], np.outer(x[4], x[4]))

    def test_three_dimensional_input_is_used_as_is(self, small_covariance_sequence):
        result = covariance_sequence(small_covariance_sequence)
        assert_array_equal(result, small_covariance_sequence)

    def test_dataframe_input(self, rng):
        x = rng.standard_normal((10, 2))
        result = covariance_sequence(pd.DataFrame(x, columns=["a", "b"]))
        assert_allclose(result, covariance_sequence(x))

    def test_result_is_read_only(self, rng):
        result = covariance_sequence(rng.standard_normal((10, 2)))
        assert not result.flags.writeable

    def test_minimum_sample_size(self, rng):
        # T = K + 1 is the smallest admissible sample
        assert covariance_sequence(rng.standard_normal((3, 2))).shape == (2, 2, 3)
        with pytest.raises(InsufficientDataError):
            covariance_sequence(rng.standard_normal((2, 2)))
        with pytest.raises(InsufficientDataError):
            covariance_sequence(np.repeat(np.eye(3)[:, :, None], 3, axis=2))

    def test_invalid_dimensions(self, rng):
        with pytest.raises(DimensionError):
            covariance_sequence(rng.standard_normal(10))
        with pytest.raises(DimensionError):
            covariance_sequence(rng.standard_normal((2, 3, 10)))

    def test_non_finite_data(self, rng):
        x = rng.standard_normal((10, 2))
        x[3, 1] = np.nan
        with pytest.raises(DataError):
            covariance_sequence(x)


class TestStandardization:
    """Tests for the rotation into the standardized space."""

    def test_standardized_mean_is_identity(self, small_covariance_sequence):
        std_data, C, C_inv_sqrt = standardize(small_covariance_sequence)
        assert_allclose(std_data.mean(axis=2), np.eye(2), atol=1e-10)
        assert_allclose(C, small_covariance_sequence.mean(axis=2))
        assert_allclose(C_inv_sqrt @ C @ C_inv_sqrt, np.eye(2), atol=1e-10)

    def test_rotation_equivariance(self, small_covariance_sequence):
        Q = _rotation(0.7)
        rotated = np.einsum('ij,jkt,lk->ilt', Q, small_covariance_sequence, Q)
        std_data, _, _ = standardize(small_covariance_sequence)
        std_rotated, _, _ = standardize(rotated)
        expected = np.einsum('ij,jkt,lk->ilt', Q, std_data, Q)
        assert_allclose(std_rotated, expected, atol=1e-10)

    def test_backcast_of_constant_data(self):
        std_data = np.repeat(np.eye(2)[:, :, None], 30, axis=2)
        assert_allclose(rarch_backcast(std_data), np.eye(2))

    def test_backcast_weights(self, small_covariance_sequence):
        std_data, _, _ = standardize(small_covariance_sequence)
        n = int(np.ceil(np.sqrt(200))) + 1
        weights = 0.94 ** np.arange(n)
        weights = weights / weights.sum()
        expected = np.einsum('t,ijt->ij', weights, std_data[:, :, :n])
        assert_allclose(rarch_backcast(std_data), expected)

    def test_backcast_with_short_sample(self):
        std_data = np.stack([np.eye(1) * 2.0, np.eye(1) * 4.0], axis=2)
        expected = (2.0 + 0.94 * 4.0) / (1.0 + 0.94)
        assert_allclose(rarch_backcast(std_data), [[expected]])


# ---- Parameterization Tests ----

class TestRARCHParameters:
    """Tests for the parameter container and its conventions."""

    def test_parameter_count(self):
        assert parameter_count("Scalar", 2, 1, 5) == 3
        assert parameter_count("CP", 2, 3, 5) == 11
        assert parameter_count("Diagonal", 2, 1, 5) == 15

    def test_scalar_coefficients(self):
        params = RARCHParameters(np.array([0.2, 0.1, 0.9]), RARCHType.SCALAR, 2, 1, 3)
        assert_allclose(params.a, [[0.2, 0.2, 0.2], [0.1, 0.1, 0.1]])
        assert_allclose(params.b, [[0.9, 0.9, 0.9]])

    def test_diagonal_coefficients_are_lag_major(self):
        values = np.array([0.1, 0.2, 0.3, 0.4, 0.8, 0.85])
        params = RARCHParameters(values, RARCHType.DIAGONAL, 2, 1, 2)
        assert_allclose(params.a, [[0.1, 0.2], [0.3, 0.4]])
        assert_allclose(params.b, [[0.8, 0.85]])

    def test_cp_common_persistence(self):
        params = RARCHParameters(np.array([0.2, 0.3, 0.9]), RARCHType.CP, 1, 1, 2)
        assert params.theta == pytest.approx(0.81)
        assert_allclose(params.b, np.sqrt([[0.81 - 0.04, 0.81 - 0.09]]))
        assert_allclose(params.persistence(), [0.81, 0.81])

    def test_cp_infeasible_persistence_is_clipped(self):
        params = RARCHParameters(np.array([0.5, 0.1]), RARCHType.CP, 1, 1, 1)
        assert_allclose(params.b, [[0.0]])
        assert not params.is_stationary()

    def test_no_persistence_lags(self):
        params = RARCHParameters(np.array([0.3]), RARCHType.SCALAR, 1, 0, 2)
        assert params.b.shape == (0, 2)
        assert_allclose(params.persistence(), [0.09, 0.09])

    def test_wrong_length(self):
        with pytest.raises(ParameterError):
            RARCHParameters(np.array([0.2, 0.9, 0.1]), RARCHType.SCALAR, 1, 1, 2)

    def test_names_and_dict(self):
        params = RARCHParameters.from_array(np.array([0.2, 0.3, 0.9, 0.8]), "Diagonal", 1, 1, 2)
        assert params.names == ["a_1[1]", "a_1[2]", "b_1[1]", "b_1[2]"]
        assert params.to_dict()["b_1[2]"] == pytest.approx(0.8)
        assert_array_equal(params.to_array(), [0.2, 0.3, 0.9, 0.8])
        cp = RARCHParameters.from_array(np.array([0.2, 0.3, 0.9]), "CP", 1, 1, 2)
        assert cp.names == ["a_1[1]", "a_1[2]", "b"]

    def test_type_and_method_parsing(self):
        assert RARCHType.parse("scalar") is RARCHType.SCALAR
        assert RARCHType.parse(" DIAGONAL ") is RARCHType.DIAGONAL
        assert RARCHMethod.parse("joint") is RARCHMethod.JOINT
        with pytest.raises(ModelSpecificationError):
            RARCHType.parse("Full")
        with pytest.raises(ModelSpecificationError):
            RARCHMethod.parse("3-stage")


class TestConstraints:
    """Tests for starting values, bounds and stationarity constraints."""

    def test_starting_values(self):
        assert_allclose(rarch_starting_values("Scalar", 1, 1, 3), np.sqrt([0.05, 0.93]))
        assert_allclose(rarch_starting_values("CP", 2, 1, 2), np.sqrt([0.025] * 4 + [0.93]))
        assert_allclose(rarch_starting_values("Diagonal", 1, 2, 2),
                        np.sqrt([0.05, 0.05, 0.465, 0.465, 0.465, 0.465]))
        assert_allclose(rarch_starting_values("Scalar", 1, 0, 2), np.sqrt([0.05]))

    def test_bounds(self):
        assert rarch_bounds(2) == [(-1.0, 1.0), (-1.0, 1.0)]
        bounds = rarch_bounds(1, 3)
        assert bounds[0] == (-np.inf, np.inf)
        assert bounds[-1] == (-1.0, 1.0)
        assert len(bounds) == 4

    def test_constraint_values(self):
        assert_allclose(rarch_constraint([0.2, 0.95], 1, 1, 2, "Scalar"), [-0.0575])
        assert_allclose(rarch_constraint([0.2, 0.3, 0.9, 0.9], 1, 1, 2, "Diagonal"), [-0.1])
        assert_allclose(rarch_constraint([0.2, 0.3, 0.9], 1, 1, 2, "CP"), [-0.19, -0.72])

    def test_joint_constraint_skips_covariance_block(self):
        joint = np.concatenate([[1.0, 0.2, 1.0], [0.2, 0.95]])
        assert_allclose(rarch_constraint(joint, 1, 1, 2, "Scalar", is_joint=True), [-0.0575])

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(a=st.floats(-1, 1), b=st.floats(-1, 1))
    def test_scalar_constraint_sign(self, a, b):
        value = rarch_constraint([a, b], 1, 1, 2, "Scalar")[0]
        assert (value <= 0) == (a * a + b * b <= 1)

    @settings(max_examples=50, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(rarch_type=st.sampled_from(["Scalar", "CP", "Diagonal"]),
           p=st.integers(1, 3), q=st.integers(0, 3), k=st.integers(1, 4))
    def test_starting_values_are_feasible(self, rarch_type, p, q, k):
        if rarch_type == "CP":
            q = 1
        sv = rarch_starting_values(rarch_type, p, q, k)
        assert sv.shape[0] == parameter_count(rarch_type, p, q, k)
        assert np.all(rarch_constraint(sv, p, q, k, rarch_type) < 0)


# ---- Recursion and Likelihood Tests ----

class TestRecursion:
    """Tests for the compiled recursions."""

    def test_first_steps(self, small_covariance_sequence):
        std_data, _, _ = standardize(small_covariance_sequence)
        backcast = rarch_backcast(std_data)
        a = np.array([[0.2, 0.3]])
        b = np.array([[0.9, 0.85]])
        G = rarch_recursion(std_data, a, b, backcast)

        intercept = np.diag(1.0 - a[0] ** 2 - b[0] ** 2)
        aa = np.outer(a[0], a[0])
        bb = np.outer(b[0], b[0])
        G0 = intercept + aa * backcast + bb * backcast
        G1 = intercept + aa * std_data[:, :, 0] + bb * G0
        assert_allclose(G[:, :, 0], G0)
        assert_allclose(G[:, :, 1], G1)

    def test_compiled_matches_python(self, small_covariance_sequence):
        std_data, _, _ = standardize(small_covariance_sequence)
        backcast = rarch_backcast(std_data)
        a = np.array([[0.2, 0.3], [0.1, 0.1]])
        b = np.array([[0.9, 0.85]])
        assert_allclose(rarch_recursion(std_data, a, b, backcast),
                        rarch_recursion.py_func(std_data, a, b, backcast))

    def test_one_step_forecast(self, small_covariance_sequence):
        std_data, _, _ = standardize(small_covariance_sequence)
        backcast = rarch_backcast(std_data)
        a = np.array([[0.2, 0.3]])
        b = np.array([[0.9, 0.85]])
        G = rarch_recursion(std_data, a, b, backcast)
        forecast = rarch_forecast(std_data, G, a, b, 3)

        intercept = np.diag(1.0 - a[0] ** 2 - b[0] ** 2)
        expected = (intercept + np.outer(a[0], a[0]) * std_data[:, :, -1]
                    + np.outer(b[0], b[0]) * G[:, :, -1])
        assert forecast.shape == (2, 2, 3)
        assert_allclose(forecast[:, :, 0], expected)


class TestLikelihood:
    """Tests for the RARCH log-likelihood."""

    @pytest.mark.parametrize("a, b", [(0.3, 0.9), (0.1, 0.99), (0.6, 0.0), (0.0, 0.5)])
    def test_identity_data(self, a, b):
        # constant identity data gives G_t = I whatever the split between a and b
        k, t_obs = 2, 50
        data = np.repeat(np.eye(k)[:, :, None], t_obs, axis=2)
        C, backcast = _prepare(data)
        neg_ll, lls, Ht = rarch_likelihood(np.array([a, b]), data, 1, 1, C, backcast, "Scalar")
        assert_allclose(Ht, data, atol=1e-12)
        assert_allclose(lls, -0.5 * (k * np.log(2 * np.pi) + k))
        assert neg_ll == pytest.approx(-lls.sum())

    def test_scalar_matches_equal_diagonal_and_cp(self, small_covariance_sequence):
        data = small_covariance_sequence
        C, backcast = _prepare(data)
        scalar = rarch_likelihood(np.array([0.2, 0.95]), data, 1, 1, C, backcast, "Scalar")[0]
        diagonal = rarch_likelihood(np.array([0.2, 0.2, 0.95, 0.95]), data, 1, 1, C, backcast, "Diagonal")[0]
        cp = rarch_likelihood(np.array([0.2, 0.2, np.sqrt(0.9425)]), data, 1, 1, C, backcast, "CP")[0]
        assert_allclose(diagonal, scalar)
        assert_allclose(cp, scalar)

    def test_scalar_rotation_invariance(self, rng):
        x = rng.standard_normal((300, 2)) * np.array([1.0, 2.0])
        Q = _rotation(1.1)
        lls = []
        for residuals in (x, x @ Q.T):
            data = covariance_sequence(residuals)
            C, backcast = _prepare(data)
            lls.append(rarch_likelihood(np.array([0.25, 0.9]), data, 1, 1, C, backcast, "Scalar")[0])
        assert_allclose(lls[0], lls[1], rtol=1e-10)

    def test_matches_gaussian_density(self, rng):
        x = rng.standard_normal((100, 2))
        data = covariance_sequence(x)
        C, backcast = _prepare(data)
        _, lls, Ht = rarch_likelihood(np.array([0.3, 0.9]), data, 1, 1, C, backcast, "Scalar")
        for t in (0, 50, 99):
            H = Ht[:, :, t]
            expected = -0.5 * (2 * np.log(2 * np.pi) + np.log(np.linalg.det(H))
                               + x[t] @ np.linalg.solve(H, x[t]))
            assert lls[t] == pytest.approx(expected)

    def test_joint_parameterizations_agree(self, small_covariance_sequence):
        data = small_covariance_sequence
        C, backcast = _prepare(data)
        dynamics = np.array([0.2, 0.95])
        two_stage = rarch_likelihood(dynamics, data, 1, 1, C, backcast, "Scalar")[0]
        chol = np.concatenate([chol2vec(np.linalg.cholesky(C)), dynamics])
        joint = rarch_likelihood(chol, data, 1, 1, None, backcast, "Scalar", is_joint=True)[0]
        inference = np.concatenate([vech(C), dynamics])
        joint_inf = rarch_likelihood(inference, data, 1, 1, None, backcast, "Scalar",
                                     is_joint=True, is_inference=True)[0]
        assert_allclose(joint, two_stage)
        assert_allclose(joint_inf, two_stage)

    def test_individual_returns_contributions(self, small_covariance_sequence):
        data = small_covariance_sequence
        C, backcast = _prepare(data)
        first, lls, _ = rarch_likelihood(np.array([0.2, 0.95]), data, 1, 1, C, backcast,
                                         "Scalar", individual=True)
        assert first.shape == (200,)
        assert_array_equal(first, lls)

    def test_penalty_for_invalid_covariance(self, small_covariance_sequence):
        data = small_covariance_sequence
        _, backcast = _prepare(data)
        bad = np.concatenate([vech(np.array([[1.0, 2.0], [2.0, 1.0]])), [0.2, 0.95]])
        neg_ll, lls, _ = rarch_likelihood(bad, data, 1, 1, None, backcast, "Scalar",
                                          is_joint=True, is_inference=True)
        assert neg_ll == 1e10
        assert_allclose(lls, -1e10 / 200)

    def test_penalty_value_from_config(self, small_covariance_sequence):
        set_config("numerical", "penalty_value", 1e6)
        data = small_covariance_sequence
        _, backcast = _prepare(data)
        bad = np.concatenate([vech(-np.eye(2)), [0.2, 0.95]])
        neg_ll = rarch_likelihood(bad, data, 1, 1, None, backcast, "Scalar",
                                  is_joint=True, is_inference=True)[0]
        assert neg_ll == 1e6

    def test_python_fallback_matches(self, small_covariance_sequence):
        data = small_covariance_sequence
        C, backcast = _prepare(data)
        params = np.array([0.2, 0.3, 0.9, 0.9])
        compiled = rarch_likelihood(params, data, 1, 1, C, backcast, "Diagonal")[0]
        set_config("core", "enable_numba", False)
        python = rarch_likelihood(params, data, 1, 1, C, backcast, "Diagonal")[0]
        assert_allclose(python, compiled)


# ---- Estimation Tests ----

class TestTwoStageEstimation:
    """Tests for 2-stage estimation and inference of a scalar model."""

    def test_result_layout(self, fitted_scalar_model):
        _, result = fitted_scalar_model
        assert isinstance(result, RARCHResult)
        assert result.parameters.shape == (8,)
        assert result.parameter_names[:3] == ["C[1,1]", "C[2,1]", "C[2,2]"]
        assert result.parameter_names[-2:] == ["a_1", "b_1"]
        assert_allclose(result.parameters[-2:], result.dynamics)

    def test_unconditional_covariance_is_sample_mean(self, fitted_scalar_model, scalar_rarch_data):
        data, _ = scalar_rarch_data
        _, result = fitted_scalar_model
        assert_allclose(result.unconditional_covariance, data.T @ data / data.shape[0])
        assert_allclose(result.parameters[:6], vech(result.unconditional_covariance))

    def test_log_likelihood_matches(self, fitted_scalar_model, scalar_rarch_data):
        data, _ = scalar_rarch_data
        _, result = fitted_scalar_model
        covariances = covariance_sequence(data)
        C, backcast = _prepare(covariances)
        neg_ll = rarch_likelihood(result.dynamics, covariances, 1, 1, C, backcast, "Scalar")[0]
        assert result.log_likelihood == pytest.approx(-neg_ll)

    def test_estimates_are_feasible_and_plausible(self, fitted_scalar_model):
        _, result = fitted_scalar_model
        assert rarch_constraint(result.dynamics, 1, 1, 3, "Scalar")[0] <= 1e-6
        assert abs(result.persistence - 0.98) < 0.05
        assert 0.0 < result.dynamics[0] ** 2 < 0.2

    def test_parameter_covariance(self, fitted_scalar_model):
        _, result = fitted_scalar_model
        vcv = result.vcv
        assert vcv.shape == (8, 8)
        assert_allclose(vcv, vcv.T)
        assert np.all(np.diag(vcv) > 0)
        assert np.min(np.linalg.eigvalsh(vcv)) > -1e-10
        assert np.all(np.isfinite(result.std_errors))

    def test_scores(self, fitted_scalar_model):
        _, result = fitted_scalar_model
        assert result.scores.shape == (1500, 8)
        # first-order conditions hold on average
        assert_allclose(result.scores.mean(axis=0)[:6], 0.0, atol=1e-10)

    def test_conditional_covariances(self, fitted_scalar_model):
        _, result = fitted_scalar_model
        Ht = result.conditional_covariances
        assert Ht.shape == (3, 3, 1500)
        assert_allclose(Ht, np.transpose(Ht, (1, 0, 2)), atol=1e-12)
        assert np.all(np.linalg.eigvalsh(np.moveaxis(Ht, 2, 0)) > 0)

    def test_forecast(self, fitted_scalar_model):
        model, result = fitted_scalar_model
        forecasts = model.forecast(10)
        assert forecasts.shape == (3, 3, 10)
        assert_allclose(forecasts, np.transpose(forecasts, (1, 0, 2)), atol=1e-12)
        long_run = model.forecast(2000)[:, :, -1]
        assert_allclose(long_run, result.unconditional_covariance, rtol=1e-3, atol=1e-6)

    def test_simulate_from_fitted_model(self, fitted_scalar_model):
        model, _ = fitted_scalar_model
        data, Ht = model.simulate(100, burn=50, random_state=1)
        assert data.shape == (100, 3)
        assert Ht.shape == (3, 3, 100)

    def test_summary_and_dataframe(self, fitted_scalar_model):
        _, result = fitted_scalar_model
        text = result.summary()
        assert "Scalar" in text
        assert "a_1" in text
        frame = result.to_dataframe()
        assert list(frame.index)[-1] == "b_1"

    def test_export(self, fitted_scalar_model, tmp_path):
        _, result = fitted_scalar_model
        exported = json.loads(result.to_json())
        assert exported["rarch_type"] == "Scalar"
        assert len(exported["parameters"]) == 8

        path = tmp_path / "result.pkl"
        result.to_pickle(path)
        loaded = RARCHResult.from_pickle(path)
        assert_allclose(loaded.parameters, result.parameters)
        assert_allclose(loaded.vcv, result.vcv)

    def test_plot_conditional_variances(self, fitted_scalar_model):
        import matplotlib
        matplotlib.use("Agg")
        _, result = fitted_scalar_model
        fig = result.plot_conditional_variances()
        assert len(fig.axes[0].lines) == 3
        assert result.get_conditional_variances().shape == (1500, 3)

    def test_without_parameter_covariance(self, diagonal_rarch_data):
        result = rarch(diagonal_rarch_data, 1, 1, "Scalar", compute_vcv=False)
        assert result.vcv is None
        assert result.std_errors is None
        assert result.scores is None


class TestOtherParameterizations:
    """Tests for Diagonal, CP and joint estimation."""

    def test_diagonal_two_stage(self, diagonal_rarch_data):
        result = rarch(diagonal_rarch_data, 1, 1, "Diagonal")
        assert result.parameters.shape == (7,)
        assert result.vcv.shape == (7, 7)
        assert_allclose(result.vcv, result.vcv.T)
        assert np.all(rarch_constraint(result.dynamics, 1, 1, 2, "Diagonal") <= 1e-6)

    def test_cp_two_stage(self, diagonal_rarch_data):
        result = rarch(diagonal_rarch_data, 1, 1, "CP", compute_vcv=False)
        assert result.dynamics.shape == (3,)
        assert result.parameter_names[-1] == "b"
        assert np.all(rarch_constraint(result.dynamics, 1, 1, 2, "CP") <= 1e-6)

    def test_joint_improves_on_two_stage(self, diagonal_rarch_data):
        result = rarch(diagonal_rarch_data, 1, 1, "Scalar", "Joint")
        two_stage_ll = result.metadata["two_stage_log_likelihood"]
        assert result.log_likelihood >= two_stage_ll - 1e-6
        assert abs(result.log_likelihood - two_stage_ll) < 0.01 * abs(two_stage_ll)
        assert result.method == "Joint"
        assert result.vcv.shape == (5, 5)
        assert_allclose(result.vcv, result.vcv.T)
        assert result.scores.shape == (1000, 5)

    def test_joint_without_improvement_reports_two_stage_run(self, diagonal_rarch_data, monkeypatch):
        model = RARCHModel(1, 1, "Scalar", "Joint")
        minimize = model._minimize

        def worse_joint_end(x0, args, bounds, is_joint, options):
            result = minimize(x0, args, bounds, is_joint, options)
            if is_joint:
                x = x0.copy()
                x[-1] *= 0.5
                result.x = x
                result.nit = 999
                result.message = "discarded run"
            return result

        monkeypatch.setattr(model, "_minimize", worse_joint_end)
        result = model.optimize(diagonal_rarch_data)
        assert result.metadata["joint_improved"] is False
        assert result.metadata["joint_iterations"] == 999
        assert result.iterations == result.metadata["two_stage_iterations"]
        assert result.optimization_message != "discarded run"
        assert_allclose(result.log_likelihood, result.metadata["two_stage_log_likelihood"])
        assert_allclose(result.unconditional_covariance, covariance_sequence(diagonal_rarch_data).mean(axis=2))

    def test_joint_reports_status_of_kept_run(self, diagonal_rarch_data):
        result = rarch(diagonal_rarch_data, 1, 1, "Scalar", "Joint", compute_vcv=False)
        metadata = result.metadata
        if metadata["joint_improved"]:
            assert result.iterations == metadata["joint_iterations"]
        else:
            assert result.iterations == metadata["two_stage_iterations"]

    def test_minimize_returns_optimize_result(self):
        hints = typing.get_type_hints(RARCHModel._minimize)
        assert hints["return"] is OptimizeResult

    def test_joint_covariance_is_positive_definite(self, diagonal_rarch_data):
        result = rarch(diagonal_rarch_data, 1, 1, "Scalar", "Joint", compute_vcv=False)
        assert np.all(np.linalg.eigvalsh(result.unconditional_covariance) > 0)

    def test_residual_and_covariance_inputs_agree(self, diagonal_rarch_data):
        from_residuals = rarch(diagonal_rarch_data, 1, 1, compute_vcv=False)
        from_covariances = rarch(covariance_sequence(diagonal_rarch_data), 1, 1, compute_vcv=False)
        assert_allclose(from_residuals.parameters, from_covariances.parameters)

    def test_user_starting_values(self, diagonal_rarch_data):
        result = rarch(diagonal_rarch_data, 1, 1, starting_values=[0.2, 0.97], compute_vcv=False)
        assert result.convergence


# ---- Validation Tests ----

class TestValidation:
    """Tests for argument validation."""

    @pytest.mark.parametrize("p, q", [(0, 1), (1, -1), (1.5, 1), (True, 1)])
    def test_invalid_orders(self, p, q):
        with pytest.raises(ParameterError):
            RARCHModel(p, q)

    def test_invalid_type_and_method(self):
        with pytest.raises(ModelSpecificationError):
            RARCHModel(1, 1, "BEKK")
        with pytest.raises(ModelSpecificationError):
            RARCHModel(1, 1, "Scalar", "3-stage")

    def test_cp_ignores_q(self):
        with pytest.warns(ModelWarning):
            RARCHModel(1, 2, "CP")

    def test_invalid_starting_values(self, diagonal_rarch_data):
        with pytest.raises(ParameterError):
            rarch(diagonal_rarch_data, 1, 1, starting_values=[0.2, 0.9, 0.1])
        with pytest.raises(ParameterError):
            rarch(diagonal_rarch_data, 1, 1, starting_values=[0.2, 1.5])

    def test_not_fitted(self):
        model = RARCHModel(1, 1)
        assert not model.fitted
        with pytest.raises(NotFittedError):
            model.inference()
        with pytest.raises(NotFittedError):
            model.forecast(5)
        with pytest.raises(NotFittedError):
            model.simulate(10)

    def test_defaults_from_config(self):
        set_config("models", "default_rarch_type", "Diagonal")
        model = RARCHModel()
        assert model.rarch_type is RARCHType.DIAGONAL
        assert model.method is RARCHMethod.TWO_STAGE


# ---- Simulation Tests ----

class TestSimulation:
    """Tests for simulation from a RARCH process."""

    def test_shapes(self, scalar_rarch_data):
        data, Ht = scalar_rarch_data
        assert data.shape == (1500, 3)
        assert Ht.shape == (3, 3, 1500)
        assert_allclose(Ht, np.transpose(Ht, (1, 0, 2)), atol=1e-12)

    def test_reproducible(self):
        first = rarch_simulate([0.2, 0.95], 50, n_assets=2, random_state=3)
        second = rarch_simulate([0.2, 0.95], 50, n_assets=2, random_state=3)
        third = rarch_simulate([0.2, 0.95], 50, n_assets=2, random_state=4)
        assert_array_equal(first[0], second[0])
        assert not np.allclose(first[0], third[0])

    def test_generator_and_config_seed(self):
        gen_result = rarch_simulate([0.2, 0.95], 20, n_assets=2, random_state=np.random.default_rng(5))
        set_config("core", "random_seed", 5)
        seeded = rarch_simulate([0.2, 0.95], 20, n_assets=2)
        assert_array_equal(gen_result[0], seeded[0])

    def test_python_fallback_matches(self):
        params = [0.2, 0.3, 0.9, 0.9]
        compiled = rarch_simulate(params, 30, "Diagonal", n_assets=2, random_state=8)
        set_config("core", "enable_numba", False)
        python = rarch_simulate(params, 30, "Diagonal", n_assets=2, random_state=8)
        assert_allclose(python[0], compiled[0])
        assert_allclose(python[1], compiled[1])

    def test_without_burn_in_starts_at_identity(self):
        a, b = 0.2, 0.95
        C = np.array([[2.0, 0.5], [0.5, 1.0]])
        _, Ht = rarch_simulate([a, b], 5, C=C, burn=0, random_state=0)
        # G_0 is the identity so H_0 = C
        assert_allclose(Ht[:, :, 0], C)

    def test_non_stationary_parameters(self):
        with pytest.raises(ParameterError):
            rarch_simulate([0.5, 0.9], 10, n_assets=2)

    def test_dimension_required(self):
        with pytest.raises(ParameterError):
            rarch_simulate([0.2, 0.95], 10)
