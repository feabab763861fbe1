'''
Pytest configuration and fixtures for the rotarch test suite.

Provides seeded random number generators, simulated RARCH data and fitted
models shared across test modules.
'''

import numpy as np
import pytest

from rotarch.core.config import reset_config
from rotarch.models.multivariate.rarch import RARCHModel, rarch_simulate


# ---- Basic Data Generation Fixtures ----

@pytest.fixture
def rng() -> np.random.Generator:
    """Provide a seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture(autouse=True)
def _restore_config():
    """Undo runtime configuration changes made by a test."""
    yield
    reset_config()


@pytest.fixture(scope="session")
def unconditional_covariance() -> np.ndarray:
    return np.array([
        [1.0, 0.3, 0.2],
        [0.3, 1.5, 0.4],
        [0.2, 0.4, 0.8]
    ])


@pytest.fixture(scope="session")
def scalar_parameters() -> np.ndarray:
    """Scalar RARCH(1,1) with innovation 0.05 and persistence 0.98."""
    return np.sqrt(np.array([0.05, 0.93]))


@pytest.fixture(scope="session")
def scalar_rarch_data(scalar_parameters, unconditional_covariance):
    """Residuals and conditional covariances simulated from a scalar RARCH(1,1)."""
    data, Ht = rarch_simulate(scalar_parameters, 1500, "Scalar", 1, 1,
                              C=unconditional_covariance, burn=500, random_state=12345)
    return data, Ht


@pytest.fixture(scope="session")
def diagonal_rarch_data():
    """Residuals simulated from a bivariate diagonal RARCH(1,1)."""
    a = np.sqrt([0.04, 0.08])
    b = np.sqrt([0.94, 0.90])
    C = np.array([[1.0, 0.5], [0.5, 2.0]])
    data, _ = rarch_simulate(np.concatenate([a, b]), 1000, "Diagonal", 1, 1,
                             C=C, burn=500, random_state=2024)
    return data


@pytest.fixture(scope="session")
def fitted_scalar_model(scalar_rarch_data):
    data, _ = scalar_rarch_data
    model = RARCHModel(1, 1, "Scalar", "2-stage")
    result = model.fit(data)
    return model, result


@pytest.fixture(scope="session")
def small_covariance_sequence():
    """Outer products of 200 bivariate residuals."""
    gen = np.random.default_rng(7)
    x = gen.standard_normal((200, 2)) @ np.array([[1.0, 0.0], [0.4, 0.9]])
    return np.einsum('ti,tj->ijt', x, x)
