# rotarch/core/types.py

"""
Type aliases shared across rotarch.

The aliases document the expected shape of arrays in signatures; they do not
add runtime checks.
"""

from typing import Any, Dict, Literal, Optional, Tuple, Union

import numpy as np
import pandas as pd

# NumPy array type aliases
Vector = np.ndarray  # 1D array
Matrix = np.ndarray  # 2D array

# Specialized array types
ParameterVector = np.ndarray  # Vector of model parameters
CovarianceMatrix = np.ndarray  # Symmetric positive definite K x K matrix
CovarianceSequence = np.ndarray  # K x K x T stack of covariance matrices
TriangularMatrix = np.ndarray  # Lower triangular matrix

# Accepted observation data: T x K residuals or K x K x T covariance estimators
RARCHData = Union[np.ndarray, pd.DataFrame]

# Optimization types
OptimizerOptions = Dict[str, Any]
LikelihoodOutput = Tuple[Union[float, np.ndarray], np.ndarray, np.ndarray]

# Configuration types
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Random number generation
RandomState = Optional[Union[int, np.random.Generator]]
