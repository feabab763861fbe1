'''
Result containers for rotarch.

Estimation outputs are stored in dataclasses that share text summaries,
pandas export and pickling. Standard errors, t-statistics and p-values are
derived from the parameter covariance when one is supplied.
'''

import json
import pickle
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd
from scipy import stats


@dataclass
class ModelResult:
    """Base class for all model results.

    Attributes:
        model_name: Name of the model that generated the results
        creation_time: Timestamp when the result was created
        metadata: Additional metadata about the result
    """

    model_name: str
    creation_time: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.metadata, dict):
            self.metadata = dict(self.metadata)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result object to a JSON friendly dictionary."""
        result_dict = {}
        for key in self.__dataclass_fields__:
            value = getattr(self, key)
            if isinstance(value, np.ndarray):
                value = value.tolist()
            elif isinstance(value, (np.floating, np.integer)):
                value = value.item()
            elif isinstance(value, datetime):
                value = value.isoformat()
            result_dict[key] = value
        return result_dict

    def to_json(self, path: Optional[Union[str, Path]] = None, **kwargs: Any) -> Optional[str]:
        """Serialize the result to JSON.

        Args:
            path: File to write. If None, the JSON string is returned
            **kwargs: Passed to json.dump/dumps
        """
        result_dict = self.to_dict()
        if path is None:
            return json.dumps(result_dict, **kwargs)
        with open(path, 'w') as f:
            json.dump(result_dict, f, **kwargs)
        return None

    def to_pickle(self, path: Union[str, Path]) -> None:
        with open(path, 'wb') as f:
            pickle.dump(self, f)

    @classmethod
    def from_pickle(cls, path: Union[str, Path]) -> 'ModelResult':
        """Load a result object from a pickle file.

        Raises:
            TypeError: If the loaded object is not a ModelResult
        """
        with open(path, 'rb') as f:
            result = pickle.load(f)
        if not isinstance(result, ModelResult):
            raise TypeError(f"Loaded object is not a ModelResult, got {type(result)}")
        return result

    def summary(self) -> str:
        header = f"Model: {self.model_name}\n"
        header += "=" * (len(header) - 1) + "\n\n"
        timestamp = f"Created: {self.creation_time.strftime('%Y-%m-%d %H:%M:%S')}\n\n"

        metadata_str = ""
        if self.metadata:
            metadata_str = "Metadata:\n"
            for key, value in self.metadata.items():
                metadata_str += f"  {key}: {value}\n"
            metadata_str += "\n"

        return header + timestamp + metadata_str

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model_name='{self.model_name}')"


@dataclass
class EstimationResult(ModelResult):
    """Base class for quasi maximum likelihood estimation results.

    Attributes:
        parameters: Estimated parameter vector
        parameter_names: Names matching ``parameters``
        convergence: Whether the optimization converged
        iterations: Number of iterations used in optimization
        log_likelihood: Log-likelihood value at the optimum
        n_obs: Number of observations used in estimation
        n_estimated: Number of estimated parameters used for information criteria
        aic: Akaike Information Criterion
        bic: Bayesian Information Criterion
        vcv: Robust covariance matrix of ``parameters``
        std_errors: Standard errors of parameter estimates
        t_stats: t-statistics for parameter estimates
        p_values: Two-sided p-values for parameter estimates
        optimization_message: Message from the optimizer
    """

    parameters: Optional[np.ndarray] = None
    parameter_names: List[str] = field(default_factory=list)
    convergence: bool = True
    iterations: int = 0
    log_likelihood: Optional[float] = None
    n_obs: Optional[int] = None
    n_estimated: Optional[int] = None
    aic: Optional[float] = None
    bic: Optional[float] = None
    vcv: Optional[np.ndarray] = None
    std_errors: Optional[np.ndarray] = None
    t_stats: Optional[np.ndarray] = None
    p_values: Optional[np.ndarray] = None
    optimization_message: Optional[str] = None

    def __post_init__(self) -> None:
        super().__post_init__()

        if self.parameters is not None:
            self.parameters = np.asarray(self.parameters, dtype=np.float64)
            if self.n_estimated is None:
                self.n_estimated = self.parameters.shape[0]

        if (self.log_likelihood is not None and self.n_obs is not None
                and self.n_estimated is not None):
            if self.aic is None:
                self.aic = -2.0 * self.log_likelihood + 2.0 * self.n_estimated
            if self.bic is None:
                self.bic = -2.0 * self.log_likelihood + np.log(self.n_obs) * self.n_estimated

        if self.vcv is not None:
            self.set_vcv(self.vcv)

    def set_vcv(self, vcv: np.ndarray) -> None:
        """Attach a parameter covariance and derive inference statistics."""
        self.vcv = np.asarray(vcv, dtype=np.float64)
        with np.errstate(invalid="ignore", divide="ignore"):
            variances = np.diag(self.vcv).copy()
            variances[variances < 0] = np.nan
            self.std_errors = np.sqrt(variances)
            if self.parameters is not None:
                self.t_stats = self.parameters / self.std_errors
                self.p_values = 2.0 * stats.norm.sf(np.abs(self.t_stats))

    def summary(self) -> str:
        base_summary = super().summary()

        convergence_info = f"Convergence: {'Yes' if self.convergence else 'No'}\n"
        convergence_info += f"Iterations: {self.iterations}\n"
        if self.optimization_message:
            convergence_info += f"Optimizer message: {self.optimization_message}\n"
        convergence_info += "\n"

        fit_stats = ""
        if self.log_likelihood is not None:
            fit_stats += f"Log-Likelihood: {self.log_likelihood:.6f}\n"
        if self.aic is not None:
            fit_stats += f"AIC: {self.aic:.6f}\n"
        if self.bic is not None:
            fit_stats += f"BIC: {self.bic:.6f}\n"
        fit_stats += "\n"

        param_table = ""
        if self.parameters is not None:
            param_table = "Parameter Estimates:\n"
            param_table += "-" * 80 + "\n"
            param_table += f"{'Parameter':<20} {'Estimate':<12} {'Std. Error':<12} "
            param_table += f"{'t-Stat':<12} {'p-Value':<12}\n"
            param_table += "-" * 80 + "\n"

            for i, (name, value) in enumerate(zip(self._names(), self.parameters)):
                std_err = self.std_errors[i] if self.std_errors is not None else np.nan
                t_stat = self.t_stats[i] if self.t_stats is not None else np.nan
                p_value = self.p_values[i] if self.p_values is not None else np.nan

                param_table += f"{name:<20} {value:<12.6f} "
                param_table += f"{std_err:<12.6f} " if np.isfinite(std_err) else f"{'N/A':<12} "
                param_table += f"{t_stat:<12.6f} " if np.isfinite(t_stat) else f"{'N/A':<12} "

                if np.isfinite(p_value):
                    param_table += f"{p_value:<12.6f}"
                    if p_value < 0.01:
                        param_table += " ***"
                    elif p_value < 0.05:
                        param_table += " **"
                    elif p_value < 0.1:
                        param_table += " *"
                else:
                    param_table += f"{'N/A':<12}"
                param_table += "\n"

            param_table += "-" * 80 + "\n"
            param_table += "Significance codes: *** 0.01, ** 0.05, * 0.1\n\n"

        return base_summary + convergence_info + fit_stats + param_table

    def _names(self) -> List[str]:
        if self.parameters is None:
            return []
        if len(self.parameter_names) == self.parameters.shape[0]:
            return list(self.parameter_names)
        return [f"param_{i}" for i in range(self.parameters.shape[0])]

    def to_dataframe(self) -> pd.DataFrame:
        """Parameter estimates and statistics, indexed by parameter name.

        Raises:
            ValueError: If parameters are not available
        """
        if self.parameters is None:
            raise ValueError("Parameters are not available")

        data = {"Estimate": self.parameters}
        if self.std_errors is not None:
            data["Std. Error"] = self.std_errors
        if self.t_stats is not None:
            data["t-Stat"] = self.t_stats
        if self.p_values is not None:
            data["p-Value"] = self.p_values

        return pd.DataFrame(data, index=pd.Index(self._names(), name="Parameter"))


@dataclass
class RARCHResult(EstimationResult):
    """Result container for RARCH estimation.

    ``parameters`` holds ``[vech(C); dynamics]`` so that ``vcv`` and
    ``scores`` line up with it for both estimation strategies.

    Attributes:
        rarch_type: Parameterization name
        method: Estimation strategy name
        p: Number of innovation lags
        q: Number of persistence lags
        n_assets: Number of assets
        dynamics: Estimated dynamics parameters
        conditional_covariances: K x K x T conditional covariances
        unconditional_covariance: Estimated intercept target ``C``
        scores: T by n matrix of score contributions
        persistence: Largest per-asset persistence
    """

    rarch_type: Optional[str] = None
    method: Optional[str] = None
    p: Optional[int] = None
    q: Optional[int] = None
    n_assets: Optional[int] = None
    dynamics: Optional[np.ndarray] = None
    conditional_covariances: Optional[np.ndarray] = None
    unconditional_covariance: Optional[np.ndarray] = None
    scores: Optional[np.ndarray] = None
    persistence: Optional[float] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.n_assets is None and self.conditional_covariances is not None:
            self.n_assets = self.conditional_covariances.shape[0]

    @property
    def half_life(self) -> Optional[float]:
        """Half-life of a shock implied by ``persistence``."""
        if self.persistence is None or not 0 < self.persistence < 1:
            return None
        return float(np.log(0.5) / np.log(self.persistence))

    def summary(self) -> str:
        base_summary = super().summary()

        model_info = ""
        if self.rarch_type is not None:
            model_info += f"Type: {self.rarch_type}\n"
        if self.method is not None:
            model_info += f"Method: {self.method}\n"
        if self.p is not None and self.q is not None:
            model_info += f"Order: P={self.p}, Q={self.q}\n"
        if self.n_assets is not None:
            model_info += f"Number of Assets: {self.n_assets}\n"
        if self.n_obs is not None:
            model_info += f"Number of Observations: {self.n_obs}\n"
        if self.persistence is not None:
            model_info += f"Persistence: {self.persistence:.6f}\n"
        if self.half_life is not None:
            model_info += f"Half-Life: {self.half_life:.6f}\n"
        if model_info:
            model_info = "Volatility Properties:\n" + model_info + "\n"

        uncond_cov_info = ""
        if self.unconditional_covariance is not None:
            uncond_cov_info = "Unconditional Covariance Matrix:\n"
            for row_values in self.unconditional_covariance:
                row = " ".join(f"{val:.6f}" for val in row_values)
                uncond_cov_info += f"  {row}\n"
            uncond_cov_info += "\n"

        return base_summary + model_info + uncond_cov_info

    def get_conditional_variances(self) -> pd.DataFrame:
        """Conditional variances as a T by K DataFrame.

        Raises:
            ValueError: If conditional covariances are not available
        """
        if self.conditional_covariances is None:
            raise ValueError("Conditional covariances are not available")

        variances = np.diagonal(self.conditional_covariances, axis1=0, axis2=1)
        columns = [f"asset_{i+1}_variance" for i in range(variances.shape[1])]
        return pd.DataFrame(variances, columns=columns)

    def plot_conditional_variances(self, **kwargs: Any) -> Any:
        """Plot conditional volatilities.

        Args:
            **kwargs: Passed to ``matplotlib.pyplot.subplots``

        Returns:
            The matplotlib Figure

        Raises:
            ValueError: If conditional covariances are not available
        """
        if self.conditional_covariances is None:
            raise ValueError("Conditional covariances are not available")

        import matplotlib.pyplot as plt

        kwargs.setdefault("figsize", (10, 6))
        fig, ax = plt.subplots(**kwargs)

        variances = self.get_conditional_variances()
        for i, column in enumerate(variances.columns):
            ax.plot(np.sqrt(variances[column].to_numpy()), label=f"Asset {i+1}")

        ax.set_title(f"Conditional Volatilities from {self.model_name}")
        ax.set_xlabel("Time")
        ax.set_ylabel("Volatility")
        ax.legend()

        return fig
