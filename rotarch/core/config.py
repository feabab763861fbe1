'''
Configuration management for rotarch.

Settings are organized in dataclass sections and resolved in layers:

1. Defaults built into the package
2. An optional JSON file named by the ``ROTARCH_CONFIG_FILE`` environment variable
3. Environment variables of the form ``ROTARCH_<SECTION>_<OPTION>``
4. Runtime modifications through :func:`set_config`

Estimation code reads values through :func:`get_config` at call time, so
runtime changes apply to the next fit without re-importing anything.
'''

import os
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .exceptions import ConfigurationError
from .types import LogLevel

logger = logging.getLogger("rotarch.core.config")

CONFIG_ENV_PREFIX = "ROTARCH_"
CONFIG_FILE_ENV = "ROTARCH_CONFIG_FILE"

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigSection(Enum):
    """Enumeration of configuration sections."""
    CORE = "core"
    NUMERICAL = "numerical"
    MODELS = "models"
    LOGGING = "logging"


@dataclass
class CoreConfig:
    """
    Core settings.

    Attributes:
        enable_numba: Run the volatility recursion through the compiled kernel
        random_seed: Seed used by simulation when no generator is supplied
    """
    enable_numba: bool = True
    random_seed: Optional[int] = None


@dataclass
class NumericalConfig:
    """
    Numerical settings used by the optimizer and the likelihood.

    Attributes:
        optimization_method: scipy.optimize.minimize method
        optimization_tol: Convergence tolerance passed as ``ftol``
        max_iterations: Iteration cap passed as ``maxiter``
        penalty_value: Objective value returned at infeasible parameters
        constraint_margin: Slack that keeps the stationarity constraint strict
    """
    optimization_method: str = "SLSQP"
    optimization_tol: float = 1e-8
    max_iterations: int = 1000
    penalty_value: float = 1e10
    constraint_margin: float = 1e-8


@dataclass
class ModelsConfig:
    """
    Model defaults.

    Attributes:
        default_rarch_type: Parameterization used when none is given
        default_rarch_method: Estimation strategy used when none is given
        backcast_decay: Exponential decay of the back-cast weights
        hac_bandwidth_scale: Multiplier on ceil(T ** 0.25) for the Newey-West lag
        compute_vcv: Whether ``rarch()`` runs inference by default
    """
    default_rarch_type: str = "Scalar"
    default_rarch_method: str = "2-stage"
    backcast_decay: float = 0.94
    hac_bandwidth_scale: float = 1.2
    compute_vcv: bool = True


@dataclass
class LoggingConfig:
    """
    Logging settings for the ``rotarch`` logger.

    Attributes:
        log_level: Level of the package logger
        log_format: Format string for log records
        log_date_format: Format string for record timestamps
        console_logging: Whether to attach a stream handler
    """
    log_level: LogLevel = "WARNING"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_date_format: str = "%Y-%m-%d %H:%M:%S"
    console_logging: bool = True


@dataclass
class RotARCHConfig:
    """All configuration sections."""
    core: CoreConfig = field(default_factory=CoreConfig)
    numerical: NumericalConfig = field(default_factory=NumericalConfig)
    models: ModelsConfig = field(default_factory=ModelsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTION_FACTORIES = {
    "core": CoreConfig,
    "numerical": NumericalConfig,
    "models": ModelsConfig,
    "logging": LoggingConfig,
}


def _coerce(current_value: Any, value: Any) -> Any:
    """Convert ``value`` to the type of ``current_value``."""
    if current_value is None:
        if isinstance(value, str):
            if value.lower() in ("none", ""):
                return None
            return int(value)
        return value
    value_type = type(current_value)
    if value_type is bool and isinstance(value, str):
        return value.lower() in ('true', 'yes', '1', 'y')
    if value_type is Path and isinstance(value, str):
        return Path(value)
    if value_type is not type(value):
        return value_type(value)
    return value


class ConfigManager:
    """
    Holds the active configuration and applies overrides.

    Attributes:
        _config: The current configuration object
        _initialized: Whether file and environment overrides were applied
        _config_file: Path of the JSON file that was loaded, if any
        _modified_keys: Options changed at runtime
    """

    def __init__(self):
        self._config = RotARCHConfig()
        self._initialized = False
        self._config_file: Optional[Path] = None
        self._modified_keys = set()

    def initialize(self) -> None:
        """Load the JSON file, apply environment overrides and set up logging."""
        if self._initialized:
            return

        self._load_config_file()
        self._apply_env_overrides()
        self._validate_config()
        self._setup_logging()

        self._initialized = True
        logger.debug("Configuration manager initialized")

    def _load_config_file(self) -> None:
        path = os.environ.get(CONFIG_FILE_ENV)
        if not path:
            return
        config_file = Path(path)
        if not config_file.exists():
            logger.warning(f"Configuration file {config_file} does not exist")
            return
        try:
            with open(config_file, 'r') as f:
                user_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load configuration file {config_file}: {e}")
            return
        self._config_file = config_file
        self._update_from_dict(user_config)
        logger.debug(f"Loaded configuration from {config_file}")

    def _apply_env_overrides(self) -> None:
        for env_var, value in os.environ.items():
            if not env_var.startswith(CONFIG_ENV_PREFIX) or env_var == CONFIG_FILE_ENV:
                continue

            parts = env_var[len(CONFIG_ENV_PREFIX):].lower().split('_', 1)
            if len(parts) != 2:
                continue
            section, option = parts

            try:
                ConfigSection(section)
            except ValueError:
                continue

            section_obj = getattr(self._config, section)
            if not hasattr(section_obj, option):
                continue

            try:
                setattr(section_obj, option, _coerce(getattr(section_obj, option), value))
                logger.debug(f"Applied environment override: {env_var}={value}")
            except (TypeError, ValueError) as e:
                logger.warning(f"Failed to apply environment override {env_var}: {e}")

    def _setup_logging(self) -> None:
        """Configure the package logger from the logging section."""
        package_logger = logging.getLogger("rotarch")

        for handler in package_logger.handlers[:]:
            package_logger.removeHandler(handler)

        package_logger.setLevel(getattr(logging, self._config.logging.log_level))

        if self._config.logging.console_logging:
            formatter = logging.Formatter(
                fmt=self._config.logging.log_format,
                datefmt=self._config.logging.log_date_format
            )
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            package_logger.addHandler(console_handler)
        else:
            package_logger.addHandler(logging.NullHandler())

    def _validate_config(self) -> None:
        numerical = self._config.numerical
        models = self._config.models
        log_cfg = self._config.logging

        if numerical.optimization_tol <= 0:
            logger.warning(f"Invalid optimization_tol: {numerical.optimization_tol}, using 1e-8")
            numerical.optimization_tol = 1e-8
        if numerical.max_iterations <= 0:
            logger.warning(f"Invalid max_iterations: {numerical.max_iterations}, using 1000")
            numerical.max_iterations = 1000
        if numerical.penalty_value <= 0:
            logger.warning(f"Invalid penalty_value: {numerical.penalty_value}, using 1e10")
            numerical.penalty_value = 1e10
        if numerical.constraint_margin < 0:
            logger.warning(f"Invalid constraint_margin: {numerical.constraint_margin}, using 1e-8")
            numerical.constraint_margin = 1e-8

        if not 0 < models.backcast_decay < 1:
            logger.warning(f"Invalid backcast_decay: {models.backcast_decay}, using 0.94")
            models.backcast_decay = 0.94
        if models.hac_bandwidth_scale <= 0:
            logger.warning(f"Invalid hac_bandwidth_scale: {models.hac_bandwidth_scale}, using 1.2")
            models.hac_bandwidth_scale = 1.2
        if models.default_rarch_type.lower() not in ("scalar", "cp", "diagonal"):
            logger.warning(f"Invalid default_rarch_type: {models.default_rarch_type}, using Scalar")
            models.default_rarch_type = "Scalar"
        if models.default_rarch_method.lower() not in ("2-stage", "joint"):
            logger.warning(f"Invalid default_rarch_method: {models.default_rarch_method}, using 2-stage")
            models.default_rarch_method = "2-stage"

        log_cfg.log_level = str(log_cfg.log_level).upper()
        if log_cfg.log_level not in _VALID_LOG_LEVELS:
            logger.warning(f"Invalid log_level: {log_cfg.log_level}, using WARNING")
            log_cfg.log_level = "WARNING"

    def _update_from_dict(self, config_dict: Dict[str, Any]) -> None:
        for section_name, section_dict in config_dict.items():
            if not hasattr(self._config, section_name):
                logger.warning(f"Unknown configuration section: {section_name}")
                continue

            section = getattr(self._config, section_name)
            for option_name, option_value in section_dict.items():
                if not hasattr(section, option_name):
                    logger.warning(f"Unknown configuration option: {section_name}.{option_name}")
                    continue
                try:
                    setattr(section, option_name, _coerce(getattr(section, option_name), option_value))
                except (TypeError, ValueError) as e:
                    logger.warning(f"Failed to set {section_name}.{option_name}: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Return the configuration as a nested dictionary."""
        result = {}
        for section_name in _SECTION_FACTORIES:
            section = getattr(self._config, section_name)
            section_dict = {}
            for field_name in section.__dataclass_fields__:
                value = getattr(section, field_name)
                if isinstance(value, Path):
                    value = str(value)
                section_dict[field_name] = value
            result[section_name] = section_dict
        return result

    def _check_option(self, section: str, option: Optional[str]) -> None:
        if section not in _SECTION_FACTORIES:
            raise ConfigurationError(
                f"Unknown configuration section: {section}",
                section=section,
                details="Section not found"
            )
        if option is not None and not hasattr(getattr(self._config, section), option):
            raise ConfigurationError(
                f"Unknown configuration option: {section}.{option}",
                section=section,
                option=option,
                details="Option not found"
            )

    def get(self, section: str, option: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            section: The configuration section
            option: The configuration option
            default: Returned when the section or option does not exist
        """
        section_obj = getattr(self._config, section, None)
        if section_obj is None or not hasattr(section_obj, option):
            return default
        return getattr(section_obj, option)

    def set(self, section: str, option: str, value: Any) -> None:
        """
        Set a configuration value, converting it to the option's type.

        Raises:
            ConfigurationError: If the section or option is unknown or the
                value cannot be converted
        """
        self._check_option(section, option)
        section_obj = getattr(self._config, section)

        try:
            typed_value = _coerce(getattr(section_obj, option), value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Failed to set configuration option: {section}.{option}",
                section=section,
                option=option,
                details=str(e)
            ) from e

        setattr(section_obj, option, typed_value)
        self._modified_keys.add(f"{section}.{option}")
        logger.debug(f"Set configuration option: {section}.{option}={value}")

        if section == "logging":
            self._setup_logging()

    def reset(self, section: Optional[str] = None, option: Optional[str] = None) -> None:
        """
        Reset configuration to defaults.

        Args:
            section: Section to reset, or None to reset everything
            option: Option to reset, or None to reset the whole section
        """
        if section is None:
            self._config = RotARCHConfig()
            self._modified_keys.clear()
            self._setup_logging()
            logger.debug("Reset all configuration to defaults")
            return

        self._check_option(section, option)
        defaults = _SECTION_FACTORIES[section]()

        if option is None:
            setattr(self._config, section, defaults)
            self._modified_keys = {k for k in self._modified_keys if not k.startswith(f"{section}.")}
        else:
            setattr(getattr(self._config, section), option, getattr(defaults, option))
            self._modified_keys.discard(f"{section}.{option}")

        if section == "logging":
            self._setup_logging()

    def get_modified_options(self) -> List[str]:
        """Options changed at runtime, as ``section.option`` keys."""
        return sorted(self._modified_keys)

    def get_config_file(self) -> Optional[Path]:
        return self._config_file


# Singleton instance of the configuration manager
_config_manager = ConfigManager()


def initialize_config() -> None:
    """Apply file and environment overrides to the configuration."""
    _config_manager.initialize()


def get_config_manager() -> ConfigManager:
    """
    Get the configuration manager instance.

    Returns:
        The initialized configuration manager
    """
    if not _config_manager._initialized:
        initialize_config()
    return _config_manager


def get_config(section: str, option: str, default: Any = None) -> Any:
    """
    Get a configuration value.

    Args:
        section: The configuration section
        option: The configuration option
        default: Default value if the option is not found

    Returns:
        The configuration value, or the default if not found
    """
    return get_config_manager().get(section, option, default)


def set_config(section: str, option: str, value: Any) -> None:
    """
    Set a configuration value.

    Raises:
        ConfigurationError: If the section or option is not found
    """
    get_config_manager().set(section, option, value)


def reset_config(section: Optional[str] = None, option: Optional[str] = None) -> None:
    """
    Reset configuration to default values.

    Raises:
        ConfigurationError: If the section or option is not found
    """
    get_config_manager().reset(section, option)


def to_dict() -> Dict[str, Any]:
    """Return the active configuration as a dictionary."""
    return get_config_manager().to_dict()
