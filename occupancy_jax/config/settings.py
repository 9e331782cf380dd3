"""
Configuration management system for occupancy-jax.

Provides a hierarchical configuration system with support for YAML files,
environment variables, and runtime updates.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum

from ..core.exceptions import ConfigurationError


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class OptimizationMethod(str, Enum):
    """scipy.optimize methods supported for maximum-likelihood fitting."""
    LBFGSB = "L-BFGS-B"
    BFGS = "BFGS"
    SLSQP = "SLSQP"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    model_config = ConfigDict(validate_assignment=True, use_enum_values=True)

    level: LogLevel = LogLevel.INFO
    file_logging: bool = False
    log_file: Optional[Path] = None
    console_logging: bool = True
    format_string: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("log_file", mode="before")
    @classmethod
    def validate_log_file(cls, v):
        return Path(v) if v else None


class LikelihoodConfig(BaseModel):
    """Likelihood evaluation configuration."""
    model_config = ConfigDict(validate_assignment=True)

    enable_jit: bool = True


class ParallelConfig(BaseModel):
    """Concurrent evaluation across units."""
    model_config = ConfigDict(validate_assignment=True)

    max_workers: Optional[int] = Field(default=None, validate_default=True)
    chunk_size: int = Field(default=256, ge=1)

    @field_validator("max_workers", mode="before")
    @classmethod
    def validate_max_workers(cls, v):
        if v is None:
            return min(8, os.cpu_count() or 1)
        return max(1, int(v))


class OptimizationConfig(BaseModel):
    """Maximum-likelihood optimization configuration."""
    model_config = ConfigDict(validate_assignment=True, use_enum_values=True)

    method: OptimizationMethod = OptimizationMethod.LBFGSB
    max_iterations: int = Field(default=1000, ge=1)
    tolerance: float = Field(default=1e-8, gt=0)
    coefficient_bound: float = Field(default=15.0, gt=0)
    compute_standard_errors: bool = True


class PerformanceConfig(BaseModel):
    """Performance configuration."""
    model_config = ConfigDict(validate_assignment=True)

    enable_x64: bool = True


class OccupancyJaxConfig(BaseModel):
    """Main configuration class for occupancy-jax."""
    model_config = ConfigDict(validate_assignment=True, use_enum_values=True)

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    likelihood: LikelihoodConfig = Field(default_factory=LikelihoodConfig)
    parallel: ParallelConfig = Field(default_factory=ParallelConfig)
    optimization: OptimizationConfig = Field(default_factory=OptimizationConfig)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)

    def __init__(self, config_file: Optional[Union[str, Path]] = None, **kwargs):
        """
        Initialize configuration.

        Args:
            config_file: Path to YAML configuration file
            **kwargs: Override specific configuration sections
        """
        config_data: Dict[str, Any] = {}
        if config_file:
            config_data = _load_config_file(config_file)

        _merge_sections(config_data, _load_environment_variables())
        _merge_sections(config_data, kwargs)

        super().__init__(**config_data)

        if self.logging.log_file:
            self.logging.log_file.parent.mkdir(parents=True, exist_ok=True)

    def save_config(self, config_file: Union[str, Path]) -> None:
        """Save current configuration to YAML file."""
        config_path = Path(config_file)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False, indent=2)

    def update(self, **kwargs) -> None:
        """
        Update configuration values.

        Nested values use dotted keys, e.g. ``update(**{"parallel.chunk_size": 64})``.
        """
        for key, value in kwargs.items():
            if "." in key:
                section, subkey = key.split(".", 1)
                section_obj = getattr(self, section, None)
                if section_obj is None or subkey not in type(section_obj).model_fields:
                    raise ConfigurationError(config_key=key)
                setattr(section_obj, subkey, value)
            elif key in type(self).model_fields:
                setattr(self, key, value)
            else:
                raise ConfigurationError(config_key=key)


def _load_config_file(config_file: Union[str, Path]) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    config_path = Path(config_file)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(
            config_key=str(config_path),
            suggestions=["Configuration files must contain a YAML mapping"],
        )
    return data


def _load_environment_variables() -> Dict[str, Any]:
    """Load configuration from environment variables."""
    config: Dict[str, Any] = {}

    env_mappings = {
        "OCCUPANCY_JAX_LOG_LEVEL": ("logging", "level"),
        "OCCUPANCY_JAX_MAX_WORKERS": ("parallel", "max_workers"),
        "OCCUPANCY_JAX_CHUNK_SIZE": ("parallel", "chunk_size"),
        "OCCUPANCY_JAX_ENABLE_X64": ("performance", "enable_x64"),
    }

    for env_var, (section, key) in env_mappings.items():
        value = os.getenv(env_var)
        if value is None:
            continue

        if key in ("max_workers", "chunk_size"):
            try:
                value = int(value)
            except ValueError:
                raise ConfigurationError(config_key=env_var)
        elif key == "enable_x64":
            value = value.lower() in ("true", "1", "yes", "on")
        elif key == "level":
            value = value.upper()

        config.setdefault(section, {})[key] = value

    return config


def _merge_sections(base: Dict[str, Any], overrides: Dict[str, Any]) -> None:
    """Merge ``overrides`` into ``base`` one section at a time."""
    for section, values in overrides.items():
        if isinstance(values, BaseModel):
            values = values.model_dump()
        if isinstance(values, dict) and isinstance(base.get(section), dict):
            base[section].update(values)
        else:
            base[section] = values


# Default configuration instance
_default_config: Optional[OccupancyJaxConfig] = None


def get_default_config() -> OccupancyJaxConfig:
    """Get the default configuration instance."""
    global _default_config
    if _default_config is None:
        _default_config = OccupancyJaxConfig()
    return _default_config
