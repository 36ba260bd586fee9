"""Configuration management for schemadiff using Pydantic.

This module provides type-safe configuration for every policy knob of the
analysis engine: score weights and thresholds, severity overrides per format,
comparison depth limits, migration rendering and logging.
"""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlglot import Dialect

from schemadiff.exceptions import ConfigurationError

SEVERITY_NAMES = ("info", "warning", "breaking")


class ScoringConfig(BaseModel):
    """Score aggregation weights."""

    breaking_penalty: float = Field(
        default=15.0, ge=0, le=100, description="Penalty for the first breaking change of a kind"
    )
    breaking_decay: float = Field(
        default=0.5,
        ge=0,
        le=1,
        description="Multiplier applied per additional breaking change of the same kind",
    )
    warning_penalty: float = Field(default=3.0, ge=0, le=100, description="Penalty per warning")
    info_penalty: float = Field(default=0.0, ge=0, le=100, description="Penalty per info change")
    default_threshold: int = Field(
        default=70, ge=0, le=100, description="Minimum score for a compatible verdict"
    )
    thresholds: dict[str, int] = Field(
        default_factory=dict,
        description="Per-format threshold overrides (e.g. {'protobuf': 80})",
    )

    @field_validator("thresholds")
    @classmethod
    def validate_thresholds(cls, v: dict[str, int]) -> dict[str, int]:
        """Validate thresholds are within score bounds."""
        for format_name, threshold in v.items():
            if not 0 <= threshold <= 100:
                raise ValueError(f"Threshold for '{format_name}' must be between 0 and 100")
        return v

    def threshold_for(self, format_name: str, fallback: int | None = None) -> int:
        """Threshold for a format: explicit override, then fallback, then default."""
        if format_name in self.thresholds:
            return self.thresholds[format_name]
        if fallback is not None:
            return fallback
        return self.default_threshold


class RulesConfig(BaseModel):
    """Compatibility rule overrides."""

    severity_overrides: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description=(
            "Per-format severity patches keyed by situation, "
            "e.g. {'sql_ddl': {'removed_nullable': 'breaking'}}"
        ),
    )

    @field_validator("severity_overrides")
    @classmethod
    def validate_severities(cls, v: dict[str, dict[str, str]]) -> dict[str, dict[str, str]]:
        """Validate and normalize severity names."""
        normalized = {}
        for format_name, overrides in v.items():
            patched = {}
            for situation, severity in overrides.items():
                severity_lower = str(severity).lower()
                if severity_lower not in SEVERITY_NAMES:
                    raise ValueError(
                        f"Severity must be one of: {', '.join(SEVERITY_NAMES)} "
                        f"(got '{severity}' for {format_name}.{situation})"
                    )
                patched[str(situation).lower()] = severity_lower
            normalized[format_name] = patched
        return normalized


class DiffConfig(BaseModel):
    """Structural comparison limits."""

    max_depth: int = Field(
        default=64, ge=1, le=1024, description="Maximum schema nesting depth before aborting"
    )


class RenderConfig(BaseModel):
    """Migration step rendering options."""

    sql_dialect: str | None = Field(
        default=None, description="sqlglot dialect for SQL statements (generic when unset)"
    )

    @field_validator("sql_dialect")
    @classmethod
    def validate_dialect(cls, v: str | None) -> str | None:
        """Validate the dialect is known to sqlglot."""
        if v is None:
            return v
        try:
            Dialect.get_or_raise(v.lower())
        except ValueError as e:
            raise ValueError(f"Unknown SQL dialect '{v}'") from e
        return v.lower()


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="WARNING",
        description="Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    file_level: str = Field(default="DEBUG", description="File log level")
    format: str = Field(default="console", description="Log format (json or console)")
    file: str | None = Field(default=None, description="Log file path")

    @field_validator("level", "file_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of: {', '.join(valid_formats)}")
        return v.lower()


class AnalysisConfig(BaseSettings):
    """Main analysis configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SCHEMADIFF_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    scoring: ScoringConfig = Field(
        default_factory=ScoringConfig, description="Score aggregation configuration"
    )
    rules: RulesConfig = Field(default_factory=RulesConfig, description="Rule overrides")
    diff: DiffConfig = Field(default_factory=DiffConfig, description="Comparison limits")
    render: RenderConfig = Field(default_factory=RenderConfig, description="Rendering options")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )


def load_config_from_yaml(config_path: str | Path) -> AnalysisConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        AnalysisConfig: Loaded configuration

    Raises:
        ConfigurationError: If the file is missing, empty, or invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path) as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file {config_path}: {e}") from e

    if not config_data:
        raise ConfigurationError(f"Empty configuration file: {config_path}")
    if not isinstance(config_data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")

    config_data = _expand_env_vars(config_data)

    try:
        return AnalysisConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e


def _expand_env_vars(data):
    """Recursively substitute ``${VAR_NAME}`` values from the environment.

    Raises:
        ConfigurationError: If a referenced variable is not set
    """
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    if isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        var_name = data[2:-1]
        env_value = os.environ.get(var_name)
        if env_value is None:
            raise ConfigurationError(
                f"Environment variable '{var_name}' not found. "
                f"Please set it in your environment or .env file."
            )
        return env_value
    return data


def save_config_to_yaml(config: AnalysisConfig, output_path: str | Path) -> None:
    """Save configuration to YAML file.

    Args:
        config: Configuration to save
        output_path: Path to output YAML file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w") as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)
