"""
CLI context for schemadiff.

This module provides the context object that is passed to all CLI commands,
holding the effective configuration and building analyzers from it.
"""

from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from schemadiff.analyzer import SchemaAnalyzer
from schemadiff.config import AnalysisConfig, load_config_from_yaml
from schemadiff.exceptions import ConfigurationError
from schemadiff.schema.models import SchemaFormat
from schemadiff.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AnalysisContext:
    """
    Context object for CLI commands.

    Attributes:
        config_path: Path to configuration file (environment defaults when None)
        log_level: Console logging level
        log_file: Optional log file path
    """

    config_path: Path | None = None
    log_level: str = "WARNING"
    log_file: Path | None = None

    # Lazy-loaded attributes
    _config: AnalysisConfig | None = field(default=None, init=False, repr=False)

    @property
    def config(self) -> AnalysisConfig:
        """Get or load analysis configuration."""
        if self._config is None:
            if self.config_path is None:
                try:
                    self._config = AnalysisConfig()
                except ValidationError as e:
                    raise ConfigurationError(f"Invalid SCHEMADIFF_* environment: {e}") from e
            else:
                logger.debug("loading_configuration", config_path=str(self.config_path))
                self._config = load_config_from_yaml(self.config_path)
                logger.debug("configuration_loaded")

        return self._config

    def analyzer(self, schema_format: SchemaFormat) -> SchemaAnalyzer:
        """Build an analyzer for a format from the effective configuration."""
        return SchemaAnalyzer(schema_format, self.config)
