"""
Configuration management commands.

This module provides commands for inspecting and validating the
effective analysis configuration.
"""

import click
import yaml

from schemadiff.cli.context import AnalysisContext
from schemadiff.cli.decorators import handle_errors, pass_context
from schemadiff.cli.utils import echo_info, echo_success, print_table
from schemadiff.config import AnalysisConfig
from schemadiff.utils.logging import get_logger

logger = get_logger(__name__)


@click.group(name="config")
def config() -> None:
    """Configuration management commands.

    Inspect and validate analysis configuration files.
    """
    pass


@config.command(name="show")
@pass_context
@handle_errors
def show(ctx: AnalysisContext) -> None:
    """Print the effective configuration as YAML.

    Values come from the --config file when given, otherwise from defaults
    and SCHEMADIFF_* environment variables.

    Examples:

        schemadiff --config schemadiff.yaml config show
    """
    click.echo(yaml.safe_dump(ctx.config.model_dump(), default_flow_style=False, sort_keys=False))


@config.command(name="validate")
@pass_context
@handle_errors
def validate(ctx: AnalysisContext) -> None:
    """Validate the configuration and summarize its policy.

    Examples:

        schemadiff --config schemadiff.yaml config validate
    """
    source = str(ctx.config_path) if ctx.config_path else "defaults and environment"
    echo_info(f"Validating configuration: {source}")

    config = ctx.config
    click.echo()
    _display_config_summary(config)

    click.echo()
    echo_success("Configuration is valid!")


def _display_config_summary(config: AnalysisConfig) -> None:
    """Display configuration summary."""
    overrides = sum(len(patches) for patches in config.rules.severity_overrides.values())
    rows = [
        ["Breaking penalty", config.scoring.breaking_penalty],
        ["Breaking decay", config.scoring.breaking_decay],
        ["Warning penalty", config.scoring.warning_penalty],
        ["Default threshold", config.scoring.default_threshold],
        ["Format thresholds", config.scoring.thresholds or "N/A"],
        ["Severity overrides", overrides],
        ["Max depth", config.diff.max_depth],
        ["SQL dialect", config.render.sql_dialect or "generic"],
    ]

    print_table(
        "Configuration Summary",
        ["Setting", "Value"],
        rows,
    )
