"""
Main CLI entry point for schemadiff.

This module provides the command-line interface for analyzing structural
compatibility between two versions of a schema.
"""

import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from schemadiff import __version__
from schemadiff.cli.commands import config as config_commands
from schemadiff.cli.commands import schema as schema_commands
from schemadiff.cli.context import AnalysisContext
from schemadiff.cli.decorators import EXIT_CONFIGURATION
from schemadiff.exceptions import ConfigurationError
from schemadiff.utils.logging import configure_logging, get_logger

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="schemadiff")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file",
    envvar="SCHEMADIFF_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Console logging level (defaults to the configured level)",
    envvar="SCHEMADIFF_LOG_LEVEL",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write logs to this file",
    envvar="SCHEMADIFF_LOG_FILE",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    log_level: str | None,
    log_file: Path | None,
) -> None:
    """schemadiff - Analyze compatibility between schema versions.

    Supports JSON Schema, OpenAPI, Protocol Buffers and SQL DDL. Reports
    classify every structural change, score overall compatibility and
    plan the migration from the old version to the new one.

    Examples:

        # Compatibility report
        schemadiff analyze old.schema.json new.schema.json

        # Migration steps as SQL
        schemadiff plan v1.sql v2.sql

        # Check a hand-written change set
        schemadiff validate --format openapi changes.yaml
    """
    analysis_ctx = AnalysisContext(config_path=config, log_file=log_file)

    try:
        logging_config = analysis_ctx.config.logging
    except ConfigurationError as e:
        click.echo(f"Configuration Error: {e}", err=True)
        raise click.exceptions.Exit(EXIT_CONFIGURATION) from e

    analysis_ctx.log_level = (log_level or logging_config.level).upper()
    effective_log_file = log_file or logging_config.file

    configure_logging(
        level=analysis_ctx.log_level,
        log_format=logging_config.format,
        log_file=str(effective_log_file) if effective_log_file else None,
        file_level=logging_config.file_level,
    )

    ctx.obj = analysis_ctx

    logger.debug(
        "cli_initialized",
        config=str(config) if config else None,
        log_level=analysis_ctx.log_level,
    )


# Register command groups
cli.add_command(config_commands.config)

# Register standalone commands
cli.add_command(schema_commands.analyze)
cli.add_command(schema_commands.plan)
cli.add_command(schema_commands.validate)


def main() -> int:
    """Main entry point for CLI."""
    try:
        result = cli(standalone_mode=False)
        return result if isinstance(result, int) else 0
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.exceptions.Abort:
        click.echo("Aborted!", err=True)
        return 1
    except Exception as e:
        logger.error("unexpected_error", error=str(e), exc_info=True)
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
