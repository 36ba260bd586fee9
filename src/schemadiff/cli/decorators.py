"""
Decorators for CLI commands.

This module provides decorators for error handling and context passing.
"""

import functools
from collections.abc import Callable

import click

from schemadiff.cli.context import AnalysisContext
from schemadiff.exceptions import (
    ComparisonError,
    ConfigurationError,
    InvalidFormatError,
    ParseError,
    SchemaIOError,
)
from schemadiff.utils.logging import get_logger, log_error

logger = get_logger(__name__)

EXIT_UNEXPECTED = 1
EXIT_CONFIGURATION = 2
EXIT_PARSE = 3
EXIT_COMPARISON = 4
EXIT_IO = 5
EXIT_INCOMPATIBLE = 6


def pass_context(f: Callable) -> Callable:
    """
    Decorator to pass AnalysisContext to command function.

    Usage:
        @click.command()
        @pass_context
        def my_command(ctx: AnalysisContext):
            print(ctx.config)
    """

    @click.pass_context
    @functools.wraps(f)
    def wrapper(click_ctx: click.Context, *args, **kwargs):
        analysis_ctx: AnalysisContext = click_ctx.obj
        return f(analysis_ctx, *args, **kwargs)

    return wrapper


def handle_errors(f: Callable) -> Callable:
    """
    Decorator to handle common errors in CLI commands.

    This decorator catches schemadiff errors and converts them to
    user-friendly error messages with appropriate exit codes.

    Exit codes:
        0: Success
        1: Unexpected error
        2: Configuration error
        3: Parse or format error
        4: Comparison error
        5: File I/O or encoding error
    """

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)

        except (click.exceptions.Exit, click.ClickException):
            # Intentional exits and usage errors are handled by click
            raise

        except ConfigurationError as e:
            log_error(logger, e, f.__name__)
            click.echo(f"Configuration Error: {e}", err=True)
            click.echo(
                "\nPlease check your configuration file and SCHEMADIFF_* environment variables.",
                err=True,
            )
            raise click.exceptions.Exit(EXIT_CONFIGURATION) from e

        except (ParseError, InvalidFormatError) as e:
            log_error(logger, e, f.__name__)
            click.echo(f"Parse Error: {e}", err=True)
            raise click.exceptions.Exit(EXIT_PARSE) from e

        except ComparisonError as e:
            log_error(logger, e, f.__name__)
            click.echo(f"Comparison Error: {e}", err=True)
            raise click.exceptions.Exit(EXIT_COMPARISON) from e

        except SchemaIOError as e:
            log_error(logger, e, f.__name__)
            click.echo(f"I/O Error: {e}", err=True)
            raise click.exceptions.Exit(EXIT_IO) from e

        except Exception as e:
            logger.error("unexpected_error", error=str(e), exc_info=True)
            click.echo(f"Unexpected Error: {e}", err=True)
            click.echo(
                "\nAn unexpected error occurred. Please check the logs for details.",
                err=True,
            )
            raise click.exceptions.Exit(EXIT_UNEXPECTED) from e

    return wrapper
