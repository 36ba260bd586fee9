"""Schema analysis CLI commands."""

from pathlib import Path

import click

from schemadiff.cli.context import AnalysisContext
from schemadiff.cli.decorators import EXIT_INCOMPATIBLE, handle_errors, pass_context
from schemadiff.cli.utils import (
    console,
    echo_json,
    echo_success,
    echo_warning,
    load_changes,
    load_schema,
)
from schemadiff.exceptions import ComparisonError, SchemaIOError
from schemadiff.reporting.schema_report import (
    display_compatibility_report,
    display_migration_plan,
    display_validation_result,
)
from schemadiff.schema.models import Schema, SchemaFormat
from schemadiff.utils.logging import get_logger

logger = get_logger(__name__)

format_option = click.option(
    "--format",
    "-f",
    "schema_format",
    help="Schema format: json_schema, openapi, protobuf, sql_ddl (inferred when omitted)",
)


def _load_pair(
    old_path: Path,
    new_path: Path,
    schema_format: str | None,
    old_version: str | None = None,
    new_version: str | None = None,
) -> tuple[Schema, Schema]:
    declared = SchemaFormat.parse(schema_format) if schema_format else None
    old = load_schema(old_path, declared, old_version)
    new = load_schema(new_path, declared or old.format, new_version)
    if old.format is not new.format:
        raise ComparisonError(
            f"{old_path} is {old.format.value} but {new_path} is {new.format.value}"
        )
    return old, new


@click.command(name="analyze")
@click.argument("old_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("new_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@format_option
@click.option("--old-version", help="Semantic version of the old schema")
@click.option("--new-version", help="Semantic version of the new schema")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.option(
    "--fail-on-breaking",
    is_flag=True,
    help="Exit with status 6 when the new schema is incompatible",
)
@pass_context
@handle_errors
def analyze(
    ctx: AnalysisContext,
    old_path: Path,
    new_path: Path,
    schema_format: str | None,
    old_version: str | None,
    new_version: str | None,
    as_json: bool,
    fail_on_breaking: bool,
) -> None:
    """Compare two schema versions and report their compatibility.

    Examples:

        # Compare two JSON Schema documents
        schemadiff analyze user.v1.schema.json user.v2.schema.json

        # Gate a CI pipeline on protobuf compatibility
        schemadiff analyze --fail-on-breaking old/user.proto new/user.proto

        # Machine-readable output
        schemadiff analyze --format sql --json v1.sql v2.sql
    """
    old, new = _load_pair(old_path, new_path, schema_format, old_version, new_version)
    report = ctx.analyzer(old.format).analyze_compatibility(old, new)

    if as_json:
        echo_json(report.to_dict())
    else:
        display_compatibility_report(report, console)

    if fail_on_breaking and not report.is_compatible:
        logger.info("incompatible_schema_change", score=report.compatibility_score)
        raise click.exceptions.Exit(EXIT_INCOMPATIBLE)


@click.command(name="plan")
@click.argument("old_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("new_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@format_option
@click.option("--old-version", help="Semantic version of the old schema")
@click.option("--new-version", help="Semantic version of the new schema")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the migration steps to a file, one per line",
)
@click.option("--json", "as_json", is_flag=True, help="Print the plan as JSON")
@pass_context
@handle_errors
def plan(
    ctx: AnalysisContext,
    old_path: Path,
    new_path: Path,
    schema_format: str | None,
    old_version: str | None,
    new_version: str | None,
    output: Path | None,
    as_json: bool,
) -> None:
    """Generate an ordered migration plan between two schema versions.

    Examples:

        # Show the plan
        schemadiff plan v1.sql v2.sql

        # Save SQL statements for review
        schemadiff plan v1.sql v2.sql --output migrate.sql
    """
    old, new = _load_pair(old_path, new_path, schema_format, old_version, new_version)
    migration_plan = ctx.analyzer(old.format).generate_migration_path(old, new)

    if output is not None:
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(
                "".join(f"{step}\n" for step in migration_plan.steps), encoding="utf-8"
            )
        except OSError as e:
            raise SchemaIOError(f"Cannot write {output}: {e.strerror or e}") from e

    if as_json:
        echo_json(migration_plan.to_dict())
    else:
        display_migration_plan(migration_plan, console)
        if output is not None:
            echo_success(f"Wrote {len(migration_plan.steps)} step(s) to {output}")


@click.command(name="validate")
@click.argument("changes_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--format",
    "-f",
    "schema_format",
    required=True,
    help="Format whose rules the changes are checked against",
)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@pass_context
@handle_errors
def validate(
    ctx: AnalysisContext,
    changes_file: Path,
    schema_format: str,
    as_json: bool,
) -> None:
    """Check a hand-written change set against a format's rules.

    The file is a JSON or YAML list of changes, each with a location, kind,
    description and optionally severity and is_breaking. Exits with status 6
    when any change is inconsistent.

    Examples:

        schemadiff validate --format protobuf changes.yaml
    """
    analyzer = ctx.analyzer(SchemaFormat.parse(schema_format))
    changes = load_changes(changes_file)
    result = analyzer.validate_changes(changes)

    if as_json:
        echo_json(result.to_dict())
    else:
        display_validation_result(result, console)

    if not result.valid:
        if not as_json:
            echo_warning(f"{len(result.issues)} inconsistent change(s) in {changes_file}")
        raise click.exceptions.Exit(EXIT_INCOMPATIBLE)
