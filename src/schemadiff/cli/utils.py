"""
Utility functions for CLI commands.

This module provides helpers for console output and for loading schema
and change files.
"""

import json
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console
from rich.table import Table

from schemadiff.adapters import infer_format
from schemadiff.exceptions import EncodingError, SchemaIOError
from schemadiff.schema.models import Change, Schema, SchemaFormat

console = Console()


def echo_success(message: str) -> None:
    """Print success message in green."""
    click.secho(f"✓ {message}", fg="green")


def echo_warning(message: str) -> None:
    """Print warning message in yellow."""
    click.secho(f"⚠ {message}", fg="yellow")


def echo_info(message: str) -> None:
    """Print info message in blue."""
    click.secho(f"ℹ {message}", fg="blue")


def echo_json(data: Any) -> None:
    """Print data as indented JSON on stdout."""
    click.echo(json.dumps(data, indent=2, default=str))


def print_table(
    title: str,
    columns: list[str],
    rows: list[list[Any]],
    show_header: bool = True,
) -> None:
    """
    Print a formatted table using rich.

    Args:
        title: Table title
        columns: Column headers
        rows: List of row data
        show_header: Whether to show header row
    """
    table = Table(title=title, show_header=show_header)

    for col in columns:
        table.add_column(col)

    for row in rows:
        table.add_row(*[str(cell) for cell in row])

    console.print(table)


def read_text(path: Path) -> str:
    """
    Read a UTF-8 text file.

    Raises:
        SchemaIOError: If the file cannot be read
        EncodingError: If the file is not valid UTF-8
    """
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise EncodingError(f"File is not valid UTF-8 text: {path}") from e
    except OSError as e:
        raise SchemaIOError(f"Cannot read {path}: {e.strerror or e}") from e


def load_schema(
    path: Path,
    schema_format: SchemaFormat | None = None,
    version: str | None = None,
) -> Schema:
    """
    Load a schema file, inferring its format when none is given.

    Args:
        path: Schema file
        schema_format: Declared format (inferred from name/content if None)
        version: Schema version (defaults to 0.0.0)

    Returns:
        Syntax-checked Schema
    """
    content = read_text(path)
    if schema_format is None:
        schema_format = infer_format(path.name, content)

    if version is None:
        return Schema(format=schema_format, content=content)
    return Schema(format=schema_format, content=content, version=version)


def load_json_or_yaml(path: Path) -> Any:
    """
    Load JSON or YAML file based on extension.

    Raises:
        click.BadParameter: If file format is unsupported or malformed
    """
    suffix = path.suffix.lower()
    content = read_text(path)

    try:
        if suffix == ".json":
            return json.loads(content)
        if suffix in [".yaml", ".yml"]:
            return yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise click.BadParameter(f"Cannot parse {path}: {e}") from e

    raise click.BadParameter(f"Unsupported file format: {suffix}. Use .json, .yaml, or .yml")


def load_changes(path: Path) -> list[Change]:
    """
    Load a hand-written change set.

    The file holds either a list of change mappings or a mapping with a
    ``changes`` list (the JSON output of ``schemadiff analyze --json``).

    Raises:
        click.BadParameter: If the file does not describe a change list
    """
    data = load_json_or_yaml(path)
    if isinstance(data, dict):
        data = data.get("changes")
    if not isinstance(data, list):
        raise click.BadParameter(f"{path} must contain a list of changes")

    changes = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise click.BadParameter(f"Change #{index + 1} in {path} is not a mapping")
        try:
            changes.append(Change.from_dict(entry))
        except ValueError as e:
            raise click.BadParameter(f"Change #{index + 1} in {path}: {e}") from e
    return changes
