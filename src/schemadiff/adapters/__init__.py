"""Format adapters.

Each supported format provides one FormatAdapter: a capability set of
syntax checking, normalization into the shared node tree, rendering of
migration instructions, and the format's compatibility rule table. The
analysis engine dispatches on SchemaFormat through ADAPTERS and never looks at
raw schema text itself.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from schemadiff.exceptions import InvalidFormatError
from schemadiff.migration.models import MigrationInstruction, RenderContext
from schemadiff.schema.models import Schema, SchemaFormat
from schemadiff.schema.nodes import Node
from schemadiff.schema.rules import RuleTable


def _no_metadata(content: str) -> dict[str, str]:
    return {}


@dataclass(frozen=True)
class FormatAdapter:
    """Capabilities implemented once per schema format.

    Attributes:
        format: Format handled by this adapter
        check_syntax: Raises ParseError if content is not well-formed
        normalize: Converts a Schema into a normalized tree (schema, max_depth)
        render: Renders one migration instruction as a format statement
        rules: Compatibility rule table for the format
        document_metadata: Extracts report metadata from raw content
        extensions: File extensions used to infer the format
    """

    format: SchemaFormat
    check_syntax: Callable[[str], None]
    normalize: Callable[[Schema, int], Node]
    render: Callable[[MigrationInstruction, RenderContext], str]
    rules: RuleTable
    document_metadata: Callable[[str], dict[str, str]] = _no_metadata
    extensions: tuple[str, ...] = field(default=())


def _build_registry() -> dict[SchemaFormat, FormatAdapter]:
    from schemadiff.adapters import json_schema, openapi, protobuf, sql

    return {
        adapter.format: adapter
        for adapter in (json_schema.ADAPTER, openapi.ADAPTER, protobuf.ADAPTER, sql.ADAPTER)
    }


ADAPTERS: dict[SchemaFormat, FormatAdapter] = _build_registry()


def get_adapter(format: SchemaFormat | str) -> FormatAdapter:
    """Look up the adapter for a format.

    Raises:
        InvalidFormatError: If the format is unknown or has no adapter
    """
    schema_format = SchemaFormat.parse(format)
    try:
        return ADAPTERS[schema_format]
    except KeyError as e:
        raise InvalidFormatError(f"No adapter registered for format '{schema_format.value}'") from e


def infer_format(filename: str, content: str | None = None) -> SchemaFormat:
    """Guess a schema format from a file name and, if needed, its content.

    Raises:
        InvalidFormatError: If no format matches
    """
    lowered = filename.lower()
    for adapter in ADAPTERS.values():
        if any(lowered.endswith(ext) for ext in adapter.extensions):
            return adapter.format

    if content is not None:
        head = content.lstrip()[:2048]
        if head.startswith(("openapi:", "swagger:")) or '"openapi"' in head or '"swagger"' in head:
            return SchemaFormat.OPENAPI
        if head.startswith("{"):
            return SchemaFormat.JSON_SCHEMA
        if "CREATE TABLE" in head.upper():
            return SchemaFormat.SQL_DDL
        if "message " in head or head.startswith("syntax"):
            return SchemaFormat.PROTOBUF

    raise InvalidFormatError(f"Cannot infer schema format of '{filename}'; pass --format")
