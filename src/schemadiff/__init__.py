"""schemadiff - Structural compatibility analysis for evolving schemas."""

import logging

__version__ = "0.1.0"
__license__ = "Apache-2.0"

from schemadiff.analyzer import (  # noqa: E402
    SchemaAnalyzer,
    analyze_compatibility,
    generate_migration_path,
    validate_changes,
)
from schemadiff.exceptions import (  # noqa: E402
    ComparisonError,
    ConfigurationError,
    EncodingError,
    FormatSpecificError,
    InvalidFormatError,
    ParseError,
    SchemaDiffError,
    SchemaIOError,
)
from schemadiff.schema.models import (  # noqa: E402
    Change,
    ChangeKind,
    CompatibilityReport,
    Schema,
    SchemaFormat,
    Severity,
    ValidationResult,
)

# sqlglot warns about every unsupported construct it skips while parsing DDL
logging.getLogger("sqlglot").setLevel(logging.ERROR)

__all__ = [
    "SchemaAnalyzer",
    "analyze_compatibility",
    "generate_migration_path",
    "validate_changes",
    "Schema",
    "SchemaFormat",
    "Change",
    "ChangeKind",
    "Severity",
    "CompatibilityReport",
    "ValidationResult",
    "SchemaDiffError",
    "ParseError",
    "FormatSpecificError",
    "ComparisonError",
    "ConfigurationError",
    "InvalidFormatError",
    "SchemaIOError",
    "EncodingError",
]
