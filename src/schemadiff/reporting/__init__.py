"""Report rendering for compatibility analyses."""

from schemadiff.reporting.schema_report import (
    display_compatibility_report,
    display_migration_plan,
    display_validation_result,
    generate_report_text,
    save_report,
)

__all__ = [
    "display_compatibility_report",
    "display_migration_plan",
    "display_validation_result",
    "generate_report_text",
    "save_report",
]
