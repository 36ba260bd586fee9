"""Schema analysis entry points.

SchemaAnalyzer wires one format's adapter, rule set, comparator, score
aggregator and planner together from an AnalysisConfig. The module-level
functions are thin conveniences that build a default-configured analyzer for
the format of the given schemas.
"""

from collections.abc import Iterable

from schemadiff.adapters import FormatAdapter, get_adapter
from schemadiff.config import AnalysisConfig
from schemadiff.exceptions import ComparisonError
from schemadiff.migration.models import MigrationPlan, RenderContext
from schemadiff.migration.planner import MigrationPlanner
from schemadiff.schema.comparator import SchemaComparator
from schemadiff.schema.models import (
    Change,
    CompatibilityReport,
    Schema,
    SchemaFormat,
    Severity,
    ValidationResult,
)
from schemadiff.schema.nodes import Node
from schemadiff.schema.rules import CompatibilityRuleSet
from schemadiff.schema.scoring import ScoreAggregator
from schemadiff.utils.logging import get_logger
from schemadiff.validation.change_validator import ChangeValidator

logger = get_logger(__name__)


class SchemaAnalyzer:
    """Analyzes pairs of schema versions of a single format."""

    def __init__(self, format: SchemaFormat | str, config: AnalysisConfig | None = None):
        """Initialize analyzer.

        Args:
            format: Schema format handled by this analyzer
            config: Analysis policy (defaults apply when omitted)

        Raises:
            InvalidFormatError: If the format has no adapter
            ConfigurationError: If a severity override is invalid
        """
        self.config = config or AnalysisConfig()
        self.adapter: FormatAdapter = get_adapter(format)
        self.format = self.adapter.format

        self.rule_set = CompatibilityRuleSet(
            self.adapter.rules,
            self.config.rules.severity_overrides.get(self.format.value),
        )
        self.comparator = SchemaComparator(max_depth=self.config.diff.max_depth)
        self.aggregator = ScoreAggregator(
            self.config.scoring,
            self.config.scoring.threshold_for(self.format.value, self.adapter.rules.threshold),
        )

    def _check_formats(self, old: Schema, new: Schema) -> None:
        for schema in (old, new):
            if schema.format is not self.format:
                raise ComparisonError(
                    f"Cannot analyze a {schema.format.value} schema with a "
                    f"{self.format.value} analyzer"
                )

    def normalize(self, schema: Schema) -> Node:
        """Normalize a schema into its format-independent tree.

        Raises:
            ParseError: If the content does not normalize for its format
        """
        return self.adapter.normalize(schema, self.config.diff.max_depth)

    def diff(self, old: Schema, new: Schema) -> list[Change]:
        """Unclassified structural changes between two schema versions.

        Raises:
            ComparisonError: If the schemas are of different formats or their
                trees cannot be compared
            ParseError: If either schema fails to normalize
        """
        self._check_formats(old, new)
        old_tree = self.normalize(old)
        new_tree = self.normalize(new)
        return self.comparator.compare_schemas(old_tree, new_tree)

    def classified_changes(self, old: Schema, new: Schema) -> list[Change]:
        return self.rule_set.classify_all(self.diff(old, new))

    def analyze_compatibility(self, old: Schema, new: Schema) -> CompatibilityReport:
        """Compare two schema versions and score their compatibility.

        Args:
            old: Previous schema version
            new: Candidate schema version

        Returns:
            CompatibilityReport with classified changes, issues and metadata
        """
        changes = self.classified_changes(old, new)
        score, compatible = self.aggregator.aggregate(changes)
        issues = self.rule_set.issues_for(changes)

        metadata = {
            "format": self.format.value,
            "old_version": str(old.version),
            "new_version": str(new.version),
            "threshold": str(self.aggregator.threshold),
            "total_changes": str(len(changes)),
            "breaking_changes": str(sum(1 for c in changes if c.is_breaking)),
            "warnings": str(sum(1 for c in changes if c.severity is Severity.WARNING)),
        }
        for prefix, schema in (("old", old), ("new", new)):
            for key, value in self.adapter.document_metadata(schema.content).items():
                metadata[f"{prefix}_{key}"] = value

        logger.info(
            "schema_analysis_complete",
            format=self.format.value,
            changes_count=len(changes),
            score=score,
            is_compatible=compatible,
        )

        return CompatibilityReport(
            is_compatible=compatible,
            compatibility_score=score,
            changes=tuple(changes),
            issues=tuple(issues),
            metadata=metadata,
        )

    def generate_migration_path(self, old: Schema, new: Schema) -> MigrationPlan:
        """Build an ordered migration plan from the old to the new version."""
        changes = self.classified_changes(old, new)
        context = RenderContext(
            format=self.format,
            dialect=self.config.render.sql_dialect if self.format is SchemaFormat.SQL_DDL else None,
            source_version=str(old.version),
            target_version=str(new.version),
        )
        return MigrationPlanner(self.adapter.render, context).plan(changes)

    def validate_changes(self, changes: Iterable[Change]) -> ValidationResult:
        """Re-check a change set against this format's rule set."""
        return ChangeValidator(self.rule_set).validate(changes)


def _format_of(old: Schema, new: Schema) -> SchemaFormat:
    if old.format is not new.format:
        raise ComparisonError(
            f"Cannot compare a {old.format.value} schema with a {new.format.value} schema"
        )
    return old.format


def analyze_compatibility(
    old: Schema, new: Schema, config: AnalysisConfig | None = None
) -> CompatibilityReport:
    """Analyze compatibility between two versions of a schema."""
    return SchemaAnalyzer(_format_of(old, new), config).analyze_compatibility(old, new)


def generate_migration_path(
    old: Schema, new: Schema, config: AnalysisConfig | None = None
) -> MigrationPlan:
    """Plan the migration between two versions of a schema."""
    return SchemaAnalyzer(_format_of(old, new), config).generate_migration_path(old, new)


def validate_changes(
    changes: Iterable[Change],
    format: SchemaFormat | str,
    config: AnalysisConfig | None = None,
) -> ValidationResult:
    """Validate a hand-built change set against a format's rules."""
    return SchemaAnalyzer(format, config).validate_changes(changes)
