"""Change set validation.

Re-checks an arbitrary, possibly hand-written, sequence of changes against a
format's rule set. This is independent of the comparator: callers that build
or edit migration intents by hand use it to find changes whose declared
severity contradicts what the rules would assign.

Issue codes are ``<FORMAT>NNN``:

  001  change declared non-breaking but the rules classify it as breaking
  002  is_breaking flag disagrees with the declared severity
  003  the same location and kind appear more than once
"""

from collections.abc import Iterable

from schemadiff.schema.models import (
    Change,
    ChangeKind,
    SchemaFormat,
    Severity,
    ValidationIssue,
    ValidationResult,
)
from schemadiff.schema.rules import CompatibilityRuleSet
from schemadiff.utils.logging import get_logger

logger = get_logger(__name__)

CODE_PREFIXES = {
    SchemaFormat.JSON_SCHEMA: "JSON",
    SchemaFormat.OPENAPI: "OAS",
    SchemaFormat.PROTOBUF: "PROTO",
    SchemaFormat.SQL_DDL: "SQL",
}


class ChangeValidator:
    """Validates change sets against a compatibility rule set."""

    def __init__(self, rule_set: CompatibilityRuleSet):
        self.rule_set = rule_set
        self.prefix = CODE_PREFIXES.get(rule_set.format, rule_set.format.value.upper())

    def validate(self, changes: Iterable[Change]) -> ValidationResult:
        """Validate a change sequence.

        Args:
            changes: Changes to check, classified or not

        Returns:
            ValidationResult listing every inconsistency found
        """
        changes = list(changes)
        issues: list[ValidationIssue] = []
        seen: set[tuple[tuple[str, ...], ChangeKind]] = set()
        added = [change.location for change in changes if change.kind is ChangeKind.ADDED]

        for change in changes:
            key = (change.location, change.kind)
            if key in seen:
                issues.append(
                    ValidationIssue(
                        message=f"Duplicate {change.kind.value} change for the same location",
                        path=change.path,
                        code=f"{self.prefix}003",
                    )
                )
            seen.add(key)

            if change.severity is not None and change.is_breaking != (
                change.severity is Severity.BREAKING
            ):
                issues.append(
                    ValidationIssue(
                        message=(
                            f"is_breaking={change.is_breaking} contradicts severity "
                            f"'{change.severity.value}'"
                        ),
                        path=change.path,
                        code=f"{self.prefix}002",
                    )
                )

            new_member = any(
                len(change.location) > len(prefix) and change.location[: len(prefix)] == prefix
                for prefix in added
            )
            expected = self.rule_set.classify(change, new_member=new_member)
            declared_breaking = change.is_breaking or change.severity is Severity.BREAKING

            if expected.is_breaking and not declared_breaking:
                declared = change.severity.value if change.severity else "unclassified"
                issues.append(
                    ValidationIssue(
                        message=(
                            f"{change.kind.value} change marked {declared} but "
                            f"{self.rule_set.format.value} rules classify it as breaking "
                            f"({expected.context['situation']})"
                        ),
                        path=change.path,
                        code=f"{self.prefix}001",
                    )
                )

        logger.debug(
            "change_set_validated",
            format=self.rule_set.format.value,
            changes_checked=len(changes),
            issues_count=len(issues),
        )

        return ValidationResult(
            valid=not issues,
            issues=tuple(issues),
            context={
                "format": self.rule_set.format.value,
                "changes_checked": str(len(changes)),
            },
        )
