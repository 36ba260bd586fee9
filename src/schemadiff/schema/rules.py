"""Compatibility rule set.

Every structural change is first mapped to a Situation (what kind of
compatibility question the change raises) and the Situation is then looked up
in a per-format severity table. Format adapters supply their own RuleTable,
overriding the hooks that decide the Situation where the generic structure of a
change is not enough (a protobuf field number reused for a different type, a
SQL column dropped while it still carries the primary key).
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from schemadiff.exceptions import ConfigurationError
from schemadiff.schema.models import (
    Change,
    ChangeKind,
    CompatibilityIssue,
    SchemaFormat,
    Severity,
)
from schemadiff.schema.nodes import node_metadata
from schemadiff.utils.logging import get_logger

logger = get_logger(__name__)


class Situation(Enum):
    """Compatibility situations a change can fall into."""

    ADDED_OPTIONAL = "added_optional"
    ADDED_REQUIRED = "added_required"
    REMOVED = "removed"
    REMOVED_DEPRECATED = "removed_deprecated"
    REMOVED_NULLABLE = "removed_nullable"
    REMOVED_KEY = "removed_key"
    TYPE_WIDENED = "type_widened"
    TYPE_WIDENED_STRICT = "type_widened_strict"
    TYPE_NARROWED = "type_narrowed"
    TYPE_INCOMPATIBLE = "type_incompatible"
    IDENTITY_REUSED = "identity_reused"
    CONSTRAINT_TIGHTENED = "constraint_tightened"
    CONSTRAINT_TIGHTENED_NEW_MEMBER = "constraint_tightened_new_member"
    CONSTRAINT_LOOSENED = "constraint_loosened"
    REQUIRED_ADDED = "required_added"
    REQUIRED_REMOVED = "required_removed"
    RENAMED = "renamed"
    OTHER = "other"


DEFAULT_SEVERITIES: dict[Situation, Severity] = {
    Situation.ADDED_OPTIONAL: Severity.INFO,
    Situation.ADDED_REQUIRED: Severity.BREAKING,
    Situation.REMOVED: Severity.BREAKING,
    Situation.REMOVED_DEPRECATED: Severity.WARNING,
    Situation.REMOVED_NULLABLE: Severity.WARNING,
    Situation.REMOVED_KEY: Severity.BREAKING,
    Situation.TYPE_WIDENED: Severity.WARNING,
    Situation.TYPE_WIDENED_STRICT: Severity.BREAKING,
    Situation.TYPE_NARROWED: Severity.BREAKING,
    Situation.TYPE_INCOMPATIBLE: Severity.BREAKING,
    Situation.IDENTITY_REUSED: Severity.BREAKING,
    Situation.CONSTRAINT_TIGHTENED: Severity.BREAKING,
    Situation.CONSTRAINT_TIGHTENED_NEW_MEMBER: Severity.INFO,
    Situation.CONSTRAINT_LOOSENED: Severity.INFO,
    Situation.REQUIRED_ADDED: Severity.BREAKING,
    Situation.REQUIRED_REMOVED: Severity.WARNING,
    Situation.RENAMED: Severity.BREAKING,
    Situation.OTHER: Severity.WARNING,
}

DEFAULT_HINTS: dict[Situation, str] = {
    Situation.ADDED_REQUIRED: (
        "Make the new member optional or give it a default so existing data stays valid"
    ),
    Situation.REMOVED: "Deprecate the member for at least one release before removing it",
    Situation.REMOVED_DEPRECATED: "Member was deprecated; confirm no client still reads it",
    Situation.REMOVED_NULLABLE: "Confirm no reader still selects this column before dropping it",
    Situation.REMOVED_KEY: (
        "Introduce a replacement key and migrate references before dropping this one"
    ),
    Situation.TYPE_WIDENED: "Readers built against the old type may truncate or reject values",
    Situation.TYPE_WIDENED_STRICT: (
        "The encoding differs on the wire; add a new member instead of changing the type"
    ),
    Situation.TYPE_NARROWED: (
        "Existing values may not fit the narrower type; convert or backfill data first"
    ),
    Situation.TYPE_INCOMPATIBLE: (
        "Add a new member with the new type and migrate data instead of changing it in place"
    ),
    Situation.IDENTITY_REUSED: (
        "Never reuse an identity key; reserve the old key and allocate a new one"
    ),
    Situation.CONSTRAINT_TIGHTENED: (
        "Existing data may violate the stricter constraint; validate data before deploying"
    ),
    Situation.REQUIRED_ADDED: "Backfill the member in existing data before making it required",
    Situation.REQUIRED_REMOVED: "Readers that expect the member to be present must handle absence",
    Situation.RENAMED: "Keep the old name as an alias until every client has moved",
    Situation.OTHER: "Review this change manually",
}


def member_facts(change: Change, format_name: str, side: str = "old") -> dict[str, Any]:
    """Collect format metadata about the member a change concerns.

    Facts come from the node's metadata side-channel and, for hand-built
    changes that carry no nodes, from ``change.context[format_name]``.

    Args:
        change: Change to inspect
        format_name: Metadata key (e.g. "sql", "protobuf")
        side: "old" or "new" node
    """
    node = change.old_node if side == "old" else change.new_node
    facts = dict(change.context.get(format_name) or {})
    facts.update(node_metadata(node, format_name))
    return facts


def container_facts(change: Change, format_name: str) -> dict[str, Any]:
    """Format metadata of the object that holds the changed member."""
    container = change.context.get("container_metadata") or {}
    return dict(container.get(format_name) or {})


def widening_situation(
    old_type: str,
    new_type: str,
    widenings: Iterable[tuple[str, str]],
) -> Situation:
    """Classify a type change against a set of (narrow, wide) pairs.

    Args:
        old_type: Previous type
        new_type: New type
        widenings: Pairs that are safe to widen from left to right

    Returns:
        TYPE_WIDENED, TYPE_NARROWED or TYPE_INCOMPATIBLE
    """
    pairs = set(widenings)
    if (old_type, new_type) in pairs:
        return Situation.TYPE_WIDENED
    if (new_type, old_type) in pairs:
        return Situation.TYPE_NARROWED
    return Situation.TYPE_INCOMPATIBLE


def default_addition(change: Change) -> Situation:
    if change.context.get("required"):
        return Situation.ADDED_REQUIRED
    return Situation.ADDED_OPTIONAL


def default_removal(change: Change) -> Situation:
    if change.context.get("deprecated"):
        return Situation.REMOVED_DEPRECATED
    return Situation.REMOVED


def default_type_change(change: Change) -> Situation:
    old_type = change.context.get("old_type")
    new_type = change.context.get("new_type")
    if not old_type or not new_type:
        return Situation.TYPE_INCOMPATIBLE
    return widening_situation(old_type, new_type, ())


@dataclass(frozen=True)
class RuleTable:
    """Per-format compatibility policy.

    Attributes:
        format: Format the table applies to
        severities: Severity for each Situation
        addition: Decides the Situation of an Added change
        removal: Decides the Situation of a Removed change
        type_change: Decides the Situation of a TypeChanged change
        hints: Remediation hints overriding DEFAULT_HINTS
        threshold: Minimum score for a compatible verdict
    """

    format: SchemaFormat
    severities: Mapping[Situation, Severity] = field(
        default_factory=lambda: dict(DEFAULT_SEVERITIES)
    )
    addition: Callable[[Change], Situation] = default_addition
    removal: Callable[[Change], Situation] = default_removal
    type_change: Callable[[Change], Situation] = default_type_change
    hints: Mapping[Situation, str] = field(default_factory=dict)
    threshold: int = 70

    def with_severities(self, **changes: Severity) -> "RuleTable":
        """Copy of the table with some situations re-weighted (keyed by situation value)."""
        severities = dict(self.severities)
        for key, severity in changes.items():
            severities[Situation(key)] = severity
        return replace(self, severities=severities)


class CompatibilityRuleSet:
    """Classifies changes for a single format."""

    def __init__(
        self,
        table: RuleTable,
        overrides: Mapping[str, str] | None = None,
    ):
        """Initialize rule set.

        Args:
            table: Format rule table supplied by the adapter
            overrides: Optional {situation: severity} patches from configuration

        Raises:
            ConfigurationError: If an override names an unknown situation or severity
        """
        self.table = table
        self.severities: dict[Situation, Severity] = dict(table.severities)

        for situation_name, severity_name in (overrides or {}).items():
            try:
                situation = Situation(str(situation_name).lower())
                severity = Severity(str(severity_name).lower())
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid severity override for {table.format.value}: "
                    f"{situation_name}={severity_name}"
                ) from e
            self.severities[situation] = severity

        if overrides:
            logger.debug(
                "severity_overrides_applied",
                format=table.format.value,
                overrides=dict(overrides),
            )

    @property
    def format(self) -> SchemaFormat:
        return self.table.format

    def situation_for(self, change: Change, new_member: bool = False) -> Situation:
        """Decide which compatibility situation a change falls into.

        Args:
            change: Change to inspect (classified or not)
            new_member: True if the change sits inside a member that was just added
        """
        kind = change.kind

        if kind is ChangeKind.ADDED:
            return self.table.addition(change)
        if kind is ChangeKind.REMOVED:
            return self.table.removal(change)
        if kind is ChangeKind.TYPE_CHANGED:
            return self.table.type_change(change)
        if kind is ChangeKind.CONSTRAINT_TIGHTENED:
            if new_member or change.context.get("new_member"):
                return Situation.CONSTRAINT_TIGHTENED_NEW_MEMBER
            return Situation.CONSTRAINT_TIGHTENED
        if kind is ChangeKind.CONSTRAINT_LOOSENED:
            return Situation.CONSTRAINT_LOOSENED
        if kind is ChangeKind.REQUIREDNESS_CHANGED:
            # Without context assume the stricter direction
            if change.context.get("now_required", True):
                return Situation.REQUIRED_ADDED
            return Situation.REQUIRED_REMOVED
        if kind is ChangeKind.RENAMED:
            return Situation.RENAMED
        return Situation.OTHER

    def classify(self, change: Change, new_member: bool = False) -> Change:
        """Return a copy of the change with severity and breaking verdict set."""
        situation = self.situation_for(change, new_member)
        severity = self.severities.get(situation, Severity.BREAKING)
        return change.classified(severity, situation=situation.value)

    def classify_all(self, changes: Iterable[Change]) -> list[Change]:
        """Classify a change sequence, preserving order.

        Constraint changes located beneath an Added member are treated as
        applying to a new member.
        """
        changes = list(changes)
        added = [change.location for change in changes if change.kind is ChangeKind.ADDED]

        classified = []
        for change in changes:
            new_member = any(
                len(change.location) > len(prefix) and change.location[: len(prefix)] == prefix
                for prefix in added
            )
            classified.append(self.classify(change, new_member=new_member))
        return classified

    def hint_for(self, change: Change) -> str:
        recorded = change.context.get("situation")
        situation = Situation(recorded) if recorded else self.situation_for(change)
        return self.table.hints.get(situation) or DEFAULT_HINTS.get(situation, "")

    def issues_for(self, changes: Iterable[Change]) -> list[CompatibilityIssue]:
        """Remediation hints for every classified change above Info."""
        issues = []
        for change in changes:
            if change.severity is None or change.severity is Severity.INFO:
                continue
            issues.append(CompatibilityIssue(change=change, hint=self.hint_for(change)))
        return issues
