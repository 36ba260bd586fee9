"""Data models for schema comparison results."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from packaging.version import InvalidVersion, Version

from schemadiff.exceptions import InvalidFormatError, ParseError
from schemadiff.schema.nodes import Node

ROOT_LABEL = "<root>"


class SchemaFormat(Enum):
    """Schema formats with a registered adapter."""

    JSON_SCHEMA = "json_schema"
    OPENAPI = "openapi"
    PROTOBUF = "protobuf"
    SQL_DDL = "sql_ddl"

    @classmethod
    def parse(cls, value: "str | SchemaFormat") -> "SchemaFormat":
        """Resolve a format from its value or a common alias.

        Raises:
            InvalidFormatError: If the name matches no supported format
        """
        if isinstance(value, cls):
            return value

        aliases = {
            "json": cls.JSON_SCHEMA,
            "jsonschema": cls.JSON_SCHEMA,
            "json-schema": cls.JSON_SCHEMA,
            "swagger": cls.OPENAPI,
            "oas": cls.OPENAPI,
            "proto": cls.PROTOBUF,
            "sql": cls.SQL_DDL,
            "ddl": cls.SQL_DDL,
        }
        key = str(value).strip().lower()
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError as e:
            supported = ", ".join(f.value for f in cls)
            raise InvalidFormatError(
                f"Unsupported schema format '{value}' (supported: {supported})"
            ) from e


class ChangeKind(Enum):
    """Types of structural schema changes."""

    ADDED = "added"
    REMOVED = "removed"
    TYPE_CHANGED = "type_changed"
    CONSTRAINT_TIGHTENED = "constraint_tightened"
    CONSTRAINT_LOOSENED = "constraint_loosened"
    REQUIREDNESS_CHANGED = "requiredness_changed"
    RENAMED = "renamed"
    OTHER = "other"


class Severity(Enum):
    """Severity levels for classified changes."""

    INFO = "info"  # Safe, no action needed
    WARNING = "warning"  # Review recommended, usually compatible
    BREAKING = "breaking"  # Invalidates existing data or clients

    @property
    def rank(self) -> int:
        """Ordering weight (higher is more severe)."""
        return {Severity.INFO: 0, Severity.WARNING: 1, Severity.BREAKING: 2}[self]


def format_location(location: tuple[str, ...]) -> str:
    """Render a location path as a pointer string (``/users/age``).

    ``~`` and ``/`` inside segments are escaped as ``~0`` and ``~1`` so
    OpenAPI path keys survive a round trip.
    """
    escaped = [segment.replace("~", "~0").replace("/", "~1") for segment in location]
    return "/" + "/".join(escaped)


def parse_location(value: str | list[str] | tuple[str, ...]) -> tuple[str, ...]:
    """Inverse of format_location; also accepts an already split list."""
    if isinstance(value, (list, tuple)):
        return tuple(str(segment) for segment in value)

    text = value.strip()
    if text in ("", "/"):
        return ()
    return tuple(
        segment.replace("~1", "/").replace("~0", "~") for segment in text.lstrip("/").split("/")
    )


@dataclass(frozen=True)
class Schema:
    """A raw schema document of a declared format and version.

    Construction checks that the content is non-empty and syntactically
    well-formed for its format. Structural validation happens later, when an
    adapter normalizes the document.
    """

    format: SchemaFormat
    content: str
    version: Version = Version("0.0.0")

    def __post_init__(self) -> None:
        object.__setattr__(self, "format", SchemaFormat.parse(self.format))

        if not isinstance(self.version, Version):
            try:
                object.__setattr__(self, "version", Version(str(self.version)))
            except InvalidVersion as e:
                raise ParseError(
                    f"Invalid schema version '{self.version}'", self.format.value
                ) from e

        if not isinstance(self.content, str) or not self.content.strip():
            raise ParseError("Schema content is empty", self.format.value)

        # Imported here: adapters depend on this module
        from schemadiff.adapters import get_adapter

        get_adapter(self.format).check_syntax(self.content)


@dataclass(frozen=True)
class Change:
    """A single structural difference between two schema versions.

    The comparator emits changes with ``severity=None``; the rule set returns
    classified copies. ``context`` carries the facts the rules need (whether
    the member is required, old/new types, identity keys, constraint values).
    """

    location: tuple[str, ...]
    kind: ChangeKind
    description: str
    severity: Severity | None = None
    is_breaking: bool = False
    context: dict[str, Any] = field(default_factory=dict)
    old_node: Node | None = field(default=None, compare=False, repr=False)
    new_node: Node | None = field(default=None, compare=False, repr=False)

    @property
    def path(self) -> str:
        """Location rendered as a pointer string."""
        return format_location(self.location)

    @property
    def name(self) -> str:
        """Last location segment (the member this change is about)."""
        return self.location[-1] if self.location else ROOT_LABEL

    @property
    def is_classified(self) -> bool:
        """Check if a severity has been assigned."""
        return self.severity is not None

    def classified(self, severity: Severity, **context: Any) -> "Change":
        """Return a copy carrying the given severity and extra context."""
        return replace(
            self,
            severity=severity,
            is_breaking=severity is Severity.BREAKING,
            context={**self.context, **context},
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "location": self.path,
            "kind": self.kind.value,
            "severity": self.severity.value if self.severity else None,
            "is_breaking": self.is_breaking,
            "description": self.description,
            "context": dict(self.context),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Change":
        """Build a change from a dictionary (e.g. a hand-written change set).

        ``is_breaking`` defaults to whatever the severity implies.
        """
        try:
            kind = ChangeKind(data["kind"])
        except KeyError as e:
            raise ValueError("Change is missing 'kind'") from e

        severity = Severity(data["severity"]) if data.get("severity") else None
        is_breaking = data.get("is_breaking")
        if is_breaking is None:
            is_breaking = severity is Severity.BREAKING

        return cls(
            location=parse_location(data.get("location", ())),
            kind=kind,
            description=data.get("description", ""),
            severity=severity,
            is_breaking=bool(is_breaking),
            context=dict(data.get("context") or {}),
        )


@dataclass(frozen=True)
class CompatibilityIssue:
    """Remediation hint attached to a non-informational change."""

    change: Change
    hint: str

    @property
    def severity(self) -> Severity | None:
        return self.change.severity

    @property
    def location(self) -> str:
        return self.change.path

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "location": self.location,
            "kind": self.change.kind.value,
            "severity": self.severity.value if self.severity else None,
            "description": self.change.description,
            "hint": self.hint,
        }


@dataclass(frozen=True)
class CompatibilityReport:
    """Result of comparing two versions of a schema."""

    is_compatible: bool
    compatibility_score: int
    changes: tuple[Change, ...] = ()
    issues: tuple[CompatibilityIssue, ...] = ()
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def has_changes(self) -> bool:
        """Check if there are any changes."""
        return bool(self.changes)

    @property
    def breaking_changes(self) -> list[Change]:
        """Changes classified as breaking."""
        return [change for change in self.changes if change.is_breaking]

    @property
    def has_breaking_changes(self) -> bool:
        """Check if there are any breaking changes."""
        return any(change.is_breaking for change in self.changes)

    def changes_of_kind(self, kind: ChangeKind) -> list[Change]:
        """Changes of a single kind, in report order."""
        return [change for change in self.changes if change.kind is kind]

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "is_compatible": self.is_compatible,
            "compatibility_score": self.compatibility_score,
            "changes": [change.to_dict() for change in self.changes],
            "issues": [issue.to_dict() for issue in self.issues],
            "metadata": dict(self.metadata),
        }

    def get_summary(self) -> dict[str, Any]:
        """Get summary of the report."""
        return {
            "is_compatible": self.is_compatible,
            "compatibility_score": self.compatibility_score,
            "total_changes": len(self.changes),
            "breaking_changes": len(self.breaking_changes),
            "warnings": sum(1 for c in self.changes if c.severity is Severity.WARNING),
            "informational": sum(1 for c in self.changes if c.severity is Severity.INFO),
            "issues": len(self.issues),
        }


@dataclass(frozen=True)
class ValidationIssue:
    """One inconsistency found while re-checking a change set."""

    message: str
    path: str
    code: str

    def __str__(self) -> str:
        return f"{self.code} {self.path}: {self.message}"

    def to_dict(self) -> dict[str, str]:
        return {"message": self.message, "path": self.path, "code": self.code}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a change set against a rule set."""

    valid: bool
    issues: tuple[ValidationIssue, ...] = ()
    context: dict[str, str] = field(default_factory=dict)

    @property
    def errors(self) -> list[str]:
        """Human-readable error messages."""
        return [str(issue) for issue in self.issues]

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "valid": self.valid,
            "errors": self.errors,
            "issues": [issue.to_dict() for issue in self.issues],
            "context": dict(self.context),
        }
