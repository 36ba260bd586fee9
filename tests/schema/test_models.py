"""Tests for schema data models."""

import pytest
from packaging.version import Version

from schemadiff.exceptions import FormatSpecificError, InvalidFormatError, ParseError
from schemadiff.schema.models import (
    Change,
    ChangeKind,
    CompatibilityIssue,
    CompatibilityReport,
    Schema,
    SchemaFormat,
    Severity,
    ValidationIssue,
    ValidationResult,
    format_location,
    parse_location,
)


class TestSchemaFormat:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("json_schema", SchemaFormat.JSON_SCHEMA),
            ("json", SchemaFormat.JSON_SCHEMA),
            ("swagger", SchemaFormat.OPENAPI),
            ("proto", SchemaFormat.PROTOBUF),
            ("SQL", SchemaFormat.SQL_DDL),
            (" ddl ", SchemaFormat.SQL_DDL),
        ],
    )
    def test_parse_aliases(self, name, expected):
        assert SchemaFormat.parse(name) is expected

    def test_parse_passes_enum_through(self):
        assert SchemaFormat.parse(SchemaFormat.OPENAPI) is SchemaFormat.OPENAPI

    def test_unknown_format(self):
        with pytest.raises(InvalidFormatError, match="xml"):
            SchemaFormat.parse("xml")


class TestLocations:
    def test_format_escapes_slashes(self):
        assert format_location(("paths", "/users", "get")) == "/paths/~1users/get"

    def test_root(self):
        assert format_location(()) == "/"
        assert parse_location("/") == ()
        assert parse_location("") == ()

    def test_parse_inverts_format(self):
        location = ("paths", "/a~b/{id}", "get", "parameters", "query:q")
        assert parse_location(format_location(location)) == location

    def test_parse_accepts_lists(self):
        assert parse_location(["users", "id"]) == ("users", "id")


class TestSchema:
    def test_string_version_is_parsed(self):
        schema = Schema(format="json", content='{"type": "string"}', version="1.2.0")
        assert schema.format is SchemaFormat.JSON_SCHEMA
        assert schema.version == Version("1.2.0")

    def test_default_version(self):
        schema = Schema(format=SchemaFormat.JSON_SCHEMA, content="true")
        assert schema.version == Version("0.0.0")

    def test_empty_content(self):
        with pytest.raises(ParseError, match="empty"):
            Schema(format=SchemaFormat.JSON_SCHEMA, content="   \n")

    def test_invalid_version(self):
        with pytest.raises(ParseError, match="version"):
            Schema(format=SchemaFormat.JSON_SCHEMA, content="{}", version="not-a-version")

    def test_syntax_is_checked_on_construction(self):
        with pytest.raises(FormatSpecificError) as exc_info:
            Schema(format=SchemaFormat.JSON_SCHEMA, content="{not json")
        assert exc_info.value.format == "json_schema"
        assert exc_info.value.original is not None

    def test_unknown_format(self):
        with pytest.raises(InvalidFormatError):
            Schema(format="avro", content="{}")

    def test_immutable(self):
        schema = Schema(format=SchemaFormat.JSON_SCHEMA, content="{}")
        with pytest.raises(AttributeError):
            schema.content = "true"


class TestChange:
    def test_unclassified_by_default(self):
        change = Change(location=("a",), kind=ChangeKind.ADDED, description="added")
        assert not change.is_classified
        assert change.severity is None
        assert change.path == "/a"
        assert change.name == "a"

    def test_classified_copy(self):
        change = Change(location=("a",), kind=ChangeKind.REMOVED, description="removed")
        breaking = change.classified(Severity.BREAKING, situation="removed")

        assert breaking.is_breaking
        assert breaking.context["situation"] == "removed"
        assert change.severity is None

    def test_root_name(self):
        change = Change(location=(), kind=ChangeKind.OTHER, description="root")
        assert change.name == "<root>"

    def test_to_dict(self):
        change = Change(
            location=("users", "email"),
            kind=ChangeKind.TYPE_CHANGED,
            description="changed",
            severity=Severity.WARNING,
            context={"old_type": "string"},
        )
        data = change.to_dict()

        assert data["location"] == "/users/email"
        assert data["kind"] == "type_changed"
        assert data["severity"] == "warning"
        assert data["is_breaking"] is False

    def test_from_dict_defaults_breaking_from_severity(self):
        change = Change.from_dict(
            {"location": "/users/id", "kind": "removed", "severity": "breaking"}
        )
        assert change.location == ("users", "id")
        assert change.is_breaking
        assert change.description == ""

    def test_from_dict_keeps_explicit_flag(self):
        change = Change.from_dict(
            {"location": ["a"], "kind": "removed", "severity": "info", "is_breaking": True}
        )
        assert change.is_breaking
        assert change.severity is Severity.INFO

    def test_from_dict_requires_kind(self):
        with pytest.raises(ValueError, match="kind"):
            Change.from_dict({"location": "/a"})

    def test_from_dict_rejects_unknown_kind(self):
        with pytest.raises(ValueError):
            Change.from_dict({"location": "/a", "kind": "exploded"})


class TestCompatibilityReport:
    def _report(self) -> CompatibilityReport:
        breaking = Change(
            location=("a",),
            kind=ChangeKind.REMOVED,
            description="removed",
            severity=Severity.BREAKING,
            is_breaking=True,
        )
        warning = Change(
            location=("b",),
            kind=ChangeKind.TYPE_CHANGED,
            description="widened",
            severity=Severity.WARNING,
        )
        info = Change(
            location=("c",), kind=ChangeKind.ADDED, description="added", severity=Severity.INFO
        )
        return CompatibilityReport(
            is_compatible=False,
            compatibility_score=82,
            changes=(breaking, warning, info),
            issues=(CompatibilityIssue(change=breaking, hint="deprecate first"),),
        )

    def test_summary(self):
        summary = self._report().get_summary()
        assert summary == {
            "is_compatible": False,
            "compatibility_score": 82,
            "total_changes": 3,
            "breaking_changes": 1,
            "warnings": 1,
            "informational": 1,
            "issues": 1,
        }

    def test_breaking_changes(self):
        report = self._report()
        assert report.has_breaking_changes
        assert [c.path for c in report.breaking_changes] == ["/a"]
        assert [c.path for c in report.changes_of_kind(ChangeKind.ADDED)] == ["/c"]

    def test_to_dict(self):
        data = self._report().to_dict()
        assert data["issues"][0]["hint"] == "deprecate first"
        assert data["issues"][0]["severity"] == "breaking"
        assert len(data["changes"]) == 3

    def test_empty_report(self):
        report = CompatibilityReport(is_compatible=True, compatibility_score=100)
        assert not report.has_changes
        assert not report.has_breaking_changes


class TestValidationResult:
    def test_errors_render_issues(self):
        result = ValidationResult(
            valid=False,
            issues=(ValidationIssue(message="bad", path="/a", code="JSON001"),),
        )
        assert result.errors == ["JSON001 /a: bad"]
        assert result.to_dict()["issues"][0]["code"] == "JSON001"
