"""End-to-end tests for the analysis entry points."""

import json

import pytest

from schemadiff import (
    ComparisonError,
    ConfigurationError,
    ParseError,
    SchemaAnalyzer,
    analyze_compatibility,
    generate_migration_path,
    validate_changes,
)
from schemadiff.config import AnalysisConfig, DiffConfig, RulesConfig, ScoringConfig
from schemadiff.schema.models import ChangeKind, Schema, SchemaFormat, Severity

SAMPLES = {
    SchemaFormat.JSON_SCHEMA: (
        '{"type": "object", "required": ["name"], "properties": {"name": {"type": "string"}, '
        '"tags": {"type": "array", "items": {"type": "string"}}}}'
    ),
    SchemaFormat.OPENAPI: (
        "openapi: 3.0.0\n"
        "paths:\n"
        "  /users:\n"
        "    get:\n"
        "      parameters:\n"
        "        - {name: q, in: query, schema: {type: string}}\n"
        "      responses:\n"
        "        '200': {description: ok}\n"
    ),
    SchemaFormat.PROTOBUF: 'syntax = "proto3";\nmessage User { string name = 1; }\n',
    SchemaFormat.SQL_DDL: "CREATE TABLE users (id INT PRIMARY KEY, name TEXT);",
}


@pytest.fixture(params=list(SAMPLES), ids=lambda f: f.value)
def sample(request):
    return Schema(format=request.param, content=SAMPLES[request.param], version="1.0.0")


class TestScenarios:
    def test_added_optional_field(self, json_schema, user_object_schema):
        new_doc = {
            **user_object_schema,
            "properties": {**user_object_schema["properties"], "age": {"type": "integer"}},
        }

        report = analyze_compatibility(
            json_schema(user_object_schema), json_schema(new_doc, "1.1.0")
        )

        [change] = report.changes
        assert change.kind is ChangeKind.ADDED
        assert change.severity is Severity.INFO
        assert report.is_compatible
        assert report.compatibility_score == 100

    def test_field_becomes_required(self, json_schema):
        old = {"type": "object", "properties": {"age": {"type": "integer"}}}
        new = {**old, "required": ["age"]}

        report = analyze_compatibility(json_schema(old), json_schema(new, "2.0.0"))

        [change] = report.changes
        assert change.kind is ChangeKind.REQUIREDNESS_CHANGED
        assert change.severity is Severity.BREAKING
        assert not report.is_compatible
        assert report.compatibility_score == 100 - 15

    def test_primary_key_column_dropped(self, sql_schema):
        old = sql_schema("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT);")
        new = sql_schema("CREATE TABLE users (name TEXT);", "2.0.0")

        report = analyze_compatibility(old, new)
        plan = generate_migration_path(old, new)

        [change] = report.changes
        assert change.kind is ChangeKind.REMOVED
        assert change.severity is Severity.BREAKING
        assert any("ALTER TABLE users DROP COLUMN id" in step for step in plan.steps)

    def test_field_number_reused(self, proto_schema):
        old = proto_schema('syntax = "proto3";\nmessage User { string name = 1; }')
        new = proto_schema('syntax = "proto3";\nmessage User { int32 count = 1; }', "2.0.0")

        report = analyze_compatibility(old, new)

        reused = [c for c in report.changes if c.context.get("situation") == "identity_reused"]
        assert len(reused) == 1
        assert reused[0].severity is Severity.BREAKING
        assert not report.is_compatible


class TestProperties:
    def test_identical_schemas(self, sample):
        report = analyze_compatibility(sample, sample)

        assert report.changes == ()
        assert report.compatibility_score == 100
        assert report.is_compatible
        assert generate_migration_path(sample, sample).is_empty

    def test_determinism(self, json_schema):
        old = json_schema(
            {
                "type": "object",
                "required": ["a", "b"],
                "properties": {
                    "a": {"type": "string", "maxLength": 10},
                    "b": {"type": "integer"},
                    "c": {"anyOf": [{"type": "string"}, {"type": "null"}]},
                },
            }
        )
        new = json_schema(
            {
                "type": "object",
                "required": ["c"],
                "properties": {
                    "c": {"anyOf": [{"type": "integer"}, {"type": "null"}]},
                    "a": {"type": "string", "maxLength": 5},
                    "d": {"type": "boolean"},
                },
            },
            "2.0.0",
        )

        first = analyze_compatibility(old, new)
        second = analyze_compatibility(old, new)

        assert first == second
        assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())

    def test_score_bounds(self, json_schema):
        old = json_schema(
            {
                "type": "object",
                "properties": {f"f{i}": {"type": "string"} for i in range(40)},
                "required": [f"f{i}" for i in range(40)],
            }
        )
        new = json_schema(
            {
                "type": "object",
                "properties": {f"g{i}": {"type": "integer"} for i in range(40)},
                "required": [f"g{i}" for i in range(40)],
            }
        )
        config = AnalysisConfig(scoring=ScoringConfig(breaking_decay=1.0))

        report = analyze_compatibility(old, new, config)

        assert report.compatibility_score == 0
        assert not report.is_compatible

    def test_breaking_implies_incompatible(self, json_schema):
        config = AnalysisConfig(scoring=ScoringConfig(breaking_penalty=0, default_threshold=0))
        old = json_schema({"type": "object", "properties": {"a": {"type": "string"}}})
        new = json_schema({"type": "object", "properties": {}})

        report = analyze_compatibility(old, new, config)

        assert report.compatibility_score == 100
        assert report.has_breaking_changes
        assert not report.is_compatible

    @pytest.mark.parametrize(
        "old,new",
        [
            (
                {"type": "object", "properties": {"a": {"type": "string"}}},
                {"type": "object", "properties": {"a": {"type": "string", "$id": "urn:a"}}},
            ),
            (
                {"type": "string", "enum": ["a", "b"]},
                {"type": "string", "enum": ["b", "a"]},
            ),
            (
                {"type": "array", "items": {"type": "string"}},
                {"type": "array", "items": {"type": "string"}, "maxItems": 3},
            ),
        ],
    )
    def test_structural_difference_yields_steps(self, json_schema, old, new):
        assert not generate_migration_path(json_schema(old), json_schema(new)).is_empty

    def test_metadata_only_difference_is_not_a_change(self, json_schema):
        old = json_schema({"type": "object", "properties": {"a": {"type": "string"}}})
        new = json_schema(
            {"type": "object", "properties": {"a": {"type": "string", "readOnly": True}}}
        )
        assert analyze_compatibility(old, new).changes == ()


class TestSchemaAnalyzer:
    def test_report_metadata(self, json_schema, user_object_schema):
        report = SchemaAnalyzer("json").analyze_compatibility(
            json_schema(user_object_schema), json_schema({"type": "object"}, "2.0.0")
        )

        assert report.metadata["format"] == "json_schema"
        assert report.metadata["old_version"] == "1.0.0"
        assert report.metadata["new_version"] == "2.0.0"
        assert report.metadata["threshold"] == "70"
        assert report.metadata["breaking_changes"] == "1"
        assert report.metadata["old_dialect"] == user_object_schema["$schema"]
        assert "new_dialect" not in report.metadata

    def test_issues_carry_hints(self, json_schema):
        old = {"type": "object", "properties": {"age": {"type": "integer"}}}
        report = SchemaAnalyzer("json").analyze_compatibility(
            json_schema(old), json_schema({**old, "required": ["age"]})
        )

        [issue] = report.issues
        assert issue.location == "/age"
        assert "Backfill" in issue.hint

    def test_plan_metadata_and_steps(self, json_schema):
        old = {"type": "object", "properties": {"age": {"type": "integer"}}}

        plan = SchemaAnalyzer("json").generate_migration_path(
            json_schema(old), json_schema({**old, "required": ["age"]}, "1.1.0")
        )

        assert plan.steps == ("Mark property 'age' in / as required",)
        assert plan.metadata["source_version"] == "1.0.0"
        assert plan.metadata["target_version"] == "1.1.0"
        assert plan.metadata["is_breaking"] == "true"

    def test_reported_changes_validate(self, json_schema, user_object_schema):
        analyzer = SchemaAnalyzer("json")
        report = analyzer.analyze_compatibility(
            json_schema(user_object_schema), json_schema({"type": "object"})
        )

        assert analyzer.validate_changes(report.changes).valid
        assert validate_changes(report.changes, "json").valid

    def test_severity_override(self, json_schema):
        config = AnalysisConfig(
            rules=RulesConfig(severity_overrides={"json_schema": {"required_added": "warning"}})
        )
        old = {"type": "object", "properties": {"age": {"type": "integer"}}}

        report = analyze_compatibility(
            json_schema(old), json_schema({**old, "required": ["age"]}), config
        )

        assert report.compatibility_score == 97
        assert report.is_compatible

    def test_overrides_are_per_format(self, proto_schema):
        config = AnalysisConfig(
            rules=RulesConfig(severity_overrides={"json_schema": {"removed": "info"}})
        )
        report = analyze_compatibility(
            proto_schema("message M { string a = 1; }"), proto_schema("message M {}"), config
        )
        assert report.has_breaking_changes

    def test_invalid_override(self):
        config = AnalysisConfig(
            rules=RulesConfig(severity_overrides={"json_schema": {"exploded": "warning"}})
        )
        with pytest.raises(ConfigurationError):
            SchemaAnalyzer("json", config)

    def test_format_threshold(self, json_schema):
        config = AnalysisConfig(scoring=ScoringConfig(thresholds={"json_schema": 99}))
        old = {"type": "object", "properties": {"a": {"type": "integer"}}}
        new = {"type": "object", "properties": {"a": {"type": "number"}}}

        report = analyze_compatibility(json_schema(old), json_schema(new), config)

        assert report.compatibility_score == 97
        assert report.metadata["threshold"] == "99"
        assert not report.is_compatible

    def test_independent_configurations(self, json_schema):
        old = json_schema({"type": "object", "properties": {"a": {"type": "string"}}})
        new = json_schema({"type": "object", "properties": {}})
        lenient = AnalysisConfig(
            rules=RulesConfig(severity_overrides={"json_schema": {"removed": "info"}})
        )

        strict_report = SchemaAnalyzer("json").analyze_compatibility(old, new)
        lenient_report = SchemaAnalyzer("json", lenient).analyze_compatibility(old, new)

        assert not strict_report.is_compatible
        assert lenient_report.is_compatible


class TestErrors:
    def test_mismatched_formats(self, json_schema, proto_schema):
        with pytest.raises(ComparisonError, match="json_schema"):
            analyze_compatibility(json_schema({"type": "object"}), proto_schema("message M {}"))

    def test_analyzer_format_mismatch(self, proto_schema):
        analyzer = SchemaAnalyzer(SchemaFormat.JSON_SCHEMA)
        with pytest.raises(ComparisonError, match="protobuf"):
            analyzer.analyze_compatibility(
                proto_schema("message M {}"), proto_schema("message M {}")
            )

    def test_incomparable_roots(self, json_schema):
        with pytest.raises(ComparisonError, match="root"):
            analyze_compatibility(json_schema({"type": "object"}), json_schema({"type": "string"}))

    def test_malformed_schema_is_rejected_on_load(self, json_schema):
        with pytest.raises(ParseError, match="#/properties/a"):
            json_schema({"type": "object", "properties": {"a": 5}})

    def test_nullable_object_counts_as_a_level(self, json_schema):
        nullable = {"type": ["object", "null"], "properties": {"a": {"type": "string"}}}
        plain = {"type": "object", "properties": {"a": {"type": "string"}}}

        with pytest.raises(ParseError, match="maximum depth of 1"):
            analyze_compatibility(
                json_schema(plain),
                json_schema(nullable),
                AnalysisConfig(diff=DiffConfig(max_depth=1)),
            )

        report = analyze_compatibility(
            json_schema(plain), json_schema(nullable), AnalysisConfig(diff=DiffConfig(max_depth=2))
        )
        assert [change.kind for change in report.changes] == [ChangeKind.ADDED]

    def test_depth_limit(self, json_schema):
        deep = {"type": "object", "properties": {"a": {"type": "object", "properties": {}}}}
        config = AnalysisConfig(diff=DiffConfig(max_depth=1))

        analyze_compatibility(json_schema(deep), json_schema(deep), config)

        deeper = {"type": "object", "properties": {"a": deep}}
        with pytest.raises(ParseError, match="maximum depth"):
            analyze_compatibility(json_schema(deeper), json_schema(deeper), config)
