"""Common test fixtures."""

import json
import os
from textwrap import dedent

import pytest

from schemadiff.config import AnalysisConfig
from schemadiff.schema.models import Change, ChangeKind, Schema, SchemaFormat, Severity


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep SCHEMADIFF_* variables of the developer's shell out of tests."""
    for name in list(os.environ):
        if name.startswith("SCHEMADIFF_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config() -> AnalysisConfig:
    return AnalysisConfig()


@pytest.fixture
def json_schema():
    """Build a JSON Schema from a dictionary."""

    def _json_schema(doc, version: str = "1.0.0") -> Schema:
        return Schema(
            format=SchemaFormat.JSON_SCHEMA, content=json.dumps(doc), version=version
        )

    return _json_schema


@pytest.fixture
def openapi_schema():
    """Build an OpenAPI schema from YAML text."""

    def _openapi_schema(text: str, version: str = "1.0.0") -> Schema:
        return Schema(format=SchemaFormat.OPENAPI, content=dedent(text), version=version)

    return _openapi_schema


@pytest.fixture
def proto_schema():
    """Build a protobuf schema from .proto text."""

    def _proto_schema(text: str, version: str = "1.0.0") -> Schema:
        return Schema(format=SchemaFormat.PROTOBUF, content=dedent(text), version=version)

    return _proto_schema


@pytest.fixture
def sql_schema():
    """Build a SQL DDL schema from statements."""

    def _sql_schema(text: str, version: str = "1.0.0") -> Schema:
        return Schema(format=SchemaFormat.SQL_DDL, content=dedent(text), version=version)

    return _sql_schema


@pytest.fixture
def make_change():
    """Build a change with sensible defaults for hand-written change sets."""

    def _make_change(
        *location: str,
        kind: ChangeKind = ChangeKind.ADDED,
        severity: Severity | None = None,
        is_breaking: bool | None = None,
        **context,
    ) -> Change:
        if is_breaking is None:
            is_breaking = severity is Severity.BREAKING
        return Change(
            location=tuple(location),
            kind=kind,
            description=f"{kind.value} {'/'.join(location)}",
            severity=severity,
            is_breaking=is_breaking,
            context=context,
        )

    return _make_change


@pytest.fixture
def user_object_schema() -> dict:
    """JSON Schema of a user with a required name."""
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "properties": {"name": {"type": "string"}},
        "required": ["name"],
    }
