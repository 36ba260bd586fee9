"""Tests for the SQL DDL adapter."""

import pytest

from schemadiff.adapters import get_adapter
from schemadiff.adapters.sql import document_metadata, parse_tables, sql_type_change
from schemadiff.analyzer import SchemaAnalyzer
from schemadiff.config import AnalysisConfig, RenderConfig
from schemadiff.exceptions import FormatSpecificError, ParseError
from schemadiff.schema.models import ChangeKind, SchemaFormat, Severity
from schemadiff.schema.rules import Situation

USERS = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY,
    email VARCHAR(255) NOT NULL,
    bio TEXT
);
"""


@pytest.fixture
def analyzer():
    return SchemaAnalyzer(SchemaFormat.SQL_DDL)


def _changes(analyzer, sql_schema, old, new):
    return analyzer.classified_changes(sql_schema(old), sql_schema(new))


def _steps(analyzer, sql_schema, old, new):
    return list(analyzer.generate_migration_path(sql_schema(old), sql_schema(new)).steps)


class TestNormalization:
    @pytest.fixture
    def users(self, sql_schema):
        return get_adapter("sql").normalize(sql_schema(USERS), 64).fields["users"]

    def test_columns_in_order(self, users):
        assert list(users.fields) == ["id", "email", "bio"]

    def test_required_columns_reject_null(self, users):
        assert users.required == frozenset({"id", "email"})

    def test_column_types(self, users):
        assert users.fields["id"].primitive == "INT"
        assert users.fields["email"].primitive == "VARCHAR(255)"
        assert users.fields["bio"].primitive == "TEXT"

    def test_column_metadata(self, users):
        facts = users.fields["id"].metadata["sql"]

        assert facts["primary_key"] is True
        assert facts["nullable"] is False
        assert users.fields["id"].constraints == {"primary_key": True}
        assert users.fields["bio"].metadata["sql"]["nullable"] is True

    def test_table_level_primary_key(self, sql_schema):
        tree = get_adapter("sql").normalize(
            sql_schema("CREATE TABLE t (a INT, b INT, note TEXT, PRIMARY KEY (a, b));"), 64
        )

        table = tree.fields["t"]
        assert table.required == frozenset({"a", "b"})
        assert table.metadata["sql"]["primary_key"] == ["a", "b"]

    def test_unique_and_default(self, sql_schema):
        tree = get_adapter("sql").normalize(
            sql_schema("CREATE TABLE t (email TEXT UNIQUE, status TEXT DEFAULT 'active');"), 64
        )

        table = tree.fields["t"]
        assert table.fields["email"].constraints == {"unique": True}
        assert table.fields["status"].constraints == {"default": "'active'"}

    def test_qualified_table_name(self, sql_schema):
        tree = get_adapter("sql").normalize(sql_schema("CREATE TABLE app.users (id INT);"), 64)
        assert list(tree.fields) == ["app.users"]

    def test_other_statements_are_ignored(self, sql_schema):
        tree = get_adapter("sql").normalize(
            sql_schema("CREATE TABLE t (id INT);\nCREATE INDEX ix_t_id ON t (id);"), 64
        )
        assert list(tree.fields) == ["t"]

    def test_duplicate_table(self, sql_schema):
        schema = sql_schema("CREATE TABLE t (id INT);\nCREATE TABLE t (id INT);")
        with pytest.raises(ParseError, match="declared twice"):
            get_adapter("sql").normalize(schema, 64)


class TestSyntax:
    def test_invalid_sql(self):
        with pytest.raises(FormatSpecificError, match="Invalid SQL"):
            parse_tables("CREATE TABLE t (id INT")

    def test_no_tables(self):
        with pytest.raises(ParseError, match="No CREATE TABLE"):
            parse_tables("SELECT 1;")

    def test_document_metadata(self):
        assert document_metadata(USERS) == {"tables": "1"}


class TestRules:
    @pytest.mark.parametrize(
        "old,new,situation",
        [
            ("INT", "BIGINT", Situation.TYPE_WIDENED),
            ("BIGINT", "INT", Situation.TYPE_NARROWED),
            ("FLOAT", "DOUBLE", Situation.TYPE_WIDENED),
            ("VARCHAR(50)", "VARCHAR(100)", Situation.TYPE_WIDENED),
            ("VARCHAR(100)", "VARCHAR(50)", Situation.TYPE_NARROWED),
            ("VARCHAR(10)", "TEXT", Situation.TYPE_WIDENED),
            ("TEXT", "VARCHAR(10)", Situation.TYPE_NARROWED),
            ("DECIMAL(10, 2)", "DECIMAL(12, 2)", Situation.TYPE_WIDENED),
            ("DECIMAL(10, 2)", "DECIMAL(10, 4)", Situation.TYPE_NARROWED),
            ("INT", "DECIMAL(20, 0)", Situation.TYPE_WIDENED),
            ("INT", "TEXT", Situation.TYPE_INCOMPATIBLE),
        ],
    )
    def test_type_change(self, make_change, old, new, situation):
        change = make_change("t", "c", kind=ChangeKind.TYPE_CHANGED, old_type=old, new_type=new)
        assert sql_type_change(change) is situation

    def test_dropping_primary_key_column(self, analyzer, sql_schema):
        [change] = _changes(
            analyzer,
            sql_schema,
            USERS,
            "CREATE TABLE users (email VARCHAR(255) NOT NULL, bio TEXT);",
        )

        assert change.path == "/users/id"
        assert change.context["situation"] == "removed_key"
        assert change.is_breaking

    def test_dropping_nullable_column(self, analyzer, sql_schema):
        [change] = _changes(
            analyzer,
            sql_schema,
            USERS,
            "CREATE TABLE users (id INTEGER PRIMARY KEY, email VARCHAR(255) NOT NULL);",
        )
        assert change.severity is Severity.WARNING

    def test_dropping_not_null_column(self, analyzer, sql_schema):
        [change] = _changes(
            analyzer,
            sql_schema,
            USERS,
            "CREATE TABLE users (id INTEGER PRIMARY KEY, bio TEXT);",
        )
        assert change.context["situation"] == "removed"
        assert change.is_breaking

    def test_adding_not_null_column(self, analyzer, sql_schema):
        [change] = _changes(
            analyzer,
            sql_schema,
            "CREATE TABLE t (id INT);",
            "CREATE TABLE t (id INT, status TEXT NOT NULL);",
        )
        assert change.is_breaking

    def test_adding_not_null_column_with_default(self, analyzer, sql_schema):
        [change] = _changes(
            analyzer,
            sql_schema,
            "CREATE TABLE t (id INT);",
            "CREATE TABLE t (id INT, status TEXT NOT NULL DEFAULT 'new');",
        )
        assert change.severity is Severity.INFO

    def test_making_column_not_null(self, analyzer, sql_schema):
        [change] = _changes(
            analyzer,
            sql_schema,
            "CREATE TABLE t (bio TEXT);",
            "CREATE TABLE t (bio TEXT NOT NULL);",
        )
        assert change.kind is ChangeKind.REQUIREDNESS_CHANGED
        assert change.is_breaking


class TestRender:
    def test_drop_column(self, analyzer, sql_schema):
        steps = _steps(
            analyzer,
            sql_schema,
            USERS,
            "CREATE TABLE users (email VARCHAR(255) NOT NULL, bio TEXT);",
        )
        assert steps == ["ALTER TABLE users DROP COLUMN id;"]

    def test_add_column_uses_definition(self, analyzer, sql_schema):
        steps = _steps(
            analyzer,
            sql_schema,
            "CREATE TABLE t (id INT);",
            "CREATE TABLE t (id INT, nickname TEXT);",
        )
        assert steps == ["ALTER TABLE t ADD COLUMN nickname TEXT;"]

    def test_change_type(self, analyzer, sql_schema):
        steps = _steps(
            analyzer,
            sql_schema,
            "CREATE TABLE t (code VARCHAR(20));",
            "CREATE TABLE t (code VARCHAR(10));",
        )
        assert steps == ["ALTER TABLE t ALTER COLUMN code TYPE VARCHAR(10);"]

    def test_set_not_null(self, analyzer, sql_schema):
        steps = _steps(
            analyzer,
            sql_schema,
            "CREATE TABLE t (bio TEXT);",
            "CREATE TABLE t (bio TEXT NOT NULL);",
        )
        assert steps == ["ALTER TABLE t ALTER COLUMN bio SET NOT NULL;"]

    def test_add_unique_constraint(self, analyzer, sql_schema):
        steps = _steps(
            analyzer,
            sql_schema,
            "CREATE TABLE users (email TEXT);",
            "CREATE TABLE users (email TEXT UNIQUE);",
        )
        assert steps == ["ALTER TABLE users ADD CONSTRAINT uq_users_email UNIQUE (email);"]

    def test_set_default(self, analyzer, sql_schema):
        steps = _steps(
            analyzer,
            sql_schema,
            "CREATE TABLE t (status TEXT);",
            "CREATE TABLE t (status TEXT DEFAULT 'new');",
        )
        assert steps == ["ALTER TABLE t ALTER COLUMN status SET DEFAULT 'new';"]

    def test_create_and_drop_tables(self, analyzer, sql_schema):
        steps = _steps(
            analyzer,
            sql_schema,
            "CREATE TABLE legacy (id INT);",
            "CREATE TABLE audit (id INT, note TEXT);",
        )
        assert steps == ["DROP TABLE legacy;", "CREATE TABLE audit (id INT, note TEXT);"]

    def test_additions_follow_drops_in_a_table(self, analyzer, sql_schema):
        steps = _steps(
            analyzer,
            sql_schema,
            "CREATE TABLE t (id INT, old_name TEXT);",
            "CREATE TABLE t (id INT, display_name TEXT);",
        )
        assert steps == [
            "ALTER TABLE t DROP COLUMN old_name;",
            "ALTER TABLE t ADD COLUMN display_name TEXT;",
        ]

    def test_dialect(self, sql_schema):
        config = AnalysisConfig(render=RenderConfig(sql_dialect="postgres"))
        plan = SchemaAnalyzer("sql", config).generate_migration_path(
            sql_schema(USERS), sql_schema("CREATE TABLE users (id INT PRIMARY KEY);")
        )

        assert len(plan.steps) == 2
        assert all("DROP COLUMN" in step and step.endswith(";") for step in plan.steps)

    def test_unknown_dialect_is_rejected(self):
        with pytest.raises(ValueError, match="Unknown SQL dialect"):
            RenderConfig(sql_dialect="cobol")
