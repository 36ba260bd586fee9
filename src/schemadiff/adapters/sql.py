"""SQL DDL adapter backed by sqlglot.

``CREATE TABLE`` statements become one root object whose members are tables;
each table is an object of columns. A column is required when it rejects NULL
(``NOT NULL`` or part of the primary key). Nullability, key membership and the
column's own definition travel in the ``sql`` metadata side-channel so the
rule table can tell a droppable nullable column from a key column.
"""

import re
from typing import Any

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from schemadiff.adapters import FormatAdapter
from schemadiff.exceptions import FormatSpecificError, ParseError
from schemadiff.migration.models import InstructionAction, MigrationInstruction, RenderContext
from schemadiff.schema.models import Change, Schema, SchemaFormat
from schemadiff.schema.nodes import Node, ObjectNode, ScalarNode, node_metadata
from schemadiff.schema.rules import (
    RuleTable,
    Situation,
    default_addition,
    default_removal,
    member_facts,
)
from schemadiff.utils.logging import get_logger

logger = get_logger(__name__)

FORMAT_NAME = "sql"

INTEGER_RANKS = {"TINYINT": 1, "SMALLINT": 2, "MEDIUMINT": 3, "INT": 4, "INTEGER": 4, "BIGINT": 5}
FLOAT_RANKS = {"REAL": 1, "FLOAT": 1, "DOUBLE": 2, "DOUBLE PRECISION": 2}
STRING_TYPES = frozenset({"CHAR", "NCHAR", "VARCHAR", "NVARCHAR", "TEXT", "STRING"})
DECIMAL_TYPES = frozenset({"DECIMAL", "NUMERIC"})

_TYPE_PATTERN = re.compile(
    r"^\s*([A-Za-z][A-Za-z ]*?)\s*(?:\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\))?\s*$"
)


def parse_tables(content: str, dialect: str | None = None) -> list[exp.Create]:
    """Parse DDL text and return its CREATE TABLE statements.

    Raises:
        FormatSpecificError: If sqlglot rejects the text
        ParseError: If the text declares no table
    """
    try:
        statements = sqlglot.parse(content, read=dialect)
    except SqlglotError as e:
        raise FormatSpecificError("Invalid SQL", FORMAT_NAME, original=e) from e

    tables = []
    for statement in statements:
        if statement is None:
            continue
        kind = str(statement.args.get("kind") or "").upper()
        if isinstance(statement, exp.Create) and kind == "TABLE":
            if not isinstance(statement.this, exp.Schema):
                raise ParseError(
                    f"CREATE TABLE {statement.this.sql()} has no column list", FORMAT_NAME
                )
            tables.append(statement)
        else:
            logger.debug("sql_statement_ignored", statement=statement.key)

    if not tables:
        raise ParseError("No CREATE TABLE statements found", FORMAT_NAME)
    return tables


def _table_name(table: exp.Table) -> str:
    return ".".join(part for part in (table.db, table.name) if part)


def _identifiers(expression: exp.Expression) -> list[str]:
    return [identifier.name for identifier in expression.find_all(exp.Identifier)]


def _column_node(
    column: exp.ColumnDef, table_keys: set[str], table_unique: set[str]
) -> ScalarNode:
    kind = column.args.get("kind")
    type_sql = kind.sql() if kind is not None else "UNKNOWN"

    nullable = True
    primary_key = column.name in table_keys
    unique = column.name in table_unique
    default = None

    for constraint in column.args.get("constraints") or []:
        constraint_kind = constraint.args.get("kind")
        if isinstance(constraint_kind, exp.NotNullColumnConstraint):
            nullable = bool(constraint_kind.args.get("allow_null"))
        elif isinstance(constraint_kind, exp.PrimaryKeyColumnConstraint):
            primary_key = True
        elif isinstance(constraint_kind, exp.UniqueColumnConstraint):
            unique = True
        elif isinstance(constraint_kind, exp.DefaultColumnConstraint):
            if constraint_kind.this is not None:
                default = constraint_kind.this.sql()

    if primary_key:
        nullable = False

    constraints: dict[str, Any] = {}
    if primary_key:
        constraints["primary_key"] = True
    if unique:
        constraints["unique"] = True
    if default is not None:
        constraints["default"] = default

    return ScalarNode(
        primitive=type_sql,
        constraints=constraints,
        metadata={
            FORMAT_NAME: {
                "nullable": nullable,
                "primary_key": primary_key,
                "default": default,
                "type": type_sql,
                "definition": column.sql(),
            }
        },
    )


def _table_node(statement: exp.Create) -> ObjectNode:
    schema = statement.this
    table_keys: list[str] = []
    table_unique: set[str] = set()

    for expression in schema.expressions:
        if isinstance(expression, exp.ColumnDef):
            continue
        for key in expression.find_all(exp.PrimaryKey):
            table_keys.extend(_identifiers(key))
        for unique in expression.find_all(exp.UniqueColumnConstraint):
            names = _identifiers(unique)
            # Composite uniqueness is not a property of a single column
            if len(names) == 1:
                table_unique.update(names)

    columns: dict[str, Node] = {}
    for expression in schema.expressions:
        if isinstance(expression, exp.ColumnDef):
            columns[expression.name] = _column_node(expression, set(table_keys), table_unique)

    required = frozenset(
        name for name, node in columns.items() if not node.metadata[FORMAT_NAME]["nullable"]
    )
    return ObjectNode(
        fields=columns,
        required=required,
        metadata={FORMAT_NAME: {"kind": "table", "primary_key": table_keys}},
    )


def check_syntax(content: str) -> list[exp.Create]:
    return parse_tables(content)


def normalize(schema: Schema, max_depth: int = 64) -> Node:
    tables = {}
    for statement in parse_tables(schema.content):
        name = _table_name(statement.this.this)
        if name in tables:
            raise ParseError(f"Table '{name}' is declared twice", FORMAT_NAME)
        tables[name] = _table_node(statement)

    logger.debug("sql_normalized", tables_count=len(tables), version=str(schema.version))
    return ObjectNode(fields=tables)


def _parse_type(type_sql: str | None) -> tuple[str, int | None, int | None] | None:
    if not type_sql:
        return None
    match = _TYPE_PATTERN.match(type_sql)
    if match is None:
        return None
    base, first, second = match.groups()
    return (
        base.upper(),
        int(first) if first is not None else None,
        int(second) if second is not None else None,
    )


def _compare_ranks(old_rank: int, new_rank: int) -> Situation:
    if new_rank >= old_rank:
        return Situation.TYPE_WIDENED
    return Situation.TYPE_NARROWED


def sql_type_change(change: Change) -> Situation:
    """Classify a column type change.

    Integer and floating point types widen by size, character types by length
    (unbounded TEXT being widest) and DECIMAL by precision and scale.
    """
    old = _parse_type(change.context.get("old_type"))
    new = _parse_type(change.context.get("new_type"))
    if old is None or new is None:
        return Situation.TYPE_INCOMPATIBLE

    old_base, old_size, old_scale = old
    new_base, new_size, new_scale = new

    if old_base in INTEGER_RANKS and new_base in INTEGER_RANKS:
        return _compare_ranks(INTEGER_RANKS[old_base], INTEGER_RANKS[new_base])

    if old_base in FLOAT_RANKS and new_base in FLOAT_RANKS:
        return _compare_ranks(FLOAT_RANKS[old_base], FLOAT_RANKS[new_base])

    if old_base in STRING_TYPES and new_base in STRING_TYPES:
        old_length = None if old_base in ("TEXT", "STRING") else old_size
        new_length = None if new_base in ("TEXT", "STRING") else new_size
        if new_length is None:
            return Situation.TYPE_WIDENED
        if old_length is None:
            return Situation.TYPE_NARROWED
        return _compare_ranks(old_length, new_length)

    if old_base in DECIMAL_TYPES and new_base in DECIMAL_TYPES:
        if old_size is None or new_size is None:
            return Situation.TYPE_WIDENED if new_size is None else Situation.TYPE_NARROWED
        old_scale = old_scale or 0
        new_scale = new_scale or 0
        if new_scale >= old_scale and new_size - new_scale >= old_size - old_scale:
            return Situation.TYPE_WIDENED
        return Situation.TYPE_NARROWED

    if old_base in INTEGER_RANKS and new_base in DECIMAL_TYPES and new_size is not None:
        # An integer fits a decimal with enough integral digits
        if new_size - (new_scale or 0) >= 19:
            return Situation.TYPE_WIDENED

    return Situation.TYPE_INCOMPATIBLE


def sql_removal(change: Change) -> Situation:
    """Dropping a key column breaks references, dropping a nullable column rarely does."""
    facts = member_facts(change, FORMAT_NAME)
    if facts.get("kind") == "table":
        return default_removal(change)
    if facts.get("primary_key"):
        return Situation.REMOVED_KEY
    if facts.get("nullable"):
        return Situation.REMOVED_NULLABLE
    return default_removal(change)


def sql_addition(change: Change) -> Situation:
    """A NOT NULL column with a DEFAULT is filled in for existing rows."""
    if member_facts(change, FORMAT_NAME, "new").get("default") is not None:
        return Situation.ADDED_OPTIONAL
    return default_addition(change)


def _identifier(name: str) -> str:
    return exp.to_identifier(name).sql()


def _table(name: str) -> str:
    return exp.to_table(name).sql()


def _create_table(name: str, node: Node | None) -> str:
    if not isinstance(node, ObjectNode):
        return f"CREATE TABLE {_table(name)} ();"

    definitions = []
    for column_name, column in node.fields.items():
        facts = node_metadata(column, FORMAT_NAME)
        definitions.append(
            facts.get("definition") or f"{_identifier(column_name)} {facts.get('type', '')}"
        )
    table_keys = node_metadata(node, FORMAT_NAME).get("primary_key") or []
    if table_keys:
        definitions.append(f"PRIMARY KEY ({', '.join(_identifier(k) for k in table_keys)})")
    return f"CREATE TABLE {_table(name)} ({', '.join(definitions)});"


def _render_generic(instruction: MigrationInstruction) -> str:
    change = instruction.change
    action = instruction.action
    context = change.context
    member = instruction.member

    if not instruction.container:
        if action is InstructionAction.DROP:
            return f"DROP TABLE {_table(member)};"
        if action is InstructionAction.ADD:
            return _create_table(member, change.new_node)
        if action is InstructionAction.RENAME:
            return f"ALTER TABLE {_table(member)} RENAME TO {_table(context['new_name'])};"
        return f"-- review: {change.description}"

    if len(instruction.container) != 1:
        return f"-- review: {change.description}"

    table = _table(instruction.container[0])
    column = _identifier(member)

    if instruction.constraint is not None:
        return _render_constraint(instruction, table, column)
    if action is InstructionAction.DROP:
        return f"ALTER TABLE {table} DROP COLUMN {column};"
    if action is InstructionAction.ADD:
        definition = node_metadata(change.new_node, FORMAT_NAME).get("definition")
        return f"ALTER TABLE {table} ADD COLUMN {definition or column};"
    if action is InstructionAction.RENAME:
        return f"ALTER TABLE {table} RENAME COLUMN {column} TO {_identifier(context['new_name'])};"
    if action is InstructionAction.CHANGE_TYPE:
        return f"ALTER TABLE {table} ALTER COLUMN {column} TYPE {context.get('new_type')};"
    if action is InstructionAction.MAKE_REQUIRED:
        return f"ALTER TABLE {table} ALTER COLUMN {column} SET NOT NULL;"
    if action is InstructionAction.MAKE_OPTIONAL:
        return f"ALTER TABLE {table} ALTER COLUMN {column} DROP NOT NULL;"
    return f"-- review: {change.description}"


def _render_constraint(instruction: MigrationInstruction, table: str, column: str) -> str:
    change = instruction.change
    constraint = instruction.constraint
    new_value = change.context.get("new_value")
    table_name = instruction.container[0].replace(".", "_")

    if constraint == "unique":
        name = _identifier(f"uq_{table_name}_{instruction.member}")
        if new_value:
            return f"ALTER TABLE {table} ADD CONSTRAINT {name} UNIQUE ({column});"
        return f"ALTER TABLE {table} DROP CONSTRAINT {name};"
    if constraint == "primary_key":
        if new_value:
            return f"ALTER TABLE {table} ADD PRIMARY KEY ({column});"
        return f"ALTER TABLE {table} DROP CONSTRAINT {_identifier(f'{table_name}_pkey')};"
    if constraint == "default":
        if new_value is None:
            return f"ALTER TABLE {table} ALTER COLUMN {column} DROP DEFAULT;"
        return f"ALTER TABLE {table} ALTER COLUMN {column} SET DEFAULT {new_value};"
    return f"-- review: {change.description}"


def render(instruction: MigrationInstruction, context: RenderContext) -> str:
    """Render an instruction as a DDL statement, transpiled when a dialect is set."""
    statement = _render_generic(instruction)
    if not context.dialect or statement.startswith("--"):
        return statement

    try:
        transpiled = sqlglot.transpile(statement.rstrip(";"), write=context.dialect)
    except SqlglotError as e:
        logger.warning(
            "sql_transpile_failed",
            dialect=context.dialect,
            statement=statement,
            error=str(e),
        )
        return statement
    return "; ".join(transpiled) + ";"


def document_metadata(content: str) -> dict[str, str]:
    return {"tables": str(len(parse_tables(content)))}


RULES = RuleTable(
    format=SchemaFormat.SQL_DDL,
    addition=sql_addition,
    removal=sql_removal,
    type_change=sql_type_change,
    hints={
        Situation.RENAMED: "Create a view or alias with the old name until queries are updated",
        Situation.REMOVED: "Stop writing the column and verify no query reads it before dropping",
    },
)

ADAPTER = FormatAdapter(
    format=SchemaFormat.SQL_DDL,
    check_syntax=check_syntax,
    normalize=normalize,
    render=render,
    rules=RULES,
    document_metadata=document_metadata,
    extensions=(".sql", ".ddl"),
)
