"""Protocol Buffers adapter.

Parses ``.proto`` text (proto2 and proto3) with a small recursive-descent
parser and normalizes it into one root object whose members are the messages
and enums of the file. Nested declarations are flattened to dotted names
(``Outer.Inner``).

Field numbers are identity keys: a field that keeps its number but changes
its name is a rename, and a number that reappears with a different type is
reported as identity reuse by the rule table.
"""

import re
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from schemadiff.adapters import FormatAdapter
from schemadiff.exceptions import ParseError
from schemadiff.migration.models import InstructionAction, MigrationInstruction, RenderContext
from schemadiff.schema.models import Change, Schema, SchemaFormat, Severity
from schemadiff.schema.nodes import ArrayNode, Node, ObjectNode, ReferenceNode, ScalarNode
from schemadiff.schema.rules import (
    RuleTable,
    Situation,
    container_facts,
    default_removal,
    member_facts,
)
from schemadiff.utils.logging import get_logger

logger = get_logger(__name__)

FORMAT_NAME = "protobuf"

SCALAR_TYPES = frozenset(
    {
        "double",
        "float",
        "int32",
        "int64",
        "uint32",
        "uint64",
        "sint32",
        "sint64",
        "fixed32",
        "fixed64",
        "sfixed32",
        "sfixed64",
        "bool",
        "string",
        "bytes",
    }
)

LABELS = ("optional", "required", "repeated")

# Same wire type, values of the narrow type decode unchanged
WIRE_WIDENINGS = frozenset(
    {
        ("int32", "int64"),
        ("uint32", "uint64"),
        ("uint32", "int64"),
        ("sint32", "sint64"),
        ("string", "bytes"),
    }
)

# Wider value range but a different fixed-width encoding on the wire
FIXED_WIDTH_WIDENINGS = frozenset(
    {
        ("fixed32", "fixed64"),
        ("sfixed32", "sfixed64"),
        ("float", "double"),
    }
)

MAX_FIELD_NUMBER = 536870911

_TOKEN_PATTERN = re.compile(
    r"""
      (?P<space>\s+)
    | (?P<comment>//[^\n]*|/\*.*?\*/)
    | (?P<string>"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*')
    | (?P<number>-?(?:0[xX][0-9a-fA-F]+|\d+(?:\.\d+)?(?:[eE][+-]?\d+)?))
    | (?P<ident>\.?[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)
    | (?P<symbol>[{}\[\]()<>=;,:/+\-])
    """,
    re.VERBOSE | re.DOTALL,
)


class Token(NamedTuple):
    kind: str
    value: str
    line: int


def tokenize(content: str) -> list[Token]:
    """Split proto text into tokens, dropping whitespace and comments.

    Raises:
        ParseError: On a character that starts no token
    """
    tokens = []
    pos = 0
    line = 1
    while pos < len(content):
        match = _TOKEN_PATTERN.match(content, pos)
        if match is None:
            raise ParseError(f"Unexpected character {content[pos]!r} at line {line}", FORMAT_NAME)
        kind = match.lastgroup
        text = match.group()
        if kind not in ("space", "comment"):
            tokens.append(Token(kind, text, line))
        line += text.count("\n")
        pos = match.end()
    return tokens


@dataclass
class ProtoField:
    name: str
    number: int
    type: str
    label: str = ""
    deprecated: bool = False
    oneof: str | None = None
    map_types: tuple[str, str] | None = None

    @property
    def declared_type(self) -> str:
        if self.map_types:
            return f"map<{self.map_types[0]}, {self.map_types[1]}>"
        return self.type


@dataclass
class ProtoMessage:
    name: str
    fields: list[ProtoField] = field(default_factory=list)
    reserved_numbers: list[tuple[int, int]] = field(default_factory=list)
    reserved_names: list[str] = field(default_factory=list)
    deprecated: bool = False


@dataclass
class ProtoEnum:
    name: str
    values: list[tuple[str, int, bool]] = field(default_factory=list)
    reserved_numbers: list[tuple[int, int]] = field(default_factory=list)
    reserved_names: list[str] = field(default_factory=list)
    deprecated: bool = False


@dataclass
class ProtoFile:
    syntax: str = "proto2"
    package: str = ""
    # Messages and enums in declaration order, nested ones after their parent
    declarations: list[ProtoMessage | ProtoEnum] = field(default_factory=list)


class ProtoParser:
    """Recursive-descent parser for the declaration subset of proto files.

    Services, extensions and options other than ``deprecated`` are skipped.
    """

    def __init__(self, content: str, max_depth: int = 64):
        self.tokens = tokenize(content)
        self.pos = 0
        self.max_depth = max_depth
        self.file = ProtoFile()

    def parse(self) -> ProtoFile:
        while not self._at_end():
            token = self._next()
            value = token.value
            if value == "syntax" or value == "edition":
                self._expect("=")
                self.file.syntax = self._unquote(self._next_kind("string").value)
                self._expect(";")
            elif value == "package":
                self.file.package = self._next_kind("ident").value
                self._expect(";")
            elif value == "import":
                self._skip_statement()
            elif value == "option":
                self._skip_statement()
            elif value == "message":
                self._message("", 1)
            elif value == "enum":
                self._enum("")
            elif value in ("service", "extend"):
                self._skip_statement()
            elif value == ";":
                continue
            else:
                self._fail(token, f"Unexpected '{value}' at top level")
        return self.file

    def _message(self, scope: str, depth: int) -> None:
        if depth > self.max_depth:
            raise ParseError(
                f"Message nesting exceeds maximum depth of {self.max_depth}", FORMAT_NAME
            )

        name = self._qualify(scope, self._next_kind("ident").value)
        message = ProtoMessage(name=name)
        self.file.declarations.append(message)
        self._expect("{")

        while True:
            token = self._next()
            value = token.value
            if value == "}":
                return
            if value == ";":
                continue
            if value == "message":
                self._message(name, depth + 1)
            elif value == "enum":
                self._enum(name)
            elif value == "oneof":
                self._oneof(message)
            elif value == "reserved":
                self._reserved(message)
            elif value == "option":
                if self._option_statement() == ("deprecated", "true"):
                    message.deprecated = True
            elif value in ("extensions", "extend"):
                self._skip_statement()
            elif value == "group":
                self._fail(token, "Groups are not supported")
            else:
                self.pos -= 1
                message.fields.append(self._field())

    def _enum(self, scope: str) -> None:
        name = self._qualify(scope, self._next_kind("ident").value)
        enum = ProtoEnum(name=name)
        self.file.declarations.append(enum)
        self._expect("{")

        while True:
            token = self._next()
            value = token.value
            if value == "}":
                return
            if value == ";":
                continue
            if value == "option":
                if self._option_statement() == ("deprecated", "true"):
                    enum.deprecated = True
            elif value == "reserved":
                self._reserved(enum)
            elif token.kind == "ident":
                self._expect("=")
                number = self._int(self._next_kind("number"))
                options = self._field_options()
                self._expect(";")
                enum.values.append((value, number, options.get("deprecated") == "true"))
            else:
                self._fail(token, f"Unexpected '{value}' in enum {name}")

    def _oneof(self, message: ProtoMessage) -> None:
        group = self._next_kind("ident").value
        self._expect("{")
        while True:
            token = self._next()
            if token.value == "}":
                return
            if token.value == ";":
                continue
            if token.value == "option":
                self._skip_statement()
                continue
            self.pos -= 1
            member = self._field()
            member.oneof = group
            message.fields.append(member)

    def _field(self) -> ProtoField:
        label = ""
        token = self._next()
        if token.value in LABELS:
            label = token.value
            token = self._next()

        map_types = None
        if token.value == "map" and self._peek().value == "<":
            self._expect("<")
            key_type = self._next_kind("ident").value
            self._expect(",")
            value_type = self._next_kind("ident").value
            self._expect(">")
            map_types = (key_type, value_type)
            type_name = "map"
        elif token.kind == "ident":
            type_name = token.value
        else:
            self._fail(token, f"Expected field type, found '{token.value}'")

        name = self._next_kind("ident").value
        self._expect("=")
        number_token = self._next_kind("number")
        number = self._int(number_token)
        if not 1 <= number <= MAX_FIELD_NUMBER:
            self._fail(number_token, f"Field number {number} out of range")
        options = self._field_options()
        self._expect(";")

        return ProtoField(
            name=name,
            number=number,
            type=type_name,
            label=label,
            deprecated=options.get("deprecated") == "true",
            map_types=map_types,
        )

    def _field_options(self) -> dict[str, str]:
        """Parse ``[name = value, ...]`` if present (only simple names are kept)."""
        options: dict[str, str] = {}
        if self._peek().value != "[":
            return options
        self._next()
        while True:
            parts = []
            depth = 0
            while True:
                token = self._next()
                if depth == 0 and token.value in (",", "]"):
                    break
                if token.value in ("{", "("):
                    depth += 1
                elif token.value in ("}", ")"):
                    depth -= 1
                parts.append(token.value)
            if len(parts) >= 3 and parts[1] == "=":
                options[parts[0]] = parts[2]
            if token.value == "]":
                return options

    def _option_statement(self) -> tuple[str, ...]:
        parts = self._skip_statement()
        if len(parts) == 3 and parts[1] == "=":
            return parts[0], parts[2]
        return tuple(parts)

    def _reserved(self, target: ProtoMessage | ProtoEnum) -> None:
        parts = self._skip_statement()
        i = 0
        while i < len(parts):
            part = parts[i]
            if part == ",":
                i += 1
                continue
            if part[0] in "\"'":
                target.reserved_names.append(self._unquote(part))
                i += 1
                continue
            if re.fullmatch(r"[A-Za-z_]\w*", part):
                # Editions reserve names as bare identifiers
                target.reserved_names.append(part)
                i += 1
                continue
            low = self._parse_int(part)
            high = low
            if i + 2 < len(parts) and parts[i + 1] == "to":
                end = parts[i + 2]
                high = MAX_FIELD_NUMBER if end == "max" else self._parse_int(end)
                i += 2
            target.reserved_numbers.append((low, high))
            i += 1

    def _skip_statement(self) -> list[str]:
        """Consume tokens up to the end of a statement or block and return them."""
        parts = []
        depth = 0
        while True:
            token = self._next()
            if token.value == "{":
                depth += 1
            elif token.value == "}":
                depth -= 1
                if depth == 0:
                    return parts
            elif token.value == ";" and depth == 0:
                return parts
            parts.append(token.value)

    @staticmethod
    def _qualify(scope: str, name: str) -> str:
        return f"{scope}.{name}" if scope else name

    @staticmethod
    def _unquote(text: str) -> str:
        return text[1:-1]

    def _int(self, token: Token) -> int:
        return self._parse_int(token.value, token.line)

    @staticmethod
    def _parse_int(text: str, line: int | None = None) -> int:
        try:
            if text.lower().lstrip("-").startswith("0x"):
                return int(text, 16)
            return int(text)
        except ValueError as e:
            where = f" (line {line})" if line is not None else ""
            raise ParseError(f"Expected integer, found '{text}'{where}", FORMAT_NAME) from e

    def _at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def _peek(self) -> Token:
        if self._at_end():
            return Token("eof", "", -1)
        return self.tokens[self.pos]

    def _next(self) -> Token:
        if self._at_end():
            raise ParseError("Unexpected end of file", FORMAT_NAME)
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _next_kind(self, kind: str) -> Token:
        token = self._next()
        if token.kind != kind:
            self._fail(token, f"Expected {kind}, found '{token.value}'")
        return token

    def _expect(self, value: str) -> Token:
        token = self._next()
        if token.value != value:
            self._fail(token, f"Expected '{value}', found '{token.value}'")
        return token

    @staticmethod
    def _fail(token: Token, message: str):
        raise ParseError(f"{message} (line {token.line})", FORMAT_NAME)


def _resolve(type_name: str, scope: str, package: str, defined: set[str]) -> str:
    """Resolve a message or enum reference using protobuf scoping rules."""
    name = type_name.lstrip(".")
    if package and name.startswith(package + "."):
        name = name[len(package) + 1 :]

    parts = scope.split(".") if scope else []
    while parts:
        candidate = ".".join(parts + [name])
        if candidate in defined:
            return candidate
        parts.pop()
    return name


def _field_node(proto_field: ProtoField, scope: str, package: str, defined: set[str]) -> Node:
    def value_node(type_name: str) -> Node:
        if type_name in SCALAR_TYPES:
            return ScalarNode(type_name)
        return ReferenceNode(_resolve(type_name, scope, package, defined))

    identity = str(proto_field.number)
    metadata = {
        FORMAT_NAME: {
            "number": proto_field.number,
            "label": proto_field.label,
            "type": proto_field.declared_type,
            "deprecated": proto_field.deprecated,
            "oneof": proto_field.oneof,
        }
    }

    if proto_field.map_types:
        key_type, value_type = proto_field.map_types
        entry = ObjectNode(
            fields={"key": value_node(key_type), "value": value_node(value_type)},
            required=frozenset({"key", "value"}),
        )
        return ArrayNode(element=entry, identity=identity, metadata=metadata)

    if proto_field.label == "repeated":
        return ArrayNode(
            element=value_node(proto_field.type), identity=identity, metadata=metadata
        )

    if proto_field.type in SCALAR_TYPES:
        return ScalarNode(proto_field.type, identity=identity, metadata=metadata)
    return ReferenceNode(
        _resolve(proto_field.type, scope, package, defined),
        identity=identity,
        metadata=metadata,
    )


def _container_metadata(kind: str, declaration: ProtoMessage | ProtoEnum) -> dict[str, Any]:
    return {
        FORMAT_NAME: {
            "kind": kind,
            "reserved_numbers": [list(span) for span in declaration.reserved_numbers],
            "reserved_names": list(declaration.reserved_names),
            "deprecated": declaration.deprecated,
        }
    }


def build_tree(proto: ProtoFile) -> ObjectNode:
    """Normalize a parsed proto file into the shared node tree."""
    defined = {declaration.name for declaration in proto.declarations}
    members: dict[str, Node] = {}

    for declaration in proto.declarations:
        if isinstance(declaration, ProtoEnum):
            members[declaration.name] = ObjectNode(
                fields={
                    name: ScalarNode(
                        "enum_value",
                        identity=str(number),
                        metadata={FORMAT_NAME: {"number": number, "deprecated": deprecated}},
                    )
                    for name, number, deprecated in declaration.values
                },
                metadata=_container_metadata("enum", declaration),
            )
            continue

        fields = {
            proto_field.name: _field_node(proto_field, declaration.name, proto.package, defined)
            for proto_field in declaration.fields
        }
        members[declaration.name] = ObjectNode(
            fields=fields,
            required=frozenset(f.name for f in declaration.fields if f.label == "required"),
            metadata=_container_metadata("message", declaration),
        )

    return ObjectNode(fields=members)


def check_syntax(content: str) -> ProtoFile:
    """Parse proto text.

    Raises:
        ParseError: If the text is not a well-formed proto file
    """
    return ProtoParser(content).parse()


def normalize(schema: Schema, max_depth: int = 64) -> Node:
    proto = ProtoParser(schema.content, max_depth).parse()
    tree = build_tree(proto)
    logger.debug(
        "protobuf_normalized",
        syntax=proto.syntax,
        package=proto.package,
        declarations_count=len(proto.declarations),
    )
    return tree


def _is_reserved(facts: dict[str, Any], number: int | None, name: str) -> bool:
    if name in facts.get("reserved_names", ()):
        return True
    if number is None:
        return False
    return any(low <= number <= high for low, high in facts.get("reserved_numbers", ()))


def protobuf_removal(change: Change) -> Situation:
    """Removing a deprecated or reserved member is an announced removal."""
    facts = member_facts(change, FORMAT_NAME)
    if facts.get("deprecated"):
        return Situation.REMOVED_DEPRECATED

    number = facts.get("number")
    identity = change.context.get("identity")
    if number is None and isinstance(identity, str) and identity.isdigit():
        number = int(identity)
    if _is_reserved(container_facts(change, FORMAT_NAME), number, change.name):
        return Situation.REMOVED_DEPRECATED
    return default_removal(change)


def protobuf_type_change(change: Change) -> Situation:
    """Classify a type change of a numbered member.

    A number that stays while the type moves outside the wire-compatible
    widenings means the number now identifies a different field.
    """
    old_type = change.context.get("old_type")
    new_type = change.context.get("new_type")

    if (old_type, new_type) in WIRE_WIDENINGS:
        return Situation.TYPE_WIDENED
    if (old_type, new_type) in FIXED_WIDTH_WIDENINGS:
        return Situation.TYPE_WIDENED_STRICT
    if (new_type, old_type) in WIRE_WIDENINGS | FIXED_WIDTH_WIDENINGS:
        return Situation.TYPE_NARROWED
    if change.context.get("identity") is not None:
        return Situation.IDENTITY_REUSED
    return Situation.TYPE_INCOMPATIBLE


def render(instruction: MigrationInstruction, context: RenderContext) -> str:
    """Render an instruction as a proto declaration edit."""
    change = instruction.change
    action = instruction.action
    member = instruction.member

    if not instruction.container:
        facts = member_facts(change, FORMAT_NAME) or member_facts(change, FORMAT_NAME, "new")
        kind = facts.get("kind", "message")
        if action is InstructionAction.DROP:
            return f"remove {kind} {member}"
        if action is InstructionAction.ADD:
            return f"add {kind} {member}"
        if action is InstructionAction.RENAME:
            return f"rename {kind} {member} to {change.context.get('new_name')}"
        return instruction.describe(kind)

    if len(instruction.container) != 1 or instruction.constraint is not None:
        return instruction.describe("field")

    owner = instruction.container[0]
    owner_kind = container_facts(change, FORMAT_NAME).get("kind", "message")
    side = "new" if action in (InstructionAction.ADD, InstructionAction.CHANGE_TYPE) else "old"
    facts = member_facts(change, FORMAT_NAME, side)
    number = facts.get("number", change.context.get("identity"))

    if action is InstructionAction.DROP and number is not None:
        return f'{owner_kind} {owner} {{ reserved {number}; reserved "{member}"; }}'

    if owner_kind == "enum":
        if action is InstructionAction.ADD:
            return f"enum {owner} {{ {member} = {number}; }}"
        if action is InstructionAction.RENAME:
            return f"enum {owner}: rename {member} to {change.context.get('new_name')} (= {number})"
        return instruction.describe("value")

    type_text = facts.get("type") or change.context.get("new_type")
    if action is InstructionAction.ADD:
        label = f"{facts['label']} " if facts.get("label") else ""
        return f"message {owner} {{ {label}{type_text} {member} = {number}; }}"
    if action is InstructionAction.CHANGE_TYPE:
        return (
            f"message {owner} {{ {type_text} {member} = {number}; }} "
            f"// was {change.context.get('old_type')}"
        )
    if action is InstructionAction.RENAME:
        return (
            f"message {owner}: rename field {member} to {change.context.get('new_name')} "
            f"(= {number})"
        )
    if action in (InstructionAction.MAKE_REQUIRED, InstructionAction.MAKE_OPTIONAL):
        label = "required" if action is InstructionAction.MAKE_REQUIRED else "optional"
        new_facts = member_facts(change, FORMAT_NAME, "new")
        return (
            f"message {owner} {{ {label} {new_facts.get('type', type_text)} {member} = "
            f"{new_facts.get('number', number)}; }}"
        )
    return instruction.describe("field")


def document_metadata(content: str) -> dict[str, str]:
    proto = check_syntax(content)
    metadata = {"syntax": proto.syntax}
    if proto.package:
        metadata["package"] = proto.package
    return metadata


RULES = RuleTable(
    format=SchemaFormat.PROTOBUF,
    removal=protobuf_removal,
    type_change=protobuf_type_change,
    hints={
        Situation.RENAMED: (
            "Field numbers are unchanged so the binary encoding still matches; "
            "JSON and text encodings use the new name"
        ),
        Situation.REMOVED: "Reserve the removed number and name so they are never reused",
        Situation.IDENTITY_REUSED: (
            "Old readers decode this number with the old type; reserve it and "
            "allocate a new number"
        ),
    },
    threshold=80,
).with_severities(renamed=Severity.WARNING)

ADAPTER = FormatAdapter(
    format=SchemaFormat.PROTOBUF,
    check_syntax=check_syntax,
    normalize=normalize,
    render=render,
    rules=RULES,
    document_metadata=document_metadata,
    extensions=(".proto",),
)
