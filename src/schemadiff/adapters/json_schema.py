"""JSON Schema adapter.

Normalizes JSON Schema documents (draft 4 through 2020-12 keywords that
affect data shape) into the shared node tree. The normalizer is reused by the
OpenAPI adapter for component and parameter schemas.
"""

import json
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for

from schemadiff.adapters import FormatAdapter
from schemadiff.exceptions import FormatSpecificError, ParseError
from schemadiff.migration.models import MigrationInstruction, RenderContext
from schemadiff.schema.models import Change, Schema, SchemaFormat
from schemadiff.schema.nodes import (
    ArrayNode,
    Node,
    ObjectNode,
    ReferenceNode,
    ScalarNode,
    UnionNode,
)
from schemadiff.schema.rules import (
    RuleTable,
    Situation,
    default_removal,
    member_facts,
    widening_situation,
)
from schemadiff.utils.logging import get_logger

logger = get_logger(__name__)

FORMAT_NAME = SchemaFormat.JSON_SCHEMA.value

# JSON keyword -> normalized constraint name
CONSTRAINT_KEYWORDS = {
    "minimum": "minimum",
    "maximum": "maximum",
    "exclusiveMinimum": "exclusive_minimum",
    "exclusiveMaximum": "exclusive_maximum",
    "minLength": "min_length",
    "maxLength": "max_length",
    "pattern": "pattern",
    "enum": "enum",
    "const": "const",
    "multipleOf": "multiple_of",
    "minProperties": "min_properties",
    "maxProperties": "max_properties",
}

# Numeric formats are part of the primitive kind, string formats are constraints
NUMERIC_TYPES = ("integer", "number")

# (narrow, wide) primitive pairs beyond the ones derived from base types
NUMERIC_WIDENINGS = (
    ("integer/int32", "integer/int64"),
    ("number/float", "number/double"),
    ("integer/int32", "number/double"),
)

DEFINITION_KEYS = ("$defs", "definitions")


class JsonSchemaNormalizer:
    """Converts parsed JSON Schema dictionaries into normalized nodes."""

    def __init__(self, format_name: str = FORMAT_NAME, max_depth: int = 64):
        """Initialize normalizer.

        Args:
            format_name: Metadata key for recorded annotations
            max_depth: Maximum nesting depth accepted
        """
        self.format_name = format_name
        self.max_depth = max_depth

    def normalize(self, doc: Any, pointer: str = "#", depth: int = 0) -> Node:
        """Normalize one (sub)schema.

        Args:
            doc: Parsed schema (dict or boolean schema)
            pointer: JSON pointer of the subschema, used in error messages
            depth: Current nesting depth

        Raises:
            ParseError: If the subschema is malformed or nested too deeply
        """
        if depth > self.max_depth:
            raise ParseError(
                f"Schema nesting at {pointer} exceeds maximum depth of {self.max_depth}",
                self.format_name,
            )

        if doc is True or doc == {}:
            return ScalarNode("any")
        if doc is False:
            return ScalarNode("never")
        if not isinstance(doc, dict):
            raise ParseError(f"Schema at {pointer} must be an object", self.format_name)

        identity = doc.get("$id") if isinstance(doc.get("$id"), str) else None
        metadata = self._annotations(doc)

        if "$ref" in doc:
            return ReferenceNode(target=str(doc["$ref"]), identity=identity, metadata=metadata)

        if isinstance(doc.get("allOf"), list):
            return self.normalize(self._merge_all_of(doc, pointer), pointer, depth)

        for combinator in ("anyOf", "oneOf"):
            if isinstance(doc.get(combinator), list):
                alternatives = tuple(
                    self.normalize(sub, f"{pointer}/{combinator}/{i}", depth + 1)
                    for i, sub in enumerate(doc[combinator])
                )
                return UnionNode(alternatives=alternatives, identity=identity, metadata=metadata)

        type_ = doc.get("type")
        nullable = doc.get("nullable") is True

        if isinstance(type_, list):
            types = [t for t in type_ if t != "null"]
            nullable = nullable or "null" in type_
            if len(types) > 1:
                alternatives = [
                    self.normalize({**doc, "type": t, "nullable": False}, pointer, depth + 1)
                    for t in types
                ]
                if nullable:
                    alternatives.append(ScalarNode("null"))
                return UnionNode(
                    alternatives=tuple(alternatives), identity=identity, metadata=metadata
                )
            type_ = types[0] if types else "null"

        if type_ is None:
            type_ = self._infer_type(doc)

        if nullable and type_ in ("object", "array"):
            # The null wrapper is a nesting level of its own
            node = self.normalize({**doc, "type": type_, "nullable": False}, pointer, depth + 1)
            return UnionNode(alternatives=(node, ScalarNode("null")))

        if type_ == "object":
            return self._normalize_object(doc, pointer, depth, identity, metadata)
        if type_ == "array":
            return self._normalize_array(doc, pointer, depth, identity, metadata)
        return self._normalize_scalar(doc, str(type_), nullable, identity, metadata)

    def _annotations(self, doc: dict[str, Any]) -> dict[str, dict[str, Any]]:
        notes = {key: True for key in ("deprecated", "readOnly", "writeOnly") if doc.get(key)}
        return {self.format_name: notes} if notes else {}

    @staticmethod
    def _infer_type(doc: dict[str, Any]) -> str:
        if "properties" in doc or "additionalProperties" in doc:
            return "object"
        if "items" in doc or "prefixItems" in doc:
            return "array"
        enum = doc.get("enum")
        values = enum if isinstance(enum, list) else ([doc["const"]] if "const" in doc else [])
        if values:
            if all(isinstance(v, bool) for v in values):
                return "boolean"
            if all(isinstance(v, int) and not isinstance(v, bool) for v in values):
                return "integer"
            if all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values):
                return "number"
            if all(isinstance(v, str) for v in values):
                return "string"
        return "any"

    def _merge_all_of(self, doc: dict[str, Any], pointer: str) -> dict[str, Any]:
        """Fold allOf subschemas into one schema (properties and required are unioned)."""
        merged = {key: value for key, value in doc.items() if key != "allOf"}
        properties = dict(merged.get("properties") or {})
        required = list(merged.get("required") or [])

        for i, sub in enumerate(doc["allOf"]):
            if not isinstance(sub, dict):
                raise ParseError(
                    f"allOf entry {pointer}/allOf/{i} must be an object", self.format_name
                )
            if "$ref" in sub and len(doc["allOf"]) > 1:
                # Referenced parts stay visible as a pseudo-member
                properties.setdefault(f"$allOf/{i}", sub)
                continue
            for key, value in sub.items():
                if key == "properties":
                    for name, prop in value.items():
                        properties.setdefault(name, prop)
                elif key == "required":
                    required.extend(name for name in value if name not in required)
                else:
                    merged.setdefault(key, value)

        if properties:
            merged["properties"] = properties
        if required:
            merged["required"] = required
        return merged

    def _normalize_object(
        self,
        doc: dict[str, Any],
        pointer: str,
        depth: int,
        identity: str | None,
        metadata: dict[str, dict[str, Any]],
    ) -> ObjectNode:
        properties = doc.get("properties") or {}
        if not isinstance(properties, dict):
            raise ParseError(f"'properties' at {pointer} must be an object", self.format_name)

        fields: dict[str, Node] = {}
        for name, prop in properties.items():
            fields[name] = self.normalize(prop, f"{pointer}/properties/{name}", depth + 1)

        for key in DEFINITION_KEYS:
            definitions = doc.get(key)
            if isinstance(definitions, dict) and definitions:
                fields[key] = ObjectNode(
                    fields={
                        name: self.normalize(sub, f"{pointer}/{key}/{name}", depth + 2)
                        for name, sub in definitions.items()
                    }
                )

        required = doc.get("required") or []
        if not isinstance(required, list):
            raise ParseError(f"'required' at {pointer} must be an array", self.format_name)

        return ObjectNode(
            fields=fields,
            required=frozenset(required),
            identity=identity,
            metadata=metadata,
        )

    def _normalize_array(
        self,
        doc: dict[str, Any],
        pointer: str,
        depth: int,
        identity: str | None,
        metadata: dict[str, dict[str, Any]],
    ) -> ArrayNode:
        items = doc.get("items", True)
        if isinstance(items, list):
            # Tuple validation (draft 4-2019): compare positions as a union
            element: Node = UnionNode(
                alternatives=tuple(
                    self.normalize(sub, f"{pointer}/items/{i}", depth + 1)
                    for i, sub in enumerate(items)
                )
            )
        else:
            element = self.normalize(items, f"{pointer}/items", depth + 1)

        if doc.get("uniqueItems") and isinstance(element, ScalarNode):
            # Arrays carry no constraint map; uniqueness is tracked on the element
            element = ScalarNode(
                primitive=element.primitive,
                constraints={**element.constraints, "unique_items": True},
                identity=element.identity,
                metadata=element.metadata,
            )

        return ArrayNode(
            element=element,
            min_length=doc.get("minItems"),
            max_length=doc.get("maxItems"),
            identity=identity,
            metadata=metadata,
        )

    def _normalize_scalar(
        self,
        doc: dict[str, Any],
        type_: str,
        nullable: bool,
        identity: str | None,
        metadata: dict[str, dict[str, Any]],
    ) -> ScalarNode:
        primitive = type_
        constraints: dict[str, Any] = {}

        value_format = doc.get("format")
        if value_format:
            if type_ in NUMERIC_TYPES:
                primitive = f"{type_}/{value_format}"
            else:
                constraints["format"] = value_format

        for keyword, name in CONSTRAINT_KEYWORDS.items():
            if keyword not in doc:
                continue
            # Draft 4 boolean exclusive bounds modify minimum/maximum
            if keyword.startswith("exclusive") and isinstance(doc[keyword], bool):
                continue
            constraints[name] = doc[keyword]

        if nullable:
            constraints["nullable"] = True

        return ScalarNode(
            primitive=primitive, constraints=constraints, identity=identity, metadata=metadata
        )


def json_type_change(change: Change) -> Situation:
    """Classify a primitive change, treating dropped formats and integer to number as widening.

    ``integer/int32 -> integer`` and ``string/... -> string`` drop a format
    restriction; ``integer -> number`` accepts every previous value.
    """
    old_type = change.context.get("old_type")
    new_type = change.context.get("new_type")
    if not old_type or not new_type:
        return Situation.TYPE_INCOMPATIBLE

    if old_type.startswith(new_type + "/"):
        return Situation.TYPE_WIDENED
    if new_type.startswith(old_type + "/"):
        return Situation.TYPE_NARROWED

    old_base = old_type.split("/")[0]
    new_base = new_type.split("/")[0]
    if old_base == "integer" and new_base == "number":
        return Situation.TYPE_WIDENED
    if old_base == "number" and new_base == "integer":
        return Situation.TYPE_NARROWED
    if new_type == "any":
        return Situation.TYPE_WIDENED

    return widening_situation(old_type, new_type, NUMERIC_WIDENINGS)


def deprecation_removal(format_name: str):
    """Removal hook treating members annotated ``deprecated`` as announced removals."""

    def removal(change: Change) -> Situation:
        if member_facts(change, format_name).get("deprecated"):
            return Situation.REMOVED_DEPRECATED
        return default_removal(change)

    return removal


def _load_document(content: str) -> dict[str, Any] | bool:
    try:
        doc = json.loads(content)
    except json.JSONDecodeError as e:
        raise FormatSpecificError("Invalid JSON", FORMAT_NAME, original=e) from e

    if not isinstance(doc, (dict, bool)):
        raise ParseError("JSON Schema root must be an object", FORMAT_NAME)
    return doc


def check_syntax(content: str) -> dict[str, Any] | bool:
    """Parse JSON text and validate it against its draft's metaschema.

    The draft is taken from ``$schema``; documents without one are checked
    as 2020-12.

    Raises:
        FormatSpecificError: If the text is not valid JSON or not a valid schema
        ParseError: If the root is not a schema
    """
    doc = _load_document(content)

    try:
        validator_for(doc, default=Draft202012Validator).check_schema(doc)
    except SchemaError as e:
        location = "/".join(str(part) for part in e.absolute_path)
        # str(SchemaError) dumps the whole metaschema, keep only the message
        message = f"Invalid JSON Schema at #/{location}: {e.message}"
        error = FormatSpecificError(message, FORMAT_NAME)
        error.original = e
        raise error from e
    return doc


def normalize(schema: Schema, max_depth: int = 64) -> Node:
    doc = check_syntax(schema.content)
    node = JsonSchemaNormalizer(FORMAT_NAME, max_depth).normalize(doc)
    logger.debug("json_schema_normalized", version=str(schema.version))
    return node


def render(instruction: MigrationInstruction, context: RenderContext) -> str:
    """Render an instruction as a JSON Schema editing step."""
    if instruction.container[-1:] and instruction.container[-1] in DEFINITION_KEYS:
        return instruction.describe("definition")
    return instruction.describe("property")


def document_metadata(content: str) -> dict[str, str]:
    doc = _load_document(content)
    if isinstance(doc, dict) and isinstance(doc.get("$schema"), str):
        return {"dialect": doc["$schema"]}
    return {}


RULES = RuleTable(
    format=SchemaFormat.JSON_SCHEMA,
    removal=deprecation_removal(FORMAT_NAME),
    type_change=json_type_change,
)

ADAPTER = FormatAdapter(
    format=SchemaFormat.JSON_SCHEMA,
    check_syntax=check_syntax,
    normalize=normalize,
    render=render,
    rules=RULES,
    document_metadata=document_metadata,
    extensions=(".schema.json",),
)
