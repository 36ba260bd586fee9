"""OpenAPI adapter.

An API description is normalized into one object tree:

  paths/<path>/<method>/parameters/<in>:<name>
  paths/<path>/<method>/requestBody/<media type>
  paths/<path>/<method>/responses/<status>/<media type>
  components/schemas/<name>

Schemas inside the document are normalized with the JSON Schema normalizer.
Swagger 2 documents are accepted with ``definitions`` treated as component
schemas and non-body parameters read as inline schemas.
"""

from typing import Any

import yaml

from schemadiff.adapters import FormatAdapter
from schemadiff.adapters.json_schema import (
    JsonSchemaNormalizer,
    deprecation_removal,
    json_type_change,
)
from schemadiff.exceptions import FormatSpecificError, ParseError
from schemadiff.migration.models import MigrationInstruction, RenderContext
from schemadiff.schema.models import Schema, SchemaFormat
from schemadiff.schema.nodes import Node, ObjectNode, ScalarNode
from schemadiff.schema.rules import RuleTable
from schemadiff.utils.logging import get_logger

logger = get_logger(__name__)

FORMAT_NAME = SchemaFormat.OPENAPI.value

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

# Keys on a Swagger 2 parameter that are not part of its value schema
PARAMETER_KEYS = ("name", "in", "description", "required", "deprecated", "allowEmptyValue")


def check_syntax(content: str) -> dict[str, Any]:
    """Parse YAML/JSON text and require an OpenAPI or Swagger document.

    Raises:
        FormatSpecificError: If the text is not valid YAML
        ParseError: If the document is not an API description
    """
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise FormatSpecificError("Invalid YAML", FORMAT_NAME, original=e) from e

    if not isinstance(doc, dict):
        raise ParseError("OpenAPI document root must be a mapping", FORMAT_NAME)
    if "openapi" not in doc and "swagger" not in doc:
        raise ParseError("Document declares neither 'openapi' nor 'swagger'", FORMAT_NAME)
    return doc


class OpenAPINormalizer:
    """Builds the normalized tree of an API description."""

    def __init__(self, max_depth: int = 64):
        self.schemas = JsonSchemaNormalizer(FORMAT_NAME, max_depth)

    def normalize(self, doc: dict[str, Any]) -> ObjectNode:
        fields: dict[str, Node] = {}

        paths = doc.get("paths") or {}
        if not isinstance(paths, dict):
            raise ParseError("'paths' must be a mapping", FORMAT_NAME)
        fields["paths"] = ObjectNode(
            fields={path: self._path_item(path, item) for path, item in paths.items()}
        )

        components = doc.get("components") or {}
        schemas = components.get("schemas") if isinstance(components, dict) else None
        if schemas is None:
            schemas = doc.get("definitions")
        if schemas:
            fields["components"] = ObjectNode(
                fields={
                    "schemas": ObjectNode(
                        fields={
                            name: self.schemas.normalize(sub, f"#/components/schemas/{name}", 2)
                            for name, sub in schemas.items()
                        }
                    )
                }
            )

        return ObjectNode(fields=fields)

    def _path_item(self, path: str, item: Any) -> ObjectNode:
        if not isinstance(item, dict):
            raise ParseError(f"Path item '{path}' must be a mapping", FORMAT_NAME)

        shared = item.get("parameters") or []
        operations = {
            method: self._operation(path, method, item[method], shared)
            for method in HTTP_METHODS
            if method in item
        }
        return ObjectNode(fields=operations)

    def _operation(
        self, path: str, method: str, operation: Any, shared: list[Any]
    ) -> ObjectNode:
        if not isinstance(operation, dict):
            raise ParseError(f"Operation {method.upper()} {path} must be a mapping", FORMAT_NAME)

        pointer = f"#/paths/{path}/{method}"
        fields: dict[str, Node] = {}
        required: set[str] = set()

        parameters, required_parameters, body = self._parameters(
            pointer, list(shared) + list(operation.get("parameters") or [])
        )
        if parameters:
            fields["parameters"] = ObjectNode(
                fields=parameters, required=frozenset(required_parameters)
            )

        request_body = operation.get("requestBody") or body
        if request_body:
            fields["requestBody"] = self._content(f"{pointer}/requestBody", request_body)
            if request_body.get("required"):
                required.add("requestBody")

        responses = operation.get("responses") or {}
        fields["responses"] = ObjectNode(
            fields={
                str(status): self._content(f"{pointer}/responses/{status}", response)
                for status, response in responses.items()
            }
        )

        notes: dict[str, Any] = {}
        if operation.get("deprecated"):
            notes["deprecated"] = True
        if operation.get("operationId"):
            notes["operation_id"] = operation["operationId"]

        return ObjectNode(
            fields=fields,
            required=frozenset(required),
            metadata={FORMAT_NAME: notes} if notes else {},
        )

    def _parameters(
        self, pointer: str, parameters: list[Any]
    ) -> tuple[dict[str, Node], set[str], dict[str, Any] | None]:
        """Normalize parameters keyed ``<in>:<name>``; operation-level entries win.

        Returns:
            Tuple of (parameter nodes, required parameter keys, Swagger 2 body)
        """
        nodes: dict[str, Node] = {}
        required: set[str] = set()
        body = None

        for parameter in parameters:
            if not isinstance(parameter, dict):
                raise ParseError(f"Parameter in {pointer} must be a mapping", FORMAT_NAME)
            if "$ref" in parameter:
                key = f"ref:{parameter['$ref']}"
                nodes[key] = self.schemas.normalize(parameter, f"{pointer}/parameters", 3)
                continue

            location = parameter.get("in", "query")
            if location == "body":
                body = {
                    "required": parameter.get("required", False),
                    "content": {"application/json": {"schema": parameter.get("schema", {})}},
                }
                continue

            key = f"{location}:{parameter.get('name', '')}"
            schema = parameter.get("schema")
            if schema is None:
                schema = {k: v for k, v in parameter.items() if k not in PARAMETER_KEYS}
            node = self.schemas.normalize(schema, f"{pointer}/parameters/{key}", 3)
            if parameter.get("deprecated"):
                node = _with_note(node, "deprecated")
            nodes[key] = node

            required.discard(key)
            if parameter.get("required") or location == "path":
                required.add(key)

        return nodes, required, body

    def _content(self, pointer: str, holder: Any) -> ObjectNode:
        """Normalize a request body or response by media type."""
        if not isinstance(holder, dict):
            raise ParseError(f"{pointer} must be a mapping", FORMAT_NAME)
        if "$ref" in holder:
            return ObjectNode(fields={"$ref": self.schemas.normalize(holder, pointer, 3)})

        content = holder.get("content")
        if content is None and "schema" in holder:
            # Swagger 2 response
            content = {"application/json": {"schema": holder["schema"]}}

        return ObjectNode(
            fields={
                media_type: self.schemas.normalize(
                    (media or {}).get("schema", True), f"{pointer}/{media_type}", 3
                )
                for media_type, media in (content or {}).items()
            }
        )


def _with_note(node: Node, note: str) -> Node:
    metadata = {**node.metadata, FORMAT_NAME: {**node.metadata.get(FORMAT_NAME, {}), note: True}}
    if isinstance(node, ScalarNode):
        return ScalarNode(node.primitive, node.constraints, node.identity, metadata)
    return node


def normalize(schema: Schema, max_depth: int = 64) -> Node:
    doc = check_syntax(schema.content)
    node = OpenAPINormalizer(max_depth).normalize(doc)
    logger.debug(
        "openapi_normalized",
        paths_count=len(node.fields["paths"].fields),
        version=str(schema.version),
    )
    return node


def render(instruction: MigrationInstruction, context: RenderContext) -> str:
    """Render an instruction as an API description editing step."""
    container = instruction.container
    if container == ("paths",):
        noun = "path"
    elif len(container) == 2 and container[0] == "paths":
        noun = "operation"
    elif container[-1:] == ("parameters",):
        noun = "parameter"
    elif container[-1:] == ("responses",):
        noun = "response"
    elif container == ("components", "schemas"):
        noun = "schema"
    elif container[:1] == ("paths",) and (
        (len(container) == 4 and container[3] == "requestBody")
        or (len(container) == 5 and container[3] == "responses")
    ):
        noun = "media type"
    else:
        noun = "property"
    return instruction.describe(noun)


def document_metadata(content: str) -> dict[str, str]:
    doc = check_syntax(content)
    metadata = {"spec_version": str(doc.get("openapi") or doc.get("swagger"))}
    info = doc.get("info") or {}
    if isinstance(info, dict) and info.get("version") is not None:
        metadata["info_version"] = str(info["version"])
    return metadata


RULES = RuleTable(
    format=SchemaFormat.OPENAPI,
    removal=deprecation_removal(FORMAT_NAME),
    type_change=json_type_change,
)

ADAPTER = FormatAdapter(
    format=SchemaFormat.OPENAPI,
    check_syntax=check_syntax,
    normalize=normalize,
    render=render,
    rules=RULES,
    document_metadata=document_metadata,
    extensions=(".yaml", ".yml"),
)
