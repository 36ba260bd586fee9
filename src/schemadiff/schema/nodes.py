"""Normalized schema tree shared by every format adapter.

Adapters turn raw schema text into a tree of the five node types below. The
comparator, rule set and planner only ever see this tree, never the original
document. Each node may carry:

  identity  - a format-specific stable key (protobuf field number, JSON Schema
              ``$id``) used to match members across versions when names change
  metadata  - an opaque side-channel keyed by format name
              (``{"sql": {"nullable": True, "primary_key": False}}``)
"""

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class ScalarNode:
    """A primitive value with optional constraints (maximum, pattern, enum, ...)."""

    primitive: str
    constraints: dict[str, Any] = field(default_factory=dict)
    identity: str | None = None
    metadata: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class ObjectNode:
    """A record of named members. ``fields`` preserves declaration order."""

    fields: dict[str, "Node"] = field(default_factory=dict)
    required: frozenset[str] = frozenset()
    identity: str | None = None
    metadata: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class ArrayNode:
    """A homogeneous sequence compared by element shape."""

    element: "Node"
    min_length: int | None = None
    max_length: int | None = None
    identity: str | None = None
    metadata: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class UnionNode:
    """One of several alternative shapes."""

    alternatives: tuple["Node", ...] = ()
    identity: str | None = None
    metadata: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class ReferenceNode:
    """A pointer to a named definition (``$ref``, message type name)."""

    target: str
    identity: str | None = None
    metadata: dict[str, dict[str, Any]] = field(default_factory=dict)


Node = Union[ScalarNode, ObjectNode, ArrayNode, UnionNode, ReferenceNode]


def node_metadata(node: Node | None, format_name: str) -> dict[str, Any]:
    """Return the metadata side-channel of a node for one format (empty if absent)."""
    if node is None:
        return {}
    return node.metadata.get(format_name, {})


def shape_of(node: Node) -> str:
    """Short shape signature used for union matching and path labels."""
    if isinstance(node, ScalarNode):
        return node.primitive
    if isinstance(node, ObjectNode):
        return "object"
    if isinstance(node, ArrayNode):
        return "array"
    if isinstance(node, UnionNode):
        return "union"
    if isinstance(node, ReferenceNode):
        return f"ref:{node.target}"
    raise TypeError(f"Not a schema node: {type(node).__name__}")


def describe_type(node: Node) -> str:
    """Human-readable type of a node, e.g. ``array<string>`` or ``string|null``."""
    if isinstance(node, ScalarNode):
        return node.primitive
    if isinstance(node, ObjectNode):
        return "object"
    if isinstance(node, ArrayNode):
        return f"array<{describe_type(node.element)}>"
    if isinstance(node, UnionNode):
        return "|".join(describe_type(alt) for alt in node.alternatives) or "union"
    if isinstance(node, ReferenceNode):
        return node.target
    raise TypeError(f"Not a schema node: {type(node).__name__}")


def structurally_equal(old: Node, new: Node) -> bool:
    """Compare two trees ignoring the metadata side-channel."""
    if type(old) is not type(new):
        return False
    if old.identity != new.identity:
        return False

    if isinstance(old, ScalarNode):
        return old.primitive == new.primitive and old.constraints == new.constraints

    if isinstance(old, ObjectNode):
        # Member order is not structure
        if set(old.fields) != set(new.fields) or old.required != new.required:
            return False
        return all(structurally_equal(old.fields[name], new.fields[name]) for name in old.fields)

    if isinstance(old, ArrayNode):
        return (
            old.min_length == new.min_length
            and old.max_length == new.max_length
            and structurally_equal(old.element, new.element)
        )

    if isinstance(old, UnionNode):
        if len(old.alternatives) != len(new.alternatives):
            return False
        unmatched = list(new.alternatives)
        for alt in old.alternatives:
            partner = next((cand for cand in unmatched if structurally_equal(alt, cand)), None)
            if partner is None:
                return False
            unmatched.remove(partner)
        return True

    if isinstance(old, ReferenceNode):
        return old.target == new.target

    raise TypeError(f"Not a schema node: {type(old).__name__}")
