"""Data models for migration planning."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from schemadiff.schema.models import Change, ChangeKind, SchemaFormat, format_location
from schemadiff.schema.nodes import Node, describe_type


class InstructionAction(Enum):
    """Abstract migration actions, listed in execution phase order."""

    DROP = "drop"
    MAKE_OPTIONAL = "make_optional"
    RENAME = "rename"
    CHANGE_TYPE = "change_type"
    LOOSEN_CONSTRAINT = "loosen_constraint"
    REVIEW = "review"
    ADD = "add"
    TIGHTEN_CONSTRAINT = "tighten_constraint"
    MAKE_REQUIRED = "make_required"

    @property
    def phase(self) -> int:
        """Execution phase within a container (lower runs first)."""
        return _PHASES[self]

    @classmethod
    def for_change(cls, change: Change) -> "InstructionAction":
        kind = change.kind
        if kind is ChangeKind.REMOVED:
            return cls.DROP
        if kind is ChangeKind.ADDED:
            return cls.ADD
        if kind is ChangeKind.RENAMED:
            return cls.RENAME
        if kind is ChangeKind.TYPE_CHANGED:
            return cls.CHANGE_TYPE
        if kind is ChangeKind.CONSTRAINT_TIGHTENED:
            return cls.TIGHTEN_CONSTRAINT
        if kind is ChangeKind.CONSTRAINT_LOOSENED:
            return cls.LOOSEN_CONSTRAINT
        if kind is ChangeKind.REQUIREDNESS_CHANGED:
            if change.context.get("now_required", True):
                return cls.MAKE_REQUIRED
            return cls.MAKE_OPTIONAL
        return cls.REVIEW


_PHASES = {
    InstructionAction.DROP: 0,
    InstructionAction.MAKE_OPTIONAL: 1,
    InstructionAction.RENAME: 2,
    InstructionAction.CHANGE_TYPE: 3,
    InstructionAction.LOOSEN_CONSTRAINT: 4,
    InstructionAction.REVIEW: 4,
    InstructionAction.ADD: 5,
    InstructionAction.TIGHTEN_CONSTRAINT: 6,
    InstructionAction.MAKE_REQUIRED: 7,
}


@dataclass(frozen=True)
class MigrationInstruction:
    """One abstract migration step derived from a single change.

    ``member_path`` is the member the step acts on. For constraint changes that
    is the location without its trailing ``@constraint`` segment.
    """

    action: InstructionAction
    change: Change

    @property
    def constraint(self) -> str | None:
        """Constraint name for constraint changes."""
        if self.change.location and self.change.location[-1].startswith("@"):
            return self.change.location[-1][1:]
        return None

    @property
    def member_path(self) -> tuple[str, ...]:
        if self.constraint is not None:
            return self.change.location[:-1]
        return self.change.location

    @property
    def container(self) -> tuple[str, ...]:
        """Location of the object holding the member."""
        return self.member_path[:-1]

    @property
    def member(self) -> str:
        return self.member_path[-1] if self.member_path else "<root>"

    @property
    def old_node(self) -> Node | None:
        return self.change.old_node

    @property
    def new_node(self) -> Node | None:
        return self.change.new_node

    def describe(self, noun: str = "member") -> str:
        """Format-neutral rendering used when a format has no statement syntax."""
        member = self.member
        where = format_location(self.container)
        context = self.change.context
        action = self.action

        if action is InstructionAction.DROP:
            return f"Remove {noun} '{member}' from {where}"
        if action is InstructionAction.ADD:
            presence = "required" if context.get("required") else "optional"
            type_text = f" ({describe_type(self.new_node)})" if self.new_node is not None else ""
            return f"Add {presence} {noun} '{member}'{type_text} to {where}"
        if action is InstructionAction.RENAME:
            return f"Rename {noun} '{member}' to '{context.get('new_name')}' in {where}"
        if action is InstructionAction.CHANGE_TYPE:
            return (
                f"Change type of {noun} {format_location(self.member_path)} "
                f"from {context.get('old_type')} to {context.get('new_type')}"
            )
        if action is InstructionAction.MAKE_REQUIRED:
            return f"Mark {noun} '{member}' in {where} as required"
        if action is InstructionAction.MAKE_OPTIONAL:
            return f"Mark {noun} '{member}' in {where} as optional"
        if action in (InstructionAction.TIGHTEN_CONSTRAINT, InstructionAction.LOOSEN_CONSTRAINT):
            target = format_location(self.member_path)
            new_value = context.get("new_value")
            if new_value is None:
                return f"Remove constraint '{self.constraint}' from {target}"
            return f"Set constraint '{self.constraint}' on {target} to {new_value!r}"
        return f"Review {format_location(self.change.location)}: {self.change.description}"


@dataclass(frozen=True)
class RenderContext:
    """Target information passed to adapters when rendering steps."""

    format: SchemaFormat
    dialect: str | None = None
    source_version: str = ""
    target_version: str = ""


@dataclass(frozen=True)
class MigrationPlan:
    """Ordered migration steps between two schema versions."""

    steps: tuple[str, ...] = ()
    metadata: dict[str, str] = field(default_factory=dict)
    instructions: tuple[MigrationInstruction, ...] = field(
        default=(), compare=False, repr=False
    )

    @property
    def is_empty(self) -> bool:
        return not self.steps

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "steps": list(self.steps),
            "metadata": dict(self.metadata),
            "instructions": [
                {
                    "action": instruction.action.value,
                    "location": instruction.change.path,
                    "severity": (
                        instruction.change.severity.value if instruction.change.severity else None
                    ),
                }
                for instruction in self.instructions
            ],
        }
