"""Structural comparison of normalized schema trees.

The comparator is format-agnostic: it walks two trees side by side and
records every structural delta as an unclassified Change. Severity is
assigned afterwards by the rule set.

Traversal order is fixed so identical inputs always yield the same sequence:
members are visited in the old node's declared order, then members that only
exist in the new node follow in the new node's declared order.
"""

from typing import Any

from schemadiff.exceptions import ComparisonError
from schemadiff.schema.models import Change, ChangeKind, format_location
from schemadiff.schema.nodes import (
    ArrayNode,
    Node,
    ObjectNode,
    ReferenceNode,
    ScalarNode,
    UnionNode,
    describe_type,
    shape_of,
    structurally_equal,
)
from schemadiff.utils.logging import get_logger

logger = get_logger(__name__)

ELEMENT_SEGMENT = "[]"

# Bounds where a larger new value means fewer accepted values
LOWER_BOUNDS = frozenset(
    {"minimum", "exclusive_minimum", "min_length", "min_items", "min_properties"}
)
# Bounds where a smaller new value means fewer accepted values
UPPER_BOUNDS = frozenset(
    {"maximum", "exclusive_maximum", "max_length", "max_items", "max_properties"}
)
# Boolean constraints that reject more values when switched on
TIGHTENING_FLAGS = frozenset({"unique", "unique_items", "primary_key"})
# Boolean constraints that accept more values when switched on
LOOSENING_FLAGS = frozenset({"nullable"})
# Constraints where any change is treated as tightening
EXACT_CONSTRAINTS = frozenset({"pattern", "format", "const", "multiple_of"})

_MISSING = object()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _label(path: tuple[str, ...]) -> str:
    return path[-1] if path else "<root>"


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else [value]


class SchemaComparator:
    """Compare two normalized schema trees."""

    def __init__(self, max_depth: int = 64):
        """Initialize comparator.

        Args:
            max_depth: Maximum nesting depth before comparison is aborted
        """
        self.max_depth = max_depth

    def compare_schemas(self, old: Node, new: Node) -> list[Change]:
        """Compare two trees rooted at the same logical entity.

        Args:
            old: Normalized tree of the old schema version
            new: Normalized tree of the new schema version

        Returns:
            Unclassified changes in deterministic traversal order

        Raises:
            ComparisonError: If the roots are of different node types (other than
                a node and a union containing it) or the trees are nested deeper
                than ``max_depth``
        """
        if type(old) is not type(new) and self._union_partner(old, new) is None:
            raise ComparisonError(
                f"Cannot compare a {shape_of(old)} root with a {shape_of(new)} root"
            )

        changes: list[Change] = []
        self._compare(old, new, (), 0, changes)

        logger.debug(
            "schema_comparison_complete",
            changes_count=len(changes),
            root=shape_of(old),
        )
        return changes

    def _compare(
        self,
        old: Node,
        new: Node,
        path: tuple[str, ...],
        depth: int,
        changes: list[Change],
    ) -> None:
        """Compare two nodes located at the same path."""
        if depth > self.max_depth:
            raise ComparisonError(
                f"Schema nesting at {format_location(path)} exceeds maximum depth "
                f"of {self.max_depth}"
            )

        if type(old) is not type(new):
            if not self._compare_with_union(old, new, path, depth, changes):
                changes.append(self._type_change(path, old, new))
            return

        if isinstance(old, ScalarNode):
            self._compare_scalars(old, new, path, changes)
        elif isinstance(old, ObjectNode):
            self._compare_objects(old, new, path, depth, changes)
        elif isinstance(old, ArrayNode):
            self._compare_arrays(old, new, path, depth, changes)
        elif isinstance(old, UnionNode):
            self._compare_unions(old, new, path, depth, changes)
        elif isinstance(old, ReferenceNode):
            if old.target != new.target:
                changes.append(self._type_change(path, old, new))
        else:
            raise TypeError(f"Not a schema node: {type(old).__name__}")

    def _type_change(self, path: tuple[str, ...], old: Node, new: Node) -> Change:
        old_type = describe_type(old)
        new_type = describe_type(new)
        return Change(
            location=path,
            kind=ChangeKind.TYPE_CHANGED,
            description=f"Type of '{_label(path)}' changed: {old_type} → {new_type}",
            context={
                "old_type": old_type,
                "new_type": new_type,
                "identity": new.identity if new.identity is not None else old.identity,
            },
            old_node=old,
            new_node=new,
        )

    def _compare_scalars(
        self,
        old: ScalarNode,
        new: ScalarNode,
        path: tuple[str, ...],
        changes: list[Change],
    ) -> None:
        if old.primitive != new.primitive:
            changes.append(self._type_change(path, old, new))

        self._compare_constraints(path, old.constraints, new.constraints, changes)

    def _compare_objects(
        self,
        old: ObjectNode,
        new: ObjectNode,
        path: tuple[str, ...],
        depth: int,
        changes: list[Change],
    ) -> None:
        partners = self._match_members(old, new)
        matched_new = set(partners.values())
        container = dict(new.metadata)

        for name, old_child in old.fields.items():
            child_path = path + (name,)
            partner = partners.get(name)

            if partner is None:
                is_required = name in old.required
                changes.append(
                    Change(
                        location=child_path,
                        kind=ChangeKind.REMOVED,
                        description=f"Field '{name}' was removed"
                        + (" (was required)" if is_required else ""),
                        context={
                            "required": is_required,
                            "identity": old_child.identity,
                            "container_metadata": container,
                        },
                        old_node=old_child,
                    )
                )
                continue

            new_child = new.fields[partner]
            target_path = path + (partner,)

            if partner != name:
                changes.append(
                    Change(
                        location=child_path,
                        kind=ChangeKind.RENAMED,
                        description=f"Field '{name}' was renamed to '{partner}'",
                        context={
                            "new_name": partner,
                            "identity": old_child.identity,
                            "container_metadata": container,
                        },
                        old_node=old_child,
                        new_node=new_child,
                    )
                )

            elif old_child.identity != new_child.identity:
                changes.append(
                    Change(
                        location=child_path,
                        kind=ChangeKind.OTHER,
                        description=f"Identity of '{name}' changed: "
                        f"{old_child.identity} → {new_child.identity}",
                        context={
                            "old_identity": old_child.identity,
                            "identity": new_child.identity,
                            "container_metadata": container,
                        },
                        old_node=old_child,
                        new_node=new_child,
                    )
                )

            was_required = name in old.required
            now_required = partner in new.required
            if was_required != now_required:
                before, after = (
                    ("optional", "required") if now_required else ("required", "optional")
                )
                changes.append(
                    Change(
                        location=target_path,
                        kind=ChangeKind.REQUIREDNESS_CHANGED,
                        description=f"Field '{partner}' changed from {before} to {after}",
                        context={
                            "now_required": now_required,
                            "identity": new_child.identity,
                            "container_metadata": container,
                        },
                        old_node=old_child,
                        new_node=new_child,
                    )
                )

            self._compare(old_child, new_child, target_path, depth + 1, changes)

        for name, new_child in new.fields.items():
            if name in matched_new:
                continue

            is_required = name in new.required
            changes.append(
                Change(
                    location=path + (name,),
                    kind=ChangeKind.ADDED,
                    description=f"Field '{name}' was added"
                    + (" (required)" if is_required else " (optional)"),
                    context={
                        "required": is_required,
                        "identity": new_child.identity,
                        "container_metadata": container,
                    },
                    new_node=new_child,
                )
            )

    def _match_members(self, old: ObjectNode, new: ObjectNode) -> dict[str, str]:
        """Pair old member names with new member names.

        Identity keys win over names: a member whose identity reappears under
        another name is a rename, and two members sharing a name but carrying
        different identities are different members.

        Returns:
            Dict of {old_name: new_name} for every matched member
        """
        partners: dict[str, str] = {}
        taken: set[str] = set()

        new_by_identity: dict[str, str] = {}
        for name, child in new.fields.items():
            if child.identity is not None:
                new_by_identity.setdefault(child.identity, name)

        for name, child in old.fields.items():
            if child.identity is None:
                continue
            partner = new_by_identity.get(child.identity)
            if partner is not None and partner not in taken:
                partners[name] = partner
                taken.add(partner)

        for name, child in old.fields.items():
            if name in partners or name not in new.fields or name in taken:
                continue
            candidate = new.fields[name]
            if (
                child.identity is not None
                and candidate.identity is not None
                and child.identity != candidate.identity
            ):
                continue
            partners[name] = name
            taken.add(name)

        return partners

    def _compare_arrays(
        self,
        old: ArrayNode,
        new: ArrayNode,
        path: tuple[str, ...],
        depth: int,
        changes: list[Change],
    ) -> None:
        self._compare(old.element, new.element, path + (ELEMENT_SEGMENT,), depth + 1, changes)

        old_bounds = {
            key: value
            for key, value in (("min_length", old.min_length), ("max_length", old.max_length))
            if value is not None
        }
        new_bounds = {
            key: value
            for key, value in (("min_length", new.min_length), ("max_length", new.max_length))
            if value is not None
        }
        self._compare_constraints(path, old_bounds, new_bounds, changes)

    def _compare_unions(
        self,
        old: UnionNode,
        new: UnionNode,
        path: tuple[str, ...],
        depth: int,
        changes: list[Change],
    ) -> None:
        old_alts = list(old.alternatives)
        new_alts = list(new.alternatives)
        unmatched_new = list(range(len(new_alts)))
        matches: dict[int, int] = {}

        # Exact structural matches first, then same-shape matches
        for same in (structurally_equal, lambda a, b: shape_of(a) == shape_of(b)):
            for i, alt in enumerate(old_alts):
                if i in matches:
                    continue
                for j in unmatched_new:
                    if same(alt, new_alts[j]):
                        matches[i] = j
                        unmatched_new.remove(j)
                        break

        used_labels: set[str] = set()

        for i, alt in enumerate(old_alts):
            label = self._alternative_label(alt, used_labels)
            alt_path = path + (label,)
            if i in matches:
                self._compare(alt, new_alts[matches[i]], alt_path, depth + 1, changes)
            else:
                changes.append(self._alternative_change(path, label, alt, added=False))

        for j in unmatched_new:
            alt = new_alts[j]
            label = self._alternative_label(alt, used_labels)
            changes.append(self._alternative_change(path, label, alt, added=True))

    @staticmethod
    def _alternative_label(alt: Node, used: set[str]) -> str:
        """Location segment for a union alternative, unique within the union."""
        base = f"|{shape_of(alt)}"
        label = base
        counter = 2
        while label in used:
            label = f"{base}#{counter}"
            counter += 1
        used.add(label)
        return label

    @staticmethod
    def _alternative_change(
        path: tuple[str, ...], label: str, alt: Node, added: bool
    ) -> Change:
        verb = "added to" if added else "removed from"
        return Change(
            location=path + (label,),
            kind=ChangeKind.ADDED if added else ChangeKind.REMOVED,
            description=f"Alternative '{describe_type(alt)}' was {verb} '{_label(path)}'",
            context={"required": False, "union_alternative": True},
            old_node=None if added else alt,
            new_node=alt if added else None,
        )

    @staticmethod
    def _union_partner(old: Node, new: Node) -> int | None:
        """Index of the alternative matching the plain side when exactly one side is a union."""
        if isinstance(new, UnionNode) and not isinstance(old, UnionNode):
            single, alternatives = old, new.alternatives
        elif isinstance(old, UnionNode) and not isinstance(new, UnionNode):
            single, alternatives = new, old.alternatives
        else:
            return None

        for same in (structurally_equal, lambda a, b: shape_of(a) == shape_of(b)):
            for index, alt in enumerate(alternatives):
                if same(single, alt):
                    return index
        return None

    def _compare_with_union(
        self,
        old: Node,
        new: Node,
        path: tuple[str, ...],
        depth: int,
        changes: list[Change],
    ) -> bool:
        """Compare a node with a union that gained or lost alternatives around it.

        The matching alternative is compared in place and every other
        alternative is reported as added (widening) or removed (narrowing).

        Returns:
            False if neither side is a union containing the other
        """
        index = self._union_partner(old, new)
        if index is None:
            return False

        widened = isinstance(new, UnionNode)
        union = new if widened else old
        partner = union.alternatives[index]
        if widened:
            self._compare(old, partner, path, depth + 1, changes)
        else:
            self._compare(partner, new, path, depth + 1, changes)

        used_labels = {self._alternative_label(partner, set())}
        for i, alt in enumerate(union.alternatives):
            if i != index:
                label = self._alternative_label(alt, used_labels)
                changes.append(self._alternative_change(path, label, alt, added=widened))
        return True

    def _compare_constraints(
        self,
        path: tuple[str, ...],
        old: dict[str, Any],
        new: dict[str, Any],
        changes: list[Change],
    ) -> None:
        """Emit one change per constraint whose value differs."""
        names = list(old) + [name for name in new if name not in old]

        for name in names:
            old_value = old.get(name, _MISSING)
            new_value = new.get(name, _MISSING)
            if old_value == new_value:
                continue

            kind, summary = self._classify_constraint(name, old_value, new_value)
            if kind is None:
                continue

            context: dict[str, Any] = {
                "constraint": name,
                "old_value": None if old_value is _MISSING else old_value,
                "new_value": None if new_value is _MISSING else new_value,
            }
            if name == "enum" and old_value is not _MISSING and new_value is not _MISSING:
                old_values, new_values = _as_list(old_value), _as_list(new_value)
                context["removed_values"] = [v for v in old_values if v not in new_values]
                context["added_values"] = [v for v in new_values if v not in old_values]

            changes.append(
                Change(
                    location=path + (f"@{name}",),
                    kind=kind,
                    description=f"Constraint '{name}' on '{_label(path)}' {summary}",
                    context=context,
                )
            )

    @staticmethod
    def _classify_constraint(
        name: str, old_value: Any, new_value: Any
    ) -> tuple[ChangeKind | None, str]:
        """Decide whether a constraint change narrows or widens accepted values.

        Returns:
            Tuple of (change kind or None when nothing changed, summary text)
        """
        tightened = ChangeKind.CONSTRAINT_TIGHTENED
        loosened = ChangeKind.CONSTRAINT_LOOSENED

        if name in TIGHTENING_FLAGS or name in LOOSENING_FLAGS:
            before = bool(old_value) if old_value is not _MISSING else False
            after = bool(new_value) if new_value is not _MISSING else False
            if before == after:
                return None, ""
            switched_on = after and not before
            kind = tightened if (switched_on == (name in TIGHTENING_FLAGS)) else loosened
            return kind, ("enabled" if switched_on else "disabled")

        if old_value is _MISSING:
            summary = f"added ({new_value})"
        elif new_value is _MISSING:
            summary = f"removed (was {old_value})"
        else:
            summary = f"changed: {old_value} → {new_value}"

        known = name in LOWER_BOUNDS or name in UPPER_BOUNDS or name in EXACT_CONSTRAINTS
        if not known and name != "enum":
            return ChangeKind.OTHER, summary

        if old_value is _MISSING:
            return tightened, summary
        if new_value is _MISSING:
            return loosened, summary

        if name in LOWER_BOUNDS or name in UPPER_BOUNDS:
            if _is_number(old_value) and _is_number(new_value):
                narrower = new_value > old_value if name in LOWER_BOUNDS else new_value < old_value
                verb = "tightened" if narrower else "relaxed"
                return (tightened if narrower else loosened), f"{verb}: {old_value} → {new_value}"
            return tightened, f"changed: {old_value} → {new_value}"

        if name == "enum":
            old_values, new_values = _as_list(old_value), _as_list(new_value)
            removed = [v for v in old_values if v not in new_values]
            added = [v for v in new_values if v not in old_values]
            if removed:
                return tightened, f"dropped values {removed}"
            if added:
                return loosened, f"gained values {added}"
            return ChangeKind.OTHER, "values reordered"

        return tightened, summary
