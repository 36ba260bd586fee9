"""Migration planning: ordering classified changes into executable steps.

Changes are grouped by the container (object, table, message) holding the
member they touch. Groups keep the order in which the change sequence first
mentions them, and inside a group steps run by phase:

  drops and relaxations free names and slots first, then renames and type
  changes, then additions, and finally the tightening steps (constraints,
  optional to required) that existing data can only satisfy once the new
  members have been populated.

Ties inside a phase keep the original change order, so planning is stable.
"""

from collections.abc import Callable, Iterable, Mapping

from schemadiff.migration.models import (
    InstructionAction,
    MigrationInstruction,
    MigrationPlan,
    RenderContext,
)
from schemadiff.schema.models import Change, Severity
from schemadiff.utils.logging import get_logger

logger = get_logger(__name__)

Renderer = Callable[[MigrationInstruction, RenderContext], str]


class MigrationPlanner:
    """Orders changes and renders them through a format adapter."""

    def __init__(self, render: Renderer, context: RenderContext):
        """Initialize planner.

        Args:
            render: Adapter rendering function for single instructions
            context: Target format, dialect and version information
        """
        self.render = render
        self.context = context

    def order(self, changes: Iterable[Change]) -> list[MigrationInstruction]:
        """Order changes into abstract instructions without rendering them."""
        instructions = [
            MigrationInstruction(action=InstructionAction.for_change(change), change=change)
            for change in changes
        ]

        group_rank: dict[tuple[str, ...], int] = {}
        for instruction in instructions:
            group_rank.setdefault(instruction.container, len(group_rank))

        ranked = sorted(
            enumerate(instructions),
            key=lambda item: (
                group_rank[item[1].container],
                item[1].action.phase,
                item[0],
            ),
        )
        return [instruction for _, instruction in ranked]

    def plan(
        self,
        changes: Iterable[Change],
        metadata: Mapping[str, str] | None = None,
    ) -> MigrationPlan:
        """Build a rendered migration plan.

        Args:
            changes: Classified changes in diff order
            metadata: Extra plan metadata merged over the computed entries

        Returns:
            MigrationPlan with one rendered step per change
        """
        changes = list(changes)
        instructions = self.order(changes)
        steps = tuple(self.render(instruction, self.context) for instruction in instructions)
        breaking_count = sum(1 for change in changes if change.severity is Severity.BREAKING)

        plan_metadata = {
            "format": self.context.format.value,
            "source_version": self.context.source_version,
            "target_version": self.context.target_version,
            "is_breaking": str(breaking_count > 0).lower(),
            "step_count": str(len(steps)),
            "breaking_count": str(breaking_count),
        }
        plan_metadata.update(metadata or {})

        logger.debug(
            "migration_plan_built",
            format=self.context.format.value,
            step_count=len(steps),
            breaking_count=breaking_count,
        )
        return MigrationPlan(steps=steps, metadata=plan_metadata, instructions=tuple(instructions))
