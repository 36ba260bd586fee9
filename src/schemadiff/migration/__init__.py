"""Migration planning between schema versions."""

from schemadiff.migration.models import (
    InstructionAction,
    MigrationInstruction,
    MigrationPlan,
    RenderContext,
)
from schemadiff.migration.planner import MigrationPlanner

__all__ = [
    "InstructionAction",
    "MigrationInstruction",
    "MigrationPlan",
    "MigrationPlanner",
    "RenderContext",
]
