"""Schema comparison and analysis.

This module provides the normalized schema tree, the structural comparator,
the per-format compatibility rules and the score aggregator.
"""

from schemadiff.schema.comparator import SchemaComparator
from schemadiff.schema.models import (
    Change,
    ChangeKind,
    CompatibilityIssue,
    CompatibilityReport,
    Schema,
    SchemaFormat,
    Severity,
)
from schemadiff.schema.nodes import ArrayNode, ObjectNode, ReferenceNode, ScalarNode, UnionNode
from schemadiff.schema.rules import CompatibilityRuleSet, RuleTable, Situation
from schemadiff.schema.scoring import ScoreAggregator

__all__ = [
    "SchemaComparator",
    "Change",
    "ChangeKind",
    "CompatibilityIssue",
    "CompatibilityReport",
    "Schema",
    "SchemaFormat",
    "Severity",
    "ArrayNode",
    "ObjectNode",
    "ReferenceNode",
    "ScalarNode",
    "UnionNode",
    "CompatibilityRuleSet",
    "RuleTable",
    "Situation",
    "ScoreAggregator",
]
