"""Validation module for schemadiff.

This module re-checks hand-built change sets against a format's
compatibility rules.
"""

from schemadiff.validation.change_validator import ChangeValidator

__all__ = [
    "ChangeValidator",
]
