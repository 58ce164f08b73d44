"""Version, constraint and requirement model."""

from .constraint import (
    EMPTY,
    Clause,
    Constraint,
    InvalidConstraintError,
    Operator,
    intersect,
    parse_constraint,
    satisfies,
)
from .models import PackageSpec, Provenance, Requirement, Source
from .version import InvalidVersionError, Version, compare

__all__ = [
    "EMPTY",
    "Clause",
    "Constraint",
    "InvalidConstraintError",
    "InvalidVersionError",
    "Operator",
    "PackageSpec",
    "Provenance",
    "Requirement",
    "Source",
    "Version",
    "compare",
    "intersect",
    "parse_constraint",
    "satisfies",
]
