"""Dependency resolution: graph building, backtracking search and typed failures.

The ``resolve`` and ``check`` entry points live in ``resolution.service``.
"""

from .cancel import CancellationToken
from .errors import (
    Cancelled,
    ChecksumMismatch,
    ConstraintConflict,
    LockfileError,
    LockfileParseError,
    MissingPackage,
    NoMatchingPlatform,
    ResolutionError,
)
from .resolver import Resolver
from .state import Resolution

__all__ = [
    "CancellationToken",
    "Cancelled",
    "ChecksumMismatch",
    "ConstraintConflict",
    "LockfileError",
    "LockfileParseError",
    "MissingPackage",
    "NoMatchingPlatform",
    "Resolution",
    "ResolutionError",
    "Resolver",
]
