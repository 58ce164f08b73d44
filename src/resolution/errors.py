"""Typed failures produced by resolution and lockfile handling."""

from __future__ import annotations

from typing import List, Optional, Sequence

from versioning.models import Requirement


class ResolutionError(Exception):
    """Base class for every outcome that prevents a lockfile from being produced."""


class ConstraintConflict(ResolutionError):
    """No assignment satisfies every requirement on ``name``.

    Attributes:
        name: Package whose requirements could not be reconciled.
        requirements: Every requirement that contributed, with provenance.
    """

    def __init__(self, name: str, requirements: Sequence[Requirement]):
        self.name = name
        self.requirements: List[Requirement] = list(requirements)
        super().__init__(self.explanation())

    def explanation(self) -> str:
        """Human readable chain naming each conflicting requirement and who introduced it."""
        lines = [f'Could not find compatible versions for package "{self.name}":']
        for req in self.requirements:
            lines.append(f"  {req.provenance.describe()} requires {req.describe()}")
        return "\n".join(lines)


class MissingPackage(ResolutionError):
    """A required name has no candidates in any declared source."""

    def __init__(self, name: str, requirements: Sequence[Requirement] = ()):
        self.name = name
        self.requirements: List[Requirement] = list(requirements)
        origins = ", ".join(sorted({r.provenance.describe() for r in self.requirements}))
        detail = f" (required by {origins})" if origins else ""
        super().__init__(f'Could not find package "{name}" in any of the sources{detail}')


class NoMatchingPlatform(ResolutionError):
    """Candidates exist for ``name`` but none fits the requested platforms."""

    def __init__(self, name: str, platforms: Sequence[str], available: Sequence[str]):
        self.name = name
        self.platforms = list(platforms)
        self.available = list(available)
        super().__init__(
            f'Package "{name}" is not available for platforms {", ".join(self.platforms)}'
            f' (available: {", ".join(self.available)})'
        )


class Cancelled(ResolutionError):
    """Resolution aborted by the caller or a limit; not a user error."""

    def __init__(self, reason: str = "cancelled"):
        self.reason = reason
        super().__init__(f"Resolution cancelled: {reason}")


class LockfileError(Exception):
    """Base class for lockfile failures."""


class LockfileParseError(LockfileError):
    """Malformed lockfile text.

    Attributes:
        line: 1-based line number, or None when the error is not tied to a line.
        message: What was wrong.
    """

    def __init__(self, line: Optional[int], message: str):
        self.line = line
        self.message = message
        where = f"line {line}: " if line is not None else ""
        super().__init__(f"{where}{message}")


class ChecksumMismatch(LockfileError):
    """Observed package content does not match the locked checksum."""

    def __init__(self, name: str, expected: str, observed: str):
        self.name = name
        self.expected = expected
        self.observed = observed
        super().__init__(f"Checksum mismatch for {name}: expected {expected}, got {observed}")
