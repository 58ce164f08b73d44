"""Version constraints: conjunctions of (operator, version) clauses.

Supported operators: ``=``, ``!=``, ``>``, ``<``, ``>=``, ``<=`` and ``~>``
("approximately greater than"). ``~> V`` admits ``V`` and everything up to,
but excluding, ``V.bump()``:

    Constraint   From  ... To (exclusive)
    "~> 3.0"     3.0   ... 4
    "~> 3.0.0"   3.0.0 ... 3.1
    "~> 3.5"     3.5   ... 4
    "~> 3"       3     ... 4

Intersecting two constraints that admit no common version yields ``EMPTY``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from .version import Version

_CLAUSE_RE = re.compile(r"^\s*(~>|>=|<=|!=|=|>|<)?\s*(\S+)\s*$")


class InvalidConstraintError(ValueError):
    """Raised when a constraint string cannot be parsed."""


class Operator(Enum):
    """Comparison operators allowed in a constraint clause."""

    EQ = "="
    NE = "!="
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    APPROX = "~>"


@dataclass(frozen=True)
class Clause:
    """A single (operator, version) pair."""

    op: Operator
    version: Version

    def satisfied_by(self, candidate: Version) -> bool:
        """Return True when ``candidate`` meets this clause."""
        cmp = candidate.compare(self.version)
        if self.op is Operator.EQ:
            return cmp == 0
        if self.op is Operator.NE:
            return cmp != 0
        if self.op is Operator.GT:
            return cmp > 0
        if self.op is Operator.LT:
            return cmp < 0
        if self.op is Operator.GE:
            return cmp >= 0
        if self.op is Operator.LE:
            return cmp <= 0
        # ~> compares the release so 2.0.0.rc1 does not slip under "~> 1.0"
        return cmp >= 0 and candidate.release() < self.version.bump()

    def __str__(self) -> str:
        return f"{self.op.value} {self.version}"


_Bound = Tuple[Version, bool]  # (version, inclusive)
_Bounds = Tuple[Optional[_Bound], Optional[_Bound], Optional[Version], List[Version], List[Version]]


class Constraint:
    """Immutable conjunction of clauses; no clauses means any version."""

    __slots__ = ("_clauses",)

    def __init__(self, clauses: Iterable[Clause] = ()) -> None:
        zero = Version("0")
        unique: List[Clause] = []
        for clause in clauses:
            # ">= 0" admits every version and is stored as no clause
            if clause.op is Operator.GE and clause.version == zero:
                continue
            if clause not in unique:
                unique.append(clause)
        self._clauses: Tuple[Clause, ...] = tuple(unique)

    @classmethod
    def any(cls) -> "Constraint":
        """Constraint admitting every version."""
        return cls()

    @classmethod
    def exact(cls, version: Union[str, Version]) -> "Constraint":
        """Constraint pinning a single version."""
        return cls([Clause(Operator.EQ, Version(version))])

    @property
    def clauses(self) -> Tuple[Clause, ...]:
        return self._clauses

    @property
    def is_any(self) -> bool:
        """True when the constraint admits every version."""
        return not self._clauses

    @property
    def mentions_prerelease(self) -> bool:
        """True when a clause names a prerelease version."""
        return any(c.version.prerelease for c in self._clauses)

    @property
    def signature(self) -> FrozenSet[Tuple[str, Version]]:
        """Order-independent identity of the admitted range."""
        return frozenset((c.op.value, c.version) for c in self._clauses)

    def satisfies(self, version: Version) -> bool:
        """Return True when ``version`` meets every clause."""
        return all(c.satisfied_by(version) for c in self._clauses)

    def _bounds(self) -> _Bounds:
        """Tightest lower and upper bounds, the ``~>`` release cap, pins and exclusions."""
        lower: Optional[_Bound] = None
        upper: Optional[_Bound] = None
        release_cap: Optional[Version] = None
        pins: List[Version] = []
        excluded: List[Version] = []

        def tighten_lower(bound: _Bound) -> None:
            nonlocal lower
            if lower is None or bound[0] > lower[0] or (bound[0] == lower[0] and not bound[1]):
                lower = bound

        def tighten_upper(bound: _Bound) -> None:
            nonlocal upper
            if upper is None or bound[0] < upper[0] or (bound[0] == upper[0] and not bound[1]):
                upper = bound

        for clause in self._clauses:
            op, ver = clause.op, clause.version
            if op is Operator.EQ:
                if ver not in pins:
                    pins.append(ver)
            elif op is Operator.NE:
                excluded.append(ver)
            elif op is Operator.GT:
                tighten_lower((ver, False))
            elif op is Operator.GE:
                tighten_lower((ver, True))
            elif op is Operator.LT:
                tighten_upper((ver, False))
            elif op is Operator.LE:
                tighten_upper((ver, True))
            else:
                bump = ver.bump()
                tighten_lower((ver, True))
                tighten_upper((bump, False))
                if release_cap is None or bump < release_cap:
                    release_cap = bump
        return lower, upper, release_cap, pins, excluded

    @property
    def is_empty(self) -> bool:
        """True when no version can satisfy every clause."""
        lower, upper, release_cap, pins, excluded = self._bounds()
        if len(pins) > 1:
            return True
        if pins:
            return not self.satisfies(pins[0])
        # ~> also rejects prereleases of its bump, so the cap applies to releases
        if release_cap is not None and lower is not None and lower[0].release() >= release_cap:
            return True
        if lower is not None and upper is not None:
            if lower[0] > upper[0]:
                return True
            if lower[0] == upper[0]:
                if not (lower[1] and upper[1]):
                    return True
                return lower[0] in excluded
        return False

    def intersect(self, other: "Constraint") -> "Constraint":
        """Return the conjunction of both constraints, or EMPTY."""
        if other is EMPTY or self is EMPTY:
            return EMPTY
        merged = Constraint(self._clauses + other.clauses)
        if merged.is_empty:
            return EMPTY
        return merged

    def __and__(self, other: "Constraint") -> "Constraint":
        return self.intersect(other)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Constraint):
            return NotImplemented
        return self.signature == other.signature

    def __hash__(self) -> int:
        return hash(self.signature)

    def __str__(self) -> str:
        if not self._clauses:
            return ">= 0"
        return ", ".join(str(c) for c in self._clauses)

    def __repr__(self) -> str:
        return f"Constraint({str(self)!r})"


class _EmptyConstraint(Constraint):
    """Marker for the empty set of versions."""

    __slots__ = ()

    @property
    def is_empty(self) -> bool:
        return True

    @property
    def is_any(self) -> bool:
        return False

    @property
    def signature(self) -> FrozenSet[Tuple[str, Version]]:
        return frozenset({("<empty>", Version("0"))})

    def satisfies(self, version: Version) -> bool:
        return False

    def intersect(self, other: Constraint) -> Constraint:
        return self

    def __str__(self) -> str:
        return "<empty>"


EMPTY: Constraint = _EmptyConstraint()


def parse_clause(text: str) -> Clause:
    """Parse ``">= 1.0"`` (or a bare version, meaning ``=``) into a Clause."""
    match = _CLAUSE_RE.match(text)
    if not match:
        raise InvalidConstraintError(f"Illformed requirement {text!r}")
    op_text, ver_text = match.group(1) or "=", match.group(2)
    try:
        version = Version(ver_text)
    except ValueError as exc:
        raise InvalidConstraintError(f"Illformed requirement {text!r}: {exc}") from exc
    return Clause(Operator(op_text), version)


def parse_constraint(spec: Union[None, str, Sequence[str], Constraint]) -> Constraint:
    """Parse a constraint from text, a list of clause strings, or pass one through.

    ``None`` and empty strings mean any version. Comma separated clauses are
    conjoined: ``"~> 2.0, >= 2.2.0"``.
    """
    if isinstance(spec, Constraint):
        return spec
    if spec is None:
        return Constraint.any()
    parts: List[str] = []
    items = [spec] if isinstance(spec, str) else list(spec)
    for item in items:
        parts.extend(p for p in str(item).split(",") if p.strip())
    return Constraint(parse_clause(p) for p in parts)


def satisfies(constraint: Constraint, version: Union[str, Version]) -> bool:
    """Module-level helper mirroring ``Constraint.satisfies``."""
    return constraint.satisfies(Version(version))


def intersect(first: Constraint, second: Constraint) -> Constraint:
    """Module-level helper mirroring ``Constraint.intersect``."""
    return first.intersect(second)
