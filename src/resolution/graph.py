"""Dependency graph builder: accumulates requirements per package name.

Requirements reaching the same name through different paths are merged
into one ``RequirementSet`` whose constraint is the intersection of all of
them, while each contributing requirement keeps its provenance for
conflict reports. Every addition is recorded on a trail so a decision can
be retracted exactly.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from universe.index import UniverseIndex
from universe.platform import is_generic, platform_matches
from versioning.constraint import Constraint
from versioning.models import PackageSpec, Provenance, Requirement

logger = logging.getLogger(__name__)


class RequirementSet:
    """All live requirements on one name and their aggregated constraint."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._requirements: List[Requirement] = []
        self._constraints: List[Constraint] = []

    @property
    def requirements(self) -> List[Requirement]:
        return list(self._requirements)

    @property
    def constraint(self) -> Constraint:
        return self._constraints[-1] if self._constraints else Constraint.any()

    @property
    def is_active(self) -> bool:
        return bool(self._requirements)

    @property
    def pinned_source(self) -> Optional[str]:
        for req in self._requirements:
            if req.source:
                return req.source
        return None

    @property
    def mentions_prerelease(self) -> bool:
        return any(req.constraint.mentions_prerelease for req in self._requirements)

    @property
    def provenance(self) -> Provenance:
        """Provenance of the first requirement that introduced the name."""
        return self._requirements[0].provenance if self._requirements else Provenance()

    def push(self, req: Requirement) -> Constraint:
        aggregate = self.constraint.intersect(req.constraint)
        self._requirements.append(req)
        self._constraints.append(aggregate)
        return aggregate

    def pop(self) -> Requirement:
        self._constraints.pop()
        return self._requirements.pop()

    def __len__(self) -> int:
        return len(self._requirements)


class GraphBuilder:
    """Expands direct requirements and assigned specs into per-name requirement sets."""

    def __init__(self, index: UniverseIndex, platforms: Optional[Sequence[str]] = None) -> None:
        self.index = index
        self.platforms: Tuple[str, ...] = tuple(index.platforms if platforms is None else platforms)
        self._sets: Dict[str, RequirementSet] = {}
        self._order: List[str] = []
        self._trail: List[str] = []

    def applies(self, req: Requirement) -> bool:
        """False when the requirement's platform filter excludes every target platform."""
        if not req.platforms or not self.platforms:
            return True
        for wanted in req.platforms:
            if is_generic(wanted):
                return True
            if any(
                not is_generic(target)
                and (platform_matches(wanted, target) or platform_matches(target, wanted))
                for target in self.platforms
            ):
                return True
        return False

    def requirement_set(self, name: str) -> Optional[RequirementSet]:
        rs = self._sets.get(name)
        return rs if rs is not None and rs.is_active else None

    def active_names(self) -> List[str]:
        """Names with at least one live requirement, in first-seen order."""
        return [name for name in self._order if self._sets[name].is_active]

    def add(self, req: Requirement) -> Optional[Constraint]:
        """Merge ``req`` into its name's set.

        Returns:
            The new aggregated constraint (possibly EMPTY), or None when the
            requirement was dropped by its platform filter.
        """
        if not self.applies(req):
            logger.debug("Dropping %s: platform filter %s", req.describe(), ",".join(req.platforms))
            return None
        rs = self._sets.get(req.name)
        if rs is None:
            rs = RequirementSet(req.name)
            self._sets[req.name] = rs
            self._order.append(req.name)
        self._trail.append(req.name)
        return rs.push(req)

    def seed(self, requirements: Iterable[Requirement]) -> List[str]:
        """Add direct requirements and return the initial work queue."""
        queue: List[str] = []
        for req in requirements:
            if self.add(req) is not None and req.name not in queue:
                queue.append(req.name)
        return queue

    def dependencies_of(self, spec: PackageSpec) -> List[Requirement]:
        """Declared dependencies of ``spec`` re-stamped with full provenance chains."""
        parent = self._sets[spec.name].provenance if spec.name in self._sets else Provenance()
        provenance = parent.extend(spec.label)
        return [
            dataclasses.replace(dep, provenance=provenance)
            for dep in self.index.declared_dependencies(spec)
        ]

    def expand(self, spec: PackageSpec) -> Iterator[Tuple[Requirement, Constraint]]:
        """Merge the dependencies of a newly assigned spec, one at a time.

        Yields each merged requirement with the resulting aggregate so the
        caller can stop at the first conflict; requirements not yet yielded
        are not merged.
        """
        for dep in self.dependencies_of(spec):
            aggregate = self.add(dep)
            if aggregate is not None:
                yield dep, aggregate

    def mark(self) -> int:
        """Token for the current trail position."""
        return len(self._trail)

    def undo(self, mark: int) -> None:
        """Retract every requirement added after ``mark``."""
        while len(self._trail) > mark:
            name = self._trail.pop()
            self._sets[name].pop()
