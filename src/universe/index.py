"""Package universe index: the candidate specs visible to one resolution.

An index is created per resolution session and treated as frozen while the
resolver runs, so the same query always yields the same ordered answer.
Constraint filtering is left to the caller; the index only applies source
priority, platform visibility and ordering.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from constants import Constants
from versioning.constraint import parse_constraint
from versioning.models import PackageSpec, Provenance, Requirement, Source
from versioning.version import Version

from .platform import is_visible, preference_key

logger = logging.getLogger(__name__)


class UniverseIndex(ABC):
    """Read-only view of the available package specs for one session."""

    def __init__(self, sources: Sequence[Source], platforms: Sequence[str]) -> None:
        self._sources: List[Source] = list(sources)
        self._platforms: List[str] = list(platforms)
        self._ranks: Dict[str, int] = {}
        for i, source in enumerate(self._sources):
            self._ranks.setdefault(source.key, i)
        self._ordered: Dict[Tuple[str, Tuple[str, ...]], List[PackageSpec]] = {}

    @property
    def sources(self) -> List[Source]:
        return list(self._sources)

    @property
    def platforms(self) -> List[str]:
        return list(self._platforms)

    @abstractmethod
    def all_specs(self, name: str) -> List[PackageSpec]:
        """Every known spec for ``name`` regardless of platform, in any order."""

    def source_rank(self, source_key: str) -> Optional[int]:
        """Declaration position of a source; None for undeclared sources."""
        if not self._sources:
            return 0
        return self._ranks.get(source_key)

    def candidates(self, name: str, platforms: Optional[Sequence[str]] = None) -> List[PackageSpec]:
        """Visible specs for ``name``.

        Visibility and variant preference are judged against ``platforms``,
        the session's target platforms, falling back to the index's own.
        Ordered by source priority (declaration order), then descending
        version, then platform preference. May be empty.
        """
        targets = tuple(self._platforms if platforms is None else platforms)
        key = (name, targets)
        cached = self._ordered.get(key)
        if cached is not None:
            return list(cached)
        visible = [
            spec
            for spec in self.all_specs(name)
            if self.source_rank(spec.source) is not None and is_visible(spec.platform, targets)
        ]
        # Stable sorts, least significant key first.
        visible.sort(key=lambda s: preference_key(s.platform, targets))
        visible.sort(key=lambda s: s.version, reverse=True)
        visible.sort(key=lambda s: self.source_rank(s.source) or 0)
        self._ordered[key] = visible
        return list(visible)

    def declared_dependencies(self, spec: PackageSpec) -> List[Requirement]:
        """Requirements declared by ``spec``."""
        return list(spec.dependencies)

    def refresh(self, names: Optional[Iterable[str]] = None) -> None:
        """Forget ordered candidate lists so the next query re-reads the specs."""
        if names is None:
            self._ordered.clear()
            return
        forget = set(names)
        for key in [k for k in self._ordered if k[0] in forget]:
            del self._ordered[key]


class InMemoryUniverse(UniverseIndex):
    """Fully populated, frozen universe built from a list of specs."""

    def __init__(
        self,
        specs: Iterable[PackageSpec],
        sources: Optional[Sequence[Source]] = None,
        platforms: Sequence[str] = (Constants.GENERIC_PLATFORM,),
    ) -> None:
        spec_list = list(specs)
        if sources is None:
            seen: List[str] = []
            for spec in spec_list:
                if spec.source not in seen:
                    seen.append(spec.source)
            sources = [Source(remote=s) for s in seen] or [Source.default()]
        super().__init__(sources, platforms)
        self._specs: Dict[str, List[PackageSpec]] = {}
        for spec in spec_list:
            self._specs.setdefault(spec.name, []).append(spec)

    def all_specs(self, name: str) -> List[PackageSpec]:
        return list(self._specs.get(name, []))

    def names(self) -> List[str]:
        return sorted(self._specs)

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Mapping[str, Any]],
        source: Optional[str] = None,
        sources: Optional[Sequence[Source]] = None,
        platforms: Sequence[str] = (Constants.GENERIC_PLATFORM,),
    ) -> "InMemoryUniverse":
        """Build a universe from ``{name: {version: deps}}``.

        ``deps`` is either a mapping ``{dep_name: constraint}`` or a mapping
        with ``dependencies``, ``platform`` and ``checksum`` keys. A version
        key may carry a platform suffix after ``@`` (``"1.14.0@arm64-darwin"``).
        """
        source_key = source or (sources[0].key if sources else Constants.DEFAULT_SOURCE)
        specs: List[PackageSpec] = []
        for name, versions in data.items():
            for version_key, payload in versions.items():
                version_text, _, platform = str(version_key).partition("@")
                payload = payload or {}
                if "dependencies" in payload or "checksum" in payload or "platform" in payload:
                    deps = payload.get("dependencies") or {}
                    checksum = payload.get("checksum")
                    platform = payload.get("platform", platform)
                else:
                    deps, checksum = payload, None
                specs.append(
                    build_spec(
                        name,
                        version_text,
                        deps,
                        platform=platform or Constants.GENERIC_PLATFORM,
                        source=source_key,
                        checksum=checksum,
                    )
                )
        return cls(specs, sources=sources, platforms=platforms)


def build_spec(
    name: str,
    version: str,
    dependencies: Optional[Mapping[str, Any]] = None,
    *,
    platform: str = Constants.GENERIC_PLATFORM,
    source: str = Constants.DEFAULT_SOURCE,
    checksum: Optional[str] = None,
) -> PackageSpec:
    """Normalize loosely shaped metadata into a PackageSpec."""
    ver = Version(version)
    label = f"{name} ({ver if platform == Constants.GENERIC_PLATFORM else f'{ver}-{platform}'})"
    deps = tuple(
        Requirement(
            name=dep_name,
            constraint=parse_constraint(dep_req),
            provenance=Provenance(origin=label),
        )
        for dep_name, dep_req in (dependencies or {}).items()
    )
    return PackageSpec(
        name=name,
        version=ver,
        platform=platform,
        dependencies=deps,
        source=source,
        checksum=checksum,
    )
