"""Data models for requirements, package specs and sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from constants import Constants, SourceKind

from .constraint import Constraint
from .version import Version

MANIFEST = "manifest"


@dataclass(frozen=True)
class Provenance:
    """Who introduced a requirement.

    ``origin`` is ``MANIFEST`` or the ``name (version)`` label of the package
    declaring the dependency; ``chain`` lists the labels leading from the
    manifest to that origin.
    """

    origin: str = MANIFEST
    chain: Tuple[str, ...] = ()

    @property
    def is_manifest(self) -> bool:
        return self.origin == MANIFEST

    def extend(self, label: str) -> "Provenance":
        """Provenance for a requirement declared by the package ``label``."""
        chain = self.chain if self.is_manifest else self.chain + (self.origin,)
        return Provenance(origin=label, chain=chain)

    def describe(self) -> str:
        """Human readable path, e.g. ``manifest -> rails (7.0.8) -> actionpack (7.0.8)``."""
        return " -> ".join((MANIFEST,) + self.chain + (() if self.is_manifest else (self.origin,)))


@dataclass(frozen=True)
class Source:
    """A package source declared by the manifest."""

    remote: str
    kind: SourceKind = SourceKind.GEM
    revision: Optional[str] = None
    branch: Optional[str] = None
    tag: Optional[str] = None

    @property
    def key(self) -> str:
        return self.remote

    @classmethod
    def default(cls) -> "Source":
        return cls(remote=Constants.DEFAULT_SOURCE)


@dataclass(frozen=True)
class Requirement:
    """A named package plus the constraint it must satisfy in one context."""

    name: str
    constraint: Constraint = field(default_factory=Constraint.any)
    platforms: Tuple[str, ...] = ()
    groups: Tuple[str, ...] = ()
    source: Optional[str] = None
    provenance: Provenance = field(default_factory=Provenance)

    def describe(self) -> str:
        """``name (constraint)`` or just ``name`` when unconstrained."""
        if self.constraint.is_any:
            return self.name
        return f"{self.name} ({self.constraint})"


@dataclass(frozen=True)
class PackageSpec:
    """One concrete, installable package variant from a source."""

    name: str
    version: Version
    platform: str = Constants.GENERIC_PLATFORM
    dependencies: Tuple[Requirement, ...] = ()
    source: str = Constants.DEFAULT_SOURCE
    checksum: Optional[str] = None

    @property
    def is_generic(self) -> bool:
        return self.platform == Constants.GENERIC_PLATFORM

    @property
    def version_label(self) -> str:
        """Version text as written in a lockfile, with any platform suffix."""
        if self.is_generic:
            return str(self.version)
        return f"{self.version}-{self.platform}"

    @property
    def label(self) -> str:
        """``name (version[-platform])``."""
        return f"{self.name} ({self.version_label})"

    @property
    def identity(self) -> Tuple[str, Version, str, str]:
        return (self.name, self.version, self.platform, self.source)

    def __str__(self) -> str:
        return self.label
