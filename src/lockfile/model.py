"""Lockfile model: the persisted record of one successful resolution."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from constants import Constants, SourceKind
from manifest import Manifest
from resolution.errors import ChecksumMismatch
from resolution.state import Resolution
from universe.platform import preference_key
from versioning.models import PackageSpec, Requirement, Source
from versioning.version import InvalidVersionError, Version

logger = logging.getLogger(__name__)


@dataclass
class Lockfile:
    """Resolved specs plus the context needed to reproduce them.

    Attributes:
        sources: Declared sources, in declaration order.
        specs: Resolved specs sorted by name, version and platform.
        platforms: Target platforms, in declaration order.
        dependencies: Direct requirements as declared, sorted by name.
        ruby_version: Runtime version line, e.g. ``ruby 3.3.0``.
        tool_version: Version of the tool that wrote the file.
    """

    sources: List[Source] = field(default_factory=list)
    specs: List[PackageSpec] = field(default_factory=list)
    platforms: List[str] = field(default_factory=list)
    dependencies: List[Requirement] = field(default_factory=list)
    ruby_version: Optional[str] = None
    tool_version: str = Constants.TOOL_VERSION

    def __post_init__(self) -> None:
        self.specs = sorted(self.specs, key=lambda s: (s.name, s.version, s.platform))
        self.dependencies = sorted(self.dependencies, key=lambda r: r.name)

    @classmethod
    def parse(cls, text: str) -> "Lockfile":
        """Parse lockfile text; raises LockfileParseError on malformed input."""
        from .parser import parse_lockfile  # pylint: disable=import-outside-toplevel

        return parse_lockfile(text)

    def serialize(self) -> str:
        """Canonical lockfile text."""
        from .writer import serialize_lockfile  # pylint: disable=import-outside-toplevel

        return serialize_lockfile(self)

    def names(self) -> List[str]:
        out: List[str] = []
        for spec in self.specs:
            if spec.name not in out:
                out.append(spec.name)
        return out

    def specs_for(self, name: str) -> List[PackageSpec]:
        return [s for s in self.specs if s.name == name]

    def spec(self, name: str) -> Optional[PackageSpec]:
        """The variant of ``name`` best matching the lockfile platforms."""
        variants = self.specs_for(name)
        if not variants:
            return None
        return sorted(variants, key=lambda s: preference_key(s.platform, self.platforms))[0]

    def locked_specs(self) -> Dict[str, PackageSpec]:
        """One preferred spec per name, for conservative re-resolution."""
        locked: Dict[str, PackageSpec] = {}
        for name in self.names():
            spec = self.spec(name)
            if spec is not None:
                locked[name] = spec
        return locked

    def dependency(self, name: str) -> Optional[Requirement]:
        for req in self.dependencies:
            if req.name == name:
                return req
        return None

    def checksum_for(self, name: str, platform: Optional[str] = None) -> Optional[str]:
        """Recorded checksum (``sha256=<hex>``) for a locked package, if any."""
        if platform is not None:
            for spec in self.specs_for(name):
                if spec.platform == platform:
                    return spec.checksum
            return None
        spec = self.spec(name)
        return spec.checksum if spec is not None else None

    def verify_checksum(self, name: str, observed: str, platform: Optional[str] = None) -> None:
        """Compare observed content digest with the recorded one.

        ``observed`` may be a bare hex digest or ``algorithm=hex``. Packages
        without a recorded checksum pass.

        Raises:
            ChecksumMismatch: Digests differ.
        """
        expected = self.checksum_for(name, platform)
        if expected is None:
            logger.debug("No checksum recorded for %s", name)
            return
        prefix = f"{Constants.CHECKSUM_ALGORITHM}="
        normalized = observed if "=" in observed else prefix + observed
        if normalized.lower() != expected.lower():
            raise ChecksumMismatch(name, expected, normalized)


def _max_tool_version(previous: Optional[str]) -> str:
    current = Constants.TOOL_VERSION
    if not previous:
        return current
    try:
        return previous if Version(previous) > Version(current) else current
    except InvalidVersionError:
        logger.warning("Ignoring unparseable tool version %r in previous lockfile", previous)
        return current


def _carry_revision(source: Source, previous: Optional[Lockfile]) -> Source:
    if previous is None or source.kind is not SourceKind.GIT or source.revision:
        return source
    for prev in previous.sources:
        if (
            prev.kind is SourceKind.GIT
            and prev.remote == source.remote
            and (prev.branch, prev.tag) == (source.branch, source.tag)
            and prev.revision
        ):
            return dataclasses.replace(source, revision=prev.revision)
    return source


def synthesize(
    resolution: Resolution,
    manifest: Manifest,
    previous: Optional[Lockfile] = None,
) -> Lockfile:
    """Build the canonical lockfile for a successful resolution.

    Checksums missing from the universe are carried over from ``previous``
    when the same package variant was locked there, as is the pinned
    revision of a git source whose remote, branch and tag are unchanged.
    """
    previous_checksums: Dict[tuple, str] = {}
    if previous is not None:
        for spec in previous.specs:
            if spec.checksum:
                previous_checksums[(spec.name, spec.version, spec.platform)] = spec.checksum

    specs: List[PackageSpec] = []
    for spec in resolution.specs:
        carried = previous_checksums.get((spec.name, spec.version, spec.platform))
        if spec.checksum is None and carried:
            spec = dataclasses.replace(spec, checksum=carried)
        specs.append(spec)

    sources = [_carry_revision(s, previous) for s in manifest.sources]
    declared = {s.key for s in sources}
    for spec in specs:
        if spec.source not in declared:
            sources.append(Source(remote=spec.source))
            declared.add(spec.source)

    ruby = manifest.ruby_version
    if ruby and not ruby.startswith("ruby "):
        ruby = f"ruby {ruby}"

    return Lockfile(
        sources=sources,
        specs=specs,
        platforms=list(manifest.platforms),
        dependencies=list(manifest.requirements),
        ruby_version=ruby,
        tool_version=_max_tool_version(previous.tool_version if previous else None),
    )
