"""Project manifest: direct requirements, sources and target platforms."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional

import yaml

from common.schema import validate_manifest
from constants import Constants, SourceKind
from versioning.models import Requirement, Source
from versioning.parser import parse_manifest_entry

logger = logging.getLogger(__name__)


def _parse_source(raw: Any) -> Source:
    if isinstance(raw, str):
        return Source(remote=raw)
    if "git" in raw:
        return Source(
            remote=raw["git"],
            kind=SourceKind.GIT,
            revision=raw.get("revision"),
            branch=raw.get("branch"),
            tag=raw.get("tag"),
        )
    if "path" in raw:
        return Source(remote=raw["path"], kind=SourceKind.PATH)
    if "gem" in raw:
        return Source(remote=raw["gem"])
    raise ValueError(f"Source entry needs one of gem, git or path: {raw!r}")


@dataclass
class Manifest:
    """User-declared direct requirements plus resolution context.

    Attributes:
        requirements: Direct requirements in declaration order.
        sources: Package sources in priority order.
        platforms: Target platforms in declaration order.
        ruby_version: Optional runtime version recorded in the lockfile.
    """

    requirements: List[Requirement] = field(default_factory=list)
    sources: List[Source] = field(default_factory=lambda: [Source.default()])
    platforms: List[str] = field(default_factory=lambda: [Constants.GENERIC_PLATFORM])
    ruby_version: Optional[str] = None

    def names(self) -> List[str]:
        """Direct requirement names, first occurrence order."""
        seen: List[str] = []
        for req in self.requirements:
            if req.name not in seen:
                seen.append(req.name)
        return seen

    def source_keys(self) -> List[str]:
        return [s.key for s in self.sources]

    def requirements_without(self, groups: Iterable[str]) -> List[Requirement]:
        """Direct requirements whose groups are not all excluded."""
        excluded = set(groups)
        return [r for r in self.requirements if not r.groups or not set(r.groups) <= excluded]

    def without_groups(self, groups: Iterable[str]) -> "Manifest":
        """Copy of this manifest with the given groups left out."""
        return replace(self, requirements=self.requirements_without(groups))

    @classmethod
    def from_dict(cls, data: Dict[str, Any], validate: bool = True) -> "Manifest":
        """Build a manifest from a parsed document.

        Raises:
            common.schema.SchemaError: Document does not match the manifest schema.
            ValueError: A version or constraint is malformed.
        """
        if validate:
            validate_manifest(data)
        deps = data.get("dependencies") or {}
        if isinstance(deps, list):
            requirements = [parse_manifest_entry(name, None) for name in deps]
        else:
            requirements = [parse_manifest_entry(name, spec) for name, spec in deps.items()]

        sources = [_parse_source(s) for s in data.get("sources") or []] or [Source.default()]
        platforms = list(data.get("platforms") or [Constants.GENERIC_PLATFORM])
        ruby = data.get("ruby")
        return cls(
            requirements=requirements,
            sources=sources,
            platforms=platforms,
            ruby_version=str(ruby) if ruby else None,
        )


def find_manifest(directory: str = ".") -> Optional[str]:
    """Return the first manifest file present in ``directory``."""
    for name in Constants.MANIFEST_NAMES:
        candidate = os.path.join(directory, name)
        if os.path.isfile(candidate):
            return candidate
    return None


def load_manifest(path: str) -> Manifest:
    """Read and validate a YAML or JSON manifest file."""
    with open(path, "r", encoding="utf-8") as fh:
        if path.lower().endswith(".json"):
            data = json.load(fh)
        else:
            data = yaml.safe_load(fh)
    manifest = Manifest.from_dict(data or {})
    logger.debug("Loaded manifest %s with %d requirements", path, len(manifest.requirements))
    return manifest
