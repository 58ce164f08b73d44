"""Canonical lockfile text generation.

Layout, in order: one block per source (``GEM``/``GIT``/``PATH``),
``PLATFORMS``, ``DEPENDENCIES``, ``CHECKSUMS``, ``RUBY VERSION`` and the
``BUNDLED WITH`` trailer, separated by single blank lines.
"""

from __future__ import annotations

from typing import Dict, List

from constants import SourceKind
from versioning.models import PackageSpec, Requirement, Source

from .model import Lockfile


def _source_block(source: Source, specs: List[PackageSpec]) -> List[str]:
    lines = [source.kind.value, f"  remote: {source.remote}"]
    if source.kind is SourceKind.GIT:
        if source.revision:
            lines.append(f"  revision: {source.revision}")
        if source.branch:
            lines.append(f"  branch: {source.branch}")
        if source.tag:
            lines.append(f"  tag: {source.tag}")
    lines.append("  specs:")
    for spec in specs:
        lines.append(f"    {spec.label}")
        for dep in sorted(spec.dependencies, key=lambda d: d.name):
            lines.append(f"      {dep.describe()}")
    return lines


def _dependency_line(req: Requirement) -> str:
    return f"  {req.describe()}{'!' if req.source else ''}"


def serialize_lockfile(lockfile: Lockfile) -> str:
    """Render ``lockfile`` as text ending with a newline."""
    by_source: Dict[str, List[PackageSpec]] = {s.key: [] for s in lockfile.sources}
    for spec in lockfile.specs:
        by_source.setdefault(spec.source, []).append(spec)

    sections: List[List[str]] = []
    written = set()
    for source in lockfile.sources:
        if source.key in written:
            continue
        written.add(source.key)
        sections.append(_source_block(source, by_source[source.key]))
    for key, specs in by_source.items():
        if key not in written:
            sections.append(_source_block(Source(remote=key), specs))

    sections.append(["PLATFORMS"] + [f"  {p}" for p in lockfile.platforms])
    sections.append(["DEPENDENCIES"] + [_dependency_line(r) for r in lockfile.dependencies])

    checksummed = [s for s in lockfile.specs if s.checksum]
    if checksummed:
        sections.append(["CHECKSUMS"] + [f"  {s.label} {s.checksum}" for s in checksummed])

    if lockfile.ruby_version:
        sections.append(["RUBY VERSION", f"   {lockfile.ruby_version}"])

    sections.append(["BUNDLED WITH", f"   {lockfile.tool_version}"])
    return "\n\n".join("\n".join(section) for section in sections) + "\n"
