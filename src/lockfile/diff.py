"""Comparison of two lockfiles by package name."""

from __future__ import annotations

from typing import Dict, FrozenSet, Optional, Set, Tuple

from versioning.version import Version

from .model import Lockfile

_Entry = FrozenSet[Tuple[Version, str, str]]


def _entries(lockfile: Optional[Lockfile]) -> Dict[str, _Entry]:
    out: Dict[str, Set[Tuple[Version, str, str]]] = {}
    if lockfile is not None:
        for spec in lockfile.specs:
            out.setdefault(spec.name, set()).add((spec.version, spec.platform, spec.source))
    return {name: frozenset(entries) for name, entries in out.items()}


def diff(old: Optional[Lockfile], new: Optional[Lockfile]) -> Set[str]:
    """Names added, removed, or locked to a different version, platform or source."""
    before, after = _entries(old), _entries(new)
    return {name for name in set(before) | set(after) if before.get(name) != after.get(name)}
