"""Entry points used by lock, update, install and check commands.

``resolve`` never raises for resolution failures: the outcome, including a
cancellation, is reported on the returned ``ResolutionResult``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Union

from constants import UpdateLevel
from lockfile.diff import diff
from lockfile.model import Lockfile, synthesize
from manifest import Manifest
from universe.index import UniverseIndex
from universe.provider import FetchingUniverse
from versioning.constraint import Constraint, parse_constraint
from versioning.models import Provenance, Requirement
from versioning.version import Version

from .cancel import CancellationToken
from .errors import Cancelled, ResolutionError
from .resolver import Resolver

logger = logging.getLogger(__name__)


class _UnlockAll:
    """Sentinel: every previously locked name is unlocked."""

    def __repr__(self) -> str:
        return "UNLOCK_ALL"


UNLOCK_ALL = _UnlockAll()


@dataclass
class ResolutionResult:
    """Outcome of ``resolve``.

    Exactly one of ``lockfile`` and ``error`` is set. ``cancelled`` marks a
    Cancelled error; ``changed`` lists names that differ from the previous
    lockfile (every name when there was none).
    """

    lockfile: Optional[Lockfile] = None
    error: Optional[ResolutionError] = None
    cancelled: bool = False
    steps: int = 0
    changed: Set[str] = field(default_factory=set)

    @property
    def ok(self) -> bool:
        return self.lockfile is not None


def update_constraint(locked: Version, level: UpdateLevel, strict: bool = False) -> Optional[Constraint]:
    """Constraint keeping an update within ``level`` of the locked version.

    ``patch`` allows ``~> locked``; ``minor`` allows ``~> major.minor``
    (``~> major.minor.0`` when ``strict``); ``major`` adds nothing.
    """
    if level is UpdateLevel.MAJOR:
        return None
    if level is UpdateLevel.PATCH:
        return parse_constraint(f"~> {locked}")
    parts = str(locked.release()).split(".")
    if len(parts) < 2:
        return parse_constraint(f"~> {locked}")
    base = f"{parts[0]}.{parts[1]}"
    return parse_constraint(f"~> {base}.0" if strict else f"~> {base}")


def _unlocked_names(
    unlocked: Union[None, Iterable[str], _UnlockAll], previous: Optional[Lockfile]
) -> Set[str]:
    if unlocked is None:
        return set()
    if isinstance(unlocked, _UnlockAll):
        return set(previous.names()) if previous is not None else set()
    return set(unlocked)


def resolve(
    manifest: Manifest,
    index: UniverseIndex,
    previous_lockfile: Optional[Lockfile] = None,
    unlocked: Union[None, Iterable[str], _UnlockAll] = (),
    *,
    cancel: Optional[CancellationToken] = None,
    update_level: Optional[UpdateLevel] = None,
    strict: bool = False,
    allow_prerelease: Optional[bool] = None,
    max_steps: Optional[int] = None,
) -> ResolutionResult:
    """Resolve ``manifest`` against ``index``, preferring ``previous_lockfile``.

    Args:
        manifest: Direct requirements, sources and platforms.
        index: Universe of candidates for this session.
        previous_lockfile: Lockfile whose versions are kept unless unlocked.
        unlocked: Names free to move, or ``UNLOCK_ALL``.
        cancel: Optional cancellation token checked every step.
        update_level: Limit how far unlocked direct requirements may move.
        strict: With ``minor``, pin to ``~> major.minor.0``.
        allow_prerelease: Admit prerelease candidates; defaults to configuration.
        max_steps: Step limit; defaults to configuration.

    Returns:
        ResolutionResult carrying either a lockfile or a typed error.
    """
    unlocked_set = _unlocked_names(unlocked, previous_lockfile)
    locked = previous_lockfile.locked_specs() if previous_lockfile is not None else {}

    requirements: List[Requirement] = list(manifest.requirements)
    if update_level is not None:
        for name in manifest.names():
            if name not in unlocked_set or name not in locked:
                continue
            extra = update_constraint(locked[name].version, update_level, strict)
            if extra is not None:
                logger.info("Constraining %s to %s", name, extra)
                requirements.append(Requirement(name=name, constraint=extra, provenance=Provenance()))

    if isinstance(index, FetchingUniverse):
        index.prefetch(manifest.names())

    resolver = Resolver(
        index,
        platforms=manifest.platforms,
        locked=locked,
        unlocked=unlocked_set,
        allow_prerelease=allow_prerelease,
        max_steps=max_steps,
        cancel=cancel,
    )
    try:
        resolution = resolver.resolve(requirements)
    except Cancelled as exc:
        logger.info("Resolution cancelled: %s", exc.reason)
        return ResolutionResult(error=exc, cancelled=True, steps=resolver.steps)
    except ResolutionError as exc:
        return ResolutionResult(error=exc, steps=resolver.steps)

    lockfile = synthesize(resolution, manifest, previous_lockfile)
    changed = diff(previous_lockfile, lockfile)
    if previous_lockfile is not None and changed:
        logger.info("Lockfile changes: %s", ", ".join(sorted(changed)))
    return ResolutionResult(lockfile=lockfile, steps=resolution.steps, changed=changed)


def check(manifest: Manifest, lockfile: Lockfile) -> List[str]:
    """Report inconsistencies between a manifest and a lockfile.

    Returns:
        Human readable problems; empty when the lockfile satisfies the manifest.
    """
    problems: List[str] = []
    declared_sources = set(manifest.source_keys())
    for source in lockfile.sources:
        if source.key not in declared_sources:
            problems.append(f"source {source.key} is not declared in the manifest")
    for platform in manifest.platforms:
        if platform not in lockfile.platforms:
            problems.append(f"platform {platform} is missing from the lockfile")

    for req in manifest.requirements:
        recorded = lockfile.dependency(req.name)
        if recorded is None or recorded.constraint != req.constraint:
            problems.append(f"{req.describe()} is not recorded in the lockfile dependencies")
        spec = lockfile.spec(req.name)
        if spec is None:
            problems.append(f"{req.name} is not locked")
            continue
        if not req.constraint.satisfies(spec.version):
            problems.append(f"{spec.label} does not satisfy {req.describe()}")
        if req.source and spec.source != req.source:
            problems.append(f"{spec.label} is locked from {spec.source}, expected {req.source}")

    for spec in lockfile.specs:
        for dep in spec.dependencies:
            target = lockfile.spec(dep.name)
            if target is None:
                problems.append(f"{spec.label} depends on {dep.name}, which is not locked")
            elif not dep.constraint.satisfies(target.version):
                problems.append(f"{spec.label} requires {dep.describe()} but {target.label} is locked")
    return problems
