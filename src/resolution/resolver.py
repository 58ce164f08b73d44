"""Backtracking dependency resolver.

The search is chronological backtracking over package names, driven by an
explicit decision stack rather than recursion:

1. pick the pending name with the fewest admissible candidates (ties broken
   alphabetically);
2. order its candidates, trying a previously locked version first unless the
   name was unlocked;
3. assign the next candidate and merge its dependencies into the graph;
4. on a conflict (empty intersection, an assigned version that no longer
   fits, or a name left without candidates) retract the most recent frame
   and advance it, popping exhausted frames.

Cancellation and the step limit are checked once per step.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from universe.index import UniverseIndex
from versioning.models import PackageSpec, Requirement

from .cancel import CancellationToken
from .errors import Cancelled, ConstraintConflict, MissingPackage, NoMatchingPlatform, ResolutionError
from .graph import GraphBuilder
from .state import DecisionFrame, Resolution, ResolutionState

logger = logging.getLogger(__name__)


class Resolver:
    """Assigns one spec per name so that every live requirement is satisfied.

    A Resolver instance may be reused; each ``resolve`` call owns fresh state.
    """

    def __init__(
        self,
        index: UniverseIndex,
        *,
        platforms: Optional[Sequence[str]] = None,
        locked: Optional[Mapping[str, PackageSpec]] = None,
        unlocked: Iterable[str] = (),
        allow_prerelease: Optional[bool] = None,
        max_steps: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        self.index = index
        self.platforms = platforms
        self.locked: Dict[str, PackageSpec] = dict(locked or {})
        self.unlocked: Set[str] = set(unlocked)
        self.allow_prerelease = (
            Constants.ALLOW_PRERELEASE if allow_prerelease is None else allow_prerelease
        )
        self.max_steps = Constants.MAX_RESOLUTION_STEPS if max_steps is None else max_steps
        self.cancel = cancel
        self._reset()

    def _reset(self) -> None:
        self._state = ResolutionState()
        self._graph = GraphBuilder(self.index, self.platforms)
        self._steps = 0
        self._conflicts: Counter = Counter()
        self._conflict_requirements: Dict[str, List[Requirement]] = {}

    @property
    def steps(self) -> int:
        """Decision steps taken by the last ``resolve`` call."""
        return self._steps

    def preferred(self, name: str) -> Optional[PackageSpec]:
        """Locked spec to try first for ``name``, if conservative resolution applies."""
        if name in self.unlocked:
            return None
        return self.locked.get(name)

    def resolve(self, requirements: Sequence[Requirement]) -> Resolution:
        """Resolve direct requirements into one spec per reachable name.

        Raises:
            ConstraintConflict: No consistent assignment exists.
            MissingPackage: A required name is unknown to every source.
            NoMatchingPlatform: A required name has no variant for the target platforms.
            Cancelled: The cancellation token fired or the step limit was hit.
        """
        self._reset()
        with Timer() as t:
            for name in self._graph.seed(requirements):
                if self._graph.requirement_set(name).constraint.is_empty:
                    self._record_conflict(name)
            if self._conflicts:
                raise self._failure()

            need_backtrack = False
            while True:
                self._tick()
                if need_backtrack:
                    if not self._backtrack():
                        raise self._failure()
                    need_backtrack = False
                    continue

                name = self._select()
                if name is None:
                    break
                candidates = self._ordered_candidates(name)
                if not candidates:
                    self._record_conflict(name)
                    need_backtrack = True
                    continue
                frame = DecisionFrame(
                    name=name,
                    candidates=candidates,
                    trail=self._graph.mark(),
                    memo=self._state.memo_mark(),
                )
                self._state.push(frame)
                need_backtrack = not self._advance(frame)

        specs = sorted(self._state.assignments.values(), key=lambda s: s.name)
        logger.info(
            "Resolved %d packages in %d steps",
            len(specs),
            self._steps,
            extra=extra_context(
                event="resolve",
                component="resolver",
                outcome="success",
                count=len(specs),
                steps=self._steps,
                duration_ms=t.duration_ms(),
            ),
        )
        return Resolution(specs=specs, steps=self._steps)

    # Search steps

    def _tick(self) -> None:
        self._steps += 1
        if self.cancel is not None:
            self.cancel.check()
        if self._steps > self.max_steps:
            raise Cancelled(f"step limit of {self.max_steps} exceeded")

    def _select(self) -> Optional[str]:
        best: Optional[str] = None
        best_count = 0
        for name in self._graph.active_names():
            if name in self._state.assignments:
                continue
            count = len(self._admissible(name))
            if best is None or count < best_count or (count == best_count and name < best):
                best, best_count = name, count
        return best

    def _admissible(self, name: str) -> List[PackageSpec]:
        """Candidates from the index that meet every live requirement on ``name``."""
        rs = self._graph.requirement_set(name)
        if rs is None:
            return []
        constraint = rs.constraint
        pinned = rs.pinned_source
        allow_pre = self.allow_prerelease or rs.mentions_prerelease
        preferred = self.preferred(name)
        out: List[PackageSpec] = []
        for spec in self.index.candidates(name, self._graph.platforms):
            if pinned and spec.source != pinned:
                continue
            if not constraint.satisfies(spec.version):
                continue
            if spec.version.prerelease and not allow_pre:
                if preferred is None or preferred.version != spec.version:
                    continue
            out.append(spec)
        return out

    def _ordered_candidates(self, name: str) -> List[PackageSpec]:
        candidates = self._admissible(name)
        preferred = self.preferred(name)
        if preferred is None:
            return candidates

        def rank(spec: PackageSpec) -> int:
            if spec.version != preferred.version:
                return 2
            if spec.platform == preferred.platform and spec.source == preferred.source:
                return 0
            return 1

        return sorted(candidates, key=rank)

    def _advance(self, frame: DecisionFrame) -> bool:
        """Try the frame's remaining candidates; pop the frame when none fits."""
        while frame.index + 1 < len(frame.candidates):
            frame.index += 1
            if frame.index > 0:
                self._tick()
            if self._try(frame):
                return True
            self._retract(frame)
        self._state.pop()
        return False

    def _try(self, frame: DecisionFrame) -> bool:
        spec = frame.current
        assert spec is not None
        self._state.assign(spec)
        rs = self._graph.requirement_set(spec.name)
        if rs is not None:
            self._state.remember((spec.name, rs.constraint.signature))
        if is_debug_enabled(logger):
            logger.debug(
                "Trying %s",
                spec.label,
                extra=extra_context(
                    event="decision",
                    component="resolver",
                    target=spec.label,
                    depth=self._state.depth,
                    alternatives=frame.remaining,
                ),
            )

        for dep, aggregate in self._graph.expand(spec):
            if aggregate.is_empty:
                self._record_conflict(dep.name)
                return False
            assigned = self._state.assignments.get(dep.name)
            if assigned is None:
                if not self._admissible(dep.name):
                    self._record_conflict(dep.name)
                    return False
                continue
            key = (dep.name, aggregate.signature)
            if self._state.seen(key) and not dep.source:
                continue
            if not aggregate.satisfies(assigned.version) or (dep.source and dep.source != assigned.source):
                self._record_conflict(dep.name)
                return False
            self._state.remember(key)
        return True

    def _retract(self, frame: DecisionFrame) -> None:
        self._graph.undo(frame.trail)
        self._state.rewind_memo(frame.memo)
        self._state.unassign(frame.name)

    def _backtrack(self) -> bool:
        while self._state.stack:
            frame = self._state.top()
            self._retract(frame)
            if is_debug_enabled(logger):
                logger.debug(
                    "Backtracking over %s",
                    frame.name,
                    extra=extra_context(
                        event="backtrack",
                        component="resolver",
                        target=frame.name,
                        depth=self._state.depth,
                        alternatives=frame.remaining,
                    ),
                )
            if self._advance(frame):
                return True
        return False

    # Failure reporting

    def _record_conflict(self, name: str) -> None:
        self._conflicts[name] += 1
        seen = self._conflict_requirements.setdefault(name, [])
        rs = self._graph.requirement_set(name)
        for req in rs.requirements if rs is not None else ():
            if req not in seen:
                seen.append(req)
        if is_debug_enabled(logger):
            logger.debug(
                "Conflict on %s",
                name,
                extra=extra_context(event="conflict", component="resolver", target=name),
            )

    def _failure(self) -> ResolutionError:
        name = sorted(self._conflicts.items(), key=lambda kv: (-kv[1], kv[0]))[0][0]
        requirements = self._conflict_requirements.get(name, [])
        declared = [s for s in self.index.all_specs(name) if self.index.source_rank(s.source) is not None]
        error: ResolutionError
        if not declared:
            error = MissingPackage(name, requirements)
        elif not self.index.candidates(name, self._graph.platforms):
            platforms = list(self._graph.platforms)
            available = sorted({s.platform for s in declared})
            error = NoMatchingPlatform(name, platforms, available)
        else:
            error = ConstraintConflict(name, requirements)
        logger.warning(
            "Resolution failed after %d steps: %s",
            self._steps,
            error,
            extra=extra_context(event="resolve", component="resolver", outcome="failure", target=name),
        )
        return error
