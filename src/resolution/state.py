"""Mutable search state owned by a single resolution run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from versioning.models import PackageSpec
from versioning.version import Version

MemoKey = Tuple[str, FrozenSet[Tuple[str, Version]]]


@dataclass
class DecisionFrame:
    """One decision point on the explicit stack.

    Attributes:
        name: Package being decided.
        candidates: Ordered candidates admissible when the frame was pushed.
        index: Position of the candidate currently tried; -1 before the first.
        trail: Graph trail mark taken before the first candidate was assigned.
        memo: Memo length taken at the same point.
    """

    name: str
    candidates: List[PackageSpec]
    index: int = -1
    trail: int = 0
    memo: int = 0

    @property
    def current(self) -> Optional[PackageSpec]:
        if 0 <= self.index < len(self.candidates):
            return self.candidates[self.index]
        return None

    @property
    def remaining(self) -> int:
        return max(0, len(self.candidates) - self.index - 1)


@dataclass
class ResolutionState:
    """Assignments, decision stack and per-branch expansion memo."""

    assignments: Dict[str, PackageSpec] = field(default_factory=dict)
    stack: List[DecisionFrame] = field(default_factory=list)
    _memo: List[MemoKey] = field(default_factory=list)
    _memo_set: Set[MemoKey] = field(default_factory=set)

    @property
    def depth(self) -> int:
        return len(self.stack)

    def push(self, frame: DecisionFrame) -> None:
        self.stack.append(frame)

    def top(self) -> Optional[DecisionFrame]:
        return self.stack[-1] if self.stack else None

    def pop(self) -> DecisionFrame:
        return self.stack.pop()

    def assign(self, spec: PackageSpec) -> None:
        self.assignments[spec.name] = spec

    def unassign(self, name: str) -> None:
        self.assignments.pop(name, None)

    def seen(self, key: MemoKey) -> bool:
        return key in self._memo_set

    def remember(self, key: MemoKey) -> None:
        if key not in self._memo_set:
            self._memo.append(key)
            self._memo_set.add(key)

    def memo_mark(self) -> int:
        return len(self._memo)

    def rewind_memo(self, mark: int) -> None:
        """Forget memo entries recorded after ``mark``."""
        while len(self._memo) > mark:
            self._memo_set.discard(self._memo.pop())


@dataclass
class Resolution:
    """A successful assignment, one spec per name, sorted by name."""

    specs: List[PackageSpec]
    steps: int = 0

    def spec(self, name: str) -> Optional[PackageSpec]:
        for spec in self.specs:
            if spec.name == name:
                return spec
        return None

    def names(self) -> List[str]:
        return [spec.name for spec in self.specs]
