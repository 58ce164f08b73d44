"""Package version values and ordering.

A version is a dot-separated series of segments. Runs of digits become
integer segments and runs of letters become string segments, so
``1.0.0.rc1`` reads as ``(1, 0, 0, "rc", 1)``. A dash is read as a
prerelease marker (``1.0-beta`` == ``1.0.pre.beta``).

Ordering rules:

* segments are compared left to right, missing trailing segments count as 0
* numbers compare numerically, letters lexicographically
* a letter segment sorts below any number, so a prerelease sorts below the
  release it precedes (``1.0.0.rc1 < 1.0.0``)
* trailing zeros are insignificant (``1.0 == 1.0.0``)
"""

from __future__ import annotations

import functools
import re
from typing import List, Tuple, Union

Segment = Union[int, str]

_VERSION_PATTERN = r"[0-9]+(?:\.[0-9a-zA-Z]+)*(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
_VERSION_RE = re.compile(rf"^\s*({_VERSION_PATTERN})?\s*$")
_SEGMENT_RE = re.compile(r"[0-9]+|[a-zA-Z]+")


class InvalidVersionError(ValueError):
    """Raised when a version string cannot be parsed."""


def _strip_trailing_zeros(segments: List[Segment]) -> List[Segment]:
    end = len(segments)
    while end > 0 and segments[end - 1] == 0:
        end -= 1
    return segments[:end]


@functools.total_ordering
class Version:
    """Immutable, comparable package version."""

    __slots__ = ("_text", "_segments", "_canonical")

    def __init__(self, text: Union[str, int, "Version"]) -> None:
        if isinstance(text, Version):
            text = text._text
        elif isinstance(text, int):
            text = str(text)
        elif not isinstance(text, str):
            raise InvalidVersionError(f"Invalid type for version: {type(text).__name__}")
        if not _VERSION_RE.match(text):
            raise InvalidVersionError(f"Malformed version number string {text!r}")
        stripped = text.strip() or "0"
        internal = stripped.replace("-", ".pre.")
        segments: List[Segment] = [
            int(tok) if tok.isdigit() else tok for tok in _SEGMENT_RE.findall(internal)
        ]
        object.__setattr__(self, "_text", stripped)
        object.__setattr__(self, "_segments", tuple(segments))
        object.__setattr__(self, "_canonical", tuple(self._canonicalize(segments)))

    @staticmethod
    def _canonicalize(segments: List[Segment]) -> List[Segment]:
        """Drop insignificant zeros from the release part and the prerelease part."""
        first_str = next((i for i, s in enumerate(segments) if isinstance(s, str)), len(segments))
        release_part = _strip_trailing_zeros(list(segments[:first_str]))
        pre_part = _strip_trailing_zeros(list(segments[first_str:]))
        return release_part + pre_part

    def __setattr__(self, name, value):
        raise AttributeError("Version is immutable")

    @property
    def segments(self) -> Tuple[Segment, ...]:
        """Parsed segments in declaration order."""
        return self._segments

    @property
    def prerelease(self) -> bool:
        """True when any segment is alphabetic."""
        return any(isinstance(s, str) for s in self._segments)

    def release(self) -> "Version":
        """Return the release this version leads up to (``1.2.0.a`` -> ``1.2.0``)."""
        if not self.prerelease:
            return self
        numeric: List[int] = []
        for seg in self._segments:
            if isinstance(seg, str):
                break
            numeric.append(seg)
        return Version(".".join(str(s) for s in numeric) or "0")

    def bump(self) -> "Version":
        """Return the exclusive upper bound used by ``~>``.

        Prerelease segments are dropped, then the last segment is dropped
        when more than one remains and the new last segment is incremented:
        ``2.1 -> 3``, ``2.1.3 -> 2.2``, ``3 -> 4``.
        """
        numeric: List[int] = []
        for seg in self._segments:
            if isinstance(seg, str):
                break
            numeric.append(seg)
        if not numeric:
            raise InvalidVersionError(f"Cannot bump version without numeric prefix: {self._text}")
        if len(numeric) > 1:
            numeric.pop()
        numeric[-1] += 1
        return Version(".".join(str(s) for s in numeric))

    def compare(self, other: "Version") -> int:
        """Return -1, 0 or 1 as this version is lower, equal or higher than ``other``."""
        lhs, rhs = self._canonical, other._canonical
        if lhs == rhs:
            return 0
        for i in range(max(len(lhs), len(rhs))):
            left = lhs[i] if i < len(lhs) else 0
            right = rhs[i] if i < len(rhs) else 0
            if left == right:
                continue
            if isinstance(left, str) and isinstance(right, int):
                return -1
            if isinstance(left, int) and isinstance(right, str):
                return 1
            return -1 if left < right else 1
        return 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._canonical == other._canonical

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash(self._canonical)

    def __str__(self) -> str:
        return self._text

    def __repr__(self) -> str:
        return f"Version({self._text!r})"


def compare(a: Union[str, Version], b: Union[str, Version]) -> int:
    """Compare two versions given as strings or Version values."""
    return Version(a).compare(Version(b))


def is_valid(text: str) -> bool:
    """Return True when ``text`` parses as a version."""
    return bool(_VERSION_RE.match(text))
