"""Lockfile model, text format and persistence helpers."""

from resolution.errors import ChecksumMismatch, LockfileError, LockfileParseError

from .diff import diff
from .model import Lockfile, synthesize
from .parser import parse_lockfile
from .store import lockfile_path, read_lockfile, write_lockfile
from .writer import serialize_lockfile


def parse(text: str) -> Lockfile:
    """Parse lockfile text; raises LockfileParseError on malformed input."""
    return parse_lockfile(text)


def serialize(lockfile: Lockfile) -> str:
    """Canonical text for ``lockfile``."""
    return serialize_lockfile(lockfile)


__all__ = [
    "ChecksumMismatch",
    "Lockfile",
    "LockfileError",
    "LockfileParseError",
    "diff",
    "lockfile_path",
    "parse",
    "read_lockfile",
    "serialize",
    "synthesize",
    "write_lockfile",
]
