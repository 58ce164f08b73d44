"""Token parsing utilities for requirements and spec lines."""

import re
from typing import Any, Dict, Iterable, Optional, Tuple

from constants import Constants

from .constraint import Constraint, parse_constraint
from .models import Provenance, Requirement
from .version import Version

_PLATFORM_TOKEN_RE = re.compile(
    r"^(?:" + "|".join(re.escape(k) for k in Constants.PLATFORM_KEYWORDS) + r")\d*$", re.IGNORECASE
)


def split_name_parenthesized(s: str) -> Tuple[str, Optional[str]]:
    """Split ``"name (inner)"`` into ``("name", "inner")``.

    Returns ``(s, None)`` when there is no parenthesized part.
    """
    s = s.strip()
    if " (" not in s:
        return s, None
    if not s.endswith(")"):
        raise ValueError(f"Unbalanced parentheses in {s!r}")
    name, inner = s.split(" (", 1)
    return name.strip(), inner[:-1].strip()


def _is_platform_token(token: str) -> bool:
    return _PLATFORM_TOKEN_RE.match(token) is not None


def split_version_platform(
    version_part: str, known_platforms: Iterable[str] = ()
) -> Tuple[str, str]:
    """Split ``"1.14.0-arm64-darwin"`` into ``("1.14.0", "arm64-darwin")``.

    A dash may also mark a prerelease (``1.0.0-beta``), so the version is cut
    into dash-separated tokens and a suffix only counts as a platform when it
    is a declared platform or starts with a whole arch or OS token. The
    longest such suffix wins so multi-part platforms stay whole, while
    ``1.0.0-rc1-java`` keeps ``rc1`` in the version and ``1.0.0-javascript``
    has no platform at all.
    """
    known = set(known_platforms)
    tokens = version_part.split("-")
    for i in range(1, len(tokens)):
        suffix = "-".join(tokens[i:])
        if suffix in known or _is_platform_token(tokens[i]):
            return "-".join(tokens[:i]), suffix
    return version_part, Constants.GENERIC_PLATFORM


def parse_spec_line(
    line: str, known_platforms: Iterable[str] = ()
) -> Tuple[str, Version, str]:
    """Parse ``"nokogiri (1.14.0-arm64-darwin)"`` into name, version and platform.

    Raises:
        ValueError: Line lacks a parenthesized version or the version is invalid.
    """
    name, inner = split_name_parenthesized(line)
    if not name or not inner:
        raise ValueError(f"expected format 'name (version)', got: {line.strip()!r}")
    version_text, platform = split_version_platform(inner, known_platforms)
    return name, Version(version_text), platform


def parse_requirement_line(
    line: str, provenance: Optional[Provenance] = None
) -> Tuple[Requirement, bool]:
    """Parse ``"rack (~> 2.0, >= 2.2.0)"``, ``"rack"``, ``"rails!"`` or ``"rails (~> 7.0)!"``.

    Returns:
        Tuple of (Requirement, pinned) where ``pinned`` reflects a trailing ``!``.
    """
    stripped = line.strip()
    pinned = stripped.endswith("!")
    if pinned:
        stripped = stripped[:-1]
    name, inner = split_name_parenthesized(stripped)
    if not name:
        raise ValueError(f"missing package name in: {line.strip()!r}")
    constraint = parse_constraint(inner) if inner else Constraint.any()
    req = Requirement(name=name, constraint=constraint, provenance=provenance or Provenance())
    return req, pinned


def parse_manifest_entry(name: str, raw_spec: Any) -> Requirement:
    """Construct a direct Requirement from manifest fields.

    ``raw_spec`` may be a constraint string, a list of clause strings, None,
    or a mapping with ``version``, ``platforms``, ``groups`` and ``source``.
    """
    name = name.strip()
    options: Dict[str, Any] = raw_spec if isinstance(raw_spec, dict) else {"version": raw_spec}
    version = options.get("version")
    if isinstance(version, str) and version.strip().lower() in ("", "latest"):
        version = None
    return Requirement(
        name=name,
        constraint=parse_constraint(version),
        platforms=tuple(options.get("platforms") or ()),
        groups=tuple(options.get("groups") or ("default",)),
        source=options.get("source"),
        provenance=Provenance(),
    )
