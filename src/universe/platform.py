"""Platform compatibility between package variants and target platforms.

Platforms look like ``arm64-darwin``, ``x86_64-linux-gnu`` or ``java``; the
generic platform (``ruby``) is compatible with every target.
"""

from __future__ import annotations

from typing import Sequence, Tuple

from constants import Constants


def is_generic(platform: str) -> bool:
    return not platform or platform == Constants.GENERIC_PLATFORM


def platform_matches(spec_platform: str, target: str) -> bool:
    """Return True when a spec built for ``spec_platform`` runs on ``target``.

    Variants compare on arch and OS, so ``arm64-darwin-23`` matches
    ``arm64-darwin`` and ``x86_64-linux-gnu`` matches ``x86_64-linux``.
    """
    if is_generic(spec_platform) or spec_platform == target:
        return True
    if is_generic(target):
        return False
    spec_parts = spec_platform.split("-")
    target_parts = target.split("-")
    return (
        len(spec_parts) >= 2
        and len(target_parts) >= 2
        and spec_parts[0] == target_parts[0]
        and spec_parts[1] == target_parts[1]
    )


def requested_targets(targets: Sequence[str]) -> Tuple[str, ...]:
    """Non-generic platforms from a target list."""
    return tuple(t for t in targets if not is_generic(t))


def is_visible(spec_platform: str, targets: Sequence[str]) -> bool:
    """A spec is visible when it is generic, matches a target, or no targets are set."""
    if is_generic(spec_platform) or not targets:
        return True
    return any(platform_matches(spec_platform, t) for t in requested_targets(targets))


def specificity(platform: str) -> int:
    """Number of dash separated parts; generic platforms score 0."""
    if is_generic(platform):
        return 0
    return len(platform.split("-"))


def preference_key(spec_platform: str, targets: Sequence[str]) -> Tuple[int, int, int, str]:
    """Sort key ranking variants of the same version, lowest first.

    Requested platform variants come first (exact matches, then more
    specific ones), then the generic variant, then anything else.
    """
    requested = requested_targets(targets)
    if not is_generic(spec_platform) and any(platform_matches(spec_platform, t) for t in requested):
        exact = 0 if spec_platform in requested else 1
        return (0, exact, -specificity(spec_platform), spec_platform)
    if is_generic(spec_platform):
        return (1, 0, 0, "")
    return (2, 0, -specificity(spec_platform), spec_platform)
