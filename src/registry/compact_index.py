"""Compact index client: package metadata from ``<remote>/info/<name>``.

Each body line after the ``---`` header describes one version::

    1.14.0-x86_64-linux racc:~> 1.4,mini_portile2:>= 2.8.0&< 2.9|checksum:ab12..,ruby:>= 2.7

Dependency requirements use ``&`` between clauses; the part after ``|``
carries ``checksum`` and runtime requirements.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from common.http_client import robust_get
from common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from constants import Constants
from universe.index import build_spec
from versioning.constraint import InvalidConstraintError
from versioning.models import PackageSpec, Source
from versioning.parser import split_version_platform
from versioning.version import InvalidVersionError

logger = logging.getLogger(__name__)


def _parse_dependencies(text: str) -> Dict[str, List[str]]:
    deps: Dict[str, List[str]] = {}
    for item in text.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, req = item.partition(":")
        if not sep or not name:
            raise ValueError(f"malformed dependency {item!r}")
        deps[name.strip()] = [r.strip() for r in req.split("&") if r.strip()]
    return deps


def _parse_metadata(text: str) -> Dict[str, str]:
    meta: Dict[str, str] = {}
    for item in text.split(","):
        key, sep, value = item.partition(":")
        if sep:
            meta[key.strip()] = value.strip()
    return meta


def parse_info(text: str, source: str, name: str, known_platforms=()) -> List[PackageSpec]:
    """Normalize a compact index ``info`` body into PackageSpecs.

    Args:
        text: Response body.
        source: Source key the specs belong to.
        name: Package name the body describes.
        known_platforms: Declared platforms, used to split version suffixes.

    Returns:
        List of specs in file order; malformed lines are skipped.
    """
    specs: List[PackageSpec] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line == "---":
            continue
        head, _, meta_text = line.partition("|")
        version_part, _, deps_text = head.strip().partition(" ")
        try:
            version_text, platform = split_version_platform(version_part, known_platforms)
            deps = _parse_dependencies(deps_text)
            checksum = _parse_metadata(meta_text).get("checksum")
            specs.append(
                build_spec(
                    name,
                    version_text,
                    deps,
                    platform=platform,
                    source=source,
                    checksum=f"{Constants.CHECKSUM_ALGORITHM}={checksum}" if checksum else None,
                )
            )
        except (ValueError, InvalidVersionError, InvalidConstraintError) as exc:
            logger.warning("Skipping malformed compact index line %d for %s: %s", lineno, name, exc)
    return specs


class CompactIndexFetcher:
    """Fetch callable for one gem source, usable with ``FetchingUniverse``."""

    def __init__(self, source: Source, platforms=(), headers: Optional[Dict[str, str]] = None):
        self.source = source
        self.platforms = tuple(platforms)
        self.headers = headers or {"Accept": "text/plain"}

    def info_url(self, name: str) -> str:
        base = self.source.remote if self.source.remote.endswith("/") else self.source.remote + "/"
        return f"{base}{Constants.COMPACT_INDEX_PATH}{name}"

    def __call__(self, name: str) -> List[PackageSpec]:
        url = self.info_url(name)
        with Timer() as t:
            status, _, body = robust_get(url, headers=self.headers)
        if status == 404:
            logger.debug("No compact index entry for %s at %s", name, safe_url(url))
            return []
        if status != 200:
            logger.warning("Compact index request for %s failed with status %s", name, status)
            return []
        specs = parse_info(body, self.source.key, name, self.platforms)
        if is_debug_enabled(logger):
            logger.debug(
                "Compact index parsed",
                extra=extra_context(
                    event="parse",
                    component="compact_index",
                    target=safe_url(url),
                    count=len(specs),
                    duration_ms=t.duration_ms(),
                ),
            )
        return specs
