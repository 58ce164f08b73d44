"""Lockfile text parsing.

Parsing is strict: unknown sections, unexpected indentation, spec lines
without a version and checksums for unlisted specs are all reported as
``LockfileParseError`` with the offending line number.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from constants import Constants, SourceKind
from resolution.errors import LockfileParseError
from versioning.models import PackageSpec, Provenance, Requirement, Source
from versioning.parser import parse_requirement_line, parse_spec_line

from .model import Lockfile

logger = logging.getLogger(__name__)

Line = Tuple[int, str]

SOURCE_HEADERS = {kind.value: kind for kind in SourceKind}
SECTION_HEADERS = set(SOURCE_HEADERS) | {
    "PLATFORMS",
    "DEPENDENCIES",
    "CHECKSUMS",
    "RUBY VERSION",
    "BUNDLED WITH",
}
_SOURCE_ATTRIBUTES = ("remote", "revision", "branch", "tag")


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def _split_sections(text: str) -> List[Tuple[int, str, List[Line]]]:
    sections: List[Tuple[int, str, List[Line]]] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.rstrip()
        if not line:
            continue
        if line[_indent(line)] == "\t":
            raise LockfileParseError(lineno, "tabs are not allowed for indentation")
        if _indent(line) == 0:
            if line not in SECTION_HEADERS:
                raise LockfileParseError(lineno, f"unknown section {line!r}")
            sections.append((lineno, line, []))
            continue
        if not sections:
            raise LockfileParseError(lineno, "indented line outside of any section")
        sections[-1][2].append((lineno, line))
    return sections


def _items(header: str, body: List[Line], indent: int) -> List[Line]:
    out: List[Line] = []
    for lineno, line in body:
        if _indent(line) != indent:
            raise LockfileParseError(
                lineno, f"expected {indent}-space indentation in {header} section"
            )
        out.append((lineno, line.strip()))
    return out


def _parse_source_block(
    header: str, body: List[Line], known_platforms: List[str]
) -> Tuple[Source, List[PackageSpec]]:
    attrs: Dict[str, str] = {}
    entries: List[Tuple[int, str, List[Line]]] = []
    in_specs = False
    for lineno, line in body:
        indent = _indent(line)
        stripped = line.strip()
        if indent == 2:
            if stripped == "specs:":
                in_specs = True
                continue
            key, sep, value = stripped.partition(":")
            if not sep or key not in _SOURCE_ATTRIBUTES:
                raise LockfileParseError(lineno, f"unknown {header} attribute {stripped!r}")
            if in_specs:
                raise LockfileParseError(lineno, f"{key} must precede specs in {header} section")
            if key in attrs:
                raise LockfileParseError(lineno, f"duplicate {key} in {header} section")
            attrs[key] = value.strip()
        elif indent == 4:
            if not in_specs:
                raise LockfileParseError(lineno, "spec line before 'specs:'")
            entries.append((lineno, stripped, []))
        elif indent == 6:
            if not entries:
                raise LockfileParseError(lineno, "dependency line without a spec")
            entries[-1][2].append((lineno, stripped))
        else:
            raise LockfileParseError(lineno, f"unexpected indentation in {header} section")

    if "remote" not in attrs:
        line = body[0][0] - 1 if body else None
        raise LockfileParseError(line, f"{header} section without remote")
    kind = SOURCE_HEADERS[header]
    source = Source(
        remote=attrs["remote"],
        kind=kind,
        revision=attrs.get("revision"),
        branch=attrs.get("branch"),
        tag=attrs.get("tag"),
    )

    specs: List[PackageSpec] = []
    for lineno, text, dep_lines in entries:
        try:
            name, version, platform = parse_spec_line(text, known_platforms)
        except ValueError as exc:
            raise LockfileParseError(lineno, str(exc)) from exc
        deps: List[Requirement] = []
        for dep_lineno, dep_text in dep_lines:
            try:
                req, _ = parse_requirement_line(dep_text, Provenance(origin=text))
            except ValueError as exc:
                raise LockfileParseError(dep_lineno, str(exc)) from exc
            deps.append(req)
        specs.append(
            PackageSpec(
                name=name,
                version=version,
                platform=platform,
                dependencies=tuple(deps),
                source=source.key,
            )
        )
    return source, specs


def _parse_checksum(lineno: int, text: str, known_platforms: List[str]) -> Tuple[tuple, str]:
    close = text.find(")")
    if close == -1:
        raise LockfileParseError(lineno, f"malformed checksum line {text!r}")
    label, checksum = text[: close + 1], text[close + 1:].strip()
    if not checksum:
        raise LockfileParseError(lineno, f"missing checksum in {text!r}")
    algorithm, sep, digest = checksum.split(",")[0].partition("=")
    if not sep or not digest:
        raise LockfileParseError(lineno, f"malformed checksum {checksum!r}")
    try:
        name, version, platform = parse_spec_line(label, known_platforms)
    except ValueError as exc:
        raise LockfileParseError(lineno, str(exc)) from exc
    return (name, version, platform), f"{algorithm}={digest}"


def _single_value(header: str, body: List[Line], header_line: int) -> str:
    items = _items(header, body, 3)
    if len(items) != 1:
        raise LockfileParseError(header_line, f"{header} expects exactly one value")
    return items[0][1]


def parse_lockfile(text: str) -> Lockfile:
    """Parse lockfile text into a Lockfile.

    Raises:
        LockfileParseError: Text is malformed.
    """
    sections = _split_sections(text)
    seen: Dict[str, int] = {}
    for lineno, header, _ in sections:
        if header not in SOURCE_HEADERS:
            if header in seen:
                raise LockfileParseError(lineno, f"duplicate {header} section")
            seen[header] = lineno

    platforms: List[str] = []
    for _, header, body in sections:
        if header == "PLATFORMS":
            platforms = [item for _, item in _items(header, body, 2)]

    sources: List[Source] = []
    specs: List[PackageSpec] = []
    dependencies: List[Tuple[int, Requirement, bool]] = []
    checksums: List[Tuple[int, tuple, str]] = []
    ruby_version: Optional[str] = None
    tool_version = Constants.TOOL_VERSION

    for header_line, header, body in sections:
        if header in SOURCE_HEADERS:
            source, block_specs = _parse_source_block(header, body, platforms)
            sources.append(source)
            specs.extend(block_specs)
        elif header == "DEPENDENCIES":
            for lineno, item in _items(header, body, 2):
                try:
                    req, pinned = parse_requirement_line(item)
                except ValueError as exc:
                    raise LockfileParseError(lineno, str(exc)) from exc
                dependencies.append((lineno, req, pinned))
        elif header == "CHECKSUMS":
            for lineno, item in _items(header, body, 2):
                identity, checksum = _parse_checksum(lineno, item, platforms)
                checksums.append((lineno, identity, checksum))
        elif header == "RUBY VERSION":
            ruby_version = _single_value(header, body, header_line)
        elif header == "BUNDLED WITH":
            tool_version = _single_value(header, body, header_line)

    index = {(s.name, s.version, s.platform): i for i, s in enumerate(specs)}
    for lineno, identity, checksum in checksums:
        pos = index.get(identity)
        if pos is None:
            raise LockfileParseError(lineno, f"checksum for unknown spec {identity[0]} ({identity[1]})")
        spec = specs[pos]
        specs[pos] = PackageSpec(
            name=spec.name,
            version=spec.version,
            platform=spec.platform,
            dependencies=spec.dependencies,
            source=spec.source,
            checksum=checksum,
        )

    source_of = {s.name: s.source for s in specs}
    default_source = sources[0].key if sources else Constants.DEFAULT_SOURCE
    direct: List[Requirement] = []
    for _, req, pinned in dependencies:
        if pinned:
            req = Requirement(
                name=req.name,
                constraint=req.constraint,
                source=source_of.get(req.name, default_source),
                provenance=req.provenance,
            )
        direct.append(req)

    lockfile = Lockfile(
        sources=sources,
        specs=specs,
        platforms=platforms,
        dependencies=direct,
        ruby_version=ruby_version,
        tool_version=tool_version,
    )
    logger.debug("Parsed lockfile with %d specs", len(lockfile.specs))
    return lockfile

