"""Tests for lockfile parsing, serialization, diffing and storage."""

import dataclasses
import os

import pytest

from constants import Constants, SourceKind
from lockfile import (
    ChecksumMismatch,
    Lockfile,
    LockfileParseError,
    diff,
    lockfile_path,
    parse,
    read_lockfile,
    serialize,
    synthesize,
    write_lockfile,
)
from manifest import Manifest
from resolution.state import Resolution
from universe.index import build_spec
from versioning.version import Version

WIDGET_REMOTE = "https://github.com/example/widget"

SAMPLE = """GIT
  remote: https://github.com/example/widget
  revision: 0123abcd
  branch: main
  specs:
    widget (0.1.0)
      rack (>= 2.0)

GEM
  remote: https://rubygems.org/
  specs:
    actionpack (7.0.8)
      rack (~> 2.0)
    nokogiri (1.14.0)
      racc (~> 1.4)
    nokogiri (1.14.0-x86_64-linux)
      racc (~> 1.4)
    racc (1.7.3)
    rack (2.2.8)
    rails (7.0.8)
      actionpack (= 7.0.8)

PLATFORMS
  ruby
  x86_64-linux

DEPENDENCIES
  nokogiri (>= 1.14)
  rails (~> 7.0)
  widget!

CHECKSUMS
  actionpack (7.0.8) sha256=aa11
  nokogiri (1.14.0) sha256=bb22
  nokogiri (1.14.0-x86_64-linux) sha256=cc33
  racc (1.7.3) sha256=dd44
  rack (2.2.8) sha256=ee55
  rails (7.0.8) sha256=ff66

RUBY VERSION
   ruby 3.3.0

BUNDLED WITH
   2.5.3
"""


@pytest.fixture
def sample():
    return parse(SAMPLE)


class TestParse:
    """Reading the canonical text format."""

    def test_round_trip_is_byte_identical(self, sample):
        """parse then serialize reproduces the text exactly."""
        assert serialize(sample) == SAMPLE
        assert sample.serialize() == SAMPLE
        assert Lockfile.parse(SAMPLE).serialize() == SAMPLE

    def test_sources(self, sample):
        """GIT and GEM blocks become typed sources."""
        git, gem = sample.sources
        assert git.kind is SourceKind.GIT
        assert (git.remote, git.revision, git.branch) == (WIDGET_REMOTE, "0123abcd", "main")
        assert gem.kind is SourceKind.GEM
        assert gem.remote == "https://rubygems.org/"

    def test_specs_and_platform_variants(self, sample):
        """Platform variants of a name are kept side by side."""
        assert sample.names() == ["actionpack", "nokogiri", "racc", "rack", "rails", "widget"]
        assert [s.platform for s in sample.specs_for("nokogiri")] == ["ruby", "x86_64-linux"]
        assert sample.spec("nokogiri").platform == "x86_64-linux"
        assert sample.spec("widget").source == WIDGET_REMOTE
        deps = sample.spec("rails").dependencies
        assert [d.describe() for d in deps] == ["actionpack (= 7.0.8)"]
        assert sample.platforms == ["ruby", "x86_64-linux"]

    def test_dependencies_and_trailer(self, sample):
        """DEPENDENCIES, RUBY VERSION and BUNDLED WITH are read."""
        assert [d.describe() for d in sample.dependencies] == ["nokogiri (>= 1.14)", "rails (~> 7.0)", "widget"]
        assert sample.dependency("widget").source == WIDGET_REMOTE
        assert sample.dependency("rails").source is None
        assert sample.ruby_version == "ruby 3.3.0"
        assert sample.tool_version == "2.5.3"

    def test_locked_specs(self, sample):
        """locked_specs() maps each name to its preferred variant."""
        locked = sample.locked_specs()
        assert sorted(locked) == sample.names()
        assert locked["rack"].version == Version("2.2.8")

    def test_minimal_lockfile(self):
        """A lockfile with no specs round-trips."""
        text = "GEM\n  remote: https://rubygems.org/\n  specs:\n\nPLATFORMS\n  ruby\n\nDEPENDENCIES\n\nBUNDLED WITH\n   2.5.3\n"
        lockfile = parse(text)
        assert lockfile.specs == []
        assert serialize(lockfile) == text

    @pytest.mark.parametrize(
        "text,line,fragment",
        [
            ("FOO\n", 1, "unknown section"),
            ("\track\n", 1, "tabs"),
            ("  remote: x\n", 1, "outside of any section"),
            ("GEM\n  specs:\n    rack (1.0)\n", 1, "without remote"),
            ("GEM\n  remote: x\n  specs:\n    rack\n", 4, "expected format"),
            ("GEM\n  remote: x\n  mirror: y\n", 3, "unknown GEM attribute"),
            ("GEM\n  remote: x\n    rack (1.0)\n", 3, "before 'specs:'"),
            ("PLATFORMS\n  ruby\n\nPLATFORMS\n  java\n", 4, "duplicate PLATFORMS"),
            ("GEM\n  remote: x\n  specs:\n\nCHECKSUMS\n  rack (1.0) sha256=ab\n", 6, "unknown spec"),
            ("BUNDLED WITH\n   2.5.3\n   2.5.4\n", 1, "exactly one value"),
        ],
    )
    def test_parse_errors_carry_line_numbers(self, text, line, fragment):
        """Errors name the offending line."""
        with pytest.raises(LockfileParseError) as exc_info:
            parse(text)
        assert exc_info.value.line == line
        assert fragment in str(exc_info.value)
        assert str(exc_info.value).startswith(f"line {line}: ")


class TestChecksums:
    """Recorded digests and verification."""

    def test_checksum_for(self, sample):
        """Checksums are looked up per name and platform."""
        assert sample.checksum_for("nokogiri") == "sha256=cc33"
        assert sample.checksum_for("nokogiri", "ruby") == "sha256=bb22"
        assert sample.checksum_for("widget") is None
        assert sample.checksum_for("missing") is None

    def test_verify_accepts_bare_and_prefixed_digests(self, sample):
        """Digests match with or without the algorithm prefix."""
        sample.verify_checksum("rack", "EE55")
        sample.verify_checksum("rack", "sha256=ee55")
        sample.verify_checksum("widget", "anything")

    def test_verify_mismatch(self, sample):
        """A different digest raises with both values."""
        with pytest.raises(ChecksumMismatch) as exc_info:
            sample.verify_checksum("rack", "0000")
        assert exc_info.value.expected == "sha256=ee55"
        assert exc_info.value.observed == "sha256=0000"

    def test_unchecksummed_specs_not_listed(self):
        """Only specs with a checksum appear under CHECKSUMS."""
        lockfile = Lockfile(
            specs=[build_spec("rack", "2.2.8"), build_spec("rake", "13.0.0", checksum="sha256=ab")],
            platforms=["ruby"],
        )
        text = serialize(lockfile)
        assert "CHECKSUMS\n  rake (13.0.0) sha256=ab\n" in text
        assert "rack (2.2.8) sha256" not in text


class TestDiffAndSynthesize:
    """Change detection and lockfile construction from a resolution."""

    def test_diff(self, sample):
        """diff() reports names whose locked variants changed."""
        assert diff(sample, parse(SAMPLE)) == set()
        bumped = dataclasses.replace(
            sample,
            specs=[
                dataclasses.replace(s, version=Version("2.2.9")) if s.name == "rack" else s
                for s in sample.specs
            ],
        )
        assert diff(sample, bumped) == {"rack"}
        assert diff(None, sample) == set(sample.names())
        trimmed = dataclasses.replace(sample, specs=[s for s in sample.specs if s.name != "racc"])
        assert diff(sample, trimmed) == {"racc"}

    def test_synthesize(self):
        """A resolution becomes a lockfile with manifest metadata."""
        manifest = Manifest.from_dict({"dependencies": {"rack": "~> 2.2"}, "ruby": "3.3.0"})
        resolution = Resolution(specs=[build_spec("rack", "2.2.8")])
        lockfile = synthesize(resolution, manifest)
        assert lockfile.ruby_version == "ruby 3.3.0"
        assert lockfile.tool_version == Constants.TOOL_VERSION
        assert [d.describe() for d in lockfile.dependencies] == ["rack (~> 2.2)"]
        assert [s.key for s in lockfile.sources] == [Constants.DEFAULT_SOURCE]

    def test_synthesize_carries_checksums_and_newer_tool_version(self):
        """Previous checksums and a newer tool version survive."""
        manifest = Manifest.from_dict({"dependencies": ["rack"]})
        previous = Lockfile(
            specs=[build_spec("rack", "2.2.8", checksum="sha256=ee55")],
            platforms=["ruby"],
            tool_version="99.0.0",
        )
        lockfile = synthesize(Resolution(specs=[build_spec("rack", "2.2.8")]), manifest, previous)
        assert lockfile.checksum_for("rack") == "sha256=ee55"
        assert lockfile.tool_version == "99.0.0"

        older = dataclasses.replace(previous, tool_version="1.0.0")
        assert synthesize(Resolution(specs=[]), manifest, older).tool_version == Constants.TOOL_VERSION

    def test_synthesize_adds_undeclared_sources(self):
        """Sources used by specs but absent from the manifest are appended."""
        manifest = Manifest.from_dict({"dependencies": ["widget"]})
        spec = build_spec("widget", "0.1.0", source="https://gems.example.com/")
        lockfile = synthesize(Resolution(specs=[spec]), manifest)
        assert [s.key for s in lockfile.sources] == [Constants.DEFAULT_SOURCE, "https://gems.example.com/"]

    def test_synthesize_keeps_git_revision(self, sample):
        """A branch-only git source keeps the revision locked last time."""
        manifest = Manifest.from_dict(
            {
                "sources": [{"git": WIDGET_REMOTE, "branch": "main"}, Constants.DEFAULT_SOURCE],
                "dependencies": ["widget"],
            }
        )
        lockfile = synthesize(Resolution(specs=[sample.spec("widget")]), manifest, sample)
        git = lockfile.sources[0]
        assert (git.remote, git.branch, git.revision) == (WIDGET_REMOTE, "main", "0123abcd")
        assert "  revision: 0123abcd\n  branch: main\n" in lockfile.serialize()

        moved = Manifest.from_dict(
            {"sources": [{"git": WIDGET_REMOTE, "branch": "next"}], "dependencies": ["widget"]}
        )
        assert synthesize(Resolution(specs=[]), moved, sample).sources[0].revision is None


class TestStore:
    """Atomic persistence."""

    def test_write_and_read(self, tmp_path, sample):
        """Written lockfiles read back unchanged."""
        path = tmp_path / "depsmith.lock"
        write_lockfile(str(path), sample)
        assert path.read_text(encoding="utf-8") == SAMPLE
        assert read_lockfile(str(path)).serialize() == SAMPLE
        assert os.listdir(tmp_path) == ["depsmith.lock"]

    def test_write_replaces_existing(self, tmp_path):
        """An existing file is overwritten."""
        path = tmp_path / "depsmith.lock"
        path.write_text("old", encoding="utf-8")
        write_lockfile(str(path), SAMPLE)
        assert path.read_text(encoding="utf-8") == SAMPLE

    def test_read_missing_returns_none(self, tmp_path):
        """A missing file reads as None."""
        assert read_lockfile(str(tmp_path / "absent.lock")) is None

    def test_default_location(self, tmp_path):
        """The default lockfile lives beside the manifest."""
        assert lockfile_path(str(tmp_path)) == str(tmp_path / "Gemfile.lock")
        assert read_lockfile(lockfile_path(str(tmp_path))) is None

    def test_failed_rename_leaves_no_temp_file(self, tmp_path, monkeypatch):
        """A failed replace keeps the old file and removes the temp file."""
        path = tmp_path / "depsmith.lock"
        path.write_text("old", encoding="utf-8")

        def boom(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("lockfile.store.os.replace", boom)
        with pytest.raises(OSError):
            write_lockfile(str(path), SAMPLE)
        assert os.listdir(tmp_path) == ["depsmith.lock"]
        assert path.read_text(encoding="utf-8") == "old"
