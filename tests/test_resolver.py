"""Tests for the backtracking resolver."""

import pytest

from resolution.cancel import CancellationToken
from resolution.errors import Cancelled, ConstraintConflict, MissingPackage, NoMatchingPlatform
from resolution.resolver import Resolver
from universe.index import InMemoryUniverse, build_spec
from versioning.constraint import parse_constraint
from versioning.models import Requirement, Source

PRIMARY = "https://gems.example.com/"
MIRROR = "https://mirror.example.com/"


def req(name, constraint=None, **kwargs):
    return Requirement(name=name, constraint=parse_constraint(constraint), **kwargs)


def versions(resolution):
    return {spec.name: str(spec.version) for spec in resolution.specs}


@pytest.fixture
def rails_universe():
    return InMemoryUniverse.from_dict(
        {
            "rails": {
                "7.0.8": {"actionpack": "= 7.0.8"},
                "7.1.0": {"actionpack": "= 7.1.0"},
            },
            "actionpack": {
                "7.0.8": {"rack": "~> 2.0"},
                "7.1.0": {"rack": ">= 2.2.4"},
            },
            "rack": {"2.2.8": {}, "3.0.8": {}},
        }
    )


class TestSuccessfulResolution:
    """Highest satisfying versions and transitive closure."""

    def test_prefers_highest_version(self, rails_universe):
        """The newest satisfying version is chosen."""
        resolution = Resolver(rails_universe).resolve([req("rack", ">= 1.0")])
        assert versions(resolution) == {"rack": "3.0.8"}

    def test_transitive_closure(self, rails_universe):
        """Dependencies of chosen specs are resolved too."""
        resolution = Resolver(rails_universe).resolve([req("rails", "~> 7.0.0")])
        assert versions(resolution) == {"rails": "7.0.8", "actionpack": "7.0.8", "rack": "2.2.8"}
        assert resolution.names() == ["actionpack", "rack", "rails"]

    def test_every_requirement_satisfied(self, rails_universe):
        """Every dependency edge holds in the result."""
        resolution = Resolver(rails_universe).resolve([req("rails"), req("rack", "< 3")])
        assigned = {s.name: s for s in resolution.specs}
        assert versions(resolution) == {"rails": "7.1.0", "actionpack": "7.1.0", "rack": "2.2.8"}
        for spec in resolution.specs:
            for dep in spec.dependencies:
                assert dep.constraint.satisfies(assigned[dep.name].version)

    def test_backtracks_to_older_version(self):
        """A dead end sends the search back to an older version."""
        universe = InMemoryUniverse.from_dict(
            {
                "a": {"2.0": {"b": "= 2.0"}, "1.0": {"b": "= 1.0"}},
                "b": {"2.0": {"c": "= 2.0"}, "1.0": {"c": ">= 1.0"}},
                "c": {"1.0": {}, "2.0": {}},
            }
        )
        resolution = Resolver(universe).resolve([req("a"), req("c", "= 1.0")])
        assert versions(resolution) == {"a": "1.0", "b": "1.0", "c": "1.0"}

    def test_cycle_terminates(self):
        """Mutual dependencies resolve."""
        universe = InMemoryUniverse.from_dict(
            {
                "a": {"1.0": {"b": ">= 1.0"}},
                "b": {"1.0": {"a": ">= 1.0"}},
            }
        )
        resolution = Resolver(universe).resolve([req("a")])
        assert versions(resolution) == {"a": "1.0", "b": "1.0"}

    def test_self_dependency(self):
        """A package depending on itself resolves."""
        universe = InMemoryUniverse.from_dict({"a": {"1.0": {"a": ">= 1.0"}}})
        assert versions(Resolver(universe).resolve([req("a")])) == {"a": "1.0"}

    def test_platform_filtered_requirement_dropped(self, rails_universe):
        """Requirements for other platforms are ignored."""
        resolution = Resolver(rails_universe, platforms=["ruby"]).resolve(
            [req("rack"), req("tzinfo-data", platforms=("x86_64-mingw32",))]
        )
        assert versions(resolution) == {"rack": "3.0.8"}


class TestSourcesAndPlatforms:
    """Source priority, pinned sources and platform variants."""

    @pytest.fixture
    def two_sources(self):
        specs = [
            build_spec("rack", "3.0.0", source=MIRROR),
            build_spec("rack", "2.0.0", source=PRIMARY),
        ]
        return InMemoryUniverse(specs, sources=[Source(PRIMARY), Source(MIRROR)])

    def test_source_priority(self, two_sources):
        """The first declared source wins over a newer version elsewhere."""
        spec = Resolver(two_sources).resolve([req("rack")]).spec("rack")
        assert (spec.source, str(spec.version)) == (PRIMARY, "2.0.0")

    def test_pinned_source(self, two_sources):
        """A source pin overrides priority."""
        spec = Resolver(two_sources).resolve([req("rack", source=MIRROR)]).spec("rack")
        assert (spec.source, str(spec.version)) == (MIRROR, "3.0.0")

    def test_platform_variant_preferred(self):
        """A requested platform variant beats the generic one."""
        universe = InMemoryUniverse.from_dict(
            {"nokogiri": {"1.14.0": {}, "1.14.0@x86_64-linux": {}}},
            platforms=("ruby", "x86_64-linux"),
        )
        spec = Resolver(universe).resolve([req("nokogiri")]).spec("nokogiri")
        assert spec.platform == "x86_64-linux"

    def test_generic_variant_without_request(self):
        """The generic variant is used when no platform is requested."""
        universe = InMemoryUniverse.from_dict({"nokogiri": {"1.14.0": {}, "1.14.0@x86_64-linux": {}}})
        assert Resolver(universe).resolve([req("nokogiri")]).spec("nokogiri").platform == "ruby"


class TestPrereleasesAndLocks:
    """Prerelease policy and conservative ordering."""

    @pytest.fixture
    def prerelease_universe(self):
        return InMemoryUniverse.from_dict({"rack": {"2.0.0": {}, "3.0.0.beta1": {}}})

    def test_prerelease_excluded_by_default(self, prerelease_universe):
        """Prereleases are skipped unless allowed."""
        resolution = Resolver(prerelease_universe, allow_prerelease=False).resolve([req("rack")])
        assert versions(resolution) == {"rack": "2.0.0"}

    def test_prerelease_allowed(self, prerelease_universe):
        """allow_prerelease admits prereleases."""
        resolution = Resolver(prerelease_universe, allow_prerelease=True).resolve([req("rack")])
        assert versions(resolution) == {"rack": "3.0.0.beta1"}

    def test_prerelease_requested_by_constraint(self, prerelease_universe):
        """A prerelease operand opts that name in."""
        resolution = Resolver(prerelease_universe, allow_prerelease=False).resolve(
            [req("rack", ">= 3.0.0.beta1")]
        )
        assert versions(resolution) == {"rack": "3.0.0.beta1"}

    def test_locked_version_tried_first(self, rails_universe):
        """A locked version is kept over a newer one."""
        locked = {"rack": build_spec("rack", "2.2.8")}
        resolution = Resolver(rails_universe, locked=locked).resolve([req("rack")])
        assert versions(resolution) == {"rack": "2.2.8"}

    def test_unlocked_name_ignores_lock(self, rails_universe):
        """Unlocked names take the newest version."""
        locked = {"rack": build_spec("rack", "2.2.8")}
        resolution = Resolver(rails_universe, locked=locked, unlocked={"rack"}).resolve([req("rack")])
        assert versions(resolution) == {"rack": "3.0.8"}

    def test_lock_dropped_when_unsatisfied(self, rails_universe):
        """A lock that no longer satisfies is abandoned."""
        locked = {"rack": build_spec("rack", "2.2.8")}
        resolution = Resolver(rails_universe, locked=locked).resolve([req("rack", ">= 3.0")])
        assert versions(resolution) == {"rack": "3.0.8"}


class TestFailures:
    """Typed failures and explanations."""

    def test_direct_conflict_names_both_requirements(self, rails_universe):
        """A direct conflict lists both requirements."""
        with pytest.raises(ConstraintConflict) as exc_info:
            Resolver(rails_universe).resolve([req("rack", "= 2.2.8"), req("rack", "= 3.0.8")])
        error = exc_info.value
        assert error.name == "rack"
        assert [r.describe() for r in error.requirements] == ["rack (= 2.2.8)", "rack (= 3.0.8)"]

    def test_conflicting_direct_requirements_fail_before_search(self, rails_universe):
        """Contradictory manifest requirements are rejected without taking a step."""
        resolver = Resolver(rails_universe)
        with pytest.raises(ConstraintConflict) as exc_info:
            resolver.resolve([req("rails"), req("rack", "~> 1.0"), req("rack", "> 2.0.pre")])
        assert exc_info.value.name == "rack"
        assert resolver.steps == 0

    def test_transitive_conflict_explains_paths(self):
        """The explanation shows each requirement's path."""
        universe = InMemoryUniverse.from_dict(
            {
                "a": {"1.0": {"pkg": "= 1.0"}},
                "b": {"1.0": {"pkg": "= 2.0"}},
                "pkg": {"1.0": {}, "2.0": {}},
            }
        )
        with pytest.raises(ConstraintConflict) as exc_info:
            Resolver(universe).resolve([req("a"), req("b")])
        error = exc_info.value
        assert error.name == "pkg"
        origins = {r.provenance.origin for r in error.requirements}
        assert origins == {"a (1.0)", "b (1.0)"}
        text = error.explanation()
        assert "manifest -> a (1.0) requires pkg (= 1.0)" in text
        assert "manifest -> b (1.0) requires pkg (= 2.0)" in text

    def test_missing_package(self, rails_universe):
        """Unknown names raise MissingPackage."""
        with pytest.raises(MissingPackage) as exc_info:
            Resolver(rails_universe).resolve([req("nope")])
        assert exc_info.value.name == "nope"

    def test_no_matching_platform(self):
        """Platform-only packages report the platforms that exist."""
        universe = InMemoryUniverse.from_dict({"win32-api": {"1.0@x86_64-mingw32": {}}})
        with pytest.raises(NoMatchingPlatform) as exc_info:
            Resolver(universe).resolve([req("win32-api")])
        assert exc_info.value.available == ["x86_64-mingw32"]

    def test_cancelled(self, rails_universe):
        """A cancelled token stops the search with its reason."""
        token = CancellationToken()
        token.cancel("user abort")
        with pytest.raises(Cancelled) as exc_info:
            Resolver(rails_universe, cancel=token).resolve([req("rails")])
        assert exc_info.value.reason == "user abort"

    def test_timeout_token(self):
        """A zero timeout cancels immediately."""
        token = CancellationToken(timeout=0)
        assert token.cancelled
        assert token.reason == "timed out"

    def test_step_limit(self, rails_universe):
        """max_steps bounds the search."""
        with pytest.raises(Cancelled) as exc_info:
            Resolver(rails_universe, max_steps=1).resolve([req("rails")])
        assert "step limit" in exc_info.value.reason

    def test_steps_counted(self, rails_universe):
        """Each decision counts as a step."""
        resolver = Resolver(rails_universe)
        resolver.resolve([req("rails")])
        assert resolver.steps >= 4
