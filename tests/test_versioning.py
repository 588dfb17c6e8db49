"""Tests for tag normalization, ordering and version constraints."""
import pytest

from compman.core.errors import ConfigInvalid
from compman.services.strategy.versioning import (
    TagVersion,
    VersionConstraint,
    compare_tags,
    normalize_tag,
    parse_version,
    sort_versions,
)


class TestNormalizeTag:
    """Test version prefix stripping."""

    @pytest.mark.parametrize("tag,expected", [
        ("v1.2.3", "1.2.3"),
        ("V1.2", "1.2"),
        ("Release2.0", "2.0"),
        ("release-2.0", "-2.0"),
        ("ver3", "3"),
        ("rel1.0", "1.0"),
        ("version4.1", "4.1"),
        ("1.2.3", "1.2.3"),
        ("latest", "latest"),
        ("alpine", "alpine"),
        ("", ""),
    ])
    def test_strips_known_prefixes(self, tag, expected):
        assert normalize_tag(tag) == expected

    def test_strip_length_follows_matched_prefix(self):
        """'Release' is stripped whole, not just 'rel'."""
        assert normalize_tag("RELEASE7") == "7"

    @pytest.mark.parametrize("tag", [
        "v1.0", "vv1.0", "version-v2", "Release2.0", "latest", "1.2.3-alpine", "relv1", "",
    ])
    def test_idempotent(self, tag):
        once = normalize_tag(tag)
        assert normalize_tag(once) == once


class TestParseVersion:
    """Test tag parsing."""

    def test_parses_prefixed_tags(self):
        assert parse_version("v1.2.3") == TagVersion.of(1, 2, 3)
        assert str(parse_version("v1.2.3")) == "1.2.3"

    def test_partial_versions_fill_zeros(self):
        version = parse_version("1.25")
        assert (version.major, version.minor, version.patch) == (1, 25, 0)

    @pytest.mark.parametrize("tag,pre", [
        ("1.2.3-1", ("1",)),
        ("1.2.3-r0", ("r0",)),
        ("1.2.3-alpine", ("alpine",)),
        ("1.2.3-rc.1+build5", ("rc", "1")),
    ])
    def test_dash_suffix_is_prerelease(self, tag, pre):
        version = parse_version(tag)
        assert version.is_prerelease
        assert version.prerelease == pre

    def test_build_metadata_is_dropped(self):
        version = parse_version("1.2.3+build5")
        assert not version.is_prerelease
        assert version == parse_version("1.2.3")

    @pytest.mark.parametrize("tag", [
        "latest", "alpine", "", "v", "1.0rc1", "1.0.post1", "1.0.dev0", "1!2.0", "1.2.3.4", "1.2.3-",
    ])
    def test_unparseable_tags_are_none(self, tag):
        assert parse_version(tag) is None


class TestCompareTags:
    """Test the total order over tags."""

    def test_version_order_when_both_parse(self):
        assert compare_tags("1.2.3", "1.10.0") == -1
        assert compare_tags("2.0.0", "1.9.9") == 1
        assert compare_tags("v1.0", "1.0") == 0

    def test_prerelease_sorts_before_release(self):
        assert compare_tags("1.0.0-rc.1", "1.0.0") == -1

    @pytest.mark.parametrize("tag", ["1.2.3-1", "1.2.3-r0", "1.2.3-post", "1.2.3-alpine"])
    def test_revision_suffixes_sort_before_release(self, tag):
        assert compare_tags(tag, "1.2.3") == -1
        assert compare_tags(tag, "1.2.2") == 1

    def test_build_metadata_does_not_affect_order(self):
        assert compare_tags("1.2.3+build5", "1.2.3") == 0
        assert compare_tags("1.2.3+build5", "1.2.4") == -1

    def test_prerelease_identifier_precedence(self):
        ordered = ["1.0.0-1", "1.0.0-2", "1.0.0-10", "1.0.0-alpha", "1.0.0-alpha.1",
                   "1.0.0-alpha.beta", "1.0.0-beta", "1.0.0-rc.1", "1.0.0"]
        for lower, higher in zip(ordered, ordered[1:]):
            assert compare_tags(lower, higher) == -1, f"{lower} < {higher}"

    def test_falls_back_to_string_order(self):
        assert compare_tags("latest", "1.0") == 1  # '1' < 'l'
        assert compare_tags("alpine", "latest") == -1

    def test_reflexive_and_antisymmetric(self):
        tags = ["1.0.0", "v1.2", "latest", "alpine", "2.0.0-beta", "stable"]
        for a in tags:
            assert compare_tags(a, a) == 0
            for b in tags:
                assert compare_tags(a, b) == -compare_tags(b, a)

    def test_consistent_ordering_for_fixed_set(self):
        tags = ["1.0.0", "1.2.0", "1.10.0", "2.0.0"]
        for i, a in enumerate(tags):
            for b in tags[i + 1:]:
                assert compare_tags(a, b) == -1


class TestVersionConstraint:
    """Test constraint compilation and matching."""

    @pytest.mark.parametrize("pattern,accepted,rejected", [
        ("*", ["0.0.1", "1.2.3", "99.0"], []),
        ("1.2.3", ["1.2.3"], ["1.2.4", "1.2.2"]),
        ("=1.2.3", ["1.2.3"], ["1.2.4"]),
        ("1.2", ["1.2.0", "1.2.9"], ["1.3.0", "1.1.9"]),
        ("1.2.x", ["1.2.5"], ["1.3.0"]),
        ("^1.0.0", ["1.0.0", "1.2.3", "1.99.0"], ["2.0.0", "0.9.0"]),
        ("^0.2.3", ["0.2.3", "0.2.9"], ["0.3.0"]),
        ("^0.0.3", ["0.0.3"], ["0.0.4"]),
        ("~1.2.3", ["1.2.3", "1.2.9"], ["1.3.0", "1.2.2"]),
        ("~>1.2", ["1.2.0", "1.2.7"], ["1.3.0"]),
        ("~1", ["1.0.0", "1.9.0"], ["2.0.0"]),
        (">=1.0, <2.0", ["1.0.0", "1.9.9"], ["2.0.0", "0.9.0"]),
        (">=1.0 <2.0", ["1.5.0"], ["2.1.0"]),
        (">1.2.3", ["1.2.4"], ["1.2.3"]),
        (">1.2", ["1.3.0"], ["1.2.9"]),
        ("<=1.2", ["1.2.9"], ["1.3.0"]),
        ("!=1.2.3", ["1.2.4"], ["1.2.3"]),
        ("!=1.2", ["1.3.0", "1.1.0"], ["1.2.0", "1.2.5"]),
        ("1.0 - 1.4", ["1.0.0", "1.4.7"], ["1.5.0", "0.9.9"]),
        ("^1.0 || ^3.0", ["1.2.0", "3.1.0"], ["2.5.0", "4.0.0"]),
    ])
    def test_ranges(self, pattern, accepted, rejected):
        constraint = VersionConstraint.compile(pattern)
        for version in accepted:
            assert constraint.matches(version), f"{pattern} should accept {version}"
        for version in rejected:
            assert not constraint.matches(version), f"{pattern} should reject {version}"

    def test_prereleases_need_a_prerelease_pattern(self):
        assert not VersionConstraint.compile("*").matches("2.0.0-rc1")
        assert not VersionConstraint.compile("^1.0.0").matches("1.5.0-beta.1")

        constraint = VersionConstraint.compile("^1.2.3-rc.1")
        assert constraint.matches("1.2.3-rc.2")
        assert constraint.matches("1.2.3")
        assert not constraint.matches("1.2.3-rc.0")

    def test_caret_upper_bound_excludes_next_major_prereleases(self):
        constraint = VersionConstraint.compile("^1.0.0-alpha")
        assert not constraint.matches("2.0.0-alpha.1")

    def test_matches_normalizes_tags(self):
        constraint = VersionConstraint.compile("^1.0.0")
        assert constraint.matches("v1.4.0")
        assert not constraint.matches("latest")

    def test_empty_pattern_is_wildcard(self):
        assert VersionConstraint.compile("").is_wildcard
        assert VersionConstraint.compile("  *  ").is_wildcard

    @pytest.mark.parametrize("pattern", [
        "not-a-constraint",
        "^",
        ">=1.0 ||",
        "1.x.3",
        "abc",
        "1.0 - ",
    ])
    def test_invalid_patterns_raise(self, pattern):
        with pytest.raises(ConfigInvalid):
            VersionConstraint.compile(pattern)

    def test_str_and_repr(self):
        constraint = VersionConstraint.compile("^1.0.0")
        assert str(constraint) == "^1.0.0"
        assert repr(constraint) == "VersionConstraint('^1.0.0')"


class TestSortVersions:
    """Test candidate ranking."""

    def test_drops_unparseable_and_sorts(self):
        ranked = sort_versions(["2.0.0", "latest", "v1.10.0", "1.2.0", "alpine"])
        assert [tag for _, tag in ranked] == ["1.2.0", "v1.10.0", "2.0.0"]

    def test_filter(self):
        ranked = sort_versions(["1.0.0", "2.0.0"], lambda v: v.major == 1)
        assert [tag for _, tag in ranked] == ["1.0.0"]
