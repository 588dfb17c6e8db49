"""Tests for the latest and semver tag strategies."""
import pytest

from compman.core.config import CompmanConfig
from compman.core.errors import ConfigInvalid, RegistryUnavailable, ResolutionFailed
from compman.services.strategy import (
    LatestStrategy,
    SemverStrategy,
    TagStrategy,
    available_strategies,
    build_strategy,
    register_strategy,
)
from compman.services.strategy import _FACTORIES


class TestLatestStrategy:
    """Test the 'latest' strategy."""

    def test_resolves_latest_when_repository_has_tags(self, fake_registry):
        strategy = LatestStrategy(fake_registry(["1.0", "2.0"]))
        assert strategy.resolve_tag("nginx") == "latest"

    def test_resolves_latest_for_empty_registry(self, fake_registry):
        assert LatestStrategy(fake_registry([])).resolve_tag("nginx") == "latest"

    def test_registry_error_becomes_resolution_failure(self, fake_registry):
        registry = fake_registry(error=RegistryUnavailable("down", status_code=503))
        with pytest.raises(ResolutionFailed) as excinfo:
            LatestStrategy(registry).resolve_tag("nginx")
        assert excinfo.value.image == "nginx"

    @pytest.mark.parametrize("tag,valid", [
        ("latest", True), ("LATEST", True), ("Latest", True), ("1.0", False), ("", False),
    ])
    def test_validate_tag(self, fake_registry, tag, valid):
        assert LatestStrategy(fake_registry()).validate_tag(tag) is valid

    def test_should_update(self, fake_registry):
        strategy = LatestStrategy(fake_registry())
        assert strategy.should_update("nginx:latest", "nginx:latest") is False
        assert strategy.should_update("nginx", "nginx:latest") is False
        assert strategy.should_update("nginx:1.0", "nginx:latest") is True
        assert strategy.should_update("nginx:latest", "nginx:1.0") is True

    def test_compare_always_equal(self, fake_registry):
        strategy = LatestStrategy(fake_registry())
        assert strategy.compare_versions("1.0", "2.0") == 0
        assert strategy.compare_versions("latest", "1.0") == 0

    def test_cannot_handle_digest_pinned_images(self, fake_registry):
        strategy = LatestStrategy(fake_registry())
        assert strategy.can_handle("nginx:1.25")
        assert not strategy.can_handle("nginx@sha256:" + "a" * 64)


class TestSemverStrategy:
    """Test the semver strategy."""

    def test_caret_picks_highest_compatible(self, fake_registry):
        registry = fake_registry(["1.0.0", "1.2.3", "2.0.0", "latest"])
        assert SemverStrategy("^1.0.0", registry).resolve_tag("app") == "1.2.3"

    def test_returns_original_tag_string(self, fake_registry):
        registry = fake_registry(["v1.2.0", "v1.10.0", "release1.3.0"])
        assert SemverStrategy("*", registry).resolve_tag("app") == "v1.10.0"

    def test_wildcard_over_latest_only_fails(self, fake_registry):
        """An empty repository reports ['latest'], which is not a version."""
        with pytest.raises(ResolutionFailed):
            SemverStrategy("*", fake_registry([])).resolve_tag("app")

    def test_no_match_fails(self, fake_registry):
        with pytest.raises(ResolutionFailed) as excinfo:
            SemverStrategy("^3.0.0", fake_registry(["1.0.0", "2.0.0"])).resolve_tag("app")
        assert "^3.0.0" in str(excinfo.value)

    def test_prereleases_are_skipped_by_default(self, fake_registry):
        registry = fake_registry(["1.0.0", "1.1.0-rc.1"])
        assert SemverStrategy("^1.0.0", registry).resolve_tag("app") == "1.0.0"

    @pytest.mark.parametrize("tags", [
        ["1.0.0", "1.2.3", "1.2.3-1", "2.0.0"],
        ["1.2.3", "1.2.3-r0"],
        ["1.2.3-post", "1.2.3", "1.2.3-alpine"],
    ])
    def test_revision_suffixed_tags_are_not_picked(self, fake_registry, tags):
        assert SemverStrategy("^1.0.0", fake_registry(tags)).resolve_tag("app") == "1.2.3"

    def test_build_metadata_keeps_registry_order(self, fake_registry):
        registry = fake_registry(["1.2.3", "1.2.3+build5", "1.2.2"])
        assert SemverStrategy("^1.0.0", registry).resolve_tag("app") == "1.2.3+build5"

    def test_registry_error_becomes_resolution_failure(self, fake_registry):
        registry = fake_registry(error=RegistryUnavailable("down"))
        with pytest.raises(ResolutionFailed):
            SemverStrategy("*", registry).resolve_tag("app")

    def test_invalid_pattern_falls_back_to_wildcard(self, fake_registry):
        """A bad pattern does not fail construction; it behaves exactly like '*'."""
        tags = ["0.9.0", "1.0.0", "2.5.1", "latest", "3.0.0-beta"]
        broken = SemverStrategy("not-a-constraint", fake_registry(tags))
        wildcard = SemverStrategy("*", fake_registry(tags))

        assert broken.pattern == "*"
        assert broken.resolve_tag("app") == wildcard.resolve_tag("app") == "2.5.1"
        for tag in tags:
            assert broken.validate_tag(tag) == wildcard.validate_tag(tag)

    def test_set_constraint_is_strict(self, fake_registry):
        strategy = SemverStrategy("^1.0.0", fake_registry(["1.0.0", "2.0.0"]))

        with pytest.raises(ConfigInvalid):
            strategy.set_constraint("not-a-constraint")
        assert strategy.pattern == "^1.0.0"

        strategy.set_constraint("^2.0.0")
        assert strategy.resolve_tag("app") == "2.0.0"

    def test_validate_tag(self, fake_registry):
        strategy = SemverStrategy("~1.2.0", fake_registry())
        assert strategy.validate_tag("1.2.5")
        assert strategy.validate_tag("v1.2.0")
        assert not strategy.validate_tag("1.3.0")
        assert not strategy.validate_tag("latest")
        assert not strategy.validate_tag("1.2.3-post")
        assert not strategy.validate_tag("1.2.3-1")
        assert strategy.validate_tag("1.2.3+build5")

    def test_should_update(self, fake_registry):
        strategy = SemverStrategy("*", fake_registry())
        assert strategy.should_update("app:1.0.0", "app:1.2.0")
        assert not strategy.should_update("app:1.2.0", "app:1.2.0")
        assert not strategy.should_update("app:2.0.0", "app:1.2.0")
        # string fallback: 'latest' sorts after digits
        assert not strategy.should_update("app:latest", "app:1.2.0")

    def test_version_list_newest_first(self, fake_registry):
        registry = fake_registry(["1.0.0", "1.2.0", "1.1.0", "2.0.0", "latest"])
        strategy = SemverStrategy("^1.0.0", registry)
        assert strategy.version_list("app", limit=2) == ["1.2.0", "1.1.0"]
        assert strategy.version_list("app", limit=0) == ["1.2.0", "1.1.0", "1.0.0"]

    def test_queries_registry_every_time(self, fake_registry):
        registry = fake_registry(["1.0.0"])
        strategy = SemverStrategy("*", registry)
        strategy.resolve_tag("app")
        strategy.resolve_tag("app")
        assert registry.calls == ["app", "app"]


class TestBuildStrategy:
    """Test strategy lookup by name."""

    def test_builds_configured_strategy(self, fake_registry):
        registry = fake_registry()
        assert isinstance(build_strategy(CompmanConfig(), registry), LatestStrategy)

        config = CompmanConfig(image_tag_strategy="semver", semver_pattern="~2.1.0")
        strategy = build_strategy(config, registry)
        assert isinstance(strategy, SemverStrategy)
        assert strategy.pattern == "~2.1.0"
        assert strategy.registry_client is registry

    def test_unknown_strategy(self, fake_registry):
        with pytest.raises(ConfigInvalid):
            build_strategy(CompmanConfig(image_tag_strategy="nightly"), fake_registry())

    def test_register_strategy(self, fake_registry, monkeypatch):
        class PinnedStrategy(TagStrategy):
            name = "pinned"

            def resolve_tag(self, image):
                return "1.0.0"

            def validate_tag(self, tag):
                return True

            def should_update(self, current_image, target_image):
                return False

            def compare_versions(self, tag_a, tag_b):
                return 0

        monkeypatch.setattr("compman.services.strategy._FACTORIES", dict(_FACTORIES))
        register_strategy("pinned", lambda config, client: PinnedStrategy())

        assert "pinned" in available_strategies()
        strategy = build_strategy(CompmanConfig(image_tag_strategy="pinned"), fake_registry())
        assert strategy.resolve_tag("app") == "1.0.0"
