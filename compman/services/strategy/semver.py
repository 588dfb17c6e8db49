"""Strategy that follows semantic-version tags within a constraint."""
from typing import List, Optional

from compman.core.errors import ConfigInvalid, RegistryUnavailable, ResolutionFailed
from compman.core.logger import get_logger
from compman.models.image import ImageReference
from compman.services.registry import RegistryTagClient
from compman.services.strategy.base import TagStrategy
from compman.services.strategy.versioning import (
    WILDCARD,
    VersionConstraint,
    compare_tags,
    sort_versions,
)

logger = get_logger(__name__)


class SemverStrategy(TagStrategy):
    """Pick the highest published version that satisfies a constraint.

    The pattern is compiled once at construction. An invalid pattern never
    fails construction: it is logged and replaced by the '*' wildcard, so a
    typo in the config updates to the newest release instead of crashing.
    Use ``set_constraint`` for a strict reconfiguration that raises instead.

    Example:
        strategy = SemverStrategy("^1.0.0")
        strategy.resolve_tag("grafana/grafana")   # '1.9.2', never '2.x'
    """

    name = "semver"
    description = "Follow semantic-version tags matching a constraint"

    def __init__(
        self,
        pattern: str = WILDCARD,
        registry_client: Optional[RegistryTagClient] = None,
    ):
        self.registry_client = registry_client or RegistryTagClient()
        self.logger = logger
        try:
            self.constraint = VersionConstraint.compile(pattern)
        except ConfigInvalid as e:
            self.logger.warning(f"Invalid semver pattern {pattern!r} ({e}), using '{WILDCARD}'")
            self.constraint = VersionConstraint.wildcard()

    @property
    def pattern(self) -> str:
        return self.constraint.pattern

    def set_constraint(self, pattern: str) -> None:
        """Recompile the constraint.

        Raises:
            ConfigInvalid: If the pattern is not a valid constraint
        """
        self.constraint = VersionConstraint.compile(pattern)

    def resolve_tag(self, image: str) -> str:
        """Return the original tag string of the highest matching version.

        Raises:
            ResolutionFailed: If the registry fails or no tag matches
        """
        candidates = self._matching(image)
        if not candidates:
            raise ResolutionFailed(
                f"No version of {image} matches '{self.pattern}'", image=image
            )

        version, tag = candidates[-1]
        self.logger.debug(f"{image}: resolved '{self.pattern}' to {tag} ({version})")
        return tag

    def version_list(self, image: str, limit: int = 10) -> List[str]:
        """Matching tags for an image, newest first.

        Raises:
            ResolutionFailed: If the registry cannot be queried
        """
        candidates = self._matching(image)
        tags = [tag for _, tag in reversed(candidates)]
        return tags[:limit] if limit > 0 else tags

    def validate_tag(self, tag: str) -> bool:
        return self.constraint.matches(tag)

    def should_update(self, current_image: str, target_image: str) -> bool:
        current = ImageReference.parse(current_image).effective_tag
        target = ImageReference.parse(target_image).effective_tag
        return compare_tags(current, target) < 0

    def compare_versions(self, tag_a: str, tag_b: str) -> int:
        return compare_tags(tag_a, tag_b)

    def _matching(self, image: str):
        try:
            tags = self.registry_client.get_tags(image)
        except RegistryUnavailable as e:
            raise ResolutionFailed(f"Cannot resolve tags for {image}: {e}", image=image) from e
        return sort_versions(tags, self.constraint.check)

    def __repr__(self) -> str:
        return f"SemverStrategy({self.pattern!r})"
