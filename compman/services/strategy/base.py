"""Abstract base class for image tag strategies."""
from abc import ABC, abstractmethod

from compman.models.image import ImageReference


class TagStrategy(ABC):
    """Abstract interface for tag strategies (latest, semver, etc.).

    A strategy decides which tag is the update target for an image. The
    orchestrator only talks to this interface, so a new variant plugs in
    through ``register_strategy`` without touching the update code.
    """

    name: str = ""
    description: str = ""

    @abstractmethod
    def resolve_tag(self, image: str) -> str:
        """Return the tag this strategy considers the best target for an image.

        Args:
            image: Image name, with or without registry, tag or digest

        Returns:
            Tag string as published by the registry

        Raises:
            ResolutionFailed: If no tag satisfies the strategy
        """
        pass

    @abstractmethod
    def validate_tag(self, tag: str) -> bool:
        """Pure check that a tag is acceptable under this strategy (no I/O)."""
        pass

    @abstractmethod
    def should_update(self, current_image: str, target_image: str) -> bool:
        """Decide whether moving from current to target warrants an update.

        Args:
            current_image: Image reference currently in the compose file
            target_image: Image reference pointing at the resolved tag
        """
        pass

    @abstractmethod
    def compare_versions(self, tag_a: str, tag_b: str) -> int:
        """Order two tags: -1, 0 or 1."""
        pass

    def can_handle(self, image: str) -> bool:
        """Digest-pinned images are immutable and never handled."""
        return not ImageReference.parse(image).is_digest

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
