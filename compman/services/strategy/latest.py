"""Strategy that always targets the 'latest' tag."""
from typing import Optional

from compman.core.errors import RegistryUnavailable, ResolutionFailed
from compman.core.logger import get_logger
from compman.models.image import DEFAULT_TAG, ImageReference
from compman.services.registry import RegistryTagClient
from compman.services.strategy.base import TagStrategy

logger = get_logger(__name__)


class LatestStrategy(TagStrategy):
    """Track the moving 'latest' tag.

    Freshness comes from pulling, not from ordering: any service on 'latest'
    is pulled again to pick up upstream movement, and no tag compares newer
    than another.
    """

    name = "latest"
    description = "Always pull the 'latest' tag"

    def __init__(self, registry_client: Optional[RegistryTagClient] = None):
        self.registry_client = registry_client or RegistryTagClient()
        self.logger = logger

    def resolve_tag(self, image: str) -> str:
        """Return 'latest' once the repository is confirmed to exist.

        Raises:
            ResolutionFailed: If the registry cannot be queried or has no tags
        """
        try:
            exists = self.registry_client.repository_exists(image)
        except RegistryUnavailable as e:
            raise ResolutionFailed(f"Cannot resolve tags for {image}: {e}", image=image) from e

        if not exists:
            raise ResolutionFailed(f"No tags found for {image}", image=image)

        self.logger.debug(f"{image}: resolved to '{DEFAULT_TAG}'")
        return DEFAULT_TAG

    def validate_tag(self, tag: str) -> bool:
        return tag.lower() == DEFAULT_TAG

    def should_update(self, current_image: str, target_image: str) -> bool:
        current = ImageReference.parse(current_image).effective_tag
        target = ImageReference.parse(target_image).effective_tag
        return not (self.validate_tag(current) and self.validate_tag(target))

    def compare_versions(self, tag_a: str, tag_b: str) -> int:
        return 0
