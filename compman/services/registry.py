"""Registry tag client.

Fetches the tags currently published for an image repository. Docker Hub is
queried through its tag-listing API; other registries get a minimal fallback.
Nothing is cached: every call goes back to the registry.
"""
from typing import List, Optional, Tuple

import requests

from compman.core.errors import RegistryUnavailable
from compman.core.logger import get_logger
from compman.core.retry import retry
from compman.models.image import ImageReference, looks_like_host

logger = get_logger(__name__)

DOCKER_HUB = "docker.io"
DOCKER_HUB_API = "https://registry.hub.docker.com/v2/repositories"
PAGE_SIZE = 100
FALLBACK_TAGS = ["latest"]


def split_registry(image: str) -> Tuple[str, str]:
    """Split an image name into (registry, repository).

    - 'nginx'                -> ('docker.io', 'library/nginx')
    - 'grafana/grafana'      -> ('docker.io', 'grafana/grafana')
    - 'ghcr.io/org/app'      -> ('ghcr.io', 'org/app')
    - 'org/team/app'         -> ('org', 'team/app')

    Tags and digests are stripped first.
    """
    name = ImageReference.parse(image).name
    parts = name.split("/")

    if len(parts) == 1:
        return DOCKER_HUB, f"library/{parts[0]}"
    if len(parts) == 2 and not looks_like_host(parts[0]):
        return DOCKER_HUB, name
    if parts[0] in (DOCKER_HUB, "index.docker.io", "registry-1.docker.io"):
        rest = parts[1:]
        if len(rest) == 1:
            return DOCKER_HUB, f"library/{rest[0]}"
        return DOCKER_HUB, "/".join(rest)
    return parts[0], "/".join(parts[1:])


class RegistryTagClient:
    """Lists tags for images on Docker Hub.

    Example:
        client = RegistryTagClient()
        client.get_tags("nginx")        # ['1.27.0', 'alpine', 'latest', ...]
    """

    def __init__(
        self,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        max_pages: int = 1,
    ):
        """
        Args:
            timeout: Per-request timeout in seconds
            session: Optional requests session (tests inject one)
            max_attempts: Attempts for transport errors before giving up
            retry_delay: Initial backoff delay in seconds
            max_pages: How many result pages to follow via 'next'
        """
        self.timeout = timeout
        self.session = session or requests.Session()
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.max_pages = max_pages

    def get_tags(self, image: str) -> List[str]:
        """Return the tags published for an image's repository.

        Never returns an empty list: a repository without tags reports
        ['latest'].

        Raises:
            RegistryUnavailable: On transport failure or non-2xx response
        """
        registry, repository = split_registry(image)
        if registry == DOCKER_HUB:
            return self._docker_hub_tags(repository)
        return self._registry_tags(registry, repository)

    def repository_exists(self, image: str) -> bool:
        """True when at least one tag can be resolved for the image."""
        return len(self.get_tags(image)) > 0

    def _docker_hub_tags(self, repository: str) -> List[str]:
        url = f"{DOCKER_HUB_API}/{repository}/tags/"
        params = {"page_size": PAGE_SIZE}
        tags: List[str] = []

        for _ in range(self.max_pages):
            payload = self._fetch_page(url, params)
            for entry in payload.get("results") or []:
                name = entry.get("name") if isinstance(entry, dict) else None
                if name:
                    tags.append(name)

            url = payload.get("next")
            params = None  # 'next' already carries the query string
            if not url:
                break

        if not tags:
            logger.debug(f"No tags returned for {repository}, assuming 'latest'")
            return list(FALLBACK_TAGS)

        logger.debug(f"Fetched {len(tags)} tags for {repository}")
        return tags

    def _fetch_page(self, url: str, params: Optional[dict]) -> dict:
        fetch = retry(
            max_attempts=self.max_attempts,
            delay=self.retry_delay,
            exceptions=(requests.ConnectionError, requests.Timeout),
        )(self._get)

        try:
            response = fetch(url, params)
        except requests.RequestException as e:
            raise RegistryUnavailable(f"Docker Hub request failed: {e}", url=url) from e

        if not 200 <= response.status_code < 300:
            raise RegistryUnavailable(
                f"Docker Hub returned an error for {url}",
                status_code=response.status_code,
                body=response.text,
                url=url,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise RegistryUnavailable(
                f"Docker Hub returned invalid JSON: {e}",
                status_code=response.status_code,
                body=response.text,
                url=url,
            ) from e

        if not isinstance(payload, dict):
            raise RegistryUnavailable(
                "Docker Hub returned an unexpected payload",
                status_code=response.status_code,
                body=response.text,
                url=url,
            )
        return payload

    def _get(self, url: str, params: Optional[dict]) -> requests.Response:
        return self.session.get(url, params=params, timeout=self.timeout)

    def _registry_tags(self, registry: str, repository: str) -> List[str]:
        # TODO: query the Registry V2 API (/v2/<repo>/tags/list with token auth)
        logger.debug(
            f"Tag listing for {registry}/{repository} is not supported, assuming 'latest'"
        )
        return list(FALLBACK_TAGS)
