"""Image reference and local image models."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

DEFAULT_TAG = "latest"


def looks_like_host(segment: str) -> bool:
    """Registry hosts carry a dot or a port, or are literally localhost."""
    return "." in segment or ":" in segment or segment == "localhost"


@dataclass(frozen=True)
class ImageReference:
    """A parsed image string: [registry/]repository[:tag][@digest].

    A reference without tag or digest implies the 'latest' tag. A digest
    reference has no mutable tag unless one was written next to it.
    """
    repository: str
    registry: Optional[str] = None
    tag: Optional[str] = None
    digest: Optional[str] = None

    @classmethod
    def parse(cls, ref: str) -> "ImageReference":
        """Split an image string into its parts.

        Examples:
            nginx                       -> repository=nginx, tag=latest
            linuxserver/plex:1.40       -> repository=linuxserver/plex, tag=1.40
            localhost:5000/app          -> registry=localhost:5000, tag=latest
            ghcr.io/org/app@sha256:...  -> registry=ghcr.io, digest=sha256:...
        """
        ref = ref.strip()
        digest = None
        if "@" in ref:
            ref, digest = ref.split("@", 1)

        tag = None
        last_slash = ref.rfind("/")
        colon = ref.rfind(":")
        if colon > last_slash:
            ref, tag = ref[:colon], ref[colon + 1:]

        registry = None
        parts = ref.split("/", 1)
        if len(parts) == 2 and looks_like_host(parts[0]):
            registry, ref = parts

        if tag is None and digest is None:
            tag = DEFAULT_TAG

        return cls(repository=ref, registry=registry, tag=tag or None, digest=digest)

    @property
    def is_digest(self) -> bool:
        return self.digest is not None

    @property
    def name(self) -> str:
        """Registry and repository without tag or digest."""
        if self.registry:
            return f"{self.registry}/{self.repository}"
        return self.repository

    @property
    def effective_tag(self) -> str:
        """The tag used for comparisons; digest-only references report ''."""
        if self.tag:
            return self.tag
        return "" if self.is_digest else DEFAULT_TAG

    def with_tag(self, tag: str) -> str:
        """Render this reference pointing at another tag (digest dropped)."""
        return f"{self.name}:{tag}"

    def __str__(self) -> str:
        rendered = self.name
        if self.tag:
            rendered += f":{self.tag}"
        if self.digest:
            rendered += f"@{self.digest}"
        return rendered


@dataclass
class ImageInfo:
    """A local image as reported by the Docker daemon."""
    repository: str
    tag: str
    image_id: str
    created: Optional[datetime] = None
    size: int = 0
    in_use: bool = False

    @property
    def reference(self) -> str:
        return f"{self.repository}:{self.tag}"


def format_size(num_bytes: int) -> str:
    """Render a byte count as B/KB/MB/GB..."""
    unit = 1024
    if num_bytes < unit:
        return f"{num_bytes} B"
    div, exp = unit, 0
    n = num_bytes // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{num_bytes / div:.1f} {'KMGTPE'[exp]}B"
