"""Docker Compose file models."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

DEFAULT_COMPOSE_NAMES = ("docker-compose.yml", "docker-compose.yaml")


@dataclass
class BuildConfig:
    """Build section of a service."""
    context: str = "."
    dockerfile: str = "Dockerfile"
    args: Dict[str, str] = field(default_factory=dict)
    target: Optional[str] = None


@dataclass
class Service:
    """A single compose service. Either image or build is expected."""
    name: str
    image: str = ""
    build: Optional[BuildConfig] = None
    restart: Optional[str] = None
    other: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_image(self) -> bool:
        return bool(self.image and self.image.strip())


@dataclass
class ComposeFile:
    """A parsed compose file and where it lives on disk."""
    file_path: str
    services: Dict[str, Service] = field(default_factory=dict)
    version: Optional[str] = None
    networks: Dict[str, Any] = field(default_factory=dict)
    volumes: Dict[str, Any] = field(default_factory=dict)

    @property
    def path(self) -> Path:
        return Path(self.file_path)

    @property
    def directory(self) -> str:
        return str(self.path.parent)

    @property
    def file_name(self) -> str:
        return self.path.name

    @property
    def uses_default_name(self) -> bool:
        return self.file_name in DEFAULT_COMPOSE_NAMES

    @property
    def project_name(self) -> str:
        """Directory name, or the file stem when the file sits at a root."""
        parent = self.path.parent.name
        if parent in ("", ".", "/"):
            return self.path.stem
        return parent

    def image_services(self) -> Dict[str, Service]:
        """Services that carry a non-empty image (build-only ones excluded)."""
        return {name: svc for name, svc in self.services.items() if svc.has_image}

    def service_names(self) -> List[str]:
        return list(self.services)

    def images(self) -> List[str]:
        return [svc.image for svc in self.image_services().values()]
