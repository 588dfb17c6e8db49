"""
Docker daemon client.

Thin wrapper over the docker SDK for the operations compman needs after an
update: listing images, marking the ones containers use, and pruning the
rest. Pull and up go through the compose tool, never through this client.
"""
import os
from datetime import datetime
from typing import List, Optional

import docker
from docker.errors import DockerException
from docker.tls import TLSConfig

from compman.core.config import DockerConfig
from compman.core.errors import CompmanError, DaemonUnreachable
from compman.core.logger import get_logger
from compman.models.image import ImageInfo
from compman.models.result import PruneReport

logger = get_logger(__name__)

NONE_TAG = "<none>"


def _parse_created(value: Optional[str]) -> Optional[datetime]:
    # The daemon reports nanoseconds, which strptime cannot take
    if not value:
        return None
    try:
        return datetime.strptime(value[:19], "%Y-%m-%dT%H:%M:%S")
    except ValueError:
        return None


class DockerClient:
    """
    Lazily connected Docker daemon client.

    The connection is opened and pinged on first use and reused afterwards.

    Example:
        client = DockerClient(config.docker)
        for image in client.list_unused_images():
            print(image.reference)
    """

    def __init__(self, config: Optional[DockerConfig] = None):
        self.config = config or DockerConfig()
        self.logger = logger
        self._client = None

    @property
    def client(self):
        """The connected SDK client.

        Raises:
            DaemonUnreachable: If the daemon cannot be reached
        """
        if self._client is None:
            self._client = self._connect()
        return self._client

    def _connect(self):
        version = self.config.api_version or "auto"
        try:
            if self.config.host:
                client = docker.DockerClient(
                    base_url=self.config.host,
                    version=version,
                    tls=self._tls_config(),
                )
            else:
                client = docker.from_env(version=version)
            client.ping()
        except DockerException as e:
            raise DaemonUnreachable(f"Docker daemon unreachable: {e}") from e

        self.logger.debug(f"Connected to Docker daemon ({self.config.host or 'from env'})")
        return client

    def _tls_config(self):
        if not self.config.tls_verify:
            return False
        cert_path = self.config.cert_path
        if not cert_path:
            return True
        return TLSConfig(
            client_cert=(os.path.join(cert_path, "cert.pem"), os.path.join(cert_path, "key.pem")),
            ca_cert=os.path.join(cert_path, "ca.pem"),
            verify=True,
        )

    def list_images(self) -> List[ImageInfo]:
        """All local images, one entry per tag, with in_use set from containers.

        Raises:
            DaemonUnreachable: If the daemon cannot be reached
            CompmanError: If the daemon rejects the request
        """
        try:
            used_ids = {
                container.attrs.get("Image")
                for container in self.client.containers.list(all=True)
            }
            images = self.client.images.list()
        except DockerException as e:
            raise CompmanError(f"Failed to list images: {e}") from e

        infos = []
        for image in images:
            created = _parse_created(image.attrs.get("Created"))
            size = image.attrs.get("Size") or 0
            in_use = image.id in used_ids
            for ref in image.tags or [f"{NONE_TAG}:{NONE_TAG}"]:
                repository, _, tag = ref.rpartition(":")
                if "/" in tag:
                    # registry port, no tag
                    repository, tag = ref, NONE_TAG
                infos.append(ImageInfo(
                    repository=repository,
                    tag=tag,
                    image_id=image.short_id,
                    created=created,
                    size=size,
                    in_use=in_use,
                ))
        return infos

    def list_unused_images(self) -> List[ImageInfo]:
        return [image for image in self.list_images() if not image.in_use]

    def prune_images(self) -> PruneReport:
        """Remove every image no container references.

        Raises:
            DaemonUnreachable: If the daemon cannot be reached
            CompmanError: If the prune request fails
        """
        try:
            response = self.client.images.prune(filters={"dangling": False})
        except DockerException as e:
            raise CompmanError(f"Image prune failed: {e}") from e

        deleted = [
            entry.get("Deleted")
            for entry in response.get("ImagesDeleted") or []
            if entry.get("Deleted")
        ]
        return PruneReport(
            space_reclaimed=response.get("SpaceReclaimed") or 0,
            images_deleted=deleted,
        )

    def server_version(self) -> str:
        try:
            return self.client.version().get("Version", "unknown")
        except DockerException as e:
            raise CompmanError(f"Failed to query daemon version: {e}") from e

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
