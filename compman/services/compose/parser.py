"""
Docker Compose file parser and image writer.

Reading uses PyYAML. Rewriting image tags uses ruamel.yaml in round-trip mode
so comments, key order and quoting of the user's file survive the edit.
"""
import shutil
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError as RoundTripError

from compman.core.errors import ValidationFailed
from compman.core.logger import get_logger
from compman.models.compose import BuildConfig, ComposeFile, Service

logger = get_logger(__name__)

BACKUP_SUFFIX = ".backup"


class ComposeParser:
    """
    Parses Docker Compose files into ComposeFile models.

    Lenient by default: a service with neither image nor build is kept and
    logged. Strict mode raises ValidationFailed for it instead.

    Example:
        parser = ComposeParser()
        compose = parser.parse_file("/srv/media/docker-compose.yml")
        compose.images()   # ['linuxserver/plex:latest', ...]
    """

    def __init__(self, strict: bool = False):
        self.strict = strict
        self.logger = logger

    def parse_file(self, file_path: str) -> ComposeFile:
        """
        Parse a compose file from disk.

        Raises:
            ValidationFailed: If the file is missing, unreadable or invalid
        """
        path = Path(file_path)
        if not path.is_file():
            raise ValidationFailed(f"Compose file not found: {file_path}", path=str(file_path))

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ValidationFailed(f"Cannot read {file_path}: {e}", path=str(file_path)) from e

        return self.parse_content(content, str(file_path))

    def parse_content(self, content: str, file_path: str = "") -> ComposeFile:
        """
        Parse compose YAML text.

        Raises:
            ValidationFailed: If the text is not a compose mapping
        """
        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ValidationFailed(f"Invalid YAML in {file_path or 'compose content'}: {e}",
                                   path=file_path) from e

        if not isinstance(data, dict):
            raise ValidationFailed(f"{file_path or 'Compose content'} is not a mapping",
                                   path=file_path)

        raw_services = data.get("services") or {}
        if not isinstance(raw_services, dict):
            raise ValidationFailed(f"'services' must be a mapping in {file_path}", path=file_path)

        services = {}
        for name, raw in raw_services.items():
            services[str(name)] = self._parse_service(str(name), raw or {}, file_path)

        version = data.get("version")
        return ComposeFile(
            file_path=file_path,
            services=services,
            version=str(version) if version is not None else None,
            networks=data.get("networks") or {},
            volumes=data.get("volumes") or {},
        )

    def _parse_service(self, name: str, raw: Any, file_path: str) -> Service:
        if not isinstance(raw, dict):
            raise ValidationFailed(f"Service '{name}' must be a mapping in {file_path}",
                                   path=file_path)

        image = str(raw.get("image") or "").strip()
        build = self._parse_build(raw.get("build"))

        if not image and build is None:
            message = f"Service '{name}' has neither image nor build in {file_path}"
            if self.strict:
                raise ValidationFailed(message, path=file_path)
            self.logger.debug(message)

        other = {k: v for k, v in raw.items() if k not in ("image", "build", "restart")}
        return Service(name=name, image=image, build=build,
                       restart=raw.get("restart"), other=other)

    @staticmethod
    def _parse_build(raw: Any) -> Optional[BuildConfig]:
        if raw is None:
            return None
        if isinstance(raw, str):
            return BuildConfig(context=raw)
        if isinstance(raw, dict):
            args = raw.get("args") or {}
            if isinstance(args, list):
                # ['KEY=value', 'FLAG'] form
                args = dict(item.split("=", 1) if "=" in item else (item, "") for item in args)
            return BuildConfig(
                context=raw.get("context") or ".",
                dockerfile=raw.get("dockerfile") or "Dockerfile",
                args={str(k): str(v) for k, v in args.items()},
                target=raw.get("target"),
            )
        return BuildConfig()

    def update_images(
        self,
        file_path: str,
        images: Dict[str, str],
        backup: bool = True,
    ) -> bool:
        """
        Rewrite the image of the given services in place.

        Args:
            file_path: Compose file to edit
            images: Mapping of service name to new image reference
            backup: Copy the file aside first and restore it if writing fails

        Returns:
            True if the file changed, False if every image was already set

        Raises:
            ValidationFailed: If the file cannot be loaded or written
        """
        yaml_rt = YAML()
        yaml_rt.preserve_quotes = True

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml_rt.load(f)
        except (OSError, RoundTripError) as e:
            raise ValidationFailed(f"Cannot load {file_path} for update: {e}",
                                   path=file_path) from e

        services = (data or {}).get("services") or {}
        changed = False
        for name, new_image in images.items():
            service = services.get(name)
            if service is None:
                self.logger.warning(f"Service '{name}' not found in {file_path}")
                continue
            if service.get("image") == new_image:
                continue
            self.logger.info(f"{name}: {service.get('image')} -> {new_image}")
            service["image"] = new_image
            changed = True

        if not changed:
            return False

        backup_path = self.backup_file(file_path) if backup else None
        try:
            with open(file_path, "w", encoding="utf-8") as f:
                yaml_rt.dump(data, f)
        except (OSError, RoundTripError) as e:
            if backup_path:
                self.restore_backup(file_path, backup_path)
            raise ValidationFailed(f"Failed to write {file_path}: {e}", path=file_path) from e

        return True

    def backup_file(self, file_path: str) -> str:
        """Copy a file next to itself with a '.backup' suffix."""
        backup_path = f"{file_path}{BACKUP_SUFFIX}"
        try:
            shutil.copy2(file_path, backup_path)
        except OSError as e:
            raise ValidationFailed(f"Failed to back up {file_path}: {e}", path=file_path) from e
        self.logger.debug(f"Backed up {file_path} to {backup_path}")
        return backup_path

    def restore_backup(self, file_path: str, backup_path: str) -> None:
        """Copy a backup over the original file."""
        try:
            shutil.copy2(backup_path, file_path)
        except OSError as e:
            raise ValidationFailed(f"Failed to restore {file_path} from {backup_path}: {e}",
                                   path=file_path) from e
        self.logger.warning(f"Restored {file_path} from {backup_path}")
