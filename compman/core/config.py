"""compman runtime configuration and settings.

Configuration is an explicit value: it is loaded once, passed into the
orchestrator and strategies at construction time, and reloading returns a
fresh value instead of mutating shared state.
"""
import os
import re
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from compman.core.errors import ConfigInvalid
from compman.core.logger import get_logger

logger = get_logger(__name__)

VALID_STRATEGIES = ("latest", "semver")
VALID_COMPOSE_COMMANDS = ("auto", "docker compose", "docker-compose", "podman-compose")

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600, None: 1}


def default_config_path() -> Path:
    """Return ~/.config/compman/config.yml."""
    return Path.home() / ".config" / "compman" / "config.yml"


def parse_duration(value: Union[str, int, float, None], default: float) -> float:
    """Parse '5m', '30s', '1h', '1500ms' or a bare number of seconds."""
    if value is None or value == "":
        return default
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ConfigInvalid(f"Invalid duration: {value!r} (use e.g. 30s, 5m, 1h)")
    amount, unit = match.groups()
    return float(amount) * _DURATION_UNITS[unit]


@dataclass
class DockerConfig:
    """Connection settings for the Docker daemon."""
    host: str = ""  # empty: use DOCKER_HOST / default socket
    api_version: str = ""  # empty: negotiate
    tls_verify: bool = False
    cert_path: str = ""


@dataclass
class CompmanConfig:
    """Runtime configuration for compman operations.

    Attributes:
        compose_paths: Files or directories scanned for compose files
        image_tag_strategy: 'latest' or 'semver'
        semver_pattern: Version constraint used by the semver strategy
        exclude_images: Substrings; matching images are never updated
        selected_services: Compose file path or project directory name mapped to
            the only services updated in that file
        dry_run: Report intended actions without running compose
        backup_enabled: Back up compose files before rewriting image tags
        timeout: Generic command timeout in seconds (default: 300)
        pull_timeout: Timeout for 'compose pull' in seconds (default: 600)
        up_timeout: Timeout for 'compose up -d' in seconds (default: 300)
        compose_command: Compose tool to invoke ('auto' detects one)
        prune_after_update: Prune unused images after a real update run
    """

    compose_paths: List[str] = field(
        default_factory=lambda: ["./docker-compose.yml", "./compose.yml"]
    )
    image_tag_strategy: str = "latest"
    environment: str = "production"
    semver_pattern: str = "*"
    exclude_images: List[str] = field(default_factory=list)
    selected_services: Dict[str, List[str]] = field(default_factory=dict)
    dry_run: bool = False
    backup_enabled: bool = True
    timeout: float = 300.0
    pull_timeout: float = 600.0  # 10 minutes
    up_timeout: float = 300.0  # 5 minutes
    compose_command: str = "auto"
    prune_after_update: bool = True
    docker: DockerConfig = field(default_factory=DockerConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CompmanConfig":
        """Build a config from a parsed YAML mapping, ignoring unknown keys."""
        data = dict(data or {})
        defaults = cls()
        known = {f.name for f in fields(cls)}

        unknown = sorted(set(data) - known - {"docker_config"})
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

        docker_data = data.pop("docker_config", None) or data.pop("docker", None) or {}
        values = {k: v for k, v in data.items() if k in known and v is not None}

        for key in ("timeout", "pull_timeout", "up_timeout"):
            if key in values:
                values[key] = parse_duration(values[key], getattr(defaults, key))

        for key in ("compose_paths", "exclude_images"):
            if key in values and isinstance(values[key], str):
                values[key] = [values[key]]

        if "selected_services" in values:
            values["selected_services"] = _parse_selection_map(values["selected_services"])

        docker_known = {f.name for f in fields(DockerConfig)}
        values["docker"] = DockerConfig(
            **{k: v for k, v in docker_data.items() if k in docker_known and v is not None}
        )
        return cls(**values)

    @classmethod
    def from_env(cls, base: Optional["CompmanConfig"] = None) -> "CompmanConfig":
        """Apply environment overrides on top of a config.

        Environment variables:
            COMPMAN_PULL_TIMEOUT: Pull timeout (seconds or duration string)
            COMPMAN_UP_TIMEOUT: Up timeout (seconds or duration string)
            COMPMAN_DRY_RUN: '1'/'true' enables dry-run mode
            COMPMAN_STRATEGY: Tag strategy name

        Returns:
            New CompmanConfig with values from environment or the base
        """
        base = base or cls()
        overrides: Dict[str, Any] = {}
        if "COMPMAN_PULL_TIMEOUT" in os.environ:
            overrides["pull_timeout"] = parse_duration(
                os.environ["COMPMAN_PULL_TIMEOUT"], base.pull_timeout
            )
        if "COMPMAN_UP_TIMEOUT" in os.environ:
            overrides["up_timeout"] = parse_duration(
                os.environ["COMPMAN_UP_TIMEOUT"], base.up_timeout
            )
        if "COMPMAN_DRY_RUN" in os.environ:
            overrides["dry_run"] = os.environ["COMPMAN_DRY_RUN"].lower() in ("1", "true", "yes")
        if os.environ.get("COMPMAN_STRATEGY"):
            overrides["image_tag_strategy"] = os.environ["COMPMAN_STRATEGY"]
        return replace(base, **overrides) if overrides else base

    def services_for(self, file_path: str, project_name: str) -> Optional[List[str]]:
        """Services selected for a compose file, or None when every service is."""
        resolved = Path(file_path).expanduser().resolve()
        for key, names in self.selected_services.items():
            if key == project_name or Path(key).expanduser().resolve() == resolved:
                return list(names)
        return None

    def with_overrides(self, **overrides: Any) -> "CompmanConfig":
        """Return a copy with every non-None override applied."""
        applied = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **applied) if applied else self

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["docker_config"] = data.pop("docker")
        return data


def _parse_selection_map(value: Any) -> Dict[str, List[str]]:
    if not isinstance(value, dict):
        raise ConfigInvalid("selected_services must map a compose file or project to service names")
    selection = {}
    for key, names in value.items():
        if isinstance(names, str):
            names = [names]
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            raise ConfigInvalid(f"selected_services.{key} must be a list of service names")
        selection[str(key)] = names
    return selection


def default_config() -> CompmanConfig:
    """Return the built-in default configuration."""
    return CompmanConfig()


def merge_configs(base: CompmanConfig, user_data: Dict[str, Any]) -> CompmanConfig:
    """Overlay the keys present in a user YAML mapping on top of base."""
    user = CompmanConfig.from_dict(user_data)
    present = set(user_data or {})
    overrides = {
        f.name: getattr(user, f.name)
        for f in fields(CompmanConfig)
        if f.name in present and f.name != "docker"
    }
    merged = replace(base, **overrides)

    docker_data = (user_data or {}).get("docker_config") or (user_data or {}).get("docker")
    if docker_data:
        docker_overrides = {
            k: getattr(user.docker, k) for k in docker_data if hasattr(user.docker, k)
        }
        merged = replace(merged, docker=replace(base.docker, **docker_overrides))
    return merged


def validate_config(config: CompmanConfig) -> CompmanConfig:
    """Validate a config, raising ConfigInvalid for unusable values.

    An unparseable semver pattern is not rejected here: the
    semver strategy degrades it to the '*' wildcard.
    """
    if not config.compose_paths:
        raise ConfigInvalid("At least one compose path is required (compose_paths)")

    if config.image_tag_strategy not in VALID_STRATEGIES:
        raise ConfigInvalid(
            f"Unknown image tag strategy: {config.image_tag_strategy} "
            f"(supported: {', '.join(VALID_STRATEGIES)})"
        )

    if config.compose_command not in VALID_COMPOSE_COMMANDS:
        raise ConfigInvalid(
            f"Unknown compose command: {config.compose_command} "
            f"(supported: {', '.join(VALID_COMPOSE_COMMANDS)})"
        )

    for key in ("timeout", "pull_timeout", "up_timeout"):
        if getattr(config, key) <= 0:
            raise ConfigInvalid(f"{key} must be positive")

    return config


def resolve_config_path(config_path: Optional[str] = None) -> Path:
    """Locate the active config file: explicit path, COMPMAN_CONFIG, default."""
    if config_path:
        return Path(config_path).expanduser()
    if env_config := os.environ.get("COMPMAN_CONFIG"):
        return Path(env_config).expanduser()
    return default_config_path()


def load_config(config_path: Optional[str] = None) -> CompmanConfig:
    """Load configuration, merging the file over defaults.

    A missing file yields the defaults. Environment overrides are applied last.

    Raises:
        ConfigInvalid: If the file is not valid YAML or holds invalid values
    """
    path = resolve_config_path(config_path)
    config = default_config()

    if path.exists():
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigInvalid(f"Failed to parse config file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigInvalid(f"Config file {path} must contain a mapping")

        config = merge_configs(config, data)
        logger.debug(f"Loaded config from {path}")
    else:
        logger.debug(f"No config file at {path}, using defaults")

    return validate_config(CompmanConfig.from_env(config))


def reload_config(config_path: Optional[str] = None) -> CompmanConfig:
    """Re-read configuration from disk and return a fresh value."""
    return load_config(config_path)


def save_config(config: CompmanConfig, config_path: Optional[str] = None) -> Path:
    """Write a config to YAML, creating parent directories."""
    path = resolve_config_path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    logger.info(f"Saved config to {path}")
    return path
