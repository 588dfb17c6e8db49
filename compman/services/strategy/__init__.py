"""
Image tag strategies.

Strategies are looked up by name, so a new variant (for example one that pins
digests) is added with ``register_strategy`` and picked up by the CLI and the
update orchestrator unchanged.
"""
from typing import Callable, Dict, List, Optional

from compman.core.config import CompmanConfig
from compman.core.errors import ConfigInvalid
from compman.services.registry import RegistryTagClient

from .base import TagStrategy
from .latest import LatestStrategy
from .semver import SemverStrategy
from .versioning import TagVersion, VersionConstraint, compare_tags, normalize_tag, parse_version

StrategyFactory = Callable[[CompmanConfig, RegistryTagClient], TagStrategy]

_FACTORIES: Dict[str, StrategyFactory] = {
    "latest": lambda config, client: LatestStrategy(client),
    "semver": lambda config, client: SemverStrategy(config.semver_pattern, client),
}


def register_strategy(name: str, factory: StrategyFactory) -> None:
    """Make a strategy available under a name (replaces an existing one)."""
    _FACTORIES[name] = factory


def available_strategies() -> List[str]:
    return sorted(_FACTORIES)


def build_strategy(
    config: CompmanConfig,
    registry_client: Optional[RegistryTagClient] = None,
) -> TagStrategy:
    """Build the strategy named by config.image_tag_strategy.

    Raises:
        ConfigInvalid: If no strategy is registered under that name
    """
    factory = _FACTORIES.get(config.image_tag_strategy)
    if factory is None:
        raise ConfigInvalid(
            f"Unknown image tag strategy: {config.image_tag_strategy} "
            f"(supported: {', '.join(available_strategies())})"
        )
    return factory(config, registry_client or RegistryTagClient())


__all__ = [
    "TagStrategy",
    "LatestStrategy",
    "SemverStrategy",
    "TagVersion",
    "VersionConstraint",
    "compare_tags",
    "normalize_tag",
    "parse_version",
    "build_strategy",
    "register_strategy",
    "available_strategies",
]
