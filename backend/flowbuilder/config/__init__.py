"""
Configuration Package.

Dataclass configs filled from ``FLOWBUILDER_*`` environment variables.
"""

from flowbuilder.config.base import (
    BaseConfig,
    get_config,
    read_env_defaults,
    register_config,
    reset_configs,
)
from flowbuilder.config.builder_config import (
    BuilderConfig,
    configure_logging,
    get_builder_config,
)

__all__ = [
    "BaseConfig",
    "get_config",
    "read_env_defaults",
    "register_config",
    "reset_configs",
    "BuilderConfig",
    "configure_logging",
    "get_builder_config",
]
