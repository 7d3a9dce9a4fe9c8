"""
Flow Builder Configuration.

Controls where saved flows live, how templates are placed on the
canvas, the default edge styling, and the log level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from flowbuilder.config.base import BaseConfig, get_config, read_env_defaults, register_config

_DEFAULT_STORAGE_DIR = Path(__file__).parent.parent.parent / "flows"


@register_config
@dataclass
class BuilderConfig(BaseConfig):
    """Graph engine and persistence settings."""

    storage_dir: str = ""
    default_flow_name: str = "default-flow"
    template_offset_x: float = 100.0
    template_offset_y: float = 100.0
    edge_type: str = "smoothstep"
    edge_animated: bool = True
    log_level: str = "INFO"

    _ENV_MAP = {
        "storage_dir": "FLOWBUILDER_STORAGE_DIR",
        "default_flow_name": "FLOWBUILDER_DEFAULT_FLOW",
        "template_offset_x": "FLOWBUILDER_TEMPLATE_OFFSET_X",
        "template_offset_y": "FLOWBUILDER_TEMPLATE_OFFSET_Y",
        "edge_type": "FLOWBUILDER_EDGE_TYPE",
        "edge_animated": "FLOWBUILDER_EDGE_ANIMATED",
        "log_level": "FLOWBUILDER_LOG_LEVEL",
    }

    @classmethod
    def get_default_instance(cls) -> "BuilderConfig":
        defaults = read_env_defaults(cls._ENV_MAP, cls.__dataclass_fields__)
        return cls(**defaults)

    @classmethod
    def get_config_name(cls) -> str:
        return "builder"

    @classmethod
    def get_display_name(cls) -> str:
        return "Flow Builder"

    @classmethod
    def get_description(cls) -> str:
        return "Flow storage location, template placement, and edge styling."

    @property
    def storage_path(self) -> Path:
        return Path(self.storage_dir) if self.storage_dir else _DEFAULT_STORAGE_DIR


def get_builder_config() -> BuilderConfig:
    """Return the process-wide BuilderConfig."""
    return get_config(BuilderConfig.get_config_name())


def configure_logging(config: Optional[BuilderConfig] = None) -> None:
    """Apply ``log_level`` to the root logger."""
    config = config or get_builder_config()
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
