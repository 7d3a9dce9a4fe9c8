"""
Config Base — dataclass configs populated from environment variables.

Every config is a ``@dataclass`` subclass of ``BaseConfig`` that
declares an ``_ENV_MAP`` (field name → environment variable) and
registers itself with ``@register_config`` so it can be looked up
by name.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from logging import getLogger
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

logger = getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

C = TypeVar("C", bound="BaseConfig")

_registry: Dict[str, Type["BaseConfig"]] = {}
_instances: Dict[str, "BaseConfig"] = {}


@dataclass
class BaseConfig:
    """Base class for all config dataclasses."""

    @classmethod
    def get_default_instance(cls: Type[C]) -> C:
        raise NotImplementedError

    @classmethod
    def get_config_name(cls) -> str:
        raise NotImplementedError

    @classmethod
    def get_display_name(cls) -> str:
        return cls.get_config_name()

    @classmethod
    def get_description(cls) -> str:
        return ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def register_config(cls: Type[C]) -> Type[C]:
    """Class decorator: make a config discoverable via ``get_config``."""
    _registry[cls.get_config_name()] = cls
    return cls


def get_config(name: str) -> Optional[BaseConfig]:
    """Return the cached default instance of a registered config."""
    if name not in _instances:
        cls = _registry.get(name)
        if cls is None:
            return None
        _instances[name] = cls.get_default_instance()
    return _instances[name]


def reset_configs() -> None:
    """Drop cached instances so the next lookup re-reads the environment."""
    _instances.clear()


def _coerce(raw: str, type_name: str, env_var: str) -> Any:
    type_name = type_name if isinstance(type_name, str) else getattr(type_name, "__name__", "")
    if type_name == "bool":
        value = raw.strip().lower()
        if value in _TRUE_VALUES:
            return True
        if value in _FALSE_VALUES:
            return False
        raise ValueError(f"{env_var}: expected a boolean, got '{raw}'")
    if type_name == "int":
        return int(raw)
    if type_name == "float":
        return float(raw)
    return raw


def read_env_defaults(
    env_map: Mapping[str, str],
    fields: Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Collect constructor kwargs from environment variables.

    Only variables that are actually set are returned, so dataclass
    defaults still apply to everything else. Values are coerced to the
    declared field type (``bool``, ``int``, ``float`` or ``str``).
    """
    env = os.environ if environ is None else environ
    values: Dict[str, Any] = {}
    for field_name, env_var in env_map.items():
        raw = env.get(env_var)
        if raw is None or field_name not in fields:
            continue
        try:
            values[field_name] = _coerce(raw, fields[field_name].type, env_var)
        except ValueError as e:
            logger.warning(f"Ignoring invalid config value: {e}")
    return values
