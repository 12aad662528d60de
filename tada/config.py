#!/usr/bin/env python3
"""Two-layer YAML configuration.

The global file ($XDG_CONFIG_HOME/tada/config.yaml) is read first, then the
local file (<root>/config.yaml); keys present in the local file override the
global ones. Unknown keys in either file are ignored.

Usage:
    from tada.config import TadaConfig, set_config_value

    cfg = TadaConfig.load(root)
    cfg.default_sort        # "" when unset

    set_config_value("tags", "work,home", get_local_config_path(root))
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pydantic
import yaml
from pydantic import BaseModel, ConfigDict, Field

from tada.errors import StorageError, ValidationError
from tada.paths import get_global_config_path, get_local_config_path

logger = logging.getLogger(__name__)


class TadaConfig(BaseModel):
    """Effective configuration. Empty values mean "not configured"."""

    model_config = ConfigDict(extra="ignore")

    default_sort: str = Field(default="", description="Sort key used by `list` when --sort is omitted.")
    theme: str = Field(default="", description="Palette name: default, dark or light.")
    default_status: str = Field(default="", description="Status given to new tasks when --status is omitted.")
    tags: list[str] = Field(default_factory=list, description="Suggested tags.")

    @classmethod
    def load(cls, root: Path | None = None, global_path: Path | None = None) -> TadaConfig:
        """Merge the global and local config files.

        Args:
            root: Task root holding the local config.yaml. None skips the local layer.
            global_path: Override for the global file location (tests).
        """
        merged: dict[str, Any] = {}
        layers = [global_path or get_global_config_path()]
        if root is not None:
            layers.append(get_local_config_path(root))
        for path in layers:
            merged.update(_read_layer(path))
        return cls.model_validate(merged)

    def to_yaml(self) -> str:
        return yaml.dump(self.model_dump(), default_flow_style=False, sort_keys=False, allow_unicode=True)


def _read_layer(path: Path) -> dict[str, Any]:
    """Read one config file, keeping only recognised keys with valid values."""
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        if data is not None:
            logger.warning("Ignoring config %s: not a mapping", path)
        return {}

    layer: dict[str, Any] = {}
    for key, value in data.items():
        if key not in TadaConfig.model_fields:
            continue
        try:
            TadaConfig.model_validate({key: value})
        except pydantic.ValidationError:
            logger.warning("Ignoring invalid value for '%s' in %s", key, path)
            continue
        layer[key] = value
    return layer


def set_config_value(key: str, value: str, path: Path) -> TadaConfig:
    """Set one key in the config file at path, keeping its other keys.

    The `tags` value is split on commas.

    Returns:
        The validated contents of that file after the change

    Raises:
        ValidationError: If key is not a recognised config key
        StorageError: If the file cannot be written
    """
    if key not in TadaConfig.model_fields:
        raise ValidationError("Unknown config key.")

    layer = _read_layer(path)
    layer[key] = [t.strip() for t in value.split(",") if t.strip()] if key == "tags" else value
    cfg = TadaConfig.model_validate(layer)

    content = yaml.dump(
        {k: v for k, v in cfg.model_dump().items() if k in layer},
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise StorageError(f"failed to write config {path}: {e}") from e
    logger.debug("Config %s: %s=%r", path, key, layer[key])
    return cfg
