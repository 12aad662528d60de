#!/usr/bin/env python3
"""
Path resolution for tada.

The task root is a `.tada` directory found by walking upward from the
current working directory. $TADA_DIR overrides the search.

Environment variables:
- $TADA_DIR: explicit task root (used as-is, need not be named .tada)
- $XDG_CONFIG_HOME: base for the global config file (default ~/.config)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

ROOT_DIR_NAME = ".tada"
CONFIG_FILE_NAME = "config.yaml"


class RootNotFoundError(RuntimeError):
    """No .tada directory between the start directory and the filesystem root."""


def find_root(start: Path | None = None) -> Path:
    """
    Locate the task root.

    Args:
        start: Directory to start searching from. Defaults to the cwd.

    Returns:
        Path: Absolute path to the task root

    Raises:
        RootNotFoundError: If $TADA_DIR is unset and no .tada directory exists
            in start or any of its parents
    """
    override = os.environ.get("TADA_DIR")
    if override:
        path = Path(override).expanduser().resolve()
        logger.debug("Using TADA_DIR=%s", path)
        return path

    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        marker = candidate / ROOT_DIR_NAME
        if marker.is_dir():
            return marker

    raise RootNotFoundError(
        f"No {ROOT_DIR_NAME} directory found in {current} or any parent.\n"
        f"Create one with:  mkdir {ROOT_DIR_NAME}"
    )


def get_global_config_path() -> Path:
    """$XDG_CONFIG_HOME/tada/config.yaml, falling back to ~/.config."""
    base = os.environ.get("XDG_CONFIG_HOME")
    config_home = Path(base) if base else Path.home() / ".config"
    return config_home / "tada" / CONFIG_FILE_NAME


def get_local_config_path(root: Path) -> Path:
    return root / CONFIG_FILE_NAME
