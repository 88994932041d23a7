"""Utility module."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import toml
from ml_collections import ConfigDict

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


def load_config(path: Path) -> ConfigDict:
    """Load a simulation config file.

    Args:
        path: Path to the config file.

    Returns:
        The configuration.
    """
    assert path.exists(), f"Configuration file not found: {path}"
    assert path.suffix == ".toml", f"Configuration file has to be a TOML file: {path}"

    with open(path, "r") as f:
        config = ConfigDict(toml.load(f))
    logger.debug(f"Loaded configuration from {path}")
    return config
