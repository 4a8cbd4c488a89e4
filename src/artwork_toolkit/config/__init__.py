"""Configuration management for the artwork toolkit."""

from __future__ import annotations

from .constants import *  # noqa: F403, F401
from .settings import ArtworkToolkitConfig, get_config

__all__ = [
    "ArtworkToolkitConfig",
    "get_config",
]
