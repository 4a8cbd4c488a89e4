"""Enhanced configuration management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..config import ArtworkToolkitConfig
from ..config import get_config as _get_global_config
from .base import ImageType
from .models import CapacityPolicy, ImageOption

if TYPE_CHECKING:
    from pathlib import Path

LOG = logging.getLogger(__name__)


@dataclass
class RefreshOptions:
    """Refresh options that can override configuration."""

    create_backups: bool | None = None
    cleanup_backups: str | None = None
    workers: int | None = None


class ConfigManager:
    """Enhanced configuration manager with context support."""

    def __init__(self, config_path: Path | None = None) -> None:
        """
        Initialize enhanced configuration manager.

        Args:
            config_path: Optional path to config file

        """
        self.config_path = config_path
        self._config = ArtworkToolkitConfig.load_from_file(config_path) if config_path else _get_global_config()
        self._overrides: dict[str, Any] = {}
        self._context_stack: list[dict[str, Any]] = []

    @property
    def config(self) -> ArtworkToolkitConfig:
        """Get the base configuration."""
        return self._config

    def get_value(self, key_path: str, default: object = None) -> object:
        """Get configuration value with override support."""
        # Check overrides first
        if key_path in self._overrides:
            return self._overrides[key_path]

        # Try to get from underlying config
        try:
            value = self._config
            parts = key_path.split(".")
            for part in parts:
                value = getattr(value, part)
        except AttributeError:
            return default
        else:
            return value

    def set_override(self, key_path: str, value: object) -> None:
        """Set a temporary configuration override."""
        self._overrides[key_path] = value

    def push_context(self, overrides: dict[str, Any]) -> None:
        """Push a new configuration context."""
        self._context_stack.append(self._overrides.copy())
        self._overrides.update(overrides)

    def pop_context(self) -> None:
        """Pop the current configuration context."""
        if self._context_stack:
            self._overrides = self._context_stack.pop()

    def apply_refresh_options(self, options: RefreshOptions) -> None:
        """Apply refresh options as configuration overrides."""
        overrides: dict[str, Any] = {}

        if options.create_backups is not None:
            overrides["global_.create_backups"] = options.create_backups
        if options.cleanup_backups is not None:
            overrides["global_.cleanup_backups"] = options.cleanup_backups
        if options.workers is not None:
            overrides["global_.default_workers"] = options.workers

        for key, value in overrides.items():
            self.set_override(key, value)

    def capacity_policy(self, category: str | None = None) -> CapacityPolicy:
        """Build the image capacity policy for an entry category."""
        category = category or self._config.library.category
        options: dict[ImageType, ImageOption] = {}
        for type_name, image_limit in self._config.library.type_options.get(category, {}).items():
            try:
                image_type = ImageType.parse(type_name)
            except ValueError as e:
                LOG.warning("Ignoring image options for '%s': %s", category, e)
                continue
            options[image_type] = ImageOption(limit=image_limit.limit, min_width=image_limit.min_width)
        return CapacityPolicy(category=category, options=options)


class ConfigContext:
    """Context manager for temporary configuration changes."""

    def __init__(self, config_manager: ConfigManager, overrides: dict[str, Any]) -> None:
        """
        Initialize configuration context.

        Args:
            config_manager: Configuration manager instance
            overrides: Configuration overrides to apply

        """
        self.config_manager = config_manager
        self.overrides = overrides

    def __enter__(self) -> ConfigManager:
        """Enter the configuration context."""
        self.config_manager.push_context(self.overrides)
        return self.config_manager

    def __exit__(self, _exc_type: object, _exc_val: object, _exc_tb: object) -> None:
        """Exit the configuration context."""
        self.config_manager.pop_context()


def with_config_overrides(config_manager: ConfigManager, **overrides: object) -> ConfigContext:
    """Create a context with configuration overrides."""
    return ConfigContext(config_manager, overrides)
