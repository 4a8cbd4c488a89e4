"""Configuration management for artwork toolkit."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

LOG = logging.getLogger(__name__)


# Configuration singleton
class _ConfigSingleton:
    """Configuration singleton holder."""

    _instance: ArtworkToolkitConfig | None = None

    @classmethod
    def get_instance(cls) -> ArtworkToolkitConfig:
        """Get the configuration instance."""
        if cls._instance is None:
            # Try to load from default config file (look in project root)
            config_path = Path.cwd() / "config.yaml"
            if config_path.exists():
                cls._instance = ArtworkToolkitConfig.load_from_file(config_path)
            else:
                cls._instance = ArtworkToolkitConfig()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the configuration instance."""
        cls._instance = None


_config_singleton = _ConfigSingleton()

DEFAULT_IMAGE_EXTENSIONS = [".jpg", ".jpeg", ".png", ".webp", ".gif", ".tbn"]
DEFAULT_MEDIA_EXTENSIONS = [".mp4", ".mkv", ".avi", ".mov", ".wmv", ".webm", ".m4v", ".ts"]


@dataclass
class ImageLimit:
    """Capacity and quality floor for one image type."""

    limit: int = 1
    min_width: int = 0


@dataclass
class LibraryConfig:
    """Library and per-category image settings."""

    category: str = "Movie"
    extensions: list[str] = field(default_factory=lambda: list(DEFAULT_MEDIA_EXTENSIONS))
    save_images_with_media: bool = True
    metadata_path: Path = field(default_factory=lambda: Path.home() / ".local" / "share" / "artwork-toolkit")
    # category -> image type name -> limit
    type_options: dict[str, dict[str, ImageLimit]] = field(default_factory=dict)


@dataclass
class LocalConfig:
    """Local image discovery settings."""

    extensions: list[str] = field(default_factory=lambda: list(DEFAULT_IMAGE_EXTENSIONS))


@dataclass
class HttpConfig:
    """HTTP client settings for remote providers."""

    timeout_seconds: float = 20.0
    user_agent: str = "artwork-toolkit/0.1"


@dataclass
class RemoteProviderConfig:
    """A JSON image index endpoint used as a remote provider."""

    name: str
    endpoint: str
    id_key: str = "tmdb"
    image_types: list[str] = field(default_factory=lambda: ["Primary", "Backdrop"])
    enabled: bool = True


@dataclass
class GlobalConfig:
    """Global settings."""

    default_workers: int | None = None
    log_level: str = "INFO"
    create_backups: bool = True
    cleanup_backups: str = "on_success"


@dataclass
class ArtworkToolkitConfig:
    """Main configuration class."""

    library: LibraryConfig = field(default_factory=LibraryConfig)
    local: LocalConfig = field(default_factory=LocalConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    remote_providers: list[RemoteProviderConfig] = field(default_factory=list)
    global_: GlobalConfig = field(default_factory=GlobalConfig)

    @classmethod
    def load_from_file(cls, config_path: Path) -> ArtworkToolkitConfig:
        """Load configuration from YAML file."""
        try:
            with config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            return cls._from_dict(data)
        except (OSError, yaml.YAMLError) as e:
            LOG.warning("Failed to load config from %s: %s", config_path, e)
            return cls()

    def list_remote_providers(self) -> list[str]:
        """Get names of the enabled remote providers."""
        return [p.name for p in self.remote_providers if p.enabled]

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> ArtworkToolkitConfig:
        """Create config from dictionary."""
        library_config = cls._parse_library_config(data.get("library", {}))
        local_config = LocalConfig(extensions=data.get("local", {}).get("extensions", list(DEFAULT_IMAGE_EXTENSIONS)))
        http_data = data.get("http", {})
        http_config = HttpConfig(
            timeout_seconds=float(http_data.get("timeout_seconds", 20.0)),
            user_agent=http_data.get("user_agent", "artwork-toolkit/0.1"),
        )
        remote_providers = cls._parse_remote_providers(data.get("remote_providers", []))
        global_config = cls._parse_global_config(data.get("global", {}))

        return cls(
            library=library_config,
            local=local_config,
            http=http_config,
            remote_providers=remote_providers,
            global_=global_config,
        )

    @classmethod
    def _parse_library_config(cls, library_data: dict[str, Any]) -> LibraryConfig:
        """Parse library configuration including per-category image limits."""
        type_options: dict[str, dict[str, ImageLimit]] = {}
        for category, options in library_data.get("type_options", {}).items():
            if not isinstance(options, dict):
                LOG.warning("Ignoring image options for '%s': expected a mapping", category)
                continue
            parsed: dict[str, ImageLimit] = {}
            for image_type, limit_data in options.items():
                try:
                    if isinstance(limit_data, dict):
                        parsed[image_type] = ImageLimit(
                            limit=int(limit_data.get("limit", 1)),
                            min_width=int(limit_data.get("min_width", 0)),
                        )
                    else:
                        parsed[image_type] = ImageLimit(limit=int(limit_data))
                except (TypeError, ValueError) as e:
                    LOG.warning("Failed to load image limit '%s.%s': %s", category, image_type, e)
            type_options[category] = parsed

        defaults = LibraryConfig()
        metadata_path = library_data.get("metadata_path")
        return LibraryConfig(
            category=library_data.get("category", defaults.category),
            extensions=library_data.get("extensions", defaults.extensions),
            save_images_with_media=library_data.get("save_images_with_media", True),
            metadata_path=Path(metadata_path).expanduser() if metadata_path else defaults.metadata_path,
            type_options=type_options,
        )

    @classmethod
    def _parse_remote_providers(cls, providers_data: list[dict[str, Any]]) -> list[RemoteProviderConfig]:
        """Parse remote provider endpoints."""
        providers = []
        for provider_data in providers_data:
            if not isinstance(provider_data, dict) or "name" not in provider_data or "endpoint" not in provider_data:
                LOG.warning("Incomplete remote provider entry: missing name or endpoint")
                continue
            providers.append(
                RemoteProviderConfig(
                    name=provider_data["name"],
                    endpoint=provider_data["endpoint"],
                    id_key=provider_data.get("id_key", "tmdb"),
                    image_types=provider_data.get("image_types", ["Primary", "Backdrop"]),
                    enabled=provider_data.get("enabled", True),
                )
            )
        return providers

    @classmethod
    def _parse_global_config(cls, global_data: dict[str, Any]) -> GlobalConfig:
        """Parse global configuration."""
        # Validate backup strategy
        cleanup_backups = global_data.get("cleanup_backups", "on_success")
        valid_strategies = {"never", "on_success"}
        if cleanup_backups not in valid_strategies:
            LOG.warning(
                "Invalid backup strategy '%s'. Using 'on_success'. Valid options: %s",
                cleanup_backups,
                ", ".join(valid_strategies),
            )
            cleanup_backups = "on_success"

        return GlobalConfig(
            default_workers=global_data.get("default_workers"),
            log_level=global_data.get("log_level", "INFO"),
            create_backups=global_data.get("create_backups", True),
            cleanup_backups=cleanup_backups,
        )


def get_config() -> ArtworkToolkitConfig:
    """Get the global configuration instance."""
    return _config_singleton.get_instance()
