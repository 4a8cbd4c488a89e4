"""Base types, results and exceptions for image refreshing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

LOG = logging.getLogger(__name__)


class ImageType(Enum):
    """Image slot types an entry can hold."""

    PRIMARY = "Primary"
    ART = "Art"
    BACKDROP = "Backdrop"
    BANNER = "Banner"
    LOGO = "Logo"
    THUMB = "Thumb"
    DISC = "Disc"
    BOX = "Box"
    BOX_REAR = "BoxRear"
    MENU = "Menu"
    SCREENSHOT = "Screenshot"
    CHAPTER = "Chapter"
    PROFILE = "Profile"

    @property
    def is_repeatable(self) -> bool:
        """Whether the type holds an ordered list instead of a single image."""
        return self in REPEATABLE_TYPES

    @classmethod
    def parse(cls, value: str) -> ImageType:
        """Look up a type by value or member name, case-insensitively."""
        needle = value.strip().lower().replace("_", "")
        for member in cls:
            if needle in (member.value.lower(), member.name.lower().replace("_", "")):
                return member
        msg = f"Unknown image type '{value}'. Available: {', '.join(m.value for m in cls)}"
        raise ValueError(msg)


REPEATABLE_TYPES = frozenset({ImageType.BACKDROP, ImageType.SCREENSHOT, ImageType.CHAPTER})


class RefreshStatus(Enum):
    """Outcome of one entry pass."""

    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass
class RefreshResult:
    """Change report for one entry pass."""

    entry_id: str
    updated: bool = False
    errors: list[str] = field(default_factory=list)
    failed: bool = False
    processing_time: float = 0.0

    @property
    def status(self) -> RefreshStatus:
        if self.failed:
            return RefreshStatus.FAILED
        return RefreshStatus.UPDATED if self.updated else RefreshStatus.UNCHANGED

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def __bool__(self) -> bool:
        return self.updated


class ArtworkError(Exception):
    """Base exception for image refresh errors."""

    def __init__(
        self,
        message: str,
        entry_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.entry_id = entry_id
        self.cause = cause


class ProviderError(ArtworkError):
    """A provider failed to list or generate images."""


class DownloadError(ArtworkError):
    """Fetching an image failed."""

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: int | None = None,
        entry_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize download error with the failing url and HTTP status."""
        super().__init__(message, entry_id=entry_id, cause=cause)
        self.url = url
        self.status_code = status_code


class SaveError(ArtworkError):
    """Persisting a downloaded image failed."""


class ConfigError(ArtworkError):
    """Configuration is missing or invalid."""
