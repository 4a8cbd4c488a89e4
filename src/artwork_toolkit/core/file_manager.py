"""Image storage with atomic writes and backup management."""

from __future__ import annotations

import logging
import mimetypes
import shutil
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..config.constants import DEFAULT_IMAGE_MIME_TYPE
from .base import ImageType, SaveError
from .models import ImageReference

if TYPE_CHECKING:
    from .models import CatalogEntry

LOG = logging.getLogger(__name__)

# File name stem per image type, following the usual media-center conventions.
IMAGE_FILE_NAMES: dict[ImageType, str] = {
    ImageType.PRIMARY: "poster",
    ImageType.ART: "clearart",
    ImageType.BACKDROP: "backdrop",
    ImageType.BANNER: "banner",
    ImageType.LOGO: "logo",
    ImageType.THUMB: "landscape",
    ImageType.DISC: "disc",
    ImageType.BOX: "box",
    ImageType.BOX_REAR: "boxrear",
    ImageType.MENU: "menu",
    ImageType.SCREENSHOT: "screenshot",
    ImageType.CHAPTER: "chapter",
    ImageType.PROFILE: "folder",
}

_EXTENSION_ALIASES = {".jpe": ".jpg", ".jpeg": ".jpg", ".jfif": ".jpg"}


class BackupStrategy(Enum):
    """Backup creation strategies."""

    NEVER = "never"
    ON_SUCCESS = "on_success"


@dataclass
class FileOperation:
    """Represents a file operation that can be rolled back."""

    operation_type: str
    source_path: Path
    backup_path: Path | None = None
    target_path: Path | None = None
    success: bool = False
    timestamp: float = 0.0

    def __post_init__(self) -> None:
        """Set timestamp if not provided."""
        if self.timestamp == 0.0:
            self.timestamp = time.time()


def image_file_name(image_type: ImageType, number: int, extension: str, prefix: str = "") -> str:
    """File name for an image slot: ``backdrop.jpg``, ``backdrop1.jpg``, ``movie-poster.jpg``, ..."""
    stem = prefix + IMAGE_FILE_NAMES[image_type]
    if image_type.is_repeatable and number > 0:
        stem = f"{stem}{number}"
    return f"{stem}{extension}"


def extension_for(mime_type: str | None) -> str:
    extension = mimetypes.guess_extension(mime_type or DEFAULT_IMAGE_MIME_TYPE) or ".jpg"
    return _EXTENSION_ALIASES.get(extension, extension)


class ImageStore:
    """Saves entry images next to the media or under a metadata directory."""

    def __init__(
        self,
        metadata_path: Path,
        *,
        save_with_media: bool = True,
        backup_strategy: BackupStrategy = BackupStrategy.ON_SUCCESS,
    ) -> None:
        """
        Initialize the image store.

        Args:
            metadata_path: Root for images of entries that have no folder of their own
            save_with_media: Write images into the entry's folder when it has one
            backup_strategy: Whether replaced or deleted images are backed up first

        """
        self.metadata_path = metadata_path
        self.save_with_media = save_with_media
        self.backup_strategy = backup_strategy
        self.session_operations: list[FileOperation] = []
        self.session_backups: set[Path] = set()

    def image_directory(self, entry: CatalogEntry) -> Path:
        folder = entry.containing_folder
        if self.save_with_media and folder is not None:
            return folder
        return self.metadata_path / entry.id

    def name_prefix(self, entry: CatalogEntry) -> str:
        """Media-named prefix for images saved beside media that shares its folder."""
        if self.save_with_media and entry.is_in_mixed_folder and entry.containing_folder is not None:
            return f"{Path(str(entry.path)).stem}-"
        return ""

    def target_path(self, entry: CatalogEntry, image_type: ImageType, index: int | None, extension: str) -> Path:
        """
        Pick the file an image is written to.

        An explicit index names its slot and may overwrite it. Appended images take
        the first name that neither a held reference nor an existing file uses.
        """
        directory = self.image_directory(entry)
        prefix = self.name_prefix(entry)
        if index is not None or not image_type.is_repeatable:
            return directory / image_file_name(image_type, index or 0, extension, prefix)

        held = {image.path.casefold() for image in entry.get_images(image_type)}
        number = 0
        while True:
            target = directory / image_file_name(image_type, number, extension, prefix)
            if str(target).casefold() not in held and not target.exists():
                return target
            number += 1

    def save(
        self,
        entry: CatalogEntry,
        data: bytes,
        mime_type: str | None,
        image_type: ImageType,
        index: int | None = None,
    ) -> ImageReference:
        """Write image bytes for a slot and return the stored reference."""
        target = self.target_path(entry, image_type, index, extension_for(mime_type))
        if index is None:
            index = entry.image_count(image_type) if image_type.is_repeatable else 0

        temp_path = target.with_suffix(target.suffix + ".tmp")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_bytes(data)
        except OSError as e:
            LOG.exception("Failed to write %s", temp_path)
            msg = f"Writing image failed: {e}"
            raise SaveError(msg, entry_id=entry.id, cause=e) from e

        self.atomic_replace(target, temp_path, create_backup=target.exists())
        stat = target.stat()
        LOG.debug("Saved %s image %d for %s to %s", image_type.value, index, entry.name or entry.id, target)
        return ImageReference(
            slot_type=image_type,
            path=str(target),
            index=index,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    def file_length(self, path: str) -> int:
        return Path(path).stat().st_size

    def delete(self, path: str) -> None:
        """Remove an image that is no longer referenced, backing it up first."""
        file_path = Path(path)
        if not file_path.exists():
            return
        backup_path = self.create_backup(file_path)
        file_path.unlink()
        self.session_operations.append(
            FileOperation(operation_type="file_delete", source_path=file_path, backup_path=backup_path, success=True)
        )
        LOG.info("Deleted replaced image %s", file_path)

    def create_backup(self, file_path: Path) -> Path | None:
        """Create a backup of the file."""
        if self.backup_strategy == BackupStrategy.NEVER:
            return None

        backup_path = file_path.with_suffix(file_path.suffix + ".bak")

        try:
            # Create backup with metadata preservation
            shutil.copy2(file_path, backup_path)

            self.session_backups.add(backup_path)

            operation = FileOperation(
                operation_type="backup_create",
                source_path=file_path,
                backup_path=backup_path,
                success=True,
            )
            self.session_operations.append(operation)
            LOG.debug("Created backup: %s", backup_path)
        except OSError as e:
            LOG.exception("Failed to create backup for %s", file_path)
            msg = f"Backup creation failed: {e}"
            raise SaveError(msg, cause=e) from e
        else:
            return backup_path

    def atomic_replace(self, target_path: Path, temp_path: Path, *, create_backup: bool = True) -> FileOperation:
        """Atomically move a freshly written file into place with proper backup handling."""
        backup_path = None

        try:
            if create_backup and self.backup_strategy != BackupStrategy.NEVER:
                backup_path = self.create_backup(target_path)

            temp_path.replace(target_path)

            operation = FileOperation(
                operation_type="file_replace",
                source_path=temp_path,
                backup_path=backup_path,
                target_path=target_path,
                success=True,
            )
            self.session_operations.append(operation)
            LOG.debug("Atomically replaced %s", target_path)
        except OSError as e:
            # Rollback on failure
            if backup_path and backup_path.exists() and not target_path.exists():
                try:
                    shutil.move(backup_path, target_path)
                    LOG.info("Restored backup after failed replacement: %s", target_path)
                except (OSError, shutil.Error):
                    LOG.exception("Failed to restore backup")
            temp_path.unlink(missing_ok=True)

            self.session_operations.append(
                FileOperation(
                    operation_type="file_replace",
                    source_path=temp_path,
                    backup_path=backup_path,
                    success=False,
                )
            )

            msg = f"Atomic file replacement failed: {e}"
            raise SaveError(msg, cause=e) from e
        else:
            return operation

    def _cleanup_backup(self, backup_path: Path) -> None:
        """Remove a backup file."""
        try:
            if backup_path.exists():
                backup_path.unlink()
                self.session_backups.discard(backup_path)
                LOG.debug("Cleaned up backup: %s", backup_path)
        except OSError as e:
            LOG.warning("Failed to cleanup backup %s: %s", backup_path, e)

    def cleanup_session_backups(self) -> int:
        """Clean up all backups from this session based on strategy."""
        if self.backup_strategy != BackupStrategy.ON_SUCCESS:
            return 0

        cleaned_count = 0
        successful_operations = [op for op in self.session_operations if op.success and op.backup_path]

        for operation in successful_operations:
            if operation.backup_path and operation.backup_path in self.session_backups:
                self._cleanup_backup(operation.backup_path)
                cleaned_count += 1

        LOG.info("Session cleanup: removed %d backup files", cleaned_count)
        return cleaned_count

    def get_session_summary(self) -> dict[str, Any]:
        """Get summary of file operations in this session."""
        successful_ops = [op for op in self.session_operations if op.success]
        failed_ops = [op for op in self.session_operations if not op.success]

        return {
            "total_operations": len(self.session_operations),
            "successful_operations": len(successful_ops),
            "failed_operations": len(failed_ops),
            "backups_created": len(self.session_backups),
            "backup_strategy": self.backup_strategy.value,
            "operations": self.session_operations,
        }
