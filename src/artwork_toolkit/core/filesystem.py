"""Directory listings and file metadata, cached for the duration of a pass."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

from .models import FileMetadata

LOG = logging.getLogger(__name__)


@runtime_checkable
class DirectoryListing(Protocol):
    """What the validator and local providers need from the filesystem."""

    def list_files(self, directory: str | Path, *, recursive: bool = False) -> set[str]:
        """Return the paths of files currently present under a directory."""
        ...

    def get_file_metadata(self, path: str | Path) -> FileMetadata | None:
        """Return metadata for a file, or None when it does not exist."""
        ...


class DirectoryService:
    """Filesystem-backed listing with a per-instance cache.

    Create one per library scan so entries sharing a folder list it once.
    """

    def __init__(self) -> None:
        self._listings: dict[tuple[str, bool], set[str]] = {}
        self._metadata: dict[str, FileMetadata | None] = {}

    def list_files(self, directory: str | Path, *, recursive: bool = False) -> set[str]:
        key = (str(directory), recursive)
        if key not in self._listings:
            self._listings[key] = self._scan(Path(directory), recursive=recursive)
        return self._listings[key]

    def get_file_metadata(self, path: str | Path) -> FileMetadata | None:
        key = str(path)
        if key not in self._metadata:
            self._metadata[key] = read_file_metadata(Path(path))
        return self._metadata[key]

    @staticmethod
    def _scan(directory: Path, *, recursive: bool) -> set[str]:
        if not directory.is_dir():
            return set()
        pattern = "**/*" if recursive else "*"
        try:
            return {str(f) for f in directory.glob(pattern) if f.is_file()}
        except OSError as e:
            LOG.warning("Failed to list %s: %s", directory, e)
            return set()


def read_file_metadata(path: Path) -> FileMetadata | None:
    """Stat a file; missing or unreadable files yield None."""
    try:
        stat = path.stat()
    except OSError:
        return None
    return FileMetadata(
        path=str(path),
        last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        length=stat.st_size,
        is_directory=path.is_dir(),
    )
