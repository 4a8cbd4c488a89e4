"""JSON catalog file holding the image references recorded for each entry."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .config.constants import CATALOG_FORMAT_VERSION
from .core.base import ConfigError, ImageType
from .core.models import CatalogEntry, ImageReference

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

LOG = logging.getLogger(__name__)


def reference_to_dict(image: ImageReference) -> dict[str, Any]:
    return {
        "type": image.slot_type.value,
        "path": image.path,
        "index": image.index,
        "last_modified": image.last_modified.isoformat() if image.last_modified else None,
        "width": image.width,
        "height": image.height,
    }


def reference_from_dict(data: dict[str, Any]) -> ImageReference:
    last_modified = data.get("last_modified")
    return ImageReference(
        slot_type=ImageType.parse(data["type"]),
        path=data["path"],
        index=int(data.get("index", 0)),
        last_modified=datetime.fromisoformat(last_modified) if last_modified else None,
        width=int(data.get("width", 0)),
        height=int(data.get("height", 0)),
    )


def entry_to_dict(entry: CatalogEntry) -> dict[str, Any]:
    return {
        "name": entry.name,
        "category": entry.category,
        "path": entry.path,
        "provider_ids": dict(entry.provider_ids),
        "images": [reference_to_dict(image) for image in entry.all_images()],
    }


def entry_from_dict(entry_id: str, data: dict[str, Any]) -> CatalogEntry:
    entry = CatalogEntry(
        id=entry_id,
        name=data.get("name", ""),
        category=data.get("category", "Movie"),
        path=data.get("path"),
        provider_ids=dict(data.get("provider_ids", {})),
    )
    restore_images(entry, data.get("images", []))
    return entry


def restore_images(entry: CatalogEntry, images: Iterable[dict[str, Any]]) -> None:
    """Put recorded references back on an entry, keeping their stored order."""
    by_type: dict[ImageType, list[ImageReference]] = {}
    for image_data in images:
        try:
            image = reference_from_dict(image_data)
        except (KeyError, TypeError, ValueError) as e:
            LOG.warning("Skipping malformed image record for %s: %s", entry.id, e)
            continue
        by_type.setdefault(image.slot_type, []).append(image)

    for image_type, references in by_type.items():
        references.sort(key=lambda image: image.index)
        if not image_type.is_repeatable:
            references = references[:1]
        entry.replace_images(image_type, references)


def load_catalog(path: Path) -> dict[str, dict[str, Any]]:
    """
    Read the raw catalog records keyed by entry id.

    A missing file is an empty catalog. A file that cannot be parsed raises
    ConfigError so it is never overwritten by accident.
    """
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        msg = f"Cannot read catalog {path}: {e}"
        raise ConfigError(msg, cause=e) from e

    if not isinstance(data, dict) or not isinstance(data.get("entries", {}), dict):
        msg = f"Catalog {path} is not a catalog document"
        raise ConfigError(msg)
    version = data.get("version", CATALOG_FORMAT_VERSION)
    if version != CATALOG_FORMAT_VERSION:
        msg = f"Catalog {path} has unsupported version {version}"
        raise ConfigError(msg)

    entries = data.get("entries", {})
    LOG.debug("Loaded %d catalog records from %s", len(entries), path)
    return entries


def apply_catalog(entries: Iterable[CatalogEntry], records: dict[str, dict[str, Any]]) -> int:
    """Restore recorded provider ids and images onto discovered entries; returns how many matched."""
    matched = 0
    for entry in entries:
        record = records.get(entry.id)
        if record is None:
            continue
        entry.provider_ids.update(record.get("provider_ids", {}))
        if record.get("category"):
            entry.category = record["category"]
        restore_images(entry, record.get("images", []))
        matched += 1
    return matched


def save_catalog(path: Path, entries: Iterable[CatalogEntry], records: dict[str, dict[str, Any]] | None = None) -> None:
    """Write entries (over any other existing records) to the catalog file atomically."""
    merged = dict(records or {})
    for entry in entries:
        merged[entry.id] = entry_to_dict(entry)

    document = {"version": CATALOG_FORMAT_VERSION, "entries": merged}
    temp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with temp_path.open("w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, sort_keys=True)
        temp_path.replace(path)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        msg = f"Cannot write catalog {path}: {e}"
        raise ConfigError(msg, cause=e) from e
    LOG.info("Saved %d catalog records to %s", len(merged), path)
