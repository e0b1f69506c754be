"""Gallery persistence for the Interior Design Generator.

This module isolates gallery storage from :mod:`interiorgen.api.main` so
route handlers and the orchestrator only depend on the small
:class:`GalleryRepository` interface:

- ``save(item)`` persists one :class:`~interiorgen.api.models.GalleryItem`
- ``list_all()`` returns every item, newest first

Two implementations are provided:

:class:`MongoGalleryRepository`
    Production store.  One MongoDB document per item, camelCase field names,
    ``createdAt`` stored as a BSON date.
:class:`FileGalleryRepository`
    A single ``gallery.json`` file, used when no MongoDB URI is configured.
    Entries that no longer validate (missing prompt or image URL, bad
    timestamps) are treated as stale and pruned on load.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError
from pymongo import DESCENDING, MongoClient
from pymongo.collection import Collection

from interiorgen.api.models import GalleryItem

logger = logging.getLogger(__name__)


class GalleryRepository(Protocol):
    """Storage interface for generated designs."""

    def save(self, item: GalleryItem) -> GalleryItem:
        """Persist *item* and return it with its assigned ``id``."""
        ...

    def list_all(self) -> list[GalleryItem]:
        """Return every item ordered by ``created_at`` descending."""
        ...

    def close(self) -> None:
        """Release any held connection."""
        ...


def _require_fields(item: GalleryItem) -> None:
    """Reject items without a prompt or image URL.

    ``GalleryItem`` already validates this on construction; the check guards
    against instances built with ``model_construct`` or mutated afterwards.
    """
    if not item.prompt or not item.prompt.strip():
        raise ValueError("Gallery item requires a prompt")
    if not item.image_url:
        raise ValueError("Gallery item requires an imageUrl")


def sort_newest_first(items: list[GalleryItem]) -> list[GalleryItem]:
    """Return *items* ordered by ``created_at`` descending (stable)."""
    return sorted(items, key=lambda item: item.created_at, reverse=True)


# ---------------------------------------------------------------------------
# File-backed store.
# ---------------------------------------------------------------------------


def load_gallery_entries(gallery_db: Path) -> list[dict]:
    """Load raw gallery entries from *gallery_db*.

    A missing, unreadable or non-list file reads as an empty gallery so that
    the first save bootstraps the file.

    Args:
        gallery_db: Path to ``gallery.json``.

    Returns:
        List of entry dictionaries in persisted order.
    """
    if not gallery_db.exists():
        return []

    try:
        with open(gallery_db, encoding="utf-8") as handle:
            raw_entries = json.load(handle)
    except (OSError, json.JSONDecodeError):
        logger.warning("Gallery file '%s' is unreadable; treating it as empty.", gallery_db)
        return []

    if not isinstance(raw_entries, list):
        return []

    return [entry for entry in raw_entries if isinstance(entry, dict)]


def save_gallery_entries(gallery_db: Path, entries: list[dict]) -> None:
    """Persist the gallery entry list to disk.

    Args:
        gallery_db: Path to ``gallery.json``.  Parent directories are created.
        entries: JSON-serialisable entry dictionaries.
    """
    gallery_db.parent.mkdir(parents=True, exist_ok=True)
    with open(gallery_db, "w", encoding="utf-8") as handle:
        json.dump(entries, handle, indent=2)


class FileGalleryRepository:
    """Gallery stored in a single JSON file.

    Newly saved items are inserted at the front of the file so the persisted
    order is already reverse-chronological; :meth:`list_all` still sorts by
    timestamp so hand-edited files come back in the right order.
    """

    def __init__(self, gallery_db: Path) -> None:
        self.gallery_db = Path(gallery_db)
        self._lock = threading.Lock()

    def _load_items(self) -> list[GalleryItem]:
        raw_entries = load_gallery_entries(self.gallery_db)
        items: list[GalleryItem] = []

        for entry in raw_entries:
            try:
                items.append(GalleryItem.model_validate(entry))
            except ValidationError:
                # Entries without a prompt or image URL cannot be shown.
                continue

        if len(items) != len(raw_entries):
            logger.info(
                "Pruned %d stale gallery entries from '%s'.",
                len(raw_entries) - len(items),
                self.gallery_db,
            )
            save_gallery_entries(self.gallery_db, [_to_json(item) for item in items])

        return items

    def save(self, item: GalleryItem) -> GalleryItem:
        _require_fields(item)
        stored = item.model_copy(update={"id": item.id or str(uuid.uuid4())})

        with self._lock:
            items = self._load_items()
            items.insert(0, stored)
            save_gallery_entries(self.gallery_db, [_to_json(entry) for entry in items])

        logger.info("Saved gallery item %s to '%s'.", stored.id, self.gallery_db)
        return stored

    def list_all(self) -> list[GalleryItem]:
        with self._lock:
            return sort_newest_first(self._load_items())

    def close(self) -> None:
        """Nothing to release for a file store."""


def _to_json(item: GalleryItem) -> dict:
    return item.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# MongoDB store.
# ---------------------------------------------------------------------------


class MongoGalleryRepository:
    """Gallery stored in a MongoDB collection.

    Attributes:
        collection: The pymongo collection holding gallery documents.
    """

    def __init__(self, collection: Collection, client: MongoClient | None = None) -> None:
        self.collection = collection
        self._client = client

    @classmethod
    def from_uri(
        cls,
        uri: str,
        *,
        default_database: str = "interiorgen",
        collection_name: str = "galleries",
    ) -> MongoGalleryRepository:
        """Connect to MongoDB and open the gallery collection.

        The database named in *uri* is used; when the URI names none,
        *default_database* is used instead.  pymongo connects lazily, so a
        bad URI surfaces on the first query.
        """
        client: MongoClient = MongoClient(uri, tz_aware=True)
        database = client.get_default_database(default=default_database)
        logger.info(
            "Using MongoDB gallery collection '%s.%s'.",
            database.name,
            collection_name,
        )
        return cls(database[collection_name], client=client)

    def ensure_indexes(self) -> None:
        """Create the ``createdAt`` index used by :meth:`list_all`."""
        self.collection.create_index([("createdAt", DESCENDING)])

    def save(self, item: GalleryItem) -> GalleryItem:
        _require_fields(item)
        document: dict[str, Any] = item.model_dump(by_alias=True, exclude={"id"})
        if item.dimensions is None:
            document.pop("dimensions")

        result = self.collection.insert_one(document)
        stored = item.model_copy(update={"id": str(result.inserted_id)})
        logger.info("Saved gallery item %s.", stored.id)
        return stored

    def list_all(self) -> list[GalleryItem]:
        items: list[GalleryItem] = []
        for document in self.collection.find().sort("createdAt", DESCENDING):
            document = dict(document)
            document["id"] = str(document.pop("_id"))
            items.append(GalleryItem.model_validate(document))
        return items

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
