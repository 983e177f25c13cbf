"""
Local-device persistence adapters.

Each entity type is stored as a single JSON document under a fixed key in a
key/value ``LocalStorage`` (in memory, or one file per key on disk). Documents
carry no schema version; older shapes are upgraded field by field on read.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from pydantic import ValidationError

from ..exceptions import ErrorCode, PersistenceError
from ..ids import generate_ulid, now_ms
from ..services.models import Category, GeneratedNoteId, Note, Settings
from ..tag_utils import normalize_tag

logger = logging.getLogger(__name__)

NOTES_KEY = "open-notes:notes"
CATEGORIES_KEY = "open-notes:categories"
TAGS_KEY = "open-notes:tags"
SETTINGS_KEY = "open-notes:settings"


class LocalStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class MemoryStorage:
    """Process-local storage (tests, ephemeral sessions)."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorage:
    """One JSON file per key inside ``directory``; writes replace the file atomically."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9._-]", "_", key)
        return self.directory / f"{safe}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(
                f"Failed to read {path}: {e}", details={"key": key}
            ) from e

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(
                f"Failed to write {path}: {e}", details={"key": key}
            ) from e

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


def _read_document(storage: LocalStorage, key: str) -> Optional[Any]:
    raw = storage.get_item(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise PersistenceError(
            f"Stored document '{key}' is not valid JSON",
            details={"key": key, "reason": str(e)},
        ) from e


def _write_document(storage: LocalStorage, key: str, document: Any) -> None:
    storage.set_item(key, json.dumps(document))


def _load_notes(storage: LocalStorage) -> List[Note]:
    document = _read_document(storage, NOTES_KEY) or []
    try:
        return [Note.model_validate(item) for item in document]
    except ValidationError as e:
        raise PersistenceError(
            f"Stored notes could not be read: {e.error_count()} invalid field(s)",
            details={"key": NOTES_KEY},
        ) from e


class LocalStorageNotesAdapter:
    """
    Notes persisted as one JSON array.

    Note ids are ULIDs derived from the creation timestamp.
    """

    storage_key = NOTES_KEY

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    async def generate_note_id(self, timestamp_ms: int, temporary_id: str) -> GeneratedNoteId:
        try:
            permanent_id = generate_ulid(timestamp_ms)
        except ValueError as e:
            raise PersistenceError(str(e), code=ErrorCode.ID_GENERATION_FAILED) from e
        return GeneratedNoteId(temporary_id=temporary_id, permanent_id=permanent_id)

    async def fetch_all_notes(self) -> List[Note]:
        return _load_notes(self.storage)

    async def create_note(self, note: Note) -> None:
        notes = _load_notes(self.storage)
        # Retrying a create overwrites the earlier copy instead of duplicating it
        notes = [n for n in notes if n.id != note.id] + [note]
        self._save(notes)

    async def update_note(self, note: Note) -> None:
        notes = _load_notes(self.storage)
        for index, existing in enumerate(notes):
            if existing.id == note.id:
                notes[index] = note
                self._save(notes)
                return
        raise PersistenceError(
            f"Note with id {note.id} not found", details={"note_id": note.id}
        )

    async def delete_note(self, note_id: str) -> None:
        notes = _load_notes(self.storage)
        self._save([n for n in notes if n.id != note_id])

    def _save(self, notes: List[Note]) -> None:
        _write_document(self.storage, self.storage_key, [n.to_json_dict() for n in notes])


class LocalStorageCategoriesAdapter:
    storage_key = CATEGORIES_KEY

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    async def fetch_all_categories(self) -> List[Category]:
        document = _read_document(self.storage, self.storage_key)
        if document is not None:
            return [Category.model_validate(item) for item in document]

        # No categories saved yet: seed from category references on notes
        category_ids: List[str] = []
        for note in _load_notes(self.storage):
            if note.category and note.category not in category_ids:
                category_ids.append(note.category)
        if not category_ids:
            return []

        categories = [Category(id=cid, name=f"Category {cid}") for cid in category_ids]
        self._save(categories)
        logger.info("Seeded %d categories from note references", len(categories))
        return categories

    async def create_category(self, category: Category) -> None:
        categories = await self.fetch_all_categories()
        categories = [c for c in categories if c.id != category.id] + [category]
        self._save(categories)

    async def update_category(self, category: Category) -> None:
        categories = await self.fetch_all_categories()
        for index, existing in enumerate(categories):
            if existing.id == category.id:
                categories[index] = category
                self._save(categories)
                return
        logger.warning("Ignoring update for unknown category %s", category.id)

    async def delete_category(self, category_id: str) -> None:
        categories = await self.fetch_all_categories()
        self._save([c for c in categories if c.id != category_id])

    def _save(self, categories: List[Category]) -> None:
        _write_document(self.storage, self.storage_key, [c.to_json_dict() for c in categories])


class LocalStorageTagsAdapter:
    storage_key = TAGS_KEY

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    async def fetch_all_tags(self) -> List[str]:
        document = _read_document(self.storage, self.storage_key)
        if document is not None:
            return self._upgrade(document)

        # No tag list saved yet: collect tags referenced by notes
        tags: List[str] = []
        for note in _load_notes(self.storage):
            for tag in note.all_tags():
                normalized = normalize_tag(tag)
                if normalized and normalized not in tags:
                    tags.append(normalized)
        if tags:
            await self.save_tags(tags)
        return tags

    async def save_tags(self, tags: List[str]) -> None:
        _write_document(self.storage, self.storage_key, list(tags))

    @staticmethod
    def _upgrade(document: List[Any]) -> List[str]:
        tags: List[str] = []
        for item in document:
            # Older revisions stored {id, name, color} objects
            if isinstance(item, dict):
                item = item.get("name") or item.get("id") or ""
            normalized = normalize_tag(str(item))
            if normalized and normalized not in tags:
                tags.append(normalized)
        return tags


class LocalStorageSettingsAdapter:
    storage_key = SETTINGS_KEY

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    async def save(self, settings: Settings) -> None:
        document = settings.model_copy(update={"last_saved_at": now_ms()}).to_json_dict()
        _write_document(self.storage, self.storage_key, document)

    async def load(self) -> Optional[Settings]:
        document = _read_document(self.storage, self.storage_key)
        if document is None:
            return self._migrate_from_categories()
        return Settings.model_validate(document)

    async def clear(self) -> None:
        self.storage.remove_item(self.storage_key)

    def _migrate_from_categories(self) -> Optional[Settings]:
        """Build settings from a categories-only document written by older versions."""
        try:
            document = _read_document(self.storage, CATEGORIES_KEY)
        except PersistenceError:
            logger.warning("Could not migrate categories into settings", exc_info=True)
            return None
        if not document:
            return None
        return Settings(categories=[Category.model_validate(item) for item in document])
