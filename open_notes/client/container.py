"""
Store container for the client side.

Stores are built once at application start and passed to whatever needs
them, instead of living in module-level globals; tests build fresh ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import Config
from .categories_store import CategoriesStore
from .hybrid_settings import HybridSettingsAdapter
from .local_storage import (
    FileStorage,
    LocalStorage,
    LocalStorageCategoriesAdapter,
    LocalStorageNotesAdapter,
    LocalStorageSettingsAdapter,
    LocalStorageTagsAdapter,
)
from .notes_store import NotesStore
from .processing import NoteProcessingClient, NoteProcessor
from .settings_store import SettingsStore
from .tags_store import TagsStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stores:
    notes: NotesStore
    categories: CategoriesStore
    tags: TagsStore
    settings: SettingsStore


def create_local_stores(storage: LocalStorage, *, server_url: Optional[str] = None) -> Stores:
    """
    Build stores backed by ``storage``.

    Args:
        storage: Key/value storage holding one JSON document per entity type
        server_url: When set, settings are also synced to this server
    """
    settings_adapter = (
        HybridSettingsAdapter(storage, server_url) if server_url else LocalStorageSettingsAdapter(storage)
    )
    return Stores(
        notes=NotesStore(LocalStorageNotesAdapter(storage)),
        categories=CategoriesStore(LocalStorageCategoriesAdapter(storage)),
        tags=TagsStore(LocalStorageTagsAdapter(storage)),
        settings=SettingsStore(settings_adapter),
    )


async def hydrate_stores(stores: Stores) -> None:
    """Load every store from its adapter. Settings load failures are logged, not raised."""
    await stores.notes.refresh_from_adapter()
    await stores.categories.refresh_from_adapter()
    await stores.tags.refresh_from_adapter()
    try:
        await stores.settings.load()
    except Exception as e:
        logger.error("Failed to load settings, using defaults: %s", e)


def create_processor(stores: Stores, client: NoteProcessingClient) -> NoteProcessor:
    """Wire the AI pipeline to the notes, categories and settings stores."""
    return NoteProcessor(
        stores.notes,
        client,
        categories_provider=stores.categories.get_all_categories,
        prompt_provider=lambda: stores.settings.settings.generic_enrichment_prompt,
    )


def create_default_stores() -> Stores:
    """Stores persisted under ``Config.STORAGE_DIR`` with settings synced to ``Config.SERVER_URL``."""
    Config.validate()
    Config.init_directories()
    return create_local_stores(FileStorage(Config.STORAGE_DIR), server_url=Config.SERVER_URL)


def create_default_processor(stores: Stores) -> NoteProcessor:
    client = NoteProcessingClient(Config.SERVER_URL, timeout=Config.HTTP_TIMEOUT)
    return create_processor(stores, client)
