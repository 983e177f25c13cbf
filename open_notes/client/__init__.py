"""
Client-side core: domain stores, persistence adapters and the AI processing pipeline.
"""

from .categories_store import CategoriesStore
from .container import (
    Stores,
    create_default_processor,
    create_default_stores,
    create_local_stores,
    create_processor,
    hydrate_stores,
)
from .local_storage import FileStorage, MemoryStorage
from .notes_store import NotesStore
from .processing import NoteProcessingClient, NoteProcessor, process_note
from .settings_store import SettingsStore
from .tags_store import TagsStore

__all__ = [
    "CategoriesStore",
    "FileStorage",
    "MemoryStorage",
    "NoteProcessingClient",
    "NoteProcessor",
    "NotesStore",
    "SettingsStore",
    "Stores",
    "TagsStore",
    "create_default_processor",
    "create_default_stores",
    "create_local_stores",
    "create_processor",
    "hydrate_stores",
    "process_note",
]
