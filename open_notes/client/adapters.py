"""
Persistence adapter contracts.

Stores depend only on these protocols, so local storage, a file system or a
remote server can back them interchangeably. Every mutating call must be
idempotent when retried with the same payload.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

from ..services.models import Category, GeneratedNoteId, Note, Settings


@runtime_checkable
class NotesPersistenceAdapter(Protocol):
    async def generate_note_id(self, timestamp_ms: int, temporary_id: str) -> GeneratedNoteId:
        """
        Issue the permanent id for a note created at ``timestamp_ms``.

        The adapter owns the id strategy; ids must be unique and sort
        lexically in creation order. Raises on failure.
        """
        ...

    async def fetch_all_notes(self) -> List[Note]:
        ...

    async def create_note(self, note: Note) -> None:
        ...

    async def update_note(self, note: Note) -> None:
        """Persist the whole aggregate (overwrite, not a delta)."""
        ...

    async def delete_note(self, note_id: str) -> None:
        ...


@runtime_checkable
class CategoriesPersistenceAdapter(Protocol):
    async def fetch_all_categories(self) -> List[Category]:
        ...

    async def create_category(self, category: Category) -> None:
        ...

    async def update_category(self, category: Category) -> None:
        ...

    async def delete_category(self, category_id: str) -> None:
        ...


@runtime_checkable
class TagsPersistenceAdapter(Protocol):
    """Tags are persisted as one flat list of normalized strings."""

    async def fetch_all_tags(self) -> List[str]:
        ...

    async def save_tags(self, tags: List[str]) -> None:
        ...


@runtime_checkable
class SettingsPersistenceAdapter(Protocol):
    async def load(self) -> Optional[Settings]:
        ...

    async def save(self, settings: Settings) -> None:
        ...

    async def clear(self) -> None:
        ...
