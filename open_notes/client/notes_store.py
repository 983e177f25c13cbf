"""
Notes domain store.

Holds the canonical in-memory map of notes and applies every mutation
optimistically: memory changes first, the persistence adapter is awaited
second, and a failed write restores the pre-mutation snapshot before the
error is re-raised.

Concurrency model: all state changes happen synchronously on the event loop
between awaits, so no single call is ever observed half applied. Two
concurrent ``update_note`` calls for the same id each capture the snapshot
at call time, so the later one does not see the earlier one's in-flight
changes (last writer wins, at the level of whatever each ``updater``
rewrites). Features that patch the same note should go through one updater.
"""

from __future__ import annotations

import asyncio
import bisect
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..exceptions import NoteNotFoundError
from ..ids import now_ms, temporary_note_id
from ..services.models import DEFAULT_NOTE_TITLE, Block, Note
from ..tag_utils import normalize_tag
from .adapters import NotesPersistenceAdapter
from .observable import ObservableStore

logger = logging.getLogger(__name__)

NoteUpdater = Callable[[Note], Note]

# Fields the store owns; callers cannot preset them on create
_STORE_OWNED_FIELDS = ("id", "created_at", "createdAt", "updated_at", "updatedAt")


class NotesStore(ObservableStore):
    """
    Reactive container for notes.

    Attributes:
        notes: Note id -> Note
        ordered_note_ids: ids in lexical order (ULIDs sort by creation time)
    """

    def __init__(self, adapter: NotesPersistenceAdapter, clock: Callable[[], int] = now_ms):
        super().__init__()
        self.adapter = adapter
        self.notes: Dict[str, Note] = {}
        self.ordered_note_ids: List[str] = []
        self._clock = clock

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_note(self, initial: Optional[Mapping[str, Any]] = None) -> str:
        """
        Create a note and return its permanent id.

        The note is visible immediately under a temporary id, re-keyed once
        the adapter issues the permanent id, then persisted. Any failure
        removes the note from memory entirely and re-raises.
        """
        now = self._clock()
        temp_id = temporary_note_id(now)

        fields = {k: v for k, v in dict(initial or {}).items() if k not in _STORE_OWNED_FIELDS}
        fields.setdefault("title", DEFAULT_NOTE_TITLE)
        temp_note = Note.model_validate(
            {**fields, "id": temp_id, "created_at": now, "updated_at": now}
        )

        self.notes[temp_id] = temp_note
        bisect.insort(self.ordered_note_ids, temp_id)
        self._notify()

        note_id: Optional[str] = None
        try:
            generated = await self.adapter.generate_note_id(now, temp_id)
            note_id = generated.permanent_id
            note = temp_note.model_copy(update={"id": note_id})

            self._discard(temp_id)
            self.notes[note_id] = note
            bisect.insort(self.ordered_note_ids, note_id)
            self._notify()

            await self.adapter.create_note(note)
        except Exception as e:
            self._discard(temp_id)
            if note_id is not None:
                self._discard(note_id)
            logger.warning("Failed to create note (temporary id %s): %s", temp_id, e)
            self._record_error(e, "Failed to create note")
            raise

        logger.debug("Created note %s (was %s)", note_id, temp_id)
        return note_id

    async def update_note(self, note_id: str, updater: NoteUpdater) -> None:
        """
        Apply ``updater`` to a copy of the note and persist the result.

        ``updater`` receives the pre-mutation snapshot and must return the
        new note. ``updated_at`` is always stamped by the store.

        Raises:
            NoteNotFoundError: If the note is not in the store.
        """
        current = self.notes.get(note_id)
        if current is None:
            raise NoteNotFoundError(note_id)

        updated = self._apply(current, updater, self._clock())
        self.notes[note_id] = updated
        self._notify()

        try:
            await self.adapter.update_note(updated)
        except Exception as e:
            # Leave a concurrent delete alone; only restore an entry that still exists
            if note_id in self.notes:
                self.notes[note_id] = current
            logger.warning("Failed to update note %s, rolled back: %s", note_id, e)
            self._record_error(e, "Failed to update note")
            raise

    async def delete_note(self, note_id: str) -> None:
        note = self.notes.get(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)

        self._discard(note_id)
        self._notify()

        try:
            await self.adapter.delete_note(note_id)
        except Exception as e:
            self.notes[note_id] = note
            if note_id not in self.ordered_note_ids:
                bisect.insort(self.ordered_note_ids, note_id)
            logger.warning("Failed to delete note %s, restored: %s", note_id, e)
            self._record_error(e, "Failed to delete note")
            raise

    async def batch_update_notes(self, updates: Sequence[Tuple[str, NoteUpdater]]) -> None:
        """
        Update several notes as one unit.

        Every updater runs against the pre-batch snapshot. All writes are
        issued concurrently; if any of them fails, every note touched by the
        batch is restored to its pre-batch value and the first failure is
        re-raised. The backend writes themselves are not transactional, so
        writes that did succeed are not undone in storage.
        """
        now = self._clock()
        originals: Dict[str, Note] = {}
        updated: Dict[str, Note] = {}

        for note_id, updater in updates:
            current = self.notes.get(note_id)
            if current is None:
                raise NoteNotFoundError(note_id)
            originals.setdefault(note_id, current)
            updated[note_id] = self._apply(current, updater, now)

        if not updated:
            return

        self.notes.update(updated)
        self._notify()

        results = await asyncio.gather(
            *(self.adapter.update_note(note) for note in updated.values()),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            for note_id, original in originals.items():
                if note_id in self.notes:
                    self.notes[note_id] = original
            logger.warning(
                "Batch update of %d notes failed (%d writes), rolled back",
                len(updated), len(failures),
            )
            self._record_error(failures[0], "Failed to batch update notes")
            raise failures[0]

    async def replace_enrichments(self, note_id: str, enrichment_blocks: List[Block]) -> None:
        blocks = list(enrichment_blocks)
        await self.update_note(
            note_id, lambda note: note.model_copy(update={"enrichment_blocks": blocks})
        )

    async def clear_enrichments(self, note_id: str) -> None:
        await self.replace_enrichments(note_id, [])

    async def set_embeddings(self, note_id: str, embeddings: List[List[float]]) -> None:
        vectors = [list(v) for v in embeddings]
        await self.update_note(
            note_id, lambda note: note.model_copy(update={"embeddings": vectors})
        )

    async def clear_embeddings(self, note_id: str) -> None:
        await self.update_note(note_id, lambda note: note.model_copy(update={"embeddings": None}))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def hydrate(self, notes: Sequence[Note]) -> None:
        """Replace the whole in-memory state with ``notes``."""
        self.notes = {note.id: note for note in notes}
        self.ordered_note_ids = sorted(self.notes)
        self.is_loading = False
        self.error = None
        self._notify()

    async def refresh_from_adapter(self) -> None:
        """
        Reload every note from the adapter.

        Failures are recorded in ``error`` instead of raised so callers can
        show the problem and retry.
        """
        self.is_loading = True
        self.error = None
        self._notify()

        try:
            notes = await self.adapter.fetch_all_notes()
        except Exception as e:
            logger.error("Failed to refresh notes from adapter: %s", e)
            self.is_loading = False
            self._record_error(e, "Failed to refresh notes from adapter")
            return

        self.hydrate(notes)
        logger.info("Loaded %d notes", len(notes))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_note(self, note_id: str) -> Optional[Note]:
        return self.notes.get(note_id)

    def get_notes_by_category(self, category_id: str) -> List[Note]:
        return [self.notes[nid] for nid in self.ordered_note_ids if self.notes[nid].category == category_id]

    def get_notes_by_tag(self, tag: str) -> List[Note]:
        """Notes whose user or system tags contain ``tag`` (exact, after normalization)."""
        wanted = normalize_tag(tag)
        return [
            self.notes[nid]
            for nid in self.ordered_note_ids
            if any(normalize_tag(t) == wanted for t in self.notes[nid].all_tags())
        ]

    def get_recent_notes(self, limit: int = 10) -> List[Note]:
        ordered = [self.notes[nid] for nid in self.ordered_note_ids]
        ordered.sort(key=lambda n: n.updated_at, reverse=True)
        return ordered[:limit]

    def get_all_notes(self) -> List[Note]:
        return [self.notes[nid] for nid in self.ordered_note_ids]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _apply(current: Note, updater: NoteUpdater, now: int) -> Note:
        updated = updater(current.model_copy(deep=True))
        return updated.model_copy(
            update={
                "id": current.id,
                "created_at": current.created_at,
                "updated_at": max(now, current.updated_at),
            }
        )

    def _discard(self, note_id: str) -> None:
        self.notes.pop(note_id, None)
        if note_id in self.ordered_note_ids:
            self.ordered_note_ids.remove(note_id)
