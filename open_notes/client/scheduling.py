"""
Timers that drive the stores: debounced auto-save and delayed AI processing.

Only pending timers are cancellable; once a save or processing run has
started it is never cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from ..config import Config
from ..services.models import Block
from .notes_store import NotesStore
from .processing import NoteProcessor

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Coalesce bursts of calls into one ``callback`` run ``delay`` seconds
    after the last ``trigger``.
    """

    def __init__(self, delay: float, callback: Callable[..., Awaitable[Any]]):
        self.delay = delay
        self._callback = callback
        self._timer: Optional[asyncio.TimerHandle] = None
        self._args: Tuple[Any, ...] = ()
        self._running: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    @property
    def running(self) -> Set[asyncio.Task]:
        return set(self._running)

    def trigger(self, *args: Any) -> None:
        """(Re)start the timer; the latest arguments win. Needs a running loop."""
        loop = asyncio.get_running_loop()
        self.cancel()
        self._args = args
        self._timer = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def flush(self) -> None:
        """Run a pending callback now instead of waiting; no-op when idle."""
        if self._timer is None:
            return
        self.cancel()
        await self._callback(*self._args)

    async def wait_idle(self) -> None:
        """Wait for callbacks already started by the timer."""
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    def _fire(self) -> None:
        self._timer = None
        task = asyncio.ensure_future(self._callback(*self._args))
        self._running.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._running.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Debounced callback failed: %s", task.exception())


class NoteAutoSaver:
    """
    Debounced editor saves for one note.

    Editor changes accumulate until the note has been quiet for ``delay``
    seconds, then go to the store in one ``update_note`` call. ``save_now``
    is the manual save path: it cancels the timer and saves immediately.
    """

    def __init__(self, store: NotesStore, note_id: str, delay: float = Config.AUTOSAVE_DELAY):
        self.store = store
        self.note_id = note_id
        self._changes: Dict[str, Any] = {}
        self._debouncer = Debouncer(delay, self._save)

    @property
    def has_unsaved_changes(self) -> bool:
        return bool(self._changes)

    def content_changed(
        self,
        *,
        title: Optional[str] = None,
        content_blocks: Optional[List[Block]] = None,
    ) -> None:
        if title is not None:
            self._changes["title"] = title
        if content_blocks is not None:
            self._changes["content_blocks"] = list(content_blocks)
        if self._changes:
            self._debouncer.trigger()

    async def save_now(self) -> None:
        self._debouncer.cancel()
        await self._save()

    def cancel(self) -> None:
        """Drop the pending timer (unsaved changes are kept for the next save)."""
        self._debouncer.cancel()

    async def wait_idle(self) -> None:
        await self._debouncer.wait_idle()

    async def _save(self) -> None:
        if not self._changes:
            return
        changes, self._changes = self._changes, {}
        try:
            await self.store.update_note(self.note_id, lambda note: note.model_copy(update=changes))
        except Exception:
            # Keep the edits so the next save retries them (newer edits win)
            self._changes = {**changes, **self._changes}
            raise


class ProcessingScheduler:
    """
    Run the AI pipeline for a note once it has stayed unchanged for ``delay`` seconds.

    Each change re-arms that note's timer. Pipeline errors are logged and
    passed to ``on_error`` so the UI can surface them.
    """

    def __init__(
        self,
        processor: NoteProcessor,
        delay: float = Config.PROCESSING_DELAY,
        on_error: Optional[Callable[[str, BaseException], None]] = None,
    ):
        self.processor = processor
        self.delay = delay
        self._on_error = on_error
        self._timers: Dict[str, Debouncer] = {}

    def note_changed(self, note_id: str, content_markdown: Optional[str] = None) -> None:
        debouncer = self._timers.get(note_id)
        if debouncer is None:
            debouncer = Debouncer(self.delay, self._run)
            self._timers[note_id] = debouncer
        debouncer.trigger(note_id, content_markdown)

    def is_scheduled(self, note_id: str) -> bool:
        debouncer = self._timers.get(note_id)
        return debouncer is not None and debouncer.pending

    def cancel(self, note_id: str) -> None:
        debouncer = self._timers.pop(note_id, None)
        if debouncer is not None:
            debouncer.cancel()

    def cancel_all(self) -> None:
        for note_id in list(self._timers):
            self.cancel(note_id)

    async def wait_idle(self) -> None:
        await asyncio.gather(*(d.wait_idle() for d in list(self._timers.values())))

    async def _run(self, note_id: str, content_markdown: Optional[str]) -> None:
        try:
            await self.processor.run(note_id, content_markdown)
        except Exception as e:
            logger.error("Processing note %s failed: %s", note_id, e)
            if self._on_error is not None:
                self._on_error(note_id, e)
        finally:
            self._forget_if_idle(note_id)

    def _forget_if_idle(self, note_id: str) -> None:
        debouncer = self._timers.get(note_id)
        if debouncer is None or debouncer.pending:
            return
        if debouncer.running - {asyncio.current_task()}:
            return
        del self._timers[note_id]
