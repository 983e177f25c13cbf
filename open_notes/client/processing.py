"""
AI note processing: categorization followed by optional enrichment.

Triggered after a note is saved and has stayed unchanged for the processing
delay. Two phases:

1. Categorize (required). AI tags replace ``tags.system`` on every run while
   ``tags.user`` is left alone; a category is auto-assigned only when the
   note has no valid category. Failures propagate.
2. Enrich (best effort). Skipped when the category that was just
   auto-assigned is a no-enrichment category. Failures are logged and the
   categorization result is still applied.

The result is folded into the notes store with a single ``update_note`` call.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import httpx
from pydantic import ValidationError

from ..exceptions import AIConfigurationError, ErrorCode, NoteNotFoundError, ProcessingError
from ..services.models import (
    Category,
    CategorizationResult,
    CategorizeRequest,
    CategoryRef,
    EnrichmentResult,
    EnrichRequest,
    Note,
    NoteTags,
    NoteUpdates,
)
from .markdown import blocks_to_markdown
from .notes_store import NotesStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class NoteProcessingClient:
    """HTTP client for the server's /categorize and /enrich endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def categorize(
        self, note: Note, content_markdown: str, categories: Sequence[Category]
    ) -> CategorizationResult:
        request = CategorizeRequest(
            note_id=note.id,
            title=note.title,
            content=content_markdown,
            created_at=note.created_at,
            updated_at=note.updated_at,
            categories=[CategoryRef(id=c.id, name=c.name) for c in categories],
        )
        data = await self._post("categorize", request.to_json_dict(), "Categorization")
        return self._parse(CategorizationResult, data, "Categorization")

    async def enrich(
        self,
        note: Note,
        content_markdown: str,
        category: Optional[Category],
        enrichment_prompt: str,
    ) -> EnrichmentResult:
        request = EnrichRequest(
            note_id=note.id,
            title=note.title,
            content=content_markdown,
            category_id=category.id if category else None,
            enrichment_prompt=enrichment_prompt,
        )
        data = await self._post("enrich", request.to_json_dict(), "Enrichment")
        return self._parse(EnrichmentResult, data, "Enrichment")

    async def _post(self, path: str, payload: dict, label: str) -> dict:
        try:
            resp = await self._http.post(f"{self._base_url}/{path}", json=payload)
        except httpx.HTTPError as e:
            raise ProcessingError(f"{label} failed: {e}") from e

        if resp.status_code >= 400:
            body = _error_body(resp)
            message = body.get("error") or resp.text
            if resp.status_code == 400 and body.get("code") == ErrorCode.CONFIGURATION_ERROR.value:
                raise AIConfigurationError(message, status_code=resp.status_code)
            raise ProcessingError(
                f"{label} failed: {resp.status_code} {resp.reason_phrase} - {message}",
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise ProcessingError(f"{label} returned invalid JSON") from e

    @staticmethod
    def _parse(model, data, label: str):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ProcessingError(f"{label} returned an unexpected response: {e}") from e


def _error_body(resp: httpx.Response) -> dict:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _find(categories: Sequence[Category], category_id: Optional[str]) -> Optional[Category]:
    if not category_id:
        return None
    return next((c for c in categories if c.id == category_id), None)


async def process_note(
    note: Note,
    content_markdown: str,
    *,
    client: NoteProcessingClient,
    categories: Sequence[Category],
    generic_enrichment_prompt: str,
) -> NoteUpdates:
    """
    Run categorization and enrichment for ``note``.

    Args:
        note: The saved note to process
        content_markdown: The note's content blocks rendered as markdown
        client: Client for the AI endpoints
        categories: Currently defined categories
        generic_enrichment_prompt: Prompt used when the category has none

    Returns:
        NoteUpdates holding only the fields this run changes

    Raises:
        ProcessingError: If categorization fails (AIConfigurationError when
            the server reports missing model settings)
    """
    updates = NoteUpdates()

    # Step 1: categorization (always, so AI tags stay fresh)
    try:
        result = await client.categorize(note, content_markdown, categories)
    except Exception:
        logger.exception("Categorization failed for note %s", note.id)
        raise

    updates.tags = NoteTags(user=list(note.tags.user), system=list(result.tags))

    has_valid_category = _find(categories, note.category) is not None
    auto_assigned: Optional[str] = None
    if not has_valid_category and result.category:
        auto_assigned = result.category[0]
        updates.category = auto_assigned
        logger.info("Auto-assigned category %s to note %s", auto_assigned, note.id)

    # Step 2: enrichment (best effort)
    effective = _find(categories, auto_assigned or note.category)
    if auto_assigned is not None and effective is not None and effective.no_enrichment:
        logger.info(
            "Skipping enrichment for note %s: auto-assigned category %s is manual-only",
            note.id, effective.id,
        )
        return updates

    if effective is not None and effective.no_enrichment:
        # Manual category chosen by the user: never send content, drop stale enrichments
        updates.enrichment_blocks = []
        return updates

    prompt = (effective.enrichment_prompt if effective else "") or generic_enrichment_prompt
    try:
        enrichment = await client.enrich(note, content_markdown, effective, prompt)
    except Exception as e:
        logger.warning("Enrichment failed for note %s: %s", note.id, e)
    else:
        updates.enrichment_blocks = list(enrichment.enrichment_blocks)

    return updates


class NoteProcessor:
    """Runs the pipeline for notes held by a ``NotesStore``."""

    def __init__(
        self,
        store: NotesStore,
        client: NoteProcessingClient,
        *,
        categories_provider,
        prompt_provider,
    ):
        """
        Args:
            store: Notes store to read from and update
            client: AI endpoint client
            categories_provider: Callable returning the current category list
            prompt_provider: Callable returning the generic enrichment prompt
        """
        self.store = store
        self.client = client
        self._categories = categories_provider
        self._prompt = prompt_provider

    async def run(self, note_id: str, content_markdown: Optional[str] = None) -> NoteUpdates:
        """
        Process one note and apply the result with a single store update.

        The update is merged onto the note as it is when the result arrives,
        so user tags edited meanwhile are kept and a valid category chosen
        meanwhile is not replaced.
        """
        note = self.store.get_note(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)

        markdown = content_markdown if content_markdown is not None else blocks_to_markdown(note.content_blocks)
        categories: List[Category] = list(self._categories())

        updates = await process_note(
            note,
            markdown,
            client=self.client,
            categories=categories,
            generic_enrichment_prompt=self._prompt(),
        )

        if not updates.is_empty():
            await self.store.update_note(note_id, lambda current: _apply(updates, current, categories))
        return updates


def _apply(updates: NoteUpdates, note: Note, categories: Sequence[Category]) -> Note:
    # The user may have picked a valid category while the request was in flight
    if updates.category is not None and _find(categories, note.category) is not None:
        updates = updates.model_copy(update={"category": None})
    return updates.apply_to(note)
