"""
AI processing pipeline tests.

The HTTP client is exercised against httpx.MockTransport; the pipeline
itself runs against an in-process fake client.
"""
from __future__ import annotations

import json
from typing import List, Optional

import httpx
import pytest

from open_notes.client.markdown import blocks_to_markdown
from open_notes.client.notes_store import NotesStore
from open_notes.client.processing import NoteProcessingClient, NoteProcessor, process_note
from open_notes.exceptions import AIConfigurationError, NoteNotFoundError, ProcessingError
from open_notes.services.models import (
    Block,
    CategorizationResult,
    Category,
    EnrichmentResult,
    Note,
    NoteTags,
)


# ============================================================================
# TEST FAKES
# ============================================================================


class _FakeProcessingClient:
    def __init__(
        self,
        categorization: Optional[CategorizationResult] = None,
        enrichment: Optional[EnrichmentResult] = None,
        categorize_error: Optional[Exception] = None,
        enrich_error: Optional[Exception] = None,
        before_categorize=None,  # noqa: ANN001
    ):
        self.categorization = categorization or CategorizationResult()
        self.enrichment = enrichment or EnrichmentResult()
        self.categorize_error = categorize_error
        self.enrich_error = enrich_error
        self.before_categorize = before_categorize
        self.enrich_calls: List[dict] = []

    async def categorize(self, note, content_markdown, categories):  # noqa: ANN001
        if self.before_categorize:
            await self.before_categorize()
        if self.categorize_error:
            raise self.categorize_error
        return self.categorization

    async def enrich(self, note, content_markdown, category, enrichment_prompt):  # noqa: ANN001
        self.enrich_calls.append({"category": category, "prompt": enrichment_prompt, "content": content_markdown})
        if self.enrich_error:
            raise self.enrich_error
        return self.enrichment


class _FakeNotesAdapter:
    async def update_note(self, note):  # noqa: ANN001
        return None


CATEGORIES = [
    Category(id="cat-work", name="Work", color="blue", enrichment_prompt="Find action items"),
    Category(id="cat-journal", name="Journal", color="rose", no_enrichment=True),
]

ENRICH_BLOCK = Block(id="enrich-1-abcdef", content="Context", created_at=1)


def _note(**fields) -> Note:  # noqa: ANN003
    fields.setdefault("tags", NoteTags(user=["mine"], system=["stale"]))
    return Note(id="01NOTE", title="T", created_at=1, updated_at=1, **fields)


async def _run(note: Note, client: _FakeProcessingClient, categories=CATEGORIES):  # noqa: ANN001
    return await process_note(
        note,
        "# body",
        client=client,
        categories=categories,
        generic_enrichment_prompt="Generic prompt",
    )


# ============================================================================
# PIPELINE
# ============================================================================


@pytest.mark.asyncio
async def test_system_tags_replaced_and_user_tags_kept():
    client = _FakeProcessingClient(CategorizationResult(category=[], tags=["fresh"]))

    updates = await _run(_note(category="cat-work"), client)

    assert updates.tags == NoteTags(user=["mine"], system=["fresh"])
    assert updates.category is None


@pytest.mark.asyncio
async def test_empty_ai_tags_clear_system_tags():
    updates = await _run(_note(category="cat-work"), _FakeProcessingClient())

    assert updates.tags.system == []


@pytest.mark.asyncio
async def test_existing_valid_category_is_never_overridden():
    client = _FakeProcessingClient(CategorizationResult(category=["cat-journal"], tags=[]), EnrichmentResult(enrichment_blocks=[ENRICH_BLOCK]))

    updates = await _run(_note(category="cat-work"), client)

    assert updates.category is None
    assert client.enrich_calls[0]["prompt"] == "Find action items"
    assert updates.enrichment_blocks == [ENRICH_BLOCK]


@pytest.mark.asyncio
async def test_category_auto_assigned_when_missing_or_stale():
    client = _FakeProcessingClient(CategorizationResult(category=["cat-work", "cat-journal"], tags=["x"]))

    missing = await _run(_note(), client)
    stale = await _run(_note(category="cat-deleted"), client)

    assert missing.category == "cat-work"
    assert stale.category == "cat-work"


@pytest.mark.asyncio
async def test_auto_assigned_no_enrichment_category_skips_enrichment():
    client = _FakeProcessingClient(CategorizationResult(category=["cat-journal"], tags=["diary"]))

    updates = await _run(_note(), client)

    assert updates.category == "cat-journal"
    assert updates.enrichment_blocks is None
    assert client.enrich_calls == []


@pytest.mark.asyncio
async def test_chosen_no_enrichment_category_never_sends_content():
    client = _FakeProcessingClient(CategorizationResult(category=["cat-work"], tags=[]))
    note = _note(category="cat-journal", enrichment_blocks=[ENRICH_BLOCK])

    updates = await _run(note, client)

    assert client.enrich_calls == []
    assert updates.enrichment_blocks == []
    assert updates.category is None


@pytest.mark.asyncio
async def test_uncategorized_note_uses_generic_prompt():
    client = _FakeProcessingClient(CategorizationResult(category=[], tags=[]))

    await _run(_note(), client)

    assert client.enrich_calls[0]["prompt"] == "Generic prompt"
    assert client.enrich_calls[0]["category"] is None


@pytest.mark.asyncio
async def test_enrichment_failure_still_returns_categorization():
    client = _FakeProcessingClient(
        CategorizationResult(category=["cat-work"], tags=["t"]),
        enrich_error=ProcessingError("enrich down"),
    )

    updates = await _run(_note(), client)

    assert updates.category == "cat-work"
    assert updates.tags.system == ["t"]
    assert updates.enrichment_blocks is None


@pytest.mark.asyncio
async def test_categorization_failure_propagates():
    client = _FakeProcessingClient(categorize_error=AIConfigurationError("configure a model"))

    with pytest.raises(AIConfigurationError):
        await _run(_note(), client)

    assert client.enrich_calls == []


def test_markdown_numbers_ordered_list_items_consecutively():
    blocks = [
        Block(id="b1", type="h2", content="Plan", created_at=1),
        Block(id="b2", type="ol", content="first\n\n  \nsecond\nthird", created_at=1),
    ]

    assert blocks_to_markdown(blocks) == "## Plan\n\n1. first\n2. second\n3. third"


# ============================================================================
# PROCESSOR (store integration)
# ============================================================================


def _processor(store: NotesStore, client: _FakeProcessingClient) -> NoteProcessor:
    return NoteProcessor(
        store,
        client,
        categories_provider=lambda: CATEGORIES,
        prompt_provider=lambda: "Generic prompt",
    )


@pytest.mark.asyncio
async def test_processor_applies_updates_in_one_store_update():
    store = NotesStore(_FakeNotesAdapter(), clock=lambda: 50)
    store.hydrate([_note(content_blocks=[Block(id="b1", type="h1", content="Title", created_at=1)])])
    notifications = []
    store.subscribe(lambda: notifications.append(1))
    client = _FakeProcessingClient(
        CategorizationResult(category=["cat-work"], tags=["ai"]),
        EnrichmentResult(enrichment_blocks=[ENRICH_BLOCK]),
    )

    await _processor(store, client).run("01NOTE")

    note = store.get_note("01NOTE")
    assert note.category == "cat-work"
    assert note.tags == NoteTags(user=["mine"], system=["ai"])
    assert note.enrichment_blocks == [ENRICH_BLOCK]
    assert notifications == [1]
    assert client.enrich_calls[0]["content"] == "# Title"


@pytest.mark.asyncio
async def test_processor_keeps_category_chosen_while_categorizing():
    store = NotesStore(_FakeNotesAdapter(), clock=lambda: 50)
    store.hydrate([_note()])

    async def user_picks_category():
        await store.update_note("01NOTE", lambda note: note.model_copy(update={"category": "cat-journal"}))

    client = _FakeProcessingClient(
        CategorizationResult(category=["cat-work"], tags=["ai"]),
        EnrichmentResult(enrichment_blocks=[ENRICH_BLOCK]),
        before_categorize=user_picks_category,
    )

    await _processor(store, client).run("01NOTE")

    note = store.get_note("01NOTE")
    assert note.category == "cat-journal"
    assert note.tags == NoteTags(user=["mine"], system=["ai"])


@pytest.mark.asyncio
async def test_processor_unknown_note():
    store = NotesStore(_FakeNotesAdapter())

    with pytest.raises(NoteNotFoundError):
        await _processor(store, _FakeProcessingClient()).run("nope")


# ============================================================================
# HTTP CLIENT
# ============================================================================


@pytest.mark.asyncio
async def test_client_posts_camel_case_payloads():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.url.path, json.loads(request.content)))
        if request.url.path.endswith("/categorize"):
            return httpx.Response(200, json={"category": ["cat-work"], "tags": ["a"]})
        return httpx.Response(
            200,
            json={"enrichmentBlocks": [{"id": "enrich-1-abcdef", "type": "paragraph", "content": "c", "createdAt": 1}]},
        )

    client = NoteProcessingClient(
        "http://server/api", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    note = _note()

    result = await client.categorize(note, "body", CATEGORIES)
    enrichment = await client.enrich(note, "body", CATEGORIES[0], "Find action items")
    await client.aclose()

    assert result.category == ["cat-work"]
    assert enrichment.enrichment_blocks[0].id == "enrich-1-abcdef"
    path, body = seen[0]
    assert path == "/api/categorize"
    assert body["noteId"] == "01NOTE"
    assert body["categories"] == [{"id": "cat-work", "name": "Work"}, {"id": "cat-journal", "name": "Journal"}]
    assert seen[1][1]["enrichmentPrompt"] == "Find action items"
    assert seen[1][1]["categoryId"] == "cat-work"


@pytest.mark.asyncio
async def test_client_maps_configuration_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "API key is not configured", "code": "CONFIGURATION_ERROR"})

    client = NoteProcessingClient(
        "http://server/api", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )

    with pytest.raises(AIConfigurationError) as exc_info:
        await client.categorize(_note(), "body", CATEGORIES)
    await client.aclose()

    assert exc_info.value.status_code == 400
    assert "API key" in exc_info.value.message


@pytest.mark.asyncio
async def test_client_maps_other_failures():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "Categorization failed: boom", "code": "AI_CATEGORIZATION_FAILED"})

    client = NoteProcessingClient(
        "http://server/api", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )

    with pytest.raises(ProcessingError) as exc_info:
        await client.categorize(_note(), "body", CATEGORIES)
    await client.aclose()

    assert not isinstance(exc_info.value, AIConfigurationError)
    assert exc_info.value.status_code == 500
    assert "boom" in str(exc_info.value)
