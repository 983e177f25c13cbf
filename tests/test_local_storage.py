"""
Local storage adapters: document layout, legacy upgrades and the hybrid
settings adapter's server sync.
"""
from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from open_notes.client.hybrid_settings import HybridSettingsAdapter
from open_notes.client.local_storage import (
    CATEGORIES_KEY,
    NOTES_KEY,
    SETTINGS_KEY,
    TAGS_KEY,
    FileStorage,
    LocalStorageCategoriesAdapter,
    LocalStorageNotesAdapter,
    LocalStorageSettingsAdapter,
    LocalStorageTagsAdapter,
    MemoryStorage,
)
from open_notes.exceptions import ErrorCode, PersistenceError
from open_notes.services.models import Category, Note, NoteTags, Settings


def _legacy_notes_document():
    return json.dumps(
        [
            {
                "id": "01OLD",
                "title": "Legacy",
                "createdAt": 1,
                "updatedAt": 2,
                "contentBlocks": [],
                "enrichmentBlocks": [],
                "categories": ["cat-a", "cat-b"],
                "tags": ["Work", "q3"],
            }
        ]
    )


# ============================================================================
# NOTES
# ============================================================================


@pytest.mark.asyncio
async def test_notes_round_trip_through_storage():
    storage = MemoryStorage()
    adapter = LocalStorageNotesAdapter(storage)
    generated = await adapter.generate_note_id(1_700_000_000_000, "temp-1")
    note = Note(id=generated.permanent_id, title="Hello", created_at=1, updated_at=1)

    await adapter.create_note(note)
    await adapter.update_note(note.model_copy(update={"title": "Hello again"}))

    stored = json.loads(storage.get_item(NOTES_KEY))
    assert stored[0]["title"] == "Hello again"
    assert "contentBlocks" in stored[0]
    assert [n.title for n in await adapter.fetch_all_notes()] == ["Hello again"]

    await adapter.delete_note(note.id)
    assert await adapter.fetch_all_notes() == []


@pytest.mark.asyncio
async def test_create_note_twice_does_not_duplicate():
    adapter = LocalStorageNotesAdapter(MemoryStorage())
    note = Note(id="01A", created_at=1, updated_at=1)

    await adapter.create_note(note)
    await adapter.create_note(note)

    assert len(await adapter.fetch_all_notes()) == 1


@pytest.mark.asyncio
async def test_update_missing_note_raises():
    adapter = LocalStorageNotesAdapter(MemoryStorage())

    with pytest.raises(PersistenceError):
        await adapter.update_note(Note(id="01MISSING", created_at=1, updated_at=1))


@pytest.mark.asyncio
async def test_generate_note_id_wraps_out_of_range_timestamp():
    adapter = LocalStorageNotesAdapter(MemoryStorage())

    with pytest.raises(PersistenceError) as exc_info:
        await adapter.generate_note_id(-5, "temp-x")

    assert exc_info.value.code == ErrorCode.ID_GENERATION_FAILED


@pytest.mark.asyncio
async def test_legacy_note_fields_are_upgraded_on_read():
    adapter = LocalStorageNotesAdapter(MemoryStorage({NOTES_KEY: _legacy_notes_document()}))

    (note,) = await adapter.fetch_all_notes()

    assert note.category == "cat-a"
    assert note.tags == NoteTags(user=["Work", "q3"], system=[])


@pytest.mark.asyncio
async def test_corrupt_document_raises_persistence_error():
    adapter = LocalStorageNotesAdapter(MemoryStorage({NOTES_KEY: "{not json"}))

    with pytest.raises(PersistenceError):
        await adapter.fetch_all_notes()


# ============================================================================
# CATEGORIES / TAGS
# ============================================================================


@pytest.mark.asyncio
async def test_categories_seeded_from_note_references():
    storage = MemoryStorage({NOTES_KEY: _legacy_notes_document()})
    adapter = LocalStorageCategoriesAdapter(storage)

    categories = await adapter.fetch_all_categories()

    assert [c.id for c in categories] == ["cat-a"]
    assert storage.get_item(CATEGORIES_KEY) is not None


@pytest.mark.asyncio
async def test_category_legacy_ai_prompt_is_upgraded():
    document = json.dumps([{"id": "cat-1", "name": "Work", "color": "not-a-color", "aiPrompt": "Summarize"}])
    adapter = LocalStorageCategoriesAdapter(MemoryStorage({CATEGORIES_KEY: document}))

    (category,) = await adapter.fetch_all_categories()

    assert category.enrichment_prompt == "Summarize"
    assert category.no_enrichment is False
    assert category.color != "not-a-color"


@pytest.mark.asyncio
async def test_category_update_for_unknown_id_is_ignored():
    storage = MemoryStorage({CATEGORIES_KEY: "[]"})
    adapter = LocalStorageCategoriesAdapter(storage)

    await adapter.update_category(Category(id="cat-x", name="X", color="red"))

    assert await adapter.fetch_all_categories() == []


@pytest.mark.asyncio
async def test_legacy_tag_objects_are_upgraded():
    document = json.dumps([{"id": "t1", "name": "Deep Work", "color": "red"}, "focus", "focus"])
    adapter = LocalStorageTagsAdapter(MemoryStorage({TAGS_KEY: document}))

    assert await adapter.fetch_all_tags() == ["deep-work", "focus"]


@pytest.mark.asyncio
async def test_tags_seeded_from_notes():
    storage = MemoryStorage({NOTES_KEY: _legacy_notes_document()})
    adapter = LocalStorageTagsAdapter(storage)

    assert await adapter.fetch_all_tags() == ["work", "q3"]
    assert json.loads(storage.get_item(TAGS_KEY)) == ["work", "q3"]


# ============================================================================
# SETTINGS
# ============================================================================


@pytest.mark.asyncio
async def test_settings_save_stamps_last_saved_at_and_loads_back():
    storage = MemoryStorage()
    adapter = LocalStorageSettingsAdapter(storage)

    await adapter.save(Settings(theme="dark"))
    loaded = await adapter.load()

    assert loaded.theme == "dark"
    assert loaded.last_saved_at is not None
    assert "genericEnrichmentPrompt" in json.loads(storage.get_item(SETTINGS_KEY))


@pytest.mark.asyncio
async def test_settings_migrated_from_categories_document():
    document = json.dumps([{"id": "cat-1", "name": "Work", "color": "blue"}])
    adapter = LocalStorageSettingsAdapter(MemoryStorage({CATEGORIES_KEY: document}))

    loaded = await adapter.load()

    assert [c.id for c in loaded.categories] == ["cat-1"]


@pytest.mark.asyncio
async def test_settings_load_returns_none_when_nothing_saved():
    adapter = LocalStorageSettingsAdapter(MemoryStorage())

    assert await adapter.load() is None


@pytest.mark.asyncio
async def test_hybrid_settings_saves_locally_even_when_server_fails():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(500, text="boom")

    storage = MemoryStorage()
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    adapter = HybridSettingsAdapter(storage, "http://server/api/", http_client=http)

    await adapter.save(Settings(theme="dark"))
    await adapter.aclose()

    assert storage.get_item(SETTINGS_KEY) is not None
    assert str(requests[0].url) == "http://server/api/settings"
    assert json.loads(requests[0].content)["theme"] == "dark"


@pytest.mark.asyncio
async def test_hybrid_settings_falls_back_to_server_on_load():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"categories": [], "genericEnrichmentPrompt": "From server"})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    adapter = HybridSettingsAdapter(MemoryStorage(), "http://server/api", http_client=http)

    loaded = await adapter.load()
    await adapter.aclose()

    assert loaded.generic_enrichment_prompt == "From server"


# ============================================================================
# FILE STORAGE
# ============================================================================


def test_file_storage_round_trip(tmp_path: Path):
    storage = FileStorage(tmp_path / "store")

    assert storage.get_item(NOTES_KEY) is None
    storage.set_item(NOTES_KEY, "[]")
    assert storage.get_item(NOTES_KEY) == "[]"
    assert [p.name for p in (tmp_path / "store").iterdir()] == ["open-notes_notes.json"]

    storage.remove_item(NOTES_KEY)
    assert storage.get_item(NOTES_KEY) is None


def test_local_adapters_satisfy_persistence_protocols():
    from open_notes.client.adapters import (
        CategoriesPersistenceAdapter,
        NotesPersistenceAdapter,
        SettingsPersistenceAdapter,
        TagsPersistenceAdapter,
    )

    storage = MemoryStorage()
    assert isinstance(LocalStorageNotesAdapter(storage), NotesPersistenceAdapter)
    assert isinstance(LocalStorageCategoriesAdapter(storage), CategoriesPersistenceAdapter)
    assert isinstance(LocalStorageTagsAdapter(storage), TagsPersistenceAdapter)
    assert isinstance(LocalStorageSettingsAdapter(storage), SettingsPersistenceAdapter)
