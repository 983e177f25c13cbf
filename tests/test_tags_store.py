from __future__ import annotations

from typing import List

import pytest

from open_notes.client.tags_store import TagsStore
from open_notes.exceptions import PersistenceError
from open_notes.tag_utils import get_tag_color


class _FakeTagsAdapter:
    def __init__(self):
        self.saved: List[str] = []
        self.save_calls = 0
        self.fail = False

    async def fetch_all_tags(self):
        return list(self.saved)

    async def save_tags(self, tags):  # noqa: ANN001
        self.save_calls += 1
        if self.fail:
            raise PersistenceError("save failed")
        self.saved = list(tags)


@pytest.fixture()
def adapter():
    return _FakeTagsAdapter()


@pytest.fixture()
def store(adapter):  # noqa: ANN001
    return TagsStore(adapter)


@pytest.mark.asyncio
async def test_add_tag_normalizes_and_is_idempotent(store, adapter):  # noqa: ANN001
    assert await store.add_tag("Urgent Task") == "urgent-task"
    assert await store.add_tag("urgent-task") == "urgent-task"

    assert [t.name for t in store.get_all_tags()] == ["urgent-task"]
    assert adapter.saved == ["urgent-task"]
    assert adapter.save_calls == 1


@pytest.mark.asyncio
async def test_add_empty_tag_is_rejected(store):  # noqa: ANN001
    with pytest.raises(ValueError):
        await store.add_tag("   ")


@pytest.mark.asyncio
async def test_add_tag_rolls_back_on_failure(store, adapter):  # noqa: ANN001
    adapter.fail = True

    with pytest.raises(PersistenceError):
        await store.add_tag("work")

    assert not store.has_tag("work")
    assert store.error == "save failed"


@pytest.mark.asyncio
async def test_remove_tag(store, adapter):  # noqa: ANN001
    await store.add_tag("work")
    await store.add_tag("home")

    await store.remove_tag("Work")

    assert adapter.saved == ["home"]
    assert not store.has_tag("work")


@pytest.mark.asyncio
async def test_remove_tag_restores_on_failure(store, adapter):  # noqa: ANN001
    await store.add_tag("work")
    adapter.fail = True

    with pytest.raises(PersistenceError):
        await store.remove_tag("work")

    assert store.has_tag("work")


@pytest.mark.asyncio
async def test_refresh_from_adapter_normalizes(store, adapter):  # noqa: ANN001
    adapter.saved = ["Deep Work", "deep-work", "focus"]

    await store.refresh_from_adapter()

    tags = store.get_all_tags()
    assert [t.name for t in tags] == ["deep-work", "focus"]
    assert tags[0].color == get_tag_color("deep-work")
