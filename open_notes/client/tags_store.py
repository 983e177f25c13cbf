"""
Tags domain store.

Every tag passes through ``normalize_tag`` before it is stored or compared,
so "Urgent Task" and "urgent-task" are the same tag. The whole tag list is
persisted on each change.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Set

from ..services.models import Tag
from ..tag_utils import get_tag_color, normalize_tag
from .adapters import TagsPersistenceAdapter
from .observable import ObservableStore

logger = logging.getLogger(__name__)


def _require(tag: str) -> str:
    normalized = normalize_tag(tag)
    if not normalized:
        raise ValueError("Tag cannot be empty")
    return normalized


class TagsStore(ObservableStore):
    def __init__(self, adapter: TagsPersistenceAdapter):
        super().__init__()
        self.adapter = adapter
        self.tags: Set[str] = set()

    async def add_tag(self, name: str) -> str:
        """Add a tag and return its normalized form."""
        tag = _require(name)
        if tag in self.tags:
            return tag

        previous = set(self.tags)
        self.tags.add(tag)
        await self._persist(previous, "Failed to add tag")
        return tag

    async def remove_tag(self, name: str) -> None:
        """
        Remove a tag from the known set.

        Notes carrying the tag are not touched; callers strip it from them.
        """
        tag = _require(name)
        if tag not in self.tags:
            return

        previous = set(self.tags)
        self.tags.discard(tag)
        await self._persist(previous, "Failed to remove tag")

    def get_all_tags(self) -> List[Tag]:
        return [Tag(name=t, color=get_tag_color(t)) for t in sorted(self.tags)]

    def has_tag(self, name: str) -> bool:
        return normalize_tag(name) in self.tags

    def hydrate(self, tags: Iterable[str]) -> None:
        self.tags = {t for t in (normalize_tag(tag) for tag in tags) if t}
        self.is_loading = False
        self.error = None
        self._notify()

    async def refresh_from_adapter(self) -> None:
        self.is_loading = True
        self.error = None
        self._notify()

        try:
            tags = await self.adapter.fetch_all_tags()
        except Exception as e:
            logger.error("Failed to load tags: %s", e)
            self.is_loading = False
            self._record_error(e, "Failed to load tags")
            return

        self.hydrate(tags)

    async def _persist(self, previous: Set[str], failure_message: str) -> None:
        self._notify()
        try:
            await self.adapter.save_tags(sorted(self.tags))
        except Exception as e:
            self.tags = previous
            logger.warning("%s: %s", failure_message, e)
            self._record_error(e, failure_message)
            raise
