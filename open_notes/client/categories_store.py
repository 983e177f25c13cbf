"""
Categories domain store (same optimistic/rollback shape as the notes store).
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..exceptions import CategoryNotFoundError
from ..ids import category_id, now_ms
from ..services.models import DEFAULT_CATEGORY_PROMPT, Category
from ..tag_utils import random_color
from .adapters import CategoriesPersistenceAdapter
from .observable import ObservableStore

logger = logging.getLogger(__name__)


class CategoriesStore(ObservableStore):
    def __init__(self, adapter: CategoriesPersistenceAdapter, clock: Callable[[], int] = now_ms):
        super().__init__()
        self.adapter = adapter
        self.categories: Dict[str, Category] = {}
        self._clock = clock

    async def create_category(
        self,
        name: str,
        enrichment_prompt: Optional[str] = None,
        *,
        color: Optional[str] = None,
        no_enrichment: bool = False,
    ) -> str:
        if not name or not name.strip():
            raise ValueError("Category name cannot be empty")

        category = Category(
            id=category_id(self._clock()),
            name=name.strip(),
            color=color or random_color(),
            enrichment_prompt=enrichment_prompt or DEFAULT_CATEGORY_PROMPT,
            no_enrichment=no_enrichment,
        )

        self.categories[category.id] = category
        self._notify()

        try:
            await self.adapter.create_category(category)
        except Exception as e:
            self.categories.pop(category.id, None)
            logger.warning("Failed to create category %r: %s", name, e)
            self._record_error(e, "Failed to create category")
            raise

        return category.id

    async def update_category(self, category_id: str, updates: Mapping[str, Any]) -> None:
        """
        Merge ``updates`` (field name -> value) into the category and persist.

        Raises:
            CategoryNotFoundError: If the category is not in the store.
        """
        current = self.categories.get(category_id)
        if current is None:
            raise CategoryNotFoundError(category_id)

        merged = {**current.model_dump(), **dict(updates), "id": category_id}
        updated = Category.model_validate(merged)

        self.categories[category_id] = updated
        self._notify()

        try:
            await self.adapter.update_category(updated)
        except Exception as e:
            if category_id in self.categories:
                self.categories[category_id] = current
            logger.warning("Failed to update category %s, rolled back: %s", category_id, e)
            self._record_error(e, "Failed to update category")
            raise

    async def delete_category(self, category_id: str) -> None:
        """
        Remove a category.

        Notes referencing it are not touched; callers clear those references.
        """
        current = self.categories.pop(category_id, None)
        if current is None:
            raise CategoryNotFoundError(category_id)
        self._notify()

        try:
            await self.adapter.delete_category(category_id)
        except Exception as e:
            self.categories[category_id] = current
            logger.warning("Failed to delete category %s, restored: %s", category_id, e)
            self._record_error(e, "Failed to delete category")
            raise

    def get_category(self, category_id: str) -> Optional[Category]:
        return self.categories.get(category_id)

    def get_all_categories(self) -> List[Category]:
        return list(self.categories.values())

    def get_category_by_name(self, name: str) -> Optional[Category]:
        return next((c for c in self.categories.values() if c.name == name), None)

    def has_category(self, category_id: Optional[str]) -> bool:
        return bool(category_id) and category_id in self.categories

    def hydrate(self, categories: Sequence[Category]) -> None:
        self.categories = {c.id: c for c in categories}
        self.is_loading = False
        self.error = None
        self._notify()

    async def refresh_from_adapter(self) -> None:
        self.is_loading = True
        self.error = None
        self._notify()

        try:
            categories = await self.adapter.fetch_all_categories()
        except Exception as e:
            logger.error("Failed to load categories: %s", e)
            self.is_loading = False
            self._record_error(e, "Failed to load categories")
            return

        self.hydrate(categories)
