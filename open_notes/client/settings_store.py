"""
Settings store.

Manages user configuration and AI prompts:
- appearance preferences (theme, font size)
- language/embedding model configuration
- global prompts (category recognition, generic enrichment)
- the category list mirrored to the server for categorization
- editor auto-save preferences
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from ..ids import now_ms
from ..services.models import Category, EditorSettings, ModelConfiguration, Settings
from .adapters import SettingsPersistenceAdapter
from .observable import ObservableStore

logger = logging.getLogger(__name__)


class SettingsStore(ObservableStore):
    def __init__(self, adapter: Optional[SettingsPersistenceAdapter]):
        super().__init__()
        self.adapter = adapter
        self.settings = Settings()
        self.last_saved_at: Optional[int] = None

    # Appearance
    async def set_theme(self, theme: str) -> None:
        await self._change(theme=theme)

    async def set_font_size(self, font_size: str) -> None:
        await self._change(font_size=font_size)

    # AI configuration
    async def set_language_model(self, model: ModelConfiguration) -> None:
        await self._change(language_model=model)

    async def clear_language_model(self) -> None:
        await self._change(language_model=None)

    async def set_embedding_model(self, model: ModelConfiguration) -> None:
        await self._change(embedding_model=model)

    async def clear_embedding_model(self) -> None:
        await self._change(embedding_model=None)

    # Categories and prompts
    async def set_categories(self, categories: Sequence[Category]) -> None:
        await self._change(categories=list(categories))

    async def set_generic_enrichment_prompt(self, prompt: str) -> None:
        await self._change(generic_enrichment_prompt=prompt)

    async def set_category_recognition_prompt(self, prompt: str) -> None:
        await self._change(category_recognition_prompt=prompt)

    async def set_editor_setting(self, key: str, value: Any) -> None:
        if key not in EditorSettings.model_fields:
            raise ValueError(f"Unknown editor setting: {key}")
        editor = self.settings.editor_settings.model_copy(update={key: value})
        await self._change(editor_settings=EditorSettings.model_validate(editor.model_dump()))

    @property
    def categories(self) -> List[Category]:
        return list(self.settings.categories)

    # Lifecycle
    async def load(self) -> None:
        """Load saved settings merged over defaults; keeps defaults when nothing is saved."""
        self.is_loading = True
        self.error = None
        self._notify()

        try:
            adapter = self._require_adapter()
            loaded = await adapter.load()
        except Exception as e:
            self.is_loading = False
            self._record_error(e, "Failed to load settings")
            raise

        if loaded is not None:
            self.settings = Settings.model_validate(
                {**Settings().model_dump(), **loaded.model_dump(exclude_unset=True)}
            )
        self.is_loading = False
        self._notify()

    async def save(self) -> None:
        try:
            adapter = self._require_adapter()
            await adapter.save(self.settings)
        except Exception as e:
            logger.warning("Failed to save settings: %s", e)
            self._record_error(e, "Failed to save settings")
            raise

        self.last_saved_at = now_ms()
        self.error = None
        self._notify()

    def reset_to_defaults(self) -> None:
        self.settings = Settings()
        self.last_saved_at = now_ms()
        self._notify()

    def _require_adapter(self) -> SettingsPersistenceAdapter:
        if self.adapter is None:
            raise RuntimeError("No persistence adapter configured")
        return self.adapter

    async def _change(self, **changes: Any) -> None:
        self.settings = self.settings.model_copy(update=changes)
        self._notify()
        await self.save()
