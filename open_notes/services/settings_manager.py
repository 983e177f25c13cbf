"""
Server-side settings: a JSON document on disk plus a cached ServerConfig.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from ..exceptions import PersistenceError
from .models import ServerConfig, Settings

logger = logging.getLogger(__name__)


class FileSystemSettingsAdapter:
    """Stores the full settings document as pretty-printed JSON."""

    def __init__(self, settings_path: Union[str, Path]):
        self.settings_path = Path(settings_path)

    def load(self) -> Settings:
        """Load settings merged over defaults. A missing file yields defaults."""
        try:
            raw = self.settings_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Settings()
        except OSError as e:
            raise PersistenceError(f"Failed to load settings from {self.settings_path}: {e}") from e

        try:
            return Settings.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            raise PersistenceError(f"Failed to load settings from {self.settings_path}: {e}") from e

    def load_server_config(self) -> ServerConfig:
        return self.load().server_config()

    def save(self, settings: Settings) -> None:
        payload = json.dumps(settings.to_json_dict(), indent=2)
        try:
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.settings_path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp, self.settings_path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to save settings to {self.settings_path}: {e}") from e

    def exists(self) -> bool:
        return self.settings_path.is_file()

    def get_path(self) -> str:
        return str(self.settings_path)


class SettingsManager:
    """
    Holds the server configuration used by the AI endpoints.

    Settings are loaded lazily on first use and cached until ``reload``.
    A document that fails to load is logged and replaced with defaults.
    """

    def __init__(self, adapter: FileSystemSettingsAdapter):
        self.adapter = adapter
        self._config: ServerConfig = Settings().server_config()
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def load(self) -> None:
        try:
            self._config = self.adapter.load_server_config()
        except PersistenceError as e:
            logger.error("Failed to load settings, using defaults: %s", e)
            self._config = Settings().server_config()
        self._loaded = True

    def get_config(self) -> ServerConfig:
        """Return a copy of the current configuration, loading it if needed."""
        if not self._loaded:
            self.load()
        return self._config.model_copy(deep=True)

    def reload(self) -> None:
        self._loaded = False
        self.load()

    def get_settings_path(self) -> str:
        return self.adapter.get_path()

    def save(self, settings: Settings) -> None:
        self.adapter.save(settings)
        self._config = settings.server_config()
        self._loaded = True

    def merge_and_save(self, client_settings: Dict[str, Any]) -> Settings:
        """
        Merge a (partial) settings document from a client over the stored one and save.

        Fields the client does not send are kept. Missing categories and
        empty prompts keep the stored values.

        Raises:
            ValidationError: If the merged document is invalid
            PersistenceError: If the stored document cannot be read or written
        """
        current = self.adapter.load().to_json_dict()
        merged: Dict[str, Any] = {**current, **client_settings}

        categories: Optional[Any] = client_settings.get("categories")
        merged["categories"] = categories if categories is not None else current.get("categories", [])
        for key in ("genericEnrichmentPrompt", "categoryRecognitionPrompt"):
            merged[key] = client_settings.get(key) or current.get(key)

        settings = Settings.model_validate(merged)
        self.save(settings)
        logger.info("Settings saved to %s", self.get_settings_path())
        return settings
