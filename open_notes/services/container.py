"""
Dependency injection container for server services.

We store a single Services instance on the Flask app (app.extensions["services"]).
Routes fetch dependencies via get_services(), so route tests can inject fakes
without touching the filesystem settings or OpenAI.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from flask import current_app

from ..config import Config
from .ai_categorizer import AICategorizationService
from .enricher import AIEnrichmentService
from .settings_manager import FileSystemSettingsAdapter, SettingsManager


@dataclass(frozen=True)
class Services:
    settings: SettingsManager
    categorizer: AICategorizationService
    enricher: AIEnrichmentService


def create_services(*, settings_path: Optional[Union[str, Path]] = None) -> Services:
    """
    Build the production Services container.

    Args:
        settings_path: Optional override for the settings document (useful for tests).
    """
    adapter = FileSystemSettingsAdapter(settings_path or Config.SETTINGS_PATH)
    return Services(
        settings=SettingsManager(adapter),
        categorizer=AICategorizationService(),
        enricher=AIEnrichmentService(),
    )


def get_services() -> Services:
    """
    Fetch the Services container from the current Flask app.

    Raises:
        RuntimeError if services have not been attached to the app.
    """
    services = current_app.extensions.get("services")
    if services is None:
        raise RuntimeError('Services not configured. Expected app.extensions["services"].')
    return services
