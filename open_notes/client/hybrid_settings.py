"""
Hybrid settings persistence: local storage plus server sync.

Settings are written locally first; pushing them to the server is best
effort so a server outage never loses a local save.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..exceptions import PersistenceError
from ..services.models import Settings
from .local_storage import LocalStorage, LocalStorageSettingsAdapter

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class HybridSettingsAdapter:
    """Settings adapter backed by local storage and the server's /settings endpoint."""

    def __init__(
        self,
        storage: LocalStorage,
        server_url: str,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._local = LocalStorageSettingsAdapter(storage)
        self._server_url = server_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def save(self, settings: Settings) -> None:
        await self._local.save(settings)
        try:
            await self._sync_to_server(settings)
        except (httpx.HTTPError, PersistenceError) as e:
            logger.warning("Failed to sync settings to server: %s", e)

    async def load(self) -> Optional[Settings]:
        settings = await self._local.load()
        if settings is not None:
            return settings
        return await self._load_from_server()

    async def clear(self) -> None:
        await self._local.clear()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _sync_to_server(self, settings: Settings) -> None:
        resp = await self._http.post(f"{self._server_url}/settings", json=settings.to_json_dict())
        if resp.status_code >= 400:
            raise PersistenceError(
                f"Server rejected settings: {resp.status_code} {resp.text}",
                details={"status": resp.status_code},
            )

    async def _load_from_server(self) -> Optional[Settings]:
        try:
            resp = await self._http.get(f"{self._server_url}/settings")
        except httpx.HTTPError as e:
            logger.info("Settings server unavailable: %s", e)
            return None
        if resp.status_code != 200:
            return None
        return Settings.model_validate(resp.json())
