"""
Minimal change-notification base for the domain stores.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ObservableStore:
    """
    Holds the loading/error fields shared by every store and notifies
    subscribers after each state change.
    """

    def __init__(self) -> None:
        self.is_loading: bool = False
        self.error: Optional[str] = None
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                # Remaining listeners still run
                logger.exception("Store listener failed")

    def _record_error(self, error: BaseException, fallback: str) -> None:
        self.error = str(error) or fallback
        self._notify()
