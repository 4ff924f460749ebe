"""
Dependency injection for the diagnostics app.

Provides the singleton session registry that hosts register their
WidgetSessions with, so the app can report per-widget binding modes.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from widgetlink.config import WidgetSettings, get_settings
from widgetlink.connections import WidgetSession, WidgetLinkError

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Live widget sessions by id."""

    def __init__(self) -> None:
        self._sessions: dict[str, WidgetSession] = {}

    def register(self, session_id: str, session: WidgetSession) -> None:
        if session_id in self._sessions:
            raise WidgetLinkError(f"Session '{session_id}' already registered")
        self._sessions[session_id] = session
        logger.info(f"[sessions] Registered session: {session_id}")

    def unregister(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        logger.info(f"[sessions] Closed session: {session_id}")
        return True

    def get(self, session_id: str) -> WidgetSession | None:
        return self._sessions.get(session_id)

    def list_ids(self) -> list[str]:
        return list(self._sessions.keys())

    def close_all(self) -> None:
        for session_id in self.list_ids():
            self.unregister(session_id)

    def __len__(self) -> int:
        return len(self._sessions)


@lru_cache()
def get_sessions() -> SessionRegistry:
    """Singleton session registry."""
    return SessionRegistry()


def get_app_settings() -> WidgetSettings:
    return get_settings()
