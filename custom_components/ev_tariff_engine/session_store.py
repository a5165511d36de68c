"""Rated transaction history, one HA storage file per charger entry."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.core import HomeAssistant
from homeassistant.helpers.storage import Store

from .const import (
    DEFAULT_MAX_STORED_SESSIONS,
    SESSION_STORE_KEY,
    SESSION_STORE_VERSION,
)

_LOGGER = logging.getLogger(__name__)


class SessionStore:
    """Keep completed, rated transactions of one charger.

    Store key: ev_tariff_engine_sessions.<entry_id>
    Store version: 1
    Format: list of Transaction dicts, oldest first

    Retention: only the newest max_sessions transactions are kept.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        entry_id: str,
        max_sessions: int = DEFAULT_MAX_STORED_SESSIONS,
    ) -> None:
        """Initialize the session store for a config entry."""
        self._store: Store[list[dict[str, Any]]] = Store(
            hass, SESSION_STORE_VERSION, f"{SESSION_STORE_KEY}.{entry_id}"
        )
        self._sessions: list[dict[str, Any]] = []
        self._max_sessions = max_sessions

    @property
    def sessions(self) -> list[dict[str, Any]]:
        """Return stored transactions, oldest first."""
        return self._sessions

    async def async_load(self) -> list[dict[str, Any]]:
        """Load transactions from disk. Non-dict records are dropped."""
        stored = await self._store.async_load()
        if stored is None:
            _LOGGER.debug("No session history yet, starting fresh")
            self._sessions = []
            return self._sessions

        self._sessions = [s for s in stored if isinstance(s, dict)]
        if len(self._sessions) != len(stored):
            _LOGGER.warning(
                "Dropped %d malformed session record(s)", len(stored) - len(self._sessions)
            )
        _LOGGER.debug("Loaded %d rated session(s)", len(self._sessions))
        return self._sessions

    async def add_session(self, session_dict: dict[str, Any]) -> None:
        """Append a rated transaction, prune past the retention limit and save."""
        self._sessions.append(session_dict)
        overflow = len(self._sessions) - self._max_sessions
        if overflow > 0:
            del self._sessions[:overflow]
            _LOGGER.debug("Pruned %d session(s) beyond retention of %d", overflow, self._max_sessions)
        await self._store.async_save(self._sessions)
