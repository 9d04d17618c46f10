"""Save slots for game sessions."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Protocol

from .session import GameSession


logger = logging.getLogger(__name__)

_DB_PATH_ENV = "GAMEBOOK_SAVE_PATH"
DEFAULT_SLOT = "gameState"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS saves (
    slot TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    saved_at TEXT NOT NULL
)
"""


class SaveStore(Protocol):
    """Key/value store holding serialised sessions."""

    def save(self, key: str, payload: Mapping[str, Any]) -> None:
        """Persist ``payload`` under ``key``, replacing any earlier save."""

    def load(self, key: str) -> Dict[str, Any] | None:
        """Return the payload saved under ``key`` or ``None``."""


class InMemorySaveStore:
    """Process-local store, used by tests and the default web service."""

    def __init__(self) -> None:
        self._slots: Dict[str, str] = {}
        self._lock = threading.Lock()

    def save(self, key: str, payload: Mapping[str, Any]) -> None:
        encoded = json.dumps(dict(payload))
        with self._lock:
            self._slots[key] = encoded

    def load(self, key: str) -> Dict[str, Any] | None:
        with self._lock:
            encoded = self._slots.get(key)
        return json.loads(encoded) if encoded is not None else None

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._slots)


def _ensure_directory(path: Path) -> None:
    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


class SQLiteSaveStore:
    """Save slots kept in a single SQLite table."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        env_value = os.environ.get(_DB_PATH_ENV)
        self.db_path = Path(db_path or env_value or "gamebook_saves.db")
        _ensure_directory(self.db_path)
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @property
    def connection(self) -> sqlite3.Connection:
        with self._lock:
            if self._connection is None:
                self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
                self._connection.row_factory = sqlite3.Row
                self._connection.execute(_SCHEMA)
                self._connection.commit()
                logger.info("Opened save database at %s", self.db_path)
            return self._connection

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def save(self, key: str, payload: Mapping[str, Any]) -> None:
        encoded = json.dumps(dict(payload))
        with self._lock:
            conn = self.connection
            conn.execute(
                "INSERT OR REPLACE INTO saves (slot, payload, saved_at) VALUES (?, ?, ?)",
                (key, encoded, datetime.now().isoformat(timespec="seconds")),
            )
            conn.commit()
        logger.debug("Saved slot %s to %s", key, self.db_path)

    def load(self, key: str) -> Dict[str, Any] | None:
        with self._lock:
            row = self.connection.execute(
                "SELECT payload FROM saves WHERE slot = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        return json.loads(row["payload"])

    def keys(self) -> List[str]:
        with self._lock:
            rows = self.connection.execute("SELECT slot FROM saves ORDER BY slot").fetchall()
        return [row["slot"] for row in rows]


def save_session(store: SaveStore, session: GameSession, key: str = DEFAULT_SLOT) -> None:
    """Serialise ``session`` into ``store``."""

    store.save(key, session.to_payload())
    logger.info("Game saved to slot %s", key)


def load_session(store: SaveStore, key: str = DEFAULT_SLOT) -> GameSession | None:
    """Return the session saved under ``key``; a missing slot yields ``None``."""

    payload = store.load(key)
    if payload is None:
        logger.info("No saved game in slot %s", key)
        return None
    try:
        session = GameSession.from_payload(payload)
    except (KeyError, TypeError, ValueError) as exc:
        logger.error("Saved game in slot %s is unreadable: %s", key, exc)
        return None
    logger.info("Game loaded from slot %s", key)
    return session


__all__ = [
    "DEFAULT_SLOT",
    "InMemorySaveStore",
    "SQLiteSaveStore",
    "SaveStore",
    "load_session",
    "save_session",
]
