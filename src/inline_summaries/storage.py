"""SQLite persistence for conversations, settings and generation environments.

Tables are created by :func:`init_db`; the classes here just use them.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .messages import Message, message_from_dict, message_to_dict
from .settings import SummarySettings

_LOG = logging.getLogger(__name__)

DEFAULT_DB = Path.home() / ".inline_summaries" / "inline_summaries.db"


def get_db_path() -> Path:
    """Database location, overridable with INLINE_SUMMARIES_DB_PATH."""
    return Path(os.getenv("INLINE_SUMMARIES_DB_PATH", str(DEFAULT_DB))).expanduser()


def init_db(db_path: str | Path | None = None) -> None:
    """Create required tables if they don't exist."""
    path = Path(db_path) if db_path is not None else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS chats (
                chat_id    TEXT PRIMARY KEY,
                header     TEXT,
                updated_at TEXT
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS chat_messages (
                chat_id  TEXT NOT NULL,
                position INTEGER NOT NULL,
                payload  TEXT NOT NULL,
                PRIMARY KEY (chat_id, position)
            )
            """
        )
        conn.execute(
            "CREATE TABLE IF NOT EXISTS extension_settings (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS generation_profiles (
                name  TEXT PRIMARY KEY,
                api   TEXT NOT NULL,
                model TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS generation_presets (
                name        TEXT PRIMARY KEY,
                temperature REAL,
                max_tokens  INTEGER
            )
            """
        )
        conn.execute(
            "CREATE TABLE IF NOT EXISTS active_environment (kind TEXT PRIMARY KEY, name TEXT NOT NULL)"
        )
        conn.commit()


class Database:
    """Thin wrapper holding the database path and handing out connections."""

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = str(db_path) if db_path is not None else str(get_db_path())
        init_db(self.db_path)

    @contextmanager
    def connect(self, row_factory: bool = False) -> Iterator[sqlite3.Connection]:
        """Get a database connection with optional row factory.

        Args:
            row_factory: If True, set conn.row_factory to sqlite3.Row for
                         dictionary-style row access.

        Yields:
            SQLite connection that auto-commits on success.
        """
        conn = sqlite3.connect(self.db_path)
        try:
            if row_factory:
                conn.row_factory = sqlite3.Row
            yield conn
            conn.commit()
        finally:
            conn.close()


# ==================== Conversations ====================

class SqliteMessageStore:
    """A conversation loaded into memory and written back on commit."""

    def __init__(self, db: Database, chat_id: str):
        self.db = db
        self.chat_id = chat_id
        self.header: dict[str, Any] = {}
        self._messages: list[Message] = []
        self.reload()

    def reload(self) -> None:
        """Re-read the conversation from the database, dropping unsaved edits."""
        with self.db.connect(row_factory=True) as conn:
            row = conn.execute("SELECT header FROM chats WHERE chat_id = ?", (self.chat_id,)).fetchone()
            if row is None:
                raise KeyError(f"Unknown chat: {self.chat_id}")
            self.header = json.loads(row["header"]) if row["header"] else {}
            cursor = conn.execute(
                "SELECT payload FROM chat_messages WHERE chat_id = ? ORDER BY position ASC",
                (self.chat_id,),
            )
            # In place, so views holding the list stay current
            self._messages[:] = [message_from_dict(json.loads(r["payload"])) for r in cursor.fetchall()]
        _LOG.debug("Loaded chat %s with %d messages", self.chat_id, len(self._messages))

    def read_sequence(self) -> list[Message]:
        return self._messages

    def splice_replace(self, index: int, delete_count: int, insert: Sequence[Message]) -> None:
        self._messages[index : index + delete_count] = list(insert)

    async def commit(self) -> None:
        payloads = [json.dumps(message_to_dict(m), ensure_ascii=False) for m in self._messages]
        await asyncio.to_thread(save_chat, self.db, self.chat_id, payloads, self.header)


def save_chat(db: Database, chat_id: str, payloads: Sequence[str], header: dict[str, Any] | None = None) -> None:
    """Replace the stored messages of *chat_id* with *payloads* (JSON strings)."""
    now = datetime.now(timezone.utc).isoformat()
    with db.connect() as conn:
        conn.execute(
            "INSERT OR REPLACE INTO chats (chat_id, header, updated_at) VALUES (?, ?, ?)",
            (chat_id, json.dumps(header or {}, ensure_ascii=False), now),
        )
        conn.execute("DELETE FROM chat_messages WHERE chat_id = ?", (chat_id,))
        conn.executemany(
            "INSERT INTO chat_messages (chat_id, position, payload) VALUES (?, ?, ?)",
            [(chat_id, position, payload) for position, payload in enumerate(payloads)],
        )
    _LOG.debug("Saved chat %s (%d messages)", chat_id, len(payloads))


def save_messages(db: Database, chat_id: str, messages: Sequence[Message], header: dict[str, Any] | None = None) -> None:
    save_chat(db, chat_id, [json.dumps(message_to_dict(m), ensure_ascii=False) for m in messages], header)


def list_chats(db: Database) -> list[tuple[str, int]]:
    """Return ``(chat_id, message_count)`` for every stored chat."""
    with db.connect() as conn:
        cursor = conn.execute(
            """
            SELECT c.chat_id, COUNT(m.position)
            FROM chats c LEFT JOIN chat_messages m ON m.chat_id = c.chat_id
            GROUP BY c.chat_id
            ORDER BY c.chat_id ASC
            """
        )
        return [(row[0], int(row[1])) for row in cursor.fetchall()]


# ==================== Settings ====================

class SettingsRepository:
    """Key/value persistence for :class:`SummarySettings`."""

    def __init__(self, db: Database):
        self.db = db

    def load(self) -> SummarySettings:
        """Load settings; keys never saved keep their defaults."""
        with self.db.connect() as conn:
            rows = conn.execute("SELECT key, value FROM extension_settings").fetchall()
        stored = {}
        for key, raw in rows:
            try:
                stored[key] = json.loads(raw)
            except json.JSONDecodeError:
                _LOG.warning("Ignoring unreadable setting %s=%r", key, raw)
        return SummarySettings.from_mapping(stored)

    def save(self, settings: SummarySettings) -> None:
        with self.db.connect() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO extension_settings (key, value) VALUES (?, ?)",
                [(key, json.dumps(value)) for key, value in settings.to_dict().items()],
            )

    def update(self, key: str, value: Any) -> SummarySettings:
        """Set one setting (coerced to its type) and persist it."""
        settings = self.load()
        settings.set(key, value)
        with self.db.connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO extension_settings (key, value) VALUES (?, ?)",
                (key, json.dumps(getattr(settings, key))),
            )
        return settings

    def reset(self) -> SummarySettings:
        """Forget every saved setting and persist the defaults."""
        with self.db.connect() as conn:
            conn.execute("DELETE FROM extension_settings")
        settings = SummarySettings()
        self.save(settings)
        _LOG.info("Settings reset to defaults")
        return settings
