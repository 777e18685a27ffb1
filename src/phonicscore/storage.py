"""Durable key-value backends for the serialized progress blob."""

from __future__ import annotations

import logging
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from .errors import PersistenceError

logger = logging.getLogger(__name__)

STORAGE_KEY = "phonics_progress_v3"
BACKEND_SCHEMA_VERSION = 1


class StateBackend(Protocol):
    """Load/save contract the progress store persists through."""

    def load(self) -> bytes | None: ...

    def save(self, data: bytes) -> None: ...


class MemoryBackend:
    """Process-local backend, mostly for tests and throwaway sessions."""

    def __init__(self, data: bytes | None = None) -> None:
        self.data = data
        self.save_count = 0

    def load(self) -> bytes | None:
        return self.data

    def save(self, data: bytes) -> None:
        self.data = data
        self.save_count += 1


class FileBackend:
    """Stores the blob as a single file on disk."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> bytes | None:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceError(f"Could not read {self.path}: {exc}") from exc

    def save(self, data: bytes) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_bytes(data)
            tmp_path.replace(self.path)
        except OSError as exc:
            raise PersistenceError(f"Could not write {self.path}: {exc}") from exc


class SqliteBackend:
    """Key/value table in SQLite holding one blob per storage key."""

    def __init__(self, db_path: Path | str, key: str = STORAGE_KEY) -> None:
        """Open database and apply migrations."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        self.key = key
        try:
            self._conn = sqlite3.connect(target)
            self._apply_migrations()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not open progress database {target}: {exc}") from exc

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > BACKEND_SCHEMA_VERSION:
            raise PersistenceError(
                f"Database schema version {current} is newer than supported {BACKEND_SCHEMA_VERSION}."
            )

        for version in range(current + 1, BACKEND_SCHEMA_VERSION + 1):
            if version == 1:
                with self._conn:
                    self._conn.execute("""
                        CREATE TABLE IF NOT EXISTS kv_store (
                            key TEXT PRIMARY KEY,
                            value BLOB NOT NULL,
                            updated_at TEXT NOT NULL
                        )
                        """)
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
            logger.debug("Progress database migrated to version %d", version)

    def load(self) -> bytes | None:
        try:
            row = self._conn.execute("SELECT value FROM kv_store WHERE key = ?", (self.key,)).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not read key {self.key!r}: {exc}") from exc
        if row is None:
            return None
        value = row[0]
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    def save(self, data: bytes) -> None:
        now = datetime.now(UTC).isoformat()
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (self.key, data, now),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not write key {self.key!r}: {exc}") from exc

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()
