"""
database.py — Persistence media for the plant journal document.

The journal is one opaque blob stored under one fixed logical key. A
medium only knows how to read and write that blob:

- read()  -> bytes, or None when nothing has been stored yet
- write(data: bytes)

Backends:
- SqliteMedium  — key/value slot in a SQLite table (default). WAL mode.
- FileMedium    — a single JSON file, replaced atomically on write.
- MemoryMedium  — process memory, for tests and throwaway sessions.

Every backend raises PersistenceError when the underlying storage fails.
"""

import os
import sqlite3
import tempfile
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

STORE_KEY = 'saved_plants'


class PersistenceError(Exception):
    """The storage medium could not be read or written."""


class StorageMedium:
    """Single-slot blob storage."""

    def read(self) -> Optional[bytes]:
        raise NotImplementedError

    def write(self, data: bytes) -> None:
        raise NotImplementedError

    def describe(self) -> str:
        return type(self).__name__


class MemoryMedium(StorageMedium):
    """Keeps the blob in memory. Nothing survives the process."""

    def __init__(self, initial: Optional[bytes] = None):
        self._data = initial

    def read(self) -> Optional[bytes]:
        return self._data

    def write(self, data: bytes) -> None:
        self._data = bytes(data)


class FileMedium(StorageMedium):
    """One file on disk. A missing file reads as None."""

    def __init__(self, path: str):
        self.path = path

    def describe(self) -> str:
        return f"file:{self.path}"

    def read(self) -> Optional[bytes]:
        try:
            with open(self.path, 'rb') as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e

    def write(self, data: bytes) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            # Write next to the target, then swap it in
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.plants_', suffix='.tmp')
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e


class SqliteMedium(StorageMedium):
    """
    Key/value slot in a SQLite database.

    The table can hold other keys; this medium only touches its own.
    """

    def __init__(self, path: str, key: str = STORE_KEY):
        self.path = path
        self.key = key
        self._initialized = False

    def describe(self) -> str:
        return f"sqlite:{self.path}#{self.key}"

    def _connect(self) -> sqlite3.Connection:
        """Get a connection with WAL mode enabled."""
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        conn = sqlite3.connect(self.path)
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            if not self._initialized:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS kv_store (
                        key TEXT PRIMARY KEY,
                        value BLOB NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)
                conn.commit()
                self._initialized = True
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def read(self) -> Optional[bytes]:
        try:
            conn = self._connect()
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"Cannot open {self.path}: {e}") from e
        try:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (self.key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot read key {self.key!r}: {e}") from e
        finally:
            conn.close()

        if row is None:
            return None
        value = row[0]
        return value.encode('utf-8') if isinstance(value, str) else bytes(value)

    def write(self, data: bytes) -> None:
        try:
            conn = self._connect()
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"Cannot open {self.path}: {e}") from e
        try:
            with conn:
                conn.execute(
                    """INSERT INTO kv_store (key, value, updated_at)
                       VALUES (?, ?, CURRENT_TIMESTAMP)
                       ON CONFLICT(key) DO UPDATE SET
                           value = excluded.value,
                           updated_at = CURRENT_TIMESTAMP""",
                    (self.key, sqlite3.Binary(data))
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot write key {self.key!r}: {e}") from e
        finally:
            conn.close()


def create_medium(backend: str, path: Optional[str] = None) -> StorageMedium:
    """
    Build a medium from configuration values.

    Args:
        backend: 'sqlite', 'file' or 'memory'.
        path: Database or file path (ignored for 'memory').
    """
    backend = (backend or 'sqlite').lower()
    logger.debug("storage_medium_selected", backend=backend, path=path)
    if backend == 'memory':
        return MemoryMedium()
    if not path:
        raise ValueError(f"Backend {backend!r} needs a path")
    if backend == 'sqlite':
        return SqliteMedium(path)
    if backend == 'file':
        return FileMedium(path)
    raise ValueError(f"Unknown storage backend: {backend!r}")
