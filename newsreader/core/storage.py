"""Durable key-value and file storage used by the saved and offline stores.

Blocking sqlite and filesystem calls run in the default executor.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import sqlite3
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import httpx

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL,
  updated_at TEXT DEFAULT (datetime('now'))
);
"""

DOWNLOAD_TIMEOUT = 30.0


class StorageError(Exception):
    """Persistent read/write or file operation failed."""


async def _in_executor(fn: Callable[[], Any]) -> Any:
    return await asyncio.get_event_loop().run_in_executor(None, fn)


class KeyValueStore(ABC):
    """String key-value persistence."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def remove(self, key: str) -> None:
        ...


class SqliteKeyValueStore(KeyValueStore):
    """KeyValueStore backed by a single sqlite table.

    The connection is shared by executor threads; a lock serializes access.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    def _read(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def _write(self, key: str, value: str) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO kv_store (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = datetime('now')
                """,
                (key, value),
            )
            self._conn.commit()

    def _delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            self._conn.commit()

    async def get(self, key: str) -> str | None:
        try:
            return await _in_executor(lambda: self._read(key))
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    async def set(self, key: str, value: str) -> None:
        try:
            await _in_executor(lambda: self._write(key, value))
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

    async def remove(self, key: str) -> None:
        try:
            await _in_executor(lambda: self._delete(key))
        except sqlite3.Error as e:
            raise StorageError(f"Failed to remove {key}: {e}") from e


def open_kv_store(db_path: str) -> SqliteKeyValueStore:
    """Open (creating if needed) the sqlite database at db_path."""
    if db_path != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
    conn = sqlite3.connect(db_path, check_same_thread=False)
    return SqliteKeyValueStore(conn)


@dataclass(frozen=True)
class FileInfo:
    exists: bool
    size: int = 0


class FileStorage(ABC):
    """Local file operations plus downloading a URL to a file."""

    @abstractmethod
    async def ensure_dir(self, path: str) -> None:
        ...

    @abstractmethod
    async def download(self, url: str, dest_path: str) -> int:
        """Download url to dest_path and return the HTTP status.

        Only a 200 response leaves a file at dest_path.

        Raises:
            StorageError: If the transfer or the write failed.
        """
        ...

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Delete a file or directory tree. Missing paths are not an error."""
        ...

    @abstractmethod
    async def list_dir(self, path: str) -> list[str]:
        ...

    @abstractmethod
    async def stat(self, path: str) -> FileInfo:
        ...


def _write_file(dest: Path, data: bytes) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(data)


def _delete_path(p: Path) -> None:
    if p.is_dir():
        shutil.rmtree(p)
    else:
        p.unlink(missing_ok=True)


def _list_dir(p: Path) -> list[str]:
    if not p.is_dir():
        return []
    return sorted(child.name for child in p.iterdir())


def _stat(p: Path) -> FileInfo:
    if not p.exists():
        return FileInfo(exists=False)
    return FileInfo(exists=True, size=p.stat().st_size)


class LocalFileStorage(FileStorage):
    """FileStorage on the local filesystem, downloading with httpx."""

    def __init__(
        self,
        *,
        timeout: float = DOWNLOAD_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def ensure_dir(self, path: str) -> None:
        try:
            await _in_executor(lambda: Path(path).mkdir(parents=True, exist_ok=True))
        except OSError as e:
            raise StorageError(f"Failed to create {path}: {e}") from e

    async def download(self, url: str, dest_path: str) -> int:
        client = await self._get_client()
        dest = Path(dest_path)
        try:
            async with client.stream("GET", url) as response:
                if response.status_code != 200:
                    return response.status_code
                data = bytearray()
                async for chunk in response.aiter_bytes():
                    data.extend(chunk)
        except httpx.HTTPError as e:
            raise StorageError(f"Download of {url} failed: {type(e).__name__}: {e}") from e

        try:
            await _in_executor(lambda: _write_file(dest, bytes(data)))
        except OSError as e:
            await _in_executor(lambda: dest.unlink(missing_ok=True))
            raise StorageError(f"Failed to write {dest_path}: {e}") from e
        return 200

    async def delete(self, path: str) -> None:
        try:
            await _in_executor(lambda: _delete_path(Path(path)))
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e

    async def list_dir(self, path: str) -> list[str]:
        return await _in_executor(lambda: _list_dir(Path(path)))

    async def stat(self, path: str) -> FileInfo:
        return await _in_executor(lambda: _stat(Path(path)))
