from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import (
    List,
    Optional,
    Union,
)

import anysqlite

from kayakcache._core._storages._base import AsyncBaseStorage
from kayakcache._core._storages._packing import pack, unpack
from kayakcache._core.models import CacheEntry, RequestIdentity
from kayakcache._synchronization import AsyncLock
from kayakcache._utils import ensure_cache_dict

logger = logging.getLogger("kayakcache.storages")


class AsyncSqliteStorage(AsyncBaseStorage):
    """
    A persistent storage backed by a single SQLite database.

    Table names live in the `caches` table and entries in the `entries` table,
    keyed by (cache name, method, url). Each operation runs as one statement
    followed by a commit, which keeps puts and deletes atomic per key.

    Args:
        connection: An already opened connection. When given, no file is created.
        database_path: Where to create the database when no connection is given.
    """

    def __init__(
        self,
        *,
        connection: Optional[anysqlite.Connection] = None,
        database_path: Union[str, Path] = "kayakcache.db",
    ) -> None:
        self.connection = connection
        self.database_path: Path = database_path if isinstance(database_path, Path) else Path(database_path)
        self._initialized = False
        self._lock = AsyncLock()

    async def _ensure_connection(self) -> anysqlite.Connection:
        """Ensure connection is established and database is initialized."""
        if self.connection is None:
            # Create cache directory and resolve full path on first connection
            parent = self.database_path.parent if self.database_path.parent != Path(".") else None
            full_path = ensure_cache_dict(parent) / self.database_path.name
            logger.debug("Opening sqlite cache database at %s", full_path)
            self.connection = await anysqlite.connect(str(full_path))
        if not self._initialized:
            await self._initialize_database()
            self._initialized = True
        return self.connection

    async def _initialize_database(self) -> None:
        """Initialize the database schema."""
        assert self.connection is not None
        cursor = await self.connection.cursor()

        await cursor.execute("""
            CREATE TABLE IF NOT EXISTS caches (
                name TEXT PRIMARY KEY,
                created_at REAL NOT NULL
            )
        """)

        await cursor.execute("""
            CREATE TABLE IF NOT EXISTS entries (
                cache_name TEXT NOT NULL,
                method TEXT NOT NULL,
                url TEXT NOT NULL,
                data BLOB NOT NULL,
                created_at REAL NOT NULL,
                PRIMARY KEY (cache_name, method, url)
            )
        """)

        await self.connection.commit()

    async def create_table(self, name: str) -> None:
        async with self._lock:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute(
                "INSERT OR IGNORE INTO caches (name, created_at) VALUES (?, ?)",
                (name, time.time()),
            )
            await connection.commit()

    async def table_names(self) -> List[str]:
        async with self._lock:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute("SELECT name FROM caches ORDER BY created_at, rowid")
            return [row[0] for row in await cursor.fetchall()]

    async def drop_table(self, name: str) -> bool:
        async with self._lock:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute("SELECT 1 FROM caches WHERE name = ?", (name,))
            existed = await cursor.fetchone() is not None
            await cursor.execute("DELETE FROM entries WHERE cache_name = ?", (name,))
            await cursor.execute("DELETE FROM caches WHERE name = ?", (name,))
            await connection.commit()
            return existed

    async def get_entry(self, table: str, identity: RequestIdentity) -> Optional[CacheEntry]:
        async with self._lock:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute(
                "SELECT data FROM entries WHERE cache_name = ? AND method = ? AND url = ?",
                (table, identity.method, identity.url),
            )
            row = await cursor.fetchone()
        return unpack(row[0]) if row is not None else None

    async def put_entry(self, table: str, identity: RequestIdentity, entry: CacheEntry) -> None:
        async with self._lock:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute(
                "INSERT OR IGNORE INTO caches (name, created_at) VALUES (?, ?)",
                (table, time.time()),
            )
            await cursor.execute(
                "INSERT OR REPLACE INTO entries (cache_name, method, url, data, created_at) VALUES (?, ?, ?, ?, ?)",
                (table, identity.method, identity.url, pack(entry), entry.created_at),
            )
            await connection.commit()

    async def remove_entry(self, table: str, identity: RequestIdentity) -> bool:
        async with self._lock:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            params = (table, identity.method, identity.url)
            await cursor.execute(
                "SELECT 1 FROM entries WHERE cache_name = ? AND method = ? AND url = ?",
                params,
            )
            existed = await cursor.fetchone() is not None
            await cursor.execute(
                "DELETE FROM entries WHERE cache_name = ? AND method = ? AND url = ?",
                params,
            )
            await connection.commit()
            return existed

    async def list_identities(self, table: str) -> List[RequestIdentity]:
        async with self._lock:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute(
                "SELECT method, url FROM entries WHERE cache_name = ? ORDER BY rowid",
                (table,),
            )
            return [RequestIdentity(method=row[0], url=row[1]) for row in await cursor.fetchall()]

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()
            self.connection = None
            self._initialized = False
