from __future__ import annotations

import typing as tp

from ..models import CacheEntry, RequestIdentity
from ._base import AsyncBaseStorage


class AsyncInMemoryStorage(AsyncBaseStorage):
    """
    A storage that keeps every table in process memory.

    Entries are copied on the way in and on the way out, so editing a returned
    entry never changes what is stored.
    """

    def __init__(self) -> None:
        self._tables: tp.Dict[str, tp.Dict[RequestIdentity, CacheEntry]] = {}

    async def create_table(self, name: str) -> None:
        self._tables.setdefault(name, {})

    async def table_names(self) -> tp.List[str]:
        return list(self._tables)

    async def drop_table(self, name: str) -> bool:
        return self._tables.pop(name, None) is not None

    async def get_entry(self, table: str, identity: RequestIdentity) -> tp.Optional[CacheEntry]:
        entry = self._tables.get(table, {}).get(identity)
        return entry.copy() if entry is not None else None

    async def put_entry(self, table: str, identity: RequestIdentity, entry: CacheEntry) -> None:
        self._tables.setdefault(table, {})[identity] = entry.copy()

    async def remove_entry(self, table: str, identity: RequestIdentity) -> bool:
        return self._tables.get(table, {}).pop(identity, None) is not None

    async def list_identities(self, table: str) -> tp.List[RequestIdentity]:
        return list(self._tables.get(table, {}))
