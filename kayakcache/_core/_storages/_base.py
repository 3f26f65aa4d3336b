from __future__ import annotations

import abc
import typing as tp

from ..models import CacheEntry, RequestIdentity


class AsyncBaseStorage(abc.ABC):
    """
    A set of named cache tables, each mapping request identities to entries.

    Backends implement the table-level primitives. Every mutation touches a
    single key (or a single table) so concurrent handlers sharing one storage
    never observe a partially written entry.
    """

    @abc.abstractmethod
    async def create_table(self, name: str) -> None:
        raise NotImplementedError()

    @abc.abstractmethod
    async def table_names(self) -> tp.List[str]:
        raise NotImplementedError()

    @abc.abstractmethod
    async def drop_table(self, name: str) -> bool:
        raise NotImplementedError()

    @abc.abstractmethod
    async def get_entry(self, table: str, identity: RequestIdentity) -> tp.Optional[CacheEntry]:
        raise NotImplementedError()

    @abc.abstractmethod
    async def put_entry(self, table: str, identity: RequestIdentity, entry: CacheEntry) -> None:
        raise NotImplementedError()

    @abc.abstractmethod
    async def remove_entry(self, table: str, identity: RequestIdentity) -> bool:
        raise NotImplementedError()

    @abc.abstractmethod
    async def list_identities(self, table: str) -> tp.List[RequestIdentity]:
        raise NotImplementedError()

    async def close(self) -> None:
        pass

    async def open(self, name: str) -> "CacheTable":
        """
        Open the table called `name`, creating it when it does not exist yet.
        """
        await self.create_table(name)
        return CacheTable(self, name)

    async def has(self, name: str) -> bool:
        return name in await self.table_names()

    async def keys(self) -> tp.List[str]:
        return await self.table_names()

    async def delete(self, name: str) -> bool:
        return await self.drop_table(name)

    async def match(self, identity: RequestIdentity) -> tp.Optional[CacheEntry]:
        """
        Look the identity up in every table, in table creation order.

        Returns:
            The first entry found, or None when no table holds the identity.
        """
        for name in await self.table_names():
            entry = await self.get_entry(name, identity)
            if entry is not None:
                return entry
        return None

    async def remove(self, identity: RequestIdentity) -> bool:
        """
        Delete the identity from every table.

        Returns:
            True if at least one entry was deleted.
        """
        removed = False
        for name in await self.table_names():
            if await self.remove_entry(name, identity):
                removed = True
        return removed


class CacheTable:
    """A handle on one named table of a storage."""

    def __init__(self, storage: AsyncBaseStorage, name: str) -> None:
        self.storage = storage
        self.name = name

    async def get(self, identity: RequestIdentity) -> tp.Optional[CacheEntry]:
        return await self.storage.get_entry(self.name, identity)

    async def put(self, identity: RequestIdentity, entry: CacheEntry) -> None:
        await self.storage.put_entry(self.name, identity, entry)

    async def delete(self, identity: RequestIdentity) -> bool:
        return await self.storage.remove_entry(self.name, identity)

    async def keys(self) -> tp.List[RequestIdentity]:
        return await self.storage.list_identities(self.name)

    def __repr__(self) -> str:
        return f"CacheTable(name={self.name!r}, storage={type(self.storage).__name__})"
