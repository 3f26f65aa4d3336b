from datetime import datetime
from zoneinfo import ZoneInfo

import anysqlite
import pytest
from time_machine import travel

from kayakcache import AsyncBaseStorage, AsyncSqliteStorage, CacheEntry, Headers, RequestIdentity


def create_entry(body: bytes = b"data", tier: str = "dynamic", **headers: str) -> CacheEntry:
    return CacheEntry(
        status_code=200,
        headers=Headers({key.replace("_", "-"): value for key, value in headers.items()}),
        body=body,
        tier=tier,  # type: ignore[arg-type]
    )


IDENTITY = RequestIdentity("GET", "https://kayaknav.com/index.html")


@pytest.mark.anyio
async def test_open_creates_table(storage: AsyncBaseStorage) -> None:
    assert not await storage.has("kayaknav-dynamic")

    table = await storage.open("kayaknav-dynamic")

    assert table.name == "kayaknav-dynamic"
    assert await storage.has("kayaknav-dynamic")
    assert await table.keys() == []


@pytest.mark.anyio
async def test_open_is_idempotent(storage: AsyncBaseStorage) -> None:
    table = await storage.open("kayaknav-dynamic")
    await table.put(IDENTITY, create_entry())

    reopened = await storage.open("kayaknav-dynamic")

    assert await reopened.keys() == [IDENTITY]
    assert await storage.keys() == ["kayaknav-dynamic"]


@pytest.mark.anyio
async def test_put_get_delete(storage: AsyncBaseStorage) -> None:
    table = await storage.open("kayaknav-v1")

    await table.put(IDENTITY, create_entry(b"shell", tier="static", content_type="text/html"))
    entry = await table.get(IDENTITY)

    assert entry is not None
    assert entry.body == b"shell"
    assert entry.tier == "static"
    assert entry.status_code == 200
    assert entry.headers["Content-Type"] == "text/html"

    assert await table.delete(IDENTITY) is True
    assert await table.get(IDENTITY) is None
    assert await table.delete(IDENTITY) is False


@pytest.mark.anyio
async def test_put_replaces_existing_entry(storage: AsyncBaseStorage) -> None:
    table = await storage.open("kayaknav-dynamic")

    await table.put(IDENTITY, create_entry(b"old"))
    await table.put(IDENTITY, create_entry(b"new"))

    entry = await table.get(IDENTITY)
    assert entry is not None
    assert entry.body == b"new"
    assert await table.keys() == [IDENTITY]


@pytest.mark.anyio
async def test_identity_is_method_and_url(storage: AsyncBaseStorage) -> None:
    table = await storage.open("kayaknav-dynamic")
    await table.put(RequestIdentity("GET", "https://api.example.com/data?a=1&b=2"), create_entry(b"get"))

    assert await table.get(RequestIdentity("HEAD", "https://api.example.com/data?a=1&b=2")) is None
    assert await table.get(RequestIdentity("GET", "https://api.example.com/data?b=2&a=1")) is None


@pytest.mark.anyio
async def test_multi_valued_headers_survive_storage(storage: AsyncBaseStorage) -> None:
    table = await storage.open("kayaknav-edge")
    entry = create_entry(tier="edge")
    entry.headers.append("Vary", "Accept")
    entry.headers.append("Vary", "Origin")

    await table.put(IDENTITY, entry)
    stored = await table.get(IDENTITY)

    assert stored is not None
    assert stored.headers.get_list("vary") == ["Accept", "Origin"]


@pytest.mark.anyio
@travel(datetime(2024, 1, 1, 0, 0, 0, tzinfo=ZoneInfo("UTC")), tick=False)
async def test_created_at_is_preserved(storage: AsyncBaseStorage) -> None:
    table = await storage.open("kayaknav-edge")

    await table.put(IDENTITY, create_entry())
    stored = await table.get(IDENTITY)

    assert stored is not None
    assert stored.created_at == 1704067200.0


@pytest.mark.anyio
async def test_returned_entries_do_not_alias_stored_ones(storage: AsyncBaseStorage) -> None:
    table = await storage.open("kayaknav-dynamic")
    await table.put(IDENTITY, create_entry(x_sw_cache_timestamp="1"))

    entry = await table.get(IDENTITY)
    assert entry is not None
    entry.headers["x-sw-cache-timestamp"] = "2"

    stored = await table.get(IDENTITY)
    assert stored is not None
    assert stored.headers["x-sw-cache-timestamp"] == "1"


@pytest.mark.anyio
async def test_delete_table(storage: AsyncBaseStorage) -> None:
    table = await storage.open("kayaknav-v1")
    await table.put(IDENTITY, create_entry())

    assert await storage.delete("kayaknav-v1") is True
    assert await storage.delete("kayaknav-v1") is False
    assert await storage.keys() == []
    assert await storage.match(IDENTITY) is None


@pytest.mark.anyio
async def test_keys_in_creation_order(storage: AsyncBaseStorage) -> None:
    await storage.open("kayaknav-v1")
    await storage.open("kayaknav-dynamic")
    await storage.open("kayaknav-v2")

    assert await storage.keys() == ["kayaknav-v1", "kayaknav-dynamic", "kayaknav-v2"]


@pytest.mark.anyio
async def test_match_searches_every_table(storage: AsyncBaseStorage) -> None:
    static = await storage.open("kayaknav-v1")
    dynamic = await storage.open("kayaknav-dynamic")
    other = RequestIdentity("GET", "https://api.example.com/data")

    await static.put(IDENTITY, create_entry(b"static", tier="static"))
    await dynamic.put(other, create_entry(b"dynamic"))

    first = await storage.match(IDENTITY)
    second = await storage.match(other)

    assert first is not None and first.body == b"static"
    assert second is not None and second.body == b"dynamic"
    assert await storage.match(RequestIdentity("GET", "https://kayaknav.com/missing")) is None


@pytest.mark.anyio
async def test_match_prefers_older_tables(storage: AsyncBaseStorage) -> None:
    old = await storage.open("kayaknav-v1")
    new = await storage.open("kayaknav-v2")
    await new.put(IDENTITY, create_entry(b"v2", tier="static"))
    await old.put(IDENTITY, create_entry(b"v1", tier="static"))

    entry = await storage.match(IDENTITY)

    assert entry is not None
    assert entry.body == b"v1"


@pytest.mark.anyio
async def test_remove_deletes_from_every_table(storage: AsyncBaseStorage) -> None:
    static = await storage.open("kayaknav-v1")
    dynamic = await storage.open("kayaknav-dynamic")
    await static.put(IDENTITY, create_entry(tier="static"))
    await dynamic.put(IDENTITY, create_entry())

    assert await storage.remove(IDENTITY) is True

    assert await static.get(IDENTITY) is None
    assert await dynamic.get(IDENTITY) is None
    assert await storage.remove(IDENTITY) is False


@pytest.mark.anyio
async def test_sqlite_default_path_persists(use_temp_dir: None) -> None:
    storage = AsyncSqliteStorage(database_path="kayak.db")
    table = await storage.open("kayaknav-dynamic")
    await table.put(IDENTITY, create_entry(b"persisted"))
    await storage.close()

    reopened = AsyncSqliteStorage(database_path="kayak.db")
    entry = await (await reopened.open("kayaknav-dynamic")).get(IDENTITY)
    await reopened.close()

    assert entry is not None
    assert entry.body == b"persisted"


@pytest.mark.anyio
async def test_sqlite_reuses_given_connection() -> None:
    connection = await anysqlite.connect(":memory:")
    storage = AsyncSqliteStorage(connection=connection)

    await storage.open("kayaknav-dynamic")

    assert storage.connection is connection
    await storage.close()
