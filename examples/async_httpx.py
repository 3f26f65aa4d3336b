#!/usr/bin/env uv run
# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "kayakcache",
# ]
#
# [tool.uv.sources]
# kayakcache = { path = "../", editable = true }
# ///

import asyncio
from typing import cast

import anysqlite
import httpx

from kayakcache import ApiProxy, AsyncSqliteStorage, ClientConfig, ResponseMetadata
from kayakcache.httpx import AsyncServiceWorkerTransport

ORIGIN = "https://kayaknav.com"


async def fetch_and_print(client: httpx.AsyncClient, url: str) -> None:
    print(f"\n➡ Sending request to {url}...")
    response = await client.get(url)
    meta = cast(ResponseMetadata, response.extensions)

    print(f"📦 Status: {response.status_code}")
    print(f"🚀 Was Stored: {meta.get('kayak_stored')}")
    print(f"🔄 From Cache: {meta.get('kayak_from_cache')}")


async def main() -> None:
    storage = AsyncSqliteStorage(connection=await anysqlite.connect(":memory:"))
    transport = AsyncServiceWorkerTransport(storage=storage)

    # fetches every shell asset, then becomes the active version
    await transport.registration.register(ClientConfig(origin=ORIGIN))

    api = ApiProxy(ORIGIN + "/proxy")
    async with httpx.AsyncClient(transport=transport) as client:
        await fetch_and_print(client, ORIGIN + "/index.html")
        await fetch_and_print(client, api.proxied_url("https://api.example.com/data"))
        await fetch_and_print(client, api.proxied_url("https://api.example.com/data"))


if __name__ == "__main__":
    asyncio.run(main())
