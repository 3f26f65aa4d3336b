from datetime import datetime
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

import pytest
from time_machine import travel

from kayakcache import (
    AsyncBaseStorage,
    AsyncCacheOrchestrator,
    AsyncInMemoryStorage,
    CacheEntry,
    ClientConfig,
    FetchEvent,
    Headers,
    MockRequestSender,
    Request,
    RequestIdentity,
    Response,
    is_navigation,
)
from kayakcache._utils import make_async_iterator

ORIGIN = "https://kayaknav.com"
VERSION = "20240101000000"

# =============================================================================
# Helpers
# =============================================================================


def create_request(
    url: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
) -> Request:
    return Request(method=method, url=url, headers=Headers(headers or {}), metadata={})


def create_response(status_code: int = 200, body: bytes = b"body", headers: Optional[Dict[str, str]] = None) -> Response:
    return Response(
        status_code=status_code,
        headers=Headers(headers or {"Content-Type": "text/plain"}),
        stream=make_async_iterator([body]),
    )


def create_orchestrator(
    responses: List[Response],
    storage: Optional[AsyncBaseStorage] = None,
) -> AsyncCacheOrchestrator:
    return AsyncCacheOrchestrator(
        request_sender=MockRequestSender(responses),
        storage=storage if storage is not None else AsyncInMemoryStorage(),
        config=ClientConfig(origin=ORIGIN, version=VERSION),
    )


async def fetch(orchestrator: AsyncCacheOrchestrator, request: Request) -> Response:
    event = FetchEvent(request)
    response = await orchestrator.handle_fetch(event)
    await event.settle()
    return response


# =============================================================================
# Cache-aside
# =============================================================================


@pytest.mark.anyio
async def test_second_request_is_served_without_network(storage: AsyncBaseStorage) -> None:
    orchestrator = create_orchestrator([create_response(body=b"tide data")], storage)
    sender = orchestrator.send_request
    assert isinstance(sender, MockRequestSender)

    first = await fetch(orchestrator, create_request("https://api.example.com/data"))
    second = await fetch(orchestrator, create_request("https://api.example.com/data"))

    assert len(sender.requests) == 1
    assert await first.aread() == b"tide data"
    assert await second.aread() == b"tide data"
    assert first.metadata["kayak_from_cache"] is False
    assert first.metadata["kayak_stored"] is True
    assert second.metadata["kayak_from_cache"] is True
    assert second.metadata["kayak_stored"] is False


@pytest.mark.anyio
async def test_store_is_scheduled_not_performed_inline() -> None:
    storage = AsyncInMemoryStorage()
    orchestrator = create_orchestrator([create_response()], storage)
    event = FetchEvent(create_request("https://api.example.com/data"))

    await orchestrator.handle_fetch(event)

    assert event.pending == 1
    assert await storage.match(RequestIdentity("GET", "https://api.example.com/data")) is None

    await event.settle()

    assert await storage.match(RequestIdentity("GET", "https://api.example.com/data")) is not None


@pytest.mark.anyio
async def test_shell_asset_lands_in_static_table() -> None:
    storage = AsyncInMemoryStorage()
    orchestrator = create_orchestrator([create_response(body=b"<html>")], storage)

    response = await fetch(orchestrator, create_request(ORIGIN + "/index.html"))

    static = await storage.open("kayaknav-v" + VERSION)
    dynamic = await storage.open("kayaknav-dynamic")
    identity = RequestIdentity("GET", ORIGIN + "/index.html")
    entry = await static.get(identity)
    assert entry is not None
    assert entry.tier == "static"
    assert await dynamic.get(identity) is None
    assert "x-sw-cache-timestamp" not in response.headers


@pytest.mark.anyio
@travel(datetime(2024, 1, 1, 0, 0, 0, tzinfo=ZoneInfo("UTC")), tick=False)
async def test_dynamic_response_is_stamped() -> None:
    storage = AsyncInMemoryStorage()
    orchestrator = create_orchestrator([create_response()], storage)

    response = await fetch(orchestrator, create_request("https://api.example.com/data"))

    assert response.headers["x-sw-cache-timestamp"] == "1704067200000"
    entry = await (await storage.open("kayaknav-dynamic")).get(RequestIdentity("GET", "https://api.example.com/data"))
    assert entry is not None
    assert entry.tier == "dynamic"
    assert entry.headers["x-sw-cache-timestamp"] == "1704067200000"


@pytest.mark.anyio
async def test_stamping_does_not_touch_the_fetched_response() -> None:
    upstream = create_response()
    orchestrator = create_orchestrator([upstream])

    response = await fetch(orchestrator, create_request("https://api.example.com/data"))

    assert "x-sw-cache-timestamp" in response.headers
    assert "x-sw-cache-timestamp" not in upstream.headers


@pytest.mark.parametrize(
    "request_",
    [
        create_request(ORIGIN + "/sw.js"),
        create_request(ORIGIN + "/manifest.webmanifest"),
        create_request("https://static.cloudflareinsights.com/beacon.min.js"),
        create_request("https://api.example.com/data", method="POST"),
    ],
)
@pytest.mark.anyio
async def test_ignored_requests_are_never_stored(request_: Request) -> None:
    storage = AsyncInMemoryStorage()
    orchestrator = create_orchestrator([create_response(), create_response()], storage)

    first = await fetch(orchestrator, request_)
    await fetch(orchestrator, request_)

    assert first.metadata == {"kayak_from_cache": False, "kayak_stored": False}
    assert await storage.match(RequestIdentity.from_request(request_)) is None
    assert len(orchestrator.send_request.requests) == 2  # type: ignore[attr-defined]


# =============================================================================
# Failure short-circuit
# =============================================================================


@pytest.mark.anyio
async def test_failed_response_is_returned_verbatim() -> None:
    storage = AsyncInMemoryStorage()
    orchestrator = create_orchestrator(
        [create_response(status_code=503, body=b"down", headers={"Retry-After": "10"})],
        storage,
    )

    response = await fetch(orchestrator, create_request("https://api.example.com/data"))

    assert response.status_code == 503
    assert response.headers == Headers({"Retry-After": "10"})
    assert await response.aread() == b"down"
    assert await storage.keys() == []


@pytest.mark.anyio
async def test_failed_response_purges_concurrently_stored_entry() -> None:
    storage = AsyncInMemoryStorage()
    identity = RequestIdentity("GET", "https://api.example.com/data")

    async def racing_sender(request: Request) -> Response:
        # another handler stores a success while this fetch is in flight
        table = await storage.open("kayaknav-dynamic")
        await table.put(
            identity,
            CacheEntry(status_code=200, headers=Headers(), body=b"stale", tier="dynamic"),
        )
        return create_response(status_code=500)

    orchestrator = AsyncCacheOrchestrator(
        request_sender=racing_sender,
        storage=storage,
        config=ClientConfig(origin=ORIGIN, version=VERSION),
    )

    response = await fetch(orchestrator, create_request("https://api.example.com/data"))

    assert response.status_code == 500
    assert await storage.match(identity) is None


@pytest.mark.anyio
async def test_failed_ignored_request_deletes_nothing() -> None:
    storage = AsyncInMemoryStorage()
    identity = RequestIdentity("GET", ORIGIN + "/sw.js")
    table = await storage.open("kayaknav-dynamic")

    async def racing_sender(request: Request) -> Response:
        # a lookup would serve an existing entry, so it appears while the fetch is in flight
        await table.put(identity, CacheEntry(status_code=200, headers=Headers(), body=b"kept", tier="dynamic"))
        return create_response(status_code=500, body=b"broken", headers={"X-Error": "1"})

    orchestrator = AsyncCacheOrchestrator(
        request_sender=racing_sender,
        storage=storage,
        config=ClientConfig(origin=ORIGIN, version=VERSION),
    )

    response = await fetch(orchestrator, create_request(ORIGIN + "/sw.js"))

    assert response.status_code == 500
    assert response.headers == Headers({"X-Error": "1"})
    assert await response.aread() == b"broken"
    entry = await table.get(identity)
    assert entry is not None
    assert entry.body == b"kept"


@pytest.mark.anyio
async def test_network_errors_propagate() -> None:
    async def failing_sender(request: Request) -> Response:
        raise ConnectionError("offline")

    orchestrator = AsyncCacheOrchestrator(
        request_sender=failing_sender,
        storage=AsyncInMemoryStorage(),
        config=ClientConfig(origin=ORIGIN, version=VERSION),
    )

    with pytest.raises(ConnectionError, match="offline"):
        await fetch(orchestrator, create_request("https://api.example.com/data"))


# =============================================================================
# Navigation detection
# =============================================================================


def test_navigation_from_metadata() -> None:
    request = Request(method="GET", url=ORIGIN + "/", metadata={"kayak_mode": "navigate"})

    assert is_navigation(request)


def test_navigation_from_header() -> None:
    assert is_navigation(create_request(ORIGIN + "/", headers={"Sec-Fetch-Mode": "navigate"}))
    assert not is_navigation(create_request(ORIGIN + "/", headers={"Sec-Fetch-Mode": "cors"}))


def test_post_is_never_a_navigation() -> None:
    request = Request(method="POST", url=ORIGIN + "/", metadata={"kayak_mode": "navigate"})

    assert not is_navigation(request)


@pytest.mark.anyio
async def test_navigation_without_registration_is_served_normally() -> None:
    orchestrator = create_orchestrator([create_response(body=b"<html>")])

    response = await fetch(orchestrator, create_request(ORIGIN + "/", headers={"Sec-Fetch-Mode": "navigate"}))

    assert "refresh" not in response.headers
    assert await response.aread() == b"<html>"
