from typing import List

import pytest

from kayakcache import ExtendableEvent, FetchEvent, Request


@pytest.mark.anyio
async def test_settle_runs_pending_work_in_order() -> None:
    calls: List[str] = []

    async def record(name: str) -> None:
        calls.append(name)

    event = ExtendableEvent()
    event.wait_until(record, "store")
    event.wait_until(record, "purge")

    assert event.pending == 2
    assert calls == []

    await event.settle()

    assert calls == ["store", "purge"]
    assert event.pending == 0


@pytest.mark.anyio
async def test_work_scheduled_while_settling_is_run() -> None:
    calls: List[str] = []
    event = ExtendableEvent()

    async def second() -> None:
        calls.append("second")

    async def first() -> None:
        calls.append("first")
        event.wait_until(second)

    event.wait_until(first)
    await event.settle()

    assert calls == ["first", "second"]


@pytest.mark.anyio
async def test_settle_propagates_errors() -> None:
    async def broken() -> None:
        raise RuntimeError("disk full")

    event = ExtendableEvent()
    event.wait_until(broken)

    with pytest.raises(RuntimeError, match="disk full"):
        await event.settle()


def test_fetch_event_carries_request() -> None:
    request = Request(method="GET", url="https://kayaknav.com/")

    event = FetchEvent(request)

    assert event.request is request
    assert event.pending == 0
