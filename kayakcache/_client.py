from __future__ import annotations

import logging
import typing as t

from kayakcache._config import ClientConfig
from kayakcache._core._headers import Headers
from kayakcache._core._storages._base import AsyncBaseStorage
from kayakcache._core.models import CacheEntry, Request, RequestIdentity, Response, ResponseMetadata
from kayakcache._events import FetchEvent
from kayakcache._policies import ClientPartitionPolicy, Partition, PartitionPolicy
from kayakcache._utils import make_async_iterator, now_millis

if t.TYPE_CHECKING:  # pragma: no cover
    from kayakcache._lifecycle import LifecycleManager

logger = logging.getLogger("kayakcache.client")

RequestSender = t.Callable[[Request], t.Awaitable[Response]]


def is_navigation(request: Request) -> bool:
    """A top-level page load issued with GET."""
    if request.method.upper() != "GET":
        return False
    mode = request.metadata.get("kayak_mode") or request.headers.get("sec-fetch-mode")
    return mode == "navigate"


def generate_refresh() -> Response:
    return Response(
        status_code=200,
        headers=Headers({"Refresh": "0"}),
        stream=make_async_iterator([b""]),
        metadata=ResponseMetadata(kayak_from_cache=False, kayak_stored=False),
    )


class AsyncCacheOrchestrator:
    """
    Cache-aside handling of every request the application makes.

    Hits in any table are served without touching the network. Misses are
    fetched, and successful ones are stored in the static or dynamic table
    according to the partition policy. Failed responses purge the key and are
    passed through untouched.

    Args:
        request_sender: Callable that performs the real network fetch.
        storage: Storage shared by every handler of the process.
        config: Configuration of the version this orchestrator serves.
        registration: Lifecycle manager consulted by the navigation guard, defaults to None.
        policy: Partition policy, defaults to one built from `config`.
    """

    def __init__(
        self,
        request_sender: RequestSender,
        storage: AsyncBaseStorage,
        config: ClientConfig,
        registration: LifecycleManager | None = None,
        policy: PartitionPolicy | None = None,
    ) -> None:
        self.send_request = request_sender
        self.storage = storage
        self.config = config
        self.registration = registration
        self.policy = policy if policy is not None else ClientPartitionPolicy.from_config(config)

    async def handle_fetch(self, event: FetchEvent) -> Response:
        request = event.request

        if is_navigation(request) and await self._hand_over():
            return generate_refresh()

        identity = RequestIdentity.from_request(request)
        partition = self.policy.classify(identity)

        cache_hit = False
        entry = await self.storage.match(identity)
        if entry is None:
            logger.debug("Response for %s not present in cache, fetching", identity)
            fetched = await self.send_request(request)
            # a fresh response with its own headers, so stamping never touches the fetched one
            response = Response(
                status_code=fetched.status_code,
                headers=fetched.headers.copy(),
                stream=fetched.stream,
                metadata=ResponseMetadata(kayak_from_cache=False, kayak_stored=False),
            )
        else:
            logger.debug("Cache hit for %s", identity)
            response = entry.to_response()
            cache_hit = True

        if not response.ok:
            logger.debug("Response for %s was not ok (%d), not caching", identity, response.status_code)
            if partition is not Partition.IGNORED:
                await self.storage.remove(identity)
            return response

        if not cache_hit and partition is not Partition.IGNORED:
            if partition is Partition.STATIC:
                table_name = self.config.static_cache_name
                entry = await CacheEntry.from_response(response, tier="static")
            else:
                table_name = self.config.dynamic_cache_name
                response.headers.append(self.config.timestamp_header, str(now_millis()))
                entry = await CacheEntry.from_response(response, tier="dynamic")

            logger.debug("Caching new resource %s in %s", identity, table_name)
            event.wait_until(self._store, table_name, identity, entry)
            response.metadata = ResponseMetadata(
                kayak_from_cache=False,
                kayak_stored=True,
                kayak_created_at=entry.created_at,
            )

        return response

    async def _store(self, table_name: str, identity: RequestIdentity, entry: CacheEntry) -> None:
        table = await self.storage.open(table_name)
        await table.put(identity, entry)
        logger.info("Stored %s in %s", identity, table_name)

    async def _hand_over(self) -> bool:
        """
        Activate a waiting version when this is the only open client.

        Returns:
            True if the waiting version was asked to take over.
        """
        if self.registration is None:
            return False

        waiting = self.registration.waiting
        if waiting is None:
            return False

        clients = await self.registration.clients.match_all()
        if len(clients) < 2:
            logger.info("Handing over to waiting version %s", waiting.config.version)
            await waiting.post_message(waiting.config.skip_waiting_message)
            return True

        logger.info(
            "More than one client open (%d), not activating waiting version %s",
            len(clients),
            waiting.config.version,
        )
        return False
