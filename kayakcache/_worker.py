from __future__ import annotations

import enum
import logging
import typing as t

from typing_extensions import assert_never

from kayakcache._client import AsyncCacheOrchestrator, RequestSender
from kayakcache._config import ClientConfig
from kayakcache._core._storages._base import AsyncBaseStorage
from kayakcache._core.models import CacheEntry, Request, RequestIdentity, Response
from kayakcache._events import ActivateEvent, AnyEvent, FetchEvent, InstallEvent, MessageEvent
from kayakcache._eviction import SweepResult, sweep
from kayakcache._exceptions import InstallFailure

if t.TYPE_CHECKING:  # pragma: no cover
    from kayakcache._lifecycle import LifecycleManager

logger = logging.getLogger("kayakcache.lifecycle")


class WorkerState(enum.Enum):
    INSTALLING = "installing"
    WAITING = "waiting"
    ACTIVATING = "activating"
    ACTIVE = "active"
    REDUNDANT = "redundant"


class ServiceWorker:
    """
    The code of one deployed version.

    Dispatches install, activate, fetch and message events to one handler each.
    State transitions are driven by the owning `LifecycleManager`.
    """

    def __init__(
        self,
        registration: LifecycleManager,
        config: ClientConfig,
        storage: AsyncBaseStorage,
        request_sender: RequestSender,
    ) -> None:
        self.registration = registration
        self.config = config
        self.storage = storage
        self.send_request = request_sender
        self.state = WorkerState.INSTALLING
        self.last_sweep: t.Optional[SweepResult] = None
        self.orchestrator = AsyncCacheOrchestrator(
            request_sender=request_sender,
            storage=storage,
            config=config,
            registration=registration,
        )

    @t.overload
    async def dispatch(self, event: FetchEvent) -> Response: ...
    @t.overload
    async def dispatch(self, event: t.Union[InstallEvent, ActivateEvent, MessageEvent]) -> None: ...
    async def dispatch(self, event: AnyEvent) -> t.Optional[Response]:
        if isinstance(event, FetchEvent):
            return await self.orchestrator.handle_fetch(event)
        elif isinstance(event, InstallEvent):
            await self._on_install(event)
        elif isinstance(event, ActivateEvent):
            await self._on_activate(event)
        elif isinstance(event, MessageEvent):
            await self._on_message(event)
        else:
            assert_never(event)
        return None

    async def post_message(self, data: t.Any) -> None:
        event = MessageEvent(data)
        await self.dispatch(event)
        await event.settle()

    async def skip_waiting(self) -> None:
        if self.state is WorkerState.WAITING:
            await self.registration.activate(self)

    async def _on_install(self, event: InstallEvent) -> None:
        logger.info("Installing version %s", self.config.version)
        table = await self.storage.open(self.config.static_cache_name)

        # nothing is stored unless every asset was fetched
        entries: t.List[t.Tuple[RequestIdentity, CacheEntry]] = []
        for url in self.config.asset_urls():
            request = Request(method="GET", url=url)
            response = await self.send_request(request)
            if not response.ok:
                raise InstallFailure(url, response.status_code)
            entries.append((RequestIdentity.from_request(request), await CacheEntry.from_response(response, "static")))

        logger.debug("Caching %d shell assets in %s", len(entries), table.name)
        for identity, entry in entries:
            await table.put(identity, entry)

    async def _on_activate(self, event: ActivateEvent) -> None:
        logger.info("Activating version %s", self.config.version)
        self.last_sweep = await sweep(self.storage, self.config)
        logger.info(
            "Activation sweep removed %d expired entries and %d stale tables",
            self.last_sweep.expired_entries,
            len(self.last_sweep.deleted_tables),
        )

    async def _on_message(self, event: MessageEvent) -> None:
        if event.data == self.config.skip_waiting_message:
            await self.skip_waiting()
        else:
            logger.debug("Ignoring unknown message %r", event.data)

    def __repr__(self) -> str:
        return f"ServiceWorker(version={self.config.version!r}, state={self.state.value})"
