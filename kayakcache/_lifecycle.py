from __future__ import annotations

import logging
import typing as t

from anyio.abc import TaskGroup

from kayakcache._client import RequestSender
from kayakcache._config import ClientConfig
from kayakcache._core._storages._base import AsyncBaseStorage
from kayakcache._core.models import Request, Response
from kayakcache._events import ActivateEvent, FetchEvent, InstallEvent
from kayakcache._worker import ServiceWorker, WorkerState

logger = logging.getLogger("kayakcache.lifecycle")


class ClientRegistry:
    """The browser contexts currently open on the application. Never persisted."""

    def __init__(self) -> None:
        self._clients: t.Dict[str, None] = {}

    def add(self, client_id: str) -> None:
        self._clients[client_id] = None

    def remove(self, client_id: str) -> None:
        self._clients.pop(client_id, None)

    async def match_all(self) -> t.List[str]:
        return list(self._clients)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._clients

    def __len__(self) -> int:
        return len(self._clients)


class LifecycleManager:
    """
    Drives versions through installing, waiting, activating and active.

    At most one version waits and one is active. A version that fails to
    install, or that is replaced, becomes redundant. Every activation runs the
    eviction sweep once.

    Args:
        storage: Storage shared by every version.
        request_sender: Callable that performs the real network fetch.
        clients: Registry of open browser contexts, defaults to an empty one.
    """

    def __init__(
        self,
        storage: AsyncBaseStorage,
        request_sender: RequestSender,
        clients: ClientRegistry | None = None,
    ) -> None:
        self.storage = storage
        self.send_request = request_sender
        self.clients = clients if clients is not None else ClientRegistry()
        self.installing: t.Optional[ServiceWorker] = None
        self.waiting: t.Optional[ServiceWorker] = None
        self.active: t.Optional[ServiceWorker] = None

    async def register(self, config: ClientConfig) -> ServiceWorker:
        """
        Install the version described by `config`.

        Registering the version that is already active or waiting is a no-op.
        The first version ever installed activates right away, later ones wait.

        Raises:
            InstallFailure: A shell asset could not be fetched.
        """
        for current in (self.active, self.waiting):
            if current is not None and current.config.version == config.version:
                return current

        worker = ServiceWorker(self, config, self.storage, self.send_request)
        await self._install(worker)

        if self.active is None:
            await self.activate(worker)
        return worker

    async def _install(self, worker: ServiceWorker) -> None:
        self.installing = worker
        worker.state = WorkerState.INSTALLING
        try:
            event = InstallEvent()
            await worker.dispatch(event)
            await event.settle()
        except BaseException:
            worker.state = WorkerState.REDUNDANT
            logger.warning("Installing version %s failed", worker.config.version)
            raise
        finally:
            if self.installing is worker:
                self.installing = None

        if self.waiting is not None:
            logger.info("Version %s replaces waiting version %s", worker.config.version, self.waiting.config.version)
            self.waiting.state = WorkerState.REDUNDANT
        self.waiting = worker
        worker.state = WorkerState.WAITING
        logger.info("Version %s installed and waiting", worker.config.version)

    async def activate(self, worker: ServiceWorker) -> None:
        if worker is not self.waiting or worker.state is not WorkerState.WAITING:
            logger.debug("Not activating %r, it is not the waiting version", worker)
            return

        self.waiting = None
        previous, self.active = self.active, worker
        worker.state = WorkerState.ACTIVATING
        if previous is not None:
            previous.state = WorkerState.REDUNDANT

        event = ActivateEvent()
        await worker.dispatch(event)
        await event.settle()

        worker.state = WorkerState.ACTIVE
        logger.info("Version %s is active", worker.config.version)

    async def skip_waiting(self) -> None:
        """Ask the waiting version, if any, to take over immediately."""
        if self.waiting is not None:
            await self.waiting.post_message(self.waiting.config.skip_waiting_message)

    async def fetch(
        self,
        request: Request,
        task_group: t.Optional[TaskGroup] = None,
    ) -> Response:
        """
        Route a request through the active version.

        When `task_group` is given, stores are scheduled on it and the response
        is returned without waiting for them. Otherwise this returns once every
        scheduled store has completed.
        """
        if self.active is None:
            logger.debug("No active version, fetching %s directly", request.url)
            return await self.send_request(request)

        event = FetchEvent(request)
        response = await self.active.dispatch(event)
        if task_group is not None:
            task_group.start_soon(event.settle)
        else:
            await event.settle()
        return response
