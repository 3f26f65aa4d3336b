from __future__ import annotations

import typing as t

from kayakcache._core.models import Request

__all__ = (
    "ExtendableEvent",
    "InstallEvent",
    "ActivateEvent",
    "FetchEvent",
    "MessageEvent",
    "AnyEvent",
)


class ExtendableEvent:
    """
    An event whose handling may outlive the handler.

    Work passed to `wait_until` is queued while the handler runs and executed
    by `settle`. Whoever dispatched the event decides whether `settle` runs
    before or alongside delivering the handler's result, but the event is not
    finished until it has.
    """

    def __init__(self) -> None:
        self._pending: t.List[t.Tuple[t.Callable[..., t.Awaitable[t.Any]], t.Tuple[t.Any, ...]]] = []

    def wait_until(self, func: t.Callable[..., t.Awaitable[t.Any]], *args: t.Any) -> None:
        self._pending.append((func, args))

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def settle(self) -> None:
        while self._pending:
            func, args = self._pending.pop(0)
            await func(*args)


class InstallEvent(ExtendableEvent):
    pass


class ActivateEvent(ExtendableEvent):
    pass


class FetchEvent(ExtendableEvent):
    def __init__(self, request: Request) -> None:
        super().__init__()
        self.request = request


class MessageEvent(ExtendableEvent):
    def __init__(self, data: t.Any) -> None:
        super().__init__()
        self.data = data


AnyEvent = t.Union[InstallEvent, ActivateEvent, FetchEvent, MessageEvent]
