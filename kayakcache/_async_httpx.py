from __future__ import annotations

import typing as t
import uuid
from typing import (
    AsyncIterable,
    AsyncIterator,
    Union,
    overload,
)

import httpx
from httpx import RequestNotRead

from kayakcache._core._headers import Headers
from kayakcache._core._storages._base import AsyncBaseStorage
from kayakcache._core._storages._memory import AsyncInMemoryStorage
from kayakcache._core.models import Request, RequestMetadata, Response, extract_metadata_from_headers
from kayakcache._lifecycle import LifecycleManager
from kayakcache._utils import filter_mapping, make_async_iterator

__all__ = ("AsyncHttpxSender", "AsyncServiceWorkerTransport")


async def _iterate(stream: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
    async for chunk in stream:
        yield chunk


@overload
def _internal_to_httpx(
    value: Request,
    content: bytes,
) -> httpx.Request: ...
@overload
def _internal_to_httpx(
    value: Response,
) -> httpx.Response: ...
def _internal_to_httpx(
    value: Union[Request, Response],
    content: bytes | None = None,
) -> Union[httpx.Request, httpx.Response]:
    """
    Convert internal Request/Response to httpx.Request/httpx.Response.

    Requests are built from an already collected body so httpx can frame it
    with a proper Content-Length.
    """
    if isinstance(value, Request):
        return httpx.Request(
            method=value.method,
            url=value.url,
            headers=list(value.headers.multi_items()),
            content=content,
            extensions=dict(value.metadata),
        )
    elif isinstance(value, Response):
        return httpx.Response(
            status_code=value.status_code,
            headers=list(value.headers.multi_items()),
            stream=_IteratorStream(value._aiter_stream()),
            extensions=dict(value.metadata),
        )


@overload
def _httpx_to_internal(
    value: httpx.Request,
) -> Request: ...
@overload
def _httpx_to_internal(
    value: httpx.Response,
) -> Response: ...
def _httpx_to_internal(
    value: Union[httpx.Request, httpx.Response],
) -> Union[Request, Response]:
    """
    Convert httpx.Request/httpx.Response to internal Request/Response.
    """
    headers = Headers(
        filter_mapping(
            {key: value.headers.get_list(key) for key in value.headers.keys()},
            ["Transfer-Encoding"],
        )
    )
    if isinstance(value, httpx.Request):
        metadata = extract_metadata_from_headers(headers)
        extension_metadata = RequestMetadata(
            kayak_mode=value.extensions.get("kayak_mode"),
        )
        for key, val in extension_metadata.items():
            if key in value.extensions:
                metadata[key] = val  # type: ignore

        try:
            stream = make_async_iterator([value.content])
        except RequestNotRead:
            stream = _iterate(t.cast(AsyncIterable[bytes], value.stream))

        return Request(
            method=value.method,
            url=str(value.url),
            headers=headers,
            stream=stream,
            metadata=metadata,
        )
    elif isinstance(value, httpx.Response):
        if "content-encoding" in headers:
            # The body was decoded while reading it, so the original
            # encoding and size no longer describe it.
            del headers["content-encoding"]
            headers["content-length"] = str(len(value.content))

        return Response(
            status_code=value.status_code,
            headers=headers,
            stream=make_async_iterator([value.content]),
            metadata={},
        )


class _IteratorStream(httpx.AsyncByteStream):
    def __init__(self, iterator: AsyncIterator[bytes]) -> None:
        self.iterator = iterator

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self.iterator:
            yield chunk


class AsyncHttpxSender:
    """
    Performs real network fetches through an httpx transport.

    The whole response body is read before returning. Network errors raised by
    the transport propagate to the caller.
    """

    def __init__(self, next_transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.next_transport = next_transport if next_transport is not None else httpx.AsyncHTTPTransport()

    async def __call__(self, request: Request) -> Response:
        content = await request.aread()
        httpx_request = _internal_to_httpx(request, content)
        httpx_response = await self.next_transport.handle_async_request(httpx_request)
        try:
            await httpx_response.aread()
        finally:
            await httpx_response.aclose()
        return _httpx_to_internal(httpx_response)

    async def aclose(self) -> None:
        await self.next_transport.aclose()


class AsyncServiceWorkerTransport(httpx.AsyncBaseTransport):
    """
    An HTTPX transport that routes every request through the active version.

    Each open transport counts as one open client of the registration, which
    is what the navigation guard looks at before handing over to a waiting
    version.

    :param next_transport: Transport used for real network fetches, defaults to `httpx.AsyncHTTPTransport()`
    :type next_transport: tp.Optional[httpx.AsyncBaseTransport]
    :param registration: Lifecycle manager shared with other transports, defaults to a new one
    :type registration: tp.Optional[LifecycleManager]
    :param storage: Storage of the new lifecycle manager, ignored when `registration` is given
    :type storage: tp.Optional[AsyncBaseStorage]
    """

    def __init__(
        self,
        next_transport: httpx.AsyncBaseTransport | None = None,
        registration: LifecycleManager | None = None,
        storage: AsyncBaseStorage | None = None,
    ) -> None:
        self.sender = AsyncHttpxSender(next_transport)
        self._owns_registration = registration is None
        self.registration = (
            registration
            if registration is not None
            else LifecycleManager(
                storage=storage if storage is not None else AsyncInMemoryStorage(),
                request_sender=self.sender,
            )
        )
        self.client_id = str(uuid.uuid4())
        self.registration.clients.add(self.client_id)

    async def handle_async_request(
        self,
        request: httpx.Request,
    ) -> httpx.Response:
        internal_request = _httpx_to_internal(request)
        internal_response = await self.registration.fetch(internal_request)
        return _internal_to_httpx(internal_response)

    async def aclose(self) -> None:
        self.registration.clients.remove(self.client_id)
        await self.sender.aclose()
        if self._owns_registration:
            await self.registration.storage.close()
