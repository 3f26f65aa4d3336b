from __future__ import annotations

import logging
import typing as t
from typing import AsyncIterator

import anyio
import httpx

from kayakcache._async_httpx import AsyncHttpxSender
from kayakcache._config import EdgeConfig
from kayakcache._core._headers import Headers
from kayakcache._core._storages._base import AsyncBaseStorage
from kayakcache._core._storages._sqlite import AsyncSqliteStorage
from kayakcache._core.models import Request, Response
from kayakcache._edge import EdgeProxy
from kayakcache._events import FetchEvent
from kayakcache._utils import filter_mapping, generate_http_date

# Configure logger for this module
logger = logging.getLogger("kayakcache.asgi")


class _ASGIScope(t.TypedDict, total=False):
    """ASGI HTTP scope type."""

    type: str
    asgi: dict[str, str]
    http_version: str
    method: str
    scheme: str
    path: str
    query_string: bytes
    root_path: str
    headers: list[tuple[bytes, bytes]]
    server: tuple[str, int | None] | None
    client: tuple[str, int] | None
    state: dict[str, t.Any]
    extensions: dict[str, t.Any]


_Scope = _ASGIScope
_Receive = t.Callable[[], t.Awaitable[dict[str, t.Any]]]
_Send = t.Callable[[dict[str, t.Any]], t.Awaitable[None]]


class EdgeProxyApp:
    """
    ASGI application serving the edge proxy.

    The response is sent to the client while the store (or the purge) it
    scheduled runs alongside, and the request is finished once both are done.

    Args:
        proxy: The edge proxy to serve. When omitted one is built from the other arguments.
        storage: Storage of the built proxy. Defaults to AsyncSqliteStorage.
        config: Configuration of the built proxy. Defaults to EdgeConfig().
        transport: httpx transport used for upstream fetches. Defaults to httpx.AsyncHTTPTransport().

    Example:
        ```python
        import uvicorn

        from kayakcache.asgi import EdgeProxyApp

        uvicorn.run(EdgeProxyApp(), port=8787)
        ```
    """

    def __init__(
        self,
        proxy: EdgeProxy | None = None,
        storage: AsyncBaseStorage | None = None,
        config: EdgeConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._sender: AsyncHttpxSender | None = None
        if proxy is None:
            self._sender = AsyncHttpxSender(transport)
            proxy = EdgeProxy(
                request_sender=self._sender,
                storage=storage if storage is not None else AsyncSqliteStorage(),
                config=config,
            )
        self.proxy = proxy

        logger.info(
            "Initialized EdgeProxyApp with storage=%s, query_param=%s",
            type(self.proxy.storage).__name__,
            self.proxy.config.query_param,
        )

    async def __call__(self, scope: _Scope, receive: _Receive, send: _Send) -> None:
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        if scope["type"] != "http":
            logger.debug("Skipping non-HTTP request: type=%s", scope["type"])
            return

        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "/")
        logger.debug("Incoming HTTP request: method=%s path=%s", method, path)

        event = FetchEvent(self._asgi_to_internal_request(scope, receive))
        try:
            response = await self.proxy.handle_request(event)
        except Exception as e:
            logger.error(
                "Error processing request: method=%s path=%s error=%s",
                method,
                path,
                str(e),
                exc_info=True,
            )
            raise

        async with anyio.create_task_group() as tg:
            tg.start_soon(event.settle)
            await self._send_internal_response(response, send, method)

        logger.info("Request processed: method=%s path=%s status=%d", method, path, response.status_code)

    async def _handle_lifespan(self, receive: _Receive, send: _Send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await self.aclose()
                await send({"type": "lifespan.shutdown.complete"})
                return

    def _asgi_to_internal_request(self, scope: _Scope, receive: _Receive) -> Request:
        """
        Convert an ASGI HTTP scope to an internal Request object.

        Args:
            scope: The ASGI scope dictionary.
            receive: The ASGI receive callable.

        Returns:
            The internal Request object.
        """
        scheme = scope.get("scheme", "http")
        server = scope.get("server")

        if server is None:
            server = ("localhost", 80)

        host = server[0]
        port = server[1] if server[1] is not None else (443 if scheme == "https" else 80)

        # Add port to host if non-standard
        if (scheme == "http" and port != 80) or (scheme == "https" and port != 443):
            host = f"{host}:{port}"

        path = scope.get("path", "/")
        query_string = scope.get("query_string", b"")
        if query_string:
            path = f"{path}?{query_string.decode('latin1')}"

        headers = Headers()
        for key, value in scope.get("headers", []):
            headers.append(key.decode("latin1"), value.decode("latin1"))

        async def request_stream() -> AsyncIterator[bytes]:
            while True:
                message = await receive()
                if message["type"] == "http.request":
                    body = message.get("body", b"")
                    if body:
                        yield body
                    if not message.get("more_body", False):
                        break
                elif message["type"] == "http.disconnect":
                    logger.debug("Client disconnected during request body streaming")
                    break

        return Request(
            method=scope.get("method", "GET"),
            url=f"{scheme}://{host}{path}",
            headers=headers,
            stream=request_stream(),
            metadata={},
        )

    async def _send_internal_response(self, response: Response, send: _Send, method: str) -> None:
        """
        Send an internal Response to the ASGI send callable.

        Responses without a body keep the Content-Length they were given, since
        it describes the resource rather than the empty payload.

        Args:
            response: The internal Response object.
            send: The ASGI send callable.
            method: Method of the request being answered.
        """
        response_headers = Headers(
            filter_mapping(
                {key: response.headers.get_list(key) or [] for key in response.headers},
                ["Transfer-Encoding"],
            )
        )
        if "date" not in response_headers:
            response_headers["Date"] = generate_http_date()

        body = await response.aread()
        bodiless = method == "HEAD" or response.status_code in (204, 304)
        if not bodiless or "content-length" not in response_headers:
            response_headers["Content-Length"] = str(len(body))

        await send(
            {
                "type": "http.response.start",
                "status": response.status_code,
                "headers": [
                    (key.encode("latin1"), value.encode("latin1")) for key, value in response_headers.multi_items()
                ],
            }
        )
        await send(
            {
                "type": "http.response.body",
                "body": body,
                "more_body": False,
            }
        )
        logger.debug("Response sent: status=%d total_bytes=%d", response.status_code, len(body))

    async def aclose(self) -> None:
        """Close the storage backend and the upstream transport."""
        logger.info("Closing EdgeProxyApp")
        await self.proxy.storage.close()
        if self._sender is not None:
            await self._sender.aclose()
