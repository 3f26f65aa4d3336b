from __future__ import annotations

import logging
import time
import typing as t
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from kayakcache._config import EdgeConfig
from kayakcache._core._headers import Headers
from kayakcache._core._storages._base import AsyncBaseStorage, CacheTable
from kayakcache._core.models import CacheEntry, Request, RequestIdentity, Response, ResponseMetadata
from kayakcache._events import FetchEvent
from kayakcache._exceptions import EdgeRequestError, InvalidTarget, UnsupportedMethod
from kayakcache._policies import EdgePartitionPolicy, Partition, PartitionPolicy
from kayakcache._utils import filter_mapping, url_origin

logger = logging.getLogger("kayakcache.edge")

RequestSender = t.Callable[[Request], t.Awaitable[Response]]

# Never copied from the inbound request to the upstream one
HOP_BY_HOP_HEADERS = ("Host", "Content-Length", "Transfer-Encoding", "Connection", "Keep-Alive")


class EdgeProxy:
    """
    Caching proxy in front of an upstream API that lacks CORS headers.

    The upstream URL travels in a query parameter. Outbound requests carry the
    upstream's own origin in `Origin`, and responses get a wildcard
    `Access-Control-Allow-Origin` and `Vary: Origin`. Successful responses are
    stored once, with an `s-maxage` directive, and served from the shared table
    until they are older than that lifetime.

    Args:
        request_sender: Callable that performs the upstream fetch.
        storage: Storage holding the shared table.
        config: Edge configuration, defaults to `EdgeConfig()`.
        policy: Partition policy, defaults to one built from `config`.
    """

    def __init__(
        self,
        request_sender: RequestSender,
        storage: AsyncBaseStorage,
        config: EdgeConfig | None = None,
        policy: PartitionPolicy | None = None,
    ) -> None:
        self.send_request = request_sender
        self.storage = storage
        self.config = config if config is not None else EdgeConfig()
        self.policy = policy if policy is not None else EdgePartitionPolicy.from_config(self.config)
        self._table: t.Optional[CacheTable] = None

    async def handle_request(self, event: FetchEvent) -> Response:
        request = event.request
        try:
            method = self._check_method(request.method)
            if method == "OPTIONS":
                return self._handle_options(request)
            return await self._forward(event)
        except EdgeRequestError as exc:
            logger.debug("Rejecting %s %s: %s", request.method, request.url, exc)
            return Response(status_code=exc.status_code)

    def _check_method(self, method: str) -> str:
        if method not in self.config.allowed_methods:
            raise UnsupportedMethod(f"Method {method} is not allowed")
        return method

    def _handle_options(self, request: Request) -> Response:
        if (
            "Origin" in request.headers
            and "Access-Control-Request-Method" in request.headers
            and "Access-Control-Request-Headers" in request.headers
        ):
            return Response(
                status_code=200,
                headers=Headers(
                    {
                        "Access-Control-Allow-Origin": "*",
                        "Access-Control-Allow-Methods": ",".join(self.config.allowed_methods),
                        "Access-Control-Max-Age": str(self.config.preflight_max_age),
                        "Access-Control-Allow-Headers": request.headers["Access-Control-Request-Headers"],
                    }
                ),
            )
        return Response(
            status_code=200,
            headers=Headers({"Allow": ", ".join(self.config.allowed_methods)}),
        )

    def _target_url(self, request: Request) -> str:
        target = httpx.URL(request.url).params.get(self.config.query_param)
        if not target:
            raise InvalidTarget(f"Missing required query parameter {self.config.query_param!r}")
        try:
            parsed = httpx.URL(target)
        except httpx.InvalidURL as exc:
            raise InvalidTarget(f"Invalid upstream URL {target!r}") from exc
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise InvalidTarget(f"Invalid upstream URL {target!r}")
        return target

    async def _get_table(self) -> CacheTable:
        if self._table is None:
            self._table = await self.storage.open(self.config.table_name)
        return self._table

    async def _lookup(self, identity: RequestIdentity) -> t.Optional[CacheEntry]:
        table = await self._get_table()
        entry = await table.get(identity)
        if entry is None:
            return None
        if time.time() - entry.created_at > self.config.shared_ttl:
            logger.debug("Cached response for %s is older than %ds, dropping it", identity, self.config.shared_ttl)
            await table.delete(identity)
            return None
        return entry

    async def _store(self, identity: RequestIdentity, entry: CacheEntry) -> None:
        table = await self._get_table()
        await table.put(identity, entry)
        logger.info("Stored upstream response for %s", identity)

    async def _remove(self, identity: RequestIdentity) -> None:
        table = await self._get_table()
        await table.delete(identity)

    async def _forward(self, event: FetchEvent) -> Response:
        request = event.request
        target = self._target_url(request)

        outbound = Request(
            method=request.method,
            url=target,
            headers=Headers(filter_mapping(request.headers, HOP_BY_HOP_HEADERS)),
            stream=request.stream,
            metadata=request.metadata,
        )
        # the upstream rejects requests that look cross-site
        outbound.headers["Origin"] = url_origin(target)

        identity = RequestIdentity.from_request(outbound)
        partition = self.policy.classify(identity)

        cache_hit = False
        entry = await self._lookup(identity) if partition is Partition.EDGE_ELIGIBLE else None
        if entry is None:
            logger.debug("Response for %s not present in cache, fetching", identity)
            upstream = await self.send_request(outbound)
            response = Response(
                status_code=upstream.status_code,
                headers=upstream.headers.copy(),
                stream=upstream.stream,
                metadata=ResponseMetadata(kayak_from_cache=False, kayak_stored=False),
            )
            response.headers["Access-Control-Allow-Origin"] = "*"
            response.headers.append("Vary", "Origin")
        else:
            logger.debug("Cache hit for %s", identity)
            response = entry.to_response()
            cache_hit = True

        if not response.ok:
            logger.debug("Response for %s was not ok (%d), not caching", identity, response.status_code)
            if partition is Partition.EDGE_ELIGIBLE:
                event.wait_until(self._remove, identity)
            return response

        if not cache_hit and partition is Partition.EDGE_ELIGIBLE:
            response.headers.append("Cache-Control", f"s-maxage={self.config.shared_ttl}")
            entry = await CacheEntry.from_response(response, tier="edge")
            event.wait_until(self._store, identity, entry)
            response.metadata = ResponseMetadata(
                kayak_from_cache=False,
                kayak_stored=True,
                kayak_created_at=entry.created_at,
            )

        return response


@dataclass
class ApiProxy:
    """
    Builds URLs that route an upstream request through the edge proxy.

    Example:
        >>> ApiProxy("https://kayaknav.com/proxy").proxied_url("https://api.example.com/data")
        'https://kayaknav.com/proxy?apiurl=https%3A%2F%2Fapi.example.com%2Fdata'
    """

    url: str
    query_param: str = "apiurl"

    def proxied_url(self, url: str) -> str:
        return f"{self.url}?{self.query_param}={quote(url, safe='')}"
