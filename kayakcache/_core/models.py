from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Literal,
    Mapping,
    TypedDict,
    cast,
)

from kayakcache._core._headers import Headers
from kayakcache._utils import make_async_iterator

Tier = Literal["static", "dynamic", "edge"]


class RequestMetadata(TypedDict, total=False):
    # All the names here should be prefixed with "kayak_" to avoid collisions with user data
    kayak_mode: str | None
    """Fetch mode of the request, "navigate" for top-level page loads."""


def extract_metadata_from_headers(
    headers: Mapping[str, str],
) -> RequestMetadata:
    metadata: RequestMetadata = {}
    if "Sec-Fetch-Mode" in headers:
        metadata["kayak_mode"] = headers["Sec-Fetch-Mode"].lower()
    return metadata


@dataclass
class Request:
    method: str
    url: str
    headers: Headers = field(default_factory=Headers)
    stream: AsyncIterator[bytes] = field(default_factory=lambda: make_async_iterator([]))
    metadata: RequestMetadata | Mapping[str, Any] = field(default_factory=dict)

    async def _aiter_stream(self) -> AsyncIterator[bytes]:
        if hasattr(self, "collected_body"):
            yield getattr(self, "collected_body")
            return
        if isinstance(self.stream, (AsyncIterator, AsyncIterable)):
            async for chunk in self.stream:
                yield chunk
            return
        else:
            raise TypeError("Request stream is not an AsyncIterator")

    async def aread(self) -> bytes:
        """
        Asynchronously reads the entire request body without consuming the stream.
        """
        if hasattr(self, "collected_body"):
            return cast(bytes, getattr(self, "collected_body"))

        if not isinstance(self.stream, AsyncIterator):
            raise TypeError("Request stream is not an AsyncIterator")

        collected = b"".join([chunk async for chunk in self.stream])
        setattr(self, "collected_body", collected)
        self.stream = make_async_iterator([collected])
        return collected


class ResponseMetadata(TypedDict, total=False):
    # All the names here should be prefixed with "kayak_" to avoid collisions with user data
    kayak_from_cache: bool
    """Indicates whether the response was served from cache."""

    kayak_stored: bool
    """Indicates whether storing the response was scheduled."""

    kayak_created_at: float
    """Timestamp when the response was cached."""


@dataclass
class Response:
    status_code: int
    headers: Headers = field(default_factory=Headers)
    stream: AsyncIterator[bytes] = field(default_factory=lambda: make_async_iterator([]))
    metadata: ResponseMetadata | Mapping[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code <= 299

    async def _aiter_stream(self) -> AsyncIterator[bytes]:
        if hasattr(self, "collected_body"):
            yield getattr(self, "collected_body")
            return
        if isinstance(self.stream, AsyncIterator):
            async for chunk in self.stream:
                yield chunk
        else:
            raise TypeError("Response stream is not an AsyncIterator")

    async def aread(self) -> bytes:
        """
        Asynchronously reads the entire response body without consuming the stream.
        """
        if hasattr(self, "collected_body"):
            return cast(bytes, getattr(self, "collected_body"))

        if not isinstance(self.stream, AsyncIterator):
            raise TypeError("Response stream is not an AsyncIterator")

        collected = b"".join([chunk async for chunk in self.stream])
        setattr(self, "collected_body", collected)
        self.stream = make_async_iterator([collected])
        return collected


@dataclass(frozen=True)
class RequestIdentity:
    """
    The cache key of a request.

    Two requests share a key when both the method and the URL are equal,
    byte for byte. Query parameters are not reordered.
    """

    method: str
    url: str

    @classmethod
    def from_request(cls, request: Request) -> "RequestIdentity":
        return cls(method=request.method.upper(), url=str(request.url))

    def __str__(self) -> str:
        return f"{self.method} {self.url}"


@dataclass
class CacheEntry:
    status_code: int
    headers: Headers
    body: bytes
    tier: Tier
    created_at: float = field(default_factory=time.time)

    @classmethod
    async def from_response(cls, response: Response, tier: Tier) -> "CacheEntry":
        body = await response.aread()
        return cls(
            status_code=response.status_code,
            headers=response.headers.copy(),
            body=body,
            tier=tier,
        )

    def copy(self) -> "CacheEntry":
        return CacheEntry(
            status_code=self.status_code,
            headers=self.headers.copy(),
            body=self.body,
            tier=self.tier,
            created_at=self.created_at,
        )

    def to_response(self) -> Response:
        return Response(
            status_code=self.status_code,
            headers=self.headers.copy(),
            stream=make_async_iterator([self.body]),
            metadata=ResponseMetadata(
                kayak_from_cache=True,
                kayak_stored=False,
                kayak_created_at=self.created_at,
            ),
        )
