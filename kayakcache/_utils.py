from __future__ import annotations

import datetime
import time
import typing as tp
from email.utils import formatdate
from pathlib import Path
from typing import AsyncIterator, Iterable

import httpx

T = tp.TypeVar("T")


async def make_async_iterator(
    iterable: Iterable[bytes],
) -> AsyncIterator[bytes]:
    for item in iterable:
        yield item


def filter_mapping(mapping: tp.Mapping[str, T], keys_to_exclude: tp.Iterable[str]) -> tp.Dict[str, T]:
    """
    Filter out specified keys from a string-keyed mapping using case-insensitive comparison.

    Args:
        mapping: The input mapping with string keys to filter.
        keys_to_exclude: An iterable of string keys to exclude (case-insensitive).

    Returns:
        A new dictionary with the specified keys excluded.

    Example:
    ```python
        original = {'a': 1, 'B': 2, 'c': 3}
        filtered = filter_mapping(original, ['b'])
        # filtered will be {'a': 1, 'c': 3}
    ```
    """
    exclude_set = {k.lower() for k in keys_to_exclude}
    return {k: v for k, v in mapping.items() if k.lower() not in exclude_set}


def now_millis() -> int:
    """Current wall-clock time as a millisecond epoch timestamp."""
    return int(time.time() * 1000)


def url_origin(url: str) -> str:
    """
    Return the origin (scheme, host and non-default port) of an absolute URL.

    Examples:
        >>> url_origin("https://api.example.com/data?x=1")
        'https://api.example.com'
        >>> url_origin("http://localhost:8080/index.html")
        'http://localhost:8080'
    """
    parsed = httpx.URL(url)
    return f"{parsed.scheme}://{parsed.netloc.decode('ascii')}"


def url_path(url: str) -> str:
    return httpx.URL(url).path


def generate_version_stamp() -> str:
    """
    Generate a build version stamp.

    The stamp is the current UTC time formatted as `YYYYMMDDHHMMSS`, so stamps
    of successive builds sort in deployment order.

    Example output: '20240101120000'
    """
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y%m%d%H%M%S")


def ensure_cache_dict(base_path: Path | None = None) -> Path:
    _base_path = base_path if base_path is not None else Path(".cache/kayakcache")
    _gitignore_file = _base_path / ".gitignore"

    _base_path.mkdir(parents=True, exist_ok=True)

    if not _gitignore_file.is_file():
        with open(_gitignore_file, "w", encoding="utf-8") as f:
            f.write("# Automatically created by kayakcache\n*")
    return _base_path


def generate_http_date() -> str:
    """
    Generate a Date header value for HTTP responses.
    Returns date in RFC 1123 format (required by HTTP/1.1).

    Example output: 'Sun, 26 Oct 2025 12:34:56 GMT'
    """
    return formatdate(timeval=None, localtime=False, usegmt=True)
