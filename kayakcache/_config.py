from __future__ import annotations

import typing as tp
from dataclasses import dataclass, field

from kayakcache._utils import generate_version_stamp

__all__ = (
    "ClientConfig",
    "EdgeConfig",
    "SHELL_ASSETS",
    "IGNORED_PATHS",
    "IGNORED_URLS",
    "DYNAMIC_TTL",
    "SHARED_TTL",
)

SHELL_ASSETS: tp.Tuple[str, ...] = (
    "/",
    "/apple-touch-icon.png",
    "/favicon.ico",
    "/index.html",
    "/kayaknav.svg",
    "/kayaknav-192.png",
    "/kayaknav-512.png",
    "/pkg/kayaknav.js",
    "/pkg/kayaknav_bg.wasm",
)
"""Paths of the application shell, fetched at install time into the static table."""

IGNORED_PATHS: tp.FrozenSet[str] = frozenset(
    [
        "/sw.js",
        "/manifest.webmanifest",
    ]
)

IGNORED_URLS: tp.FrozenSet[str] = frozenset(
    [
        "https://static.cloudflareinsights.com/beacon.min.js",
    ]
)

# 30 days
DYNAMIC_TTL = 30 * 24 * 3600
SHARED_TTL = 30 * 24 * 3600


@dataclass
class ClientConfig:
    """
    Configuration of one deployed application version.

    Args:
        origin: Origin the application is served from, e.g. "https://kayaknav.com".
        version: Build version stamp embedded in the static table name.
        shell_assets: Paths fetched at install time and stored in the static table.
        ignored_paths: Same-origin paths that are never cached.
        ignored_urls: Absolute URLs that are never cached.
        static_cache_template: Template of the static table name, `{version}` is substituted.
        dynamic_cache_name: Name of the dynamic table, shared by every version.
        dynamic_ttl: Seconds a dynamic entry survives the activation sweep.
        timestamp_header: Header holding the millisecond epoch at which a dynamic entry was stored.
        skip_waiting_message: Message that asks a waiting version to activate.
    """

    origin: str
    version: str = field(default_factory=generate_version_stamp)
    shell_assets: tp.Tuple[str, ...] = SHELL_ASSETS
    ignored_paths: tp.FrozenSet[str] = IGNORED_PATHS
    ignored_urls: tp.FrozenSet[str] = IGNORED_URLS
    static_cache_template: str = "kayaknav-v{version}"
    dynamic_cache_name: str = "kayaknav-dynamic"
    dynamic_ttl: float = DYNAMIC_TTL
    timestamp_header: str = "x-sw-cache-timestamp"
    skip_waiting_message: str = "skipWaiting"

    @property
    def static_cache_name(self) -> str:
        return self.static_cache_template.format(version=self.version)

    def asset_urls(self) -> tp.List[str]:
        base = self.origin.rstrip("/")
        return [base + path for path in self.shell_assets]


@dataclass
class EdgeConfig:
    """
    Configuration of the edge proxy.

    Args:
        query_param: Query parameter carrying the percent-encoded upstream URL.
        allowed_methods: Methods the proxy accepts, anything else gets a 405.
        cacheable_methods: Methods whose successful responses are stored.
        preflight_max_age: Seconds browsers may cache a preflight answer.
        shared_ttl: Seconds a stored upstream response stays fresh, sent as `s-maxage`.
        table_name: Name of the shared cache table.
    """

    query_param: str = "apiurl"
    allowed_methods: tp.Tuple[str, ...] = ("GET", "HEAD", "POST", "OPTIONS")
    cacheable_methods: tp.FrozenSet[str] = frozenset(["GET", "HEAD"])
    preflight_max_age: int = 86400
    shared_ttl: int = SHARED_TTL
    table_name: str = "kayaknav-edge"
