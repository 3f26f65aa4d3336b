from __future__ import annotations

import abc
import enum
import typing as t
from dataclasses import dataclass, field

from kayakcache._config import IGNORED_PATHS, IGNORED_URLS, SHELL_ASSETS, ClientConfig, EdgeConfig
from kayakcache._core.models import RequestIdentity
from kayakcache._utils import url_origin, url_path


class Partition(enum.Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"
    IGNORED = "ignored"
    EDGE_ELIGIBLE = "edge_eligible"


class PartitionPolicy(abc.ABC):
    """Decides where, if anywhere, the response to a request is cached."""

    @abc.abstractmethod
    def classify(self, identity: RequestIdentity) -> Partition:
        pass


@dataclass(frozen=True)
class ClientPartitionPolicy(PartitionPolicy):
    """
    Partitioning used by the client cache.

    Only GET requests are cached. Path rules compare the URL path exactly and,
    when `origin` is set, only apply to URLs of that origin. Ignored URLs are
    compared against the whole URL.
    """

    shell_assets: t.FrozenSet[str] = frozenset(SHELL_ASSETS)
    ignored_paths: t.FrozenSet[str] = IGNORED_PATHS
    ignored_urls: t.FrozenSet[str] = IGNORED_URLS
    origin: t.Optional[str] = None

    @classmethod
    def from_config(cls, config: ClientConfig) -> "ClientPartitionPolicy":
        return cls(
            shell_assets=frozenset(config.shell_assets),
            ignored_paths=frozenset(config.ignored_paths),
            ignored_urls=frozenset(config.ignored_urls),
            origin=url_origin(config.origin),
        )

    def classify(self, identity: RequestIdentity) -> Partition:
        if identity.method != "GET" or identity.url in self.ignored_urls:
            return Partition.IGNORED

        if self.origin is not None and url_origin(identity.url) != self.origin:
            return Partition.DYNAMIC

        path = url_path(identity.url)
        if path in self.ignored_paths:
            return Partition.IGNORED
        if path in self.shell_assets:
            return Partition.STATIC
        return Partition.DYNAMIC


@dataclass(frozen=True)
class EdgePartitionPolicy(PartitionPolicy):
    """
    Partitioning used by the edge proxy.

    Every forwarded request is eligible unless its method cannot be keyed by
    method and URL alone (a POST body is not part of the key).
    """

    cacheable_methods: t.FrozenSet[str] = field(default_factory=lambda: frozenset(["GET", "HEAD"]))

    @classmethod
    def from_config(cls, config: EdgeConfig) -> "EdgePartitionPolicy":
        return cls(cacheable_methods=frozenset(config.cacheable_methods))

    def classify(self, identity: RequestIdentity) -> Partition:
        if identity.method in self.cacheable_methods:
            return Partition.EDGE_ELIGIBLE
        return Partition.IGNORED
