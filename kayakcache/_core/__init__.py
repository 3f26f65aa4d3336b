from kayakcache._core._headers import Headers as Headers
from kayakcache._core._storages._base import (
    AsyncBaseStorage as AsyncBaseStorage,
    CacheTable as CacheTable,
)
from kayakcache._core._storages._memory import AsyncInMemoryStorage as AsyncInMemoryStorage
from kayakcache._core._storages._sqlite import AsyncSqliteStorage as AsyncSqliteStorage
from kayakcache._core.models import (
    CacheEntry as CacheEntry,
    Request as Request,
    RequestIdentity as RequestIdentity,
    RequestMetadata as RequestMetadata,
    Response as Response,
    ResponseMetadata as ResponseMetadata,
    Tier as Tier,
)

__all__ = (
    ## Models
    "Request",
    "Response",
    "RequestIdentity",
    "RequestMetadata",
    "ResponseMetadata",
    "CacheEntry",
    "Tier",
    ## Headers
    "Headers",
    ## Storages
    "AsyncBaseStorage",
    "CacheTable",
    "AsyncInMemoryStorage",
    "AsyncSqliteStorage",
)
