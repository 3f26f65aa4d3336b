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
from kayakcache._config import (
    DYNAMIC_TTL as DYNAMIC_TTL,
    IGNORED_PATHS as IGNORED_PATHS,
    IGNORED_URLS as IGNORED_URLS,
    SHARED_TTL as SHARED_TTL,
    SHELL_ASSETS as SHELL_ASSETS,
    ClientConfig as ClientConfig,
    EdgeConfig as EdgeConfig,
)
from kayakcache._policies import (
    ClientPartitionPolicy as ClientPartitionPolicy,
    EdgePartitionPolicy as EdgePartitionPolicy,
    Partition as Partition,
    PartitionPolicy as PartitionPolicy,
)
from kayakcache._events import (
    ActivateEvent as ActivateEvent,
    ExtendableEvent as ExtendableEvent,
    FetchEvent as FetchEvent,
    InstallEvent as InstallEvent,
    MessageEvent as MessageEvent,
)
from kayakcache._client import AsyncCacheOrchestrator as AsyncCacheOrchestrator, is_navigation as is_navigation
from kayakcache._eviction import (
    SweepResult as SweepResult,
    delete_stale_tables as delete_stale_tables,
    evict_expired_entries as evict_expired_entries,
    sweep as sweep,
)
from kayakcache._worker import ServiceWorker as ServiceWorker, WorkerState as WorkerState
from kayakcache._lifecycle import ClientRegistry as ClientRegistry, LifecycleManager as LifecycleManager
from kayakcache._edge import ApiProxy as ApiProxy, EdgeProxy as EdgeProxy
from kayakcache._exceptions import (
    EdgeRequestError as EdgeRequestError,
    InstallFailure as InstallFailure,
    InvalidTarget as InvalidTarget,
    KayakCacheError as KayakCacheError,
    UnsupportedMethod as UnsupportedMethod,
)
from kayakcache._mock import MockRequestSender as MockRequestSender
from kayakcache._utils import generate_version_stamp as generate_version_stamp

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
    ## Configuration
    "ClientConfig",
    "EdgeConfig",
    "SHELL_ASSETS",
    "IGNORED_PATHS",
    "IGNORED_URLS",
    "DYNAMIC_TTL",
    "SHARED_TTL",
    "generate_version_stamp",
    ## Policies
    "Partition",
    "PartitionPolicy",
    "ClientPartitionPolicy",
    "EdgePartitionPolicy",
    ## Events
    "ExtendableEvent",
    "InstallEvent",
    "ActivateEvent",
    "FetchEvent",
    "MessageEvent",
    # Client
    "AsyncCacheOrchestrator",
    "is_navigation",
    "ServiceWorker",
    "WorkerState",
    "LifecycleManager",
    "ClientRegistry",
    "SweepResult",
    "sweep",
    "evict_expired_entries",
    "delete_stale_tables",
    # Edge
    "EdgeProxy",
    "ApiProxy",
    # Exceptions
    "KayakCacheError",
    "InstallFailure",
    "EdgeRequestError",
    "UnsupportedMethod",
    "InvalidTarget",
    # Testing
    "MockRequestSender",
)
