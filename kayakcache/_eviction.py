from __future__ import annotations

import logging
import typing as tp
from dataclasses import dataclass, field

from kayakcache._config import ClientConfig
from kayakcache._core._storages._base import AsyncBaseStorage
from kayakcache._core.models import CacheEntry
from kayakcache._utils import now_millis

logger = logging.getLogger("kayakcache.lifecycle")


@dataclass
class SweepResult:
    expired_entries: int = 0
    deleted_tables: tp.List[str] = field(default_factory=list)


def stored_timestamp(entry: CacheEntry, header: str) -> tp.Optional[int]:
    """
    Read the millisecond epoch a dynamic entry was stored at.

    Returns None when the header is missing or is not an integer.
    """
    values = entry.headers.get_list(header)
    if not values:
        return None
    try:
        return int(values[0].strip())
    except ValueError:
        return None


async def evict_expired_entries(
    storage: AsyncBaseStorage,
    config: ClientConfig,
    now: tp.Optional[int] = None,
) -> int:
    """
    Delete dynamic entries older than `config.dynamic_ttl`.

    Entries without a readable timestamp are kept.

    Returns:
        The number of deleted entries.
    """
    now_ms = now if now is not None else now_millis()
    ttl_ms = config.dynamic_ttl * 1000
    table = await storage.open(config.dynamic_cache_name)

    removed = 0
    for identity in await table.keys():
        entry = await table.get(identity)
        if entry is None:
            continue

        timestamp = stored_timestamp(entry, config.timestamp_header)
        if timestamp is None:
            logger.debug("No usable timestamp on %s, keeping it", identity)
            continue

        if now_ms - timestamp > ttl_ms:
            if await table.delete(identity):
                removed += 1
                logger.debug("Evicted expired dynamic entry %s", identity)
    return removed


async def delete_stale_tables(storage: AsyncBaseStorage, config: ClientConfig) -> tp.List[str]:
    """
    Delete every table other than the active static table and the dynamic table.

    Returns:
        Names of the deleted tables.
    """
    keep = {config.static_cache_name, config.dynamic_cache_name}
    deleted = []
    for name in await storage.keys():
        if name in keep:
            continue
        if await storage.delete(name):
            deleted.append(name)
            logger.info("Deleted stale cache table %s", name)
    return deleted


async def sweep(storage: AsyncBaseStorage, config: ClientConfig, now: tp.Optional[int] = None) -> SweepResult:
    expired = await evict_expired_entries(storage, config, now=now)
    deleted = await delete_stale_tables(storage, config)
    return SweepResult(expired_entries=expired, deleted_tables=deleted)
