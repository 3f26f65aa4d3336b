from __future__ import annotations

from typing import Optional

import msgpack
from typing_extensions import cast

from kayakcache._core._headers import Headers
from kayakcache._core.models import CacheEntry


def pack(value: CacheEntry, /) -> bytes:
    return cast(
        bytes,
        msgpack.packb(
            {
                "status_code": value.status_code,
                "headers": value.headers._headers,
                "body": value.body,
                "tier": value.tier,
                "created_at": value.created_at,
            }
        ),
    )


def unpack(value: Optional[bytes], /) -> Optional[CacheEntry]:
    if value is None:
        return None
    data = msgpack.unpackb(value)
    return CacheEntry(
        status_code=data["status_code"],
        headers=Headers(data["headers"]),
        body=data["body"],
        tier=data["tier"],
        created_at=data["created_at"],
    )
