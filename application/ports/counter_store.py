"""
Counter store port used by the buyer rate limiter.

Application depends on this Protocol; infrastructure provides the Redis and
in-process adapters.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class CounterStore(Protocol):
    """Fixed-window counters keyed by string.

    ``increment`` sets the TTL only when it creates the key, so a window is
    never extended by later increments.
    """

    async def get(self, key: str) -> Optional[int]: ...

    async def increment(self, key: str, ttl_seconds: int) -> int: ...

    async def ttl(self, key: str) -> Optional[int]: ...
