"""
In-process TTL cache with request coalescing.

``CoalescingTTLCache.get_or_compute`` is the single synchronization point
shared by every resolver: a live entry is returned as-is, and on a miss the
factory runs at most once per key no matter how many callers miss at the same
moment. The rest attach to the in-flight computation and receive the same
value or the same exception.

Expiry is lazy. An entry past its deadline is treated exactly as a miss the
next time it is read; nothing sweeps the store in the background.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypedDict

logger = logging.getLogger("dexcore.cache")


@dataclass(frozen=True)
class CacheEntry:
    """A stored value and its absolute expiry on the cache's clock."""

    key: str
    value: Any
    expires_at: float

    def is_live(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class TTLPolicy:
    """
    Time-to-live, in seconds, for each kind of cached resource.

    Attributes:
        detail: Entity detail records and composites built from them.
        lookup: Static reference data (abilities, species, lineage, moves,
            type listing, the full name list).
        list: Paged id lists and category membership lists.
        count: Aggregate counts.
    """

    detail: float
    lookup: float
    list: float
    count: float

    def validate(self) -> None:
        """
        Raises:
            ValueError: If any TTL is non-positive or the ordering
                list/count <= detail < lookup does not hold.
        """
        if min(self.detail, self.lookup, self.list, self.count) <= 0:
            raise ValueError("All TTLs must be positive")
        if not self.detail < self.lookup:
            raise ValueError("Detail TTL must be shorter than lookup TTL")
        if self.list > self.detail or self.count > self.detail:
            raise ValueError("List and count TTLs must not exceed detail TTL")


class CacheStats(TypedDict):
    """
    Represents cache statistics.

    Attributes:
        size: Number of stored entries, live or expired-but-unread.
        in_flight: Computations currently running.
        hits: Lookups served from a live entry.
        misses: Lookups that started a computation.
        coalesced: Lookups that attached to someone else's computation.
        hit_rate: Percentage string (e.g., '85.5%').
    """

    size: int
    in_flight: int
    hits: int
    misses: int
    coalesced: int
    hit_rate: str


class CoalescingTTLCache:
    """
    Get-or-compute store keyed by string.

    The factory runs in its own task and every caller, including the one that
    started it, awaits that task through ``asyncio.shield``. Cancelling a
    caller therefore only detaches that caller: the computation finishes and
    its result is still cached for whoever asks next.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}

        self.hits = 0
        self.misses = 0
        self.coalesced = 0

    async def get_or_compute(
        self,
        key: str,
        ttl: float,
        factory: Callable[[], Awaitable[Any]],
        ttl_for: Optional[Callable[[Any], Optional[float]]] = None,
    ) -> Any:
        """
        Return the cached value for ``key``, computing it if needed.

        Args:
            key: Cache key, unique per (resource kind, identifier, variant).
            ttl: Seconds the computed value stays live.
            factory: Zero-argument coroutine function producing the value.
            ttl_for: Optional hook called with the computed value; its result
                replaces ``ttl`` for that value. None means the value is
                handed to the waiting callers but not stored.

        Returns:
            The cached or freshly computed value (which may be None).

        Raises:
            Exception: Whatever the factory raised. Failures are not cached.
        """
        entry = self._entries.get(key)
        if entry is not None and entry.is_live(self._clock()):
            self.hits += 1
            logger.debug("Cache hit", extra={"cache_key": key[:50]})
            return entry.value

        # No await between the lookup and the registration below, so two
        # callers on the same loop can never both start a computation.
        task = self._in_flight.get(key)
        if task is None:
            self.misses += 1
            task = asyncio.create_task(self._compute(key, ttl, factory, ttl_for))
            self._in_flight[key] = task
            task.add_done_callback(lambda done, key=key: self._release(key, done))
            logger.debug("Cache miss, computing", extra={"cache_key": key[:50]})
        else:
            self.coalesced += 1
            logger.debug(
                "Coalescing onto in-flight computation", extra={"cache_key": key[:50]}
            )

        return await asyncio.shield(task)

    async def _compute(
        self,
        key: str,
        ttl: float,
        factory: Callable[[], Awaitable[Any]],
        ttl_for: Optional[Callable[[Any], Optional[float]]] = None,
    ) -> Any:
        value = await factory()
        if ttl_for is not None:
            ttl = ttl_for(value)
            if ttl is None:
                logger.debug("Computed value not stored", extra={"cache_key": key[:50]})
                return value
        self._entries[key] = CacheEntry(
            key=key, value=value, expires_at=self._clock() + ttl
        )
        return value

    def _release(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

        # Mark the exception retrieved: if every waiter was cancelled nobody
        # else will, and asyncio would log it as never retrieved.
        if not task.cancelled() and task.exception() is not None:
            logger.debug(
                "Computation failed, nothing cached",
                extra={"cache_key": key[:50], "error": repr(task.exception())},
            )

    def peek(self, key: str) -> Optional[Any]:
        """Return the live value for ``key`` without computing, or None."""
        entry = self._entries.get(key)
        if entry is not None and entry.is_live(self._clock()):
            return entry.value
        return None

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        """
        Drop every stored entry.

        In-flight computations are left alone so their waiters still get an
        answer; they will repopulate their keys when they finish.
        """
        self._entries.clear()
        self.hits = 0
        self.misses = 0
        self.coalesced = 0
        logger.info("Cache cleared")

    def purge_expired(self) -> int:
        """
        Remove entries that are past their expiry.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [k for k, e in self._entries.items() if not e.is_live(now)]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug("Purged expired cache entries", extra={"count": len(expired)})
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> CacheStats:
        lookups = self.hits + self.misses + self.coalesced
        hit_rate = (self.hits / lookups * 100) if lookups > 0 else 0

        return {
            "size": len(self._entries),
            "in_flight": len(self._in_flight),
            "hits": self.hits,
            "misses": self.misses,
            "coalesced": self.coalesced,
            "hit_rate": f"{hit_rate:.1f}%",
        }
