"""
Move name -> elemental type lookups.

A full composite can reference well over a hundred distinct moves, and every
one needs its own upstream call the first time. The resolver keeps that burst
polite with one process-wide semaphore, and remembers failures as well as
successes so a missing or flaky move never triggers a refetch storm.
"""

import asyncio
import logging
from typing import Dict, Iterable, Optional

from config.settings import MOVE_TYPE_MAX_CONCURRENT
from dexcore.circuit_breaker import CircuitBreakerError
from dexcore.constants import KEY_MOVE
from dexcore.errors import CatalogError
from dexcore.resolvers import SubResourceResolvers

logger = logging.getLogger("dexcore.move_types")


def normalize_move_name(move_name: str) -> str:
    """'Thunder Punch' and 'thunder-punch' share one cache slot."""
    return move_name.strip().lower().replace(" ", "-")


class MoveTypeResolver:
    """
    Bounded-concurrency, negatively-cached move type lookups.

    One instance is shared by every composite in the process; the semaphore
    bound therefore applies across all of them, not per request.
    """

    def __init__(
        self,
        resolvers: SubResourceResolvers,
        max_concurrent: int = MOVE_TYPE_MAX_CONCURRENT,
    ):
        self._resolvers = resolvers
        self._cache = resolvers.cache
        self._ttl = resolvers.ttl.lookup
        self._gate = asyncio.Semaphore(max_concurrent)
        self.max_concurrent = max_concurrent

    async def resolve_type(self, move_name: str) -> Optional[str]:
        """
        Look up the elemental type tag of a move.

        Args:
            move_name: Move name in any casing, hyphenated or spaced.

        Returns:
            The type tag ('fire'), or None if the move is unknown or the
            lookup failed. Both outcomes are cached.

        Raises:
            CircuitBreakerError: If the breaker rejected the lookup. Nothing
                is cached, so the move is looked up again once it closes.
        """
        if not move_name or not move_name.strip():
            return None

        slug = normalize_move_name(move_name)

        async def _fetch() -> Optional[str]:
            async with self._gate:
                try:
                    return await self._resolvers.move_type(slug)
                except CircuitBreakerError:
                    # Rejected without asking upstream; leave the slot uncached
                    raise
                except CatalogError as e:
                    logger.warning(
                        f"Move type lookup failed for {slug}, caching as unknown: {e}"
                    )
                    return None

        return await self._cache.get_or_compute(f"{KEY_MOVE}:{slug}", self._ttl, _fetch)

    async def resolve_many(self, move_names: Iterable[str]) -> Dict[str, Optional[str]]:
        """
        Resolve the distinct moves in ``move_names`` concurrently.

        Returns:
            Mapping from normalized move name to type tag (or None).
        """
        slugs = sorted({normalize_move_name(n) for n in move_names if n and n.strip()})
        types = await asyncio.gather(*(self.resolve_type(slug) for slug in slugs))
        return dict(zip(slugs, types))
