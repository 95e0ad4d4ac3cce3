"""
Catalog client: the read-only interface the presentation layer talks to.

This module wires the data-access layer together once per process:

    transport -> retry executor -> circuit breaker -> gateway
              -> coalescing TTL cache -> sub-resource resolvers
              -> move-type resolver / lineage walker -> aggregator
              -> paged collection builder

and exposes lookups, composites, paging, counts and name suggestions as
coroutines. Every operation is idempotent from the caller's point of view;
upstream trouble shows up as absent or smaller results, never as an
exception.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from config.settings import (
    BREAKER_FAILURE_THRESHOLD,
    BREAKER_RECOVERY_TIMEOUT,
    BREAKER_SUCCESS_THRESHOLD,
    CACHE_TTL_COUNT,
    CACHE_TTL_DETAIL,
    CACHE_TTL_LIST,
    CACHE_TTL_LOOKUP,
    DEFAULT_PAGE_SIZE,
    DEFAULT_SUGGESTION_LIMIT,
    DEFAULT_TYPE_LOOKUP_LIMIT,
    FLAVOR_TEXT_LIMIT,
    MOVE_TYPE_MAX_CONCURRENT,
)
from dexcore.aggregator import Aggregator
from dexcore.api_models import CompositeEntry, EntitySummary, Variant
from dexcore.circuit_breaker import BreakerStats, CircuitBreaker
from dexcore.constants import API_STARTUP_VALIDATION_TIMEOUT, FUZZY_MATCH_COUNT
from dexcore.errors import UpstreamUnavailableError
from dexcore.evolution import EvolutionChainWalker
from dexcore.matching import get_close_matches_async, prefix_matches
from dexcore.move_types import MoveTypeResolver
from dexcore.paging import PagedCollectionBuilder
from dexcore.resolvers import SubResourceResolvers, UpstreamGateway
from dexcore.retry import RetryExecutor
from dexcore.transport import AiohttpTransport
from dexcore.ttl_cache import CacheStats, CoalescingTTLCache, TTLPolicy
from dexcore.validators import normalize_identifier, validate_identifier

logger = logging.getLogger("dexcore.catalog")


def default_ttl_policy() -> TTLPolicy:
    return TTLPolicy(
        detail=CACHE_TTL_DETAIL,
        lookup=CACHE_TTL_LOOKUP,
        list=CACHE_TTL_LIST,
        count=CACHE_TTL_COUNT,
    )


class CatalogClient:
    """
    Read-only catalog access with caching, coalescing, retries and fan-out.

    Key Features:
    - **Coalescing TTL Cache**: Concurrent requests for the same resource
      share one upstream call; results expire per resource kind.
    - **Retries**: 429/5xx/connection failures are retried with backoff,
      jitter and Retry-After compliance.
    - **Circuit Breaker**: A hard-down upstream fails fast instead of
      stalling every request on backoff.
    - **Bounded Move Lookups**: At most a handful of move-type requests in
      flight process-wide.
    - **Partial Failure Tolerance**: Composites degrade field by field.
    """

    def __init__(
        self,
        transport=None,
        ttl_policy: Optional[TTLPolicy] = None,
        executor: Optional[RetryExecutor] = None,
        breaker: Optional[CircuitBreaker] = None,
        cache: Optional[CoalescingTTLCache] = None,
        move_type_concurrency: int = MOVE_TYPE_MAX_CONCURRENT,
        flavor_limit: int = FLAVOR_TEXT_LIMIT,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ):
        """
        Build the client and every service it depends on.

        Args:
            transport: Object with an async ``get(path)`` returning an
                UpstreamResponse. Defaults to a pooled aiohttp transport.
            ttl_policy: TTLs per resource kind; defaults from settings.
            executor: Retry executor; defaults to one over ``transport``.
            breaker: Circuit breaker; defaults from settings.
            cache: Shared cache; a fresh one by default.
            move_type_concurrency: Process-wide bound on move lookups.
            flavor_limit: Maximum flavor-text entries per composite.
            default_page_size: Page size used when a caller passes < 1.
        """
        self.transport = transport or AiohttpTransport()
        self.ttl_policy = ttl_policy or default_ttl_policy()
        self.ttl_policy.validate()

        self.executor = executor or RetryExecutor(self.transport)
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=BREAKER_FAILURE_THRESHOLD,
            recovery_timeout=BREAKER_RECOVERY_TIMEOUT,
            success_threshold=BREAKER_SUCCESS_THRESHOLD,
            name="pokeapi",
        )
        self.cache = cache or CoalescingTTLCache()

        self.resolvers = SubResourceResolvers(
            UpstreamGateway(self.executor, self.breaker),
            self.cache,
            self.ttl_policy,
            flavor_limit=flavor_limit,
        )
        self.move_types = MoveTypeResolver(self.resolvers, move_type_concurrency)
        self.walker = EvolutionChainWalker(self.resolvers)
        self.aggregator = Aggregator(self.resolvers, self.move_types, self.walker)
        self.pages = PagedCollectionBuilder(
            self.resolvers, self.aggregator, default_page_size
        )

    @staticmethod
    def _slug(id_or_name) -> Optional[str]:
        slug = normalize_identifier(id_or_name)
        is_valid, error = validate_identifier(slug)
        if not is_valid:
            logger.debug(f"Rejected identifier {id_or_name!r}: {error}")
            return None
        return slug

    # ---------------- Lookups ----------------

    async def lookup_by_name(self, name_or_id) -> Optional[EntitySummary]:
        """
        Id, display name, image and types for one entity.

        Returns:
            The summary, or None if the identifier is invalid or unknown.
        """
        slug = self._slug(name_or_id)
        if slug is None:
            return None
        return await self.aggregator.get_summary(slug)

    async def lookup_by_type(
        self, type_name: str, max_results: int = DEFAULT_TYPE_LOOKUP_LIMIT
    ) -> List[EntitySummary]:
        """
        Summaries of the first ``max_results`` members of a type, sorted by id.
        """
        type_slug = self._slug(type_name)
        if type_slug is None:
            return []

        try:
            members = await self.resolvers.type_members(type_slug)
        except UpstreamUnavailableError as e:
            logger.warning(f"Members of type {type_slug} unavailable: {e}")
            return []

        selected = members[: max(1, max_results)]
        summaries = await asyncio.gather(
            *(self.aggregator.get_summary(name) for name in selected)
        )
        return sorted((s for s in summaries if s is not None), key=lambda s: s.id)

    async def get_composite(
        self, id_or_name, variant: Variant = Variant.FULL
    ) -> Optional[CompositeEntry]:
        """
        The aggregated record for one entity.

        Args:
            id_or_name: Catalog id or name in any casing.
            variant: FULL (with move types) or LITE.
        """
        slug = self._slug(id_or_name)
        if slug is None:
            return None
        return await self.aggregator.get_composite(slug, Variant(variant))

    # ---------------- Paging ----------------

    async def get_page(self, page: int, page_size: int = DEFAULT_PAGE_SIZE) -> List[CompositeEntry]:
        return await self.pages.page(page, page_size)

    async def get_page_by_category(
        self, type_name: str, page: int, page_size: int = DEFAULT_PAGE_SIZE
    ) -> List[CompositeEntry]:
        type_slug = self._slug(type_name)
        if type_slug is None:
            return []
        return await self.pages.page_by_category(type_slug, page, page_size)

    async def get_total_count(self) -> int:
        """Total number of entities in the catalog; 0 if it cannot be determined."""
        try:
            return await self.resolvers.total_count()
        except UpstreamUnavailableError as e:
            logger.warning(f"Total count unavailable: {e}")
            return 0

    async def get_category_count(self, type_name: str) -> int:
        """Number of members of a type, from the same list category paging uses."""
        type_slug = self._slug(type_name)
        if type_slug is None:
            return 0
        try:
            return len(await self.resolvers.type_members(type_slug))
        except UpstreamUnavailableError as e:
            logger.warning(f"Members of type {type_slug} unavailable: {e}")
            return 0

    async def get_category_list(self) -> List[str]:
        """Every real elemental type, display-cased and sorted."""
        try:
            return list(await self.resolvers.type_listing())
        except UpstreamUnavailableError as e:
            logger.warning(f"Type listing unavailable: {e}")
            return []

    # ---------------- Suggestions ----------------

    async def _all_names(self) -> List[str]:
        try:
            return await self.resolvers.all_names()
        except UpstreamUnavailableError as e:
            logger.warning(f"Name list unavailable: {e}")
            return []

    async def suggest_names(
        self, prefix: str, max_results: int = DEFAULT_SUGGESTION_LIMIT
    ) -> List[str]:
        """Autocomplete: names starting with ``prefix``, capitalized."""
        if not prefix or not prefix.strip():
            return []
        return prefix_matches(prefix, await self._all_names(), max_results)

    async def closest_names(self, term: str, n: int = FUZZY_MATCH_COUNT) -> List[str]:
        """'Did you mean' candidates for a name that did not resolve."""
        if not term or not term.strip():
            return []
        return await get_close_matches_async(term, await self._all_names(), n=n)

    # ---------------- Operations ----------------

    async def validate_api_connectivity(self) -> bool:
        """
        Check once on startup that the catalog answers.

        Returns:
            True if the catalog answered with a success status.
        """
        logger.info("Validating API connectivity")
        try:
            async with asyncio.timeout(API_STARTUP_VALIDATION_TIMEOUT):
                response = await self.transport.get("pokemon/1")
        except asyncio.TimeoutError:
            logger.error(
                "API connection timed out",
                extra={"timeout_seconds": API_STARTUP_VALIDATION_TIMEOUT},
            )
            return False
        except Exception as e:
            logger.error(f"❌ API validation failed: {e}", exc_info=True)
            return False

        if response.ok:
            logger.info("✅ Catalog API is reachable")
            return True

        logger.warning(f"⚠️ Catalog API returned status {response.status}")
        return False

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_cache_stats(self) -> CacheStats:
        return self.cache.get_stats()

    def get_circuit_breaker_stats(self) -> Dict[str, BreakerStats]:
        return {"pokeapi": self.breaker.get_stats()}

    async def close(self) -> None:
        """Release the transport and log final cache statistics."""
        close = getattr(self.transport, "close", None)
        if close is not None:
            await close()
        logger.info("Catalog client closed", extra=dict(self.cache.get_stats()))
