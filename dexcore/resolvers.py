"""
Typed, cache-backed fetchers for each upstream resource kind.

``UpstreamGateway`` turns a resource path into a JSON payload (or None for a
definitive absence), running the fetch through the circuit breaker and the
retry executor. ``SubResourceResolvers`` puts each resource kind behind the
coalescing cache with its own key scheme and TTL class.

Result semantics shared by every resolver:
- Found: the decoded record, cached.
- Not found (404, other non-retriable status, or a payload missing its
  identity fields): None, cached, so unknown ids are not re-fetched.
- Upstream unavailable: ``UpstreamUnavailableError`` raised, nothing cached.
"""

import logging
from typing import Any, List, Optional

from dexcore.api_models import AbilityDefinition
from dexcore.circuit_breaker import CircuitBreaker
from dexcore.constants import (
    ALL_NAMES_PAGE_LIMIT,
    KEY_ABILITY,
    KEY_ALL_NAMES,
    KEY_CHAIN,
    KEY_COUNT,
    KEY_PAGE_IDS,
    KEY_POKEMON,
    KEY_SPECIES,
    KEY_TYPE_MEMBERS,
    KEY_TYPES,
    PATH_ABILITY,
    PATH_EVOLUTION_CHAIN,
    PATH_MOVE,
    PATH_POKEMON,
    PATH_SPECIES,
    PATH_TYPE,
    STATUS_NOT_FOUND,
)
from dexcore.errors import MalformedPayloadError, UpstreamUnavailableError
from dexcore.retry import TRANSIENT_EXCEPTIONS, RetryExecutor, is_retriable_status
from dexcore.schemas import (
    ChainNode,
    EntityDetail,
    IdPage,
    SpeciesInfo,
    decode_ability,
    decode_chain,
    decode_count,
    decode_entity_detail,
    decode_id_page,
    decode_move_type,
    decode_name_listing,
    decode_species,
    decode_type_listing,
    decode_type_members,
)
from dexcore.ttl_cache import CoalescingTTLCache, TTLPolicy

logger = logging.getLogger("dexcore.resolvers")


class UpstreamGateway:
    """Fetches one resource path as JSON, classifying the outcome."""

    def __init__(self, executor: RetryExecutor, breaker: CircuitBreaker):
        self._executor = executor
        self._breaker = breaker

    async def fetch_json(self, path: str) -> Optional[Any]:
        """
        Fetch ``path`` and return its decoded JSON body.

        Returns:
            The payload on success, or None if the upstream definitively has
            no such resource.

        Raises:
            UpstreamUnavailableError: If retries were exhausted, the transport
                failed on the last attempt, or the circuit is open.
        """
        try:
            return await self._breaker.call(self._fetch, path)
        except TRANSIENT_EXCEPTIONS as e:
            # Transport failure on the final attempt
            raise UpstreamUnavailableError(
                f"Upstream request failed for {path}: {e!r}", path=path
            ) from e

    async def _fetch(self, path: str) -> Optional[Any]:
        response = await self._executor.fetch_with_retry(path)

        if response.ok:
            return response.payload

        if is_retriable_status(response.status):
            raise UpstreamUnavailableError(
                f"Upstream returned {response.status} for {path} after retries",
                path=path,
                status=response.status,
            )

        if response.status != STATUS_NOT_FOUND:
            logger.warning(
                "Non-retriable upstream status treated as absent",
                extra={"path": path, "status_code": response.status},
            )
        else:
            logger.debug(f"Resource {path} not found (404)")
        return None


class SubResourceResolvers:
    """
    One cache-backed fetcher per upstream resource kind.

    Identifiers passed in are expected to be normalized already (lower-case
    slugs or numeric ids); the cache key embeds them verbatim.
    """

    def __init__(
        self,
        gateway: UpstreamGateway,
        cache: CoalescingTTLCache,
        ttl: TTLPolicy,
        flavor_limit: int = 40,
    ):
        self._gateway = gateway
        self.cache = cache
        self.ttl = ttl
        self.flavor_limit = flavor_limit

    async def entity(self, slug: str) -> Optional[EntityDetail]:
        """Entity detail by id or name tag."""

        async def _fetch() -> Optional[EntityDetail]:
            payload = await self._gateway.fetch_json(f"{PATH_POKEMON}/{slug}")
            if payload is None:
                return None
            try:
                return decode_entity_detail(payload)
            except MalformedPayloadError as e:
                logger.warning(f"Discarding entity {slug}: {e}")
                return None

        return await self.cache.get_or_compute(
            f"{KEY_POKEMON}:{slug}", self.ttl.detail, _fetch
        )

    async def ability(self, display_name: str) -> Optional[AbilityDefinition]:
        """Ability definition by display name ('Static', 'Lightning rod')."""
        slug = display_name.strip().lower().replace(" ", "-")

        async def _fetch() -> Optional[AbilityDefinition]:
            payload = await self._gateway.fetch_json(f"{PATH_ABILITY}/{slug}")
            if payload is None:
                return None
            try:
                return decode_ability(payload, fallback_name=display_name)
            except MalformedPayloadError as e:
                logger.warning(f"Discarding ability {slug}: {e}")
                return None

        return await self.cache.get_or_compute(
            f"{KEY_ABILITY}:{slug}", self.ttl.lookup, _fetch
        )

    async def species(self, species_id: int) -> Optional[SpeciesInfo]:
        """Species flavor text and lineage reference; shared by text and lineage lookups."""

        async def _fetch() -> Optional[SpeciesInfo]:
            payload = await self._gateway.fetch_json(f"{PATH_SPECIES}/{species_id}")
            if payload is None:
                return None
            try:
                return decode_species(payload, self.flavor_limit)
            except MalformedPayloadError as e:
                logger.warning(f"Discarding species {species_id}: {e}")
                return None

        return await self.cache.get_or_compute(
            f"{KEY_SPECIES}:{species_id}", self.ttl.lookup, _fetch
        )

    async def chain(self, chain_id: int) -> Optional[ChainNode]:
        """Root node of a lineage chain."""

        async def _fetch() -> Optional[ChainNode]:
            payload = await self._gateway.fetch_json(
                f"{PATH_EVOLUTION_CHAIN}/{chain_id}"
            )
            if payload is None:
                return None
            try:
                return decode_chain(payload)
            except MalformedPayloadError as e:
                logger.warning(f"Discarding lineage chain {chain_id}: {e}")
                return None

        return await self.cache.get_or_compute(
            f"{KEY_CHAIN}:{chain_id}", self.ttl.lookup, _fetch
        )

    async def move_type(self, slug: str) -> Optional[str]:
        """
        Elemental type tag of a move. Uncached at this level: the move-type
        resolver owns caching (including negative results) for moves.
        """
        payload = await self._gateway.fetch_json(f"{PATH_MOVE}/{slug}")
        if payload is None:
            return None
        return decode_move_type(payload)

    async def type_listing(self) -> List[str]:
        """Every real elemental type, display-cased and sorted."""

        async def _fetch() -> List[str]:
            payload = await self._gateway.fetch_json(PATH_TYPE)
            return decode_type_listing(payload) if payload is not None else []

        return await self.cache.get_or_compute(KEY_TYPES, self.ttl.lookup, _fetch)

    async def type_members(self, type_name: str) -> List[str]:
        """Member name tags of a type, in upstream order; [] for an unknown type."""
        type_slug = type_name.strip().lower()

        async def _fetch() -> List[str]:
            payload = await self._gateway.fetch_json(f"{PATH_TYPE}/{type_slug}")
            return decode_type_members(payload) if payload is not None else []

        return await self.cache.get_or_compute(
            f"{KEY_TYPE_MEMBERS}:{type_slug}", self.ttl.list, _fetch
        )

    async def page_ids(self, page: int, page_size: int) -> List[int]:
        """Entity ids for one page of the global listing, by ascending offset."""
        offset = (page - 1) * page_size

        async def _fetch() -> List[int]:
            payload = await self._gateway.fetch_json(
                f"{PATH_POKEMON}?limit={page_size}&offset={offset}"
            )
            if payload is None:
                return []
            page_data: IdPage = decode_id_page(payload)
            return list(page_data.ids)

        return await self.cache.get_or_compute(
            f"{KEY_PAGE_IDS}:{page}:{page_size}", self.ttl.list, _fetch
        )

    async def total_count(self) -> int:
        async def _fetch() -> int:
            payload = await self._gateway.fetch_json(f"{PATH_POKEMON}?limit=1&offset=0")
            if payload is None:
                return 0
            try:
                count = decode_count(payload)
            except MalformedPayloadError as e:
                logger.warning(f"Entity listing has no count: {e}")
                return 0
            logger.info(f"Catalog reports {count} entities")
            return count

        return await self.cache.get_or_compute(KEY_COUNT, self.ttl.count, _fetch)

    async def all_names(self) -> List[str]:
        """
        Every entity name tag, sorted ordinally.

        Cached with the lookup TTL since the list changes infrequently.
        """

        async def _fetch() -> List[str]:
            payload = await self._gateway.fetch_json(
                f"{PATH_POKEMON}?limit={ALL_NAMES_PAGE_LIMIT}&offset=0"
            )
            names = decode_name_listing(payload) if payload is not None else []
            logger.info(f"Cached {len(names)} entity names for suggestions")
            return names

        return await self.cache.get_or_compute(KEY_ALL_NAMES, self.ttl.lookup, _fetch)
