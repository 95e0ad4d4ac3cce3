"""
Paged collections of LITE composites.

A page is resolved in two steps: an ordered id (or name) list for the page
window, itself cache-backed, and then concurrent LITE hydration of every
entry through the aggregator. Hydration finishes in arbitrary order, so the
page is re-sorted by id before it is returned.
"""

import asyncio
import logging
import math
from typing import List, Sequence

from config.settings import DEFAULT_PAGE_SIZE
from dexcore.aggregator import Aggregator
from dexcore.api_models import CompositeEntry, Variant
from dexcore.errors import UpstreamUnavailableError
from dexcore.resolvers import SubResourceResolvers

logger = logging.getLogger("dexcore.paging")


def total_pages(total_count: int, page_size: int) -> int:
    """Number of pages needed for ``total_count`` items; never less than 1."""
    return max(1, math.ceil(max(0, total_count) / max(1, page_size)))


def clamp_page(page: int, page_size: int, total_count: int) -> int:
    """Clamp ``page`` into ``[1, total_pages(total_count, page_size)]``."""
    return min(max(1, page), total_pages(total_count, page_size))


class PagedCollectionBuilder:
    """Global and per-category paging over the aggregator's LITE composites."""

    def __init__(
        self,
        resolvers: SubResourceResolvers,
        aggregator: Aggregator,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self._resolvers = resolvers
        self._aggregator = aggregator
        self.default_page_size = default_page_size

    def _page_size(self, page_size: int) -> int:
        return page_size if page_size >= 1 else self.default_page_size

    async def page(self, page_number: int, page_size: int) -> List[CompositeEntry]:
        """
        One page of the global listing, ordered by id.

        Args:
            page_number: 1-based page; clamped into the valid range.
            page_size: Entries per page; values below 1 use the default.
        """
        page_size = self._page_size(page_size)

        try:
            total = await self._resolvers.total_count()
        except UpstreamUnavailableError as e:
            # Without a count only the lower bound can be enforced
            logger.warning(f"Total count unavailable, not clamping upper bound: {e}")
            page_number = max(1, page_number)
        else:
            page_number = clamp_page(page_number, page_size, total)

        try:
            ids = await self._resolvers.page_ids(page_number, page_size)
        except UpstreamUnavailableError as e:
            logger.warning(f"Page {page_number} id list unavailable: {e}")
            return []

        return await self.hydrate([str(entity_id) for entity_id in ids])

    async def page_by_category(
        self, category: str, page_number: int, page_size: int
    ) -> List[CompositeEntry]:
        """
        One page of a type's members, in the upstream membership order,
        hydrated and then ordered by id.
        """
        if not category or not category.strip():
            return []
        page_size = self._page_size(page_size)

        try:
            members = await self._resolvers.type_members(category)
        except UpstreamUnavailableError as e:
            logger.warning(f"Members of type {category} unavailable: {e}")
            return []

        page_number = clamp_page(page_number, page_size, len(members))
        start = (page_number - 1) * page_size
        return await self.hydrate(members[start : start + page_size])

    async def hydrate(self, identifiers: Sequence[str]) -> List[CompositeEntry]:
        """LITE composites for ``identifiers``, concurrently; absent ones dropped, sorted by id."""
        composites = await asyncio.gather(
            *(
                self._aggregator.get_composite(identifier, Variant.LITE)
                for identifier in identifiers
            )
        )
        return sorted((c for c in composites if c is not None), key=lambda c: c.id)
