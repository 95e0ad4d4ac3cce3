"""Lineage chain traversal."""

import logging
from typing import List, Optional, Set, Tuple

from dexcore.api_models import EntitySummary
from dexcore.constants import KEY_LINEAGE
from dexcore.errors import UpstreamUnavailableError
from dexcore.helpers import artwork_url_for_id, capitalize
from dexcore.resolvers import SubResourceResolvers
from dexcore.schemas import ChainNode

logger = logging.getLogger("dexcore.evolution")


def flatten_chain(root: ChainNode) -> Tuple[EntitySummary, ...]:
    """
    Flatten a branching lineage tree into an ordered, deduplicated list.

    Nodes are visited depth-first in document order (a node, then each of its
    children in listed order). A species reached by more than one branch is
    kept once, at its first visit; nodes without a parseable id are skipped
    but their children are still visited.

    Args:
        root: Root node of the chain.

    Returns:
        Lineage stages with id, display name and derived artwork URL.
    """
    line: List[EntitySummary] = []
    seen: Set[int] = set()

    def _visit(node: ChainNode) -> None:
        if node.species_id > 0 and node.species_id not in seen:
            seen.add(node.species_id)
            line.append(
                EntitySummary(
                    id=node.species_id,
                    name=capitalize(node.name) or "",
                    image_url=artwork_url_for_id(node.species_id),
                )
            )
        for child in node.children:
            _visit(child)

    _visit(root)
    return tuple(line)


class EvolutionChainWalker:
    """Resolves an entity's lineage: species -> chain id -> chain -> flat list."""

    def __init__(self, resolvers: SubResourceResolvers):
        self._resolvers = resolvers

    async def lineage(
        self, entity_id: int, species_id: Optional[int] = None
    ) -> Tuple[EntitySummary, ...]:
        """
        Return the lineage containing ``entity_id``.

        The whole lineage is cached under the entity id. A species without a
        chain reference, or an unknown chain, yields an empty lineage (and is
        cached as such).

        Args:
            entity_id: Entity whose lineage is wanted.
            species_id: Species id from the entity detail, if known. Alternate
                forms have entity ids that are not species ids.

        Raises:
            UpstreamUnavailableError: If the species or chain could not be
                fetched. Nothing is cached.
        """
        species_id = species_id or entity_id

        async def _build() -> Tuple[EntitySummary, ...]:
            species = await self._resolvers.species(species_id)
            if species is None or not species.chain_id:
                return ()

            root = await self._resolvers.chain(species.chain_id)
            if root is None:
                return ()

            line = flatten_chain(root)
            logger.debug(
                "Built lineage",
                extra={"entity_id": entity_id, "stages": len(line)},
            )
            return line

        return await self._resolvers.cache.get_or_compute(
            f"{KEY_LINEAGE}:{entity_id}", self._resolvers.ttl.lookup, _build
        )

    async def walk(
        self, entity_id: int, species_id: Optional[int] = None
    ) -> Tuple[EntitySummary, ...]:
        """Like ``lineage``, but an upstream outage yields an empty, uncached lineage."""
        try:
            return await self.lineage(entity_id, species_id)
        except UpstreamUnavailableError as e:
            logger.warning(f"Lineage unavailable for entity {entity_id}: {e}")
            return ()
