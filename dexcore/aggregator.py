"""
Composite record assembly.

``Aggregator.get_composite`` is where the fan-out happens. The base entity
record is fetched first; it is the only sub-fetch whose failure is fatal.
Ability definitions, species flavor text, the lineage and (for FULL
composites) per-move types are then fetched concurrently and folded into one
immutable ``CompositeEntry``. A failed branch leaves its portion empty, and
the composite it belongs to is not cached.
"""

import asyncio
import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from dexcore.api_models import (
    AbilityDefinition,
    CompositeEntry,
    EntitySummary,
    FlavorTextEntry,
    MoveLearnRow,
    Variant,
)
from dexcore.constants import KEY_COMPOSITE, LEVEL_UP_METHOD
from dexcore.errors import UpstreamUnavailableError
from dexcore.evolution import EvolutionChainWalker
from dexcore.helpers import move_display_name
from dexcore.move_types import MoveTypeResolver, normalize_move_name
from dexcore.resolvers import SubResourceResolvers
from dexcore.schemas import EntityDetail, MoveEntry

logger = logging.getLogger("dexcore.aggregator")


def move_sort_key(row: MoveLearnRow) -> Tuple:
    """
    Display order for the move table: level-up moves first, by ascending
    level with non-leveled rows last, then by move name.
    """
    return (
        0 if row.method == LEVEL_UP_METHOD else 1,
        row.level if row.level > 0 else math.inf,
        row.move_name,
        row.version_group,
    )


def build_move_rows(
    moves: Sequence[MoveEntry], move_types: Optional[Dict[str, Optional[str]]] = None
) -> Tuple[MoveLearnRow, ...]:
    """
    Expand move entries into one row per (move, version group), sorted.

    Args:
        moves: Move entries from the entity detail.
        move_types: Normalized move name -> type tag. None leaves every row
            untyped (LITE composites).
    """
    rows: List[MoveLearnRow] = []
    for move in moves:
        move_type = None
        if move_types is not None:
            move_type = move_types.get(normalize_move_name(move.slug))

        for detail in move.details:
            rows.append(
                MoveLearnRow(
                    move_name=move_display_name(move.slug),
                    level=detail.level,
                    method=detail.method,
                    version_group=detail.version_group,
                    move_type=move_type,
                )
            )

    rows.sort(key=move_sort_key)
    return tuple(rows)


class Aggregator:
    """Builds and caches composite records, one cache entry per variant."""

    def __init__(
        self,
        resolvers: SubResourceResolvers,
        move_types: MoveTypeResolver,
        walker: EvolutionChainWalker,
    ):
        self._resolvers = resolvers
        self._move_types = move_types
        self._walker = walker

    async def get_composite(
        self, id_or_name: str, variant: Variant = Variant.FULL
    ) -> Optional[CompositeEntry]:
        """
        Fetch the composite record for an entity.

        Composites are keyed by the resolved entity id, so a name and its
        numeric id share one entry. A composite with a degraded branch is
        returned but not stored; the next request assembles it again.

        Args:
            id_or_name: Normalized slug or numeric id.
            variant: FULL resolves per-move types; LITE skips that fan-out.
                The two are cached under distinct keys.

        Returns:
            The composite, or None if the base record is unknown or the
            upstream is unavailable for it.
        """
        variant = Variant(variant)
        slug = str(id_or_name).strip().lower()
        if not slug:
            return None

        try:
            detail = await self._resolvers.entity(slug)
        except UpstreamUnavailableError as e:
            logger.warning(
                f"Base record unavailable for {slug}: {e}",
                extra={"entity": slug, "variant": variant.value},
            )
            return None
        if detail is None:
            return None

        complete = True

        async def _build() -> CompositeEntry:
            nonlocal complete
            composite, complete = await self._assemble(detail, variant)
            return composite

        ttl = self._resolvers.ttl.detail
        return await self._resolvers.cache.get_or_compute(
            f"{KEY_COMPOSITE}:{detail.id}:{variant.value}",
            ttl,
            _build,
            ttl_for=lambda _: ttl if complete else None,
        )

    async def _assemble(
        self, detail: EntityDetail, variant: Variant
    ) -> Tuple[CompositeEntry, bool]:
        """Returns the composite and whether every branch came back whole."""
        branches = {
            "ability_details": self._ability_definitions(detail.abilities),
            "flavor_entries": self._flavor_entries(detail),
            "evolution_line": self._walker.lineage(detail.id, detail.species_id),
        }
        if variant == Variant.FULL:
            branches["move_types"] = self._move_types.resolve_many(
                move.slug for move in detail.moves
            )

        # Fan out, then fan in: every branch settles before any is consumed
        settled = await asyncio.gather(*branches.values(), return_exceptions=True)

        complete = True
        results = {}
        for name, outcome in zip(branches, settled):
            if isinstance(outcome, Exception):
                logger.warning(
                    f"Degrading '{name}' for {detail.slug}: {outcome!r}",
                    extra={"entity_id": detail.id, "branch": name},
                )
                complete = False
                outcome = None
            results[name] = outcome

        ability_details = ()
        if results["ability_details"] is not None:
            ability_details, abilities_complete = results["ability_details"]
            complete = complete and abilities_complete

        move_types = results.get("move_types")
        if variant == Variant.FULL and move_types is None:
            move_types = {}

        composite = CompositeEntry(
            id=detail.id,
            name=detail.name,
            image_url=detail.image_url,
            variant=variant,
            height=detail.height,
            weight=detail.weight,
            types=detail.types,
            stats=detail.stats,
            abilities=detail.abilities,
            ability_details=ability_details,
            flavor_entries=results["flavor_entries"] or (),
            moves=build_move_rows(
                detail.moves, move_types if variant == Variant.FULL else None
            ),
            evolution_line=results["evolution_line"] or (),
        )
        return composite, complete

    async def _ability_definitions(
        self, ability_names: Sequence[str]
    ) -> Tuple[Tuple[AbilityDefinition, ...], bool]:
        """
        One cached lookup per distinct ability. Unknown ones are dropped, as
        are failed ones, which also clear the returned completeness flag.
        """
        names = list(dict.fromkeys(ability_names))
        if not names:
            return (), True

        settled = await asyncio.gather(
            *(self._resolvers.ability(name) for name in names), return_exceptions=True
        )

        definitions = []
        complete = True
        for name, outcome in zip(names, settled):
            if isinstance(outcome, Exception):
                logger.warning(f"Ability definition unavailable for {name}: {outcome!r}")
                complete = False
            elif outcome is not None:
                definitions.append(outcome)
        return tuple(definitions), complete

    async def _flavor_entries(self, detail: EntityDetail) -> Tuple[FlavorTextEntry, ...]:
        species = await self._resolvers.species(detail.species_id or detail.id)
        return species.flavor_entries if species is not None else ()

    async def get_summary(self, id_or_name: str) -> Optional[EntitySummary]:
        """Id, name, image and types from the cached base record only."""
        slug = str(id_or_name).strip().lower()
        if not slug:
            return None
        try:
            detail = await self._resolvers.entity(slug)
        except UpstreamUnavailableError as e:
            logger.warning(f"Summary unavailable for {slug}: {e}")
            return None
        return detail.summary() if detail is not None else None
