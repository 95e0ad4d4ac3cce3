"""
Record types returned by the data-access layer.

Everything here is a frozen dataclass with tuple-valued collections: a
composite is built once per cache miss and then shared between every caller
that reads it from the cache, so it must not be mutable.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class Variant(str, Enum):
    """
    Fidelity level of a composite record.

    FULL resolves an elemental type for every move (single-entity views).
    LITE skips that fan-out (bulk paging).
    """

    FULL = "full"
    LITE = "lite"


@dataclass(frozen=True)
class EntitySummary:
    """
    Minimal data needed to render an entity card or a lineage stage.

    Attributes:
        id: Catalog id.
        name: Display name (first letter capitalized).
        image_url: Official artwork URL, or '' if none is known.
        types: Capitalized type tags; empty for lineage stages.
    """

    id: int
    name: str
    image_url: str
    types: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BaseStats:
    hp: int = 0
    attack: int = 0
    defense: int = 0
    special_attack: int = 0
    special_defense: int = 0
    speed: int = 0


@dataclass(frozen=True)
class AbilityDefinition:
    """English ability text; either effect may be missing upstream."""

    name: str
    short_effect: Optional[str] = None
    effect: Optional[str] = None


@dataclass(frozen=True)
class FlavorTextEntry:
    version: str
    text: str


@dataclass(frozen=True)
class MoveLearnRow:
    """
    One way an entity learns a move in one version group.

    Attributes:
        move_name: Display name ('thunder punch').
        level: Level learned at; 0 means not learned by leveling (machine,
            tutor, egg).
        method: Learn method tag ('level-up', 'machine', ...).
        version_group: Version group tag ('red-blue', ...).
        move_type: Elemental type tag ('electric'); only set on FULL
            composites, and None there if the move could not be resolved.
    """

    move_name: str
    level: int
    method: str
    version_group: str
    move_type: Optional[str] = None


@dataclass(frozen=True)
class CompositeEntry:
    """
    The fully aggregated record for one entity.

    Only the identity and base-record fields are guaranteed; every
    fan-out portion (ability details, flavor text, lineage, move types)
    degrades to empty when its sub-fetch fails.
    """

    id: int
    name: str
    image_url: str
    variant: Variant
    height: Optional[int] = None
    weight: Optional[int] = None
    types: Tuple[str, ...] = ()
    stats: BaseStats = field(default_factory=BaseStats)
    abilities: Tuple[str, ...] = ()
    ability_details: Tuple[AbilityDefinition, ...] = ()
    flavor_entries: Tuple[FlavorTextEntry, ...] = ()
    moves: Tuple[MoveLearnRow, ...] = ()
    evolution_line: Tuple[EntitySummary, ...] = ()
