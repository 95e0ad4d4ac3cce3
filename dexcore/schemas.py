"""
Structured decoding of upstream catalog payloads.

Each ``decode_*`` function turns one raw JSON document into a typed, frozen
record. Decoding is lenient: optional fields that are absent or of the wrong
shape are skipped (left at their defaults). Only a missing identity field
raises ``MalformedPayloadError``, which resolvers treat as "not found".
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from dexcore.api_models import (
    AbilityDefinition,
    BaseStats,
    EntitySummary,
    FlavorTextEntry,
)
from dexcore.constants import ENGLISH, PSEUDO_TYPES, STAT_FIELDS
from dexcore.errors import MalformedPayloadError
from dexcore.helpers import (
    capitalize,
    clean_flavor_text,
    id_from_url,
    nested_name,
    nested_url,
)


@dataclass(frozen=True)
class VersionGroupDetail:
    level: int
    method: str
    version_group: str


@dataclass(frozen=True)
class MoveEntry:
    """A move reference on an entity detail, with how it is learned per version group."""

    slug: str
    details: Tuple[VersionGroupDetail, ...] = ()


@dataclass(frozen=True)
class EntityDetail:
    """
    Decoded ``pokemon/{id or name}`` document.

    Attributes:
        id: Catalog id.
        slug: Upstream name tag ('mr-mime').
        name: Display name ('Mr-mime').
        species_id: Id of the species record, if the reference is present.
    """

    id: int
    slug: str
    name: str
    image_url: str = ""
    height: Optional[int] = None
    weight: Optional[int] = None
    types: Tuple[str, ...] = ()
    stats: BaseStats = field(default_factory=BaseStats)
    abilities: Tuple[str, ...] = ()
    moves: Tuple[MoveEntry, ...] = ()
    species_id: Optional[int] = None

    def summary(self) -> EntitySummary:
        return EntitySummary(
            id=self.id, name=self.name, image_url=self.image_url, types=self.types
        )


@dataclass(frozen=True)
class SpeciesInfo:
    """English flavor text plus the lineage-chain reference of a species."""

    flavor_entries: Tuple[FlavorTextEntry, ...] = ()
    chain_id: Optional[int] = None


@dataclass(frozen=True)
class ChainNode:
    """
    One stage of a lineage chain.

    Attributes:
        species_id: Parsed from the species URL; 0 if it could not be.
        name: Species name tag.
        children: The stages this one evolves into, in listed order.
    """

    species_id: int
    name: str
    children: Tuple["ChainNode", ...] = ()


@dataclass(frozen=True)
class IdPage:
    count: int
    ids: Tuple[int, ...] = ()


def _list(payload: Any, key: str) -> List[Any]:
    if not isinstance(payload, dict):
        return []
    value = payload.get(key)
    return value if isinstance(value, list) else []


def _optional_int(payload: Dict[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    # bool is an int subclass; it is never a valid measurement here
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _require_dict(payload: Any, what: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise MalformedPayloadError(f"{what}: expected an object")
    return payload


def extract_image(payload: Dict[str, Any]) -> str:
    """
    Pick the best image for an entity: official artwork, then the default
    front sprite, else ''.
    """
    sprites = payload.get("sprites")
    if not isinstance(sprites, dict):
        return ""

    other = sprites.get("other")
    if isinstance(other, dict):
        artwork = other.get("official-artwork")
        if isinstance(artwork, dict) and isinstance(artwork.get("front_default"), str):
            if artwork["front_default"]:
                return artwork["front_default"]

    front = sprites.get("front_default")
    if isinstance(front, str):
        return front
    return ""


def extract_types(payload: Any) -> Tuple[str, ...]:
    types = []
    for slot in _list(payload, "types"):
        name = nested_name(slot, "type")
        if name:
            types.append(capitalize(name))
    return tuple(types)


def extract_stats(payload: Any) -> BaseStats:
    """Map upstream stat tags onto the six named stats; unknown tags are ignored."""
    values: Dict[str, int] = {}
    for entry in _list(payload, "stats"):
        stat_field = STAT_FIELDS.get(nested_name(entry, "stat") or "")
        if stat_field is None:
            continue
        base = _optional_int(entry, "base_stat")
        if base is not None:
            values[stat_field] = base
    return BaseStats(**values)


def extract_moves(payload: Any) -> Tuple[MoveEntry, ...]:
    moves = []
    for entry in _list(payload, "moves"):
        slug = nested_name(entry, "move")
        if not slug:
            continue

        details = []
        for vgd in _list(entry, "version_group_details"):
            level = _optional_int(vgd, "level_learned_at") if isinstance(vgd, dict) else None
            details.append(
                VersionGroupDetail(
                    level=level or 0,
                    method=nested_name(vgd, "move_learn_method") or "",
                    version_group=nested_name(vgd, "version_group") or "",
                )
            )
        moves.append(MoveEntry(slug=slug, details=tuple(details)))
    return tuple(moves)


def decode_entity_detail(payload: Any) -> EntityDetail:
    """
    Decode an entity detail document.

    Raises:
        MalformedPayloadError: If ``id`` or ``name`` is missing.
    """
    payload = _require_dict(payload, "entity detail")
    entity_id = _optional_int(payload, "id")
    slug = payload.get("name")
    if entity_id is None or not isinstance(slug, str) or not slug.strip():
        raise MalformedPayloadError("entity detail: missing id or name")

    abilities = []
    for slot in _list(payload, "abilities"):
        name = nested_name(slot, "ability")
        if name:
            abilities.append(capitalize(name))

    species_id = id_from_url(nested_url(payload, "species")) or None

    return EntityDetail(
        id=entity_id,
        slug=slug,
        name=capitalize(slug),
        image_url=extract_image(payload),
        height=_optional_int(payload, "height"),
        weight=_optional_int(payload, "weight"),
        types=extract_types(payload),
        stats=extract_stats(payload),
        abilities=tuple(abilities),
        moves=extract_moves(payload),
        species_id=species_id,
    )


def decode_ability(payload: Any, fallback_name: str) -> AbilityDefinition:
    """
    Decode an ability document, taking the first English effect entry.

    Args:
        payload: Raw ability document.
        fallback_name: Display name to use if the document has none.
    """
    payload = _require_dict(payload, "ability")
    raw_name = payload.get("name")
    name = capitalize(raw_name) if isinstance(raw_name, str) and raw_name else fallback_name

    effect = short_effect = None
    for entry in _list(payload, "effect_entries"):
        if nested_name(entry, "language") != ENGLISH:
            continue
        if isinstance(entry.get("effect"), str):
            effect = clean_flavor_text(entry["effect"])
        if isinstance(entry.get("short_effect"), str):
            short_effect = clean_flavor_text(entry["short_effect"])
        break

    return AbilityDefinition(name=name, short_effect=short_effect, effect=effect)


def decode_species(payload: Any, flavor_limit: int) -> SpeciesInfo:
    """
    Decode a species document.

    English flavor text is cleaned, deduplicated on (version, text) keeping
    first occurrence, and capped at ``flavor_limit`` entries.
    """
    payload = _require_dict(payload, "species")

    entries: List[FlavorTextEntry] = []
    seen = set()
    for entry in _list(payload, "flavor_text_entries"):
        if len(entries) >= flavor_limit:
            break
        if nested_name(entry, "language") != ENGLISH:
            continue

        raw_text = entry.get("flavor_text")
        text = clean_flavor_text(raw_text) if isinstance(raw_text, str) else None
        if not text:
            continue

        version = capitalize(nested_name(entry, "version") or "")
        if (version, text) in seen:
            continue
        seen.add((version, text))
        entries.append(FlavorTextEntry(version=version, text=text))

    chain_id = id_from_url(nested_url(payload, "evolution_chain")) or None
    return SpeciesInfo(flavor_entries=tuple(entries), chain_id=chain_id)


def _decode_chain_node(node: Any) -> ChainNode:
    if not isinstance(node, dict) or not isinstance(node.get("species"), dict):
        raise MalformedPayloadError("lineage chain: node without species")

    children = []
    for child in _list(node, "evolves_to"):
        try:
            children.append(_decode_chain_node(child))
        except MalformedPayloadError:
            continue

    return ChainNode(
        species_id=id_from_url(nested_url(node, "species")),
        name=nested_name(node, "species") or "",
        children=tuple(children),
    )


def decode_chain(payload: Any) -> ChainNode:
    """
    Decode a lineage-chain document into its root node.

    Malformed child nodes are dropped along with their subtrees.

    Raises:
        MalformedPayloadError: If the root node is missing.
    """
    payload = _require_dict(payload, "lineage chain")
    return _decode_chain_node(payload.get("chain"))


def decode_move_type(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    return nested_name(payload, "type")


def decode_type_listing(payload: Any) -> List[str]:
    """All real elemental types, capitalized and sorted case-insensitively."""
    names = []
    for entry in _list(payload, "results"):
        name = entry.get("name") if isinstance(entry, dict) else None
        if not isinstance(name, str) or not name.strip():
            continue
        if name.strip().lower() in PSEUDO_TYPES:
            continue
        names.append(capitalize(name.strip()))
    return sorted(names, key=str.lower)


def decode_type_members(payload: Any) -> List[str]:
    """Member name tags of a type, in the order the upstream lists them."""
    return [
        name
        for name in (nested_name(slot, "pokemon") for slot in _list(payload, "pokemon"))
        if name
    ]


def decode_count(payload: Any) -> int:
    payload = _require_dict(payload, "listing")
    count = _optional_int(payload, "count")
    if count is None:
        raise MalformedPayloadError("listing: missing count")
    return count


def decode_id_page(payload: Any) -> IdPage:
    ids = []
    for entry in _list(payload, "results"):
        url = entry.get("url") if isinstance(entry, dict) else None
        entity_id = id_from_url(url if isinstance(url, str) else None)
        if entity_id > 0:
            ids.append(entity_id)

    count = _optional_int(payload, "count") if isinstance(payload, dict) else None
    return IdPage(count=count if count is not None else len(ids), ids=tuple(ids))


def decode_name_listing(payload: Any) -> List[str]:
    """Every name tag in a listing page, sorted ordinally."""
    names = []
    for entry in _list(payload, "results"):
        name = entry.get("name") if isinstance(entry, dict) else None
        if isinstance(name, str) and name.strip():
            names.append(name)
    return sorted(names)
