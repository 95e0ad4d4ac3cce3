import pytest

from dexcore.aggregator import build_move_rows, move_sort_key
from dexcore.api_models import MoveLearnRow, Variant
from dexcore.schemas import MoveEntry, VersionGroupDetail
from dexcore.transport import UpstreamResponse


@pytest.fixture
def pikachu(transport, payloads, serve_entity):
    """Pikachu with every sub-resource available."""
    serve_entity(
        25,
        "pikachu",
        abilities=("static", "lightning-rod"),
        moves=[
            payloads.move("thunderbolt", level=0, method="machine"),
            payloads.move("quick-attack", level=5),
            payloads.move("thunder-shock", level=1),
            payloads.move("growl", level=1),
        ],
    )
    transport.set("ability/static", payloads.ability("static", "May paralyze."))
    transport.set("ability/lightning-rod", payloads.ability("lightning-rod", "Draws in Electric moves."))
    transport.set(
        "pokemon-species/25",
        payloads.species(chain_id=10, texts=[("red", "Stores electricity.", "en")]),
    )
    transport.set(
        "evolution-chain/10",
        payloads.chain(
            payloads.node(172, "pichu", payloads.node(25, "pikachu", payloads.node(26, "raichu")))
        ),
    )
    transport.set("move/thunderbolt", payloads.move_detail("electric"))
    transport.set("move/quick-attack", payloads.move_detail("normal"))
    transport.set("move/thunder-shock", payloads.move_detail("electric"))
    transport.set("move/growl", payloads.move_detail("normal"))


class TestMoveOrdering:
    def test_level_up_first_then_level_then_name(self):
        rows = [
            MoveLearnRow("thunderbolt", 0, "machine", "red-blue"),
            MoveLearnRow("quick attack", 5, "level-up", "red-blue"),
            MoveLearnRow("thunder shock", 1, "level-up", "red-blue"),
            MoveLearnRow("growl", 1, "level-up", "red-blue"),
            MoveLearnRow("agility", 0, "level-up", "red-blue"),
        ]
        ordered = sorted(rows, key=move_sort_key)
        assert [r.move_name for r in ordered] == [
            "growl",
            "thunder shock",
            "quick attack",
            "agility",
            "thunderbolt",
        ]

    def test_one_row_per_version_group(self):
        moves = [
            MoveEntry(
                slug="thunder-punch",
                details=(
                    VersionGroupDetail(0, "tutor", "emerald"),
                    VersionGroupDetail(0, "machine", "red-blue"),
                ),
            )
        ]
        rows = build_move_rows(moves, {"thunder-punch": "electric"})

        assert len(rows) == 2
        assert {r.version_group for r in rows} == {"emerald", "red-blue"}
        assert all(r.move_name == "thunder punch" for r in rows)
        assert all(r.move_type == "electric" for r in rows)

    def test_lite_rows_are_untyped(self):
        moves = [MoveEntry("growl", (VersionGroupDetail(1, "level-up", "red-blue"),))]
        assert build_move_rows(moves, None)[0].move_type is None


@pytest.mark.asyncio
class TestAggregator:
    async def test_full_composite(self, client, pikachu):
        composite = await client.aggregator.get_composite("pikachu", Variant.FULL)

        assert composite.id == 25
        assert composite.name == "Pikachu"
        assert composite.variant == Variant.FULL
        assert composite.types == ("Electric",)
        assert composite.stats.speed == 90
        assert [a.name for a in composite.ability_details] == ["Static", "Lightning-rod"]
        assert composite.flavor_entries[0].text == "Stores electricity."
        assert [s.id for s in composite.evolution_line] == [172, 25, 26]
        assert [(m.move_name, m.move_type) for m in composite.moves] == [
            ("growl", "normal"),
            ("thunder shock", "electric"),
            ("quick attack", "normal"),
            ("thunderbolt", "electric"),
        ]

    async def test_lite_composite_skips_move_types(self, client, transport, pikachu):
        composite = await client.aggregator.get_composite("pikachu", Variant.LITE)

        assert composite.variant == Variant.LITE
        assert len(composite.moves) == 4
        assert all(m.move_type is None for m in composite.moves)
        assert not any(path.startswith("move/") for path in transport.calls)

    async def test_variants_are_cached_separately(self, client, transport, pikachu):
        lite = await client.aggregator.get_composite("pikachu", Variant.LITE)
        full = await client.aggregator.get_composite("pikachu", Variant.FULL)

        assert lite.variant == Variant.LITE
        assert full.variant == Variant.FULL
        assert full.moves[0].move_type == "normal"
        # The base record is shared between variants
        assert transport.count("pokemon/pikachu") == 1

        lite_again = await client.aggregator.get_composite("pikachu", Variant.LITE)
        assert lite_again is lite
        assert all(m.move_type is None for m in lite_again.moves)
        assert client.cache.peek("composite:25:lite") is lite
        assert client.cache.peek("composite:25:full") is full

    async def test_composite_is_cached(self, client, transport, pikachu):
        first = await client.aggregator.get_composite("pikachu")
        calls = len(transport.calls)

        second = await client.aggregator.get_composite("pikachu")

        assert second is first
        assert len(transport.calls) == calls

    async def test_failed_ability_degrades_to_partial(self, client, transport, pikachu):
        transport.set("ability/lightning-rod", UpstreamResponse(status=503))

        composite = await client.aggregator.get_composite("pikachu")

        assert composite is not None
        assert [a.name for a in composite.ability_details] == ["Static"]
        assert composite.flavor_entries
        assert composite.evolution_line

    async def test_all_abilities_failing_leaves_empty_list(self, client, transport, pikachu):
        transport.set("ability/static", UpstreamResponse(status=500))
        transport.set("ability/lightning-rod", UpstreamResponse(status=500))

        composite = await client.aggregator.get_composite("pikachu")

        assert composite.ability_details == ()
        assert composite.abilities == ("Static", "Lightning-rod")
        assert len(composite.moves) == 4

    async def test_species_outage_empties_text_and_lineage(self, client, transport, pikachu):
        transport.set("pokemon-species/25", UpstreamResponse(status=503))

        composite = await client.aggregator.get_composite("pikachu")

        assert composite.flavor_entries == ()
        assert composite.evolution_line == ()
        assert len(composite.ability_details) == 2

    async def test_failed_move_types_leave_rows_untyped(self, client, transport, pikachu):
        transport.set("move/growl", UpstreamResponse(status=503))

        composite = await client.aggregator.get_composite("pikachu", Variant.FULL)

        growl = next(m for m in composite.moves if m.move_name == "growl")
        assert growl.move_type is None
        assert composite.moves[1].move_type == "electric"

    async def test_species_recovery_is_visible_on_next_call(
        self, client, transport, payloads, pikachu
    ):
        transport.set("pokemon-species/25", UpstreamResponse(status=503))
        degraded = await client.aggregator.get_composite("pikachu")
        assert degraded.evolution_line == ()
        assert client.cache.peek("composite:25:full") is None

        transport.set(
            "pokemon-species/25",
            payloads.species(chain_id=10, texts=[("red", "Stores electricity.", "en")]),
        )
        recovered = await client.aggregator.get_composite("pikachu")

        assert [s.id for s in recovered.evolution_line] == [172, 25, 26]
        assert recovered.flavor_entries[0].text == "Stores electricity."
        assert client.cache.peek("composite:25:full") is recovered

    async def test_partial_abilities_are_not_cached(self, client, transport, payloads, pikachu):
        transport.set("ability/lightning-rod", UpstreamResponse(status=503))
        await client.aggregator.get_composite("pikachu", Variant.LITE)

        transport.set(
            "ability/lightning-rod", payloads.ability("lightning-rod", "Draws in Electric moves.")
        )
        composite = await client.aggregator.get_composite("pikachu", Variant.LITE)

        assert [a.name for a in composite.ability_details] == ["Static", "Lightning-rod"]

    async def test_name_and_id_share_one_composite(self, client, transport, pikachu):
        by_name = await client.aggregator.get_composite("pikachu", Variant.LITE)
        calls = len(transport.calls)

        by_id = await client.aggregator.get_composite("25", Variant.LITE)

        assert by_id is by_name
        # Only the base record is fetched again
        assert transport.calls[calls:] == ["pokemon/25"]

    async def test_unknown_entity_is_none(self, client):
        assert await client.aggregator.get_composite("missingno") is None

    async def test_base_record_outage_is_none_and_not_cached(
        self, client, transport, serve_entity
    ):
        transport.set("pokemon/25", UpstreamResponse(status=503))
        assert await client.aggregator.get_composite("25") is None

        serve_entity(25, "pikachu", abilities=())
        composite = await client.aggregator.get_composite("25")
        assert composite.name == "Pikachu"

    async def test_summary_uses_base_record_only(self, client, transport, pikachu):
        summary = await client.aggregator.get_summary("pikachu")

        assert summary.id == 25
        assert summary.image_url == "https://img/art/25.png"
        assert transport.calls == ["pokemon/pikachu"]
