import pytest

from dexcore.api_models import Variant
from dexcore.paging import clamp_page, total_pages
from dexcore.transport import UpstreamResponse

NAMES = {1: "bulbasaur", 2: "ivysaur", 3: "venusaur", 4: "charmander", 5: "charmeleon"}


def test_total_pages():
    assert total_pages(0, 20) == 1
    assert total_pages(20, 20) == 1
    assert total_pages(21, 20) == 2
    assert total_pages(1302, 20) == 66


def test_clamp_page():
    assert clamp_page(0, 20, 100) == 1
    assert clamp_page(-3, 20, 100) == 1
    assert clamp_page(3, 20, 100) == 3
    assert clamp_page(99, 20, 100) == 5
    assert clamp_page(2, 20, 0) == 1


@pytest.fixture
def catalog(transport, payloads, serve_entity):
    for entity_id, name in NAMES.items():
        serve_entity(entity_id, name)
    transport.set("pokemon?limit=1&offset=0", payloads.listing(5, [(1, "bulbasaur")]))
    transport.set(
        "pokemon?limit=2&offset=0",
        payloads.listing(5, [(2, "ivysaur"), (1, "bulbasaur")]),
    )
    transport.set(
        "pokemon?limit=2&offset=2",
        payloads.listing(5, [(3, "venusaur"), (4, "charmander")]),
    )
    transport.set("pokemon?limit=2&offset=4", payloads.listing(5, [(5, "charmeleon")]))


@pytest.mark.asyncio
class TestGlobalPaging:
    async def test_first_page_sorted_by_id(self, client, catalog):
        page = await client.pages.page(1, 2)
        assert [c.id for c in page] == [1, 2]
        assert all(c.variant == Variant.LITE for c in page)

    async def test_last_partial_page(self, client, catalog):
        page = await client.pages.page(3, 2)
        assert [c.name for c in page] == ["Charmeleon"]

    async def test_out_of_range_pages_are_clamped(self, client, catalog):
        assert [c.id for c in await client.pages.page(99, 2)] == [5]
        assert [c.id for c in await client.pages.page(0, 2)] == [1, 2]

    async def test_unknown_entries_are_dropped(self, client, transport, catalog):
        transport.set("pokemon/4", UpstreamResponse(status=404))
        assert [c.id for c in await client.pages.page(2, 2)] == [3]

    async def test_count_unavailable_still_pages(self, client, transport, catalog):
        transport.set("pokemon?limit=1&offset=0", UpstreamResponse(status=503))
        assert [c.id for c in await client.pages.page(2, 2)] == [3, 4]

    async def test_id_list_unavailable_is_empty(self, client, transport, catalog):
        transport.set("pokemon?limit=2&offset=2", UpstreamResponse(status=503))
        assert await client.pages.page(2, 2) == []

    async def test_page_size_below_one_uses_default(self, client, transport, payloads, catalog):
        transport.set(
            "pokemon?limit=20&offset=0",
            payloads.listing(5, list(NAMES.items())),
        )
        page = await client.pages.page(1, 0)
        assert [c.id for c in page] == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
class TestCategoryPaging:
    @pytest.fixture
    def fire(self, transport, payloads, serve_entity):
        serve_entity(37, "vulpix", types=("fire",))
        serve_entity(4, "charmander", types=("fire",))
        serve_entity(58, "growlithe", types=("fire",))
        transport.set("type/fire", payloads.type_detail(["vulpix", "charmander", "growlithe"]))

    async def test_window_follows_membership_order(self, client, fire):
        page = await client.pages.page_by_category("fire", 1, 2)
        # Window is [vulpix, charmander]; result is ordered by id
        assert [c.name for c in page] == ["Charmander", "Vulpix"]

    async def test_second_page_and_clamping(self, client, fire):
        assert [c.id for c in await client.pages.page_by_category("fire", 2, 2)] == [58]
        assert [c.id for c in await client.pages.page_by_category("fire", 7, 2)] == [58]

    async def test_blank_or_unknown_category(self, client, fire):
        assert await client.pages.page_by_category("  ", 1, 2) == []
        assert await client.pages.page_by_category("cosmic", 1, 2) == []

    async def test_membership_unavailable(self, client, transport):
        transport.set("type/water", UpstreamResponse(status=500))
        assert await client.pages.page_by_category("water", 1, 2) == []
