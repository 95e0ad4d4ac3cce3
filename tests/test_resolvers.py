import asyncio
import logging

import aiohttp
import pytest

from dexcore.circuit_breaker import CircuitBreaker, CircuitBreakerError
from dexcore.errors import UpstreamUnavailableError
from dexcore.resolvers import UpstreamGateway
from dexcore.transport import UpstreamResponse


@pytest.mark.asyncio
class TestUpstreamGateway:
    async def test_success_returns_payload(self, transport, executor, breaker):
        transport.set("type", {"results": []})
        gateway = UpstreamGateway(executor, breaker)
        assert await gateway.fetch_json("type") == {"results": []}

    async def test_not_found_is_none(self, executor, breaker, caplog):
        gateway = UpstreamGateway(executor, breaker)
        with caplog.at_level(logging.DEBUG, logger="dexcore.resolvers"):
            assert await gateway.fetch_json("pokemon/missingno") is None
        # A plain 404 is expected and not worth a warning
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]

    async def test_other_client_errors_are_absent(self, transport, executor, breaker, caplog):
        transport.set("pokemon/bad", UpstreamResponse(status=400))
        gateway = UpstreamGateway(executor, breaker)
        with caplog.at_level(logging.WARNING, logger="dexcore.resolvers"):
            assert await gateway.fetch_json("pokemon/bad") is None
        assert transport.count("pokemon/bad") == 1
        assert any(getattr(r, "status_code", None) == 400 for r in caplog.records)

    async def test_exhausted_server_errors_raise(self, transport, executor, breaker):
        transport.set("pokemon/25", UpstreamResponse(status=502))
        gateway = UpstreamGateway(executor, breaker)

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await gateway.fetch_json("pokemon/25")
        assert exc_info.value.status == 502
        assert exc_info.value.path == "pokemon/25"

    async def test_final_transport_error_is_wrapped(self, transport, executor, breaker):
        transport.set("pokemon/25", aiohttp.ServerDisconnectedError())
        gateway = UpstreamGateway(executor, breaker)

        with pytest.raises(UpstreamUnavailableError):
            await gateway.fetch_json("pokemon/25")

    async def test_open_circuit_fails_fast(self, transport, executor):
        transport.set("pokemon/25", UpstreamResponse(status=503))
        gateway = UpstreamGateway(executor, CircuitBreaker(failure_threshold=1))

        with pytest.raises(UpstreamUnavailableError):
            await gateway.fetch_json("pokemon/25")
        calls = transport.count("pokemon/25")

        with pytest.raises(CircuitBreakerError):
            await gateway.fetch_json("pokemon/25")
        assert transport.count("pokemon/25") == calls


@pytest.mark.asyncio
class TestSubResourceResolvers:
    async def test_entity_found_and_cached(self, client, transport, serve_entity):
        serve_entity(25, "pikachu")

        first = await client.resolvers.entity("pikachu")
        second = await client.resolvers.entity("pikachu")

        assert first.id == 25
        assert second is first
        assert transport.count("pokemon/pikachu") == 1

    async def test_not_found_is_cached(self, client, transport):
        assert await client.resolvers.entity("missingno") is None
        assert await client.resolvers.entity("missingno") is None
        assert transport.count("pokemon/missingno") == 1

    async def test_malformed_payload_is_not_found(self, client, transport):
        transport.set("pokemon/glitch", {"name": "glitch"})
        assert await client.resolvers.entity("glitch") is None
        assert await client.resolvers.entity("glitch") is None
        assert transport.count("pokemon/glitch") == 1

    async def test_outage_is_not_cached(self, client, transport, serve_entity):
        transport.set("pokemon/25", UpstreamResponse(status=503))

        with pytest.raises(UpstreamUnavailableError):
            await client.resolvers.entity("25")
        assert transport.count("pokemon/25") == 4

        serve_entity(25, "pikachu")
        detail = await client.resolvers.entity("25")
        assert detail.name == "Pikachu"

    async def test_concurrent_requests_coalesce(self, client, transport, serve_entity):
        serve_entity(25, "pikachu")
        results = await asyncio.gather(
            *(client.resolvers.entity("pikachu") for _ in range(10))
        )
        assert {r.id for r in results} == {25}
        assert transport.count("pokemon/pikachu") == 1

    async def test_ability_display_name_to_slug(self, client, transport, payloads):
        transport.set("ability/lightning-rod", payloads.ability("lightning-rod"))
        ability = await client.resolvers.ability("Lightning rod")
        assert ability.name == "Lightning-rod"
        assert "ability/lightning-rod" in transport.calls

    async def test_total_count(self, client, transport, payloads):
        transport.set("pokemon?limit=1&offset=0", payloads.listing(1302, [(1, "bulbasaur")]))
        assert await client.resolvers.total_count() == 1302

    async def test_total_count_unknown_is_zero(self, client):
        assert await client.resolvers.total_count() == 0

    async def test_page_ids(self, client, transport, payloads):
        transport.set(
            "pokemon?limit=2&offset=2",
            payloads.listing(10, [(3, "venusaur"), (4, "charmander")]),
        )
        assert await client.resolvers.page_ids(2, 2) == [3, 4]
