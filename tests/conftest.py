import asyncio
import os
import random
import sys

import pytest
import pytest_asyncio

# Add project root to python path so we can import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from dexcore.catalog import CatalogClient  # noqa: E402
from dexcore.circuit_breaker import CircuitBreaker  # noqa: E402
from dexcore.retry import RetryExecutor  # noqa: E402
from dexcore.transport import UpstreamResponse  # noqa: E402

API = "https://pokeapi.co/api/v2"


class FakeTransport:
    """
    In-memory stand-in for AiohttpTransport.

    ``routes`` maps a path to a list of outcomes consumed in order (the last
    one repeats). An outcome is a payload (served as 200), an
    UpstreamResponse, or an exception instance to raise. Unknown paths 404.
    """

    def __init__(self, delay: float = 0.0):
        self.routes = {}
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    def set(self, path, *outcomes):
        self.routes[path] = list(outcomes)

    def count(self, path) -> int:
        return self.calls.count(path)

    async def get(self, path):
        self.calls.append(path)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)

            outcomes = self.routes.get(path)
            if not outcomes:
                return UpstreamResponse(status=404)
            outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]

            if isinstance(outcome, BaseException):
                raise outcome
            if isinstance(outcome, UpstreamResponse):
                return outcome
            return UpstreamResponse(status=200, payload=outcome)
        finally:
            self.in_flight -= 1

    async def close(self):
        self.closed = True


class RecordingSleep:
    """Replaces asyncio.sleep in the retry executor; records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class Payloads:
    """Builders for upstream documents in the shape the catalog serves them."""

    @staticmethod
    def move(slug, level=1, method="level-up", version_group="red-blue"):
        return {
            "move": {"name": slug, "url": f"{API}/move/{slug}/"},
            "version_group_details": [
                {
                    "level_learned_at": level,
                    "move_learn_method": {"name": method},
                    "version_group": {"name": version_group},
                }
            ],
        }

    @staticmethod
    def pokemon(
        entity_id,
        name,
        types=("electric",),
        abilities=("static",),
        moves=(),
        species_id=None,
        stats=None,
    ):
        stats = stats or {"hp": 35, "attack": 55, "speed": 90}
        return {
            "id": entity_id,
            "name": name,
            "height": 4,
            "weight": 60,
            "sprites": {
                "front_default": f"https://img/front/{entity_id}.png",
                "other": {
                    "official-artwork": {
                        "front_default": f"https://img/art/{entity_id}.png"
                    }
                },
            },
            "types": [
                {"slot": i + 1, "type": {"name": t}} for i, t in enumerate(types)
            ],
            "abilities": [{"ability": {"name": a}} for a in abilities],
            "stats": [
                {"base_stat": value, "stat": {"name": tag}}
                for tag, value in stats.items()
            ],
            "moves": list(moves),
            "species": {
                "name": name,
                "url": f"{API}/pokemon-species/{species_id or entity_id}/",
            },
        }

    @staticmethod
    def species(chain_id=None, texts=()):
        """``texts`` is a sequence of (version, text, language) triples."""
        payload = {
            "flavor_text_entries": [
                {
                    "flavor_text": text,
                    "language": {"name": language},
                    "version": {"name": version},
                }
                for version, text, language in texts
            ]
        }
        if chain_id is not None:
            payload["evolution_chain"] = {"url": f"{API}/evolution-chain/{chain_id}/"}
        return payload

    @staticmethod
    def node(species_id, name, *children):
        return {
            "species": {"name": name, "url": f"{API}/pokemon-species/{species_id}/"},
            "evolves_to": list(children),
        }

    @staticmethod
    def chain(root):
        return {"id": 1, "chain": root}

    @staticmethod
    def ability(name, short_effect="Short.", effect="Long."):
        return {
            "name": name,
            "effect_entries": [
                {"effect": "Lang.", "short_effect": "Kurz.", "language": {"name": "de"}},
                {
                    "effect": effect,
                    "short_effect": short_effect,
                    "language": {"name": "en"},
                },
            ],
        }

    @staticmethod
    def move_detail(type_name):
        return {"type": {"name": type_name}}

    @staticmethod
    def type_detail(members):
        return {
            "pokemon": [
                {"slot": 1, "pokemon": {"name": m, "url": f"{API}/pokemon/{m}/"}}
                for m in members
            ]
        }

    @staticmethod
    def listing(count, entries):
        """``entries`` is a sequence of (id, name) pairs."""
        return {
            "count": count,
            "results": [
                {"name": name, "url": f"{API}/pokemon/{entity_id}/"}
                for entity_id, name in entries
            ],
        }


@pytest.fixture
def payloads():
    return Payloads


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def executor(transport, fake_sleep):
    return RetryExecutor(transport, sleep=fake_sleep, rng=random.Random(7))


@pytest.fixture
def breaker():
    # High threshold so failure-path tests never trip it by accident
    return CircuitBreaker(failure_threshold=1000, name="test")


@pytest_asyncio.fixture
async def client(transport, executor, breaker):
    client = CatalogClient(transport=transport, executor=executor, breaker=breaker)
    yield client
    await client.close()


@pytest.fixture
def serve_entity(transport, payloads):
    """Serve a detail document under both the id and the name path."""

    def _serve(entity_id, name, **kwargs):
        document = payloads.pokemon(entity_id, name, **kwargs)
        transport.set(f"pokemon/{entity_id}", document)
        transport.set(f"pokemon/{name}", document)
        return document

    return _serve
