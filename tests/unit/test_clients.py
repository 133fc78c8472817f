import pytest

from crossroute.clients import ClientRegistry
from crossroute.config import CrossrouteConfig
from crossroute.contracts import Chain
from crossroute.errors import NotFoundError

from fixtures.builders import CHAINS
from fixtures.fakes import FakeChainClient


def test_chain_lookup():
    registry = ClientRegistry(CHAINS)

    assert registry.get_chain(137).name == "Polygon"
    assert registry.tx_link(137, "0xabc") == "https://polygonscan.com/tx/0xabc"
    assert registry.tx_link(10, "0xabc") is None
    with pytest.raises(NotFoundError):
        registry.get_chain(10)

    registry.add_chain(Chain(id=10, name="Optimism"))
    assert [c.id for c in registry.chains] == [1, 137, 10]


def test_clients_are_created_lazily_once():
    created = []

    def factory(chain):
        created.append(chain.id)
        return FakeChainClient([1], uid=f"client-{chain.id}", chain_id=chain.id)

    registry = ClientRegistry(CHAINS, client_factory=factory)

    first = registry.get_client(1)
    second = registry.get_client(1)

    assert first is second
    assert created == [1]


def test_missing_client_without_factory():
    registry = ClientRegistry(CHAINS)

    with pytest.raises(NotFoundError):
        registry.get_client(1)

    client = FakeChainClient([1])
    registry.register_client(1, client)
    assert registry.get_client(1) is client


@pytest.mark.asyncio
async def test_lifecycle_creates_and_closes_clients():
    clients = []

    def factory(chain):
        client = FakeChainClient([1], uid=f"client-{chain.id}", chain_id=chain.id)
        clients.append(client)
        return client

    async with ClientRegistry(CHAINS, client_factory=factory):
        assert [c.chain_id for c in clients] == [1, 137]

    assert all(c.closed for c in clients)


@pytest.mark.asyncio
async def test_shutdown_survives_failing_client():
    class BrokenClient(FakeChainClient):
        async def close(self):
            raise RuntimeError("already closed")

    healthy = FakeChainClient([1], chain_id=137)
    registry = ClientRegistry(CHAINS)
    registry.register_client(1, BrokenClient([1]))
    registry.register_client(137, healthy)

    await registry.shutdown()

    assert healthy.closed


def test_registry_from_config():
    config = CrossrouteConfig(
        polling={"interval": 0.5},
        chains=[{"id": 10, "name": "Optimism", "explorerUrls": ["https://optimistic.etherscan.io"]}],
    )

    registry = ClientRegistry.from_config(config)

    assert [c.id for c in registry.chains] == [10]
    assert registry.tx_link(10, "0x1") == "https://optimistic.etherscan.io/tx/0x1"
    assert registry.observer.interval == 0.5
