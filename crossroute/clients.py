"""Registry of chains and their read clients."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional

from .config import CrossrouteConfig
from .contracts import Chain
from .errors import NotFoundError
from .interfaces import ChainClient
from .observe import PollingObserver

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Chain], ChainClient]


class ClientRegistry:
    """Holds known chains and lazily created per-chain clients.

    One registry is created at application startup and passed to the
    components that need chain connectivity. ``shutdown()`` closes every
    client it created.
    """

    def __init__(
        self,
        chains: Iterable[Chain] = (),
        client_factory: Optional[ClientFactory] = None,
        observer: Optional[PollingObserver] = None,
    ) -> None:
        self._chains: Dict[int, Chain] = {chain.id: chain for chain in chains}
        self._client_factory = client_factory
        self._clients: Dict[int, ChainClient] = {}
        self.observer = observer or PollingObserver()

    @classmethod
    def from_config(
        cls,
        config: CrossrouteConfig,
        client_factory: Optional[ClientFactory] = None,
    ) -> "ClientRegistry":
        """Registry for the configured chains, polling at the configured interval."""
        return cls(
            config.chains,
            client_factory=client_factory,
            observer=PollingObserver.from_config(config.polling),
        )

    @property
    def chains(self) -> List[Chain]:
        return list(self._chains.values())

    def add_chain(self, chain: Chain) -> None:
        self._chains[chain.id] = chain

    def get_chain(self, chain_id: int) -> Chain:
        chain = self._chains.get(chain_id)
        if chain is None:
            raise NotFoundError(f"Chain {chain_id} is not configured.")
        return chain

    def tx_link(self, chain_id: int, tx_hash: Optional[str]) -> Optional[str]:
        chain = self._chains.get(chain_id)
        return chain.tx_link(tx_hash) if chain is not None else None

    def register_client(self, chain_id: int, client: ChainClient) -> None:
        self._clients[chain_id] = client

    def get_client(self, chain_id: int) -> ChainClient:
        client = self._clients.get(chain_id)
        if client is not None:
            return client
        if self._client_factory is None:
            raise NotFoundError(f"No client registered for chain {chain_id}.")
        client = self._client_factory(self.get_chain(chain_id))
        self._clients[chain_id] = client
        logger.debug(f"Created client {client.uid} for chain {chain_id}")
        return client

    async def startup(self) -> None:
        """Create a client for every configured chain."""
        if self._client_factory is None:
            return
        for chain_id in self._chains:
            self.get_client(chain_id)

    async def shutdown(self) -> None:
        clients, self._clients = self._clients, {}
        for chain_id, client in clients.items():
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Failed to close client for chain {chain_id}: {e}")

    async def __aenter__(self) -> "ClientRegistry":
        await self.startup()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.shutdown()
