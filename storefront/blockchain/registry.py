"""Chain id -> client lookup.

Built once from settings at startup. A chain id with no entry, or an
entry lacking a capability, is a configuration error and never retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from storefront.blockchain.contracts import (
    MarketplaceContractClient,
    MarketplaceReader,
    SellerMarketplaceContractClient,
    SellerMarketplaceReader,
)
from storefront.blockchain.transactions import BitQueryClient, ChainReader
from storefront.config import Settings
from storefront.core.exceptions import (
    BlockchainClientDoesNotExist,
    BlockchainMarketplaceClientDoesNotExist,
    BlockchainSellerMarketplaceClientDoesNotExist,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainSpec:
    chain_id: int
    name: str
    rpc_url_setting: str
    bitquery_network: str | None = None


SUPPORTED_CHAINS: tuple[ChainSpec, ...] = (
    ChainSpec(1, "Ethereum", "ethereum_rpc_url", bitquery_network="ethereum"),
    ChainSpec(11155111, "Sepolia", "sepolia_rpc_url"),
    ChainSpec(56, "BNB Smart Chain", "bsc_rpc_url", bitquery_network="bsc"),
    ChainSpec(97, "BNB Smart Chain Testnet", "bsc_testnet_rpc_url", bitquery_network="bsc_testnet"),
    ChainSpec(137, "Polygon", "polygon_rpc_url", bitquery_network="matic"),
    ChainSpec(80001, "Polygon Mumbai", "polygon_mumbai_rpc_url"),
)


@dataclass
class ChainClients:
    reader: ChainReader | None = None
    marketplace: MarketplaceReader | None = None
    seller_marketplace: SellerMarketplaceReader | None = None


@dataclass
class ChainRegistry:
    chains: dict[int, ChainClients] = field(default_factory=dict)

    def register(self, chain_id: int, clients: ChainClients) -> None:
        self.chains[chain_id] = clients

    def reader(self, chain_id: int) -> ChainReader:
        clients = self.chains.get(chain_id)
        if clients is None or clients.reader is None:
            raise BlockchainClientDoesNotExist(chain_id)
        return clients.reader

    def marketplace(self, chain_id: int) -> MarketplaceReader:
        clients = self.chains.get(chain_id)
        if clients is None or clients.marketplace is None:
            raise BlockchainMarketplaceClientDoesNotExist(chain_id)
        return clients.marketplace

    def seller_marketplace(self, chain_id: int) -> SellerMarketplaceReader:
        clients = self.chains.get(chain_id)
        if clients is None or clients.seller_marketplace is None:
            raise BlockchainSellerMarketplaceClientDoesNotExist(chain_id)
        return clients.seller_marketplace


def build_chain_registry(cfg: Settings) -> ChainRegistry:
    registry = ChainRegistry()
    for chain in SUPPORTED_CHAINS:
        rpc_url = getattr(cfg, chain.rpc_url_setting)
        clients = ChainClients()
        if chain.bitquery_network:
            clients.reader = BitQueryClient(
                chain.bitquery_network,
                url=cfg.bitquery_url,
                api_key=cfg.bitquery_api_key,
                lookback_hours=cfg.bitquery_lookback_hours,
                timeout=cfg.bitquery_timeout_seconds,
            )
        if rpc_url:
            clients.marketplace = MarketplaceContractClient(rpc_url)
            clients.seller_marketplace = SellerMarketplaceContractClient(rpc_url)
        registry.register(chain.chain_id, clients)

    logger.info("Chain registry ready for chain ids %s", sorted(registry.chains))
    return registry


_registry: ChainRegistry | None = None


def get_chain_registry() -> ChainRegistry:
    """FastAPI dependency returning the process-wide registry."""
    global _registry
    if _registry is None:
        from storefront.config import settings

        _registry = build_chain_registry(settings)
    return _registry
