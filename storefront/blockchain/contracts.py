"""Read-only clients for the marketplace contracts.

The platform deploys one marketplace contract per network; each seller
activation creates a seller marketplace contract through it. Both are
read here to cross-check what a confirmed transaction claims to have done.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from web3 import AsyncWeb3

from storefront.core.exceptions import InternalServerError
from storefront.core.units import same_address, ZERO_ADDRESS

logger = logging.getLogger(__name__)

MARKETPLACE_ABI = [
    {
        "type": "function",
        "name": "getSellerMarketplace",
        "stateMutability": "view",
        "inputs": [
            {"name": "sellerId", "type": "string"},
            {"name": "sellerMarketplaceId", "type": "string"},
        ],
        "outputs": [
            {"name": "exists", "type": "bool"},
            {"name": "marketplaceAddress", "type": "address"},
        ],
    },
]

SELLER_MARKETPLACE_ABI = [
    {
        "type": "function",
        "name": "getOrder",
        "stateMutability": "view",
        "inputs": [{"name": "orderId", "type": "string"}],
        "outputs": [
            {"name": "exists", "type": "bool"},
            {"name": "buyer", "type": "address"},
            {"name": "price", "type": "uint256"},
            {"name": "paymentContract", "type": "address"},
        ],
    },
]


class UnexpectedZeroAddress(InternalServerError):
    pass


class ContractReadError(InternalServerError):
    pass


@dataclass(frozen=True)
class SellerMarketplaceOrder:
    buyer_address: str
    price: int  # base units
    payment_contract: str  # ZERO_ADDRESS for the native coin


class MarketplaceReader(ABC):
    @abstractmethod
    async def get_seller_marketplace_address(
        self, marketplace_contract: str, seller_id: str, seller_marketplace_id: str
    ) -> str | None:
        """Address of the seller's deployed marketplace, or None if it was never created."""


class SellerMarketplaceReader(ABC):
    @abstractmethod
    async def get_order(
        self, seller_marketplace_contract: str, order_id: str
    ) -> SellerMarketplaceOrder | None:
        """On-chain record of a paid order, or None if the contract has not seen it."""


class _Web3Client:
    def __init__(self, rpc_url: str, *, timeout: float = 30.0):
        self.rpc_url = rpc_url
        self.w3 = AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": timeout})
        )

    def _contract(self, address: str, abi: list[dict]):
        return self.w3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=abi)


class MarketplaceContractClient(_Web3Client, MarketplaceReader):
    async def get_seller_marketplace_address(
        self, marketplace_contract: str, seller_id: str, seller_marketplace_id: str
    ) -> str | None:
        contract = self._contract(marketplace_contract, MARKETPLACE_ABI)
        call = contract.functions.getSellerMarketplace(seller_id, seller_marketplace_id)
        try:
            exists, address = await call.call()
        except Exception as e:
            logger.error("getSellerMarketplace failed on %s: %s", marketplace_contract, e)
            raise ContractReadError(f"Unable to read seller marketplace: {e}") from e

        if not exists:
            return None
        if same_address(address, ZERO_ADDRESS):
            raise UnexpectedZeroAddress("Unexpected zero address for seller marketplace")
        return address


class SellerMarketplaceContractClient(_Web3Client, SellerMarketplaceReader):
    async def get_order(
        self, seller_marketplace_contract: str, order_id: str
    ) -> SellerMarketplaceOrder | None:
        contract = self._contract(seller_marketplace_contract, SELLER_MARKETPLACE_ABI)
        try:
            exists, buyer, price, payment_contract = await contract.functions.getOrder(order_id).call()
        except Exception as e:
            logger.error("getOrder %s failed on %s: %s", order_id, seller_marketplace_contract, e)
            raise ContractReadError(f"Unable to read order {order_id}: {e}") from e

        if not exists:
            return None
        if same_address(buyer, ZERO_ADDRESS):
            raise UnexpectedZeroAddress("Unexpected zero address for buyer address")
        return SellerMarketplaceOrder(
            buyer_address=buyer,
            price=int(price),
            payment_contract=payment_contract,
        )
