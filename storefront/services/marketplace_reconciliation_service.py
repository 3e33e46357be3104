"""Confirm seller marketplace activations from the chain.

Activation transactions are sent to the network marketplace contract, which
deploys the seller's own contract. On success the deployed address is read
back from that contract and stored with the sender as owner wallet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.blockchain.registry import ChainRegistry
from storefront.core.exceptions import (
    InvalidNetworkMarketplaceSmartContractAddress,
    NetworkMarketplaceDoesNotExist,
    SellerMarketplaceSmartContractAddressIsNotUnique,
    UnableToGetSellerMarketplaceFromBlockchainMarketplace,
)
from storefront.core.units import is_address
from storefront.core.validation import EntityId, UseCaseRequest, validate_request
from storefront.models.network import Network, NetworkMarketplace
from storefront.models.seller_marketplace import SellerMarketplace, SellerMarketplaceTransaction
from storefront.services.chain_sync_service import (
    Candidate,
    ReconcileSummary,
    commit_confirmation,
    fetch_matches,
    group_by_contract,
    record_failure,
    scope_lock,
    well_formed,
)

logger = logging.getLogger(__name__)


class ReconcileMarketplacesRequest(UseCaseRequest):
    network_marketplace_id: EntityId


@dataclass(frozen=True)
class MarketplaceCandidate(Candidate):
    seller_id: str


async def reconcile_seller_marketplaces(
    db: AsyncSession,
    registry: ChainRegistry,
    network_marketplace_id: str,
) -> ReconcileSummary:
    request = validate_request(
        ReconcileMarketplacesRequest, network_marketplace_id=network_marketplace_id
    )

    network_marketplace = await db.get(NetworkMarketplace, request.network_marketplace_id)
    if network_marketplace is None:
        raise NetworkMarketplaceDoesNotExist()
    if not is_address(network_marketplace.smart_contract_address):
        raise InvalidNetworkMarketplaceSmartContractAddress()

    chain_id = network_marketplace.network.chain_id
    marketplace_contract = network_marketplace.smart_contract_address
    reader = registry.reader(chain_id)
    marketplace_client = registry.marketplace(chain_id)

    async with scope_lock("seller-marketplaces", network_marketplace.id):
        candidates = await _load_candidates(db, network_marketplace.id, chain_id, marketplace_contract)
        summary = ReconcileSummary(candidates=len(candidates))
        usable = well_formed(candidates)
        summary.skipped = len(candidates) - len(usable)
        groups = group_by_contract(usable)
        summary.groups = len(groups)

        logger.info(
            "Reconciling seller marketplaces for network marketplace %s (chain %s): "
            "%d candidates, %d groups",
            network_marketplace.id,
            chain_id,
            summary.candidates,
            summary.groups,
        )

        for contract_address, group in groups.items():
            for match in await fetch_matches(reader, contract_address, group):
                candidate, chain_tx = match.candidate, match.chain_tx

                if not chain_tx.success:
                    if await record_failure(db, SellerMarketplaceTransaction, candidate, chain_tx):
                        summary.failed += 1
                    continue

                seller_marketplace_address = await marketplace_client.get_seller_marketplace_address(
                    contract_address, candidate.seller_id, candidate.owner_id
                )
                if not seller_marketplace_address:
                    raise UnableToGetSellerMarketplaceFromBlockchainMarketplace()

                await _ensure_address_is_unique(db, seller_marketplace_address, candidate.owner_id)

                owner_update = (
                    update(SellerMarketplace)
                    .where(
                        SellerMarketplace.id == candidate.owner_id,
                        SellerMarketplace.confirmed_at.is_(None),
                    )
                    .values(
                        confirmed_at=chain_tx.timestamp,
                        owner_wallet_address=chain_tx.sender_address,
                        smart_contract_address=seller_marketplace_address,
                    )
                )
                if await commit_confirmation(
                    db, SellerMarketplaceTransaction, candidate, chain_tx, owner_update
                ):
                    summary.confirmed += 1

    return summary


async def _load_candidates(
    db: AsyncSession,
    network_marketplace_id: str,
    chain_id: int,
    marketplace_contract: str,
) -> list[MarketplaceCandidate]:
    result = await db.execute(
        select(SellerMarketplaceTransaction)
        .join(SellerMarketplace, SellerMarketplace.id == SellerMarketplaceTransaction.seller_marketplace_id)
        .join(Network, Network.id == SellerMarketplaceTransaction.network_id)
        .where(
            SellerMarketplaceTransaction.confirmed_at.is_(None),
            SellerMarketplaceTransaction.failed_at.is_(None),
            Network.chain_id == chain_id,
            SellerMarketplace.network_marketplace_id == network_marketplace_id,
            SellerMarketplace.confirmed_at.is_(None),
            SellerMarketplace.pending_at.is_not(None),
        )
        .order_by(SellerMarketplaceTransaction.created_at)
    )
    return [
        MarketplaceCandidate(
            transaction_id=tx.id,
            hash=tx.hash,
            owner_id=tx.seller_marketplace_id,
            contract_address=marketplace_contract,
            seller_id=tx.seller_id,
        )
        for tx in result.scalars().all()
    ]


async def _ensure_address_is_unique(db: AsyncSession, address: str, seller_marketplace_id: str) -> None:
    result = await db.execute(
        select(SellerMarketplace.id).where(
            func.lower(SellerMarketplace.smart_contract_address) == address.lower(),
            SellerMarketplace.id != seller_marketplace_id,
        )
    )
    if result.first() is not None:
        raise SellerMarketplaceSmartContractAddressIsNotUnique(address)
