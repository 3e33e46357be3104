"""Confirm seller payouts from the chain.

Withdrawals are calls to the seller's own marketplace contract. Only the
marketplace's owner wallet may withdraw, so a successful transaction from
any other sender means local state is wrong.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.blockchain.registry import ChainRegistry
from storefront.core.exceptions import (
    BlockchainPayoutOwnerWalletAddressMismatch,
    InvalidSellerMarketplaceSmartContractAddress,
    NetworkDoesNotExist,
)
from storefront.core.units import is_address, same_address
from storefront.core.validation import ChainId, UseCaseRequest, validate_request
from storefront.models.network import Network
from storefront.models.seller_payout import SellerPayout, SellerPayoutTransaction
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


class ReconcilePayoutsRequest(UseCaseRequest):
    network_chain_id: ChainId


@dataclass(frozen=True)
class PayoutCandidate(Candidate):
    owner_wallet_address: str


async def reconcile_seller_payouts(
    db: AsyncSession,
    registry: ChainRegistry,
    network_chain_id: int | str,
) -> ReconcileSummary:
    request = validate_request(ReconcilePayoutsRequest, network_chain_id=network_chain_id)
    chain_id = request.network_chain_id

    network = (
        await db.execute(select(Network).where(Network.chain_id == chain_id))
    ).scalar_one_or_none()
    if network is None:
        raise NetworkDoesNotExist()

    reader = registry.reader(chain_id)

    async with scope_lock("seller-payouts", chain_id):
        candidates = await _load_candidates(db, chain_id)
        summary = ReconcileSummary(candidates=len(candidates))
        usable = well_formed(candidates)
        summary.skipped = len(candidates) - len(usable)
        if any(not is_address(c.contract_address) for c in usable):
            raise InvalidSellerMarketplaceSmartContractAddress()
        groups = group_by_contract(usable)
        summary.groups = len(groups)

        logger.info(
            "Reconciling seller payouts on chain %s: %d candidates, %d groups",
            chain_id,
            summary.candidates,
            summary.groups,
        )

        for contract_address, group in groups.items():
            for match in await fetch_matches(reader, contract_address, group):
                candidate, chain_tx = match.candidate, match.chain_tx

                if not chain_tx.success:
                    if await record_failure(db, SellerPayoutTransaction, candidate, chain_tx):
                        summary.failed += 1
                    continue

                if not same_address(chain_tx.sender_address, candidate.owner_wallet_address):
                    raise BlockchainPayoutOwnerWalletAddressMismatch(
                        chain_tx.sender_address.lower(), candidate.owner_wallet_address.lower()
                    )

                owner_update = (
                    update(SellerPayout)
                    .where(
                        SellerPayout.id == candidate.owner_id,
                        SellerPayout.confirmed_at.is_(None),
                        SellerPayout.cancelled_at.is_(None),
                    )
                    .values(confirmed_at=chain_tx.timestamp)
                )
                if await commit_confirmation(
                    db, SellerPayoutTransaction, candidate, chain_tx, owner_update
                ):
                    summary.confirmed += 1

    return summary


async def _load_candidates(db: AsyncSession, chain_id: int) -> list[PayoutCandidate]:
    result = await db.execute(
        select(SellerPayoutTransaction)
        .join(SellerPayout, SellerPayout.id == SellerPayoutTransaction.seller_payout_id)
        .join(Network, Network.id == SellerPayoutTransaction.network_id)
        .where(
            SellerPayoutTransaction.confirmed_at.is_(None),
            SellerPayoutTransaction.failed_at.is_(None),
            Network.chain_id == chain_id,
            SellerPayout.confirmed_at.is_(None),
            SellerPayout.cancelled_at.is_(None),
            SellerPayout.pending_at.is_not(None),
        )
        .order_by(SellerPayoutTransaction.created_at)
    )
    return [
        PayoutCandidate(
            transaction_id=tx.id,
            hash=tx.hash,
            owner_id=tx.seller_payout_id,
            contract_address=tx.seller_payout.seller_marketplace.smart_contract_address,
            owner_wallet_address=tx.seller_payout.seller_marketplace.owner_wallet_address,
        )
        for tx in result.scalars().all()
    ]
