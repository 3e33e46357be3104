"""Confirm product order payments from the chain.

A successful payment is only trusted after the seller marketplace contract
reports the same order with the expected token and price. Confirmation
records the income split as a ``ProductSale`` in the same unit of work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.blockchain.registry import ChainRegistry
from storefront.core.exceptions import (
    BlockchainProductOrderPaymentMethodMismatch,
    BlockchainProductOrderPriceMismatch,
    InvalidSellerMarketplaceSmartContractAddress,
    NetworkDoesNotExist,
    UnableToGetProductOrderFromSellerMarketplace,
)
from storefront.core.units import ZERO_ADDRESS, is_address, parse_units, same_address
from storefront.core.validation import ChainId, UseCaseRequest, validate_request
from storefront.models.network import Network
from storefront.models.product_order import ProductOrder, ProductOrderTransaction, ProductSale
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
from storefront.services.split_service import split_income

logger = logging.getLogger(__name__)


class ReconcileOrdersRequest(UseCaseRequest):
    network_chain_id: ChainId


@dataclass(frozen=True)
class OrderCandidate(Candidate):
    seller_id: str
    product_id: str
    seller_marketplace_id: str
    seller_marketplace_token_id: str
    payment_contract: str
    price_units: int
    decimals: int
    commission_rate: int
    token_symbol: str


async def reconcile_product_orders(
    db: AsyncSession,
    registry: ChainRegistry,
    network_chain_id: int | str,
) -> ReconcileSummary:
    request = validate_request(ReconcileOrdersRequest, network_chain_id=network_chain_id)
    chain_id = request.network_chain_id

    network = (
        await db.execute(select(Network).where(Network.chain_id == chain_id))
    ).scalar_one_or_none()
    if network is None:
        raise NetworkDoesNotExist()

    reader = registry.reader(chain_id)
    seller_marketplace_client = registry.seller_marketplace(chain_id)

    async with scope_lock("product-orders", chain_id):
        candidates = await _load_candidates(db, chain_id)
        summary = ReconcileSummary(candidates=len(candidates))
        usable = well_formed(candidates)
        summary.skipped = len(candidates) - len(usable)
        if any(not is_address(c.contract_address) for c in usable):
            raise InvalidSellerMarketplaceSmartContractAddress()
        groups = group_by_contract(usable)
        summary.groups = len(groups)

        logger.info(
            "Reconciling product orders on chain %s: %d candidates, %d groups",
            chain_id,
            summary.candidates,
            summary.groups,
        )

        for contract_address, group in groups.items():
            for match in await fetch_matches(reader, contract_address, group):
                candidate, chain_tx = match.candidate, match.chain_tx

                if not chain_tx.success:
                    if await record_failure(db, ProductOrderTransaction, candidate, chain_tx):
                        summary.failed += 1
                    continue

                on_chain = await seller_marketplace_client.get_order(
                    contract_address, candidate.owner_id
                )
                if on_chain is None:
                    raise UnableToGetProductOrderFromSellerMarketplace()

                if not same_address(on_chain.payment_contract, candidate.payment_contract):
                    raise BlockchainProductOrderPaymentMethodMismatch(
                        on_chain.payment_contract.lower(), candidate.payment_contract.lower()
                    )
                if on_chain.price != candidate.price_units:
                    raise BlockchainProductOrderPriceMismatch(on_chain.price, candidate.price_units)

                if await _confirm(db, candidate, chain_tx):
                    summary.confirmed += 1

    return summary


async def _confirm(db: AsyncSession, candidate: OrderCandidate, chain_tx) -> bool:
    split = split_income(candidate.price_units, candidate.commission_rate, candidate.decimals)
    sale = ProductSale(
        seller_id=candidate.seller_id,
        product_id=candidate.product_id,
        product_order_transaction_id=candidate.transaction_id,
        seller_marketplace_id=candidate.seller_marketplace_id,
        seller_marketplace_token_id=candidate.seller_marketplace_token_id,
        seller_income=split.seller_income,
        seller_income_formatted=split.seller_income_display(candidate.token_symbol),
        platform_income=split.platform_income,
        platform_income_formatted=split.platform_income_display(candidate.token_symbol),
        decimals=candidate.decimals,
    )
    owner_update = (
        update(ProductOrder)
        .where(
            ProductOrder.id == candidate.owner_id,
            ProductOrder.confirmed_at.is_(None),
            ProductOrder.cancelled_at.is_(None),
            ProductOrder.refunded_at.is_(None),
        )
        .values(confirmed_at=chain_tx.timestamp)
    )
    return await commit_confirmation(
        db, ProductOrderTransaction, candidate, chain_tx, owner_update, extra_rows=[sale]
    )


async def _load_candidates(db: AsyncSession, chain_id: int) -> list[OrderCandidate]:
    result = await db.execute(
        select(ProductOrderTransaction)
        .join(ProductOrder, ProductOrder.id == ProductOrderTransaction.product_order_id)
        .join(Network, Network.id == ProductOrderTransaction.network_id)
        .where(
            ProductOrderTransaction.confirmed_at.is_(None),
            ProductOrderTransaction.failed_at.is_(None),
            Network.chain_id == chain_id,
            ProductOrder.confirmed_at.is_(None),
            ProductOrder.cancelled_at.is_(None),
            ProductOrder.refunded_at.is_(None),
            ProductOrder.pending_at.is_not(None),
        )
        .order_by(ProductOrderTransaction.created_at)
    )

    candidates: list[OrderCandidate] = []
    for tx in result.scalars().all():
        order = tx.product_order
        seller_marketplace = order.seller_marketplace
        token = order.seller_marketplace_token.network_marketplace_token
        candidates.append(
            OrderCandidate(
                transaction_id=tx.id,
                hash=tx.hash,
                owner_id=order.id,
                contract_address=seller_marketplace.smart_contract_address,
                seller_id=order.seller_id,
                product_id=order.product_id,
                seller_marketplace_id=order.seller_marketplace_id,
                seller_marketplace_token_id=order.seller_marketplace_token_id,
                payment_contract=token.smart_contract_address or ZERO_ADDRESS,
                price_units=parse_units(order.price, order.price_decimals),
                decimals=order.price_decimals,
                commission_rate=seller_marketplace.network_marketplace.commission_rate,
                token_symbol=token.symbol,
            )
        )
    return candidates
