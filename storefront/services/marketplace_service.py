"""Seller marketplace activation: draft, submit the activation transaction, poll status."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import (
    MarketplaceAlreadyExists,
    MarketplaceDoesNotExist,
    MarketplaceMustHaveTokens,
    MarketplaceWasConfirmed,
    NetworkMarketplaceDoesNotExist,
    NetworkMarketplaceDoesNotHaveTokens,
    PendingMarketplaceHasPendingTransaction,
    SellerMarketplaceDoesNotHaveOwnerWalletAddress,
    SellerMarketplaceDoesNotHaveSmartContractAddress,
    TransactionHashAlreadyExists,
)
from storefront.core.validation import EntityId, TransactionHash, UseCaseRequest, validate_request
from storefront.database import atomic
from storefront.models.network import Network, NetworkMarketplace
from storefront.models.seller_marketplace import (
    SellerMarketplace,
    SellerMarketplaceToken,
    SellerMarketplaceTransaction,
)
from storefront.services.status_service import OwnerStatus, derive_marketplace_status
from storefront.services.user_service import ensure_user_exists

logger = logging.getLogger(__name__)


class CreateDraftMarketplaceRequest(UseCaseRequest):
    seller_id: EntityId
    network_marketplace_id: EntityId


class AddMarketplaceTransactionRequest(UseCaseRequest):
    seller_id: EntityId
    marketplace_id: EntityId
    transaction_hash: TransactionHash


class MarketplaceStatusRequest(UseCaseRequest):
    seller_id: EntityId
    marketplace_id: EntityId


class SellerRequest(UseCaseRequest):
    seller_id: EntityId


@dataclass(frozen=True)
class SellerMarketplaceSummary:
    id: str
    network_title: str
    network_marketplace_smart_contract_address: str
    smart_contract_address: str | None  # None until activation is confirmed
    owner_wallet_address: str | None
    commission_rate: int
    status: str
    tokens: tuple[str, ...]  # symbols


@dataclass(frozen=True)
class MarketplaceTokenOption:
    id: str
    display_name: str


async def create_draft_marketplace(
    db: AsyncSession, seller_id: str, network_marketplace_id: str
) -> SellerMarketplace:
    """Return the seller's draft for this network marketplace, creating it if needed."""
    request = validate_request(
        CreateDraftMarketplaceRequest,
        seller_id=seller_id,
        network_marketplace_id=network_marketplace_id,
    )
    await ensure_user_exists(db, request.seller_id)

    network_marketplace = await db.get(NetworkMarketplace, request.network_marketplace_id)
    if network_marketplace is None:
        raise NetworkMarketplaceDoesNotExist()
    if not network_marketplace.tokens:
        raise NetworkMarketplaceDoesNotHaveTokens()

    result = await db.execute(
        select(SellerMarketplace)
        .where(
            SellerMarketplace.seller_id == request.seller_id,
            SellerMarketplace.network_marketplace_id == network_marketplace.id,
        )
        .order_by(SellerMarketplace.created_at.desc())
        .execution_options(populate_existing=True)
    )
    for existing in result.scalars().all():
        if derive_marketplace_status(existing) is OwnerStatus.DRAFT:
            return existing
        raise MarketplaceAlreadyExists()

    marketplace = SellerMarketplace(
        seller_id=request.seller_id,
        network_id=network_marketplace.network_id,
        network_marketplace_id=network_marketplace.id,
        smart_contract_address="",
        owner_wallet_address="",
        tokens=[
            SellerMarketplaceToken(network_marketplace_token_id=token.id)
            for token in network_marketplace.tokens
        ],
        transactions=[],
    )
    async with atomic(db):
        db.add(marketplace)

    logger.info("Seller %s created draft marketplace %s", request.seller_id, marketplace.id)
    return marketplace


async def add_marketplace_transaction(
    db: AsyncSession, seller_id: str, marketplace_id: str, transaction_hash: str
) -> SellerMarketplaceTransaction:
    """Record the activation transaction the seller just sent."""
    request = validate_request(
        AddMarketplaceTransactionRequest,
        seller_id=seller_id,
        marketplace_id=marketplace_id,
        transaction_hash=transaction_hash,
    )
    await ensure_user_exists(db, request.seller_id)

    try:
        async with atomic(db):
            marketplace = await _get_marketplace(
                db, request.seller_id, request.marketplace_id, for_update=True
            )
            status = derive_marketplace_status(marketplace)
            if status is OwnerStatus.CONFIRMED:
                raise MarketplaceWasConfirmed()
            if status is OwnerStatus.AWAITING_CONFIRMATION:
                raise PendingMarketplaceHasPendingTransaction()
            if status is OwnerStatus.DRAFT:
                marketplace.pending_at = datetime.now(timezone.utc)

            transaction = SellerMarketplaceTransaction(
                seller_id=request.seller_id,
                seller_marketplace_id=marketplace.id,
                network_id=marketplace.network_id,
                hash=request.transaction_hash,
            )
            db.add(transaction)
    except IntegrityError as exc:
        raise TransactionHashAlreadyExists() from exc

    logger.info(
        "Marketplace %s received activation transaction %s",
        request.marketplace_id,
        request.transaction_hash,
    )
    return transaction


async def get_marketplace_status(
    db: AsyncSession, seller_id: str, marketplace_id: str
) -> OwnerStatus:
    request = validate_request(
        MarketplaceStatusRequest, seller_id=seller_id, marketplace_id=marketplace_id
    )
    await ensure_user_exists(db, request.seller_id)
    marketplace = await _get_marketplace(db, request.seller_id, request.marketplace_id)
    return derive_marketplace_status(marketplace)


async def get_marketplaces(db: AsyncSession, seller_id: str) -> list[SellerMarketplaceSummary]:
    request = validate_request(SellerRequest, seller_id=seller_id)
    await ensure_user_exists(db, request.seller_id)

    result = await db.execute(
        select(SellerMarketplace)
        .where(SellerMarketplace.seller_id == request.seller_id)
        .order_by(SellerMarketplace.created_at.desc())
        .execution_options(populate_existing=True)
    )
    summaries: list[SellerMarketplaceSummary] = []
    for marketplace in result.scalars().all():
        status = derive_marketplace_status(marketplace)
        if status is OwnerStatus.CONFIRMED:
            if not marketplace.owner_wallet_address:
                raise SellerMarketplaceDoesNotHaveOwnerWalletAddress()
            if not marketplace.smart_contract_address:
                raise SellerMarketplaceDoesNotHaveSmartContractAddress()
        if not marketplace.tokens:
            raise MarketplaceMustHaveTokens()

        summaries.append(
            SellerMarketplaceSummary(
                id=marketplace.id,
                network_title=marketplace.network.title,
                network_marketplace_smart_contract_address=(
                    marketplace.network_marketplace.smart_contract_address
                ),
                smart_contract_address=marketplace.smart_contract_address or None,
                owner_wallet_address=marketplace.owner_wallet_address or None,
                commission_rate=marketplace.network_marketplace.commission_rate,
                status=status.value,
                tokens=tuple(token.network_marketplace_token.symbol for token in marketplace.tokens),
            )
        )
    return summaries


async def get_marketplace_tokens(db: AsyncSession, seller_id: str) -> list[MarketplaceTokenOption]:
    """Tokens of the seller's confirmed marketplaces, the choices a product can be priced in."""
    request = validate_request(SellerRequest, seller_id=seller_id)
    await ensure_user_exists(db, request.seller_id)

    result = await db.execute(
        select(SellerMarketplace)
        .join(Network, Network.id == SellerMarketplace.network_id)
        .where(
            SellerMarketplace.seller_id == request.seller_id,
            SellerMarketplace.confirmed_at.is_not(None),
        )
        .order_by(Network.title, SellerMarketplace.created_at)
        .execution_options(populate_existing=True)
    )
    return [
        MarketplaceTokenOption(
            id=token.id,
            display_name=f"{marketplace.network.title} - {token.network_marketplace_token.symbol}",
        )
        for marketplace in result.scalars().all()
        for token in marketplace.tokens
    ]


async def _get_marketplace(
    db: AsyncSession, seller_id: str, marketplace_id: str, *, for_update: bool = False
) -> SellerMarketplace:
    query = (
        select(SellerMarketplace)
        .where(SellerMarketplace.id == marketplace_id, SellerMarketplace.seller_id == seller_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    marketplace = (await db.execute(query)).scalar_one_or_none()
    if marketplace is None:
        raise MarketplaceDoesNotExist()
    return marketplace
