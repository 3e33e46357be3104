"""Seller payouts: withdrawable balance, request, pay, cancel, poll.

The withdrawable balance of a (seller marketplace, token) pair is the sum of
its sales' seller income minus every payout that was not cancelled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import (
    AvailableTokenBalanceIsNegative,
    ConfirmedTransactionDoesNotHaveGas,
    ConfirmedTransactionDoesNotHaveTransactionFee,
    NothingToRequest,
    PayoutCannotBeCancelled,
    PayoutDoesNotExist,
    PayoutTransactionDoesNotExist,
    PayoutWasCancelled,
    PayoutWasConfirmed,
    PendingPayoutExists,
    PendingPayoutHasPendingTransaction,
    TransactionHashAlreadyExists,
    UserMarketplaceDoesNotExist,
    UserMarketplaceTokenDoesNotExist,
)
from storefront.core.units import format_units, parse_units
from storefront.core.validation import EntityId, TransactionHash, UseCaseRequest, validate_request
from storefront.database import atomic
from storefront.models.product_order import ProductSale
from storefront.models.seller_marketplace import SellerMarketplace, SellerMarketplaceToken
from storefront.models.seller_payout import SellerPayout, SellerPayoutTransaction
from storefront.services.status_service import (
    OwnerStatus,
    TransactionStatus,
    derive_payout_status,
    derive_transaction_status,
)
from storefront.services.user_service import ensure_user_exists

logger = logging.getLogger(__name__)


class SellerRequest(UseCaseRequest):
    seller_id: EntityId


class CreatePayoutRequest(SellerRequest):
    marketplace_id: EntityId
    marketplace_token_id: EntityId


class PayoutRequest(SellerRequest):
    payout_id: EntityId


class AddPayoutTransactionRequest(PayoutRequest):
    transaction_hash: TransactionHash


class PayoutTransactionRequest(PayoutRequest):
    transaction_id: EntityId


@dataclass(frozen=True)
class PayoutSummary:
    id: str
    network_title: str
    amount_formatted: str
    status: str
    date: datetime


@dataclass(frozen=True)
class WithdrawableBalance:
    seller_marketplace_id: str
    seller_marketplace_token_id: str
    amount: str
    amount_formatted: str
    decimals: int
    network_title: str
    marketplace_smart_contract_address: str
    token_smart_contract_address: str | None


async def get_withdrawable_balances(db: AsyncSession, seller_id: str) -> list[WithdrawableBalance]:
    request = validate_request(SellerRequest, seller_id=seller_id)
    await ensure_user_exists(db, request.seller_id)

    income: dict[tuple[str, str], int] = {}
    sales = await db.execute(
        select(
            ProductSale.seller_marketplace_id,
            ProductSale.seller_marketplace_token_id,
            ProductSale.seller_income,
            ProductSale.decimals,
        )
        .where(ProductSale.seller_id == request.seller_id)
        .order_by(ProductSale.created_at)
    )
    for marketplace_id, token_id, seller_income, decimals in sales.all():
        key = (marketplace_id, token_id)
        income[key] = income.get(key, 0) + parse_units(seller_income, decimals)

    if not income:
        return []

    withdrawn = await _withdrawn_by_token(db, request.seller_id)

    balances: list[WithdrawableBalance] = []
    for (marketplace_id, token_id), total in income.items():
        marketplace_token = await db.get(SellerMarketplaceToken, token_id)
        network_token = marketplace_token.network_marketplace_token
        marketplace = marketplace_token.seller_marketplace
        units = total - withdrawn.get((marketplace_id, token_id), 0)
        amount = format_units(units, network_token.decimals)
        balances.append(
            WithdrawableBalance(
                seller_marketplace_id=marketplace_id,
                seller_marketplace_token_id=token_id,
                amount=amount,
                amount_formatted=f"{amount} {network_token.symbol}",
                decimals=network_token.decimals,
                network_title=marketplace.network.title,
                marketplace_smart_contract_address=marketplace.smart_contract_address,
                token_smart_contract_address=network_token.smart_contract_address,
            )
        )
    return balances


async def create_payout(
    db: AsyncSession, seller_id: str, marketplace_id: str, marketplace_token_id: str
) -> SellerPayout:
    """Request withdrawal of everything currently available for one token."""
    request = validate_request(
        CreatePayoutRequest,
        seller_id=seller_id,
        marketplace_id=marketplace_id,
        marketplace_token_id=marketplace_token_id,
    )
    await ensure_user_exists(db, request.seller_id)

    marketplace = (
        await db.execute(
            select(SellerMarketplace).where(
                SellerMarketplace.id == request.marketplace_id,
                SellerMarketplace.seller_id == request.seller_id,
                SellerMarketplace.confirmed_at.is_not(None),
            )
        )
    ).scalar_one_or_none()
    if marketplace is None:
        raise UserMarketplaceDoesNotExist()

    marketplace_token = (
        await db.execute(
            select(SellerMarketplaceToken).where(
                SellerMarketplaceToken.id == request.marketplace_token_id,
                SellerMarketplaceToken.seller_marketplace_id == marketplace.id,
            )
        )
    ).scalar_one_or_none()
    if marketplace_token is None:
        raise UserMarketplaceTokenDoesNotExist()
    network_token = marketplace_token.network_marketplace_token

    async with atomic(db):
        # Lock the marketplace row so two requests cannot both see no open payout
        await db.execute(
            select(SellerMarketplace.id).where(SellerMarketplace.id == marketplace.id).with_for_update()
        )
        open_payout = await db.execute(
            select(SellerPayout.id).where(
                SellerPayout.seller_id == request.seller_id,
                SellerPayout.seller_marketplace_id == marketplace.id,
                SellerPayout.seller_marketplace_token_id == marketplace_token.id,
                SellerPayout.confirmed_at.is_(None),
                SellerPayout.cancelled_at.is_(None),
            )
        )
        if open_payout.first() is not None:
            raise PendingPayoutExists()

        available = await _available_units(db, request.seller_id, marketplace.id, marketplace_token.id)
        if available < 0:
            raise AvailableTokenBalanceIsNegative()
        if available == 0:
            raise NothingToRequest()

        amount = format_units(available, network_token.decimals)
        payout = SellerPayout(
            seller_id=request.seller_id,
            seller_marketplace_id=marketplace.id,
            seller_marketplace_token_id=marketplace_token.id,
            amount=amount,
            decimals=network_token.decimals,
            amount_formatted=f"{amount} {network_token.symbol}",
            transactions=[],
        )
        db.add(payout)

    logger.info("Seller %s requested payout %s of %s", request.seller_id, payout.id, payout.amount_formatted)
    return payout


async def add_payout_transaction(
    db: AsyncSession, seller_id: str, payout_id: str, transaction_hash: str
) -> SellerPayoutTransaction:
    request = validate_request(
        AddPayoutTransactionRequest,
        seller_id=seller_id,
        payout_id=payout_id,
        transaction_hash=transaction_hash,
    )
    await ensure_user_exists(db, request.seller_id)

    try:
        async with atomic(db):
            payout = await _get_payout(db, request.seller_id, request.payout_id, for_update=True)
            status = derive_payout_status(payout)
            if status is OwnerStatus.CONFIRMED:
                raise PayoutWasConfirmed()
            if status is OwnerStatus.CANCELLED:
                raise PayoutWasCancelled()
            if status is OwnerStatus.AWAITING_CONFIRMATION:
                raise PendingPayoutHasPendingTransaction()
            if status is OwnerStatus.DRAFT:
                payout.pending_at = datetime.now(timezone.utc)

            transaction = SellerPayoutTransaction(
                seller_payout_id=payout.id,
                network_id=payout.seller_marketplace.network_id,
                hash=request.transaction_hash,
            )
            db.add(transaction)
    except IntegrityError as exc:
        raise TransactionHashAlreadyExists() from exc

    logger.info("Payout %s received transaction %s", request.payout_id, request.transaction_hash)
    return transaction


async def cancel_payout(db: AsyncSession, seller_id: str, payout_id: str) -> SellerPayout:
    request = validate_request(PayoutRequest, seller_id=seller_id, payout_id=payout_id)
    await ensure_user_exists(db, request.seller_id)

    async with atomic(db):
        payout = await _get_payout(db, request.seller_id, request.payout_id, for_update=True)
        if derive_payout_status(payout) not in (OwnerStatus.DRAFT, OwnerStatus.PENDING):
            raise PayoutCannotBeCancelled()
        payout.cancelled_at = datetime.now(timezone.utc)

    logger.info("Seller %s cancelled payout %s", request.seller_id, request.payout_id)
    return payout


async def get_payout_status(db: AsyncSession, seller_id: str, payout_id: str) -> OwnerStatus:
    request = validate_request(PayoutRequest, seller_id=seller_id, payout_id=payout_id)
    await ensure_user_exists(db, request.seller_id)
    payout = await _get_payout(db, request.seller_id, request.payout_id)
    return derive_payout_status(payout)


async def get_payout_transaction_status(
    db: AsyncSession, seller_id: str, payout_id: str, transaction_id: str
) -> TransactionStatus:
    request = validate_request(
        PayoutTransactionRequest,
        seller_id=seller_id,
        payout_id=payout_id,
        transaction_id=transaction_id,
    )
    await ensure_user_exists(db, request.seller_id)
    payout = await _get_payout(db, request.seller_id, request.payout_id)

    transaction = next((tx for tx in payout.transactions if tx.id == request.transaction_id), None)
    if transaction is None:
        raise PayoutTransactionDoesNotExist()

    status = derive_transaction_status(transaction)
    if status is TransactionStatus.CONFIRMED:
        if transaction.gas is None:
            raise ConfirmedTransactionDoesNotHaveGas()
        if transaction.transaction_fee is None:
            raise ConfirmedTransactionDoesNotHaveTransactionFee()
    return status


async def get_payouts(db: AsyncSession, seller_id: str) -> list[PayoutSummary]:
    """The seller's payouts on every network, newest first."""
    request = validate_request(SellerRequest, seller_id=seller_id)
    await ensure_user_exists(db, request.seller_id)

    result = await db.execute(
        select(SellerPayout)
        .where(SellerPayout.seller_id == request.seller_id)
        .order_by(SellerPayout.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return [
        PayoutSummary(
            id=payout.id,
            network_title=payout.seller_marketplace.network.title,
            amount_formatted=payout.amount_formatted,
            status=derive_payout_status(payout).value,
            date=payout.created_at,
        )
        for payout in result.scalars().all()
    ]


async def _withdrawn_by_token(db: AsyncSession, seller_id: str) -> dict[tuple[str, str], int]:
    """Base units of every payout that was not cancelled, per (marketplace, token)."""
    result = await db.execute(
        select(
            SellerPayout.seller_marketplace_id,
            SellerPayout.seller_marketplace_token_id,
            SellerPayout.amount,
            SellerPayout.decimals,
        ).where(
            SellerPayout.seller_id == seller_id,
            SellerPayout.cancelled_at.is_(None),
        )
    )
    withdrawn: dict[tuple[str, str], int] = {}
    for marketplace_id, token_id, amount, decimals in result.all():
        key = (marketplace_id, token_id)
        withdrawn[key] = withdrawn.get(key, 0) + parse_units(amount, decimals)
    return withdrawn


async def _available_units(
    db: AsyncSession, seller_id: str, marketplace_id: str, token_id: str
) -> int:
    sales = await db.execute(
        select(ProductSale.seller_income, ProductSale.decimals).where(
            ProductSale.seller_id == seller_id,
            ProductSale.seller_marketplace_id == marketplace_id,
            ProductSale.seller_marketplace_token_id == token_id,
        )
    )
    income = sum(parse_units(value, sale_decimals) for value, sale_decimals in sales.all())
    withdrawn = (await _withdrawn_by_token(db, seller_id)).get((marketplace_id, token_id), 0)
    return income - withdrawn


async def _get_payout(
    db: AsyncSession, seller_id: str, payout_id: str, *, for_update: bool = False
) -> SellerPayout:
    query = (
        select(SellerPayout)
        .where(SellerPayout.id == payout_id, SellerPayout.seller_id == seller_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    payout = (await db.execute(query)).scalar_one_or_none()
    if payout is None:
        raise PayoutDoesNotExist()
    return payout
