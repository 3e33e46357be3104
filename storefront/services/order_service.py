"""Product orders from the buyer's side: create, pay, cancel, poll."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import (
    ConfirmedTransactionDoesNotHaveGas,
    ConfirmedTransactionDoesNotHaveTransactionFee,
    OrderDoesNotExist,
    OrderTransactionDoesNotExist,
    OrderWasCancelled,
    OrderWasConfirmed,
    OrderWasRefunded,
    PendingOrderHasPendingTransaction,
    ProductDoesNotExist,
    ProductDoesNotHaveContent,
    ProductOrderCannotBeCancelled,
    SellerMarketplaceDoesNotHaveOwnerWalletAddress,
    SellerMarketplaceDoesNotHaveSmartContractAddress,
    SellerMarketplaceIsNotConfirmed,
    TransactionHashAlreadyExists,
    UnpaidOrderExists,
)
from storefront.core.validation import EntityId, TransactionHash, UseCaseRequest, validate_request
from storefront.database import atomic
from storefront.models.product import Product
from storefront.models.product_order import ProductOrder, ProductOrderTransaction
from storefront.services.status_service import (
    OwnerStatus,
    TransactionStatus,
    derive_order_status,
    derive_transaction_status,
)
from storefront.services.user_service import ensure_user_exists

logger = logging.getLogger(__name__)

_CLOSED_ORDER_ERRORS = {
    OwnerStatus.CONFIRMED: OrderWasConfirmed,
    OwnerStatus.CANCELLED: OrderWasCancelled,
    OwnerStatus.REFUNDED: OrderWasRefunded,
}

# No payment in flight and nothing final yet
_CANCELLABLE = (OwnerStatus.DRAFT, OwnerStatus.PENDING)


class BuyerRequest(UseCaseRequest):
    buyer_id: EntityId


class CreateOrderRequest(UseCaseRequest):
    buyer_id: EntityId
    product_id: EntityId


class OrderRequest(UseCaseRequest):
    buyer_id: EntityId
    order_id: EntityId


class AddOrderTransactionRequest(OrderRequest):
    transaction_hash: TransactionHash


class OrderTransactionRequest(OrderRequest):
    transaction_id: EntityId


@dataclass(frozen=True)
class BuyerOrder:
    id: str
    product_title: str
    price_formatted: str
    status: str
    cancellable: bool


async def create_order(db: AsyncSession, buyer_id: str, product_id: str) -> ProductOrder:
    request = validate_request(CreateOrderRequest, buyer_id=buyer_id, product_id=product_id)
    await ensure_user_exists(db, request.buyer_id)

    product = (
        await db.execute(
            select(Product).where(
                Product.id == request.product_id,
                Product.published_at.is_not(None),
            )
        )
    ).scalar_one_or_none()
    if product is None:
        raise ProductDoesNotExist()
    if not (product.content or "").strip():
        raise ProductDoesNotHaveContent()

    marketplace_token = product.seller_marketplace_token
    seller_marketplace = marketplace_token.seller_marketplace
    if seller_marketplace.confirmed_at is None:
        raise SellerMarketplaceIsNotConfirmed()
    if not seller_marketplace.smart_contract_address:
        raise SellerMarketplaceDoesNotHaveSmartContractAddress()
    if not seller_marketplace.owner_wallet_address:
        raise SellerMarketplaceDoesNotHaveOwnerWalletAddress()

    unpaid = await db.execute(
        select(ProductOrder.id).where(
            ProductOrder.buyer_id == request.buyer_id,
            ProductOrder.product_id == product.id,
            ProductOrder.confirmed_at.is_(None),
            ProductOrder.cancelled_at.is_(None),
            ProductOrder.refunded_at.is_(None),
        )
    )
    if unpaid.first() is not None:
        raise UnpaidOrderExists()

    order = ProductOrder(
        buyer_id=request.buyer_id,
        product_id=product.id,
        seller_id=product.seller_id,
        seller_marketplace_id=seller_marketplace.id,
        seller_marketplace_token_id=marketplace_token.id,
        price=product.price,
        price_decimals=product.price_decimals,
        price_formatted=product.price_formatted,
        seller_wallet_address=seller_marketplace.owner_wallet_address,
        transactions=[],
    )
    async with atomic(db):
        db.add(order)

    logger.info("Buyer %s created order %s for product %s", request.buyer_id, order.id, product.id)
    return order


async def add_order_transaction(
    db: AsyncSession, buyer_id: str, order_id: str, transaction_hash: str
) -> ProductOrderTransaction:
    """Record the payment transaction the buyer just sent."""
    request = validate_request(
        AddOrderTransactionRequest,
        buyer_id=buyer_id,
        order_id=order_id,
        transaction_hash=transaction_hash,
    )
    await ensure_user_exists(db, request.buyer_id)

    try:
        async with atomic(db):
            order = await _get_order(db, request.buyer_id, request.order_id, for_update=True)
            status = derive_order_status(order)
            if status in _CLOSED_ORDER_ERRORS:
                raise _CLOSED_ORDER_ERRORS[status]()
            if status is OwnerStatus.AWAITING_CONFIRMATION:
                raise PendingOrderHasPendingTransaction()
            if status is OwnerStatus.DRAFT:
                order.pending_at = datetime.now(timezone.utc)

            transaction = ProductOrderTransaction(
                product_order_id=order.id,
                network_id=order.seller_marketplace.network_id,
                hash=request.transaction_hash,
            )
            db.add(transaction)
    except IntegrityError as exc:
        raise TransactionHashAlreadyExists() from exc

    logger.info("Order %s received payment transaction %s", request.order_id, request.transaction_hash)
    return transaction


async def cancel_order(db: AsyncSession, buyer_id: str, order_id: str) -> ProductOrder:
    """Cancel an order that has no payment in flight."""
    request = validate_request(OrderRequest, buyer_id=buyer_id, order_id=order_id)
    await ensure_user_exists(db, request.buyer_id)

    async with atomic(db):
        order = await _get_order(db, request.buyer_id, request.order_id, for_update=True)
        if derive_order_status(order) not in _CANCELLABLE:
            raise ProductOrderCannotBeCancelled()
        order.cancelled_at = datetime.now(timezone.utc)

    logger.info("Buyer %s cancelled order %s", request.buyer_id, request.order_id)
    return order


async def get_order_status(db: AsyncSession, buyer_id: str, order_id: str) -> OwnerStatus:
    request = validate_request(OrderRequest, buyer_id=buyer_id, order_id=order_id)
    await ensure_user_exists(db, request.buyer_id)
    order = await _get_order(db, request.buyer_id, request.order_id)
    return derive_order_status(order)


async def get_order_transaction_status(
    db: AsyncSession, buyer_id: str, order_id: str, transaction_id: str
) -> TransactionStatus:
    request = validate_request(
        OrderTransactionRequest,
        buyer_id=buyer_id,
        order_id=order_id,
        transaction_id=transaction_id,
    )
    await ensure_user_exists(db, request.buyer_id)
    order = await _get_order(db, request.buyer_id, request.order_id)

    transaction = next((tx for tx in order.transactions if tx.id == request.transaction_id), None)
    if transaction is None:
        raise OrderTransactionDoesNotExist()

    status = derive_transaction_status(transaction)
    if status is TransactionStatus.CONFIRMED:
        if transaction.gas is None:
            raise ConfirmedTransactionDoesNotHaveGas()
        if transaction.transaction_fee is None:
            raise ConfirmedTransactionDoesNotHaveTransactionFee()
    return status


async def get_orders(db: AsyncSession, buyer_id: str) -> list[BuyerOrder]:
    """The buyer's orders, newest first."""
    request = validate_request(BuyerRequest, buyer_id=buyer_id)
    await ensure_user_exists(db, request.buyer_id)

    result = await db.execute(
        select(ProductOrder)
        .where(ProductOrder.buyer_id == request.buyer_id)
        .order_by(ProductOrder.created_at.desc())
        .execution_options(populate_existing=True)
    )
    orders: list[BuyerOrder] = []
    for order in result.scalars().all():
        status = derive_order_status(order)
        orders.append(
            BuyerOrder(
                id=order.id,
                product_title=order.product.title,
                price_formatted=order.price_formatted,
                status=status.value,
                cancellable=status in _CANCELLABLE,
            )
        )
    return orders


async def _get_order(
    db: AsyncSession, buyer_id: str, order_id: str, *, for_update: bool = False
) -> ProductOrder:
    query = (
        select(ProductOrder)
        .where(ProductOrder.id == order_id, ProductOrder.buyer_id == buyer_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    order = (await db.execute(query)).scalar_one_or_none()
    if order is None:
        raise OrderDoesNotExist()
    return order
