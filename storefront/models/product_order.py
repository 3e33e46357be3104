"""Product orders, their payment transactions, and the sale recorded on confirmation."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from storefront.database import Base
from storefront.models.transaction import BlockchainTransactionMixin


def utcnow():
    return datetime.now(timezone.utc)


class ProductOrder(Base):
    __tablename__ = "product_orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    buyer_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    seller_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    seller_marketplace_id = Column(String(36), ForeignKey("seller_marketplaces.id"), nullable=False)
    seller_marketplace_token_id = Column(
        String(36), ForeignKey("seller_marketplace_tokens.id"), nullable=False
    )

    price = Column(String(100), nullable=False)  # decimal string
    price_decimals = Column(Integer, nullable=False)
    price_formatted = Column(String(120), nullable=False)
    seller_wallet_address = Column(String(42), nullable=False, default="")

    # At rest at most one of confirmed_at / cancelled_at / refunded_at is set
    pending_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    product = relationship("Product", lazy="selectin")
    seller_marketplace = relationship("SellerMarketplace", lazy="selectin")
    seller_marketplace_token = relationship("SellerMarketplaceToken", lazy="selectin")
    transactions = relationship(
        "ProductOrderTransaction",
        back_populates="product_order",
        lazy="selectin",
        order_by="ProductOrderTransaction.created_at",
    )

    __table_args__ = (
        Index("idx_orders_buyer", "buyer_id"),
        Index("idx_orders_product", "product_id"),
        Index("idx_orders_seller_mp", "seller_marketplace_id"),
    )


class ProductOrderTransaction(BlockchainTransactionMixin, Base):
    __tablename__ = "product_order_transactions"

    product_order_id = Column(String(36), ForeignKey("product_orders.id"), nullable=False)
    network_id = Column(String(36), ForeignKey("networks.id"), nullable=False)

    product_order = relationship("ProductOrder", back_populates="transactions", lazy="selectin")

    __table_args__ = (
        Index("idx_order_tx_owner", "product_order_id"),
        Index("idx_order_tx_network", "network_id"),
    )


class ProductSale(Base):
    """Immutable income split for one confirmed order transaction."""

    __tablename__ = "product_sales"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    seller_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    product_order_transaction_id = Column(
        String(36), ForeignKey("product_order_transactions.id"), unique=True, nullable=False
    )
    seller_marketplace_id = Column(String(36), ForeignKey("seller_marketplaces.id"), nullable=False)
    seller_marketplace_token_id = Column(
        String(36), ForeignKey("seller_marketplace_tokens.id"), nullable=False
    )
    seller_income = Column(String(100), nullable=False)
    seller_income_formatted = Column(String(120), nullable=False)
    platform_income = Column(String(100), nullable=False)
    platform_income_formatted = Column(String(120), nullable=False)
    decimals = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_sales_seller", "seller_id"),
        Index("idx_sales_seller_token", "seller_marketplace_id", "seller_marketplace_token_id"),
    )
