"""Seller withdrawals of accumulated token income."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from storefront.database import Base
from storefront.models.transaction import BlockchainTransactionMixin


def utcnow():
    return datetime.now(timezone.utc)


class SellerPayout(Base):
    __tablename__ = "seller_payouts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    seller_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    seller_marketplace_id = Column(String(36), ForeignKey("seller_marketplaces.id"), nullable=False)
    seller_marketplace_token_id = Column(
        String(36), ForeignKey("seller_marketplace_tokens.id"), nullable=False
    )
    amount = Column(String(100), nullable=False)  # decimal string
    decimals = Column(Integer, nullable=False)
    amount_formatted = Column(String(120), nullable=False)
    pending_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    seller_marketplace = relationship("SellerMarketplace", lazy="selectin")
    seller_marketplace_token = relationship("SellerMarketplaceToken", lazy="selectin")
    transactions = relationship(
        "SellerPayoutTransaction",
        back_populates="seller_payout",
        lazy="selectin",
        order_by="SellerPayoutTransaction.created_at",
    )

    __table_args__ = (
        Index("idx_payouts_seller", "seller_id"),
        Index("idx_payouts_seller_token", "seller_marketplace_id", "seller_marketplace_token_id"),
    )


class SellerPayoutTransaction(BlockchainTransactionMixin, Base):
    __tablename__ = "seller_payout_transactions"

    seller_payout_id = Column(String(36), ForeignKey("seller_payouts.id"), nullable=False)
    network_id = Column(String(36), ForeignKey("networks.id"), nullable=False)

    seller_payout = relationship("SellerPayout", back_populates="transactions", lazy="selectin")

    __table_args__ = (
        Index("idx_payout_tx_owner", "seller_payout_id"),
        Index("idx_payout_tx_network", "network_id"),
    )
