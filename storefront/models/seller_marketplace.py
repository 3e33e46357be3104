"""Seller marketplace: a seller's storefront contract on one network."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from storefront.database import Base
from storefront.models.transaction import BlockchainTransactionMixin


def utcnow():
    return datetime.now(timezone.utc)


class SellerMarketplace(Base):
    __tablename__ = "seller_marketplaces"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    seller_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    network_id = Column(String(36), ForeignKey("networks.id"), nullable=False)
    network_marketplace_id = Column(String(36), ForeignKey("network_marketplaces.id"), nullable=False)

    # Both stay empty until the activation transaction is confirmed on chain
    smart_contract_address = Column(String(42), nullable=False, default="")
    owner_wallet_address = Column(String(42), nullable=False, default="")

    pending_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    network = relationship("Network", lazy="selectin")
    network_marketplace = relationship("NetworkMarketplace", lazy="selectin")
    transactions = relationship(
        "SellerMarketplaceTransaction",
        back_populates="seller_marketplace",
        lazy="selectin",
        order_by="SellerMarketplaceTransaction.created_at",
    )
    tokens = relationship("SellerMarketplaceToken", back_populates="seller_marketplace", lazy="selectin")

    __table_args__ = (
        Index("idx_seller_mp_seller", "seller_id"),
        Index("idx_seller_mp_network_mp", "network_marketplace_id"),
        Index("idx_seller_mp_contract", "smart_contract_address"),
    )


class SellerMarketplaceToken(Base):
    """A payment token the seller accepts, drawn from the network marketplace's list."""

    __tablename__ = "seller_marketplace_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    seller_marketplace_id = Column(String(36), ForeignKey("seller_marketplaces.id"), nullable=False)
    network_marketplace_token_id = Column(
        String(36), ForeignKey("network_marketplace_tokens.id"), nullable=False
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    seller_marketplace = relationship("SellerMarketplace", back_populates="tokens", lazy="selectin")
    network_marketplace_token = relationship("NetworkMarketplaceToken", lazy="selectin")


class SellerMarketplaceTransaction(BlockchainTransactionMixin, Base):
    __tablename__ = "seller_marketplace_transactions"

    seller_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    seller_marketplace_id = Column(String(36), ForeignKey("seller_marketplaces.id"), nullable=False)
    network_id = Column(String(36), ForeignKey("networks.id"), nullable=False)

    seller_marketplace = relationship("SellerMarketplace", back_populates="transactions", lazy="selectin")

    __table_args__ = (
        Index("idx_seller_mp_tx_owner", "seller_marketplace_id"),
        Index("idx_seller_mp_tx_network", "network_id"),
    )
