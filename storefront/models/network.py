"""Blockchain networks and the platform marketplace contract deployed on each."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from storefront.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class Network(Base):
    __tablename__ = "networks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    chain_id = Column(Integer, unique=True, nullable=False)
    title = Column(String(100), nullable=False)
    blockchain_explorer_url = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class NetworkMarketplace(Base):
    """Platform marketplace contract; the template every seller marketplace is created from."""

    __tablename__ = "network_marketplaces"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    network_id = Column(String(36), ForeignKey("networks.id"), nullable=False)
    smart_contract_address = Column(String(42), nullable=False)
    commission_rate = Column(Integer, nullable=False, default=0)  # whole percent
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    network = relationship("Network", lazy="selectin")
    tokens = relationship("NetworkMarketplaceToken", back_populates="network_marketplace", lazy="selectin")

    __table_args__ = (
        Index("idx_network_marketplace_network", "network_id"),
    )


class NetworkMarketplaceToken(Base):
    """Payment currency accepted by a network marketplace.

    ``smart_contract_address`` is NULL for the chain's native coin and the
    ERC20 contract otherwise.
    """

    __tablename__ = "network_marketplace_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    network_marketplace_id = Column(String(36), ForeignKey("network_marketplaces.id"), nullable=False)
    smart_contract_address = Column(String(42), nullable=True)
    symbol = Column(String(20), nullable=False)
    decimals = Column(Integer, nullable=False, default=18)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    network_marketplace = relationship("NetworkMarketplace", back_populates="tokens", lazy="selectin")
