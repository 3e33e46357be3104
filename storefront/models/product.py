import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from storefront.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class ProductCategory(Base):
    __tablename__ = "product_categories"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    slug = Column(String(100), unique=True, nullable=False)
    title = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Product(Base):
    """Digital product priced in one of the seller marketplace's tokens.

    A product is published while it has ``published_at``; only published
    products with content can be ordered.
    """

    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    seller_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    seller_marketplace_token_id = Column(
        String(36), ForeignKey("seller_marketplace_tokens.id"), nullable=False
    )
    category_id = Column(String(36), ForeignKey("product_categories.id"), nullable=False)
    slug = Column(String(255), nullable=False)  # unique per seller
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    content = Column(Text, nullable=False, default="")
    price = Column(String(100), nullable=False)  # decimal string, e.g. "0.05"
    price_decimals = Column(Integer, nullable=False)
    price_formatted = Column(String(120), nullable=False)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    seller_marketplace_token = relationship("SellerMarketplaceToken", lazy="selectin")
    category = relationship("ProductCategory", lazy="selectin")

    __table_args__ = (
        Index("idx_products_seller", "seller_id"),
        Index("idx_products_seller_slug", "seller_id", "slug"),
    )
