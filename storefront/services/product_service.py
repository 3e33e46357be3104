"""Seller products: create, edit, list, and the sales they produced."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated

from pydantic import StringConstraints
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import (
    InvalidProductPrice,
    ProductCategoryDoesNotExist,
    ProductDoesNotExist,
    ProductPriceMustBePositive,
    ProductSlugIsAlreadyTaken,
    TokenDoesNotExist,
    UseCaseValidationError,
)
from storefront.core.slugs import to_slug
from storefront.core.units import format_units, parse_units
from storefront.core.validation import EntityId, UseCaseRequest, validate_request
from storefront.database import atomic
from storefront.models.network import Network
from storefront.models.product import Product, ProductCategory
from storefront.models.product_order import ProductOrder, ProductOrderTransaction, ProductSale
from storefront.models.seller_marketplace import SellerMarketplace, SellerMarketplaceToken
from storefront.models.user import User
from storefront.services.user_service import ensure_user_exists

logger = logging.getLogger(__name__)

Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Trimmed = Annotated[str, StringConstraints(strip_whitespace=True)]
# Human-readable amount, e.g. "1234.567890"
Price = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Slug = Annotated[str, StringConstraints(strip_whitespace=True, to_lower=True, min_length=1)]


class SellerRequest(UseCaseRequest):
    seller_id: EntityId


class ProductRequest(SellerRequest):
    product_id: EntityId


class CreateProductRequest(SellerRequest):
    marketplace_token_id: EntityId
    category_id: EntityId
    title: Title
    description: Trimmed
    price: Price


class UpdateProductRequest(ProductRequest):
    marketplace_token_id: EntityId
    category_id: EntityId
    slug: Slug
    title: Title
    description: Trimmed
    content: Trimmed
    price: Price


@dataclass(frozen=True)
class SellerProduct:
    id: str
    title: str
    price_formatted: str
    category_title: str
    status: str  # "published" | "draft"


@dataclass(frozen=True)
class ProductDetails:
    id: str
    seller_marketplace_token_id: str
    category_id: str
    category_title: str
    slug: str
    title: str
    description: str
    content: str
    price: str
    price_formatted: str
    status: str


@dataclass(frozen=True)
class SellerProductSale:
    id: str
    product_order_id: str
    product_title: str
    network_title: str
    buyer_display_name: str
    seller_income_formatted: str
    platform_income_formatted: str
    date: datetime


async def create_product(
    db: AsyncSession,
    seller_id: str,
    marketplace_token_id: str,
    category_id: str,
    title: str,
    description: str,
    price: str,
) -> Product:
    """Create an unpublished product; it gets content and goes live through ``update_product``."""
    request = validate_request(
        CreateProductRequest,
        seller_id=seller_id,
        marketplace_token_id=marketplace_token_id,
        category_id=category_id,
        title=title,
        description=description,
        price=price,
    )
    await ensure_user_exists(db, request.seller_id)

    marketplace_token = await _get_seller_token(db, request.seller_id, request.marketplace_token_id)
    network_token = marketplace_token.network_marketplace_token
    price = _normalize_price(request.price, network_token.decimals)
    await _ensure_category_exists(db, request.category_id)

    slug = to_slug(request.title)
    if not slug or await _slug_taken(db, request.seller_id, slug):
        slug = str(uuid.uuid4())

    product = Product(
        seller_id=request.seller_id,
        seller_marketplace_token_id=marketplace_token.id,
        category_id=request.category_id,
        slug=slug,
        title=request.title,
        description=request.description,
        content="",
        price=price,
        price_decimals=network_token.decimals,
        price_formatted=f"{price} {network_token.symbol}",
    )
    async with atomic(db):
        db.add(product)

    logger.info("Seller %s created product %s (%s)", request.seller_id, product.id, product.price_formatted)
    return product


async def update_product(
    db: AsyncSession,
    seller_id: str,
    product_id: str,
    *,
    marketplace_token_id: str,
    category_id: str,
    slug: str,
    title: str,
    description: str,
    content: str,
    price: str,
) -> Product:
    """Replace the editable fields. A product with content is published, one without is not."""
    request = validate_request(
        UpdateProductRequest,
        seller_id=seller_id,
        product_id=product_id,
        marketplace_token_id=marketplace_token_id,
        category_id=category_id,
        slug=slug,
        title=title,
        description=description,
        content=content,
        price=price,
    )
    await ensure_user_exists(db, request.seller_id)
    product = await _get_product(db, request.seller_id, request.product_id)

    marketplace_token = await _get_seller_token(db, request.seller_id, request.marketplace_token_id)
    network_token = marketplace_token.network_marketplace_token
    price = _normalize_price(request.price, network_token.decimals)
    await _ensure_category_exists(db, request.category_id)

    slug = to_slug(request.slug)
    if not slug:
        raise UseCaseValidationError(["slug: Must contain a letter or a digit"])
    if await _slug_taken(db, request.seller_id, slug, exclude_product_id=product.id):
        raise ProductSlugIsAlreadyTaken()

    async with atomic(db):
        product.seller_marketplace_token_id = marketplace_token.id
        product.category_id = request.category_id
        product.slug = slug
        product.title = request.title
        product.description = request.description
        product.content = request.content
        product.price = price
        product.price_decimals = network_token.decimals
        product.price_formatted = f"{price} {network_token.symbol}"
        if request.content:
            product.published_at = product.published_at or datetime.now(timezone.utc)
        else:
            product.published_at = None

    logger.info("Seller %s updated product %s", request.seller_id, product.id)
    return await _get_product(db, request.seller_id, product.id)


async def get_products(db: AsyncSession, seller_id: str) -> list[SellerProduct]:
    request = validate_request(SellerRequest, seller_id=seller_id)
    await ensure_user_exists(db, request.seller_id)

    result = await db.execute(
        select(Product)
        .where(Product.seller_id == request.seller_id)
        .order_by(Product.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return [
        SellerProduct(
            id=product.id,
            title=product.title,
            price_formatted=product.price_formatted,
            category_title=product.category.title,
            status=_product_status(product),
        )
        for product in result.scalars().all()
    ]


async def get_product_details(db: AsyncSession, seller_id: str, product_id: str) -> ProductDetails:
    request = validate_request(ProductRequest, seller_id=seller_id, product_id=product_id)
    await ensure_user_exists(db, request.seller_id)
    product = await _get_product(db, request.seller_id, request.product_id)

    return ProductDetails(
        id=product.id,
        seller_marketplace_token_id=product.seller_marketplace_token_id,
        category_id=product.category_id,
        category_title=product.category.title,
        slug=product.slug,
        title=product.title,
        description=product.description,
        content=product.content,
        price=product.price,
        price_formatted=product.price_formatted,
        status=_product_status(product),
    )


async def get_product_sales(db: AsyncSession, seller_id: str) -> list[SellerProductSale]:
    """Every sale of the seller's products, newest first."""
    request = validate_request(SellerRequest, seller_id=seller_id)
    await ensure_user_exists(db, request.seller_id)

    result = await db.execute(
        select(
            ProductSale,
            ProductOrderTransaction.product_order_id,
            Product.title,
            Network.title,
            User.name,
            User.username,
        )
        .join(Product, Product.id == ProductSale.product_id)
        .join(SellerMarketplace, SellerMarketplace.id == ProductSale.seller_marketplace_id)
        .join(Network, Network.id == SellerMarketplace.network_id)
        .join(
            ProductOrderTransaction,
            ProductOrderTransaction.id == ProductSale.product_order_transaction_id,
        )
        .join(ProductOrder, ProductOrder.id == ProductOrderTransaction.product_order_id)
        .join(User, User.id == ProductOrder.buyer_id)
        .where(ProductSale.seller_id == request.seller_id)
        .order_by(ProductSale.created_at.desc())
    )
    return [
        SellerProductSale(
            id=sale.id,
            product_order_id=order_id,
            product_title=product_title,
            network_title=network_title,
            buyer_display_name=buyer_name or buyer_username,
            seller_income_formatted=sale.seller_income_formatted,
            platform_income_formatted=sale.platform_income_formatted,
            date=sale.created_at,
        )
        for sale, order_id, product_title, network_title, buyer_name, buyer_username in result.all()
    ]


async def get_categories(db: AsyncSession) -> list[ProductCategory]:
    result = await db.execute(select(ProductCategory).order_by(ProductCategory.title))
    return list(result.scalars().all())


def _product_status(product: Product) -> str:
    return "published" if product.published_at is not None else "draft"


def _normalize_price(value: str, decimals: int) -> str:
    try:
        units = parse_units(value, decimals)
    except ValueError as exc:
        raise InvalidProductPrice() from exc
    if units <= 0:
        raise ProductPriceMustBePositive()
    return format_units(units, decimals)


async def _get_seller_token(db: AsyncSession, seller_id: str, token_id: str) -> SellerMarketplaceToken:
    marketplace_token = (
        await db.execute(
            select(SellerMarketplaceToken)
            .join(SellerMarketplace, SellerMarketplace.id == SellerMarketplaceToken.seller_marketplace_id)
            .where(
                SellerMarketplaceToken.id == token_id,
                SellerMarketplace.seller_id == seller_id,
            )
        )
    ).scalar_one_or_none()
    if marketplace_token is None:
        raise TokenDoesNotExist()
    return marketplace_token


async def _ensure_category_exists(db: AsyncSession, category_id: str) -> None:
    if await db.get(ProductCategory, category_id) is None:
        raise ProductCategoryDoesNotExist()


async def _slug_taken(
    db: AsyncSession, seller_id: str, slug: str, *, exclude_product_id: str | None = None
) -> bool:
    query = select(Product.id).where(Product.seller_id == seller_id, Product.slug == slug)
    if exclude_product_id is not None:
        query = query.where(Product.id != exclude_product_id)
    return (await db.execute(query)).first() is not None


async def _get_product(db: AsyncSession, seller_id: str, product_id: str) -> Product:
    product = (
        await db.execute(
            select(Product)
            .where(Product.id == product_id, Product.seller_id == seller_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if product is None:
        raise ProductDoesNotExist()
    return product
