"""Seller product endpoints: create, edit, list, sales."""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.auth import get_current_user_id
from storefront.database import get_db
from storefront.services import product_service

router = APIRouter(prefix="/user/products", tags=["user-products"])


class ProductCreate(BaseModel):
    title: str
    description: str = ""
    price: str
    user_marketplace_token_id: str
    product_category_id: str


class ProductUpdate(ProductCreate):
    slug: str
    content: str = ""


@router.get("")
async def get_products(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    products = await product_service.get_products(db, user_id)
    return {"success": True, "data": [asdict(product) for product in products]}


@router.post("", status_code=201)
async def create_product(
    req: ProductCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    product = await product_service.create_product(
        db,
        user_id,
        req.user_marketplace_token_id,
        req.product_category_id,
        req.title,
        req.description,
        req.price,
    )
    return {
        "success": True,
        "data": {
            "id": product.id,
            "user_id": product.seller_id,
            "user_marketplace_token_id": product.seller_marketplace_token_id,
            "product_category_id": product.category_id,
            "slug": product.slug,
            "title": product.title,
            "description": product.description,
            "content": product.content,
            "price_formatted": product.price_formatted,
        },
    }


# Declared before /{product_id} so the literal paths win
@router.get("/sales")
async def get_product_sales(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    sales = await product_service.get_product_sales(db, user_id)
    return {"success": True, "data": [asdict(sale) for sale in sales]}


@router.get("/categories", dependencies=[Depends(get_current_user_id)])
async def get_categories(db: AsyncSession = Depends(get_db)):
    categories = await product_service.get_categories(db)
    return {
        "success": True,
        "data": [
            {"id": category.id, "slug": category.slug, "title": category.title}
            for category in categories
        ],
    }


@router.get("/{product_id}")
async def get_product_details(
    product_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    details = await product_service.get_product_details(db, user_id, product_id)
    return {"success": True, "data": asdict(details)}


@router.put("/{product_id}")
async def update_product(
    product_id: str,
    req: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    await product_service.update_product(
        db,
        user_id,
        product_id,
        marketplace_token_id=req.user_marketplace_token_id,
        category_id=req.product_category_id,
        slug=req.slug,
        title=req.title,
        description=req.description,
        content=req.content,
        price=req.price,
    )
    details = await product_service.get_product_details(db, user_id, product_id)
    return {"success": True, "data": asdict(details)}
