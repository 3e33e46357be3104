"""Seller marketplace activation endpoints."""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.auth import get_current_user_id
from storefront.database import get_db
from storefront.services import marketplace_service

router = APIRouter(prefix="/user/marketplaces", tags=["user-marketplaces"])


class MarketplaceCreate(BaseModel):
    network_marketplace_id: str


class TransactionCreate(BaseModel):
    transaction_hash: str


@router.get("")
async def get_marketplaces(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    marketplaces = await marketplace_service.get_marketplaces(db, user_id)
    return {"success": True, "data": [asdict(marketplace) for marketplace in marketplaces]}


@router.get("/tokens")
async def get_marketplace_tokens(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    tokens = await marketplace_service.get_marketplace_tokens(db, user_id)
    return {"success": True, "data": [asdict(token) for token in tokens]}


@router.post("")
async def create_marketplace(
    req: MarketplaceCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    marketplace = await marketplace_service.create_draft_marketplace(
        db, user_id, req.network_marketplace_id
    )
    return {"success": True, "data": {"id": marketplace.id}}


@router.get("/{marketplace_id}/status")
async def get_marketplace_status(
    marketplace_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    status = await marketplace_service.get_marketplace_status(db, user_id, marketplace_id)
    return {"success": True, "data": {"status": status.value}}


@router.post("/{marketplace_id}/transactions")
async def add_marketplace_transaction(
    marketplace_id: str,
    req: TransactionCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    transaction = await marketplace_service.add_marketplace_transaction(
        db, user_id, marketplace_id, req.transaction_hash
    )
    return {"success": True, "data": {"id": transaction.id}}
