"""Buyer order endpoints: list, create, pay, cancel, poll."""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.auth import get_current_user_id
from storefront.database import get_db
from storefront.services import order_service

router = APIRouter(prefix="/user/orders", tags=["user-orders"])


class OrderCreate(BaseModel):
    product_id: str


class TransactionCreate(BaseModel):
    transaction_hash: str


@router.get("")
async def get_orders(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    orders = await order_service.get_orders(db, user_id)
    return {"success": True, "data": [asdict(order) for order in orders]}


@router.post("")
async def create_order(
    req: OrderCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    order = await order_service.create_order(db, user_id, req.product_id)
    return {"success": True, "data": {"id": order.id}}


@router.get("/{order_id}/status")
async def get_order_status(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    status = await order_service.get_order_status(db, user_id, order_id)
    return {"success": True, "data": {"status": status.value}}


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    await order_service.cancel_order(db, user_id, order_id)
    return {"success": True, "data": {"status": True}}


@router.post("/{order_id}/transactions")
async def add_order_transaction(
    order_id: str,
    req: TransactionCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    transaction = await order_service.add_order_transaction(
        db, user_id, order_id, req.transaction_hash
    )
    return {"success": True, "data": {"id": transaction.id}}


@router.get("/{order_id}/transactions/{transaction_id}")
async def get_order_transaction_status(
    order_id: str,
    transaction_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    status = await order_service.get_order_transaction_status(
        db, user_id, order_id, transaction_id
    )
    return {"success": True, "data": {"status": status.value}}
