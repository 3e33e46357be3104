"""Seller payout endpoints."""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.auth import get_current_user_id
from storefront.database import get_db
from storefront.services import payout_service

router = APIRouter(prefix="/user/payouts", tags=["user-payouts"])


class PayoutCreate(BaseModel):
    marketplace_id: str
    marketplace_token_id: str


class TransactionCreate(BaseModel):
    transaction_hash: str


@router.get("/balances")
async def get_withdrawable_balances(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    balances = await payout_service.get_withdrawable_balances(db, user_id)
    return {"success": True, "data": [asdict(balance) for balance in balances]}


@router.get("")
async def get_payouts(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    payouts = await payout_service.get_payouts(db, user_id)
    return {"success": True, "data": [asdict(payout) for payout in payouts]}


@router.post("")
async def create_payout(
    req: PayoutCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    payout = await payout_service.create_payout(
        db, user_id, req.marketplace_id, req.marketplace_token_id
    )
    return {
        "success": True,
        "data": {
            "id": payout.id,
            "amount": payout.amount,
            "amount_formatted": payout.amount_formatted,
        },
    }


@router.get("/{payout_id}/status")
async def get_payout_status(
    payout_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    status = await payout_service.get_payout_status(db, user_id, payout_id)
    return {"success": True, "data": {"status": status.value}}


@router.post("/{payout_id}/cancel")
async def cancel_payout(
    payout_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    await payout_service.cancel_payout(db, user_id, payout_id)
    return {"success": True, "data": {"status": True}}


@router.post("/{payout_id}/transactions")
async def add_payout_transaction(
    payout_id: str,
    req: TransactionCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    transaction = await payout_service.add_payout_transaction(
        db, user_id, payout_id, req.transaction_hash
    )
    return {"success": True, "data": {"id": transaction.id}}


@router.get("/{payout_id}/transactions/{transaction_id}")
async def get_payout_transaction_status(
    payout_id: str,
    transaction_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    status = await payout_service.get_payout_transaction_status(
        db, user_id, payout_id, transaction_id
    )
    return {"success": True, "data": {"status": status.value}}
