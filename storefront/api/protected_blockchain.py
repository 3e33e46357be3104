"""Reconciliation triggers, called by an operator or an external scheduler.

Path parameters are passed through as received; the services validate them
so a bad id gets the same error envelope as any other invalid request.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.blockchain.registry import ChainRegistry, get_chain_registry
from storefront.core.auth import require_protected_key
from storefront.database import get_db
from storefront.services import (
    marketplace_reconciliation_service,
    order_reconciliation_service,
    payout_reconciliation_service,
)

router = APIRouter(
    prefix="/protected/blockchain",
    tags=["protected"],
    dependencies=[Depends(require_protected_key)],
)


def _done() -> dict:
    return {"success": True, "data": {"status": True}}


@router.post("/seller-marketplaces/{marketplace_id}")
async def reconcile_seller_marketplaces(
    marketplace_id: str,
    db: AsyncSession = Depends(get_db),
    registry: ChainRegistry = Depends(get_chain_registry),
):
    """``marketplace_id`` is the network marketplace the activations were sent to."""
    await marketplace_reconciliation_service.reconcile_seller_marketplaces(db, registry, marketplace_id)
    return _done()


@router.post("/{network_chain_id}/user-payouts")
async def reconcile_user_payouts(
    network_chain_id: str,
    db: AsyncSession = Depends(get_db),
    registry: ChainRegistry = Depends(get_chain_registry),
):
    await payout_reconciliation_service.reconcile_seller_payouts(db, registry, network_chain_id)
    return _done()


@router.post("/{network_chain_id}/user-product-orders")
async def reconcile_user_product_orders(
    network_chain_id: str,
    db: AsyncSession = Depends(get_db),
    registry: ChainRegistry = Depends(get_chain_registry),
):
    await order_reconciliation_service.reconcile_product_orders(db, registry, network_chain_id)
    return _done()
