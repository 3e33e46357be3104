import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import get_db
from storefront.models.product_order import ProductOrderTransaction
from storefront.models.seller_marketplace import SellerMarketplaceTransaction
from storefront.models.seller_payout import SellerPayoutTransaction

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

_VERSION = "0.1.0"

_TRANSACTION_TABLES = {
    "seller_marketplaces": SellerMarketplaceTransaction,
    "product_orders": ProductOrderTransaction,
    "seller_payouts": SellerPayoutTransaction,
}


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Liveness plus the reconciliation backlog per owner kind."""
    unresolved = {}
    for name, model in _TRANSACTION_TABLES.items():
        count = await db.execute(
            select(func.count(model.id)).where(
                model.confirmed_at.is_(None),
                model.failed_at.is_(None),
            )
        )
        unresolved[name] = count.scalar() or 0

    return {"status": "healthy", "version": _VERSION, "unresolved_transactions": unresolved}


@router.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Readiness check failed: database unreachable")
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "database": "unavailable"},
        )
    return {"status": "ready", "database": "connected"}
