"""API router registry used by the app factory.

This keeps route module imports and inclusion order in one place so
`storefront.main` stays focused on startup wiring.
"""

from __future__ import annotations

from fastapi import APIRouter

from . import (
    health,
    protected_blockchain,
    user_marketplaces,
    user_orders,
    user_payouts,
    user_products,
)

API_PREFIX = "/api"

API_ROUTERS: tuple[APIRouter, ...] = (
    health.router,
    protected_blockchain.router,
    user_marketplaces.router,
    user_orders.router,
    user_payouts.router,
    user_products.router,
)

__all__ = ["API_PREFIX", "API_ROUTERS"]
