from storefront.models.user import User
from storefront.models.network import Network, NetworkMarketplace, NetworkMarketplaceToken
from storefront.models.seller_marketplace import (
    SellerMarketplace,
    SellerMarketplaceToken,
    SellerMarketplaceTransaction,
)
from storefront.models.product import Product, ProductCategory
from storefront.models.product_order import ProductOrder, ProductOrderTransaction, ProductSale
from storefront.models.seller_payout import SellerPayout, SellerPayoutTransaction

__all__ = [
    "User",
    "Network",
    "NetworkMarketplace",
    "NetworkMarketplaceToken",
    "SellerMarketplace",
    "SellerMarketplaceToken",
    "SellerMarketplaceTransaction",
    "Product",
    "ProductCategory",
    "ProductOrder",
    "ProductOrderTransaction",
    "ProductSale",
    "SellerPayout",
    "SellerPayoutTransaction",
]
