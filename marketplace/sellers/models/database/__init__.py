"""Database models for sellers."""

from marketplace.sellers.models.database.seller import SellerEntity
from marketplace.sellers.models.database.product import ProductEntity
from marketplace.sellers.models.database.order import OrderEntity

__all__ = [
    "SellerEntity",
    "ProductEntity",
    "OrderEntity",
]
