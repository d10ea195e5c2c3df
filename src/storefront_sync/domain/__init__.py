"""Typed records for the five storefront collections."""

from .models import (
    Customer,
    OperatingHours,
    Order,
    OrderLine,
    Product,
    Store,
    StoreCustomization,
    User,
    WireRecord,
)

__all__ = [
    "Customer",
    "OperatingHours",
    "Order",
    "OrderLine",
    "Product",
    "Store",
    "StoreCustomization",
    "User",
    "WireRecord",
]
