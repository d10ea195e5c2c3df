"""Names, storage keys and identity rules for the persisted collections."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple, Type

from ..domain.models import Customer, Order, Product, Store, User, WireRecord
from ..domain.normalize import normalize_email

USERS = "users"
STORES = "stores"
PRODUCTS = "products"
ORDERS = "orders"
CUSTOMERS = "customers"

COLLECTIONS: Tuple[str, ...] = (USERS, STORES, PRODUCTS, ORDERS, CUSTOMERS)

RECORD_TYPES: Dict[str, Type[WireRecord]] = {
    USERS: User,
    STORES: Store,
    PRODUCTS: Product,
    ORDERS: Order,
    CUSTOMERS: Customer,
}

# Collections whose records are "the same person" when their e-mails match.
EMAIL_KEYED: Tuple[str, ...] = (USERS, CUSTOMERS)

KEY_PREFIX = "foodzap_"
STORAGE_KEYS: Dict[str, str] = {name: f"{KEY_PREFIX}{name}" for name in COLLECTIONS}
CURRENT_USER_KEY = f"{KEY_PREFIX}current_user"
CURRENT_CUSTOMER_KEY = f"{KEY_PREFIX}current_customer"
INITIALIZED_KEY = f"{KEY_PREFIX}initialized"

ALL_KEYS: Tuple[str, ...] = tuple(STORAGE_KEYS.values()) + (
    CURRENT_USER_KEY,
    CURRENT_CUSTOMER_KEY,
    INITIALIZED_KEY,
)


def check_collection(name: str) -> str:
    if name not in STORAGE_KEYS:
        raise KeyError(f"Unknown collection: {name!r}")
    return name


def identity_key(collection: str, record: Dict[str, Any]) -> Optional[str]:
    """Key deciding whether two records of `collection` are the same entity.

    Customers and users are matched by normalized e-mail when they carry one;
    everything else (and e-mail-less people) by `id`. Returns None when the
    record has neither.
    """
    if not isinstance(record, dict):
        return None
    if collection in EMAIL_KEYED:
        email = normalize_email(record.get("email"))
        if email:
            return f"email:{email}"
    rid = record.get("id")
    if rid is None or rid == "":
        return None
    return f"id:{rid}"
