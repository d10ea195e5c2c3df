"""Local persistence: the SQLite key/value medium and the typed Repository.

Modules:
- db: SQLite key/value store with JSON documents and write retry
- collections: collection names, storage keys and identity rules
- repository: Repository (typed collections, session slots, additive merge)
- seed: demo merchant written on first start
"""

from .collections import COLLECTIONS, CUSTOMERS, ORDERS, PRODUCTS, STORES, USERS, identity_key
from .db import LocalStore
from .repository import Repository, RepositoryClosedError, merge_additive

__all__ = [
    "COLLECTIONS",
    "CUSTOMERS",
    "ORDERS",
    "PRODUCTS",
    "STORES",
    "USERS",
    "LocalStore",
    "Repository",
    "RepositoryClosedError",
    "identity_key",
    "merge_additive",
]
