"""
storefront-sync – local-first data layer for a small storefront manager.

The merchant's accounts, storefronts, catalog, orders and customers live in a
local SQLite key/value store. A remote tabular backend is kept as a
best-effort mirror, and the account <-> storefront link is repaired lazily
whenever the owned storefront is looked up.
"""

__all__ = [
    "config",
    "errors",
    "logging",
    "paths",
]
