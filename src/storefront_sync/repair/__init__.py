"""Account <-> storefront relationship repair."""

from .resolver import StoreResolver
from .strategies import (
    AUTHORITATIVE_STRATEGIES,
    DEFAULT_STRATEGIES,
    Resolution,
    ResolveContext,
    best_effort_adoption,
    declared_link,
    multi_store_declared_link,
    owner_match,
    singleton_adoption,
)

__all__ = [
    "AUTHORITATIVE_STRATEGIES",
    "DEFAULT_STRATEGIES",
    "Resolution",
    "ResolveContext",
    "StoreResolver",
    "best_effort_adoption",
    "declared_link",
    "multi_store_declared_link",
    "owner_match",
    "singleton_adoption",
]
