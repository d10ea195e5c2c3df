"""High-level flows: refresh scheduling, storefront services and runtime wiring."""

from .refresh import RefreshHandle, RefreshScheduler
from .service import CartLine, OrderDraft, StorefrontService
from .runtime import Runtime, log_environment_banner, open_runtime

__all__ = [
    "CartLine",
    "OrderDraft",
    "RefreshHandle",
    "RefreshScheduler",
    "Runtime",
    "StorefrontService",
    "log_environment_banner",
    "open_runtime",
]
