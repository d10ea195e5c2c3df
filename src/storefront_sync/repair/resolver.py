from __future__ import annotations

from typing import Optional, Sequence

from ..domain.models import Store
from ..logging import get_logger
from ..store.collections import STORES, USERS
from ..store.repository import Repository
from .strategies import DEFAULT_STRATEGIES, ResolveContext, Resolution, Strategy


LOG = get_logger("repair-resolver")


class StoreResolver:
    """Finds the storefront owned by an account, repairing the link on the way.

    Strategies run in order; the first match wins and its corrections are
    written back before returning. Once a link is repaired the next call stops
    at the owner match and writes nothing.
    """

    def __init__(self, repository: Repository, strategies: Sequence[Strategy] = DEFAULT_STRATEGIES) -> None:
        self.repository = repository
        self.strategies = tuple(strategies)

    def resolve_owned_store(self, account_id: str, account_store_id: Optional[str] = None) -> Optional[Store]:
        resolution = self.resolve(account_id, account_store_id)
        return resolution.store if resolution else None

    def resolve(self, account_id: str, account_store_id: Optional[str] = None) -> Optional[Resolution]:
        if not account_id:
            LOG.warning("Storefront lookup requested without an account id")
            return None
        repo = self.repository
        # Lock order: stores, then users.
        with repo.lock(STORES), repo.lock(USERS):
            ctx = ResolveContext(account_id, account_store_id or None, repo.stores())
            for strategy in self.strategies:
                resolution = strategy(ctx)
                if resolution is None:
                    continue
                self._apply(account_id, resolution)
                return resolution
        LOG.error(
            f"No storefront found for account {account_id} among {len(ctx.stores)} storefront(s): "
            f"{[(s.id, s.owner_id) for s in ctx.stores]}"
        )
        return None

    def _apply(self, account_id: str, resolution: Resolution) -> None:
        store = resolution.store
        if not resolution.writes:
            LOG.debug(f"Storefront {store.id} resolved for {account_id} via {resolution.strategy}")
            return
        if resolution.heuristic:
            LOG.warning(
                f"Storefront {store.id} bound to account {account_id} by heuristic fallback; "
                "verify this is the right storefront"
            )
        else:
            LOG.info(f"Repairing link {account_id} -> {store.id} via {resolution.strategy}")
        if resolution.stores is not None:
            self.repository.save_stores(resolution.stores)
        if resolution.link_account:
            with self.repository.editing(USERS) as users:
                for i, user in enumerate(users):
                    if user.id == account_id:
                        users[i] = user.evolve(store_id=store.id)
