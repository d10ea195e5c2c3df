"""Ordered strategies linking an account to the storefront it owns.

Each strategy is a pure function of a `ResolveContext`. It returns None when
it does not apply, or a `Resolution` naming the storefront plus the
corrections the resolver must persist. The resolver runs them in order and
stops at the first hit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from ..domain.models import Store


@dataclass(frozen=True)
class ResolveContext:
    account_id: str
    account_store_id: Optional[str]
    stores: Sequence[Store]


@dataclass
class Resolution:
    store: Store
    strategy: str
    # Full corrected storefront collection to write back, or None if unchanged.
    stores: Optional[List[Store]] = None
    # Point the account's store_id at `store`.
    link_account: bool = False
    heuristic: bool = False

    @property
    def writes(self) -> bool:
        return self.stores is not None or self.link_account


Strategy = Callable[[ResolveContext], Optional[Resolution]]


def _with_owner(stores: Sequence[Store], store_id: str, owner_id: str) -> List[Store]:
    return [s.evolve(owner_id=owner_id) if s.id == store_id else s for s in stores]


def owner_match(ctx: ResolveContext) -> Optional[Resolution]:
    for s in ctx.stores:
        if s.owner_id == ctx.account_id:
            return Resolution(store=s, strategy="owner_match")
    return None


def _claim_declared(ctx: ResolveContext, name: str) -> Optional[Resolution]:
    if not ctx.account_store_id:
        return None
    found = next((s for s in ctx.stores if s.id == ctx.account_store_id), None)
    if found is None:
        return None
    if found.owner_id == ctx.account_id:
        return Resolution(store=found, strategy=name)
    corrected = _with_owner(ctx.stores, found.id, ctx.account_id)
    return Resolution(store=found.evolve(owner_id=ctx.account_id), strategy=name, stores=corrected)


def declared_link(ctx: ResolveContext) -> Optional[Resolution]:
    return _claim_declared(ctx, "declared_link")


def singleton_adoption(ctx: ResolveContext) -> Optional[Resolution]:
    if len(ctx.stores) != 1 or not ctx.stores[0].id:
        return None
    only = ctx.stores[0]
    return Resolution(
        store=only.evolve(owner_id=ctx.account_id),
        strategy="singleton_adoption",
        stores=[only.evolve(owner_id=ctx.account_id)],
        link_account=True,
    )


def multi_store_declared_link(ctx: ResolveContext) -> Optional[Resolution]:
    if len(ctx.stores) <= 1:
        return None
    return _claim_declared(ctx, "multi_store_declared_link")


def best_effort_adoption(ctx: ResolveContext) -> Optional[Resolution]:
    """Adopt the first storefront not owned by this account.

    Heuristic: with several unlinked storefronts there is no way to tell which
    one belongs to the account, so iteration order decides.
    """
    candidate = next(
        (s for s in ctx.stores if s.id and (not s.owner_id or s.owner_id != ctx.account_id)),
        None,
    )
    if candidate is None:
        return None
    return Resolution(
        store=candidate.evolve(owner_id=ctx.account_id),
        strategy="best_effort_adoption",
        stores=_with_owner(ctx.stores, candidate.id, ctx.account_id),
        link_account=True,
        heuristic=True,
    )


DEFAULT_STRATEGIES: Sequence[Strategy] = (
    owner_match,
    declared_link,
    singleton_adoption,
    multi_store_declared_link,
    best_effort_adoption,
)

# Same chain without the heuristic fallback.
AUTHORITATIVE_STRATEGIES: Sequence[Strategy] = DEFAULT_STRATEGIES[:-1]
