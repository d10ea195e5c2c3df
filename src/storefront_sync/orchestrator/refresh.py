"""Re-run storefront resolution after fixed delays, with cancellation."""

from __future__ import annotations

import threading
import time
from typing import Callable, List, Optional, Sequence

from ..config import DEFAULT_REFRESH_DELAYS
from ..domain.models import Store
from ..logging import get_logger
from ..repair.resolver import StoreResolver

LOG = get_logger("refresh-scheduler")

StoreListener = Callable[[Optional[Store]], None]


class RefreshHandle:
    """One scheduled refresh cascade. `cancel()` stops the pending retries."""

    def __init__(self, account_id: str, account_store_id: Optional[str]) -> None:
        self.account_id = account_id
        self.account_store_id = account_store_id
        self.started = time.monotonic()
        self.results: List[Optional[Store]] = []
        self._cancelled = threading.Event()
        self._done = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)


class RefreshScheduler:
    """Resolves the owned storefront now and again at each delay after the trigger.

    A write made by one flow (registration) and a read made by another (a
    settings screen opening) are not ordered, so resolution is repeated a few
    times. The listener is called only when the resolved storefront changes.
    Scheduling a new cascade cancels the previous one.
    """

    def __init__(
        self,
        resolver: StoreResolver,
        *,
        delays: Sequence[float] = DEFAULT_REFRESH_DELAYS,
        on_change: Optional[StoreListener] = None,
    ) -> None:
        self.resolver = resolver
        self.delays = tuple(delays)
        self.on_change = on_change
        self.current: Optional[Store] = None
        self._lock = threading.Lock()
        self._active: Optional[RefreshHandle] = None

    def schedule_refresh(self, account_id: str, account_store_id: Optional[str] = None) -> RefreshHandle:
        handle = RefreshHandle(account_id, account_store_id)
        with self._lock:
            if self._active is not None:
                self._active.cancel()
            self._active = handle
        LOG.debug(f"Refresh scheduled for {account_id} (store {account_store_id}); delays={self.delays}")
        self._run_once(handle)
        if not self.delays:
            handle._done.set()
            return handle
        worker = threading.Thread(
            target=self._run_delayed,
            args=(handle,),
            name=f"refresh-{account_id}",
            daemon=True,
        )
        worker.start()
        return handle

    def shutdown(self) -> None:
        with self._lock:
            if self._active is not None:
                self._active.cancel()
            self._active = None

    def _run_delayed(self, handle: RefreshHandle) -> None:
        try:
            # Delays are offsets from the trigger, not gaps between attempts.
            for offset in sorted(self.delays):
                remaining = handle.started + offset - time.monotonic()
                if handle._cancelled.wait(max(0.0, remaining)):
                    LOG.debug(f"Refresh for {handle.account_id} cancelled")
                    break
                self._run_once(handle)
        finally:
            handle._done.set()

    def _run_once(self, handle: RefreshHandle) -> None:
        if handle.cancelled:
            return
        try:
            store = self.resolver.resolve_owned_store(handle.account_id, handle.account_store_id)
        except Exception:
            LOG.exception(f"Storefront resolution failed for {handle.account_id}")
            return
        handle.results.append(store)
        with self._lock:
            if handle.cancelled or store == self.current:
                return
            self.current = store
        if self.on_change is not None:
            self.on_change(store)
