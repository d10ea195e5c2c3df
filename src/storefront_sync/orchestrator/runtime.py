"""Wire settings, repository, mirror, resolver and scheduler together."""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass
from typing import Optional

import requests

from ..config import Settings, load_settings
from ..logging import get_logger
from ..mirror.client import MirrorClient
from ..mirror.sync import RemoteMirror
from ..repair.resolver import StoreResolver
from ..store.repository import Repository
from .refresh import RefreshScheduler, StoreListener
from .service import StorefrontService

LOG = get_logger("runtime")


@dataclass
class Runtime:
    settings: Settings
    repository: Repository
    mirror: Optional[RemoteMirror]
    resolver: StoreResolver
    scheduler: RefreshScheduler
    service: StorefrontService
    startup_sync: Optional[Future] = None

    def close(self) -> None:
        self.scheduler.shutdown()
        if self.mirror is not None:
            self.mirror.shutdown(wait=True)
        self.repository.close()
        LOG.info("Runtime closed")

    def __enter__(self) -> "Runtime":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def log_environment_banner(settings: Settings) -> None:
    LOG.info("=== storefront-sync ===")
    LOG.info(f"Local database   : {settings.db_path}")
    LOG.info(f"Remote mirror    : {settings.remote_url if settings.sync_enabled else 'disabled'}")
    LOG.info(f"HTTP timeout     : {settings.http_timeout}s (store-code verify {settings.verify_timeout}s)")
    LOG.info(f"Refresh delays   : {', '.join(f'{d}s' for d in settings.refresh_delays)}")


def open_runtime(
    settings: Optional[Settings] = None,
    *,
    session: Optional[requests.Session] = None,
    on_store_change: Optional[StoreListener] = None,
    sync_on_start: bool = True,
) -> Runtime:
    """Open the local store, seed it once, and start a background catch-up pull."""
    settings = settings or load_settings()
    mirror: Optional[RemoteMirror] = None
    if settings.sync_enabled:
        client = MirrorClient(settings.remote_url, timeout=settings.http_timeout, session=session)
        mirror = RemoteMirror(client)
    repository = Repository(settings.db_path, mirror=mirror).open()
    resolver = StoreResolver(repository)
    scheduler = RefreshScheduler(resolver, delays=settings.refresh_delays, on_change=on_store_change)
    service = StorefrontService(
        repository,
        mirror=mirror,
        scheduler=scheduler,
        verify_timeout=settings.verify_timeout,
    )
    repository.initialize()
    startup_sync = None
    if mirror is not None and sync_on_start:
        startup_sync = mirror.reconcile_in_background(repository)
    return Runtime(settings, repository, mirror, resolver, scheduler, service, startup_sync)
