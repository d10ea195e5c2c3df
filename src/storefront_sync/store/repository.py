from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence

from ..domain.models import Customer, Order, Product, Store, User, WireRecord
from ..domain.normalize import normalize_code, normalize_email
from ..logging import get_logger
from . import seed
from .collections import (
    ALL_KEYS,
    COLLECTIONS,
    CURRENT_CUSTOMER_KEY,
    CURRENT_USER_KEY,
    CUSTOMERS,
    INITIALIZED_KEY,
    ORDERS,
    PRODUCTS,
    RECORD_TYPES,
    STORAGE_KEYS,
    STORES,
    USERS,
    check_collection,
    identity_key,
)
from .db import LocalStore

if TYPE_CHECKING:
    from ..mirror.sync import RemoteMirror


LOG = get_logger("repository")


class RepositoryClosedError(RuntimeError):
    pass


class Repository:
    """Typed access to the five collections and the two session slots.

    Construct once at process start, `open()` it, pass it to whoever needs
    the data, and `close()` it on shutdown. When a mirror is attached every
    collection save is also pushed to the remote in the background.

    Collections are replaced wholesale on every save. Use `editing(name)` for
    read-modify-write cycles; it holds that collection's lock for the whole
    cycle.
    """

    def __init__(self, db_path: str, *, mirror: Optional["RemoteMirror"] = None) -> None:
        self.db_path = db_path
        self.mirror = mirror
        self._store: Optional[LocalStore] = None
        self._locks: Dict[str, threading.RLock] = {name: threading.RLock() for name in COLLECTIONS}
        self._session_lock = threading.Lock()

    # ---------- lifecycle ----------
    def open(self) -> "Repository":
        if self._store is None:
            self._store = LocalStore(self.db_path)
        return self

    def close(self) -> None:
        if self._store is not None:
            LOG.debug(f"Closing repository at {self.db_path}")
        self._store = None

    @property
    def is_open(self) -> bool:
        return self._store is not None

    def __enter__(self) -> "Repository":
        return self.open()

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def attach_mirror(self, mirror: Optional["RemoteMirror"]) -> None:
        self.mirror = mirror

    @property
    def store(self) -> LocalStore:
        if self._store is None:
            raise RepositoryClosedError("Repository is not open")
        return self._store

    # ---------- raw collection contract ----------
    def get(self, name: str) -> List[Dict[str, Any]]:
        """Return the stored sequence for `name`; absent or corrupt reads as []."""
        data = self.store.read(STORAGE_KEYS[check_collection(name)], [])
        if not isinstance(data, list):
            LOG.warning(f"Collection {name!r} is not a list; treating as empty")
            return []
        return [row for row in data if isinstance(row, dict)]

    def set(self, name: str, records: Sequence[Dict[str, Any]]) -> bool:
        """Overwrite the whole collection. Never raises on storage failure."""
        with self.lock(name):
            ok = self.store.write(STORAGE_KEYS[check_collection(name)], list(records))
        if not ok:
            LOG.error(f"Collection {name!r} could not be persisted")
        return ok

    def lock(self, name: str) -> threading.RLock:
        return self._locks[check_collection(name)]

    # ---------- typed access ----------
    def load(self, name: str) -> List[Any]:
        record_type = RECORD_TYPES[check_collection(name)]
        return [record_type.from_dict(row) for row in self.get(name)]

    def save(self, name: str, records: Sequence[WireRecord], *, sync: bool = True) -> bool:
        rows = [r.to_dict() for r in records]
        ok = self.set(name, rows)
        if ok and sync and self.mirror is not None:
            self.mirror.push_in_background(name, rows)
        return ok

    @contextmanager
    def editing(self, name: str, *, sync: bool = True) -> Iterator[List[Any]]:
        """Yield the typed collection; save it back if the block exits cleanly."""
        with self.lock(name):
            records = self.load(name)
            yield records
            self.save(name, records, sync=sync)

    def users(self) -> List[User]:
        return self.load(USERS)

    def save_users(self, users: Sequence[User]) -> bool:
        return self.save(USERS, users)

    def stores(self) -> List[Store]:
        return self.load(STORES)

    def save_stores(self, stores: Sequence[Store]) -> bool:
        return self.save(STORES, stores)

    def products(self) -> List[Product]:
        return self.load(PRODUCTS)

    def save_products(self, products: Sequence[Product]) -> bool:
        return self.save(PRODUCTS, products)

    def orders(self) -> List[Order]:
        return self.load(ORDERS)

    def add_order(self, order: Order) -> bool:
        """Append one order. Existing orders are written back untouched."""
        with self.lock(ORDERS):
            rows = self.get(ORDERS)
            if any(row.get("id") == order.id for row in rows):
                LOG.warning(f"Order {order.id} already stored; orders are never rewritten")
                return False
            rows.append(order.to_dict())
            ok = self.set(ORDERS, rows)
        if ok and self.mirror is not None:
            self.mirror.push_in_background(ORDERS, rows)
        return ok

    def customers(self) -> List[Customer]:
        return self.load(CUSTOMERS)

    def save_customers(self, customers: Sequence[Customer]) -> bool:
        return self.save(CUSTOMERS, customers)

    # ---------- lookups (linear scans) ----------
    def get_user(self, user_id: str) -> Optional[User]:
        return next((u for u in self.users() if u.id == user_id), None)

    def get_store(self, store_id: str) -> Optional[Store]:
        return next((s for s in self.stores() if s.id == store_id), None)

    def find_user_by_email(self, email: str) -> Optional[User]:
        key = normalize_email(email)
        return next((u for u in self.users() if key and u.email_key == key), None)

    def find_customer_by_email(self, email: str) -> Optional[Customer]:
        key = normalize_email(email)
        return next((c for c in self.customers() if key and c.email_key == key), None)

    def find_store_by_code(self, code: str) -> Optional[Store]:
        key = normalize_code(code)
        return next((s for s in self.stores() if key and s.code_key == key), None)

    def products_for_store(self, store_id: str, *, active_only: bool = False) -> List[Product]:
        return [
            p for p in self.products()
            if p.store_id == store_id and (p.is_active or not active_only)
        ]

    def orders_for_store(self, store_id: str) -> List[Order]:
        return [o for o in self.orders() if o.store_id == store_id]

    # ---------- session slots ----------
    def get_current_user(self) -> Optional[User]:
        data = self.store.read(CURRENT_USER_KEY, None)
        return User.from_dict(data) if isinstance(data, dict) else None

    def set_current_user(self, user: Optional[User]) -> None:
        with self._session_lock:
            self.store.write(CURRENT_USER_KEY, user.to_dict() if user is not None else None)

    def get_current_customer(self) -> Optional[Customer]:
        data = self.store.read(CURRENT_CUSTOMER_KEY, None)
        return Customer.from_dict(data) if isinstance(data, dict) else None

    def set_current_customer(self, customer: Optional[Customer]) -> None:
        with self._session_lock:
            self.store.write(CURRENT_CUSTOMER_KEY, customer.to_dict() if customer is not None else None)

    # ---------- initialization ----------
    def is_initialized(self) -> bool:
        return self.store.read(INITIALIZED_KEY, False) is True

    def initialize(self) -> bool:
        """Seed the demo merchant once. Returns True when seeding happened."""
        if self.is_initialized():
            return False
        self.save(USERS, [seed.demo_user()], sync=False)
        self.save(STORES, [seed.demo_store()], sync=False)
        self.save(PRODUCTS, seed.demo_products(), sync=False)
        self.save(ORDERS, [], sync=False)
        self.save(CUSTOMERS, [], sync=False)
        self.store.write(INITIALIZED_KEY, True)
        LOG.info(
            f"Local store initialized; demo login {seed.demo_user().email}, "
            f"store code {seed.DEMO_STORE_CODE}"
        )
        return True

    def reset(self) -> None:
        """Drop every key (session slots and the initialized flag included) and re-seed."""
        for key in ALL_KEYS:
            self.store.delete(key)
        self.initialize()

    # ---------- remote catch-up ----------
    def merge_remote(self, name: str, remote: Sequence[Dict[str, Any]]) -> int:
        """Append remote records whose identity is unknown locally.

        Local records always win. Results arriving after `close()` are
        discarded. Returns the number of appended records.
        """
        if not self.is_open:
            LOG.debug(f"Repository closed; discarding {len(remote)} pulled {name} record(s)")
            return 0
        with self.lock(name):
            local = self.get(name)
            merged = merge_additive(name, local, remote)
            added = len(merged) - len(local)
            if added:
                self.set(name, merged)
        return added


def merge_additive(
    name: str,
    local: Sequence[Dict[str, Any]],
    remote: Sequence[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """Local records unchanged, followed by remote records with unseen identity keys.

    Records with neither id nor e-mail have no identity key; they are kept
    unless an identical record is already present.
    """
    merged = list(local)
    seen = set()
    for row in local:
        key = identity_key(name, row)
        seen.add(key if key is not None else _content_key(row))
    for row in remote:
        key = identity_key(name, row)
        if key is None:
            key = _content_key(row)
        if key in seen:
            continue
        seen.add(key)
        merged.append(row)
    return merged


def _content_key(row: Dict[str, Any]) -> str:
    return "content:" + json.dumps(row, sort_keys=True, ensure_ascii=False, default=str)
