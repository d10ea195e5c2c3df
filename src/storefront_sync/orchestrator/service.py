from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from ..domain.models import (
    CATEGORIES,
    ORDER_DELIVERY_TYPES,
    Customer,
    OperatingHours,
    Order,
    OrderLine,
    Product,
    Store,
    StoreCustomization,
    User,
)
from ..domain.normalize import (
    generate_id,
    generate_store_code,
    normalize_code,
    normalize_email,
    normalize_price,
    slugify,
)
from ..errors import (
    AuthenticationError,
    DuplicateEmailError,
    NotFoundError,
    UnknownStoreCodeError,
    ValidationError,
)
from ..logging import get_logger
from ..mirror.sync import RemoteMirror
from ..store.collections import CUSTOMERS, PRODUCTS, STORES, USERS
from ..store.repository import Repository
from .refresh import RefreshScheduler

LOG = get_logger("storefront-service")

MIN_PASSWORD_LENGTH = 4


def _require(value: Optional[str], field_name: str, message: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(field_name, message)
    return cleaned


def _require_email(value: Optional[str]) -> str:
    email = normalize_email(value)
    if not email or "@" not in email:
        raise ValidationError("email", "Please enter a valid e-mail address")
    return email


def _require_password(value: Optional[str]) -> str:
    password = (value or "").strip()
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("password", f"Password must have at least {MIN_PASSWORD_LENGTH} characters")
    return password


@dataclass
class CartLine:
    product: Product
    quantity: int = 1


@dataclass
class OrderDraft:
    """What the checkout hands over; fee and discount come from the caller."""

    customer_name: str
    lines: Sequence[CartLine]
    delivery_type: str = "pickup"
    address: Optional[str] = None
    delivery_fee: float = 0.0
    discount: float = 0.0


class StorefrontService:
    """Registration, sign-in, catalog and checkout flows over a Repository.

    Validation happens before any write; a rejected call leaves every
    collection untouched.
    """

    def __init__(
        self,
        repository: Repository,
        *,
        mirror: Optional[RemoteMirror] = None,
        scheduler: Optional[RefreshScheduler] = None,
        verify_timeout: float = 3.0,
    ) -> None:
        self.repository = repository
        self.mirror = mirror
        self.scheduler = scheduler
        self.verify_timeout = verify_timeout

    # ---------- merchants ----------
    def register_merchant(
        self,
        *,
        name: str,
        email: str,
        password: str,
        store_name: str,
        whatsapp: str,
        food_type: str = "both",
    ) -> Tuple[User, Store]:
        name = _require(name, "name", "Please fill in your full name")
        email = _require_email(email)
        password = _require_password(password)
        store_name = _require(store_name, "store_name", "Please fill in the store name")
        whatsapp = _require(whatsapp, "whatsapp", "Please fill in the WhatsApp number")

        repo = self.repository
        if repo.find_user_by_email(email) is not None:
            raise DuplicateEmailError(email)

        user_id = generate_id()
        store_id = generate_id()
        code = generate_store_code(s.code for s in repo.stores())
        LOG.info(f"Registering merchant {email} with store code {code}")

        user = User(id=user_id, name=name, email=email, password=password, store_id=store_id)
        store = Store(
            id=store_id,
            owner_id=user_id,
            name=store_name,
            slug=slugify(store_name),
            code=code,
            logo="https://picsum.photos/200",
            banner="https://picsum.photos/800/200",
            description=f"Seja bem-vindo à {store_name}!",
            whatsapp=whatsapp,
            address="",
            delivery_type="both",
            delivery_fee=5.0,
            is_delivery_free=False,
            app_discount_enabled=True,
            app_discount_value=10,
            hours=OperatingHours(),
            customization=StoreCustomization(),
        )

        # Two independent writes; the resolver heals the link if the second is lost.
        with repo.editing(USERS) as users:
            users.append(user)
        with repo.editing(STORES) as stores:
            stores.append(store)

        if self.mirror is not None:
            self.mirror.save_store_owner_registration(
                email=email,
                password=password,
                store_name=store_name,
                whatsapp=whatsapp,
                food_type=food_type,
                full_name=name,
            )
        self._sign_in(user)
        return user, store

    def login_merchant(self, email: str, password: str) -> User:
        user = self.repository.find_user_by_email(email)
        if user is None:
            raise AuthenticationError("E-mail not found")
        if not user.password:
            raise AuthenticationError("This account has no password set")
        if user.password.strip() != (password or "").strip():
            raise AuthenticationError("Wrong password")
        self._sign_in(user)
        return user

    def logout(self) -> None:
        self.repository.set_current_user(None)
        if self.scheduler is not None:
            self.scheduler.shutdown()
            self.scheduler.current = None

    def _sign_in(self, user: User) -> None:
        self.repository.set_current_user(user)
        if self.scheduler is not None and user.id:
            self.scheduler.schedule_refresh(user.id, user.store_id)

    def refresh_store(self) -> None:
        """Re-resolve the signed-in merchant's storefront (immediately and after delays)."""
        user = self.repository.get_current_user()
        if user is None or not user.id:
            LOG.warning("refresh_store called without a signed-in merchant")
            return
        # The session slot is a snapshot; pick up links repaired since sign-in.
        fresh = self.repository.get_user(user.id)
        if fresh is not None and fresh != user:
            self.repository.set_current_user(fresh)
            user = fresh
        if self.scheduler is not None:
            self.scheduler.schedule_refresh(user.id, user.store_id)

    def update_store(self, store: Store) -> Store:
        """Replace a storefront record by id (settings screen save)."""
        store = store.evolve(code=normalize_code(store.code) or store.code)
        with self.repository.editing(STORES) as stores:
            for i, existing in enumerate(stores):
                if existing.id == store.id:
                    stores[i] = store
                    break
            else:
                raise NotFoundError(f"Storefront {store.id} not found")
        return store

    # ---------- customers ----------
    def verify_store_code(self, code: str) -> Optional[Store]:
        """Find a storefront by code locally, else pull stores from the mirror (bounded wait)."""
        key = normalize_code(code)
        if not key:
            return None
        found = self.repository.find_store_by_code(key)
        if found is not None or self.mirror is None:
            return found
        LOG.info(f"Store code {key} unknown locally; checking the remote mirror")
        pool = ThreadPoolExecutor(max_workers=1)
        fut = pool.submit(self.mirror.pull, STORES, timeout=self.verify_timeout)
        try:
            result = fut.result(timeout=self.verify_timeout)
        except FutureTimeout:
            LOG.warning(f"Remote store lookup exceeded {self.verify_timeout}s; continuing with local data")
            return None
        finally:
            pool.shutdown(wait=False)
        result.log_errors()
        if result.records:
            self.repository.merge_remote(STORES, result.records)
        return self.repository.find_store_by_code(key)

    def register_customer(self, *, name: str, email: str, password: str, store_code: str) -> Customer:
        code = _require(normalize_code(store_code), "store_code", "Please enter the store code")
        name = _require(name, "name", "Please fill in your full name")
        email = _require_email(email)
        password = _require_password(password)

        # Rejected before the code lookup, which may merge pulled storefronts.
        if self.repository.find_customer_by_email(email) is not None:
            raise DuplicateEmailError(email)
        store = self.verify_store_code(code)
        if store is None or not store.id:
            raise UnknownStoreCodeError(code)

        customer = Customer(
            id=generate_id(),
            name=name,
            email=email,
            password=password,
            store_code=code,
            store_id=store.id,
        )
        with self.repository.editing(CUSTOMERS) as customers:
            customers.append(customer)
        self.repository.set_current_customer(customer)
        LOG.info(f"Customer {email} registered for store {store.code}")
        return customer

    def login_customer(self, email: str, password: str) -> Customer:
        _require(email, "email", "Please enter your e-mail")
        _require(password, "password", "Please enter your password")
        customer = self.repository.find_customer_by_email(email)
        if customer is None or customer.password != password.strip():
            raise AuthenticationError("Wrong e-mail or password")
        self.repository.set_current_customer(customer)
        return customer

    def logout_customer(self) -> None:
        self.repository.set_current_customer(None)

    def amend_customer(
        self,
        customer_id: str,
        *,
        saved_address: Optional[str] = None,
        preferred_delivery_type: Optional[str] = None,
    ) -> Customer:
        """Merge a saved address and/or delivery preference into a customer."""
        if preferred_delivery_type is not None and preferred_delivery_type not in ORDER_DELIVERY_TYPES:
            raise ValidationError("preferred_delivery_type", f"Unknown delivery type {preferred_delivery_type!r}")
        changes = {}
        if saved_address is not None and saved_address.strip():
            changes["saved_address"] = saved_address.strip()
        if preferred_delivery_type is not None:
            changes["preferred_delivery_type"] = preferred_delivery_type
        updated: Optional[Customer] = None
        with self.repository.editing(CUSTOMERS) as customers:
            for i, c in enumerate(customers):
                if c.id == customer_id:
                    updated = customers[i] = c.evolve(**changes)
                    break
            else:
                raise NotFoundError(f"Customer {customer_id} not found")
        current = self.repository.get_current_customer()
        if current is not None and current.id == customer_id:
            self.repository.set_current_customer(updated)
        return updated

    # ---------- catalog ----------
    def list_products(self, store_id: str, *, active_only: bool = False) -> List[Product]:
        return self.repository.products_for_store(store_id, active_only=active_only)

    def save_product(
        self,
        store_id: str,
        *,
        name: str,
        price: object,
        description: str = "",
        image: str = "",
        category: str = "Outros",
        is_active: bool = True,
        product_id: Optional[str] = None,
    ) -> Product:
        """Create a product, or update it when `product_id` is given."""
        _require(store_id, "store_id", "Product must belong to a storefront")
        name = _require(name, "name", "Please fill in the product name")
        parsed = normalize_price(price)
        if parsed is None:
            raise ValidationError("price", f"Invalid price: {price!r}")
        if category not in CATEGORIES:
            raise ValidationError("category", f"Unknown category {category!r}")
        product = Product(
            id=product_id or generate_id(),
            name=name,
            description=(description or "").strip(),
            price=parsed,
            image=image or "",
            category=category,
            is_active=bool(is_active),
            store_id=store_id,
        )
        with self.repository.editing(PRODUCTS) as products:
            if product_id:
                for i, existing in enumerate(products):
                    if existing.id == product_id:
                        products[i] = product.evolve(extra=existing.extra)
                        break
                else:
                    raise NotFoundError(f"Product {product_id} not found")
            else:
                products.append(product)
        return product

    def delete_product(self, product_id: str) -> bool:
        if not product_id:
            raise ValidationError("product_id", "Product id is required")
        with self.repository.editing(PRODUCTS) as products:
            before = len(products)
            products[:] = [p for p in products if p.id != product_id]
            removed = len(products) != before
        return removed

    # ---------- checkout ----------
    def place_order(self, store: Store, draft: OrderDraft) -> Order:
        customer_name = _require(draft.customer_name, "customer_name", "Please enter your name")
        if draft.delivery_type not in ORDER_DELIVERY_TYPES:
            raise ValidationError("delivery_type", f"Unknown delivery type {draft.delivery_type!r}")
        lines = [cl for cl in draft.lines if cl.quantity > 0]
        if not lines:
            raise ValidationError("items", "The cart is empty")
        address = (draft.address or "").strip() or None
        if draft.delivery_type == "delivery" and address is None:
            raise ValidationError("address", "Delivery orders need an address")

        items = [
            OrderLine(product_id=cl.product.id, name=cl.product.name, quantity=cl.quantity, price=cl.product.price)
            for cl in lines
        ]
        subtotal = round(sum(i.line_total for i in items), 2)
        fee = round(max(0.0, float(draft.delivery_fee)), 2)
        discount = round(max(0.0, float(draft.discount)), 2)
        order = Order(
            id=generate_id(),
            store_id=store.id,
            customer_name=customer_name,
            items=items,
            subtotal=subtotal,
            delivery_fee=fee,
            discount=discount,
            total=round(max(0.0, subtotal + fee - discount), 2),
            delivery_type=draft.delivery_type,
            address=address if draft.delivery_type == "delivery" else None,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self.repository.add_order(order)
        LOG.info(f"Order {order.id} placed at {store.code}: total {order.total:.2f}")
        return order
