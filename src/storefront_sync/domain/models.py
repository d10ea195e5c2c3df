from __future__ import annotations

from dataclasses import MISSING, dataclass, field, fields, replace
from typing import Any, ClassVar, Dict, List, Optional, Type, TypeVar

from .normalize import normalize_code, normalize_email


T = TypeVar("T", bound="WireRecord")

CATEGORIES = ("Doce", "Salgado", "Bebida", "Combo", "Outros")
STORE_DELIVERY_TYPES = ("pickup", "delivery", "both")
ORDER_DELIVERY_TYPES = ("pickup", "delivery")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class WireRecord:
    """Mixin converting dataclasses to and from their camelCase JSON form.

    Keys the dataclass does not know about are kept in `extra` and written
    back unchanged, so records created by other clients survive a round trip.
    """

    _NESTED: ClassVar[Dict[str, type]] = {}
    _NESTED_LIST: ClassVar[Dict[str, type]] = {}

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        data = dict(data or {})
        kwargs: Dict[str, Any] = {}
        nulls = []
        for f in fields(cls):  # type: ignore[arg-type]
            if f.name == "extra":
                continue
            key = _camel(f.name)
            if key not in data:
                continue
            value = data.pop(key)
            if value is None:
                nulls.append(key)
            nested = cls._NESTED.get(f.name)
            nested_list = cls._NESTED_LIST.get(f.name)
            if nested is not None and isinstance(value, dict):
                value = nested.from_dict(value)  # type: ignore[attr-defined]
            elif nested_list is not None and isinstance(value, list):
                value = [nested_list.from_dict(v) for v in value if isinstance(v, dict)]  # type: ignore[attr-defined]
            kwargs[f.name] = value
        for f in fields(cls):  # type: ignore[arg-type]
            if f.name not in kwargs and f.default is MISSING and f.default_factory is MISSING:
                kwargs[f.name] = ""
        # Explicit nulls go back out unchanged unless the field is set later.
        data.update(dict.fromkeys(nulls))
        kwargs["extra"] = data
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(getattr(self, "extra", {}) or {})
        for f in fields(self):  # type: ignore[arg-type]
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, WireRecord):
                value = value.to_dict()
            elif isinstance(value, list):
                value = [v.to_dict() if isinstance(v, WireRecord) else v for v in value]
            out[_camel(f.name)] = value
        return out

    def evolve(self: T, **changes: Any) -> T:
        return replace(self, **changes)  # type: ignore[type-var]


@dataclass
class User(WireRecord):
    """A merchant account. `store_id` is a weak link to the owned Store."""

    id: str
    name: str = ""
    email: str = ""
    password: Optional[str] = None
    store_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def email_key(self) -> str:
        return normalize_email(self.email)


@dataclass
class OperatingHours(WireRecord):
    open: str = "08:00"
    close: str = "22:00"
    is_open_always: bool = False
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class StoreCustomization(WireRecord):
    primary_color: str = "#f97316"
    secondary_color: str = "#fb923c"
    background_color: str = "#fdfcfb"
    text_color: str = "#1e293b"
    accent_color: str = "#22c55e"
    button_style: str = "rounded"   # rounded | square | pill
    card_style: str = "elevated"    # flat | elevated | outlined
    font_size: str = "medium"       # small | medium | large
    theme: str = "light"            # light | dark | auto
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class Store(WireRecord):
    """A storefront. `owner_id` is a weak link back to the owning User."""

    _NESTED: ClassVar[Dict[str, type]] = {
        "hours": OperatingHours,
        "customization": StoreCustomization,
    }

    id: str
    owner_id: str = ""
    name: str = ""
    slug: str = ""
    code: str = ""
    logo: str = ""
    banner: str = ""
    description: str = ""
    whatsapp: str = ""
    address: str = ""
    delivery_type: str = "both"
    delivery_fee: float = 0.0
    is_delivery_free: bool = False
    app_discount_enabled: bool = False
    app_discount_value: float = 0.0
    hours: OperatingHours = field(default_factory=OperatingHours)
    customization: Optional[StoreCustomization] = None
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def code_key(self) -> str:
        return normalize_code(self.code)


@dataclass
class Product(WireRecord):
    id: str
    name: str = ""
    description: str = ""
    price: float = 0.0
    image: str = ""
    category: str = "Outros"
    is_active: bool = True
    store_id: str = ""
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class OrderLine(WireRecord):
    product_id: str
    name: str = ""
    quantity: int = 1
    price: float = 0.0
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, hash=False)

    @property
    def line_total(self) -> float:
        return round(self.price * self.quantity, 2)


@dataclass(frozen=True)
class Order(WireRecord):
    """A checkout result. Orders are append-only; instances are frozen."""

    _NESTED_LIST: ClassVar[Dict[str, type]] = {"items": OrderLine}

    id: str
    store_id: str = ""
    customer_name: str = ""
    items: List[OrderLine] = field(default_factory=list, hash=False)
    subtotal: float = 0.0
    delivery_fee: float = 0.0
    discount: float = 0.0
    total: float = 0.0
    delivery_type: str = "pickup"
    address: Optional[str] = None
    created_at: str = ""
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, hash=False)


@dataclass
class Customer(WireRecord):
    """A shopper registered against one storefront code."""

    id: str
    name: str = ""
    email: str = ""
    password: str = ""
    store_code: str = ""
    store_id: str = ""
    saved_address: Optional[str] = None
    preferred_delivery_type: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def email_key(self) -> str:
        return normalize_email(self.email)
