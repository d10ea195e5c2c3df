"""Demo merchant written on first start so a fresh install is usable."""

from __future__ import annotations

from typing import List

from ..domain.models import OperatingHours, Product, Store, StoreCustomization, User

DEMO_USER_ID = "demo_user_001"
DEMO_STORE_ID = "demo_store_001"
DEMO_STORE_CODE = "FOOD01"


def demo_user() -> User:
    return User(
        id=DEMO_USER_ID,
        name="João Silva",
        email="joao@exemplo.com",
        password="123456",
        store_id=DEMO_STORE_ID,
    )


def demo_store() -> Store:
    return Store(
        id=DEMO_STORE_ID,
        owner_id=DEMO_USER_ID,
        name="Delícias da Casa",
        slug="delicias-da-casa",
        code=DEMO_STORE_CODE,
        logo="https://picsum.photos/200?random=1",
        banner="https://picsum.photos/800/200?random=2",
        description=(
            "As melhores receitas caseiras com ingredientes selecionados. "
            "Faça seu pedido e receba em casa!"
        ),
        whatsapp="5511999999999",
        address="Rua das Flores, 123 - Centro, São Paulo - SP",
        delivery_type="both",
        delivery_fee=5.0,
        is_delivery_free=False,
        app_discount_enabled=True,
        app_discount_value=10,
        hours=OperatingHours(open="08:00", close="22:00", is_open_always=False),
        customization=StoreCustomization(),
    )


_DEMO_PRODUCTS = [
    ("prod_001", "Hambúrguer Artesanal",
     "Pão brioche, carne 180g, queijo cheddar, bacon, alface e tomate", 24.90, "Salgado", 10),
    ("prod_002", "Brownie com Sorvete",
     "Brownie quentinho acompanhado de sorvete de creme", 18.50, "Doce", 11),
    ("prod_003", "Pizza Margherita",
     "Massa fina, molho de tomate, mussarela e manjericão", 32.00, "Salgado", 12),
    ("prod_004", "Suco Natural de Laranja",
     "Suco fresco feito na hora, 500ml", 8.00, "Bebida", 13),
    ("prod_005", "Coxinha de Frango",
     "Coxinha caseira recheada com frango desfiado", 6.50, "Salgado", 14),
    ("prod_006", "Brigadeiro Gourmet",
     "Brigadeiro artesanal com chocolate belga", 4.50, "Doce", 15),
]


def demo_products() -> List[Product]:
    return [
        Product(
            id=pid,
            name=name,
            description=description,
            price=price,
            image=f"https://picsum.photos/400/300?random={seed}",
            category=category,
            is_active=True,
            store_id=DEMO_STORE_ID,
        )
        for pid, name, description, price, category, seed in _DEMO_PRODUCTS
    ]
