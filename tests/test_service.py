from __future__ import annotations

from typing import List

import pytest

from conftest import FakeSession, make_store
from storefront_sync.domain.models import Product
from storefront_sync.errors import (
    AuthenticationError,
    DuplicateEmailError,
    NotFoundError,
    UnknownStoreCodeError,
    ValidationError,
)
from storefront_sync.mirror import RemoteMirror
from storefront_sync.orchestrator import CartLine, OrderDraft, RefreshScheduler, StorefrontService
from storefront_sync.repair import StoreResolver
from storefront_sync.store import Repository
from storefront_sync.store.seed import DEMO_STORE_CODE, DEMO_STORE_ID, DEMO_USER_ID


@pytest.fixture
def service(repo: Repository) -> StorefrontService:
    repo.initialize()
    return StorefrontService(repo)


def _register(service: StorefrontService, **overrides):
    fields = dict(
        name="Ana Souza",
        email="Ana@Example.com",
        password="1234",
        store_name="Doces da Ana",
        whatsapp="11999990000",
        food_type="sweet",
    )
    fields.update(overrides)
    return service.register_merchant(**fields)


def test_register_merchant_links_both_records(service: StorefrontService, repo: Repository) -> None:
    user, store = _register(service)

    assert user.email == "ana@example.com"
    assert user.store_id == store.id
    assert store.owner_id == user.id
    assert store.slug == "doces-da-ana"
    assert len(store.code) == 6 and store.code != DEMO_STORE_CODE
    assert repo.get_current_user().id == user.id
    assert repo.find_store_by_code(store.code.lower()).id == store.id


@pytest.mark.parametrize("field_name, overrides", [
    ("name", {"name": "  "}),
    ("email", {"email": "not-an-email"}),
    ("password", {"password": "12"}),
    ("store_name", {"store_name": ""}),
    ("whatsapp", {"whatsapp": ""}),
])
def test_register_merchant_validates_before_writing(
    service: StorefrontService, repo: Repository, field_name: str, overrides
) -> None:
    users_before = repo.get("users")
    with pytest.raises(ValidationError) as exc:
        _register(service, **overrides)
    assert exc.value.field == field_name
    assert repo.get("users") == users_before


def test_duplicate_merchant_email_is_rejected(service: StorefrontService) -> None:
    _register(service)
    with pytest.raises(DuplicateEmailError):
        _register(service, email=" ANA@example.com ")


def test_registration_row_goes_to_the_mirror(repo: Repository, mirror: RemoteMirror, session: FakeSession) -> None:
    service = StorefrontService(repo, mirror=mirror)
    _register(service)
    assert any(row.get("Nome da Loja") == "Doces da Ana" for row in session.posts)


def test_login_merchant(service: StorefrontService, repo: Repository) -> None:
    user = service.login_merchant("JOAO@exemplo.com ", "123456")
    assert user.id == DEMO_USER_ID
    assert repo.get_current_user().id == DEMO_USER_ID

    with pytest.raises(AuthenticationError):
        service.login_merchant("joao@exemplo.com", "wrong")
    with pytest.raises(AuthenticationError):
        service.login_merchant("nobody@exemplo.com", "123456")

    service.logout()
    assert repo.get_current_user() is None


def test_sign_in_schedules_store_refresh(repo: Repository) -> None:
    repo.initialize()
    scheduler = RefreshScheduler(StoreResolver(repo), delays=())
    service = StorefrontService(repo, scheduler=scheduler)

    service.login_merchant("joao@exemplo.com", "123456")

    assert scheduler.current.id == DEMO_STORE_ID


def test_refresh_store_replaces_stale_session_snapshot(repo: Repository) -> None:
    repo.initialize()
    scheduler = RefreshScheduler(StoreResolver(repo), delays=())
    service = StorefrontService(repo, scheduler=scheduler)
    user, store = _register(service)
    with repo.editing("users") as users:
        users[:] = [u.evolve(name="Ana S.") if u.id == user.id else u for u in users]
    assert repo.get_current_user().name == "Ana Souza"

    service.refresh_store()

    assert repo.get_current_user().name == "Ana S."
    assert scheduler.current.id == store.id


def test_update_store_replaces_by_id(service: StorefrontService, repo: Repository) -> None:
    store = repo.get_store(DEMO_STORE_ID)
    service.update_store(store.evolve(name="Nova Casa", code="food01"))
    updated = repo.get_store(DEMO_STORE_ID)
    assert updated.name == "Nova Casa"
    assert updated.code == "FOOD01"

    with pytest.raises(NotFoundError):
        service.update_store(make_store("ghost"))


def test_register_customer_against_local_code(service: StorefrontService, repo: Repository) -> None:
    customer = service.register_customer(
        name="Bia", email="bia@example.com", password="abcd", store_code=" food01 ",
    )
    assert customer.store_id == DEMO_STORE_ID
    assert customer.store_code == "FOOD01"
    assert repo.get_current_customer().id == customer.id

    with pytest.raises(DuplicateEmailError):
        service.register_customer(name="B", email="BIA@example.com", password="abcd", store_code="FOOD01")


def test_register_customer_with_unknown_code(service: StorefrontService, repo: Repository) -> None:
    with pytest.raises(UnknownStoreCodeError):
        service.register_customer(name="Bia", email="bia@example.com", password="abcd", store_code="NOPE99")
    assert repo.get("customers") == []


def test_verify_store_code_consults_the_mirror(repo: Repository, mirror: RemoteMirror, session: FakeSession) -> None:
    repo.initialize()
    session.seed("stores", make_store("remote1", "u9", code="ABC123").to_dict())
    service = StorefrontService(repo, mirror=mirror, verify_timeout=2.0)

    found = service.verify_store_code("abc123")

    assert found.id == "remote1"
    assert repo.get_store("remote1") is not None


def test_verify_store_code_without_mirror_stays_local(service: StorefrontService) -> None:
    assert service.verify_store_code("ZZZ999") is None
    assert service.verify_store_code("") is None


def test_customer_login_and_amend(service: StorefrontService, repo: Repository) -> None:
    created = service.register_customer(name="Bia", email="bia@example.com", password="abcd", store_code="FOOD01")
    service.logout_customer()
    assert repo.get_current_customer() is None

    with pytest.raises(AuthenticationError):
        service.login_customer("bia@example.com", "nope")
    service.login_customer("BIA@example.com", "abcd")

    amended = service.amend_customer(created.id, saved_address="Rua A, 1", preferred_delivery_type="delivery")
    assert amended.saved_address == "Rua A, 1"
    assert repo.get_current_customer().preferred_delivery_type == "delivery"

    with pytest.raises(ValidationError):
        service.amend_customer(created.id, preferred_delivery_type="drone")
    with pytest.raises(NotFoundError):
        service.amend_customer("missing", saved_address="x")


def test_product_crud(service: StorefrontService) -> None:
    created = service.save_product(DEMO_STORE_ID, name="Pastel", price="7,50", category="Salgado")
    assert created.price == 7.5
    assert created in service.list_products(DEMO_STORE_ID)

    service.save_product(DEMO_STORE_ID, name="Pastel", price=8, category="Salgado",
                         is_active=False, product_id=created.id)
    active_ids: List[str] = [p.id for p in service.list_products(DEMO_STORE_ID, active_only=True)]
    assert created.id not in active_ids

    assert service.delete_product(created.id)
    assert not service.delete_product(created.id)

    with pytest.raises(ValidationError):
        service.save_product(DEMO_STORE_ID, name="X", price="abc")
    with pytest.raises(ValidationError):
        service.save_product(DEMO_STORE_ID, name="X", price=1, category="Sushi")
    with pytest.raises(NotFoundError):
        service.save_product(DEMO_STORE_ID, name="X", price=1, product_id="missing")


def test_place_order_computes_totals(service: StorefrontService, repo: Repository) -> None:
    store = repo.get_store(DEMO_STORE_ID)
    burger = Product(id="prod_001", name="Hambúrguer", price=24.90, store_id=store.id)
    juice = Product(id="prod_004", name="Suco", price=8.00, store_id=store.id)
    draft = OrderDraft(
        customer_name="Caio",
        lines=[CartLine(burger, 2), CartLine(juice, 1), CartLine(juice, 0)],
        delivery_type="delivery",
        address="Rua B, 2",
        delivery_fee=5.0,
        discount=5.78,
    )

    order = service.place_order(store, draft)

    assert order.subtotal == 57.8
    assert order.total == 57.02
    assert len(order.items) == 2
    assert repo.orders_for_store(store.id)[0].id == order.id


def test_place_order_rejects_bad_drafts(service: StorefrontService, repo: Repository) -> None:
    store = repo.get_store(DEMO_STORE_ID)
    product = Product(id="p", name="P", price=1.0)
    with pytest.raises(ValidationError):
        service.place_order(store, OrderDraft(customer_name="Caio", lines=[]))
    with pytest.raises(ValidationError):
        service.place_order(store, OrderDraft(customer_name="Caio", lines=[CartLine(product)], delivery_type="delivery"))
    with pytest.raises(ValidationError):
        service.place_order(store, OrderDraft(customer_name=" ", lines=[CartLine(product)]))
    assert repo.get("orders") == []


def test_duplicate_customer_is_rejected_before_remote_lookup(
    repo: Repository, mirror: RemoteMirror, session: FakeSession
) -> None:
    repo.initialize()
    service = StorefrontService(repo, mirror=mirror)
    service.register_customer(name="Bia", email="bia@example.com", password="abcd", store_code="FOOD01")
    session.seed("stores", make_store("remote1", "u9", code="ABC123").to_dict())
    stores_before = repo.get("stores")

    with pytest.raises(DuplicateEmailError):
        service.register_customer(name="Bia", email="bia@example.com", password="abcd", store_code="ABC123")

    assert session.gets == []
    assert repo.get("stores") == stores_before
