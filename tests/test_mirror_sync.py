from __future__ import annotations

import json

import requests

from conftest import FakeSession, make_store
from storefront_sync.domain.models import Order, OrderLine
from storefront_sync.mirror import RemoteMirror, decode_row, dedup_identifier
from storefront_sync.store import Repository


def test_dedup_identifier_prefers_email_for_people() -> None:
    assert dedup_identifier("customers", {"id": "c1", "email": " Ana@Example.com "}) == "ana@example.com"
    assert dedup_identifier("users", {"id": "u1"}) == "u1"
    assert dedup_identifier("stores", {"id": "s1", "email": "x@y"}) == "s1"
    token = dedup_identifier("products", {"name": "no id"})
    assert token and len(token) == 9


def test_push_inserts_envelope_rows(mirror: RemoteMirror, session: FakeSession) -> None:
    record = make_store("s1", owner_id="u1").to_dict()
    result = mirror.push("stores", [record])
    assert result.ok
    assert result.pushed == 1
    row = session.posts[0]
    assert row["table_type"] == "stores"
    assert row["record_id"] == "s1"
    assert json.loads(row["data"]) == record
    assert row["updated_at"]


def test_pushing_the_same_record_twice_is_a_noop(mirror: RemoteMirror, session: FakeSession) -> None:
    record = {"id": "p1", "name": "Coxinha"}
    mirror.push("products", [record])
    second = mirror.push("products", [record])
    assert second.pushed == 0
    assert second.skipped == 1
    assert len([r for r in session.rows if r["record_id"] == "p1"]) == 1


def test_customer_dedup_compares_decoded_emails(mirror: RemoteMirror, session: FakeSession) -> None:
    # Row written by an older client keyed by id, not e-mail.
    session.seed("customers", {"id": "old1", "email": "ana@example.com"}, record_id="old1")
    result = mirror.push("customers", [{"id": "new1", "email": "ANA@example.com "}])
    assert result.skipped == 1
    assert session.posts == []


def test_one_failing_record_does_not_abort_the_rest(mirror: RemoteMirror, session: FakeSession) -> None:
    session.fail_post_for = {"p2"}
    result = mirror.push("products", [{"id": "p1"}, {"id": "p2"}, {"id": "p3"}])
    assert result.pushed == 2
    assert not result.ok
    assert [(e.stage, e.record_id) for e in result.errors] == [("insert", "p2")]
    assert [r["record_id"] for r in session.posts] == ["p1", "p3"]


def test_push_never_raises_when_backend_is_down(mirror: RemoteMirror, session: FakeSession) -> None:
    session.fail_get = True
    result = mirror.push("orders", [{"id": "o1"}])
    assert result.pushed == 0
    assert result.errors[0].stage == "lookup"
    assert session.posts == []


def test_pull_decodes_rows_and_drops_garbage(mirror: RemoteMirror, session: FakeSession) -> None:
    session.seed("stores", {"id": "s1", "ownerId": "u1"})
    session.rows.append({"table_type": "stores", "record_id": "bad", "data": "{broken"})
    session.rows.append({"table_type": "stores", "record_id": "arr", "data": "[1, 2]"})
    session.seed("products", {"id": "p1"})
    result = mirror.pull("stores")
    assert result.ok
    assert result.records == [{"id": "s1", "ownerId": "u1"}]
    assert session.gets == ["stores"]


def test_pull_failure_yields_empty_result(mirror: RemoteMirror, session: FakeSession) -> None:
    session.get_status = 500
    result = mirror.pull("users")
    assert result.records == []
    assert result.errors[0].stage == "pull"

    session.get_status = 200
    session.fail_get = True
    assert mirror.pull("users").records == []


def test_decode_row_accepts_plain_rows() -> None:
    assert decode_row({"id": "x", "name": "flat"}) == {"id": "x", "name": "flat"}
    assert decode_row({"data": {"id": "x"}}) == {"id": "x"}
    assert decode_row({"data": "not json"}) is None


def test_reconcile_is_additive_and_leaves_orders_untouched(
    repo: Repository, mirror: RemoteMirror, session: FakeSession
) -> None:
    local_order = Order(id="o1", store_id="s1", customer_name="Bia",
                        items=[OrderLine("p1", "Coxinha", 2, 6.5)], subtotal=13.0, total=13.0,
                        created_at="2026-10-01T12:00:00+00:00")
    repo.add_order(local_order)
    repo.save_stores([make_store("s1", owner_id="u1")])
    before = repo.get("orders")

    session.seed("orders", {"id": "o1", "storeId": "s1", "customerName": "Rewritten", "total": 0})
    session.seed("orders", {"id": "o2", "storeId": "s1", "customerName": "Caio", "total": 20})
    session.seed("stores", {"id": "s1", "ownerId": "someone-else"})
    session.seed("customers", {"id": "c1", "email": "ana@example.com"})

    added = mirror.reconcile(repo)

    assert added == {"users": 0, "stores": 0, "products": 0, "orders": 1, "customers": 1}
    orders = repo.get("orders")
    assert orders[0] == before[0]
    assert orders[1]["id"] == "o2"
    assert repo.get_store("s1").owner_id == "u1"
    assert repo.find_customer_by_email("ana@example.com").id == "c1"


def test_reconcile_survives_unreachable_backend(repo: Repository, mirror: RemoteMirror, session: FakeSession) -> None:
    session.fail_get = True
    repo.save_stores([make_store("s1")])
    assert mirror.reconcile(repo) == {name: 0 for name in ("users", "stores", "products", "orders", "customers")}
    assert [s.id for s in repo.stores()] == ["s1"]


def test_saving_through_repository_pushes_in_background(
    repo: Repository, mirror: RemoteMirror, session: FakeSession
) -> None:
    repo.attach_mirror(mirror)
    repo.save_stores([make_store("s1")])
    mirror.shutdown(wait=True)
    assert [r["record_id"] for r in session.posts] == ["s1"]


def test_push_in_background_returns_result(mirror: RemoteMirror, session: FakeSession) -> None:
    fut = mirror.push_in_background("products", [{"id": "p1"}])
    result = fut.result(timeout=5)
    assert result.pushed == 1


def test_store_owner_registration_uses_named_columns(mirror: RemoteMirror, session: FakeSession) -> None:
    assert mirror.save_store_owner_registration(
        email="ana@example.com",
        password="1234",
        store_name="Doces da Ana",
        whatsapp="11999990000",
        food_type="sweet",
        full_name="Ana Souza",
    )
    row = session.posts[0]
    assert "table_type" not in row
    assert row["E-mail"] == "ana@example.com"
    assert row["Especialidade"] == "Doces / Confeitaria"
    assert row["Nome Completo"] == "Ana Souza"
    assert len(row["Data Cadastro"]) == 10


def test_store_owner_registration_swallows_failures(mirror: RemoteMirror, session: FakeSession, monkeypatch) -> None:
    def refuse(*_, **__):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(session, "post", refuse)
    assert mirror.save_store_owner_registration(
        email="a@b.c", password="1234", store_name="S", whatsapp="1", food_type="pizza", full_name="A",
    ) is False


def test_saving_after_mirror_shutdown_keeps_local_write(
    repo: Repository, mirror: RemoteMirror, session: FakeSession
) -> None:
    repo.attach_mirror(mirror)
    mirror.shutdown(wait=True)

    assert repo.save_stores([make_store("s1")]) is True

    assert [s.id for s in repo.stores()] == ["s1"]
    assert session.posts == []
    refused = mirror.push_in_background("stores", [{"id": "s2"}]).result(timeout=1)
    assert [e.stage for e in refused.errors] == ["schedule"]
    assert mirror.reconcile_in_background(repo).result(timeout=1) == {}


def test_record_without_id_travels_through_the_mirror(
    repo: Repository, mirror: RemoteMirror, session: FakeSession
) -> None:
    pushed = mirror.push("products", [{"name": "no id product", "price": 4.5}])
    assert pushed.pushed == 1

    added = mirror.reconcile(repo)

    assert added["products"] == 1
    assert repo.get("products") == [{"name": "no id product", "price": 4.5}]
    assert mirror.reconcile(repo)["products"] == 0
