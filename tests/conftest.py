from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import requests

from storefront_sync.domain.models import Store, User
from storefront_sync.mirror import MirrorClient, RemoteMirror
from storefront_sync.store import Repository


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None) -> None:
        self.status_code = status_code
        self._body = body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)  # type: ignore[arg-type]

    def json(self) -> Any:
        if isinstance(self._body, str):
            return json.loads(self._body)
        return self._body


class FakeSession:
    """In-memory stand-in for the remote tabular backend."""

    def __init__(self) -> None:
        self.headers: Dict[str, str] = {}
        self.rows: List[Dict[str, Any]] = []
        self.posts: List[Dict[str, Any]] = []
        self.gets: List[Optional[str]] = []
        self.get_status = 200
        self.fail_get = False
        self.fail_post_for: set = set()
        self.closed = False

    def get(self, url: str, params: Optional[Dict[str, str]] = None, timeout: Any = None) -> FakeResponse:
        table = (params or {}).get("table_type")
        self.gets.append(table)
        if self.fail_get:
            raise requests.ConnectionError("backend unreachable")
        if self.get_status != 200:
            return FakeResponse(self.get_status, {"error": "nope"})
        return FakeResponse(200, [dict(r) for r in self.rows if r.get("table_type") == table])

    def post(self, url: str, json: Any = None, timeout: Any = None) -> FakeResponse:
        if isinstance(json, dict) and json.get("record_id") in self.fail_post_for:
            raise requests.ConnectionError("write dropped")
        self.posts.append(json)
        self.rows.append(dict(json))
        return FakeResponse(201, {"created": 1})

    def close(self) -> None:
        self.closed = True

    def seed(self, table: str, record: Dict[str, Any], record_id: Optional[str] = None) -> None:
        self.rows.append({
            "table_type": table,
            "record_id": record_id or record.get("id"),
            "data": json.dumps(record),
            "updated_at": "2026-01-01T00:00:00+00:00",
        })


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "var" / "storefront" / "storefront.sqlite3")


@pytest.fixture
def repo(db_path: str):
    repository = Repository(db_path).open()
    yield repository
    repository.close()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def mirror(session: FakeSession):
    m = RemoteMirror(MirrorClient("https://mirror.test/api", session=session))  # type: ignore[arg-type]
    yield m
    m.shutdown(wait=True)


@pytest.fixture
def write_counter(repo: Repository, monkeypatch: pytest.MonkeyPatch) -> List[str]:
    """Record the name of every collection the repository persists."""
    writes: List[str] = []
    original = repo.set

    def counting_set(name, records):
        writes.append(name)
        return original(name, records)

    monkeypatch.setattr(repo, "set", counting_set)
    return writes


def make_store(store_id: str, owner_id: str = "", code: str = "") -> Store:
    return Store(id=store_id, owner_id=owner_id, name=f"Store {store_id}", code=code or store_id.upper())


def make_user(user_id: str, store_id: Optional[str] = None, email: str = "") -> User:
    return User(id=user_id, name=f"User {user_id}", email=email or f"{user_id}@example.com", password="secret", store_id=store_id)
