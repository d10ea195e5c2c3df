"""Best-effort replication of the local collections to and from the remote mirror."""

from __future__ import annotations

import json
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import requests

from ..domain.normalize import generate_id, normalize_email
from ..logging import get_logger
from ..store.collections import COLLECTIONS, EMAIL_KEYED, check_collection
from .client import MirrorClient

if TYPE_CHECKING:
    from ..store.repository import Repository


LOG = get_logger("mirror-sync")

# Failures the mirror absorbs. Anything else is a programming error and propagates.
REMOTE_ERRORS = (requests.RequestException, ValueError)

FOOD_TYPE_LABELS = {
    "both": "Doces e Salgados",
    "sweet": "Doces / Confeitaria",
    "savory": "Salgados / Lanches",
    "lunch": "Marmitas / Almoço",
}


@dataclass
class SyncError:
    collection: str
    stage: str  # pull | lookup | insert | decode | schedule
    message: str
    record_id: Optional[str] = None


@dataclass
class SyncResult:
    collection: str
    records: List[Dict[str, Any]] = field(default_factory=list)
    pushed: int = 0
    skipped: int = 0
    errors: List[SyncError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def log_errors(self) -> None:
        for err in self.errors:
            LOG.warning(f"[{err.collection}] {err.stage} failed for {err.record_id or '-'}: {err.message}")


def dedup_identifier(collection: str, record: Dict[str, Any]) -> str:
    """E-mail for people, else the record id, else a fresh random token."""
    if collection in EMAIL_KEYED:
        email = normalize_email(record.get("email"))
        if email:
            return email
    rid = record.get("id")
    if rid:
        return str(rid)
    return generate_id()


def decode_row(row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the record embedded in a remote row, or None when it cannot be decoded."""
    payload = row.get("data")
    if payload is None or payload == "":
        return row
    if isinstance(payload, dict):
        return payload
    try:
        decoded = json.loads(payload)
    except (TypeError, ValueError):
        return None
    return decoded if isinstance(decoded, dict) else None


class RemoteMirror:
    """Push/pull protocol over a `MirrorClient`.

    - push: insert-if-absent per record, never update.
    - pull: decode every row of one table.
    - reconcile: pull all collections and merge additively into a Repository.

    No method raises for remote failures; they are returned as `SyncError`s.
    """

    def __init__(self, client: MirrorClient, *, max_workers: int = 2) -> None:
        self.client = client
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="mirror")

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        self.client.close()

    # ---------- push ----------
    def _remote_has(self, collection: str, identifier: str) -> bool:
        rows = self.client.list_rows(collection)
        if collection in EMAIL_KEYED and "@" in identifier:
            for row in rows:
                record = decode_row(row)
                if record is not None and normalize_email(record.get("email")) == identifier:
                    return True
            return False
        return any(str(row.get("record_id", "")) == identifier for row in rows)

    def push(self, collection: str, records: Sequence[Dict[str, Any]]) -> SyncResult:
        check_collection(collection)
        result = SyncResult(collection=collection)
        for record in records:
            identifier = dedup_identifier(collection, record)
            try:
                if self._remote_has(collection, identifier):
                    result.skipped += 1
                    continue
            except REMOTE_ERRORS as exc:
                result.errors.append(SyncError(collection, "lookup", str(exc), identifier))
                continue
            row = {
                "table_type": collection,
                "record_id": identifier,
                "data": json.dumps(record, ensure_ascii=False),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
            try:
                self.client.insert_row(row)
                result.pushed += 1
            except REMOTE_ERRORS as exc:
                result.errors.append(SyncError(collection, "insert", str(exc), identifier))
        LOG.info(
            f"Pushed {collection}: {result.pushed} new, {result.skipped} already remote, "
            f"{len(result.errors)} failed"
        )
        return result

    # ---------- pull ----------
    def pull(self, collection: str, *, timeout: Optional[float] = None) -> SyncResult:
        check_collection(collection)
        result = SyncResult(collection=collection)
        try:
            rows = self.client.list_rows(collection, timeout=timeout)
        except REMOTE_ERRORS as exc:
            result.errors.append(SyncError(collection, "pull", str(exc)))
            return result
        for row in rows:
            record = decode_row(row)
            if record is None:
                LOG.debug(f"Dropping undecodable {collection} row {row.get('record_id')!r}")
                continue
            result.records.append(record)
        return result

    # ---------- reconcile ----------
    def reconcile(self, repository: "Repository") -> Dict[str, int]:
        """Pull every collection and append the unseen records locally."""
        added: Dict[str, int] = {}
        for name in COLLECTIONS:
            result = self.pull(name)
            result.log_errors()
            added[name] = repository.merge_remote(name, result.records) if result.records else 0
        LOG.info(f"Reconciled with remote mirror: {added}")
        return added

    # ---------- background ----------
    def _submit(self, what: str, refused: Any, fn: Any, *args: Any) -> Future:
        """Schedule `fn` on the pool; once shut down, return a finished Future holding `refused`."""
        try:
            fut = self._executor.submit(fn, *args)
        except RuntimeError as exc:
            LOG.warning(f"Mirror pool unavailable; {what} not scheduled: {exc}")
            fut = Future()
            fut.set_result(refused)
            return fut
        fut.add_done_callback(_log_result)
        return fut

    def push_in_background(self, collection: str, records: Sequence[Dict[str, Any]]) -> Future:
        refused = SyncResult(
            collection=collection,
            errors=[SyncError(collection, "schedule", "mirror is shut down")],
        )
        return self._submit(f"push of {collection}", refused, self.push, collection, list(records))

    def reconcile_in_background(self, repository: "Repository") -> Future:
        return self._submit("reconcile", {}, self.reconcile, repository)

    # ---------- registration contact row ----------
    def save_store_owner_registration(
        self,
        *,
        email: str,
        password: str,
        store_name: str,
        whatsapp: str,
        food_type: str,
        full_name: str,
    ) -> bool:
        row = {
            "E-mail": email,
            "Senha": password,
            "Nome da Loja": store_name,
            "WhatsApp (com DDD)": whatsapp,
            "Especialidade": FOOD_TYPE_LABELS.get(food_type, food_type),
            "Nome Completo": full_name,
            "Data Cadastro": date.today().isoformat(),
        }
        try:
            self.client.insert_named_row(row)
        except REMOTE_ERRORS as exc:
            LOG.warning(f"Saving merchant registration to the mirror failed: {exc}")
            return False
        LOG.info(f"Merchant registration for {email} saved to the mirror")
        return True


def _log_result(fut: Future) -> None:
    if fut.cancelled():
        return
    exc = fut.exception()
    if exc is not None:
        LOG.error(f"Background mirror task crashed: {exc!r}")
        return
    result = fut.result()
    if isinstance(result, SyncResult):
        result.log_errors()
