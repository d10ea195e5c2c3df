from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

from ..logging import get_logger


LOG = get_logger("store-db")

DEFAULT_DB_FILENAME = "storefront.sqlite3"
TABLE_NAME = "kv_store"


SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
  key         TEXT PRIMARY KEY,
  value       TEXT NOT NULL,
  updated_at  TEXT DEFAULT (datetime('now'))
);
"""


class LocalStore:
    """SQLite-backed key/value medium holding one JSON document per key.

    - Every read decodes the whole value; a missing or undecodable value is
      reported as the caller's default, never as an exception.
    - Every write replaces the whole value. A failed write is retried once
      after deleting the key, then abandoned (logged, `False` returned).
    """

    def __init__(self, db_path: str) -> None:
        folder = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(folder, exist_ok=True)
        self.db_path = db_path
        self._ensure_schema()
        LOG.info(f"Local store ready at {self.db_path}")

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=5.0)
        try:
            yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self.connect() as conn:
            cur = conn.cursor()
            try:
                cur.execute("PRAGMA journal_mode=WAL;")
                cur.execute("PRAGMA synchronous=NORMAL;")
            except sqlite3.DatabaseError:
                # Non-fatal; continue with schema creation
                pass
            cur.executescript(SCHEMA_SQL)
            conn.commit()

    # --------------- raw access ---------------
    def get_raw(self, key: str) -> Optional[str]:
        try:
            with self.connect() as conn:
                cur = conn.cursor()
                cur.execute(f"SELECT value FROM {TABLE_NAME} WHERE key = ?", (key,))
                row = cur.fetchone()
                return row[0] if row else None
        except sqlite3.Error as exc:
            LOG.warning(f"Reading key {key!r} failed: {exc}")
            return None

    def put_raw(self, key: str, value: str) -> None:
        with self.connect() as conn:
            conn.execute(
                f"""
                INSERT INTO {TABLE_NAME} (key, value, updated_at)
                VALUES (?, ?, datetime('now'))
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at;
                """,
                (key, value),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        try:
            with self.connect() as conn:
                conn.execute(f"DELETE FROM {TABLE_NAME} WHERE key = ?", (key,))
                conn.commit()
        except sqlite3.Error as exc:
            LOG.warning(f"Deleting key {key!r} failed: {exc}")

    def keys(self) -> List[str]:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT key FROM {TABLE_NAME} ORDER BY key")
            return [row[0] for row in cur.fetchall()]

    # --------------- JSON documents ---------------
    def read(self, key: str, default: Any = None) -> Any:
        raw = self.get_raw(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as exc:
            LOG.warning(f"Stored value for {key!r} is not valid JSON ({exc}); treating as absent")
            return default

    def write(self, key: str, value: Any) -> bool:
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            LOG.error(f"Value for {key!r} is not serializable: {exc}")
            return False
        try:
            self.put_raw(key, payload)
            return True
        except sqlite3.Error as exc:
            LOG.warning(f"Writing {key!r} failed ({exc}); clearing key and retrying once")
        self.delete(key)
        try:
            self.put_raw(key, payload)
            return True
        except sqlite3.Error as exc:
            LOG.error(f"Retry writing {key!r} failed; giving up: {exc}")
            return False
