from typing import Any, Dict, List, Optional

import requests

from ..logging import get_logger


class MirrorClient:
    """Thin client for the remote tabular backend (one endpoint, rows tagged by table_type).

    Only three calls exist: list the rows of one table, insert one row, and
    insert one free-form registration row. Errors are raised as
    `requests.RequestException` (or `ValueError` for bodies that are not a
    JSON list); the sync layer turns them into `SyncError`s.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base = base_url.rstrip("/")
        self.timeout = float(timeout)
        self.log = get_logger("mirror-client")
        self.s = session or requests.Session()
        self.s.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    def close(self) -> None:
        self.s.close()

    # ---------- helpers ----------
    def _json(self, r: requests.Response) -> Any:
        r.raise_for_status()
        try:
            return r.json()
        except ValueError:
            return None

    # ---------- rows ----------
    def list_rows(self, table_type: str, *, timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        r = self.s.get(
            self.base,
            params={"table_type": table_type},
            timeout=timeout if timeout is not None else self.timeout,
        )
        body = self._json(r)
        if body is None:
            return []
        if not isinstance(body, list):
            raise ValueError(f"Expected a JSON list of rows for {table_type!r}, got {type(body).__name__}")
        return [row for row in body if isinstance(row, dict)]

    def insert_row(self, row: Dict[str, Any]) -> Any:
        self.log.debug(f"POST row table_type={row.get('table_type')!r} record_id={row.get('record_id')!r}")
        r = self.s.post(self.base, json=row, timeout=self.timeout)
        return self._json(r)

    def insert_named_row(self, fields: Dict[str, str]) -> Any:
        """Insert a row made of human-readable columns (no table_type envelope)."""
        r = self.s.post(self.base, json=fields, timeout=self.timeout)
        return self._json(r)
