# src/daily_planner/storage/remote.py

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

import httpx

from ..core.errors import PersistenceError
from ..core.ports import Row

logger = logging.getLogger(__name__)


def _pg_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _pg_in_list(values: Iterable[Any]) -> str:
    parts = []
    for v in values:
        if isinstance(v, str):
            parts.append('"' + v.replace('"', '\\"') + '"')
        else:
            parts.append(_pg_literal(v))
    return f"in.({','.join(parts)})"


def _eq_params(filters: Mapping[str, Any] | None) -> dict[str, str]:
    return {col: f"eq.{_pg_literal(value)}" for col, value in (filters or {}).items()}


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text.strip() or resp.reason_phrase
    if isinstance(body, dict):
        for k in ("message", "msg", "error_description", "error", "hint"):
            if body.get(k):
                return str(body[k])
    return str(body)


class SupabaseRowStore:
    """
    PostgREST table client (Supabase `/rest/v1/<table>`).

    - the anon key goes in `apikey`, the user's access token (if any) in
      `Authorization`, so row-level security applies
    - insert/update ask for `return=representation`, so callers always get
      the stored row back (server-assigned id/created_at included)
    - every failure surfaces as PersistenceError; nothing is retried
    """

    def __init__(
        self,
        *,
        base_url: str,
        anon_key: str,
        table: str,
        token_provider: Callable[[], str | None] | None = None,
        timeout: httpx.Timeout | float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not base_url.strip():
            raise ValueError("Supabase URL is not set. Set PLANNER_SUPABASE_URL in your .env.")
        if not anon_key.strip():
            raise ValueError("Supabase anon key is not set. Set PLANNER_SUPABASE_ANON_KEY in your .env.")
        self._anon_key = anon_key
        self._table = table
        self._token_provider = token_provider
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)
        self._path = f"/rest/v1/{table}"

    def close(self) -> None:
        self._client.close()

    def _headers(self, *, returning: bool = False) -> dict[str, str]:
        token = self._token_provider() if self._token_provider else None
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {token or self._anon_key}",
        }
        if returning:
            headers["Prefer"] = "return=representation"
        return headers

    def _request(self, method: str, *, params: Mapping[str, str], json_body: Any = None, returning: bool = False) -> Any:
        try:
            resp = self._client.request(
                method,
                self._path,
                params=dict(params),
                json=json_body,
                headers=self._headers(returning=returning),
            )
        except httpx.TransportError as e:
            logger.info("Row store %s %s unreachable: %s", method, self._table, e.__class__.__name__)
            raise PersistenceError("Could not reach the task database. Check your connection.") from e

        if resp.is_error:
            detail = _error_detail(resp)
            logger.info("Row store %s %s failed status=%s: %s", method, self._table, resp.status_code, detail)
            raise PersistenceError(f"Task database rejected the request ({resp.status_code}): {detail}")

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise PersistenceError("Task database returned an unreadable response.") from e

    @staticmethod
    def _single(rows: Any, what: str) -> Row:
        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            return rows[0]
        raise PersistenceError(f"Task database did not return the {what} row.")

    # ---- RowStore ----

    def select(
        self,
        columns: Sequence[str] | None = None,
        *,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[tuple[str, bool]] = (),
    ) -> list[Row]:
        params = _eq_params(filters)
        params["select"] = ",".join(columns) if columns else "*"
        if order_by:
            params["order"] = ",".join(f"{col}.{'desc' if desc else 'asc'}" for col, desc in order_by)
        rows = self._request("GET", params=params)
        if not isinstance(rows, list):
            raise PersistenceError("Task database returned an unexpected payload.")
        return [r for r in rows if isinstance(r, dict)]

    def insert(self, row: Row) -> Row:
        rows = self._request("POST", params={}, json_body=row, returning=True)
        return self._single(rows, "inserted")

    def update(self, patch: Row, *, match_id: Any, filters: Mapping[str, Any] | None = None) -> Row:
        params = _eq_params(filters)
        params["id"] = f"eq.{_pg_literal(match_id)}"
        rows = self._request("PATCH", params=params, json_body=patch, returning=True)
        return self._single(rows, "updated")

    def delete(self, match_ids: Iterable[Any], *, filters: Mapping[str, Any] | None = None) -> None:
        ids = list(match_ids)
        if not ids:
            return
        params = _eq_params(filters)
        params["id"] = f"eq.{_pg_literal(ids[0])}" if len(ids) == 1 else _pg_in_list(ids)
        self._request("DELETE", params=params)
