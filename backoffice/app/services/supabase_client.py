"""HTTP client wrapper around the hosted Supabase (PostgREST) API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx
from loguru import logger

from backoffice.app.config import Settings

Filter = Tuple[str, str, Any]

SUPPORTED_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "in", "ilike")


class SupabaseAPIError(Exception):
    """Raised when the Supabase REST API returns an unexpected response."""

    def __init__(self, status_code: int, payload: Any):
        self.status_code = status_code
        self.payload = payload
        super().__init__(f"Supabase request failed with status {status_code}")

    @property
    def message(self) -> str:
        """Best-effort human readable message extracted from the payload."""
        if isinstance(self.payload, dict):
            for key in ("message", "error_description", "error", "hint"):
                value = self.payload.get(key)
                if value:
                    return str(value)
        if isinstance(self.payload, str) and self.payload:
            return self.payload
        return str(self)


def encode_filter(operator: str, value: Any) -> str:
    """Render a PostgREST filter expression such as ``eq.LHR`` or ``in.(a,b)``."""
    if operator not in SUPPORTED_OPERATORS:
        raise ValueError(f"Unsupported filter operator: {operator}")
    if operator == "in":
        values = value if isinstance(value, (list, tuple, set)) else [value]
        return "in.(" + ",".join(str(item) for item in values) + ")"
    if isinstance(value, bool):
        value = "true" if value else "false"
    return f"{operator}.{value}"


def build_query_params(
    filters: Optional[Iterable[Filter]] = None,
    *,
    columns: str = "*",
    order: Optional[str] = None,
    ascending: bool = True,
) -> List[Tuple[str, str]]:
    """Translate filters and ordering into PostgREST query string pairs."""
    params: List[Tuple[str, str]] = [("select", columns)]
    for column, operator, value in filters or []:
        params.append((column, encode_filter(operator, value)))
    if order:
        params.append(("order", f"{order}.{'asc' if ascending else 'desc'}"))
    return params


class SupabaseClient:
    """Async client for table reads and mutations."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._settings = settings
        base_url = str(settings.supabase_url).rstrip("/") + "/rest/v1"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(10.0, read=30.0),
            transport=transport,
            headers={
                "apikey": settings.supabase_key,
                "Authorization": f"Bearer {settings.supabase_key}",
                "Content-Type": "application/json",
            },
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    @asynccontextmanager
    async def lifespan(self) -> AsyncIterator["SupabaseClient"]:
        """Async context manager to ensure resource cleanup."""
        try:
            yield self
        finally:
            await self.close()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Sequence[Tuple[str, str]]] = None,
        json: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Perform an authorized request and decode the JSON body."""
        logger.debug("Supabase request {method} {url}", method=method, url=url)
        response = await self._client.request(
            method, url, params=params, json=json, headers=headers
        )
        if response.status_code >= 400:
            try:
                payload: Any = response.json()
            except ValueError:
                payload = response.text
            logger.error(
                "Supabase API error {status} on {url}: {body}",
                status=response.status_code,
                url=url,
                body=response.text,
            )
            raise SupabaseAPIError(response.status_code, payload)
        if not response.content:
            return None
        return response.json()

    # --- Reads ---

    async def select(
        self,
        table: str,
        filters: Optional[Iterable[Filter]] = None,
        *,
        columns: str = "*",
        order: Optional[str] = None,
        ascending: bool = True,
    ) -> List[Dict[str, Any]]:
        """Fetch all rows matching ``filters``."""
        params = build_query_params(
            filters, columns=columns, order=order, ascending=ascending
        )
        data = await self._request("GET", f"/{table}", params=params)
        return list(data or [])

    async def get(self, table: str, record_id: Any) -> Optional[Dict[str, Any]]:
        """Fetch a single row by primary key, or ``None`` when absent."""
        rows = await self.select(table, [("id", "eq", record_id)])
        return rows[0] if rows else None

    # --- Mutations ---

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row and return its stored representation."""
        data = await self._request(
            "POST",
            f"/{table}",
            json=row,
            headers={"Prefer": "return=representation"},
        )
        return data[0] if isinstance(data, list) and data else (data or {})

    async def insert_many(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert several rows in one request."""
        if not rows:
            return []
        data = await self._request(
            "POST",
            f"/{table}",
            json=rows,
            headers={"Prefer": "return=representation"},
        )
        return list(data or [])

    async def update(
        self, table: str, record_id: Any, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Update a row by id, stamping ``updated_at``."""
        body = {**changes, "updated_at": datetime.now(timezone.utc).isoformat()}
        data = await self._request(
            "PATCH",
            f"/{table}",
            params=[("id", encode_filter("eq", record_id))],
            json=body,
            headers={"Prefer": "return=representation"},
        )
        if isinstance(data, list):
            if not data:
                raise SupabaseAPIError(404, {"message": f"{table} record not found"})
            return data[0]
        return data or {}

    async def delete(self, table: str, record_id: Any) -> None:
        """Delete a row by id."""
        await self._request(
            "DELETE", f"/{table}", params=[("id", encode_filter("eq", record_id))]
        )
