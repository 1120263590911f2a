"""
Supabase (PostgREST) client for the lodge tables.

API Documentation: https://postgrest.org/en/stable/references/api.html
"""

from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from lodge.services.errors import RemoteDataError, RequestTimeoutError

FILTER_OPERATORS = (
    "eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "in", "is", "not",
)


@dataclass
class SelectResult:
    """Rows returned by a select, plus the exact count when requested."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    total: int | None = None


def _is_operator_expression(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    operator, dot, _ = value.partition(".")
    return bool(dot) and operator in FILTER_OPERATORS


def encode_filters(filters: dict[str, Any] | None) -> dict[str, str]:
    """Turn {column: value} into PostgREST query params.

    Plain values become equality filters; strings that already start with an
    operator ("gt.2024-01-01", "ilike.*lodge*") pass through.
    """
    params: dict[str, str] = {}
    for column, value in (filters or {}).items():
        if _is_operator_expression(value):
            params[column] = value
        elif isinstance(value, bool):
            params[column] = f"eq.{str(value).lower()}"
        elif value is None:
            params[column] = "is.null"
        else:
            params[column] = f"eq.{value}"
    return params


def parse_content_range(header: str | None) -> int | None:
    """Read the total from a Content-Range header ("0-19/57", "*/0")."""
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


class SupabaseClient:
    """
    Async client for the Supabase REST API.

    Usage:
        remote = SupabaseClient(url, key)
        result = await remote.select("events", order="event_date.asc")
        await remote.close()
    """

    SERVICE_ID = "supabase"

    def __init__(
        self,
        url: str,
        key: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not url or not key:
            logger.warning("SUPABASE_URL or SUPABASE_KEY not set in environment.")

        self.url = url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self.headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        self._http_client: httpx.AsyncClient | None = None

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=f"{self.url}/rest/v1",
                headers=self.headers,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._http_client

    async def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        columns: str = "*",
        order: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
        count: bool = False,
    ) -> SelectResult:
        """
        Query a table.

        Args:
            table: Table name
            filters: Column filters (see encode_filters)
            columns: Select expression
            order: Ordering, e.g. "created_at.desc"
            limit: Maximum number of rows
            offset: Number of rows to skip
            count: Ask for the exact total row count
        """
        params = {"select": columns, **encode_filters(filters)}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        if offset is not None:
            params["offset"] = str(offset)

        headers = {"Prefer": "count=exact"} if count else None
        response = await self._request("GET", table, params=params, headers=headers)

        return SelectResult(
            rows=response.json(),
            total=parse_content_range(response.headers.get("content-range")) if count else None,
        )

    async def select_one(
        self,
        table: str,
        filters: dict[str, Any],
        columns: str = "*",
    ) -> dict[str, Any] | None:
        """Return the first matching row, or None."""
        result = await self.select(table, filters=filters, columns=columns, limit=1)
        return result.rows[0] if result.rows else None

    async def insert(self, table: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it."""
        response = await self._request(
            "POST", table, json=payload, headers={"Prefer": "return=representation"}
        )
        return self._single_row(table, response)

    async def update(
        self,
        table: str,
        match: dict[str, Any],
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        """Update the rows matching `match` and return the first one."""
        response = await self._request(
            "PATCH",
            table,
            params=encode_filters(match),
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        return self._single_row(table, response)

    async def delete(self, table: str, match: dict[str, Any]) -> None:
        """Delete the rows matching `match`."""
        if not match:
            raise ValueError("Refusing to delete without a filter")
        await self._request("DELETE", table, params=encode_filters(match))

    async def ping(self) -> bool:
        """Cheap connection check against the member_profiles table."""
        try:
            await self.select("member_profiles", columns="id", limit=1)
        except (RemoteDataError, RequestTimeoutError) as e:
            logger.warning(f"Supabase connection failed: {e}")
            return False
        return True

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute the actual HTTP request."""
        client = self._get_http_client()

        try:
            response = await client.request(
                method, f"/{table}", params=params, json=json, headers=headers
            )
            response.raise_for_status()
            return response

        except httpx.TimeoutException as e:
            raise RequestTimeoutError(self.SERVICE_ID, self._timeout) from e

        except httpx.HTTPStatusError as e:
            raise self._error_from_response(table, e.response) from e

        except httpx.RequestError as e:
            raise RemoteDataError(str(e), service_id=self.SERVICE_ID) from e

    def _error_from_response(self, table: str, response: httpx.Response) -> RemoteDataError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        message = body.get("message") or response.text[:200]
        logger.error(f"Supabase request on {table} failed: HTTP {response.status_code}: {message}")
        return RemoteDataError(
            f"HTTP {response.status_code} on {table}: {message}",
            service_id=self.SERVICE_ID,
            status_code=response.status_code,
            code=body.get("code"),
        )

    def _single_row(self, table: str, response: httpx.Response) -> dict[str, Any]:
        rows = response.json()
        if not rows:
            raise RemoteDataError(
                f"No row returned from {table}",
                service_id=self.SERVICE_ID,
                status_code=response.status_code,
            )
        return rows[0]

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
