"""HTTP client for the hosted Postgres store.

The store speaks PostgREST: tables and views live under ``/rest/v1/<name>``,
filters go in the query string (``col=eq.value``), the schema is chosen with
the ``Accept-Profile``/``Content-Profile`` headers and functions are called
under ``/rest/v1/rpc/<name>``.

Configuration comes from the environment (or a ``.env`` file, see the settings
page):

    export KESSLERLOG_STORE_URL="https://<project>.supabase.co"
    export KESSLERLOG_STORE_KEY="<anon key>"
    export KESSLERLOG_ACCESS_TOKEN="<user JWT>"   # optional, defaults to the key
    export KESSLERLOG_USER_ID="<user uuid>"
    export KESSLERLOG_SCHEMA="kesslerlog"         # optional
"""

import logging
import os
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = "kesslerlog"
REST_PATH = "/rest/v1"


class StoreError(Exception):
    """Error from the remote store."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _format_list_item(value: Any) -> str:
    text = _format_value(value)
    if any(ch in text for ch in ',()"'):
        return '"' + text.replace('"', '\\"') + '"'
    return text


def _compact_columns(columns: str) -> str:
    # Multi-line select strings with embedded relations are fine for the
    # server, but whitespace is not.
    return "".join(columns.split())


class Query:
    """Fluent request builder for one table or view.

    Mirrors the shape of the Supabase query builder::

        store.table("games").select("id,title").ilike("title", "%zelda%").order("title").limit(20).execute()
    """

    def __init__(self, client: "StoreClient", table: str, schema: str):
        self._client = client
        self._table = table
        self._schema = schema
        self._method = "GET"
        self._params: list[tuple[str, str]] = []
        self._order: list[str] = []
        self._prefer: list[str] = []
        self._body: Any = None
        self._single = False

    # -------------------------------------------------------------------------
    # Verbs
    # -------------------------------------------------------------------------

    def select(self, columns: str = "*") -> "Query":
        self._params.append(("select", _compact_columns(columns)))
        return self

    def insert(self, payload: dict | list[dict], returning: bool = True) -> "Query":
        self._method = "POST"
        self._body = payload
        self._prefer.append("return=representation" if returning else "return=minimal")
        return self

    def upsert(self, payload: dict | list[dict], on_conflict: str, returning: bool = True) -> "Query":
        self._method = "POST"
        self._body = payload
        self._params.append(("on_conflict", on_conflict))
        self._prefer.append("resolution=merge-duplicates")
        self._prefer.append("return=representation" if returning else "return=minimal")
        return self

    def update(self, patch: dict, returning: bool = True) -> "Query":
        self._method = "PATCH"
        self._body = patch
        self._prefer.append("return=representation" if returning else "return=minimal")
        return self

    def delete(self) -> "Query":
        self._method = "DELETE"
        return self

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    def _filter(self, column: str, expression: str) -> "Query":
        self._params.append((column, expression))
        return self

    def eq(self, column: str, value: Any) -> "Query":
        return self._filter(column, f"eq.{_format_value(value)}")

    def neq(self, column: str, value: Any) -> "Query":
        return self._filter(column, f"neq.{_format_value(value)}")

    def gt(self, column: str, value: Any) -> "Query":
        return self._filter(column, f"gt.{_format_value(value)}")

    def gte(self, column: str, value: Any) -> "Query":
        return self._filter(column, f"gte.{_format_value(value)}")

    def lt(self, column: str, value: Any) -> "Query":
        return self._filter(column, f"lt.{_format_value(value)}")

    def lte(self, column: str, value: Any) -> "Query":
        return self._filter(column, f"lte.{_format_value(value)}")

    def ilike(self, column: str, pattern: str) -> "Query":
        """Case-insensitive LIKE. ``%`` wildcards are accepted."""
        return self._filter(column, f"ilike.{pattern.replace('%', '*')}")

    def is_null(self, column: str) -> "Query":
        return self._filter(column, "is.null")

    def not_null(self, column: str) -> "Query":
        return self._filter(column, "not.is.null")

    def in_(self, column: str, values: Iterable[Any]) -> "Query":
        items = ",".join(_format_list_item(v) for v in values)
        return self._filter(column, f"in.({items})")

    # -------------------------------------------------------------------------
    # Modifiers
    # -------------------------------------------------------------------------

    def order(self, column: str, desc: bool = False) -> "Query":
        self._order.append(f"{column}.{'desc' if desc else 'asc'}")
        return self

    def limit(self, count: int) -> "Query":
        self._params.append(("limit", str(count)))
        return self

    def range(self, start: int, end: int) -> "Query":
        """Rows ``start`` through ``end``, both inclusive."""
        self._params.append(("offset", str(start)))
        self._params.append(("limit", str(end - start + 1)))
        return self

    def single(self) -> "Query":
        """Return one row (a dict) instead of a list."""
        self._single = True
        return self

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def build_params(self) -> list[tuple[str, str]]:
        params = list(self._params)
        if self._order:
            params.append(("order", ",".join(self._order)))
        return params

    def execute(self) -> Any:
        """Send the request.

        Returns:
            A list of row dicts, or a single dict after :meth:`single`.

        Raises:
            StoreError: On transport errors or non-2xx responses.
        """
        profile_header = "Accept-Profile" if self._method == "GET" else "Content-Profile"
        headers = {profile_header: self._schema}
        if self._prefer:
            headers["Prefer"] = ",".join(self._prefer)

        data = self._client.request(
            self._method,
            f"{REST_PATH}/{self._table}",
            params=self.build_params(),
            json=self._body,
            headers=headers,
        )

        rows = data if isinstance(data, list) else ([] if data is None else [data])
        if self._single:
            if not rows:
                raise StoreError(f"No rows returned from {self._table}", code="PGRST116")
            return rows[0]
        return rows


class StoreClient:
    """Client for the remote store."""

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        access_token: str | None = None,
        user_id: str | None = None,
        schema: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.url = (url or os.getenv("KESSLERLOG_STORE_URL") or "").rstrip("/")
        self.api_key = api_key or os.getenv("KESSLERLOG_STORE_KEY")
        self.access_token = access_token or os.getenv("KESSLERLOG_ACCESS_TOKEN")
        self.user_id = user_id or os.getenv("KESSLERLOG_USER_ID")
        self.schema = schema or os.getenv("KESSLERLOG_SCHEMA") or DEFAULT_SCHEMA

        # The client is built even when unconfigured so the web UI can start
        # and point the user at the settings page; requests fail instead.
        self._http_client = httpx.Client(timeout=30.0, transport=transport)

    @property
    def configured(self) -> bool:
        return bool(self.url and self.api_key)

    def table(self, name: str, schema: str | None = None) -> Query:
        """Start a query on a table or view of the app schema."""
        return Query(self, name, schema or self.schema)

    def rpc(self, function: str, params: dict | None = None, schema: str | None = None) -> Any:
        """Call a database function and return its JSON result."""
        headers = {"Content-Profile": schema} if schema else {}
        return self.request("POST", f"{REST_PATH}/rpc/{function}", json=params or {}, headers=headers)

    def request(
        self,
        method: str,
        path: str,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        if not self.configured:
            raise StoreError(
                "Store not configured. Set KESSLERLOG_STORE_URL and KESSLERLOG_STORE_KEY "
                "or fill them in on the settings page."
            )

        all_headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Accept": "application/json",
        }
        all_headers.update(headers or {})

        logger.debug("%s %s %s", method, path, params)
        try:
            response = self._http_client.request(
                method,
                f"{self.url}{path}",
                params=params,
                json=json,
                headers=all_headers,
            )
        except httpx.HTTPError as e:
            logger.warning("Store request failed: %s %s: %s", method, path, e)
            raise StoreError(f"Store request failed: {e}") from e

        if response.is_error:
            raise self._error_from_response(response)

        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_from_response(response: httpx.Response) -> StoreError:
        message = f"Store returned HTTP {response.status_code}"
        code = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("code")
            message = body.get("message") or message
            if body.get("details"):
                message = f"{message} ({body['details']})"
        logger.warning("Store error %s: %s", response.status_code, message)
        return StoreError(message, status_code=response.status_code, code=code)

    def close(self) -> None:
        self._http_client.close()
