"""
Supabase REST API Client Module

Handles authentication headers, error handling, and query construction
for the PostgREST endpoint that exposes the plant dashboard views.

API Documentation: https://postgrest.org/en/stable/references/api/tables_views.html
Rows per response are capped server-side (1000 on Supabase by default).
"""

import os
import requests
from dataclasses import dataclass
from typing import Dict, List, Optional, Any, Tuple
from dotenv import load_dotenv
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Characters that force a PostgREST value to be double-quoted
RESERVED_CHARS = set(',.:()" ')


class DashboardAPIError(Exception):
    """Custom exception for Supabase REST API errors"""
    pass


@dataclass
class QueryResult:
    data: List[Dict[str, Any]]
    count: Optional[int] = None


def raw_value(value: Any) -> str:
    """Render a scalar for a top-level filter, where PostgREST takes the text verbatim"""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def format_value(value: Any) -> str:
    """
    Render a value for use inside an `in.(...)` list or an `or=(...)` group.

    Examples:
        >>> format_value(True)
        'true'
        >>> format_value("Smith, J.")
        '"Smith, J."'
    """
    text = raw_value(value)
    if value is not None and not isinstance(value, bool) and (not text or any(ch in RESERVED_CHARS for ch in text)):
        text = '"' + text.replace('\\', '\\\\').replace('"', '\\"') + '"'
    return text


def format_list(values) -> str:
    return "(" + ",".join(format_value(v) for v in values) + ")"


def format_condition(column: str, operator: str, value: Any) -> str:
    """Build one `column.operator.value` term for use inside or=(...)"""
    if operator == "in":
        return f"{column}.in.{format_list(value)}"
    if operator == "is":
        return f"{column}.is.{raw_value(value)}"
    return f"{column}.{operator}.{format_value(value)}"


class QueryBuilder:
    """
    Fluent PostgREST query builder for a single table or view.

    Every filter method appends one query parameter and returns the builder,
    so calls chain the same way the hosted client library does:

        >>> rows = (client.table("plant_wrap_view")
        ...         .select("wrap_date")
        ...         .not_("has_shipped", "is", True)
        ...         .gte("wrap_date", "2024-01-01")
        ...         .execute_all())
    """

    def __init__(self, client: "SupabaseAPIClient", table: str):
        self.client = client
        self.table_name = table
        self._select = "*"
        self._filters: List[Tuple[str, str]] = []
        self._order: List[str] = []
        self._offset: Optional[int] = None
        self._limit: Optional[int] = None

    def __repr__(self):
        return f"QueryBuilder({self.table_name!r}, params={self.params()!r})"

    # -------------------------------------------------------------------------
    # Column selection
    # -------------------------------------------------------------------------

    def select(self, columns: str = "*") -> "QueryBuilder":
        # PostgREST rejects whitespace outside quoted identifiers
        self._select = ",".join(part.strip() for part in columns.split(",") if part.strip())
        return self

    # -------------------------------------------------------------------------
    # Predicates
    # -------------------------------------------------------------------------

    def _add(self, column: str, operator: str, value: Any) -> "QueryBuilder":
        self._filters.append((column, f"{operator}.{raw_value(value)}"))
        return self

    def eq(self, column: str, value: Any) -> "QueryBuilder":
        return self._add(column, "eq", value)

    def neq(self, column: str, value: Any) -> "QueryBuilder":
        return self._add(column, "neq", value)

    def gt(self, column: str, value: Any) -> "QueryBuilder":
        return self._add(column, "gt", value)

    def gte(self, column: str, value: Any) -> "QueryBuilder":
        return self._add(column, "gte", value)

    def lt(self, column: str, value: Any) -> "QueryBuilder":
        return self._add(column, "lt", value)

    def lte(self, column: str, value: Any) -> "QueryBuilder":
        return self._add(column, "lte", value)

    def ilike(self, column: str, pattern: str) -> "QueryBuilder":
        self._filters.append((column, f"ilike.{pattern}"))
        return self

    def in_(self, column: str, values) -> "QueryBuilder":
        self._filters.append((column, f"in.{format_list(values)}"))
        return self

    def is_(self, column: str, value: Optional[bool]) -> "QueryBuilder":
        return self._add(column, "is", value)

    def not_(self, column: str, operator: str, value: Any) -> "QueryBuilder":
        """Negate a single predicate, e.g. not_("has_shipped", "is", True)"""
        if operator == "in":
            rendered = format_list(value)
        else:
            rendered = raw_value(value)
        self._filters.append((column, f"not.{operator}.{rendered}"))
        return self

    def or_(self, *conditions: Tuple[str, str, Any]) -> "QueryBuilder":
        """
        OR together (column, operator, value) conditions.

        Used for multi-column text search and for the `IN (...) OR IS NULL`
        key restriction, which PostgREST cannot express with `in` alone.
        """
        if not conditions:
            return self
        joined = ",".join(format_condition(c, op, v) for c, op, v in conditions)
        self._filters.append(("or", f"({joined})"))
        return self

    # -------------------------------------------------------------------------
    # Ordering and row ranges
    # -------------------------------------------------------------------------

    def order(self, column: str, ascending: bool = True) -> "QueryBuilder":
        self._order.append(f"{column}.{'asc' if ascending else 'desc'}")
        return self

    def range(self, start: int, end: int) -> "QueryBuilder":
        """Restrict to rows start..end inclusive (zero-based)"""
        if start < 0 or end < start:
            raise ValueError(f"Invalid range {start}-{end}")
        self._offset = start
        self._limit = end - start + 1
        return self

    def params(self) -> List[Tuple[str, str]]:
        params = [("select", self._select)]
        params.extend(self._filters)
        if self._order:
            params.append(("order", ",".join(self._order)))
        if self._offset is not None:
            params.append(("offset", str(self._offset)))
        if self._limit is not None:
            params.append(("limit", str(self._limit)))
        return params

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def execute(self, count: bool = False) -> QueryResult:
        """
        Run the query once.

        Args:
            count: Ask PostgREST for the exact total via the Content-Range header

        Returns:
            QueryResult with the decoded rows and optional total count

        Raises:
            DashboardAPIError: For any failed request
        """
        headers = {"Prefer": "count=exact"} if count else None
        data, content_range = self.client._make_request(
            f"/rest/v1/{self.table_name}", self.params(), headers=headers
        )
        total = None
        if count and content_range and "/" in content_range:
            tail = content_range.rsplit("/", 1)[1]
            if tail.isdigit():
                total = int(tail)
        return QueryResult(data=data, count=total)

    def execute_all(self, chunk_size: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Automatically page through every row matching the query.

        Args:
            chunk_size: Rows per request (defaults to the client's server cap)

        Returns:
            List of all rows across all chunks
        """
        chunk_size = chunk_size or self.client.MAX_ROWS_PER_REQUEST
        saved = (self._offset, self._limit)
        all_rows: List[Dict[str, Any]] = []
        start = 0

        try:
            while True:
                self.range(start, start + chunk_size - 1)
                rows = self.execute().data

                if not rows:
                    break

                all_rows.extend(rows)

                # Short chunk means we reached the end
                if len(rows) < chunk_size:
                    break

                start += chunk_size
        finally:
            self._offset, self._limit = saved

        logger.info(f"Retrieved {len(all_rows)} rows from {self.table_name}")
        return all_rows


class SupabaseAPIClient:
    """
    Supabase REST client for the plant dashboard views.

    Credentials come from environment variables (a .env file is honoured):
    SUPABASE_URL, SUPABASE_ANON_KEY and optionally SUPABASE_ACCESS_TOKEN,
    the signed-in user's JWT that row-level security evaluates.
    """

    REQUEST_TIMEOUT = 30  # seconds
    MAX_ROWS_PER_REQUEST = 1000

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None
    ):
        load_dotenv()

        self.url = (url or os.getenv("SUPABASE_URL") or "").rstrip("/")
        self.api_key = api_key or os.getenv("SUPABASE_ANON_KEY")
        self.access_token = access_token or os.getenv("SUPABASE_ACCESS_TOKEN")

        if not self.url or not self.api_key:
            raise ValueError(
                "Missing Supabase credentials. "
                "Please set SUPABASE_URL and SUPABASE_ANON_KEY in .env file"
            )

        self.session = requests.Session()
        self.session.headers.update({
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Accept": "application/json",
        })

        logger.info(f"Initialized API client for: {self.url}")

    def table(self, name: str) -> QueryBuilder:
        return QueryBuilder(self, name)

    def _make_request(
        self,
        endpoint: str,
        params: Optional[List[Tuple[str, str]]] = None,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None
    ) -> Tuple[Any, Optional[str]]:
        """
        Make an API request with error handling.

        Args:
            endpoint: API endpoint path (e.g., '/rest/v1/plant_wrap_view')
            params: Ordered query parameters (PostgREST allows repeated keys)
            method: HTTP method
            headers: Extra request headers

        Returns:
            Tuple of (decoded JSON body, Content-Range header or None)

        Raises:
            DashboardAPIError: For any failed request
        """
        url = f"{self.url}{endpoint}"

        try:
            logger.debug(f"Making {method} request to {endpoint} with params: {params}")
            response = self.session.request(
                method, url, params=params, headers=headers, timeout=self.REQUEST_TIMEOUT
            )
        except requests.exceptions.RequestException as e:
            raise DashboardAPIError(f"Request to {endpoint} failed: {e}") from e

        # Handle different HTTP status codes
        if response.status_code in (200, 206):
            try:
                return response.json(), response.headers.get("Content-Range")
            except ValueError as e:
                raise DashboardAPIError(f"Invalid JSON from {endpoint}: {response.text[:200]}") from e

        detail = _error_detail(response)

        if response.status_code == 400:
            raise DashboardAPIError(f"Bad Request (400): {detail}")

        elif response.status_code in (401, 403):
            raise DashboardAPIError(
                f"Authentication Failed ({response.status_code}): Check SUPABASE_ANON_KEY "
                f"and the session token. {detail}"
            )

        elif response.status_code == 404:
            raise DashboardAPIError(f"Resource Not Found (404): {endpoint}")

        elif response.status_code == 416:
            raise DashboardAPIError(f"Requested range not satisfiable (416): {detail}")

        elif response.status_code >= 500:
            raise DashboardAPIError(f"Server error ({response.status_code}): {detail}")

        else:
            raise DashboardAPIError(
                f"Unexpected status code {response.status_code}: {detail}"
            )


def _error_detail(response) -> str:
    """Pull message/hint out of a PostgREST error body, falling back to raw text"""
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        parts = [str(body[k]) for k in ("message", "details", "hint") if body.get(k)]
        if parts:
            return " | ".join(parts)
    return response.text
