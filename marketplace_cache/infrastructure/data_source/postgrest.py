"""
PostgREST Listing Data Source

Queries the auto-generated REST interface over the relational store. All
three sub-queries read the ``public_items`` view with the same filter
parameters.

REQUESTS ISSUED:
----------------
    page:     GET /public_items?select=*&<filters>&order=price_diamonds.desc,id.asc&limit=N&offset=M
    count:    GET /public_items?select=id&<filters>&limit=1   (Prefer: count=exact → Content-Range)
    sellers:  GET /public_items?select=owner_id&<filters>&order=id.asc&limit=N&offset=M
              (repeated until an empty batch; distinct counted client-side)

FILTER OPERATORS:
-----------------
    search       → name=ilike.*term*
    category     → category=eq.<value>
    seller_id    → owner_id=eq.<value>
    server_name  → server_name=eq.<value>
    min_price    → price_diamonds=gte.<value>
    max_price    → price_diamonds=lte.<value>
    is_available → is_available=eq.true|false

RETRY STRATEGY:
---------------
Connect errors and timeouts are retried with exponential backoff and jitter
(tenacity). HTTP error statuses are not retried. Anything that still fails is
raised as DataSourceError; a failed query never yields partial data.
"""

from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from marketplace_cache.core.config.constants import POSTGREST_LISTINGS_VIEW, Stage
from marketplace_cache.core.config.runtime import DataSourceConfig
from marketplace_cache.core.exceptions import DataSourceError, DataSourceTimeoutError
from marketplace_cache.core.logging.logger import get_logger, log_stage
from marketplace_cache.marketplace.models.listing import Listing, ListingFilters

logger = get_logger(__name__)

# Column names in the public_items view
COLUMN_ID = "id"
COLUMN_NAME = "name"
COLUMN_PRICE = "price_diamonds"
COLUMN_SELLER = "owner_id"
COLUMN_CATEGORY = "category"
COLUMN_SERVER = "server_name"
COLUMN_AVAILABLE = "is_available"

PAGE_ORDER = f"{COLUMN_PRICE}.desc,{COLUMN_ID}.asc"

# Owner ids requested per round trip when counting distinct sellers
SELLER_SCAN_BATCH_SIZE = 1000


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_filter_params(filters: ListingFilters) -> list[tuple[str, str]]:
    """
    Translate filters into PostgREST query parameters.

    Returned as a list of pairs since one column may carry two operators
    (a price range).
    """
    params: list[tuple[str, str]] = []
    if filters.search:
        params.append((COLUMN_NAME, f"ilike.*{filters.search}*"))
    if filters.category is not None:
        params.append((COLUMN_CATEGORY, f"eq.{filters.category}"))
    if filters.seller_id is not None:
        params.append((COLUMN_SELLER, f"eq.{filters.seller_id}"))
    if filters.server_name is not None:
        params.append((COLUMN_SERVER, f"eq.{filters.server_name}"))
    if filters.min_price is not None:
        params.append((COLUMN_PRICE, f"gte.{_format_value(filters.min_price)}"))
    if filters.max_price is not None:
        params.append((COLUMN_PRICE, f"lte.{_format_value(filters.max_price)}"))
    if filters.is_available is not None:
        params.append((COLUMN_AVAILABLE, f"eq.{_format_value(filters.is_available)}"))
    return params


def parse_content_range_total(header: str | None) -> int:
    """
    Extract the total from a Content-Range header ("0-19/55", "*/0").

    Raises:
        DataSourceError: If the header is missing or carries no exact total
    """
    if not header or "/" not in header:
        raise DataSourceError("PostgREST response is missing Content-Range", details={"content_range": header})

    total = header.rsplit("/", 1)[1].strip()
    if not total.isdigit():
        raise DataSourceError("PostgREST did not return an exact count", details={"content_range": header})
    return int(total)


class PostgrestDataSource:
    """
    httpx-based client for the ``public_items`` view.

    Usage:
        source = PostgrestDataSource(DataSourceConfig(base_url="http://localhost:3000"))
        listings = await source.fetch_page(ListingFilters(category="tools"), page=1, page_size=20)
        await source.close()

    A preconfigured ``httpx.AsyncClient`` may be injected (tests pass one
    built on ``httpx.MockTransport``).
    """

    def __init__(self, config: DataSourceConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self._endpoint = f"/{POSTGREST_LISTINGS_VIEW}"
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            timeout=httpx.Timeout(config.timeout),
            headers=self._default_headers(config),
        )

    @staticmethod
    def _default_headers(config: DataSourceConfig) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if config.api_key:
            headers["apikey"] = config.api_key
            headers["Authorization"] = f"Bearer {config.api_key}"
        return headers

    async def close(self) -> None:
        await self._client.aclose()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def fetch_page(self, filters: ListingFilters, page: int, page_size: int) -> list[Listing]:
        """
        Fetch one page ordered by price descending, id ascending.

        Raises:
            DataSourceError: On transport failure, error status or bad rows
        """
        params = [
            ("select", "*"),
            *build_filter_params(filters),
            ("order", PAGE_ORDER),
            ("limit", str(page_size)),
            ("offset", str((page - 1) * page_size)),
        ]
        response = await self._request("page", params)
        rows = self._json_rows(response)

        try:
            return [Listing.model_validate(row) for row in rows]
        except PydanticValidationError as e:
            raise DataSourceError.from_exception(
                e, message="PostgREST returned malformed listing rows", endpoint=self._endpoint
            ) from e

    async def fetch_total_count(self, filters: ListingFilters) -> int:
        """Exact row count via ``Prefer: count=exact``."""
        params = [("select", COLUMN_ID), *build_filter_params(filters), ("limit", "1")]
        response = await self._request("count", params, headers={"Prefer": "count=exact"})
        return parse_content_range_total(response.headers.get("Content-Range"))

    async def fetch_distinct_seller_count(self, filters: ListingFilters) -> int:
        """
        Number of distinct owner ids among matching rows.

        Scans owner ids in id order, batch by batch, until the server returns
        an empty batch. Offsets advance by the rows actually received, so a
        server-side row cap (db-max-rows) smaller than the batch size only
        means more round trips.
        """
        base = [("select", COLUMN_SELLER), *build_filter_params(filters), ("order", f"{COLUMN_ID}.asc")]
        sellers: set[Any] = set()
        offset = 0
        while True:
            params = [*base, ("limit", str(SELLER_SCAN_BATCH_SIZE)), ("offset", str(offset))]
            rows = self._json_rows(await self._request("sellers", params))
            if not rows:
                return len(sellers)
            sellers.update(row.get(COLUMN_SELLER) for row in rows if row.get(COLUMN_SELLER) is not None)
            offset += len(rows)

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _request(
        self, query: str, params: list[tuple[str, str]], headers: dict[str, str] | None = None
    ) -> httpx.Response:
        log_stage(logger, Stage.DATA_FETCH, "Querying data source", level="debug", query=query, params=params)

        try:
            return await self._execute_with_retry(params, headers or {})

        except httpx.TimeoutException as e:
            log_stage(logger, Stage.DATA_ERROR, "Data source timed out", level="error", query=query)
            raise DataSourceTimeoutError(
                f"Data source request timed out after {self.config.timeout}s",
                details={"endpoint": self._endpoint, "query": query, "timeout": self.config.timeout},
            ) from e

        except httpx.HTTPStatusError as e:
            log_stage(
                logger, Stage.DATA_ERROR, "Data source returned an error status", level="error",
                query=query, status_code=e.response.status_code,
            )
            raise DataSourceError(
                f"Data source returned HTTP {e.response.status_code}",
                details={
                    "endpoint": self._endpoint,
                    "query": query,
                    "status_code": e.response.status_code,
                    "response_text": e.response.text[:500] if e.response.text else None,
                },
            ) from e

        except httpx.HTTPError as e:
            log_stage(logger, Stage.DATA_ERROR, "Data source request failed", level="error", query=query, error=str(e))
            raise DataSourceError.from_exception(
                e, message="Data source request failed", endpoint=self._endpoint, query=query
            ) from e

    async def _execute_with_retry(self, params: list[tuple[str, str]], headers: dict[str, str]) -> httpx.Response:
        @retry(
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential_jitter(initial=0.1, max=1.0),
            retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
            reraise=True,
        )
        async def _do_request() -> httpx.Response:
            response = await self._client.get(self._endpoint, params=params, headers=headers)
            response.raise_for_status()
            return response

        return await _do_request()

    def _json_rows(self, response: httpx.Response) -> list[dict[str, Any]]:
        try:
            rows = response.json()
        except ValueError as e:
            raise DataSourceError.from_exception(
                e, message="Data source returned invalid JSON", endpoint=self._endpoint
            ) from e

        if not isinstance(rows, list):
            raise DataSourceError(
                "Data source returned an unexpected payload",
                details={"endpoint": self._endpoint, "payload_type": type(rows).__name__},
            )
        return rows
