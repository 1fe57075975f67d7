"""
Async Graph API client with pagination, record caps and read-only enforcement.
Every non-success response surfaces as GraphAPIError; there is no retry layer.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, Optional

import httpx

from ..config import (
    GRAPH_BASE_URL,
    GRAPH_API_VERSION,
    GRAPH_BETA_VERSION,
    MAX_PAGE_SIZE,
)
from ..safety.guardian import ReadOnlyGuard

logger = logging.getLogger("tenant_reports.graph")


class GraphAPIError(Exception):
    """Raised when Graph API returns a non-success response."""
    def __init__(self, status_code: int, message: str, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"Graph API Error {status_code} for {url}: {message}")


class GraphClient:
    """
    Async Microsoft Graph API client.
    Features:
      - Read-only validated requests
      - Automatic pagination with @odata.nextLink
      - Streaming generator that stops at a record cap
      - v1.0 and beta endpoint support
    """

    def __init__(
        self,
        access_token: str,
        guardian: Optional[ReadOnlyGuard] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.guardian = guardian or ReadOnlyGuard()
        self._transport = transport
        self._request_count = 0
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(60.0, connect=30.0),
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Accept": "application/json",
                "ConsistencyLevel": "eventual",  # Required for $count filters
            },
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str, beta: bool = False) -> str:
        """Build full Graph URL from relative endpoint."""
        if endpoint.startswith("http"):
            return endpoint
        version = GRAPH_BETA_VERSION if beta else GRAPH_API_VERSION
        endpoint = endpoint.lstrip("/")
        return f"{GRAPH_BASE_URL}/{version}/{endpoint}"

    async def get(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        beta: bool = False,
    ) -> dict:
        """Execute a single GET request."""
        url = self._build_url(endpoint, beta=beta)
        return await self._get_json(url, params)

    async def get_pages_stream(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        beta: bool = False,
        page_size: int = MAX_PAGE_SIZE,
        limit: Optional[int] = None,
    ) -> AsyncGenerator[dict, None]:
        """
        Stream items from a paginated endpoint as an async generator.
        Stops after `limit` items; pages beyond it are never requested.
        """
        params = dict(params or {})
        params.setdefault("$top", str(min(page_size, MAX_PAGE_SIZE)))

        url: Optional[str] = self._build_url(endpoint, beta=beta)
        yielded = 0
        pages = 0

        while url:
            data = await self._get_json(url, params)
            pages += 1
            for item in data.get("value", []):
                if limit is not None and yielded >= limit:
                    return
                yield item
                yielded += 1
            if limit is not None and yielded >= limit:
                break

            # nextLink carries all query parameters
            url = data.get("@odata.nextLink")
            params = None

        logger.debug(f"Fetched {yielded} items from {endpoint} in {pages} pages")

    async def _get_json(self, url: str, params: Optional[dict]) -> dict[str, Any]:
        if not self._client:
            raise RuntimeError("GraphClient not initialized. Use 'async with' context.")
        self.guardian.validate_request("GET", url)

        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise GraphAPIError(0, f"{type(e).__name__}: {e}", url) from e
        self._request_count += 1

        if response.status_code == 200:
            if not response.content or not response.content.strip():
                return {"value": []}
            try:
                return response.json()
            except ValueError as e:
                raise GraphAPIError(200, "Response body is not JSON", url) from e

        try:
            error_body = response.json() if response.content else {}
        except ValueError:
            error_body = {}
        error_msg = error_body.get("error", {}).get("message", response.text[:200])
        raise GraphAPIError(response.status_code, error_msg, url)

    def get_stats(self) -> dict:
        """Return client statistics."""
        return {
            "total_requests": self._request_count,
            "guard": self.guardian.summary(),
        }
