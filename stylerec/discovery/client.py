"""HTTP client for the third-party product discovery service."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from stylerec import metrics
from stylerec.config import settings

logger = logging.getLogger(__name__)

# Any transport failure is reported as a failed attempt rather than raised raw
TRANSPORT_EXC = (httpx.TransportError,)


class DiscoveryRequestError(RuntimeError):
    """Raised when a discovery search does not return a usable response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def default_headers(api_key: str = "") -> dict[str, str]:
    """Headers sent with every discovery request."""
    headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "User-Agent": "stylerec/0.1",
    }
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


class DiscoveryClient:
    """
    Thin client for ``POST {base_url}/search``.

    The request body carries either ``query`` (descriptive text) or ``url``
    (a representative product page), plus ``max_results``. The response is
    expected to be ``{"results": [...]}``. Each call is a single attempt;
    retry policy belongs to the caller.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.discovery_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.discovery_api_key
        timeout = timeout_seconds or settings.discovery_timeout_seconds
        self.timeout = httpx.Timeout(connect=min(10.0, timeout), read=timeout, write=10.0, pool=10.0)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=default_headers(self.api_key),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def search(
        self,
        *,
        query: Optional[str] = None,
        url: Optional[str] = None,
        max_results: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        Run one discovery search by text or by URL.

        Args:
            query: Descriptive text to search for
            url: Product URL to find similar products for
            max_results: Maximum number of results to request

        Returns:
            The ``results`` list from the response (non-dict entries dropped)

        Raises:
            ValueError: If neither or both of query and url are given
            DiscoveryRequestError: On non-2xx status, transport failure or a malformed body
        """
        if bool(query) == bool(url):
            raise ValueError("Exactly one of query or url is required")
        if not self.enabled:
            raise DiscoveryRequestError("Discovery service is not configured")

        query_form = "url" if url else "text"
        payload: dict[str, Any] = {"max_results": max_results or settings.discovery_max_results}
        if url:
            payload["url"] = url
        else:
            payload["query"] = query

        try:
            resp = await self._get_client().post("/search", json=payload)
        except TRANSPORT_EXC as e:
            metrics.discovery_requests_total.labels(query_form=query_form, status="transport_error").inc()
            raise DiscoveryRequestError(
                f"Discovery {query_form} search transport error: {type(e).__name__}"
            ) from e

        sc = resp.status_code
        if not 200 <= sc < 300:
            metrics.discovery_requests_total.labels(query_form=query_form, status=str(sc)).inc()
            raise DiscoveryRequestError(f"Discovery {query_form} search returned {sc}", status_code=sc)

        try:
            body = resp.json()
        except ValueError as e:
            metrics.discovery_requests_total.labels(query_form=query_form, status="bad_body").inc()
            raise DiscoveryRequestError(f"Discovery {query_form} search returned non-JSON body", sc) from e

        results = body.get("results") if isinstance(body, dict) else None
        if not isinstance(results, list):
            metrics.discovery_requests_total.labels(query_form=query_form, status="bad_body").inc()
            raise DiscoveryRequestError(f"Discovery {query_form} search response has no results list", sc)

        metrics.discovery_requests_total.labels(query_form=query_form, status="success").inc()
        return [r for r in results if isinstance(r, dict)]

    async def close(self):
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# Global discovery client instance
discovery_client = DiscoveryClient()
