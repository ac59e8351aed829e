# =============================================================================
# Peacock API Client — Authenticated, Cached Gateway to the Upstream API
# =============================================================================
#
# Every call to the Peacock REST API goes through PeacockApiClient.request():
#
#   1. Cache lookup      (skipped for health/login and for cache=False)
#   2. Session cookie    (SessionManager logs in on demand)
#   3. HTTP call         (httpx.AsyncClient)
#   4. Parse             (JSON when the content type says so, else text)
#   5. Cache store       (successful, parseable responses only)
#
# Failures are raised as PeacockApiError subclasses carrying an ApiErrorInfo,
# so callers (agent tools, HTTP routes) can render a stable user message
# without inspecting httpx exceptions.
#
# DESIGN DECISION: Mutations are not cached and clear the cache. A created
# or deleted transaction invalidates every list, search and member view
# we might have cached, and the upstream API gives us no finer signal.
#
# DESIGN DECISION: A 401 drops the session token but is not retried. The
# next request logs in again; retrying here could double-submit mutations.
# =============================================================================

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote, urlencode

import httpx

from peacock_agent.config import settings
from peacock_agent.errors import (
    NetworkError,
    PeacockApiError,
    RequestTimeoutError,
    UpstreamHTTPError,
    format_api_error,
)
from peacock_agent.models.requests import CreateTransactionRequest, TransactionFilters
from peacock_agent.services.api_cache import ResponseCache
from peacock_agent.services.session import SessionManager

logger = logging.getLogger(__name__)

_PUBLIC_ENDPOINT_MARKERS = ("/health", "/auth/login")


def _is_public(endpoint: str) -> bool:
    """Health and login endpoints are neither cached nor authenticated."""
    return any(marker in endpoint for marker in _PUBLIC_ENDPOINT_MARKERS)


def _error_message(response: httpx.Response) -> str:
    """Best human-readable message from a non-2xx response."""
    fallback = (
        f"API request failed: {response.status_code} {response.reason_phrase}"
    )
    text = response.text
    try:
        payload = response.json()
    except ValueError:
        return text or fallback

    if isinstance(payload, dict):
        return payload.get("error") or payload.get("message") or fallback
    return fallback


class PeacockApiClient:
    """Gateway to the upstream Peacock REST API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        session: SessionManager | None = None,
        cache: ResponseCache | None = None,
    ) -> None:
        self._base_url = (base_url or settings.peacock_api_url).rstrip("/")
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=settings.peacock_request_timeout,
        )
        self.session = session or SessionManager(self._http, base_url=self._base_url)
        self.cache = cache if cache is not None else ResponseCache()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # -------------------------------------------------------------------------
    # Core request
    # -------------------------------------------------------------------------

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        cache: bool = True,
    ) -> Any:
        """
        Call the Peacock API and return the parsed body.

        Raises:
            AuthError: Login failed.
            UpstreamHTTPError: Non-2xx status or malformed JSON.
            RequestTimeoutError / NetworkError: Transport failures.
            PeacockApiError: Any other request failure (e.g. bad encoding).
        """
        method = method.upper()
        public = _is_public(endpoint)
        use_cache = cache and not public

        if use_cache:
            cached = self.cache.get(endpoint, method, body)
            if cached is not None:
                logger.debug("Cache hit for %s %s", method, endpoint)
                return cached
            logger.debug("Cache miss for %s %s", method, endpoint)

        headers = {"Content-Type": "application/json"}
        if not public:
            headers["Cookie"] = await self.session.get_cookie()

        url = endpoint if endpoint.startswith("http") else f"{self._base_url}{endpoint}"

        try:
            data = await self._send(method, url, endpoint, headers, body)
        except PeacockApiError as e:
            logger.error(
                "API request error for %s: %s", endpoint, e.info.message,
            )
            raise

        if use_cache:
            self.cache.set(endpoint, data, method, body)
        return data

    async def _send(
        self,
        method: str,
        url: str,
        endpoint: str,
        headers: dict[str, str],
        body: Any,
    ) -> Any:
        try:
            response = await self._http.request(
                method,
                url,
                headers=headers,
                json=body,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                f"Request to Peacock API timed out: {e}", endpoint,
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(
                f"Network error contacting Peacock API: {e}", endpoint,
            ) from e
        except httpx.HTTPError as e:
            # Decoding failures, redirect loops and other request errors
            info = format_api_error(e, endpoint)
            raise PeacockApiError(
                info.message, endpoint, info.status_code, kind=info.kind,
            ) from e

        if not response.is_success:
            if response.status_code == 401:
                self.session.invalidate()
            raise UpstreamHTTPError(
                _error_message(response), endpoint, response.status_code,
            )

        if "application/json" in response.headers.get("content-type", ""):
            try:
                return response.json()
            except ValueError as e:
                raise UpstreamHTTPError(
                    "Malformed JSON response", endpoint, response.status_code,
                ) from e
        return response.text

    # -------------------------------------------------------------------------
    # Typed operations
    # -------------------------------------------------------------------------

    async def get_member_details(self, username: str) -> Any:
        """Member account, loan history and club statistics."""
        return await self.request(
            f"/api/account/member/{quote(username, safe='')}", method="POST",
        )

    async def get_loan_accounts(self) -> Any:
        return await self.request("/api/account/loan", method="POST")

    async def get_transactions(self, filters: TransactionFilters | None = None) -> Any:
        params = (filters or TransactionFilters()).to_query_params()
        endpoint = "/api/transaction"
        if params:
            endpoint = f"{endpoint}?{urlencode(params)}"
        return await self.request(endpoint, method="POST")

    async def search(self, query: str) -> Any:
        """Search across members, vendors, loans and transactions."""
        return await self.request(
            "/api/search", method="POST", body={"searchQuery": query},
        )

    async def create_transaction(self, payload: CreateTransactionRequest) -> Any:
        result = await self.request(
            "/api/transaction/create",
            method="POST",
            body=payload.to_upstream(),
            cache=False,
        )
        self.cache.clear()
        return result

    async def delete_transaction(self, transaction_id: str) -> Any:
        result = await self.request(
            f"/api/transaction/{quote(transaction_id, safe='')}",
            method="DELETE",
            cache=False,
        )
        self.cache.clear()
        return result

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    def clear_cache(self) -> int:
        """Drop every cached response. Returns how many were dropped."""
        count = len(self.cache)
        self.cache.clear()
        return count

    def clear_session_token(self) -> None:
        self.session.clear()
