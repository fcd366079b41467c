"""Pipedrive API client.

Thin read-only HTTP client implementing:
- x-api-token authentication
- Configurable timeout (default 30s)
- Error classification into PipedriveAPIError
- Structured logging of every call

Requests are never retried: a failed request fails the tool call.
"""

from __future__ import annotations

import re
import time
from typing import Any

import httpx

from .config import DEFAULT_API_URL, DEFAULT_TIMEOUT_SECONDS, Settings
from .logging import generate_correlation_id, log_api_call
from .models import PipedriveErrorType, classify_http_error

# =============================================================================
# Custom Exceptions
# =============================================================================


class PipedriveAPIError(Exception):
    """Error returned by (or while talking to) the Pipedrive API."""

    def __init__(
        self,
        message: str,
        error_type: PipedriveErrorType = PipedriveErrorType.UNKNOWN,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.error_type == PipedriveErrorType.NOT_FOUND


FRIENDLY_ERROR_MESSAGES: dict[PipedriveErrorType, str] = {
    PipedriveErrorType.AUTHENTICATION: "Authentication failed. Check your Pipedrive API token.",
    PipedriveErrorType.PAYMENT_REQUIRED: "Pipedrive company account is not active.",
    PipedriveErrorType.PERMISSION_DENIED: "Permission denied. Check API token permissions.",
    PipedriveErrorType.NOT_FOUND: "Resource not found in Pipedrive.",
    PipedriveErrorType.RATE_LIMITED: "Pipedrive rate limit exceeded. Try again later.",
    PipedriveErrorType.SERVICE_UNAVAILABLE: (
        "Pipedrive service temporarily unavailable. Try again later."
    ),
}

TOKEN_PATTERN = re.compile(r"api[_-]?token[=:]\s*[^\s&]+", re.IGNORECASE)


def _upstream_error_text(response: httpx.Response) -> str:
    """Error text from a Pipedrive error body.

    Pipedrive errors look like {"success": false, "error": "...", "error_info": "..."}.
    Bodies that are not JSON fall back to the raw text.
    """
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"

    detail = body.get("error") or body.get("message") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        return str(detail.get("message", detail))
    if detail:
        return str(detail)
    return response.text or f"HTTP {response.status_code}"


# =============================================================================
# Pipedrive API Client
# =============================================================================


class PipedriveClient:
    """Pipedrive API client with structured logging.

    Each public method issues exactly one GET request and returns the
    parsed response body.
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """Initialize the Pipedrive client.

        Args:
            api_token: Pipedrive API token.
            base_url: API base URL, e.g. https://company.pipedrive.com/api/v1
            timeout: Request timeout in seconds.

        Raises:
            ValueError: If API token is empty.
        """
        if not api_token:
            raise ValueError("Pipedrive API token not configured.")

        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> PipedriveClient:
        return cls(settings.api_token, base_url=settings.api_url, timeout=settings.timeout)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "x-api-token": self.api_token,
                    "Accept": "application/json",
                },
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _raise_for_status(self, response: httpx.Response, correlation_id: str) -> None:
        """Raise PipedriveAPIError for an HTTP error response."""
        error_type = classify_http_error(response.status_code)
        message = self._sanitize_error_message(_upstream_error_text(response), error_type)

        log_api_call(
            method=response.request.method,
            path=response.request.url.path,
            status_code=response.status_code,
            error=message,
            correlation_id=correlation_id,
        )
        raise PipedriveAPIError(message, error_type, response.status_code)

    def _sanitize_error_message(self, message: str, error_type: PipedriveErrorType) -> str:
        """Message safe to show to the host: fixed text for well-known
        failures, otherwise the upstream text truncated with the token redacted.
        """
        if error_type in FRIENDLY_ERROR_MESSAGES:
            return FRIENDLY_ERROR_MESSAGES[error_type]

        redacted = TOKEN_PATTERN.sub("api_token=[REDACTED]", message[:200])
        return redacted.replace(self.api_token, "[REDACTED]")

    async def _request(
        self,
        method: str,
        path: str,
        correlation_id: str,
        params: dict | None = None,
    ) -> dict:
        """Execute a single HTTP request.

        Args:
            method: HTTP method
            path: API endpoint path
            correlation_id: Request correlation ID
            params: Query parameters

        Returns:
            Parsed JSON response

        Raises:
            PipedriveAPIError: On HTTP, transport or payload errors
        """
        client = await self._get_client()
        start_time = time.perf_counter()

        try:
            response = await client.request(method, path, params=params)
        except httpx.TimeoutException as e:
            latency_ms = (time.perf_counter() - start_time) * 1000
            log_api_call(
                method=method,
                path=path,
                latency_ms=latency_ms,
                error="Request timeout",
                correlation_id=correlation_id,
            )
            raise PipedriveAPIError(
                "Request to Pipedrive timed out.",
                PipedriveErrorType.TIMEOUT,
            ) from e
        except httpx.TransportError as e:
            latency_ms = (time.perf_counter() - start_time) * 1000
            log_api_call(
                method=method,
                path=path,
                latency_ms=latency_ms,
                error="Network error",
                correlation_id=correlation_id,
            )
            raise PipedriveAPIError(
                "Network error connecting to Pipedrive.",
                PipedriveErrorType.NETWORK_ERROR,
            ) from e
        except httpx.HTTPError as e:
            # Decoding errors, redirect loops and other httpx request failures
            latency_ms = (time.perf_counter() - start_time) * 1000
            log_api_call(
                method=method,
                path=path,
                latency_ms=latency_ms,
                error=f"Request failed: {type(e).__name__}",
                correlation_id=correlation_id,
            )
            raise PipedriveAPIError(
                "Request to Pipedrive failed.",
                PipedriveErrorType.NETWORK_ERROR,
            ) from e

        latency_ms = (time.perf_counter() - start_time) * 1000

        if response.status_code >= 400:
            self._raise_for_status(response, correlation_id)

        log_api_call(
            method=method,
            path=path,
            status_code=response.status_code,
            latency_ms=latency_ms,
            correlation_id=correlation_id,
        )

        try:
            body = response.json()
        except ValueError as e:
            raise PipedriveAPIError(
                "Pipedrive returned a response that is not valid JSON.",
                PipedriveErrorType.MALFORMED_RESPONSE,
                response.status_code,
            ) from e

        if isinstance(body, dict) and body.get("success") is False:
            message = body.get("error") or "Pipedrive reported an unsuccessful request."
            raise PipedriveAPIError(
                self._sanitize_error_message(str(message), PipedriveErrorType.MALFORMED_RESPONSE),
                PipedriveErrorType.MALFORMED_RESPONSE,
                response.status_code,
            )

        return body

    async def get(
        self,
        path: str,
        correlation_id: str | None = None,
        params: dict | None = None,
    ) -> dict:
        """Execute GET request."""
        corr_id = correlation_id or generate_correlation_id()
        return await self._request("GET", path, corr_id, params=params)

    # =========================================================================
    # Resource operations
    # =========================================================================

    async def list_page(
        self,
        resource: str,
        start: int,
        limit: int,
        params: dict[str, Any] | None = None,
        correlation_id: str | None = None,
    ) -> dict:
        """Fetch one page of a collection endpoint (GET /{resource})."""
        query: dict[str, Any] = {"start": start, "limit": limit}
        if params:
            query.update(params)
        return await self.get(f"/{resource}", correlation_id, params=query)

    async def get_record(
        self,
        resource: str,
        record_id: int,
        correlation_id: str | None = None,
    ) -> dict:
        """Fetch a single record (GET /{resource}/{id})."""
        return await self.get(f"/{resource}/{record_id}", correlation_id)

    async def search(
        self,
        resource: str,
        term: str,
        params: dict[str, Any] | None = None,
        correlation_id: str | None = None,
    ) -> dict:
        """Search one resource type by term (GET /{resource}/search)."""
        query: dict[str, Any] = {"term": term}
        if params:
            query.update(params)
        return await self.get(f"/{resource}/search", correlation_id, params=query)

    async def search_items(
        self,
        params: dict[str, Any],
        correlation_id: str | None = None,
    ) -> dict:
        """Search across item types (GET /itemSearch)."""
        return await self.get("/itemSearch", correlation_id, params=params)

    async def list_pipelines(self, correlation_id: str | None = None) -> dict:
        """Fetch all pipelines (GET /pipelines, unpaginated)."""
        return await self.get("/pipelines", correlation_id)

    async def list_stages(self, pipeline_id: int, correlation_id: str | None = None) -> dict:
        """Fetch the stages of one pipeline (GET /stages?pipeline_id=)."""
        return await self.get("/stages", correlation_id, params={"pipeline_id": pipeline_id})

    async def get_deal_changelog(
        self,
        deal_id: int,
        limit: int,
        cursor: str | None = None,
        correlation_id: str | None = None,
    ) -> dict:
        """Fetch one page of a deal's changelog (GET /deals/{id}/changelog)."""
        params: dict[str, Any] = {"limit": limit}
        if cursor:
            params["cursor"] = cursor
        return await self.get(f"/deals/{deal_id}/changelog", correlation_id, params=params)


# Shared client instances, one per distinct settings (lazy initialization)
_pipedrive_clients: dict[Settings, PipedriveClient] = {}


def get_pipedrive_client(settings: Settings) -> PipedriveClient:
    """Get or create the shared Pipedrive client for these settings.

    Servers built with different settings (token, URL, timeout) get
    different clients; equal settings share one connection pool.
    """
    client = _pipedrive_clients.get(settings)
    if client is None:
        client = PipedriveClient.from_settings(settings)
        _pipedrive_clients[settings] = client
    return client
